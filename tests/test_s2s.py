import string

import pytest

from identity_service.core import s2s
from identity_service.core.exceptions import ConfigurationError

SECRET = "shared-secret"
NOW = 1_700_000_000


def test_signature_validates_symmetrically():
    for service_id, secret in [("billing", SECRET), ("events-service", "another secret"), ("x", "s")]:
        signature = s2s.sign(service_id, NOW, secret)
        assert s2s.validate(signature, service_id, NOW, secret, now=NOW)


def test_signature_is_deterministic_base64():
    first = s2s.sign("billing", NOW, SECRET)
    assert first == s2s.sign("billing", NOW, SECRET)
    assert len(first) == 44
    assert first.endswith("=")


def test_every_single_character_mutation_is_rejected():
    signature = s2s.sign("billing", NOW, SECRET)
    alphabet = string.ascii_letters + string.digits + "+/="

    for position, original in enumerate(signature):
        replacement = next(c for c in alphabet if c != original)
        mutated = signature[:position] + replacement + signature[position + 1:]
        assert not s2s.validate(mutated, "billing", NOW, SECRET, now=NOW), position


def test_altering_any_field_is_rejected():
    signature = s2s.sign("billing", NOW, SECRET)

    assert not s2s.validate(signature, "billinG", NOW, SECRET, now=NOW)
    assert not s2s.validate(signature, "billing", NOW + 1, SECRET, now=NOW)
    assert not s2s.validate(signature, "billing", NOW, SECRET + "x", now=NOW)
    assert not s2s.validate(signature[:-2], "billing", NOW, SECRET, now=NOW)
    assert not s2s.validate("", "billing", NOW, SECRET, now=NOW)


def test_stale_or_future_timestamps_are_rejected():
    old = NOW - 120
    signature = s2s.sign("billing", old, SECRET)
    assert not s2s.validate(signature, "billing", old, SECRET, now=NOW)

    future = NOW + 120
    signature = s2s.sign("billing", future, SECRET)
    assert not s2s.validate(signature, "billing", future, SECRET, now=NOW)


def test_timestamp_within_skew_is_accepted():
    ts = NOW - 60
    signature = s2s.sign("billing", ts, SECRET)
    assert s2s.validate(signature, "billing", ts, SECRET, now=NOW)
    assert not s2s.validate(signature, "billing", ts, SECRET, max_skew_seconds=30, now=NOW)


def test_empty_secret_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        s2s.sign("billing", NOW, "")
    with pytest.raises(ConfigurationError):
        s2s.validate("anything", "billing", NOW, "", now=NOW)
