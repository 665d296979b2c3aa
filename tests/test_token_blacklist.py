import threading
import time

import pytest

from identity_service.core.exceptions import ConfigurationError
from identity_service.services.token_blacklist import TokenBlacklist


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_revoked_token_stays_revoked_within_ttl():
    clock = FakeClock()
    blacklist = TokenBlacklist(ttl_seconds=1800, max_size=10, clock=clock)

    blacklist.revoke("token-a")
    assert blacklist.is_revoked("token-a")
    clock.advance(1799)
    assert blacklist.is_revoked("token-a")
    assert not blacklist.is_revoked("token-b")


def test_entry_expires_after_ttl():
    clock = FakeClock()
    blacklist = TokenBlacklist(ttl_seconds=1800, max_size=10, clock=clock)

    blacklist.revoke("token-a")
    clock.advance(1800)
    assert not blacklist.is_revoked("token-a")
    assert len(blacklist) == 0


def test_oldest_entry_is_evicted_at_capacity():
    clock = FakeClock()
    blacklist = TokenBlacklist(ttl_seconds=1800, max_size=2, clock=clock)

    blacklist.revoke("first")
    clock.advance(1)
    blacklist.revoke("second")
    clock.advance(1)
    blacklist.revoke("third")

    assert len(blacklist) == 2
    assert not blacklist.is_revoked("first")
    assert blacklist.is_revoked("second")
    assert blacklist.is_revoked("third")


def test_revoking_again_refreshes_the_entry():
    clock = FakeClock()
    blacklist = TokenBlacklist(ttl_seconds=100, max_size=2, clock=clock)

    blacklist.revoke("a")
    blacklist.revoke("b")
    clock.advance(50)
    blacklist.revoke("a")
    blacklist.revoke("c")

    assert not blacklist.is_revoked("b")
    clock.advance(60)
    assert blacklist.is_revoked("a")


def test_purge_expired_removes_only_expired_entries():
    clock = FakeClock()
    blacklist = TokenBlacklist(ttl_seconds=100, max_size=10, clock=clock)

    blacklist.revoke("old-1")
    blacklist.revoke("old-2")
    clock.advance(60)
    blacklist.revoke("fresh")
    clock.advance(50)

    assert blacklist.purge_expired() == 2
    assert len(blacklist) == 1
    assert blacklist.is_revoked("fresh")


def test_ttl_must_exceed_access_token_lifetime():
    with pytest.raises(ConfigurationError):
        TokenBlacklist(ttl_seconds=900, max_size=10, access_token_ttl_seconds=900)
    with pytest.raises(ConfigurationError):
        TokenBlacklist(ttl_seconds=60, max_size=0)

    TokenBlacklist(ttl_seconds=1800, max_size=10, access_token_ttl_seconds=900)


def test_sweeper_thread_purges_in_background():
    blacklist = TokenBlacklist(ttl_seconds=0.01, max_size=10, sweep_interval_seconds=0.01)
    blacklist.revoke("token")

    blacklist.start()
    try:
        assert blacklist.is_running()
        deadline = time.monotonic() + 2
        while len(blacklist) and time.monotonic() < deadline:
            time.sleep(0.01)
        assert len(blacklist) == 0
    finally:
        blacklist.stop()
    assert not blacklist.is_running()


def test_concurrent_revocations_are_all_recorded():
    blacklist = TokenBlacklist(ttl_seconds=1800, max_size=10_000)
    writers, per_writer = 8, 200
    tokens = [[f"token-{w}-{i}" for i in range(per_writer)] for w in range(writers)]
    start = threading.Barrier(writers + 4)
    errors = []

    def revoke_all(batch):
        start.wait()
        for token in batch:
            blacklist.revoke(token)

    def read_all():
        start.wait()
        try:
            for batch in tokens:
                for token in batch:
                    blacklist.is_revoked(token)
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=revoke_all, args=(batch,)) for batch in tokens]
    threads += [threading.Thread(target=read_all) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert not errors
    assert len(blacklist) == writers * per_writer
    assert all(blacklist.is_revoked(token) for batch in tokens for token in batch)
