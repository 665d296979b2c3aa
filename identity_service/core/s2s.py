"""Service-to-service request signing.

Signature formula::

    base64(HMAC-SHA256(f"{service_id}:{timestamp}", shared_secret))

The receiving side recomputes the signature and accepts the request only when
the timestamp lies within the allowed clock skew and the signatures match in
constant time.
"""

import base64
import hashlib
import hmac
import time
from typing import Optional

from identity_service.core.exceptions import ConfigurationError

DEFAULT_MAX_SKEW_SECONDS = 60


def _secret_bytes(shared_secret: str) -> bytes:
    if not shared_secret:
        raise ConfigurationError("S2S shared secret must not be empty")
    return shared_secret.encode("utf-8")


def sign(service_id: str, timestamp: int, shared_secret: str) -> str:
    """Return the base64 HMAC-SHA256 signature for a service id and epoch-second timestamp."""
    payload = f"{service_id}:{timestamp}".encode("utf-8")
    digest = hmac.new(_secret_bytes(shared_secret), payload, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def validate(
    signature: str,
    service_id: str,
    timestamp: int,
    shared_secret: str,
    max_skew_seconds: int = DEFAULT_MAX_SKEW_SECONDS,
    now: Optional[int] = None,
) -> bool:
    """
    Check a signature produced by :func:`sign`.

    Fails closed when the timestamp is older or newer than ``max_skew_seconds``
    relative to ``now``.
    """
    expected = sign(service_id, timestamp, shared_secret)

    current = int(time.time()) if now is None else now
    if abs(current - timestamp) > max_skew_seconds:
        return False

    provided = signature.encode("utf-8")
    expected_bytes = expected.encode("utf-8")
    # Length is public (fixed for SHA-256); only the content compare must be constant time.
    if len(provided) != len(expected_bytes):
        return False
    return hmac.compare_digest(provided, expected_bytes)
