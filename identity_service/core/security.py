"""Security utilities - JWT signing, password hashing"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional
import logging
import secrets

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from identity_service.config import Settings, settings
from identity_service.core.exceptions import ConfigurationError, TokenExpiredError, TokenInvalidError

logger = logging.getLogger(__name__)

MIN_SECRET_BYTES = 32


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash

    Args:
        plain_password: Plain text password
        hashed_password: Hashed password

    Returns:
        bool: True if password matches
    """
    return bcrypt.checkpw(
        plain_password.encode('utf-8'),
        hashed_password.encode('utf-8')
    )


def get_password_hash(password: str, rounds: Optional[int] = None) -> str:
    """
    Hash a password using bcrypt

    Args:
        password: Plain text password
        rounds: bcrypt cost factor, defaults to BCRYPT_ROUNDS

    Returns:
        str: Hashed password
    """
    return bcrypt.hashpw(
        password.encode('utf-8'),
        bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    ).decode('utf-8')


def strip_bearer(token: str) -> str:
    """Remove an optional ``Bearer `` prefix from an Authorization value."""
    if token.startswith("Bearer "):
        return token[7:]
    return token


class JwtSigner:
    """Issue and verify HMAC-signed access tokens.

    The signer is a pure function of its inputs plus the configured key and
    TTL; it holds no per-token state.
    """

    def __init__(self, secret: bytes, expiration_ms: int, algorithm: str = "HS256") -> None:
        if len(secret) < MIN_SECRET_BYTES:
            raise ConfigurationError("JWT signing key must be at least 256 bits")
        self._secret = secret
        self.expiration_ms = expiration_ms
        self.algorithm = algorithm

    @classmethod
    def from_settings(cls, config: Settings) -> "JwtSigner":
        try:
            secret = config.get_jwt_secret_bytes()
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        return cls(secret, config.JWT_EXPIRATION_MS, config.JWT_ALGORITHM)

    def issue(
        self,
        claims: Dict[str, Any],
        subject: str,
        authorities: Iterable[str],
    ) -> str:
        """
        Create a signed access token

        Args:
            claims: Extra claims to embed
            subject: Token subject (user email)
            authorities: Granted authorities, stored as the ``roles`` claim

        Returns:
            str: Encoded JWT
        """
        now = datetime.now(timezone.utc)
        expire = now + timedelta(milliseconds=self.expiration_ms)

        to_encode = dict(claims)
        to_encode.update({
            "roles": list(authorities),
            "sub": subject,
            "iat": int(now.timestamp()),
            "exp": int(expire.timestamp()),
            "jti": secrets.token_urlsafe(16),
        })
        return jwt.encode(to_encode, self._secret, algorithm=self.algorithm)

    def verify_signature_and_parse(self, token: str) -> Dict[str, Any]:
        """
        Decode and verify a JWT

        Raises:
            TokenExpiredError: Signature is valid but ``exp`` has passed
            TokenInvalidError: Structure or signature is invalid
        """
        try:
            return jwt.decode(token, self._secret, algorithms=[self.algorithm])
        except ExpiredSignatureError as exc:
            raise TokenExpiredError() from exc
        except JWTError as exc:
            logger.warning("Invalid token attempt: %s", exc)
            raise TokenInvalidError() from exc

    def parse_ignoring_expiry(self, token: str) -> Dict[str, Any]:
        """Verify the signature but accept tokens whose ``exp`` has passed."""
        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            logger.warning("Invalid token attempt: %s", exc)
            raise TokenInvalidError() from exc

    def extract_subject(self, token: str) -> str:
        return self.verify_signature_and_parse(token)["sub"]

    def extract_numeric_claim(self, token: str, name: str, verify_exp: bool = True) -> int:
        claims = (
            self.verify_signature_and_parse(token)
            if verify_exp
            else self.parse_ignoring_expiry(token)
        )
        return numeric_claim(claims, name)

    def is_valid(self, token: str, expected_subject: str) -> bool:
        """
        True iff the subject matches and the token has not expired.

        Expiry yields False; a malformed token or bad signature still raises
        TokenInvalidError so callers can answer differently.
        """
        try:
            claims = self.verify_signature_and_parse(token)
        except TokenExpiredError:
            return False
        return claims.get("sub") == expected_subject


def numeric_claim(claims: Dict[str, Any], name: str) -> int:
    value = claims.get(name)
    if isinstance(value, bool):
        raise TokenInvalidError(f"Claim '{name}' is not numeric")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    raise TokenInvalidError(f"Claim '{name}' is missing or not numeric")


jwt_signer = JwtSigner.from_settings(settings)
