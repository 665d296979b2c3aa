"""Authentication middleware for user-facing and service-to-service routes.

Two filters run on every request:

- ``InternalServiceMiddleware`` guards ``/api/internal/*`` with an HMAC
  signature over the calling service id and a timestamp.
- ``JwtAuthenticationMiddleware`` resolves the bearer token on the remaining
  ``/api/*`` routes into a ``Principal`` and runs the request as that actor.
  Requests without a token continue anonymously; the route dependencies
  decide whether that is acceptable.
"""

import logging
from typing import Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse
from starlette.types import ASGIApp

from identity_service.core import s2s
from identity_service.core.context import Principal, acting_as
from identity_service.core.exceptions import TokenExpiredError, TokenInvalidError
from identity_service.core.security import JwtSigner, numeric_claim
from identity_service.schemas.response import ErrorResponse
from identity_service.services.token_blacklist import TokenBlacklist

logger = logging.getLogger(__name__)

API_PREFIX = "/api"
INTERNAL_PREFIX = "/api/internal"

# Auth endpoints handle their own tokens (logout accepts expired ones).
EXCLUDED_PATHS = [
    "/api/auth",
    INTERNAL_PREFIX,
]

SERVICE_ID_HEADER = "X-Internal-Service-ID"
SIGNATURE_HEADER = "X-Service-Signature"
TIMESTAMP_HEADER = "X-Service-Timestamp"


def _matches(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def _error(status_code: int, message: str, path: str, headers: Optional[dict] = None) -> JSONResponse:
    body = ErrorResponse(error=message, path=path)
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


def _unauthorized(message: str, path: str) -> JSONResponse:
    return _error(401, message, path, headers={"WWW-Authenticate": "Bearer"})


class JwtAuthenticationMiddleware(BaseHTTPMiddleware):
    """Populate ``request.state.principal`` from a bearer token.

    - No ``Authorization: Bearer`` header: continue anonymously
    - Token on the blacklist: 401 "Token has been revoked"
    - Expired: 401 "Token has expired"
    - Bad signature, malformed, or missing ``id`` claim: 401 "Invalid token"
    """

    def __init__(self, app: ASGIApp, signer: JwtSigner, blacklist: TokenBlacklist):
        super().__init__(app)
        self.signer = signer
        self.blacklist = blacklist

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        request.state.principal = None

        if request.method == "OPTIONS" or not _matches(path, API_PREFIX):
            return await call_next(request)

        for excluded in EXCLUDED_PATHS:
            if _matches(path, excluded):
                return await call_next(request)

        token = self._extract_token(request)
        if not token:
            return await call_next(request)

        if self.blacklist.is_revoked(token):
            logger.warning(f"Revoked token used for: {request.method} {path}")
            return _unauthorized("Token has been revoked", path)

        try:
            claims = self.signer.verify_signature_and_parse(token)
            principal = Principal(
                user_id=numeric_claim(claims, "id"),
                email=claims.get("sub") or claims.get("email", ""),
                authorities=tuple(claims.get("roles") or ()),
            )
        except TokenExpiredError:
            logger.debug(f"Expired token for: {request.method} {path}")
            return _unauthorized("Token has expired", path)
        except TokenInvalidError as e:
            logger.warning(f"Invalid token for: {request.method} {path} - {e.message}")
            return _unauthorized("Invalid token", path)

        request.state.principal = principal
        with acting_as(principal):
            return await call_next(request)

    def _extract_token(self, request: Request) -> Optional[str]:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            return auth_header[7:].strip() or None
        return None


class InternalServiceMiddleware(BaseHTTPMiddleware):
    """Verify S2S headers on ``/api/internal/*``.

    Missing header: 403. Non-integer timestamp: 400. Stale timestamp or
    signature mismatch: 403.
    """

    def __init__(
        self,
        app: ASGIApp,
        shared_secret: str,
        max_skew_seconds: int = s2s.DEFAULT_MAX_SKEW_SECONDS,
    ):
        super().__init__(app)
        self.shared_secret = shared_secret
        self.max_skew_seconds = max_skew_seconds

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if not _matches(path, INTERNAL_PREFIX):
            return await call_next(request)

        service_id = request.headers.get(SERVICE_ID_HEADER, "").strip()
        signature = request.headers.get(SIGNATURE_HEADER, "").strip()
        raw_timestamp = request.headers.get(TIMESTAMP_HEADER, "").strip()

        if not service_id or not signature or not raw_timestamp:
            logger.warning(f"Blocked internal request to {path}: missing S2S headers")
            return _error(403, "Missing internal service headers", path)

        try:
            timestamp = int(raw_timestamp)
        except ValueError:
            logger.warning(f"Blocked internal request to {path}: malformed timestamp")
            return _error(400, "Invalid service timestamp", path)

        if not s2s.validate(
            signature,
            service_id,
            timestamp,
            self.shared_secret,
            max_skew_seconds=self.max_skew_seconds,
        ):
            logger.warning(f"Blocked internal request to {path}: invalid signature for service '{service_id}'")
            return _error(403, "Invalid internal service signature", path)

        logger.debug(f"Authenticated internal request from service: {service_id}")
        return await call_next(request)
