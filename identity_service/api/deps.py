"""API dependencies - authentication and authorization"""

from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from identity_service.core.context import Principal
from identity_service.core.exceptions import AuthenticationError, AuthorizationError
from identity_service.services.auth_service import AuthService, auth_service
from identity_service.services.user_service import UserService, user_service

# HTTP Bearer token scheme; missing headers are reported by the dependencies below
security = HTTPBearer(auto_error=False)


def get_auth_service() -> AuthService:
    return auth_service


def get_user_service() -> UserService:
    return user_service


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Raw bearer token from the Authorization header

    Used by routes that validate the token themselves (logout).

    Raises:
        AuthenticationError: If the header is missing
    """
    if not credentials or not credentials.credentials:
        raise AuthenticationError("Authentication required")
    return credentials.credentials


def get_current_principal(request: Request) -> Principal:
    """
    Principal resolved by JwtAuthenticationMiddleware

    Raises:
        AuthenticationError: If the request carried no bearer token
    """
    principal = getattr(request.state, "principal", None)
    if principal is None:
        raise AuthenticationError("Authentication required")
    return principal


def require_role(role: str) -> Callable[..., Principal]:
    """Build a dependency that admits only principals holding ``role``"""

    def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not principal.has_role(role):
            raise AuthorizationError(f"{role} access required")
        return principal

    return dependency


get_super_admin = require_role("SUPER_ADMIN")
