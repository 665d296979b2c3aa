"""Session orchestration: register, login, refresh, logout, password reset."""

from __future__ import annotations

from typing import Callable, Iterable
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from identity_service.config import settings
from identity_service.core.context import Principal
from identity_service.core.database import transactional
from identity_service.core.exceptions import (
    InvalidCredentialsError,
    InvalidRoleError,
    RoleNotFoundError,
    UserAlreadyExistsError,
)
from identity_service.core.security import JwtSigner, get_password_hash, jwt_signer, numeric_claim, strip_bearer
from identity_service.core.tsid import id_generator
from identity_service.models.user import Role, User
from identity_service.schemas.auth import AuthResponse
from identity_service.services.auth_provider import (
    AuthenticationFailure,
    AuthenticationProvider,
    PasswordAuthenticationProvider,
    principal_for,
)
from identity_service.services.notification import notification_publisher, redact_email
from identity_service.services.password_reset_service import PasswordResetService
from identity_service.services.refresh_token_service import RefreshTokenService
from identity_service.services.token_blacklist import TokenBlacklist, token_blacklist

logger = logging.getLogger(__name__)


class AuthService:
    """Composes signer, token stores and blacklist into the auth flows.

    Each mutating flow runs in a single transaction on the given session.
    """

    def __init__(
        self,
        signer: JwtSigner,
        refresh_tokens: RefreshTokenService,
        password_resets: PasswordResetService,
        blacklist: TokenBlacklist,
        provider: AuthenticationProvider,
        id_generator: Callable[[], int],
        allowed_signup_roles: Iterable[str] = tuple(settings.ALLOWED_SIGNUP_ROLES),
    ) -> None:
        self.signer = signer
        self.refresh_tokens = refresh_tokens
        self.password_resets = password_resets
        self.blacklist = blacklist
        self.provider = provider
        self._next_id = id_generator
        self.allowed_signup_roles = frozenset(allowed_signup_roles)

    def _issue_access_token(self, principal: Principal) -> str:
        claims = {"id": principal.user_id, "email": principal.email}
        return self.signer.issue(claims, principal.email, principal.authorities)

    def _response(self, access_token: str, refresh_token: str, email: str) -> AuthResponse:
        return AuthResponse(
            token=access_token,
            refresh_token=refresh_token,
            email=email,
            expires_in=self.signer.expiration_ms // 1000,
        )

    def register(
        self,
        db: Session,
        email: str,
        password: str,
        full_name: str,
        role: str = "USER",
    ) -> AuthResponse:
        """
        Create an account and sign it in

        Raises:
            UserAlreadyExistsError: Email is taken
            InvalidRoleError: Role is not open to self-signup
            RoleNotFoundError: Role is missing from the catalog
        """
        if db.query(User).filter(User.email == email).first():
            raise UserAlreadyExistsError()

        if role not in self.allowed_signup_roles:
            raise InvalidRoleError(role)

        role_record = db.query(Role).filter(Role.name == role).first()
        if role_record is None:
            raise RoleNotFoundError(role)

        try:
            with transactional(db):
                user = User(
                    id=self._next_id(),
                    email=email,
                    password_hash=get_password_hash(password),
                    full_name=full_name,
                )
                user.add_role(role_record, self._next_id())
                db.add(user)
                db.flush()

                principal = principal_for(user)
                access_token = self._issue_access_token(principal)
                refresh_token = self.refresh_tokens.issue(db, user.id)
        except IntegrityError as exc:
            # Lost a race with a concurrent signup for the same email.
            raise UserAlreadyExistsError() from exc

        logger.info("Registered user %s with role %s", principal.user_id, role)
        return self._response(access_token, refresh_token, principal.email)

    def login(self, db: Session, email: str, password: str) -> AuthResponse:
        """Authenticate; every failure surfaces as InvalidCredentialsError."""
        try:
            principal = self.provider.authenticate(db, email, password)
        except AuthenticationFailure as exc:
            logger.warning("Authentication failed for %s: %s", redact_email(email), exc)
            raise InvalidCredentialsError() from exc

        with transactional(db):
            refresh_token = self.refresh_tokens.issue(db, principal.user_id)
        access_token = self._issue_access_token(principal)

        logger.info("User %s logged in", principal.user_id)
        return self._response(access_token, refresh_token, principal.email)

    def refresh(self, db: Session, refresh_token: str) -> AuthResponse:
        """
        Exchange a refresh token for a new access token

        Roles are re-read from the database; the refresh token itself is
        returned unchanged.
        """
        user = self.refresh_tokens.verify_and_resolve_owner(db, refresh_token)
        principal = principal_for(user)
        access_token = self._issue_access_token(principal)
        return self._response(access_token, refresh_token, principal.email)

    def logout(self, db: Session, bearer_token: str) -> None:
        """
        Blacklist the access token and drop the user's refresh tokens

        Expired tokens are accepted as long as the signature verifies.

        Raises:
            TokenInvalidError: Token is malformed, unsigned or lacks an id claim
        """
        raw_token = strip_bearer(bearer_token).strip()
        claims = self.signer.parse_ignoring_expiry(raw_token)
        user_id = numeric_claim(claims, "id")

        self.blacklist.revoke(raw_token)
        with transactional(db):
            revoked = self.refresh_tokens.revoke_all(db, user_id)

        logger.info("User %s logged out (%d refresh tokens revoked)", user_id, revoked)

    def forgot_password(self, db: Session, email: str) -> None:
        self.password_resets.initiate(db, email)

    def reset_password(self, db: Session, token: str, new_password: str) -> None:
        self.password_resets.complete(db, token, new_password)


refresh_token_service = RefreshTokenService(id_generator)
password_reset_service = PasswordResetService(id_generator, notification_publisher)

auth_service = AuthService(
    signer=jwt_signer,
    refresh_tokens=refresh_token_service,
    password_resets=password_reset_service,
    blacklist=token_blacklist,
    provider=PasswordAuthenticationProvider(),
    id_generator=id_generator,
)
