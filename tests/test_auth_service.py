from datetime import timedelta

import pytest

from identity_service.core.exceptions import (
    InvalidCredentialsError,
    InvalidRoleError,
    RefreshTokenNotFoundError,
    RoleNotFoundError,
    TokenExpiredError,
    TokenInvalidError,
    UserAlreadyExistsError,
)
from identity_service.core.security import JwtSigner
from identity_service.core.tsid import TsidGenerator
from identity_service.models.base import utcnow
from identity_service.models.security import RefreshToken
from identity_service.models.user import Role, User
from identity_service.services.auth_provider import PasswordAuthenticationProvider
from identity_service.services.auth_service import AuthService
from identity_service.services.password_reset_service import PasswordResetService
from identity_service.services.refresh_token_service import RefreshTokenService
from identity_service.services.token_blacklist import TokenBlacklist


class RecordingPublisher:
    def __init__(self):
        self.sent = []

    def send_forgot_password_email(self, email, token):
        self.sent.append((email, token))


def _service(expiration_ms=900_000):
    ids = TsidGenerator()
    signer = JwtSigner(b"s" * 32, expiration_ms)
    service = AuthService(
        signer=signer,
        refresh_tokens=RefreshTokenService(ids, access_token_ttl_ms=900_000),
        password_resets=PasswordResetService(ids, RecordingPublisher()),
        blacklist=TokenBlacklist(ttl_seconds=1800, max_size=100),
        provider=PasswordAuthenticationProvider(),
        id_generator=ids,
        allowed_signup_roles=("USER", "ORGANIZER"),
    )
    return service


def test_register_returns_tokens_and_persists_user(db):
    service = _service()

    response = service.register(db, "a@x.com", "Password1!", "Alice", "USER")

    assert response.token
    assert response.refresh_token
    assert response.email == "a@x.com"
    assert response.expires_in == 900

    claims = service.signer.verify_signature_and_parse(response.token)
    user = db.query(User).filter(User.email == "a@x.com").one()
    assert claims["sub"] == "a@x.com"
    assert claims["id"] == user.id
    assert claims["roles"] == ["ROLE_USER"]
    assert user.authorities == ["ROLE_USER"]
    assert user.password_hash != "Password1!"


def test_register_rejects_duplicate_email(db):
    service = _service()
    service.register(db, "a@x.com", "Password1!", "Alice")

    with pytest.raises(UserAlreadyExistsError):
        service.register(db, "a@x.com", "Password2!", "Alice Again")


def test_register_rejects_roles_not_open_to_signup(db):
    service = _service()

    with pytest.raises(InvalidRoleError):
        service.register(db, "a@x.com", "Password1!", "Alice", "SUPER_ADMIN")
    assert db.query(User).count() == 0


def test_register_reports_missing_catalog_role(db):
    service = _service()
    db.query(Role).filter(Role.name == "ORGANIZER").delete()
    db.commit()

    with pytest.raises(RoleNotFoundError):
        service.register(db, "a@x.com", "Password1!", "Alice", "ORGANIZER")


def test_login_succeeds_and_rotates_refresh_token(db):
    service = _service()
    registered = service.register(db, "a@x.com", "Password1!", "Alice")

    response = service.login(db, "a@x.com", "Password1!")

    assert response.token
    assert response.refresh_token != registered.refresh_token
    with pytest.raises(RefreshTokenNotFoundError):
        service.refresh(db, registered.refresh_token)


def test_login_failures_are_indistinguishable(db):
    service = _service()
    service.register(db, "a@x.com", "Password1!", "Alice")

    with pytest.raises(InvalidCredentialsError) as wrong_password:
        service.login(db, "a@x.com", "WrongPassword!")
    with pytest.raises(InvalidCredentialsError) as unknown_user:
        service.login(db, "nobody@x.com", "Password1!")

    assert wrong_password.value.message == unknown_user.value.message
    assert wrong_password.value.status_code == unknown_user.value.status_code == 401


def test_login_rejects_deactivated_user(db):
    service = _service()
    service.register(db, "a@x.com", "Password1!", "Alice")
    user = db.query(User).filter(User.email == "a@x.com").one()
    user.deactivate()
    db.commit()

    with pytest.raises(InvalidCredentialsError):
        service.login(db, "a@x.com", "Password1!")


def test_refresh_issues_new_access_token_with_same_refresh_token(db):
    service = _service()
    registered = service.register(db, "a@x.com", "Password1!", "Alice")

    response = service.refresh(db, registered.refresh_token)

    assert response.refresh_token == registered.refresh_token
    assert response.token != registered.token
    assert service.signer.extract_subject(response.token) == "a@x.com"


def test_refresh_carries_roles_granted_after_login(db):
    service = _service()
    registered = service.register(db, "a@x.com", "Password1!", "Alice")
    user = db.query(User).filter(User.email == "a@x.com").one()
    user.add_role(db.query(Role).filter(Role.name == "ORGANIZER").one(), TsidGenerator(node_id=9)())
    db.commit()

    response = service.refresh(db, registered.refresh_token)

    claims = service.signer.verify_signature_and_parse(response.token)
    assert set(claims["roles"]) == {"ROLE_USER", "ROLE_ORGANIZER"}
    assert service.signer.verify_signature_and_parse(registered.token)["roles"] == ["ROLE_USER"]


def test_refresh_with_expired_token_deletes_it(db):
    service = _service()
    registered = service.register(db, "a@x.com", "Password1!", "Alice")
    record = db.query(RefreshToken).filter(RefreshToken.token == registered.refresh_token).one()
    record.expiry_date = utcnow() - timedelta(minutes=1)
    db.commit()

    with pytest.raises(TokenExpiredError):
        service.refresh(db, registered.refresh_token)

    db.rollback()
    assert db.query(RefreshToken).filter(RefreshToken.token == registered.refresh_token).first() is None


def test_logout_blacklists_access_token_and_revokes_refresh_tokens(db):
    service = _service()
    registered = service.register(db, "a@x.com", "Password1!", "Alice")

    service.logout(db, f"Bearer {registered.token}")

    assert service.blacklist.is_revoked(registered.token)
    assert db.query(RefreshToken).count() == 0


def test_logout_accepts_expired_access_token(db):
    service = _service(expiration_ms=-60_000)
    registered = service.register(db, "a@x.com", "Password1!", "Alice")

    service.logout(db, registered.token)

    assert service.blacklist.is_revoked(registered.token)
    assert db.query(RefreshToken).count() == 0


def test_logout_with_forged_token_fails(db):
    service = _service()
    forged = JwtSigner(b"f" * 32, 900_000).issue({"id": 1}, "a@x.com", [])

    with pytest.raises(TokenInvalidError):
        service.logout(db, f"Bearer {forged}")
    assert len(service.blacklist) == 0


def test_forgot_and_reset_password_flow(db):
    service = _service()
    service.register(db, "a@x.com", "Password1!", "Alice")

    service.forgot_password(db, "a@x.com")
    service.forgot_password(db, "unknown@x.com")
    [(email, token)] = service.password_resets.publisher.sent
    assert email == "a@x.com"

    service.reset_password(db, token, "BrandNew1!")

    assert service.login(db, "a@x.com", "BrandNew1!").token
    with pytest.raises(InvalidCredentialsError):
        service.login(db, "a@x.com", "Password1!")
