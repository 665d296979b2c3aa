import pytest

from identity_service.core.context import (
    SYSTEM_ACTOR_ID,
    Principal,
    acting_as,
    current_actor,
    current_actor_id,
    run_as_system,
)
from identity_service.models.user import Role


def test_no_actor_by_default():
    assert current_actor() is None
    assert current_actor_id() is None


def test_acting_as_nests_and_restores():
    alice = Principal(user_id=11, email="alice@example.com", authorities=("ROLE_USER",))

    with acting_as(alice):
        assert current_actor_id() == 11
        with run_as_system():
            assert current_actor_id() == SYSTEM_ACTOR_ID
        assert current_actor() is alice

    assert current_actor() is None


def test_acting_as_restores_previous_actor_on_error():
    alice = Principal(user_id=11, email="alice@example.com")

    with pytest.raises(RuntimeError):
        with acting_as(alice):
            raise RuntimeError("boom")

    assert current_actor() is None


def test_principal_role_checks():
    admin = Principal(user_id=1, email="root@example.com", authorities=("ROLE_SUPER_ADMIN",))
    assert admin.has_role("SUPER_ADMIN")
    assert admin.has_authority("ROLE_SUPER_ADMIN")
    assert not admin.has_role("USER")


def test_audit_columns_record_the_acting_user(db):
    actor = Principal(user_id=99, email="ops@example.com")
    with acting_as(actor):
        db.add(Role(name="AUDITOR"))
        db.commit()

    role = db.query(Role).filter(Role.name == "AUDITOR").one()
    assert role.created_by == 99
    assert role.updated_by == 99

    seeded = db.query(Role).filter(Role.name == "USER").one()
    assert seeded.created_by == SYSTEM_ACTOR_ID


def test_user_lifecycle_helpers():
    from identity_service.models.user import User

    user = User(id=1, email="u@example.com", password_hash="hash", full_name="U", is_active=True, is_deleted=False)
    assert user.is_enabled

    user.soft_delete()
    assert user.is_deleted and not user.is_active and user.deleted_at is not None
    user.activate()
    assert not user.is_enabled

    user.restore()
    assert user.is_enabled and user.deleted_at is None
    user.deactivate()
    assert not user.is_enabled
