from datetime import timedelta

import pytest
from sqlalchemy import event

from identity_service.core.exceptions import InvalidResetTokenError, TokenExpiredError
from identity_service.core.security import get_password_hash, verify_password
from identity_service.core.tsid import TsidGenerator
from identity_service.models.base import utcnow
from identity_service.models.security import PasswordResetToken
from identity_service.models.user import User
from identity_service.services.notification import (
    EmailNotificationEvent,
    NotificationPublisher,
    redact_email,
)
from identity_service.services.password_reset_service import PasswordResetService


class RecordingPublisher:
    def __init__(self):
        self.sent = []

    def send_forgot_password_email(self, email, token):
        self.sent.append((email, token))


def _service():
    publisher = RecordingPublisher()
    return PasswordResetService(TsidGenerator(), publisher), publisher


def _user(db, email="reset@example.com", active=True):
    user = User(
        id=TsidGenerator(node_id=7)(),
        email=email,
        password_hash=get_password_hash("OldPassword1!", rounds=4),
        full_name="Reset Me",
        is_active=active,
    )
    db.add(user)
    db.commit()
    return user


def test_initiate_for_unknown_email_is_silent(db):
    service, publisher = _service()

    assert service.initiate(db, "nobody@example.com") is None
    assert publisher.sent == []
    assert db.query(PasswordResetToken).count() == 0


def _record_writes(engine, db, monkeypatch):
    writes = {"delete": 0, "insert": 0, "commit": 0}

    def on_execute(conn, cursor, statement, parameters, context, executemany):
        sql = statement.lower()
        if "password_reset_tokens" in sql:
            for verb in ("delete", "insert"):
                if sql.startswith(verb):
                    writes[verb] += 1

    original_commit = db.commit

    def counting_commit():
        writes["commit"] += 1
        original_commit()

    event.listen(engine, "before_cursor_execute", on_execute)
    monkeypatch.setattr(db, "commit", counting_commit)
    return writes, lambda: event.remove(engine, "before_cursor_execute", on_execute)


def test_initiate_does_the_same_database_work_for_unknown_email(engine, db, monkeypatch):
    service, _ = _service()
    _user(db)

    writes, stop = _record_writes(engine, db, monkeypatch)
    try:
        service.initiate(db, "nobody@example.com")
        unknown = dict(writes)
        writes.update(delete=0, insert=0, commit=0)
        service.initiate(db, "reset@example.com")
        known = dict(writes)
    finally:
        stop()

    assert unknown == {"delete": 1, "insert": 0, "commit": 1}
    assert known == {"delete": 1, "insert": 1, "commit": 1}


def test_initiate_for_inactive_user_is_silent(db):
    service, publisher = _service()
    _user(db, active=False)

    service.initiate(db, "reset@example.com")
    assert publisher.sent == []


def test_initiate_stores_token_and_notifies(db):
    service, publisher = _service()
    user = _user(db)

    service.initiate(db, "reset@example.com")

    stored = db.query(PasswordResetToken).filter(PasswordResetToken.user_id == user.id).one()
    assert publisher.sent == [("reset@example.com", stored.token)]


def test_second_initiate_leaves_exactly_one_token(db):
    service, publisher = _service()
    user = _user(db)

    service.initiate(db, "reset@example.com")
    service.initiate(db, "reset@example.com")

    tokens = db.query(PasswordResetToken).filter(PasswordResetToken.user_id == user.id).all()
    assert len(tokens) == 1
    assert tokens[0].token == publisher.sent[-1][1]
    assert publisher.sent[0][1] != publisher.sent[1][1]


def test_complete_changes_password_and_consumes_token(db):
    service, publisher = _service()
    user = _user(db)
    service.initiate(db, "reset@example.com")
    token = publisher.sent[0][1]

    service.complete(db, token, "NewPassword1!")

    db.refresh(user)
    assert verify_password("NewPassword1!", user.password_hash)
    assert db.query(PasswordResetToken).count() == 0

    with pytest.raises(InvalidResetTokenError):
        service.complete(db, token, "Another1!")


def test_complete_with_expired_token_deletes_it(db):
    service, publisher = _service()
    user = _user(db)
    service.initiate(db, "reset@example.com")
    token = publisher.sent[0][1]

    record = db.query(PasswordResetToken).filter(PasswordResetToken.token == token).one()
    record.expiry_date = utcnow() - timedelta(seconds=1)
    db.commit()

    with pytest.raises(TokenExpiredError):
        service.complete(db, token, "NewPassword1!")

    db.rollback()
    assert db.query(PasswordResetToken).count() == 0
    db.refresh(user)
    assert verify_password("OldPassword1!", user.password_hash)


def test_complete_with_unknown_token_fails(db):
    service, _ = _service()
    with pytest.raises(InvalidResetTokenError):
        service.complete(db, "not-a-token", "NewPassword1!")


class RecordingChannel:
    def __init__(self, fail=False):
        self.events = []
        self.fail = fail

    def send(self, event: EmailNotificationEvent) -> None:
        if self.fail:
            raise RuntimeError("smtp down")
        self.events.append(event)


def test_forgot_password_email_carries_reset_link():
    channel = RecordingChannel()
    publisher = NotificationPublisher(channel, frontend_url="https://app.example.com")
    try:
        publisher.send_forgot_password_email("user@example.com", "tok-123")
    finally:
        publisher.shutdown(wait=True)

    [event] = channel.events
    assert event.recipient_email == "user@example.com"
    assert event.subject == "Reset your Password"
    assert event.template_code == "PASSWORD_RESET"
    assert event.variables["token"] == "tok-123"
    assert event.variables["resetLink"] == "https://app.example.com/reset-password?token=tok-123"


def test_delivery_failures_are_swallowed():
    publisher = NotificationPublisher(RecordingChannel(fail=True))
    try:
        publisher.send_forgot_password_email("user@example.com", "tok-123")
    finally:
        publisher.shutdown(wait=True)


def test_redact_email_hides_local_part():
    redacted = redact_email("someone@example.com")
    assert "someone" not in redacted
    assert redacted.endswith("@example.com")
