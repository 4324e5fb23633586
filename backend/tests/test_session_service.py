"""
Session token tests: hashing, expiry, idle timeout and revocation.
"""

from datetime import timedelta

from optimaster.extensions import db
from optimaster.models import SessionToken
from optimaster.services import session_service
from optimaster.time_utils import utcnow


def test_token_is_stored_hashed(user):
    session, token = session_service.create_session(user.id)

    assert len(token) == 64
    assert session.token_hash == session_service.hash_token(token)
    assert db.session.query(SessionToken).filter_by(token_hash=token).first() is None


def test_validate_returns_context(user):
    _, token = session_service.create_session(user.id, user_agent="pytest")

    context = session_service.validate_session(token)
    assert context is not None
    assert context.user.id == user.id


def test_expired_session(user):
    session, token = session_service.create_session(user.id)
    session.expires_at = utcnow() - timedelta(seconds=1)
    db.session.commit()

    assert session_service.validate_session(token) is None


def test_idle_timeout_revokes(app, user):
    app.config["SESSION_IDLE_TIMEOUT_MINUTES"] = 30
    session, token = session_service.create_session(user.id)
    session.last_used_at = utcnow() - timedelta(minutes=31)
    db.session.commit()

    assert session_service.validate_session(token) is None
    assert session.is_revoked is True
    assert session.revoked_reason == "Idle timeout"


def test_absolute_timeout_from_config(app, user):
    app.config["SESSION_ABSOLUTE_TIMEOUT_HOURS"] = 1
    session, _ = session_service.create_session(user.id)

    assert session.expires_at - session.created_at == timedelta(hours=1)


def test_deactivated_user(user):
    _, token = session_service.create_session(user.id)
    user.is_active = False
    db.session.commit()

    assert session_service.validate_session(token) is None


def test_revoke(user):
    _, token = session_service.create_session(user.id)

    assert session_service.revoke_session(token) is True
    assert session_service.validate_session(token) is None
    assert session_service.revoke_session(token) is False


def test_cleanup_removes_old_revoked_sessions(user):
    old, old_token = session_service.create_session(user.id)
    _, fresh_token = session_service.create_session(user.id)
    session_service.revoke_session(old_token)
    old.created_at = utcnow() - timedelta(days=45)
    db.session.commit()

    assert session_service.cleanup_expired_sessions(retention_days=30) == 1
    assert session_service.validate_session(fresh_token) is not None
