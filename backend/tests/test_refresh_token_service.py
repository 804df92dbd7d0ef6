"""Tests for refresh token issue, rotation, revocation and cleanup."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.models import RefreshToken
from app.services.auth import InvalidOrExpiredTokenError, PersistenceError, RefreshTokenService
from app.services.auth.token_hashing import hash_token


@pytest.fixture
def user(make_user):
    return make_user()


def test_issue_persists_only_the_hash(db, user):
    issued = RefreshTokenService(db).issue(user.id, "desktop", "10.0.0.1")

    stored = db.query(RefreshToken).one()
    assert stored.hashed_token == hash_token(issued.raw_token)
    assert stored.hashed_token != issued.raw_token
    assert stored.device_info == "desktop"
    assert stored.ip_address == "10.0.0.1"
    assert stored.revoked_at is None


def test_issue_sets_expiry_from_ttl(db, user):
    before = datetime.now(UTC)
    issued = RefreshTokenService(db, ttl=timedelta(days=2)).issue(user.id)

    assert before + timedelta(days=2) <= issued.record.expires_at
    assert issued.record.expires_at <= datetime.now(UTC) + timedelta(days=2)


def test_validate_returns_record(db, user):
    service = RefreshTokenService(db)
    issued = service.issue(user.id)

    record = service.validate(issued.raw_token)

    assert record is not None
    assert record.token_id == issued.record.token_id


@pytest.mark.parametrize("raw", [None, "", "not-a-real-token"])
def test_validate_unknown_token(db, user, raw):
    RefreshTokenService(db).issue(user.id)

    assert RefreshTokenService(db).validate(raw) is None


def test_validate_expired_token(db, user):
    service = RefreshTokenService(db, ttl=timedelta(seconds=-1))
    issued = service.issue(user.id)

    assert service.validate(issued.raw_token) is None


def test_validate_revoked_token(db, user):
    service = RefreshTokenService(db)
    issued = service.issue(user.id)
    service.revoke(issued.record.token_id)

    assert service.validate(issued.raw_token) is None


def test_rotate_revokes_old_and_issues_new(db, user):
    service = RefreshTokenService(db)
    issued = service.issue(user.id)
    record = service.validate(issued.raw_token)

    rotated = service.rotate(record, "mobile", "10.0.0.2")

    assert rotated.raw_token != issued.raw_token
    assert service.validate(issued.raw_token) is None
    assert service.validate(rotated.raw_token) is not None

    db.expire_all()
    old = db.get(RefreshToken, issued.record.token_id)
    assert old.revoked_at is not None
    assert old.last_used_at is not None


def test_concurrent_rotation_has_one_winner(session_factory, user, count_live_tokens):
    """Two requests holding the same token: exactly one rotation succeeds."""
    first_db = session_factory()
    second_db = session_factory()
    try:
        issued = RefreshTokenService(first_db).issue(user.id)
        first_record = RefreshTokenService(first_db).validate(issued.raw_token)
        second_record = RefreshTokenService(second_db).validate(issued.raw_token)
        assert first_record is not None and second_record is not None

        winner = RefreshTokenService(first_db).rotate(first_record)
        with pytest.raises(InvalidOrExpiredTokenError):
            RefreshTokenService(second_db).rotate(second_record)

        assert count_live_tokens(first_db, user.id) == 1
        assert RefreshTokenService(first_db).validate(winner.raw_token) is not None
    finally:
        first_db.close()
        second_db.close()


def test_rotate_already_revoked_issues_nothing(db, user):
    service = RefreshTokenService(db)
    issued = service.issue(user.id)
    record = service.validate(issued.raw_token)
    service.revoke(record.token_id)

    with pytest.raises(InvalidOrExpiredTokenError):
        service.rotate(record)

    assert db.query(RefreshToken).count() == 1


def test_revoke_is_idempotent(db, user):
    service = RefreshTokenService(db)
    issued = service.issue(user.id)

    assert service.revoke(issued.record.token_id) is True
    assert service.revoke(issued.record.token_id) is False


def test_revoke_all_for_user(db, make_user, count_live_tokens):
    alice = make_user("alice@example.com")
    bob = make_user("bob@example.com")
    service = RefreshTokenService(db)
    for _ in range(3):
        service.issue(alice.id)
    bob_token = service.issue(bob.id)

    assert service.revoke_all_for_user(alice.id) == 3
    db.commit()

    assert count_live_tokens(db, alice.id) == 0
    assert service.validate(bob_token.raw_token) is not None


def test_cleanup_deletes_revoked_and_long_expired(db, user):
    live = RefreshTokenService(db).issue(user.id)
    revoked = RefreshTokenService(db).issue(user.id)
    RefreshTokenService(db).revoke(revoked.record.token_id)
    RefreshTokenService(db, ttl=timedelta(days=-40)).issue(user.id)
    recently_expired = RefreshTokenService(db, ttl=timedelta(days=-1)).issue(user.id)

    deleted = RefreshTokenService(db).cleanup(retention_days=30)

    assert deleted == 2
    remaining = {r.token_id for r in db.query(RefreshToken).all()}
    assert remaining == {live.record.token_id, recently_expired.record.token_id}


def test_issue_failure_raises_persistence_error(db, user, monkeypatch):
    def failing_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "commit", failing_commit)

    with pytest.raises(PersistenceError):
        RefreshTokenService(db).issue(user.id)
