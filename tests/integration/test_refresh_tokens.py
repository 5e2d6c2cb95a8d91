import pytest
import threading
from datetime import timedelta
from services.token_service import TokenService
from services.blacklist_service import BlacklistService
from models.refresh_tokens import RefreshToken
from models.blacklisted_tokens import BlacklistedToken
from core.exceptions import AuthError
from core.config import settings
from tests.conftest import make_user, TestingSessionLocal
from utils.expiry import utc_now


def stored(session, token):
    return session.query(RefreshToken).filter(
        RefreshToken.token_hash == TokenService.fingerprint(token)
    ).first()


def test_create_tokens_stores_fingerprint(session):
    """create_tokens keeps only the fingerprint of the refresh token."""

    user = make_user(session, "token_test@example.com")
    tokens = TokenService.create_tokens(user, session)

    assert tokens["token_type"] == "bearer"
    assert 0 < tokens["expires_in"] <= settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    db_token = stored(session, tokens["refresh_token"])
    assert db_token is not None
    assert db_token.user_id == user.id
    assert db_token.token_hash != tokens["refresh_token"]

    assert session.query(RefreshToken).filter(
        RefreshToken.token_hash == tokens["refresh_token"]
    ).first() is None


def test_refresh_token_rotation(session):
    """Refreshing deletes the old record, blacklists the old token and stores the new one."""
    user = make_user(session, "token_test@example.com")
    old_tokens = TokenService.create_tokens(user, session)

    new_tokens = TokenService.refresh_access_token(old_tokens["refresh_token"], session)

    assert new_tokens["refresh_token"] != old_tokens["refresh_token"]
    assert stored(session, old_tokens["refresh_token"]) is None
    assert BlacklistService.is_blacklisted(session, TokenService.fingerprint(old_tokens["refresh_token"]))

    new_db_token = stored(session, new_tokens["refresh_token"])
    assert new_db_token is not None
    assert new_db_token.user_id == user.id

    entry = session.query(BlacklistedToken).one()
    assert entry.reason == "rotated"
    assert entry.token_type == "refresh"
    assert entry.user_id == user.id


def test_refresh_token_single_use(session):
    user = make_user(session, "token_test@example.com")
    tokens = TokenService.create_tokens(user, session)

    TokenService.refresh_access_token(tokens["refresh_token"], session)

    with pytest.raises(AuthError) as exc:
        TokenService.refresh_access_token(tokens["refresh_token"], session)

    assert exc.value.status_code == 401


def test_refresh_token_missing_from_store(session):
    """A correctly signed refresh token that was never stored is refused."""
    user = make_user(session, "token_test@example.com")
    token, _ = TokenService.create_refresh_token(user.id)

    with pytest.raises(AuthError) as exc:
        TokenService.refresh_access_token(token, session)

    assert exc.value.status_code == 401
    assert exc.value.code == "refresh_token_not_found"


def test_expired_store_record_is_refused(session):
    user = make_user(session, "token_test@example.com")
    tokens = TokenService.create_tokens(user, session)

    record = stored(session, tokens["refresh_token"])
    record.expires_at = utc_now() - timedelta(minutes=1)
    session.commit()

    with pytest.raises(AuthError):
        TokenService.refresh_access_token(tokens["refresh_token"], session)


def test_access_token_used_as_refresh_token(session):
    user = make_user(session, "token_test@example.com")
    tokens = TokenService.create_tokens(user, session)

    with pytest.raises(AuthError) as exc:
        TokenService.refresh_access_token(tokens["access_token"], session)

    assert exc.value.status_code == 401

    entry = session.query(BlacklistedToken).one()
    assert entry.reason == "token_type_misuse"
    assert entry.token_fingerprint == TokenService.fingerprint(tokens["access_token"])

    # The real refresh token is untouched
    assert stored(session, tokens["refresh_token"]) is not None


def test_unapproved_user_cannot_refresh(session):
    user = make_user(session, "token_test@example.com")
    tokens = TokenService.create_tokens(user, session)

    user.approved = False
    session.commit()

    with pytest.raises(AuthError) as exc:
        TokenService.refresh_access_token(tokens["refresh_token"], session)

    assert exc.value.status_code == 403
    assert exc.value.code == "account_not_approved"
    # Stored record stays consumed
    assert stored(session, tokens["refresh_token"]) is None


def test_revoke_token(session):
    """Revoking deletes the record and blacklists the token."""
    user = make_user(session, "token_test@example.com")
    tokens = TokenService.create_tokens(user, session)

    deleted = TokenService.revoke_token(tokens["refresh_token"], session, user_id=user.id)

    assert deleted == 1
    assert stored(session, tokens["refresh_token"]) is None
    assert BlacklistService.is_blacklisted(session, TokenService.fingerprint(tokens["refresh_token"]))

    # Second call is a no-op
    assert TokenService.revoke_token(tokens["refresh_token"], session, user_id=user.id) == 0
    assert session.query(BlacklistedToken).count() == 1


def test_revoke_token_of_another_user(session):
    owner = make_user(session, "owner@example.com")
    other = make_user(session, "other@example.com")
    tokens = TokenService.create_tokens(owner, session)

    deleted = TokenService.revoke_token(tokens["refresh_token"], session, user_id=other.id)

    assert deleted == 0
    assert stored(session, tokens["refresh_token"]) is not None
    assert session.query(BlacklistedToken).count() == 0


def test_revoke_all_tokens(session):
    """Revoking all tokens deletes every record of the user."""
    user = make_user(session, "token_test@example.com")
    other = make_user(session, "other@example.com")

    TokenService.create_tokens(user, session)
    TokenService.create_tokens(user, session)
    other_tokens = TokenService.create_tokens(other, session)

    assert TokenService.revoke_all_user_tokens(user.id, session) == 2

    assert session.query(RefreshToken).filter(RefreshToken.user_id == user.id).count() == 0
    assert stored(session, other_tokens["refresh_token"]) is not None


def test_purge_expired_refresh_tokens(session):
    user = make_user(session, "token_test@example.com")
    live = TokenService.create_tokens(user, session)
    stale = TokenService.create_tokens(user, session)

    record = stored(session, stale["refresh_token"])
    record.expires_at = utc_now() - timedelta(days=1)
    session.commit()

    assert TokenService.purge_expired_refresh_tokens(session) == 1
    assert stored(session, live["refresh_token"]) is not None


def test_concurrent_rotation_has_one_winner(session):
    """Racing rotations of one refresh token: exactly one gets a new pair."""
    user = make_user(session, "race@example.com")
    tokens = TokenService.create_tokens(user, session)

    workers = 4
    barrier = threading.Barrier(workers)
    results = []
    lock = threading.Lock()

    def rotate():
        db = TestingSessionLocal()
        try:
            barrier.wait()
            TokenService.refresh_access_token(tokens["refresh_token"], db)
            outcome = "ok"
        except AuthError as e:
            outcome = e.code
        finally:
            db.close()
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=rotate) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count("ok") == 1
    losers = [r for r in results if r != "ok"]
    assert len(losers) == workers - 1
    # A loser that starts after the winner committed finds the ledger entry first
    assert set(losers) <= {"refresh_token_not_found", "invalid_refresh_token"}
    assert session.query(RefreshToken).filter(RefreshToken.user_id == user.id).count() == 1
