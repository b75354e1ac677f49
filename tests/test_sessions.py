"""Tests for credential checks, issuance, rotation and revocation."""
import threading
from datetime import timedelta

import pytest

from models.base_model import utcnow
from models.refresh_token import RefreshToken
from utils.exceptions import (
    CredentialError,
    MissingTokenError,
    TokenInvalidError,
    UserMissingError,
)
from utils.security import hash_refresh_secret
from utils.sessions import SessionRotator


class TestCredentialVerifier:
    def test_known_user_right_password(self, auth, alice):
        assert auth.verifier.verify("alice", "correct").id == alice.id

    def test_wrong_password_and_unknown_user_look_the_same(self, auth, alice):
        with pytest.raises(CredentialError) as wrong_pw:
            auth.verifier.verify("alice", "nope")
        with pytest.raises(CredentialError) as no_user:
            auth.verifier.verify("mallory", "correct")
        assert wrong_pw.value.code == no_user.value.code == "INVALID_CREDENTIALS"
        assert wrong_pw.value.message == no_user.value.message

    def test_username_match_is_exact(self, auth, alice):
        with pytest.raises(CredentialError):
            auth.verifier.verify("Alice", "correct")


class TestSessionIssuer:
    def test_issue_stores_hash_of_returned_secret(self, auth, alice):
        pair = auth.issuer.issue(alice)

        claims = auth.codec.verify(pair.access_token)
        assert claims.subject_id == alice.id
        assert claims.username == "alice"

        record = auth.store.lookup(hash_refresh_secret(pair.refresh_secret))
        assert record is not None
        assert record.user_id == alice.id
        assert record.revoked_at is None
        assert timedelta(days=6, hours=23) < record.expires_at - utcnow() <= timedelta(days=7)

    def test_plaintext_secret_is_not_persisted(self, auth, alice):
        pair = auth.issuer.issue(alice)
        assert auth.store.lookup(pair.refresh_secret) is None


class TestSessionRotator:
    def test_rotate_replaces_the_record(self, auth, alice, make_token):
        secret, record = make_token(alice)

        pair = auth.rotator.rotate(secret)

        assert pair.refresh_secret != secret
        assert auth.codec.verify(pair.access_token).subject_id == alice.id
        assert auth.store.lookup(record.token_hash).revoked_at is not None
        assert auth.store.lookup(hash_refresh_secret(pair.refresh_secret)).is_valid()
        assert auth.store.count_valid(alice.id) == 1

    def test_original_secret_fails_after_rotation(self, auth, alice, make_token):
        secret, _ = make_token(alice)
        auth.rotator.rotate(secret)
        with pytest.raises(TokenInvalidError) as exc:
            auth.rotator.rotate(secret)
        assert exc.value.code == "INVALID_REFRESH_TOKEN"

    def test_missing_secret(self, auth):
        with pytest.raises(MissingTokenError) as exc:
            auth.rotator.rotate(None)
        assert exc.value.code == "NO_REFRESH_TOKEN"

    def test_unknown_secret(self, auth):
        with pytest.raises(TokenInvalidError):
            auth.rotator.rotate("deadbeef" * 16)

    def test_expired_secret(self, auth, alice, make_token):
        secret, _ = make_token(alice, expires_in=timedelta(seconds=-1))
        with pytest.raises(TokenInvalidError) as exc:
            auth.rotator.rotate(secret)
        assert exc.value.code == "INVALID_REFRESH_TOKEN"
        assert auth.store.count_valid(alice.id) == 0

    def test_revoked_and_expired_are_indistinguishable(self, auth, alice, make_token):
        revoked, _ = make_token(alice, revoked=True)
        expired, _ = make_token(alice, expires_in=timedelta(seconds=-1))
        with pytest.raises(TokenInvalidError) as a:
            auth.rotator.rotate(revoked)
        with pytest.raises(TokenInvalidError) as b:
            auth.rotator.rotate(expired)
        assert (a.value.code, a.value.message) == (b.value.code, b.value.message)

    def test_user_missing(self, auth, alice, make_token, monkeypatch):
        secret, record = make_token(alice)
        monkeypatch.setattr(auth.storage, "get_user", lambda user_id: None)
        with pytest.raises(UserMissingError) as exc:
            auth.rotator.rotate(secret)
        assert exc.value.code == "USER_NOT_FOUND"
        # nothing was consumed
        assert auth.store.lookup(record.token_hash).is_valid()

    def test_revoke_all_invalidates_every_secret(self, auth, alice, make_token):
        secrets = [make_token(alice)[0] for _ in range(3)]
        assert auth.revocation.revoke_all(alice.id) == 3
        for secret in secrets:
            with pytest.raises(TokenInvalidError):
                auth.rotator.rotate(secret)


class TestReuseDetection:
    @pytest.fixture()
    def guarded(self, auth):
        return SessionRotator(auth.storage, auth.store, auth.issuer, revoke_all_on_reuse=True)

    def _age_revocation(self, auth, token_hash, seconds):
        session = auth.storage.get_session()
        record = session.query(RefreshToken).filter_by(token_hash=token_hash).one()
        record.revoked_at = utcnow() - timedelta(seconds=seconds)
        session.commit()

    def test_off_by_default(self, auth, alice, make_token):
        old_secret, old = make_token(alice)
        pair = auth.rotator.rotate(old_secret)
        self._age_revocation(auth, old.token_hash, 60)

        with pytest.raises(TokenInvalidError):
            auth.rotator.rotate(old_secret)
        assert auth.store.lookup(hash_refresh_secret(pair.refresh_secret)).is_valid()

    def test_stale_replay_of_rotated_secret_revokes_all(self, auth, alice, make_token, guarded):
        old_secret, old = make_token(alice)
        pair = guarded.rotate(old_secret)
        other, _ = make_token(alice)
        self._age_revocation(auth, old.token_hash, 60)

        with pytest.raises(TokenInvalidError):
            guarded.rotate(old_secret)

        assert auth.store.count_valid(alice.id) == 0
        with pytest.raises(TokenInvalidError):
            guarded.rotate(pair.refresh_secret)
        with pytest.raises(TokenInvalidError):
            guarded.rotate(other)

    def test_replay_within_grace_is_only_rejected(self, auth, alice, make_token, guarded):
        old_secret, _ = make_token(alice)
        pair = guarded.rotate(old_secret)

        with pytest.raises(TokenInvalidError):
            guarded.rotate(old_secret)

        assert auth.store.lookup(hash_refresh_secret(pair.refresh_secret)).is_valid()

    def test_logged_out_secret_does_not_trigger(self, auth, alice, make_token, guarded):
        phone, phone_record = make_token(alice)
        auth.revocation.revoke_one(phone)
        self._age_revocation(auth, phone_record.token_hash, 60)
        laptop = auth.issuer.issue(alice)

        with pytest.raises(TokenInvalidError):
            guarded.rotate(phone)

        assert auth.store.count_valid(alice.id) == 1
        assert auth.store.lookup(hash_refresh_secret(laptop.refresh_secret)).is_valid()

    def test_secret_from_logout_all_does_not_trigger(self, auth, alice, make_token, guarded):
        phone, phone_record = make_token(alice)
        auth.revocation.revoke_all(alice.id)
        self._age_revocation(auth, phone_record.token_hash, 60)
        laptop = auth.issuer.issue(alice)

        with pytest.raises(TokenInvalidError):
            guarded.rotate(phone)

        assert auth.store.count_valid(alice.id) == 1
        assert auth.store.lookup(hash_refresh_secret(laptop.refresh_secret)).is_valid()

    def test_revocation_reason_is_recorded(self, auth, alice, make_token, guarded):
        rotated, rotated_record = make_token(alice)
        guarded.rotate(rotated)
        logged_out, logged_out_record = make_token(alice)
        auth.revocation.revoke_one(logged_out)
        _, swept = make_token(alice)
        auth.revocation.revoke_all(alice.id)

        reasons = [auth.store.lookup(r.token_hash).revoke_reason
                   for r in (rotated_record, logged_out_record, swept)]
        assert reasons == ["rotated", "logout", "logout_all"]


class TestRevocationManager:
    def test_revoke_one(self, auth, alice, make_token):
        secret, record = make_token(alice)
        assert auth.revocation.revoke_one(secret) is True
        assert not auth.store.lookup(record.token_hash).is_valid()

    @pytest.mark.parametrize("secret", [None, "", "unknown-secret"])
    def test_revoke_one_tolerates_bad_input(self, auth, secret):
        assert auth.revocation.revoke_one(secret) is False

    def test_revoke_one_twice(self, auth, alice, make_token):
        secret, _ = make_token(alice)
        auth.revocation.revoke_one(secret)
        assert auth.revocation.revoke_one(secret) is False


@pytest.mark.concurrency
def test_concurrent_rotation_of_one_secret_succeeds_once(app, auth, alice, make_token):
    secret, record = make_token(alice)
    barrier = threading.Barrier(2)
    results = []
    lock = threading.Lock()

    def worker():
        with app.app_context():
            barrier.wait()
            try:
                outcome = auth.rotator.rotate(secret)
            except TokenInvalidError as exc:
                outcome = exc
            finally:
                auth.storage.close()
            with lock:
                results.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    successes = [r for r in results if not isinstance(r, Exception)]
    failures = [r for r in results if isinstance(r, TokenInvalidError)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert failures[0].code == "INVALID_REFRESH_TOKEN"

    assert auth.store.count_valid(alice.id) == 1
    new_record = auth.store.lookup(hash_refresh_secret(successes[0].refresh_secret))
    assert new_record.is_valid()
    assert auth.store.lookup(record.token_hash).revoked_at is not None
