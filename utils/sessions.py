"""
Session lifecycle: login, refresh-token rotation and revocation.

    login   -> CredentialVerifier -> SessionIssuer
    refresh -> SessionRotator (revoke presented record, then issue)
    logout  -> RevocationManager

Refresh secrets are only ever handled in plaintext on their way to or from
the client; the store sees their SHA-256.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
import logging

from models.base_model import utcnow
from models.db_storage import DBStorage
from models.refresh_token import REVOKED_BY_ROTATION
from models.refresh_token_store import RefreshTokenStore
from models.user import User
from utils.exceptions import (
    CredentialError,
    MissingTokenError,
    TokenInvalidError,
    UserMissingError,
)
from utils.security import (
    TokenCodec,
    generate_refresh_secret,
    hash_refresh_secret,
    verify_password,
)

logger = logging.getLogger(__name__)

REFRESH_TOKEN_TTL = timedelta(days=7)
# a rotated-away secret seen again within this window is treated as a
# duplicate in-flight request (two tabs refreshing at once), not as theft
REUSE_GRACE = timedelta(seconds=10)


def _invalid_refresh() -> TokenInvalidError:
    return TokenInvalidError("Invalid or expired refresh token", code="INVALID_REFRESH_TOKEN")


@dataclass
class TokenPair:
    access_token: str
    refresh_secret: str
    user: User


class CredentialVerifier:
    def __init__(self, storage: DBStorage):
        self.storage = storage

    def verify(self, username: str, password: str) -> User:
        user = self.storage.get_user_by_username(username)
        # same error for unknown user and wrong password
        if user is None or not verify_password(password, user.password_hash):
            logger.info("Login rejected for username=%r", username)
            raise CredentialError()
        return user


class SessionIssuer:
    def __init__(self, codec: TokenCodec, store: RefreshTokenStore,
                 refresh_ttl: timedelta = REFRESH_TOKEN_TTL):
        self.codec = codec
        self.store = store
        self.refresh_ttl = refresh_ttl

    def issue(self, user: User) -> TokenPair:
        secret = generate_refresh_secret()
        self.store.insert(user.id, hash_refresh_secret(secret), utcnow() + self.refresh_ttl)
        access_token = self.codec.issue(user.id, user.username)
        return TokenPair(access_token=access_token, refresh_secret=secret, user=user)


class SessionRotator:
    """
    Exchanges a refresh secret for a new pair. Each secret is single-use:
    the revoke is a conditional update, and only the caller whose update
    hit the row goes on to issue.
    """

    def __init__(self, storage: DBStorage, store: RefreshTokenStore, issuer: SessionIssuer,
                 revoke_all_on_reuse: bool = False, reuse_grace: timedelta = REUSE_GRACE):
        self.storage = storage
        self.store = store
        self.issuer = issuer
        self.revoke_all_on_reuse = revoke_all_on_reuse
        self.reuse_grace = reuse_grace

    def rotate(self, refresh_secret: str | None) -> TokenPair:
        if not refresh_secret:
            raise MissingTokenError("No refresh token provided", code="NO_REFRESH_TOKEN")

        token_hash = hash_refresh_secret(refresh_secret)
        record = self.store.lookup(token_hash)
        if record is None:
            raise _invalid_refresh()
        if record.revoked_at is not None:
            self._on_reuse(record)
            raise _invalid_refresh()
        if not record.is_valid():
            raise _invalid_refresh()

        user = self.storage.get_user(record.user_id)
        if user is None:
            raise UserMissingError()

        if not self.store.revoke(token_hash, reason=REVOKED_BY_ROTATION):
            # lost the race to a concurrent rotate/logout of the same secret
            logger.warning("Refresh token for user %s consumed concurrently", record.user_id)
            raise _invalid_refresh()

        pair = self.issuer.issue(user)
        logger.info("Rotated refresh token for user %s", user.id)
        return pair

    def _on_reuse(self, record):
        """Opt-in theft response: only secrets this rotator replaced count as reuse."""
        if not self.revoke_all_on_reuse or record.revoke_reason != REVOKED_BY_ROTATION:
            return
        if utcnow() - record.revoked_at < self.reuse_grace:
            return
        user_id = record.user_id
        revoked = self.store.revoke_all(user_id)
        logger.warning(
            "Revoked refresh token presented again for user %s; revoked %d active session(s)",
            user_id, revoked,
        )


class RevocationManager:
    def __init__(self, store: RefreshTokenStore):
        self.store = store

    def revoke_one(self, refresh_secret: str | None) -> bool:
        """No-op for empty, unknown or already invalid secrets."""
        if not refresh_secret:
            return False
        return self.store.revoke(hash_refresh_secret(refresh_secret))

    def revoke_all(self, user_id: str) -> int:
        count = self.store.revoke_all(user_id)
        logger.info("Revoked %d refresh token(s) for user %s", count, user_id)
        return count
