"""
Persistence for refresh-token records.

Every write is a single statement in its own transaction:
- revoke/revoke_all are conditional UPDATEs on `revoked_at IS NULL` and
  report rows affected, so two callers racing on the same row cannot both
  see a successful transition.
- purge_stale is one bulk DELETE under the normal isolation level.
"""
from __future__ import annotations

from datetime import datetime
import logging

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError

from models.base_model import utcnow
from models.db_storage import DBStorage
from models.refresh_token import REVOKED_BY_LOGOUT, REVOKED_BY_LOGOUT_ALL, RefreshToken

logger = logging.getLogger(__name__)


class RefreshTokenStore:
    def __init__(self, storage: DBStorage):
        self.storage = storage

    def _write(self, stmt) -> int:
        session = self.storage.get_session()
        try:
            result = session.execute(stmt)
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        return result.rowcount

    def insert(self, user_id: str, token_hash: str, expires_at: datetime) -> RefreshToken:
        record = RefreshToken(user_id=user_id, token_hash=token_hash, expires_at=expires_at)
        self.storage.new(record)
        self.storage.save()
        return record

    def lookup(self, token_hash: str) -> RefreshToken | None:
        session = self.storage.get_session()
        # populate_existing: another thread may have revoked the row since
        # this session last loaded it
        return session.execute(
            select(RefreshToken)
            .where(RefreshToken.token_hash == token_hash)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def revoke(self, token_hash: str, reason: str = REVOKED_BY_LOGOUT) -> bool:
        """Mark one record revoked. True only for the caller that flipped it."""
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.token_hash == token_hash, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=utcnow(), revoke_reason=reason)
            .execution_options(synchronize_session=False)
        )
        return self._write(stmt) == 1

    def revoke_all(self, user_id: str) -> int:
        now = utcnow()
        stmt = (
            update(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > now,
            )
            .values(revoked_at=now, revoke_reason=REVOKED_BY_LOGOUT_ALL)
            .execution_options(synchronize_session=False)
        )
        count = self._write(stmt)
        logger.debug("revoke_all user=%s rows=%d", user_id, count)
        return count

    def purge_stale(self) -> int:
        stmt = (
            delete(RefreshToken)
            .where(or_(RefreshToken.revoked_at.is_not(None), RefreshToken.expires_at < utcnow()))
            .execution_options(synchronize_session=False)
        )
        return self._write(stmt)

    def count_valid(self, user_id: str) -> int:
        session = self.storage.get_session()
        return (
            session.query(RefreshToken)
            .filter(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > utcnow(),
            )
            .count()
        )
