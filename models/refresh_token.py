"""
RefreshToken model: one row per issued refresh secret, so we can revoke and rotate them.
Fields:
- token_hash (unique) - SHA-256 of the secret; the secret itself is never stored
- user_id (String(36)) - FK to users.id
- expires_at - fixed at creation
- revoked_at - NULL until revoked
- revoke_reason - why it was revoked (rotated, logout, logout_all)
- created_at (from BaseModel)

A row is valid iff revoked_at IS NULL AND expires_at > now. There is no
stored status column; validity is always recomputed.
"""
from datetime import datetime

from sqlalchemy import Column, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base, utcnow

REVOKED_BY_ROTATION = "rotated"
REVOKED_BY_LOGOUT = "logout"
REVOKED_BY_LOGOUT_ALL = "logout_all"


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"
    __table_args__ = (
        Index("idx_refresh_tokens_user_valid", "user_id", "revoked_at", "expires_at"),
    )

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    revoked_at = Column(DateTime, nullable=True)
    revoke_reason = Column(String(16), nullable=True)

    user = relationship("User", back_populates="refresh_tokens")

    def is_valid(self, now: datetime | None = None) -> bool:
        now = now or utcnow()
        return self.revoked_at is None and self.expires_at > now

    def __repr__(self):
        return f"<RefreshToken user={self.user_id} revoked={self.revoked_at is not None}>"
