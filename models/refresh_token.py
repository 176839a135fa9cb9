"""
RefreshToken model: one row per issued refresh token (a session record), so
refresh tokens can be rotated once and revoked.
Fields:
- id: the refresh token's jti (the session id)
- principal_id (String(36)) - FK to users.id, cascades on user deletion
- expires_at: equal to the token's exp, never updated
- revoked: only ever goes from False to True
- created_at, updated_at
"""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, false

from models.base_model import BaseModel, Base


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    principal_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked = Column(Boolean, default=False, server_default=false(), nullable=False)

    __table_args__ = (
        Index("ix_refresh_tokens_principal_revoked", "principal_id", "revoked"),
    )

    def __repr__(self):
        return f"<RefreshToken id={self.id} principal={self.principal_id} revoked={self.revoked}>"
