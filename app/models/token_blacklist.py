from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from app.db.base_class import Base


class TokenBlacklist(Base):
    """Access tokens revoked on logout, keyed by their ``jti`` claim."""

    __tablename__ = "token_blacklist"

    id = Column(Integer, primary_key=True, index=True)
    jti = Column(String(64), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # Row can be purged once the token would have expired anyway.
    expires_at = Column(DateTime, nullable=False, index=True)
    reason = Column(String(50), default="logout")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
