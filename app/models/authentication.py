"""ORM model for the login/logout audit trail."""

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text

from app.models.base import Base
from app.models.user import utcnow


class Authentication(Base):
    """
    Append-only record of one login or logout attempt.

    user_id is null when the attempt never resolved to an account
    (login with an unknown email).
    """

    __tablename__ = "authentications"
    __table_args__ = (Index("ix_authentications_user_id_login_at", "user_id", "login_at"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    event = Column(String(16), nullable=False, default="login")
    ip_address = Column(String(45), nullable=True, index=True)
    user_agent = Column(Text, nullable=True)
    login_at = Column(DateTime(timezone=True), nullable=True)
    logout_at = Column(DateTime(timezone=True), nullable=True)
    token_id = Column(Integer, nullable=True)
    is_successful = Column(Boolean, nullable=False, default=True, index=True)
    device_info = Column(JSON, nullable=True)
    location = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
