"""SQLAlchemy ORM models."""

from app.models.access_token import AccessToken
from app.models.authentication import Authentication
from app.models.base import Base
from app.models.user import User

__all__ = ["AccessToken", "Authentication", "Base", "User"]
