"""Account persistence: lookup, password and login bookkeeping, admin listing."""

from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import func, or_, true
from sqlalchemy.orm import Session

from app.models import User
from app.services.errors import store_errors
from app.services.pagination import Page, paginate

SORTABLE_COLUMNS = {
    "id": User.id,
    "email": User.email,
    "name": User.name,
    "created_at": User.created_at,
    "last_login_at": User.last_login_at,
}
DEFAULT_SORT_BY = "created_at"
DEFAULT_SORT_ORDER = "desc"


@dataclass(frozen=True)
class UserFilters:
    """Listing filters; page/per_page are expected to be clamped already."""

    search: str | None = None
    is_active: bool | None = None
    role: str | None = None
    sort_by: str = DEFAULT_SORT_BY
    sort_order: str = DEFAULT_SORT_ORDER
    page: int = 1
    per_page: int = 15


class CredentialStore:
    """
    Repository for the users table.

    Every method raises StoreError on database failure. Commits are left to
    the caller, which owns the surrounding transaction.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_by_email(self, email: str) -> User | None:
        """Exact (case-sensitive) email match."""
        with store_errors("get_by_email"):
            return self.db.query(User).filter(User.email == email).first()

    def get_by_id(self, user_id: int) -> User | None:
        with store_errors("get_by_id"):
            return self.db.get(User, user_id)

    def email_taken(self, email: str) -> bool:
        """Case-insensitive uniqueness check used when provisioning accounts."""
        with store_errors("email_taken"):
            return (
                self.db.query(User.id).filter(User.email.ilike(email)).first() is not None
            )

    def create(
        self,
        email: str,
        password_hash: str,
        name: str | None = None,
        role: str = "user",
        is_active: bool = True,
    ) -> User:
        with store_errors("create"):
            user = User(
                email=email,
                name=name,
                password_hash=password_hash,
                role=role,
                is_active=is_active,
            )
            self.db.add(user)
            self.db.flush()
            return user

    def lock_for_update(self, user_id: int) -> User | None:
        """SELECT ... FOR UPDATE on the account row (no-op on sqlite)."""
        with store_errors("lock_for_update"):
            return (
                self.db.query(User)
                .filter(User.id == user_id)
                .with_for_update()
                .populate_existing()
                .first()
            )

    def update_password_hash(self, user: User, password_hash: str) -> None:
        with store_errors("update_password_hash"):
            user.password_hash = password_hash
            self.db.flush()

    def record_login(self, user: User, ip_address: str | None) -> None:
        with store_errors("record_login"):
            user.last_login_at = datetime.now(timezone.utc)
            user.last_login_ip = ip_address
            self.db.flush()

    def list_users(self, filters: UserFilters) -> Page:
        """Filter by search/is_active/role, sort by a whitelisted column, paginate."""
        with store_errors("list_users"):
            query = self.db.query(User)
            if filters.search:
                pattern = f"%{filters.search}%"
                query = query.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
            if filters.is_active is not None:
                query = query.filter(User.is_active == filters.is_active)
            if filters.role:
                query = query.filter(User.role == filters.role)
            column = SORTABLE_COLUMNS.get(filters.sort_by, SORTABLE_COLUMNS[DEFAULT_SORT_BY])
            ordered = column.asc() if filters.sort_order == "asc" else column.desc()
            query = query.order_by(ordered, User.id.asc())
            return paginate(query, filters.page, filters.per_page)

    def set_active(self, user: User, is_active: bool) -> None:
        with store_errors("set_active"):
            user.is_active = is_active
            self.db.flush()

    def stats(self) -> dict[str, int]:
        """Total, active and inactive account counts."""
        with store_errors("stats"):
            total = self.db.query(func.count(User.id)).scalar() or 0
            active = (
                self.db.query(func.count(User.id)).filter(User.is_active == true()).scalar() or 0
            )
        return {"total_users": total, "active_users": active, "inactive_users": total - active}
