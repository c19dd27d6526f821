"""Add access_tokens (hashed bearer tokens) and authentications (audit trail).

Revision ID: 20261019010000
Revises: 20261019000000
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "20261019010000"
down_revision: Union[str, None] = "20261019000000"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "access_tokens",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False, server_default="auth_token"),
        sa.Column("token_hash", sa.String(length=64), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_access_tokens_user_id"), "access_tokens", ["user_id"])
    op.create_index(
        op.f("ix_access_tokens_token_hash"), "access_tokens", ["token_hash"], unique=True
    )
    op.create_index(op.f("ix_access_tokens_revoked_at"), "access_tokens", ["revoked_at"])

    op.create_table(
        "authentications",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("event", sa.String(length=16), nullable=False, server_default="login"),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("login_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("logout_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("token_id", sa.Integer(), nullable=True),
        sa.Column("is_successful", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("device_info", sa.JSON(), nullable=True),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_authentications_user_id_login_at", "authentications", ["user_id", "login_at"]
    )
    op.create_index(op.f("ix_authentications_ip_address"), "authentications", ["ip_address"])
    op.create_index(
        op.f("ix_authentications_is_successful"), "authentications", ["is_successful"]
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_authentications_is_successful"), table_name="authentications")
    op.drop_index(op.f("ix_authentications_ip_address"), table_name="authentications")
    op.drop_index("ix_authentications_user_id_login_at", table_name="authentications")
    op.drop_table("authentications")
    op.drop_index(op.f("ix_access_tokens_revoked_at"), table_name="access_tokens")
    op.drop_index(op.f("ix_access_tokens_token_hash"), table_name="access_tokens")
    op.drop_index(op.f("ix_access_tokens_user_id"), table_name="access_tokens")
    op.drop_table("access_tokens")
