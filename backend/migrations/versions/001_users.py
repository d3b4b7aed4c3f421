"""Create users table.

Revision ID: 001_users
Revises:
Create Date: 2026-10-19

Users are provisioned by the Telegram login bridge. telegram_id is the
external identity key; its unique constraint is the conflict target for
concurrent first logins.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001_users"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # pgcrypto provides gen_random_uuid() for UUID primary keys
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    op.create_table(
        "users",
        sa.Column(
            "id",
            sa.UUID(),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("username", sa.String(64), nullable=False),
        sa.Column("telegram_id", sa.String(64), nullable=True),
        sa.Column("telegram_username", sa.String(64), nullable=True),
        sa.Column(
            "profile_type",
            sa.String(20),
            nullable=False,
            server_default="user",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("email", name="users_email_key"),
        sa.UniqueConstraint("username", name="users_username_key"),
        sa.UniqueConstraint("telegram_id", name="users_telegram_id_key"),
    )


def downgrade() -> None:
    op.drop_table("users")
