"""Create auth_handshakes and verification_tokens tables.

Revision ID: 002_auth_handshakes
Revises: 001_users
Create Date: 2026-10-19

- auth_handshakes: one row per Telegram login attempt, 3-minute expiry.
  A completed row must name its user.
- verification_tokens: hashed single-use magic link tokens.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "002_auth_handshakes"
down_revision: str | None = "001_users"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "auth_handshakes",
        sa.Column("token", sa.String(48), primary_key=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("initiating_host_origin", sa.Text(), nullable=False),
        sa.Column(
            "completed",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column(
            "resolved_user_id",
            sa.UUID(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.CheckConstraint(
            "NOT completed OR resolved_user_id IS NOT NULL",
            name="ck_auth_handshakes_completed_has_user",
        ),
    )
    # Expiry sweeps filter on expires_at
    op.create_index(
        "ix_auth_handshakes_expires_at", "auth_handshakes", ["expires_at"]
    )

    op.create_table(
        "verification_tokens",
        sa.Column("token", sa.String(64), primary_key=True),
        sa.Column("identifier", sa.String(255), nullable=False),
        sa.Column("expires", sa.DateTime(timezone=True), nullable=False),
        sa.Column("redirect_to", sa.Text(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("verification_tokens")
    op.drop_index("ix_auth_handshakes_expires_at", table_name="auth_handshakes")
    op.drop_table("auth_handshakes")
