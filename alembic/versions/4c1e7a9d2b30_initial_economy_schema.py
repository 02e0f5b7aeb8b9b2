"""Initial economy schema: users, ledgers, content, votes, achievements

Revision ID: 4c1e7a9d2b30
Revises:
Create Date: 2026-10-19 09:12:04.518231

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '4c1e7a9d2b30'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    """Create every table the economy core owns or mutates."""

    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger, primary_key=True),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("cipher_balance", sa.Integer, nullable=False, server_default="0"),
        _created_at(),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.CheckConstraint(
            "cipher_balance >= 0", name="ck_users_cipher_balance_non_negative"
        ),
    )

    # --- ledgers ---
    for table in ("aura_transactions", "cipher_transactions"):
        op.create_table(
            table,
            sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
            sa.Column(
                "user_id",
                sa.BigInteger,
                sa.ForeignKey("users.id", ondelete="RESTRICT"),
                nullable=False,
            ),
            sa.Column("amount", sa.Integer, nullable=False),
            sa.Column("reason", sa.String(40), nullable=False),
            sa.Column("source_id", sa.String(100), nullable=True),
            _created_at(),
            sa.CheckConstraint("amount <> 0", name=f"ck_{table}_amount_nonzero"),
        )
        op.create_index(f"ix_{table}_user_time", table, ["user_id", "created_at"])

    op.create_index(
        "ix_cipher_transactions_idempotent",
        "cipher_transactions",
        ["user_id", "reason", "source_id"],
        unique=True,
        postgresql_where=sa.text("source_id IS NOT NULL AND amount > 0"),
        sqlite_where=sa.text("source_id IS NOT NULL AND amount > 0"),
    )

    # --- content ---
    op.create_table(
        "posts",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column(
            "author_id",
            sa.BigInteger,
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("body", sa.Text, nullable=True),
        sa.Column("upvotes", sa.Integer, nullable=False, server_default="0"),
        sa.Column("downvotes", sa.Integer, nullable=False, server_default="0"),
        sa.Column("comment_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("bounty_amount", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_bounty_paid", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("accepted_answer_id", sa.BigInteger, nullable=True),
        _created_at(),
        sa.CheckConstraint("bounty_amount >= 0", name="ck_posts_bounty_non_negative"),
    )
    op.create_index("ix_posts_author", "posts", ["author_id"])

    op.create_table(
        "comments",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column(
            "post_id",
            sa.BigInteger,
            sa.ForeignKey("posts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "parent_id",
            sa.BigInteger,
            sa.ForeignKey("comments.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column(
            "author_id",
            sa.BigInteger,
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("content", sa.Text, nullable=False, server_default=""),
        sa.Column("upvotes", sa.Integer, nullable=False, server_default="0"),
        sa.Column("downvotes", sa.Integer, nullable=False, server_default="0"),
        _created_at(),
    )
    op.create_index("ix_comments_post", "comments", ["post_id"])
    op.create_index("ix_comments_author", "comments", ["author_id"])

    # --- votes ---
    for table, target, fk in (
        ("post_votes", "post_id", "posts.id"),
        ("comment_votes", "comment_id", "comments.id"),
    ):
        short = table.removesuffix("_votes")
        op.create_table(
            table,
            sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
            sa.Column(
                target, sa.BigInteger, sa.ForeignKey(fk, ondelete="CASCADE"), nullable=False
            ),
            sa.Column(
                "user_id",
                sa.BigInteger,
                sa.ForeignKey("users.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("type", sa.String(4), nullable=False),
            _created_at(),
            sa.UniqueConstraint(target, "user_id", name=f"uq_{table}_{short}_user"),
            sa.CheckConstraint("type IN ('UP', 'DOWN')", name=f"ck_{table}_type"),
        )

    # --- achievements ---
    op.create_table(
        "achievements",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("category", sa.String(40), nullable=False, server_default="GENERAL"),
        sa.Column("criteria", sa.String(40), nullable=False),
        sa.Column("threshold", sa.Integer, nullable=True),
        sa.Column("aura_reward", sa.Integer, nullable=False, server_default="0"),
        sa.Column("cipher_reward", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_hidden", sa.Boolean, nullable=False, server_default=sa.false()),
        _created_at(),
        sa.UniqueConstraint("slug", name="uq_achievements_slug"),
    )
    op.create_index("ix_achievements_criteria", "achievements", ["criteria", "threshold"])

    op.create_table(
        "user_achievements",
        sa.Column(
            "user_id",
            sa.BigInteger,
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "achievement_id",
            sa.Integer,
            sa.ForeignKey("achievements.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "unlocked_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )

    # --- notifications ---
    op.create_table(
        "notifications",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.BigInteger,
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("actor_id", sa.BigInteger, nullable=True),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("action_url", sa.String(500), nullable=True),
        sa.Column("data", postgresql.JSONB, nullable=True),
        sa.Column("is_read", sa.Boolean, nullable=False, server_default=sa.false()),
        _created_at(),
    )
    op.create_index("ix_notifications_user_time", "notifications", ["user_id", "created_at"])


def downgrade() -> None:
    """Drop all economy tables (reverse dependency order)."""
    op.drop_index("ix_notifications_user_time", table_name="notifications")
    op.drop_table("notifications")
    op.drop_table("user_achievements")
    op.drop_index("ix_achievements_criteria", table_name="achievements")
    op.drop_table("achievements")
    op.drop_table("comment_votes")
    op.drop_table("post_votes")
    op.drop_index("ix_comments_author", table_name="comments")
    op.drop_index("ix_comments_post", table_name="comments")
    op.drop_table("comments")
    op.drop_index("ix_posts_author", table_name="posts")
    op.drop_table("posts")
    op.drop_index("ix_cipher_transactions_idempotent", table_name="cipher_transactions")
    for table in ("cipher_transactions", "aura_transactions"):
        op.drop_index(f"ix_{table}_user_time", table_name=table)
        op.drop_table(table)
    op.drop_table("users")
