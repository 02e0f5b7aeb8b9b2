"""
devio.database.models — SQLAlchemy 2.0 Data Models
====================================================

Tables:
- users               — Platform members; carries the Cipher balance projection
- aura_transactions   — Append-only Aura ledger (signed amounts)
- cipher_transactions — Append-only Cipher ledger with keyed idempotency index
- posts               — Content items (the engine owns only vote/bounty fields)
- comments            — Answers and nested replies
- post_votes          — One UP/DOWN per (post, user)
- comment_votes       — One UP/DOWN per (comment, user)
- achievements        — Threshold badges keyed by a counter criteria
- user_achievements   — Unlock records (presence = granted)
- notifications       — In-app notifications written by the default notifier
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    and_,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Devio ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class AuraReason(enum.StrEnum):
    """Why an Aura ledger entry was written."""
    POST_UPVOTED = "POST_UPVOTED"
    POST_DOWNVOTED = "POST_DOWNVOTED"
    COMMENT_UPVOTED = "COMMENT_UPVOTED"
    COMMENT_DOWNVOTED = "COMMENT_DOWNVOTED"
    ANSWER_ACCEPTED = "ANSWER_ACCEPTED"
    ACHIEVEMENT_UNLOCKED = "ACHIEVEMENT_UNLOCKED"
    STREAK_MILESTONE = "STREAK_MILESTONE"
    ADMIN_GRANT = "ADMIN_GRANT"


class CipherReason(enum.StrEnum):
    """Why a Cipher ledger entry was written."""
    BOUNTY_CREATED = "BOUNTY_CREATED"
    ANSWER_ACCEPTED = "ANSWER_ACCEPTED"
    CONTEST_ENTRY = "CONTEST_ENTRY"
    CONTEST_PRIZE = "CONTEST_PRIZE"
    ACHIEVEMENT_UNLOCKED = "ACHIEVEMENT_UNLOCKED"
    ADMIN_GRANT = "ADMIN_GRANT"
    PURCHASE = "PURCHASE"


class PostType(enum.StrEnum):
    TEXT = "TEXT"
    LINK = "LINK"
    QUESTION = "QUESTION"
    POLL = "POLL"


class VoteType(enum.StrEnum):
    UP = "UP"
    DOWN = "DOWN"


class AchievementCriteria(enum.StrEnum):
    """Counter keys an achievement threshold is measured against."""
    PROBLEM_SOLVED = "PROBLEM_SOLVED"
    EASY_SOLVED = "EASY_SOLVED"
    MEDIUM_SOLVED = "MEDIUM_SOLVED"
    HARD_SOLVED = "HARD_SOLVED"
    ROOMS_COMPLETED = "ROOMS_COMPLETED"
    FLAGS_CAPTURED = "FLAGS_CAPTURED"
    STREAK_DAYS = "STREAK_DAYS"
    AURA_POINTS = "AURA_POINTS"
    POSTS_CREATED = "POSTS_CREATED"
    COMMENTS_CREATED = "COMMENTS_CREATED"
    ANSWERS_ACCEPTED = "ANSWERS_ACCEPTED"
    COMMUNITY_CREATED = "COMMUNITY_CREATED"
    USERS_FOLLOWED = "USERS_FOLLOWED"


class NotificationType(enum.StrEnum):
    COMMENT = "COMMENT"
    SYSTEM = "SYSTEM"
    ACHIEVEMENT = "ACHIEVEMENT"


# ---------------------------------------------------------------------------
# Users — one row per platform member
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    username: Mapped[str] = mapped_column(String(50), nullable=False)
    # Projection of SUM(cipher_transactions.amount); written only with a ledger row
    cipher_balance: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    achievements: Mapped[list[UserAchievement]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("username", name="uq_users_username"),
        CheckConstraint("cipher_balance >= 0", name="ck_users_cipher_balance_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} name={self.username!r} cipher={self.cipher_balance}>"


# ---------------------------------------------------------------------------
# AuraTransaction — reputation ledger (no materialised balance)
# ---------------------------------------------------------------------------
class AuraTransaction(Base):
    __tablename__ = "aura_transactions"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(40), nullable=False)
    source_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("amount <> 0", name="ck_aura_transactions_amount_nonzero"),
        Index("ix_aura_transactions_user_time", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<AuraTransaction id={self.id} user={self.user_id} "
            f"amount={self.amount} reason={self.reason}>"
        )


# ---------------------------------------------------------------------------
# CipherTransaction — currency ledger
# ---------------------------------------------------------------------------
class CipherTransaction(Base):
    __tablename__ = "cipher_transactions"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(40), nullable=False)
    source_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("amount <> 0", name="ck_cipher_transactions_amount_nonzero"),
        # Keyed credits are at-most-once; debits and unkeyed rows are unrestricted
        Index(
            "ix_cipher_transactions_idempotent",
            "user_id",
            "reason",
            "source_id",
            unique=True,
            postgresql_where=and_(source_id.isnot(None), amount > 0),
            sqlite_where=and_(source_id.isnot(None), amount > 0),
        ),
        Index("ix_cipher_transactions_user_time", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<CipherTransaction id={self.id} user={self.user_id} "
            f"amount={self.amount} reason={self.reason}>"
        )


# ---------------------------------------------------------------------------
# Post — content item; bounty fields live here
# ---------------------------------------------------------------------------
class Post(Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    author_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False, default=PostType.TEXT.value)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    body: Mapped[str | None] = mapped_column(Text, default=None)
    upvotes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    downvotes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    comment_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Bounty escrow — amount fixed at creation, paid flag never reverts
    bounty_amount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_bounty_paid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # Plain column: posts ↔ comments would otherwise form an FK cycle
    accepted_answer_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    comments: Mapped[list[Comment]] = relationship(
        back_populates="post", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("bounty_amount >= 0", name="ck_posts_bounty_non_negative"),
        Index("ix_posts_author", "author_id"),
    )

    @property
    def is_question(self) -> bool:
        return self.type == PostType.QUESTION.value

    def __repr__(self) -> str:
        return f"<Post id={self.id} type={self.type} author={self.author_id}>"


# ---------------------------------------------------------------------------
# Comment — top-level answers and nested replies
# ---------------------------------------------------------------------------
class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    parent_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True
    )
    author_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    upvotes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    downvotes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    post: Mapped[Post] = relationship(back_populates="comments")

    __table_args__ = (
        Index("ix_comments_post", "post_id"),
        Index("ix_comments_author", "author_id"),
    )

    def __repr__(self) -> str:
        return f"<Comment id={self.id} post={self.post_id} author={self.author_id}>"


# ---------------------------------------------------------------------------
# Votes — one row per (target, voter); absence means "no vote"
# ---------------------------------------------------------------------------
class PostVote(Base):
    __tablename__ = "post_votes"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(4), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_post_votes_post_user"),
        CheckConstraint("type IN ('UP', 'DOWN')", name="ck_post_votes_type"),
    )

    def __repr__(self) -> str:
        return f"<PostVote post={self.post_id} user={self.user_id} type={self.type}>"


class CommentVote(Base):
    __tablename__ = "comment_votes"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    comment_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("comments.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(4), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("comment_id", "user_id", name="uq_comment_votes_comment_user"),
        CheckConstraint("type IN ('UP', 'DOWN')", name="ck_comment_votes_type"),
    )

    def __repr__(self) -> str:
        return f"<CommentVote comment={self.comment_id} user={self.user_id} type={self.type}>"


# ---------------------------------------------------------------------------
# Achievement — threshold badge over a named counter
# ---------------------------------------------------------------------------
class Achievement(Base):
    __tablename__ = "achievements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    category: Mapped[str] = mapped_column(String(40), nullable=False, default="GENERAL")
    criteria: Mapped[str] = mapped_column(String(40), nullable=False)
    threshold: Mapped[int | None] = mapped_column(Integer, nullable=True, default=None)

    # Rewards
    aura_reward: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    cipher_reward: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    is_hidden: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    earned_by: Mapped[list[UserAchievement]] = relationship(back_populates="achievement")

    __table_args__ = (
        UniqueConstraint("slug", name="uq_achievements_slug"),
        Index("ix_achievements_criteria", "criteria", "threshold"),
    )

    def __repr__(self) -> str:
        return f"<Achievement id={self.id} slug={self.slug!r} threshold={self.threshold}>"


# ---------------------------------------------------------------------------
# UserAchievement — unlock record; the primary key is the idempotency guard
# ---------------------------------------------------------------------------
class UserAchievement(Base):
    __tablename__ = "user_achievements"

    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    achievement_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("achievements.id", ondelete="CASCADE"), primary_key=True,
    )
    unlocked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    user: Mapped[User] = relationship(back_populates="achievements")
    achievement: Mapped[Achievement] = relationship(back_populates="earned_by")

    def __repr__(self) -> str:
        return f"<UserAchievement user={self.user_id} achievement={self.achievement_id}>"


# ---------------------------------------------------------------------------
# Notification — in-app inbox row
# ---------------------------------------------------------------------------
class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    actor_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    action_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    data: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_notifications_user_time", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification id={self.id} user={self.user_id} type={self.type}>"
