"""
devio.database.seed — Default Achievement Catalogue
====================================================

Baseline achievements inserted on first startup so unlock checks have
something to match.  Idempotent — only inserts slugs that don't already
exist.  Rows edited later by admins are never overwritten.
"""

from __future__ import annotations

import logging
import re

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from devio.database.models import Achievement, AchievementCriteria

logger = logging.getLogger(__name__)

C = AchievementCriteria


def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


# ---------------------------------------------------------------------------
# Catalogue: (name, description, category, criteria, threshold, aura, cipher, hidden)
# ---------------------------------------------------------------------------
DEFAULT_ACHIEVEMENTS: list[tuple[str, str, str, str, int, int, int, bool]] = [
    # Problems
    ("First Blood", "Solve your first problem", "PROBLEMS", C.PROBLEM_SOLVED, 1, 10, 0, False),
    ("Getting Started", "Solve 10 problems", "PROBLEMS", C.PROBLEM_SOLVED, 10, 25, 0, False),
    ("Problem Hunter", "Solve 25 problems", "PROBLEMS", C.PROBLEM_SOLVED, 25, 50, 15, False),
    ("Century Solver", "Solve 100 problems", "PROBLEMS", C.PROBLEM_SOLVED, 100, 200, 50, False),
    ("Algorithm Master", "Solve 500 problems", "PROBLEMS", C.PROBLEM_SOLVED, 500, 1000, 200, False),
    ("Easy Peasy", "Solve 50 easy problems", "PROBLEMS", C.EASY_SOLVED, 50, 50, 10, False),
    ("Medium Rare", "Solve 50 medium problems", "PROBLEMS", C.MEDIUM_SOLVED, 50, 100, 25, False),
    ("Hardcode", "Solve 25 hard problems", "PROBLEMS", C.HARD_SOLVED, 25, 200, 75, False),
    # Security labs
    ("Lab Initiate", "Complete your first CyberRoom", "CYBER_SECURITY", C.ROOMS_COMPLETED, 1, 20, 5, False),
    ("Lab Rat", "Complete 5 CyberRooms", "CYBER_SECURITY", C.ROOMS_COMPLETED, 5, 75, 25, False),
    ("Flag Hunter", "Submit 50 correct flags", "CYBER_SECURITY", C.FLAGS_CAPTURED, 50, 100, 30, False),
    # Streaks
    ("First Step", "Start a 3-day streak", "STREAKS", C.STREAK_DAYS, 3, 10, 0, False),
    ("Week Warrior", "Maintain a 7-day streak", "STREAKS", C.STREAK_DAYS, 7, 30, 10, False),
    ("Month Master", "Maintain a 30-day streak", "STREAKS", C.STREAK_DAYS, 30, 200, 75, False),
    ("Streak Legend", "Maintain a 100-day streak", "STREAKS", C.STREAK_DAYS, 100, 1000, 300, True),
    # Aura milestones carry no Aura reward; they would feed themselves
    ("Rising Star", "Earn 500 Aura points", "AURA", C.AURA_POINTS, 500, 0, 10, False),
    ("Community Member", "Earn 1,000 Aura points", "AURA", C.AURA_POINTS, 1000, 0, 25, False),
    ("Trusted Contributor", "Earn 5,000 Aura points", "AURA", C.AURA_POINTS, 5000, 0, 75, False),
    ("Aura Legend", "Earn 50,000 Aura points", "AURA", C.AURA_POINTS, 50000, 0, 500, True),
    # Engagement
    ("First Post", "Create your first post", "ENGAGEMENT", C.POSTS_CREATED, 1, 5, 0, False),
    ("Active Poster", "Create 10 posts", "ENGAGEMENT", C.POSTS_CREATED, 10, 25, 5, False),
    ("Content Creator", "Create 50 posts", "ENGAGEMENT", C.POSTS_CREATED, 50, 100, 30, False),
    ("Commentator", "Leave 25 comments", "ENGAGEMENT", C.COMMENTS_CREATED, 25, 25, 5, False),
    ("Discussion Leader", "Leave 100 comments", "ENGAGEMENT", C.COMMENTS_CREATED, 100, 75, 20, False),
    ("Helpful Hand", "Have 10 answers accepted", "ENGAGEMENT", C.ANSWERS_ACCEPTED, 10, 50, 20, False),
]


def seed_achievements(engine: Engine) -> int:
    """Insert any catalogue achievements whose slug is missing.

    Returns the number of rows inserted.
    """
    with Session(engine) as session:
        existing = set(session.scalars(select(Achievement.slug)).all())
        inserted = 0
        for name, desc, category, criteria, threshold, aura, cipher, hidden in DEFAULT_ACHIEVEMENTS:
            slug = _slug(name)
            if slug in existing:
                continue
            session.add(Achievement(
                slug=slug,
                name=name,
                description=desc,
                category=category,
                criteria=str(criteria),
                threshold=threshold,
                aura_reward=aura,
                cipher_reward=cipher,
                is_hidden=hidden,
            ))
            inserted += 1
        session.commit()

    if inserted:
        logger.info("Seeded %d default achievements", inserted)
    return inserted
