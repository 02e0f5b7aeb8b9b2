"""
devio.constants — Shared Economy Constants
===========================================

Single source of truth for point values.  Import from here instead of
repeating literals in services and routes.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Vote rewards — Aura granted to the target's author per vote
# ---------------------------------------------------------------------------
POST_UPVOTE_AURA = 5
POST_DOWNVOTE_AURA = -2
COMMENT_UPVOTE_AURA = 3
COMMENT_DOWNVOTE_AURA = -1

# ---------------------------------------------------------------------------
# Question / answer
# ---------------------------------------------------------------------------
ACCEPTED_ANSWER_AURA = 15

# ---------------------------------------------------------------------------
# Ledger history paging
# ---------------------------------------------------------------------------
DEFAULT_HISTORY_LIMIT = 20
MAX_HISTORY_LIMIT = 100


def achievement_source_id(slug: str) -> str:
    """Ledger ``source_id`` used for rewards tied to an achievement."""
    return f"achievement:{slug}"
