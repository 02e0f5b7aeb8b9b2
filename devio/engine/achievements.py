"""
devio.engine.achievements — Achievement Threshold Selection
============================================================

Decides which achievements a counter value qualifies for.  Pure
calculation: the caller supplies the configured achievements for one
criteria key, the fresh counter value, and the ids already unlocked.

The counter value is taken as given.  Staleness is the caller's concern.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol


class ThresholdAchievement(Protocol):
    """Shape the selector needs (satisfied by the ORM model)."""

    id: int
    threshold: int | None


def meets_threshold(threshold: int | None, current_value: int) -> bool:
    """A missing or zero threshold always qualifies."""
    if not threshold:
        return True
    return current_value >= threshold


def select_unlockable(
    achievements: Iterable[ThresholdAchievement],
    current_value: int,
    already_unlocked: set[int],
) -> list[ThresholdAchievement]:
    """Return achievements newly earned at *current_value*, lowest threshold first.

    Parameters
    ----------
    achievements : Achievements configured under a single criteria key.
    current_value : Caller-queried counter for the user.
    already_unlocked : Achievement ids the user already holds.
    """
    eligible = [
        ach for ach in achievements
        if ach.id not in already_unlocked and meets_threshold(ach.threshold, current_value)
    ]
    eligible.sort(key=lambda ach: (ach.threshold or 0, ach.id))
    return eligible
