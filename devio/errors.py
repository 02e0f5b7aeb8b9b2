"""
devio.errors — Economy Exception Taxonomy
==========================================

Every rejection the economy core surfaces to callers.  Each error carries a
stable ``code`` so the API layer can render the same envelope for all of
them.  Duplicate keyed Cipher awards and vote transitions never raise.
"""

from __future__ import annotations

from typing import Any


class EconomyError(Exception):
    """Base class for user-visible economy rejections."""

    code = "ECONOMY_000"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class InsufficientFunds(EconomyError):
    """A spend or bounty exceeds the user's Cipher balance."""

    code = "CIPHER_001"

    def __init__(self, balance: int, requested: int) -> None:
        super().__init__(
            "Insufficient Cipher balance",
            {"balance": balance, "requested": requested},
        )
        self.balance = balance
        self.requested = requested


class InvalidAmount(EconomyError):
    """Amount is zero, negative, or otherwise unusable for the operation."""

    code = "CIPHER_002"


class UnauthorizedBountyAction(EconomyError):
    """Actor may not accept/unaccept, or the target is not eligible.

    ``forbidden`` distinguishes "wrong actor" (True) from "ineligible
    target" (False) so the API can answer 403 vs 400.
    """

    code = "BOUNTY_001"

    def __init__(
        self,
        message: str,
        *,
        forbidden: bool = True,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.forbidden = forbidden


class ContentNotFound(EconomyError):
    """A referenced post, comment or user does not exist."""

    code = "CONTENT_404"


class TargetNotFound(ContentNotFound):
    """The vote target does not exist."""
