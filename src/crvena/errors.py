"""
Engine exceptions.

Rejections (IllegalMove, ActionOutOfTurn) leave the game state unchanged and
carry enough context for the caller to retry. DeckExhausted means the
32-card invariant is broken and the current round cannot continue.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:  # pragma: no cover
    from .deck import Card


class CrvenaError(Exception):
    """Base exception for Crvena engine errors."""


class IllegalMove(CrvenaError, ValueError):
    """Raised when a submitted card is not among the seat's legal cards."""

    def __init__(self, seat: int, card: "Card", legal: Sequence["Card"], reason: str) -> None:
        self.seat = seat
        self.card = card
        self.legal = list(legal)
        self.reason = reason
        super().__init__(f"Seat {seat} cannot play {card}: {reason}; legal {self.legal}")


class ActionOutOfTurn(CrvenaError, ValueError):
    """Raised when a move arrives for a seat that is not expected to act."""

    def __init__(self, seat: int, expected: int | None, phase: str, card: "Card | None" = None) -> None:
        self.seat = seat
        self.expected = expected
        self.phase = phase
        self.card = card
        super().__init__(
            f"Seat {seat} tried to play {card} out of turn "
            f"(expected seat {expected}, phase {phase})"
        )


class GameOverError(ActionOutOfTurn):
    """Raised when a move arrives after the game has ended."""


class InvalidPhase(CrvenaError, RuntimeError):
    """Raised when an operation is requested in a phase that does not allow it."""


class DeckExhausted(CrvenaError, RuntimeError):
    """Draw requested with both draw and discard piles empty."""


__all__ = ["CrvenaError", "IllegalMove", "ActionOutOfTurn", "GameOverError", "InvalidPhase", "DeckExhausted"]
