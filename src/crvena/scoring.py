"""
Score calculation: hearts taken per round, zero-round streak penalty, game end.
Lower totals are better. 10 points are distributed every round.
"""
from __future__ import annotations

from typing import NamedTuple, Sequence

from .deck import Card, cards_point_total

ROUND_POINTS = 10       # 7 plain hearts × 1 + Ace of Hearts × 3
END_SCORE = 51
STREAK_LENGTH = 3       # consecutive zero rounds before the penalty
STREAK_PENALTY = 3


class ScoreUpdate(NamedTuple):
    total: int
    zero_streak: int
    penalised: bool


def points_in_cards(cards: list[Card]) -> int:
    """Total points in a set of cards (max 10 per round)."""
    return cards_point_total(cards)


def apply_round_score(
    total: int,
    round_score: int,
    zero_streak: int,
    streak_length: int = STREAK_LENGTH,
    streak_penalty: int = STREAK_PENALTY,
) -> ScoreUpdate:
    """
    Fold one round into a player's total.

    A scoring round is added and resets the streak. A zero round extends the
    streak; when it reaches ``streak_length`` the total drops by
    ``streak_penalty`` once and the streak restarts from 0.
    """
    if round_score != 0:
        return ScoreUpdate(total=total + round_score, zero_streak=0, penalised=False)
    zero_streak += 1
    if zero_streak >= streak_length:
        return ScoreUpdate(total=total - streak_penalty, zero_streak=0, penalised=True)
    return ScoreUpdate(total=total, zero_streak=zero_streak, penalised=False)


def is_game_over(totals: Sequence[int], end_score: int = END_SCORE) -> bool:
    """Checked at round boundaries only."""
    return any(t >= end_score for t in totals)


def game_winner(totals: Sequence[int]) -> int:
    """Seat with the lowest total; the lowest seat wins ties."""
    return min(range(len(totals)), key=lambda i: (totals[i], i))


__all__ = [
    "ROUND_POINTS",
    "END_SCORE",
    "STREAK_LENGTH",
    "STREAK_PENALTY",
    "ScoreUpdate",
    "points_in_cards",
    "apply_round_score",
    "is_game_over",
    "game_winner",
]
