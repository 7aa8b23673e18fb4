"""
Trick-taking: legal moves, winner, trick points.
No trumps: only the led suit can win. No red cards during the first two tricks.
"""
from __future__ import annotations

from typing import NamedTuple, Sequence

from .deck import Card, Suit

# Tricks (0-indexed turn numbers below this value) during which red cards are held back.
EARLY_RED_TRICKS = 2

Trick = Sequence[tuple[int, Card]]


class TrickResult(NamedTuple):
    """Outcome of a completed trick: offset of the winning card within the trick, and its points."""
    winner_offset: int
    points: int


def lead_suit(trick: Trick) -> Suit | None:
    """Suit of the first card played, or None for an empty trick."""
    if not trick:
        return None
    return trick[0][1].suit


def has_suit(hand: Sequence[Card], suit: Suit) -> bool:
    return any(c.suit == suit for c in hand)


def legal_plays(
    hand: Sequence[Card],
    trick: Trick,
    turn_number: int,
    early_red_tricks: int = EARLY_RED_TRICKS,
) -> list[Card]:
    """
    Return the cards that can legally be played from hand, in hand order.
    trick: list of (player_index, card) in order played.
    turn_number: number of tricks already completed this round.

    During the first ``early_red_tricks`` tricks red cards are removed first;
    a hand holding only red cards keeps all of them so a move always exists.
    """
    if not hand:
        return []

    candidates = list(hand)
    if turn_number < early_red_tricks:
        non_red = [c for c in candidates if not c.is_red]
        if non_red:
            candidates = non_red

    led = lead_suit(trick)
    if led is None:
        return candidates
    following = [c for c in candidates if c.suit == led]
    if following:
        return following
    return candidates


def winning_card(trick: Trick) -> Card | None:
    """Highest card of the led suit played so far."""
    if not trick:
        return None
    best = trick[0][1]
    for _, c in trick[1:]:
        if c.suit == best.suit and c.strength > best.strength:
            best = c
    return best


def trick_winner_offset(trick: Trick) -> int:
    """Position within the trick (0 = leader) of the winning card. Off-suit cards never win."""
    if not trick:
        raise ValueError("Cannot determine the winner of an empty trick")
    led = trick[0][1].suit
    best_offset = 0
    best_strength = trick[0][1].strength
    for i, (_, c) in enumerate(trick):
        if c.suit == led and c.strength > best_strength:
            best_strength = c.strength
            best_offset = i
    return best_offset


def trick_points(cards: Sequence[Card]) -> int:
    return sum(c.point_value for c in cards)


def resolve_trick(trick: Trick) -> TrickResult:
    """Winner offset and point value of a completed trick. Pure: same trick, same result."""
    offset = trick_winner_offset(trick)
    return TrickResult(winner_offset=offset, points=trick_points([c for _, c in trick]))


def trick_winner(trick: Trick, leader: int, num_players: int) -> int:
    """Absolute seat of the trick winner."""
    return (leader + trick_winner_offset(trick)) % num_players


__all__ = [
    "EARLY_RED_TRICKS",
    "TrickResult",
    "lead_suit",
    "has_suit",
    "legal_plays",
    "winning_card",
    "trick_winner_offset",
    "trick_points",
    "resolve_trick",
    "trick_winner",
]
