"""
Observation / action encoding for Crvena.

Flat observations that:
- Represent the full hand of the acting seat, card-by-card.
- Encode what is on the table and what has already been played this round,
  so a model can learn which higher cards are still out.
- Encode seat, leader and trick position plus the current scores.

We intentionally keep this module free of external RL library dependencies.
It focuses on turning engine state into vectors; the environment in
``crvena.env_game`` is built on top without changing the encoding.
"""
from __future__ import annotations

from typing import Iterable, List, Sequence

from .agents import TableView
from .deck import Card, Rank, Suit
from .game import Game

NUM_CARDS: int = 32
NUM_ACTIONS: int = NUM_CARDS
MAX_PLAYERS: int = 4
MAX_TRICKS: int = 8
CARD_PLANES: int = 4  # hand, trick, played, legal
# seat (4) + leader (4) + trick position (4) + turn (8) + round scores (4) + totals (4)
CONTEXT_SIZE: int = 3 * MAX_PLAYERS + MAX_TRICKS + 2 * MAX_PLAYERS
OBS_SIZE: int = CARD_PLANES * NUM_CARDS + CONTEXT_SIZE


def _one_hot(index: int | None, size: int) -> List[int]:
    vec = [0] * size
    if index is None:
        return vec
    if 0 <= index < size:
        vec[index] = 1
    return vec


def card_index(card: Card) -> int:
    """
    Stable index 0..31 for every card, matching make_deck_32():
    suit-major (Hearts, Diamonds, Clubs, Spades), then Seven..Ace.
    """
    return int(card.suit) * 8 + int(card.rank)


def card_from_index(index: int) -> Card:
    if not (0 <= index < NUM_CARDS):
        raise ValueError(f"Invalid card index {index}")
    return Card(Suit(index // 8), Rank(index % 8))


def encode_card_set(cards: Iterable[Card]) -> List[int]:
    """Binary 32-dim vector for a set of cards: 1 if the card is present, else 0."""
    vec = [0] * NUM_CARDS
    for c in cards:
        vec[card_index(c)] = 1
    return vec


def encode_hand(hand: Iterable[Card]) -> List[int]:
    """Alias for encode_card_set when used specifically for a player's hand."""
    return encode_card_set(hand)


def legal_action_mask(legal_cards: Iterable[Card]) -> List[bool]:
    """Boolean mask over the 32 card actions."""
    return [bool(x) for x in encode_card_set(legal_cards)]


def _encode_scores(scores: Sequence[int], scale: float) -> List[float]:
    vec = [0.0] * MAX_PLAYERS
    for i, s in enumerate(scores[:MAX_PLAYERS]):
        vec[i] = float(s) / scale
    return vec


def encode_view_observation(view: TableView) -> List[float]:
    """
    Observation for the seat in ``view``:

    - 4 × 32 card bits:
        [0:32)   : seat's hand
        [32:64)  : current trick (set of cards, order ignored)
        [64:96)  : cards already played in completed tricks this round
        [96:128) : legal cards for the seat
    - one-hots: seat (4), leader (4), position within the trick (4),
      completed tricks this round (8)
    - round scores / 10 (4) and total scores / end score (4)

    Hidden hands in ``view.other_hands`` are never encoded.
    """
    hand_vec = encode_hand(view.hand)
    trick_vec = encode_card_set(c for _, c in view.trick)
    played_vec = encode_card_set(view.played)
    legal_vec = encode_card_set(view.legal)

    meta: List[int] = []
    meta.extend(_one_hot(view.seat, MAX_PLAYERS))
    meta.extend(_one_hot(view.leader, MAX_PLAYERS))
    meta.extend(_one_hot(len(view.trick), MAX_PLAYERS))
    meta.extend(_one_hot(view.turn_number, MAX_TRICKS))

    vec: List[float] = [float(x) for x in hand_vec + trick_vec + played_vec + legal_vec + meta]
    vec.extend(_encode_scores(view.round_scores, 10.0))
    vec.extend(_encode_scores(view.totals, float(view.end_score)))
    assert len(vec) == OBS_SIZE
    return vec


def encode_play_observation(game: Game, seat: int) -> List[float]:
    """Observation for ``seat`` at the current decision point of ``game``."""
    return encode_view_observation(game.view(seat))


__all__ = [
    "NUM_CARDS",
    "NUM_ACTIONS",
    "CARD_PLANES",
    "CONTEXT_SIZE",
    "OBS_SIZE",
    "card_index",
    "card_from_index",
    "encode_card_set",
    "encode_hand",
    "legal_action_mask",
    "encode_view_observation",
    "encode_play_observation",
]
