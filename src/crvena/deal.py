"""
Distribution (deal) and dealer rotation.
4 players × 8 cards, one at a time, starting with the player after the dealer.
"""
from __future__ import annotations

from typing import NamedTuple, Sequence

from .deck import Card, Deck

CARDS_PER_PLAYER = 8


class Deal(NamedTuple):
    """Result of a deal. Hands are lists (mutated during play)."""
    hands: tuple[list[Card], ...]
    dealer: int


def first_to_play(dealer: int, num_players: int = 4) -> int:
    """Player after the dealer deals first and leads the first trick."""
    return (dealer + 1) % num_players


def deal_round(
    deck: Deck,
    num_players: int = 4,
    cards_per_player: int = CARDS_PER_PLAYER,
    dealer: int = 0,
) -> Deal:
    """
    Draw cards_per_player cards per seat, round-robin from first_to_play(dealer).
    Raises DeckExhausted if the deck cannot supply enough cards.
    """
    hands: list[list[Card]] = [[] for _ in range(num_players)]
    start = first_to_play(dealer, num_players)
    for _ in range(cards_per_player):
        for k in range(num_players):
            hands[(start + k) % num_players].append(deck.draw())
    return Deal(hands=tuple(hands), dealer=dealer)


def next_dealer(round_scores: Sequence[int]) -> int:
    """The player who took the most points this round deals next (lowest seat on ties)."""
    return max(range(len(round_scores)), key=lambda i: (round_scores[i], -i))


__all__ = ["CARDS_PER_PLAYER", "Deal", "first_to_play", "deal_round", "next_dealer"]
