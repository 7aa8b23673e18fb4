"""
Crvena deck: 32 cards (4 suits × Seven..Ace).
Only Hearts score: 1 point each, the Ace of Hearts 3. 10 points per deal.
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional

from .errors import DeckExhausted


class Suit(IntEnum):
    """Order used for deck construction and card indexing."""
    HEARTS = 0
    DIAMONDS = 1
    CLUBS = 2
    SPADES = 3


class Rank(IntEnum):
    """Rank value is the card strength (Seven weakest, Ace strongest)."""
    SEVEN = 0
    EIGHT = 1
    NINE = 2
    TEN = 3
    JACK = 4
    QUEEN = 5
    KING = 6
    ACE = 7


DECK_SIZE = 32
ACE_OF_HEARTS_POINTS = 3
HEART_POINTS = 1

_RANK_STR = {
    Rank.SEVEN: "7",
    Rank.EIGHT: "8",
    Rank.NINE: "9",
    Rank.TEN: "10",
    Rank.JACK: "J",
    Rank.QUEEN: "Q",
    Rank.KING: "K",
    Rank.ACE: "A",
}


@dataclass(frozen=True)
class Card:
    """A single card. Immutable and hashable, so it can sit in sets and dict keys."""

    suit: Suit
    rank: Rank

    def __post_init__(self) -> None:
        if not isinstance(self.suit, Suit):
            object.__setattr__(self, "suit", Suit(self.suit))
        if not isinstance(self.rank, Rank):
            object.__setattr__(self, "rank", Rank(self.rank))

    @property
    def is_red(self) -> bool:
        return self.suit in (Suit.HEARTS, Suit.DIAMONDS)

    @property
    def is_heart(self) -> bool:
        return self.suit == Suit.HEARTS

    @property
    def strength(self) -> int:
        """Ordinal rank (0..7); only meaningful between cards of the same suit."""
        return int(self.rank)

    @property
    def point_value(self) -> int:
        if self.suit != Suit.HEARTS:
            return 0
        return ACE_OF_HEARTS_POINTS if self.rank == Rank.ACE else HEART_POINTS

    def long_name(self) -> str:
        """E.g. "Ace of Spades" (used in hint messages)."""
        return f"{self.rank.name.title()} of {self.suit.name.title()}"

    def __str__(self) -> str:
        return f"{_RANK_STR[self.rank]}{'♥♦♣♠'[self.suit]}"

    def __repr__(self) -> str:
        return str(self)


def make_card(suit: Suit, rank: Rank) -> Card:
    return Card(suit=suit, rank=rank)


def make_deck_32() -> list[Card]:
    """Build the full 32-card deck, suit-major then Seven..Ace."""
    return [Card(s, r) for s in Suit for r in Rank]


class Deck:
    """
    Draw pile plus discard pile over the 32-card set.

    Cards dealt into hands or sitting in the current trick are in neither
    pile; once a trick is resolved its cards are discarded. When the draw
    pile runs dry the discard pile is reshuffled into it.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.rng = rng or random.Random()
        self.draw_pile: List[Card] = []
        self.discard_pile: List[Card] = []

    def __len__(self) -> int:
        return len(self.draw_pile)

    def build(self) -> None:
        """Fresh 32 cards in the draw pile; discard pile cleared."""
        self.draw_pile = make_deck_32()
        self.discard_pile = []

    def initialize(self) -> None:
        """Build and shuffle, as done at the start of every round."""
        self.build()
        self.shuffle()

    def shuffle(self) -> None:
        self.rng.shuffle(self.draw_pile)

    def draw(self) -> Card:
        """Remove and return the front card, recycling the discard pile if needed."""
        if not self.draw_pile and self.discard_pile:
            self.draw_pile.extend(self.discard_pile)
            self.discard_pile.clear()
            self.shuffle()
        if not self.draw_pile:
            raise DeckExhausted("No cards left to draw (draw and discard piles are empty)")
        return self.draw_pile.pop(0)

    def discard(self, card: Card) -> None:
        if card not in self.discard_pile:
            self.discard_pile.append(card)

    def return_all_cards(self) -> None:
        """Put the discard pile back under the draw pile and reshuffle."""
        self.draw_pile.extend(self.discard_pile)
        self.discard_pile.clear()
        self.shuffle()


def cards_point_total(cards: list[Card]) -> int:
    """Total heart points in a set of cards (10 for the full deck)."""
    return sum(c.point_value for c in cards)


__all__ = [
    "Suit",
    "Rank",
    "Card",
    "Deck",
    "DECK_SIZE",
    "make_card",
    "make_deck_32",
    "cards_point_total",
]
