"""
Bot tiers and the generic policy interfaces.

Two contracts live here:

- ``CardPolicy``: ``choose_card(view) -> Card``, used by the game to drive bot
  seats. ``view.legal`` is the output of ``legal_plays``; implementations must
  return one of those cards (None only when it is empty).
- ``Policy``: ``act(obs, legal_actions_mask) -> action_index``, the flat
  observation interface used by the RL environment and trained networks.

Four bot tiers of increasing strength:
    RANDOM     (RandomAgent)      uniform among legal cards
    MEDIUM     (HeartAverseAgent) avoid hearts, else lowest point card
    ADVANCED   (CautiousAgent)    same heuristic as MEDIUM, separate slot
    OMNISCIENT (OmniscientAgent)  reads every hand; also drives hints
"""
from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional, Protocol, Sequence

from .deck import Card, Suit
from .play import trick_points, winning_card


class PlayerKind(IntEnum):
    HUMAN = 0
    RANDOM = 1
    MEDIUM = 2
    ADVANCED = 3
    OMNISCIENT = 4


@dataclass(frozen=True)
class TableView:
    """
    What a policy gets to see when it must play.

    ``other_hands`` is only filled for policies with ``sees_all_hands``;
    everyone else gets an empty mapping. ``played`` holds the cards of the
    tricks already completed this round (public information).
    """

    seat: int
    hand: tuple[Card, ...]
    trick: tuple[tuple[int, Card], ...]
    turn_number: int
    legal: tuple[Card, ...]
    num_players: int = 4
    other_hands: Mapping[int, tuple[Card, ...]] = field(default_factory=dict)
    leader: int = 0
    played: tuple[Card, ...] = ()
    round_scores: tuple[int, ...] = ()
    totals: tuple[int, ...] = ()
    end_score: int = 51


class CardPolicy(Protocol):
    """Decision policy for a seat at the table."""

    sees_all_hands: bool

    def choose_card(self, view: TableView) -> Optional[Card]:
        """Return one card of ``view.legal`` (None only if it is empty)."""


class Policy(Protocol):
    """Stateless or stateful decision policy working on flat observations."""

    def act(self, obs: Sequence[float], legal_actions_mask: Iterable[bool]) -> int:
        """
        Choose an action index given an observation and a boolean legal-action mask.

        Implementations must only return indices where ``legal_actions_mask[i]`` is
        true; callers are free to validate or fall back to a default if needed.
        """


class Hint(NamedTuple):
    """Suggested card for a seat; ``highlight`` asks the UI to mark it."""
    card: Optional[Card]
    highlight: bool
    message: str


@dataclass
class RandomAgent:
    """
    Tier 1: samples uniformly among legal cards.

    Also usable as a flat-observation ``Policy``:
        agent = RandomAgent(seed=42)
        action = agent.act(obs, legal_actions_mask)
    """

    seed: int | None = None
    sees_all_hands: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        self._rng = random.Random(self.seed)

    def choose_card(self, view: TableView) -> Optional[Card]:
        if not view.legal:
            return None
        return self._rng.choice(list(view.legal))

    def act(self, obs: Sequence[float], legal_actions_mask: Iterable[bool]) -> int:
        """Pick a random legal action given an observation and a boolean mask."""
        legal_indices: List[int] = [i for i, ok in enumerate(legal_actions_mask) if ok]
        if not legal_indices:
            raise ValueError("No legal actions available for RandomAgent")
        return self._rng.choice(legal_indices)


def _avoid_hearts(legal: Sequence[Card], rng: random.Random) -> Optional[Card]:
    if not legal:
        return None
    non_hearts = [c for c in legal if not c.is_heart]
    if non_hearts:
        return rng.choice(non_hearts)
    # min keeps the first card on ties, i.e. hand order
    return min(legal, key=lambda c: c.point_value)


@dataclass
class HeartAverseAgent:
    """Tier 2: random non-heart card if any, else the legal card worth the fewest points."""

    seed: int | None = None
    sees_all_hands: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        self._rng = random.Random(self.seed)

    def choose_card(self, view: TableView) -> Optional[Card]:
        return _avoid_hearts(view.legal, self._rng)


@dataclass
class CautiousAgent:
    """
    Tier 3. Plays the tier 2 heuristic for now; kept as its own class so a
    stronger partial-information strategy can replace it without touching
    the game loop.
    """

    seed: int | None = None
    sees_all_hands: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        self._rng = random.Random(self.seed)

    def choose_card(self, view: TableView) -> Optional[Card]:
        return _avoid_hearts(view.legal, self._rng)


def _strength(c: Card) -> int:
    return c.strength


def _lowest(cards: Sequence[Card]) -> Card:
    return min(cards, key=_strength)


def _highest(cards: Sequence[Card]) -> Card:
    return max(cards, key=_strength)


def suit_risks(
    hand: Sequence[Card],
    other_hands: Mapping[int, Sequence[Card]],
    suits: Sequence[Suit],
) -> Dict[Suit, int]:
    """
    For each suit: how many cards in the other hands outrank our highest card of that suit.
    A suit we do not hold scores 0.
    """
    risks: Dict[Suit, int] = {}
    for suit in suits:
        ours = [c for c in hand if c.suit == suit]
        if not ours:
            risks[suit] = 0
            continue
        top = _highest(ours).strength
        risks[suit] = sum(
            1
            for cards in other_hands.values()
            for c in cards
            if c.suit == suit and c.strength > top
        )
    return risks


@dataclass
class OmniscientAgent:
    """
    Tier 4: full-information heuristic. Requires ``other_hands`` in the view;
    the game fills it because ``sees_all_hands`` is set.

    Leading: among non-heart legal cards, pick the suit where opponents hold
    the most cards above our best one and lead its lowest card. Only hearts:
    lead the lowest.

    Following: last to play on a trick holding points, try to duck (highest
    non-winning card of the led suit), else win as cheaply as possible, else
    dump the highest heart or highest card. Last to play on a clean trick,
    win it cheaply. Otherwise play low, and only take clean tricks.
    """

    sees_all_hands: bool = field(default=True, init=False)

    def choose_card(self, view: TableView) -> Optional[Card]:
        if not view.legal:
            return None
        if not view.trick:
            return self._lead(view)
        return self._follow(view)

    def _lead(self, view: TableView) -> Card:
        non_hearts = [c for c in view.legal if not c.is_heart]
        if not non_hearts:
            return _lowest(view.legal)
        suits: List[Suit] = []
        for c in non_hearts:
            if c.suit not in suits:
                suits.append(c.suit)
        risks = suit_risks(view.hand, view.other_hands, suits)
        # max keeps the first suit on ties (order of appearance in hand)
        riskiest = max(suits, key=lambda s: risks[s])
        return _lowest([c for c in non_hearts if c.suit == riskiest])

    def _follow(self, view: TableView) -> Card:
        legal = list(view.legal)
        trick = view.trick
        led = trick[0][1].suit
        is_last = len(trick) == view.num_players - 1
        points = trick_points([c for _, c in trick])
        best = winning_card(trick)
        assert best is not None

        same_suit = [c for c in legal if c.suit == led]
        beating = [c for c in same_suit if c.strength > best.strength]

        if is_last and points > 0:
            ducking = [c for c in same_suit if c not in beating]
            if ducking:
                return _highest(ducking)
            if same_suit:
                return _lowest(beating)
            hearts = [c for c in legal if c.is_heart]
            if hearts:
                return _highest(hearts)
            return _highest(legal)

        if is_last and points == 0 and beating:
            return _lowest(beating)

        if same_suit and not beating:
            return _lowest(same_suit)
        if beating and not any(c.is_heart for _, c in trick):
            return _lowest(beating)
        return _lowest(legal)


def best_card_for(view: TableView, policy: Optional[CardPolicy] = None) -> Hint:
    """
    Hint for the seat in ``view``: the card the omniscient policy would play.
    Read-only; the view must already carry ``other_hands``.
    """
    policy = policy or OmniscientAgent()
    card = policy.choose_card(view)
    if card is None:
        return Hint(card=None, highlight=False, message="No valid card to play.")
    return Hint(card=card, highlight=True, message=f"Best card to play: {card.long_name()}")


def kind_of(agent: Optional[CardPolicy]) -> PlayerKind:
    """Tier of a built-in agent; unknown policies (e.g. trained networks) count as OMNISCIENT only if they see all hands."""
    if agent is None:
        return PlayerKind.HUMAN
    for cls, kind in (
        (RandomAgent, PlayerKind.RANDOM),
        (HeartAverseAgent, PlayerKind.MEDIUM),
        (CautiousAgent, PlayerKind.ADVANCED),
        (OmniscientAgent, PlayerKind.OMNISCIENT),
    ):
        if isinstance(agent, cls):
            return kind
    return PlayerKind.OMNISCIENT if agent.sees_all_hands else PlayerKind.ADVANCED


def make_agent(kind: PlayerKind, seed: int | None = None) -> Optional[CardPolicy]:
    """Bot policy for a tier; HUMAN seats have no agent."""
    if kind == PlayerKind.HUMAN:
        return None
    if kind == PlayerKind.RANDOM:
        return RandomAgent(seed=seed)
    if kind == PlayerKind.MEDIUM:
        return HeartAverseAgent(seed=seed)
    if kind == PlayerKind.ADVANCED:
        return CautiousAgent(seed=seed)
    if kind == PlayerKind.OMNISCIENT:
        return OmniscientAgent()
    raise ValueError(f"Unknown player kind: {kind}")


__all__ = [
    "PlayerKind",
    "TableView",
    "CardPolicy",
    "Policy",
    "Hint",
    "RandomAgent",
    "HeartAverseAgent",
    "CautiousAgent",
    "OmniscientAgent",
    "suit_risks",
    "best_card_for",
    "kind_of",
    "make_agent",
]
