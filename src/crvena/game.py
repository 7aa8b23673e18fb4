"""
Round and game orchestration: deal → play tricks → score → next dealer or game over.

The ``Game`` object owns all mutable per-round state (deck, hands, trick,
scores) and only changes it through ``start_round``, ``submit_move`` and
``restart``. Presentation code subscribes to ``GameEvent``s instead of
reading internals; bots are driven with ``play_bot_turn``/``advance_bots``.
"""
from __future__ import annotations

import logging
import random
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterator, List, NamedTuple, Optional, Sequence

from .agents import CardPolicy, Hint, PlayerKind, TableView, best_card_for, kind_of, make_agent
from .deal import CARDS_PER_PLAYER, deal_round, first_to_play, next_dealer
from .deck import DECK_SIZE, Card, Deck
from .errors import ActionOutOfTurn, DeckExhausted, GameOverError, IllegalMove, InvalidPhase
from .play import EARLY_RED_TRICKS, legal_plays, resolve_trick
from .scoring import (
    END_SCORE,
    STREAK_LENGTH,
    STREAK_PENALTY,
    apply_round_score,
    game_winner,
    is_game_over,
)

logger = logging.getLogger(__name__)

DEFAULT_NAMES = ("South", "West", "North", "East")


@dataclass
class GameConfig:
    """Table rules. Defaults are the standard 4-player game to 51."""

    num_players: int = 4
    cards_per_player: int = CARDS_PER_PLAYER
    end_score: int = END_SCORE
    early_red_tricks: int = EARLY_RED_TRICKS
    streak_length: int = STREAK_LENGTH
    streak_penalty: int = STREAK_PENALTY

    def validate(self) -> None:
        if self.num_players < 2:
            raise ValueError(f"num_players must be at least 2, got {self.num_players}")
        if self.cards_per_player < 1:
            raise ValueError(f"cards_per_player must be positive, got {self.cards_per_player}")
        if self.num_players * self.cards_per_player > DECK_SIZE:
            raise ValueError(
                f"{self.num_players} players × {self.cards_per_player} cards exceeds the {DECK_SIZE}-card deck"
            )
        if self.end_score < 1 or self.streak_length < 1:
            raise ValueError("end_score and streak_length must be positive")


class Phase(str, Enum):
    DEALING = "dealing"
    AWAITING_PLAY = "awaiting_play"
    TRICK_RESOLVING = "trick_resolving"
    ROUND_END = "round_end"
    GAME_OVER = "game_over"


class EventType(str, Enum):
    ROUND_STARTED = "round_started"
    TRICK_STARTED = "trick_started"
    CARD_PLAYED = "card_played"
    TRICK_RESOLVED = "trick_resolved"
    ROUND_ENDED = "round_ended"
    GAME_OVER = "game_over"


@dataclass(frozen=True)
class GameEvent:
    """One fact for the presentation layer. Unused fields stay None/empty."""

    type: EventType
    seat: int
    card: Optional[Card] = None
    trick_points: Optional[int] = None
    winner_seat: Optional[int] = None
    standings: tuple[int, ...] = ()
    round_scores: tuple[int, ...] = ()
    trick: tuple[tuple[int, Card], ...] = ()


@dataclass
class Player:
    """A seat at the table. ``agent`` is None for human seats."""

    name: str
    kind: PlayerKind = PlayerKind.HUMAN
    agent: Optional[CardPolicy] = None
    hand: List[Card] = field(default_factory=list)
    total_score: int = 0
    round_score: int = 0
    zero_streak: int = 0

    @property
    def is_human(self) -> bool:
        return self.agent is None

    def reset_scores(self) -> None:
        self.total_score = 0
        self.round_score = 0
        self.zero_streak = 0


Listener = Callable[[GameEvent], None]


class Game:
    """
    State machine for one game:
    DEALING → AWAITING_PLAY → TRICK_RESOLVING → ROUND_END → (DEALING | GAME_OVER).

    With ``auto_deal`` (default) the next round is dealt as soon as a round
    ends; otherwise the game waits in ROUND_END until ``start_round()``.
    """

    def __init__(
        self,
        players: Sequence[Player],
        config: Optional[GameConfig] = None,
        rng: Optional[random.Random] = None,
        dealer: Optional[int] = None,
        auto_deal: bool = True,
    ) -> None:
        self.config = config or GameConfig()
        self.config.validate()
        if len(players) != self.config.num_players:
            raise ValueError(f"Expected {self.config.num_players} players, got {len(players)}")
        self.rng = rng or random.Random()
        self.players: List[Player] = list(players)
        self.deck = Deck(self.rng)
        self.dealer: int = self.rng.randrange(self.num_players) if dealer is None else dealer
        self.auto_deal = auto_deal

        self.phase: Phase = Phase.DEALING
        self.current_trick: List[tuple[int, Card]] = []
        self.leader: int = first_to_play(self.dealer, self.num_players)
        self.current_player: int = self.leader
        self.turn_number: int = 0  # completed tricks this round
        self.round_index: int = 0
        self.round_trick_points: List[int] = []
        self.winner: Optional[int] = None

        self.events: List[GameEvent] = []
        self._listeners: List[Listener] = []
        self._pending: List[GameEvent] = []
        self._depth = 0

    # ---- Read-only queries ----

    @property
    def num_players(self) -> int:
        return self.config.num_players

    @property
    def is_over(self) -> bool:
        return self.phase == Phase.GAME_OVER

    def totals(self) -> tuple[int, ...]:
        return tuple(p.total_score for p in self.players)

    def round_scores(self) -> tuple[int, ...]:
        return tuple(p.round_score for p in self.players)

    def legal_cards(self, seat: int) -> list[Card]:
        """Legal cards for ``seat`` against the current trick. Empty hand → empty list."""
        return legal_plays(
            self.players[seat].hand,
            self.current_trick,
            self.turn_number,
            early_red_tricks=self.config.early_red_tricks,
        )

    def view(self, seat: int, reveal_all: bool = False) -> TableView:
        """Snapshot for a policy. ``reveal_all`` exposes the other hands."""
        others = {}
        if reveal_all:
            others = {i: tuple(p.hand) for i, p in enumerate(self.players) if i != seat}
        return TableView(
            seat=seat,
            hand=tuple(self.players[seat].hand),
            trick=tuple(self.current_trick),
            turn_number=self.turn_number,
            legal=tuple(self.legal_cards(seat)),
            num_players=self.num_players,
            other_hands=others,
            leader=self.leader,
            played=tuple(self.deck.discard_pile),
            round_scores=self.round_scores(),
            totals=self.totals(),
            end_score=self.config.end_score,
        )

    def snapshot(self, seat: int) -> TableView:
        """View for ``seat`` as its own policy would get it."""
        agent = self.players[seat].agent
        return self.view(seat, reveal_all=agent is not None and agent.sees_all_hands)

    def hint(self, seat: int) -> Hint:
        """Best card for ``seat`` according to the omniscient policy. Never mutates state."""
        if self.phase != Phase.AWAITING_PLAY or seat != self.current_player:
            return Hint(card=None, highlight=False, message="It's not your turn to play.")
        return best_card_for(self.view(seat, reveal_all=True))

    def card_count(self) -> int:
        """Cards across draw pile, discard pile, hands and the current trick (always 32)."""
        return (
            len(self.deck.draw_pile)
            + len(self.deck.discard_pile)
            + sum(len(p.hand) for p in self.players)
            + len(self.current_trick)
        )

    def all_cards(self) -> list[Card]:
        cards = list(self.deck.draw_pile) + list(self.deck.discard_pile)
        for p in self.players:
            cards.extend(p.hand)
        cards.extend(c for _, c in self.current_trick)
        return cards

    # ---- Events ----

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _emit(self, event: GameEvent) -> None:
        self._pending.append(event)

    @contextmanager
    def _transition(self) -> Iterator[None]:
        """
        Wrap a public transition. Events queued inside are recorded and sent
        to listeners only once the outermost transition has settled, so a
        failing listener never sees (or leaves) a half-updated game.
        """
        self._depth += 1
        try:
            yield
        finally:
            self._depth -= 1
            if self._depth == 0:
                self._flush()

    def _flush(self) -> None:
        pending, self._pending = self._pending, []
        self.events.extend(pending)
        for event in pending:
            for listener in self._listeners:
                listener(event)

    # ---- Transitions ----

    def start_round(self) -> None:
        """Dealing: rebuild and shuffle the deck, clear round state, deal, first player leads."""
        with self._transition():
            self._start_round()

    def _start_round(self) -> None:
        if self.phase == Phase.GAME_OVER:
            raise GameOverError(-1, None, self.phase.value)
        if self.phase not in (Phase.DEALING, Phase.ROUND_END):
            raise InvalidPhase(f"Cannot deal during {self.phase.value}")

        self.phase = Phase.DEALING
        self.deck.initialize()
        for p in self.players:
            p.hand.clear()
            p.round_score = 0
        self.current_trick = []
        self.turn_number = 0
        self.round_trick_points = []

        try:
            deal = deal_round(
                self.deck,
                num_players=self.num_players,
                cards_per_player=self.config.cards_per_player,
                dealer=self.dealer,
            )
        except DeckExhausted:
            logger.error("Deck exhausted while dealing round %d; aborting round", self.round_index + 1)
            raise
        for p, hand in zip(self.players, deal.hands):
            p.hand.extend(hand)

        self.round_index += 1
        self.leader = first_to_play(self.dealer, self.num_players)
        self.current_player = self.leader
        self.phase = Phase.AWAITING_PLAY
        logger.debug("Round %d dealt by seat %d; seat %d leads", self.round_index, self.dealer, self.leader)
        self._emit(GameEvent(type=EventType.ROUND_STARTED, seat=self.dealer, standings=self.totals()))
        self._emit(GameEvent(type=EventType.TRICK_STARTED, seat=self.leader))

    def submit_move(self, seat: int, card: Card) -> None:
        """
        Play ``card`` for ``seat``. Rejections leave the state untouched:
        ActionOutOfTurn for the wrong seat or phase, IllegalMove for a card
        outside ``legal_cards(seat)``.
        """
        with self._transition():
            self._submit_move(seat, card)

    def _submit_move(self, seat: int, card: Card) -> None:
        if self.phase == Phase.GAME_OVER:
            logger.warning("Seat %d played %s after the game ended", seat, card)
            raise GameOverError(seat, None, self.phase.value, card)
        if self.phase != Phase.AWAITING_PLAY or seat != self.current_player:
            logger.warning(
                "Seat %d played %s out of turn (current seat %d, phase %s)",
                seat, card, self.current_player, self.phase.value,
            )
            raise ActionOutOfTurn(seat, self.current_player, self.phase.value, card)

        hand = self.players[seat].hand
        legal = self.legal_cards(seat)
        if card not in legal:
            reason = self._illegal_reason(seat, card)
            logger.warning("Rejected %s from seat %d: %s", card, seat, reason)
            raise IllegalMove(seat, card, legal, reason)

        hand.remove(card)
        self.current_trick.append((seat, card))
        self._emit(GameEvent(type=EventType.CARD_PLAYED, seat=seat, card=card))

        if len(self.current_trick) < self.num_players:
            self.current_player = (self.current_player + 1) % self.num_players
            return
        self.phase = Phase.TRICK_RESOLVING
        self._resolve_current_trick()

    def _illegal_reason(self, seat: int, card: Card) -> str:
        hand = self.players[seat].hand
        if card not in hand:
            return "card not in hand"
        if self.turn_number < self.config.early_red_tricks and card.is_red:
            return f"red cards cannot be played during the first {self.config.early_red_tricks} tricks"
        return "must follow the led suit"

    def _resolve_current_trick(self) -> None:
        trick = list(self.current_trick)
        result = resolve_trick(trick)
        winner = (self.leader + result.winner_offset) % self.num_players
        self.players[winner].round_score += result.points

        for _, c in trick:
            self.deck.discard(c)
        self.current_trick = []
        self.turn_number += 1
        self.round_trick_points.append(result.points)
        logger.debug("Trick %d won by seat %d for %d points", self.turn_number, winner, result.points)
        self._emit(
            GameEvent(
                type=EventType.TRICK_RESOLVED,
                seat=winner,
                trick_points=result.points,
                winner_seat=winner,
                trick=tuple(trick),
            )
        )

        if any(p.hand for p in self.players):
            self.leader = winner
            self.current_player = winner
            self.phase = Phase.AWAITING_PLAY
            self._emit(GameEvent(type=EventType.TRICK_STARTED, seat=winner))
            return
        self._end_round()

    def _end_round(self) -> None:
        self.phase = Phase.ROUND_END
        for p in self.players:
            update = apply_round_score(
                p.total_score,
                p.round_score,
                p.zero_streak,
                streak_length=self.config.streak_length,
                streak_penalty=self.config.streak_penalty,
            )
            if update.penalised:
                logger.debug("%s hit a zero streak: -%d", p.name, self.config.streak_penalty)
            p.total_score = update.total
            p.zero_streak = update.zero_streak

        totals = self.totals()
        round_scores = self.round_scores()
        self._emit(
            GameEvent(
                type=EventType.ROUND_ENDED,
                seat=self.dealer,
                standings=totals,
                round_scores=round_scores,
            )
        )

        if is_game_over(totals, self.config.end_score):
            self.winner = game_winner(totals)
            self.phase = Phase.GAME_OVER
            logger.info("Game over after %d rounds; seat %d wins", self.round_index, self.winner)
            self._emit(GameEvent(type=EventType.GAME_OVER, seat=self.winner, winner_seat=self.winner, standings=totals))
            return

        self.dealer = next_dealer(round_scores)
        if self.auto_deal:
            self._start_round()

    def restart(self) -> None:
        """Reset every score and streak and deal a fresh round."""
        for p in self.players:
            p.reset_scores()
            p.hand.clear()
        self.current_trick = []
        self.winner = None
        self.round_index = 0
        self.phase = Phase.DEALING
        self.start_round()

    # ---- Bots ----

    def play_bot_turn(self) -> Card:
        """Let the current seat's agent choose a card and play it."""
        if self.phase != Phase.AWAITING_PLAY:
            raise InvalidPhase(f"No card to play during {self.phase.value}")
        seat = self.current_player
        agent = self.players[seat].agent
        if agent is None:
            raise InvalidPhase(f"Seat {seat} is human; waiting for submit_move")
        card = agent.choose_card(self.snapshot(seat))
        if card is None:
            raise IllegalMove(seat, card, self.legal_cards(seat), "policy returned no card")
        self.submit_move(seat, card)
        return card

    def advance_bots(self) -> int:
        """
        Play bot turns until a human must act, the game is over, or (without
        auto_deal) the round has ended. Returns the number of cards played.
        """
        played = 0
        while self.phase == Phase.AWAITING_PLAY and not self.players[self.current_player].is_human:
            self.play_bot_turn()
            played += 1
        return played

    run_until_human_or_end = advance_bots


class GameResult(NamedTuple):
    totals: tuple[int, ...]
    winner: int
    rounds: int
    round_points: list[int]  # trick points summed per round (10 each)


def make_players(
    kinds: Sequence[PlayerKind],
    rng: Optional[random.Random] = None,
    names: Optional[Sequence[str]] = None,
) -> list[Player]:
    """Players for the given tiers, each bot with its own seed drawn from ``rng``."""
    rng = rng or random.Random()
    players = []
    for i, kind in enumerate(kinds):
        name = names[i] if names else (DEFAULT_NAMES[i] if i < len(DEFAULT_NAMES) else f"Seat {i}")
        agent = make_agent(kind, seed=rng.randrange(2**32))
        players.append(Player(name=name, kind=kind, agent=agent))
    return players


def new_game(
    kinds: Sequence[PlayerKind],
    config: Optional[GameConfig] = None,
    rng: Optional[random.Random] = None,
    dealer: Optional[int] = None,
) -> Game:
    """Build a game for the given tiers and deal the first round."""
    rng = rng or random.Random()
    game = Game(make_players(kinds, rng), config=config, rng=rng, dealer=dealer)
    game.start_round()
    return game


def play_game(
    agents: Sequence[CardPolicy],
    config: Optional[GameConfig] = None,
    rng: Optional[random.Random] = None,
    max_rounds: Optional[int] = None,
) -> GameResult:
    """
    Play a full all-bot game. ``max_rounds`` caps the length; in that case
    the winner is whoever is lowest when the cap is hit.
    """
    rng = rng or random.Random()
    players = [
        Player(name=DEFAULT_NAMES[i] if i < len(DEFAULT_NAMES) else f"Seat {i}", kind=kind_of(a), agent=a)
        for i, a in enumerate(agents)
    ]
    game = Game(players, config=config, rng=rng, auto_deal=False)
    round_points: list[int] = []
    game.start_round()
    while True:
        game.advance_bots()
        round_points.append(sum(game.round_trick_points))
        if game.is_over:
            break
        if max_rounds is not None and game.round_index >= max_rounds:
            break
        game.start_round()
    winner = game.winner if game.winner is not None else game_winner(game.totals())
    return GameResult(totals=game.totals(), winner=winner, rounds=game.round_index, round_points=round_points)


__all__ = [
    "GameConfig",
    "Phase",
    "EventType",
    "GameEvent",
    "Player",
    "Game",
    "GameResult",
    "make_players",
    "new_game",
    "play_game",
]
