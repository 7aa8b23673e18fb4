"""Crvena game engine (32-card, 4-player, avoid the hearts)."""

__version__ = "0.1.0"

from .errors import ActionOutOfTurn, CrvenaError, DeckExhausted, GameOverError, IllegalMove, InvalidPhase
from .deck import Card, Deck, Rank, Suit, make_deck_32
from .deal import Deal, deal_round, first_to_play, next_dealer
from .play import legal_plays, resolve_trick, trick_winner
from .scoring import apply_round_score, game_winner, is_game_over, points_in_cards
from .agents import (
    PlayerKind,
    TableView,
    Hint,
    RandomAgent,
    HeartAverseAgent,
    CautiousAgent,
    OmniscientAgent,
    best_card_for,
    make_agent,
)
from .game import (
    Game,
    GameConfig,
    GameEvent,
    EventType,
    Phase,
    Player,
    GameResult,
    make_players,
    new_game,
    play_game,
)
