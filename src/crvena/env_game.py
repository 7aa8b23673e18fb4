"""
Environment wrapper around the Crvena engine for RL.

Design:
- Single-agent view: one learning seat (e.g. player 0) per env instance.
- Episode = one game, until someone reaches the end score or ``max_rounds``
  rounds have been played.
- Reward is given at each round boundary and equals minus the change of the
  learning seat's total score (taking hearts costs, a streak penalty pays).
- Other seats are driven by bot policies (default: tiers 2, 3 and 4), so the
  learning seat only ever sees its own decision points.
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .agents import CardPolicy, CautiousAgent, HeartAverseAgent, OmniscientAgent, PlayerKind, kind_of
from .env import NUM_ACTIONS, card_from_index, encode_play_observation, legal_action_mask
from .game import DEFAULT_NAMES, Game, GameConfig, Phase, Player


@dataclass
class StepResult:
    """Container returned by CrvenaEnv.step/reset for clarity."""

    obs: List[float]
    reward: float
    done: bool
    info: dict
    legal_actions_mask: List[bool]


def default_opponents(rng: random.Random) -> List[CardPolicy]:
    return [
        HeartAverseAgent(seed=rng.randrange(2**32)),
        CautiousAgent(seed=rng.randrange(2**32)),
        OmniscientAgent(),
    ]


class CrvenaEnv:
    """
    Crvena environment (single learning seat, full game episodes).

    Public API (minimal, Gym-like but without external dependency):
      - reset() -> StepResult          # start new game, first decision for learning seat
      - step(action: int) -> StepResult
    """

    def __init__(
        self,
        learning_player: int = 0,
        opponents: Optional[Sequence[CardPolicy]] = None,
        config: Optional[GameConfig] = None,
        max_rounds: int = 50,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config or GameConfig()
        if self.config.num_players > 4:
            raise ValueError("CrvenaEnv observations support at most 4 players")
        assert 0 <= learning_player < self.config.num_players
        self.learning_player = learning_player
        self.max_rounds = max_rounds
        self.rng = rng or random.Random()
        self.opponents: List[CardPolicy] = list(opponents) if opponents is not None else default_opponents(self.rng)
        if len(self.opponents) != self.config.num_players - 1:
            raise ValueError(
                f"Expected {self.config.num_players - 1} opponents, got {len(self.opponents)}"
            )

        self._game: Optional[Game] = None
        self._last_total: int = 0
        self._phase: str = "idle"  # "play", "done"

    @property
    def game(self) -> Optional[Game]:
        return self._game

    # ---- Public API ----

    def reset(self) -> StepResult:
        """Start a new game and return the first decision for the learning seat."""
        players: List[Player] = []
        opponents = iter(self.opponents)
        for seat in range(self.config.num_players):
            name = DEFAULT_NAMES[seat] if seat < len(DEFAULT_NAMES) else f"Seat {seat}"
            if seat == self.learning_player:
                # No agent: the game stops and waits for step() on this seat.
                players.append(Player(name=name, kind=PlayerKind.HUMAN))
            else:
                agent = next(opponents)
                players.append(Player(name=name, kind=kind_of(agent), agent=agent))

        self._game = Game(players, config=self.config, rng=self.rng, auto_deal=False)
        self._game.start_round()
        self._last_total = 0
        self._phase = "play"
        return self._advance_until_learning_turn_or_end()

    def step(self, action: int) -> StepResult:
        """Play the card with index ``action`` for the learning seat."""
        if self._phase != "play":
            return StepResult(
                obs=[],
                reward=0.0,
                done=True,
                info={"phase": "done"},
                legal_actions_mask=[False] * NUM_ACTIONS,
            )
        assert self._game is not None
        game = self._game
        if not (0 <= action < NUM_ACTIONS):
            raise ValueError(f"Invalid play action {action}")

        card = card_from_index(action)
        if card not in game.players[self.learning_player].hand:
            raise ValueError("Chosen card index not found in hand")
        if card not in game.legal_cards(self.learning_player):
            raise ValueError("Chosen card is not a legal move")

        game.submit_move(self.learning_player, card)
        return self._advance_until_learning_turn_or_end()

    # ---- Internal helpers ----

    def _round_reward(self) -> float:
        assert self._game is not None
        total = self._game.players[self.learning_player].total_score
        reward = -float(total - self._last_total)
        self._last_total = total
        return reward

    def _advance_until_learning_turn_or_end(self) -> StepResult:
        """Simulate other seats until the learning seat must act, or the game ends."""
        assert self._game is not None
        game = self._game
        reward = 0.0

        while True:
            game.advance_bots()
            if game.phase == Phase.AWAITING_PLAY:
                seat = self.learning_player
                return StepResult(
                    obs=encode_play_observation(game, seat),
                    reward=reward,
                    done=False,
                    info={
                        "phase": "play",
                        "round": game.round_index,
                        "dealer": game.dealer,
                        "current_trick_len": len(game.current_trick),
                    },
                    legal_actions_mask=legal_action_mask(game.legal_cards(seat)),
                )

            # Round boundary (ROUND_END or GAME_OVER)
            reward += self._round_reward()
            if game.is_over or game.round_index >= self.max_rounds:
                self._phase = "done"
                return StepResult(
                    obs=[],
                    reward=reward,
                    done=True,
                    info={
                        "phase": "done",
                        "totals": game.totals(),
                        "winner": game.winner,
                        "rounds_played": game.round_index,
                    },
                    legal_actions_mask=[False] * NUM_ACTIONS,
                )
            game.start_round()


__all__ = ["CrvenaEnv", "StepResult", "default_opponents"]
