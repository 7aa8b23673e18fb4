"""
Population, Elo, and simple tournament orchestration.

Used to rank the bot tiers (and trained checkpoints) against each other.
This layer only knows about agents identified by IDs with Elo ratings and a
factory that turns them into table policies. Lower game totals are better,
so a seat that finishes below another "beats" it.
"""
from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from .agents import CardPolicy, PlayerKind, make_agent
from .game import GameConfig, play_game

AgentId = str


@dataclass
class Agent:
    """Metadata and rating for one agent in the population."""

    id: AgentId
    name: str
    kind: PlayerKind = PlayerKind.RANDOM
    elo: float = 1500.0
    checkpoint_path: str | None = None

    games_played: int = 0
    total_score: float = 0.0
    wins: int = 0

    def record_game(self, score: float, won: bool) -> None:
        self.games_played += 1
        self.total_score += score
        if won:
            self.wins += 1

    @property
    def label(self) -> str:
        """Tier name, or CHECKPOINT for trained agents."""
        return "CHECKPOINT" if self.checkpoint_path else self.kind.name

    @property
    def average_score(self) -> float:
        return self.total_score / self.games_played if self.games_played else 0.0


@dataclass
class Population:
    """Collection of agents taking part in tournaments."""

    agents: Dict[AgentId, Agent] = field(default_factory=dict)

    def add(self, agent: Agent) -> None:
        self.agents[agent.id] = agent

    def get(self, agent_id: AgentId) -> Agent:
        return self.agents[agent_id]

    def all_ids(self) -> List[AgentId]:
        return list(self.agents.keys())


@dataclass
class TournamentConfig:
    rounds: int = 10               # tournament rounds; every table plays one game per round
    table_size: int = 4
    max_rounds_per_game: int = 50  # cap on deals per game
    k_factor: float = 32.0
    margin_scale: float = 10.0     # score difference that maps to a ~73% result


def _expected_score(rating_a: float, rating_b: float) -> float:
    """Expected score of A vs B under standard Elo."""
    return 1.0 / (1.0 + 10 ** ((rating_b - rating_a) / 400.0))


def update_elo_pairwise(
    agents: List[Agent],
    totals: Sequence[float],
    k_factor: float = 32.0,
    margin_scale: float = 10.0,
) -> None:
    """
    Update Elo ratings from a multi-player game by treating it as pairwise comparisons.

    For each ordered pair (i, j) the result in (0, 1) comes from the total
    difference through a logistic curve: finishing well below j → ~1, well
    above → ~0, tie → 0.5. Deltas are accumulated and applied once per agent.
    """
    n = len(agents)
    assert len(totals) == n

    deltas = [0.0 for _ in range(n)]
    for i in range(n):
        for j in range(n):
            if i == j:
                continue
            diff = totals[j] - totals[i]
            score_ij = 1.0 / (1.0 + math.exp(-diff / margin_scale))
            exp_ij = _expected_score(agents[i].elo, agents[j].elo)
            deltas[i] += k_factor * (score_ij - exp_ij)

    for agent, delta in zip(agents, deltas):
        agent.elo += delta


def make_random_tables(
    agent_ids: List[AgentId],
    table_size: int,
    rng: random.Random,
) -> List[List[AgentId]]:
    """
    Split agents into random tables of given size (dropping leftovers if not divisible).
    Seat order within a table is random too.
    """
    shuffled = list(agent_ids)
    rng.shuffle(shuffled)
    tables: List[List[AgentId]] = []
    for i in range(0, len(shuffled) - len(shuffled) % table_size, table_size):
        tables.append(shuffled[i : i + table_size])
    return tables


def policy_for_agent(agent: Agent, seed: int | None = None) -> CardPolicy:
    """
    Construct a table policy for a tournament Agent.

    - With a ``checkpoint_path``, load the trained network (needs torch).
    - Otherwise, build the bot for ``agent.kind``.
    """
    if agent.checkpoint_path:
        from .policies import load_agent_from_checkpoint

        return load_agent_from_checkpoint(agent.checkpoint_path)
    policy = make_agent(agent.kind, seed=seed)
    if policy is None:
        raise ValueError(f"Agent {agent.id} has no bot policy (kind {agent.kind.name})")
    return policy


def tier_population(copies: int = 1) -> Population:
    """One agent per bot tier (times ``copies``)."""
    pop = Population()
    for kind in (PlayerKind.RANDOM, PlayerKind.MEDIUM, PlayerKind.ADVANCED, PlayerKind.OMNISCIENT):
        for c in range(copies):
            aid = f"{kind.name.lower()}-{c}"
            pop.add(Agent(id=aid, name=aid, kind=kind))
    return pop


def run_round(
    pop: Population,
    cfg: TournamentConfig,
    rng: random.Random,
    make_policy: Optional[Callable[[Agent, int], CardPolicy]] = None,
) -> None:
    """Play one game per random table and update stats and Elo."""
    make_policy = make_policy or policy_for_agent
    game_cfg = GameConfig(num_players=cfg.table_size)
    for table_ids in make_random_tables(pop.all_ids(), cfg.table_size, rng):
        table_agents = [pop.get(aid) for aid in table_ids]
        policies = [make_policy(a, rng.randrange(2**32)) for a in table_agents]
        result = play_game(policies, config=game_cfg, rng=rng, max_rounds=cfg.max_rounds_per_game)
        for seat, (agent, score) in enumerate(zip(table_agents, result.totals)):
            agent.record_game(score, won=seat == result.winner)
        update_elo_pairwise(table_agents, result.totals, k_factor=cfg.k_factor, margin_scale=cfg.margin_scale)


def run_tournament(
    pop: Population,
    cfg: TournamentConfig | None = None,
    rng: random.Random | None = None,
    make_policy: Optional[Callable[[Agent, int], CardPolicy]] = None,
) -> List[dict]:
    """Run ``cfg.rounds`` rounds and return standings sorted by Elo (best first)."""
    cfg = cfg or TournamentConfig()
    rng = rng or random.Random()
    for _ in range(cfg.rounds):
        run_round(pop, cfg, rng, make_policy=make_policy)
    return standings(pop)


def standings(pop: Population) -> List[dict]:
    rows = [
        {
            "id": a.id,
            "kind": a.label,
            "elo": a.elo,
            "games": a.games_played,
            "wins": a.wins,
            "avg_score": a.average_score,
        }
        for a in pop.agents.values()
    ]
    rows.sort(key=lambda r: r["elo"], reverse=True)
    return rows


__all__ = [
    "Agent",
    "AgentId",
    "Population",
    "TournamentConfig",
    "update_elo_pairwise",
    "make_random_tables",
    "policy_for_agent",
    "tier_population",
    "run_round",
    "run_tournament",
    "standings",
]
