"""
Command-line interface for simulating Crvena games, ranking the bot tiers, and
training / evaluating RL seats.

Usage examples (after installing in editable mode):

    python -m crvena.cli simulate --tiers random,medium,advanced,omniscient --games 3
    python -m crvena.cli tournament --rounds 20 --copies 2
    python -m crvena.cli train-ppo --updates 10 --checkpoint-dir checkpoints/run1   # needs the rl extra
"""
from __future__ import annotations

import argparse
import logging
import random
from pathlib import Path
from typing import List, Optional

from .agents import PlayerKind
from .deal import CARDS_PER_PLAYER
from .deck import DECK_SIZE
from .game import Game, GameConfig, GameEvent, EventType, make_players
from .tournament import Agent, TournamentConfig, run_tournament, tier_population

MAX_SEATS = DECK_SIZE // CARDS_PER_PLAYER


def _parse_tiers(value: str) -> List[PlayerKind]:
    kinds: List[PlayerKind] = []
    for name in value.split(","):
        name = name.strip().upper()
        try:
            kind = PlayerKind[name]
        except KeyError:
            raise argparse.ArgumentTypeError(f"Unknown bot tier: {name.lower()}") from None
        if kind == PlayerKind.HUMAN:
            raise argparse.ArgumentTypeError("simulate only runs bot seats")
        kinds.append(kind)
    if not 2 <= len(kinds) <= MAX_SEATS:
        raise argparse.ArgumentTypeError(f"simulate needs 2 to {MAX_SEATS} seats, got {len(kinds)}")
    return kinds


def _add_common_game_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--end-score",
        type=int,
        default=51,
        help="Total at which the game ends (checked at round boundaries).",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=0,
        help="Random seed for reproducibility.",
    )


def _add_simulate_parser(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser(
        "simulate",
        help="Play full all-bot games and print the standings.",
    )
    parser.add_argument(
        "--tiers",
        type=_parse_tiers,
        default=[PlayerKind.RANDOM, PlayerKind.MEDIUM, PlayerKind.ADVANCED, PlayerKind.OMNISCIENT],
        help="Comma-separated bot tier per seat (random, medium, advanced, omniscient).",
    )
    parser.add_argument(
        "--games",
        type=int,
        default=1,
        help="Number of games to play.",
    )
    parser.add_argument(
        "--show-tricks",
        action="store_true",
        help="Print every trick as it is resolved.",
    )
    _add_common_game_args(parser)
    parser.set_defaults(func=_cmd_simulate)


class _EventPrinter:
    """Prints standings from events alone; the game may already be a round ahead."""

    def __init__(self, game: Game, show_tricks: bool) -> None:
        self.names = [p.name for p in game.players]
        self.kinds = [p.kind for p in game.players]
        self.show_tricks = show_tricks
        self.rounds = 0
        self.tricks = 0

    def __call__(self, event: GameEvent) -> None:
        if event.type == EventType.ROUND_STARTED:
            self.tricks = 0
        elif event.type == EventType.TRICK_RESOLVED:
            self.tricks += 1
            if self.show_tricks:
                cards = " ".join(f"{self.names[s]}:{c}" for s, c in event.trick)
                print(f"  trick {self.tricks}: {cards} -> {self.names[event.winner_seat]} (+{event.trick_points})")
        elif event.type == EventType.ROUND_ENDED:
            self.rounds += 1
            scores = ", ".join(
                f"{name}={total} ({r:+d})" for name, total, r in zip(self.names, event.standings, event.round_scores)
            )
            print(f"[round {self.rounds}] {scores}", flush=True)
        elif event.type == EventType.GAME_OVER:
            seat = event.winner_seat
            print(f"Game over: {self.names[seat]} ({self.kinds[seat].name.lower()}) wins with {event.standings[seat]}")


def _cmd_simulate(args: argparse.Namespace) -> None:
    rng = random.Random(args.seed)
    config = GameConfig(num_players=len(args.tiers), end_score=args.end_score)
    wins = [0] * len(args.tiers)
    for g in range(1, args.games + 1):
        print(f"=== game {g}/{args.games} ===")
        game = Game(make_players(args.tiers, rng), config=config, rng=rng)
        game.subscribe(_EventPrinter(game, args.show_tricks))
        game.start_round()
        game.advance_bots()
        assert game.winner is not None
        wins[game.winner] += 1
    summary = ", ".join(f"{k.name.lower()}={w}" for k, w in zip(args.tiers, wins))
    print(f"Wins per seat: {summary}")


def _add_tournament_parser(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser(
        "tournament",
        help="Rank the bot tiers against each other with Elo.",
    )
    parser.add_argument(
        "--rounds",
        type=int,
        default=10,
        help="Tournament rounds (one game per table per round).",
    )
    parser.add_argument(
        "--copies",
        type=int,
        default=1,
        help="Agents per tier in the population.",
    )
    parser.add_argument(
        "--max-rounds-per-game",
        type=int,
        default=50,
        help="Cap on deals per game.",
    )
    parser.add_argument(
        "--checkpoint-dir",
        type=str,
        default=None,
        help="Optional trained checkpoint to enter as an extra agent (needs the rl extra).",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=0,
        help="Random seed for tables and games.",
    )
    parser.set_defaults(func=_cmd_tournament)


def _cmd_tournament(args: argparse.Namespace) -> None:
    pop = tier_population(copies=args.copies)
    if args.checkpoint_dir:
        for c in range(args.copies):
            pop.add(Agent(id=f"nn-{c}", name=f"nn-{c}", checkpoint_path=args.checkpoint_dir))
    cfg = TournamentConfig(rounds=args.rounds, max_rounds_per_game=args.max_rounds_per_game)
    rows = run_tournament(pop, cfg, rng=random.Random(args.seed))
    for row in rows:
        print(
            f"{row['id']:<16} {row['kind']:<11} elo={row['elo']:7.1f} "
            f"games={row['games']:3d} wins={row['wins']:3d} avg={row['avg_score']:6.2f}"
        )


def _add_train_ppo_parser(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser(
        "train-ppo",
        help="Train a seat with custom PPO against the bot tiers.",
    )
    parser.add_argument(
        "--updates",
        type=int,
        default=100,
        help="PPO updates (collect a batch, then optimise).",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=2048,
        help="Decisions of the learning seat per update.",
    )
    parser.add_argument(
        "--minibatch-size",
        type=int,
        default=256,
        help="Decisions per gradient step.",
    )
    parser.add_argument(
        "--update-epochs",
        type=int,
        default=4,
        help="Passes over each batch.",
    )
    parser.add_argument(
        "--learning-rate",
        type=float,
        default=3e-4,
        help="Adam learning rate.",
    )
    parser.add_argument(
        "--device",
        type=str,
        default="cpu",
        help='Torch device string, e.g. "cpu" or "cuda".',
    )
    parser.add_argument(
        "--checkpoint-dir",
        type=str,
        default="checkpoints/ppo_run",
        help="Where policy.pt and config.json are written.",
    )
    _add_common_game_args(parser)
    parser.set_defaults(func=_cmd_train_ppo)


def _cmd_train_ppo(args: argparse.Namespace) -> None:
    import torch

    from .env_game import CrvenaEnv
    from .training import CrvenaPPOTrainer, PPOConfig

    device = torch.device(args.device)
    env = CrvenaEnv(
        learning_player=0,
        config=GameConfig(end_score=args.end_score),
        rng=random.Random(args.seed),
    )
    cfg = PPOConfig(
        learning_rate=args.learning_rate,
        batch_size=args.batch_size,
        minibatch_size=args.minibatch_size,
        update_epochs=args.update_epochs,
    )
    trainer = CrvenaPPOTrainer(env, cfg=cfg, device=device)

    for i in range(1, args.updates + 1):
        stats = trainer.update(seed=args.seed + i)
        print(
            f"[update {i}/{args.updates}] "
            f"loss={stats.get('loss', 0.0):.4f} "
            f"policy={stats.get('policy_loss', 0.0):.4f} "
            f"value={stats.get('value_loss', 0.0):.4f} "
            f"entropy={stats.get('entropy', 0.0):.4f} "
            f"reward={stats.get('mean_reward', 0.0):.3f} "
            f"games={stats.get('games', 0)}",
            flush=True,
        )

    out_dir = Path(args.checkpoint_dir)
    trainer.save_checkpoint(str(out_dir))
    print(f"Saved checkpoint to {out_dir.resolve()}")


def _add_eval_parser(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser(
        "eval",
        help="Evaluate a policy checkpoint against the bot tiers.",
    )
    parser.add_argument(
        "--checkpoint-dir",
        type=str,
        required=True,
        help="Checkpoint directory produced by train-ppo.",
    )
    parser.add_argument(
        "--games",
        type=int,
        default=20,
        help="Number of games to play for evaluation.",
    )
    parser.add_argument(
        "--device",
        type=str,
        default="cpu",
        help='Torch device string, e.g. "cpu" or "cuda".',
    )
    _add_common_game_args(parser)
    parser.set_defaults(func=_cmd_eval)


def _cmd_eval(args: argparse.Namespace) -> None:
    import torch

    from .env_game import CrvenaEnv
    from .policies import load_policy_from_checkpoint

    device = torch.device(args.device)
    env = CrvenaEnv(
        learning_player=0,
        config=GameConfig(end_score=args.end_score),
        rng=random.Random(args.seed),
    )
    policy = load_policy_from_checkpoint(args.checkpoint_dir, device=device, deterministic=True)

    total_return = 0.0
    wins = 0
    for g in range(1, args.games + 1):
        step = env.reset()
        ep_return = 0.0
        while not step.done:
            action = policy.act(step.obs, step.legal_actions_mask)
            step = env.step(action)
            ep_return += step.reward
        total_return += ep_return
        if step.info.get("winner") == 0:
            wins += 1
        print(f"[game {g}/{args.games}] return={ep_return:.1f} totals={step.info.get('totals')}")

    print(f"Average return over {args.games} games: {total_return / float(args.games):.2f}; wins={wins}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="crvena", description="Crvena engine, bots and RL CLI.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log engine transitions.")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_simulate_parser(subparsers)
    _add_tournament_parser(subparsers)
    _add_train_ppo_parser(subparsers)
    _add_eval_parser(subparsers)
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
