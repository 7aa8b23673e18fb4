"""
PPO training for one Crvena seat against the bot tiers.

The trainer collects a fixed number of decision steps from ``CrvenaEnv``
(full games, restarting as needed), computes GAE advantages over the
round-boundary rewards, then runs clipped-PPO epochs on the
``CrvenaActorCritic`` network. Checkpoints are a directory holding the
state dict and a JSON description of the architecture.
"""
from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import List, NamedTuple, Sequence, Tuple

import numpy as np
import torch
from torch import nn
from torch.distributions import Categorical

from . import __version__
from .env import NUM_ACTIONS, OBS_SIZE
from .env_game import CrvenaEnv
from .models import CrvenaActorCritic, PolicyConfig, build_model

logger = logging.getLogger(__name__)

POLICY_FILE = "policy.pt"
CONFIG_FILE = "config.json"


@dataclass
class Transition:
    """One decision of the learning seat and what followed it."""

    obs: Sequence[float]
    action: int
    reward: float
    value: float
    log_prob: float
    done: bool
    legal_actions_mask: Sequence[bool]


class RolloutBatch(NamedTuple):
    obs: torch.Tensor
    masks: torch.Tensor
    actions: torch.Tensor
    log_probs: torch.Tensor
    advantages: torch.Tensor
    returns: torch.Tensor


@dataclass
class PPOConfig:
    obs_dim: int = OBS_SIZE
    gamma: float = 0.99
    gae_lambda: float = 0.95
    clip_coef: float = 0.2
    value_coef: float = 0.5
    entropy_coef: float = 0.01
    learning_rate: float = 3e-4
    batch_size: int = 2048       # decision steps per update
    minibatch_size: int = 256
    update_epochs: int = 4
    max_grad_norm: float = 0.5


def _mask_logits(logits: torch.Tensor, legal_actions_mask: torch.Tensor) -> torch.Tensor:
    """Push illegal actions to -1e9 without touching ``logits`` in place."""
    return logits.masked_fill(~legal_actions_mask, -1e9)


def _pad_observation(obs: Sequence[float], target_dim: int) -> List[float]:
    """
    Fit ``obs`` to ``target_dim``: zero-pad (terminal steps carry an empty
    observation) or truncate.
    """
    obs = list(obs)[:target_dim]
    return obs + [0.0] * (target_dim - len(obs))


class CrvenaPPOTrainer:
    """
    PPO trainer for a single-seat CrvenaEnv.

    CPU-first; opponents are whatever bot policies the env was built with.
    """

    def __init__(
        self,
        env: CrvenaEnv,
        cfg: PPOConfig | None = None,
        policy_cfg: PolicyConfig | None = None,
        device: torch.device | None = None,
    ) -> None:
        self.env = env
        self.cfg = cfg or PPOConfig()
        self.policy_cfg = policy_cfg or PolicyConfig(obs_dim=self.cfg.obs_dim)
        self.device = device or torch.device("cpu")
        self.model = build_model(self.policy_cfg)
        self.model.to(self.device)
        self.optimizer = torch.optim.Adam(self.model.parameters(), lr=self.cfg.learning_rate)
        self.updates_done = 0

    # ---- Checkpoints ----

    def save_checkpoint(self, directory: str) -> None:
        """Write ``policy.pt`` (state dict) and ``config.json`` (configs + version) to ``directory``."""
        out_dir = Path(directory)
        out_dir.mkdir(parents=True, exist_ok=True)
        torch.save(self.model.state_dict(), out_dir / POLICY_FILE)
        meta = {
            "version": __version__,
            "updates": self.updates_done,
            "policy_config": asdict(self.policy_cfg),
            "ppo_config": asdict(self.cfg),
        }
        (out_dir / CONFIG_FILE).write_text(json.dumps(meta, indent=2), encoding="utf-8")
        logger.info("Saved checkpoint after %d updates to %s", self.updates_done, out_dir)

    @staticmethod
    def load_model_from_checkpoint(
        directory: str,
        device: torch.device | None = None,
    ) -> Tuple[CrvenaActorCritic, PolicyConfig]:
        """Rebuild the network saved by ``save_checkpoint``, in eval mode."""
        device = device or torch.device("cpu")
        ckpt_dir = Path(directory)
        meta = json.loads((ckpt_dir / CONFIG_FILE).read_text(encoding="utf-8"))
        policy_cfg = PolicyConfig(**meta.get("policy_config", {}))
        model = build_model(policy_cfg).to(device)
        model.load_state_dict(torch.load(ckpt_dir / POLICY_FILE, map_location=device))
        model.eval()
        return model, policy_cfg

    # ---- Rollouts ----

    def _collect_rollouts(self, seed: int | None = None) -> Tuple[List[Transition], List[int]]:
        """
        Play until ``batch_size`` decisions are recorded. Returns the
        transitions and the learning seat's final total for every game
        finished along the way.
        """
        if seed is not None:
            self.env.rng.seed(seed)
            torch.manual_seed(seed)

        transitions: List[Transition] = []
        final_totals: List[int] = []
        step = self.env.reset()
        while len(transitions) < self.cfg.batch_size:
            obs_vec = _pad_observation(step.obs, self.policy_cfg.obs_dim)
            obs_t = torch.as_tensor([obs_vec], dtype=torch.float32, device=self.device)
            mask_t = torch.as_tensor([step.legal_actions_mask], dtype=torch.bool, device=self.device)
            with torch.no_grad():
                logits, value = self.model(obs_t)
                dist = Categorical(logits=_mask_logits(logits, mask_t))
                action = dist.sample()

            next_step = self.env.step(int(action.item()))
            transitions.append(
                Transition(
                    obs=obs_vec,
                    action=int(action.item()),
                    reward=float(next_step.reward),
                    value=float(value.item()),
                    log_prob=float(dist.log_prob(action).item()),
                    done=next_step.done,
                    legal_actions_mask=list(step.legal_actions_mask),
                )
            )
            if next_step.done:
                final_totals.append(next_step.info["totals"][self.env.learning_player])
                next_step = self.env.reset()
            step = next_step
        return transitions, final_totals

    def _compute_advantages(self, transitions: Sequence[Transition]) -> Tuple[np.ndarray, np.ndarray]:
        """GAE(lambda) advantages and value targets; episodes end at ``done``."""
        rewards = np.array([t.reward for t in transitions], dtype=np.float32)
        values = np.array([t.value for t in transitions] + [0.0], dtype=np.float32)
        not_done = 1.0 - np.array([t.done for t in transitions], dtype=np.float32)

        advantages = np.zeros_like(rewards)
        gae = 0.0
        for t in range(len(transitions) - 1, -1, -1):
            delta = rewards[t] + self.cfg.gamma * values[t + 1] * not_done[t] - values[t]
            gae = delta + self.cfg.gamma * self.cfg.gae_lambda * not_done[t] * gae
            advantages[t] = gae
        return advantages, advantages + values[:-1]

    def _to_batch(self, transitions: Sequence[Transition]) -> RolloutBatch:
        advantages, returns = self._compute_advantages(transitions)
        advantages = (advantages - advantages.mean()) / (advantages.std() + 1e-8)

        def tensor(data, dtype):
            return torch.as_tensor(np.asarray(data), dtype=dtype, device=self.device)

        masks = np.array([t.legal_actions_mask for t in transitions], dtype=bool).reshape(-1, NUM_ACTIONS)
        return RolloutBatch(
            obs=tensor([t.obs for t in transitions], torch.float32),
            masks=tensor(masks, torch.bool),
            actions=tensor([t.action for t in transitions], torch.long),
            log_probs=tensor([t.log_prob for t in transitions], torch.float32),
            advantages=tensor(advantages, torch.float32),
            returns=tensor(returns, torch.float32),
        )

    # ---- Optimisation ----

    def _minibatch_loss(self, batch: RolloutBatch, idx: torch.Tensor) -> Tuple[torch.Tensor, dict]:
        logits, values = self.model(batch.obs[idx])
        dist = Categorical(logits=_mask_logits(logits, batch.masks[idx]))
        ratio = (dist.log_prob(batch.actions[idx]) - batch.log_probs[idx]).exp()
        adv = batch.advantages[idx]
        clipped = torch.clamp(ratio, 1.0 - self.cfg.clip_coef, 1.0 + self.cfg.clip_coef)
        policy_loss = -torch.min(ratio * adv, clipped * adv).mean()
        value_loss = nn.functional.mse_loss(values, batch.returns[idx])
        entropy = dist.entropy().mean()
        loss = policy_loss + self.cfg.value_coef * value_loss - self.cfg.entropy_coef * entropy
        parts = {
            "loss": loss.item(),
            "policy_loss": policy_loss.item(),
            "value_loss": value_loss.item(),
            "entropy": entropy.item(),
        }
        return loss, parts

    def update(self, seed: int | None = None) -> dict:
        """
        One PPO cycle: collect a batch, then ``update_epochs`` passes of
        shuffled minibatches. Returns losses averaged over minibatches plus
        rollout statistics.
        """
        transitions, final_totals = self._collect_rollouts(seed=seed)
        batch = self._to_batch(transitions)
        np_rng = np.random.default_rng(seed)

        sums = {"loss": 0.0, "policy_loss": 0.0, "value_loss": 0.0, "entropy": 0.0}
        n_minibatches = 0
        self.model.train()
        for _ in range(self.cfg.update_epochs):
            order = np_rng.permutation(len(transitions))
            for start in range(0, len(order), self.cfg.minibatch_size):
                idx = torch.as_tensor(order[start : start + self.cfg.minibatch_size], device=self.device)
                loss, parts = self._minibatch_loss(batch, idx)
                self.optimizer.zero_grad()
                loss.backward()
                nn.utils.clip_grad_norm_(self.model.parameters(), self.cfg.max_grad_norm)
                self.optimizer.step()
                for key, value in parts.items():
                    sums[key] += value
                n_minibatches += 1

        self.updates_done += 1
        stats = {key: value / max(n_minibatches, 1) for key, value in sums.items()}
        stats["mean_reward"] = float(np.mean([t.reward for t in transitions]))
        stats["games"] = len(final_totals)
        if final_totals:
            stats["mean_final_total"] = float(np.mean(final_totals))
        logger.debug("PPO update %d: %s", self.updates_done, stats)
        return stats


__all__ = ["Transition", "RolloutBatch", "PPOConfig", "CrvenaPPOTrainer"]
