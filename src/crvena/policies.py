"""
Trained networks as table seats.

``NNPolicy`` answers the flat ``Policy`` interface used by ``CrvenaEnv``;
``NNAgent`` adapts it to ``CardPolicy`` so a checkpoint can sit at a
``Game`` or enter the tier tournament next to the heuristic bots.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Sequence

import torch
from torch.distributions import Categorical

from .agents import TableView
from .deck import Card
from .env import NUM_ACTIONS, card_from_index, card_index, encode_view_observation, legal_action_mask
from .models import CrvenaActorCritic, PolicyConfig
from .training import CrvenaPPOTrainer, _mask_logits, _pad_observation


@dataclass
class NNPolicy:
    """Samples (or, with ``deterministic``, takes the argmax of) the masked card logits."""

    model: CrvenaActorCritic
    policy_cfg: PolicyConfig
    device: torch.device
    deterministic: bool = False

    def _legal_logits(self, obs: Sequence[float], legal_actions_mask: Iterable[bool]) -> torch.Tensor:
        mask = torch.as_tensor([list(legal_actions_mask)], dtype=torch.bool, device=self.device)
        if mask.shape[1] != NUM_ACTIONS or not bool(mask.any()):
            raise ValueError(f"NNPolicy needs a {NUM_ACTIONS}-entry mask with a legal card")
        obs_t = torch.as_tensor([_pad_observation(obs, self.policy_cfg.obs_dim)], dtype=torch.float32, device=self.device)
        with torch.no_grad():
            logits, _ = self.model(obs_t)
        return _mask_logits(logits, mask)[0]

    def act(self, obs: Sequence[float], legal_actions_mask: Iterable[bool]) -> int:
        logits = self._legal_logits(obs, legal_actions_mask)
        if self.deterministic:
            return int(torch.argmax(logits).item())
        return int(Categorical(logits=logits).sample().item())

    def card_probabilities(self, view: TableView) -> Dict[Card, float]:
        """How likely the network is to play each legal card of ``view``."""
        logits = self._legal_logits(encode_view_observation(view), legal_action_mask(view.legal))
        probs = torch.softmax(logits, dim=-1)
        return {c: float(probs[card_index(c)].item()) for c in view.legal}


@dataclass
class NNAgent:
    """A trained seat. Plays from its own hand only, never from other hands."""

    policy: NNPolicy
    sees_all_hands: bool = field(default=False, init=False)

    def choose_card(self, view: TableView) -> Optional[Card]:
        if not view.legal:
            return None
        card = card_from_index(self.policy.act(encode_view_observation(view), legal_action_mask(view.legal)))
        if card not in view.legal:
            raise ValueError(f"Network chose {card}, legal were {list(view.legal)}")
        return card


def load_policy_from_checkpoint(
    directory: str,
    device: torch.device | None = None,
    deterministic: bool = False,
) -> NNPolicy:
    device = device or torch.device("cpu")
    model, policy_cfg = CrvenaPPOTrainer.load_model_from_checkpoint(directory, device=device)
    return NNPolicy(model=model, policy_cfg=policy_cfg, device=device, deterministic=deterministic)


def load_agent_from_checkpoint(
    directory: str,
    device: torch.device | None = None,
    deterministic: bool = True,
) -> NNAgent:
    return NNAgent(policy=load_policy_from_checkpoint(directory, device=device, deterministic=deterministic))


__all__ = ["NNPolicy", "NNAgent", "load_policy_from_checkpoint", "load_agent_from_checkpoint"]
