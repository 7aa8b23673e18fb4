"""
Card-wise actor-critic for Crvena.

Every action is a card, so the network scores cards rather than reading the
observation as one flat vector:

- the four 32-bit card planes of ``crvena.env`` (hand, trick, played, legal)
  become one 4-feature row per card, joined with a learned embedding of the
  card's identity;
- each suit is max-pooled over its 8 cards and handed back to its members,
  so a card sees what else of its suit is held, on the table or gone;
- the seat/score context is broadcast to every card;
- one shared head turns each card row into that card's logit, and the value
  head reads the pooled cards plus the context.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import torch
from torch import nn

from .env import CARD_PLANES, CONTEXT_SIZE, NUM_CARDS, OBS_SIZE

NUM_SUITS = 4
CARDS_PER_SUIT = NUM_CARDS // NUM_SUITS


@dataclass
class PolicyConfig:
    """Metadata describing a saved policy architecture."""

    arch_name: str = "crvena_cardwise_v1"
    obs_dim: int = OBS_SIZE
    hidden_dim: int = 128
    card_embed_dim: int = 16


class CrvenaActorCritic(nn.Module):
    """
    Input: observations of shape (batch, OBS_SIZE).
    Output: card logits (batch, 32) and values (batch,).
    """

    def __init__(self, obs_dim: int = OBS_SIZE, hidden_dim: int = 128, card_embed_dim: int = 16) -> None:
        super().__init__()
        if obs_dim != OBS_SIZE:
            raise ValueError(f"CrvenaActorCritic reads the {OBS_SIZE}-dim card layout, got obs_dim={obs_dim}")
        self.card_embedding = nn.Embedding(NUM_CARDS, card_embed_dim)
        self.card_encoder = nn.Sequential(nn.Linear(CARD_PLANES + card_embed_dim, hidden_dim), nn.ReLU())
        self.context_encoder = nn.Sequential(nn.Linear(CONTEXT_SIZE, hidden_dim), nn.ReLU())
        self.mixer = nn.Sequential(nn.Linear(3 * hidden_dim, hidden_dim), nn.ReLU())
        self.policy_head = nn.Linear(hidden_dim, 1)
        self.value_head = nn.Sequential(
            nn.Linear(2 * hidden_dim, hidden_dim),
            nn.ReLU(),
            nn.Linear(hidden_dim, 1),
        )
        self.register_buffer("card_ids", torch.arange(NUM_CARDS), persistent=False)

    def forward(self, obs: torch.Tensor) -> Tuple[torch.Tensor, torch.Tensor]:  # type: ignore[override]
        batch = obs.shape[0]
        # (batch, plane, card) -> (batch, card, plane)
        planes = obs[:, : CARD_PLANES * NUM_CARDS].reshape(batch, CARD_PLANES, NUM_CARDS).transpose(1, 2)
        identity = self.card_embedding(self.card_ids).unsqueeze(0).expand(batch, -1, -1)
        cards = self.card_encoder(torch.cat([planes, identity], dim=-1))

        # card indices are suit-major, so each suit is a block of 8 rows
        suits = cards.reshape(batch, NUM_SUITS, CARDS_PER_SUIT, -1).amax(dim=2)
        suit_rows = suits.repeat_interleave(CARDS_PER_SUIT, dim=1)

        context = self.context_encoder(obs[:, CARD_PLANES * NUM_CARDS :])
        context_rows = context.unsqueeze(1).expand(-1, NUM_CARDS, -1)

        mixed = self.mixer(torch.cat([cards, suit_rows, context_rows], dim=-1))
        logits = self.policy_head(mixed).squeeze(-1)
        value = self.value_head(torch.cat([mixed.mean(dim=1), context], dim=-1)).squeeze(-1)
        return logits, value


def build_model(cfg: PolicyConfig) -> CrvenaActorCritic:
    if cfg.arch_name != PolicyConfig.arch_name:
        raise ValueError(f"Unknown policy architecture {cfg.arch_name!r}")
    return CrvenaActorCritic(obs_dim=cfg.obs_dim, hidden_dim=cfg.hidden_dim, card_embed_dim=cfg.card_embed_dim)


__all__ = ["CrvenaActorCritic", "PolicyConfig", "build_model"]
