"""Tests for the observation / action encoding."""
import random

import pytest

from crvena.agents import PlayerKind, TableView
from crvena.deck import Card, Rank, Suit, make_deck_32
from crvena.env import (
    NUM_ACTIONS,
    OBS_SIZE,
    card_from_index,
    card_index,
    encode_play_observation,
    encode_view_observation,
    legal_action_mask,
)
from crvena.game import Game, make_players


def test_card_index_matches_deck_order():
    deck = make_deck_32()
    assert [card_index(c) for c in deck] == list(range(32))
    assert all(card_from_index(card_index(c)) == c for c in deck)
    with pytest.raises(ValueError):
        card_from_index(32)


def test_obs_size():
    assert NUM_ACTIONS == 32
    assert OBS_SIZE == 156


def test_legal_action_mask():
    mask = legal_action_mask([Card(Suit.CLUBS, Rank.SEVEN), Card(Suit.HEARTS, Rank.ACE)])
    assert len(mask) == NUM_ACTIONS
    assert [i for i, ok in enumerate(mask) if ok] == [7, 16]


def test_view_observation_layout():
    hand = (Card(Suit.CLUBS, Rank.KING), Card(Suit.HEARTS, Rank.SEVEN))
    view = TableView(
        seat=2,
        hand=hand,
        trick=((1, Card(Suit.CLUBS, Rank.NINE)),),
        turn_number=3,
        legal=(Card(Suit.CLUBS, Rank.KING),),
        leader=1,
        played=(Card(Suit.SPADES, Rank.ACE),),
        round_scores=(0, 5, 0, 0),
        totals=(10, 20, 30, 0),
    )
    obs = encode_view_observation(view)
    assert len(obs) == OBS_SIZE
    assert obs[card_index(hand[0])] == 1.0 and obs[card_index(hand[1])] == 1.0
    assert sum(obs[0:32]) == 2
    assert obs[32 + card_index(Card(Suit.CLUBS, Rank.NINE))] == 1.0
    assert obs[64 + card_index(Card(Suit.SPADES, Rank.ACE))] == 1.0
    assert sum(obs[96:128]) == 1
    meta = obs[128:148]
    assert meta[2] == 1.0          # seat
    assert meta[4 + 1] == 1.0      # leader
    assert meta[8 + 1] == 1.0      # one card already in the trick
    assert meta[12 + 3] == 1.0     # three tricks done
    assert obs[148:152] == [0.0, 0.5, 0.0, 0.0]
    assert obs[152:156] == pytest.approx([10 / 51, 20 / 51, 30 / 51, 0.0])


def test_hidden_hands_are_not_encoded():
    base = dict(seat=0, hand=(Card(Suit.CLUBS, Rank.KING),), trick=(), turn_number=0, legal=(Card(Suit.CLUBS, Rank.KING),))
    blind = TableView(**base)
    seeing = TableView(**base, other_hands={1: (Card(Suit.SPADES, Rank.ACE),)})
    assert encode_view_observation(blind) == encode_view_observation(seeing)


def test_play_observation_from_game():
    rng = random.Random(3)
    game = Game(make_players([PlayerKind.HUMAN] * 4, rng), rng=rng, auto_deal=False)
    game.start_round()
    seat = game.current_player
    obs = encode_play_observation(game, seat)
    assert len(obs) == OBS_SIZE
    assert sum(obs[0:32]) == 8
    mask = legal_action_mask(game.legal_cards(seat))
    assert [bool(x) for x in obs[96:128]] == mask
