"""Tests for the Crvena engine: deck, legality, tricks, scoring and the game state machine."""
import random

import pytest

from crvena.agents import PlayerKind, RandomAgent
from crvena.deal import deal_round, first_to_play, next_dealer
from crvena.deck import Card, Deck, Rank, Suit, cards_point_total, make_deck_32
from crvena.errors import ActionOutOfTurn, DeckExhausted, GameOverError, IllegalMove, InvalidPhase
from crvena.game import EventType, Game, GameConfig, Phase, make_players, play_game
from crvena.play import legal_plays, resolve_trick, trick_winner
from crvena.scoring import apply_round_score, game_winner, is_game_over

H, D, C, S = Suit.HEARTS, Suit.DIAMONDS, Suit.CLUBS, Suit.SPADES


def _human_game(cards_per_player: int = 8, dealer: int = 0) -> Game:
    players = make_players([PlayerKind.HUMAN] * 4, random.Random(0))
    return Game(
        players,
        config=GameConfig(cards_per_player=cards_per_player),
        rng=random.Random(1),
        dealer=dealer,
        auto_deal=False,
    )


def _set_hands(game: Game, hands) -> None:
    for p, hand in zip(game.players, hands):
        p.hand = list(hand)


def test_deck_32():
    deck = make_deck_32()
    assert len(deck) == 32
    assert len(set(deck)) == 32
    assert cards_point_total(deck) == 10


def test_card_points_and_names():
    assert Card(H, Rank.ACE).point_value == 3
    assert Card(H, Rank.SEVEN).point_value == 1
    assert Card(D, Rank.ACE).point_value == 0
    assert Card(D, Rank.TEN).is_red and not Card(C, Rank.TEN).is_red
    assert Card(S, Rank.EIGHT).long_name() == "Eight of Spades"


def test_deck_draw_recycles_discard_pile():
    deck = Deck(random.Random(3))
    deck.build()
    drawn = [deck.draw() for _ in range(32)]
    assert len(deck) == 0
    for c in drawn[:3]:
        deck.discard(c)
    card = deck.draw()
    assert card in drawn[:3]
    assert deck.discard_pile == []
    assert len(deck) == 2


def test_deck_exhausted():
    deck = Deck(random.Random(0))
    with pytest.raises(DeckExhausted):
        deck.draw()


def test_discard_is_idempotent():
    deck = Deck(random.Random(0))
    card = Card(C, Rank.KING)
    deck.discard(card)
    deck.discard(card)
    assert deck.discard_pile == [card]


def test_trick_resolution_scenario_a():
    trick = [(0, Card(H, Rank.SEVEN)), (1, Card(H, Rank.ACE)), (2, Card(D, Rank.KING)), (3, Card(H, Rank.EIGHT))]
    result = resolve_trick(trick)
    assert result.winner_offset == 1
    assert result.points == 5
    # pure: resolving twice gives the same answer
    assert resolve_trick(trick) == result


def test_off_suit_cards_never_win():
    trick = [(2, Card(C, Rank.SEVEN)), (3, Card(S, Rank.ACE)), (0, Card(H, Rank.ACE)), (1, Card(C, Rank.EIGHT))]
    result = resolve_trick(trick)
    assert result.winner_offset == 3
    assert result.points == 3
    assert trick_winner(trick, leader=2, num_players=4) == 1


def test_resolve_empty_trick_raises():
    with pytest.raises(ValueError):
        resolve_trick([])


def test_early_red_restriction_scenario_c():
    hand = [Card(H, Rank.SEVEN), Card(H, Rank.EIGHT), Card(D, Rank.QUEEN), Card(C, Rank.KING)]
    assert legal_plays(hand, [], turn_number=0) == [Card(C, Rank.KING)]
    assert legal_plays(hand, [], turn_number=1) == [Card(C, Rank.KING)]
    assert legal_plays(hand, [], turn_number=2) == hand

    all_red = [Card(H, Rank.SEVEN), Card(D, Rank.QUEEN)]
    assert legal_plays(all_red, [], turn_number=0) == all_red


def test_follow_suit():
    hand = [Card(H, Rank.SEVEN), Card(C, Rank.KING), Card(C, Rank.NINE)]
    trick = [(0, Card(C, Rank.EIGHT))]
    assert legal_plays(hand, trick, turn_number=3) == [Card(C, Rank.KING), Card(C, Rank.NINE)]

    void = [Card(H, Rank.SEVEN), Card(S, Rank.KING)]
    assert legal_plays(void, trick, turn_number=3) == void
    assert legal_plays([], trick, turn_number=3) == []


def test_early_red_filter_applies_before_following():
    hand = [Card(D, Rank.NINE), Card(C, Rank.KING)]
    trick = [(0, Card(D, Rank.SEVEN))]
    assert legal_plays(hand, trick, turn_number=0) == [Card(C, Rank.KING)]
    assert legal_plays(hand, trick, turn_number=2) == [Card(D, Rank.NINE)]


def test_streak_penalty_scenario_b():
    update = apply_round_score(10, 0, 0)
    assert (update.total, update.zero_streak, update.penalised) == (10, 1, False)
    update = apply_round_score(update.total, 0, update.zero_streak)
    assert (update.total, update.zero_streak) == (10, 2)
    update = apply_round_score(update.total, 0, update.zero_streak)
    assert (update.total, update.zero_streak, update.penalised) == (7, 0, True)
    update = apply_round_score(update.total, 0, update.zero_streak)
    assert (update.total, update.zero_streak, update.penalised) == (7, 1, False)
    update = apply_round_score(update.total, 4, update.zero_streak)
    assert (update.total, update.zero_streak) == (11, 0)


def test_game_end_scenario_e():
    assert is_game_over([51, 20, 10, 5])
    assert not is_game_over([50, 20, 10, 5])
    assert game_winner([51, 20, 10, 5]) == 3
    assert game_winner([51, 5, 20, 5]) == 1


def test_next_dealer_and_first_to_play():
    assert next_dealer([0, 3, 7, 0]) == 2
    assert next_dealer([5, 5, 0, 0]) == 0
    assert first_to_play(3) == 0


def test_deal_round_starts_after_dealer():
    deck = Deck(random.Random(0))
    deck.build()
    deal = deal_round(deck, dealer=0)
    assert all(len(h) == 8 for h in deal.hands)
    assert deal.hands[1][0] == Card(H, Rank.SEVEN)
    assert deal.hands[2][0] == Card(H, Rank.EIGHT)
    assert len(deck) == 0


def test_deal_round_short_deck_raises():
    deck = Deck(random.Random(0))
    deck.build()
    deck.draw_pile.pop()
    with pytest.raises(DeckExhausted):
        deal_round(deck)


def test_config_validation():
    with pytest.raises(ValueError):
        GameConfig(num_players=5, cards_per_player=8).validate()
    with pytest.raises(ValueError):
        Game(make_players([PlayerKind.RANDOM] * 3), config=GameConfig())


def test_full_round_keeps_card_and_point_invariants():
    rng = random.Random(11)
    game = Game(make_players([PlayerKind.RANDOM] * 4, rng), rng=rng, auto_deal=False)
    counts = []
    game.subscribe(lambda e: counts.append(game.card_count()))

    game.start_round()
    assert all(len(p.hand) == 8 for p in game.players)
    assert game.phase == Phase.AWAITING_PLAY

    played = game.advance_bots()
    assert played == 32
    assert game.phase == Phase.ROUND_END
    assert sum(game.round_trick_points) == 10
    assert sum(game.round_scores()) == 10
    assert set(counts) == {32}
    cards = game.all_cards()
    assert len(cards) == 32 and set(cards) == set(make_deck_32())


def test_dealer_rotates_to_highest_round_score():
    rng = random.Random(5)
    game = Game(make_players([PlayerKind.MEDIUM] * 4, rng), rng=rng, auto_deal=False)
    game.start_round()
    game.advance_bots()
    ended = [e for e in game.events if e.type == EventType.ROUND_ENDED][-1]
    assert game.dealer == next_dealer(ended.round_scores)
    game.start_round()
    assert game.leader == first_to_play(game.dealer)
    assert game.round_index == 2


def test_full_game_runs_to_end_score():
    agents = [RandomAgent(seed=i) for i in range(4)]
    result = play_game(agents, rng=random.Random(7))
    assert max(result.totals) >= 51
    assert result.winner == game_winner(result.totals)
    assert all(points == 10 for points in result.round_points)
    assert result.rounds == len(result.round_points)


def test_scripted_trick_events_and_scores():
    game = _human_game(cards_per_player=1, dealer=0)
    game.start_round()
    _set_hands(game, [[Card(H, Rank.ACE)], [Card(C, Rank.KING)], [Card(C, Rank.ACE)], [Card(H, Rank.SEVEN)]])
    assert game.current_player == 1

    game.submit_move(1, Card(C, Rank.KING))
    game.submit_move(2, Card(C, Rank.ACE))
    game.submit_move(3, Card(H, Rank.SEVEN))
    game.submit_move(0, Card(H, Rank.ACE))

    assert game.phase == Phase.ROUND_END
    assert game.totals() == (0, 0, 4, 0)
    assert [p.zero_streak for p in game.players] == [1, 1, 0, 1]
    assert game.dealer == 2
    assert [e.type for e in game.events] == [
        EventType.ROUND_STARTED,
        EventType.TRICK_STARTED,
        EventType.CARD_PLAYED,
        EventType.CARD_PLAYED,
        EventType.CARD_PLAYED,
        EventType.CARD_PLAYED,
        EventType.TRICK_RESOLVED,
        EventType.ROUND_ENDED,
    ]
    resolved = game.events[6]
    assert resolved.winner_seat == 2 and resolved.trick_points == 4


def test_rejected_moves_leave_state_untouched():
    game = _human_game()
    game.start_round()
    _set_hands(game, [[Card(S, Rank.SEVEN)], [Card(H, Rank.SEVEN), Card(C, Rank.KING)], [Card(C, Rank.ACE)], [Card(S, Rank.ACE)]])
    before = [list(p.hand) for p in game.players]

    with pytest.raises(ActionOutOfTurn):
        game.submit_move(0, Card(S, Rank.SEVEN))
    with pytest.raises(IllegalMove) as excinfo:
        game.submit_move(1, Card(H, Rank.SEVEN))
    assert "red" in excinfo.value.reason
    with pytest.raises(IllegalMove) as excinfo:
        game.submit_move(1, Card(D, Rank.ACE))
    assert excinfo.value.reason == "card not in hand"

    assert [list(p.hand) for p in game.players] == before
    assert game.current_trick == []
    assert game.current_player == 1
    assert all(e.type != EventType.CARD_PLAYED for e in game.events)


def test_game_over_and_restart():
    game = _human_game(cards_per_player=1, dealer=0)
    for p, total in zip(game.players, (50, 10, 50, 20)):
        p.total_score = total
    game.start_round()
    _set_hands(game, [[Card(H, Rank.ACE)], [Card(C, Rank.KING)], [Card(C, Rank.ACE)], [Card(H, Rank.SEVEN)]])
    for seat, card in ((1, Card(C, Rank.KING)), (2, Card(C, Rank.ACE)), (3, Card(H, Rank.SEVEN)), (0, Card(H, Rank.ACE))):
        game.submit_move(seat, card)

    assert game.is_over
    assert game.totals() == (50, 10, 54, 20)
    assert game.winner == 1
    assert game.events[-1].type == EventType.GAME_OVER

    with pytest.raises(GameOverError):
        game.submit_move(game.current_player, Card(S, Rank.SEVEN))
    with pytest.raises(GameOverError):
        game.start_round()

    game.restart()
    assert game.totals() == (0, 0, 0, 0)
    assert game.winner is None
    assert game.round_index == 1
    assert game.phase == Phase.AWAITING_PLAY
    assert all(len(p.hand) == 1 for p in game.players)


def test_start_round_rejected_mid_round():
    game = _human_game()
    game.start_round()
    with pytest.raises(InvalidPhase):
        game.start_round()


def test_deck_exhausted_propagates_from_start_round(monkeypatch):
    game = _human_game()
    monkeypatch.setattr(game.deck, "initialize", lambda: None)
    with pytest.raises(DeckExhausted):
        game.start_round()
    assert game.phase == Phase.DEALING


def test_hint_is_read_only():
    game = _human_game()
    game.start_round()
    seat = game.current_player
    hands = [list(p.hand) for p in game.players]
    n_events = len(game.events)

    hint = game.hint(seat)
    assert hint.highlight
    assert hint.card in game.legal_cards(seat)
    assert hint.message.startswith("Best card to play: ")
    assert [list(p.hand) for p in game.players] == hands
    assert len(game.events) == n_events

    other = (seat + 1) % 4
    assert game.hint(other).message == "It's not your turn to play."


def test_play_bot_turn_refuses_human_seat():
    game = _human_game()
    game.start_round()
    with pytest.raises(InvalidPhase):
        game.play_bot_turn()
    assert game.advance_bots() == 0


def test_auto_deal_starts_next_round():
    rng = random.Random(21)
    kinds = [PlayerKind.HUMAN, PlayerKind.RANDOM, PlayerKind.RANDOM, PlayerKind.RANDOM]
    game = Game(make_players(kinds, rng), rng=rng)
    game.start_round()
    while game.round_index == 1:
        game.advance_bots()
        if game.round_index == 1:
            game.submit_move(0, game.legal_cards(0)[0])
    assert game.round_index == 2
    assert game.phase == Phase.AWAITING_PLAY
    assert game.card_count() == 32


def test_snapshot_matches_seat_capability():
    rng = random.Random(8)
    kinds = [PlayerKind.HUMAN, PlayerKind.MEDIUM, PlayerKind.OMNISCIENT, PlayerKind.RANDOM]
    game = Game(make_players(kinds, rng), rng=rng, auto_deal=False)
    game.start_round()
    assert game.snapshot(0).other_hands == {}
    assert game.snapshot(1).other_hands == {}
    assert set(game.snapshot(2).other_hands) == {0, 1, 3}
    game.run_until_human_or_end()
    assert game.phase == Phase.ROUND_END or game.current_player == 0


def _two_trick_game(totals=(0, 0, 0, 0)) -> Game:
    players = make_players([PlayerKind.HUMAN] * 4, random.Random(0))
    for p, total in zip(players, totals):
        p.total_score = total
    game = Game(
        players,
        config=GameConfig(cards_per_player=2, early_red_tricks=0),
        rng=random.Random(1),
        dealer=0,
        auto_deal=False,
    )
    game.start_round()
    _set_hands(
        game,
        [
            [Card(H, Rank.ACE), Card(S, Rank.TEN)],
            [Card(C, Rank.KING), Card(S, Rank.SEVEN)],
            [Card(C, Rank.ACE), Card(S, Rank.EIGHT)],
            [Card(H, Rank.SEVEN), Card(S, Rank.NINE)],
        ],
    )
    return game


FIRST_TRICK = ((1, Card(C, Rank.KING)), (2, Card(C, Rank.ACE)), (3, Card(H, Rank.SEVEN)), (0, Card(H, Rank.ACE)))
SECOND_TRICK = ((2, Card(S, Rank.EIGHT)), (3, Card(S, Rank.NINE)), (0, Card(S, Rank.TEN)), (1, Card(S, Rank.SEVEN)))


def test_failing_listener_leaves_game_playable():
    game = _two_trick_game()
    failed = []

    def listener(event):
        if event.type == EventType.TRICK_RESOLVED and not failed:
            failed.append(event)
            raise RuntimeError("display crashed")

    game.subscribe(listener)
    for seat, card in FIRST_TRICK[:3]:
        game.submit_move(seat, card)
    with pytest.raises(RuntimeError):
        game.submit_move(*FIRST_TRICK[3])

    assert game.phase == Phase.AWAITING_PLAY
    assert game.leader == 2 and game.current_player == 2
    assert game.turn_number == 1
    assert game.round_scores() == (0, 0, 4, 0)
    assert [e.type for e in game.events][-2:] == [EventType.TRICK_RESOLVED, EventType.TRICK_STARTED]

    for seat, card in SECOND_TRICK:
        game.submit_move(seat, card)
    assert game.phase == Phase.ROUND_END
    game.start_round()
    assert game.phase == Phase.AWAITING_PLAY


def test_listeners_see_settled_state():
    game = _two_trick_game()
    seen = []
    game.subscribe(lambda e: seen.append((e.type, game.phase, game.current_player)))
    for seat, card in FIRST_TRICK:
        game.submit_move(seat, card)
    # the trick was delivered after the winner took the lead
    assert (EventType.TRICK_RESOLVED, Phase.AWAITING_PLAY, 2) in seen


def test_game_ends_on_exactly_51_at_round_boundary():
    game = _two_trick_game(totals=(30, 20, 47, 40))
    for seat, card in FIRST_TRICK:
        game.submit_move(seat, card)
    # 47 + 4 is reached mid-round: nothing ends until the last trick
    assert game.phase == Phase.AWAITING_PLAY
    assert all(e.type != EventType.GAME_OVER for e in game.events)

    for seat, card in SECOND_TRICK:
        game.submit_move(seat, card)
    assert game.totals() == (30, 20, 51, 40)
    assert game.is_over
    assert game.winner == 1
    assert [e.type for e in game.events][-2:] == [EventType.ROUND_ENDED, EventType.GAME_OVER]
    assert game.events[-1].winner_seat == 1
