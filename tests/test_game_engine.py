import random

import pytest

from holdem.actions import Call, Check, Fold, Raise
from holdem.errors import IllegalActionError
from holdem.game_engine import (advance_phase, create_initial_game_state, post_blinds, process_action,
                                public_state, start_new_hand)
from holdem.game_state import GamePhase, GameState
from holdem.player import BOT_NAMES, HUMAN_NAME


def test_create_initial_game_state_seats_human_and_bots():
    state = create_initial_game_state(4, rng=random.Random(1))

    assert [p.name for p in state.players] == [HUMAN_NAME] + BOT_NAMES[:3]
    assert state.players[0].is_human and state.players[0].personality is None
    assert all(p.personality is not None for p in state.players[1:])
    assert all(p.chips == 1000 for p in state.players)
    assert state.phase == GamePhase.WAITING
    assert set(state.achievements) == {"FIRST_WIN", "TEN_WINS", "BIG_POT", "FLUSH_WIN", "FULL_HOUSE_WIN"}


@pytest.mark.parametrize("num_players", [1, 11])
def test_create_initial_game_state_rejects_bad_table_size(num_players):
    with pytest.raises(ValueError):
        create_initial_game_state(num_players)


def test_start_new_hand_deals_two_cards_each(rng):
    state = create_initial_game_state(3, rng=rng)
    hand = start_new_hand(state, rng)

    assert hand.phase == GamePhase.PRE_FLOP
    assert hand.hand_number == 1
    assert hand.session_stats.hands_played == 1
    assert hand.dealer_index == 1
    assert all(len(p.hand) == 2 for p in hand.players)
    dealt = [c for p in hand.players for c in p.hand]
    assert len(set(dealt)) == 6
    assert len(hand.deck) == 46
    assert not set(dealt) & set(hand.deck)
    # the input state is untouched
    assert state.phase == GamePhase.WAITING
    assert all(p.hand == [] for p in state.players)


def test_dealer_button_moves_each_hand(rng):
    state = create_initial_game_state(3, rng=rng)
    first = start_new_hand(state, rng)
    first.phase = GamePhase.SHOWDOWN
    second = start_new_hand(first, rng)
    assert (first.dealer_index, second.dealer_index) == (1, 2)


def test_start_new_hand_rejects_hand_in_progress(rng):
    state = start_new_hand(create_initial_game_state(2, rng=rng), rng)
    with pytest.raises(IllegalActionError):
        start_new_hand(state, rng)


def test_broke_human_ends_the_game(rng):
    state = create_initial_game_state(3, rng=rng)
    state.players[0].chips = 0
    after = start_new_hand(state, rng)
    assert after.game_over
    assert after.phase == GamePhase.WAITING
    assert after.hand_number == 0


def test_broke_bots_rebuy(rng):
    state = create_initial_game_state(3, rng=rng)
    state.players[2].chips = 0
    after = start_new_hand(state, rng)
    assert after.players[2].chips == 1000
    assert not after.players[2].folded
    assert any("rebuys" in record.message for record in after.action_history)


def test_advance_phase_deals_flop_turn_and_river(rng):
    state = start_new_hand(create_initial_game_state(2, rng=rng), rng)

    flop = advance_phase(state)
    assert flop.phase == GamePhase.FLOP
    assert len(flop.community_cards) == 3
    assert len(flop.deck) == 46 - 4  # burn + 3

    turn = advance_phase(flop)
    assert turn.phase == GamePhase.TURN
    assert len(turn.community_cards) == 4
    assert len(turn.deck) == 40

    river = advance_phase(turn)
    assert river.phase == GamePhase.RIVER
    assert len(river.community_cards) == 5
    assert len(river.deck) == 38

    showdown = advance_phase(river)
    assert showdown.phase == GamePhase.SHOWDOWN
    with pytest.raises(IllegalActionError):
        advance_phase(showdown)


def test_heads_up_hand_checked_down_to_showdown(make_table):
    state = make_table([1000, 1000], dealer_index=0, hands=["As Ah", "Ks Kh"], board="2c 7d 9h Jc 3d")
    state = post_blinds(state, 10, 20)
    state = process_action(state, Call(), "0")
    state = process_action(state, Check(), "1")

    for _ in range(3):
        state = process_action(state, Check(), "1")
        state = process_action(state, Check(), "0")

    assert state.phase == GamePhase.SHOWDOWN
    assert [str(c) for c in state.community_cards] == ["2c", "7d", "9h", "Jc", "3d"]
    assert [p.chips for p in state.players] == [1020, 980]
    assert state.last_hand.revealed
    assert state.last_hand.winner_ids == ["0"]
    assert state.last_hand.hands == {"0": "Pair of Aces", "1": "Pair of Kings"}
    assert state.players[0].stats.hands_won == 1
    assert state.players[0].stats.biggest_pot == 40
    assert state.session_stats.hands_won_by_player == 1
    assert state.session_stats.hand_distribution == {"Pair": 1}
    assert state.achievements["FIRST_WIN"].unlocked_at == 1
    assert state.last_hand.unlocked_achievements == ["FIRST_WIN"]
    assert state.pots == []


def test_everyone_folds_to_a_raise(make_table):
    state = make_table([1000, 1000], dealer_index=0, hands=["2s 7h", "Ks Kh"])
    state = post_blinds(state, 10, 20)
    state = process_action(state, Raise(100), "0")
    state = process_action(state, Fold(), "1")

    assert state.phase == GamePhase.SHOWDOWN
    assert [p.chips for p in state.players] == [1020, 980]
    assert state.last_hand.revealed is False
    assert state.last_hand.hands == {}
    assert state.session_stats.hand_distribution == {}
    assert state.community_cards == []
    assert any("Uncalled $80" in r.message for r in state.action_history)


def test_short_stack_folding_to_oversized_bet_loses_pot_unrevealed(make_table):
    state = make_table([1000, 100], dealer_index=0, hands=["Qs Qh", "As Ad"])
    state = post_blinds(state, 10, 20)
    state = process_action(state, Raise(500), "0")
    assert state.players[0].bet == 500

    state = process_action(state, Fold(), "1")

    assert state.phase == GamePhase.SHOWDOWN
    assert [p.chips for p in state.players] == [1020, 80]
    assert state.last_hand.revealed is False
    assert state.total_chips == 1100

    view = public_state(state, viewer_id="1")
    assert view["players"][0]["hand"] == []
    assert view["players"][1]["hand"] != []


def test_three_way_all_in_builds_side_pots_and_conserves_chips(make_table):
    state = make_table([300, 200, 100], dealer_index=0, hands=["2s 2h", "Ks Kh", "As Ah"],
                       board="3c 8d 9h Jc 4d")
    state = post_blinds(state, 10, 20)
    state = process_action(state, {"action": "all-in"}, "0")
    state = process_action(state, {"action": "all-in"}, "1")
    state = process_action(state, {"action": "all-in"}, "2")

    assert state.phase == GamePhase.SHOWDOWN
    # aces win the 300 main pot, kings the 200 side pot, the uncalled 100 goes back
    assert [p.chips for p in state.players] == [100, 200, 300]
    awards = state.last_hand.awards
    assert [(a.amount, a.winner_ids) for a in awards] == [(300, ["2"]), (200, ["1"])]


def test_public_state_hides_deck_and_other_hands(rng):
    state = start_new_hand(create_initial_game_state(3, rng=rng), rng)
    state = post_blinds(state, 10, 20)

    view = public_state(state, viewer_id="0")

    assert "deck" not in view
    assert len(view["players"][0]["hand"]) == 2
    assert view["players"][1]["hand"] == []
    assert view["players"][1]["hand_size"] == 2
    assert view["pot_total"] == 30
    if view["current_player_id"] == "0":
        assert view["legal_actions"]["can_fold"] is True
    else:
        assert view["legal_actions"] is None


def test_game_state_json_round_trip(rng):
    state = post_blinds(start_new_hand(create_initial_game_state(4, rng=rng), rng), 10, 20)
    restored = GameState.from_json(state.to_json())
    assert restored == state
    assert restored.phase == GamePhase.PRE_FLOP
