import random

import pytest

from holdem.actions import Fold
from holdem.ai import BotAI
from holdem.errors import TournamentError
from holdem.game_state import GamePhase
from holdem.tournament import (BLIND_STRUCTURES, BlindLevel, TournamentManager, TournamentPlayerStatus,
                               TournamentStatus, TournamentType, default_payout_structure)


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def manager(clock):
    rng = random.Random(5)
    return TournamentManager(bot_ai=BotAI(rng=rng, simulations=5), rng=rng, clock=clock)


def register_bots(manager, tournament, count, prefix="bot"):
    return [manager.register_player(tournament.id, f"Bot {i}", player_id=f"{prefix}{i}")
            for i in range(count)]


def chips_in_play(tournament):
    return sum(p.chip_count for p in tournament.players.values())


@pytest.mark.parametrize("players, places", [(2, 1), (5, 1), (6, 3), (9, 3), (10, 5), (30, 9), (60, 18)])
def test_default_payouts_grow_with_the_field(players, places):
    payouts = default_payout_structure(players)
    assert [p.position for p in payouts] == list(range(1, places + 1))
    assert sum(p.percentage for p in payouts) == pytest.approx(100)


def test_registration_fills_the_prize_pool_and_closes_when_full(manager):
    tournament = manager.create_tournament("Weekly", TournamentType.SCHEDULED, buy_in=50,
                                           starting_chips=2000, max_players=3)
    register_bots(manager, tournament, 2)

    with pytest.raises(TournamentError):
        manager.register_player(tournament.id, "Again", player_id="bot0")

    manager.register_player(tournament.id, "Third")
    with pytest.raises(TournamentError):
        manager.register_player(tournament.id, "Fourth")

    assert tournament.current_players == 3
    assert tournament.prize_pool == 150
    # scheduled tournaments wait for their start time
    assert tournament.status == TournamentStatus.REGISTERING
    assert all(p.chip_count == 2000 for p in tournament.players.values())


def test_unknown_tournament_and_bad_settings(manager):
    with pytest.raises(TournamentError):
        manager.register_player("missing", "Nobody")
    with pytest.raises(ValueError):
        manager.create_tournament("Huge", TournamentType.SIT_AND_GO, 10, 1000, max_players=11)
    with pytest.raises(ValueError):
        manager.create_tournament("Odd", TournamentType.SCHEDULED, 10, 1000, 6, blind_structure="hyper")


def test_sit_and_go_starts_when_the_last_seat_is_taken(manager):
    events = []
    tournament = manager.create_sit_and_go(buy_in=20, max_players=3)
    manager.subscribe(tournament.id, events.append)

    register_bots(manager, tournament, 2)
    assert tournament.status == TournamentStatus.REGISTERING
    manager.register_player(tournament.id, "Last", player_id="last")

    assert tournament.status == TournamentStatus.RUNNING
    assert [e.type for e in events][-1] == "tournament-started"
    assert list(tournament.tables) == ["table-1"]
    table = tournament.tables["table-1"]
    assert sorted(table.seats.values()) == ["bot0", "bot1", "last"]
    assert [p.id for p in table.game_state.players] == ["bot0", "bot1", "last"]
    assert all(p.chips == 1500 and not p.is_human for p in table.game_state.players)
    assert all(p.status == TournamentPlayerStatus.PLAYING for p in tournament.players.values())
    assert manager.current_blind_level(tournament.id) == BLIND_STRUCTURES["turbo"][0]


def test_start_needs_two_players(manager):
    tournament = manager.create_tournament("Lonely", TournamentType.SCHEDULED, 10, 1000, 10)
    register_bots(manager, tournament, 1)
    assert manager.can_start(tournament.id) is False
    with pytest.raises(TournamentError):
        manager.start_tournament(tournament.id)


def test_players_are_spread_evenly_over_tables(manager):
    tournament = manager.create_tournament("Big", TournamentType.MULTI_TABLE, 10, 1000, 30)
    register_bots(manager, tournament, 20)
    manager.start_tournament(tournament.id)

    sizes = [len(t.seats) for t in tournament.tables.values()]
    assert sizes == [7, 7, 6]
    for table in tournament.tables.values():
        assert len(table.game_state.players) == len(table.seats)
        for seat, player_id in table.seats.items():
            assert tournament.players[player_id].table_id == table.id
            assert tournament.players[player_id].seat_number == seat


def test_blind_levels_follow_the_clock(manager, clock):
    tournament = manager.create_sit_and_go(max_players=2)
    events = []
    manager.subscribe(tournament.id, events.append)
    register_bots(manager, tournament, 2)

    clock.advance(179)
    assert manager.update_blind_timer(tournament.id) == pytest.approx(1)
    assert tournament.current_blind_level == 0

    clock.advance(1)
    manager.update_blind_timer(tournament.id)
    level = manager.current_blind_level(tournament.id)
    assert (level.level, level.small_blind, level.big_blind) == (2, 15, 30)
    assert events[-1].type == "blind-level-changed"
    assert manager.update_blind_timer(tournament.id) == pytest.approx(180)

    while manager.advance_blind_level(tournament.id):
        pass
    assert manager.current_blind_level(tournament.id).big_blind == 1000
    assert manager.update_blind_timer(tournament.id) is None


def test_hands_use_the_current_blinds_and_ante(manager):
    tournament = manager.create_tournament("Antes", TournamentType.SCHEDULED, 10, 1000, 3,
                                           custom_blinds=[BlindLevel(1, 10, 50, 100, 10)])
    register_bots(manager, tournament, 3)
    manager.start_tournament(tournament.id)

    state = manager.start_table_hand(tournament.id, "table-1")

    assert state.phase == GamePhase.PRE_FLOP
    assert (state.small_blind, state.big_blind, state.ante) == (50, 100, 10)
    assert state.pot_total == 3 * 10 + 50 + 100
    with pytest.raises(TournamentError):
        manager.start_table_hand(tournament.id, "table-1")


def test_eliminations_set_positions_and_payouts(manager):
    tournament = manager.create_tournament("Payouts", TournamentType.SIT_AND_GO, 100, 1000, 6)
    events = []
    manager.subscribe(tournament.id, events.append)
    register_bots(manager, tournament, 6)
    assert tournament.prize_pool == 600

    for i in range(5, 0, -1):
        manager.eliminate_player(tournament.id, f"bot{i}")

    standings = manager.final_standings(tournament.id)
    assert [p.id for p in standings] == ["bot0", "bot1", "bot2", "bot3", "bot4", "bot5"]
    assert [p.position for p in standings] == [1, 2, 3, 4, 5, 6]
    assert [p.winnings for p in standings] == [300, 180, 120, 0, 0, 0]
    assert standings[0].status == TournamentPlayerStatus.FINISHED
    assert tournament.status == TournamentStatus.COMPLETED
    assert tournament.elimination_order == ["bot5", "bot4", "bot3", "bot2", "bot1"]
    assert events[-1].type == "tournament-completed"
    assert events[-1].data["winner"]["id"] == "bot0"
    assert manager.calculate_payouts(tournament.id) == {1: 300, 2: 180, 3: 120}

    with pytest.raises(TournamentError):
        manager.eliminate_player(tournament.id, "bot1")


def test_players_busted_in_one_hand_finish_by_starting_stack(manager):
    tournament = manager.create_sit_and_go(max_players=3)
    register_bots(manager, tournament, 3)
    manager.start_table_hand(tournament.id, "table-1")

    table = tournament.tables["table-1"]
    state = table.game_state
    state.phase = GamePhase.SHOWDOWN
    for player, chips in zip(state.players, [4500, 0, 0]):
        player.chips = chips
    table.hand_start_chips = {"bot0": 1500, "bot1": 2000, "bot2": 1000}

    busted = manager.complete_table_hand(tournament.id, "table-1")

    assert busted == ["bot2", "bot1"]
    assert tournament.players["bot2"].position == 3
    assert tournament.players["bot1"].position == 2
    assert tournament.players["bot0"].position == 1
    assert tournament.players["bot0"].chip_count == 4500
    assert tournament.status == TournamentStatus.COMPLETED


def test_tables_are_balanced_and_broken_as_players_leave(manager):
    tournament = manager.create_tournament("Balance", TournamentType.MULTI_TABLE, 10, 1000, 20)
    register_bots(manager, tournament, 12)
    manager.start_tournament(tournament.id)
    assert [len(t.seats) for t in tournament.tables.values()] == [6, 6]

    def bust_from_first_table():
        victim = next(iter(tournament.tables["table-1"].seats.values()))
        manager.eliminate_player(tournament.id, victim)

    bust_from_first_table()
    assert [len(t.seats) for t in tournament.tables.values()] == [5, 6]
    bust_from_first_table()
    assert [len(t.seats) for t in tournament.tables.values()] == [5, 5]

    # nine players fit at one table
    bust_from_first_table()
    assert list(tournament.tables) == ["table-2"]
    table = tournament.tables["table-2"]
    assert len(table.seats) == 9
    remaining = tournament.remaining_players()
    assert sorted(p.id for p in remaining) == sorted(table.seats.values())
    assert all(p.table_id == "table-2" for p in remaining)
    assert len({p.seat_number for p in remaining}) == 9


def test_bots_play_a_sit_and_go_to_the_end(manager, clock):
    tournament = manager.create_sit_and_go(buy_in=25, max_players=4)
    register_bots(manager, tournament, 4)

    for _ in range(500):
        if tournament.status != TournamentStatus.RUNNING:
            break
        clock.advance(60)
        manager.play_round(tournament.id)
        assert chips_in_play(tournament) == 4 * 1500

    assert tournament.status == TournamentStatus.COMPLETED
    standings = manager.final_standings(tournament.id)
    assert [p.position for p in standings] == [1, 2, 3, 4]
    assert standings[0].chip_count == 4 * 1500
    assert standings[0].winnings == tournament.prize_pool == 100
    assert len(tournament.elimination_order) == 3


def test_human_acts_at_a_tournament_table(manager):
    tournament = manager.create_sit_and_go(max_players=2)
    manager.register_player(tournament.id, "You", player_id="hero", is_human=True)
    manager.register_player(tournament.id, "Bot", player_id="bot")
    table = tournament.tables["table-1"]
    assert manager.player_table(tournament.id, "hero") is table

    state = manager.run_hand(tournament.id, "table-1")
    if state.phase.is_betting:
        assert state.current_player.id == "hero"
        with pytest.raises(TournamentError):
            manager.submit_action(tournament.id, "table-1", "bot", Fold())
        state = manager.submit_action(tournament.id, "table-1", "hero", Fold())

    assert not state.phase.is_betting
    assert not table.in_hand
    assert chips_in_play(tournament) == 3000
    assert {p.id: p.chips for p in state.players} == {
        p.id: p.chip_count for p in tournament.players.values()}


def test_scheduled_tournaments_start_on_time(manager, clock):
    nightly = manager.create_scheduled_tournament("Nightly", start_time=clock.now + 100)
    empty = manager.create_scheduled_tournament("Empty", start_time=clock.now + 100)
    register_bots(manager, nightly, 3)
    register_bots(manager, empty, 1, prefix="solo")

    assert manager.start_due_tournaments() == []
    clock.advance(100)
    assert manager.start_due_tournaments() == [nightly]

    assert nightly.status == TournamentStatus.RUNNING
    assert all(p.chip_count == 3000 for p in nightly.players.values())
    assert manager.current_blind_level(nightly.id).big_blind == 50
    assert empty.status == TournamentStatus.CANCELLED
    assert nightly.to_dict()["status"] == "running"


def test_cancel_refunds_and_cleanup_forgets(manager, clock):
    tournament = manager.create_sit_and_go(buy_in=40, max_players=6)
    register_bots(manager, tournament, 2)
    running = manager.create_sit_and_go(max_players=2)
    register_bots(manager, running, 2)

    manager.cancel_tournament(tournament.id)
    assert tournament.status == TournamentStatus.CANCELLED
    assert tournament.prize_pool == 0
    assert all(p.winnings == 40 for p in tournament.players.values())
    with pytest.raises(TournamentError):
        manager.cancel_tournament(running.id)
    with pytest.raises(TournamentError):
        manager.register_player(tournament.id, "Late")
    assert manager.active_tournaments() == [running]

    assert manager.cleanup(older_than_hours=1) == 0
    clock.advance(2 * 3600)
    assert manager.cleanup(older_than_hours=1) == 1
    assert tournament.id not in manager.tournaments
    assert running.id in manager.tournaments


def test_event_subscribers(manager):
    tournament = manager.create_sit_and_go(max_players=3)
    seen = []

    def broken(event):
        raise RuntimeError("subscriber bug")

    unsubscribe = manager.subscribe(tournament.id, seen.append)
    manager.subscribe(tournament.id, broken)
    manager.register_player(tournament.id, "One")
    unsubscribe()
    manager.register_player(tournament.id, "Two")

    assert [e.type for e in seen] == ["player-registered"]
    assert seen[0].data["current_players"] == 1
