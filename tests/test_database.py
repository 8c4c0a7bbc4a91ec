import pytest

from holdem.database import DatabaseManager, get_database, init_database
from holdem.errors import StaleStateError, TableNotFoundError


def test_create_and_fetch_table(database_manager):
    db = database_manager

    row = db.create_table("Main", 10, 20, 6, '{"players": []}')

    assert len(row["id"]) == 32
    assert row["name"] == "Main"
    assert (row["small_blind"], row["big_blind"], row["max_players"]) == (10, 20, 6)
    assert row["status"] == "waiting"
    assert row["version"] == 0
    assert db.get_table(row["id"])["game_state"] == '{"players": []}'


def test_get_missing_table_raises(database_manager):
    with pytest.raises(TableNotFoundError):
        database_manager.get_table("nope")


def test_list_tables_filters_by_status(database_manager):
    db = database_manager
    waiting = db.create_table("Waiting", 10, 20, 6, "{}")
    playing = db.create_table("Playing", 25, 50, 9, "{}", status="playing")

    assert {t["id"] for t in db.list_tables()} == {waiting["id"], playing["id"]}
    assert [t["id"] for t in db.list_tables("playing")] == [playing["id"]]
    assert "game_state" not in db.list_tables()[0]


def test_update_game_state_checks_version(database_manager):
    db = database_manager
    table_id = db.create_table("Main", 10, 20, 6, "{}")["id"]

    db.update_game_state(table_id, '{"v": 1}', expected_version=0, new_version=1, status="playing")
    row = db.get_table(table_id)
    assert (row["version"], row["status"], row["game_state"]) == (1, "playing", '{"v": 1}')

    with pytest.raises(StaleStateError):
        db.update_game_state(table_id, '{"v": 2}', expected_version=0, new_version=2)
    assert db.get_table(table_id)["game_state"] == '{"v": 1}'

    # status is kept when none is given
    db.update_game_state(table_id, '{"v": 2}', expected_version=1, new_version=2)
    assert db.get_table(table_id)["status"] == "playing"


def test_update_missing_table_raises_not_found(database_manager):
    with pytest.raises(TableNotFoundError):
        database_manager.update_game_state("nope", "{}", expected_version=0, new_version=1)


def test_action_log_and_stats(database_manager):
    db = database_manager
    table_id = db.create_table("Main", 10, 20, 6, "{}", status="playing")["id"]

    for i, action in enumerate(["call", "raise", "fold"]):
        db.log_action(table_id, action, player_id=str(i), amount=i * 20, hand_number=1,
                      game_phase="pre-flop", details=f"step {i}")

    actions = db.get_actions(table_id)
    assert [a["action_type"] for a in actions] == ["call", "raise", "fold"]
    assert actions[1]["amount"] == 20
    assert actions[2]["details"] == "step 2"
    assert [a["action_type"] for a in db.get_actions(table_id, limit=2)] == ["raise", "fold"]

    assert db.get_database_stats() == {"total_tables": 1, "active_tables": 1, "total_actions": 3}


def test_delete_table_removes_its_actions(database_manager):
    db = database_manager
    table_id = db.create_table("Main", 10, 20, 6, "{}")["id"]
    db.log_action(table_id, "hand-start", hand_number=1)

    assert db.delete_table(table_id) is True
    assert db.delete_table(table_id) is False
    assert db.get_actions(table_id) == []
    with pytest.raises(TableNotFoundError):
        db.get_table(table_id)


def test_database_helpers(database_manager, tmp_path):
    assert get_database() is database_manager

    manager = init_database(str(tmp_path / "other.sqlite"))
    try:
        assert isinstance(manager, DatabaseManager)
        assert get_database() is manager
        assert manager.list_tables() == []
    finally:
        manager.close()
