import random
from typing import Callable, List, Optional, Sequence

import pytest

from holdem.achievements import initial_achievements
from holdem.config import Config
from holdem.database import DatabaseManager
from holdem.deck import Card, make_deck, parse_card
from holdem.game_state import GamePhase, GameState
from holdem.player import Player
from holdem.pot_manager import calculate_pots
from holdem.table_service import TableManager


def cards(text: str) -> List[Card]:
    """``cards("Ah Kd 10c")`` -> list of Card."""
    return [parse_card(part) for part in text.split()]


def stacked_deck(used: Sequence[Card], board: Sequence[Card] = ()) -> List[Card]:
    """Deck that deals ``board`` as flop/turn/river, with a burn before each street."""
    rest = [c for c in make_deck() if c not in set(used) | set(board)]
    if not board:
        return rest
    board = list(board)
    return ([rest[0]] + board[:3] + [rest[1]] + board[3:4] + [rest[2]] + board[4:5] + rest[3:])


@pytest.fixture
def make_table() -> Callable[..., GameState]:
    """Factory for a freshly dealt pre-flop GameState with known cards.

    Seat 0 is the human. Players without chips sit the hand out.
    """

    def _factory(stacks: Sequence[int], dealer_index: int = 0, hands: Optional[Sequence[str]] = None,
                 board: str = '', small_blind: int = 10, big_blind: int = 20) -> GameState:
        players = []
        for i, chips in enumerate(stacks):
            player = Player(id=str(i), name=f"P{i}", chips=chips, is_human=(i == 0), position=i)
            player.reset_for_hand()
            if hands:
                player.hand = cards(hands[i])
            players.append(player)

        used = [c for p in players for c in p.hand]
        state = GameState(
            players=players,
            deck=stacked_deck(used, cards(board)),
            dealer_index=dealer_index,
            phase=GamePhase.PRE_FLOP,
            small_blind=small_blind,
            big_blind=big_blind,
            min_raise=big_blind,
            hand_number=1,
            achievements=initial_achievements(),
        )
        state.session_stats.hands_played = 1
        state.pots = calculate_pots(players)
        return state

    return _factory


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def database_manager(tmp_path, monkeypatch):
    """Provide isolated DatabaseManager instance with temporary SQLite file."""

    db_path = tmp_path / "test_holdem.sqlite"
    manager = DatabaseManager(str(db_path))

    # Ensure module-level helpers return this instance
    monkeypatch.setattr("holdem.database._db_manager", manager, raising=False)

    yield manager

    manager.close()


@pytest.fixture
def test_config(tmp_path) -> Config:
    return Config(db_path=str(tmp_path / "api.sqlite"), num_players=3,
                  bot_delay=0.0, bot_simulations=10)


@pytest.fixture
def table_manager(database_manager, test_config) -> TableManager:
    return TableManager(database_manager, test_config, rng=random.Random(99))


@pytest.fixture(autouse=True)
def reset_database_singleton(monkeypatch):
    """Ensure database singleton is reset between tests."""

    monkeypatch.setattr("holdem.database._db_manager", None, raising=False)
