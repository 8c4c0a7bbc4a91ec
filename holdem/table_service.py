"""
Table service: loads a table's state, runs it through the engine and stores
the result.

Each table has its own asyncio.Lock, so there is exactly one writer per table
inside this process. Writes are also version-checked in the database, which
catches a second process writing to the same table. Bot decisions run in the
default executor so a long Monte-Carlo search never blocks the event loop.
"""

import asyncio
import logging
import random
from typing import Any, Dict, List, Optional

from holdem.actions import action_payload, parse_action
from holdem.ai import BotAI
from holdem.betting_engine import post_blinds, process_action
from holdem.config import Config
from holdem.database import DatabaseManager
from holdem.deck import make_deck
from holdem.errors import IllegalActionError, InvalidGameStateError, StaleStateError
from holdem.game_engine import create_initial_game_state, public_state, start_new_hand
from holdem.game_state import GamePhase, GameState

# community cards on the board -> cards burned to deal them
BURNS_FOR_BOARD = {0: 0, 3: 1, 4: 2, 5: 3}

BOARD_SIZE_FOR_PHASE = {
    GamePhase.PRE_FLOP: 0,
    GamePhase.FLOP: 3,
    GamePhase.TURN: 4,
    GamePhase.RIVER: 5,
}


def table_status(state: GameState) -> str:
    if state.game_over:
        return 'finished'
    return 'playing' if state.phase.is_betting else 'waiting'


class TableManager:
    """Owns the tables stored in a DatabaseManager."""

    def __init__(self, db: DatabaseManager, config: Optional[Config] = None,
                 bot_ai: Optional[BotAI] = None, rng: Optional[random.Random] = None):
        self.db = db
        self.config = config or Config()
        self.rng = rng
        self.bot_ai = bot_ai or BotAI(rng=rng, simulations=self.config.bot_simulations)
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock(self, table_id: str) -> asyncio.Lock:
        """The table's write lock; raises TableNotFoundError for unknown tables."""
        lock = self._locks.get(table_id)
        if lock is None:
            self.db.get_table(table_id)
            lock = self._locks[table_id] = asyncio.Lock()
        return lock

    def _load(self, table_id: str):
        row = self.db.get_table(table_id)
        return row, GameState.from_json(row['game_state'])

    def _save(self, table_id: str, expected_version: int, state: GameState, pending: List[Dict[str, Any]]):
        """Store the state, then the action log entries that produced it."""
        self.db.update_game_state(table_id, state.to_json(), expected_version, state.version,
                                  status=table_status(state))
        for entry in pending:
            self.db.log_action(table_id, **entry)

    def _describe(self, row: Dict[str, Any], state: GameState, viewer_id: Optional[str] = None) -> Dict[str, Any]:
        return {
            'id': row['id'],
            'name': row['name'],
            'small_blind': row['small_blind'],
            'big_blind': row['big_blind'],
            'max_players': row['max_players'],
            'status': table_status(state),
            'version': state.version,
            'game_state': public_state(state, viewer_id),
        }

    async def create_table(self, name: Optional[str] = None, num_players: Optional[int] = None,
                           small_blind: Optional[int] = None, big_blind: Optional[int] = None,
                           starting_chips: Optional[int] = None) -> Dict[str, Any]:
        num_players = self.config.num_players if num_players is None else num_players
        small_blind = self.config.small_blind if small_blind is None else small_blind
        big_blind = self.config.big_blind if big_blind is None else big_blind
        starting_chips = self.config.starting_chips if starting_chips is None else starting_chips
        if small_blind < 0 or big_blind <= 0 or small_blind > big_blind:
            raise IllegalActionError(f"Invalid blinds ${small_blind}/${big_blind}")

        state = create_initial_game_state(num_players, starting_chips, self.rng,
                                          small_blind=small_blind, big_blind=big_blind)
        row = self.db.create_table(name or f"Table ${small_blind}/${big_blind}", small_blind, big_blind,
                                   num_players, state.to_json(), state.version, table_status(state))
        logging.info(f"Table {row['id']} created: {num_players} seats, blinds ${small_blind}/${big_blind}")
        return self._describe(row, state, viewer_id=state.players[0].id)

    def list_tables(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        return self.db.list_tables(status)

    async def get_state(self, table_id: str) -> GameState:
        _, state = self._load(table_id)
        return state

    async def get_table(self, table_id: str, viewer_id: Optional[str] = None) -> Dict[str, Any]:
        row, state = self._load(table_id)
        return self._describe(row, state, viewer_id)

    async def start_hand(self, table_id: str) -> Dict[str, Any]:
        """Deal the next hand, post the blinds and let the bots act up to the human."""
        async with self._lock(table_id):
            row, state = self._load(table_id)
            expected = state.version
            pending: List[Dict[str, Any]] = []
            state = start_new_hand(state, self.rng)
            if state.phase == GamePhase.PRE_FLOP:
                state = post_blinds(state, row['small_blind'], row['big_blind'])
                pending.append(dict(action_type='hand-start', hand_number=state.hand_number,
                                    game_phase=state.phase.value, details=state.last_action))
                logging.info(f"Table {table_id}: hand #{state.hand_number} started")
            else:
                logging.info(f"Table {table_id}: no hand started ({state.last_action})")
            state = await self._run_bots(state, pending)
            self._save(table_id, expected, state, pending)
            return self._describe(row, state, self._human_id(state))

    async def submit_action(self, table_id: str, player_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Apply a human player's action, then play the bots."""
        async with self._lock(table_id):
            row, state = self._load(table_id)
            expected = state.version
            player = state.player_by_id(player_id)
            if player is None:
                raise IllegalActionError(f"No player {player_id} at table {table_id}")
            if not player.is_human:
                raise IllegalActionError(f"{player.name} is played by the server")

            action = parse_action(payload)
            try:
                state = process_action(state, action, player_id)
            except IllegalActionError as e:
                logging.info(f"Table {table_id}: rejected {action_payload(action)} from {player.name}: {e}")
                raise
            pending = [self._log_entry(state, player_id, action_payload(action))]
            state = await self._run_bots(state, pending)
            self._save(table_id, expected, state, pending)
            return self._describe(row, state, player_id)

    async def replace_game_state(self, table_id: str, payload: Dict[str, Any], version: int) -> Dict[str, Any]:
        """Store a client-supplied state after checking it against the stored one.

        If a bot is on turn in the replacement, the bots play up to the human
        before the state is stored.
        """
        async with self._lock(table_id):
            row, current = self._load(table_id)
            if version != current.version:
                raise StaleStateError(f"Table {table_id} is at version {current.version}, not {version}")
            try:
                submitted = GameState.from_dict(payload)
            except (ValueError, TypeError, LookupError) as e:
                raise InvalidGameStateError(f"Malformed game state: {e}") from e

            validate_replacement(current, submitted)
            submitted.version = current.version + 1
            pending = [dict(action_type='state-replaced', hand_number=submitted.hand_number,
                            game_phase=submitted.phase.value)]
            submitted = await self._run_bots(submitted, pending)
            self._save(table_id, current.version, submitted, pending)
            logging.info(f"Table {table_id}: state replaced by client (version {submitted.version})")
            return self._describe(row, submitted, self._human_id(submitted))

    async def delete_table(self, table_id: str):
        async with self._lock(table_id):
            self.db.delete_table(table_id)
        self._locks.pop(table_id, None)

    def get_actions(self, table_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        self.db.get_table(table_id)
        return self.db.get_actions(table_id, limit)

    async def _run_bots(self, state: GameState, pending: List[Dict[str, Any]]) -> GameState:
        """Let bots act until it is the human's turn or the hand is over."""
        loop = asyncio.get_running_loop()
        while state.phase.is_betting and not state.current_player.is_human:
            if self.config.bot_delay > 0:
                await asyncio.sleep(self.config.bot_delay)
            seat = state.current_player_index
            bot = state.players[seat]
            action = await loop.run_in_executor(None, self.bot_ai.decide_action, state, seat)
            state = process_action(state, action, bot.id)
            pending.append(self._log_entry(state, bot.id, action_payload(action)))
        return state

    @staticmethod
    def _log_entry(state: GameState, player_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return dict(action_type=payload['action'], player_id=player_id,
                    amount=payload.get('amount', 0), hand_number=state.hand_number,
                    game_phase=state.phase.value, details=state.last_action)

    @staticmethod
    def _human_id(state: GameState) -> Optional[str]:
        return next((p.id for p in state.players if p.is_human), None)


def validate_replacement(current: GameState, submitted: GameState):
    """Reject client states that change the seating, create or destroy chips,
    or hold cards that could not come from one deck."""
    if [p.id for p in submitted.players] != [p.id for p in current.players]:
        raise InvalidGameStateError("Players cannot be added, removed or reordered")
    if any(p.chips < 0 or p.bet < 0 or p.total_bet < 0 for p in submitted.players):
        raise InvalidGameStateError("Chip counts cannot be negative")
    if submitted.total_chips != current.total_chips:
        raise InvalidGameStateError(
            f"Chips must be conserved: table holds ${current.total_chips}, state has ${submitted.total_chips}")
    contributed = sum(p.total_bet for p in submitted.players)
    if submitted.pots and submitted.pot_total != contributed:
        raise InvalidGameStateError(
            f"Pots total ${submitted.pot_total} but players contributed ${contributed}")
    if not 0 <= submitted.current_player_index < len(submitted.players):
        raise InvalidGameStateError("current_player_index is out of range")
    if not 0 <= submitted.dealer_index < len(submitted.players):
        raise InvalidGameStateError("dealer_index is out of range")
    _validate_cards(submitted)
    if submitted.phase.is_betting and not submitted.current_player.can_act:
        raise InvalidGameStateError(f"{submitted.current_player.name} is on turn but cannot act")


def _validate_cards(state: GameState):
    board = len(state.community_cards)
    if board not in BURNS_FOR_BOARD:
        raise InvalidGameStateError(f"A board cannot hold {board} cards")
    expected_board = BOARD_SIZE_FOR_PHASE.get(state.phase)
    if expected_board is not None and board != expected_board:
        raise InvalidGameStateError(f"{state.phase.value} needs {expected_board} community cards, got {board}")

    for p in state.players:
        if len(p.hand) not in (0, 2):
            raise InvalidGameStateError(f"{p.name} holds {len(p.hand)} cards")
        if state.phase.is_betting and not p.folded and len(p.hand) != 2:
            raise InvalidGameStateError(f"{p.name} is in the hand without hole cards")

    cards = list(state.deck) + list(state.community_cards) + [c for p in state.players for c in p.hand]
    unknown = set(cards) - set(make_deck())
    if unknown:
        raise InvalidGameStateError(f"Not a standard card: {', '.join(sorted(str(c) for c in unknown))}")
    if len(set(cards)) != len(cards):
        raise InvalidGameStateError("The same card appears more than once")

    # a waiting table may still show the last hand's board without its hole cards
    if state.phase != GamePhase.WAITING:
        burned = 52 - len(cards)
        if burned != BURNS_FOR_BOARD[board]:
            raise InvalidGameStateError(
                f"{burned} cards are unaccounted for; a board of {board} burns {BURNS_FOR_BOARD[board]}")
