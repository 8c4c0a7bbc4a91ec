"""
Tournament mode: Sit & Go and scheduled tournaments played on ordinary tables.

A TournamentManager keeps its tournaments in memory. Every tournament table
holds a regular GameState built with ``create_initial_game_state``; hands are
dealt with ``start_new_hand`` and the blinds and ante of the current level.
Players never rebuy: a player who ends a hand without chips is eliminated and
leaves the table before the next deal.
"""

import logging
import random
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from mashumaro.mixins.json import DataClassJSONMixin

from holdem.actions import PlayerAction
from holdem.ai import BotAI
from holdem.betting_engine import post_blinds, process_action
from holdem.errors import TournamentError
from holdem.game_engine import MAX_PLAYERS, MIN_PLAYERS, create_initial_game_state, start_new_hand
from holdem.game_state import GamePhase, GameState
from holdem.player import Personality, Player

MULTI_TABLE_SEATS = 9


class TournamentType(str, Enum):
    SIT_AND_GO = 'sit_and_go'
    SCHEDULED = 'scheduled'
    MULTI_TABLE = 'multi_table'


class TournamentStatus(str, Enum):
    REGISTERING = 'registering'
    RUNNING = 'running'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


class TournamentPlayerStatus(str, Enum):
    REGISTERED = 'registered'
    PLAYING = 'playing'
    ELIMINATED = 'eliminated'
    FINISHED = 'finished'


@dataclass
class BlindLevel(DataClassJSONMixin):
    level: int
    duration: int  # minutes
    small_blind: int
    big_blind: int
    ante: int = 0


@dataclass
class PayoutPosition(DataClassJSONMixin):
    position: int
    percentage: float


def _levels(duration: int, *blinds) -> List[BlindLevel]:
    return [BlindLevel(i + 1, duration, *level) for i, level in enumerate(blinds)]


BLIND_STRUCTURES: Dict[str, List[BlindLevel]] = {
    'turbo': _levels(
        3, (10, 20), (15, 30), (25, 50), (50, 100), (75, 150, 25), (100, 200, 30),
        (150, 300, 40), (200, 400, 50), (300, 600, 75), (500, 1000, 100),
    ),
    'normal': _levels(
        10, (25, 50), (50, 100), (75, 150), (100, 200), (150, 300, 25), (200, 400, 50),
        (300, 600, 75), (400, 800, 100), (500, 1000, 125), (600, 1200, 150),
        (800, 1600, 200), (1000, 2000, 250),
    ),
    'deep-stack': _levels(
        15, (25, 50), (50, 100), (75, 150), (100, 200), (125, 250), (150, 300, 25),
        (200, 400, 50), (250, 500, 50), (300, 600, 75), (400, 800, 100), (500, 1000, 100),
        (600, 1200, 150), (800, 1600, 200), (1000, 2000, 250), (1500, 3000, 400),
    ),
}


def _payouts(*percentages) -> List[PayoutPosition]:
    return [PayoutPosition(i + 1, pct) for i, pct in enumerate(percentages)]


# (largest field size, payout table), smallest fields first
DEFAULT_PAYOUT_STRUCTURES = [
    (5, _payouts(100)),
    (9, _payouts(50, 30, 20)),
    (20, _payouts(40, 25, 18, 12, 5)),
    (50, _payouts(30, 20, 13, 10, 8, 6, 5, 4, 4)),
    (None, _payouts(25, 16, 11, 8, 6.5, 5, 4, 3.5, 3, 2.5, 2.5, 2.5, 2, 2, 2, 1.5, 1.5, 1.5)),
]


def default_payout_structure(player_count: int) -> List[PayoutPosition]:
    for limit, payouts in DEFAULT_PAYOUT_STRUCTURES:
        if limit is None or player_count <= limit:
            return [PayoutPosition(p.position, p.percentage) for p in payouts]


@dataclass
class TournamentPlayer(DataClassJSONMixin):
    id: str
    name: str
    chip_count: int
    status: TournamentPlayerStatus = TournamentPlayerStatus.REGISTERED
    is_human: bool = False
    position: Optional[int] = None  # finishing position, set on elimination
    table_id: Optional[str] = None
    seat_number: Optional[int] = None
    eliminated_at: Optional[float] = None
    winnings: int = 0


@dataclass
class TournamentTable(DataClassJSONMixin):
    id: str
    table_number: int
    max_seats: int
    seats: Dict[int, str] = field(default_factory=dict)  # seat number -> player id
    game_state: Optional[GameState] = None
    hand_start_chips: Dict[str, int] = field(default_factory=dict)  # empty between hands

    @property
    def in_hand(self) -> bool:
        return bool(self.hand_start_chips)

    def free_seat(self) -> Optional[int]:
        return next((s for s in range(self.max_seats) if s not in self.seats), None)


@dataclass
class Tournament(DataClassJSONMixin):
    id: str
    name: str
    type: TournamentType
    buy_in: int
    starting_chips: int
    max_players: int
    blind_structure: List[BlindLevel]
    payout_structure: List[PayoutPosition]
    status: TournamentStatus = TournamentStatus.REGISTERING
    prize_pool: int = 0
    current_blind_level: int = 0
    next_blind_time: Optional[float] = None
    players: Dict[str, TournamentPlayer] = field(default_factory=dict)
    tables: Dict[str, TournamentTable] = field(default_factory=dict)
    scheduled_start: Optional[float] = None
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    elimination_order: List[str] = field(default_factory=list)

    @property
    def current_players(self) -> int:
        return len(self.players)

    @property
    def blind_level(self) -> BlindLevel:
        return self.blind_structure[self.current_blind_level]

    def remaining_players(self) -> List[TournamentPlayer]:
        return [p for p in self.players.values() if p.status == TournamentPlayerStatus.PLAYING]

    def payout_for(self, position: int) -> int:
        pct = next((p.percentage for p in self.payout_structure if p.position == position), None)
        if pct is None:
            return 0
        return int(self.prize_pool * pct / 100)


@dataclass
class TournamentEvent:
    type: str
    data: Dict[str, Any]
    timestamp: float


EventCallback = Callable[[TournamentEvent], None]


class TournamentManager:
    """Runs tournaments in memory.

    ``clock`` returns the current time in seconds; tests pass a fake one to
    move through blind levels without waiting.
    """

    def __init__(self, bot_ai: Optional[BotAI] = None, rng: Optional[random.Random] = None,
                 clock: Callable[[], float] = time.time):
        self.rng = rng
        self.bot_ai = bot_ai or BotAI(rng=rng)
        self.clock = clock
        self.tournaments: Dict[str, Tournament] = {}
        self._callbacks: Dict[str, List[EventCallback]] = {}

    def get_tournament(self, tournament_id: str) -> Tournament:
        tournament = self.tournaments.get(tournament_id)
        if tournament is None:
            raise TournamentError(f"Tournament {tournament_id} not found")
        return tournament

    def create_tournament(self, name: str, tournament_type: TournamentType, buy_in: int, starting_chips: int,
                          max_players: int, blind_structure: str = 'normal',
                          custom_blinds: Optional[List[BlindLevel]] = None,
                          custom_payouts: Optional[List[PayoutPosition]] = None,
                          start_time: Optional[float] = None) -> Tournament:
        if max_players < MIN_PLAYERS:
            raise ValueError(f"A tournament needs room for at least {MIN_PLAYERS} players")
        if tournament_type == TournamentType.SIT_AND_GO and max_players > MAX_PLAYERS:
            raise ValueError(f"A Sit & Go is played at one table of at most {MAX_PLAYERS} seats")
        if buy_in < 0 or starting_chips <= 0:
            raise ValueError("Buy-in cannot be negative and starting chips must be positive")
        if custom_blinds is None and blind_structure not in BLIND_STRUCTURES:
            raise ValueError(f"Unknown blind structure {blind_structure!r}")

        tournament = Tournament(
            id=uuid.uuid4().hex,
            name=name,
            type=tournament_type,
            buy_in=buy_in,
            starting_chips=starting_chips,
            max_players=max_players,
            blind_structure=list(custom_blinds or BLIND_STRUCTURES[blind_structure]),
            payout_structure=list(custom_payouts or default_payout_structure(max_players)),
            scheduled_start=start_time,
        )
        self.tournaments[tournament.id] = tournament
        logging.info(f"Tournament {tournament.id} created: {name} ({tournament_type.value}, "
                     f"{max_players} players, buy-in ${buy_in})")
        self._emit(tournament.id, 'tournament-created', name=name, type=tournament_type.value)
        return tournament

    def create_sit_and_go(self, buy_in: int = 100, max_players: int = 6) -> Tournament:
        return self.create_tournament(f"Sit & Go - {max_players} Players", TournamentType.SIT_AND_GO,
                                      buy_in, 1500, max_players, blind_structure='turbo')

    def create_scheduled_tournament(self, name: str, start_time: float, buy_in: int = 100,
                                    max_players: int = 50) -> Tournament:
        return self.create_tournament(name, TournamentType.SCHEDULED, buy_in, 3000, max_players,
                                      blind_structure='normal', start_time=start_time)

    def register_player(self, tournament_id: str, name: str, player_id: Optional[str] = None,
                        is_human: bool = False) -> TournamentPlayer:
        """Seat a new entrant and add the buy-in to the prize pool.

        A Sit & Go starts by itself once the last seat is taken.
        """
        tournament = self.get_tournament(tournament_id)
        if tournament.status != TournamentStatus.REGISTERING:
            raise TournamentError(f"Registration for {tournament.name} is closed")
        if tournament.current_players >= tournament.max_players:
            raise TournamentError(f"{tournament.name} is full")
        player_id = player_id or uuid.uuid4().hex
        if player_id in tournament.players:
            raise TournamentError(f"Player {player_id} is already registered")

        player = TournamentPlayer(id=player_id, name=name, chip_count=tournament.starting_chips,
                                  is_human=is_human)
        tournament.players[player_id] = player
        tournament.prize_pool += tournament.buy_in
        logging.debug(f"{name} registered for {tournament.name} "
                      f"({tournament.current_players}/{tournament.max_players})")
        self._emit(tournament_id, 'player-registered', player_id=player_id, player_name=name,
                   current_players=tournament.current_players)

        if (tournament.type == TournamentType.SIT_AND_GO
                and tournament.current_players == tournament.max_players):
            self.start_tournament(tournament_id)
        return player

    def can_start(self, tournament_id: str) -> bool:
        tournament = self.get_tournament(tournament_id)
        return tournament.status == TournamentStatus.REGISTERING and tournament.current_players >= MIN_PLAYERS

    def start_tournament(self, tournament_id: str) -> Tournament:
        tournament = self.get_tournament(tournament_id)
        if tournament.status != TournamentStatus.REGISTERING:
            raise TournamentError(f"{tournament.name} is already {tournament.status.value}")
        if tournament.current_players < MIN_PLAYERS:
            raise TournamentError(f"{tournament.name} needs at least {MIN_PLAYERS} players to start")

        now = self.clock()
        tournament.status = TournamentStatus.RUNNING
        tournament.start_time = now
        for player in tournament.players.values():
            player.status = TournamentPlayerStatus.PLAYING
        self._create_tables(tournament)
        tournament.next_blind_time = now + tournament.blind_level.duration * 60

        logging.info(f"Tournament {tournament.name} started with {tournament.current_players} players "
                     f"at {len(tournament.tables)} tables")
        self._emit(tournament_id, 'tournament-started', player_count=tournament.current_players,
                   table_count=len(tournament.tables))
        return tournament

    def start_due_tournaments(self, now: Optional[float] = None) -> List[Tournament]:
        """Start every scheduled tournament whose start time has passed."""
        now = self.clock() if now is None else now
        started = []
        for tournament in list(self.tournaments.values()):
            if (tournament.status == TournamentStatus.REGISTERING and tournament.scheduled_start is not None
                    and tournament.scheduled_start <= now):
                if tournament.current_players < MIN_PLAYERS:
                    logging.info(f"Cancelling {tournament.name}: only {tournament.current_players} registered")
                    self.cancel_tournament(tournament.id)
                else:
                    started.append(self.start_tournament(tournament.id))
        return started

    def _create_tables(self, tournament: Tournament):
        seats_per_table = (tournament.max_players if tournament.type == TournamentType.SIT_AND_GO
                           else MULTI_TABLE_SEATS)
        entrants = list(tournament.players.values())
        num_tables = -(-len(entrants) // seats_per_table)
        level = tournament.blind_level

        placed = 0
        for i in range(num_tables):
            # spread players evenly: 10 players at 9-handed tables play 5 and 5
            count = min(-(-(len(entrants) - placed) // (num_tables - i)), seats_per_table)
            table = TournamentTable(id=f"table-{i + 1}", table_number=i + 1, max_seats=seats_per_table)
            seated = entrants[placed:placed + count]
            placed += count

            state = create_initial_game_state(len(seated), tournament.starting_chips, self.rng,
                                              small_blind=level.small_blind, big_blind=level.big_blind)
            for seat, (entrant, player) in enumerate(zip(seated, state.players)):
                entrant.table_id = table.id
                entrant.seat_number = seat
                table.seats[seat] = entrant.id
                player.position = seat
                player.id = entrant.id
                player.name = entrant.name
                player.chips = entrant.chip_count
                player.is_human = entrant.is_human
                if entrant.is_human:
                    player.personality = None
                elif player.personality is None:
                    player.personality = Personality.random(self.rng)
            table.game_state = state
            tournament.tables[table.id] = table

    def advance_blind_level(self, tournament_id: str, now: Optional[float] = None) -> bool:
        """Move to the next blind level; False when already at the last one."""
        tournament = self.get_tournament(tournament_id)
        now = self.clock() if now is None else now
        if tournament.current_blind_level >= len(tournament.blind_structure) - 1:
            tournament.next_blind_time = None
            return False
        tournament.current_blind_level += 1
        level = tournament.blind_level
        tournament.next_blind_time = now + level.duration * 60
        logging.info(f"{tournament.name}: blinds up to ${level.small_blind}/${level.big_blind}"
                     + (f" ante ${level.ante}" if level.ante else ""))
        self._emit(tournament_id, 'blind-level-changed', level=level.level, small_blind=level.small_blind,
                   big_blind=level.big_blind, ante=level.ante)
        return True

    def update_blind_timer(self, tournament_id: str, now: Optional[float] = None) -> Optional[float]:
        """Advance the level if its time is up and return the seconds left on it."""
        tournament = self.get_tournament(tournament_id)
        now = self.clock() if now is None else now
        if tournament.status != TournamentStatus.RUNNING or tournament.next_blind_time is None:
            return None
        if now >= tournament.next_blind_time:
            self.advance_blind_level(tournament_id, now)
            if tournament.next_blind_time is None:
                return None
        return tournament.next_blind_time - now

    def current_blind_level(self, tournament_id: str) -> BlindLevel:
        return self.get_tournament(tournament_id).blind_level

    def _table(self, tournament: Tournament, table_id: str) -> TournamentTable:
        table = tournament.tables.get(table_id)
        if table is None:
            raise TournamentError(f"{tournament.name} has no table {table_id}")
        return table

    def player_table(self, tournament_id: str, player_id: str) -> Optional[TournamentTable]:
        tournament = self.get_tournament(tournament_id)
        player = tournament.players.get(player_id)
        if player is None or player.table_id is None:
            return None
        return tournament.tables.get(player.table_id)

    def start_table_hand(self, tournament_id: str, table_id: str) -> GameState:
        """Deal the next hand at a table with the current level's blinds and ante."""
        tournament = self.get_tournament(tournament_id)
        if tournament.status != TournamentStatus.RUNNING:
            raise TournamentError(f"{tournament.name} is not running")
        table = self._table(tournament, table_id)
        if table.in_hand:
            if table.game_state.phase.is_betting:
                raise TournamentError(f"Hand {table.game_state.hand_number} at {table_id} is still in progress")
            self.complete_table_hand(tournament_id, table_id)
            if tournament.status != TournamentStatus.RUNNING or table_id not in tournament.tables:
                raise TournamentError(f"{table_id} closed after its last hand")
        if len(table.seats) < MIN_PLAYERS:
            raise TournamentError(f"{table_id} has {len(table.seats)} player(s) seated")

        self.update_blind_timer(tournament_id)
        level = tournament.blind_level
        self._seat_players(tournament, table)
        state = start_new_hand(table.game_state, self.rng)
        if state.phase != GamePhase.PRE_FLOP:
            raise TournamentError(f"No hand could be dealt at {table_id}: {state.last_action}")
        table.hand_start_chips = {p.id: p.chips for p in state.players}
        state = post_blinds(state, level.small_blind, level.big_blind, level.ante)
        table.game_state = state
        logging.debug(f"{tournament.name} {table_id}: hand #{state.hand_number} at level {level.level}")
        return state

    def _seat_players(self, tournament: Tournament, table: TournamentTable):
        """Rebuild the table's players from its seats, keeping the button in place."""
        state = table.game_state.copy()
        known = {p.id: p for p in state.players}
        dealer = state.players[state.dealer_index]

        players = []
        for seat in sorted(table.seats):
            entrant = tournament.players[table.seats[seat]]
            player = known.get(entrant.id)
            if player is None:
                player = Player(id=entrant.id, name=entrant.name, chips=entrant.chip_count,
                                is_human=entrant.is_human,
                                personality=None if entrant.is_human else Personality.random(self.rng))
            player.chips = entrant.chip_count
            player.position = seat
            players.append(player)

        state.players = players
        # the button moves on from the last seat at or before the old dealer
        behind = [i for i, p in enumerate(players) if p.position <= dealer.position]
        state.dealer_index = behind[-1] if behind else len(players) - 1
        state.current_player_index = 0
        table.game_state = state

    def play_bots(self, tournament_id: str, table_id: str) -> GameState:
        """Let the bots act until a human is on turn; settle the hand once it is over."""
        tournament = self.get_tournament(tournament_id)
        table = self._table(tournament, table_id)
        state = table.game_state
        while state.phase.is_betting and not state.current_player.is_human:
            seat = state.current_player_index
            action = self.bot_ai.decide_action(state, seat)
            state = process_action(state, action, state.players[seat].id)
        table.game_state = state
        if table.in_hand and not state.phase.is_betting:
            self.complete_table_hand(tournament_id, table_id)
        return state

    def submit_action(self, tournament_id: str, table_id: str, player_id: str,
                      action: PlayerAction) -> GameState:
        """Apply a human player's action at a tournament table, then play the bots."""
        tournament = self.get_tournament(tournament_id)
        table = self._table(tournament, table_id)
        player = table.game_state.player_by_id(player_id)
        if player is None or not player.is_human:
            raise TournamentError(f"Player {player_id} does not play for themselves at {table_id}")
        table.game_state = process_action(table.game_state, action, player_id)
        return self.play_bots(tournament_id, table_id)

    def run_hand(self, tournament_id: str, table_id: str) -> GameState:
        """Deal a hand and play it as far as the bots can take it."""
        self.start_table_hand(tournament_id, table_id)
        return self.play_bots(tournament_id, table_id)

    def play_round(self, tournament_id: str) -> int:
        """Run one hand at every table that can deal one; returns the hands played."""
        tournament = self.get_tournament(tournament_id)
        played = 0
        for table_id in list(tournament.tables):
            if tournament.status != TournamentStatus.RUNNING:
                break
            table = tournament.tables.get(table_id)
            if table is None or table.in_hand or len(table.seats) < MIN_PLAYERS:
                continue
            self.run_hand(tournament_id, table_id)
            played += 1
        return played

    def complete_table_hand(self, tournament_id: str, table_id: str) -> List[str]:
        """Copy the table's stacks back to the players and knock out the broke ones.

        Players busted in the same hand finish in order of the stacks they
        started it with. Returns the ids of the eliminated players.
        """
        tournament = self.get_tournament(tournament_id)
        table = self._table(tournament, table_id)
        state = table.game_state
        if state.phase.is_betting:
            raise TournamentError(f"Hand {state.hand_number} at {table_id} is still in progress")
        started_with = table.hand_start_chips
        table.hand_start_chips = {}

        busted = []
        for player in state.players:
            entrant = tournament.players.get(player.id)
            if entrant is None or entrant.status != TournamentPlayerStatus.PLAYING:
                continue
            entrant.chip_count = player.chips
            if player.chips <= 0:
                busted.append(entrant)

        busted.sort(key=lambda p: started_with.get(p.id, 0))
        for entrant in busted:
            if tournament.status == TournamentStatus.RUNNING:
                self.eliminate_player(tournament_id, entrant.id)
        return [p.id for p in busted]

    def eliminate_player(self, tournament_id: str, player_id: str) -> TournamentPlayer:
        tournament = self.get_tournament(tournament_id)
        player = tournament.players.get(player_id)
        if player is None or player.status != TournamentPlayerStatus.PLAYING:
            raise TournamentError(f"Player {player_id} is not playing in {tournament.name}")

        player.status = TournamentPlayerStatus.ELIMINATED
        player.eliminated_at = self.clock()
        player.chip_count = 0
        remaining = len(tournament.remaining_players())
        player.position = remaining + 1
        player.winnings = tournament.payout_for(player.position)
        tournament.elimination_order.append(player_id)

        table = tournament.tables.get(player.table_id) if player.table_id else None
        if table is not None and player.seat_number is not None:
            table.seats.pop(player.seat_number, None)
        player.table_id = None
        player.seat_number = None

        logging.info(f"{tournament.name}: {player.name} finished #{player.position}"
                     + (f", wins ${player.winnings}" if player.winnings else ""))
        self._emit(tournament_id, 'player-eliminated', player_id=player_id, player_name=player.name,
                   position=player.position, winnings=player.winnings, remaining_players=remaining)

        if remaining <= 1:
            self.finish_tournament(tournament_id)
        elif len(tournament.tables) > 1:
            self.balance_tables(tournament_id)
        return player

    def balance_tables(self, tournament_id: str) -> bool:
        """Break tables that are no longer needed and even out the rest.

        Players are only moved away from tables that are between hands.
        Returns True when anybody moved or a table closed.
        """
        tournament = self.get_tournament(tournament_id)
        changed = False
        for table_id in [t.id for t in tournament.tables.values() if not t.seats and not t.in_hand]:
            del tournament.tables[table_id]
            changed = True

        tables = list(tournament.tables.values())
        total = sum(len(t.seats) for t in tables)
        if len(tables) > 1:
            seats_per_table = max(t.max_seats for t in tables)
            needed = max(1, -(-total // seats_per_table))
            while len(tables) > needed:
                breakable = [t for t in tables if not t.in_hand]
                if not breakable:
                    break
                closing = min(breakable, key=lambda t: len(t.seats))
                others = [t for t in tables if t is not closing]
                if sum(t.max_seats - len(t.seats) for t in others) < len(closing.seats):
                    break
                for seat in sorted(closing.seats):
                    target = min((t for t in others if t.free_seat() is not None),
                                 key=lambda t: len(t.seats))
                    self._move_player(tournament, closing, seat, target)
                del tournament.tables[closing.id]
                tables.remove(closing)
                changed = True
                logging.info(f"{tournament.name}: {closing.id} broken")

            while len(tables) > 1:
                largest = max(tables, key=lambda t: len(t.seats))
                smallest = min(tables, key=lambda t: len(t.seats))
                if len(largest.seats) - len(smallest.seats) <= 1 or largest.in_hand:
                    break
                if smallest.free_seat() is None:
                    break
                self._move_player(tournament, largest, min(largest.seats), smallest)
                changed = True

        if changed:
            self._emit(tournament_id, 'table-balanced', table_count=len(tournament.tables),
                       player_distribution={t.id: len(t.seats) for t in tournament.tables.values()})
        return changed

    @staticmethod
    def _move_player(tournament: Tournament, source: TournamentTable, seat: int, target: TournamentTable):
        player_id = source.seats.pop(seat)
        new_seat = target.free_seat()
        target.seats[new_seat] = player_id
        player = tournament.players[player_id]
        player.table_id = target.id
        player.seat_number = new_seat
        logging.debug(f"{player.name} moves from {source.id} to {target.id} seat {new_seat}")

    def calculate_payouts(self, tournament_id: str) -> Dict[int, int]:
        """Finishing position -> prize, from the current prize pool."""
        tournament = self.get_tournament(tournament_id)
        payouts = {p.position: tournament.payout_for(p.position) for p in tournament.payout_structure}
        self._emit(tournament_id, 'payout-calculated', prize_pool=tournament.prize_pool, payouts=payouts)
        return payouts

    def finish_tournament(self, tournament_id: str) -> Optional[TournamentPlayer]:
        """Crown the last player standing and close the tournament."""
        tournament = self.get_tournament(tournament_id)
        remaining = tournament.remaining_players()
        winner = remaining[0] if len(remaining) == 1 else None
        if winner is not None:
            winner.status = TournamentPlayerStatus.FINISHED
            winner.position = 1
            winner.winnings = tournament.payout_for(1)

        tournament.status = TournamentStatus.COMPLETED
        tournament.end_time = self.clock()
        tournament.next_blind_time = None
        logging.info(f"Tournament {tournament.name} completed"
                     + (f", won by {winner.name} (${winner.winnings})" if winner else ""))
        self._emit(tournament_id, 'tournament-completed',
                   winner=winner.to_dict() if winner else None,
                   duration=tournament.end_time - (tournament.start_time or tournament.end_time),
                   final_standings=[p.id for p in self.final_standings(tournament_id)])
        return winner

    def final_standings(self, tournament_id: str) -> List[TournamentPlayer]:
        tournament = self.get_tournament(tournament_id)
        placed = [p for p in tournament.players.values() if p.position is not None]
        return sorted(placed, key=lambda p: p.position)

    def active_tournaments(self) -> List[Tournament]:
        return [t for t in self.tournaments.values()
                if t.status in (TournamentStatus.REGISTERING, TournamentStatus.RUNNING)]

    def cancel_tournament(self, tournament_id: str) -> Tournament:
        """Cancel a tournament that has not started; every buy-in is refunded."""
        tournament = self.get_tournament(tournament_id)
        if tournament.status != TournamentStatus.REGISTERING:
            raise TournamentError(f"{tournament.name} has already started")
        tournament.status = TournamentStatus.CANCELLED
        tournament.end_time = self.clock()
        for player in tournament.players.values():
            player.winnings = tournament.buy_in
        tournament.prize_pool = 0
        logging.info(f"Tournament {tournament.name} cancelled, "
                     f"{tournament.current_players} buy-ins refunded")
        self._emit(tournament_id, 'tournament-cancelled', refunded=tournament.current_players)
        return tournament

    def cleanup(self, older_than_hours: float = 24, now: Optional[float] = None) -> int:
        """Forget completed and cancelled tournaments that ended long enough ago."""
        now = self.clock() if now is None else now
        cutoff = now - older_than_hours * 3600
        stale = [t.id for t in self.tournaments.values()
                 if t.status in (TournamentStatus.COMPLETED, TournamentStatus.CANCELLED)
                 and (t.end_time or 0) < cutoff]
        for tournament_id in stale:
            del self.tournaments[tournament_id]
            self._callbacks.pop(tournament_id, None)
        if stale:
            logging.debug(f"Removed {len(stale)} finished tournaments")
        return len(stale)

    def subscribe(self, tournament_id: str, callback: EventCallback) -> Callable[[], None]:
        """Register ``callback`` for a tournament's events; returns an unsubscribe function."""
        callbacks = self._callbacks.setdefault(tournament_id, [])
        callbacks.append(callback)

        def unsubscribe():
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def _emit(self, tournament_id: str, event_type: str, **data):
        event = TournamentEvent(type=event_type, data=data, timestamp=self.clock())
        for callback in list(self._callbacks.get(tournament_id, [])):
            try:
                callback(event)
            except Exception:
                logging.exception(f"Tournament event callback failed for {event_type}")
