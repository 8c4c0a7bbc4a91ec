"""
Game state model for the hold'em engine.

GameState is the single source of truth for a table. Engine operations take a
state and return a new one; the JSON form produced by ``to_json`` is what the
table store persists.
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from mashumaro.mixins.json import DataClassJSONMixin

from holdem.deck import Card, deal_cards
from holdem.player import Player

ACTION_HISTORY_LIMIT = 30


class GamePhase(str, Enum):
    WAITING = 'waiting'
    PRE_FLOP = 'pre-flop'
    FLOP = 'flop'
    TURN = 'turn'
    RIVER = 'river'
    SHOWDOWN = 'showdown'

    @property
    def is_betting(self) -> bool:
        return self in BETTING_PHASES

    def next_phase(self) -> 'GamePhase':
        return PHASE_TRANSITIONS[self][0]

    @property
    def cards_to_deal(self) -> int:
        """Community cards dealt when the game moves out of this phase."""
        return PHASE_TRANSITIONS[self][1]


# phase -> (next phase, community cards dealt on the transition)
PHASE_TRANSITIONS = {
    GamePhase.WAITING: (GamePhase.PRE_FLOP, 0),
    GamePhase.PRE_FLOP: (GamePhase.FLOP, 3),
    GamePhase.FLOP: (GamePhase.TURN, 1),
    GamePhase.TURN: (GamePhase.RIVER, 1),
    GamePhase.RIVER: (GamePhase.SHOWDOWN, 0),
    GamePhase.SHOWDOWN: (GamePhase.WAITING, 0),
}

BETTING_PHASES = (GamePhase.PRE_FLOP, GamePhase.FLOP, GamePhase.TURN, GamePhase.RIVER)


@dataclass
class Pot(DataClassJSONMixin):
    amount: int
    eligible_player_ids: List[str] = field(default_factory=list)


@dataclass
class ActionRecord(DataClassJSONMixin):
    sequence: int
    hand_number: int
    phase: GamePhase
    message: str
    player_id: Optional[str] = None
    player_name: Optional[str] = None
    action: Optional[str] = None
    amount: int = 0


@dataclass
class SessionStats(DataClassJSONMixin):
    hands_played: int = 0
    hands_won_by_player: int = 0
    hand_distribution: Dict[str, int] = field(default_factory=dict)


@dataclass
class Achievement(DataClassJSONMixin):
    id: str
    name: str
    description: str
    unlocked_at: Optional[int] = None  # hand number of the unlock


@dataclass
class PotAward(DataClassJSONMixin):
    amount: int
    winner_ids: List[str]
    shares: Dict[str, int]
    hand_description: Optional[str] = None


@dataclass
class HandSummary(DataClassJSONMixin):
    hand_number: int
    awards: List[PotAward] = field(default_factory=list)
    revealed: bool = False
    hands: Dict[str, str] = field(default_factory=dict)  # player id -> description
    unlocked_achievements: List[str] = field(default_factory=list)

    @property
    def winner_ids(self) -> List[str]:
        winners: List[str] = []
        for award in self.awards:
            for pid in award.winner_ids:
                if pid not in winners:
                    winners.append(pid)
        return winners


@dataclass
class GameState(DataClassJSONMixin):
    players: List[Player]
    deck: List[Card] = field(default_factory=list)
    community_cards: List[Card] = field(default_factory=list)
    pots: List[Pot] = field(default_factory=list)
    current_player_index: int = 0
    dealer_index: int = 0
    phase: GamePhase = GamePhase.WAITING
    current_bet: int = 0
    min_raise: int = 0
    small_blind: int = 0
    big_blind: int = 0
    ante: int = 0
    starting_chips: int = 1000
    last_action: Optional[str] = None
    action_history: List[ActionRecord] = field(default_factory=list)
    action_sequence: int = 0
    session_stats: SessionStats = field(default_factory=SessionStats)
    achievements: Dict[str, Achievement] = field(default_factory=dict)
    hand_number: int = 0
    game_over: bool = False
    last_hand: Optional[HandSummary] = None
    version: int = 0

    def copy(self) -> 'GameState':
        return copy.deepcopy(self)

    @property
    def current_player(self) -> Player:
        return self.players[self.current_player_index]

    @property
    def pot_total(self) -> int:
        return sum(p.amount for p in self.pots)

    @property
    def total_chips(self) -> int:
        """Chips on the table: stacks plus everything committed this hand."""
        return sum(p.chips for p in self.players) + sum(p.total_bet for p in self.players)

    def player_by_id(self, player_id: str) -> Optional[Player]:
        return next((p for p in self.players if p.id == player_id), None)

    def unfolded_players(self) -> List[Player]:
        return [p for p in self.players if not p.folded]

    def acting_players(self) -> List[Player]:
        return [p for p in self.players if p.can_act]

    def record(self, message: str, player: Optional[Player] = None,
               action: Optional[str] = None, amount: int = 0):
        """Append to the capped action history and set ``last_action``."""
        self.action_sequence += 1
        self.action_history.append(ActionRecord(
            sequence=self.action_sequence,
            hand_number=self.hand_number,
            phase=self.phase,
            message=message,
            player_id=player.id if player else None,
            player_name=player.name if player else None,
            action=action,
            amount=amount,
        ))
        if len(self.action_history) > ACTION_HISTORY_LIMIT:
            del self.action_history[:-ACTION_HISTORY_LIMIT]
        self.last_action = message

    def deal_next_street(self) -> List[Card]:
        """Close the current street and move to the next phase in place.

        Street bets are cleared, one card is burned and the flop, turn or river
        is dealt. Returns the community cards dealt.
        """
        count = self.phase.cards_to_deal
        for p in self.players:
            p.bet = 0
            p.has_acted = False
        self.current_bet = 0
        self.min_raise = self.big_blind
        dealt: List[Card] = []
        if count:
            _, self.deck = deal_cards(self.deck, 1)
            dealt, self.deck = deal_cards(self.deck, count)
            self.community_cards.extend(dealt)
        self.phase = self.phase.next_phase()
        return dealt
