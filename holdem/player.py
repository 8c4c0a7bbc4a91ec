"""
Player model for the hold'em engine.

A Player is a plain serialisable record; every engine transition works on a
deep copy of the game state, so players are mutated only inside the engine.
Bots carry a Personality that the bot decision engine reads when choosing an
action.
"""

import random
from dataclasses import dataclass, field
from typing import List, Optional

from mashumaro.mixins.json import DataClassJSONMixin

from holdem.deck import Card

BOT_NAMES = [
    'Sarah Chen',
    'Marcus Rivera',
    'Elena Volkov',
    'Raj Patel',
    'Sofia Martinez',
    'Kenji Watanabe',
    'Amara Okafor',
    'Lukas Brandt',
    'Priya Nair',
]

HUMAN_NAME = 'You'


@dataclass
class Personality(DataClassJSONMixin):
    """Bot playing style. All traits are in the range 0..1."""

    tightness: float = 0.5  # higher folds more marginal hands
    aggression: float = 0.5  # higher bets and raises more often
    bluff_frequency: float = 0.1

    @property
    def style(self) -> str:
        tight = 'tight' if self.tightness >= 0.5 else 'loose'
        aggressive = 'aggressive' if self.aggression >= 0.5 else 'passive'
        return f"{tight}-{aggressive}"

    @classmethod
    def random(cls, rng: Optional[random.Random] = None) -> 'Personality':
        rng = rng or random
        return cls(
            tightness=round(rng.uniform(0.2, 0.8), 2),
            aggression=round(rng.uniform(0.2, 0.8), 2),
            bluff_frequency=round(rng.uniform(0.02, 0.2), 2),
        )


@dataclass
class PlayerStats(DataClassJSONMixin):
    hands_won: int = 0
    biggest_pot: int = 0


@dataclass
class Player(DataClassJSONMixin):
    id: str
    name: str
    chips: int
    is_human: bool = False
    position: int = 0
    hand: List[Card] = field(default_factory=list)
    bet: int = 0  # contribution on the current street
    total_bet: int = 0  # contribution for the whole hand
    folded: bool = False
    all_in: bool = False
    has_acted: bool = False  # acted since the last bet or raise on this street
    stats: PlayerStats = field(default_factory=PlayerStats)
    personality: Optional[Personality] = None

    @property
    def can_act(self) -> bool:
        """True while the player can still make betting decisions this hand."""
        return not self.folded and not self.all_in

    def commit(self, amount: int) -> int:
        """Move chips from the stack into the pot, capped at the stack.

        Returns the amount actually committed and flags the player all-in
        when the stack is exhausted.
        """
        pay = max(0, min(amount, self.chips))
        self.chips -= pay
        self.bet += pay
        self.total_bet += pay
        if self.chips == 0 and not self.folded:
            self.all_in = True
        return pay

    def reset_for_hand(self):
        self.hand = []
        self.bet = 0
        self.total_bet = 0
        self.folded = self.chips <= 0  # players without chips sit the hand out
        self.all_in = False
        self.has_acted = False


def make_players(num_players: int, chips: int = 1000, rng: Optional[random.Random] = None) -> List[Player]:
    """Seat one human in seat 0 and bots in the remaining seats."""
    players = []
    for i in range(num_players):
        is_human = i == 0
        if is_human:
            name = HUMAN_NAME
        else:
            name = BOT_NAMES[i - 1] if i - 1 < len(BOT_NAMES) else f"Bot {i}"
        players.append(Player(
            id=str(i),
            name=name,
            chips=chips,
            is_human=is_human,
            position=i,
            personality=None if is_human else Personality.random(rng),
        ))
    return players
