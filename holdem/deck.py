"""
Deck and card operations for the hold'em engine.

Cards are immutable values; decks are plain lists that are never shuffled or
dealt in place, so a deck stored inside a game state can be shared safely.
"""

import random
from dataclasses import dataclass
from typing import List, Optional, Tuple

from mashumaro.mixins.json import DataClassJSONMixin

from holdem.errors import InsufficientCardsError

RANKS = list(range(2, 15))  # 2-14 (where 11=J, 12=Q, 13=K, 14=A)
SUITS = list('cdhs')  # clubs, diamonds, hearts, spades

RANK_NAMES = {11: 'J', 12: 'Q', 13: 'K', 14: 'A'}
SUIT_SYMBOLS = {'s': '♠', 'h': '♥', 'd': '♦', 'c': '♣'}


@dataclass(frozen=True)
class Card(DataClassJSONMixin):
    rank: int
    suit: str

    @property
    def id(self) -> str:
        return card_str(self)

    def __str__(self) -> str:
        return card_str(self)


def make_deck() -> List[Card]:
    """Create a standard 52-card deck."""
    return [Card(r, s) for r in RANKS for s in SUITS]


def card_str(card: Card) -> str:
    """Convert a card to its string representation."""
    return f"{RANK_NAMES.get(card.rank, card.rank)}{card.suit}"


def parse_card(text: str) -> Card:
    """Parse a card written as e.g. 'Ah', '10c' or 'Td'."""
    text = text.strip()
    if len(text) < 2:
        raise ValueError(f"Invalid card: {text!r}")
    rank_part, suit = text[:-1].upper(), text[-1].lower()
    names = {v: k for k, v in RANK_NAMES.items()}
    names['T'] = 10
    if rank_part in names:
        rank = names[rank_part]
    elif rank_part.isdigit() and 2 <= int(rank_part) <= 10:
        rank = int(rank_part)
    else:
        raise ValueError(f"Invalid card rank: {text!r}")
    if suit not in SUITS:
        raise ValueError(f"Invalid card suit: {text!r}")
    return Card(rank, suit)


def format_cards(cards: List[Card]) -> str:
    """Format cards for display, e.g. 'A♠, 10♥'."""
    if not cards:
        return "None"
    return ", ".join(f"{RANK_NAMES.get(c.rank, c.rank)}{SUIT_SYMBOLS[c.suit]}" for c in cards)


def shuffle_deck(deck: List[Card], rng: Optional[random.Random] = None) -> List[Card]:
    """Return a shuffled copy of a deck.

    Pass an explicit ``rng`` only for reproducible tests; normal play uses the
    module level generator.
    """
    shuffled = list(deck)
    (rng or random).shuffle(shuffled)
    return shuffled


def deal_cards(deck: List[Card], num_cards: int) -> Tuple[List[Card], List[Card]]:
    """Deal cards from the top of the deck.

    Returns ``(dealt, remaining)``; the input list is not modified.
    """
    if num_cards < 0:
        raise ValueError(f"Cannot deal a negative number of cards: {num_cards}")
    if len(deck) < num_cards:
        raise InsufficientCardsError(f"Cannot deal {num_cards} cards from deck of {len(deck)}")
    return list(deck[:num_cards]), list(deck[num_cards:])


def create_shuffled_deck(rng: Optional[random.Random] = None) -> List[Card]:
    """Create and return a shuffled deck."""
    return shuffle_deck(make_deck(), rng)
