"""
Hand evaluation for the hold'em engine.

A hand value is a ``(category, tiebreakers)`` tuple; Python's tuple and list
ordering makes a higher value a better hand, and equal values a true tie.
"""

import itertools
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from holdem.deck import Card

HandValue = Tuple[int, List[int]]

HAND_RANKS = {
    'high-card': 0,
    'pair': 1,
    'two-pair': 2,
    'three-of-a-kind': 3,
    'straight': 4,
    'flush': 5,
    'full-house': 6,
    'four-of-a-kind': 7,
    'straight-flush': 8,
    'royal-flush': 9,
}

RANK_CATEGORY_NAMES = {value: name for name, value in HAND_RANKS.items()}

HAND_TITLES = {
    'high-card': 'High Card',
    'pair': 'Pair',
    'two-pair': 'Two Pair',
    'three-of-a-kind': 'Three of a Kind',
    'straight': 'Straight',
    'flush': 'Flush',
    'full-house': 'Full House',
    'four-of-a-kind': 'Four of a Kind',
    'straight-flush': 'Straight Flush',
    'royal-flush': 'Royal Flush',
}


@dataclass
class HandResult:
    value: HandValue
    rank_name: str
    description: str
    cards: List[Card] = field(default_factory=list)

    @property
    def title(self) -> str:
        return HAND_TITLES[self.rank_name]


def _straight_high(ranks: Sequence[int]) -> int:
    """Return the high card of a 5-card straight, or 0 if there is none."""
    rset = sorted(set(ranks), reverse=True)
    if len(rset) != 5:
        return 0
    if rset[0] - rset[4] == 4:
        return rset[0]
    # wheel (A-2-3-4-5): the ace plays low
    if rset == [14, 5, 4, 3, 2]:
        return 5
    return 0


def evaluate_5cards(cards: Sequence[Card]) -> HandValue:
    """Evaluate exactly 5 cards and return a tuple (category_rank, tiebreaker ranks).

    Higher tuple sorts as better hand.
    """
    if len(cards) != 5:
        raise ValueError(f"evaluate_5cards needs 5 cards, got {len(cards)}")
    ranks = sorted((c.rank for c in cards), reverse=True)
    is_flush = len({c.suit for c in cards}) == 1
    str_high = _straight_high(ranks)

    if is_flush and str_high:
        if str_high == 14:
            return (HAND_RANKS['royal-flush'], [14])
        return (HAND_RANKS['straight-flush'], [str_high])

    # (count, rank) pairs, biggest groups first then highest rank
    groups = sorted(((cnt, r) for r, cnt in Counter(ranks).items()), reverse=True)

    if groups[0][0] == 4:
        quad_rank = groups[0][1]
        kicker = max(r for r in ranks if r != quad_rank)
        return (HAND_RANKS['four-of-a-kind'], [quad_rank, kicker])

    if groups[0][0] == 3 and groups[1][0] == 2:
        return (HAND_RANKS['full-house'], [groups[0][1], groups[1][1]])

    if is_flush:
        return (HAND_RANKS['flush'], ranks)

    if str_high:
        return (HAND_RANKS['straight'], [str_high])

    return _grouped_value(ranks)


def _grouped_value(ranks: List[int]) -> HandValue:
    """Score pairs/trips/quads and kickers, for any number of cards up to 5."""
    groups = sorted(((cnt, r) for r, cnt in Counter(ranks).items()), reverse=True)
    top_count = groups[0][0] if groups else 0

    if top_count == 4:
        quad_rank = groups[0][1]
        return (HAND_RANKS['four-of-a-kind'], [quad_rank] + [r for r in ranks if r != quad_rank][:1])

    if top_count == 3:
        trips = groups[0][1]
        return (HAND_RANKS['three-of-a-kind'], [trips] + [r for r in ranks if r != trips][:2])

    if top_count == 2 and len(groups) > 1 and groups[1][0] == 2:
        high_pair, low_pair = groups[0][1], groups[1][1]
        kickers = [r for r in ranks if r not in (high_pair, low_pair)][:1]
        return (HAND_RANKS['two-pair'], [high_pair, low_pair] + kickers)

    if top_count == 2:
        pair = groups[0][1]
        return (HAND_RANKS['pair'], [pair] + [r for r in ranks if r != pair][:3])

    return (HAND_RANKS['high-card'], ranks[:5])


def best_hand_from_seven(cards7: Sequence[Card]) -> HandValue:
    """Compute the best 5-card value from up to 7 cards.

    With fewer than five cards (pre-flop) only groups and high cards count.
    """
    return _best_combo(cards7)[0]


def _best_combo(cards: Sequence[Card]) -> Tuple[HandValue, List[Card]]:
    cards = list(cards)
    if len(cards) < 5:
        ranks = sorted((c.rank for c in cards), reverse=True)
        return _grouped_value(ranks), cards

    best: HandValue = (-1, [])
    best_cards: List[Card] = []
    for combo in itertools.combinations(cards, 5):
        val = evaluate_5cards(combo)
        if val > best:
            best = val
            best_cards = list(combo)
    return best, best_cards


def evaluate_hand(hole: Sequence[Card], community: Sequence[Card]) -> HandResult:
    """Evaluate a player's hole cards together with the board."""
    value, cards = _best_combo(list(hole) + list(community))
    rank_name = RANK_CATEGORY_NAMES[value[0]]
    return HandResult(
        value=value,
        rank_name=rank_name,
        description=hand_description(value[0], value[1]),
        cards=cards,
    )


def compare_hands(a: HandValue, b: HandValue) -> int:
    """Return 1 if ``a`` beats ``b``, -1 if it loses and 0 on a tie."""
    if a > b:
        return 1
    if a < b:
        return -1
    return 0


def hand_description(hand_rank: int, tiebreakers: List[int]) -> str:
    """Convert hand evaluation result to human-readable description."""

    def rank_name(r: int) -> str:
        names = {11: 'Jack', 12: 'Queen', 13: 'King', 14: 'Ace'}
        return names.get(r, str(r))

    def rank_name_plural(r: int) -> str:
        names = {11: 'Jacks', 12: 'Queens', 13: 'Kings', 14: 'Aces'}
        return names.get(r, f"{r}s")

    if hand_rank == HAND_RANKS['royal-flush']:
        return "Royal Flush"

    elif hand_rank == HAND_RANKS['straight-flush']:
        return f"Straight Flush, {rank_name(tiebreakers[0])} high"

    elif hand_rank == HAND_RANKS['four-of-a-kind']:
        return f"Four of a Kind, {rank_name_plural(tiebreakers[0])}"

    elif hand_rank == HAND_RANKS['full-house']:
        return f"Full House, {rank_name_plural(tiebreakers[0])} over {rank_name_plural(tiebreakers[1])}"

    elif hand_rank == HAND_RANKS['flush']:
        return f"Flush, {rank_name(tiebreakers[0])} high"

    elif hand_rank == HAND_RANKS['straight']:
        if tiebreakers[0] == 5:
            return "Straight, 5 high (Wheel)"
        return f"Straight, {rank_name(tiebreakers[0])} high"

    elif hand_rank == HAND_RANKS['three-of-a-kind']:
        return f"Three of a Kind, {rank_name_plural(tiebreakers[0])}"

    elif hand_rank == HAND_RANKS['two-pair']:
        return f"Two Pair, {rank_name_plural(tiebreakers[0])} and {rank_name_plural(tiebreakers[1])}"

    elif hand_rank == HAND_RANKS['pair']:
        return f"Pair of {rank_name_plural(tiebreakers[0])}"

    else:
        if not tiebreakers:
            return "No cards"
        return f"High Card, {rank_name(tiebreakers[0])}"
