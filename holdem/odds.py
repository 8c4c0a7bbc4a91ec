"""
Pot odds and win-probability helpers shared by the bots and the UI.
"""

import random
from dataclasses import dataclass
from typing import Optional, Sequence

from holdem.deck import Card, make_deck
from holdem.hand_evaluation import best_hand_from_seven


@dataclass
class PotEquity:
    should_call: bool
    expected_value: float


def pot_odds(amount_to_call: int, pot_size: int) -> int:
    """Share of the final pot the call represents, as a rounded percentage."""
    if amount_to_call <= 0:
        return 0
    return round(amount_to_call / (pot_size + amount_to_call) * 100)


def estimate_equity(hole: Sequence[Card], community: Sequence[Card], num_opponents: int = 1,
                    simulations: int = 200, rng: Optional[random.Random] = None) -> float:
    """Monte-Carlo estimate of the chance to win, in the range 0..1.

    Opponents get random hole cards and the board is completed at random.
    A tie counts as half a win.
    """
    if len(hole) != 2 or simulations <= 0:
        return 0.0
    num_opponents = max(1, num_opponents)
    rng = rng or random
    known = set(hole) | set(community)
    remaining = [c for c in make_deck() if c not in known]
    board_needed = 5 - len(community)
    draw = board_needed + 2 * num_opponents
    if draw > len(remaining):
        return 0.0

    score = 0.0
    for _ in range(simulations):
        sample = rng.sample(remaining, draw)
        board = list(community) + sample[:board_needed]
        mine = best_hand_from_seven(list(hole) + board)
        best_other = max(
            best_hand_from_seven(sample[board_needed + 2 * i:board_needed + 2 * i + 2] + board)
            for i in range(num_opponents)
        )
        if mine > best_other:
            score += 1
        elif mine == best_other:
            score += 0.5
    return score / simulations


def pot_equity(win_probability: float, amount_to_call: int, pot_size: int) -> PotEquity:
    """Compare a win probability (0..100) with the price of a call."""
    total_pot = pot_size + amount_to_call
    if total_pot <= 0:
        return PotEquity(should_call=True, expected_value=0.0)
    equity = win_probability / 100
    return PotEquity(
        should_call=equity > amount_to_call / total_pot,
        expected_value=equity * total_pot - amount_to_call,
    )
