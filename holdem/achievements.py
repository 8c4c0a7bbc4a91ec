"""
Achievements the human player can unlock during a session.
"""

import logging
from typing import Dict, List, Optional, Tuple

from holdem.game_state import Achievement, GameState, SessionStats

BIG_POT_THRESHOLD = 500

# id -> (name, description)
ACHIEVEMENT_LIST = {
    'FIRST_WIN': ('First Victory', 'Win your first hand'),
    'TEN_WINS': ('Card Shark', 'Win 10 hands'),
    'BIG_POT': ('High Roller', f'Win a pot of ${BIG_POT_THRESHOLD} or more'),
    'FLUSH_WIN': ('Flush Master', 'Win a hand with a flush'),
    'FULL_HOUSE_WIN': ('Full House Hero', 'Win a hand with a full house'),
}


def initial_achievements() -> Dict[str, Achievement]:
    return {
        achievement_id: Achievement(id=achievement_id, name=name, description=description)
        for achievement_id, (name, description) in ACHIEVEMENT_LIST.items()
    }


def unlock_achievements(achievements: Dict[str, Achievement], session_stats: SessionStats,
                        hand_number: int, winning_rank: Optional[str], win_amount: int) -> List[str]:
    """Unlock whatever the latest win earned, in place; returns the new ids.

    ``winning_rank`` is the hand category (``'flush'``, ``'full-house'``...)
    or None when the pot was won uncontested.
    """
    earned = []
    if session_stats.hands_won_by_player >= 1:
        earned.append('FIRST_WIN')
    if session_stats.hands_won_by_player >= 10:
        earned.append('TEN_WINS')
    if win_amount >= BIG_POT_THRESHOLD:
        earned.append('BIG_POT')
    if winning_rank == 'flush':
        earned.append('FLUSH_WIN')
    if winning_rank == 'full-house':
        earned.append('FULL_HOUSE_WIN')

    unlocked = []
    for achievement_id in earned:
        achievement = achievements.get(achievement_id)
        if achievement is None:
            name, description = ACHIEVEMENT_LIST[achievement_id]
            achievement = achievements[achievement_id] = Achievement(achievement_id, name, description)
        if achievement.unlocked_at is None:
            achievement.unlocked_at = hand_number
            unlocked.append(achievement_id)
            logging.info(f"Achievement unlocked: {achievement.name}")
    return unlocked


def check_achievements(state: GameState, winning_rank: Optional[str],
                       win_amount: int) -> Tuple[GameState, List[str]]:
    """Return a copy of ``state`` with newly earned achievements unlocked."""
    new_state = state.copy()
    unlocked = unlock_achievements(new_state.achievements, new_state.session_stats,
                                   new_state.hand_number, winning_rank, win_amount)
    return new_state, unlocked
