"""
Showdown and winner determination for the hold'em engine.

The engine works on its own copy of the game state, so ShowdownEngine mutates
the state it is given in place.
"""

import logging
from typing import Dict, List, Optional

from holdem.achievements import unlock_achievements
from holdem.game_state import GamePhase, GameState, HandSummary, PotAward
from holdem.hand_evaluation import HandResult, evaluate_hand
from holdem.pot_manager import award_pots, calculate_pots, return_uncalled_bet


class ShowdownEngine:
    """Handles showdown evaluation, pot distribution and end-of-hand bookkeeping."""

    def __init__(self, state: GameState):
        self.state = state

    def evaluate_hands(self) -> Dict[str, HandResult]:
        """Evaluate every player still holding cards at showdown."""
        community = self.state.community_cards
        return {p.id: evaluate_hand(p.hand, community)
                for p in self.state.unfolded_players() if p.hand}

    def resolve(self) -> HandSummary:
        """Reveal the remaining hands and award every pot."""
        state = self.state
        refund_uncalled_bet(state)
        results = self.evaluate_hands()
        awards = award_pots(state.pots, state.players, state.community_cards, state.dealer_index, results)

        summary = HandSummary(
            hand_number=state.hand_number,
            awards=awards,
            revealed=True,
            hands={pid: result.description for pid, result in results.items()},
        )
        self._finish(summary, results)
        return summary

    def award_uncontested(self) -> HandSummary:
        """Everybody else folded: the survivor takes every pot unseen."""
        state = self.state
        refund_uncalled_bet(state)
        awards = award_pots(state.pots, state.players, state.community_cards, state.dealer_index)
        summary = HandSummary(hand_number=state.hand_number, awards=awards, revealed=False)
        self._finish(summary, {})
        return summary

    def _finish(self, summary: HandSummary, results: Dict[str, HandResult]):
        state = self.state
        winnings: Dict[str, int] = {}
        for award in summary.awards:
            for pid, share in award.shares.items():
                winnings[pid] = winnings.get(pid, 0) + share

        for pid, amount in winnings.items():
            player = state.player_by_id(pid)
            player.stats.hands_won += 1
            player.stats.biggest_pot = max(player.stats.biggest_pot, amount)

        human = next((p for p in state.players if p.is_human), None)
        if human is not None and human.id in winnings:
            state.session_stats.hands_won_by_player += 1
            winning_rank: Optional[str] = None
            if summary.revealed and human.id in results:
                winning_rank = results[human.id].rank_name
                title = results[human.id].title
                distribution = state.session_stats.hand_distribution
                distribution[title] = distribution.get(title, 0) + 1
            summary.unlocked_achievements = unlock_achievements(
                state.achievements, state.session_stats, state.hand_number,
                winning_rank, winnings[human.id])

        # chips have moved to the winners; nothing is committed any more
        for p in state.players:
            p.bet = 0
            p.total_bet = 0
            p.has_acted = False
        state.pots = []
        state.current_bet = 0
        state.phase = GamePhase.SHOWDOWN
        state.last_hand = summary
        state.record(_summary_message(state, summary.awards, summary.revealed))
        logging.debug(f"Hand {state.hand_number} finished: {state.last_action}")


def _summary_message(state: GameState, awards: List[PotAward], revealed: bool) -> str:
    parts = []
    for award in awards:
        names = ' and '.join(state.player_by_id(pid).name for pid in award.winner_ids)
        verb = 'split' if len(award.winner_ids) > 1 else 'wins'
        text = f"{names} {verb} ${award.amount}"
        if revealed and award.hand_description:
            text += f" with {award.hand_description}"
        parts.append(text)
    return '; '.join(parts) if parts else "Hand over"


def resolve_showdown(state: GameState) -> HandSummary:
    return ShowdownEngine(state).resolve()


def award_uncontested(state: GameState) -> HandSummary:
    return ShowdownEngine(state).award_uncontested()


def refund_uncalled_bet(state: GameState):
    """Return the unmatched part of the biggest contribution and note it in the history."""
    refund = return_uncalled_bet(state.players)
    if refund:
        player, amount = refund
        state.record(f"Uncalled ${amount} returned to {player.name}", player, 'refund', amount)
    state.pots = calculate_pots(state.players)
