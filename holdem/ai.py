"""
Bot decision engine.

Bots estimate their equity with a quick Monte-Carlo run, compare it with the
pot odds they are offered and let their personality and a bit of noise decide
between passive and aggressive lines. Whatever they pick is clamped to the
legal options, so ``decide_action`` always returns something the betting
engine accepts.
"""

import logging
import random
from typing import Optional

from holdem.actions import AllIn, Bet, Call, Check, Fold, PlayerAction, Raise
from holdem.betting_engine import LegalActions, legal_actions, validate_action
from holdem.errors import IllegalActionError
from holdem.game_state import GameState
from holdem.odds import estimate_equity, pot_equity, pot_odds
from holdem.player import Personality, Player

DEFAULT_SIMULATIONS = 200


class BotAI:
    def __init__(self, rng: Optional[random.Random] = None, simulations: int = DEFAULT_SIMULATIONS):
        self.rng = rng or random.Random()
        self.simulations = simulations

    def decide_action(self, state: GameState, seat_index: int) -> PlayerAction:
        """Choose an action for the bot in ``seat_index``; never raises."""
        player = state.players[seat_index]
        legal = legal_actions(state, seat_index)
        if not (legal.can_fold or legal.can_check):
            # not this seat's turn, or nothing left to decide
            return Check() if player.bet >= state.current_bet else Fold()

        try:
            action = self._choose(state, player, legal)
        except Exception:
            logging.exception(f"Bot {player.name} failed to choose an action")
            action = None
        return self._guard(state, action, legal)

    def _choose(self, state: GameState, player: Player, legal: LegalActions) -> PlayerAction:
        personality = player.personality or Personality()
        opponents = len(state.unfolded_players()) - 1
        equity = estimate_equity(player.hand, state.community_cards, opponents,
                                 self.simulations, self.rng)
        # noise keeps bots from being perfectly readable
        strength = min(1.0, max(0.0, equity + self.rng.uniform(-0.08, 0.08)))

        to_call = legal.call_amount
        # tight players want a margin over the price before continuing
        margin = (personality.tightness - 0.5) * 0.2
        price = pot_equity((strength - margin) * 100, to_call, state.pot_total)
        bluffing = self.rng.random() < personality.bluff_frequency
        aggressive = self.rng.random() < personality.aggression

        value_hand = strength > 0.5 + (1 - personality.aggression) * 0.25
        logging.debug(f"{player.name} ({personality.style}) equity={equity:.2f} "
                      f"strength={strength:.2f} odds={pot_odds(to_call, state.pot_total)}% "
                      f"ev={price.expected_value:.1f}")

        if value_hand or (bluffing and aggressive):
            sized = self._size_bet(state, strength, legal)
            if sized is not None:
                return sized

        if to_call == 0:
            return Check()
        if price.should_call or (bluffing and to_call <= state.big_blind):
            return Call()
        return Fold()

    def _size_bet(self, state: GameState, strength: float, legal: LegalActions) -> Optional[PlayerAction]:
        """Pick a bet or raise between half pot and pot, clamped to the legal range."""
        if not (legal.can_bet or legal.can_raise):
            return None
        pot = max(state.pot_total, state.big_blind)
        fraction = 0.5 + 0.5 * strength
        base = state.current_bet if legal.can_raise else 0
        target = base + int(pot * fraction * self.rng.uniform(0.8, 1.2))
        target = max(legal.min_amount, min(target, legal.max_amount))
        if target >= legal.max_amount:
            return AllIn()
        return Raise(target) if legal.can_raise else Bet(target)

    def _guard(self, state: GameState, action: Optional[PlayerAction], legal: LegalActions) -> PlayerAction:
        """Make sure the betting engine will accept the action."""
        candidates = [action] if action is not None else []
        candidates += [Check(), Call(), Fold()]
        for candidate in candidates:
            try:
                validate_action(state, candidate)
                return candidate
            except IllegalActionError:
                continue
        return Check() if legal.can_check else Fold()


def decide_action(state: GameState, seat_index: int, rng: Optional[random.Random] = None,
                  simulations: int = DEFAULT_SIMULATIONS) -> PlayerAction:
    return BotAI(rng, simulations).decide_action(state, seat_index)
