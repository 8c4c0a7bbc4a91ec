"""
Betting round state machine for the hold'em engine: blinds, action legality,
turn order, round completion and the hand flow that follows a closed round.

``post_blinds`` and ``process_action`` never mutate their input: they work on
a copy of the state and return it. A rejected action raises
IllegalActionError and the caller keeps the state it already had.

No-limit rules: the minimum opening bet is the big blind, the minimum raise is
the size of the previous full bet or raise, and a player may always go all-in
for less. Under-sized bets and raises are rejected, never coerced.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple, Union

from holdem.actions import AllIn, Bet, Call, Check, Fold, PlayerAction, Raise, parse_action
from holdem.deck import format_cards
from holdem.errors import IllegalActionError, OutOfTurnError
from holdem.game_state import GamePhase, GameState
from holdem.player import Player
from holdem.pot_manager import calculate_pots
from holdem.showdown_engine import award_uncontested, refund_uncalled_bet, resolve_showdown


@dataclass
class LegalActions:
    """What the player in a seat may do right now."""

    can_fold: bool = False
    can_check: bool = False
    can_call: bool = False
    call_amount: int = 0
    can_bet: bool = False
    can_raise: bool = False
    min_amount: int = 0  # smallest legal bet / raise-to
    max_amount: int = 0  # the player's whole stack as a street total
    can_all_in: bool = False

    def to_dict(self) -> dict:
        return dict(self.__dict__)


def min_bet(state: GameState) -> int:
    return max(state.big_blind, 1)


def min_raise_increment(state: GameState) -> int:
    return max(state.min_raise, min_bet(state))


def next_seat(state: GameState, start: int, predicate: Callable[[Player], bool]) -> Optional[int]:
    """First seat after ``start`` (wrapping) whose player matches ``predicate``."""
    n = len(state.players)
    for step in range(1, n + 1):
        idx = (start + step) % n
        if predicate(state.players[idx]):
            return idx
    return None


def next_actor_index(state: GameState, start: int) -> Optional[int]:
    """Next seat that is neither folded nor all-in."""
    return next_seat(state, start, lambda p: p.can_act)


def blind_seats(state: GameState) -> Tuple[int, int]:
    """Return ``(small_blind_index, big_blind_index)`` for the current hand.

    Heads-up the dealer posts the small blind; otherwise the two seats after
    the dealer post. Players sitting the hand out are skipped.
    """
    in_hand = [p for p in state.players if not p.folded]
    if len(in_hand) < 2:
        raise IllegalActionError("Need at least two players in the hand to post blinds")
    if len(in_hand) == 2 and not state.players[state.dealer_index].folded:
        sb = state.dealer_index
    else:
        sb = next_seat(state, state.dealer_index, lambda p: not p.folded)
    bb = next_seat(state, sb, lambda p: not p.folded)
    return sb, bb


def first_to_act_preflop(state: GameState) -> Optional[int]:
    _, bb = blind_seats(state)
    idx = next_actor_index(state, bb)
    if idx is None and state.players[bb].can_act:
        return bb
    return idx


def first_to_act_postflop(state: GameState) -> Optional[int]:
    return next_actor_index(state, state.dealer_index)


def post_blinds(state: GameState, small_blind: int, big_blind: int, ante: int = 0) -> GameState:
    """Post the antes and blinds for a freshly dealt hand and return the new state.

    Antes are dead money: they go into the pot but do not count towards the
    street bet. Short stacks post what they have and are all-in. If that
    leaves nobody able to bet, the board is run out straight away.
    """
    new_state = state.copy()
    _collect_blinds(new_state, small_blind, big_blind, ante)
    _progress(new_state, advance_turn=False)
    new_state.version += 1
    return new_state


def _collect_blinds(state: GameState, small_blind: int, big_blind: int, ante: int = 0):
    if state.phase != GamePhase.PRE_FLOP:
        raise IllegalActionError(f"Blinds can only be posted pre-flop, not during {state.phase.value}")
    if any(p.total_bet > 0 for p in state.players) or state.current_bet > 0:
        raise IllegalActionError("Blinds have already been posted for this hand")
    if small_blind < 0 or big_blind <= 0 or small_blind > big_blind:
        raise ValueError(f"Invalid blinds ${small_blind}/${big_blind}")
    if ante < 0:
        raise ValueError(f"Invalid ante ${ante}")

    state.small_blind = small_blind
    state.big_blind = big_blind
    state.ante = ante
    sb_idx, bb_idx = blind_seats(state)

    if ante:
        for p in state.players:
            if p.folded:
                continue
            paid = p.commit(ante)
            p.bet -= paid
            state.record(f"{p.name} posts ante ${paid}" + (" (all-in)" if p.all_in else ""), p, 'ante', paid)

    sb_player = state.players[sb_idx]
    paid = sb_player.commit(small_blind)
    state.record(f"{sb_player.name} posts small blind ${paid}" + (" (all-in)" if sb_player.all_in else ""),
                 sb_player, 'small-blind', paid)

    bb_player = state.players[bb_idx]
    paid = bb_player.commit(big_blind)
    state.record(f"{bb_player.name} posts big blind ${paid}" + (" (all-in)" if bb_player.all_in else ""),
                 bb_player, 'big-blind', paid)

    state.current_bet = max(sb_player.bet, bb_player.bet)
    state.min_raise = big_blind
    state.pots = calculate_pots(state.players)
    first = first_to_act_preflop(state)
    if first is not None:
        state.current_player_index = first
    state.last_action = f"Blinds posted: ${small_blind}/${big_blind}"
    logging.debug(f"Blinds ${small_blind}/${big_blind} posted by {sb_player.name} and {bb_player.name}")


def legal_actions(state: GameState, seat: Optional[int] = None) -> LegalActions:
    """Describe the legal options for ``seat`` (default: the current actor)."""
    if seat is None:
        seat = state.current_player_index
    player = state.players[seat]
    if not state.phase.is_betting or not player.can_act or seat != state.current_player_index:
        return LegalActions()

    to_call = max(0, state.current_bet - player.bet)
    max_total = player.bet + player.chips
    legal = LegalActions(
        can_fold=True,
        can_check=to_call == 0,
        can_call=to_call > 0 and player.chips > 0,
        call_amount=min(to_call, player.chips),
        max_amount=max_total,
        can_all_in=player.chips > 0,
    )
    if state.current_bet == 0:
        legal.can_bet = player.chips > 0
        legal.min_amount = min(min_bet(state), max_total)
    else:
        legal.can_raise = max_total > state.current_bet
        legal.min_amount = min(state.current_bet + min_raise_increment(state), max_total)
    return legal


def _resolve(state: GameState, player: Player, action: PlayerAction) -> Tuple[str, int]:
    """Check an action and return ``(kind, street_total_after_action)``."""
    to_call = max(0, state.current_bet - player.bet)
    max_total = player.bet + player.chips

    if isinstance(action, Fold):
        return 'fold', player.bet

    if isinstance(action, Check):
        if to_call > 0:
            raise IllegalActionError(f"{player.name} cannot check facing a bet of ${to_call}")
        return 'check', player.bet

    if isinstance(action, Call):
        if to_call == 0:
            raise IllegalActionError(f"{player.name} has nothing to call; check instead")
        return 'call', min(state.current_bet, max_total)

    if isinstance(action, AllIn):
        if player.chips <= 0:
            raise IllegalActionError(f"{player.name} has no chips to go all-in with")
        if max_total <= state.current_bet:
            return 'call', max_total
        return ('bet' if state.current_bet == 0 else 'raise'), max_total

    if isinstance(action, Bet):
        if state.current_bet > 0:
            raise IllegalActionError(f"There is already a bet of ${state.current_bet}; raise instead")
        if action.amount > max_total:
            raise IllegalActionError(f"{player.name} cannot bet ${action.amount} with ${player.chips} behind")
        if action.amount < min_bet(state) and action.amount != max_total:
            raise IllegalActionError(f"Minimum bet is ${min_bet(state)}, got ${action.amount}")
        return 'bet', action.amount

    if isinstance(action, Raise):
        if state.current_bet == 0:
            raise IllegalActionError("There is no bet to raise; bet instead")
        if action.amount > max_total:
            raise IllegalActionError(f"{player.name} cannot raise to ${action.amount} with ${player.chips} behind")
        if action.amount <= state.current_bet:
            raise IllegalActionError(f"Raise to ${action.amount} does not exceed the current bet of ${state.current_bet}")
        minimum = state.current_bet + min_raise_increment(state)
        if action.amount < minimum and action.amount != max_total:
            raise IllegalActionError(f"Minimum raise is to ${minimum}, got ${action.amount}")
        return 'raise', action.amount

    raise IllegalActionError(f"Unsupported action: {action!r}")


def validate_action(state: GameState, action: PlayerAction, player_id: Optional[str] = None):
    """Raise IllegalActionError if ``action`` is not legal; never changes ``state``."""
    if not state.phase.is_betting:
        raise IllegalActionError(f"No betting is possible during {state.phase.value}")
    player = state.current_player
    if player_id is not None and player.id != player_id:
        raise OutOfTurnError(f"It is {player.name}'s turn, not player {player_id}'s")
    if not player.can_act:
        raise IllegalActionError(f"{player.name} cannot act (folded or all-in)")
    return _resolve(state, player, action)


def apply_action(state: GameState, action: PlayerAction, player_id: Optional[str] = None):
    """Apply a legal action for the current actor to ``state`` in place."""
    kind, target = validate_action(state, action, player_id)
    player = state.current_player
    went_all_in = isinstance(action, AllIn)

    if kind == 'fold':
        player.folded = True
        message = f"{player.name} folded"
        amount = 0
    elif kind == 'check':
        message = f"{player.name} checked"
        amount = 0
    else:
        previous_bet = state.current_bet
        amount = player.commit(target - player.bet)
        if kind == 'call':
            message = f"{player.name} called ${amount}"
        elif kind == 'bet':
            message = f"{player.name} bet ${player.bet}"
        else:
            message = f"{player.name} raised to ${player.bet}"
        if player.all_in:
            message += " (all-in)"

        if player.bet > previous_bet:
            increment = player.bet - previous_bet
            if increment >= min_raise_increment(state) or previous_bet == 0:
                state.min_raise = max(increment, min_bet(state))
            state.current_bet = player.bet
            # everyone else has to respond to the new bet
            for other in state.players:
                if other is not player and other.can_act:
                    other.has_acted = False

    player.has_acted = True
    state.record(message, player, 'all-in' if went_all_in else kind, amount)
    state.pots = calculate_pots(state.players)
    logging.debug(f"[hand {state.hand_number} {state.phase.value}] {message}")


def is_round_complete(state: GameState) -> bool:
    """True when no further betting is needed on this street."""
    if len(state.unfolded_players()) <= 1:
        return True
    actors = state.acting_players()
    if not actors:
        return True
    if len(actors) == 1:
        # nobody left to bet against; the last player only has to match
        return actors[0].bet >= state.current_bet
    return all(p.has_acted and p.bet == state.current_bet for p in actors)


def process_action(state: GameState, action: Union[PlayerAction, Dict[str, Any]],
                   player_id: Optional[str] = None) -> GameState:
    """Apply the current actor's action and return the resulting state.

    When the action closes the betting round the next street is dealt; when it
    ends the hand the pots are awarded. ``player_id``, if given, must be the
    current actor.
    """
    action = parse_action(action)
    new_state = state.copy()
    apply_action(new_state, action, player_id)
    _progress(new_state, advance_turn=True)
    new_state.version += 1
    return new_state


def open_street(state: GameState):
    """Deal the next street in place and hand the action to the first seat left of the dealer."""
    dealt = state.deal_next_street()
    first = first_to_act_postflop(state)
    if first is not None:
        state.current_player_index = first
    state.record(f"{state.phase.value.capitalize()}: {format_cards(dealt)}")
    logging.debug(f"[hand {state.hand_number}] dealt {state.phase.value}: {format_cards(state.community_cards)}")


def _progress(state: GameState, advance_turn: bool):
    """Move the hand forward until somebody has to act or the hand is over."""
    while state.phase.is_betting:
        if len(state.unfolded_players()) <= 1:
            award_uncontested(state)
            return

        if not is_round_complete(state):
            if advance_turn or not state.current_player.can_act:
                nxt = next_actor_index(state, state.current_player_index)
                if nxt is not None:
                    state.current_player_index = nxt
            return

        refund_uncalled_bet(state)

        if state.phase == GamePhase.RIVER:
            resolve_showdown(state)
            return
        open_street(state)
        advance_turn = False
