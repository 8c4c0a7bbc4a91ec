"""
Game phase orchestration for the hold'em engine: table setup, starting hands,
dealing streets and the client-facing view of a table.

Every public function takes a GameState and returns a new one.
"""

import logging
import random
from typing import Any, Dict, Optional

from holdem.achievements import initial_achievements
from holdem.betting_engine import (first_to_act_preflop, legal_actions, next_seat, open_street,
                                   post_blinds, process_action)
from holdem.deck import create_shuffled_deck, deal_cards
from holdem.errors import IllegalActionError
from holdem.game_state import GamePhase, GameState
from holdem.player import make_players
from holdem.pot_manager import calculate_pots
from holdem.showdown_engine import resolve_showdown

MIN_PLAYERS = 2
MAX_PLAYERS = 10
DEFAULT_STARTING_CHIPS = 1000
DEFAULT_SMALL_BLIND = 10
DEFAULT_BIG_BLIND = 20

__all__ = [
    'create_initial_game_state', 'start_new_hand', 'advance_phase', 'post_blinds',
    'process_action', 'legal_actions', 'public_state',
]


def create_initial_game_state(num_players: int, starting_chips: int = DEFAULT_STARTING_CHIPS,
                              rng: Optional[random.Random] = None,
                              small_blind: int = DEFAULT_SMALL_BLIND,
                              big_blind: int = DEFAULT_BIG_BLIND) -> GameState:
    """Seat the human in seat 0 and bots everywhere else, waiting for the first hand."""
    if not MIN_PLAYERS <= num_players <= MAX_PLAYERS:
        raise ValueError(f"A table needs {MIN_PLAYERS}-{MAX_PLAYERS} players, got {num_players}")
    if starting_chips <= 0:
        raise ValueError("Starting chips must be positive")

    players = make_players(num_players, starting_chips, rng)
    state = GameState(
        players=players,
        deck=create_shuffled_deck(rng),
        dealer_index=0,
        phase=GamePhase.WAITING,
        small_blind=small_blind,
        big_blind=big_blind,
        min_raise=big_blind,
        starting_chips=starting_chips,
        achievements=initial_achievements(),
    )
    state.pots = calculate_pots(players)
    logging.debug(f"Created table state with {num_players} players, ${starting_chips} each")
    return state


def start_new_hand(state: GameState, rng: Optional[random.Random] = None) -> GameState:
    """Shuffle up and deal the next hand.

    Broke bots buy back in for the starting stack; a broke human ends the
    game. Blinds are posted separately with ``post_blinds``.
    """
    if state.phase.is_betting:
        raise IllegalActionError(f"Hand {state.hand_number} is still in progress")

    new_state = state.copy()
    new_state.version += 1

    human = next((p for p in new_state.players if p.is_human), None)
    if human is not None and human.chips <= 0:
        new_state.game_over = True
        new_state.phase = GamePhase.WAITING
        new_state.record("Game Over! You are out of chips.")
        logging.info("Human player is out of chips; game over")
        return new_state

    for p in new_state.players:
        if not p.is_human and p.chips <= 0:
            p.chips = new_state.starting_chips
            new_state.record(f"{p.name} rebuys for ${p.chips}", p, 'rebuy', p.chips)

    for p in new_state.players:
        p.reset_for_hand()

    funded = [p for p in new_state.players if not p.folded]
    if len(funded) < MIN_PLAYERS:
        new_state.phase = GamePhase.WAITING
        new_state.record("Not enough players with chips to start a hand")
        return new_state

    new_state.dealer_index = next_seat(new_state, new_state.dealer_index, lambda p: not p.folded)
    new_state.deck = create_shuffled_deck(rng)
    new_state.community_cards = []
    new_state.current_bet = 0
    new_state.min_raise = new_state.big_blind
    new_state.hand_number += 1
    new_state.session_stats.hands_played += 1
    new_state.game_over = False
    new_state.last_hand = None
    new_state.phase = GamePhase.PRE_FLOP

    # two passes of one card each, starting left of the button
    n = len(new_state.players)
    order = [new_state.players[(new_state.dealer_index + i) % n] for i in range(1, n + 1)]
    for _ in range(2):
        for p in order:
            if not p.folded:
                dealt, new_state.deck = deal_cards(new_state.deck, 1)
                p.hand.extend(dealt)

    new_state.pots = calculate_pots(new_state.players)
    first = first_to_act_preflop(new_state)
    if first is not None:
        new_state.current_player_index = first
    new_state.record(f"Hand #{new_state.hand_number} started, "
                     f"{new_state.players[new_state.dealer_index].name} has the button")
    logging.debug(f"Hand {new_state.hand_number} dealt to {len(funded)} players")
    return new_state


def advance_phase(state: GameState) -> GameState:
    """Close the current street: deal the next one, or go to showdown after the river."""
    if not state.phase.is_betting:
        raise IllegalActionError(f"Cannot advance from {state.phase.value}")
    new_state = state.copy()
    if new_state.phase == GamePhase.RIVER:
        resolve_showdown(new_state)
    else:
        open_street(new_state)
    new_state.version += 1
    return new_state


def public_state(state: GameState, viewer_id: Optional[str] = None) -> Dict[str, Any]:
    """JSON-ready view of a table for one seat.

    The deck is never included. Hole cards are shown to their owner, and to
    everyone when they were revealed at showdown.
    """
    data = state.to_dict()
    data.pop('deck', None)
    revealed = state.phase == GamePhase.SHOWDOWN and state.last_hand is not None and state.last_hand.revealed
    for player, view in zip(state.players, data['players']):
        visible = player.id == viewer_id or (revealed and not player.folded)
        view['hand_size'] = len(player.hand)
        if not visible:
            view['hand'] = []
    data['pot_total'] = state.pot_total
    data['current_player_id'] = state.current_player.id if state.phase.is_betting else None

    viewer = state.player_by_id(viewer_id) if viewer_id is not None else None
    if viewer is not None and state.phase.is_betting and state.current_player.id == viewer.id:
        data['legal_actions'] = legal_actions(state).to_dict()
    else:
        data['legal_actions'] = None
    return data
