"""
Player actions.

Actions are a small tagged union so the engine can dispatch on type instead of
on loosely-typed dicts. ``parse_action`` converts the wire format
``{'action': 'raise', 'amount': 120}`` used by the HTTP API and stored in the
action log.

For ``Bet`` and ``Raise`` the amount is the street total the player is betting
*to*, not the increment.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Union

from holdem.errors import IllegalActionError


class ActionType(str, Enum):
    FOLD = 'fold'
    CHECK = 'check'
    CALL = 'call'
    BET = 'bet'
    RAISE = 'raise'
    ALL_IN = 'all-in'


@dataclass(frozen=True)
class Fold:
    type = ActionType.FOLD


@dataclass(frozen=True)
class Check:
    type = ActionType.CHECK


@dataclass(frozen=True)
class Call:
    type = ActionType.CALL


@dataclass(frozen=True)
class Bet:
    amount: int
    type = ActionType.BET


@dataclass(frozen=True)
class Raise:
    amount: int
    type = ActionType.RAISE


@dataclass(frozen=True)
class AllIn:
    type = ActionType.ALL_IN


PlayerAction = Union[Fold, Check, Call, Bet, Raise, AllIn]


def parse_action(payload: Union[Dict[str, Any], PlayerAction]) -> PlayerAction:
    """Convert a ``{'action': ..., 'amount': ...}`` payload to an action."""
    if isinstance(payload, (Fold, Check, Call, Bet, Raise, AllIn)):
        return payload
    if not isinstance(payload, dict):
        raise IllegalActionError(f"Action payload must be an object, got {type(payload).__name__}")

    name = str(payload.get('action', '')).lower()
    try:
        action_type = ActionType(name)
    except ValueError:
        raise IllegalActionError(f"Unknown action: {name!r}")

    if action_type in (ActionType.BET, ActionType.RAISE):
        amount = payload.get('amount')
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise IllegalActionError(f"{action_type.value} requires an integer amount")
        if amount <= 0:
            raise IllegalActionError(f"{action_type.value} amount must be positive")
        return Bet(amount) if action_type is ActionType.BET else Raise(amount)

    return {
        ActionType.FOLD: Fold,
        ActionType.CHECK: Check,
        ActionType.CALL: Call,
        ActionType.ALL_IN: AllIn,
    }[action_type]()


def action_payload(action: PlayerAction) -> Dict[str, Any]:
    """Inverse of ``parse_action``."""
    payload: Dict[str, Any] = {'action': action.type.value}
    if isinstance(action, (Bet, Raise)):
        payload['amount'] = action.amount
    return payload
