"""
Main pot / side pot construction and pot awarding.

Pots are derived from each player's ``total_bet`` for the hand: every distinct
contribution level forms a layer, and only players who put in at least that
much (and have not folded) can win it.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from holdem.deck import Card
from holdem.game_state import Pot, PotAward
from holdem.hand_evaluation import HandResult, evaluate_hand
from holdem.player import Player


def calculate_pots(players: Sequence[Player]) -> List[Pot]:
    """Build the main pot and side pots from the players' contributions.

    The amounts always add up to the sum of ``total_bet``. A layer that only
    folded players contributed to is merged into the pot below it, and
    neighbouring layers with the same eligible players are combined.
    """
    contributions = [p for p in players if p.total_bet > 0]
    if not contributions:
        return [Pot(amount=0, eligible_player_ids=[p.id for p in players if not p.folded])]

    levels = sorted({p.total_bet for p in contributions})
    pots: List[Pot] = []
    carry = 0
    prev = 0
    for level in levels:
        contributors = [p for p in contributions if p.total_bet >= level]
        amount = (level - prev) * len(contributors) + carry
        carry = 0
        prev = level
        eligible = [p.id for p in contributors if not p.folded]
        if not eligible:
            # nobody left to win this layer; it belongs with the layer below
            if pots:
                pots[-1].amount += amount
            else:
                carry = amount
            continue
        if pots and pots[-1].eligible_player_ids == eligible:
            pots[-1].amount += amount
        else:
            pots.append(Pot(amount=amount, eligible_player_ids=eligible))

    if carry:
        # only possible when every contributor folded; keep the chips visible
        pots.append(Pot(amount=carry, eligible_player_ids=[p.id for p in players if not p.folded]))
    return pots


def return_uncalled_bet(players: Sequence[Player]) -> Optional[Tuple[Player, int]]:
    """Give back the part of the largest contribution nobody matched.

    Returns ``(player, refunded_amount)`` or None when every chip was called.
    """
    contributors = sorted(players, key=lambda p: p.total_bet, reverse=True)
    if not contributors or contributors[0].total_bet <= 0:
        return None
    top = contributors[0]
    second = contributors[1].total_bet if len(contributors) > 1 else 0
    excess = top.total_bet - second
    if excess <= 0:
        return None

    top.chips += excess
    top.total_bet -= excess
    top.bet = max(0, top.bet - excess)
    if top.chips > 0:
        top.all_in = False
    logging.debug(f"Returned uncalled ${excess} to {top.name}")
    return top, excess


def seat_order_from_dealer(players: Sequence[Player], dealer_index: int) -> Dict[str, int]:
    """Map player id to its distance from the dealer's left (0 = first seat)."""
    n = len(players)
    return {p.id: (i - dealer_index - 1) % n for i, p in enumerate(players)}


def award_pots(pots: Sequence[Pot], players: Sequence[Player], community: Sequence[Card],
               dealer_index: int, results: Optional[Dict[str, HandResult]] = None) -> List[PotAward]:
    """Award every pot independently and return what each one paid.

    Ties split the pot; odd chips go one at a time to the tied winners in
    seat order starting left of the dealer.
    """
    by_id = {p.id: p for p in players}
    order = seat_order_from_dealer(players, dealer_index)
    results = dict(results or {})
    awards: List[PotAward] = []

    for pot in pots:
        if pot.amount <= 0:
            continue
        eligible = [by_id[pid] for pid in pot.eligible_player_ids
                    if pid in by_id and not by_id[pid].folded]
        if not eligible:
            logging.warning(f"Pot of ${pot.amount} has no eligible players")
            continue

        description = None
        if len(eligible) == 1:
            winners = eligible
        else:
            for p in eligible:
                if p.id not in results:
                    results[p.id] = evaluate_hand(p.hand, community)
            best = max(results[p.id].value for p in eligible)
            winners = [p for p in eligible if results[p.id].value == best]
            description = results[winners[0].id].description

        winners.sort(key=lambda p: order[p.id])
        share, remainder = divmod(pot.amount, len(winners))
        shares: Dict[str, int] = {}
        for i, winner in enumerate(winners):
            won = share + (1 if i < remainder else 0)
            winner.chips += won
            shares[winner.id] = won

        awards.append(PotAward(
            amount=pot.amount,
            winner_ids=[w.id for w in winners],
            shares=shares,
            hand_description=description,
        ))
        logging.debug(f"Pot ${pot.amount} -> {', '.join(f'{by_id[k].name} ${v}' for k, v in shares.items())}")

    return awards
