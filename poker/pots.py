from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence


@dataclass
class Pot:
    amount: int
    eligible: List[str] = field(default_factory=list)


def calculate_side_pots(contributions: Dict[str, int], folded: Iterable[str]) -> List[Pot]:
    """Split a round's chips into contribution tiers.

    ``contributions`` maps every contributor (folded or not) to what they put
    in over the whole round and must be in seat order; eligibility lists keep
    that order. Each tier ceiling is a distinct contribution of a live
    player; folded chips fill tiers but never make their owner eligible.
    """
    folded_ids = set(folded)
    live = {pid: amount for pid, amount in contributions.items() if pid not in folded_ids}
    ceilings = sorted({amount for amount in live.values() if amount > 0})

    pots: List[Pot] = []
    previous = 0
    for ceiling in ceilings:
        amount = sum(max(min(paid, ceiling) - previous, 0) for paid in contributions.values())
        eligible = [pid for pid, paid in live.items() if paid >= ceiling]
        if amount > 0:
            pots.append(Pot(amount=amount, eligible=eligible))
        previous = ceiling

    # Folded chips above the highest live contribution still belong to the top tier.
    overflow = sum(contributions.values()) - sum(pot.amount for pot in pots)
    if overflow > 0:
        if pots:
            pots[-1].amount += overflow
        else:
            pots.append(Pot(amount=overflow, eligible=list(live)))
    return pots


def split_amount(amount: int, winners: Sequence[str]) -> Dict[str, int]:
    """Even split; odd chips go one each to the first winners in ``winners`` order."""
    share, remainder = divmod(amount, len(winners))
    return {pid: share + (1 if idx < remainder else 0) for idx, pid in enumerate(winners)}
