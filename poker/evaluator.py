from __future__ import annotations

from collections import Counter
from enum import IntEnum
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from .cards import Card
from .errors import EngineError, ErrorKind


class Category(IntEnum):
    HIGH_CARD = 1
    PAIR = 2
    TWO_PAIR = 3
    THREE_OF_A_KIND = 4
    STRAIGHT = 5
    FLUSH = 6
    FULL_HOUSE = 7
    FOUR_OF_A_KIND = 8
    STRAIGHT_FLUSH = 9
    ROYAL_FLUSH = 10


class HandRank(NamedTuple):
    """Comparable hand strength. Tuple order gives the comparison."""

    category: int
    tiebreakers: Tuple[int, ...]


def evaluate(cards: Sequence[Card]) -> HandRank:
    """Best 5-card ranking among ``cards`` (5 or more).

    Each category test runs on the whole card set and keeps the best
    qualifying values, which matches the maximum over every 5-card subset.
    """
    if len(cards) < 5:
        raise EngineError(ErrorKind.INSUFFICIENT_CARDS, f"Need at least 5 cards, got {len(cards)}")

    values = sorted((card.value for card in cards), reverse=True)
    counts = Counter(values)
    by_suit: Dict[str, List[int]] = {}
    for card in cards:
        by_suit.setdefault(card.suit, []).append(card.value)

    straight_flush_high = max(
        (high for high in (_straight_high(ranks) for ranks in by_suit.values() if len(ranks) >= 5) if high),
        default=None,
    )
    if straight_flush_high == 14:
        return HandRank(Category.ROYAL_FLUSH, (14,))
    if straight_flush_high:
        return HandRank(Category.STRAIGHT_FLUSH, (straight_flush_high,))

    quads = _ranks_with(counts, 4)
    if quads:
        return HandRank(Category.FOUR_OF_A_KIND, (quads[0],) + _kickers(values, quads[:1], 1))

    trips = _ranks_with(counts, 3)
    if trips:
        pairs = [rank for rank in _ranks_with(counts, 2) if rank != trips[0]]
        if pairs:
            return HandRank(Category.FULL_HOUSE, (trips[0], pairs[0]))

    flushes = [sorted(ranks, reverse=True)[:5] for ranks in by_suit.values() if len(ranks) >= 5]
    if flushes:
        return HandRank(Category.FLUSH, tuple(max(flushes)))

    straight_high = _straight_high(values)
    if straight_high:
        return HandRank(Category.STRAIGHT, (straight_high,))

    if trips:
        return HandRank(Category.THREE_OF_A_KIND, (trips[0],) + _kickers(values, trips[:1], 2))

    pairs = _ranks_with(counts, 2)
    if len(pairs) >= 2:
        return HandRank(Category.TWO_PAIR, tuple(pairs[:2]) + _kickers(values, pairs[:2], 1))
    if pairs:
        return HandRank(Category.PAIR, (pairs[0],) + _kickers(values, pairs[:1], 3))

    return HandRank(Category.HIGH_CARD, tuple(values[:5]))


def _ranks_with(counts: Counter, minimum: int) -> List[int]:
    return sorted((rank for rank, count in counts.items() if count >= minimum), reverse=True)


def _kickers(values: Sequence[int], exclude: Sequence[int], count: int) -> Tuple[int, ...]:
    return tuple([value for value in values if value not in exclude][:count])


def _straight_high(values: Iterable[int]) -> Optional[int]:
    ranks = set(values)
    if 14 in ranks:  # Ace low
        ranks.add(1)
    for high in range(14, 4, -1):
        if all(rank in ranks for rank in range(high - 4, high + 1)):
            return high
    return None


def describe_rank(rank: HandRank) -> str:
    return Category(rank.category).name.lower()
