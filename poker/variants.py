from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

from .cards import Card
from .errors import EngineError, ErrorKind
from .evaluator import HandRank, evaluate

# A variant is plain data consumed by GameEngine; there is no per-variant
# engine subclass.

HandRule = Callable[[Sequence[Card], Sequence[Card]], HandRank]


def hole_plus_board(hole: Sequence[Card], community: Sequence[Card]) -> HandRank:
    return evaluate(list(hole) + list(community))


def two_hole_three_board(hole: Sequence[Card], community: Sequence[Card]) -> HandRank:
    """Omaha: exactly two hole cards with exactly three community cards."""
    if len(hole) < 2 or len(community) < 3:
        raise EngineError(ErrorKind.INSUFFICIENT_CARDS, "Omaha needs two hole and three community cards")
    return max(
        evaluate(list(pair) + list(board))
        for pair in itertools.combinations(hole, 2)
        for board in itertools.combinations(community, 3)
    )


def hole_only(hole: Sequence[Card], community: Sequence[Card]) -> HandRank:
    return evaluate(hole)


@dataclass(frozen=True)
class VariantPolicy:
    name: str
    hole_cards: int
    streets: Tuple[str, ...]
    # Community cards revealed when each street opens.
    reveal_schedule: Tuple[int, ...]
    forced_bets: str
    hand_rule: HandRule
    max_players: int
    draw_after_street: Optional[int] = None

    @property
    def final_street(self) -> int:
        return len(self.streets) - 1

    @property
    def has_draw(self) -> bool:
        return self.draw_after_street is not None

    def best_hand(self, hole: Sequence[Card], community: Sequence[Card]) -> HandRank:
        return self.hand_rule(hole, community)


HOLDEM = VariantPolicy(
    name="holdem",
    hole_cards=2,
    streets=("PRE_FLOP", "FLOP", "TURN", "RIVER"),
    reveal_schedule=(0, 3, 1, 1),
    forced_bets="blinds",
    hand_rule=hole_plus_board,
    max_players=10,
)

OMAHA = VariantPolicy(
    name="omaha",
    hole_cards=4,
    streets=("PRE_FLOP", "FLOP", "TURN", "RIVER"),
    reveal_schedule=(0, 3, 1, 1),
    forced_bets="blinds",
    hand_rule=two_hole_three_board,
    max_players=10,
)

FIVE_CARD_DRAW = VariantPolicy(
    name="five_card_draw",
    hole_cards=5,
    streets=("PRE_DRAW", "POST_DRAW"),
    reveal_schedule=(0, 0),
    forced_bets="ante",
    hand_rule=hole_only,
    max_players=6,
    draw_after_street=0,
)

VARIANTS = {
    "holdem": HOLDEM,
    "hold'em": HOLDEM,
    "omaha": OMAHA,
    "five_card_draw": FIVE_CARD_DRAW,
    "five card draw": FIVE_CARD_DRAW,
    "fivecarddraw": FIVE_CARD_DRAW,
    "draw": FIVE_CARD_DRAW,
}


def get_variant(name: str) -> VariantPolicy:
    key = name.strip().casefold()
    if key not in VARIANTS:
        raise ValueError(f"Unknown variant: {name}. Supported: holdem, omaha, five_card_draw")
    return VARIANTS[key]
