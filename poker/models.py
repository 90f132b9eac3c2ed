from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List

from .cards import Card


class Stage(str, Enum):
    AWAITING_PLAYERS = "AWAITING_PLAYERS"
    DEALT = "DEALT"
    BETTING = "BETTING"
    DRAW = "DRAW"
    SHOWDOWN = "SHOWDOWN"
    SETTLED = "SETTLED"


class ActionType(str, Enum):
    FOLD = "FOLD"
    CHECK = "CHECK"
    CALL = "CALL"
    BET = "BET"
    RAISE = "RAISE"
    DRAW = "DRAW"


@dataclass
class TableConfig:
    seats: int = 6
    starting_stack: int = 1_000
    variant: str = "holdem"
    sb: int = 5
    bb: int = 10
    ante: int = 5
    move_time_ms: int = 15_000
    command_cooldown_ms: int = 3_000


@dataclass
class Player:
    id: str
    stack: int
    hands_won: int = 0
    hand: List[Card] = field(default_factory=list)
    current_street_bet: int = 0
    total_contribution: int = 0
    folded: bool = False
    has_acted: bool = False
    has_drawn: bool = False

    @property
    def can_bet(self) -> bool:
        return not self.folded and self.stack > 0

    @property
    def all_in(self) -> bool:
        return not self.folded and self.stack == 0 and self.total_contribution > 0

    def reset_for_round(self) -> None:
        self.hand = []
        self.current_street_bet = 0
        self.total_contribution = 0
        self.folded = False
        self.has_acted = False
        self.has_drawn = False

    def reset_for_street(self) -> None:
        self.current_street_bet = 0
        self.has_acted = False


@dataclass(frozen=True)
class RoundEnded:
    """Returned by ``GameEngine.advance_turn`` once no one is left to act."""

    round_id: str
    reason: str
