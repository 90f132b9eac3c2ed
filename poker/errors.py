from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    BELOW_CURRENT_BET = "BELOW_CURRENT_BET"
    MUST_ACT_ON_BET = "MUST_ACT_ON_BET"
    NOT_A_PLAYER = "NOT_A_PLAYER"
    OUT_OF_TURN = "OUT_OF_TURN"
    INVALID_STAGE_ACTION = "INVALID_STAGE_ACTION"
    INSUFFICIENT_CARDS = "INSUFFICIENT_CARDS"
    INVALID_PLAYER_COUNT = "INVALID_PLAYER_COUNT"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    TABLE_FULL = "TABLE_FULL"
    INVALID_STATE = "INVALID_STATE"


class EngineError(ValueError):
    """Rejected engine operation. Raised before any state is touched."""

    def __init__(self, kind: ErrorKind, msg: Optional[str] = None) -> None:
        super().__init__(msg or kind.value)
        self.kind = kind
        self.msg = msg or kind.value
