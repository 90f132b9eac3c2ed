"""Multi-variant poker engine: dealing, betting streets, showdown and pots."""

from .cards import Card, Deck, RANKS, SUITS, build_deck, parse_cards
from .errors import EngineError, ErrorKind
from .evaluator import Category, HandRank, describe_rank, evaluate
from .game import GameEngine, RoundState
from .models import ActionType, Player, RoundEnded, Stage, TableConfig
from .pots import Pot, calculate_side_pots, split_amount
from .variants import FIVE_CARD_DRAW, HOLDEM, OMAHA, VariantPolicy, get_variant

__all__ = [
    "Card",
    "Deck",
    "RANKS",
    "SUITS",
    "build_deck",
    "parse_cards",
    "EngineError",
    "ErrorKind",
    "Category",
    "HandRank",
    "describe_rank",
    "evaluate",
    "GameEngine",
    "RoundState",
    "ActionType",
    "Player",
    "RoundEnded",
    "Stage",
    "TableConfig",
    "Pot",
    "calculate_side_pots",
    "split_amount",
    "FIVE_CARD_DRAW",
    "HOLDEM",
    "OMAHA",
    "VariantPolicy",
    "get_variant",
]
