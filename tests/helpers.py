from __future__ import annotations

import random
from typing import Iterable, List, Optional

from poker.cards import RANKS, SUITS, Card, parse_cards
from poker.game import GameEngine
from poker.models import ActionType, TableConfig


def create_engine(
    *,
    players: int = 2,
    variant: str = "holdem",
    seats: int = 6,
    starting_stack: int = 1_000,
    sb: int = 5,
    bb: int = 10,
    ante: int = 5,
) -> GameEngine:
    """Instantiate an engine with ``players`` seated as P0, P1, ..."""
    engine = GameEngine(
        TableConfig(seats=seats, starting_stack=starting_stack, variant=variant, sb=sb, bb=bb, ante=ante)
    )
    for idx in range(players):
        engine.seat_player(f"P{idx}")
    return engine


def rigged_deck(labels: Iterable[str]) -> List[Card]:
    """Deck that deals ``labels`` first, then every other card in a fixed order."""
    top = parse_cards(list(labels))
    rest = [Card(rank, suit) for rank in RANKS for suit in SUITS if Card(rank, suit) not in top]
    return top + rest


def rig_deck(monkeypatch, labels: Iterable[str]) -> None:
    cards = rigged_deck(labels)
    monkeypatch.setattr("poker.game.build_deck", lambda seed=None: list(cards))


def total_chips(engine: GameEngine) -> int:
    return sum(player.stack for player in engine.players) + engine.pot


def passive_action(engine: GameEngine, player_id: str) -> ActionType:
    legal = engine.legal_actions(player_id)
    for action in (ActionType.CHECK, ActionType.CALL, ActionType.DRAW):
        if action in legal:
            return action
    return ActionType.FOLD


def play_passively(engine: GameEngine, until_street: Optional[int] = None) -> None:
    """Check/call/stand pat until the round ends (or ``until_street`` opens)."""
    while not engine.is_round_over():
        if until_street is not None and engine.round and engine.round.street >= until_street:
            return
        actor = engine.current_player()
        assert actor is not None
        engine.apply_action(actor, passive_action(engine, actor))


def play_randomly(engine: GameEngine, rng: random.Random, max_steps: int = 2_000) -> None:
    """Random legal play; asserts chips are conserved after every step."""
    expected = total_chips(engine)
    for _ in range(max_steps):
        if engine.is_round_over():
            return
        actor = engine.current_player()
        assert actor is not None
        player = engine.find_player(actor)
        assert player is not None
        action = rng.choice(engine.legal_actions(actor))
        amount = None
        indices = None
        if action == ActionType.BET:
            amount = rng.randint(1, player.stack)
        elif action == ActionType.RAISE:
            amount = rng.randint(1, player.stack - engine.to_call(actor))
        elif action == ActionType.DRAW:
            indices = rng.sample(range(len(player.hand)), rng.randint(0, 3))
        engine.apply_action(actor, action, amount, indices)
        assert total_chips(engine) == expected
    raise AssertionError("round did not finish")
