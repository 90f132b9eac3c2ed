import pytest

from poker.cards import parse_cards
from poker.errors import EngineError, ErrorKind
from poker.evaluator import Category
from poker.game import GameEngine
from poker.models import ActionType, Stage, TableConfig
from poker.variants import FIVE_CARD_DRAW, HOLDEM, OMAHA, get_variant

from .helpers import create_engine, rig_deck


@pytest.mark.parametrize(
    "name, variant",
    [
        ("holdem", HOLDEM),
        ("Hold'em", HOLDEM),
        ("omaha", OMAHA),
        ("five_card_draw", FIVE_CARD_DRAW),
        ("Five Card Draw", FIVE_CARD_DRAW),
        ("draw", FIVE_CARD_DRAW),
    ],
)
def test_variant_lookup(name, variant):
    assert get_variant(name) is variant


def test_unknown_variant():
    with pytest.raises(ValueError):
        get_variant("razz")


def test_variant_shapes():
    assert HOLDEM.hole_cards == 2 and sum(HOLDEM.reveal_schedule) == 5
    assert OMAHA.hole_cards == 4 and OMAHA.streets == HOLDEM.streets
    assert FIVE_CARD_DRAW.hole_cards == 5 and FIVE_CARD_DRAW.has_draw
    assert FIVE_CARD_DRAW.final_street == 1
    assert not HOLDEM.has_draw


def test_omaha_uses_exactly_two_hole_cards():
    hole = parse_cards(["As", "Ks", "Qs", "Js"])
    board = parse_cards(["Ts", "2h", "3d", "4c", "9h"])

    assert HOLDEM.best_hand(hole, board).category == Category.ROYAL_FLUSH
    rank = OMAHA.best_hand(hole, board)
    assert rank.category == Category.HIGH_CARD
    assert rank.tiebreakers == (14, 13, 10, 9, 4)


def test_omaha_needs_three_board_cards():
    with pytest.raises(EngineError) as exc:
        OMAHA.best_hand(parse_cards(["As", "Ks", "Qs", "Js"]), parse_cards(["Ts", "2h"]))
    assert exc.value.kind == ErrorKind.INSUFFICIENT_CARDS


def test_omaha_deals_four_hole_cards():
    engine = create_engine(players=3, variant="omaha")
    ctx = engine.start_round(seed=5)
    assert all(len(player.hand) == 4 for player in ctx.players)
    assert engine.pot == 15


def test_draw_hands_ignore_community():
    hand = parse_cards(["2c", "3d", "4h", "5s", "6h"])
    assert FIVE_CARD_DRAW.best_hand(hand, []).category == Category.STRAIGHT


# Five-card draw round ----------------------------------------------------

DRAW_DECK = ["2c", "Ah", "3d", "Ad", "4h", "Ac", "5s", "As", "9d", "Kd", "6h", "8c"]


def draw_engine(monkeypatch) -> GameEngine:
    rig_deck(monkeypatch, DRAW_DECK)
    engine = GameEngine(TableConfig(variant="five_card_draw", ante=5))
    engine.seat_player("A")
    engine.seat_player("B")
    engine.start_round(seed=1)
    return engine


def test_draw_round_collects_antes(monkeypatch):
    engine = draw_engine(monkeypatch)
    assert engine.pot == 10
    assert engine.current_bet == 0
    assert engine.player_bet("A") == 0
    assert engine.current_player() == "B"
    assert engine.round.events[0] == {"ev": "POST_ANTES", "ante": 5, "pot": 10}


def test_draw_round_full_flow(monkeypatch):
    engine = draw_engine(monkeypatch)
    engine.apply_action("B", ActionType.CHECK)
    engine.apply_action("A", ActionType.CHECK)

    assert engine.stage == Stage.DRAW
    assert engine.current_player() == "B"
    assert engine.legal_actions("B") == [ActionType.DRAW]

    engine.apply_action("B", ActionType.DRAW, indices=[4])
    ctx = engine.round
    b_hand = engine.find_player("B").hand
    assert [card.label for card in b_hand] == ["2c", "3d", "4h", "5s", "6h"]
    assert ctx.deck.cards()[-1].label == "9d"
    assert ctx.deck.fresh == 52 - 11
    assert len(ctx.deck) + 10 == 52

    events = engine.apply_action("A", ActionType.DRAW, indices=[])
    assert events[0] == {"ev": "DRAW", "player": "A", "count": 0}
    assert engine.stage == Stage.BETTING
    assert engine.round.street_name == "POST_DRAW"
    assert engine.current_player() == "B"

    engine.apply_action("B", ActionType.CHECK)
    engine.apply_action("A", ActionType.CHECK)
    assert engine.is_round_over()
    assert engine.evaluate_showdown() == [("A", 10)]
    assert engine.player_stack("A") == 1_005
    assert engine.player_stack("B") == 995


def test_draw_stage_rejects_betting_and_bad_discards(monkeypatch):
    engine = draw_engine(monkeypatch)
    engine.apply_action("B", ActionType.CHECK)
    engine.apply_action("A", ActionType.CHECK)

    for call, args, kind in [
        (engine.bet, ("B", 10), ErrorKind.INVALID_STAGE_ACTION),
        (engine.check, ("B",), ErrorKind.INVALID_STAGE_ACTION),
        (engine.discard_and_draw, ("B", [5]), ErrorKind.INVALID_AMOUNT),
        (engine.discard_and_draw, ("B", [0, 0]), ErrorKind.INVALID_AMOUNT),
        (engine.discard_and_draw, ("A", [0]), ErrorKind.OUT_OF_TURN),
    ]:
        with pytest.raises(EngineError) as exc:
            call(*args)
        assert exc.value.kind == kind

    engine.discard_and_draw("B", [0])
    with pytest.raises(EngineError) as exc:
        engine.discard_and_draw("B", [1])
    assert exc.value.kind == ErrorKind.OUT_OF_TURN


def test_draw_outside_draw_stage_rejected(monkeypatch):
    engine = draw_engine(monkeypatch)
    with pytest.raises(EngineError) as exc:
        engine.discard_and_draw("B", [0])
    assert exc.value.kind == ErrorKind.INVALID_STAGE_ACTION
