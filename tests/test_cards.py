import pytest

from poker.cards import Card, Deck, build_deck, cards_to_labels, parse_cards, parse_label


def test_build_deck_is_complete_and_seeded():
    deck = build_deck(seed=7)
    assert len(deck) == 52
    assert len(set(deck)) == 52
    assert deck == build_deck(seed=7)
    assert deck != build_deck(seed=8)


def test_parse_label_accepts_common_spellings():
    assert parse_label("Ts") == Card("T", "s")
    assert parse_label("10h") == Card("T", "h")
    assert parse_label("a♠") == Card("A", "s")
    assert cards_to_labels(parse_cards(["Kd", "2c"])) == ["Kd", "2c"]


@pytest.mark.parametrize("label", ["", "1s", "Ax", "Ks2"])
def test_parse_label_rejects_garbage(label):
    with pytest.raises(ValueError):
        parse_label(label)


def test_card_pretty_uses_symbols():
    assert Card("T", "h").pretty == "10♥"
    assert Card("A", "s").value == 14
    assert Card("2", "c").value == 2


def test_deck_draws_from_front():
    cards = parse_cards(["As", "Kd", "Qh", "Jc", "Ts"])
    deck = Deck(cards)
    assert deck.draw(2) == cards[:2]
    assert len(deck) == 3
    assert deck.fresh == 3


def test_recycled_cards_go_to_bottom_and_are_not_redealt():
    cards = parse_cards(["As", "Kd", "Qh", "Jc", "Ts"])
    deck = Deck(cards)
    drawn = deck.draw(3)
    deck.return_to_bottom(drawn[:2])

    assert len(deck) == 4
    assert deck.fresh == 2
    assert deck.cards()[-2:] == drawn[:2]
    assert deck.draw(2) == cards[3:]
    with pytest.raises(ValueError):
        deck.draw(1)
