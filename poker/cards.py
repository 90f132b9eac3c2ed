from __future__ import annotations

import random
from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterable, List, Optional, Sequence

RANKS = "AKQJT98765432"
SUITS = "shdc"

RANK_VALUE = {rank: idx for idx, rank in enumerate(RANKS[::-1], start=2)}
SUIT_SYMBOLS = {"s": "♠", "h": "♥", "d": "♦", "c": "♣"}


@dataclass(frozen=True)
class Card:
    rank: str
    suit: str

    def __post_init__(self) -> None:
        if self.rank not in RANKS:
            raise ValueError(f"Invalid rank: {self.rank}")
        if self.suit not in SUITS:
            raise ValueError(f"Invalid suit: {self.suit}")

    @property
    def value(self) -> int:
        return RANK_VALUE[self.rank]

    @property
    def label(self) -> str:
        return f"{self.rank}{self.suit}"

    @property
    def pretty(self) -> str:
        rank = "10" if self.rank == "T" else self.rank
        return f"{rank}{SUIT_SYMBOLS[self.suit]}"

    def __str__(self) -> str:
        return self.label


def build_deck(seed: Optional[int] = None) -> List[Card]:
    rng = random.Random(seed)
    deck = [Card(rank, suit) for rank in RANKS[::-1] for suit in SUITS]
    rng.shuffle(deck)
    return deck


class Deck:
    """Owning queue of cards: deals from the front, recycles to the bottom.

    Recycled cards sit behind every fresh card and are never dealt again in
    the same round, so ``draw`` only hands out fresh cards.
    """

    def __init__(self, cards: Iterable[Card]) -> None:
        self._cards: Deque[Card] = deque(cards)
        self._fresh = len(self._cards)

    def __len__(self) -> int:
        return len(self._cards)

    @property
    def fresh(self) -> int:
        return self._fresh

    def draw(self, count: int) -> List[Card]:
        if count > self._fresh:
            raise ValueError("Not enough cards left in deck")
        cards = [self._cards.popleft() for _ in range(count)]
        self._fresh -= count
        return cards

    def return_to_bottom(self, cards: Iterable[Card]) -> None:
        self._cards.extend(cards)

    def cards(self) -> List[Card]:
        return list(self._cards)


def cards_to_labels(cards: Iterable[Card]) -> List[str]:
    return [card.label for card in cards]


def parse_label(label: str) -> Card:
    text = label.strip()
    if text[:2] == "10":
        text = "T" + text[2:]
    if len(text) != 2:
        raise ValueError(f"Invalid card label: {label}")
    rank = text[0].upper()
    suit = text[1].lower()
    for letter, symbol in SUIT_SYMBOLS.items():
        if text[1] == symbol:
            suit = letter
    return Card(rank, suit)


def parse_cards(labels: Sequence[str]) -> List[Card]:
    return [parse_label(label) for label in labels]
