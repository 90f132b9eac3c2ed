from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .cards import Card, Deck, build_deck, cards_to_labels
from .errors import EngineError, ErrorKind
from .evaluator import HandRank, describe_rank
from .models import ActionType, Player, RoundEnded, Stage, TableConfig
from .pots import calculate_side_pots, split_amount
from .variants import VariantPolicy, get_variant

LOGGER = logging.getLogger("poker.engine")

# GameEngine keeps one table's state in memory. No networking or storage
# lives here, only poker rules, chip accounting, and turn order. Callers
# must not mutate the same engine from two threads at once.


@dataclass
class RoundState:
    # All mutable info about the current round (deck, pot, turn, etc.).
    round_id: str
    seed: int
    variant: VariantPolicy
    players: List[Player]
    deck: Deck
    button: int
    community: List[Card] = field(default_factory=list)
    pot: int = 0
    current_bet: int = 0
    turn: int = 0
    stage: Stage = Stage.DEALT
    street: int = 0
    side_pots: List[int] = field(default_factory=list)
    awaiting_advance: bool = False
    results: List[Tuple[str, int]] = field(default_factory=list)
    events: List[Dict[str, object]] = field(default_factory=list)

    @property
    def street_name(self) -> str:
        return self.variant.streets[self.street]


class GameEngine:
    """Multi-variant poker engine for a single table.

    Actions (``bet``, ``call``, ``raise_``, ``check``, ``fold``,
    ``discard_and_draw``) only validate and record the move; the caller then
    runs ``advance_turn`` to pass the turn on. Actions from anyone but the
    current player are rejected with ``OUT_OF_TURN``. Every rejection raises
    ``EngineError`` before any state changes.
    """

    def __init__(self, config: TableConfig) -> None:
        self.config = config
        self.variant = get_variant(config.variant)
        if config.seats > self.variant.max_players:
            raise ValueError(f"{self.variant.name} supports at most {self.variant.max_players} seats")
        self.players: List[Player] = []
        self.button_seat: Optional[int] = None
        self.round_counter = 0
        self.round: Optional[RoundState] = None

    # Seat management -------------------------------------------------

    def seat_player(self, player_id: str, stack: Optional[int] = None, hands_won: int = 0) -> Player:
        key = player_id.strip()
        if not key:
            raise EngineError(ErrorKind.NOT_A_PLAYER, "Player id required")
        existing = self.find_player(key)
        if existing:
            return existing
        if len(self.players) >= self.config.seats:
            raise EngineError(ErrorKind.TABLE_FULL, "Table is full")
        player = Player(
            id=key,
            stack=self.config.starting_stack if stack is None else stack,
            hands_won=hands_won,
        )
        self.players.append(player)
        return player

    def remove_player(self, player_id: str) -> Player:
        player = self.find_player(player_id)
        if player is None:
            raise EngineError(ErrorKind.NOT_A_PLAYER, f"{player_id} is not seated")
        if self.round_in_progress():
            raise EngineError(ErrorKind.INVALID_STAGE_ACTION, "Cannot leave the table during a round")
        idx = self.players.index(player)
        self.players.remove(player)
        # Keep the next button on the seat that followed the old one.
        if self.button_seat is not None and idx <= self.button_seat:
            self.button_seat -= 1
        return player

    def find_player(self, player_id: str) -> Optional[Player]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    # Round lifecycle -------------------------------------------------

    def round_in_progress(self) -> bool:
        return self.round is not None and self.round.stage != Stage.SETTLED

    def can_start_round(self) -> bool:
        active = [player for player in self.players if player.stack > 0]
        return not self.round_in_progress() and 2 <= len(active) <= self.variant.max_players

    def start_round(self, seed: Optional[int] = None) -> RoundState:
        if self.round_in_progress():
            raise EngineError(ErrorKind.INVALID_STAGE_ACTION, "Round already in progress")
        participants = [player for player in self.players if player.stack > 0]
        if not 2 <= len(participants) <= self.variant.max_players:
            raise EngineError(
                ErrorKind.INVALID_PLAYER_COUNT,
                f"Need 2-{self.variant.max_players} players with chips, have {len(participants)}",
            )

        for player in self.players:
            player.reset_for_round()

        if seed is None:
            seed = int(time.time() * 1000) & 0xFFFFFFFF

        self.button_seat = self._next_button_seat()
        ctx = RoundState(
            round_id=f"R-{time.strftime('%Y%m%d')}-{self.round_counter:05d}",
            seed=seed,
            variant=self.variant,
            players=participants,
            deck=Deck(build_deck(seed)),
            button=participants.index(self.players[self.button_seat]),
        )
        self.round_counter += 1
        self.round = ctx

        self._deal_hole_cards(ctx)
        if self.variant.forced_bets == "ante":
            self._collect_antes(ctx)
        else:
            self._post_blinds(ctx)
        ctx.stage = Stage.BETTING
        LOGGER.info(
            "Round %s started: variant=%s button=%s players=%s",
            ctx.round_id,
            self.variant.name,
            ctx.players[ctx.button].id,
            [player.id for player in ctx.players],
        )

        # Forced bets can leave nobody able to act (short stacks all-in).
        if self._betting_complete(ctx):
            self._close_street(ctx)
        return ctx

    def reset_round(self) -> None:
        """Abandon the current round. Unsettled contributions go back to their owners."""
        ctx = self.round
        if ctx is None:
            return
        if ctx.stage != Stage.SETTLED:
            for player in ctx.players:
                player.stack += player.total_contribution
            ctx.pot = 0
            LOGGER.warning("Round %s abandoned; contributions refunded", ctx.round_id)
        for player in self.players:
            player.reset_for_round()
        self.round = None

    def _next_button_seat(self) -> int:
        count = len(self.players)
        start = -1 if self.button_seat is None else self.button_seat
        for offset in range(1, count + 1):
            idx = (start + offset) % count
            if self.players[idx].stack > 0:
                return idx
        raise EngineError(ErrorKind.INVALID_PLAYER_COUNT, "No seat can take the button")

    def _deal_hole_cards(self, ctx: RoundState) -> None:
        order = self._seats_after(ctx, ctx.button)
        for _ in range(self.variant.hole_cards):
            for idx in order:
                ctx.players[idx].hand.extend(ctx.deck.draw(1))

    def _post_blinds(self, ctx: RoundState) -> None:
        # Heads-up the button posts the small blind and acts first pre-flop.
        if len(ctx.players) == 2:
            sb_idx = ctx.button
        else:
            sb_idx = self._seats_after(ctx, ctx.button)[0]
        bb_idx = self._seats_after(ctx, sb_idx)[0]
        sb_player = ctx.players[sb_idx]
        bb_player = ctx.players[bb_idx]

        self._commit(ctx, sb_player, min(sb_player.stack, self.config.sb))
        self._commit(ctx, bb_player, min(bb_player.stack, self.config.bb))

        ctx.current_bet = max(sb_player.current_street_bet, bb_player.current_street_bet)
        ctx.turn = self._first_to_act(ctx, bb_idx)
        ctx.events.append(
            {
                "ev": "POST_BLINDS",
                "sb_player": sb_player.id,
                "bb_player": bb_player.id,
                "sb": sb_player.current_street_bet,
                "bb": bb_player.current_street_bet,
            }
        )

    def _collect_antes(self, ctx: RoundState) -> None:
        # Antes are dead money: they never count towards the street bet.
        for player in ctx.players:
            self._commit(ctx, player, min(player.stack, self.config.ante), street=False)
        ctx.current_bet = 0
        ctx.turn = self._first_to_act(ctx, ctx.button)
        ctx.events.append({"ev": "POST_ANTES", "ante": self.config.ante, "pot": ctx.pot})

    # Seat order helpers ----------------------------------------------

    def _seats_after(self, ctx: RoundState, start: int) -> List[int]:
        count = len(ctx.players)
        return [(start + offset) % count for offset in range(1, count + 1)]

    def _next_seat(self, ctx: RoundState, start: int, predicate: Callable[[Player], bool]) -> Optional[int]:
        for idx in self._seats_after(ctx, start):
            if predicate(ctx.players[idx]):
                return idx
        return None

    def _first_to_act(self, ctx: RoundState, after: int) -> int:
        seat = self._next_seat(ctx, after, lambda player: player.can_bet)
        return after if seat is None else seat

    def _live(self, ctx: RoundState) -> List[Player]:
        return [player for player in ctx.players if not player.folded]

    def _commit(self, ctx: RoundState, player: Player, amount: int, street: bool = True) -> None:
        player.stack -= amount
        if street:
            player.current_street_bet += amount
        player.total_contribution += amount
        ctx.pot += amount

    # Action handling -------------------------------------------------

    def _require_round(self) -> RoundState:
        if self.round is None:
            raise EngineError(ErrorKind.INVALID_STATE, "No round in progress")
        return self.round

    def _require_actor(self, player_id: str, stage: Stage = Stage.BETTING) -> Tuple[RoundState, Player]:
        if self.find_player(player_id) is None:
            raise EngineError(ErrorKind.NOT_A_PLAYER, f"{player_id} is not seated")
        ctx = self.round
        if ctx is None or ctx.stage != stage:
            raise EngineError(
                ErrorKind.INVALID_STAGE_ACTION,
                f"{stage.value.lower()} action not allowed during {self.stage.value}",
            )
        player = next((p for p in ctx.players if p.id == player_id), None)
        if player is None:
            raise EngineError(ErrorKind.NOT_A_PLAYER, f"{player_id} is sitting this round out")
        if ctx.awaiting_advance or self._turn_player(ctx) is not player:
            raise EngineError(ErrorKind.OUT_OF_TURN, f"It is not {player_id}'s turn")
        return ctx, player

    def _turn_player(self, ctx: RoundState) -> Player:
        if not 0 <= ctx.turn < len(ctx.players):
            raise EngineError(ErrorKind.INVALID_STATE, f"Turn index {ctx.turn} outside seated range")
        return ctx.players[ctx.turn]

    def _validate_bet(self, ctx: RoundState, player: Player, amount: int) -> None:
        if amount < 0:
            raise EngineError(ErrorKind.INVALID_AMOUNT, "Bet cannot be negative")
        if amount > player.stack:
            raise EngineError(ErrorKind.INSUFFICIENT_FUNDS, f"Bet {amount} exceeds stack {player.stack}")
        owed = ctx.current_bet - player.current_street_bet
        # Pushing the whole stack is always allowed, even short of a call.
        if amount < owed and amount != player.stack:
            raise EngineError(ErrorKind.BELOW_CURRENT_BET, f"Bet must be at least {owed}")

    def bet(self, player_id: str, amount: int) -> None:
        ctx, player = self._require_actor(player_id)
        self._validate_bet(ctx, player, amount)
        self._place_bet(ctx, player, amount, ActionType.BET)

    def call(self, player_id: str) -> None:
        ctx, player = self._require_actor(player_id)
        owed = max(ctx.current_bet - player.current_street_bet, 0)
        self._place_bet(ctx, player, min(owed, player.stack), ActionType.CALL)

    def raise_(self, player_id: str, amount: int) -> None:
        """Raise by ``amount`` on top of the call."""
        ctx, player = self._require_actor(player_id)
        if amount <= 0:
            raise EngineError(ErrorKind.INVALID_AMOUNT, "Raise must be positive")
        total = max(ctx.current_bet - player.current_street_bet, 0) + amount
        self._validate_bet(ctx, player, total)
        self._place_bet(ctx, player, total, ActionType.RAISE)

    def check(self, player_id: str) -> None:
        ctx, player = self._require_actor(player_id)
        if player.current_street_bet < ctx.current_bet:
            raise EngineError(ErrorKind.MUST_ACT_ON_BET, "Cannot check when facing a bet")
        self._finish_action(ctx, player, {"ev": "CHECK", "player": player.id})

    def fold(self, player_id: str) -> None:
        ctx, player = self._require_actor(player_id)
        player.folded = True
        self._finish_action(ctx, player, {"ev": "FOLD", "player": player.id})

    def discard_and_draw(self, player_id: str, indices: Sequence[int]) -> None:
        ctx, player = self._require_actor(player_id, stage=Stage.DRAW)
        if player.has_drawn:
            raise EngineError(ErrorKind.INVALID_STAGE_ACTION, "Already drew this round")
        picks = list(indices)
        if len(set(picks)) != len(picks) or any(not 0 <= idx < len(player.hand) for idx in picks):
            raise EngineError(ErrorKind.INVALID_AMOUNT, f"Invalid discard indices {picks}")
        if len(picks) > ctx.deck.fresh:
            raise EngineError(ErrorKind.INSUFFICIENT_CARDS, "Not enough cards left in deck")

        replacements = ctx.deck.draw(len(picks))
        discarded = [player.hand[idx] for idx in picks]
        for idx, card in zip(picks, replacements):
            player.hand[idx] = card
        ctx.deck.return_to_bottom(discarded)
        player.has_drawn = True
        self._finish_action(ctx, player, {"ev": "DRAW", "player": player.id, "count": len(picks)})

    def _place_bet(self, ctx: RoundState, player: Player, amount: int, action: ActionType) -> None:
        self._commit(ctx, player, amount)
        if player.current_street_bet > ctx.current_bet:
            ctx.current_bet = player.current_street_bet
            # A raise reopens the action for everyone else.
            for other in ctx.players:
                if other is not player:
                    other.has_acted = False
        self._finish_action(ctx, player, {"ev": action.value, "player": player.id, "amount": amount})

    def _finish_action(self, ctx: RoundState, player: Player, event: Dict[str, object]) -> None:
        player.has_acted = True
        ctx.awaiting_advance = True
        if player.all_in:
            event["all_in"] = True
        ctx.events.append(event)

    def apply_action(
        self,
        player_id: str,
        action: ActionType,
        amount: Optional[int] = None,
        indices: Optional[Iterable[int]] = None,
    ) -> List[Dict[str, object]]:
        """Run one action followed by ``advance_turn``; returns the events it produced."""
        mark = len(self.round.events) if self.round else 0
        if action == ActionType.FOLD:
            self.fold(player_id)
        elif action == ActionType.CHECK:
            self.check(player_id)
        elif action == ActionType.CALL:
            self.call(player_id)
        elif action in (ActionType.BET, ActionType.RAISE):
            if amount is None:
                raise EngineError(ErrorKind.INVALID_AMOUNT, f"{action.value} requires amount")
            if action == ActionType.BET:
                self.bet(player_id, amount)
            else:
                self.raise_(player_id, amount)
        elif action == ActionType.DRAW:
            self.discard_and_draw(player_id, list(indices or []))
        else:
            raise EngineError(ErrorKind.INVALID_STAGE_ACTION, f"Unsupported action {action}")

        ctx = self._require_round()
        self.advance_turn()
        return ctx.events[mark:]

    # Turn and street progression -------------------------------------

    def advance_turn(self) -> Union[str, RoundEnded]:
        """Pass the turn on. Returns the next player's id or ``RoundEnded``."""
        ctx = self._require_round()
        ctx.awaiting_advance = False
        if ctx.stage in (Stage.SHOWDOWN, Stage.SETTLED):
            return RoundEnded(ctx.round_id, self._end_reason(ctx))
        if len(self._live(ctx)) <= 1:
            self._end_round(ctx)
            return RoundEnded(ctx.round_id, "fold")

        if ctx.stage == Stage.DRAW:
            seat = self._next_seat(ctx, ctx.turn, lambda player: not player.folded and not player.has_drawn)
            if seat is not None:
                ctx.turn = seat
                return ctx.players[seat].id
            self._open_street(ctx, ctx.street + 1)
            if self._betting_complete(ctx):
                self._close_street(ctx)
        elif self._betting_complete(ctx):
            self._close_street(ctx)
        else:
            seat = self._next_seat(ctx, ctx.turn, lambda player: self._owes_action(ctx, player))
            if seat is None:
                raise EngineError(ErrorKind.INVALID_STATE, "Betting open but nobody left to act")
            ctx.turn = seat

        if ctx.stage == Stage.SHOWDOWN:
            return RoundEnded(ctx.round_id, "showdown")
        return self._turn_player(ctx).id

    def _owes_action(self, ctx: RoundState, player: Player) -> bool:
        return player.can_bet and (not player.has_acted or player.current_street_bet < ctx.current_bet)

    def _betting_complete(self, ctx: RoundState) -> bool:
        contenders = [player for player in ctx.players if player.can_bet]
        if not any(self._owes_action(ctx, player) for player in contenders):
            return True
        # A lone player with chips who has matched the bet has nobody to bet against.
        return len(contenders) == 1 and contenders[0].current_street_bet >= ctx.current_bet

    def _close_street(self, ctx: RoundState) -> None:
        while True:
            if ctx.stage == Stage.BETTING and self.variant.draw_after_street == ctx.street:
                ctx.stage = Stage.DRAW
                ctx.turn = self._next_seat(ctx, ctx.button, lambda player: not player.folded)  # type: ignore[assignment]
                ctx.events.append({"ev": "DRAW_STAGE"})
                LOGGER.debug("Round %s entering draw", ctx.round_id)
                return
            if ctx.street >= self.variant.final_street:
                self._end_round(ctx)
                return
            self._open_street(ctx, ctx.street + 1)
            if not self._betting_complete(ctx):
                return

    def _open_street(self, ctx: RoundState, street: int) -> None:
        ctx.street = street
        ctx.stage = Stage.BETTING
        cards = ctx.deck.draw(self.variant.reveal_schedule[street])
        ctx.community.extend(cards)
        for player in ctx.players:
            player.reset_for_street()
        ctx.current_bet = 0
        ctx.turn = self._first_to_act(ctx, ctx.button)
        ctx.events.append({"ev": "STREET", "street": ctx.street_name, "cards": cards_to_labels(cards)})
        LOGGER.debug("Round %s street %s community=%s", ctx.round_id, ctx.street_name, cards_to_labels(ctx.community))

    def _end_round(self, ctx: RoundState) -> None:
        ctx.stage = Stage.SHOWDOWN
        ctx.events.append({"ev": "ROUND_OVER", "reason": self._end_reason(ctx)})

    def _end_reason(self, ctx: RoundState) -> str:
        return "fold" if len(self._live(ctx)) <= 1 else "showdown"

    def is_round_over(self) -> bool:
        ctx = self.round
        if ctx is None:
            return False
        if ctx.stage in (Stage.SHOWDOWN, Stage.SETTLED):
            return True
        if len(self._live(ctx)) <= 1:
            return True
        return (
            ctx.stage == Stage.BETTING
            and ctx.street == self.variant.final_street
            and self._betting_complete(ctx)
        )

    # Showdown --------------------------------------------------------

    def evaluate_showdown(self) -> List[Tuple[str, int]]:
        """Pay out every pot tier and settle the round.

        Returns ``(player_id, amount_won)`` in seat order. Calling it again
        after settlement returns the same list.
        """
        ctx = self._require_round()
        if ctx.stage == Stage.SETTLED:
            return list(ctx.results)
        if not self.is_round_over():
            raise EngineError(ErrorKind.INVALID_STAGE_ACTION, "Round is not over")

        live = self._live(ctx)
        ranks: Dict[str, HandRank] = {}
        if len(live) > 1:
            for player in live:
                rank = self.variant.best_hand(player.hand, ctx.community)
                ranks[player.id] = rank
                ctx.events.append(
                    {
                        "ev": "SHOWDOWN",
                        "player": player.id,
                        "hand": cards_to_labels(player.hand),
                        "board": cards_to_labels(ctx.community),
                        "rank": describe_rank(rank),
                    }
                )

        # Seat order starting left of the button decides who gets odd chips.
        order = [ctx.players[idx] for idx in self._seats_after(ctx, ctx.button)]
        pots = calculate_side_pots(
            {player.id: player.total_contribution for player in order},
            [player.id for player in order if player.folded],
        )
        ctx.side_pots = [pot.amount for pot in pots]

        winnings: Dict[str, int] = {}
        for pot_idx, pot in enumerate(pots):
            if len(pot.eligible) == 1:
                winners = list(pot.eligible)
            else:
                best = max(ranks[pid] for pid in pot.eligible)
                winners = [pid for pid in pot.eligible if ranks[pid] == best]
            for pid, amount in split_amount(pot.amount, winners).items():
                winnings[pid] = winnings.get(pid, 0) + amount
                ctx.events.append({"ev": "POT_AWARD", "player": pid, "amount": amount, "pot": pot_idx})
            if pot_idx == 0:
                for pid in winners:
                    self._round_player(ctx, pid).hands_won += 1

        for player in ctx.players:
            player.stack += winnings.get(player.id, 0)
        ctx.pot = 0
        ctx.stage = Stage.SETTLED
        ctx.results = [(player.id, winnings[player.id]) for player in ctx.players if winnings.get(player.id)]
        LOGGER.info("Round %s settled: pots=%s results=%s", ctx.round_id, ctx.side_pots, ctx.results)
        return list(ctx.results)

    def _round_player(self, ctx: RoundState, player_id: str) -> Player:
        for player in ctx.players:
            if player.id == player_id:
                return player
        raise EngineError(ErrorKind.NOT_A_PLAYER, f"{player_id} is not in this round")

    # Read-only queries -----------------------------------------------

    @property
    def stage(self) -> Stage:
        return self.round.stage if self.round else Stage.AWAITING_PLAYERS

    @property
    def pot(self) -> int:
        return self.round.pot if self.round else 0

    @property
    def current_bet(self) -> int:
        return self.round.current_bet if self.round else 0

    @property
    def turn(self) -> Optional[int]:
        return self.round.turn if self.round else None

    @property
    def community(self) -> List[Card]:
        return list(self.round.community) if self.round else []

    @property
    def side_pots(self) -> List[int]:
        return list(self.round.side_pots) if self.round else []

    def current_player(self) -> Optional[str]:
        ctx = self.round
        if ctx is None or ctx.stage not in (Stage.BETTING, Stage.DRAW):
            return None
        return self._turn_player(ctx).id

    def player_stack(self, player_id: str) -> int:
        player = self.find_player(player_id)
        if player is None:
            raise EngineError(ErrorKind.NOT_A_PLAYER, f"{player_id} is not seated")
        return player.stack

    def player_bet(self, player_id: str) -> int:
        player = self.find_player(player_id)
        if player is None:
            raise EngineError(ErrorKind.NOT_A_PLAYER, f"{player_id} is not seated")
        return player.current_street_bet

    def to_call(self, player_id: str) -> int:
        player = self.find_player(player_id)
        if player is None or self.round is None:
            return 0
        return min(max(self.round.current_bet - player.current_street_bet, 0), player.stack)

    def legal_actions(self, player_id: str) -> List[ActionType]:
        ctx = self.round
        if ctx is None or ctx.awaiting_advance or self.current_player() != player_id:
            return []
        if ctx.stage == Stage.DRAW:
            return [ActionType.DRAW]
        player = self._turn_player(ctx)
        legal = [ActionType.FOLD]
        owed = ctx.current_bet - player.current_street_bet
        legal.append(ActionType.CHECK if owed <= 0 else ActionType.CALL)
        if player.stack > max(owed, 0):
            legal.append(ActionType.BET if ctx.current_bet == 0 else ActionType.RAISE)
        return legal

    def snapshot(self, viewer: Optional[str] = None) -> Dict[str, object]:
        """Public table state; hands stay hidden except the viewer's own until showdown."""
        ctx = self.round
        if ctx is None:
            return {
                "stage": Stage.AWAITING_PLAYERS.value,
                "variant": self.variant.name,
                "players": [{"id": player.id, "stack": player.stack} for player in self.players],
            }
        reveal = ctx.stage in (Stage.SHOWDOWN, Stage.SETTLED) and len(self._live(ctx)) > 1
        return {
            "round_id": ctx.round_id,
            "variant": self.variant.name,
            "stage": ctx.stage.value,
            "street": ctx.street_name,
            "pot": ctx.pot,
            "current_bet": ctx.current_bet,
            "side_pots": list(ctx.side_pots),
            "button": ctx.players[ctx.button].id,
            "turn": self.current_player(),
            "community": cards_to_labels(ctx.community),
            "players": [
                {
                    "id": player.id,
                    "stack": player.stack,
                    "bet": player.current_street_bet,
                    "folded": player.folded,
                    "all_in": player.all_in,
                    "hand": cards_to_labels(player.hand)
                    if player.id == viewer or (reveal and not player.folded)
                    else None,
                }
                for player in ctx.players
            ],
        }
