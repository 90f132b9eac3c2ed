from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Union

import websockets
from websockets.server import WebSocketServerProtocol

from poker.cards import Card, cards_to_labels
from poker.errors import EngineError
from poker.game import GameEngine
from poker.models import ActionType, Player, Stage, TableConfig

from .store import MemoryPlayerStore, PlayerRecord, SqlitePlayerStore

LOGGER = logging.getLogger("cardroom")

# TableServer glues one poker table to WebSocket clients. Every network,
# timer and storage concern lives here; the GameEngine stays pure. All engine
# access goes through self.lock so actions for the table are serialized.

PlayerStore = Union[MemoryPlayerStore, SqlitePlayerStore]


@dataclass
class ClientSession:
    player_id: str
    websocket: WebSocketServerProtocol


@dataclass
class PendingAction:
    player_id: str
    deadline: float
    timer_task: Optional[asyncio.Task] = None


class TableServer:
    def __init__(
        self,
        config: TableConfig,
        store: Optional[PlayerStore] = None,
        table_id: str = "T-1",
    ) -> None:
        self.engine = GameEngine(config)
        self.store = store or MemoryPlayerStore(config.starting_stack)
        self.table_id = table_id
        self.sessions: Dict[str, ClientSession] = {}
        self.pending_action: Optional[PendingAction] = None
        self.lock = asyncio.Lock()
        self.last_command: Dict[str, float] = {}

    async def start(self, host: str = "0.0.0.0", port: int = 8765) -> None:
        async with websockets.serve(self._handle_connection, host, port):
            LOGGER.info("Table %s (%s) listening on %s:%s", self.table_id, self.engine.variant.name, host, port)
            await asyncio.Future()

    async def _handle_connection(self, websocket: WebSocketServerProtocol) -> None:
        # First message must be "hello" so we know which identity is playing.
        hello = await self._read_message(websocket)
        if hello is None or hello.get("type") != "hello":
            await self._send_error(websocket, code="BAD_HELLO", msg="Expected hello")
            await websocket.close()
            return
        player_raw = hello.get("player")
        if not isinstance(player_raw, str) or not player_raw.strip():
            await self._send_error(websocket, code="BAD_SCHEMA", msg="player required")
            await websocket.close()
            return
        player_id = player_raw.strip()

        try:
            async with self.lock:
                player = self.engine.find_player(player_id)
                if player is None:
                    record = await asyncio.to_thread(self.store.load_or_create, player_id)
                    player = self.engine.seat_player(player_id, stack=record.stack, hands_won=record.hands_won)
        except EngineError as exc:
            await self._send_error(websocket, code=exc.kind.value, msg=exc.msg)
            await websocket.close()
            return

        # Replace existing connection if any.
        previous = self.sessions.get(player_id)
        if previous:
            await previous.websocket.close(code=4000, reason="Replaced by new connection")

        session = ClientSession(player_id=player_id, websocket=websocket)
        self.sessions[player_id] = session
        LOGGER.info("Player %s seated (stack=%s)", player_id, player.stack)

        await self._send_json(
            websocket,
            "welcome",
            {
                "table_id": self.table_id,
                "player": player_id,
                "config": {
                    "variant": self.engine.variant.name,
                    "seats": self.engine.config.seats,
                    "starting_stack": self.engine.config.starting_stack,
                    "sb": self.engine.config.sb,
                    "bb": self.engine.config.bb,
                    "ante": self.engine.config.ante,
                    "move_time_ms": self.engine.config.move_time_ms,
                },
            },
        )
        await self._publish_lobby()

        pending_act: Optional[Dict[str, object]] = None
        async with self.lock:
            in_round = self.engine.round_in_progress()
            snapshot = self.engine.snapshot(viewer=player_id)
            if self.pending_action and self.pending_action.player_id == player_id:
                pending_act = self._act_payload_locked(player_id)
        if in_round:
            await self._send_json(websocket, "snapshot", snapshot)
            if pending_act:
                await self._send_json(websocket, "act", pending_act)
        else:
            await self._maybe_start_round()

        try:
            async for raw in websocket:
                message = self._decode(raw)
                msg_type = message.get("type")
                if msg_type == "action":
                    await self._handle_action(session, message)
                elif msg_type == "score":
                    await self._handle_score(session)
                else:
                    await self._send_error(websocket, code="UNKNOWN_TYPE", msg="Unsupported message type")
        except websockets.ConnectionClosed:
            pass
        finally:
            if self.sessions.get(player_id) is session:
                self.sessions.pop(player_id, None)
        LOGGER.info("Player %s disconnected", player_id)
        # Mid-round leavers keep their seat until the round settles.
        async with self.lock:
            if not self.engine.round_in_progress():
                await self._unseat_disconnected_locked()
        await self._publish_lobby()

    # Round flow ------------------------------------------------------

    async def _maybe_start_round(self) -> None:
        async with self.lock:
            if not self.engine.can_start_round():
                return
            ctx = self.engine.start_round()
            hands = {player.id: self._hand_payload(player.hand) for player in ctx.players}
            events = list(ctx.events)
            start_payload = {
                "round_id": ctx.round_id,
                "variant": self.engine.variant.name,
                "button": ctx.players[ctx.button].id,
                "players": [{"id": player.id, "stack": player.stack} for player in ctx.players],
            }

        await self._broadcast("start_round", start_payload)
        for player_id, hand in hands.items():
            session = self.sessions.get(player_id)
            if session:
                await self._send_json(session.websocket, "hand", dict(hand, round_id=start_payload["round_id"]))
        await self._broadcast_events(events)
        await self._prompt_next_actor()

    async def _prompt_next_actor(self) -> None:
        async with self.lock:
            round_over = self.engine.is_round_over()
            actor = None if round_over else self.engine.current_player()
            payload = self._act_payload_locked(actor) if actor else None
            if actor:
                self._set_pending_action(actor)

        if round_over:
            await self._finish_round()
            return
        if actor is None or payload is None:
            return
        session = self.sessions.get(actor)
        if not session:
            LOGGER.info("Player %s is disconnected; waiting for reconnection or timeout", actor)
            return
        await self._send_json(session.websocket, "act", payload)

    async def _handle_action(self, session: ClientSession, message: Dict[str, object]) -> None:
        if not self._allow_command(session.player_id):
            await self._send_error(session.websocket, code="RATE_LIMITED", msg="Too many commands")
            return

        round_id = message.get("round_id")
        action_name = message.get("action")
        amount = message.get("amount")
        indices = message.get("indices") or []

        async with self.lock:
            ctx = self.engine.round
            if ctx is None or round_id != ctx.round_id:
                await self._send_error(session.websocket, code="ACTION_TOO_LATE", msg="Round no longer active")
                return
            if not self.pending_action or self.pending_action.player_id != session.player_id:
                await self._send_error(session.websocket, code="OUT_OF_TURN", msg="Not your turn")
                return

            try:
                action = ActionType(str(action_name).upper())
            except ValueError:
                await self._send_error(session.websocket, code="INVALID_ACTION", msg="Unknown action")
                return

            # JSON true/false decode to bool, which is an int subclass.
            if amount is not None and (isinstance(amount, bool) or not isinstance(amount, int)):
                await self._send_error(session.websocket, code="BAD_SCHEMA", msg="amount must be an integer")
                return
            if not isinstance(indices, list) or not all(isinstance(idx, int) for idx in indices):
                await self._send_error(session.websocket, code="BAD_SCHEMA", msg="indices must be integers")
                return

            try:
                events = self.engine.apply_action(session.player_id, action, amount, indices)
            except EngineError as exc:
                LOGGER.warning(
                    "Rejected action player=%s action=%s amount=%s reason=%s",
                    session.player_id,
                    action,
                    amount,
                    exc.kind.value,
                )
                await self._send_error(session.websocket, code=exc.kind.value, msg=exc.msg)
                return
            self._cancel_pending()

        LOGGER.debug("Applied action player=%s action=%s amount=%s", session.player_id, action, amount)
        await self._after_action(events)

    async def _after_action(self, events: List[Dict[str, object]]) -> None:
        await self._broadcast_events(events)
        for event in events:
            if event.get("ev") == "DRAW":
                await self._send_hand(str(event["player"]))
        await self._prompt_next_actor()

    async def _finish_round(self) -> None:
        async with self.lock:
            ctx = self.engine.round
            if ctx is None or ctx.stage == Stage.SETTLED or not self.engine.is_round_over():
                return
            mark = len(ctx.events)
            results = self.engine.evaluate_showdown()
            events = ctx.events[mark:]
            await self._persist_locked()
            end_payload = {
                "round_id": ctx.round_id,
                "results": [{"player": player_id, "amount": amount} for player_id, amount in results],
                "stacks": [{"player": player.id, "stack": player.stack} for player in self.engine.players],
            }
            funded = [player for player in self.engine.players if player.stack > 0]
            match_over = len(funded) < 2
            await self._unseat_disconnected_locked()

        await self._broadcast_events(events)
        await self._broadcast("end_round", end_payload)
        LOGGER.info("Round %s finished; results=%s", end_payload["round_id"], results)
        if match_over:
            winner = funded[0].id if funded else None
            await self._broadcast("match_end", {"winner": winner})
            LOGGER.info("Match over: %s", winner)
            return
        await self._maybe_start_round()

    async def _persist_locked(self, players: Optional[List[Player]] = None) -> None:
        records = [
            PlayerRecord(player_id=player.id, stack=player.stack, hands_won=player.hands_won)
            for player in (self.engine.players if players is None else players)
        ]
        # Store calls block (sqlite), so keep them off the event loop.
        await asyncio.to_thread(self._save_records, records)

    def _save_records(self, records: List[PlayerRecord]) -> None:
        for record in records:
            self.store.save(record)

    async def _unseat_disconnected_locked(self) -> None:
        """Free the seats of players with no live connection (only between rounds)."""
        leavers = [player for player in self.engine.players if player.id not in self.sessions]
        if not leavers:
            return
        await self._persist_locked(leavers)
        for player in leavers:
            self.engine.remove_player(player.id)
            LOGGER.info("Player %s unseated (stack=%s saved)", player.id, player.stack)

    # Timers and rate limiting ----------------------------------------

    def _set_pending_action(self, player_id: str) -> None:
        self._cancel_pending()
        deadline = time.monotonic() + self.engine.config.move_time_ms / 1000
        task: Optional[asyncio.Task] = None
        if self.engine.config.move_time_ms > 0:
            task = asyncio.create_task(self._run_timer(player_id, deadline))
        self.pending_action = PendingAction(player_id=player_id, deadline=deadline, timer_task=task)

    def _cancel_pending(self) -> None:
        if self.pending_action and self.pending_action.timer_task:
            if self.pending_action.timer_task is not asyncio.current_task():
                self.pending_action.timer_task.cancel()
        self.pending_action = None

    async def _run_timer(self, player_id: str, deadline: float) -> None:
        await asyncio.sleep(max(deadline - time.monotonic(), 0))
        await self._timer_expired(player_id, deadline)

    async def _timer_expired(self, player_id: str, deadline: float) -> None:
        async with self.lock:
            pending = self.pending_action
            if pending is None or pending.player_id != player_id or pending.deadline != deadline:
                return
            self.pending_action = None
            events = self._apply_timeout_locked(player_id)
        LOGGER.info("Player %s timed out", player_id)
        await self._broadcast("admin", {"event": "TIMEOUT", "player": player_id})
        await self._after_action(events)

    def _apply_timeout_locked(self, player_id: str) -> List[Dict[str, object]]:
        # Standing pat is the only move in the draw stage; otherwise fold.
        if self.engine.stage == Stage.DRAW:
            return self.engine.apply_action(player_id, ActionType.DRAW, indices=[])
        return self.engine.apply_action(player_id, ActionType.FOLD)

    def _allow_command(self, player_id: str) -> bool:
        cooldown = self.engine.config.command_cooldown_ms / 1000
        now = time.monotonic()
        last = self.last_command.get(player_id)
        if last is not None and now - last < cooldown:
            return False
        self.last_command[player_id] = now
        return True

    # Payloads and messaging ------------------------------------------

    async def _handle_score(self, session: ClientSession) -> None:
        if not self._allow_command(session.player_id):
            await self._send_error(session.websocket, code="RATE_LIMITED", msg="Too many commands")
            return
        async with self.lock:
            record = await asyncio.to_thread(self.store.load_or_create, session.player_id)
        await self._send_json(
            session.websocket,
            "score",
            {"player": record.player_id, "stack": record.stack, "hands_won": record.hands_won},
        )

    def _act_payload_locked(self, player_id: str) -> Dict[str, object]:
        ctx = self.engine.round
        assert ctx is not None
        player = self.engine.find_player(player_id)
        assert player is not None
        return {
            "round_id": ctx.round_id,
            "player": player_id,
            "stage": ctx.stage.value,
            "street": ctx.street_name,
            "pot": ctx.pot,
            "current_bet": ctx.current_bet,
            "to_call": self.engine.to_call(player_id),
            "stack": player.stack,
            "hand": cards_to_labels(player.hand),
            "community": cards_to_labels(ctx.community),
            "legal": [action.value for action in self.engine.legal_actions(player_id)],
            "time_ms": self.engine.config.move_time_ms,
        }

    async def _send_hand(self, player_id: str) -> None:
        session = self.sessions.get(player_id)
        player = self.engine.find_player(player_id)
        if session and player:
            await self._send_json(session.websocket, "hand", self._hand_payload(player.hand))

    def _hand_payload(self, hand: List[Card]) -> Dict[str, object]:
        return {"cards": cards_to_labels(hand), "display": [card.pretty for card in hand]}

    async def _publish_lobby(self) -> None:
        players = [
            {"id": player.id, "stack": player.stack, "connected": player.id in self.sessions}
            for player in self.engine.players
        ]
        await self._broadcast("lobby", {"table_id": self.table_id, "players": players})

    async def _broadcast(self, msg_type: str, payload: Dict[str, object]) -> None:
        targets = [session.websocket for session in self.sessions.values()]
        if not targets:
            return
        message = self._envelope(msg_type, payload)
        await asyncio.gather(*(socket.send(message) for socket in targets), return_exceptions=True)

    async def _broadcast_events(self, events: List[Dict[str, object]]) -> None:
        for event in events:
            await self._broadcast("event", event)

    async def _send_json(self, websocket: WebSocketServerProtocol, msg_type: str, payload: Dict[str, object]) -> None:
        try:
            await websocket.send(self._envelope(msg_type, payload))
        except websockets.ConnectionClosed:
            pass

    async def _send_error(self, websocket: WebSocketServerProtocol, code: str, msg: str) -> None:
        await self._send_json(websocket, "error", {"code": code, "msg": msg})

    def _envelope(self, msg_type: str, payload: Dict[str, object]) -> str:
        body = {"type": msg_type, "v": 1, "ts": datetime.now(timezone.utc).isoformat()}
        body.update(payload)
        return json.dumps(body)

    async def _read_message(self, websocket: WebSocketServerProtocol) -> Optional[Dict[str, object]]:
        try:
            raw = await asyncio.wait_for(websocket.recv(), timeout=5)
        except (asyncio.TimeoutError, websockets.ConnectionClosed):
            return None
        return self._decode(raw)

    def _decode(self, raw: Union[str, bytes]) -> Dict[str, object]:
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            return {}
        return message if isinstance(message, dict) else {}
