"""
Orchestration of communication from the websocket layer to the room state, persistence and broadcasting (and the
reverse direction).

Every operation on a room runs inside `registry.exclusive(room.id)`: commands, forfeit-timer expiries, AI turns
and the periodic tick. A command follows the same steps each time: resolve the room and the actor's color,
validate, mutate, persist the snapshot, push the new view to every attached connection.
"""

import asyncio
import json
import logging
import random
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional
from uuid import uuid4

from pydantic import ValidationError

from chessroom.api.models import (
    AcceptDrawRequest,
    CreateRoomRequest,
    EnterChatRequest,
    EscrowLogRequest,
    GameStateView,
    JoinRoomRequest,
    MoveRequest,
    OfferDrawRequest,
    OfferRematchRequest,
    ResignRequest,
    ResumeRoomRequest,
    SendChatRequest,
    SetAiLevelRequest,
)
from chessroom.core.config import Settings
from chessroom.core.exceptions import (
    GameError,
    GameStateError,
    InvalidPlayerError,
    NotYourTurnError,
    RepositoryError,
    RoomNotFoundError,
)
from chessroom.core.logging_config import ESCROW_LOGGER_NAME
from chessroom.core.shared_types import AiLevel, Color, GameResult, ai_address, is_ai_address
from chessroom.db.repository import RoomStore
from chessroom.engine.ai import choose_move
from chessroom.engine.rules import RulesEngineFactory, python_chess_factory
from chessroom.services import chat as chat_rules
from chessroom.services.broadcast import ClientConnection, broadcast
from chessroom.services.clock import apply_decay, credit_move, now_ms, start_clock_if_ready
from chessroom.services.codec import from_snapshot, to_snapshot
from chessroom.services.registry import RoomRegistry
from chessroom.services.room import AiState, ClockState, Room
from chessroom.services.views import serialize_room

logger = logging.getLogger(__name__)
escrow_logger = logging.getLogger(ESCROW_LOGGER_NAME)


class MatchService:
    """Orchestration of layers for realtime chess rooms."""

    def __init__(
        self,
        store: RoomStore,
        settings: Optional[Settings] = None,
        registry: Optional[RoomRegistry] = None,
        engine_factory: RulesEngineFactory = python_chess_factory,
        clock: Callable[[], int] = now_ms,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.store = store
        self.settings = settings or Settings()
        self.registry = registry if registry is not None else RoomRegistry()
        self._engine_factory = engine_factory
        self._now = clock
        self._rng = rng

    # -- Room lifecycle --
    async def create_room(self, conn: ClientConnection, request: CreateRoomRequest) -> GameStateView:
        """First player asked for a new room: they get the white seat."""
        await self._leave_previous_room(conn, None)

        now = self._now()
        room = Room(
            id=self._new_room_id(),
            engine=self._engine_factory(None, None),
            players={Color.WHITE: request.address, Color.BLACK: None},
            clock=ClockState.fresh(self.settings.clock_initial_ms, self.settings.clock_increment_ms),
            created_at=now,
        )
        async with self.registry.exclusive(room.id):
            self.registry.add(room)
            try:
                await self.store.create_room(to_snapshot(room, now))
            except RepositoryError as exc:
                logger.warning("Room %s: could not store new room: %s", room.id, exc)
            logger.info("Room %s created by %s", room.id, request.address)

            await self.attach(conn, room, request.address)
            return await self._publish(room)

    async def load_room(self, room_id: str) -> Optional[Room]:
        """
        The live room, else the stored snapshot rebuilt and registered as live.
        ----

        Call with the room's lock held. A store that fails or holds an unreadable snapshot counts as "not found".
        """
        room = self.registry.get(room_id)
        if room is not None:
            return room

        try:
            snapshot = await self.store.get_room(room_id)
            if snapshot is None:
                return None
            room = from_snapshot(snapshot, self._engine_factory)
        except (GameError, ValidationError) as exc:
            logger.warning("Room %s: could not restore from store: %s", room_id, exc)
            return None

        # nobody is thinking for a room that was not live
        room.ai.thinking = False
        self.registry.add(room)
        logger.info("Room %s restored from store", room_id)
        return room

    async def attach(self, conn: ClientConnection, room: Room, address: str) -> None:
        """
        Bind the connection to the room and seat address. Call with the room's lock held.
        ----

        A pending forfeit against the address's color is dropped as soon as that color is online again. The first
        attach of a restored room also decides whether a forfeit timer has to run for the other color.
        """
        conn.bind(room.id, address)
        room.connections.add(conn)

        color = room.color_of(address)
        if color is not None and room.forfeit.color == color and room.is_online(color):
            room.forfeit.clear()
            logger.info("Room %s: %s reconnected, forfeit cancelled", room.id, color)

        if room.needs_forfeit_check:
            room.needs_forfeit_check = False
            for side in (Color.WHITE, Color.BLACK):
                self._maybe_start_forfeit(room, side)

    async def detach(self, conn: ClientConnection) -> None:
        """The connection closed or moved to another room."""
        room_id, address = conn.room_id, conn.address
        if room_id is None:
            return

        async with self.registry.exclusive(room_id):
            conn.unbind()
            room = self.registry.get(room_id)
            if room is None:
                return
            room.connections.discard(conn)

            color = room.color_of(address)
            if color is not None and not room.is_online(color):
                self._maybe_start_forfeit(room, color)

            if not room.connections and room.never_started:
                room.forfeit.clear()
                self.registry.remove(room_id)
                try:
                    await self.store.delete_room(room_id)
                except RepositoryError as exc:
                    logger.warning("Room %s: could not delete abandoned room: %s", room_id, exc)
                logger.info("Room %s abandoned before start, deleted", room_id)
                return

            await self._publish(room)

            if not room.connections:
                room.forfeit.clear()
                self.registry.remove(room_id)
                logger.info("Room %s evicted from memory", room_id)

    async def join_room(self, conn: ClientConnection, request: JoinRoomRequest) -> GameStateView:
        """Take the free black seat, or re-enter the room as one of its players."""
        async with self._command(request.room_id):
            self._check_join(await self._require_room(request.room_id), request.address)
        await self._leave_previous_room(conn, request.room_id)

        async with self._command(request.room_id):
            # checked again: the room may have changed while the previous one was left
            room = await self._require_room(request.room_id)
            address = request.address
            if self._check_join(room, address):
                room.players[Color.BLACK] = address
                start_clock_if_ready(room, self._now())
                logger.info("Room %s: %s joined as black", room.id, address)

            await self.attach(conn, room, address)
            return await self._publish(room)

    async def resume_room(self, conn: ClientConnection, request: ResumeRoomRequest) -> GameStateView:
        """
        Re-attach a seated player, e.g. after a page reload or a server restart.
        ----

        Game state is left alone, except that a restored AI room sitting on black's turn gets its reply now.
        """
        async with self._command(request.room_id):
            self._check_resume(await self._require_room(request.room_id), request.address)
        await self._leave_previous_room(conn, request.room_id)

        async with self._command(request.room_id):
            room = await self._require_room(request.room_id)
            self._check_resume(room, request.address)
            await self.attach(conn, room, request.address)
            if self._ai_should_move(room):
                return await self._run_ai_turn(room)
            return await self._publish(room)

    async def set_ai_level(self, request: SetAiLevelRequest) -> GameStateView:
        """Turn the room into a game against the built-in engine, which takes the black seat."""
        async with self._command(request.room_id):
            room, color = await self._resolve(request.room_id, request.address, "AI setup")
            if color != Color.WHITE:
                raise InvalidPlayerError("Only white can enable AI mode")
            if room.move_count > 0:
                raise GameStateError("Enable AI before first move")
            black = room.players[Color.BLACK]
            if black is not None and not is_ai_address(black):
                raise GameStateError("Cannot enable AI after human opponent joined")

            bot = ai_address(request.level)
            room.ai = AiState(enabled=True, level=request.level, bot_address=bot)
            room.players[Color.BLACK] = bot
            room.forfeit.clear()
            start_clock_if_ready(room, self._now())
            logger.info("Room %s: AI enabled at level %s", room.id, request.level)
            return await self._publish(room)

    # -- Game commands --
    async def make_move(self, request: MoveRequest) -> GameStateView:
        async with self._command(request.room_id):
            room, color = await self._resolve(request.room_id, request.address, "move")
            await self._ensure_in_progress(room)
            if room.turn != color:
                raise NotYourTurnError("Not your turn")

            now = self._now()
            record = room.engine.apply_move(request.from_square, request.to_square, request.promotion)
            self._after_move(room, now)
            logger.debug("Room %s: %s played %s", room.id, color, record.san)

            if self._ai_should_move(room):
                return await self._run_ai_turn(room)
            if not room.is_finished and not room.is_online(room.turn):
                self._maybe_start_forfeit(room, room.turn)
            return await self._publish(room)

    async def resign(self, request: ResignRequest) -> GameStateView:
        async with self._command(request.room_id):
            room, color = await self._resolve(request.room_id, request.address, "resign")
            await self._ensure_in_progress(room)

            self._finish(room, GameResult.win_by(color.opponent, "resign"))
            logger.info("Room %s: %s resigned", room.id, color)
            return await self._publish(room)

    async def offer_draw(self, request: OfferDrawRequest) -> GameStateView:
        async with self._command(request.room_id):
            room, color = await self._resolve(request.room_id, request.address, "draw")
            await self._ensure_in_progress(room)
            if not room.both_seated:
                raise GameStateError("Both players not joined")
            if room.draw_offer_by == color:
                raise GameStateError("Draw already offered")

            room.draw_offer_by = color
            return await self._publish(room)

    async def accept_draw(self, request: AcceptDrawRequest) -> GameStateView:
        async with self._command(request.room_id):
            room, color = await self._resolve(request.room_id, request.address, "draw")
            await self._ensure_in_progress(room)
            if room.draw_offer_by is None:
                raise GameStateError("No draw offer to accept")
            if room.draw_offer_by == color:
                raise GameStateError("Cannot accept your own draw offer")

            self._finish(room, GameResult.DRAW_AGREED)
            logger.info("Room %s: draw agreed", room.id)
            return await self._publish(room)

    async def offer_rematch(self, request: OfferRematchRequest) -> GameStateView:
        """Once both colors asked (the engine always agrees), the same room starts over with fresh clocks."""
        async with self._command(request.room_id):
            room, color = await self._resolve(request.room_id, request.address, "rematch")
            if not room.is_finished:
                raise GameStateError("Rematch only after game ends")

            room.rematch_offers.add(color)
            if room.ai.enabled and is_ai_address(room.players[Color.BLACK]):
                room.rematch_offers.add(Color.BLACK)

            if len(room.rematch_offers) == 2:
                self._reset_for_rematch(room)
                logger.info("Room %s: rematch started", room.id)
            return await self._publish(room)

    # -- Chat & audit --
    async def enter_chat(self, request: EnterChatRequest) -> GameStateView:
        async with self._command(request.room_id):
            room, _ = await self._resolve(request.room_id, request.address, "chat")
            chat_rules.enter(room.chat, request.address, request.username, request.avatar)
            return await self._publish(room)

    async def send_chat(self, request: SendChatRequest) -> GameStateView:
        async with self._command(request.room_id):
            room, _ = await self._resolve(request.room_id, request.address, "chat")
            text = chat_rules.validate_text(request.text)
            member = chat_rules.member_for(room.chat, request.address, request.username, request.avatar)
            chat_rules.post(room.chat, member, request.address, text, self._now())
            return await self._publish(room)

    async def escrow_log(self, request: EscrowLogRequest) -> None:
        """Record an escrow action the client performed on-chain. No state change, nothing pushed."""
        async with self._command(request.room_id):
            _, color = await self._resolve(request.room_id, request.address, "escrow")

        record = {
            "type": "escrow_action",
            "roomId": request.room_id,
            "address": request.address,
            "color": color.value,
            "action": request.action,
            "assetType": request.asset_type,
            "stakeAmount": request.stake_amount,
            "txHash": request.tx_hash,
            "transferTxHash": request.transfer_tx_hash,
            "at": request.at or self._now(),
        }
        escrow_logger.info("[ESCROW_LOG] %s", json.dumps(record))

    # -- Clock tick --
    async def tick(self) -> None:
        """Decay, persist and push every live room whose clock is running and that somebody is watching."""
        await asyncio.gather(*(self._tick_room(room_id) for room_id in self.registry.room_ids()))

    async def run_ticker(self) -> None:
        """Background loop around `tick()`, until cancelled."""
        interval = self.settings.tick_interval_ms / 1000
        while True:
            await asyncio.sleep(interval)
            try:
                await self.tick()
            except Exception:
                logger.exception("Clock tick failed")

    def shutdown(self) -> None:
        """Cancel the pending forfeit timers of all live rooms."""
        for room in self.registry:
            room.forfeit.clear()

    async def _tick_room(self, room_id: str) -> None:
        async with self.registry.exclusive(room_id):
            room = self.registry.get(room_id)
            if room is None or not room.connections or room.is_finished or not room.clock.running:
                return
            await self._publish(room)

    # -- Forfeit timer --
    def _maybe_start_forfeit(self, room: Room, color: Color) -> bool:
        """Start (or restart) the countdown against `color` if it is offline while the opponent is still here."""
        if room.is_finished or not room.both_seated:
            return False
        if room.is_online(color) or not room.is_online(color.opponent):
            return False

        room.forfeit.clear()
        delay_ms = self.settings.disconnect_forfeit_ms
        room.forfeit.color = color
        room.forfeit.deadline_at = self._now() + delay_ms
        room.forfeit.task = asyncio.create_task(self._forfeit_after(room.id, color, delay_ms / 1000))
        logger.info("Room %s: %s disconnected, forfeit in %d ms", room.id, color, delay_ms)
        return True

    async def _forfeit_after(self, room_id: str, color: Color, delay: float) -> None:
        await asyncio.sleep(delay)
        async with self.registry.exclusive(room_id):
            room = self.registry.get(room_id)
            if room is None or room.forfeit.task is not asyncio.current_task():
                return

            apply_decay(room, self._now())
            if room.is_finished or room.is_online(color) or not room.is_online(color.opponent):
                room.forfeit.clear()
                await self._publish(room)
                return

            self._finish(room, GameResult.win_by(color.opponent, "forfeit"))
            logger.info("Room %s: %s forfeited after disconnect", room.id, color)
            await self._publish(room)

    # -- AI turn --
    def _ai_should_move(self, room: Room) -> bool:
        return (
            room.ai.enabled
            and not room.ai.thinking
            and not room.is_finished
            and room.turn == Color.BLACK
            and is_ai_address(room.players[Color.BLACK])
        )

    async def _run_ai_turn(self, room: Room) -> GameStateView:
        """
        Let the engine reply as black. Call with the room's lock held.
        ----

        Clients first see `thinking=True`. The search runs in a worker thread while the artificial delay elapses,
        then the clock is decayed once more: if black's flag fell in the meantime, the move is dropped.
        """
        room.ai.thinking = True
        await self._publish(room)

        level = room.ai.level or AiLevel.BEGINNER
        try:
            move, _ = await asyncio.gather(
                asyncio.to_thread(choose_move, room.engine.copy(), level, self._rng),
                asyncio.sleep(self.settings.ai_move_delay_ms / 1000),
            )
            now = self._now()
            apply_decay(room, now)
            if move is None or room.is_finished:
                room.clock.stop()
            else:
                record = room.engine.apply_move(move.from_square, move.to_square, move.promotion)
                self._after_move(room, now)
                logger.info("Room %s: AI (%s) played %s", room.id, level, record.san)
        finally:
            room.ai.thinking = False

        return await self._publish(room)

    # -- Internal helpers --
    @asynccontextmanager
    async def _command(self, room_id: str) -> AsyncIterator[None]:
        """
        Hold the room's lock for one command.
        ----

        A room that nobody is attached to afterwards (a rejected join, a command sent without attaching) is dropped
        from memory again. Its snapshot stays in the store.
        """
        async with self.registry.exclusive(room_id):
            try:
                yield
            finally:
                room = self.registry.get(room_id)
                if room is not None and not room.connections:
                    room.forfeit.clear()
                    self.registry.remove(room_id)

    async def _publish(self, room: Room) -> GameStateView:
        """Decay, write the snapshot through to the store, push the view to every attached connection."""
        now = self._now()
        apply_decay(room, now)
        try:
            await self.store.save_room(to_snapshot(room, now))
        except RepositoryError as exc:
            logger.warning("Room %s: could not persist: %s", room.id, exc)

        view = serialize_room(room)
        await broadcast(room.connections, "game_state", view.to_payload())
        return view

    async def _require_room(self, room_id: str) -> Room:
        room = await self.load_room(room_id)
        if room is None:
            raise RoomNotFoundError(f"Room {room_id} not found")
        return room

    async def _resolve(self, room_id: str, address: str, label: str) -> tuple[Room, Color]:
        """Attempt to find the room and the actor's seat in it, and raise error if it fails."""
        room = await self._require_room(room_id)
        color = room.color_of(address)
        if color is None:
            raise InvalidPlayerError(f"Invalid {label} player")
        return room, color

    @staticmethod
    def _check_join(room: Room, address: str) -> bool:
        """Raise if `address` may not enter the room. True when it would take the free black seat."""
        if room.ai.enabled and room.players[Color.WHITE] != address:
            raise InvalidPlayerError("AI room is private to the owner")
        if room.color_of(address) is not None:
            return False
        if room.players[Color.BLACK] is not None:
            raise InvalidPlayerError("Room is full")
        return True

    @staticmethod
    def _check_resume(room: Room, address: str) -> None:
        if room.color_of(address) is None:
            raise InvalidPlayerError("Only existing players can resume")

    async def _ensure_in_progress(self, room: Room) -> None:
        """Reject commands on a finished game. The flag may have fallen since the last tick, so decay first."""
        if not room.is_finished:
            apply_decay(room, self._now())
            if not room.is_finished:
                return
            await self._publish(room)
        raise GameStateError("Game already over")

    async def _leave_previous_room(self, conn: ClientConnection, room_id: Optional[str]) -> None:
        # outside of the target room's lock: two rooms' locks are never held at once
        if conn.room_id is not None and conn.room_id != room_id:
            await self.detach(conn)

    def _new_room_id(self) -> str:
        while True:
            room_id = uuid4().hex[:8]
            if room_id not in self.registry:
                return room_id

    def _after_move(self, room: Room, now: int) -> None:
        room.clear_offers()
        room.forfeit.clear()
        credit_move(room, now)

    def _finish(self, room: Room, result: GameResult) -> None:
        room.forced_result = result
        room.clear_offers()
        room.clock.stop()
        room.forfeit.clear()

    def _reset_for_rematch(self, room: Room) -> None:
        room.engine = self._engine_factory(None, None)
        room.forced_result = None
        room.clear_offers()
        room.forfeit.clear()
        room.ai.thinking = False
        if room.ai.enabled and room.ai.bot_address:
            room.players[Color.BLACK] = room.ai.bot_address
        room.clock = ClockState.fresh(self.settings.clock_initial_ms, self.settings.clock_increment_ms)
        start_clock_if_ready(room, self._now())
