"""Conversion between a live Room and its durable RoomSnapshot (and the reverse direction)."""

import logging
from typing import Optional
from uuid import uuid4

from chessroom.core.exceptions import GameError
from chessroom.core.models import (
    AiSnapshot,
    ChatMemberSnapshot,
    ChatMessageSnapshot,
    ChatSnapshot,
    ClockSnapshot,
    PlayersSnapshot,
    RoomSnapshot,
)
from chessroom.core.shared_types import Color
from chessroom.engine.rules import RulesEngine, RulesEngineFactory
from chessroom.services import chat as chat_rules
from chessroom.services.room import (
    AiState,
    ChatMessage,
    ChatState,
    ClockState,
    Room,
)

logger = logging.getLogger(__name__)


def to_snapshot(room: Room, now: Optional[int] = None) -> RoomSnapshot:
    return RoomSnapshot(
        id=room.id,
        fen=room.engine.fen(),
        starting_fen=room.engine.starting_fen,
        moves=[record.uci for record in room.engine.move_history()],
        players=PlayersSnapshot(
            white=room.players[Color.WHITE], black=room.players[Color.BLACK]
        ),
        forced_result=room.forced_result,
        draw_offer_by=room.draw_offer_by,
        rematch_offers=sorted(room.rematch_offers),
        clock=ClockSnapshot(
            white_ms=room.clock.white_ms,
            black_ms=room.clock.black_ms,
            increment_ms=room.clock.increment_ms,
            running=room.clock.running,
            last_tick_at=room.clock.last_tick_at,
        ),
        chat=chat_snapshot(room.chat),
        ai=AiSnapshot(
            enabled=room.ai.enabled,
            level=room.ai.level,
            bot_address=room.ai.bot_address,
            thinking=room.ai.thinking,
        ),
        created_at=room.created_at,
        updated_at=now,
    )


def chat_snapshot(chat: ChatState) -> ChatSnapshot:
    return ChatSnapshot(
        members={
            address: ChatMemberSnapshot(username=member.username, avatar=member.avatar)
            for address, member in chat.members.items()
        },
        messages=[
            ChatMessageSnapshot(
                id=message.id,
                at=message.at,
                address=message.address,
                username=message.username,
                avatar=message.avatar,
                text=message.text,
            )
            for message in chat.messages
        ],
    )


def from_snapshot(snapshot: RoomSnapshot, engine_factory: RulesEngineFactory) -> Room:
    """
    Rebuild a live Room.
    ----

    Transient state starts empty: no connections, no forfeit timer. The room is flagged so that the first
    attach decides whether a forfeit timer should be running.
    """
    room = Room(
        id=snapshot.id,
        engine=_restore_engine(snapshot, engine_factory),
        players={Color.WHITE: snapshot.players.white, Color.BLACK: snapshot.players.black},
        clock=ClockState(
            white_ms=snapshot.clock.white_ms,
            black_ms=snapshot.clock.black_ms,
            increment_ms=snapshot.clock.increment_ms,
            running=snapshot.clock.running,
            last_tick_at=snapshot.clock.last_tick_at,
        ),
        created_at=snapshot.created_at,
        chat=_restore_chat(snapshot.chat),
        ai=AiState(
            enabled=snapshot.ai.enabled,
            level=snapshot.ai.level,
            bot_address=snapshot.ai.bot_address,
            thinking=snapshot.ai.thinking,
        ),
        forced_result=snapshot.forced_result,
        draw_offer_by=snapshot.draw_offer_by,
        rematch_offers=set(snapshot.rematch_offers),
    )
    room.needs_forfeit_check = True
    return room


def _restore_engine(snapshot: RoomSnapshot, engine_factory: RulesEngineFactory) -> RulesEngine:
    """Replay the move list so history and repetitions survive. Falls back to the bare FEN if the replay disagrees."""
    if snapshot.moves:
        try:
            engine = engine_factory(snapshot.starting_fen, snapshot.moves)
        except GameError:
            logger.warning("Room %s: stored moves do not replay, restoring from FEN only", snapshot.id)
        else:
            if engine.fen() == snapshot.fen:
                return engine
            logger.warning("Room %s: replayed position differs from stored FEN, restoring from FEN only", snapshot.id)
    return engine_factory(snapshot.fen, None)


def _restore_chat(chat: ChatSnapshot) -> ChatState:
    """Same limits as live chat: over-long fields get cut, empty messages dropped, missing avatars filled in."""
    state = ChatState()
    for address, stored in chat.members.items():
        member = chat_rules.normalize_member(stored.username, stored.avatar, address)
        if member is not None:
            state.members[address] = member

    for stored in chat.messages:
        text = stored.text.strip()[: chat_rules.MAX_MESSAGE_LENGTH]
        if not text:
            continue
        state.messages.append(
            ChatMessage(
                id=stored.id or uuid4().hex[:8],
                at=stored.at,
                address=stored.address.lower(),
                username=stored.username.strip()[: chat_rules.USERNAME_MAX_LENGTH] or "Player",
                avatar=stored.avatar.strip()[: chat_rules.AVATAR_MAX_LENGTH],
                text=text,
            )
        )
    return state
