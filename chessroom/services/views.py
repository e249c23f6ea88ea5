"""Room -> GameStateView: what every attached client gets to see."""

from chessroom.api.models import (
    AiView,
    ClockView,
    ConnectionView,
    GameStateView,
    MoveView,
)
from chessroom.core.shared_types import Color
from chessroom.services.codec import chat_snapshot
from chessroom.services.room import Room


def side_code(color: Color) -> str:
    return "w" if color == Color.WHITE else "b"


def serialize_room(room: Room) -> GameStateView:
    result = room.result
    return GameStateView(
        id=room.id,
        fen=room.engine.fen(),
        turn=side_code(room.turn),
        status=room.status.value,
        players=dict(room.players),
        finished=room.is_finished,
        result=result.value if result else None,
        draw_offer_by=room.draw_offer_by,
        rematch_offers=sorted(room.rematch_offers),
        move_history=[
            MoveView(
                ply=record.ply,
                color=side_code(record.color),
                from_square=record.from_square,
                to_square=record.to_square,
                san=record.san,
            )
            for record in room.engine.move_history()
        ],
        clock=ClockView(
            white_ms=room.clock.white_ms,
            black_ms=room.clock.black_ms,
            running=room.clock.running,
            increment_ms=room.clock.increment_ms,
        ),
        chat=chat_snapshot(room.chat),
        connection=ConnectionView(
            white_online=room.is_online(Color.WHITE),
            black_online=room.is_online(Color.BLACK),
            forfeit_color=room.forfeit.color,
            forfeit_deadline_at=room.forfeit.deadline_at,
        ),
        ai=AiView(
            enabled=room.ai.enabled,
            level=room.ai.level,
            thinking=room.ai.thinking,
        ),
    )
