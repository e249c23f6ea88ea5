"""Unit tests for chessroom/services/codec.py"""

from chessroom.core.models import ChatMemberSnapshot, ChatMessageSnapshot, ChatSnapshot
from chessroom.core.shared_types import AiLevel, Color, GameResult
from chessroom.engine.rules import STARTING_FEN, python_chess_factory
from chessroom.services import chat
from chessroom.services.clock import start_clock_if_ready
from chessroom.services.codec import from_snapshot, to_snapshot
from chessroom.services.room import AiState, ClockState, ForfeitState, Room
from tests.helpers import connect


def make_room() -> Room:
    room = Room(
        id="codec001",
        engine=python_chess_factory(None, ["e2e4", "e7e5", "g1f3"]),
        players={Color.WHITE: "0xwhite", Color.BLACK: "ai:hard"},
        clock=ClockState.fresh(300_000, 2_000),
        created_at=123,
        ai=AiState(enabled=True, level=AiLevel.HARD, bot_address="ai:hard"),
        draw_offer_by=Color.WHITE,
    )
    start_clock_if_ready(room, 456)
    member = chat.enter(room.chat, "0xwhite", "alice")
    chat.post(room.chat, member, "0xwhite", "good luck", now=789)
    return room


def test_round_trip() -> None:
    room = make_room()
    snapshot = to_snapshot(room, now=1_000)
    restored = from_snapshot(snapshot, python_chess_factory)

    assert to_snapshot(restored, now=1_000) == snapshot
    assert restored.engine.fen() == room.engine.fen()
    assert [r.san for r in restored.engine.move_history()] == ["e4", "e5", "Nf3"]
    assert restored.ai == room.ai
    assert restored.chat == room.chat
    assert restored.clock == room.clock


def test_snapshot_contents() -> None:
    snapshot = to_snapshot(make_room(), now=1_000)
    assert snapshot.version == 1
    assert snapshot.starting_fen == STARTING_FEN
    assert snapshot.moves == ["e2e4", "e7e5", "g1f3"]
    assert snapshot.players.black == "ai:hard"
    assert snapshot.updated_at == 1_000


def test_transient_state_is_not_restored() -> None:
    room = make_room()
    conn, _ = connect()
    room.connections.add(conn)
    room.forfeit = ForfeitState(color=Color.BLACK, deadline_at=5_000)

    restored = from_snapshot(to_snapshot(room), python_chess_factory)
    assert restored.connections == set()
    assert not restored.forfeit.pending
    assert restored.needs_forfeit_check


def test_forced_result_survives() -> None:
    room = make_room()
    room.forced_result = GameResult.BLACK_WINS_BY_FORFEIT
    restored = from_snapshot(to_snapshot(room), python_chess_factory)
    assert restored.result == GameResult.BLACK_WINS_BY_FORFEIT
    assert restored.is_finished


def test_falls_back_to_fen_when_moves_disagree() -> None:
    snapshot = to_snapshot(make_room())
    snapshot.moves = ["e2e4", "e7e5"]  # one move short of the stored position

    restored = from_snapshot(snapshot, python_chess_factory)
    assert restored.engine.fen() == snapshot.fen
    assert restored.engine.move_history() == []


def test_falls_back_to_fen_when_moves_are_illegal() -> None:
    snapshot = to_snapshot(make_room())
    snapshot.moves = ["e2e5"]

    restored = from_snapshot(snapshot, python_chess_factory)
    assert restored.engine.fen() == snapshot.fen


def test_chat_is_normalized_on_restore() -> None:
    snapshot = to_snapshot(make_room())
    snapshot.chat = ChatSnapshot(
        members={"0xlong": ChatMemberSnapshot(username="x" * 40, avatar="")},
        messages=[
            ChatMessageSnapshot(id="", at=1, address="0xLONG", username="bob", text="y" * 400),
            ChatMessageSnapshot(id="m2", at=2, address="0xlong", username="bob", text="   "),
        ],
    )

    restored = from_snapshot(snapshot, python_chess_factory)
    member = restored.chat.members["0xlong"]
    assert member.username == "x" * 24
    assert member.avatar == chat.default_avatar("0xlong")

    assert len(restored.chat.messages) == 1
    message = restored.chat.messages[0]
    assert len(message.text) == 280
    assert message.id
    assert message.address == "0xlong"
