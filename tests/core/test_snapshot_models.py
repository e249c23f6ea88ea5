"""Unit tests for chessroom/core/models.py"""

import pytest
from pydantic import ValidationError

from chessroom.core.models import ClockSnapshot, PlayersSnapshot, RoomSnapshot
from chessroom.core.shared_types import AiLevel, Color, GameResult, ai_address, is_ai_address


def make_snapshot(**overrides) -> RoomSnapshot:
    data = dict(
        id="abcd1234",
        fen="rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1",
        moves=["e2e4"],
        players=PlayersSnapshot(white="0xaaa", black="0xbbb"),
        clock=ClockSnapshot(white_ms=1000, black_ms=2000, increment_ms=0),
        created_at=1,
    )
    data.update(overrides)
    return RoomSnapshot(**data)


def test_json_uses_camel_case_keys() -> None:
    raw = make_snapshot(draw_offer_by=Color.WHITE).to_json()
    assert '"drawOfferBy":"white"' in raw
    assert '"whiteMs":1000' in raw
    assert '"version":1' in raw


def test_from_json_restores_the_same_snapshot() -> None:
    snapshot = make_snapshot(rematch_offers=[Color.BLACK], forced_result=GameResult.DRAW_AGREED)
    assert RoomSnapshot.from_json(snapshot.to_json()) == snapshot


def test_unknown_version_is_rejected() -> None:
    data = make_snapshot().model_dump(by_alias=True)
    data["version"] = 2
    with pytest.raises(ValidationError):
        RoomSnapshot.model_validate(data)


def test_unknown_result_tag_is_rejected() -> None:
    raw = make_snapshot(forced_result=GameResult.DRAW_AGREED).to_json()
    with pytest.raises(ValidationError):
        RoomSnapshot.from_json(raw.replace('"draw_agreed"', '"bogus"'))


def test_negative_clock_is_rejected() -> None:
    with pytest.raises(ValidationError):
        ClockSnapshot(white_ms=-1, black_ms=0, increment_ms=0)


def test_result_tags() -> None:
    assert GameResult.win_by(Color.WHITE, "forfeit") == GameResult.WHITE_WINS_BY_FORFEIT
    assert GameResult.win_by(Color.BLACK, "timeout").value == "black_wins_by_timeout"
    assert Color.WHITE.opponent == Color.BLACK


def test_ai_addresses() -> None:
    assert ai_address(AiLevel.MASTER) == "ai:master"
    assert is_ai_address("ai:beginner")
    assert not is_ai_address("0xabc")
    assert not is_ai_address(None)
