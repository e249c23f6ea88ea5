"""
Wall-clock accounting.

The clock is lazily decayed: nothing counts down in the background. Whenever the room is read or mutated,
`apply_decay()` charges the time elapsed since `last_tick_at` to the side on move. The timeout check runs on
every decay, so a flag-fall is detected even if the periodic tick has not fired.
"""

import time

from chessroom.core.shared_types import GameResult
from chessroom.services.room import Room


def now_ms() -> int:
    return int(time.time() * 1000)


def apply_decay(room: Room, now: int) -> None:
    """
    Charge elapsed time to the side on move.
    ----

    Idempotent for a given `now`: a second call sees zero elapsed time.
    If a side reaches zero, the opponent wins on time, the clock stops and pending offers are dropped.
    """
    clock = room.clock
    if not clock.running or room.is_finished:
        return

    if clock.last_tick_at is None:
        clock.last_tick_at = now
        return

    elapsed = now - clock.last_tick_at
    if elapsed <= 0:
        return

    active = room.turn
    clock.set_remaining(active, clock.remaining(active) - elapsed)
    clock.last_tick_at = now

    if clock.remaining(active) == 0 and room.forced_result is None:
        room.forced_result = GameResult.win_by(active.opponent, "timeout")
        clock.stop()
        room.clear_offers()


def start_clock_if_ready(room: Room, now: int) -> None:
    """Run the clock only for an unfinished game with both seats filled."""
    if room.is_finished or not room.both_seated:
        room.clock.stop()
        return
    room.clock.running = True
    room.clock.last_tick_at = now


def credit_move(room: Room, now: int) -> None:
    """
    Bookkeeping after a legal move: Fischer increment for the side that just moved, then restart the count for the
    side now on move (or stop the clock if that move ended the game or black's seat is still empty).

    NOTE call after the move has been applied: the mover is the side NOT on move anymore.
    """
    clock = room.clock
    mover = room.turn.opponent
    clock.set_remaining(mover, clock.remaining(mover) + clock.increment_ms)

    # white may move before black sits down; that does not start black's time
    if room.is_finished or not room.both_seated:
        clock.stop()
    else:
        clock.running = True
        clock.last_tick_at = now
