import time
from typing import Optional, Set, Tuple

from rummikub import socketio
from rummikub.models import PLAYING, GameSession
from . import engine
from .errors import SessionNotFound
from .melds import board_is_valid


_scheduled_turn_keys: Set[Tuple[str, int, int]] = set()


def recover_timed_out_turn(session: GameSession, expected_turn: int, now: Optional[float] = None,
                           expected_generation: Optional[int] = None) -> bool:
    """Compensate for a turn whose deadline passed.

    Undo everything the current player did this turn, then draw for them,
    or end the turn when the pool is empty. Returns False when the turn has
    already moved on, the table was dealt again, or the deadline is still
    ahead.
    """
    now = time.time() if now is None else now
    if session.phase != PLAYING or session.turn_number != expected_turn:
        return False
    if expected_generation is not None and session.generation != expected_generation:
        return False
    if session.turn_deadline is None or now < session.turn_deadline:
        return False
    # The turn-start board must hold up on its own before anything is undone
    if not board_is_valid(session.turn_start_board.values()):
        return False
    player_id = session.current_player.id
    engine.undo_turn(session, player_id)
    if session.pool:
        engine.draw_tile(session, player_id, now)
    else:
        engine.end_turn(session, player_id, now)
    return True


def schedule_turn_timer(app, table_id: str) -> None:
    """Schedule timeout recovery for the table's current turn.

    - No-ops in TESTING mode
    - One timer per (table_id, deal generation, turn_number); a reset
      starts a new generation so its turn 1 gets its own timer
    - On expiry runs recover_timed_out_turn under the table lock and
      schedules the next turn's timer
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return

    registry = app.extensions['session_registry']
    try:
        phase, generation, turn, deadline = registry.read(
            table_id, lambda s: (s.phase, s.generation, s.turn_number, s.turn_deadline))
    except SessionNotFound:
        return
    if phase != PLAYING or deadline is None:
        return

    key = (table_id, generation, turn)
    if key in _scheduled_turn_keys:
        app.logger.info(f"[timer-skip] table={table_id} gen={generation} turn={turn} already scheduled")
        return
    _scheduled_turn_keys.add(key)
    delay = max(0.0, deadline - time.time())
    app.logger.info(f"[timer-set] table={table_id} gen={generation} turn={turn} delay={delay:.1f}s deadline={deadline}")

    def _worker(tid: str, gen: int, expected_turn: int, wait: float):
        hb = int(app.config.get('TIMER_HEARTBEAT_SEC', 0))
        if hb > 0:
            slept = 0.0
            while slept < wait:
                step = min(hb, wait - slept)
                time.sleep(step)
                slept += step
                app.logger.info(f"[timer-heartbeat] table={tid} turn={expected_turn} remaining={max(0.0, wait - slept):.0f}s")
        else:
            time.sleep(wait)
        _scheduled_turn_keys.discard((tid, gen, expected_turn))
        try:
            fired = registry.run(tid, recover_timed_out_turn, expected_turn, expected_generation=gen)
        except SessionNotFound:
            return
        app.logger.info(f"[timer-fire] table={tid} turn={expected_turn} recovered={fired}")
        if fired:
            schedule_turn_timer(app, tid)

    socketio.start_background_task(_worker, table_id, generation, turn, delay)
