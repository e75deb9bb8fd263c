from collections import Counter

from rummikub import socketio
from rummikub.models import PLAYING, Position
from rummikub.services.games import engine, scheduler
from rummikub.services.games.scheduler import recover_timed_out_turn, schedule_turn_timer


def test_expired_turn_is_undone_and_drawn_for(build_session, tile_id):
    session = build_session({'alice': ['red-3', 'red-4'], 'bob': ['blue-1']}, pool=['black-9'])
    hand_before = Counter(t.id for t in session.hands['alice'])
    engine.place_tile(session, 'alice', tile_id(session, 'red-3', 'alice'), Position(0, 0))

    assert recover_timed_out_turn(session, expected_turn=1, now=1061.0)
    assert session.board == {}
    drawn = session.hands['alice'][-1]
    assert drawn.label() == 'black-9'
    assert Counter(t.id for t in session.hands['alice']) == hand_before + Counter([drawn.id])
    assert session.current_player_index == 1
    assert session.action_history == []


def test_expired_turn_with_empty_pool_passes(build_session):
    session = build_session({'alice': ['red-3'], 'bob': ['blue-1']})
    assert recover_timed_out_turn(session, expected_turn=1, now=1061.0)
    assert session.current_player_index == 1
    assert session.phase == PLAYING


def test_recovery_ignores_live_or_stale_turns(build_session):
    session = build_session({'alice': ['red-3'], 'bob': ['blue-1']}, pool=['black-9'])
    assert not recover_timed_out_turn(session, expected_turn=1, now=1059.0)
    assert not recover_timed_out_turn(session, expected_turn=7, now=5000.0)
    assert session.current_player_index == 0
    assert len(session.pool) == 1


def test_timer_is_not_started_in_tests(flask_app):
    flask_app.extensions['session_registry'].init_table('t1', [{'id': 'a'}, {'id': 'b'}])
    # TESTING short-circuits before any background task is spawned
    assert schedule_turn_timer(flask_app, 't1') is None


def test_reset_table_gets_a_fresh_timer(flask_app, monkeypatch):
    started = []
    monkeypatch.setattr(scheduler, '_scheduled_turn_keys', set())
    monkeypatch.setattr(socketio, 'start_background_task', lambda *args: started.append(args))
    flask_app.config['ENABLE_SCHEDULER_IN_TESTS'] = True
    registry = flask_app.extensions['session_registry']

    registry.init_table('t1', [{'id': 'a'}, {'id': 'b'}])
    registry.run('t1', engine.start_game)
    schedule_turn_timer(flask_app, 't1')
    schedule_turn_timer(flask_app, 't1')
    assert len(started) == 1

    # the first game's turn-1 timer is still pending when the table restarts
    registry.reset('t1')
    registry.run('t1', engine.start_game)
    schedule_turn_timer(flask_app, 't1')
    assert len(started) == 2
    assert started[0][3] == started[1][3] == 1
    assert started[0][2] != started[1][2]


def test_stale_deal_timer_does_not_touch_the_new_game(build_session):
    session = build_session({'alice': ['red-3'], 'bob': ['blue-1']}, pool=['black-9'])
    session.generation = 2
    assert not recover_timed_out_turn(session, expected_turn=1, now=5000.0, expected_generation=1)
    assert session.current_player_index == 0
    assert recover_timed_out_turn(session, expected_turn=1, now=5000.0, expected_generation=2)
