from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from rummikub import socketio, sessions
from rummikub.broadcast import STATE_EVENT, table_room
from rummikub.services.games.errors import SessionNotFound
from typing import Dict, Set


# sid -> joined table ids, for logging on disconnect
_sid_to_tables: Dict[str, Set[str]] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    for table_id in sorted(_sid_to_tables.pop(_get_sid(), ())):
        current_app.logger.info(f"[socket] sid={_get_sid()} left table={table_id} (disconnect)")


def handle_join_game(data):
    table_id = (data or {}).get('tableId')
    if not table_id:
        emit('error', {'message': 'tableId is required'})
        return
    room = table_room(table_id)
    join_room(room)
    _sid_to_tables.setdefault(_get_sid(), set()).add(table_id)
    emit('joined', {'room': room})
    # Catch the newcomer up without re-broadcasting to the whole room
    try:
        emit(STATE_EVENT, sessions.state(table_id))
    except SessionNotFound:
        pass


def handle_leave_game(data):
    table_id = (data or {}).get('tableId')
    if not table_id:
        emit('error', {'message': 'tableId is required'})
        return
    room = table_room(table_id)
    leave_room(room)
    _sid_to_tables.get(_get_sid(), set()).discard(table_id)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    # Primary namespace
    socketio.on_event('connect', handle_connect, namespace='/ws')
    socketio.on_event('disconnect', handle_disconnect, namespace='/ws')
    socketio.on_event('join_game', handle_join_game, namespace='/ws')
    socketio.on_event('leave_game', handle_leave_game, namespace='/ws')
    socketio.on_event('ping', handle_ping, namespace='/ws')

    if testing:
        # Test-only mirror on default namespace
        socketio.on_event('connect', handle_connect, namespace='/')
        socketio.on_event('disconnect', handle_disconnect, namespace='/')
        socketio.on_event('join_game', handle_join_game, namespace='/')
        socketio.on_event('leave_game', handle_leave_game, namespace='/')
        socketio.on_event('ping', handle_ping, namespace='/')
