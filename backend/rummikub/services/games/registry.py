import itertools
import logging
import random
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from rummikub.broadcast import NullBroadcast
from rummikub.models import GameSession
from . import engine
from .errors import GameError, SessionNotFound

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Owns one GameSession per table id.

    Mutations of one table run under that table's lock; different tables
    never wait on each other. Snapshots are published after the lock is
    released, and a failed publish never undoes the mutation.
    """

    def __init__(self, broadcaster=None):
        self._sessions: Dict[str, GameSession] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()
        self._generations = itertools.count(1)
        self.broadcaster = broadcaster or NullBroadcast()
        self.rng: Optional[random.Random] = None
        self.hand_size = 14
        self.turn_duration = 60
        self.initial_meld_points = 30
        self.min_players = 2
        self.max_players = 4

    def init_app(self, app, broadcaster=None) -> None:
        cfg = app.config
        self.hand_size = int(cfg.get('HAND_SIZE', 14))
        self.turn_duration = int(cfg.get('TURN_DURATION_SEC', 60))
        self.initial_meld_points = int(cfg.get('INITIAL_MELD_POINTS', 30))
        self.min_players = int(cfg.get('MIN_PLAYERS', 2))
        self.max_players = int(cfg.get('MAX_PLAYERS', 4))
        if broadcaster is not None:
            self.broadcaster = broadcaster
        self.clear()
        app.extensions['session_registry'] = self

    def clear(self) -> None:
        with self._guard:
            self._sessions.clear()
            self._locks.clear()

    def table_ids(self) -> List[str]:
        return list(self._sessions)

    def _lock_for(self, table_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(table_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[table_id] = lock
            return lock

    def _forget_lock(self, table_id: str, lock: threading.Lock) -> None:
        with self._guard:
            if table_id not in self._sessions and self._locks.get(table_id) is lock:
                del self._locks[table_id]

    @contextmanager
    def locked(self, table_id: str) -> Iterator[GameSession]:
        # Only init_table creates locks; unknown ids never allocate one
        with self._guard:
            lock = self._locks.get(table_id)
        if lock is None:
            raise SessionNotFound()
        with lock:
            session = self._sessions.get(table_id)
            if session is None:
                raise SessionNotFound()
            yield session

    def _new_session(self, table_id: str, players: Sequence[Dict[str, Any]]) -> GameSession:
        session = engine.new_session(
            table_id, players,
            hand_size=self.hand_size,
            turn_duration=self.turn_duration,
            initial_meld_points=self.initial_meld_points,
            min_players=self.min_players,
            max_players=self.max_players,
            rng=self.rng,
        )
        session.generation = next(self._generations)
        return session

    def init_table(self, table_id: str, players: Sequence[Dict[str, Any]], reset: bool = False) -> Dict[str, Any]:
        """Create a table; an existing table is left alone unless ``reset`` is set."""
        lock = self._lock_for(table_id)
        try:
            with lock:
                existed = table_id in self._sessions
                if existed and not reset:
                    return {'success': True, 'tableId': table_id, 'alreadyExists': True}
                session = self._new_session(table_id, players)
                self._sessions[table_id] = session
                snapshot = engine.public_state(session)
        except GameError:
            self._forget_lock(table_id, lock)
            raise
        self._publish(table_id, snapshot, reset=existed)
        return {'success': True, 'tableId': table_id, 'alreadyExists': False}

    def reset(self, table_id: str, players: Optional[Sequence[Dict[str, Any]]] = None) -> Dict[str, Any]:
        """Back to Lobby with a fresh deal; board, hands and pool are discarded."""
        with self.locked(table_id) as current:
            if not players:
                players = [{'id': p.id, 'username': p.display_name, 'avatar': p.avatar_ref} for p in current.players]
            session = self._new_session(table_id, players)
            self._sessions[table_id] = session
            snapshot = engine.public_state(session)
        logger.info(f"[reset] table={table_id}")
        self._publish(table_id, snapshot, reset=True)
        return snapshot

    def run(self, table_id: str, action: Callable[..., Any], *args, **kwargs) -> Any:
        """Apply ``action(session, *args, **kwargs)`` atomically, then broadcast."""
        with self.locked(table_id) as session:
            result = action(session, *args, **kwargs)
            snapshot = engine.public_state(session)
        self._publish(table_id, snapshot)
        return result

    def read(self, table_id: str, reader: Callable[..., Any], *args) -> Any:
        with self.locked(table_id) as session:
            return reader(session, *args)

    def state(self, table_id: str) -> Dict[str, Any]:
        return self.read(table_id, engine.public_state)

    def hand(self, table_id: str, player_id: str) -> List[Dict[str, Any]]:
        return [t.to_dict() for t in self.read(table_id, engine.hand_for, player_id)]

    def _publish(self, table_id: str, snapshot: Dict[str, Any], reset: bool = False) -> None:
        try:
            if reset:
                self.broadcaster.publish_reset(table_id, snapshot)
            else:
                self.broadcaster.publish(table_id, snapshot)
        except Exception as exc:
            logger.warning(f"[broadcast-failed] table={table_id} error={exc}")
