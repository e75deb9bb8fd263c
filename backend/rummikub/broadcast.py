from typing import Any, Dict

STATE_EVENT = 'state_update'
RESET_EVENT = 'game_reset'


def table_room(table_id: str) -> str:
    return f"table:{table_id}"


class SocketIOBroadcast:
    """Publishes table snapshots to the table's Socket.IO room."""

    def __init__(self, socketio, namespace: str = '/ws'):
        self.socketio = socketio
        self.namespace = namespace

    def publish(self, table_id: str, snapshot: Dict[str, Any]) -> None:
        self.socketio.emit(STATE_EVENT, snapshot, to=table_room(table_id), namespace=self.namespace)

    def publish_reset(self, table_id: str, snapshot: Dict[str, Any]) -> None:
        self.socketio.emit(RESET_EVENT, snapshot, to=table_room(table_id), namespace=self.namespace)


class NullBroadcast:
    def publish(self, table_id, snapshot):
        pass

    def publish_reset(self, table_id, snapshot):
        pass
