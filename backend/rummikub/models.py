from dataclasses import dataclass, field
from typing import Dict, List, Optional
import time

COLORS = ('red', 'blue', 'yellow', 'black')
TOTAL_TILES = 106

LOBBY = 'lobby'
PLAYING = 'playing'
ENDED = 'ended'

PLACE = 'place'
MOVE = 'move'


@dataclass(frozen=True)
class Tile:
    id: str
    number: int  # 1-13, or 0 for a joker
    color: Optional[str]  # None for a joker
    is_joker: bool = False

    def to_dict(self):
        return {
            'id': self.id,
            'number': self.number,
            'color': self.color,
            'isJoker': self.is_joker,
        }

    def label(self) -> str:
        return 'joker' if self.is_joker else f"{self.color}-{self.number}"


@dataclass(frozen=True)
class Position:
    x: int
    y: int

    def to_dict(self):
        return {'x': self.x, 'y': self.y}


@dataclass(frozen=True)
class BoardTile:
    tile: Tile
    position: Position
    set_id: Optional[str] = None  # client grouping hint, never used for validation

    @property
    def id(self) -> str:
        return self.tile.id

    def to_dict(self):
        data = self.tile.to_dict()
        data['position'] = self.position.to_dict()
        data['setId'] = self.set_id
        return data


@dataclass
class Player:
    id: str
    display_name: str
    avatar_ref: Optional[str] = None
    is_ready: bool = False
    has_played_initial: bool = False

    def to_dict(self, tiles_count: int = 0):
        return {
            'id': self.id,
            'username': self.display_name,
            'avatar': self.avatar_ref,
            'isReady': self.is_ready,
            'hasPlayedInitial': self.has_played_initial,
            'tilesCount': tiles_count,
        }


@dataclass(frozen=True)
class TurnAction:
    kind: str  # PLACE or MOVE
    tile: Tile
    to_position: Position
    to_set_id: Optional[str]
    came_from_hand: bool
    from_position: Optional[Position] = None
    from_set_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self):
        return {
            'kind': self.kind,
            'tile': self.tile.to_dict(),
            'fromPosition': self.from_position.to_dict() if self.from_position else None,
            'toPosition': self.to_position.to_dict(),
            'fromSetId': self.from_set_id,
            'toSetId': self.to_set_id,
            'cameFromHand': self.came_from_hand,
            'timestamp': int(self.timestamp * 1000),
        }


@dataclass
class GameSession:
    """Per-table aggregate.

    ``board`` maps tile id to its BoardTile, ``turn_start_board`` is the
    undo baseline captured whenever a turn begins.
    """
    id: str
    players: List[Player]
    hands: Dict[str, List[Tile]]
    pool: List[Tile]
    phase: str = LOBBY
    current_player_index: int = 0
    board: Dict[str, BoardTile] = field(default_factory=dict)
    turn_start_board: Dict[str, BoardTile] = field(default_factory=dict)
    action_history: List[TurnAction] = field(default_factory=list)
    turn_deadline: Optional[float] = None
    turn_duration: int = 60
    initial_meld_points: int = 30
    turn_number: int = 0
    winner_id: Optional[str] = None
    # bumped by the registry for every fresh deal of the same table
    generation: int = 0

    @property
    def current_player(self) -> Player:
        return self.players[self.current_player_index]

    def find_player(self, player_id: str) -> Optional[Player]:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def tile_at(self, position: Position) -> Optional[BoardTile]:
        for bt in self.board.values():
            if bt.position == position:
                return bt
        return None

    def tile_count(self) -> int:
        return len(self.board) + len(self.pool) + sum(len(h) for h in self.hands.values())
