"""Turn engine: every state transition of a table.

Each operation validates completely before touching the session, so a
raised GameError always leaves the session unchanged. Callers serialize
access per table (see registry.SessionRegistry).
"""

import logging
import random
import time
from typing import Any, Dict, List, Optional, Sequence

from rummikub.models import (
    ENDED, LOBBY, MOVE, PLACE, PLAYING, TOTAL_TILES,
    BoardTile, GameSession, Player, Position, Tile, TurnAction,
)
from . import errors
from .melds import board_is_valid, can_become_valid_meld, invalid_melds, meld_at, partial_reason, tiles_of
from .scoring import hand_value, initial_meld_total
from .tiles import deal, sort_hand

logger = logging.getLogger(__name__)


def new_session(table_id: str, players: Sequence[Dict[str, Any]], hand_size: int = 14,
                turn_duration: int = 60, initial_meld_points: int = 30,
                min_players: int = 2, max_players: int = 4,
                rng: Optional[random.Random] = None) -> GameSession:
    """Build a Lobby session and deal the opening hands."""
    if not players or len(players) < min_players or len(players) > max_players:
        raise errors.InvalidPlayers(f'A table needs between {min_players} and {max_players} players')
    ids = [str(p.get('id') or '') for p in players]
    if not all(ids) or len(set(ids)) != len(ids):
        raise errors.InvalidPlayers('Every player needs a unique id')
    if hand_size * len(ids) >= TOTAL_TILES:
        raise errors.InvalidPlayers('Not enough tiles to deal that many hands')

    hands, pool = deal(ids, hand_size, rng)
    roster = [
        Player(
            id=pid,
            display_name=p.get('username') or p.get('displayName') or pid,
            avatar_ref=p.get('avatar'),
            is_ready=bool(p.get('isReady', False)),
        )
        for pid, p in zip(ids, players)
    ]
    logger.info(f"[init] table={table_id} players={len(roster)} pool={len(pool)}")
    return GameSession(
        id=table_id,
        players=roster,
        hands=hands,
        pool=pool,
        turn_duration=turn_duration,
        initial_meld_points=initial_meld_points,
    )


def _now(now: Optional[float]) -> float:
    return time.time() if now is None else now


def _player(session: GameSession, player_id: str) -> Player:
    player = session.find_player(player_id)
    if player is None:
        raise errors.PlayerNotFound()
    return player


def _require_turn(session: GameSession, player_id: str) -> Player:
    if session.phase != PLAYING:
        raise errors.InvalidPhase('Game is not in progress')
    player = _player(session, player_id)
    if session.current_player.id != player.id:
        raise errors.NotYourTurn()
    return player


def _advance_turn(session: GameSession, now: float) -> None:
    session.turn_start_board = dict(session.board)
    session.current_player_index = (session.current_player_index + 1) % len(session.players)
    session.action_history = []
    session.turn_number += 1
    session.turn_deadline = now + session.turn_duration


def _finish(session: GameSession, player: Player) -> None:
    session.phase = ENDED
    session.winner_id = player.id
    session.action_history = []
    session.turn_deadline = None
    logger.info(f"[win] table={session.id} winner={player.id}")


def _check_turn_can_end(session: GameSession, player: Player, board: Dict[str, BoardTile]) -> bool:
    """Raise if the turn may not end with ``board``; return whether to latch the initial meld."""
    bad = invalid_melds(board.values())
    if bad:
        raise errors.InvalidBoard(f'Invalid board configuration: {len(bad)} incomplete or invalid meld(s)')
    if player.has_played_initial:
        return False
    # An untouched board with an empty pool is a pass
    if board == session.turn_start_board and not session.pool:
        return False
    total = initial_meld_total(board, session.turn_start_board)
    if total < session.initial_meld_points:
        raise errors.InsufficientInitialMeld(total, session.initial_meld_points)
    return True


def _check_merge(board_tiles: List[BoardTile], position: Position) -> None:
    meld = meld_at(board_tiles, position)
    if len(meld) > 1 and not can_become_valid_meld(tiles_of(meld)):
        raise errors.InvalidMeld(partial_reason(tiles_of(meld)))


# ---- Lobby ----

def toggle_ready(session: GameSession, player_id: str) -> bool:
    player = _player(session, player_id)
    player.is_ready = not player.is_ready
    return player.is_ready


def start_game(session: GameSession, now: Optional[float] = None) -> None:
    if session.phase != LOBBY:
        raise errors.InvalidPhase('Game has already started or is finished')
    session.phase = PLAYING
    session.current_player_index = 0
    session.turn_start_board = dict(session.board)
    session.action_history = []
    session.turn_number = 1
    session.turn_deadline = _now(now) + session.turn_duration
    logger.info(f"[start] table={session.id} first={session.current_player.id}")


# ---- Turn actions ----

def place_tile(session: GameSession, player_id: str, tile_id: str, position: Position,
               set_id: Optional[str] = None, now: Optional[float] = None) -> BoardTile:
    player = _require_turn(session, player_id)
    hand = session.hands[player.id]
    tile = next((t for t in hand if t.id == tile_id), None)
    if tile is None:
        raise errors.TileNotInHand()
    if session.tile_at(position) is not None:
        raise errors.PositionOccupied()

    placed = BoardTile(tile, position, set_id)
    board_after = dict(session.board)
    board_after[tile.id] = placed
    _check_merge(list(board_after.values()), position)

    wins = len(hand) == 1
    if wins:
        # gate only; hasPlayedInitial is latched by end_turn alone
        _check_turn_can_end(session, player, board_after)

    hand.remove(tile)
    session.board = board_after
    session.action_history.append(TurnAction(
        kind=PLACE, tile=tile, to_position=position, to_set_id=set_id,
        came_from_hand=True, timestamp=_now(now),
    ))
    logger.info(f"[place] table={session.id} player={player.id} tile={tile.label()} at=({position.x},{position.y})")

    if wins:
        _finish(session, player)
    return placed


def move_tile(session: GameSession, player_id: str, tile_id: str, new_position: Position,
              new_set_id: Optional[str] = None, now: Optional[float] = None) -> BoardTile:
    player = _require_turn(session, player_id)
    current = session.board.get(tile_id)
    if current is None:
        raise errors.TileNotFound()
    occupant = session.tile_at(new_position)
    if occupant is not None and occupant.id != tile_id:
        raise errors.PositionOccupied()

    moved = BoardTile(current.tile, new_position, new_set_id)
    board_after = dict(session.board)
    board_after[tile_id] = moved
    _check_merge(list(board_after.values()), new_position)

    session.board = board_after
    session.action_history.append(TurnAction(
        kind=MOVE, tile=current.tile, to_position=new_position, to_set_id=new_set_id,
        came_from_hand=False, from_position=current.position, from_set_id=current.set_id,
        timestamp=_now(now),
    ))
    logger.info(
        f"[move] table={session.id} player={player.id} tile={current.tile.label()} "
        f"({current.position.x},{current.position.y}) -> ({new_position.x},{new_position.y})"
    )
    return moved


def draw_tile(session: GameSession, player_id: str, now: Optional[float] = None) -> Tile:
    """Draw from the front of the pool; always ends the turn."""
    player = _require_turn(session, player_id)
    _draw_allowed(session)

    tile = session.pool.pop(0)
    session.hands[player.id].append(tile)
    _advance_turn(session, _now(now))
    logger.info(f"[draw] table={session.id} player={player.id} pool={len(session.pool)} next={session.current_player.id}")
    return tile


def end_turn(session: GameSession, player_id: str, now: Optional[float] = None) -> None:
    player = _require_turn(session, player_id)
    latch = _check_turn_can_end(session, player, session.board)
    if latch:
        player.has_played_initial = True
        logger.info(f"[initial-meld] table={session.id} player={player.id}")
    if not session.hands[player.id]:
        _finish(session, player)
        return
    _advance_turn(session, _now(now))
    logger.info(f"[end-turn] table={session.id} player={player.id} next={session.current_player.id}")


def undo_turn(session: GameSession, player_id: str) -> List[Tile]:
    """Put the board back to how the turn started; tiles placed this turn go back to hand."""
    player = _require_turn(session, player_id)
    restored = [bt.tile for tid, bt in session.board.items() if tid not in session.turn_start_board]
    session.hands[player.id].extend(restored)
    session.board = dict(session.turn_start_board)
    session.action_history = []
    logger.info(f"[undo] table={session.id} player={player.id} restored={len(restored)}")
    return restored


def undo_last_action(session: GameSession, player_id: str) -> TurnAction:
    player = _require_turn(session, player_id)
    if not session.action_history:
        raise errors.NoActionsToUndo()
    action = session.action_history.pop()
    if action.kind == PLACE and action.came_from_hand:
        del session.board[action.tile.id]
        session.hands[player.id].append(action.tile)
    elif action.kind == MOVE:
        session.board[action.tile.id] = BoardTile(action.tile, action.from_position, action.from_set_id)
    logger.info(f"[undo-last] table={session.id} player={player.id} kind={action.kind} tile={action.tile.label()}")
    return action


# ---- Read side ----

def hand_for(session: GameSession, player_id: str) -> List[Tile]:
    player = _player(session, player_id)
    return sort_hand(session.hands[player.id])


def _can(check, *args) -> bool:
    try:
        check(*args)
    except errors.GameError:
        return False
    return True


def _draw_allowed(session: GameSession) -> None:
    if session.phase != PLAYING:
        raise errors.InvalidPhase()
    if session.action_history:
        raise errors.AlreadyActed()
    if not session.pool:
        raise errors.PoolEmpty()
    if not board_is_valid(session.board.values()):
        raise errors.InvalidBoard()


def _end_turn_allowed(session: GameSession) -> None:
    if session.phase != PLAYING:
        raise errors.InvalidPhase()
    _check_turn_can_end(session, session.current_player, session.board)


def public_state(session: GameSession) -> Dict[str, Any]:
    """Snapshot safe to show every player: no pool contents, no hands."""
    playing = session.phase == PLAYING
    state = {
        'tableId': session.id,
        'phase': session.phase,
        'players': [p.to_dict(tiles_count=len(session.hands.get(p.id, []))) for p in session.players],
        'currentPlayerIndex': session.current_player_index,
        'currentPlayerId': session.current_player.id if session.players else None,
        'board': [bt.to_dict() for bt in session.board.values()],
        'poolSize': len(session.pool),
        'winnerId': session.winner_id,
        'turnNumber': session.turn_number,
        'turnEndTime': int(session.turn_deadline * 1000) if session.turn_deadline else None,
        'turnDuration': session.turn_duration,
        'canDraw': playing and _can(_draw_allowed, session),
        'canUndo': playing and bool(session.action_history),
        'canEndTurn': playing and _can(_end_turn_allowed, session),
    }
    if session.phase == ENDED:
        state['handValues'] = {pid: hand_value(h) for pid, h in session.hands.items()}
    return state
