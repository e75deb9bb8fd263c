from flask import Blueprint, jsonify, request, current_app
from rummikub import sessions
from rummikub.models import PLAYING, Position
from rummikub.services.games import engine
from rummikub.services.games.errors import BadRequest, GameError
from rummikub.services.games.scheduler import schedule_turn_timer as svc_schedule_turn_timer


games = Blueprint('games', __name__)


@games.errorhandler(GameError)
def handle_game_error(err: GameError):
    current_app.logger.info(f"[rejected] {request.path} code={err.code} message={err.message}")
    return jsonify(err.to_dict()), err.status


def _payload() -> dict:
    return request.get_json(silent=True) or {}


def _required(data: dict, key: str):
    value = data.get(key)
    if value is None or value == '':
        raise BadRequest(f'{key} is required')
    return value


def _position(value) -> Position:
    try:
        return Position(int(value['x']), int(value['y']))
    except (TypeError, KeyError, ValueError):
        raise BadRequest('position must be an object with integer x and y')


def _with_outcome(action):
    """Wrap an engine action so the caller also sees where the table ended up."""
    def run(session, *args):
        result = action(session, *args)
        return result, session.phase, session.winner_id, session.current_player_index
    return run


def _schedule_turn_timer(table_id: str) -> None:
    svc_schedule_turn_timer(current_app._get_current_object(), table_id)


@games.route('/init', methods=['POST'])
def init_table():
    data = _payload()
    table_id = data.get('tableId') or data.get('channelId')
    players = data.get('players')
    if not table_id or not isinstance(players, list):
        raise BadRequest('tableId and players are required')
    if not all(isinstance(p, dict) for p in players):
        raise BadRequest('players must be objects with an id')
    result = sessions.init_table(str(table_id), players, reset=bool(data.get('reset')))
    status = 200 if result.get('alreadyExists') else 201
    return jsonify(result), status


@games.route('/<string:table_id>/hand/<string:player_id>', methods=['GET'])
def get_hand(table_id, player_id):
    return jsonify({'hand': sessions.hand(table_id, player_id)})


@games.route('/<string:table_id>/state', methods=['GET'])
def get_state(table_id):
    return jsonify(sessions.state(table_id))


@games.route('/<string:table_id>/ready', methods=['POST'])
def toggle_ready(table_id):
    player_id = str(_required(_payload(), 'playerId'))
    is_ready = sessions.run(table_id, engine.toggle_ready, player_id)
    return jsonify({'success': True, 'isReady': is_ready})


@games.route('/<string:table_id>/start', methods=['POST'])
def start_game(table_id):
    sessions.run(table_id, engine.start_game)
    _schedule_turn_timer(table_id)
    return jsonify({'success': True})


@games.route('/<string:table_id>/place', methods=['POST'])
def place_tile(table_id):
    data = _payload()
    player_id = str(_required(data, 'playerId'))
    tile_id = data.get('tileId') or (data.get('tile') or {}).get('id')
    if not tile_id:
        raise BadRequest('tileId is required')
    position = _position(_required(data, 'position'))
    placed, phase, winner_id, _ = sessions.run(
        table_id, _with_outcome(engine.place_tile), player_id, tile_id, position, data.get('setId'))
    return jsonify({
        'success': True,
        'tile': placed.to_dict(),
        'phase': phase,
        'winnerId': winner_id,
    })


@games.route('/<string:table_id>/move', methods=['POST'])
def move_tile(table_id):
    data = _payload()
    player_id = str(_required(data, 'playerId'))
    tile_id = str(_required(data, 'tileId'))
    position = _position(_required(data, 'newPosition'))
    moved = sessions.run(table_id, engine.move_tile, player_id, tile_id, position, data.get('newSetId'))
    return jsonify({'success': True, 'tile': moved.to_dict()})


@games.route('/<string:table_id>/draw', methods=['POST'])
def draw_tile(table_id):
    player_id = str(_required(_payload(), 'playerId'))
    tile, _, _, next_index = sessions.run(table_id, _with_outcome(engine.draw_tile), player_id)
    _schedule_turn_timer(table_id)
    return jsonify({'success': True, 'tile': tile.to_dict(), 'nextPlayerIndex': next_index})


@games.route('/<string:table_id>/endturn', methods=['POST'])
def end_turn(table_id):
    player_id = str(_required(_payload(), 'playerId'))
    _, phase, winner_id, next_index = sessions.run(table_id, _with_outcome(engine.end_turn), player_id)
    if phase == PLAYING:
        _schedule_turn_timer(table_id)
    return jsonify({
        'success': True,
        'nextPlayerIndex': next_index,
        'phase': phase,
        'winnerId': winner_id,
    })


@games.route('/<string:table_id>/undo', methods=['POST'])
def undo_turn(table_id):
    player_id = str(_required(_payload(), 'playerId'))
    restored = sessions.run(table_id, engine.undo_turn, player_id)
    return jsonify({'success': True, 'restoredTiles': [t.to_dict() for t in restored]})


@games.route('/<string:table_id>/undolast', methods=['POST'])
def undo_last_action(table_id):
    player_id = str(_required(_payload(), 'playerId'))
    action = sessions.run(table_id, engine.undo_last_action, player_id)
    return jsonify({'success': True, 'undoneAction': action.to_dict()})


@games.route('/<string:table_id>/reset', methods=['POST'])
def reset_table(table_id):
    players = _payload().get('players')
    if players is not None and not (isinstance(players, list) and all(isinstance(p, dict) for p in players)):
        raise BadRequest('players must be a list of objects')
    sessions.reset(table_id, players)
    return jsonify({'success': True, 'tableId': table_id})
