from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from config import Config
from rummikub.broadcast import SocketIOBroadcast
from rummikub.services.games.registry import SessionRegistry

socketio = SocketIO(async_mode=None)
sessions = SessionRegistry()

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('CORS_ORIGINS', [])
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Tables live in memory only; a new app starts with none
    sessions.init_app(flask_app, broadcaster=SocketIOBroadcast(socketio, namespace='/ws'))

    # Import and register blueprints here
    from rummikub.main import main
    flask_app.register_blueprint(main)

    from rummikub.api.games import games
    # Mount game routes under /api to match frontend API client
    flask_app.register_blueprint(games, url_prefix='/api/games')

    # Register Socket.IO event handlers
    from rummikub.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('check-meld')
    @click.argument('tiles', nargs=-1, required=True)
    def check_meld_command(tiles):
        """Classifies tiles given left to right, e.g. red-3 joker red-5."""
        from rummikub.services.games.melds import classify_meld
        from rummikub.services.games.tiles import parse_tile
        try:
            parsed = [parse_tile(label, tile_id=f"cli-{i}") for i, label in enumerate(tiles)]
        except ValueError as exc:
            raise click.BadParameter(str(exc))
        result = classify_meld(parsed)
        if result.is_valid:
            click.echo(f"valid {result.kind}, value {result.value}")
        else:
            click.echo(f"invalid: {result.reason}")

    flask_app.cli.add_command(check_meld_command)

    return flask_app
