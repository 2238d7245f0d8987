from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from config import Config

socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('CORS_ALLOWED_ORIGINS') or '*'
    if allowed_origins == ['*']:
        allowed_origins = '*'
    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Each app owns its registry; nothing is shared between app instances
    from tictactoe.models import SESSION_ID_ALPHABET, generate_session_id
    from tictactoe.services.games.coordinator import SessionCoordinator
    from tictactoe.services.games.registry import SessionRegistry
    from tictactoe.socketio_events import SocketIOTransport, register_socketio_handlers

    namespace = flask_app.config.get('SOCKETIO_NAMESPACE', '/ws')
    id_length = int(flask_app.config.get('SESSION_ID_LENGTH', 6))
    registry = SessionRegistry(id_factory=lambda: generate_session_id(id_length, SESSION_ID_ALPHABET))
    coordinator = SessionCoordinator(
        registry,
        SocketIOTransport(namespace),
        create_on_unknown=bool(flask_app.config.get('CREATE_ON_UNKNOWN_SESSION', False)),
    )
    flask_app.extensions['tictactoe'] = {'registry': registry, 'coordinator': coordinator}

    # Import and register blueprints here
    from tictactoe.main import main
    flask_app.register_blueprint(main)

    from tictactoe.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    register_socketio_handlers(namespace)
    flask_app.logger.info(f"[startup] socketio namespace={namespace} session_id_length={id_length}")

    return flask_app
