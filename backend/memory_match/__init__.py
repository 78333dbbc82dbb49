from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Image catalog used by every game session; tests swap it out
    from memory_match.services.images import PokeApiImageSource
    flask_app.extensions['image_source'] = PokeApiImageSource.from_config(flask_app.config)

    from memory_match.main import main
    flask_app.register_blueprint(main)

    from memory_match.api.game import game
    flask_app.register_blueprint(game, url_prefix='/api/game')

    # Register Socket.IO event handlers
    from memory_match.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('scores-reset')
    def scores_reset_command():
        """Clears the best score and the last player name."""
        from memory_match.services.game.scoring import ScoreStore
        with flask_app.app_context():
            db.create_all()
            ScoreStore.from_config(flask_app.config).clear()
            print('Stored scores have been reset!')

    flask_app.cli.add_command(scores_reset_command)

    return flask_app
