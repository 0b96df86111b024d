from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from config import Config
from pong.game import GameServer

socketio = SocketIO()
game_server = GameServer()


def create_app(config_class=Config, scheduler=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    origins = flask_app.config.get('CORS_ORIGINS') or '*'
    if origins == ['*']:
        origins = '*'
    CORS(flask_app, origins=origins)

    socketio.init_app(
        flask_app,
        cors_allowed_origins=origins,
        async_mode=flask_app.config.get('SOCKETIO_ASYNC_MODE', 'threading'),
    )

    # Timers run as Socket.IO background tasks unless a scheduler is injected
    if scheduler is None:
        from pong.services.scheduler import BackgroundScheduler
        scheduler = BackgroundScheduler(socketio, flask_app.logger)
    game_server.init_app(flask_app, scheduler)

    from pong.main import main
    flask_app.register_blueprint(main)

    from pong.socketio_events import register_socketio_handlers
    register_socketio_handlers(namespace=flask_app.config.get('SOCKETIO_NAMESPACE', '/'))

    @click.command('ws-serve')
    @click.option('--host', default=None, help='Interface for the raw WebSocket listener.')
    @click.option('--port', default=None, type=int, help='Port for the raw WebSocket listener.')
    def ws_serve_command(host, port):
        """Runs only the raw WebSocket listener in the foreground."""
        from pong.websocket_server import serve_forever
        host = host or flask_app.config['WEBSOCKET_HOST']
        port = port or flask_app.config['WEBSOCKET_PORT']
        click.echo(f'Raw WebSocket listener on ws://{host}:{port}')
        serve_forever(game_server, host, port)

    flask_app.cli.add_command(ws_serve_command)

    return flask_app
