from pong import create_app, socketio, game_server

app = create_app()

if __name__ == '__main__':
    if app.config.get('WEBSOCKET_ENABLED'):
        # Raw WebSocket clients share the same rooms as Socket.IO clients
        from pong.websocket_server import start_in_thread
        start_in_thread(game_server, app.config['WEBSOCKET_HOST'], app.config['WEBSOCKET_PORT'])
    socketio.run(app, debug=True, use_reloader=False)
