import os


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    CORS_ORIGINS = [o.strip() for o in os.environ.get('CORS_ORIGINS', '*').split(',') if o.strip()]
    SOCKETIO_ASYNC_MODE = os.environ.get('SOCKETIO_ASYNC_MODE', 'threading')
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/')
    # Match structure (seconds)
    SET_DURATION_SEC = int(os.environ.get('SET_DURATION_SEC', '120'))
    REST_DURATION_SEC = int(os.environ.get('REST_DURATION_SEC', '30'))
    TICK_INTERVAL_SEC = float(os.environ.get('TICK_INTERVAL_SEC', '1'))
    # Ball release after both players are ready
    BALL_RELEASE_DELAY_SEC = float(os.environ.get('BALL_RELEASE_DELAY_SEC', '2'))
    BALL_RESEND_DELAY_SEC = float(os.environ.get('BALL_RESEND_DELAY_SEC', '0.5'))
    BALL_SPEED = int(os.environ.get('BALL_SPEED', '10'))
    COURT_CENTER_X = int(os.environ.get('COURT_CENTER_X', '400'))
    COURT_CENTER_Y = int(os.environ.get('COURT_CENTER_Y', '200'))
    PADDLE_START_Y = int(os.environ.get('PADDLE_START_Y', '150'))
    ROOM_CODE_LENGTH = int(os.environ.get('ROOM_CODE_LENGTH', '6'))
    MAX_NAME_LENGTH = int(os.environ.get('MAX_NAME_LENGTH', '20'))
    # Raw WebSocket listener started next to the Socket.IO server
    WEBSOCKET_ENABLED = _env_bool('WEBSOCKET_ENABLED', True)
    WEBSOCKET_HOST = os.environ.get('WEBSOCKET_HOST', '0.0.0.0')
    WEBSOCKET_PORT = int(os.environ.get('WEBSOCKET_PORT', '8765'))
    # Optional: heartbeat interval for match timer logs (sec). 0 disables.
    TIMER_HEARTBEAT_SEC = int(os.environ.get('TIMER_HEARTBEAT_SEC', '0'))
