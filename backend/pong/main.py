from flask import Blueprint, jsonify

from pong import game_server

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Stadium Pong game server!'})


@main.route('/health')
def health():
    return jsonify({'ok': True})


@main.route('/api/stats')
def stats():
    return jsonify(game_server.stats())


@main.route('/api/rooms/<string:room_code>')
def room_state(room_code):
    room = game_server.store.get(room_code.strip().upper())
    if room is None:
        return jsonify({'error': 'Room not found'}), 404
    with room.lock:
        return jsonify(room.to_dict())
