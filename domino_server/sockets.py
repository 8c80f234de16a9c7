"""
Socket.IO event handlers. Each handler turns one client event into a
``GameService`` call; rejected intents are answered with an ``error`` event
to the sender only.
"""

import logging
from functools import wraps

from flask import request
from flask_socketio import emit, join_room

from domino_server.errors import GameError, InvalidRequest
from domino_server.monitoring import monitor

logger = logging.getLogger('dominoes.sockets')


def _payload(data):
    if data is None:
        return {}
    if isinstance(data, str):
        # start_game and pass may send the bare room code
        return {'room_code': data}
    if not isinstance(data, dict):
        raise InvalidRequest('Event payload must be an object')
    return data


def game_intent(f):
    """Run an intent handler, reporting GameErrors back to the sender"""
    @wraps(f)
    def decorated_function(data=None):
        intent = f.__name__
        try:
            result = f(_payload(data))
            monitor.record_intent(intent)
            return result
        except GameError as e:
            monitor.record_intent(intent, error_code=e.code)
            logger.info(f"Rejected {intent} from {request.sid}: {e.code}")
            emit('error', e.to_dict(), to=request.sid)
    return decorated_function


def register_socket_handlers(socketio, service):
    """Bind the game's client events on ``socketio`` to ``service``"""

    @socketio.on('connect')
    def handle_connect():
        logger.info(f"Client connected: {request.sid}")

    @socketio.on('disconnect')
    def handle_disconnect(*args):
        logger.info(f"Client disconnected: {request.sid}")
        service.disconnect(request.sid)

    @socketio.on('join_game')
    @game_intent
    def join_game(data):
        snapshot = service.join(data.get('room_code'), request.sid, data.get('player_name'),
                                data.get('team'))
        join_room(snapshot['room_code'])
        emit('game_state', snapshot, to=request.sid)

    @socketio.on('create_ai_game')
    @game_intent
    def create_ai_game(data):
        snapshot = service.create_ai_game(
            data.get('room_code'), request.sid, data.get('player_name'), data.get('team'),
            mode=data.get('game_mode') or 'vs-ai',
            difficulty=data.get('ai_difficulty'),
        )
        join_room(snapshot['room_code'])
        emit('game_state', snapshot, to=request.sid)

    @socketio.on('rejoin_game')
    @game_intent
    def rejoin_game(data):
        snapshot = service.reconnect(data.get('room_code'), data.get('player_id'), request.sid)
        join_room(snapshot['room_code'])
        emit('game_state', snapshot, to=request.sid)

    @socketio.on('start_game')
    @game_intent
    def start_game(data):
        service.start(data.get('room_code'))

    @socketio.on('play_domino')
    @game_intent
    def play_domino(data):
        service.play_tile(data.get('room_code'), request.sid, data.get('tile_id'), data.get('side'))

    @socketio.on('pass')
    @game_intent
    def pass_turn(data):
        service.pass_turn(data.get('room_code'), request.sid)

    @socketio.on('add_ai_player')
    @game_intent
    def add_ai_player(data):
        service.add_ai_seat(data.get('room_code'), team=data.get('team'),
                            difficulty=data.get('difficulty'))

    @socketio.on('auto_fill_ai')
    @game_intent
    def auto_fill_ai(data):
        service.auto_fill_with_ai(data.get('room_code'), difficulty=data.get('difficulty'))
