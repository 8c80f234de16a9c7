from flask import Flask, jsonify, request
import os
import logging
from datetime import datetime
from flask_socketio import SocketIO

from domino_server import __version__
from domino_server.config import config
from domino_server.monitoring import setup_monitoring, monitor, monitor_endpoint
from domino_server.middleware import RequestLoggingMiddleware, ErrorHandlingMiddleware
from domino_server.database import init_database, db_manager, RoundRecorder, recent_rounds, ai_performance
from domino_server.game_service import GameService
from domino_server.game_types import Difficulty
from domino_server.scheduling import ImmediateScheduler, SocketIOScheduler
from domino_server.sockets import register_socket_handlers


def build_game_service(app, socketio):
    """Wire a GameService to the app's Socket.IO server and database"""

    def broadcast(room_code, event, payload):
        socketio.emit(event, payload, to=room_code)

    if app.config['AI_TURN_SCHEDULER'] == 'immediate':
        scheduler = ImmediateScheduler()
    else:
        scheduler = SocketIOScheduler(socketio)

    return GameService(
        scheduler=scheduler,
        broadcaster=broadcast,
        ai_delay=(app.config['AI_MOVE_DELAY_MIN'], app.config['AI_MOVE_DELAY_MAX']),
        round_recorder=RoundRecorder(db_manager) if db_manager.engine else None,
        default_difficulty=Difficulty(app.config['DEFAULT_AI_DIFFICULTY']),
        max_rooms=app.config['MAX_ROOMS_IN_MEMORY'],
    )


def create_app(config_name=None):
    """Application factory pattern"""
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'default')

    config_class = config[config_name]
    if hasattr(config_class, 'validate'):
        config_class.validate()

    app = Flask(__name__)
    app.config.from_object(config_class)

    # Set up logging
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    # Set up monitoring middleware
    setup_monitoring(app)

    # Set up request logging and error handling
    RequestLoggingMiddleware(app)
    ErrorHandlingMiddleware(app)

    # Initialize database
    init_database(app)

    socketio = SocketIO(
        app,
        async_mode=app.config['SOCKETIO_ASYNC_MODE'],
        cors_allowed_origins=app.config['CORS_ALLOWED_ORIGINS'],
    )
    app.socketio = socketio

    # Rooms live in memory inside the game service
    app.game_service = build_game_service(app, socketio)
    register_socket_handlers(socketio, app.game_service)

    def room_usage():
        limit = app.config['MAX_ROOMS_IN_MEMORY']
        active = len(app.game_service.rooms)
        return active, limit, (active / limit * 100) if limit else 0

    # Health check endpoint for ALB
    @app.route('/health')
    @monitor_endpoint
    def health_check():
        """Health check endpoint for AWS Application Load Balancer"""
        try:
            monitor.record_health_check()

            is_healthy, health_message = monitor.is_healthy()

            db_healthy = True
            db_message = "Database not configured"
            if db_manager.engine:
                db_healthy, db_message = db_manager.health_check()

            overall_healthy = is_healthy and db_healthy
            active, limit, usage = room_usage()

            health_status = {
                'status': 'healthy' if overall_healthy else 'degraded',
                'message': health_message,
                'database': {
                    'status': 'healthy' if db_healthy else 'unhealthy',
                    'message': db_message
                },
                'timestamp': datetime.utcnow().isoformat(),
                'active_rooms': active,
                'config': config_name,
                'version': __version__
            }

            if active > limit * 0.9:
                health_status['warning'] = 'Approaching maximum rooms limit'
                health_status['rooms_limit_usage'] = usage

            health_status['checks'] = {
                'memory_usage': f"{usage:.1f}%",
                'rooms_active': active,
                'rooms_limit': limit
            }

            status_code = 200 if overall_healthy else 503
            return jsonify(health_status), status_code

        except Exception as e:
            app.logger.error(f"Health check failed: {str(e)}")
            return jsonify({
                'status': 'unhealthy',
                'error': str(e),
                'timestamp': datetime.utcnow().isoformat()
            }), 503

    @app.route('/metrics')
    @monitor_endpoint
    def metrics():
        """Application and game metrics"""
        service = app.game_service
        active, limit, usage = room_usage()
        return jsonify({
            'application': monitor.get_metrics(),
            'game': {
                'active_rooms': active,
                'rooms_limit': limit,
                'memory_usage_percent': usage,
                'rounds_finished': service.rounds_finished,
                'ai_moves': service.ai_moves,
                'ai_players': len(service.ai_players)
            },
            'system': {
                'config_name': config_name,
                'debug_mode': app.config['DEBUG'],
                'ai_turn_scheduler': app.config['AI_TURN_SCHEDULER'],
                'database_enabled': db_manager.engine is not None
            },
            'timestamp': datetime.utcnow().isoformat()
        }), 200

    @app.route('/api/rooms')
    def list_rooms():
        rooms = app.game_service.list_rooms()
        return jsonify({'rooms': rooms, 'count': len(rooms)})

    @app.route('/api/rooms/<code>')
    def get_room(code):
        return jsonify(app.game_service.snapshot(code))

    @app.route('/api/rooms/<code>/ai')
    def get_room_ai(code):
        room = app.game_service.get_room(code)
        return jsonify({'room_code': room.code, 'ai_players': app.game_service.ai_stats(code)})

    @app.route('/api/history')
    @monitor_endpoint
    def round_history():
        """Recorded rounds, optionally filtered by room"""
        room_code = request.args.get('room')
        limit = min(request.args.get('limit', 20, type=int), 100)
        try:
            rounds = recent_rounds(room_code.upper() if room_code else None, limit)
        except Exception as e:
            app.logger.warning(f"Failed to load round history: {e}")
            return jsonify({'error': 'Failed to load round history', 'message': str(e)}), 500
        return jsonify({'rounds': rounds, 'database_enabled': db_manager.engine is not None})

    @app.route('/api/ai-performance')
    @monitor_endpoint
    def stored_ai_performance():
        """Stored win/loss statistics per AI personality"""
        try:
            rows = ai_performance()
        except Exception as e:
            app.logger.warning(f"Failed to load AI performance: {e}")
            return jsonify({'error': 'Failed to load AI performance', 'message': str(e)}), 500
        return jsonify({'ai_performance': rows, 'database_enabled': db_manager.engine is not None})

    return app
