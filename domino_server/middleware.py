import time
import uuid
import logging
from flask import request, g
from datetime import datetime
from werkzeug.exceptions import HTTPException

from domino_server.errors import GameError

# Engine.IO long-polling hits this prefix several times a second per client
SOCKETIO_PATH_PREFIX = '/socket.io'
SLOW_REQUEST_SECONDS = 1.0


def _stream_logger(name, level, app):
    logger = logging.getLogger(name)
    if not app.debug and not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        logger.addHandler(handler)
        logger.setLevel(level)
    return logger


class RequestLoggingMiddleware:
    """One log line per HTTP response, tagged with the room it touched"""

    def __init__(self, app=None):
        self.app = app
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        app.before_request(self.before_request)
        app.after_request(self.after_request)
        self.logger = _stream_logger('dominoes.requests', logging.INFO, app)

    def before_request(self):
        g.start_time = time.time()
        g.request_id = request.headers.get('X-Request-ID') or uuid.uuid4().hex[:12]

    def after_request(self, response):
        if not hasattr(g, 'start_time'):
            return response

        duration = time.time() - g.start_time
        response.headers['X-Request-ID'] = g.request_id

        room_code = (request.view_args or {}).get('code') or request.args.get('room')
        line = (f"{g.request_id} {request.method} {request.path} -> {response.status_code} "
                f"in {duration * 1000:.1f}ms")
        if room_code:
            line += f" room={room_code.upper()}"

        if request.path.startswith(SOCKETIO_PATH_PREFIX):
            self.logger.debug(line)
        else:
            self.logger.info(line)

        if duration > SLOW_REQUEST_SECONDS:
            self.logger.warning(f"Slow request {g.request_id}: {request.path} took {duration:.2f}s")
        return response


def _error_body(error, message, **extra):
    body = {'error': error, 'message': message, 'timestamp': datetime.utcnow().isoformat()}
    body.update(extra)
    return body


class ErrorHandlingMiddleware:
    """Turns rejected intents and unexpected failures into JSON responses"""

    def __init__(self, app=None):
        self.app = app
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.logger = _stream_logger('dominoes.errors', logging.ERROR, app)

        app.register_error_handler(GameError, self.handle_game_error)
        app.register_error_handler(404, self.handle_404)
        app.register_error_handler(500, self.handle_500)
        app.register_error_handler(Exception, self.handle_exception)

    def handle_game_error(self, error):
        """Rejected game intents carry their own status code"""
        return _error_body(error.code, error.message), error.status_code

    def handle_404(self, error):
        self.logger.warning(f"404 Not Found: {request.method} {request.path}")
        return _error_body('Not Found', 'The requested resource was not found', path=request.path), 404

    def handle_500(self, error):
        self.logger.error(f"500 Internal Server Error: {error}")
        return _error_body('Internal Server Error', 'An unexpected error occurred'), 500

    def handle_exception(self, error):
        # HTTP exceptions have their own handlers
        if isinstance(error, HTTPException):
            return error

        self.logger.error(f"Unhandled exception: {error}", exc_info=True)
        return _error_body('Internal Server Error', 'An unexpected error occurred'), 500
