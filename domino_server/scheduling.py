"""
Schedulers for delayed AI turns.

The service hands a scheduler a delay and a callback; the callback re-enters
the service's turn processing once the delay has elapsed.
"""

import logging

logger = logging.getLogger(__name__)


class TurnScheduler:
    def schedule(self, delay: float, callback) -> None:
        raise NotImplementedError


class ImmediateScheduler(TurnScheduler):
    """Runs the callback right away on the calling thread. Used in tests and
    for AI-only simulations where pacing is irrelevant."""

    def schedule(self, delay, callback):
        callback()


class SocketIOScheduler(TurnScheduler):
    """Runs the callback in a Socket.IO background task after sleeping, so a
    pending AI move never blocks other rooms or connections."""

    def __init__(self, socketio):
        self.socketio = socketio

    def schedule(self, delay, callback):
        self.socketio.start_background_task(self._run, delay, callback)

    def _run(self, delay, callback):
        if delay > 0:
            self.socketio.sleep(delay)
        try:
            callback()
        except Exception as e:
            logger.error(f"Scheduled AI turn failed: {e}", exc_info=True)
