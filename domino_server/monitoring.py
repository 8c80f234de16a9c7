import time
import logging
from functools import wraps
from flask import request, g
from datetime import datetime, timedelta
import threading

logger = logging.getLogger(__name__)


class ApplicationMonitor:
    """Application monitoring and metrics collection"""

    def __init__(self):
        self.lock = threading.Lock()
        self.reset()

    def reset(self):
        with self.lock:
            self.request_count = 0
            self.error_count = 0
            self.response_times = []
            self.start_time = datetime.utcnow()

            # Request tracking by endpoint
            self.endpoint_stats = {}

            # Game intent tracking by event name and rejection code
            self.intent_count = 0
            self.rejected_intents = 0
            self.intent_stats = {}
            self.rejections_by_code = {}

            # Health check tracking
            self.last_health_check = None
            self.health_check_count = 0

    def record_request(self, endpoint, method, status_code, response_time):
        """Record request metrics"""
        with self.lock:
            self.request_count += 1

            if status_code >= 400:
                self.error_count += 1

            self.response_times.append(response_time)
            # Keep only last 1000 response times to prevent memory growth
            if len(self.response_times) > 1000:
                self.response_times = self.response_times[-1000:]

            key = f"{method} {endpoint}"
            if key not in self.endpoint_stats:
                self.endpoint_stats[key] = {
                    'count': 0,
                    'errors': 0,
                    'total_time': 0,
                    'avg_time': 0
                }

            stats = self.endpoint_stats[key]
            stats['count'] += 1
            stats['total_time'] += response_time
            stats['avg_time'] = stats['total_time'] / stats['count']

            if status_code >= 400:
                stats['errors'] += 1

    def record_intent(self, intent, error_code=None):
        """Record a client game intent and whether it was rejected"""
        with self.lock:
            self.intent_count += 1
            stats = self.intent_stats.setdefault(intent, {'count': 0, 'rejected': 0})
            stats['count'] += 1

            if error_code:
                self.rejected_intents += 1
                stats['rejected'] += 1
                self.rejections_by_code[error_code] = self.rejections_by_code.get(error_code, 0) + 1

    def record_health_check(self):
        """Record health check"""
        with self.lock:
            self.last_health_check = datetime.utcnow()
            self.health_check_count += 1

    def get_metrics(self):
        """Get current application metrics"""
        with self.lock:
            uptime = datetime.utcnow() - self.start_time

            avg_response_time = 0
            p95_response_time = 0
            if self.response_times:
                avg_response_time = sum(self.response_times) / len(self.response_times)
                sorted_times = sorted(self.response_times)
                p95_index = int(len(sorted_times) * 0.95)
                p95_response_time = sorted_times[p95_index] if p95_index < len(sorted_times) else 0

            error_rate = (self.error_count / self.request_count * 100) if self.request_count > 0 else 0

            return {
                'uptime_seconds': uptime.total_seconds(),
                'uptime_formatted': str(uptime),
                'total_requests': self.request_count,
                'total_errors': self.error_count,
                'error_rate_percent': round(error_rate, 2),
                'avg_response_time_ms': round(avg_response_time * 1000, 2),
                'p95_response_time_ms': round(p95_response_time * 1000, 2),
                'health_check_count': self.health_check_count,
                'last_health_check': self.last_health_check.isoformat() if self.last_health_check else None,
                'endpoint_stats': dict(self.endpoint_stats),
                'intents': {
                    'total': self.intent_count,
                    'rejected': self.rejected_intents,
                    'by_event': dict(self.intent_stats),
                    'rejections_by_code': dict(self.rejections_by_code),
                },
                'timestamp': datetime.utcnow().isoformat()
            }

    def is_healthy(self):
        """Determine if application is healthy based on metrics"""
        with self.lock:
            # Only check error rate after some requests
            if self.request_count > 10:
                error_rate = (self.error_count / self.request_count * 100)
                if error_rate > 50:
                    return False, f"High error rate: {error_rate:.1f}%"

            if self.last_health_check:
                time_since_check = datetime.utcnow() - self.last_health_check
                if time_since_check > timedelta(minutes=5):
                    return False, "No recent health checks"

            return True, "All systems operational"


# Global monitor instance
monitor = ApplicationMonitor()


def setup_monitoring(app):
    """Set up monitoring hooks for Flask app"""

    @app.before_request
    def before_request():
        g.monitor_start_time = time.time()

    @app.after_request
    def after_request(response):
        if hasattr(g, 'monitor_start_time'):
            response_time = time.time() - g.monitor_start_time
            monitor.record_request(
                endpoint=request.endpoint or 'unknown',
                method=request.method,
                status_code=response.status_code,
                response_time=response_time
            )
        return response


def monitor_endpoint(f):
    """Decorator to log failures and slow calls of specific endpoints"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        start_time = time.time()
        try:
            return f(*args, **kwargs)
        except Exception as e:
            logger.error(f"Error in {f.__name__}: {str(e)}")
            raise
        finally:
            response_time = time.time() - start_time
            if response_time > 1.0:
                logger.warning(f"{f.__name__} took {response_time:.2f}s")
    return decorated_function
