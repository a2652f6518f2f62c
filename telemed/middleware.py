"""
Request logging middleware
"""
import logging
import time

from flask import g, request

logger = logging.getLogger(__name__)

SLOW_REQUEST_SECONDS = 1.0


def setup_middleware(app):
    """Log every request with its status and duration"""

    @app.before_request
    def start_timer():
        g.request_started = time.monotonic()

    @app.after_request
    def log_request(response):
        started = g.pop('request_started', None)
        elapsed = time.monotonic() - started if started is not None else 0.0
        level = logging.WARNING if elapsed >= SLOW_REQUEST_SECONDS else logging.INFO
        if not app.debug or level == logging.WARNING:
            logger.log(
                level,
                f"{request.method} {request.path} {response.status_code} "
                f"{elapsed * 1000:.0f}ms - {request.remote_addr}"
            )
        return response
