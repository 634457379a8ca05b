"""
Request timing middleware.

Every API response carries X-Request-ID and X-Request-Duration-Ms; the
request is logged with its method, path, status, duration and the
caller's identity header. Requests slower than SLOW_REQUEST_MS log a
warning, 5xx responses an error, everything else at debug level.
"""

import logging
import time
import uuid

from flask import Flask, current_app, g, request

logger = logging.getLogger(__name__)

_QUIET_PATHS = frozenset({"/api/v1/health"})


def _log_level(status_code: int, duration_ms: float, threshold_ms: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if duration_ms > threshold_ms:
        return logging.WARNING
    return logging.DEBUG


def init_request_timing(app: Flask):
    """Register before/after hooks for request timing."""

    @app.before_request
    def _start_timer():
        g.request_start = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

    @app.after_request
    def _log_request(response):
        start = getattr(g, "request_start", None)
        if start is None:
            return response

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"
        response.headers["X-Request-ID"] = g.request_id
        if request.path in _QUIET_PATHS:
            return response

        level = _log_level(response.status_code, duration_ms, current_app.config.get("SLOW_REQUEST_MS", 1000))
        logger.log(
            level,
            "%s %s %d (%.0fms)",
            request.method, request.path, response.status_code, duration_ms,
            extra={
                "method": request.method,
                "path": request.path,
                "status": response.status_code,
                "duration_ms": round(duration_ms, 1),
                "remote_addr": request.remote_addr,
                "request_id": g.request_id,
                "actor_id": request.headers.get(current_app.config.get("IDENTITY_HEADER", "X-User-Id")),
            },
        )
        return response
