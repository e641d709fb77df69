"""Observability module for logging, metrics, and error tracking."""

import logging
import json
import sys
from typing import Any, Dict
from datetime import datetime, timezone
from prometheus_client import Counter, Histogram
from fastapi import Request
import time

from .config import get_settings

# Prometheus metrics
http_requests_total = Counter(
    'http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'Duration of HTTP requests in seconds',
    ['method', 'endpoint']
)

complaints_created_total = Counter(
    'complaints_created_total',
    'Total number of complaints posted',
    ['category']
)

vote_transitions_total = Counter(
    'vote_transitions_total',
    'Vote state transitions applied',
    ['action']
)

vote_conflicts_total = Counter(
    'vote_conflicts_total',
    'Vote writes rejected by the (user, complaint) uniqueness constraint',
)


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging() -> None:
    """Configure structured JSON logging."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    for handler in logging.getLogger().handlers:
        handler.setFormatter(JSONFormatter())

    logger = logging.getLogger("quirii")
    logger.setLevel(logging.INFO)

    logger.info("Structured JSON logging configured")


def init_sentry() -> None:
    """Initialize Sentry error tracking."""
    settings = get_settings()
    if not settings.sentry_dsn:
        logging.info("Sentry DSN not configured, skipping initialization")
        return

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        integrations=[
            FastApiIntegration(),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,
    )
    logging.info("Sentry initialized successfully")


def setup_metrics_middleware(app):
    """Add Prometheus metrics middleware to FastAPI app."""
    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        duration = time.time() - start_time

        # Label by route template so complaint ids don't explode cardinality
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)
        method = request.method
        status = response.status_code

        http_requests_total.labels(method=method, endpoint=endpoint, status=status).inc()
        http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)

        return response


def get_health_check() -> Dict[str, Any]:
    """Get health check information."""
    from .categories import ALL_CATEGORIES

    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "storage_provider": get_settings().storage_provider,
        "categories": len(ALL_CATEGORIES),
    }
