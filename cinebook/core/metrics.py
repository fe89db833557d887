"""
Prometheus metrics for the booking engine
"""

import time
import logging
from contextlib import asynccontextmanager
from prometheus_client import Counter, Histogram, Gauge, REGISTRY

from cinebook.core.exceptions import CinebookException

logger = logging.getLogger(__name__)


def _get_or_create(metric_cls, name, documentation, labelnames=()):
    # Module reloads in tests would otherwise raise duplicate registration
    try:
        return metric_cls(name, documentation, labelnames)
    except ValueError:
        return REGISTRY._names_to_collectors[name]


BOOKING_OPERATIONS = _get_or_create(
    Counter,
    "cinebook_booking_operations_total",
    "Booking engine operations by outcome",
    ["operation", "outcome"]
)
BOOKING_OPERATION_DURATION = _get_or_create(
    Histogram,
    "cinebook_booking_operation_duration_seconds",
    "Booking engine operation duration",
    ["operation"]
)
OPERATIONS_IN_FLIGHT = _get_or_create(
    Gauge,
    "cinebook_booking_operations_in_flight",
    "Booking engine operations currently running",
    ["operation"]
)
NOTIFICATION_FAILURES = _get_or_create(
    Counter,
    "cinebook_notification_failures_total",
    "Best-effort notifications that failed",
    ["kind"]
)
HTTP_REQUESTS = _get_or_create(
    Counter,
    "cinebook_requests_total",
    "HTTP requests by route and status",
    ["method", "endpoint", "status"]
)
HTTP_REQUEST_DURATION = _get_or_create(
    Histogram,
    "cinebook_request_duration_seconds",
    "HTTP request duration",
    ["method", "endpoint"]
)


class MetricsCollector:
    """Records duration and outcome of booking engine operations"""

    def __init__(self, slow_threshold: float = 5.0):
        self.slow_threshold = slow_threshold
        self.logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def track_booking_operation(self, operation_type: str = "purchase"):
        """Context manager to track booking operation metrics"""
        start_time = time.time()
        OPERATIONS_IN_FLIGHT.labels(operation=operation_type).inc()
        try:
            yield
        except CinebookException as e:
            BOOKING_OPERATIONS.labels(operation=operation_type, outcome=e.code).inc()
            raise
        except Exception:
            BOOKING_OPERATIONS.labels(operation=operation_type, outcome="INTERNAL_ERROR").inc()
            raise
        else:
            BOOKING_OPERATIONS.labels(operation=operation_type, outcome="success").inc()
        finally:
            duration = time.time() - start_time
            OPERATIONS_IN_FLIGHT.labels(operation=operation_type).dec()
            BOOKING_OPERATION_DURATION.labels(operation=operation_type).observe(duration)
            if duration > self.slow_threshold:
                self.logger.warning(f"Slow {operation_type} operation: {duration:.2f}s")

    def record_notification_failure(self, kind: str):
        NOTIFICATION_FAILURES.labels(kind=kind).inc()

    def record_request(self, method: str, endpoint: str, status: int, duration: float):
        HTTP_REQUESTS.labels(method=method, endpoint=endpoint, status=status).inc()
        HTTP_REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(duration)


metrics_collector = MetricsCollector()
