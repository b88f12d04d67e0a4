"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

import functools
import time

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

from facility_booking.core.exceptions import BookingError

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking engine operations',
    ['operation', 'outcome']  # ok, not_found, already_booked, full, invalid_range, storage_error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking engine operation latency',
    ['operation'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

# Database metrics
db_retries = Counter(
    'db_retry_attempts_total',
    'Booking retries due to version conflicts',
    ['operation']
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(operation: str, outcome: str):
    booking_attempts.labels(operation=operation, outcome=outcome).inc()


def record_retry(operation: str):
    db_retries.labels(operation=operation).inc()


def record_cache_operation(operation: str, hit: bool):
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()


def measure_operation(operation: str):
    """
    Decorator for booking engine coroutines: records latency and the
    outcome tag of every call (``ok`` or the raised BookingError's tag).
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except BookingError as exc:
                record_booking_attempt(operation, exc.outcome)
                raise
            finally:
                booking_latency.labels(operation=operation).observe(time.perf_counter() - start)
            record_booking_attempt(operation, "ok")
            return result
        return wrapper
    return decorator
