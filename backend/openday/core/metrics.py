"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Reservation metrics
reservation_attempts = Counter(
    'reservation_attempts_total',
    'Total reservation attempts',
    ['status']  # success, no_spots_available, slot_not_found, transaction_aborted, ...
)

cancellations = Counter(
    'reservation_cancellations_total',
    'Cancellation requests',
    ['removed']  # true, false
)

admission_latency = Histogram(
    'admission_transaction_latency_seconds',
    'Admission transaction latency including lock wait',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0]
)

# Contention metrics
transaction_retries = Counter(
    'admission_transaction_retries_total',
    'Admission transactions retried after an abort'
)

lock_timeouts = Counter(
    'admission_lock_timeouts_total',
    'Per-key lock acquisitions that timed out'
)

# Cache metrics
cache_operations = Counter(
    'capacity_cache_operations_total',
    'Capacity cache operations',
    ['operation', 'result']  # get/set/invalidate, hit/miss/ok/error
)

# Consistency metrics
counter_floor_hits = Counter(
    'participant_counter_floor_hits_total',
    'Decrements clamped at zero (counter was already drifting)'
)

consistency_alarms = Counter(
    'consistency_alarms_total',
    'Activities found with participant counter above capacity'
)

counter_corrections = Counter(
    'participant_counter_corrections_total',
    'Counters rewritten by reconciliation'
)

# Identifier metrics
slot_prefix_mismatches = Counter(
    'slot_prefix_mismatches_total',
    'Time-slot ids whose prefix names a different activity than the one booked'
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )

# Convenience functions for instrumentation
def record_reservation_attempt(status: str):
    """Record reservation outcome by result status."""
    reservation_attempts.labels(status=status).inc()

def record_cancellation(removed: bool):
    cancellations.labels(removed=str(removed).lower()).inc()

def record_cache_operation(operation: str, hit: bool):
    """Record cache read."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()

def record_cache_error(operation: str):
    cache_operations.labels(operation=operation, result="error").inc()
