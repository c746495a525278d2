"""Prometheus metrics for engine observability.

Counters and histograms at each normalization and challenge stage.
Exposed via /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, make_asgi_app

# Normalization counters
normalized_records_total = Counter(
    "normalized_records_total",
    "Total records processed by the normalization pipeline",
    ["provider", "status"],  # status: normalized, rejected
)

validation_failures_total = Counter(
    "validation_failures_total",
    "Total validation failures by rule",
    ["provider", "rule"],
)

sleep_efficiency_clamped_total = Counter(
    "sleep_efficiency_clamped_total",
    "Sleep efficiency values clamped into [0, 100]",
    ["provider"],
)

# Challenge counters
challenge_evaluations_total = Counter(
    "challenge_evaluations_total",
    "Participant evaluations by outcome",
    ["outcome"],  # outcome: qualified, not_qualified, insufficient_data
)

challenge_transitions_total = Counter(
    "challenge_transitions_total",
    "Applied challenge lifecycle transitions",
    ["transition"],
)

# API counters
api_requests_total = Counter(
    "api_requests_total",
    "Total API requests",
    ["endpoint", "method", "status_code"],
)

# Histograms
pipeline_duration_seconds = Histogram(
    "pipeline_duration_seconds",
    "Duration of the full normalization pipeline",
    ["provider"],
)

api_response_duration_seconds = Histogram(
    "api_response_duration_seconds",
    "Duration of API responses",
    ["endpoint"],
)


def create_metrics_app():
    """Create ASGI app for /metrics endpoint."""
    return make_asgi_app()
