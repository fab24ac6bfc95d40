"""Application metrics using the Prometheus client library.

One inventory of everything the service measures.  Other modules import
the metric they own and increment it at the point of action.

Counters only go up; Prometheus derives rates with rate().  Gauges go up
and down.  Histograms bucket observations so percentiles can be computed
server-side with histogram_quantile().

The domain counters below mirror the outbound events: a spike in
``academy_domain_errors_total{code="attempt_limit_exceeded"}`` or a
non-zero ``academy_certificate_code_collisions_total`` shows up on a
dashboard long before anyone reads a log line.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Learning ledger
# ---------------------------------------------------------------------------

LESSONS_COMPLETED = Counter(
    "academy_lessons_completed_total",
    "New lesson completions recorded (idempotent repeats excluded)",
)

QUIZ_ATTEMPTS = Counter(
    "academy_quiz_attempts_total",
    "Quiz attempts recorded by outcome",
    ["outcome"],  # "passed" or "failed"
)

ASSIGNMENT_SUBMISSIONS = Counter(
    "academy_assignment_submissions_total",
    "Assignment submissions by lifecycle step",
    ["step"],  # "submitted" or "graded"
)

ENROLLMENTS = Counter(
    "academy_enrollments_total",
    "Enrollment lifecycle transitions",
    ["status"],  # "active" (created) or "completed"
)

# ---------------------------------------------------------------------------
# Certificates
# ---------------------------------------------------------------------------

CERTIFICATE_DECISIONS = Counter(
    "academy_certificate_decisions_total",
    "Certificate workflow outcomes",
    ["decision"],  # "requested", "issued", "rejected"
)

CERTIFICATE_CODE_COLLISIONS = Counter(
    "academy_certificate_code_collisions_total",
    "Verification code collisions that forced a regeneration",
)

# ---------------------------------------------------------------------------
# Errors, cache, queues
# ---------------------------------------------------------------------------

DOMAIN_ERRORS = Counter(
    "academy_domain_errors_total",
    "Domain errors surfaced to callers",
    ["kind", "code"],
)

RATE_LIMIT_HITS = Counter(
    "rate_limit_hits_total",
    "Requests rejected by rate limiting (429s)",
    ["key_type"],  # "user" or "ip"
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache get operations by result",
    ["operation"],  # "hit" or "miss"
)

QUEUE_DEPTH = Gauge(
    "task_queue_depth",
    "Number of tasks waiting in a queue",
    ["queue_name"],  # "notifications", "analytics_refresh"
)
