"""Prometheus metrics for the progress service.

All metrics are declared here so there is one inventory of what the
service measures.  Modules import the metric they own and increment or
observe it at the point of action.

METRIC TYPES USED HERE
-----------------------
  Counter:   only goes up.  Dashboards read it through rate():
              rate(quiz_submissions_total{passed="false"}[1h])
  Gauge:     goes up and down; a snapshot of current state.
  Histogram: observations sorted into buckets, so Prometheus can
              answer percentile questions:
              histogram_quantile(0.95,
                rate(progress_recalculation_batch_seconds_bucket[1d]))
              "how long does a content edit keep the trainer waiting?"

Prometheus pulls: it scrapes GET /metrics on an interval, and the
response is a text dump of every value below.
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
    # Learner pings are single-row reads and writes; content edits that
    # trigger a recalculation batch land in the upper buckets
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Progress engine metrics
# ---------------------------------------------------------------------------
# These are incremented in the specific modules that own the behavior.
# Defining them here keeps the metric inventory in one place.

RECALCULATIONS = Counter(
    "progress_recalculations_total",
    "Per-learner recalculations run by the orchestrator",
    ["result"],  # "ok" or "failed"; failed learners are picked up on a re-run
)

RECALCULATION_BATCH_SECONDS = Histogram(
    "progress_recalculation_batch_seconds",
    "Wall time of one content-change recalculation batch",
    # Batches run inside the trainer's request; seconds, not milliseconds
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

LEARNERS_DEMOTED = Counter(
    "progress_learners_demoted_total",
    "Learners whose completed training became incomplete after a content change",
)

QUIZ_SUBMISSIONS = Counter(
    "quiz_submissions_total",
    "Quiz submissions by outcome",
    ["passed"],  # "true" or "false"
)

XP_AWARDED = Counter(
    "xp_awarded_total",
    "XP credited to learners on training completion",
)
