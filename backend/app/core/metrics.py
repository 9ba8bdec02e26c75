"""Prometheus metrics shared by the API and the worker"""

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNT = Counter(
    "contest_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "contest_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)
LOGIN_ATTEMPTS = Counter(
    "contest_login_attempts_total",
    "Sign-in attempts by outcome",
    ["session_type", "outcome"],
)
SESSIONS_ISSUED = Counter(
    "contest_sessions_issued_total",
    "Sessions issued",
    ["session_type"],
)
UNAUTHORIZED_REQUESTS = Counter(
    "contest_unauthorized_requests_total",
    "Rejected session validations by internal reason",
    ["reason"],
)
SCHEDULED_TASKS = Counter(
    "contest_scheduled_tasks_total",
    "Scheduled task executions by outcome",
    ["task_type", "status"],
)
PENDING_TASKS_GAUGE = Gauge("contest_pending_tasks", "Number of pending scheduled tasks")
WORKER_UP_GAUGE = Gauge("contest_worker_up", "Worker liveness (1 running, 0 stopped)")
