"""
Prometheus-style metrics endpoint.
"""
import re
import threading
import time
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Tuple

from fastapi import APIRouter, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from corpchannel.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Metrics"])

# /api/messages/<id>/pin -> /api/messages/{id}/pin
MESSAGE_ID_PATH = re.compile(r"^(/api/messages/)(?!search$|upload$)[^/]+")
UPLOAD_PATH = re.compile(r"^(/uploads/).+")

# Keep only the most recent durations per route
MAX_DURATIONS = 1000


class RequestMetrics:
    """In-memory request counters and latency samples."""

    def __init__(self):
        self._lock = threading.Lock()
        self.requests_total: Dict[Tuple[str, str, int], int] = defaultdict(int)
        self.durations: Dict[Tuple[str, str], List[float]] = defaultdict(list)
        self.startup_time = None

    def record(self, method: str, path: str, status_code: int, duration: float) -> None:
        with self._lock:
            self.requests_total[(method, path, status_code)] += 1
            samples = self.durations[(method, path)]
            samples.append(duration)
            if len(samples) > MAX_DURATIONS:
                del samples[:-MAX_DURATIONS]

    def reset(self) -> None:
        with self._lock:
            self.requests_total.clear()
            self.durations.clear()


_metrics = RequestMetrics()


def get_request_metrics() -> RequestMetrics:
    return _metrics


def normalize_path(path: str) -> str:
    """Collapse per-message and per-file path segments to keep label cardinality bounded."""
    path = MESSAGE_ID_PATH.sub(r"\1{id}", path)
    return UPLOAD_PATH.sub(r"\1{filename}", path)


def set_startup_time() -> None:
    """Record application startup time."""
    _metrics.startup_time = time.time()


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect request metrics."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time

        _metrics.record(
            method=request.method,
            path=normalize_path(request.url.path),
            status_code=response.status_code,
            duration=duration,
        )

        return response


def generate_prometheus_metrics(app_version: str, message_count: Optional[int] = None) -> str:
    """Generate Prometheus-format metrics output."""
    lines = []

    lines.append("# HELP app_info Application information")
    lines.append("# TYPE app_info gauge")
    lines.append(f'app_info{{version="{app_version}"}} 1')
    lines.append("")

    if _metrics.startup_time:
        lines.append("# HELP app_start_time_seconds Unix timestamp when the app started")
        lines.append("# TYPE app_start_time_seconds gauge")
        lines.append(f"app_start_time_seconds {_metrics.startup_time:.3f}")
        lines.append("")

    if message_count is not None:
        lines.append("# HELP channel_messages_total Messages currently stored in the channel")
        lines.append("# TYPE channel_messages_total gauge")
        lines.append(f"channel_messages_total {message_count}")
        lines.append("")

    lines.append("# HELP http_requests_total Total number of HTTP requests")
    lines.append("# TYPE http_requests_total counter")
    for (method, path, status), count in sorted(_metrics.requests_total.items()):
        lines.append(f'http_requests_total{{method="{method}",path="{path}",status="{status}"}} {count}')
    lines.append("")

    lines.append("# HELP http_request_duration_seconds HTTP request duration in seconds")
    lines.append("# TYPE http_request_duration_seconds summary")
    for (method, path), durations in sorted(_metrics.durations.items()):
        if durations:
            lines.append(f'http_request_duration_seconds_sum{{method="{method}",path="{path}"}} {sum(durations):.6f}')
            lines.append(f'http_request_duration_seconds_count{{method="{method}",path="{path}"}} {len(durations)}')

    return "\n".join(lines) + "\n"


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Returns metrics in Prometheus exposition format.",
    response_class=Response,
)
async def metrics(request: Request) -> Response:
    message_count = None
    try:
        message_count = request.app.state.store.count_messages()
    except Exception as e:
        logger.warning(f"Could not sample message count: {e}")

    content = generate_prometheus_metrics(request.app.state.settings.app_version, message_count)
    return Response(
        content=content,
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
