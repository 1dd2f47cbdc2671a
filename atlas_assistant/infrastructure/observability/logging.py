import structlog
import logging
import sys
from typing import Dict, Any, Optional
from datetime import datetime, timezone
import os


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "atlas-assistant",
    stream=None
) -> None:
    """Setup structured logging configuration"""

    # Configure Python logging
    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO)
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_service_context,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
        version=os.getenv("SERVICE_VERSION", "unknown")
    )


def add_service_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add service context to all log entries"""

    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()

    session_id = structlog.contextvars.get_contextvars().get("session_id")
    if session_id and "session_id" not in event_dict:
        event_dict["session_id"] = session_id

    return event_dict


class ChatLogger:
    """Specialized logger for chat request events"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_query_event(
        self,
        event_type: str,
        session_id: Optional[str],
        query: str,
        data: Optional[Dict[str, Any]] = None
    ):
        """Log the lifecycle of one chat query"""

        self.logger.info(
            "query_event",
            event_type=event_type,
            session_id=session_id,
            query=query[:50],
            data=data or {}
        )

    def log_completion(
        self,
        session_id: Optional[str],
        finish_reason: str,
        content_length: int,
        duration_ms: Optional[float] = None,
        success: bool = True,
        error: Optional[str] = None
    ):
        """Log completion service calls"""

        self.logger.info(
            "completion_event",
            session_id=session_id,
            finish_reason=finish_reason,
            content_length=content_length,
            duration_ms=duration_ms,
            success=success,
            error=error
        )

    def log_continuation_update(
        self,
        session_id: str,
        action: str,
        details: Optional[Dict[str, Any]] = None
    ):
        """Log continuation store changes"""

        self.logger.info(
            "continuation_update",
            session_id=session_id,
            action=action,
            details=details or {}
        )


chat_logger = ChatLogger("atlas_assistant")


# Counters reported as a share of chat.requests
RATE_COUNTERS = {
    "truncation_rate": "chat.truncations",
    "continuation_rate": "chat.continuations",
    "error_rate": "chat.errors",
    "empty_completion_rate": "chat.empty_completions",
}


class LatencyStats:
    """Running count/sum/min/max for one operation"""

    def __init__(self):
        self.count = 0
        self.total_ms = 0.0
        self.min_ms: Optional[float] = None
        self.max_ms = 0.0

    def add(self, duration_ms: float) -> None:
        self.count += 1
        self.total_ms += duration_ms
        self.min_ms = duration_ms if self.min_ms is None else min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)

    def summary(self) -> Dict[str, float]:
        return {
            "count": self.count,
            "avg": self.total_ms / self.count if self.count else 0,
            "min": self.min_ms or 0,
            "max": self.max_ms
        }


class MetricsCollector:
    """In-process chat counters, gauges and latencies"""

    def __init__(self):
        self.counters: Dict[str, int] = {}
        self.gauges: Dict[str, float] = {}
        self.latencies: Dict[str, LatencyStats] = {}

    def record_latency(self, operation: str, duration_ms: float, tags: Optional[Dict[str, str]] = None):
        self.latencies.setdefault(f"latency.{operation}", LatencyStats()).add(duration_ms)
        chat_logger.logger.debug("metric", metric_type="latency", operation=operation, duration_ms=duration_ms, tags=tags or {})

    def increment_counter(self, name: str, value: int = 1, tags: Optional[Dict[str, str]] = None):
        self.counters[name] = self.counters.get(name, 0) + value
        chat_logger.logger.debug("metric", metric_type="counter", name=name, value=value, tags=tags or {})

    def set_gauge(self, name: str, value: float, tags: Optional[Dict[str, str]] = None):
        self.gauges[name] = value
        chat_logger.logger.debug("metric", metric_type="gauge", name=name, value=value, tags=tags or {})

    def chat_rates(self) -> Dict[str, float]:
        """Truncation, continuation, error and empty-completion shares of all requests"""

        requests = self.counters.get("chat.requests", 0)
        return {
            rate: round(self.counters.get(counter, 0) / requests, 4) if requests else 0.0
            for rate, counter in RATE_COUNTERS.items()
        }

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Flat summary served by /api/metrics"""

        summary: Dict[str, Any] = {**self.counters, **self.gauges}
        summary.update({key: stats.summary() for key, stats in self.latencies.items()})
        summary["chat.rates"] = self.chat_rates()
        return summary
