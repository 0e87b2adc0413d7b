"""Structured logging, request metrics and job error tracking"""
import json
import logging
import traceback
from collections import deque
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Deque, Dict, Optional
from taskflow.config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logger = logging.getLogger("taskflow")


def configure_logging(level: str = "INFO"):
    """Send log records to stderr at ``level`` (unknown names fall back to INFO)"""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler()],
    )


configure_logging(settings.LOG_LEVEL)


class StructuredLogger:
    """One JSON object per log line"""

    @staticmethod
    def log_event(
        event_type: str,
        message: str,
        user_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        level: str = "INFO"
    ):
        """Log an event; ``level`` is a logging level name"""
        record: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
            "message": message,
            "level": level,
        }
        if user_id:
            record["user_id"] = str(user_id)
        if metadata:
            record["metadata"] = metadata

        # ObjectIds and datetimes in metadata are logged as strings
        logger.log(
            getattr(logging, level.upper(), logging.INFO),
            json.dumps(record, default=str),
        )

    @staticmethod
    def log_error(
        error: BaseException,
        context: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None
    ):
        """Log an exception with its traceback and the caller's context"""
        StructuredLogger.log_event(
            event_type="error",
            message=str(error) or type(error).__name__,
            user_id=user_id,
            metadata={
                "error_type": type(error).__name__,
                "traceback": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
                "context": context or {},
            },
            level="ERROR"
        )


class RequestMetrics:
    """Request counters and recent latencies reported by /health"""

    WINDOW = 100

    def __init__(self):
        self.total_requests = 0
        self.error_responses = 0
        self.rate_limited = 0
        self.processing_times: Deque[float] = deque(maxlen=self.WINDOW)

    def record_request(self, status_code: int, processing_time: float):
        self.total_requests += 1
        if status_code == 429:
            self.rate_limited += 1
        elif status_code >= 500:
            self.error_responses += 1
        self.processing_times.append(processing_time)

    def get_avg_processing_time(self) -> float:
        if not self.processing_times:
            return 0.0
        return sum(self.processing_times) / len(self.processing_times)

    def get_metrics(self) -> Dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "error_responses": self.error_responses,
            "rate_limited": self.rate_limited,
            "avg_processing_time": round(self.get_avg_processing_time(), 4),
        }


def log_job_errors(func):
    """Wrap a scheduled job so a failure is logged and the scheduler keeps running"""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            StructuredLogger.log_error(e, context={"job": func.__name__})
            return None
    return wrapper
