"""
Logging configuration.

Plain stdlib logging with structured fields passed via extra={...}.
Every record also gets the current request's correlation and request
ids, read from the task-local request context, so log lines from
concurrent requests are never attributed to the wrong one.
"""

import logging

from ..core.context import current_context

LOG_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - "
    "[%(correlation_id)s %(request_id)s] - %(message)s"
)


class RequestContextFilter(logging.Filter):
    """Stamp correlation_id / request_id onto every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = current_context()
        # Explicit extra={...} values win over the ambient context
        if not getattr(record, "correlation_id", None):
            record.correlation_id = context.correlation_id or "-"
        if not getattr(record, "request_id", None):
            record.request_id = context.request_id or "-"
        return True


def configure_logging(level: str = "INFO") -> None:
    """
    Configure root logging once per process.

    The filter goes on the handlers rather than on loggers so records
    from every library logger are enriched, not just ours.
    """
    logging.basicConfig(format=LOG_FORMAT, level=level.upper())

    context_filter = RequestContextFilter()
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestContextFilter) for f in handler.filters):
            handler.addFilter(context_filter)
