"""
Logging configuration for the Binary Audit service.

Provides structured JSON logging for audit trails and debugging.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Optional

# Context variable for request ID tracking
request_id_var: ContextVar[str] = ContextVar('request_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    One JSON object per line, suitable for log aggregation systems.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class AuditEventLogger:
    """
    Specialized logger for audit record events.

    Records submissions, terminal updates, rejected updates, lookups
    of unknown records and rejected input.
    """

    def __init__(self, name: str = "binaudit.events"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        if not self._logger.isEnabledFor(level):
            return

        extra = {
            "event_type": event_type,
            "request_id": request_id_var.get(),
            **kwargs
        }

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def audit_submitted(
        self,
        audit_id: str,
        requester: str,
        content_digest: str,
        target_id: Optional[str] = None
    ) -> None:
        self._log(
            logging.INFO,
            "AUDIT_SUBMITTED",
            audit_id=audit_id,
            requester=requester,
            content_digest=content_digest,
            target_id=target_id,
            message=f"Audit {audit_id} submitted by {requester}"
        )

    def audit_finalized(
        self,
        audit_id: str,
        status: str,
        severity: str,
        findings_count: int
    ) -> None:
        level = logging.INFO if status == "Completed" else logging.WARNING
        self._log(
            level,
            "AUDIT_FINALIZED",
            audit_id=audit_id,
            status=status,
            severity=severity,
            findings_count=findings_count,
            message=f"Audit {audit_id} finalized as {status} ({severity})"
        )

    def audit_update_rejected(self, audit_id: str, reason: str) -> None:
        self._log(
            logging.WARNING,
            "AUDIT_UPDATE_REJECTED",
            audit_id=audit_id,
            reason=reason,
            message=f"Update of audit {audit_id} rejected: {reason}"
        )

    def record_not_found(self, audit_id: str) -> None:
        self._log(
            logging.INFO,
            "RECORD_NOT_FOUND",
            audit_id=audit_id,
            message=f"Audit {audit_id} not found"
        )

    def validation_failed(self, field: str, reason: str) -> None:
        self._log(
            logging.WARNING,
            "VALIDATION_FAILED",
            field=field,
            reason=reason,
            message=f"Validation failed for {field}: {reason}"
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting (recommended for production)
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the request ID for the current context.

    Args:
        request_id: Request ID to set, or None to generate one

    Returns:
        The request ID that was set
    """
    if not request_id:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


# Global audit event logger instance
audit_log = AuditEventLogger()
