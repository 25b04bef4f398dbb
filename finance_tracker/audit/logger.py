"""
Audit Logger

Every write to the ledger and every recovered failure is logged.
This provides:
1. Traceability of each transaction's lifecycle
2. Debugging capability when storage degrades to empty data
3. A record of destructive operations (clear, replace-import)

The audit logger:
- Is synchronous, like every other ledger operation
- Never raises (a logging failure must not break a ledger write)
"""

import logging
import sys
from typing import Optional

import structlog

from finance_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


def configure_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """
    Configure structlog on top of the stdlib logging module.

    Called once by entrypoints (the Streamlit app, scripts). Library
    modules only call structlog.get_logger(__name__).
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Central audit logging service.

    Writes AuditEvents to the structured log. Keeps the most recent
    events in memory so a view can show what just happened.
    """

    def __init__(self, history_size: int = 100):
        """
        Initialize audit logger.

        Args:
            history_size: How many recent events to keep in memory.
        """
        self._logger = structlog.get_logger("finance_tracker.audit")
        self._history: list[AuditEvent] = []
        self._history_size = history_size

    @property
    def recent_events(self) -> list[AuditEvent]:
        """Recent events, newest first."""
        return list(reversed(self._history))

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the log write itself failed.
        """
        if self._history_size > 0:
            self._history.append(event)
            del self._history[:-self._history_size]

        log_dict = event.to_log_dict()
        try:
            if event.severity == AuditSeverity.ERROR:
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:  # logging handlers can raise anything
            sys.stderr.write(f"audit log write failed: {e}\n")
            return False

        return True

    def log_transaction_added(
        self,
        transaction_id: str,
        description: str,
        amount: str,
    ) -> None:
        """Log a new transaction."""
        self.log(AuditEventBuilder.transaction_added(
            transaction_id=transaction_id,
            description=description,
            amount=amount,
        ))

    def log_transaction_updated(
        self,
        transaction_id: str,
        fields: list[str],
    ) -> None:
        """Log a transaction edit."""
        self.log(AuditEventBuilder.transaction_updated(
            transaction_id=transaction_id,
            fields=fields,
        ))

    def log_transaction_deleted(self, transaction_id: str) -> None:
        """Log a transaction delete."""
        self.log(AuditEventBuilder.transaction_deleted(transaction_id))

    def log_transactions_cleared(self, count: int) -> None:
        """Log a bulk clear."""
        self.log(AuditEventBuilder.transactions_cleared(count))

    def log_settings_saved(self, fields: list[str]) -> None:
        """Log a settings write."""
        self.log(AuditEventBuilder.settings_saved(fields))

    def log_validation_failed(
        self,
        issues: list[dict],
        transaction_id: Optional[str] = None,
    ) -> None:
        """Log a rejected transaction write."""
        self.log(AuditEventBuilder.validation_failed(
            issues=issues,
            transaction_id=transaction_id,
        ))

    def log_snapshot_exported(self, transaction_count: int) -> None:
        """Log an export."""
        self.log(AuditEventBuilder.snapshot_exported(transaction_count))

    def log_snapshot_imported(self, transaction_count: int, mode: str) -> None:
        """Log a successful import."""
        self.log(AuditEventBuilder.snapshot_imported(transaction_count, mode))

    def log_import_failed(self, message: str) -> None:
        """Log a rejected import."""
        self.log(AuditEventBuilder.import_failed(message))

    def log_search_pattern_invalid(self, pattern: str, error_message: str) -> None:
        """Log a search pattern that failed to compile."""
        self.log(AuditEventBuilder.search_pattern_invalid(pattern, error_message))

    def log_storage_error(
        self,
        operation: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> None:
        """Log a storage failure that was recovered locally."""
        self.log(AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            details=details,
        ))
