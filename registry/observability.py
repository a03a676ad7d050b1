"""
Registry Observability

Structured logging, correlation ids and a tamper-evident audit trail for
registry operations.

Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                   AssetRegistry operations               │
    │  logger.info("msg", asset_id=x)   audit.log(event)      │
    └───────────────────────┬─────────────────────────────────┘
                            │
    ┌───────────────────────▼─────────────────────────────────┐
    │              RegistryLogger / AuditLogger                │
    │  Correlation ids, layer tags, hash-chained audit events │
    └───────────────────────┬─────────────────────────────────┘
                            │
    ┌───────────────────────▼─────────────────────────────────┐
    │                    StructuredHandler                     │
    │           one JSON LogEvent per line on stderr          │
    └─────────────────────────────────────────────────────────┘

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import contextvars
import hashlib
import json
import logging
import sys
import threading
import traceback
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)


class LogLevel(Enum):
    """Log severity levels."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class RegistryLayer(Enum):
    """Registry components for log categorization."""
    LEDGER = "ledger"
    ACCESS = "access"
    LIFECYCLE = "lifecycle"
    BULK = "bulk"
    QUERY = "query"
    CONFIG = "config"
    CLI = "cli"


@dataclass
class LogEvent:
    """Structured log event."""
    timestamp: str
    level: str
    logger: str
    message: str
    correlation_id: str = ""
    layer: str = ""
    operation: str = ""
    duration_ms: Optional[float] = None
    error_code: str = ""
    context: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, excluding empty values."""
        d = asdict(self)
        return {k: v for k, v in d.items() if v is not None and v != "" and v != {}}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class StructuredHandler(logging.Handler):
    """Logging handler that outputs structured JSON."""

    def __init__(self, stream: Any = None):
        super().__init__()
        self._stream = stream

    @property
    def stream(self) -> Any:
        # Resolved per call so redirected stderr is honoured
        return self._stream or sys.stderr

    def emit(self, record: logging.LogRecord) -> None:
        try:
            event = LogEvent(
                timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                level=record.levelname.lower(),
                logger=record.name,
                message=record.getMessage(),
                correlation_id=correlation_id_var.get(),
                layer=getattr(record, "layer", ""),
                operation=getattr(record, "operation", ""),
                duration_ms=getattr(record, "duration_ms", None),
                error_code=getattr(record, "error_code", ""),
                context=getattr(record, "context", {}),
            )

            if record.exc_info:
                event.exception = "".join(traceback.format_exception(*record.exc_info))

            self.stream.write(event.to_json() + "\n")
            self.stream.flush()
        except Exception:
            self.handleError(record)


class RegistryLogger:
    """
    Structured logger for registry components.

    Every event carries the correlation id of the current context and the
    layer it was emitted from.
    """

    def __init__(
        self,
        name: str,
        layer: RegistryLayer,
        level: Optional[LogLevel] = None,
    ):
        self.name = name
        self.layer = layer
        self._logger = logging.getLogger(f"registry.{layer.value}.{name}")
        if level is not None:
            self._logger.setLevel(getattr(logging, level.value.upper()))

        if not any(isinstance(h, StructuredHandler) for h in self._logger.handlers):
            self._logger.addHandler(StructuredHandler())

    def _log(
        self,
        level: int,
        message: str,
        operation: str = "",
        error_code: str = "",
        duration_ms: Optional[float] = None,
        exc_info: bool = False,
        **context: Any,
    ) -> None:
        extra = {
            "layer": self.layer.value,
            "operation": operation,
            "error_code": error_code,
            "duration_ms": duration_ms,
            "context": context,
        }
        self._logger.log(level, message, extra=extra, exc_info=exc_info)

    def debug(self, message: str, **context: Any) -> None:
        self._log(logging.DEBUG, message, **context)

    def info(self, message: str, **context: Any) -> None:
        self._log(logging.INFO, message, **context)

    def warning(self, message: str, **context: Any) -> None:
        self._log(logging.WARNING, message, **context)

    def operation(
        self,
        name: str,
        duration_ms: float,
        success: bool = True,
        **context: Any,
    ) -> None:
        """Log an operation completion."""
        level = logging.INFO if success else logging.WARNING
        status = "completed" if success else "failed"
        self._log(
            level,
            f"Operation {name} {status}",
            operation=name,
            duration_ms=duration_ms,
            **context,
        )


def generate_correlation_id() -> str:
    return f"corr-{uuid.uuid4().hex[:12]}"


def set_correlation_id(correlation_id: str) -> contextvars.Token:
    """Set the correlation ID for the current context."""
    return correlation_id_var.set(correlation_id)


def get_logger(name: str, layer: RegistryLayer) -> RegistryLogger:
    """Get a logger for a registry component."""
    return RegistryLogger(name, layer)


def configure_logging(level: str) -> None:
    """Apply a log level to every registry logger."""
    logging.getLogger("registry").setLevel(getattr(logging, LogLevel(level).value.upper()))


# =============================================================================
# AUDIT TRAIL
# =============================================================================

def canonical_json_bytes(obj: Any) -> bytes:
    """Serialize with sorted keys and no whitespace."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str).encode("utf-8")


class AuditEventType(Enum):
    """Types of audit events."""
    ASSET_CREATED = "asset_created"
    ASSET_TRANSFERRED = "asset_transferred"
    VALUE_CHANGED = "value_changed"
    LIFECYCLE_CHANGED = "lifecycle_changed"
    OWNERSHIP_RECLAIMED = "ownership_reclaimed"
    OWNERSHIP_CLAIMED = "ownership_claimed"
    ASSETS_MERGED = "assets_merged"
    NOTES_CHANGED = "notes_changed"
    BATCH_MINTED = "batch_minted"


@dataclass
class AuditEvent:
    """An audit log entry."""
    event_id: str
    event_type: AuditEventType
    timestamp: str
    actor: str
    resource_id: str
    action: str
    outcome: str  # success, failure, denied
    details: Dict[str, Any]
    correlation_id: str = ""

    previous_event_digest: Optional[str] = None
    event_digest: str = ""

    def __post_init__(self):
        if not self.event_digest:
            self.event_digest = self._compute_digest()

    def _compute_digest(self) -> str:
        """Compute tamper-evident digest."""
        content = {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "timestamp": self.timestamp,
            "actor": self.actor,
            "resource_id": self.resource_id,
            "action": self.action,
            "outcome": self.outcome,
            "details": self.details,
            "previous_event_digest": self.previous_event_digest,
        }
        return hashlib.sha256(canonical_json_bytes(content)).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "timestamp": self.timestamp,
            "actor": self.actor,
            "resource_id": self.resource_id,
            "action": self.action,
            "outcome": self.outcome,
            "details": self.details,
            "correlation_id": self.correlation_id,
            "previous_event_digest": self.previous_event_digest,
            "event_digest": self.event_digest,
        }


class AuditLogger:
    """
    Tamper-evident audit logger.

    Each event includes a hash chain linking to the previous event,
    making it possible to detect log tampering.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._events: List[AuditEvent] = []
        self._lock = threading.Lock()
        self._event_counter = 0

    def log(
        self,
        event_type: AuditEventType,
        actor: Any,
        resource_id: Any,
        action: str,
        outcome: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditEvent]:
        """Log an audit event."""
        if not self.enabled:
            return None

        with self._lock:
            self._event_counter += 1
            previous_digest = self._events[-1].event_digest if self._events else None

            event = AuditEvent(
                event_id=f"evt-{self._event_counter:012d}",
                event_type=event_type,
                timestamp=datetime.now(timezone.utc).isoformat(),
                actor=str(actor),
                resource_id=str(resource_id),
                action=action,
                outcome=outcome,
                details=details or {},
                correlation_id=correlation_id_var.get(),
                previous_event_digest=previous_digest,
            )

            self._events.append(event)
            return event

    def verify_chain(self) -> Tuple[bool, Optional[int]]:
        """
        Verify the audit log chain integrity.

        Returns (valid, first_invalid_index).
        """
        with self._lock:
            for i, event in enumerate(self._events):
                if event._compute_digest() != event.event_digest:
                    return (False, i)

                if i > 0:
                    expected_prev = self._events[i - 1].event_digest
                    if event.previous_event_digest != expected_prev:
                        return (False, i)

            return (True, None)

    def get_events(
        self,
        actor: Optional[Any] = None,
        event_type: Optional[AuditEventType] = None,
        resource_id: Optional[Any] = None,
        limit: int = 100,
    ) -> List[AuditEvent]:
        """Query audit events, newest last."""
        with self._lock:
            events = list(self._events)

        if actor is not None:
            events = [e for e in events if e.actor == str(actor)]
        if event_type:
            events = [e for e in events if e.event_type == event_type]
        if resource_id is not None:
            events = [e for e in events if e.resource_id == str(resource_id)]

        return events[-limit:]

    def export(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [e.to_dict() for e in self._events]

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
