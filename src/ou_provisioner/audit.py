from __future__ import annotations

import json
import logging
import sys
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Deque, Dict, List, Optional


@dataclass
class AuditEvent:
    timestamp: str
    level: str
    message: str
    tenant: Optional[str] = None
    dn: Optional[str] = None
    correlation_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


class InMemoryAuditStore:
    """Thread-safe buffer of recent audit events, newest first."""

    def __init__(self, max_events: int = 1000):
        self._events: Deque[AuditEvent] = deque(maxlen=max_events)
        self._lock = Lock()

    def append(self, event: AuditEvent) -> None:
        with self._lock:
            self._events.appendleft(event)

    def list(self, limit: int = 100) -> List[AuditEvent]:
        with self._lock:
            return list(self._events)[:limit]

    def messages(self) -> List[str]:
        """Messages in the order they were logged."""
        with self._lock:
            return [event.message for event in reversed(self._events)]


class JsonAuditLogger:
    """Structured logger for provisioning outcomes.

    Every existence check and creation is logged as one JSON line on stdout
    with a ``<operation> - <outcome>: <detail>`` message, so a run can be
    audited for what was created versus what already existed. Events are
    optionally mirrored to an in-memory store.
    """

    def __init__(
        self,
        name: str = "ou_provisioner",
        level: int = logging.INFO,
        store: Optional[InMemoryAuditStore] = None,
    ):
        self.logger = logging.getLogger(name)
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(_JsonFormatter())
            self.logger.addHandler(handler)
        self.logger.setLevel(level)
        self.logger.propagate = False
        self.store = store

    def _log(self, level: int, message: str, **kwargs: Any) -> None:
        fields = {key: value for key, value in kwargs.items() if value is not None}
        if self.store:
            self.store.append(self._build_event(level, message, fields))
        self.logger.log(level, message, extra={"extra": fields})

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, **kwargs)

    @staticmethod
    def _build_event(level: int, message: str, fields: Dict[str, Any]) -> AuditEvent:
        promoted = {"tenant", "dn", "correlation_id"}
        return AuditEvent(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=logging.getLevelName(level),
            message=message,
            tenant=fields.get("tenant"),
            dn=fields.get("dn"),
            correlation_id=fields.get("correlation_id"),
            extra={k: v for k, v in fields.items() if k not in promoted},
        )


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
        }

        extra: Optional[Dict[str, Any]] = getattr(record, "extra", None)  # type: ignore[attr-defined]
        if extra:
            payload.update(extra)

        return json.dumps(payload, default=str)
