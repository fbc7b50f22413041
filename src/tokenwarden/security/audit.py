"""
Security audit log.
Created: 2026-10-03

Append-only record of token lifecycle and security events (issuance,
rotation, revocation, refresh token reuse). Every event goes to the
``tokenwarden.audit`` logger; when an audit file is configured it is also
appended there in JSONL format.
"""

import json
import logging
import uuid
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

logger = logging.getLogger("tokenwarden.audit")

_LEVELS = {
    "info": logging.INFO,
    "warning": logging.WARNING,
    "critical": logging.ERROR,
    "alert": logging.CRITICAL,
}


class AuditSeverity(str, Enum):
    INFO = "info"  # Normal operation (e.g. token issued)
    WARNING = "warning"  # Suspicious but expected (e.g. PKCE mismatch)
    CRITICAL = "critical"  # Forced session termination
    ALERT = "alert"  # Evidence of credential theft (refresh token reuse)


@dataclass
class AuditEvent:
    """A single audit log entry."""

    id: str
    timestamp: str
    severity: AuditSeverity
    actor: str  # Subject or client the event concerns
    action: str  # e.g. "token_issued", "refresh_token_reuse"
    target: str  # e.g. "jti:<id>", "client:<id>"
    status: str  # "success", "denied", "revoked"
    context: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        severity: AuditSeverity,
        actor: str,
        action: str,
        target: str,
        status: str,
        **context: Any,
    ) -> "AuditEvent":
        return cls(
            id=str(uuid.uuid4()),
            timestamp=datetime.now(tz=UTC).isoformat(),
            severity=severity,
            actor=actor,
            action=action,
            target=target,
            status=status,
            context=context,
        )


class AuditLogger:
    """Append-only audit logger."""

    def __init__(self, log_path: Path | None = None):
        self.log_path = log_path
        self._callbacks: list[Callable[[dict], None]] = []

    def on_log(self, callback: Callable[[dict], None]) -> None:
        """Register a callback to be called after each audit log write."""
        self._callbacks.append(callback)

    def log(self, event: AuditEvent) -> None:
        """Record an event. Never raises: a broken audit sink must not fail a request."""
        event_dict = asdict(event)
        event_dict["severity"] = event.severity.value
        logger.log(
            _LEVELS[event.severity.value],
            "%s %s %s (%s)",
            event.action,
            event.target,
            event.status,
            event.actor,
            extra={"audit": event_dict},
        )
        if self.log_path is not None:
            try:
                with open(self.log_path, "a", encoding="utf-8") as f:
                    f.write(json.dumps(event_dict) + "\n")
            except OSError as e:
                logger.critical("FAILED TO WRITE AUDIT LOG: %s | Event: %s", e, event)
        for cb in self._callbacks:
            try:
                cb(event_dict)
            except Exception:
                logger.exception("Audit callback failed")

    def log_security_event(
        self,
        action: str,
        actor: str,
        target: str,
        severity: AuditSeverity = AuditSeverity.INFO,
        status: str = "success",
        **context: Any,
    ) -> str:
        """Helper to log a token or session event."""
        event = AuditEvent.create(
            severity=severity,
            actor=actor,
            action=action,
            target=target,
            status=status,
            **context,
        )
        self.log(event)
        return event.id


# Singleton
_audit_logger: AuditLogger | None = None


def get_audit_logger() -> AuditLogger:
    global _audit_logger
    if _audit_logger is None:
        from tokenwarden.config import get_settings

        path = get_settings().audit_log_path
        _audit_logger = AuditLogger(Path(path) if path else None)
    return _audit_logger


def reset_audit_logger() -> None:
    global _audit_logger
    _audit_logger = None
