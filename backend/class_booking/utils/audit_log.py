from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from .request_id import get_request_id

AuditAction = Literal[
    "registration.created",
    "registration.confirmed",
    "registration.cancelled",
    "registration.expired",
    "session.closed",
]
AuditInitiator = Literal["customer", "payment", "system", "admin"]


def _build_audit_logger() -> logging.Logger:
    audit = logging.getLogger("audit")
    audit.setLevel(logging.INFO)
    if not audit.handlers:
        stream = logging.StreamHandler()
        stream.setFormatter(logging.Formatter("%(message)s"))
        audit.addHandler(stream)
    audit.propagate = False
    return audit


_audit_logger = _build_audit_logger()


def _status_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value.value) if isinstance(value, Enum) else str(value)


def emit_audit_log(
    *,
    action: AuditAction,
    initiator: AuditInitiator,
    session_id: Optional[int],
    registration_id: Optional[int] = None,
    participants: Optional[int] = None,
    session_total: Optional[int] = None,
    status_from: Any = None,
    status_to: Any = None,
    actor_id: Optional[int] = None,
    message: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """
    Write one JSON line to the ``audit`` logger for a seat-affecting change.

    ``session_total`` is the session occupancy after the change. Empty fields
    are left out. Raises RuntimeError if the line could not be written; callers
    treat that as a failed request.
    """
    record: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "info",
        "action": action,
        "initiator": initiator,
        "request_id": get_request_id(),
        "session_id": session_id,
        "registration_id": registration_id,
        "participants": participants,
        "session_total": session_total,
        "status_from": _status_text(status_from),
        "status_to": _status_text(status_to),
        "actor_id": actor_id,
        "message": message,
    }
    record.update(extra or {})

    try:
        line = json.dumps({k: v for k, v in record.items() if v is not None}, ensure_ascii=True, default=str)
        _audit_logger.info(line)
    except Exception as exc:
        raise RuntimeError("failed to emit audit log") from exc
