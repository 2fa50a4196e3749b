from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from ..domain.events import ClassConfirmed, DomainEvent
from ..utils.request_id import get_request_id
from .events import InProcessEventBus

_notification_logger = logging.getLogger("notifications")


class NotificationDispatcher:
    """
    Turns confirmed classes into outbound notifications.

    Delivery (email, admin websocket) belongs to external workers that tail the
    ``notifications`` log stream; this class only shapes and records the message.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or _notification_logger

    def register(self, bus: InProcessEventBus) -> None:
        bus.subscribe(ClassConfirmed.name, self.handle)

    async def handle(self, event: DomainEvent) -> None:
        if not isinstance(event, ClassConfirmed):
            return
        data = event.payload()
        data["name"] = data.pop("customer_name").upper()
        data["email"] = data.pop("customer_email")
        message: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": event.name,
            "request_id": get_request_id(),
            "channels": ["email", "admin_feed"],
            "recipient": event.customer_email,
            "data": data,
        }
        self.logger.info(json.dumps(message, ensure_ascii=True))
