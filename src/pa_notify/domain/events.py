"""Notification events handed to the delivery collaborator.

Events are fire-and-forget: they are built inside a ledger transaction but
published only after it commits.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Protocol

from src.pa_common.enums import NotificationType


@dataclass(frozen=True)
class NotificationEvent:
    type: NotificationType
    user_id: str
    market_id: str | None = None
    arena_id: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps(
            {
                "type": self.type.value,
                "user_id": self.user_id,
                "market_id": self.market_id,
                "arena_id": self.arena_id,
                "payload": self.payload,
            },
            default=str,
        )


class NotificationPublisherProtocol(Protocol):
    async def publish(self, event: NotificationEvent) -> None: ...
