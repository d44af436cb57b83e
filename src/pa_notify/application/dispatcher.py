"""Post-commit notification dispatch.

A failed publish is logged and dropped: the ledger change that produced the
event has already committed and must not be reported as failed.
"""

import logging
from collections.abc import Iterable

from src.pa_notify.domain.events import NotificationEvent, NotificationPublisherProtocol

logger = logging.getLogger(__name__)


async def dispatch(
    publisher: NotificationPublisherProtocol,
    events: Iterable[NotificationEvent],
) -> int:
    """Publish each event; returns how many were delivered."""
    delivered = 0
    for event in events:
        try:
            await publisher.publish(event)
        except Exception:
            logger.warning(
                "Notification dispatch failed: type=%s user=%s market=%s arena=%s",
                event.type.value,
                event.user_id,
                event.market_id,
                event.arena_id,
                exc_info=True,
            )
            continue
        delivered += 1
    return delivered
