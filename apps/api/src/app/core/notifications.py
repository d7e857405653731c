"""
Notification Dispatch

Hands lifecycle events to the email collaborator without waiting for
delivery. dispatch() schedules the send on the running event loop and
returns immediately; a failed or slow send never affects the caller.

Payload: {event, email, metadata}
"""

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from app.core import email

logger = logging.getLogger(__name__)


class NotificationEvent(str, enum.Enum):
    APPLICATION_APPROVED = "application_approved"
    APPLICATION_REJECTED = "application_rejected"
    CONFIRMATION_RECEIVED = "confirmation_received"


# Strong references so pending sends are not garbage collected
_pending: set[asyncio.Task] = set()

Notifier = Callable[[NotificationEvent, str, dict[str, Any]], None]


async def deliver(event: NotificationEvent, to_email: str, metadata: dict[str, Any]) -> bool:
    """Render and send the email for ``event``."""
    name = metadata.get("full_name") or "there"

    if event is NotificationEvent.APPLICATION_APPROVED:
        sent = await email.send_application_approved(to_email, name)
    elif event is NotificationEvent.APPLICATION_REJECTED:
        sent = await email.send_application_rejected(to_email, name)
    else:
        sent = await email.send_application_received(to_email, name)

    if not sent:
        logger.error(f"Notification {event.value} was not delivered to {to_email}")
    return sent


def _on_done(task: asyncio.Task) -> None:
    _pending.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Notification task {task.get_name()} failed: {exc}", exc_info=exc)


def dispatch(event: NotificationEvent, to_email: str, metadata: dict[str, Any] | None = None) -> None:
    """
    Fire-and-forget a notification.

    Must be called from inside a running event loop.
    """
    task = asyncio.create_task(
        deliver(event, to_email, metadata or {}),
        name=f"notify:{event.value}:{to_email}",
    )
    _pending.add(task)
    task.add_done_callback(_on_done)
    logger.info(f"Dispatched {event.value} notification for {to_email}")


async def drain() -> None:
    """Wait for in-flight notifications. Used on shutdown."""
    if _pending:
        await asyncio.gather(*list(_pending), return_exceptions=True)
