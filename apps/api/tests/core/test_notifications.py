"""
Tests for fire-and-forget notification dispatch.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from app.core import notifications
from app.core.notifications import NotificationEvent


class TestDeliver:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "event,sender",
        [
            (NotificationEvent.APPLICATION_APPROVED, "send_application_approved"),
            (NotificationEvent.APPLICATION_REJECTED, "send_application_rejected"),
            (NotificationEvent.CONFIRMATION_RECEIVED, "send_application_received"),
        ],
    )
    async def test_event_selects_template(self, event, sender):
        with patch(f"app.core.notifications.email.{sender}", new_callable=AsyncMock) as mock_send:
            mock_send.return_value = True

            sent = await notifications.deliver(event, "a@x.edu", {"full_name": "Ada"})

        assert sent is True
        mock_send.assert_awaited_once_with("a@x.edu", "Ada")


class TestDispatch:
    @pytest.mark.asyncio
    async def test_dispatch_returns_before_delivery(self):
        release = asyncio.Event()
        delivered = []

        async def slow_deliver(event, to_email, metadata):
            await release.wait()
            delivered.append(to_email)
            return True

        with patch("app.core.notifications.deliver", side_effect=slow_deliver):
            notifications.dispatch(NotificationEvent.APPLICATION_APPROVED, "a@x.edu")
            assert delivered == []

            release.set()
            await notifications.drain()

        assert delivered == ["a@x.edu"]
        assert not notifications._pending

    @pytest.mark.asyncio
    async def test_failed_delivery_is_contained(self):
        async def failing(event, to_email, metadata):
            raise RuntimeError("provider down")

        with patch("app.core.notifications.deliver", side_effect=failing):
            notifications.dispatch(NotificationEvent.APPLICATION_REJECTED, "a@x.edu")
            await notifications.drain()

        assert not notifications._pending
