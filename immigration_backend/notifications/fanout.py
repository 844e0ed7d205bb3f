"""
Notification Fan-out
====================

Delivers one event to a user over every channel at once:

- push: Expo, to each registered mobile device
- realtime: a record under `notifications/{userId}` for the web dashboard
- email: optional, through the synchronous SMTP sender in a worker thread

Channels are independent. A failing channel is logged and recorded in the
returned FanoutResult; it never affects the other channels or the caller.
There is no retry.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from ..realtime.notifications import create_realtime_notification
from .push import PushMessage, send_push_to_user

logger = logging.getLogger(__name__)

PUSH = "push"
REALTIME = "realtime"
EMAIL = "email"


@dataclass
class NotificationEvent:
    """What to tell a user, independent of channel"""
    user_id: str
    type: str
    title: str
    body: str
    action_url: Optional[str] = None
    push_data: Dict[str, Any] = field(default_factory=dict)
    realtime_extra: Dict[str, Any] = field(default_factory=dict)
    badge: Optional[int] = None
    channel_id: str = "default"
    priority: str = "default"
    email: Optional[Callable[[], bool]] = None  # blocking sender, returns success


@dataclass
class FanoutResult:
    """Per-channel outcome: "sent", "skipped" or "failed" """
    outcomes: Dict[str, str] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    def ok(self, channel: str) -> bool:
        return self.outcomes.get(channel) == "sent"

    @property
    def failed(self):
        return [channel for channel, outcome in self.outcomes.items() if outcome == "failed"]


async def _push(db: Session, event: NotificationEvent) -> str:
    message = PushMessage(
        title=event.title,
        body=event.body,
        data={"type": event.type, "actionUrl": event.action_url, **event.push_data},
        badge=event.badge,
        channel_id=event.channel_id,
        priority=event.priority,
    )
    sent = await send_push_to_user(db, event.user_id, message)
    return "sent" if sent else "skipped"


async def _realtime(event: NotificationEvent) -> str:
    await create_realtime_notification(
        event.user_id,
        type=event.type,
        title=event.title,
        message=event.body,
        action_url=event.action_url,
        extra=event.realtime_extra,
    )
    return "sent"


async def _email(event: NotificationEvent) -> str:
    if not await asyncio.to_thread(event.email):
        raise RuntimeError("email sender reported failure")
    return "sent"


async def dispatch(event: NotificationEvent, db: Session) -> FanoutResult:
    """
    Deliver `event` on all channels concurrently and wait for every one.

    Never raises for a channel failure.
    """
    channels = {PUSH: _push(db, event), REALTIME: _realtime(event)}
    if event.email is not None:
        channels[EMAIL] = _email(event)

    results = await asyncio.gather(*channels.values(), return_exceptions=True)

    result = FanoutResult()
    for channel, outcome in zip(channels.keys(), results):
        if isinstance(outcome, Exception):
            result.outcomes[channel] = "failed"
            result.errors[channel] = str(outcome)
            logger.warning(f"{event.type} {channel} notification to user {event.user_id} failed: {outcome}")
        else:
            result.outcomes[channel] = outcome

    logger.info(f"{event.type} fan-out to user {event.user_id}: {result.outcomes}")
    return result
