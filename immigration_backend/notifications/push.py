"""
Expo Push Sender
================

Sends mobile push notifications through the Expo push HTTP API to every
device a user has registered.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
from sqlalchemy.orm import Session

from ..config import get_settings
from ..db.models import PushDevice
from ..errors import ExternalServiceError

logger = logging.getLogger(__name__)

SERVICE_NAME = "push"


@dataclass
class PushMessage:
    """One notification addressed to all devices of a user"""
    title: str
    body: str
    data: Dict[str, Any] = field(default_factory=dict)
    badge: Optional[int] = None
    channel_id: str = "default"
    priority: str = "default"  # default | normal | high

    def to_expo(self, token: str) -> Dict[str, Any]:
        message = {
            "to": token,
            "title": self.title,
            "body": self.body,
            "data": self.data,
            "sound": "default",
            "channelId": self.channel_id,
            "priority": self.priority,
        }
        if self.badge is not None:
            message["badge"] = self.badge
        return message


class ExpoPushClient:
    """Async client for the Expo push endpoint"""

    def __init__(
        self,
        url: str,
        access_token: Optional[str] = None,
        timeout: int = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.access_token = access_token
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client"""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def close(self):
        """Close the HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def send(self, messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Send a batch of Expo messages.

        Returns:
            One ticket per message, in order ({"status": "ok"|"error", ...})
        """
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"

        try:
            client = await self._get_client()
            response = await client.post(self.url, json=messages, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Expo push request failed: {e}")
            raise ExternalServiceError(f"Push service unavailable: {e}", service=SERVICE_NAME)

        return response.json().get("data", [])


_push_client: Optional[ExpoPushClient] = None


def get_push_client() -> ExpoPushClient:
    global _push_client
    if _push_client is None:
        settings = get_settings()
        _push_client = ExpoPushClient(
            settings.expo_push_url,
            access_token=settings.expo_access_token,
            timeout=settings.push_timeout,
        )
    return _push_client


def set_push_client(client: Optional[ExpoPushClient]) -> None:
    """Replace the shared client (tests, shutdown)."""
    global _push_client
    _push_client = client


def get_push_tokens(db: Session, user_id: str) -> List[str]:
    return [row.token for row in db.query(PushDevice.token).filter(PushDevice.user_id == user_id)]


async def send_push_to_user(db: Session, user_id: str, message: PushMessage) -> int:
    """
    Push `message` to every registered device of `user_id`.

    Returns the number of accepted tickets. Tokens Expo reports as
    DeviceNotRegistered are removed.
    """
    tokens = get_push_tokens(db, user_id)
    if not tokens:
        logger.info(f"No push devices registered for user {user_id}")
        return 0

    tickets = await get_push_client().send([message.to_expo(token) for token in tokens])

    accepted = 0
    stale = []
    for token, ticket in zip(tokens, tickets):
        if ticket.get("status") == "ok":
            accepted += 1
            continue
        error = (ticket.get("details") or {}).get("error")
        logger.warning(f"Push to {token[:24]}... rejected: {ticket.get('message')} ({error})")
        if error == "DeviceNotRegistered":
            stale.append(token)

    if stale:
        db.query(PushDevice).filter(PushDevice.token.in_(stale)).delete(synchronize_session=False)
        db.commit()
        logger.info(f"Removed {len(stale)} unregistered push device(s) for user {user_id}")

    if accepted == 0:
        raise ExternalServiceError("No push notification was accepted", service=SERVICE_NAME)
    return accepted


async def close_push_client() -> None:
    global _push_client
    if _push_client is not None:
        await _push_client.close()
        _push_client = None
