"""
Realtime Database Client
========================

Async client for the Firebase Realtime Database REST API.

Paths map to `{FIREBASE_DATABASE_URL}/{path}.json`; the database secret is
passed as the `auth` query parameter. Conditional writes use the ETag
protocol: a GET with `X-Firebase-ETag: true` returns the current ETag and a
PUT with `if-match` fails with 412 when the value changed in between.
"""

import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from ..config import get_settings
from ..errors import ExternalServiceError

logger = logging.getLogger(__name__)

SERVICE_NAME = "realtime"


class RealtimeDatabase:
    """
    Thin async wrapper over the realtime database REST API.

    All transport and HTTP failures surface as ExternalServiceError.
    """

    def __init__(
        self,
        base_url: str,
        secret: Optional[str] = None,
        timeout: int = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.secret = secret
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

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.strip('/')}.json"

    def _params(self) -> Dict[str, str]:
        return {"auth": self.secret} if self.secret else {}

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            client = await self._get_client()
            return await client.request(method, self._url(path), params=self._params(), **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Realtime database {method} {path} failed: {e}")
            raise ExternalServiceError(f"Realtime database unavailable: {e}", service=SERVICE_NAME)

    @staticmethod
    def _raise_for_status(response: httpx.Response, method: str, path: str):
        if response.is_error:
            logger.error(f"Realtime database {method} {path} returned {response.status_code}: {response.text[:200]}")
            raise ExternalServiceError(
                f"Realtime database returned {response.status_code}",
                service=SERVICE_NAME,
            )

    @staticmethod
    def _json(response: httpx.Response, method: str, path: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Realtime database {method} {path} returned an invalid body: {e}")
            raise ExternalServiceError("Realtime database returned an invalid body", service=SERVICE_NAME)

    async def get(self, path: str) -> Any:
        value, _etag = await self.get_with_etag(path)
        return value

    async def get_with_etag(self, path: str) -> Tuple[Any, Optional[str]]:
        """Return (value, etag). A missing path yields (None, etag-of-null)."""
        response = await self._request("GET", path, headers={"X-Firebase-ETag": "true"})
        self._raise_for_status(response, "GET", path)
        return self._json(response, "GET", path), response.headers.get("ETag")

    async def put(self, path: str, value: Any, etag: Optional[str] = None) -> bool:
        """
        Write `value` at `path`.

        With `etag` the write only succeeds if the stored value still has that
        ETag; returns False when the precondition fails.
        """
        headers = {"if-match": etag} if etag else None
        response = await self._request("PUT", path, json=value, headers=headers)
        if response.status_code == 412:
            logger.info(f"Realtime database PUT {path} precondition failed")
            return False
        self._raise_for_status(response, "PUT", path)
        return True

    async def patch(self, path: str, values: Dict[str, Any]) -> None:
        response = await self._request("PATCH", path, json=values)
        self._raise_for_status(response, "PATCH", path)

    async def push(self, path: str, value: Any) -> str:
        """Append `value` under a generated key and return the key."""
        response = await self._request("POST", path, json=value)
        self._raise_for_status(response, "POST", path)
        return (self._json(response, "POST", path) or {}).get("name")


_realtime_db: Optional[RealtimeDatabase] = None


def get_realtime_db() -> RealtimeDatabase:
    """Shared client built from settings; raises if the database is not configured."""
    global _realtime_db
    if _realtime_db is None:
        settings = get_settings()
        if not settings.firebase_database_url:
            raise ExternalServiceError("Realtime database is not configured", service=SERVICE_NAME)
        _realtime_db = RealtimeDatabase(
            settings.firebase_database_url,
            secret=settings.firebase_database_secret,
            timeout=settings.realtime_timeout,
        )
    return _realtime_db


def set_realtime_db(db: Optional[RealtimeDatabase]) -> None:
    """Replace the shared client (tests, shutdown)."""
    global _realtime_db
    _realtime_db = db


async def close_realtime_db() -> None:
    global _realtime_db
    if _realtime_db is not None:
        await _realtime_db.close()
        _realtime_db = None
