"""Async consumer for the analytics event stream with a polling fallback.

The client reads ``/api/analytics/stream`` and keeps the latest snapshot in
``data``. A failed or dropped connection is retried with exponential backoff
(``reconnect_delay * 2 ** attempt``). After ``max_reconnect_attempts``
consecutive failures it stops reconnecting, switches ``connection_method`` to
``"polling"`` and fetches ``/api/analytics/realtime`` every ``interval_ms``.

Usage::

    client = AnalyticsStreamClient("https://example.com", headers={"Authorization": f"Bearer {token}"})
    task = asyncio.create_task(client.run())
    ...
    client.stop()
"""

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from ..models import utcnow
from .stream_service import DEFAULT_INTERVAL_MS, new_update_id

logger = logging.getLogger(__name__)

STREAM_PATH = "/api/analytics/stream"
POLL_PATH = "/api/analytics/realtime"
DEFAULT_MAX_RECONNECT_ATTEMPTS = 5
DEFAULT_RECONNECT_DELAY_SECONDS = 5.0


class StreamConnectionError(Exception):
    """The stream could not be opened or ended unexpectedly."""


class AnalyticsStreamClient:
    def __init__(
        self,
        base_url: str,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        max_reconnect_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY_SECONDS,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        on_data: Optional[Callable[[Dict[str, Any]], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        on_connect: Optional[Callable[[], None]] = None,
        on_disconnect: Optional[Callable[[], None]] = None,
    ):
        self.base_url = base_url
        self.interval_ms = interval_ms
        self.max_reconnect_attempts = max_reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self.headers = headers or {}
        self.transport = transport
        self.sleep = sleep
        self.on_data = on_data
        self.on_error = on_error
        self.on_connect = on_connect
        self.on_disconnect = on_disconnect

        self.data: Optional[Dict[str, Any]] = None
        self.error: Optional[Exception] = None
        self.is_connected = False
        self.connection_attempts = 0
        self.connection_method = "stream"
        self._stopped = False

    @property
    def is_polling(self) -> bool:
        return self.connection_method == "polling"

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait before reconnect number ``attempt`` (zero based)."""
        return self.reconnect_delay * (2 ** attempt)

    def stop(self) -> None:
        """Stop streaming or polling after the current step."""
        if self._stopped:
            return
        self._stopped = True
        self.is_connected = False
        if self.on_disconnect:
            self.on_disconnect()

    # --- event handling ---

    def _set_error(self, error: Exception) -> None:
        self.error = error
        if self.on_error:
            self.on_error(error)

    def _set_data(self, data: Dict[str, Any]) -> None:
        self.data = data
        if self.on_data:
            self.on_data(data)

    def _dispatch(self, event: Optional[str], payload: str) -> None:
        try:
            message = json.loads(payload)
        except ValueError:
            logger.error("Failed to parse analytics stream data")
            self._set_error(StreamConnectionError("Failed to parse stream data"))
            return

        if event == "error":
            self._set_error(StreamConnectionError(message.get("error", "Stream error")))
        else:
            self._set_data(message)

    async def _consume_stream(self, client: httpx.AsyncClient) -> None:
        async with client.stream("GET", STREAM_PATH, params={"interval": self.interval_ms}) as response:
            if response.status_code != 200:
                raise StreamConnectionError(f"Stream request failed with HTTP {response.status_code}")

            self.is_connected = True
            self.connection_attempts = 0
            self.error = None
            if self.on_connect:
                self.on_connect()

            event, data_lines = None, []
            async for line in response.aiter_lines():
                if self._stopped:
                    return
                if line == "":
                    if data_lines:
                        self._dispatch(event, "\n".join(data_lines))
                    event, data_lines = None, []
                elif line.startswith("event:"):
                    event = line[len("event:"):].strip()
                elif line.startswith("data:"):
                    data_lines.append(line[len("data:"):].lstrip())

        if self._stopped:
            return
        raise StreamConnectionError("Analytics stream closed by server")

    def _record_failure(self, error: Exception) -> None:
        logger.warning(f"Analytics stream connection error: {error}")
        self.is_connected = False
        self.connection_attempts += 1
        self._set_error(error)

    # --- polling fallback ---

    async def poll_once(self, client: httpx.AsyncClient) -> Optional[Dict[str, Any]]:
        try:
            response = await client.get(POLL_PATH)
            if response.status_code != 200:
                logger.warning(f"Polling request failed with HTTP {response.status_code}")
                return None
            result = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Polling error: {e}")
            self._set_error(e)
            return None

        if not result.get("success"):
            return None

        snapshot = dict(result.get("data") or {})
        snapshot.update({
            "timestamp": utcnow().isoformat(timespec="milliseconds") + "Z",
            "serverTime": int(time.time() * 1000),
            "updateId": new_update_id(),
        })
        self._set_data(snapshot)
        return snapshot

    async def _poll_forever(self, client: httpx.AsyncClient) -> None:
        logger.warning("Max reconnection attempts reached, falling back to polling")
        self.connection_method = "polling"
        if self.on_disconnect:
            self.on_disconnect()
        while not self._stopped:
            await self.poll_once(client)
            if self._stopped:
                break
            await self.sleep(self.interval_ms / 1000)

    async def run(self) -> None:
        """Stream until stopped, falling back to polling after repeated failures."""
        timeout = httpx.Timeout(30.0, read=None)
        async with httpx.AsyncClient(base_url=self.base_url, headers=self.headers,
                                     transport=self.transport, timeout=timeout) as client:
            while not self._stopped:
                if self.connection_attempts >= self.max_reconnect_attempts:
                    await self._poll_forever(client)
                    break

                try:
                    await self._consume_stream(client)
                except (httpx.HTTPError, StreamConnectionError) as e:
                    if self._stopped:
                        break
                    self._record_failure(e)

                if self._stopped or self.connection_attempts >= self.max_reconnect_attempts:
                    continue
                await self.sleep(self.backoff_delay(self.connection_attempts - 1))
