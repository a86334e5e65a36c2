"""Session gateway for the HomematicIP cloud.

Transport layer:
- Host lookup: ``POST <lookup_url>`` returns the REST and websocket hosts
  assigned to the access point
- REST: httpx.AsyncClient with ``AUTHTOKEN`` / ``CLIENTAUTH`` headers
- WebSocket: aiohttp.ClientSession delivering raw push envelopes
  - Background message loop handing each frame to the subscriber
  - Auto-reconnect with exponential backoff (with jitter)

The auth token comes from configuration; token issuance is not handled here.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import platform
import random
from collections.abc import Callable
from typing import Any, Protocol

from pydantic import ValidationError

from hmip_sync import __version__
from hmip_sync.config import HmIPConfig
from hmip_sync.models import Snapshot

logger = logging.getLogger(__name__)

CLIENT_AUTH_SALT = "jiLpVitHvWnIGD1yo7MA"
API_VERSION = "12"
CURRENT_STATE_PATH = "home/getCurrentState"

_RECONNECT_JITTER = 0.5  # fraction of delay added as random jitter

MessageCallback = Callable[[bytes | str], None]


class GatewayError(Exception):
    """Raised when the hub cannot serve a request after the session is up."""


class SessionGateway(Protocol):
    """What the reconciliation engine needs from a hub session."""

    async def init_session(self) -> bool: ...

    async def fetch_snapshot(self, path: str = CURRENT_STATE_PATH) -> Snapshot: ...

    async def subscribe(self, on_message: MessageCallback) -> None: ...

    async def unsubscribe(self) -> None: ...


def client_auth(access_point: str) -> str:
    """Return the ``CLIENTAUTH`` header value for *access_point*."""
    return hashlib.sha512((access_point + CLIENT_AUTH_SALT).encode("utf-8")).hexdigest().upper()


def client_characteristics() -> dict[str, str]:
    return {
        "apiVersion": API_VERSION,
        "applicationIdentifier": "hmip-sync",
        "applicationVersion": __version__,
        "deviceManufacturer": "none",
        "deviceType": "Computer",
        "language": "en_US",
        "osType": platform.system(),
        "osVersion": platform.release(),
    }


class HmIPCloudGateway:
    """HomematicIP cloud session: lookup, REST calls and the push feed."""

    def __init__(self, config: HmIPConfig) -> None:
        self._config = config
        self._client: Any | None = None  # httpx.AsyncClient, created in init_session
        self._url_rest: str | None = None
        self._url_websocket: str | None = None

        # ---- WebSocket state ----
        self._ws_session: Any | None = None  # aiohttp.ClientSession
        self._ws_connection: Any | None = None  # aiohttp.ClientWebSocketResponse
        self._ws_connected: bool = False
        self._ws_loop_task: asyncio.Task[None] | None = None
        self._ws_reconnect_task: asyncio.Task[None] | None = None
        self._on_message: MessageCallback | None = None
        self._shutdown: bool = False

    @property
    def headers(self) -> dict[str, str]:
        return {
            "content-type": "application/json",
            "accept": "application/json",
            "VERSION": API_VERSION,
            "AUTHTOKEN": self._config.auth_token,
            "CLIENTAUTH": client_auth(self._config.access_point),
        }

    @property
    def connected(self) -> bool:
        return self._ws_connected

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def init_session(self) -> bool:
        """Look up the hosts serving this access point.

        Returns ``False`` (and logs why) instead of raising, so the caller
        can abort discovery without touching any state.
        """
        import httpx

        self._shutdown = False
        if self._client is None:
            self._client = httpx.AsyncClient(headers=self.headers, timeout=30.0)

        body = {
            "clientCharacteristics": client_characteristics(),
            "id": self._config.access_point,
        }
        try:
            resp = await self._client.post(self._config.lookup_url, json=body)
            resp.raise_for_status()
            hosts: dict[str, Any] = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("HomematicIP host lookup failed: %s", exc)
            return False

        self._url_rest = hosts.get("urlREST")
        self._url_websocket = hosts.get("urlWebSocket")
        if not self._url_rest or not self._url_websocket:
            logger.error("HomematicIP host lookup returned no endpoints: %r", hosts)
            return False

        logger.debug(
            "HomematicIP session ready (rest=%s, websocket=%s)",
            self._url_rest,
            self._url_websocket,
        )
        return True

    async def api_call(self, path: str, body: dict[str, Any] | None = None) -> Any:
        """POST ``<urlREST>/hmip/<path>`` and return the decoded JSON body."""
        import httpx

        if self._client is None or self._url_rest is None:
            raise GatewayError("session not initialised; call init_session() first")

        url = f"{self._url_rest.rstrip('/')}/hmip/{path}"
        try:
            resp = await self._client.post(url, json=body or {})
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise GatewayError(f"HomematicIP call {path} failed: {exc}") from exc
        return resp.json() if resp.content else None

    async def fetch_snapshot(self, path: str = CURRENT_STATE_PATH) -> Snapshot:
        data = await self.api_call(path, client_characteristics())
        try:
            return Snapshot.model_validate(data)
        except ValidationError as exc:
            raise GatewayError(f"unexpected snapshot shape from {path}: {exc}") from exc

    # ------------------------------------------------------------------
    # Push feed
    # ------------------------------------------------------------------

    async def subscribe(self, on_message: MessageCallback) -> None:
        """Open the websocket and start delivering frames to *on_message*.

        A failed first connect is logged and retried in the background.
        """
        self._on_message = on_message
        try:
            await self._ws_connect()
        except Exception as exc:
            logger.warning("HomematicIP websocket connect failed (%s); scheduling reconnect.", exc)
            self._schedule_reconnect(self._config.websocket.reconnect_initial)
            return
        self._start_ws_message_loop()

    async def unsubscribe(self) -> None:
        """Stop the feed and release every transport resource."""
        self._shutdown = True

        for task in (self._ws_loop_task, self._ws_reconnect_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._ws_loop_task = None
        self._ws_reconnect_task = None

        await self._ws_close()

        if self._ws_session is not None:
            await self._ws_session.close()
            self._ws_session = None

        if self._client is not None:
            await self._client.aclose()
            self._client = None

        self._on_message = None
        logger.debug("HomematicIP websocket disconnected")

    async def _ws_connect(self) -> None:
        import aiohttp

        if self._url_websocket is None:
            raise GatewayError("session not initialised; call init_session() first")

        if self._ws_session is None or self._ws_session.closed:
            self._ws_session = aiohttp.ClientSession()

        self._ws_connection = await self._ws_session.ws_connect(
            self._url_websocket,
            headers={
                "AUTHTOKEN": self._config.auth_token,
                "CLIENTAUTH": client_auth(self._config.access_point),
            },
            heartbeat=self._config.websocket.heartbeat,
        )
        self._ws_connected = True
        logger.info("HomematicIP websocket connected.")

    async def _ws_close(self) -> None:
        if self._ws_connection is not None and not self._ws_connection.closed:
            await self._ws_connection.close()
        self._ws_connection = None
        self._ws_connected = False

    def _start_ws_message_loop(self) -> None:
        if self._ws_loop_task is not None and not self._ws_loop_task.done():
            return
        self._ws_loop_task = asyncio.ensure_future(self._ws_message_loop())

    async def _ws_message_loop(self) -> None:
        """Read frames one at a time and hand each to the subscriber.

        The subscriber runs to completion before the next frame is read.
        """
        import aiohttp

        try:
            while not self._shutdown:
                if self._ws_connection is None or self._ws_connection.closed:
                    break

                raw = await self._ws_connection.receive()

                if raw.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                    self._deliver(raw.data)

                elif raw.type in (
                    aiohttp.WSMsgType.CLOSE,
                    aiohttp.WSMsgType.CLOSING,
                    aiohttp.WSMsgType.CLOSED,
                    aiohttp.WSMsgType.ERROR,
                ):
                    logger.warning(
                        "HomematicIP websocket closed/error (type=%s). Scheduling reconnect.",
                        raw.type,
                    )
                    break

        except asyncio.CancelledError:
            return
        except Exception as exc:
            logger.warning("HomematicIP websocket message loop error: %s", exc)

        if not self._shutdown:
            self._ws_connected = False
            self._schedule_reconnect(self._config.websocket.reconnect_initial)

    def _deliver(self, data: bytes | str) -> None:
        if self._on_message is None:
            return
        try:
            self._on_message(data)
        except Exception:
            logger.exception("Push subscriber failed on a frame; continuing with the next one")

    def _schedule_reconnect(self, delay: float) -> None:
        if self._shutdown:
            return
        if self._ws_reconnect_task is not None and not self._ws_reconnect_task.done():
            return
        self._ws_reconnect_task = asyncio.ensure_future(self._ws_reconnect_loop(delay))

    async def _ws_reconnect_loop(self, initial_delay: float) -> None:
        """Reconnect with exponential backoff until connected or shut down."""
        delay = initial_delay
        attempt = 0

        try:
            while not self._shutdown and not self._ws_connected:
                jitter = delay * _RECONNECT_JITTER * (2 * random.random() - 1)
                sleep_time = max(0.1, delay + jitter)
                logger.info("HomematicIP reconnect attempt %d in %.1fs", attempt + 1, sleep_time)
                await asyncio.sleep(sleep_time)

                if self._shutdown:
                    break

                try:
                    await self._ws_connect()
                except Exception as exc:
                    logger.warning(
                        "HomematicIP reconnect attempt %d failed: %s", attempt + 1, exc
                    )
                    delay = min(delay * 2, self._config.websocket.reconnect_max)
                    attempt += 1
                    continue

                logger.info("HomematicIP websocket reconnected after %d attempt(s).", attempt + 1)
                self._start_ws_message_loop()
                break

        except asyncio.CancelledError:
            return
