from __future__ import annotations

import asyncio
import json
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

import websockets
from loguru import logger
from websockets.exceptions import ConnectionClosed, InvalidHandshake

from wallet_tracker.chains.signatures import SignatureFetcher
from wallet_tracker.config import AppSettings

SUBSCRIBE_ID = 1
SEEN_SIGNATURES = 500

Handler = Callable[[str], Awaitable[Any]]

_ACTIVE_WALLETS: set[str] = set()


class State(str, Enum):
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    DISPATCHING = "dispatching"
    RECONNECTING = "reconnecting"
    STOPPED = "stopped"


def subscribe_request(wallet: str) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": SUBSCRIBE_ID,
        "method": "accountSubscribe",
        "params": [wallet, {"encoding": "jsonParsed", "commitment": "confirmed"}],
    }


def default_connect(url: str):
    # Keepalive is driven by our own heartbeat so a missed pong never closes the stream
    return websockets.connect(url, ping_interval=None, open_timeout=20, close_timeout=5)


@dataclass
class WalletSubscription:
    """Account-change subscription for one wallet that turns notifications into new signatures.

    Each ``accountNotification`` schedules a lookup of the wallet's latest
    signature; a signature not dispatched before is handed to ``handler``.
    Lookups run one at a time on a dedicated task, and notifications that
    arrive meanwhile collapse into a single follow-up lookup.

    The connection is reopened after every close or error, forever unless
    ``settings.max_reconnects`` is set.
    """

    settings: AppSettings
    wallet: str
    fetcher: SignatureFetcher
    handler: Handler
    connect: Callable[[str], Any] = default_connect
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep

    last_signature: str | None = None
    subscription_id: int | None = None
    failures: int = 0
    reconnects: int = 0
    subscribe_requests: int = 0
    notifications: int = 0
    _conn_state: State = State.CONNECTING
    _dispatching: bool = False
    _pending: asyncio.Event | None = None
    _seen: deque = field(default_factory=lambda: deque(maxlen=SEEN_SIGNATURES))

    @property
    def state(self) -> State:
        if self._conn_state is State.SUBSCRIBED and self._dispatching:
            return State.DISPATCHING
        return self._conn_state

    async def run(self) -> None:
        if self.wallet in _ACTIVE_WALLETS:
            raise RuntimeError(f"A subscription for {self.wallet} is already running")
        _ACTIVE_WALLETS.add(self.wallet)
        self._pending = asyncio.Event()
        dispatcher = asyncio.create_task(self._dispatch_loop())
        logger.info("Tracking wallet {}", self.wallet)
        try:
            while True:
                self._conn_state = State.CONNECTING
                await self._session()
                self.failures += 1
                if self.failures % max(1, self.settings.failure_alert_every) == 0:
                    logger.error(
                        "Subscription for {} lost {} times in a row; provider may be down",
                        self.wallet,
                        self.failures,
                    )
                if (
                    self.settings.max_reconnects is not None
                    and self.reconnects >= self.settings.max_reconnects
                ):
                    logger.error("Giving up after {} reconnect attempts", self.reconnects)
                    break
                self._conn_state = State.RECONNECTING
                delay = self.next_delay()
                logger.warning("WebSocket disconnected - reconnecting in {}s", delay)
                await self.sleep(delay)
                self.reconnects += 1
        finally:
            self._conn_state = State.STOPPED
            dispatcher.cancel()
            await asyncio.gather(dispatcher, return_exceptions=True)
            _ACTIVE_WALLETS.discard(self.wallet)
            logger.info("Stopped tracking {}", self.wallet)

    def next_delay(self) -> float:
        base = self.settings.reconnect_delay_sec
        cap = self.settings.reconnect_max_delay_sec
        if cap <= base:
            return base
        return min(cap, base * 2 ** max(0, self.failures - 1))

    async def _session(self) -> None:
        """One connection lifetime. Returns when the transport closes or fails."""
        try:
            async with self.connect(self.settings.ws_url) as ws:
                self._conn_state = State.SUBSCRIBED
                await ws.send(json.dumps(subscribe_request(self.wallet)))
                self.subscribe_requests += 1
                logger.info("WebSocket connected - watching for new transactions...")
                heartbeat = asyncio.create_task(self._heartbeat(ws))
                try:
                    async for raw in ws:
                        self.handle_message(raw)
                finally:
                    heartbeat.cancel()
                    await asyncio.gather(heartbeat, return_exceptions=True)
        except InvalidHandshake as e:
            # 401/429 from the provider surface here and are retried like any other failure
            logger.error("WebSocket handshake rejected: {}", e)
        except ConnectionClosed as e:
            logger.warning("WebSocket closed: {}", e)
        except (OSError, asyncio.TimeoutError) as e:
            logger.warning("WebSocket connection failed: {!r}", e)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("WebSocket error: {}", e)

    def handle_message(self, raw: str | bytes) -> str:
        try:
            msg = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed WebSocket message: {!r}", raw[:200])
            return "malformed"
        if not isinstance(msg, dict):
            logger.warning("Ignoring unexpected WebSocket payload: {!r}", msg)
            return "malformed"
        if msg.get("method") == "accountNotification":
            self.notifications += 1
            if self._pending is not None:
                self._pending.set()
            return "notification"
        if msg.get("id") == SUBSCRIBE_ID and "result" in msg:
            self.subscription_id = msg["result"]
            self.failures = 0
            logger.info("Subscribed to {} (subscription {})", self.wallet, self.subscription_id)
            return "ack"
        if "error" in msg:
            logger.warning("Provider rejected subscription request: {}", msg["error"])
            return "error"
        logger.debug("Ignoring WebSocket message: {}", msg)
        return "ignored"

    async def _heartbeat(self, ws) -> None:
        while True:
            await asyncio.sleep(self.settings.heartbeat_interval_sec)
            try:
                await ws.ping()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.debug("Heartbeat ping failed: {!r}", e)

    async def _dispatch_loop(self) -> None:
        while True:
            await self._pending.wait()
            self._pending.clear()
            self._dispatching = True
            try:
                await self.dispatch_once()
            finally:
                self._dispatching = False

    async def dispatch_once(self) -> str | None:
        try:
            sig = await self.fetcher.latest(self.wallet)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Error fetching latest signature for {}: {!r}", self.wallet, e)
            return None
        if not sig:
            return None
        if sig == self.last_signature or sig in self._seen:
            logger.debug("Signature {} already dispatched", sig)
            return None
        self.last_signature = sig
        self._seen.append(sig)
        logger.info("New transaction detected: {}", sig)
        try:
            await self.handler(sig)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Error processing transaction {}: {}", sig, e)
        return sig
