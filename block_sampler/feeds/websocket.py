"""WebSocketEventFeed: decoded system events from a node over JSON-RPC.

The node's RPC endpoint is opened with the ``websockets`` client.  The feed
sends one JSON-RPC 2.0 subscribe request and then receives one
notification per block:

{
    "jsonrpc": "2.0",
    "method": "system_events",
    "params": {
        "subscription": "sub-1",
        "result": {"blockHash": "0x…", "blockNumber": 41, "events": [...]}
    }
}

``result`` is parsed straight into a Batch.  Events arrive already
decoded into their human-readable form; decoding is done by the harness
and is not the feed's concern.

Failure modes (all reported as AdapterError):
    - the endpoint cannot be reached or the handshake fails
    - the subscribe request is answered with a JSON-RPC error
    - a frame is not valid JSON or its result is not a valid Batch
    - the connection closes or the stream ends while subscribed
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import websockets
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed, WebSocketException

from block_sampler.domain.event import Batch
from block_sampler.feeds.base import (
    AdapterError,
    BatchHandler,
    ErrorHandler,
    EventFeed,
    Subscription,
)
from block_sampler.foundation.identifiers import next_request_id
from block_sampler.models.network import NodeInfo

logger = logging.getLogger(__name__)


def _rpc_request(method: str, params: list[Any]) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": next_request_id(), "method": method, "params": params}


class WebSocketEventFeed(EventFeed):
    """Subscribes to a node's per-block event stream.

    Args:
        node: Connection details of the node to observe.
        subscribe_method: JSON-RPC method that opens the event subscription.
        unsubscribe_method: JSON-RPC method that closes it.
        connect_timeout: Seconds allowed for connecting and for the
            subscribe request to be answered.
    """

    def __init__(
        self,
        node: NodeInfo,
        *,
        subscribe_method: str = "system_subscribeEvents",
        unsubscribe_method: str = "system_unsubscribeEvents",
        connect_timeout: float = 10.0,
    ) -> None:
        self._node = node
        self._subscribe_method = subscribe_method
        self._unsubscribe_method = unsubscribe_method
        self._connect_timeout = connect_timeout

    @property
    def feed_name(self) -> str:
        return self._node.name or self._node.ws_uri

    async def subscribe(self, handler: BatchHandler, on_error: ErrorHandler) -> Subscription:
        try:
            ws = await websockets.connect(
                self._node.ws_uri,
                open_timeout=self._connect_timeout,
                max_size=None,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            raise AdapterError(self.feed_name, f"cannot connect to {self._node.ws_uri}: {exc}") from exc

        params: list[Any] = [self._node.user_defined_types] if self._node.user_defined_types else []
        request = _rpc_request(self._subscribe_method, params)
        try:
            await ws.send(json.dumps(request))
            subscription_id = await asyncio.wait_for(
                self._await_reply(ws, request["id"]),
                timeout=self._connect_timeout,
            )
        except AdapterError:
            await ws.close()
            raise
        except (asyncio.TimeoutError, ConnectionClosed) as exc:
            await ws.close()
            raise AdapterError(self.feed_name, f"subscribe request failed: {exc!r}") from exc

        logger.info(
            "Subscribed to %s on %s (subscription=%s)",
            self._subscribe_method, self.feed_name, subscription_id,
        )
        subscription = WebSocketSubscription(
            ws,
            subscription_id,
            handler,
            on_error,
            feed_name=self.feed_name,
            unsubscribe_method=self._unsubscribe_method,
        )
        subscription.start()
        return subscription

    async def _await_reply(self, ws: Any, request_id: int) -> Any:
        while True:
            payload = _decode(self.feed_name, await ws.recv())
            if payload.get("id") != request_id:
                continue
            if "error" in payload:
                raise AdapterError(self.feed_name, f"subscription refused: {payload['error']}")
            if payload.get("result") is None:
                raise AdapterError(self.feed_name, "subscription reply carries no id")
            return payload["result"]


class WebSocketSubscription(Subscription):
    """One live event subscription; owns the socket and the reader task."""

    def __init__(
        self,
        ws: Any,
        subscription_id: Any,
        handler: BatchHandler,
        on_error: ErrorHandler,
        *,
        feed_name: str,
        unsubscribe_method: str,
    ) -> None:
        self._ws = ws
        self._subscription_id = subscription_id
        self._handler = handler
        self._on_error = on_error
        self._feed_name = feed_name
        self._unsubscribe_method = unsubscribe_method
        self._active = True
        self._closed = False
        self._reader: asyncio.Task | None = None

    def start(self) -> None:
        self._reader = asyncio.create_task(self._read_loop())

    @property
    def active(self) -> bool:
        return self._active

    @property
    def subscription_id(self) -> Any:
        return self._subscription_id

    async def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._active = False

        reader = self._reader
        if reader is not None and reader is not asyncio.current_task() and not reader.done():
            reader.cancel()
            await asyncio.gather(reader, return_exceptions=True)

        try:
            await self._ws.send(json.dumps(
                _rpc_request(self._unsubscribe_method, [self._subscription_id])
            ))
        except ConnectionClosed:
            logger.debug("Connection to %s already closed; skipping unsubscribe request", self._feed_name)
        await self._ws.close()
        logger.info("Unsubscribed from %s (subscription=%s)", self._feed_name, self._subscription_id)

    # ── Internals ────────────────────────────────────────────────────────

    async def _read_loop(self) -> None:
        try:
            async for message in self._ws:
                if not self._active:
                    break
                batch = self._parse_notification(message)
                if batch is None:
                    continue
                await self._handler(batch)
                if not self._active:
                    break
            else:
                self._fail(AdapterError(self._feed_name, "event stream ended"))
        except ConnectionClosed as exc:
            self._fail(AdapterError(self._feed_name, f"connection closed: {exc}"))
        except AdapterError as exc:
            self._fail(exc)
        except Exception as exc:
            logger.exception("Event handler on %s raised", self._feed_name)
            self._fail(AdapterError(self._feed_name, f"event handler raised {exc!r}"))

    def _parse_notification(self, message: Any) -> Batch | None:
        payload = _decode(self._feed_name, message)
        params = payload.get("params")
        if not isinstance(params, dict):
            if "error" in payload:
                raise AdapterError(self._feed_name, f"node reported error: {payload['error']}")
            # Replies to our own requests
            return None
        if params.get("subscription") != self._subscription_id:
            return None
        try:
            return Batch.model_validate(params.get("result"))
        except ValidationError as exc:
            raise AdapterError(self._feed_name, f"malformed block notification: {exc}") from exc

    def _fail(self, error: AdapterError) -> None:
        if not self._active:
            return
        self._active = False
        logger.error("Event subscription on %s failed: %s", self._feed_name, error.reason)
        self._on_error(error)


def _decode(feed_name: str, message: Any) -> dict[str, Any]:
    try:
        payload = json.loads(message)
    except (TypeError, json.JSONDecodeError) as exc:
        raise AdapterError(feed_name, f"invalid JSON frame: {exc}") from exc
    if not isinstance(payload, dict):
        raise AdapterError(feed_name, "JSON-RPC frame is not an object")
    return payload
