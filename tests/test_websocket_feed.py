"""Tests for the WebSocket JSON-RPC event feed against a local fake node."""

from __future__ import annotations

import asyncio
import json
import socket
from typing import Optional

import pytest
import websockets

from block_sampler.core.sampler import BoundedSampler, SamplerConfig
from block_sampler.feeds.base import AdapterError
from block_sampler.feeds.websocket import WebSocketEventFeed
from block_sampler.models.network import NodeInfo

from tests.test_event import _event_dict


# ── Fake node ────────────────────────────────────────────────────────────────

class _FakeNode:
    """Answers the subscribe request and streams one notification per block."""

    def __init__(
        self,
        paras: list[Optional[str]],
        *,
        refuse: bool = False,
        close_after: Optional[int] = None,
        garbage_at: Optional[int] = None,
    ) -> None:
        self.paras = paras
        self.refuse = refuse
        self.close_after = close_after
        self.garbage_at = garbage_at
        self.requests: list[dict] = []
        self.unsubscribed = asyncio.Event()

    async def handler(self, ws) -> None:
        async for message in ws:
            request = json.loads(message)
            self.requests.append(request)
            if request["method"] == "system_subscribeEvents":
                await self._on_subscribe(ws, request)
                if self.close_after is not None:
                    await ws.close()
                    return
            elif request["method"] == "system_unsubscribeEvents":
                self.unsubscribed.set()

    async def _on_subscribe(self, ws, request: dict) -> None:
        if self.refuse:
            await ws.send(json.dumps({
                "jsonrpc": "2.0", "id": request["id"],
                "error": {"code": -32601, "message": "Method not found"},
            }))
            return
        await ws.send(json.dumps({"jsonrpc": "2.0", "id": request["id"], "result": "sub-1"}))
        # Noise on another subscription is ignored by the feed
        await ws.send(json.dumps({
            "jsonrpc": "2.0", "method": "system_events",
            "params": {"subscription": "other", "result": {"events": []}},
        }))
        for n, para in enumerate(self.paras, 1):
            if self.close_after is not None and n > self.close_after:
                return
            if self.garbage_at == n:
                await ws.send("{not json")
                return
            events = [_event_dict(para_id=para, relay_parent=f"0x{n:02x}")] if para else []
            await ws.send(json.dumps({
                "jsonrpc": "2.0",
                "method": "system_events",
                "params": {
                    "subscription": "sub-1",
                    "result": {"blockHash": f"0x{n:064x}", "blockNumber": n, "events": events},
                },
            }))


def _node_info(port: int, **kw) -> NodeInfo:
    return NodeInfo(name="alice", ws_uri=f"ws://127.0.0.1:{port}", **kw)


def _free_port() -> int:
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


# ── Tests ────────────────────────────────────────────────────────────────────


class TestWebSocketEventFeed:
    @pytest.mark.asyncio
    async def test_full_window_over_websocket(self) -> None:
        node = _FakeNode(["2,000", "2,001", "2,000", None, "2,000"])
        async with websockets.serve(node.handler, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            feed = WebSocketEventFeed(_node_info(port), connect_timeout=2.0)
            result = await BoundedSampler(SamplerConfig(batch_limit=4, timeout=5.0)).run(feed)
            await asyncio.wait_for(node.unsubscribed.wait(), timeout=2.0)

        assert result.counts == {"2000": 2, "2001": 1}
        assert result.batches_seen == 4
        assert result.feed_name == "alice"
        unsubscribe = node.requests[-1]
        assert unsubscribe["method"] == "system_unsubscribeEvents"
        assert unsubscribe["params"] == ["sub-1"]

    @pytest.mark.asyncio
    async def test_user_defined_types_sent_as_params(self) -> None:
        node = _FakeNode(["2,000"])
        types = {"ParaId": "u32"}
        async with websockets.serve(node.handler, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            feed = WebSocketEventFeed(_node_info(port, user_defined_types=types), connect_timeout=2.0)
            await BoundedSampler(SamplerConfig(batch_limit=1, timeout=5.0)).run(feed)
            await asyncio.wait_for(node.unsubscribed.wait(), timeout=2.0)

        assert node.requests[0]["params"] == [types]

    @pytest.mark.asyncio
    async def test_connection_refused(self) -> None:
        feed = WebSocketEventFeed(_node_info(_free_port()), connect_timeout=2.0)
        with pytest.raises(AdapterError) as info:
            await BoundedSampler().run(feed)
        assert "cannot connect" in info.value.reason

    @pytest.mark.asyncio
    async def test_subscription_refused(self) -> None:
        node = _FakeNode([], refuse=True)
        async with websockets.serve(node.handler, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            feed = WebSocketEventFeed(_node_info(port), connect_timeout=2.0)
            with pytest.raises(AdapterError) as info:
                await BoundedSampler().run(feed)
        assert "subscription refused" in info.value.reason

    @pytest.mark.asyncio
    async def test_stream_ending_mid_window_is_adapter_error(self) -> None:
        node = _FakeNode(["2,000"] * 12, close_after=3)
        async with websockets.serve(node.handler, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            feed = WebSocketEventFeed(_node_info(port), connect_timeout=2.0)
            with pytest.raises(AdapterError):
                await BoundedSampler(SamplerConfig(timeout=5.0)).run(feed)

    @pytest.mark.asyncio
    async def test_invalid_frame_is_adapter_error(self) -> None:
        node = _FakeNode(["2,000"] * 12, garbage_at=2)
        async with websockets.serve(node.handler, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            feed = WebSocketEventFeed(_node_info(port), connect_timeout=2.0)
            with pytest.raises(AdapterError) as info:
                await BoundedSampler(SamplerConfig(timeout=5.0)).run(feed)
        assert "invalid JSON" in info.value.reason

    @pytest.mark.asyncio
    async def test_unsubscribe_is_idempotent(self) -> None:
        node = _FakeNode([])
        async with websockets.serve(node.handler, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            feed = WebSocketEventFeed(_node_info(port), connect_timeout=2.0)
            received = []

            async def handler(batch):
                received.append(batch)

            subscription = await feed.subscribe(handler, lambda exc: None)
            await subscription.unsubscribe()
            await subscription.unsubscribe()
            await asyncio.wait_for(node.unsubscribed.wait(), timeout=2.0)

        assert subscription.active is False
        assert sum(1 for r in node.requests if r["method"] == "system_unsubscribeEvents") == 1

    @pytest.mark.asyncio
    async def test_handler_exception_is_reported_as_adapter_error(self) -> None:
        node = _FakeNode(["2,000", "2,000"])
        async with websockets.serve(node.handler, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            feed = WebSocketEventFeed(_node_info(port), connect_timeout=2.0)
            errors: asyncio.Queue[AdapterError] = asyncio.Queue()

            async def handler(batch):
                raise RuntimeError("boom")

            subscription = await feed.subscribe(handler, errors.put_nowait)
            error = await asyncio.wait_for(errors.get(), timeout=2.0)
            await subscription.unsubscribe()

        assert "boom" in error.reason
        assert subscription.active is False
        assert errors.empty()
