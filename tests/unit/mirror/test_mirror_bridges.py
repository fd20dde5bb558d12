# -*- coding: utf-8 -*-
"""ミラーブリッジ単体テスト."""

import json

import httpx
import pytest

from stateflow.config.settings import StateFlowSettings
from stateflow.mirror import (
    HttpMirrorBridge,
    MemoryMirrorBridge,
    MirrorBridge,
    MirrorEvent,
    NullMirrorBridge,
    get_bridge,
)


class TestMirrorEvent:
    """MirrorEvent テストクラス."""

    def test_action_event(self) -> None:
        """アクションイベントを作成できること."""
        event = MirrorEvent(
            kind="action",
            action_name="IncrementCount",
            payload={"amount": 1},
            full_state={"stateflow:app.CounterState": {"count": 1}},
        )

        assert event.kind == "action"
        assert event.full_state["stateflow:app.CounterState"] == {"count": 1}

    def test_invalid_kind(self) -> None:
        """不正な種別を拒否すること."""
        with pytest.raises(ValueError):
            MirrorEvent(kind="unknown")  # type: ignore[arg-type]


class TestLocalBridges:
    """NullMirrorBridge / MemoryMirrorBridge テストクラス."""

    @pytest.mark.asyncio
    async def test_null_bridge_is_disabled(self) -> None:
        """NullMirrorBridge は常に無効であること."""
        bridge = NullMirrorBridge()

        assert await bridge.probe() is False
        assert await bridge.send(MirrorEvent(kind="init")) is False

    @pytest.mark.asyncio
    async def test_memory_bridge_records_events(self) -> None:
        """MemoryMirrorBridge がイベントを記録すること."""
        bridge = MemoryMirrorBridge()
        await bridge.send(MirrorEvent(kind="init"))
        await bridge.send(MirrorEvent(kind="action", action_name="A"))

        assert [e.kind for e in bridge.events] == ["init", "action"]
        assert bridge.action_names() == ["A"]

    @pytest.mark.asyncio
    async def test_memory_bridge_limit(self) -> None:
        """最大件数を超えると古いイベントから破棄されること."""
        bridge = MemoryMirrorBridge(max_events=2)
        for name in ("A", "B", "C"):
            await bridge.send(MirrorEvent(kind="action", action_name=name))

        assert bridge.action_names() == ["B", "C"]

    def test_bridges_satisfy_protocol(self) -> None:
        """MirrorBridge プロトコルを満たすこと."""
        assert isinstance(NullMirrorBridge(), MirrorBridge)
        assert isinstance(MemoryMirrorBridge(), MirrorBridge)
        assert isinstance(HttpMirrorBridge("http://localhost:1"), MirrorBridge)


class TestHttpMirrorBridge:
    """HttpMirrorBridge テストクラス."""

    @pytest.mark.asyncio
    async def test_probe_and_send(self) -> None:
        """probe と send が HTTP で行われること."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"ok": True})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        bridge = HttpMirrorBridge("http://devtools.local/", client=client)

        assert await bridge.probe() is True
        assert await bridge.send(MirrorEvent(kind="action", action_name="A")) is True

        assert [r.method for r in requests] == ["GET", "POST"]
        assert str(requests[0].url) == "http://devtools.local/health"
        assert str(requests[1].url) == "http://devtools.local/events"
        assert json.loads(requests[1].content)["action_name"] == "A"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_probe_unavailable(self) -> None:
        """接続できない場合 probe が False を返すこと."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        bridge = HttpMirrorBridge("http://devtools.local", client=client)

        assert await bridge.probe() is False
        await client.aclose()

    @pytest.mark.asyncio
    async def test_send_error_status_raises(self) -> None:
        """エラー応答で send が例外を送出すること."""
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500)))
        bridge = HttpMirrorBridge("http://devtools.local", client=client)

        with pytest.raises(httpx.HTTPStatusError):
            await bridge.send(MirrorEvent(kind="init"))
        await client.aclose()


class TestGetBridge:
    """get_bridge テストクラス."""

    def test_default_is_null(self) -> None:
        """既定では NullMirrorBridge であること."""
        assert isinstance(get_bridge(StateFlowSettings(_env_file=None)), NullMirrorBridge)

    def test_enabled_with_url(self) -> None:
        """有効化と URL 設定で HttpMirrorBridge になること."""
        settings = StateFlowSettings(
            _env_file=None,
            mirror_enabled=True,
            mirror_url="http://localhost:8765",
        )

        assert isinstance(get_bridge(settings), HttpMirrorBridge)

    def test_enabled_without_url(self) -> None:
        """URL 未設定の場合は NullMirrorBridge であること."""
        settings = StateFlowSettings(_env_file=None, mirror_enabled=True)

        assert isinstance(get_bridge(settings), NullMirrorBridge)
