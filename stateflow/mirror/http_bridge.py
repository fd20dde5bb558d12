"""HTTP ミラーブリッジ.

外部デバッグツール（Redux DevTools 互換のリレーサーバー等）へ
ミラーイベントを JSON で POST する。
"""

from __future__ import annotations

import logging

import httpx

from stateflow.mirror.bridge import MirrorEvent


logger = logging.getLogger(__name__)


class HttpMirrorBridge:
    """HTTP ミラーブリッジ.

    - probe: ``{url}/health`` へ GET し、2xx なら利用可能
    - send: ``{url}/events`` へイベントを POST

    Example:
        >>> bridge = HttpMirrorBridge("http://localhost:8765")
        >>> store = Store(mirror=bridge, mirror_enabled=True)
    """

    def __init__(
        self,
        url: str,
        timeout: float = 2.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """初期化.

        Args:
            url: ベース URL
            timeout: タイムアウト（秒）
            client: HTTP クライアント（テスト用に注入可能）
        """
        self._url = url.rstrip("/")
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """HTTP クライアント取得."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        """リソース解放."""
        if self._client and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def probe(self) -> bool:
        """ブリッジが利用可能か確認."""
        client = await self._get_client()
        try:
            response = await client.get(f"{self._url}/health")
        except httpx.HTTPError as e:
            logger.debug("Mirror probe failed: %s", e)
            return False
        return response.is_success

    async def send(self, event: MirrorEvent) -> bool:
        """イベントを送信."""
        client = await self._get_client()
        response = await client.post(
            f"{self._url}/events",
            content=event.model_dump_json(),
            headers={"Content-Type": "application/json"},
        )
        response.raise_for_status()
        return True
