"""外部ミラー（デバッグツールブリッジ）.

Example:
    >>> from stateflow.mirror import get_bridge
    >>> bridge = get_bridge()  # 設定から選択（デフォルトは NullMirrorBridge）
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from stateflow.mirror.bridge import (
    MemoryMirrorBridge,
    MirrorBridge,
    MirrorEvent,
    NullMirrorBridge,
)
from stateflow.mirror.http_bridge import HttpMirrorBridge


if TYPE_CHECKING:
    from stateflow.config.settings import StateFlowSettings


def get_bridge(settings: StateFlowSettings | None = None) -> MirrorBridge:
    """設定からミラーブリッジを取得.

    ``mirror_enabled`` かつ ``mirror_url`` が設定されている場合のみ HTTP ブリッジ。
    """
    from stateflow.config.settings import get_settings

    settings = settings or get_settings()
    if settings.mirror_enabled and settings.mirror_url:
        return HttpMirrorBridge(settings.mirror_url, timeout=settings.mirror_timeout)
    return NullMirrorBridge()


__all__ = [
    "HttpMirrorBridge",
    "MemoryMirrorBridge",
    "MirrorBridge",
    "MirrorEvent",
    "NullMirrorBridge",
    "get_bridge",
]
