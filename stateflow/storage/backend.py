"""永続化プロバイダー協議.

ストアが依存するキー/バイト列の永続ストレージインターフェースを定義。
ストアは実装ではなくこの協議にのみ依存する。
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable


if TYPE_CHECKING:
    from stateflow.config.settings import StateFlowSettings


logger = logging.getLogger(__name__)


@runtime_checkable
class PersistenceProvider(Protocol):
    """永続化プロバイダープロトコル.

    キーは状態型ごとに安定（名前空間付き状態名）。
    失敗はストア側でログに記録され、処理は継続される。

    Implementations:
    - MemoryPersistenceProvider: インメモリ（開発/テスト用）
    - FilePersistenceProvider: ディレクトリ内の JSON ファイル
    """

    async def get(self, key: str) -> bytes | None:
        """値を取得.

        Args:
            key: キー

        Returns:
            値（存在しない場合はNone）
        """
        ...

    async def set(self, key: str, value: bytes) -> bool:
        """値を設定.

        Args:
            key: キー
            value: シリアライズ済みバイト列

        Returns:
            成功した場合True
        """
        ...


class BasePersistenceProvider(ABC):
    """永続化プロバイダー基底クラス.

    共通の実装を提供する抽象基底クラス。
    """

    backend_name: str = "base"

    def __init__(self) -> None:
        """初期化."""
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """値を取得."""

    @abstractmethod
    async def set(self, key: str, value: bytes) -> bool:
        """値を設定."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """値を削除."""

    @abstractmethod
    async def keys(self, pattern: str = "*") -> list[str]:
        """キー一覧を取得（*でワイルドカード）."""

    async def exists(self, key: str) -> bool:
        """キーの存在確認."""
        return await self.get(key) is not None

    async def get_stats(self) -> dict[str, Any]:
        """統計情報を取得."""
        return {
            "backend": self.backend_name,
            "key_count": len(await self.keys()),
        }


def get_provider(settings: StateFlowSettings | None = None) -> BasePersistenceProvider:
    """設定から永続化プロバイダーを取得.

    Args:
        settings: 設定（None の場合はグローバル設定）

    Returns:
        永続化プロバイダー

    Raises:
        ValueError: 不明なバックエンド名、またはディレクトリ未設定の場合
    """
    from stateflow.config.settings import get_settings
    from stateflow.storage.file_backend import FilePersistenceProvider
    from stateflow.storage.memory_backend import MemoryPersistenceProvider

    settings = settings or get_settings()
    backend = settings.persistence_backend.lower()

    if backend == "memory":
        return MemoryPersistenceProvider()

    if backend == "file":
        if not settings.persistence_dir:
            msg = "persistence_dir is required for the file backend"
            raise ValueError(msg)
        return FilePersistenceProvider(settings.persistence_dir)

    msg = f"Unknown persistence backend: {backend}"
    raise ValueError(msg)


__all__ = [
    "BasePersistenceProvider",
    "PersistenceProvider",
    "get_provider",
]
