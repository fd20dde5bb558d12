"""メモリ永続化プロバイダー.

開発・テスト用のインメモリ実装。
"""

from __future__ import annotations

import fnmatch
from typing import Any

from stateflow.storage.backend import BasePersistenceProvider


class MemoryPersistenceProvider(BasePersistenceProvider):
    """メモリベースの永続化プロバイダー.

    開発・テスト環境向け。プロセス終了でデータは消失。
    同じインスタンスを複数のストアで共有すると再起動を模擬できる。

    Example:
        >>> provider = MemoryPersistenceProvider()
        >>> await provider.set("stateflow:app.CounterState", b"{}")
        >>> data = await provider.get("stateflow:app.CounterState")
    """

    backend_name = "memory"

    def __init__(self) -> None:
        """初期化."""
        super().__init__()
        self._data: dict[str, bytes] = {}
        self.write_count = 0

    async def get(self, key: str) -> bytes | None:
        """値を取得."""
        return self._data.get(key)

    async def set(self, key: str, value: bytes) -> bool:
        """値を設定."""
        self._data[key] = bytes(value)
        self.write_count += 1
        return True

    async def delete(self, key: str) -> bool:
        """値を削除."""
        if key in self._data:
            del self._data[key]
            return True
        return False

    async def keys(self, pattern: str = "*") -> list[str]:
        """キー一覧を取得."""
        return sorted(key for key in self._data if fnmatch.fnmatch(key, pattern))

    async def get_stats(self) -> dict[str, Any]:
        """統計情報を取得."""
        return {
            "backend": self.backend_name,
            "key_count": len(self._data),
            "write_count": self.write_count,
            "total_size": sum(len(v) for v in self._data.values()),
        }
