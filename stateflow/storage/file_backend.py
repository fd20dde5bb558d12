"""ファイル永続化プロバイダー.

キーごとに1つの JSON ファイルをディレクトリに保存する（LocalStorage 相当）。
"""

from __future__ import annotations

import fnmatch
from pathlib import Path
from typing import Any
from urllib.parse import quote, unquote

from stateflow.storage.backend import BasePersistenceProvider


FILE_SUFFIX = ".json"


class FilePersistenceProvider(BasePersistenceProvider):
    """ファイルベースの永続化プロバイダー.

    書き込みは一時ファイル経由で置換し、途中状態のファイルを残さない。
    非同期 I/O は aiofiles を使い、CLI 向けの同期読み出しも提供する。

    Example:
        >>> provider = FilePersistenceProvider("./.stateflow")
        >>> await provider.set("stateflow:app.CounterState", b"{}")
    """

    backend_name = "file"

    def __init__(self, directory: str | Path) -> None:
        """初期化.

        Args:
            directory: 保存先ディレクトリ（初回書き込み時に作成）
        """
        super().__init__()
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        """保存先ディレクトリ."""
        return self._directory

    def path_for(self, key: str) -> Path:
        """キーに対応するファイルパス."""
        return self._directory / f"{quote(key, safe='')}{FILE_SUFFIX}"

    async def get(self, key: str) -> bytes | None:
        """値を取得."""
        import aiofiles

        try:
            async with aiofiles.open(self.path_for(key), "rb") as f:
                return await f.read()
        except FileNotFoundError:
            return None

    async def set(self, key: str, value: bytes) -> bool:
        """値を設定.

        一時ファイルに書き出してから置換する。
        """
        import aiofiles
        import aiofiles.os

        path = self.path_for(key)
        await aiofiles.os.makedirs(path.parent, exist_ok=True)
        tmp_path = path.with_name(f"{path.name}.tmp")
        async with aiofiles.open(tmp_path, "wb") as f:
            await f.write(bytes(value))
        await aiofiles.os.replace(tmp_path, path)
        return True

    async def delete(self, key: str) -> bool:
        """値を削除."""
        import aiofiles.os

        try:
            await aiofiles.os.remove(self.path_for(key))
        except FileNotFoundError:
            return False
        return True

    async def keys(self, pattern: str = "*") -> list[str]:
        """キー一覧を取得."""
        return self.list_keys(pattern)

    def list_keys(self, pattern: str = "*") -> list[str]:
        """キー一覧を同期取得（CLI 用）."""
        if not self._directory.is_dir():
            return []
        keys = [
            unquote(path.name[: -len(FILE_SUFFIX)])
            for path in self._directory.iterdir()
            if path.is_file() and path.name.endswith(FILE_SUFFIX)
        ]
        return sorted(key for key in keys if fnmatch.fnmatch(key, pattern))

    def read_sync(self, key: str) -> bytes | None:
        """値を同期取得（CLI 用）."""
        return self._read(self.path_for(key))

    async def get_stats(self) -> dict[str, Any]:
        """統計情報を取得."""
        keys = self.list_keys()
        return {
            "backend": self.backend_name,
            "directory": str(self._directory),
            "key_count": len(keys),
        }

    def _read(self, path: Path) -> bytes | None:
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
