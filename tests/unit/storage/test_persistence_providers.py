# -*- coding: utf-8 -*-
"""永続化プロバイダー単体テスト."""

from pathlib import Path

import aiofiles
import pytest

from stateflow.config.settings import StateFlowSettings
from stateflow.storage import (
    FilePersistenceProvider,
    MemoryPersistenceProvider,
    PersistenceProvider,
    get_provider,
)


class TestMemoryPersistenceProvider:
    """MemoryPersistenceProvider テストクラス."""

    @pytest.mark.asyncio
    async def test_set_and_get(self) -> None:
        """値を保存・取得できること."""
        provider = MemoryPersistenceProvider()

        assert await provider.set("stateflow:a", b'{"x": 1}') is True
        assert await provider.get("stateflow:a") == b'{"x": 1}'
        assert provider.write_count == 1

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self) -> None:
        """存在しないキーで None を返すこと."""
        assert await MemoryPersistenceProvider().get("missing") is None

    @pytest.mark.asyncio
    async def test_keys_and_delete(self) -> None:
        """キー一覧と削除が動作すること."""
        provider = MemoryPersistenceProvider()
        await provider.set("stateflow:a", b"1")
        await provider.set("stateflow:b", b"2")
        await provider.set("other:c", b"3")

        assert await provider.keys("stateflow:*") == ["stateflow:a", "stateflow:b"]
        assert await provider.delete("stateflow:a") is True
        assert await provider.delete("stateflow:a") is False
        assert await provider.exists("stateflow:a") is False

    def test_satisfies_protocol(self) -> None:
        """PersistenceProvider プロトコルを満たすこと."""
        assert isinstance(MemoryPersistenceProvider(), PersistenceProvider)


class TestFilePersistenceProvider:
    """FilePersistenceProvider テストクラス."""

    @pytest.mark.asyncio
    async def test_set_and_get(self, tmp_path: Path) -> None:
        """ファイルに保存・取得できること."""
        provider = FilePersistenceProvider(tmp_path / "store")

        assert await provider.set("stateflow:app.CounterState", b'{"count": 7}') is True
        assert await provider.get("stateflow:app.CounterState") == b'{"count": 7}'
        assert provider.path_for("stateflow:app.CounterState").exists()

    @pytest.mark.asyncio
    async def test_key_is_escaped_in_filename(self, tmp_path: Path) -> None:
        """キーがファイル名として安全にエスケープされること."""
        provider = FilePersistenceProvider(tmp_path)
        await provider.set("ns:a/b", b"1")

        path = provider.path_for("ns:a/b")
        assert path.parent == tmp_path
        assert "/" not in path.name
        assert provider.list_keys() == ["ns:a/b"]

    @pytest.mark.asyncio
    async def test_overwrite_leaves_no_temp_file(self, tmp_path: Path) -> None:
        """上書き後に一時ファイルが残らないこと."""
        provider = FilePersistenceProvider(tmp_path)
        await provider.set("k", b"1")
        await provider.set("k", b"2")

        assert await provider.get("k") == b"2"
        assert [p.name for p in tmp_path.iterdir()] == [provider.path_for("k").name]

    @pytest.mark.asyncio
    async def test_async_io_uses_aiofiles(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """非同期の読み書きが aiofiles 経由で行われること."""
        opened: list[tuple[str, str]] = []
        original_open = aiofiles.open

        def recording_open(file, mode="r", *args, **kwargs):
            opened.append((Path(file).name, mode))
            return original_open(file, mode, *args, **kwargs)

        monkeypatch.setattr(aiofiles, "open", recording_open)
        provider = FilePersistenceProvider(tmp_path / "nested" / "store")
        name = provider.path_for("k").name

        await provider.set("k", b"payload")
        assert await provider.get("k") == b"payload"

        assert opened == [(f"{name}.tmp", "wb"), (name, "rb")]
        assert provider.read_sync("k") == b"payload"

    @pytest.mark.asyncio
    async def test_missing_directory(self, tmp_path: Path) -> None:
        """ディレクトリが存在しない場合は空として扱うこと."""
        provider = FilePersistenceProvider(tmp_path / "missing")

        assert await provider.get("k") is None
        assert await provider.keys() == []

    @pytest.mark.asyncio
    async def test_delete(self, tmp_path: Path) -> None:
        """削除できること."""
        provider = FilePersistenceProvider(tmp_path)
        await provider.set("k", b"1")

        assert await provider.delete("k") is True
        assert await provider.delete("k") is False
        stats = await provider.get_stats()
        assert stats["key_count"] == 0


class TestGetProvider:
    """get_provider テストクラス."""

    def test_memory_backend(self) -> None:
        """memory バックエンドを選択できること."""
        settings = StateFlowSettings(_env_file=None, persistence_backend="memory")

        assert isinstance(get_provider(settings), MemoryPersistenceProvider)

    def test_file_backend(self, tmp_path: Path) -> None:
        """file バックエンドを選択できること."""
        settings = StateFlowSettings(
            _env_file=None,
            persistence_backend="file",
            persistence_dir=str(tmp_path),
        )
        provider = get_provider(settings)

        assert isinstance(provider, FilePersistenceProvider)
        assert provider.directory == tmp_path

    def test_file_backend_requires_directory(self) -> None:
        """file バックエンドでディレクトリ未設定の場合 ValueError."""
        settings = StateFlowSettings(_env_file=None, persistence_backend="file")

        with pytest.raises(ValueError):
            get_provider(settings)

    def test_unknown_backend(self) -> None:
        """不明なバックエンドで ValueError."""
        settings = StateFlowSettings(_env_file=None, persistence_backend="redis")

        with pytest.raises(ValueError):
            get_provider(settings)
