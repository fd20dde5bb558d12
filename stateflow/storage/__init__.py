# -*- coding: utf-8 -*-
"""永続化プロバイダー.

状態スナップショット（エンベロープ）を保存するキー/バイト列ストレージ。

Backends:
- MemoryPersistenceProvider: インメモリ（開発/テスト用）
- FilePersistenceProvider: JSON ファイル（LocalStorage 相当）

Example:
    >>> from stateflow.storage import get_provider
    >>>
    >>> # 設定から自動選択
    >>> provider = get_provider()
    >>>
    >>> await provider.set("stateflow:app.CounterState", b"{...}")
    >>> data = await provider.get("stateflow:app.CounterState")
"""

from stateflow.storage.backend import (
    BasePersistenceProvider,
    PersistenceProvider,
    get_provider,
)
from stateflow.storage.file_backend import FilePersistenceProvider
from stateflow.storage.memory_backend import MemoryPersistenceProvider


__all__ = [
    "BasePersistenceProvider",
    "FilePersistenceProvider",
    "MemoryPersistenceProvider",
    "PersistenceProvider",
    "get_provider",
]
