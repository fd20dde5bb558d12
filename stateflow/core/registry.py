"""統一レジストリ基類 - 状態/ハンドラー/バリデーター共用.

このモジュールは型をキーとするレジストリパターンを提供します：
- 型安全な登録・取得
- スレッドセーフな操作
- 登録順の保持

設計原則：
- 簡単：シンプルな API
- 柔軟：ジェネリック対応
- 拡張：サブクラスでカスタマイズ可能
"""

from __future__ import annotations

import logging
import threading
from typing import Generic, TypeVar


# 型変数定義
T = TypeVar("T")


class TypeRegistry(Generic[T]):
    """型をキーとする汎用レジストリ.

    Example:
        >>> registry: TypeRegistry[str] = TypeRegistry()
        >>> registry.register(int, "integer")
        >>> registry.get_item(int)
        'integer'
    """

    def __init__(self) -> None:
        """レジストリを初期化."""
        self._items: dict[type, T] = {}
        self._lock = threading.RLock()
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def register(self, key: type, item: T) -> None:
        """アイテムを登録.

        Args:
            key: キーとなる型
            item: 登録するアイテム

        Raises:
            TypeError: キーが型でない場合、またはアイテムが None の場合
        """
        if not isinstance(key, type):
            msg = f"Key must be a type, got {type(key).__name__}"
            raise TypeError(msg)
        if item is None:
            msg = "Item cannot be None"
            raise TypeError(msg)

        with self._lock:
            if key in self._items:
                self._logger.warning("Overwriting existing item: %s", key.__qualname__)
            self._items[key] = item
            self._logger.debug("Registered: %s", key.__qualname__)

    def get_item(self, key: type) -> T | None:
        """アイテムを取得（存在しない場合 None）."""
        with self._lock:
            return self._items.get(key)

    def unregister(self, key: type) -> bool:
        """アイテムを削除.

        Returns:
            削除成功した場合 True
        """
        with self._lock:
            if key in self._items:
                del self._items[key]
                self._logger.debug("Unregistered: %s", key.__qualname__)
                return True
            return False

    def keys(self) -> list[type]:
        """登録済みの型一覧（登録順）."""
        with self._lock:
            return list(self._items.keys())

    def values(self) -> list[T]:
        """登録済みアイテム一覧（登録順）."""
        with self._lock:
            return list(self._items.values())

    def clear(self) -> None:
        """全アイテムを削除."""
        with self._lock:
            self._items.clear()
            self._logger.debug("Registry cleared")

    def __len__(self) -> int:
        """登録済みアイテム数を取得."""
        with self._lock:
            return len(self._items)

    def __contains__(self, key: object) -> bool:
        """アイテムの存在確認."""
        with self._lock:
            return key in self._items


__all__ = ["TypeRegistry"]
