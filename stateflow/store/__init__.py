"""状態ストア: ストア本体、ディスパッチャー、スコープ付き参照機能."""

from stateflow.store.context import StoreContext
from stateflow.store.dispatcher import Dispatcher
from stateflow.store.store import Store


__all__ = [
    "Dispatcher",
    "Store",
    "StoreContext",
]
