"""スコープ付き参照機能.

ハンドラーとレシーバーにはストア本体ではなく StoreContext を渡す。
状態の読み取りとアクションのディスパッチのみを公開する。
"""

from __future__ import annotations

import weakref
from typing import TYPE_CHECKING, TypeVar

from stateflow.core.exceptions import StateFlowError
from stateflow.core.types import CancellationToken, DispatchResult
from stateflow.state.actions import Action
from stateflow.state.models import State


if TYPE_CHECKING:
    from stateflow.store.store import Store


S = TypeVar("S", bound=State)


class StoreContext:
    """ストアへのスコープ付き参照.

    ストアを弱参照で保持するため、ハンドラーがストアの寿命を延ばすことはない。

    Example:
        >>> class LoadHandler(ActionHandler[LoadProfile, ProfileState]):
        ...     async def handle(self, action, state, cancellation):
        ...         session = self.store.get_state(SessionState)
        ...         state.user_id = session.user_id
    """

    def __init__(self, store: Store) -> None:
        """初期化.

        Args:
            store: 参照先ストア
        """
        self._store_ref = weakref.ref(store)

    def _store(self) -> Store:
        store = self._store_ref()
        if store is None:
            msg = "Store has been garbage collected"
            raise StateFlowError(msg)
        return store

    def get_state(self, state_type: type[S]) -> S:
        """状態を同期取得."""
        return self._store().get_state(state_type)

    async def get_state_async(self, state_type: type[S]) -> S:
        """状態を非同期取得."""
        return await self._store().get_state_async(state_type)

    async def dispatch(
        self,
        action: Action,
        cancellation: CancellationToken | None = None,
    ) -> DispatchResult:
        """アクションをディスパッチ.

        パイプライン実行中に呼ばれた場合は後続としてキューに積まれ、
        QUEUED の結果が即座に返る。
        """
        return await self._store().dispatch(action, cancellation)


__all__ = ["StoreContext"]
