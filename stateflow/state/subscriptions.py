"""状態変更の購読バス.

状態型 → 購読者の対応を保持し、変更通知を配信する。
通知は登録順に同期的に行われる。
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any


logger = logging.getLogger(__name__)

StateChangedCallback = Callable[[type], Any]


@dataclass
class Subscription:
    """状態購読.

    Attributes:
        state_type: 監視する状態型
        callback: コールバック関数（状態型を受け取る）
        id: 購読ID
    """

    state_type: type
    callback: StateChangedCallback
    id: str = field(default_factory=lambda: f"sub-{uuid.uuid4().hex[:8]}")
    _bus: SubscriptionBus | None = field(default=None, repr=False, compare=False)

    def unsubscribe(self) -> bool:
        """購読を解除.

        Returns:
            解除した場合 True
        """
        if self._bus is None:
            return False
        removed = self._bus.unsubscribe(self)
        self._bus = None
        return removed

    def __call__(self) -> bool:
        """購読解除関数として呼び出し."""
        return self.unsubscribe()


class SubscriptionBus:
    """購読バス.

    Example:
        >>> bus = SubscriptionBus()
        >>> token = bus.subscribe(CounterState, lambda tp: print(tp.__name__))
        >>> bus.notify(CounterState)
        CounterState
        >>> token.unsubscribe()
    """

    def __init__(self) -> None:
        """初期化."""
        self._subscriptions: dict[type, dict[str, Subscription]] = {}
        self._lock = threading.RLock()

    def subscribe(self, state_type: type, callback: StateChangedCallback) -> Subscription:
        """状態変更を購読.

        Args:
            state_type: 監視する状態型
            callback: コールバック関数

        Returns:
            購読トークン
        """
        if not callable(callback):
            msg = "Callback must be callable"
            raise TypeError(msg)
        subscription = Subscription(state_type=state_type, callback=callback, _bus=self)
        with self._lock:
            self._subscriptions.setdefault(state_type, {})[subscription.id] = subscription
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        """購読を解除."""
        with self._lock:
            subscribers = self._subscriptions.get(subscription.state_type)
            if not subscribers or subscription.id not in subscribers:
                return False
            del subscribers[subscription.id]
            if not subscribers:
                del self._subscriptions[subscription.state_type]
            return True

    def notify(self, state_type: type) -> int:
        """購読者に通知.

        購読者の例外はログに記録し、残りの購読者への通知は継続する。

        Returns:
            通知した購読者数
        """
        with self._lock:
            subscribers = list(self._subscriptions.get(state_type, {}).values())

        for subscription in subscribers:
            try:
                subscription.callback(state_type)
            except Exception as e:
                logger.error(
                    "購読者への通知でエラー: %s (%s)",
                    e,
                    getattr(state_type, "__qualname__", state_type),
                )
        return len(subscribers)

    def notify_all(self, state_types: Iterable[type]) -> None:
        """複数の状態型に順に通知."""
        for state_type in state_types:
            self.notify(state_type)

    def count(self, state_type: type | None = None) -> int:
        """購読数を取得."""
        with self._lock:
            if state_type is not None:
                return len(self._subscriptions.get(state_type, {}))
            return sum(len(subs) for subs in self._subscriptions.values())

    def clear(self) -> None:
        """全購読を解除."""
        with self._lock:
            self._subscriptions.clear()


__all__ = [
    "StateChangedCallback",
    "Subscription",
    "SubscriptionBus",
]
