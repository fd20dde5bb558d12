"""状態管理層.

型付き状態コンテナ、アクション、ハンドラー、購読を提供。

モジュール:
- models: 状態と永続化エンベロープ
- actions: 状態アクション
- handlers: ハンドラー・レシーバー
- registry: 状態レジストリ
- subscriptions: 購読バス
"""

from stateflow.state.actions import Action
from stateflow.state.handlers import (
    ActionHandler,
    BaseHandler,
    FunctionHandler,
    FunctionReceptor,
    HandlerBinding,
    HandlerRegistry,
    Receptor,
    ReplacingHandler,
)
from stateflow.state.models import PersistedEnvelope, State, state_name
from stateflow.state.registry import StateRegistration, StateRegistry
from stateflow.state.subscriptions import Subscription, SubscriptionBus


__all__ = [
    # Actions
    "Action",
    # Handlers
    "ActionHandler",
    "BaseHandler",
    "FunctionHandler",
    "FunctionReceptor",
    "HandlerBinding",
    "HandlerRegistry",
    # Models
    "PersistedEnvelope",
    "Receptor",
    "ReplacingHandler",
    "State",
    # Registry
    "StateRegistration",
    "StateRegistry",
    # Subscriptions
    "Subscription",
    "SubscriptionBus",
    "state_name",
]
