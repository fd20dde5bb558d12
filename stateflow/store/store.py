# -*- coding: utf-8 -*-
"""状態ストア.

型付き状態コンテナの単一ストア。全ての変更はアクションとして
ディスパッチされ、ビヘイビアパイプラインを通して直列に処理される。

設計原則:
- 単一ソース: 状態型ごとにストア内でただ1つのインスタンス
- 予測可能: 状態の変更はディスパッチ経由のハンドラーでのみ行う
- 直列化: 同時ディスパッチは FIFO で処理され、交錯しない
- サブスクリプション: 変更された状態型ごとに購読者へ通知

使用例:
    >>> from stateflow import Action, ActionHandler, State, Store
    >>>
    >>> class CounterState(State):
    ...     count: int = 0
    >>>
    >>> class IncrementCount(Action):
    ...     amount: int = 1
    >>>
    >>> class IncrementHandler(ActionHandler[IncrementCount, CounterState]):
    ...     def handle(self, action, state, cancellation):
    ...         state.count += action.amount
    >>>
    >>> store = Store()
    >>> store.register_state(CounterState, persistent=True)
    >>> store.register_handler(IncrementCount, IncrementHandler, CounterState)
    >>> store.subscribe(CounterState, lambda tp: print("changed"))
    >>>
    >>> await store.initialize_async()
    >>> result = await store.dispatch(IncrementCount(amount=2))
    >>> store.get_state(CounterState).count
    2
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import Counter, deque
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any, TypeVar

from stateflow.config.settings import StateFlowSettings, get_settings
from stateflow.core.exceptions import (
    CompositionError,
    StateNotReadyError,
    UnregisteredActionError,
)
from stateflow.core.types import CancellationToken, DispatchResult
from stateflow.mirror import MirrorBridge, get_bridge
from stateflow.pipeline import (
    Behavior,
    DispatchContext,
    LoggingBehavior,
    MirrorBehavior,
    PersistenceBehavior,
    Pipeline,
    PipelineBuilder,
    PrimaryHandlerBehavior,
    ReceptorBehavior,
    ValidationBehavior,
    Validator,
    ValidatorRegistry,
)
from stateflow.state.actions import Action
from stateflow.state.handlers import (
    BaseHandler,
    FunctionHandler,
    FunctionReceptor,
    HandlerBinding,
    HandlerRegistry,
    Receptor,
)
from stateflow.state.models import PersistedEnvelope, State
from stateflow.state.registry import StateRegistration, StateRegistry
from stateflow.state.subscriptions import StateChangedCallback, Subscription, SubscriptionBus
from stateflow.storage import PersistenceProvider, get_provider
from stateflow.store.context import StoreContext
from stateflow.store.dispatcher import Dispatcher


S = TypeVar("S", bound=State)


class Store:
    """状態ストア.

    主な機能:
    - 状態型の登録と単一インスタンス管理
    - ハンドラー・レシーバー・バリデーターの明示的登録
    - FIFO ディスパッチとビヘイビアパイプライン
    - 変更通知（状態型単位、1ディスパッチにつき1回）
    - 永続化スナップショットからのハイドレーション
    - 外部ミラー（デバッグツール）への転送
    - アクション履歴と統計

    Example:
        >>> async with Store(provider=MemoryPersistenceProvider()) as store:
        ...     store.register_state(CounterState, persistent=True)
        ...     store.register_handler(IncrementCount, IncrementHandler, CounterState)
        ...     await store.dispatch(IncrementCount())
    """

    def __init__(
        self,
        provider: PersistenceProvider | None = None,
        mirror: MirrorBridge | None = None,
        settings: StateFlowSettings | None = None,
        *,
        mirror_enabled: bool | None = None,
        max_history: int | None = None,
        namespace: str | None = None,
    ) -> None:
        """初期化.

        Args:
            provider: 永続化プロバイダー（None の場合は設定から選択）
            mirror: ミラーブリッジ（None の場合は設定から選択）
            settings: 設定（None の場合はグローバル設定）
            mirror_enabled: ミラーを許可するか（None の場合、ブリッジ指定時は True）
            max_history: アクション履歴の最大件数
            namespace: 永続化キーの名前空間
        """
        self._settings = settings or get_settings()
        self._logger = logging.getLogger(__name__)
        self._lock = threading.RLock()

        self._registry = StateRegistry(namespace or self._settings.persistence_namespace)
        self._handlers = HandlerRegistry()
        self._validators = ValidatorRegistry()
        self._receptors: list[Receptor[Any]] = []
        self._bus = SubscriptionBus()
        self._context = StoreContext(self)

        self._provider: PersistenceProvider = (
            provider if provider is not None else get_provider(self._settings)
        )
        self._owns_bridge = mirror is None
        self._bridge: MirrorBridge = mirror if mirror is not None else get_bridge(self._settings)
        if mirror_enabled is None:
            mirror_enabled = True if mirror is not None else self._settings.mirror_enabled

        self._mirror = MirrorBehavior(
            self._bridge,
            self.get_serializable_state,
            timeout=self._settings.mirror_timeout,
            allowed=mirror_enabled,
        )
        self._builder = PipelineBuilder(
            [
                LoggingBehavior(),
                ValidationBehavior(self._validators),
                PrimaryHandlerBehavior(self._registry),
                ReceptorBehavior(self._registry, self._receptors),
                PersistenceBehavior(self._registry, self._provider),
                self._mirror,
            ]
        )
        self._pipeline: Pipeline | None = None
        self._dispatcher = Dispatcher(self._frozen_pipeline, self._bus, on_complete=self._record)

        history_size = self._settings.max_history if max_history is None else max_history
        self._history: deque[dict[str, Any]] = deque(maxlen=history_size)
        self._status_counts: Counter[str] = Counter()

        self._ready = False
        self._mirror_activated = False
        self._init_lock = asyncio.Lock()

    # =========================================================================
    # 登録
    # =========================================================================

    def register_state(
        self,
        state_type: type[S],
        factory: Callable[[], S] | None = None,
        persistent: bool = False,
        key: str | None = None,
    ) -> StateRegistration:
        """状態型を登録.

        Args:
            state_type: 状態型
            factory: インスタンス生成関数
            persistent: 永続化対象か
            key: 永続化キー（省略時は名前空間付き状態名）

        Returns:
            登録情報
        """
        registration = self._registry.register(state_type, factory, persistent=persistent, key=key)
        if persistent and self._ready:
            # 初期化後に追加された永続状態は次回アクセス時にハイドレーション
            self._ready = False
        self._logger.debug("状態を登録: %s", registration.name)
        return registration

    def register_handler(
        self,
        action_type: type[Action],
        handler: BaseHandler[Any, Any] | type[BaseHandler[Any, Any]] | Callable[..., Any],
        state_type: type[State],
    ) -> HandlerBinding:
        """一次ハンドラーを登録.

        Args:
            action_type: アクション型
            handler: ハンドラー（インスタンス、クラス、または関数）
            state_type: ハンドラーが変更する状態型

        Returns:
            結び付け

        Raises:
            CompositionError: 同じアクション型に登録済み、またはパイプライン固定後に
                未登録の状態型を指定した場合
        """
        if action_type in self._handlers:
            msg = f"Handler already registered for action: {action_type.__qualname__}"
            raise CompositionError(msg)
        if self._pipeline is not None and state_type not in self._registry:
            msg = f"Handler for {action_type.__qualname__} targets unregistered state {state_type.__qualname__}"
            raise CompositionError(msg)

        binding = self._handlers.bind(action_type, self._as_handler(handler), state_type)
        self._logger.debug(
            "ハンドラーを登録: %s -> %s", action_type.__qualname__, state_type.__qualname__
        )
        return binding

    def on(
        self,
        action_type: type[Action],
        state_type: type[State],
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """関数ハンドラー登録用デコレーター.

        Example:
            >>> @store.on(IncrementCount, CounterState)
            ... def increment(action, state):
            ...     state.count += action.amount
        """

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self.register_handler(action_type, fn, state_type)
            return fn

        return decorator

    def _as_handler(self, handler: Any) -> BaseHandler[Any, Any]:
        if isinstance(handler, type) and issubclass(handler, BaseHandler):
            return handler(self._context)
        if isinstance(handler, BaseHandler):
            if handler.store is None:
                handler.store = self._context
            return handler
        if callable(handler):
            return FunctionHandler(handler, self._context)
        msg = f"Handler must be a BaseHandler or callable, got {type(handler).__qualname__}"
        raise TypeError(msg)

    def register_receptor(
        self,
        receptor: Receptor[Any] | type[Receptor[Any]] | Callable[..., Any],
        state_type: type[State] | None = None,
        action_types: Iterable[type[Action]] = (),
    ) -> Receptor[Any]:
        """レシーバーを登録（登録順に実行）.

        Args:
            receptor: レシーバー（インスタンス、クラス、または関数）
            state_type: 関数レシーバーの変更対象状態型
            action_types: 関数レシーバーが受理するアクション型（空の場合は全て）

        Returns:
            登録されたレシーバー

        Raises:
            CompositionError: 変更対象の状態型が特定できない場合
        """
        if isinstance(receptor, type) and issubclass(receptor, Receptor):
            instance: Receptor[Any] = receptor(self._context)
        elif isinstance(receptor, Receptor):
            instance = receptor
            if instance.store is None:
                instance.store = self._context
        elif callable(receptor):
            if state_type is None:
                msg = "state_type is required for function receptors"
                raise CompositionError(msg)
            instance = FunctionReceptor(receptor, state_type, action_types, self._context)
        else:
            msg = f"Receptor must be a Receptor or callable, got {type(receptor).__qualname__}"
            raise TypeError(msg)

        target = getattr(instance, "state_type", None)
        if target is None:
            msg = f"Receptor {instance.name} does not declare state_type"
            raise CompositionError(msg)
        if self._pipeline is not None and target not in self._registry:
            msg = f"Receptor {instance.name} targets unregistered state {target.__qualname__}"
            raise CompositionError(msg)

        with self._lock:
            self._receptors.append(instance)
        self._logger.debug("レシーバーを登録: %s -> %s", instance.name, target.__qualname__)
        return instance

    def register_validator(self, action_type: type[Action], validator: Validator) -> None:
        """バリデーターを登録.

        Args:
            action_type: アクション型（サブクラスにも適用）
            validator: ``validator(action)`` 形式の関数
        """
        self._validators.add(action_type, validator)

    def add_behavior(
        self,
        behavior: Behavior,
        before: str | None = None,
        after: str | None = None,
    ) -> None:
        """外部ビヘイビアをパイプラインに追加.

        Raises:
            CompositionError: パイプライン固定後、または挿入位置が不正な場合
        """
        if self._pipeline is not None:
            msg = "Pipeline is frozen; behaviors must be added before the first dispatch"
            raise CompositionError(msg)
        self._builder.add(behavior, before=before, after=after)

    def subscribe(self, state_type: type[State], callback: StateChangedCallback) -> Subscription:
        """状態変更を購読.

        Args:
            state_type: 監視する状態型
            callback: コールバック関数（変更された状態型を受け取る）

        Returns:
            購読トークン（``unsubscribe()`` で解除）
        """
        self._registry.registration(state_type)
        return self._bus.subscribe(state_type, callback)

    # =========================================================================
    # 構成検証・初期化
    # =========================================================================

    def validate_composition(self) -> None:
        """全ハンドラー・レシーバーの対象状態型が登録済みか検証.

        Raises:
            CompositionError: 未登録の状態型を対象とする登録がある場合
        """
        problems = self._composition_problems()
        if problems:
            raise CompositionError("Invalid store composition: " + "; ".join(problems))

    def _composition_problems(self) -> list[str]:
        problems: list[str] = []
        for binding in self._handlers.values():
            if binding.state_type not in self._registry:
                problems.append(
                    f"handler for {binding.action_type.__qualname__} targets "
                    f"unregistered state {binding.state_type.__qualname__}"
                )
        for receptor in self._receptors:
            if receptor.state_type not in self._registry:
                problems.append(
                    f"receptor {receptor.name} targets unregistered state "
                    f"{receptor.state_type.__qualname__}"
                )
        return problems

    def _frozen_pipeline(self) -> Pipeline:
        if self._pipeline is None:
            self._pipeline = self._builder.build()
            self._logger.debug("パイプラインを固定: %s", " -> ".join(self._pipeline.names))
        return self._pipeline

    @property
    def ready(self) -> bool:
        """初期化（ハイドレーション）済みか."""
        return self._ready

    @property
    def pipeline(self) -> list[str]:
        """パイプラインのステージ名（実行順）."""
        return (self._pipeline or self._builder).names

    async def initialize_async(self) -> None:
        """ストアを初期化.

        1. パイプラインを固定（構成の問題は WARNING で記録）
        2. 永続状態をプロバイダーからハイドレーション（initialize は呼ばない）
        3. スナップショットのない状態を初期化
        4. ミラーブリッジを probe し、有効なら init イベントを送信
        5. 構成を検証

        複数回呼んでも安全。構成が不正な場合も初期化自体は完了し、
        正しく構成されたアクションはディスパッチできる。

        Raises:
            CompositionError: 構成が不正な場合（呼ぶたびに報告）
        """
        await self._ensure_initialized()
        self.validate_composition()

    async def _ensure_initialized(self) -> None:
        if self._ready:
            return
        async with self._init_lock:
            if self._ready:
                return
            self._frozen_pipeline()
            problems = self._composition_problems()
            if problems:
                self._logger.warning("構成が不正な登録があります: %s", "; ".join(problems))

            hydrated = 0
            for registration in self._registry.registrations():
                if self._registry.is_ready(registration.state_type):
                    continue
                if registration.persistent and await self._hydrate(registration):
                    hydrated += 1
                    continue
                await self._registry.get_async(registration.state_type)

            if not self._mirror_activated:
                self._mirror_activated = True
                await self._mirror.activate()

            self._ready = True
            self._logger.info(
                "ストア初期化完了: states=%d, hydrated=%d",
                len(self._registry),
                hydrated,
            )

    async def _hydrate(self, registration: StateRegistration) -> bool:
        """永続スナップショットから状態を復元.

        Returns:
            復元した場合 True（スナップショットなし・破損時は False）
        """
        try:
            data = await self._provider.get(registration.key)
        except Exception as e:
            self._logger.warning("スナップショットの読み込みに失敗: %s (%s)", registration.key, e)
            return False
        if data is None:
            return False

        try:
            envelope = PersistedEnvelope.from_bytes(data)
            state = envelope.restore(registration.state_type)
        except ValueError as e:
            self._logger.warning("破損したスナップショットを無視: %s (%s)", registration.key, e)
            return False

        self._registry.adopt(registration.state_type, state)
        self._logger.debug("ハイドレーション: %s (guid=%s)", registration.key, state.guid)
        return True

    # =========================================================================
    # 状態アクセス
    # =========================================================================

    def get_state(self, state_type: type[S]) -> S:
        """状態を同期取得.

        Raises:
            UnregisteredStateError: 未登録の場合
            StateNotReadyError: ハイドレーションまたは非同期初期化が未完了の場合
        """
        registration = self._registry.registration(state_type)
        if registration.persistent and not self._registry.is_ready(state_type):
            raise StateNotReadyError(state_type, "hydration pending; use get_state_async")
        return self._registry.get(state_type)

    async def get_state_async(self, state_type: type[S]) -> S:
        """状態を非同期取得（必要ならハイドレーションと初期化を待機）.

        Raises:
            UnregisteredStateError: 未登録の場合
        """
        registration = self._registry.registration(state_type)
        if registration.persistent and not self._registry.is_ready(state_type):
            await self._ensure_initialized()
        return await self._registry.get_async(state_type)

    def get_serializable_state(self) -> dict[str, Any]:
        """初期化済みの全状態を ``{状態キー: フィールド}`` で取得."""
        return {
            registration.key: state.fields()
            for registration, state in self._registry.live_states()
        }

    # =========================================================================
    # ディスパッチ
    # =========================================================================

    async def dispatch(
        self,
        action: Action,
        cancellation: CancellationToken | None = None,
    ) -> DispatchResult:
        """アクションをディスパッチ.

        パイプラインと購読者への通知が完了してから結果を返す。
        バリデーション・ハンドラーの失敗は結果に格納される（例外は送出しない）。

        Args:
            action: アクション
            cancellation: キャンセルトークン

        Returns:
            ディスパッチ結果

        Raises:
            TypeError: Action でない場合
            UnregisteredActionError: ハンドラーが未登録の場合
            CompositionError: ハンドラーの対象状態型が未登録の場合
        """
        if not isinstance(action, Action):
            msg = f"Expected Action, got {type(action).__qualname__}"
            raise TypeError(msg)
        binding = self._handlers.resolve(type(action))
        if binding is None:
            raise UnregisteredActionError(type(action))

        if not self._ready:
            await self._ensure_initialized()
        if binding.state_type not in self._registry:
            msg = (
                f"Handler for {binding.action_type.__qualname__} targets "
                f"unregistered state {binding.state_type.__qualname__}"
            )
            raise CompositionError(msg)

        ctx = DispatchContext(
            action=action,
            binding=binding,
            cancellation=cancellation or CancellationToken(),
        )
        return await self._dispatcher.submit(ctx)

    async def dispatch_or_raise(
        self,
        action: Action,
        cancellation: CancellationToken | None = None,
    ) -> DispatchResult:
        """アクションをディスパッチし、失敗時は例外を送出.

        Raises:
            ValidationError: バリデーション拒否
            HandlerError: ハンドラー失敗
            DispatchCancelledError: キャンセル
        """
        result = await self.dispatch(action, cancellation)
        return result.raise_for_error()

    def _record(self, action: Action, result: DispatchResult) -> None:
        with self._lock:
            self._status_counts[result.status.value] += 1
            entry = result.to_dict()
            entry["payload"] = action.payload()
            entry["action_id"] = action.action_id
            entry["timestamp"] = action.timestamp.isoformat()
            entry["completed_at"] = datetime.now().isoformat()
            self._history.append(entry)

    # =========================================================================
    # 診断
    # =========================================================================

    def get_action_history(self, limit: int = 50) -> list[dict[str, Any]]:
        """アクション履歴を取得（古い順）.

        Args:
            limit: 最大取得数

        Returns:
            履歴エントリのリスト
        """
        if limit <= 0:
            return []
        with self._lock:
            return list(self._history)[-limit:]

    def get_stats(self) -> dict[str, Any]:
        """統計情報を取得."""
        with self._lock:
            return {
                "ready": self._ready,
                "state_count": len(self._registry),
                "live_state_count": len(self._registry.live_states()),
                "handler_count": len(self._handlers),
                "receptor_count": len(self._receptors),
                "subscription_count": self._bus.count(),
                "dispatch_count": self._dispatcher.processed,
                "pending_dispatches": self._dispatcher.pending,
                "status_counts": dict(self._status_counts),
                "action_history_count": len(self._history),
                "mirror_enabled": self._mirror.enabled,
                "pipeline": self.pipeline,
            }

    # =========================================================================
    # ライフサイクル
    # =========================================================================

    async def aclose(self) -> None:
        """キュー内のディスパッチを処理し終えてから停止."""
        await self._dispatcher.close()
        close = getattr(self._bridge, "close", None)
        if self._owns_bridge and close is not None:
            await close()
        self._logger.debug("ストアを停止")

    async def __aenter__(self) -> Store:
        """非同期コンテキスト開始."""
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        """非同期コンテキスト終了."""
        await self.aclose()


__all__ = ["Store"]
