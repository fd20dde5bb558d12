# -*- coding: utf-8 -*-
"""StateRegistry / HandlerRegistry 単体テスト."""

import asyncio

import pytest

from stateflow.core.exceptions import (
    CompositionError,
    StateNotReadyError,
    UnregisteredStateError,
)
from stateflow.core.registry import TypeRegistry
from stateflow.state.actions import Action
from stateflow.state.handlers import ActionHandler, FunctionHandler, HandlerRegistry
from stateflow.state.models import State
from stateflow.state.registry import StateRegistry


class CounterState(State):
    """同期初期化する状態."""

    count: int = 0
    init_calls: int = 0

    def initialize(self) -> None:
        self.init_calls += 1
        self.count = 1


class ProfileState(State):
    """非同期初期化する状態."""

    name: str = ""
    init_calls: int = 0

    async def initialize(self) -> None:
        await asyncio.sleep(0.01)
        self.init_calls += 1
        self.name = "loaded"


class UnknownState(State):
    """未登録の状態."""


class BaseCommand(Action):
    """基底アクション."""


class DerivedCommand(BaseCommand):
    """派生アクション."""


class NoopHandler(ActionHandler[BaseCommand, CounterState]):
    """何もしないハンドラー."""

    def handle(self, action, state, cancellation):
        return None


class TestTypeRegistry:
    """TypeRegistry テストクラス."""

    def test_register_and_get(self) -> None:
        """型をキーに登録・取得できること."""
        registry: TypeRegistry[str] = TypeRegistry()
        registry.register(int, "integer")

        assert registry.get_item(int) == "integer"
        assert int in registry
        assert len(registry) == 1

    def test_register_rejects_non_type(self) -> None:
        """型でないキーを拒否すること."""
        registry: TypeRegistry[str] = TypeRegistry()

        with pytest.raises(TypeError):
            registry.register("int", "integer")  # type: ignore[arg-type]

    def test_keys_keep_registration_order(self) -> None:
        """登録順が保持されること."""
        registry: TypeRegistry[int] = TypeRegistry()
        registry.register(str, 1)
        registry.register(int, 2)
        registry.register(float, 3)

        assert registry.keys() == [str, int, float]
        assert registry.unregister(int) is True
        assert registry.values() == [1, 3]


class TestStateRegistry:
    """StateRegistry テストクラス."""

    def test_get_creates_and_initializes_once(self) -> None:
        """初回取得で生成・初期化され、以降は同一インスタンスであること."""
        registry = StateRegistry()
        registry.register(CounterState)

        first = registry.get(CounterState)
        second = registry.get(CounterState)

        assert first is second
        assert first.count == 1
        assert first.init_calls == 1

    def test_get_unregistered_raises(self) -> None:
        """未登録の状態型で UnregisteredStateError を送出すること."""
        registry = StateRegistry()

        with pytest.raises(UnregisteredStateError):
            registry.get(UnknownState)

    def test_default_key_uses_namespace(self) -> None:
        """既定の永続化キーが名前空間付き状態名であること."""
        registry = StateRegistry(namespace="app")
        registration = registry.register(CounterState, persistent=True)

        assert registration.key == f"app:{CounterState.state_name()}"
        assert registration.persistent is True

    def test_register_rejects_non_state(self) -> None:
        """State 以外の型を拒否すること."""
        registry = StateRegistry()

        with pytest.raises(TypeError):
            registry.register(dict)  # type: ignore[arg-type]

    def test_reregister_live_state_raises(self) -> None:
        """生成済みの状態型の再登録で CompositionError を送出すること."""
        registry = StateRegistry()
        registry.register(CounterState)
        registry.get(CounterState)

        with pytest.raises(CompositionError):
            registry.register(CounterState)

    def test_factory_type_mismatch_raises(self) -> None:
        """ファクトリが別の型を返した場合に CompositionError を送出すること."""
        registry = StateRegistry()
        registry.register(CounterState, factory=lambda: UnknownState())

        with pytest.raises(CompositionError):
            registry.get(CounterState)

    def test_get_without_loop_for_async_initialize(self) -> None:
        """イベントループ外で非同期初期化の状態を同期取得すると StateNotReadyError."""
        registry = StateRegistry()
        registry.register(ProfileState)

        with pytest.raises(StateNotReadyError):
            registry.get(ProfileState)
        assert registry.is_pending(ProfileState) is False

    @pytest.mark.asyncio
    async def test_get_async_runs_async_initialize(self) -> None:
        """非同期初期化を待機して取得できること."""
        registry = StateRegistry()
        registry.register(ProfileState)

        state = await registry.get_async(ProfileState)

        assert state.name == "loaded"
        assert registry.is_ready(ProfileState)

    @pytest.mark.asyncio
    async def test_concurrent_first_access_initializes_once(self) -> None:
        """同時の初回アクセスでも初期化は1回だけであること."""
        registry = StateRegistry()
        registry.register(ProfileState)

        results = await asyncio.gather(*(registry.get_async(ProfileState) for _ in range(5)))

        assert all(r is results[0] for r in results)
        assert results[0].init_calls == 1

    @pytest.mark.asyncio
    async def test_sync_get_during_async_initialize(self) -> None:
        """非同期初期化の進行中は同期取得が StateNotReadyError になること."""
        registry = StateRegistry()
        registry.register(ProfileState)

        with pytest.raises(StateNotReadyError):
            registry.get(ProfileState)
        assert registry.is_pending(ProfileState)

        with pytest.raises(StateNotReadyError):
            registry.get(ProfileState)

        state = await registry.get_async(ProfileState)
        assert state.init_calls == 1
        assert registry.get(ProfileState) is state

    def test_adopt_skips_initialize(self) -> None:
        """adopt したインスタンスは初期化されないこと."""
        registry = StateRegistry()
        registry.register(CounterState)
        hydrated = CounterState(count=7)

        registry.adopt(CounterState, hydrated)

        assert registry.get(CounterState) is hydrated
        assert hydrated.init_calls == 0
        assert hydrated.count == 7

    def test_replace_keeps_guid(self) -> None:
        """置換後も guid が引き継がれること."""
        registry = StateRegistry()
        registry.register(CounterState)
        original = registry.get(CounterState)

        replacement = registry.replace(CounterState, CounterState(count=42))

        assert registry.get(CounterState) is replacement
        assert replacement.guid == original.guid
        assert replacement.count == 42

    def test_replace_rejects_wrong_type(self) -> None:
        """型が一致しない置換を拒否すること."""
        registry = StateRegistry()
        registry.register(CounterState)

        with pytest.raises(TypeError):
            registry.replace(CounterState, UnknownState())  # type: ignore[arg-type]

    def test_live_states_in_registration_order(self) -> None:
        """初期化済みの状態が登録順で返ること."""
        registry = StateRegistry()
        registry.register(CounterState)
        registry.register(UnknownState)
        registry.get(UnknownState)
        registry.get(CounterState)

        assert [r.state_type for r, _ in registry.live_states()] == [CounterState, UnknownState]


class TestHandlerRegistry:
    """HandlerRegistry テストクラス."""

    def test_resolve_exact_match(self) -> None:
        """完全一致で解決できること."""
        registry = HandlerRegistry()
        binding = registry.bind(BaseCommand, NoopHandler(), CounterState)

        assert registry.resolve(BaseCommand) is binding

    def test_resolve_falls_back_to_base_class(self) -> None:
        """基底クラスのハンドラーに解決されること."""
        registry = HandlerRegistry()
        binding = registry.bind(BaseCommand, NoopHandler(), CounterState)

        assert registry.resolve(DerivedCommand) is binding

    def test_resolve_unknown_returns_none(self) -> None:
        """未登録のアクションは None であること."""
        assert HandlerRegistry().resolve(DerivedCommand) is None

    def test_bind_rejects_non_action(self) -> None:
        """Action 以外の型を拒否すること."""
        registry = HandlerRegistry()

        with pytest.raises(TypeError):
            registry.bind(int, FunctionHandler(lambda a, s: None), CounterState)  # type: ignore[arg-type]
