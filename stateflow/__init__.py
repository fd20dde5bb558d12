"""StateFlow - Reactive single-store state management.

StateFlow keeps every application state in one store. States change only
through actions, which are dispatched one at a time (FIFO) through an ordered
pipeline of behaviors: logging, validation, the primary handler, receptors,
persistence and the external mirror. Subscribers are notified once per
mutated state after each successful dispatch.

Quick Start:
    >>> from stateflow import Action, ActionHandler, State, Store
    >>>
    >>> class CounterState(State):
    ...     count: int = 0
    >>>
    >>> class IncrementCount(Action):
    ...     amount: int = 1
    >>>
    >>> store = Store()
    >>> store.register_state(CounterState, persistent=True)
    >>>
    >>> @store.on(IncrementCount, CounterState)
    ... def increment(action, state):
    ...     state.count += action.amount
    >>>
    >>> await store.dispatch(IncrementCount(amount=2))
    >>> store.get_state(CounterState).count
    2

Persistence (設定から自動選択):
    >>> # STATEFLOW_PERSISTENCE_BACKEND=file
    >>> # STATEFLOW_PERSISTENCE_DIR=./.stateflow
    >>> store = Store()
    >>> counter = await store.get_state_async(CounterState)  # ハイドレーション
"""

from stateflow.config import StateFlowSettings, get_settings
from stateflow.core import (
    CancellationToken,
    CompositionError,
    DispatchCancelledError,
    DispatchError,
    DispatchResult,
    DispatchStatus,
    HandlerError,
    MirrorError,
    PersistenceWriteError,
    ReceptorError,
    StateError,
    StateFlowError,
    StateNotReadyError,
    UnregisteredActionError,
    UnregisteredStateError,
    ValidationError,
)
from stateflow.mirror import (
    HttpMirrorBridge,
    MemoryMirrorBridge,
    MirrorBridge,
    MirrorEvent,
    NullMirrorBridge,
)
from stateflow.pipeline import Behavior, DispatchContext
from stateflow.state import (
    Action,
    ActionHandler,
    FunctionReceptor,
    PersistedEnvelope,
    Receptor,
    ReplacingHandler,
    State,
    Subscription,
)
from stateflow.storage import (
    FilePersistenceProvider,
    MemoryPersistenceProvider,
    PersistenceProvider,
    get_provider,
)
from stateflow.store import Store, StoreContext


__version__ = "0.1.0"
__author__ = "StateFlow Team"
__license__ = "MIT"

__all__ = [
    # Store
    "Store",
    "StoreContext",
    # State / Action
    "Action",
    "ActionHandler",
    "FunctionReceptor",
    "PersistedEnvelope",
    "Receptor",
    "ReplacingHandler",
    "State",
    "Subscription",
    # Pipeline
    "Behavior",
    "DispatchContext",
    # Results
    "CancellationToken",
    "DispatchResult",
    "DispatchStatus",
    # Storage
    "FilePersistenceProvider",
    "MemoryPersistenceProvider",
    "PersistenceProvider",
    "get_provider",
    # Mirror
    "HttpMirrorBridge",
    "MemoryMirrorBridge",
    "MirrorBridge",
    "MirrorEvent",
    "NullMirrorBridge",
    # Config
    "StateFlowSettings",
    "get_settings",
    # Exceptions
    "CompositionError",
    "DispatchCancelledError",
    "DispatchError",
    "HandlerError",
    "MirrorError",
    "PersistenceWriteError",
    "ReceptorError",
    "StateError",
    "StateFlowError",
    "StateNotReadyError",
    "UnregisteredActionError",
    "UnregisteredStateError",
    "ValidationError",
]
