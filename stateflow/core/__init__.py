"""StateFlow コア: 例外、結果型、レジストリ基類."""

from stateflow.core.exceptions import (
    CompositionError,
    DispatchCancelledError,
    DispatchError,
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
from stateflow.core.registry import TypeRegistry
from stateflow.core.types import CancellationToken, DispatchResult, DispatchStatus


__all__ = [
    "CancellationToken",
    "CompositionError",
    "DispatchCancelledError",
    "DispatchError",
    "DispatchResult",
    "DispatchStatus",
    "HandlerError",
    "MirrorError",
    "PersistenceWriteError",
    "ReceptorError",
    "StateError",
    "StateFlowError",
    "StateNotReadyError",
    "TypeRegistry",
    "UnregisteredActionError",
    "UnregisteredStateError",
    "ValidationError",
]
