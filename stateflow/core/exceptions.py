"""Custom exceptions for StateFlow."""

from __future__ import annotations

from typing import Any


class StateFlowError(Exception):
    """Base exception for all StateFlow errors."""


class StateError(StateFlowError):
    """Base exception for state lookup errors."""


class UnregisteredStateError(StateError):
    """Raised when a state type has not been registered with the store."""

    def __init__(self, state_type: type) -> None:
        """Initialize UnregisteredStateError.

        Args:
            state_type: The state class that was requested.
        """
        super().__init__(f"State not registered: {_type_name(state_type)}")
        self.state_type = state_type


class StateNotReadyError(StateError):
    """Raised on a synchronous read while initialization is outstanding."""

    def __init__(self, state_type: type, reason: str = "initialization in progress") -> None:
        """Initialize StateNotReadyError.

        Args:
            state_type: The state class that was requested.
            reason: Why the state cannot be read yet.
        """
        super().__init__(f"State not ready: {_type_name(state_type)} ({reason})")
        self.state_type = state_type
        self.reason = reason


class CompositionError(StateFlowError):
    """Raised when store registrations are inconsistent."""


class UnregisteredActionError(StateFlowError):
    """Raised when an action is dispatched without a registered handler."""

    def __init__(self, action_type: type) -> None:
        """Initialize UnregisteredActionError.

        Args:
            action_type: The action class that was dispatched.
        """
        super().__init__(f"No handler registered for action: {_type_name(action_type)}")
        self.action_type = action_type


class DispatchError(StateFlowError):
    """Base exception for errors reported by the dispatch pipeline."""

    stage: str = "pipeline"


class ValidationError(DispatchError):
    """Raised when an action fails one of its validators."""

    stage = "validation"

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        """Initialize ValidationError.

        Args:
            message: Summary of the rejection.
            errors: Individual validator messages.
        """
        super().__init__(message)
        self.errors = errors or [message]


class HandlerError(DispatchError):
    """Raised when a primary handler fails."""

    stage = "handler"

    def __init__(self, action_name: str, cause: BaseException) -> None:
        """Initialize HandlerError.

        Args:
            action_name: Name of the action being handled.
            cause: The exception raised by the handler.
        """
        super().__init__(f"Handler for {action_name} failed: {cause}")
        self.action_name = action_name
        self.cause = cause


class ReceptorError(DispatchError):
    """Raised when a receptor fails; recorded as a warning on the result."""

    stage = "receptors"

    def __init__(self, receptor_name: str, cause: BaseException) -> None:
        """Initialize ReceptorError.

        Args:
            receptor_name: Name of the failing receptor.
            cause: The exception raised by the receptor.
        """
        super().__init__(f"Receptor {receptor_name} failed: {cause}")
        self.receptor_name = receptor_name
        self.cause = cause


class DispatchCancelledError(DispatchError):
    """Raised when a dispatch was cancelled before its handler started."""

    stage = "cancellation"


class PersistenceWriteError(DispatchError):
    """Raised when a state snapshot could not be written."""

    stage = "persistence"

    def __init__(self, key: str, cause: Any = None) -> None:
        """Initialize PersistenceWriteError.

        Args:
            key: Persistence key of the state.
            cause: Underlying exception, if any.
        """
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to persist {key}{detail}")
        self.key = key
        self.cause = cause


class MirrorError(DispatchError):
    """Raised when the external mirror bridge fails."""

    stage = "mirror"


def _type_name(tp: Any) -> str:
    return getattr(tp, "__qualname__", repr(tp))


__all__ = [
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
