"""バリデーションビヘイビア.

アクション型ごとに登録されたバリデーターを実行し、失敗時は
ValidationError で短絡する（一次ハンドラー以降は実行しない）。

バリデーターは ``validator(action)`` 形式の関数で、次のいずれかで拒否を表す:
- ValidationError を送出
- False を返す
- エラーメッセージ（文字列）を返す
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from stateflow.core.exceptions import ValidationError
from stateflow.core.registry import TypeRegistry
from stateflow.core.types import DispatchResult, DispatchStatus
from stateflow.pipeline.base import Behavior, DispatchContext, NextStage
from stateflow.state.actions import Action
from stateflow.state.handlers import resolve_outcome


logger = logging.getLogger(__name__)

Validator = Callable[[Any], Any]


class ValidatorRegistry(TypeRegistry[list[Validator]]):
    """アクション型 → バリデーター一覧."""

    def add(self, action_type: type[Action], validator: Validator) -> None:
        """バリデーターを追加."""
        if not callable(validator):
            msg = "Validator must be callable"
            raise TypeError(msg)
        with self._lock:
            validators = self._items.setdefault(action_type, [])
            validators.append(validator)

    def for_action(self, action_type: type[Action]) -> list[Validator]:
        """アクション型に適用されるバリデーター（基底クラス分を含む、基底から順）."""
        collected: list[Validator] = []
        with self._lock:
            for candidate in reversed(action_type.__mro__):
                collected.extend(self._items.get(candidate, []))
        return collected


class ValidationBehavior(Behavior):
    """バリデーションビヘイビア."""

    name = "validation"

    def __init__(self, validators: ValidatorRegistry) -> None:
        """初期化.

        Args:
            validators: バリデーターレジストリ
        """
        self._validators = validators

    async def process(self, ctx: DispatchContext, next_: NextStage) -> DispatchResult:
        """バリデーターを実行し、失敗時は短絡."""
        assert ctx.result is not None
        errors: list[str] = []
        for validator in self._validators.for_action(type(ctx.action)):
            errors.extend(await self._run(validator, ctx.action))

        if errors:
            ctx.result.status = DispatchStatus.REJECTED
            ctx.result.error = ValidationError(
                f"{ctx.action_name} rejected: {'; '.join(errors)}",
                errors=errors,
            )
            return ctx.result
        return await next_()

    async def _run(self, validator: Validator, action: Action) -> list[str]:
        name = getattr(validator, "__qualname__", repr(validator))
        try:
            outcome = await resolve_outcome(validator(action))
        except ValidationError as e:
            return list(e.errors)
        except Exception as e:
            logger.warning("バリデーターでエラー: %s (%s)", name, e)
            return [f"{name}: {e}"]

        if outcome is False:
            return [f"{name} rejected {action.action_name()}"]
        if isinstance(outcome, str) and outcome:
            return [outcome]
        return []
