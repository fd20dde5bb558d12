"""ディスパッチャー.

全てのディスパッチを1本の FIFO キューで直列化する。

- ワーカータスクは1つだけで、N+1 番目のパイプラインは N 番目の
  パイプラインと通知が完了してから開始する
- パイプライン内（ハンドラー・レシーバー・購読者）からの再入ディスパッチは
  現在のディスパッチの後ろに積まれ、QUEUED を即座に返す
- ワーカーから例外は漏れない（予期しない例外は FAILED 結果に変換）
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any

from stateflow.core.exceptions import DispatchCancelledError, DispatchError, StateFlowError
from stateflow.core.types import DispatchResult, DispatchStatus
from stateflow.pipeline.base import DispatchContext, Pipeline
from stateflow.state.actions import Action
from stateflow.state.subscriptions import SubscriptionBus


logger = logging.getLogger(__name__)


@dataclass
class _QueuedDispatch:
    ctx: DispatchContext
    future: asyncio.Future[DispatchResult]


_running: ContextVar[_QueuedDispatch | None] = ContextVar("stateflow_running_dispatch", default=None)

CompletionHook = Callable[[Action, DispatchResult], Any]


class Dispatcher:
    """FIFO ディスパッチャー.

    Example:
        >>> dispatcher = Dispatcher(lambda: pipeline, bus)
        >>> result = await dispatcher.submit(DispatchContext(action, binding))
        >>> await dispatcher.close()
    """

    def __init__(
        self,
        pipeline: Callable[[], Pipeline],
        bus: SubscriptionBus,
        on_complete: CompletionHook | None = None,
    ) -> None:
        """初期化.

        Args:
            pipeline: 固定済みパイプラインを返す関数
            bus: 購読バス
            on_complete: ディスパッチ完了時のフック（履歴記録用）
        """
        self._pipeline = pipeline
        self._bus = bus
        self._on_complete = on_complete
        self._queue: asyncio.Queue[_QueuedDispatch | None] | None = None
        self._worker: asyncio.Task[None] | None = None
        self._in_flight: _QueuedDispatch | None = None
        self._closed = False
        self._processed = 0

    @property
    def pending(self) -> int:
        """キュー内の待機数."""
        return self._queue.qsize() if self._queue is not None else 0

    @property
    def processed(self) -> int:
        """処理済みディスパッチ数."""
        return self._processed

    @property
    def closed(self) -> bool:
        """停止済みか."""
        return self._closed

    def in_pipeline(self) -> bool:
        """現在のタスクが実行中パイプラインの内側か."""
        running = _running.get()
        return running is not None and running is self._in_flight

    async def submit(self, ctx: DispatchContext) -> DispatchResult:
        """ディスパッチをキューに積み、完了を待機.

        呼び出し側タスクがキャンセルされた場合はキャンセルトークンも
        キャンセルする（ハンドラー開始前なら CANCELLED になる）。

        Raises:
            StateFlowError: ディスパッチャーが停止済みの場合
        """
        if self._closed:
            msg = "Dispatcher is closed"
            raise StateFlowError(msg)

        loop = asyncio.get_running_loop()
        item = _QueuedDispatch(ctx=ctx, future=loop.create_future())
        reentrant = self.in_pipeline()
        queue = self._ensure_worker()
        queue.put_nowait(item)

        if reentrant:
            logger.debug("再入ディスパッチをキューに追加: %s", ctx.action_name)
            return DispatchResult(
                action_name=ctx.action_name,
                status=DispatchStatus.QUEUED,
                follow_up=item.future,
            )

        try:
            return await asyncio.shield(item.future)
        except asyncio.CancelledError:
            ctx.cancellation.cancel()
            raise

    def _ensure_worker(self) -> asyncio.Queue[_QueuedDispatch | None]:
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(
                self._run(), name="stateflow-dispatcher"
            )
        return self._queue

    async def _run(self) -> None:
        assert self._queue is not None
        while True:
            item = await self._queue.get()
            try:
                if item is None:
                    return
                await self._process(item)
            finally:
                self._queue.task_done()

    async def _process(self, item: _QueuedDispatch) -> None:
        ctx = item.ctx
        self._in_flight = item
        token = _running.set(item)
        try:
            result = await self._pipeline().run(ctx)
            if result.status is DispatchStatus.SUCCEEDED:
                self._bus.notify_all(result.mutated)
        except asyncio.CancelledError:
            assert ctx.result is not None
            ctx.result.status = DispatchStatus.CANCELLED
            ctx.result.error = DispatchCancelledError(f"{ctx.action_name} interrupted")
            if not item.future.done():
                item.future.set_result(ctx.result)
            raise
        except Exception as e:
            logger.exception("パイプラインで予期しないエラー: %s", ctx.action_name)
            result = self._fail(ctx, DispatchError(f"Pipeline failed for {ctx.action_name}: {e}"))
        finally:
            _running.reset(token)
            self._in_flight = None

        self._processed += 1
        if self._on_complete is not None:
            try:
                self._on_complete(ctx.action, result)
            except Exception:
                logger.exception("完了フックでエラー: %s", ctx.action_name)
        if not item.future.done():
            item.future.set_result(result)

    @staticmethod
    def _fail(ctx: DispatchContext, error: DispatchError) -> DispatchResult:
        assert ctx.result is not None
        ctx.result.status = DispatchStatus.FAILED
        ctx.result.error = error
        return ctx.result

    async def close(self) -> None:
        """キュー内のディスパッチを処理し終えてからワーカーを停止."""
        if self._closed:
            return
        self._closed = True
        worker = self._worker
        if worker is None or worker.done():
            return
        assert self._queue is not None
        self._queue.put_nowait(None)
        if self.in_pipeline() or asyncio.current_task() is worker:
            return
        await worker


__all__ = ["Dispatcher"]
