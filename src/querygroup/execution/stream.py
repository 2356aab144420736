from __future__ import annotations

import asyncio
from typing import AsyncIterator, Callable, List, Optional, Protocol, runtime_checkable

from querygroup.common.errors import InvalidStateError
from querygroup.common.logger import get_logger
from querygroup.execution.models import DataRequestOptions, ExecutionResult, LoadingState

logger = get_logger(__name__)

_END = object()


@runtime_checkable
class ExecutionStream(Protocol):
    """Continuous source of result snapshots for a query group."""

    def get_data(self, options: DataRequestOptions) -> AsyncIterator[ExecutionResult]:
        ...


class QueryRunner:
    """In-process execution stream.

    Snapshots passed to ``publish`` fan out to every open iterator. A new
    iterator starts with the most recent snapshot, if there is one.
    """

    def __init__(self) -> None:
        self._queues: List[asyncio.Queue] = []
        self._last: Optional[ExecutionResult] = None
        self._closed = False

    @property
    def subscriber_count(self) -> int:
        return len(self._queues)

    def publish(self, result: ExecutionResult) -> None:
        if self._closed:
            raise InvalidStateError("Cannot publish to a closed query runner")
        self._last = result
        for queue in list(self._queues):
            queue.put_nowait(result)

    def close(self) -> None:
        """Ends every open iterator after it drains what was already published."""
        if self._closed:
            return
        self._closed = True
        for queue in list(self._queues):
            queue.put_nowait(_END)

    async def get_data(self, options: Optional[DataRequestOptions] = None) -> AsyncIterator[ExecutionResult]:
        # options are accepted for interface compatibility; snapshots are published already processed.
        queue: asyncio.Queue = asyncio.Queue()
        if self._last is not None:
            queue.put_nowait(self._last)
        if self._closed:
            queue.put_nowait(_END)
        self._queues.append(queue)
        try:
            while True:
                item = await queue.get()
                if item is _END:
                    return
                yield item
        finally:
            self._queues.remove(queue)


class ExecutionStreamSubscriber:
    """Keeps the latest snapshot of an execution stream.

    ``subscribe`` starts a single consumer task; ``unsubscribe`` stops it.
    Both are idempotent and a stopped subscriber cannot be restarted.
    """

    def __init__(
        self,
        stream: ExecutionStream,
        options: Optional[DataRequestOptions] = None,
        on_update: Optional[Callable[[ExecutionResult], None]] = None,
    ):
        self.stream = stream
        self.options = options or DataRequestOptions()
        self.on_update = on_update
        self.latest = ExecutionResult(state=LoadingState.NOT_STARTED)
        self._task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def is_subscribed(self) -> bool:
        return self._task is not None and not self._closed

    @property
    def is_closed(self) -> bool:
        return self._closed

    def subscribe(self) -> None:
        if self._task is not None or self._closed:
            return
        self._task = asyncio.get_running_loop().create_task(self._consume())

    async def _consume(self) -> None:
        try:
            async for result in self.stream.get_data(self.options):
                self.latest = result
                if self.on_update is not None:
                    self.on_update(result)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Execution stream failed: {e}", exc_info=True)
            self.latest = ExecutionResult(
                state=LoadingState.ERROR,
                series=self.latest.series,
                time_range=self.latest.time_range,
                error=str(e),
            )

    def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait_closed(self) -> None:
        """Waits for the consumer task to finish after the stream ends or is unsubscribed."""
        if self._task is None:
            return
        await asyncio.gather(self._task, return_exceptions=True)
