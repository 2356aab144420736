import asyncio

import pytest

from querygroup.common.errors import InvalidStateError
from querygroup.execution import (
    ExecutionResult,
    ExecutionStreamSubscriber,
    LoadingState,
    QueryRunner,
)


async def _drain():
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_latest_starts_not_started_and_tracks_last_snapshot():
    # Arrange
    runner = QueryRunner()
    updates = []
    subscriber = ExecutionStreamSubscriber(runner, on_update=updates.append)

    # Act / Assert
    assert subscriber.latest.state == LoadingState.NOT_STARTED

    subscriber.subscribe()
    await _drain()
    runner.publish(ExecutionResult(state=LoadingState.LOADING))
    runner.publish(ExecutionResult(state=LoadingState.DONE, series=[{"name": "up"}]))
    await _drain()

    assert subscriber.latest.state == LoadingState.DONE
    assert subscriber.latest.series == [{"name": "up"}]
    assert [u.state for u in updates] == [LoadingState.LOADING, LoadingState.DONE]

    subscriber.unsubscribe()
    await subscriber.wait_closed()


@pytest.mark.asyncio
async def test_new_subscriber_receives_last_published_snapshot():
    runner = QueryRunner()
    runner.publish(ExecutionResult(state=LoadingState.DONE))
    subscriber = ExecutionStreamSubscriber(runner)

    subscriber.subscribe()
    await _drain()

    assert subscriber.latest.state == LoadingState.DONE
    subscriber.unsubscribe()
    await subscriber.wait_closed()


@pytest.mark.asyncio
async def test_subscribe_twice_starts_one_consumer():
    runner = QueryRunner()
    subscriber = ExecutionStreamSubscriber(runner)

    subscriber.subscribe()
    subscriber.subscribe()
    await _drain()

    assert runner.subscriber_count == 1
    subscriber.unsubscribe()
    await subscriber.wait_closed()


@pytest.mark.asyncio
async def test_double_unsubscribe_tears_down_once():
    # Validates that a second unsubscribe is a no-op.
    runner = QueryRunner()
    subscriber = ExecutionStreamSubscriber(runner)
    subscriber.subscribe()
    await _drain()
    assert subscriber.is_subscribed

    subscriber.unsubscribe()
    subscriber.unsubscribe()
    await subscriber.wait_closed()

    assert subscriber.is_closed
    assert not subscriber.is_subscribed
    assert runner.subscriber_count == 0

    # Cannot be restarted.
    subscriber.subscribe()
    assert runner.subscriber_count == 0


@pytest.mark.asyncio
async def test_unsubscribe_cancels_the_consumer_once():
    teardowns = []

    class CountingStream:
        async def get_data(self, options):
            try:
                yield ExecutionResult(state=LoadingState.LOADING)
                await asyncio.Event().wait()
            finally:
                teardowns.append(options)

    subscriber = ExecutionStreamSubscriber(CountingStream())
    subscriber.subscribe()
    await _drain()

    subscriber.unsubscribe()
    subscriber.unsubscribe()
    await subscriber.wait_closed()

    assert len(teardowns) == 1
    assert subscriber.latest.state == LoadingState.LOADING


@pytest.mark.asyncio
async def test_failing_stream_sets_error_snapshot():
    class BrokenStream:
        async def get_data(self, options):
            yield ExecutionResult(state=LoadingState.LOADING)
            raise RuntimeError("stream broke")

    subscriber = ExecutionStreamSubscriber(BrokenStream())
    subscriber.subscribe()
    await subscriber.wait_closed()

    assert subscriber.latest.state == LoadingState.ERROR
    assert subscriber.latest.error == "stream broke"


@pytest.mark.asyncio
async def test_close_ends_iterators_and_rejects_publish():
    runner = QueryRunner()
    subscriber = ExecutionStreamSubscriber(runner)
    subscriber.subscribe()
    await _drain()

    runner.publish(ExecutionResult(state=LoadingState.DONE))
    runner.close()
    await subscriber.wait_closed()

    assert subscriber.latest.state == LoadingState.DONE
    assert runner.subscriber_count == 0
    with pytest.raises(InvalidStateError):
        runner.publish(ExecutionResult())
