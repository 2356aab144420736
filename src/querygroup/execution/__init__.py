"""Result snapshots and the subscription that tracks the latest one."""
from querygroup.execution.models import (
    DataRequestOptions,
    ExecutionResult,
    LoadingState,
    TimeRange,
    default_time_range,
)
from querygroup.execution.stream import ExecutionStream, ExecutionStreamSubscriber, QueryRunner

__all__ = [
    "DataRequestOptions",
    "ExecutionResult",
    "LoadingState",
    "TimeRange",
    "default_time_range",
    "ExecutionStream",
    "ExecutionStreamSubscriber",
    "QueryRunner",
]
