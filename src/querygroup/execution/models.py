from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class LoadingState(str, Enum):
    NOT_STARTED = "NotStarted"
    LOADING = "Loading"
    STREAMING = "Streaming"
    DONE = "Done"
    ERROR = "Error"


class TimeRange(BaseModel):
    from_: datetime = Field(alias="from")
    to: datetime

    model_config = ConfigDict(populate_by_name=True)


def default_time_range() -> TimeRange:
    """The last six hours, ending now."""
    now = datetime.now(timezone.utc)
    return TimeRange(from_=now - timedelta(hours=6), to=now)


class ExecutionResult(BaseModel):
    """One snapshot of the results for a query group."""
    state: LoadingState = LoadingState.NOT_STARTED
    series: List[Any] = Field(default_factory=list)
    time_range: TimeRange = Field(default_factory=default_time_range)
    error: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DataRequestOptions(BaseModel):
    with_transforms: bool = False
    with_field_config: bool = False

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
