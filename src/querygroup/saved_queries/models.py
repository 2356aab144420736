from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from querygroup.models import Query


class SavedQuerySet(BaseModel):
    """A named, remotely stored ordered sequence of queries."""
    uid: str
    title: Optional[str] = None
    queries: List[Query] = Field(default_factory=list)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


def is_mixed_query_set(saved: SavedQuerySet) -> bool:
    """True when the set's queries are bound to more than one backend uid."""
    if not saved.queries:
        return False
    first = saved.queries[0].datasource
    first_uid = first.uid if first else None
    return any((q.datasource.uid if q.datasource else None) != first_uid for q in saved.queries)
