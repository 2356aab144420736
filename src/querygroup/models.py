"""Persisted query group configuration models.

These are the shapes the parent (panel/dashboard store) owns. Attribute names
are snake_case; the persisted JSON uses the camelCase aliases.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Fields of a query that are not part of the backend-specific payload.
RESERVED_QUERY_FIELDS = frozenset({"refId", "ref_id", "datasource", "hide", "key"})


class CoreApp(str, Enum):
    """Application surface asking a backend for its default query."""
    PANEL_EDITOR = "panel-editor"
    EXPLORE = "explore"
    UNKNOWN = "unknown"


class DataSourceRef(BaseModel):
    """Reference binding a query to a backend."""
    uid: Optional[str] = None
    type: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class Query(BaseModel):
    """A backend-tagged, backend-opaque query.

    Only ``refId``, ``datasource`` and ``hide`` are understood by this package;
    every other key is carried through untouched as the backend payload.
    """
    ref_id: str
    datasource: Optional[DataSourceRef] = None
    hide: Optional[bool] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    @property
    def payload(self) -> Dict[str, Any]:
        return {
            k: v for k, v in (self.model_extra or {}).items() if k not in RESERVED_QUERY_FIELDS
        }

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"refId": self.ref_id}
        if self.datasource is not None:
            data["datasource"] = self.datasource.model_dump(exclude_none=True)
        if self.hide is not None:
            data["hide"] = self.hide
        data.update(self.model_extra or {})
        return data

    @classmethod
    def build(
        cls,
        ref_id: str,
        datasource: Optional[DataSourceRef] = None,
        payload: Optional[Dict[str, Any]] = None,
        hide: Optional[bool] = None,
    ) -> "Query":
        """Creates a query from a payload, dropping payload keys that collide with reserved fields."""
        extra = {k: v for k, v in (payload or {}).items() if k not in RESERVED_QUERY_FIELDS}
        return cls(ref_id=ref_id, datasource=datasource, hide=hide, **extra)


class QueryGroupDataSource(BaseModel):
    """Persisted description of the group's active backend."""
    name: Optional[str] = None
    uid: Optional[str] = None
    type: Optional[str] = None
    default: Optional[bool] = None

    model_config = ConfigDict(extra="ignore")


class QueryGroupTimeRange(BaseModel):
    """Panel-level relative time override."""
    from_: Optional[str] = Field(default=None, alias="from")
    shift: Optional[str] = None
    hide: Optional[bool] = None

    model_config = ConfigDict(populate_by_name=True)


class QueryGroupOptions(BaseModel):
    """Parent-owned configuration of a query group.

    Unknown keys are preserved so the full object the parent hands over can
    be pushed back without losing fields this package does not manage.
    """
    data_source: QueryGroupDataSource = Field(default_factory=QueryGroupDataSource)
    queries: List[Query] = Field(default_factory=list)
    saved_query_uid: Optional[str] = None
    max_data_points: Optional[int] = None
    min_interval: Optional[str] = None
    cache_timeout: Optional[str] = None
    time_range: Optional[QueryGroupTimeRange] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude_none=True, exclude={"queries"})
        data["queries"] = [q.to_dict() for q in self.queries]
        data["savedQueryUid"] = self.saved_query_uid
        return data

    def binding_fields(self) -> Dict[str, Any]:
        """The fields every switch/link commit writes together."""
        return {
            "data_source": self.data_source,
            "queries": self.queries,
            "saved_query_uid": self.saved_query_uid,
        }
