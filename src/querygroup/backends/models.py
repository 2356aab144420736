from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from querygroup.models import DataSourceRef, QueryGroupDataSource


class BackendCapabilities(BaseModel):
    """Static capability flags published by a backend descriptor."""
    mixed: bool = False
    alerting: bool = False
    imports_foreign_queries: bool = False
    has_default_query: bool = False

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def enabled(self) -> List[str]:
        """Names of the flags that are set, in declaration order."""
        return [name for name in type(self).model_fields if getattr(self, name)]


class BackendDescriptor(BaseModel):
    """Static, synchronously available description of a configured backend."""
    uid: str
    type: str
    name: str
    is_default: bool = False
    capabilities: BackendCapabilities = Field(default_factory=BackendCapabilities)
    default_query: Optional[Dict[str, Any]] = Field(
        default=None, description="Default payload served when no plugin is installed for the type."
    )

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def get_ref(self) -> DataSourceRef:
        return DataSourceRef(uid=self.uid, type=self.type)

    def to_group_data_source(self) -> QueryGroupDataSource:
        return QueryGroupDataSource(
            name=self.name,
            uid=self.uid,
            type=self.type,
            default=self.is_default,
        )


class LabelMatcher(BaseModel):
    name: str
    operator: str = "="
    value: str


class AbstractQuery(BaseModel):
    """Backend-neutral form of a query used when two backends exchange queries."""
    ref_id: str
    label_matchers: List[LabelMatcher] = Field(default_factory=list)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")
