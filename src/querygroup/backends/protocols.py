"""Live backend instances and their optional capabilities.

A capability is present when the instance implements the corresponding
protocol; callers check it with ``isinstance`` before using it.
"""
from __future__ import annotations

from typing import Any, Dict, List, Protocol, runtime_checkable

from querygroup.backends.models import AbstractQuery, BackendDescriptor
from querygroup.models import CoreApp, DataSourceRef, Query


class Backend:
    """Base class for a loaded backend plugin instance."""

    def __init__(self, settings: BackendDescriptor):
        self.settings = settings

    @property
    def uid(self) -> str:
        return self.settings.uid

    @property
    def name(self) -> str:
        return self.settings.name

    @property
    def type(self) -> str:
        return self.settings.type

    @property
    def is_mixed(self) -> bool:
        return self.settings.capabilities.mixed

    def get_ref(self) -> DataSourceRef:
        return DataSourceRef(uid=self.uid, type=self.type)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(uid={self.uid!r}, type={self.type!r})"


@runtime_checkable
class SupportsDefaultQuery(Protocol):
    """Backend can supply a canonical default payload for new queries."""

    def get_default_query(self, app: CoreApp) -> Dict[str, Any]:
        ...


@runtime_checkable
class SupportsQueryImport(Protocol):
    """Backend can convert a query written for another backend."""

    async def import_query(self, query: Query, source: Backend) -> Query:
        ...


@runtime_checkable
class SupportsAbstractQueryExport(Protocol):
    async def export_to_abstract_queries(self, queries: List[Query]) -> List[AbstractQuery]:
        ...


@runtime_checkable
class SupportsAbstractQueryImport(Protocol):
    async def import_from_abstract_queries(self, queries: List[AbstractQuery]) -> List[Query]:
        ...
