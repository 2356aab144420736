"""Query group configuration core: backend resolution, query migration and saved query sets."""
from querygroup.models import (
    CoreApp,
    DataSourceRef,
    Query,
    QueryGroupDataSource,
    QueryGroupOptions,
    QueryGroupTimeRange,
)
from querygroup.backends import BackendDescriptor, BackendResolver
from querygroup.migration import QueryMigrationEngine
from querygroup.saved_queries import SavedQuerySet, SavedQuerySetLoader
from querygroup.execution import ExecutionResult, ExecutionStreamSubscriber, LoadingState, QueryRunner
from querygroup.group import ConfigurationBridge, GroupPhase

__all__ = [
    "CoreApp",
    "DataSourceRef",
    "Query",
    "QueryGroupDataSource",
    "QueryGroupOptions",
    "QueryGroupTimeRange",
    "BackendDescriptor",
    "BackendResolver",
    "QueryMigrationEngine",
    "SavedQuerySet",
    "SavedQuerySetLoader",
    "ExecutionResult",
    "ExecutionStreamSubscriber",
    "LoadingState",
    "QueryRunner",
    "ConfigurationBridge",
    "GroupPhase",
]
