"""Migration of a query list from one backend binding to another."""
from __future__ import annotations

from typing import List, Optional, Sequence

from querygroup.backends.models import BackendDescriptor
from querygroup.backends.protocols import (
    Backend,
    SupportsAbstractQueryExport,
    SupportsAbstractQueryImport,
    SupportsDefaultQuery,
    SupportsQueryImport,
)
from querygroup.backends.resolver import BackendResolver
from querygroup.common.errors import MigrationFailedError, QueryGroupError
from querygroup.common.logger import get_logger
from querygroup.models import CoreApp, DataSourceRef, Query
from querygroup.queries import is_expression_query

logger = get_logger(__name__)


def _retag(query: Query, ref: DataSourceRef) -> Query:
    return query.model_copy(update={"datasource": ref.model_copy()}, deep=True)


class QueryMigrationEngine:
    """Converts queries written for one backend into queries for another.

    Per-query conversion failures fall back to the target's default payload;
    failing to resolve a backend aborts the whole migration.
    """

    def __init__(self, resolver: BackendResolver, app: CoreApp = CoreApp.PANEL_EDITOR):
        self.resolver = resolver
        self.app = app

    def default_query(self, target: Backend, target_ref: str, ref_id: str = "A") -> Query:
        payload = target.get_default_query(self.app) if isinstance(target, SupportsDefaultQuery) else {}
        return Query.build(ref_id, datasource=DataSourceRef(uid=target_ref, type=target.type), payload=payload)

    def _describe(self, backend: Backend) -> BackendDescriptor:
        descriptor = self.resolver.get_instance_settings(backend.uid)
        if descriptor is None:
            raise MigrationFailedError(
                f"Backend {backend.uid!r} is no longer registered",
                details={"uid": backend.uid},
            )
        return descriptor

    def _targets(self, query: Query, target_ref: str) -> bool:
        if query.datasource is None or not query.datasource.uid:
            return False
        if query.datasource.uid == target_ref:
            return True
        return self.resolver.interpolate(query.datasource.uid) == self.resolver.interpolate(target_ref)

    async def _query_source(self, query: Query, source: Backend) -> Backend:
        """The backend a query was written for. Only differs from ``source`` when that is mixed."""
        if not source.is_mixed or query.datasource is None:
            return source
        try:
            return await self.resolver.get(query.datasource)
        except QueryGroupError as e:
            raise MigrationFailedError(
                f"Cannot resolve backend of query {query.ref_id}: {e.message}",
                details={"ref_id": query.ref_id, "datasource": query.datasource.model_dump()},
            ) from e

    async def _convert(self, query: Query, source: Backend, target: Backend, target_ref: str) -> Query:
        ref = DataSourceRef(uid=target_ref, type=target.type)
        try:
            if isinstance(target, SupportsQueryImport):
                imported = await target.import_query(query.model_copy(deep=True), source)
                return Query.build(query.ref_id, datasource=ref, payload=imported.payload, hide=query.hide)

            if isinstance(source, SupportsAbstractQueryExport) and isinstance(target, SupportsAbstractQueryImport):
                abstract = await source.export_to_abstract_queries([query.model_copy(deep=True)])
                imported_list = await target.import_from_abstract_queries(abstract)
                if imported_list:
                    return Query.build(
                        query.ref_id, datasource=ref, payload=imported_list[0].payload, hide=query.hide
                    )
        except Exception as e:
            logger.warning(
                f"Import of query {query.ref_id} from '{source.type}' into '{target.type}' failed, "
                f"using default query: {e}"
            )

        return self.default_query(target, target_ref, query.ref_id)

    async def migrate(
        self,
        target: Backend,
        target_ref: str,
        queries: Sequence[Query],
        source: Optional[Backend] = None,
    ) -> List[Query]:
        """
        Migrates ``queries`` to ``target``.

        Args:
            target: The backend the queries should run against.
            target_ref: The reference stored on migrated queries. May be a variable
                expression, which is why it is passed separately from ``target``.
            queries: The current list, in order. It is not modified.
            source: The backend the list was bound to, if any.

        Returns:
            List[Query]: The migrated list, same order and refIds as the input.

        Raises:
            MigrationFailedError: If a backend involved in the migration cannot be resolved.
        """
        target_settings = self._describe(target)
        if target_settings.capabilities.mixed:
            return [q.model_copy(deep=True) for q in queries]

        if not queries:
            return [self.default_query(target, target_ref)]

        if source is not None:
            self._describe(source)

        ref = DataSourceRef(uid=target_ref, type=target.type)
        migrated: List[Query] = []
        for query in queries:
            if is_expression_query(query):
                migrated.append(query.model_copy(deep=True))
                continue

            if source is None or self._targets(query, target_ref):
                migrated.append(_retag(query, ref))
                continue

            query_source = await self._query_source(query, source)
            if query_source.type == target.type:
                migrated.append(_retag(query, ref))
            else:
                migrated.append(await self._convert(query, query_source, target, target_ref))

        logger.debug(f"Migrated {len(migrated)} queries to '{target.name}'")
        return migrated
