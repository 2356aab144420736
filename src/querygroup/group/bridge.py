from __future__ import annotations

import asyncio
import uuid
from typing import Any, Callable, Dict, List, Optional, Sequence

from querygroup.backends.builtin import MIXED_BACKEND_UID, ExpressionBackend
from querygroup.backends.models import BackendDescriptor
from querygroup.backends.protocols import Backend, SupportsDefaultQuery
from querygroup.backends.resolver import BackendRefLike, BackendResolver
from querygroup.common.errors import (
    BackendNotFoundError,
    GroupError,
    InvalidStateError,
    QueryGroupError,
    SavedQuerySetNotFoundError,
)
from querygroup.common.logger import get_logger, group_context
from querygroup.common.settings import settings as app_settings
from querygroup.common.tracing import span
from querygroup.execution.models import ExecutionResult
from querygroup.execution.stream import ExecutionStream, ExecutionStreamSubscriber
from querygroup.group.actions import GroupActionContext, GroupActionRegistry, group_actions
from querygroup.group.state import GroupPhase, GroupStateContainer, OptionsChangeCallback
from querygroup.migration import QueryMigrationEngine
from querygroup.models import CoreApp, DataSourceRef, Query, QueryGroupDataSource, QueryGroupOptions
from querygroup.queries import add_query, query_is_empty
from querygroup.saved_queries.loader import SavedQuerySetLoader
from querygroup.saved_queries.models import SavedQuerySet, is_mixed_query_set

logger = get_logger(__name__)


class ConfigurationBridge:
    """
    Keeps a query group's parent-owned configuration and its backends in sync.

    The parent hands over the options once, at construction; from then on the
    bridge pushes every change back through ``on_options_change`` as a
    complete object and keeps an identical mirror of what it pushed.
    """

    def __init__(
        self,
        options: QueryGroupOptions,
        resolver: BackendResolver,
        saved_queries: SavedQuerySetLoader,
        on_options_change: OptionsChangeCallback,
        on_run_queries: Callable[[], None],
        query_runner: Optional[ExecutionStream] = None,
        migration_engine: Optional[QueryMigrationEngine] = None,
        actions: Optional[GroupActionRegistry] = None,
        app: CoreApp = CoreApp.PANEL_EDITOR,
    ):
        self.group_id = uuid.uuid4().hex[:12]
        self.resolver = resolver
        self.saved_queries = saved_queries
        self.migration = migration_engine or QueryMigrationEngine(resolver, app)
        self.actions = actions if actions is not None else group_actions
        self.app = app
        self.errors: List[GroupError] = []
        self._on_run_queries = on_run_queries
        self._store = GroupStateContainer(options, on_options_change)
        self._subscriber = ExecutionStreamSubscriber(query_runner) if query_runner is not None else None
        self._in_flight = 0

    @property
    def phase(self) -> GroupPhase:
        return self._store.phase

    @property
    def options(self) -> QueryGroupOptions:
        return self._store.options.model_copy(deep=True)

    @property
    def queries(self) -> List[Query]:
        return [q.model_copy(deep=True) for q in self._store.options.queries]

    @property
    def saved_query_uid(self) -> Optional[str]:
        return self._store.options.saved_query_uid

    @property
    def backend(self) -> Optional[Backend]:
        return self._store.state.backend

    @property
    def settings(self) -> Optional[BackendDescriptor]:
        return self._store.state.settings

    @property
    def default_backend(self) -> Optional[Backend]:
        return self._store.state.default_backend

    @property
    def initial_options(self) -> QueryGroupOptions:
        return self._store.initial_options.model_copy(deep=True)

    @property
    def is_dirty(self) -> bool:
        return self._store.options != self._store.initial_options

    @property
    def data(self) -> ExecutionResult:
        """Latest execution snapshot."""
        if self._subscriber is None:
            return ExecutionResult()
        return self._subscriber.latest

    def _report(self, operation: str, error: QueryGroupError) -> None:
        if self._store.is_released:
            logger.debug(f"{operation} failed after release: {error.message}")
            return
        self.errors.append(error.to_record(operation))
        logger.error(f"{operation} failed: {error.message}")

    def _ensure_open(self, operation: str) -> None:
        if self._store.is_released:
            raise InvalidStateError(f"Cannot {operation} on a released query group")

    def _ensure_editable(self, operation: str) -> None:
        self._ensure_open(operation)
        if self._store.state.settings is None:
            raise InvalidStateError(
                f"Cannot {operation} before a backend is resolved (phase: {self.phase.value})"
            )

    def _begin(self, phase: GroupPhase) -> None:
        self._in_flight += 1
        self._store.set_phase(phase)

    def _end(self) -> None:
        self._in_flight -= 1
        if self._in_flight == 0 and self._store.phase in (GroupPhase.SWITCHING, GroupPhase.LINKING):
            self._store.set_phase(GroupPhase.READY if self.settings is not None else GroupPhase.FAILED)

    async def _resolve_default(self) -> Optional[Backend]:
        if self.resolver.get_default_settings() is None:
            return None
        return await self.resolver.get_default()

    def _seed(self, query: Query, backend: Backend) -> Query:
        """Fills an empty query with the backend's default; stored fields always win."""
        seeded: Dict[str, Any] = {}
        if query_is_empty(query) and isinstance(backend, SupportsDefaultQuery):
            seeded.update(backend.get_default_query(self.app))
        seeded["datasource"] = backend.get_ref().model_dump()
        seeded.update(query.to_dict())
        return Query.model_validate(seeded)

    async def initialize(self) -> None:
        """
        Resolves the active and default backends and seeds empty queries.

        A resolution failure is recorded in ``errors`` and leaves the group in
        the ``failed`` phase instead of raising.
        """
        if self.phase != GroupPhase.UNINITIALIZED:
            raise InvalidStateError(f"Query group already initialized (phase: {self.phase.value})")

        ticket = self._store.issue_ticket()
        options = self._store.options.model_copy(deep=True)
        with group_context(self.group_id, "initialize"), span(
            "querygroup.initialize", {"querygroup.backend": options.data_source.uid}
        ):
            self._store.set_phase(GroupPhase.LOADING)
            if self._subscriber is not None:
                self._subscriber.subscribe()

            try:
                backend, default_backend = await asyncio.gather(
                    self.resolver.get(options.data_source),
                    self._resolve_default(),
                )
                settings = self.resolver.get_instance_settings(options.data_source)
                if settings is None:
                    raise BackendNotFoundError(options.data_source.uid or options.data_source.name)
            except QueryGroupError as e:
                self._report("initialize", e)
                if self.settings is None:
                    self._store.set_phase(GroupPhase.FAILED)
                return

            if self._store.is_stale(ticket):
                # A switch or link finished first; its options stand.
                self._store.fill_resolved(backend=backend, settings=settings, default_backend=default_backend)
                logger.info("Initialization overtaken by a newer operation, keeping its options")
                return

            queries = [self._seed(q, backend) for q in options.queries]
            committed = self._store.commit(
                ticket=ticket,
                push=False,
                queries=queries,
                backend=backend,
                settings=settings,
                default_backend=default_backend,
            )
            if committed is not None and self._in_flight == 0:
                self._store.set_phase(GroupPhase.READY)
                logger.info(f"Query group ready on backend '{settings.name}' with {len(queries)} queries")

    async def switch_backend(self, new_settings: BackendDescriptor) -> Optional[QueryGroupOptions]:
        """
        Makes ``new_settings`` the active backend and migrates the queries to it.

        Returns:
            The committed options, or None if the result was discarded because
            the group was released or a newer operation committed first.

        Raises:
            QueryGroupError: If a backend cannot be resolved. State is left unchanged.
        """
        self._ensure_open("switch backend")
        ticket = self._store.issue_ticket()
        with group_context(self.group_id, "switch_backend"), span(
            "querygroup.switch_backend", {"querygroup.backend": new_settings.uid}
        ):
            self._begin(GroupPhase.SWITCHING)
            try:
                current_settings = self.settings
                current = await self.resolver.get(current_settings.uid) if current_settings else None
                next_backend = await self.resolver.get(new_settings.uid)

                # new_settings.uid may be a variable expression; that is what queries should store.
                queries = await self.migration.migrate(
                    next_backend, new_settings.uid, self._store.options.queries, current
                )

                if self.resolver.get_instance_settings(new_settings.uid) is None:
                    raise BackendNotFoundError(new_settings.uid)

                return self._store.commit(
                    ticket=ticket,
                    queries=queries,
                    saved_query_uid=None,
                    data_source=new_settings.to_group_data_source(),
                    backend=next_backend,
                    settings=new_settings,
                )
            except QueryGroupError as e:
                self._report("switch_backend", e)
                raise
            finally:
                self._end()

    def _effective_target(self, saved: SavedQuerySet) -> BackendRefLike:
        if is_mixed_query_set(saved):
            return MIXED_BACKEND_UID
        first = saved.queries[0].datasource if saved.queries else None
        if first is not None and first.uid:
            return first.uid
        # Nothing in the set names a backend: keep the active one.
        return self.backend.uid if self.backend is not None else None

    async def link_saved_query_set(self, uid: Optional[str]) -> Optional[QueryGroupOptions]:
        """
        Replaces the queries with a saved query set, or clears the link.

        Linking copies the set once; later edits on either side do not propagate.

        Args:
            uid: The saved set to link. ``None`` or empty clears the link and keeps the queries.

        Returns:
            The committed options, or None if the result was discarded.

        Raises:
            SavedQuerySetNotFoundError: If no set with ``uid`` exists. State is left unchanged.
            QueryGroupError: If the set's backend cannot be resolved.
        """
        self._ensure_open("link saved query set")
        if not app_settings.query_library_enabled:
            raise InvalidStateError("The query library is disabled")
        ticket = self._store.issue_ticket()

        if not uid:
            with group_context(self.group_id, "link_saved_query_set"):
                backend = self.backend
                settings = self.resolver.get_instance_settings(backend.uid) if backend is not None else None
                data_source = settings.to_group_data_source() if settings else QueryGroupDataSource()
                return self._store.commit(
                    ticket=ticket,
                    queries=self._store.options.queries,
                    saved_query_uid=None,
                    data_source=data_source,
                    settings=settings,
                )

        with group_context(self.group_id, "link_saved_query_set"), span(
            "querygroup.link_saved_query_set", {"querygroup.saved_query": uid}
        ):
            self._begin(GroupPhase.LINKING)
            try:
                found = await self.saved_queries.fetch([uid])
                saved = next((s for s in found if s.uid == uid), None)
                if saved is None:
                    raise SavedQuerySetNotFoundError(uid)

                current_settings = self.settings
                current = await self.resolver.get(current_settings.uid) if current_settings else None

                next_backend = await self.resolver.get(self._effective_target(saved))
                next_settings = self.resolver.get_instance_settings(next_backend.uid)
                if next_settings is None:
                    raise BackendNotFoundError(next_backend.uid)

                queries = await self.migration.migrate(next_backend, next_backend.uid, saved.queries, current)
                return self._store.commit(
                    ticket=ticket,
                    queries=queries,
                    saved_query_uid=uid,
                    data_source=next_settings.to_group_data_source(),
                    backend=next_backend,
                    settings=next_settings,
                )
            except QueryGroupError as e:
                self._report("link_saved_query_set", e)
                raise
            finally:
                self._end()

    def _binding_for_new_query(self, preferred_ref: BackendRefLike = None) -> Optional[DataSourceRef]:
        if preferred_ref is not None:
            preferred = self.resolver.get_instance_settings(preferred_ref)
            if preferred is None:
                raise BackendNotFoundError(preferred_ref)
            return preferred.get_ref()

        settings = self.settings
        if settings is not None and not settings.capabilities.mixed:
            return settings.get_ref()
        if self.default_backend is not None:
            return self.default_backend.get_ref()
        return None

    def new_query(self) -> Dict[str, Any]:
        """A fresh query payload for the active backend, bound where ``add_query`` would bind it."""
        settings = self.settings
        backend = self.default_backend if settings is not None and settings.capabilities.mixed else self.backend
        payload: Dict[str, Any] = {}
        if isinstance(backend, SupportsDefaultQuery):
            payload.update(backend.get_default_query(self.app))
        binding = self._binding_for_new_query()
        if binding is not None:
            payload["datasource"] = binding.model_dump()
        return payload

    def add_query(
        self,
        partial: Optional[Dict[str, Any]] = None,
        preferred_ref: BackendRefLike = None,
    ) -> Optional[QueryGroupOptions]:
        """
        Appends a query under the next free refId.

        Args:
            partial: Payload of the new query. Defaults to ``new_query()``.
            preferred_ref: Backend to bind the query to when ``partial`` has no binding.
                Otherwise the active backend is used, or the organization default
                when the active backend is mixed.
        """
        self._ensure_editable("add query")
        if partial is None:
            partial = self.new_query()
        binding = self._binding_for_new_query(preferred_ref)
        with group_context(self.group_id, "add_query"):
            return self._store.commit(queries=add_query(self._store.options.queries, partial, binding))

    def is_expressions_supported(self) -> bool:
        settings = self.settings
        if settings is None:
            return False
        return settings.capabilities.alerting or settings.capabilities.mixed

    def add_expression(self) -> Optional[QueryGroupOptions]:
        self._ensure_editable("add expression")
        if not (app_settings.expressions_enabled and self.is_expressions_supported()):
            raise InvalidStateError(f"Backend '{self.settings.name}' does not support expressions")
        expression = ExpressionBackend()
        partial = expression.get_default_query(self.app)
        partial["datasource"] = expression.get_ref().model_dump()
        with group_context(self.group_id, "add_expression"):
            return self._store.commit(queries=add_query(self._store.options.queries, partial))

    def change_queries(self, queries: Sequence[Query]) -> Optional[QueryGroupOptions]:
        """Commits an edited query list."""
        self._ensure_open("change queries")
        with group_context(self.group_id, "change_queries"):
            return self._store.commit(queries=list(queries))

    def update_and_run(self, options: QueryGroupOptions) -> Optional[QueryGroupOptions]:
        """Commits options changed in the group options editor and requests re-execution."""
        self._ensure_open("update options")
        with group_context(self.group_id, "update_and_run"):
            committed = self._store.replace(options)
        self._on_run_queries()
        return committed

    def run_queries(self) -> None:
        self._ensure_open("run queries")
        self._on_run_queries()

    def extra_actions(self) -> List[Any]:
        """Invokes every registered extra action and returns what they produced."""
        context = GroupActionContext(
            on_add_query=self.add_query,
            on_change_data_source=self.switch_backend,
        )
        results = [action(context) for action in self.actions.get_all()]
        return [r for r in results if r is not None]

    def release(self) -> None:
        """Stops the group. Operations still in flight complete without effect."""
        if self._store.is_released:
            return
        self._store.release()
        if self._subscriber is not None:
            self._subscriber.unsubscribe()
        logger.debug(f"Released query group {self.group_id}")

    async def wait_released(self) -> None:
        """Waits for the execution stream subscription to wind down after ``release``."""
        if self._subscriber is not None:
            await self._subscriber.wait_closed()
