from __future__ import annotations

import asyncio
import inspect
from typing import Any, Dict, Iterable, List, Optional, Union

from querygroup.backends.builtin import (
    EXPRESSION_DESCRIPTOR,
    MIXED_BACKEND_TYPE,
    MIXED_DESCRIPTOR,
    ExpressionBackend,
    MixedBackend,
    StaticBackend,
)
from querygroup.backends.discovery import BackendFactory, discover_backend_plugins
from querygroup.backends.models import BackendDescriptor
from querygroup.backends.protocols import Backend
from querygroup.backends.templating import TemplateVariables
from querygroup.common.errors import BackendLoadError, BackendNotFoundError, QueryGroupError
from querygroup.common.logger import get_logger
from querygroup.models import DataSourceRef, QueryGroupDataSource

logger = get_logger(__name__)

BackendRefLike = Union[None, str, DataSourceRef, QueryGroupDataSource, BackendDescriptor, Dict[str, Any]]

_BUILTIN_UIDS = {MIXED_DESCRIPTOR.uid, EXPRESSION_DESCRIPTOR.uid}


class BackendResolver:
    """
    Resolves backend references to static descriptors and live instances.

    Acts as the factory and cache for Backend instances. A reference may be a
    uid, a name, a variable expression (``${ds}``) or any ref-like object.
    """

    def __init__(
        self,
        descriptors: Iterable[BackendDescriptor] = (),
        plugins: Optional[Dict[str, BackendFactory]] = None,
        variables: Optional[TemplateVariables] = None,
        discover_plugins: bool = True,
    ):
        """
        Initializes the resolver with a catalog of descriptors.

        Args:
            descriptors: The configured backends. At most one should be flagged default.
            plugins: Explicit factories keyed by backend type. These win over discovered ones.
            variables: Variable values used to interpolate templated references.
            discover_plugins: Whether to look up factories in installed entry points.
        """
        self.variables = variables or TemplateVariables()
        self._descriptors: Dict[str, BackendDescriptor] = {}
        self._plugins: Dict[str, BackendFactory] = dict(plugins or {})
        self._discover_plugins = discover_plugins
        self._discovered: Optional[Dict[str, BackendFactory]] = None
        self._instances: Dict[str, Backend] = {}
        self._loading: Dict[str, asyncio.Future] = {}
        self._default_uid: Optional[str] = None

        self.register(MIXED_DESCRIPTOR)
        self.register(EXPRESSION_DESCRIPTOR)
        self._instances[MIXED_DESCRIPTOR.uid] = MixedBackend()
        self._instances[EXPRESSION_DESCRIPTOR.uid] = ExpressionBackend()

        for descriptor in descriptors:
            self.register(descriptor)

    def register(self, descriptor: BackendDescriptor) -> None:
        """Adds or replaces a descriptor. A replaced backend is reloaded on next use."""
        self._descriptors[descriptor.uid] = descriptor
        self._instances.pop(descriptor.uid, None)
        if descriptor.is_default:
            self._default_uid = descriptor.uid

    def register_plugin(self, backend_type: str, factory: BackendFactory) -> None:
        self._plugins[backend_type] = factory

    def interpolate(self, ref: Optional[str]) -> Optional[str]:
        return self.variables.replace(ref)

    def _ref_key(self, ref: BackendRefLike) -> Optional[str]:
        if ref is None or isinstance(ref, str):
            return ref or None
        if isinstance(ref, BackendDescriptor):
            return ref.uid
        if isinstance(ref, QueryGroupDataSource):
            return ref.uid or ref.name
        if isinstance(ref, DataSourceRef):
            return ref.uid
        if isinstance(ref, dict):
            return ref.get("uid") or ref.get("name")
        raise TypeError(f"Unsupported backend reference: {ref!r}")

    def get_instance_settings(self, ref: BackendRefLike = None) -> Optional[BackendDescriptor]:
        """
        Looks up the descriptor for a reference without loading anything.

        An empty reference means the organization default.

        Returns:
            The descriptor, or None if the reference is unknown.
        """
        key = self._ref_key(ref)
        if key is None:
            return self.get_default_settings()

        key = self.interpolate(key)
        if key == MIXED_BACKEND_TYPE:
            return MIXED_DESCRIPTOR
        if key in self._descriptors:
            return self._descriptors[key]
        for descriptor in self._descriptors.values():
            if descriptor.name == key:
                return descriptor
        return None

    def get_default_settings(self) -> Optional[BackendDescriptor]:
        if self._default_uid is None:
            return None
        return self._descriptors.get(self._default_uid)

    def get_list(
        self,
        mixed: bool = False,
        alerting: Optional[bool] = None,
        imports_foreign_queries: Optional[bool] = None,
    ) -> List[BackendDescriptor]:
        """Returns the configured descriptors sorted by name.

        Args:
            mixed: Include the mixed virtual backend.
            alerting: When set, only include backends whose alerting flag matches.
            imports_foreign_queries: When set, only include backends whose import flag matches.
        """
        result = []
        for descriptor in self._descriptors.values():
            if descriptor.uid in _BUILTIN_UIDS and not (mixed and descriptor.capabilities.mixed):
                continue
            if alerting is not None and descriptor.capabilities.alerting != alerting:
                continue
            if (
                imports_foreign_queries is not None
                and descriptor.capabilities.imports_foreign_queries != imports_foreign_queries
            ):
                continue
            result.append(descriptor)
        return sorted(result, key=lambda d: d.name.lower())

    async def get(self, ref: BackendRefLike = None) -> Backend:
        """
        Resolves a reference to a live backend instance, loading its plugin if needed.

        Concurrent requests for the same backend share one load.

        Raises:
            BackendNotFoundError: If the reference does not resolve to a descriptor.
            BackendLoadError: If the plugin fails to load.
        """
        descriptor = self.get_instance_settings(ref)
        if descriptor is None:
            raise BackendNotFoundError(self._ref_key(ref) or "default")

        instance = self._instances.get(descriptor.uid)
        if instance is not None:
            return instance

        future = self._loading.get(descriptor.uid)
        if future is None:
            future = asyncio.ensure_future(self._load(descriptor))
            self._loading[descriptor.uid] = future
            future.add_done_callback(lambda _f, uid=descriptor.uid: self._loading.pop(uid, None))
        return await asyncio.shield(future)

    async def get_default(self) -> Backend:
        """Returns the organization-wide default backend instance."""
        return await self.get(None)

    def _factory_for(self, backend_type: str) -> Optional[BackendFactory]:
        if backend_type in self._plugins:
            return self._plugins[backend_type]
        if not self._discover_plugins:
            return None
        if self._discovered is None:
            self._discovered = discover_backend_plugins()
        return self._discovered.get(backend_type)

    async def _load(self, descriptor: BackendDescriptor) -> Backend:
        factory = self._factory_for(descriptor.type)
        if factory is None:
            logger.debug(f"No plugin installed for backend type '{descriptor.type}', using static backend")
            instance: Backend = StaticBackend(descriptor)
        else:
            try:
                created = factory(descriptor)
                if inspect.isawaitable(created):
                    created = await created
                instance = created
            except QueryGroupError:
                raise
            except Exception as e:
                raise BackendLoadError(
                    f"Failed to load plugin '{descriptor.type}' for backend {descriptor.uid}: {e}",
                    details={"uid": descriptor.uid, "type": descriptor.type},
                ) from e

        # A re-registration while loading invalidates this instance.
        if self._descriptors.get(descriptor.uid) is descriptor:
            self._instances[descriptor.uid] = instance
        logger.info(f"Loaded backend '{descriptor.name}' ({descriptor.type})")
        return instance
