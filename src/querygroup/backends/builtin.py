"""Backends that exist in every resolver regardless of configuration."""
from __future__ import annotations

from typing import Any, Dict

from querygroup.backends.models import BackendCapabilities, BackendDescriptor
from querygroup.backends.protocols import Backend
from querygroup.models import CoreApp
from querygroup.queries import EXPRESSION_BACKEND_UID

MIXED_BACKEND_UID = "-- Mixed --"
MIXED_BACKEND_NAME = "-- Mixed --"
MIXED_BACKEND_TYPE = "mixed"

EXPRESSION_BACKEND_NAME = "Expression"

MIXED_DESCRIPTOR = BackendDescriptor(
    uid=MIXED_BACKEND_UID,
    type=MIXED_BACKEND_TYPE,
    name=MIXED_BACKEND_NAME,
    capabilities=BackendCapabilities(mixed=True),
)

EXPRESSION_DESCRIPTOR = BackendDescriptor(
    uid=EXPRESSION_BACKEND_UID,
    type=EXPRESSION_BACKEND_UID,
    name=EXPRESSION_BACKEND_NAME,
    capabilities=BackendCapabilities(has_default_query=True),
)


class MixedBackend(Backend):
    """Virtual backend grouping queries that each keep their own binding."""

    def __init__(self, settings: BackendDescriptor = MIXED_DESCRIPTOR):
        super().__init__(settings)


class ExpressionBackend(Backend):
    """Server-side expressions evaluated over the results of other queries."""

    def __init__(self, settings: BackendDescriptor = EXPRESSION_DESCRIPTOR):
        super().__init__(settings)

    def get_default_query(self, app: CoreApp) -> Dict[str, Any]:
        return {"type": "math", "expression": ""}


class StaticBackend(Backend):
    """Fallback instance for a configured backend type with no installed plugin.

    Serves the ``defaultQuery`` declared in the catalog, if any.
    """

    def get_default_query(self, app: CoreApp) -> Dict[str, Any]:
        return dict(self.settings.default_query or {})
