"""Backend descriptors, plugin instances, capability protocols and resolution."""
from querygroup.backends.models import (
    AbstractQuery,
    BackendCapabilities,
    BackendDescriptor,
    LabelMatcher,
)
from querygroup.backends.protocols import (
    Backend,
    SupportsAbstractQueryExport,
    SupportsAbstractQueryImport,
    SupportsDefaultQuery,
    SupportsQueryImport,
)
from querygroup.backends.builtin import (
    MIXED_BACKEND_UID,
    MIXED_BACKEND_NAME,
    MIXED_BACKEND_TYPE,
    ExpressionBackend,
    MixedBackend,
    StaticBackend,
)
from querygroup.backends.config import BackendFileConfig, load_backend_catalog
from querygroup.backends.discovery import discover_backend_plugins
from querygroup.backends.resolver import BackendResolver
from querygroup.backends.templating import TemplateVariables

__all__ = [
    "AbstractQuery",
    "BackendCapabilities",
    "BackendDescriptor",
    "LabelMatcher",
    "Backend",
    "SupportsAbstractQueryExport",
    "SupportsAbstractQueryImport",
    "SupportsDefaultQuery",
    "SupportsQueryImport",
    "MIXED_BACKEND_UID",
    "MIXED_BACKEND_NAME",
    "MIXED_BACKEND_TYPE",
    "ExpressionBackend",
    "MixedBackend",
    "StaticBackend",
    "BackendFileConfig",
    "load_backend_catalog",
    "discover_backend_plugins",
    "BackendResolver",
    "TemplateVariables",
]
