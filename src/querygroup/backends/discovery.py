from importlib.metadata import entry_points
from typing import Awaitable, Callable, Dict, Union

from querygroup.backends.models import BackendDescriptor
from querygroup.backends.protocols import Backend
from querygroup.common.logger import get_logger

logger = get_logger(__name__)

BACKEND_ENTRY_POINT_GROUP = "querygroup.backends"

BackendFactory = Callable[[BackendDescriptor], Union[Backend, Awaitable[Backend]]]


def discover_backend_plugins() -> Dict[str, BackendFactory]:
    """Discovers installed backend plugins via 'querygroup.backends' entry points.

    Returns:
        Dict[str, BackendFactory]: Dict mapping backend type (e.g., 'prometheus')
            to a factory building an instance from its descriptor.
    """
    plugins = {}
    for ep in entry_points(group=BACKEND_ENTRY_POINT_GROUP):
        try:
            plugins[ep.name] = ep.load()
        except Exception as e:
            logger.error(f"Failed to load backend plugin {ep.name}: {e}")

    return plugins
