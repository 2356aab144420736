import pathlib
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from querygroup.backends.models import BackendDescriptor


class BackendFileConfig(BaseModel):
    """File-level schema for backends.yaml."""
    version: int = Field(1, description="Schema version")
    default: Optional[str] = Field(None, description="uid of the organization default backend")
    backends: List[BackendDescriptor]


def load_backend_catalog(path: pathlib.Path) -> List[BackendDescriptor]:
    """
    Loads backend descriptors from YAML.

    The top-level ``default`` key, when present, overrides any ``isDefault``
    flag set on individual entries.
    """
    if not path.exists():
        raise FileNotFoundError(f"Backend catalog not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse YAML from {path}: {e}")

    try:
        file_config = BackendFileConfig.model_validate(raw)
    except ValidationError as e:
        raise ValueError(f"Backend Catalog Invalid: {e}")

    descriptors = file_config.backends
    if file_config.default is not None:
        uids = {d.uid for d in descriptors}
        if file_config.default not in uids:
            raise ValueError(f"Default backend '{file_config.default}' is not in the catalog")
        descriptors = [
            d.model_copy(update={"is_default": d.uid == file_config.default}) for d in descriptors
        ]
    return descriptors
