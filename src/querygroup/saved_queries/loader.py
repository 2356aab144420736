from __future__ import annotations

import pathlib
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, runtime_checkable

import httpx
import yaml
from pydantic import BaseModel, ValidationError

from querygroup.common.errors import SavedQueryFetchError
from querygroup.common.logger import get_logger
from querygroup.saved_queries.models import SavedQuerySet

logger = get_logger(__name__)


@runtime_checkable
class SavedQuerySetLoader(Protocol):
    """Batched lookup of saved query sets by uid.

    Unknown uids are omitted from the result, never reported as errors.
    """

    async def fetch(self, uids: Sequence[str]) -> List[SavedQuerySet]:
        ...


def _in_request_order(uids: Sequence[str], found: Dict[str, SavedQuerySet]) -> List[SavedQuerySet]:
    result = []
    seen = set()
    for uid in uids:
        if uid in found and uid not in seen:
            seen.add(uid)
            result.append(found[uid])
    return result


class InMemorySavedQuerySetLoader:
    """Serves saved query sets from memory."""

    def __init__(self, sets: Iterable[SavedQuerySet] = ()):
        self._sets: Dict[str, SavedQuerySet] = {s.uid: s for s in sets}

    def put(self, saved: SavedQuerySet) -> None:
        self._sets[saved.uid] = saved

    async def fetch(self, uids: Sequence[str]) -> List[SavedQuerySet]:
        found = {uid: self._sets[uid].model_copy(deep=True) for uid in uids if uid in self._sets}
        return _in_request_order(uids, found)


class HttpSavedQuerySetLoader:
    """Fetches saved query sets from a remote query library service.

    All requested uids go out in a single ``GET /api/query-library`` call.
    """

    path = "/api/query-library"

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = client
        self._owns_client = client is None
        self.timeout = timeout
        self.headers = headers or {}

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, headers=self.headers)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def fetch(self, uids: Sequence[str]) -> List[SavedQuerySet]:
        if not uids:
            return []

        url = f"{self.base_url}{self.path}"
        try:
            response = await self._get_client().get(url, params=[("uid", uid) for uid in uids])
            response.raise_for_status()
            body: Any = response.json()
        except httpx.HTTPStatusError as e:
            raise SavedQueryFetchError(
                f"Query library returned {e.response.status_code} for {url}",
                details={"uids": list(uids), "status_code": e.response.status_code},
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise SavedQueryFetchError(
                f"Query library request to {url} failed: {e}", details={"uids": list(uids)}
            ) from e

        items = body.get("result", []) if isinstance(body, dict) else body
        if items is None:
            items = []
        if not isinstance(items, list):
            raise SavedQueryFetchError(
                f"Unexpected response shape from {url}: expected a list of saved query sets, "
                f"got {type(items).__name__}",
                details={"uids": list(uids)},
            )

        found: Dict[str, SavedQuerySet] = {}
        for item in items:
            try:
                saved = SavedQuerySet.model_validate(item)
            except ValidationError as e:
                logger.warning(f"Skipping malformed saved query set from {url}: {e}")
                continue
            found[saved.uid] = saved

        logger.debug(f"Fetched {len(found)} of {len(uids)} saved query sets")
        return _in_request_order(uids, found)


class SavedQueriesFileConfig(BaseModel):
    """File-level schema for saved_queries.yaml."""
    version: int = 1
    saved_queries: List[SavedQuerySet]


def load_saved_query_sets(path: pathlib.Path) -> InMemorySavedQuerySetLoader:
    """Loads saved query sets from YAML into an in-memory loader."""
    if not path.exists():
        raise FileNotFoundError(f"Saved query sets not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse YAML from {path}: {e}")

    try:
        file_config = SavedQueriesFileConfig.model_validate(raw)
    except ValidationError as e:
        raise ValueError(f"Saved Query Sets Invalid: {e}")

    return InMemorySavedQuerySetLoader(file_config.saved_queries)
