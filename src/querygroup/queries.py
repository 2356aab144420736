"""Helpers for manipulating ordered query lists."""
from __future__ import annotations

import string
from typing import Any, Dict, List, Optional, Sequence

from querygroup.models import Query, DataSourceRef, RESERVED_QUERY_FIELDS

EXPRESSION_BACKEND_UID = "__expr__"

_LETTERS = string.ascii_uppercase


def query_is_empty(query: Query) -> bool:
    """A query is empty when it carries nothing besides its identity and binding."""
    return not query.payload


def ref_id_for_index(num: int) -> str:
    """Maps 0, 1, ... 25, 26, 27 ... to A, B, ... Z, AA, AB ..."""
    if num < len(_LETTERS):
        return _LETTERS[num]
    return ref_id_for_index(num // len(_LETTERS) - 1) + _LETTERS[num % len(_LETTERS)]


def next_ref_id(queries: Sequence[Query]) -> str:
    taken = {q.ref_id for q in queries}
    num = 0
    while ref_id_for_index(num) in taken:
        num += 1
    return ref_id_for_index(num)


def is_expression_query(query: Query) -> bool:
    ds = query.datasource
    if ds is None:
        return False
    return ds.uid == EXPRESSION_BACKEND_UID or ds.type == EXPRESSION_BACKEND_UID


def add_query(
    queries: Sequence[Query],
    partial: Optional[Dict[str, Any]] = None,
    datasource: Optional[DataSourceRef] = None,
) -> List[Query]:
    """Returns a new list with ``partial`` appended under a fresh refId.

    Args:
        queries: The current query list. It is not modified.
        partial: Payload and optional ``datasource`` of the new query.
        datasource: Binding used when ``partial`` does not carry one.

    Returns:
        List[Query]: The extended list.
    """
    partial = dict(partial or {})
    binding = partial.pop("datasource", None)
    if binding is None:
        binding = datasource
    elif not isinstance(binding, DataSourceRef):
        binding = DataSourceRef.model_validate(binding)

    payload = {k: v for k, v in partial.items() if k not in RESERVED_QUERY_FIELDS}
    new_query = Query.build(next_ref_id(queries), datasource=binding, payload=payload, hide=False)
    return [*queries, new_query]
