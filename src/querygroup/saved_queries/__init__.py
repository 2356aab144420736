"""Saved query sets and the loaders that fetch them."""
from querygroup.saved_queries.models import SavedQuerySet, is_mixed_query_set
from querygroup.saved_queries.loader import (
    HttpSavedQuerySetLoader,
    InMemorySavedQuerySetLoader,
    SavedQuerySetLoader,
    load_saved_query_sets,
)

__all__ = [
    "SavedQuerySet",
    "is_mixed_query_set",
    "HttpSavedQuerySetLoader",
    "InMemorySavedQuerySetLoader",
    "SavedQuerySetLoader",
    "load_saved_query_sets",
]
