import pytest
from typing import List
from unittest.mock import MagicMock

from querygroup.backends import (
    AbstractQuery,
    Backend,
    BackendCapabilities,
    BackendDescriptor,
    BackendResolver,
    LabelMatcher,
)
from querygroup.group import GroupActionRegistry
from querygroup.models import CoreApp, Query, QueryGroupOptions
from querygroup.saved_queries import InMemorySavedQuerySetLoader, SavedQuerySet


class PrometheusBackend(Backend):
    def get_default_query(self, app: CoreApp):
        return {"expr": ""}

    async def import_from_abstract_queries(self, queries: List[AbstractQuery]) -> List[Query]:
        result = []
        for abstract in queries:
            matchers = ",".join(f'{m.name}{m.operator}"{m.value}"' for m in abstract.label_matchers)
            result.append(Query.build(abstract.ref_id, payload={"expr": "{" + matchers + "}"}))
        return result


class LokiBackend(Backend):
    def get_default_query(self, app: CoreApp):
        return {"expr": "", "queryType": "range"}

    async def export_to_abstract_queries(self, queries: List[Query]) -> List[AbstractQuery]:
        return [
            AbstractQuery(
                ref_id=q.ref_id,
                label_matchers=[
                    LabelMatcher(name=k, value=v) for k, v in q.payload.get("labels", {}).items()
                ],
            )
            for q in queries
        ]


class InfluxBackend(Backend):
    """No import capability of any kind."""

    def get_default_query(self, app: CoreApp):
        return {"query": "", "rawQuery": True}


class ElasticBackend(Backend):
    def get_default_query(self, app: CoreApp):
        return {"query": "*"}

    async def import_query(self, query: Query, source: Backend) -> Query:
        if "fail" in query.payload:
            raise RuntimeError("cannot convert")
        return Query.build(query.ref_id, payload={"query": f"converted:{query.payload.get('expr')}"})


PLUGINS = {
    "prometheus": PrometheusBackend,
    "loki": LokiBackend,
    "influxdb": InfluxBackend,
    "elasticsearch": ElasticBackend,
}

PROM = BackendDescriptor(uid="prom-uid", type="prometheus", name="Prometheus", is_default=True,
                         capabilities=BackendCapabilities(alerting=True, has_default_query=True))
PROM2 = BackendDescriptor(uid="prom2-uid", type="prometheus", name="Prometheus EU")
LOKI = BackendDescriptor(uid="loki-uid", type="loki", name="Loki")
INFLUX = BackendDescriptor(uid="influx-uid", type="influxdb", name="InfluxDB")
ELASTIC = BackendDescriptor(uid="es-uid", type="elasticsearch", name="Elastic")


def make_resolver(**kwargs) -> BackendResolver:
    return BackendResolver(
        [PROM, PROM2, LOKI, INFLUX, ELASTIC],
        plugins=dict(PLUGINS),
        discover_plugins=False,
        **kwargs,
    )


def make_options(descriptor: BackendDescriptor, queries=None, **extra) -> QueryGroupOptions:
    return QueryGroupOptions.model_validate({
        "dataSource": {"uid": descriptor.uid, "name": descriptor.name, "type": descriptor.type},
        "queries": queries if queries is not None else [],
        **extra,
    })


@pytest.fixture
def resolver():
    return make_resolver()


@pytest.fixture
def saved_sets():
    """A homogeneous set on Loki, a mixed set and an empty set."""
    return InMemorySavedQuerySetLoader([
        SavedQuerySet.model_validate({
            "uid": "loki-set",
            "title": "Loki errors",
            "queries": [
                {"refId": "A", "expr": "{app=\"api\"} |= \"error\"", "datasource": {"uid": "loki-uid", "type": "loki"}},
            ],
        }),
        SavedQuerySet.model_validate({
            "uid": "mixed-set",
            "title": "Mixed",
            "queries": [
                {"refId": "A", "expr": "up", "datasource": {"uid": "prom-uid", "type": "prometheus"}},
                {"refId": "B", "expr": "{app=\"api\"}", "datasource": {"uid": "loki-uid", "type": "loki"}},
            ],
        }),
        SavedQuerySet(uid="empty-set", title="Empty"),
    ])


@pytest.fixture
def actions():
    return GroupActionRegistry()


@pytest.fixture
def on_run_queries():
    return MagicMock()
