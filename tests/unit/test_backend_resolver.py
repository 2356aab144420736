import asyncio
import pathlib
from unittest.mock import MagicMock

import pytest

from querygroup.backends import (
    MIXED_BACKEND_UID,
    BackendDescriptor,
    BackendResolver,
    MixedBackend,
    StaticBackend,
    TemplateVariables,
    load_backend_catalog,
)
from querygroup.common.errors import BackendLoadError, BackendNotFoundError
from querygroup.models import CoreApp, DataSourceRef, QueryGroupDataSource

from conftest import LOKI, PROM, PrometheusBackend, make_resolver


def test_get_instance_settings_by_uid_name_and_default(resolver):
    assert resolver.get_instance_settings("loki-uid") is LOKI
    assert resolver.get_instance_settings("Loki") is LOKI
    assert resolver.get_instance_settings(DataSourceRef(uid="loki-uid", type="loki")) is LOKI
    assert resolver.get_instance_settings(QueryGroupDataSource(name="Loki")) is LOKI
    assert resolver.get_instance_settings({"uid": "loki-uid"}) is LOKI
    assert resolver.get_instance_settings(None) is PROM
    assert resolver.get_instance_settings("") is PROM
    assert resolver.get_instance_settings("missing") is None


def test_mixed_alias_resolves_to_virtual_backend(resolver):
    assert resolver.get_instance_settings("mixed").uid == MIXED_BACKEND_UID
    assert resolver.get_instance_settings(MIXED_BACKEND_UID).capabilities.mixed


def test_variable_reference_is_interpolated():
    resolver = make_resolver(variables=TemplateVariables({"ds": "loki-uid"}))
    assert resolver.interpolate("${ds}") == "loki-uid"
    assert resolver.interpolate("$ds") == "loki-uid"
    assert resolver.interpolate("${unknown}") == "${unknown}"
    assert resolver.get_instance_settings("${ds}") is LOKI


def test_get_list_filters_builtins_and_sorts_by_name(resolver):
    names = [d.name for d in resolver.get_list()]
    assert names == ["Elastic", "InfluxDB", "Loki", "Prometheus", "Prometheus EU"]

    with_mixed = [d.uid for d in resolver.get_list(mixed=True)]
    assert MIXED_BACKEND_UID in with_mixed
    assert "__expr__" not in with_mixed

    assert [d.uid for d in resolver.get_list(alerting=True)] == ["prom-uid"]


def test_get_list_filters_by_import_flag():
    importer = BackendDescriptor.model_validate({
        "uid": "es-uid",
        "type": "elasticsearch",
        "name": "Elastic",
        "capabilities": {"importsForeignQueries": True, "hasDefaultQuery": True},
    })
    resolver = BackendResolver([PROM, LOKI, importer], discover_plugins=False)

    assert [d.uid for d in resolver.get_list(imports_foreign_queries=True)] == ["es-uid"]
    assert [d.uid for d in resolver.get_list(imports_foreign_queries=False)] == ["loki-uid", "prom-uid"]
    assert importer.capabilities.enabled() == ["imports_foreign_queries", "has_default_query"]
    assert PROM.capabilities.enabled() == ["alerting", "has_default_query"]


@pytest.mark.asyncio
async def test_get_loads_plugin_and_caches_instance(resolver):
    first = await resolver.get("prom-uid")
    second = await resolver.get("Prometheus")

    assert isinstance(first, PrometheusBackend)
    assert first is second
    assert first.get_ref() == DataSourceRef(uid="prom-uid", type="prometheus")


@pytest.mark.asyncio
async def test_get_default_and_mixed(resolver):
    assert (await resolver.get_default()).uid == "prom-uid"
    assert isinstance(await resolver.get("mixed"), MixedBackend)


@pytest.mark.asyncio
async def test_get_unknown_reference_raises_not_found(resolver):
    with pytest.raises(BackendNotFoundError) as exc_info:
        await resolver.get("nope")
    assert exc_info.value.ref == "nope"


@pytest.mark.asyncio
async def test_get_default_without_default_backend_raises_not_found():
    resolver = BackendResolver([LOKI], discover_plugins=False)
    with pytest.raises(BackendNotFoundError):
        await resolver.get_default()


@pytest.mark.asyncio
async def test_concurrent_gets_share_one_load():
    # Arrange
    gate = asyncio.Event()
    calls = []

    async def slow_factory(descriptor):
        calls.append(descriptor.uid)
        await gate.wait()
        return PrometheusBackend(descriptor)

    resolver = BackendResolver([PROM], plugins={"prometheus": slow_factory}, discover_plugins=False)

    # Act
    first = asyncio.create_task(resolver.get("prom-uid"))
    second = asyncio.create_task(resolver.get("prom-uid"))
    await asyncio.sleep(0)
    gate.set()
    a, b = await asyncio.gather(first, second)

    # Assert
    assert a is b
    assert calls == ["prom-uid"]


@pytest.mark.asyncio
async def test_factory_failure_is_a_load_error():
    factory = MagicMock(side_effect=RuntimeError("boom"))
    resolver = BackendResolver([PROM], plugins={"prometheus": factory}, discover_plugins=False)

    with pytest.raises(BackendLoadError) as exc_info:
        await resolver.get("prom-uid")

    assert "boom" in exc_info.value.message
    # A failed load is not cached; the next call tries again.
    with pytest.raises(BackendLoadError):
        await resolver.get("prom-uid")
    assert factory.call_count == 2


@pytest.mark.asyncio
async def test_static_backend_used_without_plugin():
    descriptor = BackendDescriptor.model_validate({
        "uid": "tempo-uid",
        "type": "tempo",
        "name": "Tempo",
        "defaultQuery": {"queryType": "traceql", "query": ""},
    })
    resolver = BackendResolver([descriptor], discover_plugins=False)

    backend = await resolver.get("tempo-uid")

    assert isinstance(backend, StaticBackend)
    assert backend.get_default_query(CoreApp.PANEL_EDITOR) == {"queryType": "traceql", "query": ""}


@pytest.mark.asyncio
async def test_discovered_plugins_are_used(monkeypatch):
    monkeypatch.setattr(
        "querygroup.backends.resolver.discover_backend_plugins",
        lambda: {"prometheus": PrometheusBackend},
    )
    resolver = BackendResolver([PROM])

    assert isinstance(await resolver.get("prom-uid"), PrometheusBackend)


@pytest.mark.asyncio
async def test_register_replaces_descriptor_and_reloads():
    resolver = make_resolver()
    before = await resolver.get("loki-uid")

    renamed = LOKI.model_copy(update={"name": "Loki (EU)"})
    resolver.register(renamed)
    after = await resolver.get("loki-uid")

    assert after is not before
    assert after.name == "Loki (EU)"


def _write(path: pathlib.Path, text: str) -> pathlib.Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_load_backend_catalog(tmp_path):
    path = _write(tmp_path / "backends.yaml", """
version: 1
default: loki-uid
backends:
  - uid: prom-uid
    type: prometheus
    name: Prometheus
    isDefault: true
    capabilities:
      alerting: true
  - uid: loki-uid
    type: loki
    name: Loki
    defaultQuery:
      expr: ""
""")

    descriptors = load_backend_catalog(path)

    by_uid = {d.uid: d for d in descriptors}
    assert by_uid["prom-uid"].capabilities.alerting is True
    assert by_uid["prom-uid"].is_default is False
    assert by_uid["loki-uid"].is_default is True
    assert by_uid["loki-uid"].default_query == {"expr": ""}


def test_load_backend_catalog_rejects_unknown_default(tmp_path):
    path = _write(tmp_path / "backends.yaml", """
default: nope
backends:
  - {uid: a, type: prometheus, name: A}
""")
    with pytest.raises(ValueError):
        load_backend_catalog(path)


def test_load_backend_catalog_invalid_and_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_backend_catalog(tmp_path / "missing.yaml")

    path = _write(tmp_path / "bad.yaml", "backends:\n  - uid: a\n")
    with pytest.raises(ValueError):
        load_backend_catalog(path)
