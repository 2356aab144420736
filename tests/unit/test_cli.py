import json

import pytest
from typer.testing import CliRunner

from querygroup.cli import app

runner = CliRunner()

CATALOG = """
version: 1
default: prom-uid
backends:
  - uid: prom-uid
    type: prometheus
    name: Prometheus
    capabilities: {alerting: true}
    defaultQuery: {expr: ""}
  - uid: loki-uid
    type: loki
    name: Loki
    defaultQuery: {expr: "", queryType: range}
  - uid: influx-uid
    type: influxdb
    name: InfluxDB
    defaultQuery: {query: "", rawQuery: true}
"""

SAVED = """
saved_queries:
  - uid: loki-set
    title: Loki errors
    queries:
      - refId: A
        expr: '{app="api"}'
        datasource: {uid: loki-uid, type: loki}
"""


@pytest.fixture
def files(tmp_path):
    catalog = tmp_path / "backends.yaml"
    catalog.write_text(CATALOG, encoding="utf-8")
    saved = tmp_path / "saved_queries.yaml"
    saved.write_text(SAVED, encoding="utf-8")
    options = tmp_path / "panel.json"
    options.write_text(json.dumps({
        "dataSource": {"uid": "loki-uid", "name": "Loki", "type": "loki"},
        "queries": [{"refId": "A", "expr": "{app=\"web\"}", "datasource": {"uid": "loki-uid", "type": "loki"}}],
        "maxDataPoints": 1000,
    }), encoding="utf-8")
    return {"catalog": catalog, "saved": saved, "options": options, "out": tmp_path / "out.json"}


def test_backends_lists_catalog(files):
    result = runner.invoke(app, ["backends", "--catalog", str(files["catalog"])])

    assert result.exit_code == 0
    for uid in ("prom-uid", "loki-uid", "influx-uid"):
        assert uid in result.output
    assert "Mixed" not in result.output
    assert "alerting" in result.output


def test_switch_writes_migrated_options(files):
    # Arrange
    args = [
        "--log-level", "WARNING",
        "switch", str(files["options"]), "InfluxDB",
        "--catalog", str(files["catalog"]),
        "--out", str(files["out"]),
    ]

    # Act
    result = runner.invoke(app, args)

    # Assert
    assert result.exit_code == 0, result.output
    written = json.loads(files["out"].read_text(encoding="utf-8"))
    assert written["dataSource"]["uid"] == "influx-uid"
    assert written["savedQueryUid"] is None
    assert written["maxDataPoints"] == 1000
    assert written["queries"] == [
        {"refId": "A", "datasource": {"uid": "influx-uid", "type": "influxdb"}, "query": "", "rawQuery": True}
    ]


def test_switch_to_unknown_backend_fails(files):
    result = runner.invoke(app, ["switch", str(files["options"]), "nope", "--catalog", str(files["catalog"])])
    assert result.exit_code == 1


def test_link_writes_saved_queries(files):
    result = runner.invoke(app, [
        "link", str(files["options"]), "loki-set",
        "--catalog", str(files["catalog"]),
        "--saved-queries", str(files["saved"]),
        "--out", str(files["out"]),
    ])

    assert result.exit_code == 0, result.output
    written = json.loads(files["out"].read_text(encoding="utf-8"))
    assert written["savedQueryUid"] == "loki-set"
    assert written["queries"][0]["expr"] == "{app=\"api\"}"


def test_link_unknown_set_fails(files):
    result = runner.invoke(app, [
        "link", str(files["options"]), "missing",
        "--catalog", str(files["catalog"]),
        "--saved-queries", str(files["saved"]),
    ])
    assert result.exit_code == 1
