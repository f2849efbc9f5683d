"""Tests for the Flask API gateway."""
import pytest

from conftest import T0, make_node
from models.enums import NodeStatus
from web.app import create_app

LEGACY_PAYLOAD = {
    "alert_type": "cpu_high",
    "severity": "critical",
    "message": "CPU at 99%",
    "source_node_id": "peer-9",
    "timestamp": 1767268800000,
}


@pytest.fixture
def app(node_context):
    app = create_app(node_context.config, node_context.engines())
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def _notify_payload(**overrides):
    payload = {
        "rule_id": "gpu_hot",
        "rule_name": "GPU hot",
        "severity": "ERROR",
        "message": "GPU at 92C",
        "source_node_id": "peer-1",
        "source_node_name": "render-box",
        "timestamp": T0.isoformat(),
    }
    payload.update(overrides)
    return payload


class TestPeerProtocol:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["status"] == "ok"
        assert data["version"] == "0.1.0"
        assert "timestamp" in data

    def test_cors_headers(self, client):
        resp = client.get("/health")
        assert resp.headers["Access-Control-Allow-Origin"] == "*"
        assert "PATCH" in resp.headers["Access-Control-Allow-Methods"]

    def test_node(self, client, node_context):
        data = client.get("/node").get_json()
        assert data["id"] == node_context.node.id
        assert data["name"] == "test-node"
        assert data["ip_address"] == "127.0.0.1"
        assert data["status"] == "ONLINE"

    def test_hardware_snapshot(self, client, node_context):
        assert client.get("/hardware").get_json() == {"timestamp": None}
        node_context.sampler.poll("cpu")
        data = client.get("/hardware").get_json()
        assert data["cpu"]["cpu_usage"] == 42.0
        assert data["timestamp"] is not None

    def test_nodes(self, client, node_context):
        node_context.directory.upsert(make_node("peer-1", name="render-box"))
        data = client.get("/nodes").get_json()
        assert data["count"] == 1
        assert data["nodes"][0]["name"] == "render-box"


class TestNotify:
    def test_valid_notification_is_recorded_as_remote(self, client, node_context):
        resp = client.post("/alerts/notify", json=_notify_payload())
        assert resp.status_code == 200
        assert resp.get_json() == {"status": "ok"}

        records = node_context.history.get_all()
        assert len(records) == 1
        assert records[0].remote is True
        assert records[0].source_node_name == "render-box"

    def test_remote_alert_marks_peer_alerting(self, client, node_context):
        node_context.directory.upsert(make_node("peer-1"))
        client.post("/alerts/notify", json=_notify_payload())
        assert node_context.directory.get("peer-1").status == NodeStatus.ALERTING
        assert node_context.get_node().status == NodeStatus.ONLINE

    def test_remote_alert_is_not_re_evaluated(self, client, node_context):
        client.post("/alerts/notify", json=_notify_payload(rule_id="cpu_high"))
        assert node_context.rules.get("cpu_high").last_triggered is None

    def test_legacy_payload_accepted(self, client, node_context):
        resp = client.post("/alerts/notify", json=LEGACY_PAYLOAD)
        assert resp.status_code == 200
        record = node_context.history.get_all()[0]
        assert record.rule_id == "cpu_high"
        assert record.severity.value == "CRITICAL"
        assert record.timestamp == T0

    @pytest.mark.parametrize("payload", [
        _notify_payload(severity="LOUD"),
        _notify_payload(message=""),
        {k: v for k, v in _notify_payload().items() if k != "source_node_id"},
        _notify_payload(timestamp="yesterday"),
        ["not", "an", "object"],
    ])
    def test_malformed_notification_rejected(self, client, node_context, payload):
        resp = client.post("/alerts/notify", json=payload)
        assert resp.status_code == 400
        assert "error" in resp.get_json()
        assert node_context.history.count() == 0

    def test_non_json_body_rejected(self, client):
        resp = client.post("/alerts/notify", data="hello", content_type="text/plain")
        assert resp.status_code == 400


class TestRules:
    def test_list_seeded_rules(self, client):
        data = client.get("/api/rules").get_json()
        ids = [r["id"] for r in data["rules"]]
        assert "cpu_high" in ids
        assert data["count"] == len(ids)

    def test_add_rule(self, client):
        body = {"id": "swap_high", "name": "Swap high", "metric_name": "swap_usage_percent",
                "comparison": ">=", "threshold": 50, "severity": "warning"}
        resp = client.post("/api/rules", json=body)
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["severity"] == "WARNING"
        assert data["last_triggered"] is None

    def test_add_invalid_rule(self, client):
        body = {"id": "bad", "metric_name": "cpu_usage", "comparison": "==", "threshold": 1}
        assert client.post("/api/rules", json=body).status_code == 400
        assert client.post("/api/rules", json={"id": "x", "metric_name": "cpu_usage",
                                                "threshold": 150}).status_code == 400
        assert client.post("/api/rules").status_code == 400

    def test_add_duplicate_rule(self, client):
        body = {"id": "cpu_high", "metric_name": "cpu_usage", "threshold": 50}
        assert client.post("/api/rules", json=body).status_code == 409

    def test_toggle_rule(self, client, node_context):
        resp = client.patch("/api/rules/cpu_high", json={"enabled": False})
        assert resp.status_code == 200
        assert resp.get_json()["enabled"] is False
        assert node_context.rules.get("cpu_high").enabled is False

    def test_toggle_requires_bool(self, client):
        assert client.patch("/api/rules/cpu_high", json={"enabled": "no"}).status_code == 400

    def test_toggle_unknown(self, client):
        assert client.patch("/api/rules/nope", json={"enabled": True}).status_code == 404

    def test_delete_rule(self, client):
        resp = client.delete("/api/rules/cpu_high")
        assert resp.get_json() == {"status": "ok", "id": "cpu_high"}
        assert client.delete("/api/rules/cpu_high").status_code == 404


class TestAlerts:
    def _seed(self, client):
        client.post("/alerts/notify", json=_notify_payload(rule_id="first"))
        client.post("/alerts/notify", json=_notify_payload(rule_id="second"))

    def test_list_newest_first(self, client):
        self._seed(client)
        data = client.get("/api/alerts").get_json()
        assert data["count"] == 2
        assert [a["rule_id"] for a in data["alerts"]] == ["second", "first"]
        assert client.get("/api/alerts?limit=1").get_json()["count"] == 1

    def test_acknowledge(self, client, node_context):
        self._seed(client)
        record_id = node_context.history.get_all()[0].id
        resp = client.post(f"/api/alerts/{record_id}/ack")
        assert resp.status_code == 200
        assert resp.get_json()["acknowledged"] is True

        data = client.get("/api/alerts?unacknowledged=true").get_json()
        assert [a["rule_id"] for a in data["alerts"]] == ["second"]

    def test_acknowledge_unknown(self, client):
        assert client.post("/api/alerts/missing/ack").status_code == 404

    def test_ack_all_clears_peer_alerting(self, client, node_context):
        node_context.directory.upsert(make_node("peer-1"))
        self._seed(client)
        for record in node_context.history.get_all():
            client.post(f"/api/alerts/{record.id}/ack")
        assert node_context.directory.get("peer-1").status == NodeStatus.ONLINE

    def test_clear(self, client, node_context):
        node_context.directory.upsert(make_node("peer-1"))
        self._seed(client)
        assert client.delete("/api/alerts").get_json() == {"status": "ok"}
        assert node_context.history.count() == 0
        assert node_context.directory.get("peer-1").status == NodeStatus.ONLINE

    def test_export(self, client):
        self._seed(client)
        data = client.get("/api/alerts/export").get_json()
        assert [a["rule_id"] for a in data] == ["first", "second"]


class TestMetrics:
    def test_metrics_listing(self, client, node_context):
        assert client.get("/api/metrics").get_json() == {"metrics": []}
        node_context.sampler.poll("cpu")
        data = client.get("/api/metrics").get_json()
        assert data["metrics"] == ["cpu_frequency_mhz", "cpu_usage"]

    def test_metric_history(self, client, node_context):
        for _ in range(3):
            node_context.sampler.poll("cpu")
        data = client.get("/api/metrics/cpu_usage?points=2").get_json()
        assert data["metric_name"] == "cpu_usage"
        assert data["count"] == 2
        assert data["points"][0]["value"] == 42.0

    def test_unknown_metric_is_empty(self, client):
        data = client.get("/api/metrics/nope").get_json()
        assert data["count"] == 0
        assert data["points"] == []
