"""Shared test fixtures."""
import os
import sys
import pytest
import tempfile

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import datetime, timedelta, timezone

from models.alerts import AlertEvent, AlertRule
from models.database import Database
from models.enums import Comparison, Severity
from models.metrics import MetricSample
from models.node import Node
from monitor.sensors.base import SensorSource

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    db = Database(db_path)
    db.connect()
    yield db
    db.close()
    for suffix in ("", "-wal", "-shm"):
        if os.path.exists(db_path + suffix):
            os.unlink(db_path + suffix)


@pytest.fixture
def test_config(tmp_path):
    """Default config pointed at a throwaway directory."""
    from config import load_config
    config = load_config()
    config["database"]["path"] = str(tmp_path / "hwmonitor.db")
    config["alerts"]["log_file"] = str(tmp_path / "alerts.jsonl")
    config["alerts"]["console"] = False
    config["node"]["name"] = "test-node"
    config["node"]["ip_address"] = "127.0.0.1"
    return config


def make_sample(metric="cpu_usage", value=50.0, seconds=0):
    return MetricSample(metric_name=metric, value=value, timestamp=T0 + timedelta(seconds=seconds))


def make_rule(rule_id="cpu_high", metric="cpu_usage", comparison=">", threshold=90.0,
              severity="WARNING", cooldown=300, **kwargs):
    return AlertRule(
        id=rule_id,
        name=kwargs.pop("name", rule_id.replace("_", " ").title()),
        metric_name=metric,
        comparison=Comparison(comparison),
        threshold=threshold,
        severity=Severity(severity),
        cooldown_seconds=cooldown,
        **kwargs,
    )


def make_event(rule_id="cpu_high", severity=Severity.WARNING, source="node-a", **kwargs):
    return AlertEvent(
        rule_id=rule_id,
        rule_name=kwargs.pop("rule_name", rule_id),
        severity=severity,
        message=kwargs.pop("message", f"{rule_id} fired"),
        source_node_id=source,
        timestamp=kwargs.pop("timestamp", T0),
        **kwargs,
    )


def make_node(node_id="peer-1", name=None, ip="192.168.1.10", port=3030, **kwargs):
    return Node(id=node_id, name=name or node_id, ip_address=ip, api_port=port,
                os_info="Linux 6.8", version="0.1.0", **kwargs)


class FakeSource(SensorSource):
    """Sensor source returning scripted values or raising scripted errors."""

    def __init__(self, family, readings):
        self.family = family
        self.readings = list(readings)
        self.calls = 0

    def read(self):
        self.calls += 1
        item = self.readings[min(self.calls - 1, len(self.readings) - 1)]
        if isinstance(item, Exception):
            raise item
        return dict(item)


@pytest.fixture
def node_context(test_config):
    """A fully wired NodeContext with scripted sensors and no network."""
    from unittest.mock import MagicMock
    from context import NodeContext

    sources = {"cpu": FakeSource("cpu", [{"cpu_usage": 42.0, "cpu_frequency_mhz": 3200.0}])}
    ctx = NodeContext(test_config, sources=sources, zeroconf_factory=MagicMock())
    yield ctx
    ctx.broadcaster.shutdown(wait=False)
    ctx.db.close()
