"""Tests for the metric sampler."""
import logging
from unittest.mock import MagicMock

from conftest import FakeSource
from monitor.sampler import MetricSampler
from monitor.sensors.base import SensorReadError, SensorUnavailable
from monitor.timeseries import TimeSeriesStore


def _sampler(sources, engine=None, config=None):
    store = TimeSeriesStore()
    return MetricSampler({s.family: s for s in sources}, store, engine, config), store


def test_sample_shares_timestamp():
    sampler, _ = _sampler([])
    source = FakeSource("memory", [{"memory_usage_percent": 40.0, "memory_used_gb": 6.4}])
    samples = sampler.sample(source)
    assert [s.metric_name for s in samples] == ["memory_usage_percent", "memory_used_gb"]
    assert samples[0].timestamp == samples[1].timestamp
    assert samples[0].timestamp.tzinfo is not None


def test_poll_feeds_store_and_engine_in_order():
    engine = MagicMock()
    source = FakeSource("cpu", [{"cpu_usage": 91.0, "cpu_frequency_mhz": 3000.0}])
    sampler, store = _sampler([source], engine)

    samples = sampler.poll("cpu")
    assert len(samples) == 2
    assert store.latest("cpu_usage").value == 91.0
    evaluated = [c.args[0].metric_name for c in engine.evaluate.call_args_list]
    assert evaluated == ["cpu_usage", "cpu_frequency_mhz"]


def test_poll_configures_capacity_from_interval():
    config = {"sampler": {"intervals": {"disk": 5}}, "timeseries": {"retention_seconds": 60}}
    source = FakeSource("disk", [{"disk_usage_percent": 30.0}])
    sampler, store = _sampler([source], config=config)
    sampler.poll("disk")
    assert store.capacity("disk_usage_percent") == 12


def test_capacity_override_from_config():
    config = {"timeseries": {"capacities": {"cpu_usage": 7}}}
    sampler, store = _sampler([FakeSource("cpu", [{"cpu_usage": 1.0}])], config=config)
    sampler.poll("cpu")
    assert store.capacity("cpu_usage") == 7


def test_unavailable_source_is_skipped_until_restart():
    source = FakeSource("fan", [SensorUnavailable("no fans", "fan"), {"fans_total_count": 2.0}])
    sampler, store = _sampler([source])

    assert sampler.poll("fan") == []
    assert sampler.poll("fan") == []
    assert source.calls == 1
    status = sampler.status()["fan"]
    assert status["available"] is False
    assert "no fans" in status["reason"]
    assert store.metrics() == []


def test_read_errors_are_counted_and_retried(caplog):
    err = SensorReadError("flaky", "cpu")
    source = FakeSource("cpu", [err, err, err, {"cpu_usage": 10.0}])
    sampler, store = _sampler([source], config={"sampler": {"failure_alert_threshold": 3}})

    with caplog.at_level(logging.ERROR, logger="hwmonitor.sampler"):
        for _ in range(3):
            assert sampler.poll("cpu") == []
    assert sampler.status()["cpu"]["consecutive_failures"] == 3
    assert any("failed 3 times" in r.getMessage() for r in caplog.records)

    assert len(sampler.poll("cpu")) == 1
    assert sampler.status()["cpu"]["consecutive_failures"] == 0
    assert sampler.status()["cpu"]["available"] is True


def test_one_failing_source_does_not_affect_another():
    bad = FakeSource("disk", [SensorReadError("io", "disk")])
    good = FakeSource("memory", [{"memory_usage_percent": 55.0}])
    sampler, store = _sampler([bad, good])
    results = sampler.poll_all()
    assert results["disk"] == []
    assert store.latest("memory_usage_percent").value == 55.0


def test_snapshot_groups_by_family():
    sampler, _ = _sampler([
        FakeSource("cpu", [{"cpu_usage": 12.0}]),
        FakeSource("memory", [{"memory_usage_percent": 34.0}]),
    ])
    assert sampler.snapshot() == {"timestamp": None}
    sampler.poll_all()
    snap = sampler.snapshot()
    assert snap["cpu"] == {"cpu_usage": 12.0}
    assert snap["memory"] == {"memory_usage_percent": 34.0}
    assert snap["timestamp"] is not None


def test_poll_unknown_source_is_noop():
    sampler, _ = _sampler([])
    assert sampler.poll("nope") == []


def test_schedule_registers_available_sources():
    sampler, _ = _sampler([
        FakeSource("cpu", [{"cpu_usage": 1.0}]),
        FakeSource("gpu", [SensorUnavailable("no gpu", "gpu")]),
    ])
    sampler.poll("gpu")
    scheduler = MagicMock()
    sampler.schedule(scheduler)
    names = [c.args[0] for c in scheduler.every.call_args_list]
    intervals = [c.args[1] for c in scheduler.every.call_args_list]
    assert names == ["poll:cpu"]
    assert intervals == [1]
