"""Tests for the alert engine and alert channels."""
import json
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from alerts.channels import ConsoleChannel, FileChannel, build_channels
from alerts.engine import AlertEngine
from alerts.rules_manager import RulesManager
from conftest import T0, make_event, make_node, make_rule, make_sample


@pytest.fixture
def rules(temp_db):
    return RulesManager(temp_db)


@pytest.fixture
def engine(rules):
    return AlertEngine(rules, local_node=make_node("self-node", name="workstation"))


# ── Rule Evaluation ─────────────────────────────────────

def test_rule_triggers(rules, engine):
    rules.add(make_rule(threshold=90))
    fired = engine.evaluate(make_sample(value=95.0))
    assert len(fired) == 1
    assert fired[0].rule_id == "cpu_high"
    assert fired[0].source_node_id == "self-node"
    assert fired[0].source_node_name == "workstation"
    assert fired[0].timestamp == T0


def test_rule_does_not_trigger(rules, engine):
    rules.add(make_rule(threshold=90))
    assert engine.evaluate(make_sample(value=85.0)) == []


def test_other_metrics_ignored(rules, engine):
    rules.add(make_rule(threshold=90))
    assert engine.evaluate(make_sample("memory_usage_percent", 99.0)) == []


@pytest.mark.parametrize("comparison,value,expected", [
    (">", 90.0, False), (">", 90.1, True),
    (">=", 90.0, True), (">=", 89.9, False),
    ("<", 90.0, False), ("<", 89.9, True),
    ("<=", 90.0, True), ("<=", 90.1, False),
])
def test_all_comparisons(rules, engine, comparison, value, expected):
    rules.add(make_rule(comparison=comparison, threshold=90))
    assert bool(engine.evaluate(make_sample(value=value))) is expected


def test_disabled_rule_does_not_fire(rules, engine):
    rules.add(make_rule(threshold=90))
    rules.toggle("cpu_high", False)
    assert engine.evaluate(make_sample(value=99.0)) == []


def test_cooldown_scenario(rules, engine):
    """cpu_usage > 80 with 300s cooldown: 85 fires at t=0, 90 suppressed at t=10, 90 fires at t=301."""
    rules.add(make_rule(threshold=80, cooldown=300))
    listener = MagicMock()
    engine.add_listener(listener)

    assert len(engine.evaluate(make_sample(value=85.0, seconds=0))) == 1
    assert rules.get("cpu_high").last_triggered == T0

    assert engine.evaluate(make_sample(value=90.0, seconds=10)) == []
    assert rules.get("cpu_high").last_triggered == T0

    fired = engine.evaluate(make_sample(value=90.0, seconds=301))
    assert len(fired) == 1
    assert rules.get("cpu_high").last_triggered == T0 + timedelta(seconds=301)
    assert listener.call_count == 2


def test_cooldown_boundary_is_exclusive(rules, engine):
    rules.add(make_rule(threshold=90, cooldown=300))
    engine.evaluate(make_sample(value=95.0, seconds=0))
    assert engine.evaluate(make_sample(value=95.0, seconds=299)) == []
    assert len(engine.evaluate(make_sample(value=95.0, seconds=300))) == 1


def test_zero_cooldown_fires_every_time(rules, engine):
    rules.add(make_rule(threshold=90, cooldown=0))
    for i in range(3):
        assert len(engine.evaluate(make_sample(value=95.0, seconds=i))) == 1


def test_fire_updates_last_triggered(rules, engine):
    rules.add(make_rule(threshold=90))
    engine.evaluate(make_sample(value=95.0, seconds=42))
    assert rules.get("cpu_high").last_triggered == make_sample(seconds=42).timestamp


def test_multiple_rules_fire_independently(rules, engine):
    rules.add(make_rule("cpu_high", threshold=80, severity="WARNING"))
    rules.add(make_rule("cpu_critical", threshold=95, severity="CRITICAL"))
    fired = engine.evaluate(make_sample(value=97.0))
    assert {e.rule_id for e in fired} == {"cpu_high", "cpu_critical"}


def test_listener_failure_does_not_stop_evaluation(rules, engine):
    rules.add(make_rule("a", threshold=80))
    rules.add(make_rule("b", threshold=85))
    received = []
    engine.add_listener(MagicMock(side_effect=RuntimeError("boom")))
    engine.add_listener(received.append)

    fired = engine.evaluate(make_sample(value=99.0))
    assert len(fired) == 2
    assert [e.rule_id for e in received] == ["a", "b"]


def test_event_carries_notify_nodes(rules, engine):
    rules.add(make_rule(threshold=90, notify_nodes=["peer-1"]))
    event = engine.evaluate(make_sample(value=95.0))[0]
    assert event.notify_nodes == ("peer-1",)


def test_nan_never_fires(rules, engine):
    rules.add(make_rule(comparison="<", threshold=90))
    assert engine.evaluate(make_sample(value=float("nan"))) == []


def test_test_rules_ignores_cooldowns(rules, engine):
    rules.add(make_rule(threshold=90))
    engine.evaluate(make_sample(value=95.0))
    results = engine.test_rules({"cpu_usage": 95.0})
    assert results[0]["would_fire"] is True
    assert results[0]["current_value"] == 95.0
    assert engine.test_rules({})[0]["would_fire"] is False


# ── Channels ────────────────────────────────────────────

def test_file_channel_writes_jsonl(tmp_path):
    path = tmp_path / "logs" / "alerts.jsonl"
    channel = FileChannel(str(path))
    channel.send(make_event())
    channel.send(make_event("fan_stopped"), remote=True)

    lines = path.read_text().strip().splitlines()
    assert len(lines) == 2
    first, second = (json.loads(line) for line in lines)
    assert first["rule_id"] == "cpu_high"
    assert first["severity"] == "WARNING"
    assert second["remote"] is True


def test_console_channel_prints():
    console = MagicMock()
    ConsoleChannel(console=console).send(make_event(message="load [high]"))
    printed = console.print.call_args[0][0]
    assert "cpu_high" in printed
    assert "load \\[high]" in printed


def test_build_channels(test_config):
    test_config["alerts"]["console"] = True
    kinds = [type(c) for c in build_channels(test_config)]
    assert kinds == [ConsoleChannel, FileChannel]

    test_config["alerts"]["console"] = False
    test_config["alerts"]["log_file"] = None
    assert build_channels(test_config) == []
