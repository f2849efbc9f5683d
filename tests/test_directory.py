"""Tests for the peer node directory."""
from datetime import timedelta

import pytest

from conftest import T0, make_node
from models.enums import NodeStatus
from network.directory import NodeDirectory


@pytest.fixture
def directory():
    return NodeDirectory("self-id", liveness_timeout=30, purge_after=3600)


def test_upsert_inserts_online(directory):
    assert directory.upsert(make_node("p1"), now=T0) is True
    node = directory.get("p1")
    assert node.status == NodeStatus.ONLINE
    assert node.last_seen == T0


def test_self_is_never_stored(directory):
    assert directory.upsert(make_node("self-id"), now=T0) is False
    assert directory.list_nodes() == []


def test_liveness_transition(directory):
    """Last seen at t, sweep at t+31 with a 30s timeout → OFFLINE."""
    directory.upsert(make_node("p1"), now=T0)
    offline, purged = directory.sweep(now=T0 + timedelta(seconds=29))
    assert offline == [] and purged == []

    offline, _ = directory.sweep(now=T0 + timedelta(seconds=31))
    assert offline == ["p1"]
    assert directory.get("p1").status == NodeStatus.OFFLINE
    assert directory.live_nodes() == []


def test_refresh_brings_node_back_online(directory):
    directory.upsert(make_node("p1"), now=T0)
    directory.sweep(now=T0 + timedelta(seconds=60))
    directory.upsert(make_node("p1", ip="192.168.1.99"), now=T0 + timedelta(seconds=61))
    node = directory.get("p1")
    assert node.status == NodeStatus.ONLINE
    assert node.ip_address == "192.168.1.99"


def test_purge_after(directory):
    directory.upsert(make_node("p1"), now=T0)
    _, purged = directory.sweep(now=T0 + timedelta(seconds=3601))
    assert purged == ["p1"]
    assert directory.get("p1") is None


def test_mark_offline(directory):
    directory.upsert(make_node("p1"), now=T0)
    assert directory.mark_offline("p1") is True
    assert directory.mark_offline("p1") is False
    assert directory.mark_offline("missing") is False
    assert directory.get("p1").status == NodeStatus.OFFLINE


def test_alerting_held_across_refresh(directory):
    directory.upsert(make_node("p1"), now=T0)
    directory.set_alerting("p1", True)
    assert directory.get("p1").status == NodeStatus.ALERTING

    directory.upsert(make_node("p1"), now=T0 + timedelta(seconds=5))
    assert directory.get("p1").status == NodeStatus.ALERTING
    assert [n.id for n in directory.live_nodes()] == ["p1"]

    directory.set_alerting("p1", False)
    assert directory.get("p1").status == NodeStatus.ONLINE


def test_alerting_before_discovery(directory):
    directory.set_alerting("p1", True)
    directory.upsert(make_node("p1"), now=T0)
    assert directory.get("p1").status == NodeStatus.ALERTING
    assert directory.alerting_ids() == {"p1"}


def test_offline_beats_alerting(directory):
    directory.upsert(make_node("p1"), now=T0)
    directory.set_alerting("p1", True)
    directory.sweep(now=T0 + timedelta(seconds=45))
    assert directory.get("p1").status == NodeStatus.OFFLINE


def test_readers_get_snapshots(directory):
    directory.upsert(make_node("p1"), now=T0)
    before = directory.get("p1")
    directory.mark_offline("p1")
    assert before.status == NodeStatus.ONLINE


def test_list_sorted_and_remove_clear(directory):
    directory.upsert(make_node("b", name="beta"), now=T0)
    directory.upsert(make_node("a", name="alpha"), now=T0)
    assert [n.name for n in directory.list_nodes()] == ["alpha", "beta"]
    assert directory.remove("a") is True
    assert directory.remove("a") is False
    directory.clear()
    assert len(directory) == 0
