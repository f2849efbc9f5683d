"""Dataclasses for alert rules, events, and records."""
import math
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional

from models.enums import Comparison, Severity

COMPARATORS = {
    Comparison.GT: lambda v, t: v > t,
    Comparison.GE: lambda v, t: v >= t,
    Comparison.LT: lambda v, t: v < t,
    Comparison.LE: lambda v, t: v <= t,
}


class MalformedNotification(ValueError):
    """Inbound alert notification payload failed validation."""


def parse_timestamp(value):
    """Parse an ISO-8601 string or epoch milliseconds into an aware UTC datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, bool):
        raise ValueError(f"Invalid timestamp: {value!r}")
    elif isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass
class AlertRule:
    id: str = ""
    name: str = ""
    description: str = ""
    metric_name: str = ""
    threshold: float = 0.0
    comparison: Comparison = Comparison.GT
    severity: Severity = Severity.WARNING
    cooldown_seconds: int = 300
    enabled: bool = True
    last_triggered: Optional[datetime] = None
    notify_nodes: list = field(default_factory=list)

    def matches(self, value):
        if value is None or (isinstance(value, float) and math.isnan(value)):
            return False
        return COMPARATORS[Comparison(self.comparison)](value, self.threshold)

    def in_cooldown(self, now):
        if self.last_triggered is None:
            return False
        elapsed = (now - self.last_triggered).total_seconds()
        return elapsed < self.cooldown_seconds

    def copy(self, **changes):
        changes.setdefault("notify_nodes", list(self.notify_nodes))
        return replace(self, **changes)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "metric_name": self.metric_name,
            "threshold": self.threshold,
            "comparison": Comparison(self.comparison).value,
            "severity": Severity(self.severity).value,
            "cooldown_seconds": self.cooldown_seconds,
            "enabled": self.enabled,
            "last_triggered": self.last_triggered.isoformat() if self.last_triggered else None,
            "notify_nodes": list(self.notify_nodes),
        }

    @classmethod
    def from_dict(cls, d):
        """Build a rule from a loosely-typed dict (YAML, JSON body, DB row).

        Raises ValueError/KeyError/TypeError on unusable input; callers turn
        these into InvalidRule.
        """
        rule_id = d["id"]
        notify_nodes = d.get("notify_nodes") or []
        if not isinstance(notify_nodes, (list, tuple)):
            raise TypeError("notify_nodes must be a list of node ids")
        return cls(
            id=rule_id,
            name=d.get("name") or rule_id,
            description=d.get("description") or "",
            metric_name=d.get("metric_name") or d.get("metric", ""),
            threshold=float(d["threshold"]),
            comparison=Comparison(d.get("comparison") or d.get("operator") or ">"),
            severity=Severity.parse(d.get("severity", "WARNING")),
            cooldown_seconds=d.get("cooldown_seconds", 300),
            enabled=bool(d.get("enabled", True)),
            last_triggered=parse_timestamp(d.get("last_triggered")),
            notify_nodes=list(notify_nodes),
        )


@dataclass(frozen=True)
class AlertEvent:
    rule_id: str
    rule_name: str
    severity: Severity
    message: str
    source_node_id: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    source_node_name: str = ""
    notify_nodes: tuple = ()

    def to_payload(self):
        """Wire form posted to peers' /alerts/notify."""
        return {
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "severity": Severity(self.severity).value,
            "message": self.message,
            "source_node_id": self.source_node_id,
            "source_node_name": self.source_node_name,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_payload(cls, payload):
        """Validate an inbound notification body.

        Accepts both the native field names and the legacy ``alert_type`` /
        epoch-millisecond ``timestamp`` form. Raises MalformedNotification.
        """
        if not isinstance(payload, dict):
            raise MalformedNotification("payload must be a JSON object")

        rule_id = payload.get("rule_id", payload.get("alert_type"))
        required = {
            "rule_id": rule_id,
            "message": payload.get("message"),
            "source_node_id": payload.get("source_node_id"),
            "severity": payload.get("severity"),
        }
        for key, value in required.items():
            if not isinstance(value, str) or not value.strip():
                raise MalformedNotification(f"missing or invalid field: {key}")

        for key in ("rule_name", "source_node_name"):
            if payload.get(key) is not None and not isinstance(payload[key], str):
                raise MalformedNotification(f"invalid field: {key}")

        try:
            severity = Severity.parse(required["severity"])
        except ValueError:
            raise MalformedNotification(f"unknown severity: {required['severity']}") from None

        try:
            timestamp = parse_timestamp(payload.get("timestamp")) or datetime.now(timezone.utc)
        except (ValueError, OverflowError, OSError):
            raise MalformedNotification("invalid field: timestamp") from None

        return cls(
            rule_id=rule_id,
            rule_name=payload.get("rule_name") or rule_id,
            severity=severity,
            message=required["message"],
            source_node_id=required["source_node_id"],
            source_node_name=payload.get("source_node_name") or "",
            timestamp=timestamp,
        )


@dataclass
class AlertRecord:
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    rule_id: str = ""
    rule_name: str = ""
    severity: Severity = Severity.INFO
    message: str = ""
    source_node_id: str = ""
    source_node_name: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    acknowledged: bool = False
    remote: bool = False

    @classmethod
    def from_event(cls, event, remote=False):
        return cls(
            rule_id=event.rule_id,
            rule_name=event.rule_name,
            severity=Severity(event.severity),
            message=event.message,
            source_node_id=event.source_node_id,
            source_node_name=event.source_node_name,
            timestamp=event.timestamp,
            remote=remote,
        )

    def to_dict(self):
        return {
            "id": self.id,
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "severity": Severity(self.severity).value,
            "message": self.message,
            "source_node_id": self.source_node_id,
            "source_node_name": self.source_node_name,
            "timestamp": self.timestamp.isoformat(),
            "acknowledged": self.acknowledged,
            "remote": self.remote,
        }

    @classmethod
    def from_dict(cls, d):
        return cls(
            id=d["id"],
            rule_id=d["rule_id"],
            rule_name=d.get("rule_name") or d["rule_id"],
            severity=Severity.parse(d["severity"]),
            message=d.get("message") or "",
            source_node_id=d.get("source_node_id") or "",
            source_node_name=d.get("source_node_name") or "",
            timestamp=parse_timestamp(d["timestamp"]),
            acknowledged=bool(d.get("acknowledged", False)),
            remote=bool(d.get("remote", False)),
        )
