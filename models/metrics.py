"""Dataclasses for metric samples."""
from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True)
class MetricSample:
    metric_name: str
    value: float
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "metric_name": self.metric_name,
            "value": self.value,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, d):
        ts = d.get("timestamp")
        if isinstance(ts, str):
            ts = datetime.fromisoformat(ts)
        return cls(
            metric_name=d["metric_name"],
            value=float(d["value"]),
            timestamp=ts or datetime.now(timezone.utc),
        )
