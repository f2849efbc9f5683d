"""Bounded per-metric sample history (ring buffers)."""
import logging
import threading
from collections import deque
from datetime import datetime, timedelta, timezone

logger = logging.getLogger("hwmonitor.timeseries")

DEFAULT_CAPACITY = 86400


class TimeSeriesStore:
    """Thread-safe map of metric name → fixed-capacity deque of MetricSample.

    Appending to a full buffer drops the oldest sample. Reads copy under the
    lock, so callers always get a point-in-time snapshot.
    """

    def __init__(self, default_capacity=DEFAULT_CAPACITY, capacities=None):
        if default_capacity < 1:
            raise ValueError("default_capacity must be >= 1")
        self.default_capacity = default_capacity
        self._capacities = dict(capacities or {})
        self._series = {}
        self._lock = threading.Lock()

    def configure(self, metric_name, capacity):
        """Set the capacity for one metric. Shrinking keeps the newest samples."""
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        with self._lock:
            self._capacities[metric_name] = capacity
            existing = self._series.get(metric_name)
            if existing is not None:
                self._series[metric_name] = deque(existing, maxlen=capacity)

    def capacity(self, metric_name):
        return self._capacities.get(metric_name, self.default_capacity)

    def append(self, metric_name, sample):
        with self._lock:
            series = self._series.get(metric_name)
            if series is None:
                series = deque(maxlen=self.capacity(metric_name))
                self._series[metric_name] = series
            series.append(sample)

    def query(self, metric_name, max_points):
        """Most recent min(max_points, len) samples, oldest first. Never raises."""
        try:
            max_points = int(max_points)
        except (TypeError, ValueError):
            return []
        if max_points <= 0:
            return []
        with self._lock:
            series = self._series.get(metric_name)
            if not series:
                return []
            if max_points >= len(series):
                return list(series)
            return list(series)[-max_points:]

    def latest(self, metric_name):
        with self._lock:
            series = self._series.get(metric_name)
            return series[-1] if series else None

    def average(self, metric_name, last_n):
        points = self.query(metric_name, last_n)
        if not points:
            return None
        return sum(p.value for p in points) / len(points)

    def metrics(self):
        with self._lock:
            return sorted(self._series)

    def __len__(self):
        with self._lock:
            return sum(len(s) for s in self._series.values())

    def evict_older_than(self, max_age_seconds, now=None):
        """Drop samples older than the retention window; returns how many were removed."""
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(seconds=max_age_seconds)
        removed = 0
        with self._lock:
            for series in self._series.values():
                # Chronological order: stale samples are always at the left end
                while series and series[0].timestamp < cutoff:
                    series.popleft()
                    removed += 1
        if removed:
            logger.debug(f"Evicted {removed} samples older than {max_age_seconds}s")
        return removed

    def export(self):
        with self._lock:
            snapshot = {name: list(series) for name, series in self._series.items()}
        return {name: [s.to_dict() for s in samples] for name, samples in snapshot.items()}

    def clear(self, metric_name=None):
        with self._lock:
            if metric_name is None:
                self._series.clear()
            else:
                self._series.pop(metric_name, None)
