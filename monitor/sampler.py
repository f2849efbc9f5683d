"""Metric sampler: polls sensor sources and feeds the time series and alert engine."""
import logging
import threading
from datetime import datetime, timezone

from models.metrics import MetricSample
from monitor.sensors.base import SensorReadError, SensorUnavailable
from utils.constants import DEFAULT_INTERVALS, RETENTION_SECONDS, default_capacity

logger = logging.getLogger("hwmonitor.sampler")


class MetricSampler:
    """Polls each sensor source on its own cadence.

    A successful poll timestamps the family's readings once, appends every
    sample to the time series store and hands it to the alert engine in the
    order the source produced them. Read errors are counted and retried on the
    next tick; an unavailable sensor is logged once and skipped until restart.
    """

    def __init__(self, sources, store, engine=None, config=None):
        cfg = (config or {}).get("sampler", {})
        ts_cfg = (config or {}).get("timeseries", {})

        self.sources = dict(sources)
        self.store = store
        self.engine = engine
        self.intervals = {**DEFAULT_INTERVALS, **(cfg.get("intervals") or {})}
        self.failure_threshold = cfg.get("failure_alert_threshold", 5)
        self.retention_seconds = ts_cfg.get("retention_seconds", RETENTION_SECONDS)
        self._capacity_overrides = ts_cfg.get("capacities") or {}

        self._lock = threading.Lock()
        self._latest = {}
        self._last_poll = None
        self._failures = {name: 0 for name in self.sources}
        self._unavailable = {}
        self._capacity_set = set()

    def interval(self, source_name):
        return self.intervals.get(source_name, 1)

    def sample(self, source):
        """Read one source and return its samples with a shared timestamp.

        Raises SensorUnavailable / SensorReadError from the source.
        """
        values = source.read()
        now = datetime.now(timezone.utc)
        return [MetricSample(metric_name=name, value=float(value), timestamp=now)
                for name, value in values.items()]

    def poll(self, source_name):
        """Scheduled tick for one source. Returns the samples produced (possibly empty)."""
        source = self.sources.get(source_name)
        if source is None or source_name in self._unavailable:
            return []

        try:
            samples = self.sample(source)
        except SensorUnavailable as e:
            with self._lock:
                self._unavailable[source_name] = str(e)
            logger.warning(f"Sensor source {source_name} unavailable, disabling: {e}")
            return []
        except SensorReadError as e:
            with self._lock:
                self._failures[source_name] = self._failures.get(source_name, 0) + 1
                count = self._failures[source_name]
            if count == self.failure_threshold:
                logger.error(f"Sensor source {source_name} failed {count} times in a row: {e}")
            else:
                logger.debug(f"Read error on {source_name} ({count}): {e}")
            return []

        with self._lock:
            if self._failures.get(source_name):
                logger.info(f"Sensor source {source_name} recovered")
            self._failures[source_name] = 0
            family = self._latest.setdefault(source_name, {})
            for s in samples:
                family[s.metric_name] = s.value
            if samples:
                self._last_poll = samples[0].timestamp

        for s in samples:
            self._ensure_capacity(source_name, s.metric_name)
            self.store.append(s.metric_name, s)
            if self.engine is not None:
                self.engine.evaluate(s)
        return samples

    def poll_all(self):
        """Poll every source once. Used by `status` and tests."""
        results = {}
        for name in self.sources:
            results[name] = self.poll(name)
        return results

    def _ensure_capacity(self, source_name, metric_name):
        if metric_name in self._capacity_set:
            return
        capacity = self._capacity_overrides.get(metric_name)
        if capacity is None:
            capacity = default_capacity(self.interval(source_name), self.retention_seconds)
        self.store.configure(metric_name, capacity)
        self._capacity_set.add(metric_name)

    def snapshot(self):
        """Latest values grouped by family, plus the time of the last successful poll."""
        with self._lock:
            families = {name: dict(values) for name, values in self._latest.items()}
            ts = self._last_poll
        return {
            "timestamp": ts.isoformat() if ts else None,
            **families,
        }

    def status(self):
        with self._lock:
            return {
                name: {
                    "available": name not in self._unavailable,
                    "reason": self._unavailable.get(name),
                    "consecutive_failures": self._failures.get(name, 0),
                    "interval": self.interval(name),
                }
                for name in self.sources
            }

    def schedule(self, scheduler):
        """Register one polling job per available source."""
        for name in self.sources:
            if name in self._unavailable:
                continue
            scheduler.every(f"poll:{name}", self.interval(name), lambda n=name: self.poll(n))
        logger.info(f"Scheduled {len(self.sources) - len(self._unavailable)} sensor sources")
