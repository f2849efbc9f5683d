"""Capped, durable log of fired and received alerts."""
import json
import logging
import threading
from collections import deque

from models.alerts import AlertRecord
from models.enums import ALERTING_SEVERITIES, Severity
from utils.constants import MAX_ALERT_RECORDS

logger = logging.getLogger("hwmonitor.alerts.history")


class RecordNotFound(KeyError):
    """No alert record with the given id."""


class AlertHistory:
    """In-memory deque of AlertRecords, written through to SQLite.

    Beyond ``max_records`` the oldest record is dropped whether or not it was
    acknowledged.
    """

    def __init__(self, db=None, max_records=MAX_ALERT_RECORDS):
        if max_records < 1:
            raise ValueError("max_records must be >= 1")
        self.db = db
        self.max_records = max_records
        self._records = deque(maxlen=max_records)
        self._lock = threading.Lock()
        self._listeners = []
        if db is not None:
            self._records.extend(db.get_alerts(limit=max_records))
            if self._records:
                logger.info(f"Loaded {len(self._records)} alert records")

    def on_change(self, callback):
        """Register ``callback(record)``, called after a record is added, acknowledged
        or evicted by the cap (the evicted record is passed once it is gone).

        After ``clear()`` the callback receives None.
        """
        self._listeners.append(callback)

    def _notify(self, record):
        for callback in self._listeners:
            try:
                callback(record)
            except Exception as e:
                logger.warning(f"History listener error: {e}")

    def record(self, event, remote=False):
        rec = AlertRecord.from_event(event, remote=remote)
        with self._lock:
            evicted = self._records[0] if len(self._records) == self._records.maxlen else None
            self._records.append(rec)
            if self.db is not None:
                self.db.save_alert(rec, max_records=self.max_records)
        self._notify(rec)
        if evicted is not None:
            self._notify(evicted)
        return rec

    def acknowledge(self, record_id):
        """Mark a record acknowledged. Acknowledging twice is a no-op."""
        with self._lock:
            rec = next((r for r in self._records if r.id == record_id), None)
            if rec is None:
                raise RecordNotFound(record_id)
            if rec.acknowledged:
                return rec
            rec.acknowledged = True
            if self.db is not None:
                self.db.acknowledge_alert(record_id)
        self._notify(rec)
        return rec

    def clear(self):
        with self._lock:
            self._records.clear()
            if self.db is not None:
                self.db.clear_alerts()
        logger.info("Alert history cleared")
        self._notify(None)

    def get_all(self):
        with self._lock:
            return list(self._records)

    def get_recent(self, limit=50):
        """Newest ``limit`` records, newest first."""
        with self._lock:
            records = list(self._records)
        if limit <= 0:
            return []
        return list(reversed(records[-limit:]))

    def get_unacknowledged(self):
        with self._lock:
            return [r for r in self._records if not r.acknowledged]

    def count(self):
        with self._lock:
            return len(self._records)

    def has_unacknowledged(self, source_node_id, severities=ALERTING_SEVERITIES):
        severities = {Severity(s) for s in severities}
        with self._lock:
            return any(
                r.source_node_id == source_node_id
                and not r.acknowledged
                and Severity(r.severity) in severities
                for r in self._records
            )

    def export(self):
        return [r.to_dict() for r in self.get_all()]

    def export_json(self):
        return json.dumps(self.export(), indent=2)
