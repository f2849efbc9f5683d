"""SQLite database for storing alert rules, alert history, and node settings."""
import json
import sqlite3
import logging
import threading
from pathlib import Path

from models.alerts import AlertRule, AlertRecord

logger = logging.getLogger("hwmonitor.db")


class Database:
    def __init__(self, db_path="data/hwmonitor.db"):
        self.db_path = db_path
        self.conn = None
        # sqlite3 connections are shared across sampler, API and broadcaster threads
        self._lock = threading.RLock()

    def connect(self):
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._create_tables()
        return self

    def close(self):
        with self._lock:
            if self.conn:
                self.conn.close()
                self.conn = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, *args):
        self.close()

    def _create_tables(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS alert_rules (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                description TEXT,
                metric_name TEXT NOT NULL,
                threshold REAL NOT NULL,
                comparison TEXT NOT NULL,
                severity TEXT NOT NULL,
                cooldown_seconds INTEGER NOT NULL DEFAULT 300,
                enabled INTEGER NOT NULL DEFAULT 1,
                last_triggered TEXT,
                notify_nodes TEXT DEFAULT '[]',
                created_seq INTEGER
            );

            CREATE TABLE IF NOT EXISTS alert_history (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                rule_id TEXT NOT NULL,
                rule_name TEXT NOT NULL,
                severity TEXT NOT NULL,
                message TEXT,
                source_node_id TEXT,
                source_node_name TEXT,
                timestamp TEXT NOT NULL,
                acknowledged INTEGER DEFAULT 0,
                remote INTEGER DEFAULT 0
            );

            CREATE INDEX IF NOT EXISTS idx_alerts_source
                ON alert_history(source_node_id);

            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT
            );
        """)
        self.conn.commit()

    # --- Alert Rules ---

    def save_rule(self, rule: AlertRule):
        d = rule.to_dict()
        with self._lock:
            self.conn.execute("""
                INSERT INTO alert_rules
                (id, name, description, metric_name, threshold, comparison, severity,
                 cooldown_seconds, enabled, last_triggered, notify_nodes, created_seq)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?,
                        (SELECT COALESCE(MAX(created_seq), 0) + 1 FROM alert_rules))
            """, (
                d["id"], d["name"], d["description"], d["metric_name"], d["threshold"],
                d["comparison"], d["severity"], d["cooldown_seconds"], int(d["enabled"]),
                d["last_triggered"], json.dumps(d["notify_nodes"]),
            ))
            self.conn.commit()

    def get_rules(self):
        with self._lock:
            rows = self.conn.execute(
                "SELECT * FROM alert_rules ORDER BY created_seq ASC"
            ).fetchall()
        rules = []
        for r in rows:
            d = dict(r)
            d["notify_nodes"] = json.loads(d.get("notify_nodes") or "[]")
            d["enabled"] = bool(d["enabled"])
            rules.append(AlertRule.from_dict(d))
        return rules

    def count_rules(self):
        with self._lock:
            row = self.conn.execute("SELECT COUNT(*) as cnt FROM alert_rules").fetchone()
        return row["cnt"]

    def set_rule_enabled(self, rule_id, enabled):
        with self._lock:
            self.conn.execute(
                "UPDATE alert_rules SET enabled = ? WHERE id = ?", (int(enabled), rule_id)
            )
            self.conn.commit()

    def set_rule_triggered(self, rule_id, triggered_at):
        with self._lock:
            self.conn.execute(
                "UPDATE alert_rules SET last_triggered = ? WHERE id = ?",
                (triggered_at.isoformat(), rule_id),
            )
            self.conn.commit()

    def delete_rule(self, rule_id):
        with self._lock:
            self.conn.execute("DELETE FROM alert_rules WHERE id = ?", (rule_id,))
            self.conn.commit()

    # --- Alert History ---

    def save_alert(self, record: AlertRecord, max_records=None):
        """Insert a record, then drop the oldest rows beyond max_records."""
        d = record.to_dict()
        with self._lock:
            self.conn.execute("""
                INSERT INTO alert_history
                (id, rule_id, rule_name, severity, message, source_node_id,
                 source_node_name, timestamp, acknowledged, remote)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                d["id"], d["rule_id"], d["rule_name"], d["severity"], d["message"],
                d["source_node_id"], d["source_node_name"], d["timestamp"],
                int(d["acknowledged"]), int(d["remote"]),
            ))
            if max_records is not None:
                self.conn.execute("""
                    DELETE FROM alert_history WHERE seq NOT IN (
                        SELECT seq FROM alert_history ORDER BY seq DESC LIMIT ?
                    )
                """, (max_records,))
            self.conn.commit()

    def get_alerts(self, limit=None):
        """All records in insertion order (oldest first), optionally the newest `limit`."""
        with self._lock:
            if limit is None:
                rows = self.conn.execute(
                    "SELECT * FROM alert_history ORDER BY seq ASC"
                ).fetchall()
            else:
                rows = self.conn.execute(
                    "SELECT * FROM (SELECT * FROM alert_history ORDER BY seq DESC LIMIT ?) "
                    "ORDER BY seq ASC", (limit,)
                ).fetchall()
        return [AlertRecord.from_dict(dict(r)) for r in rows]

    def acknowledge_alert(self, alert_id):
        with self._lock:
            cur = self.conn.execute(
                "UPDATE alert_history SET acknowledged = 1 WHERE id = ?", (alert_id,)
            )
            self.conn.commit()
        return cur.rowcount > 0

    def clear_alerts(self):
        with self._lock:
            self.conn.execute("DELETE FROM alert_history")
            self.conn.commit()

    def get_alert_stats(self):
        with self._lock:
            rows = self.conn.execute("""
                SELECT severity, COUNT(*) as count
                FROM alert_history
                GROUP BY severity
            """).fetchall()
        return {r["severity"]: r["count"] for r in rows}

    # --- Settings ---

    def get_setting(self, key, default=None):
        with self._lock:
            row = self.conn.execute(
                "SELECT value FROM settings WHERE key = ?", (key,)
            ).fetchone()
        return row["value"] if row else default

    def set_setting(self, key, value):
        with self._lock:
            self.conn.execute(
                "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)", (key, value)
            )
            self.conn.commit()
        logger.debug(f"Saved setting {key}")
