"""Command surface for the desktop shell.

Every method returns ``{"ok": True, "data": ...}`` or ``{"ok": False, "error": ...}``
so the shell never has to handle Python exceptions.
"""
import functools
import logging

from alerts.history import RecordNotFound
from alerts.rules_manager import DuplicateRule, InvalidRule, RuleNotFound, rule_from_dict

logger = logging.getLogger("hwmonitor.commands")

EXPECTED_ERRORS = (InvalidRule, DuplicateRule, RuleNotFound, RecordNotFound, ValueError)


def _ok(data=None):
    return {"ok": True, "data": data}


def _error(reason):
    return {"ok": False, "error": reason}


def _describe(exc):
    if isinstance(exc, RuleNotFound):
        return f"Unknown rule: {exc.args[0]}"
    if isinstance(exc, RecordNotFound):
        return f"Unknown alert: {exc.args[0]}"
    return str(exc)


def command(func):
    """Wrap a command so expected failures come back as an error result."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return _ok(func(*args, **kwargs))
        except EXPECTED_ERRORS as e:
            logger.debug(f"{func.__name__} failed: {e}")
            return _error(_describe(e))
    return wrapper


class CommandSurface:
    def __init__(self, context):
        self.ctx = context

    # ─── Node / hardware ─────────────────────────────────

    @command
    def get_node_info(self):
        return self.ctx.get_node().to_dict()

    @command
    def get_hardware(self):
        return self.ctx.sampler.snapshot()

    @command
    def get_sampler_status(self):
        return self.ctx.sampler.status()

    @command
    def list_nodes(self):
        return [n.to_dict() for n in self.ctx.directory.list_nodes()]

    # ─── Metrics ─────────────────────────────────────────

    @command
    def list_metrics(self):
        return self.ctx.store.metrics()

    @command
    def get_metric_history(self, metric_name, max_points=300):
        return [s.to_dict() for s in self.ctx.store.query(metric_name, max_points)]

    # ─── Rules ───────────────────────────────────────────

    @command
    def list_rules(self):
        return [r.to_dict() for r in self.ctx.rules.get_all()]

    @command
    def add_rule(self, rule_data):
        return self.ctx.rules.add(rule_from_dict(rule_data)).to_dict()

    @command
    def toggle_rule(self, rule_id, enabled):
        return self.ctx.rules.toggle(rule_id, enabled).to_dict()

    @command
    def remove_rule(self, rule_id):
        self.ctx.rules.remove(rule_id)
        return rule_id

    @command
    def test_rules(self, values):
        return self.ctx.engine.test_rules(values)

    # ─── Alert history ───────────────────────────────────

    @command
    def list_alerts(self, limit=50, unacknowledged_only=False):
        if unacknowledged_only:
            records = list(reversed(self.ctx.history.get_unacknowledged()))[:limit]
        else:
            records = self.ctx.history.get_recent(limit)
        return [r.to_dict() for r in records]

    @command
    def acknowledge_alert(self, record_id):
        return self.ctx.history.acknowledge(record_id).to_dict()

    @command
    def clear_alerts(self):
        self.ctx.history.clear()

    @command
    def export_alerts(self):
        return self.ctx.history.export()
