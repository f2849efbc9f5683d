"""Alert rules loading, validation and management."""
import logging
import math
import threading
from pathlib import Path

import yaml

from models.alerts import AlertRule
from models.enums import Comparison, Severity
from utils.constants import threshold_domain

logger = logging.getLogger("hwmonitor.alerts.rules")


class InvalidRule(ValueError):
    """A rule failed validation."""


class DuplicateRule(ValueError):
    """A rule with the same id already exists."""


class RuleNotFound(KeyError):
    """No rule with the given id."""


def validate_rule(rule):
    """Check a rule's fields and normalize enums in place. Raises InvalidRule."""
    if not isinstance(rule.id, str) or not rule.id.strip():
        raise InvalidRule("rule id must be a non-empty string")
    if not isinstance(rule.name, str) or not rule.name.strip():
        raise InvalidRule(f"rule {rule.id}: name must be a non-empty string")
    if not isinstance(rule.metric_name, str) or not rule.metric_name.strip():
        raise InvalidRule(f"rule {rule.id}: metric_name must be a non-empty string")

    try:
        rule.comparison = Comparison(rule.comparison)
    except ValueError:
        raise InvalidRule(f"rule {rule.id}: unknown comparison {rule.comparison!r}") from None
    try:
        rule.severity = Severity.parse(rule.severity)
    except ValueError:
        raise InvalidRule(f"rule {rule.id}: unknown severity {rule.severity!r}") from None

    cooldown = rule.cooldown_seconds
    if isinstance(cooldown, bool) or not isinstance(cooldown, int) or cooldown < 0:
        raise InvalidRule(f"rule {rule.id}: cooldown_seconds must be an integer >= 0")

    if isinstance(rule.threshold, bool) or not isinstance(rule.threshold, (int, float)):
        raise InvalidRule(f"rule {rule.id}: threshold must be a number")
    if not math.isfinite(rule.threshold):
        raise InvalidRule(f"rule {rule.id}: threshold must be finite")
    low, high = threshold_domain(rule.metric_name)
    if not low <= rule.threshold <= high:
        raise InvalidRule(
            f"rule {rule.id}: threshold {rule.threshold} outside {rule.metric_name} range [{low}, {high}]"
        )

    if not isinstance(rule.notify_nodes, (list, tuple)) or not all(
        isinstance(n, str) for n in rule.notify_nodes
    ):
        raise InvalidRule(f"rule {rule.id}: notify_nodes must be a list of node ids")
    return rule


def rule_from_dict(data):
    """Build and validate a rule from an untrusted dict (API body, YAML entry)."""
    if not isinstance(data, dict):
        raise InvalidRule("rule must be an object")
    try:
        rule = AlertRule.from_dict(data)
    except KeyError as e:
        raise InvalidRule(f"missing field: {e.args[0]}") from None
    except (TypeError, ValueError) as e:
        raise InvalidRule(str(e)) from None
    # Fresh rules never carry a trigger time from the caller
    rule.last_triggered = None
    return validate_rule(rule)


class RulesManager:
    """Owns the rule set. Rules live in the database; the YAML file seeds an empty table."""

    def __init__(self, db, rules_path=None):
        self.db = db
        self.rules_path = Path(rules_path) if rules_path else None
        self._lock = threading.Lock()
        self.rules = []
        self.load()

    def load(self):
        with self._lock:
            if self.db.count_rules() == 0 and self.rules_path is not None:
                self._seed_from_yaml()
            self.rules = self.db.get_rules()
        logger.info(f"Loaded {len(self.rules)} alert rules")

    def _seed_from_yaml(self):
        if not self.rules_path.exists():
            logger.warning(f"Alert rules file not found: {self.rules_path}")
            return
        with open(self.rules_path) as f:
            data = yaml.safe_load(f) or {}

        seen = set()
        for raw in data.get("rules", []):
            try:
                rule = rule_from_dict(raw)
            except InvalidRule as e:
                logger.warning(f"Skipping invalid rule in {self.rules_path}: {e}")
                continue
            if rule.id in seen:
                logger.warning(f"Skipping duplicate rule id in {self.rules_path}: {rule.id}")
                continue
            seen.add(rule.id)
            self.db.save_rule(rule)
        logger.info(f"Seeded {len(seen)} rules from {self.rules_path}")

    def _index(self, rule_id):
        for i, r in enumerate(self.rules):
            if r.id == rule_id:
                return i
        raise RuleNotFound(rule_id)

    def add(self, rule):
        """Validate and store a new rule. Raises InvalidRule or DuplicateRule."""
        rule = validate_rule(rule.copy())
        with self._lock:
            if any(r.id == rule.id for r in self.rules):
                raise DuplicateRule(f"rule already exists: {rule.id}")
            self.db.save_rule(rule)
            self.rules = self.rules + [rule]
        logger.info(f"Added rule {rule.id} ({rule.metric_name} {rule.comparison.value} {rule.threshold})")
        return rule.copy()

    def toggle(self, rule_id, enabled):
        """Enable or disable a rule. last_triggered is kept."""
        with self._lock:
            i = self._index(rule_id)
            updated = self.rules[i].copy(enabled=bool(enabled))
            self.db.set_rule_enabled(rule_id, updated.enabled)
            self.rules = self.rules[:i] + [updated] + self.rules[i + 1:]
        logger.info(f"Rule {rule_id} {'enabled' if updated.enabled else 'disabled'}")
        return updated.copy()

    def remove(self, rule_id):
        with self._lock:
            i = self._index(rule_id)
            self.db.delete_rule(rule_id)
            self.rules = self.rules[:i] + self.rules[i + 1:]
        logger.info(f"Removed rule {rule_id}")

    def record_trigger(self, rule_id, triggered_at):
        """Stamp last_triggered. Called by the alert engine only."""
        with self._lock:
            try:
                i = self._index(rule_id)
            except RuleNotFound:
                # Removed while its evaluation was in flight
                return
            updated = self.rules[i].copy(last_triggered=triggered_at)
            self.db.set_rule_triggered(rule_id, triggered_at)
            self.rules = self.rules[:i] + [updated] + self.rules[i + 1:]

    def get(self, rule_id):
        with self._lock:
            return self.rules[self._index(rule_id)].copy()

    def get_all(self):
        return [r.copy() for r in self.rules]

    def get_enabled(self):
        return [r.copy() for r in self.rules if r.enabled]

    def get_for_metric(self, metric_name):
        return [r for r in self.rules if r.enabled and r.metric_name == metric_name]
