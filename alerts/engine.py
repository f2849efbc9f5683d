"""Alert evaluation engine."""
import logging

from models.alerts import AlertEvent

logger = logging.getLogger("hwmonitor.alerts.engine")


class AlertEngine:
    """Evaluates samples against enabled rules and emits AlertEvents.

    A rule fires when its comparison holds and it is outside its cooldown,
    measured from the sample's own timestamp. Each fire stamps the rule's
    last_triggered and is delivered once to every listener.
    """

    def __init__(self, rules_manager, local_node=None, listeners=None):
        self.rules_manager = rules_manager
        self.local_node = local_node
        self.listeners = list(listeners or [])

    def add_listener(self, callback):
        self.listeners.append(callback)

    def _build_event(self, rule, sample):
        node_id = self.local_node.id if self.local_node else ""
        node_name = self.local_node.name if self.local_node else ""
        message = (
            f"{rule.name}: {sample.metric_name} = {sample.value:.2f} "
            f"{rule.comparison.value} {rule.threshold:g}"
        )
        if rule.description:
            message += f" | {rule.description}"
        return AlertEvent(
            rule_id=rule.id,
            rule_name=rule.name,
            severity=rule.severity,
            message=message,
            source_node_id=node_id,
            source_node_name=node_name,
            timestamp=sample.timestamp,
            notify_nodes=tuple(rule.notify_nodes),
        )

    def evaluate(self, sample):
        """Check one sample against every enabled rule for its metric. Returns fired events."""
        fired = []
        now = sample.timestamp
        for rule in self.rules_manager.get_for_metric(sample.metric_name):
            if not rule.matches(sample.value):
                continue
            if rule.in_cooldown(now):
                logger.debug(f"Rule {rule.id} suppressed by cooldown")
                continue

            self.rules_manager.record_trigger(rule.id, now)
            event = self._build_event(rule, sample)
            fired.append(event)
            logger.info(f"Alert fired: [{event.severity.value}] {event.message}")
            self._dispatch(event)
        return fired

    def test_rules(self, values):
        """Evaluate ALL rules against ``{metric_name: value}`` ignoring cooldowns."""
        results = []
        for rule in self.rules_manager.get_all():
            value = values.get(rule.metric_name)
            results.append({
                "rule_id": rule.id,
                "name": rule.name,
                "metric_name": rule.metric_name,
                "comparison": rule.comparison.value,
                "threshold": rule.threshold,
                "current_value": value,
                "would_fire": rule.matches(value),
                "severity": rule.severity.value,
                "enabled": rule.enabled,
            })
        return results

    def _dispatch(self, event):
        for listener in self.listeners:
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"Alert listener error: {e}")
