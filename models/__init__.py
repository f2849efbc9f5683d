"""Data models."""
from models.enums import MetricName, SensorFamily, Severity, Comparison, NodeStatus
from models.metrics import MetricSample
from models.alerts import AlertRule, AlertEvent, AlertRecord, MalformedNotification
from models.node import Node
