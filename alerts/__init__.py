"""Alert system module."""
from alerts.engine import AlertEngine
from alerts.rules_manager import RulesManager, InvalidRule, DuplicateRule, RuleNotFound
from alerts.history import AlertHistory, RecordNotFound
from alerts.channels import ConsoleChannel, FileChannel, build_channels
