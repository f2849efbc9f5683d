"""Alert notification channels."""
import json
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from rich.console import Console
from rich.markup import escape

from models.enums import Severity

logger = logging.getLogger("hwmonitor.alerts.channels")


@runtime_checkable
class AlertChannel(Protocol):
    def send(self, alert, remote=False) -> None: ...


class ConsoleChannel:
    """Print alerts to terminal with rich formatting."""

    severity_styles = {
        "CRITICAL": "bold white on red",
        "ERROR": "bold red",
        "WARNING": "bold yellow",
        "INFO": "bold blue",
    }

    def __init__(self, console=None):
        self.console = console or Console()

    def send(self, alert, remote=False):
        sev = Severity(alert.severity).value
        style = self.severity_styles.get(sev, "")
        origin = f" @{alert.source_node_name or alert.source_node_id}" if remote else ""
        self.console.print(
            f"[{style}]\\[{sev}][/]{escape(origin)} {escape(alert.rule_name)}: {escape(alert.message)}",
            highlight=False,
        )


class FileChannel:
    """Append alerts to a JSON lines log file."""

    def __init__(self, log_path="data/alerts.jsonl"):
        self.log_path = Path(log_path)

    def send(self, alert, remote=False):
        entry = {
            "timestamp": alert.timestamp.isoformat(),
            "rule_id": alert.rule_id,
            "rule_name": alert.rule_name,
            "severity": Severity(alert.severity).value,
            "message": alert.message,
            "source_node_id": alert.source_node_id,
            "source_node_name": alert.source_node_name,
            "remote": remote,
        }
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a") as f:
                f.write(json.dumps(entry) + "\n")
        except OSError as e:
            logger.warning(f"Failed to write alert to file: {e}")


def build_channels(config):
    """Channels enabled by the ``alerts`` config section."""
    cfg = config.get("alerts", {})
    channels = []
    if cfg.get("console", True):
        channels.append(ConsoleChannel())
    if cfg.get("log_file"):
        channels.append(FileChannel(cfg["log_file"]))
    return channels
