"""Node context: builds every component once and wires them together."""
import logging
import threading
import uuid

from __version__ import __version__
from alerts.channels import build_channels
from alerts.engine import AlertEngine
from alerts.history import AlertHistory
from alerts.rules_manager import RulesManager
from config import DEFAULT_RULES_PATH
from models.database import Database
from models.enums import ALERTING_SEVERITIES, NodeStatus, Severity
from models.node import build_local_node
from monitor.sampler import MetricSampler
from monitor.scheduler import MonitorScheduler
from monitor.sensors import build_sources
from monitor.timeseries import TimeSeriesStore
from network.broadcaster import NotificationBroadcaster
from network.directory import NodeDirectory
from network.discovery import DiscoveryService
from utils.constants import DISCOVERY_INTERVAL_SECONDS

logger = logging.getLogger("hwmonitor.context")

NODE_ID_SETTING = "node_id"
RETENTION_JOB_INTERVAL = 60


class NodeContext:
    """Everything a running node needs, passed explicitly instead of held in globals.

    Data flow: sampler -> engine -> history + channels + broadcaster; history
    changes drive the ALERTING status of the local node and of peers.
    """

    def __init__(self, config, gpu_reader=None, sources=None, zeroconf_factory=None):
        self.config = config
        self.version = __version__

        self.db = Database(config["database"]["path"]).connect()

        node_cfg = config.get("node", {})
        self.node = build_local_node(
            node_id=self._load_node_id(),
            name=node_cfg.get("name"),
            api_port=config["api"]["port"],
            version=self.version,
            ip_address=node_cfg.get("ip_address"),
        )
        self._node_lock = threading.Lock()

        ts_cfg = config["timeseries"]
        self.store = TimeSeriesStore(capacities=ts_cfg.get("capacities"))

        alerts_cfg = config["alerts"]
        self.rules = RulesManager(self.db, alerts_cfg.get("rules_file") or DEFAULT_RULES_PATH)
        self.history = AlertHistory(self.db, max_records=alerts_cfg["max_records"])
        self.channels = build_channels(config)

        disc_cfg = config["discovery"]
        self.directory = NodeDirectory(
            self.node.id,
            liveness_timeout=disc_cfg["liveness_timeout"],
            purge_after=disc_cfg["purge_after"],
        )
        bc_cfg = config["broadcast"]
        self.broadcaster = NotificationBroadcaster(
            self.directory,
            timeout=bc_cfg["timeout"],
            max_retries=bc_cfg.get("max_retries", 0),
            max_workers=bc_cfg.get("max_workers", 8),
        )

        self.engine = AlertEngine(self.rules, local_node=self.node)
        self.engine.add_listener(self._on_local_alert)
        self.history.on_change(self._on_history_change)

        if sources is None:
            sources = build_sources(config, gpu_reader=gpu_reader)
        self.sampler = MetricSampler(sources, self.store, self.engine, config)

        discovery_kwargs = {"resolve_timeout_ms": disc_cfg.get("resolve_timeout_ms", 1000)}
        if zeroconf_factory is not None:
            discovery_kwargs["zeroconf_factory"] = zeroconf_factory
        self.discovery = DiscoveryService(self.directory, self.node, **discovery_kwargs)
        self.scheduler = MonitorScheduler()

        self._refresh_alerting()
        logger.info(f"Node {self.node.name} ({self.node.id}) ready")

    def _load_node_id(self):
        node_id = self.db.get_setting(NODE_ID_SETTING)
        if not node_id:
            node_id = str(uuid.uuid4())
            self.db.set_setting(NODE_ID_SETTING, node_id)
            logger.info(f"Generated node id {node_id}")
        return node_id

    # ─── Wiring ──────────────────────────────────────────

    def _on_local_alert(self, event):
        self.history.record(event)
        for channel in self.channels:
            try:
                channel.send(event)
            except Exception as e:
                logger.warning(f"Channel dispatch error: {e}")
        self.broadcaster.submit(event)

    def _on_history_change(self, record):
        if record is None:
            self._refresh_alerting()
        elif Severity(record.severity) in ALERTING_SEVERITIES:
            self._apply_alerting(record.source_node_id)

    def _apply_alerting(self, node_id):
        alerting = self.history.has_unacknowledged(node_id)
        if node_id == self.node.id:
            status = NodeStatus.ALERTING if alerting else NodeStatus.ONLINE
            with self._node_lock:
                if self.node.status != status:
                    self.node = self.node.with_changes(status=status)
                    self.engine.local_node = self.node
                    logger.info(f"Local node status: {status.value}")
        else:
            self.directory.set_alerting(node_id, alerting)

    def _refresh_alerting(self):
        sources = {r.source_node_id for r in self.history.get_all()}
        sources.add(self.node.id)
        sources |= self.directory.alerting_ids()
        for node in self.directory.list_nodes():
            sources.add(node.id)
        for node_id in sources:
            self._apply_alerting(node_id)

    def get_node(self):
        return self.node

    # ─── Lifecycle ───────────────────────────────────────

    def engines(self):
        """Component map handed to the web app factory."""
        return {
            "get_node": self.get_node,
            "sampler": self.sampler,
            "store": self.store,
            "rules": self.rules,
            "engine": self.engine,
            "history": self.history,
            "directory": self.directory,
            "channels": self.channels,
            "version": self.version,
        }

    def start(self, discovery=True):
        """Schedule sensor polling, discovery and retention jobs, then start the scheduler."""
        self.sampler.schedule(self.scheduler)

        retention = self.config["timeseries"]["retention_seconds"]
        self.scheduler.every(
            "retention", RETENTION_JOB_INTERVAL,
            lambda: self.store.evict_older_than(retention),
            run_immediately=False,
        )

        if discovery and self.config["discovery"].get("enabled", True):
            if self.discovery.start():
                self.scheduler.every(
                    "discovery", self.config["discovery"].get("interval", DISCOVERY_INTERVAL_SECONDS),
                    self.discovery.cycle,
                    run_immediately=False,
                )
        self.scheduler.start()

    def stop(self):
        logger.info("Shutting down node")
        self.scheduler.stop(wait=True)
        self.broadcaster.shutdown(wait=False)
        self.discovery.stop()
        self.db.close()
