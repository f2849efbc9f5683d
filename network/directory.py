"""Soft-state table of discovered peer nodes."""
import logging
import threading
from datetime import datetime, timezone

from models.enums import NodeStatus
from utils.constants import LIVENESS_TIMEOUT_SECONDS

logger = logging.getLogger("hwmonitor.network.directory")

PURGE_AFTER_SECONDS = 3600


class NodeDirectory:
    """Peers keyed by node id. Node records are immutable and replaced whole under the lock."""

    def __init__(self, self_id, liveness_timeout=LIVENESS_TIMEOUT_SECONDS,
                 purge_after=PURGE_AFTER_SECONDS):
        self.self_id = self_id
        self.liveness_timeout = liveness_timeout
        self.purge_after = purge_after
        self._nodes = {}
        self._alerting = set()
        self._lock = threading.Lock()

    def _status_for(self, node_id):
        return NodeStatus.ALERTING if node_id in self._alerting else NodeStatus.ONLINE

    def upsert(self, node, now=None):
        """Insert a peer or refresh its address, metadata and last_seen. Returns False for self."""
        if node.id == self.self_id:
            return False
        now = now or datetime.now(timezone.utc)
        with self._lock:
            is_new = node.id not in self._nodes
            previous = self._nodes.get(node.id)
            updated = node.with_changes(status=self._status_for(node.id), last_seen=now)
            self._nodes[node.id] = updated
        if is_new:
            logger.info(f"Discovered node {node.name} ({node.id}) at {node.api_url}")
        elif previous.status == NodeStatus.OFFLINE:
            logger.info(f"Node {node.name} ({node.id}) is back online")
        return True

    def sweep(self, now=None):
        """Mark stale peers OFFLINE and purge long-gone ones. Returns (marked_offline, purged) id lists."""
        now = now or datetime.now(timezone.utc)
        offline, purged = [], []
        with self._lock:
            for node_id, node in list(self._nodes.items()):
                age = (now - node.last_seen).total_seconds()
                if age > self.purge_after:
                    del self._nodes[node_id]
                    self._alerting.discard(node_id)
                    purged.append(node_id)
                elif age > self.liveness_timeout and node.status != NodeStatus.OFFLINE:
                    self._nodes[node_id] = node.with_changes(status=NodeStatus.OFFLINE)
                    offline.append(node_id)
        for node_id in offline:
            logger.info(f"Node {node_id} went offline (no announcement for >{self.liveness_timeout}s)")
        if purged:
            logger.debug(f"Purged {len(purged)} stale nodes")
        return offline, purged

    def mark_offline(self, node_id):
        with self._lock:
            node = self._nodes.get(node_id)
            if node is None or node.status == NodeStatus.OFFLINE:
                return False
            self._nodes[node_id] = node.with_changes(status=NodeStatus.OFFLINE)
        logger.info(f"Node {node.name} ({node_id}) went offline")
        return True

    def set_alerting(self, node_id, alerting):
        """Hold or release ALERTING for a peer. Offline peers stay OFFLINE until seen again."""
        with self._lock:
            if alerting:
                self._alerting.add(node_id)
            else:
                self._alerting.discard(node_id)
            node = self._nodes.get(node_id)
            if node is None or node.status == NodeStatus.OFFLINE:
                return
            self._nodes[node_id] = node.with_changes(status=self._status_for(node_id))

    def alerting_ids(self):
        with self._lock:
            return set(self._alerting)

    def get(self, node_id):
        with self._lock:
            return self._nodes.get(node_id)

    def list_nodes(self):
        with self._lock:
            return sorted(self._nodes.values(), key=lambda n: (n.name, n.id))

    def live_nodes(self):
        return [n for n in self.list_nodes() if n.status != NodeStatus.OFFLINE]

    def remove(self, node_id):
        with self._lock:
            self._alerting.discard(node_id)
            return self._nodes.pop(node_id, None) is not None

    def clear(self):
        with self._lock:
            self._nodes.clear()
            self._alerting.clear()

    def __len__(self):
        with self._lock:
            return len(self._nodes)
