"""mDNS/DNS-SD announcement and peer browsing via zeroconf."""
import logging
import re
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

from zeroconf import IPVersion, ServiceBrowser, ServiceInfo, ServiceListener, Zeroconf

from models.enums import NodeStatus
from models.node import Node
from utils.constants import SERVICE_TYPE

logger = logging.getLogger("hwmonitor.network.discovery")

REQUIRED_PROPERTIES = ("id", "name", "os_info", "version")


def _decode_properties(properties):
    decoded = {}
    for key, value in (properties or {}).items():
        if isinstance(key, bytes):
            key = key.decode("utf-8", "replace")
        if isinstance(value, bytes):
            value = value.decode("utf-8", "replace")
        decoded[key] = value
    return decoded


def node_from_service_info(info):
    """Build a peer Node from a resolved service, or None if its TXT record is incomplete."""
    props = _decode_properties(info.properties)
    if any(not props.get(key) for key in REQUIRED_PROPERTIES):
        return None

    addresses = info.parsed_addresses(IPVersion.V4Only) or info.parsed_addresses()
    if not addresses or not info.port:
        return None

    return Node(
        id=props["id"],
        name=props["name"],
        ip_address=addresses[0],
        api_port=info.port,
        os_info=props["os_info"],
        version=props["version"],
        status=NodeStatus.ONLINE,
        last_seen=datetime.now(timezone.utc),
    )


def service_instance_name(node, service_type=SERVICE_TYPE):
    label = re.sub(r"[^A-Za-z0-9-]+", "-", node.name).strip("-") or "node"
    return f"{label}-{node.id[:8]}.{service_type}"


class _PeerListener(ServiceListener):
    """Callbacks run on zeroconf's own thread, so resolution is handed off."""

    def __init__(self, discovery):
        self.discovery = discovery

    def add_service(self, zc, type_, name):
        self.discovery.schedule_resolve(name)

    def update_service(self, zc, type_, name):
        self.discovery.schedule_resolve(name)

    def remove_service(self, zc, type_, name):
        self.discovery.handle_removed(name)


class DiscoveryService:
    """Announces the local node and keeps the NodeDirectory fed with peers.

    If zeroconf cannot start (no multicast, port in use) the node keeps
    running with no peers.
    """

    def __init__(self, directory, local_node, service_type=SERVICE_TYPE,
                 resolve_timeout_ms=1000, zeroconf_factory=Zeroconf):
        self.directory = directory
        self.local_node = local_node
        self.service_type = service_type
        self.resolve_timeout_ms = resolve_timeout_ms
        self._zeroconf_factory = zeroconf_factory

        self.zeroconf = None
        self.browser = None
        self.service_info = None
        self._services = {}
        self._lock = threading.Lock()
        self._resolver = None

    @property
    def active(self):
        return self.zeroconf is not None

    def _build_service_info(self):
        node = self.local_node
        return ServiceInfo(
            self.service_type,
            service_instance_name(node, self.service_type),
            port=node.api_port,
            properties={
                "id": node.id,
                "name": node.name,
                "os_info": node.os_info,
                "version": node.version,
            },
            server=service_instance_name(node, "local."),
            parsed_addresses=[node.ip_address],
        )

    def start(self):
        """Register the local service and start browsing. Returns False if discovery is unavailable."""
        try:
            self.zeroconf = self._zeroconf_factory()
            self.service_info = self._build_service_info()
            self.zeroconf.register_service(self.service_info)
            self._resolver = ThreadPoolExecutor(max_workers=1, thread_name_prefix="hwmon-mdns")
            self.browser = ServiceBrowser(self.zeroconf, self.service_type, listener=_PeerListener(self))
        except Exception as e:
            logger.error(f"mDNS discovery unavailable, running without peers: {e}")
            self._close_zeroconf()
            return False
        logger.info(f"Registered mDNS service {self.service_info.name} on port {self.local_node.api_port}")
        return True

    def stop(self):
        if self.zeroconf is None:
            return
        if self.browser is not None:
            self.browser.cancel()
            self.browser = None
        if self._resolver is not None:
            self._resolver.shutdown(wait=False)
            self._resolver = None
        if self.service_info is not None:
            try:
                self.zeroconf.unregister_service(self.service_info)
            except Exception as e:
                logger.warning(f"Failed to unregister mDNS service: {e}")
        self._close_zeroconf()
        logger.info("mDNS discovery stopped")

    def _close_zeroconf(self):
        if self.zeroconf is not None:
            self.zeroconf.close()
            self.zeroconf = None

    def schedule_resolve(self, name):
        resolver = self._resolver
        if resolver is None:
            return
        try:
            resolver.submit(self.resolve, name)
        except RuntimeError:
            logger.debug(f"Resolver stopped, dropping lookup of {name}")

    def resolve(self, name, now=None):
        """Resolve one service instance and upsert it. Returns the Node or None."""
        if self.zeroconf is None:
            return None
        info = self.zeroconf.get_service_info(self.service_type, name, timeout=self.resolve_timeout_ms)
        if info is None:
            logger.debug(f"Could not resolve {name}")
            return None
        node = node_from_service_info(info)
        if node is None:
            logger.debug(f"Ignoring {name}: incomplete TXT record")
            return None
        if node.id == self.local_node.id:
            return None
        with self._lock:
            self._services[name] = node.id
        self.directory.upsert(node, now=now)
        return node

    def handle_removed(self, name):
        with self._lock:
            node_id = self._services.pop(name, None)
        if node_id is not None:
            logger.info(f"Service removed: {name}")
            self.directory.mark_offline(node_id)

    def cycle(self, now=None):
        """Periodic job: re-resolve known services to refresh liveness, then sweep the directory."""
        with self._lock:
            names = list(self._services)
        for name in names:
            self.resolve(name, now=now)
        self.directory.sweep(now=now)
