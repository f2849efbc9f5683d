"""Dataclass for a monitoring node (self or discovered peer)."""
import platform
import socket
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

from models.enums import NodeStatus


@dataclass(frozen=True)
class Node:
    id: str
    name: str
    ip_address: str
    api_port: int
    os_info: str = ""
    version: str = ""
    status: NodeStatus = NodeStatus.ONLINE
    last_seen: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def api_url(self):
        host = f"[{self.ip_address}]" if ":" in self.ip_address else self.ip_address
        return f"http://{host}:{self.api_port}"

    def with_changes(self, **changes):
        return replace(self, **changes)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "ip_address": self.ip_address,
            "api_port": self.api_port,
            "os_info": self.os_info,
            "version": self.version,
            "status": NodeStatus(self.status).value,
            "last_seen": self.last_seen.isoformat(),
        }

    @classmethod
    def from_dict(cls, d):
        last_seen = d.get("last_seen")
        if isinstance(last_seen, str):
            last_seen = datetime.fromisoformat(last_seen)
        return cls(
            id=d["id"],
            name=d.get("name", d["id"]),
            ip_address=d["ip_address"],
            api_port=int(d["api_port"]),
            os_info=d.get("os_info", ""),
            version=d.get("version", ""),
            status=NodeStatus(d.get("status", NodeStatus.ONLINE.value)),
            last_seen=last_seen or datetime.now(timezone.utc),
        )


def detect_os_info():
    """E.g. 'Linux 6.8.0' or 'Darwin 23.4.0'."""
    return f"{platform.system() or 'Unknown'} {platform.release() or 'Unknown'}".strip()


def detect_local_ip():
    """Best-effort LAN address; falls back to loopback when offline."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # No packet is sent; connect() only selects the outbound interface
        sock.connect(("10.255.255.255", 1))
        return sock.getsockname()[0]
    except OSError:
        return "127.0.0.1"
    finally:
        sock.close()


def build_local_node(node_id=None, name=None, api_port=3030, version="", ip_address=None):
    return Node(
        id=node_id or str(uuid.uuid4()),
        name=name or socket.gethostname(),
        ip_address=ip_address or detect_local_ip(),
        api_port=api_port,
        os_info=detect_os_info(),
        version=version,
        status=NodeStatus.ONLINE,
    )
