"""Fan-out of locally fired alerts to live peers."""
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field

from utils.constants import PEER_CALL_TIMEOUT_SECONDS
from utils.http_client import APIError, HTTPClient

logger = logging.getLogger("hwmonitor.network.broadcaster")

NOTIFY_PATH = "/alerts/notify"


@dataclass
class BroadcastResult:
    attempted: int = 0
    delivered: list = field(default_factory=list)
    failed: dict = field(default_factory=dict)

    @property
    def failure_count(self):
        return len(self.failed)

    def to_dict(self):
        return {
            "attempted": self.attempted,
            "delivered": list(self.delivered),
            "failed": dict(self.failed),
            "failure_count": self.failure_count,
        }

class NotificationBroadcaster:
    """POSTs an AlertEvent to every live peer concurrently.

    Each peer call is its own task on a shared pool with its own timeout, so
    one slow or dead peer never delays delivery of this or any later event to
    the others.
    """

    def __init__(self, directory, client=None, timeout=PEER_CALL_TIMEOUT_SECONDS,
                 max_retries=0, max_workers=8):
        self.directory = directory
        self.client = client or HTTPClient(timeout=timeout, max_retries=max_retries)
        self._fanout = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="hwmon-notify")
        self._closed = False

    def targets(self, event):
        peers = self.directory.live_nodes()
        if event.notify_nodes:
            wanted = set(event.notify_nodes)
            peers = [p for p in peers if p.id in wanted]
        return peers

    def _send(self, peer, payload):
        self.client.post(f"{peer.api_url}{NOTIFY_PATH}", json=payload)

    def _record_outcome(self, event, peer, future, result):
        try:
            future.result()
        except APIError as e:
            result.failed[peer.id] = str(e)
            logger.warning(f"Alert {event.rule_id} not delivered to {peer.name} ({peer.id}): {e}")
        except Exception as e:
            result.failed[peer.id] = str(e)
            logger.error(f"Unexpected error notifying {peer.name} ({peer.id}): {e}")
        else:
            result.delivered.append(peer.id)

    def submit(self, event):
        """Start delivering ``event`` and return a Future of its BroadcastResult.

        Never blocks the caller (the sampling thread). Returns None once shut down.
        """
        if self._closed:
            logger.warning(f"Broadcaster shut down, dropping alert {event.rule_id}")
            return None

        peers = self.targets(event)
        result = BroadcastResult(attempted=len(peers))
        done = Future()
        if not peers:
            done.set_result(result)
            return done

        payload = event.to_payload()
        lock = threading.Lock()
        pending = [len(peers)]

        def on_done(future, peer):
            with lock:
                self._record_outcome(event, peer, future, result)
                pending[0] -= 1
                finished = pending[0] == 0
            if finished:
                logger.info(
                    f"Broadcast {event.rule_id}: {len(result.delivered)}/{result.attempted} peers notified"
                )
                done.set_result(result)

        for peer in peers:
            try:
                future = self._fanout.submit(self._send, peer, payload)
            except RuntimeError as e:
                # Pool shut down mid-submit; count the peer as failed
                future = Future()
                future.set_exception(e)
            future.add_done_callback(lambda f, p=peer: on_done(f, p))
        return done

    def broadcast(self, event):
        """Deliver ``event`` to each target peer and report per-peer outcomes."""
        done = self.submit(event)
        if done is None:
            return BroadcastResult()
        return done.result()

    def shutdown(self, wait=True):
        self._closed = True
        self._fanout.shutdown(wait=wait)
        self.client.close()
