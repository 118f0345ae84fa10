"""
Routing of decoded frames: store, log and forward
"""
import logging
from typing import Any, Dict, NamedTuple, Optional

from tcp_server.device_store import DeviceStateStore
from tcp_server.forwarder import PositionForwarder
from tcp_server.position_filter import PositionPolicy
from tcp_server.position_log import PositionLog
from tcp_server.protocols import decode_frame

logger = logging.getLogger(__name__)

OUTCOME_DROPPED = 'dropped'
OUTCOME_EVENT = 'event'
OUTCOME_FORWARDED = 'forwarded'
OUTCOME_SKIPPED = 'skipped'


class RouteResult(NamedTuple):
    outcome: str
    device_id: Optional[str] = None


class IngestPipeline:
    """
    Everything after framing. process_frame() is synchronous; the log append
    and the forward are queued and happen later on their own tasks.
    """

    def __init__(self, store: DeviceStateStore, policy: PositionPolicy,
                 position_log: Optional[PositionLog] = None,
                 forwarder: Optional[PositionForwarder] = None):
        self.store = store
        self.policy = policy
        self.position_log = position_log
        self.forwarder = forwarder
        self.stats = {
            'frames': 0,
            'decode_failures': 0,
            'positions': 0,
            'events': 0,
            'forwarded': 0,
            'skipped': 0,
        }

    def process_frame(self, frame: str) -> RouteResult:
        self.stats['frames'] += 1

        result = decode_frame(frame)
        if not result.ok:
            self.stats['decode_failures'] += 1
            logger.debug(f"Dropped frame ({result.error}): {frame[:100]}")
            return RouteResult(OUTCOME_DROPPED)

        record = result.record
        if not self.policy.has_usable_coords(record):
            self.stats['events'] += 1
            self.store.merge(record.device_id, {'lastEvent': record.to_json_dict()})
            logger.info(f"[EVT] {record.device_id} {record.cmd} (no usable coords)")
            return RouteResult(OUTCOME_EVENT, record.device_id)

        self.stats['positions'] += 1
        self.store.put(record.device_id, record.to_json_dict())

        if self.position_log:
            self.position_log.append(record)

        if self.forwarder and self.policy.should_forward(record):
            self.stats['forwarded'] += 1
            self.forwarder.submit(record)
            logger.info(f"[POS->FWD] {record.device_id} {record.lat} {record.lon} "
                        f"{'valid' if record.valid else 'invalid'}")
            return RouteResult(OUTCOME_FORWARDED, record.device_id)

        self.stats['skipped'] += 1
        logger.info(f"[POS->SKIP] {record.device_id} {record.lat} {record.lon} valid={record.valid}")
        return RouteResult(OUTCOME_SKIPPED, record.device_id)

    def get_stats(self) -> Dict[str, Any]:
        return dict(self.stats)
