"""
Latest known state per tracker, shared by the TCP ingestion path and the API
"""
import threading
from typing import Any, Dict, Optional

Entry = Dict[str, Any]


class DeviceStateStore:
    """
    device id -> latest entry. Entries are replaced, never mutated in place,
    so a reader always sees a complete entry. Devices are never removed.
    """

    def __init__(self):
        self._entries: Dict[str, Entry] = {}
        self._lock = threading.Lock()

    def get(self, device_id: str) -> Optional[Entry]:
        with self._lock:
            return self._entries.get(device_id)

    def put(self, device_id: str, entry: Entry):
        """Replace the device's entry wholesale"""
        with self._lock:
            self._entries[device_id] = dict(entry)

    def merge(self, device_id: str, patch: Entry):
        """Shallow-merge patch over the current entry (or an empty one)"""
        with self._lock:
            current = self._entries.get(device_id, {})
            self._entries[device_id] = {**current, **patch}

    def snapshot(self) -> Dict[str, Entry]:
        """Point-in-time copy of every entry keyed by device id"""
        with self._lock:
            return dict(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, device_id: str) -> bool:
        with self._lock:
            return device_id in self._entries

    def clear(self):
        with self._lock:
            self._entries.clear()


device_store = DeviceStateStore()
