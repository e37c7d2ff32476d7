"""
Bounded in-memory record of processed message ids.

Reconnects and overlapping new-mail notifications can surface the same
message twice; the watcher checks here first. Oldest ids are evicted once
max_size is reached. Nothing is persisted, so a restart forgets everything.

The watcher only calls add_if_new(), so a shared store with an atomic
check-and-insert can replace this class for multi-instance deployments.
"""

from collections import OrderedDict

DEFAULT_MAX_SIZE = 10_000


class SeenSet:
    def __init__(self, max_size: int = DEFAULT_MAX_SIZE) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self._ids: "OrderedDict[str, None]" = OrderedDict()

    def __contains__(self, message_id: str) -> bool:
        return message_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    @property
    def size(self) -> int:
        return len(self._ids)

    def has(self, message_id: str) -> bool:
        return message_id in self._ids

    def add(self, message_id: str) -> None:
        """Insert an id; a no-op if already present. Evicts the oldest when full."""
        if message_id in self._ids:
            return
        if len(self._ids) >= self.max_size:
            self._ids.popitem(last=False)
        self._ids[message_id] = None

    def add_if_new(self, message_id: str) -> bool:
        """Insert an id and return True, or return False if it was already seen."""
        if message_id in self._ids:
            return False
        self.add(message_id)
        return True
