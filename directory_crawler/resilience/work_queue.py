"""
Durable work queue of entities awaiting extraction.
FIFO, with failed entries pushed back onto the front so they are retried
before newer work.

Entries handed out by `dequeue_chunk` stay in the queue file until they are
acknowledged or requeued, so a crash mid-chunk never loses them.
"""

import json
import logging
from collections import deque
from pathlib import Path
from typing import Deque, Dict, Iterable, List, Optional, Set

from ..errors import StateFileError
from ..models import EntityRef
from ..utils import atomic_write_json, backup_corrupted


logger = logging.getLogger(__name__)


class WorkQueue:
    """Deque of EntityRef persisted to disk after every mutation."""

    FILENAME = "queue.json"

    def __init__(self, state_dir: str = "crawler_state"):
        """
        Initialize queue with state directory.

        Args:
            state_dir: Directory to store the queue file
        """
        self.state_dir = Path(state_dir)
        self.queue_file = self.state_dir / self.FILENAME
        self._entries: Deque[EntityRef] = deque()
        self._in_flight: Dict[str, EntityRef] = {}
        self._names: Set[str] = set()
        self.state_dir.mkdir(parents=True, exist_ok=True)

    def __len__(self) -> int:
        """Number of entries waiting to be dequeued (in-flight ones excluded)."""
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __contains__(self, name: str) -> bool:
        return name in self._names

    def peek(self) -> List[EntityRef]:
        """Snapshot of the waiting entries, front first."""
        return list(self._entries)

    @property
    def in_flight(self) -> List[EntityRef]:
        return list(self._in_flight.values())

    def load(self) -> int:
        """
        Restore entries saved by a previous run.

        Returns:
            Number of entries restored
        """
        self._entries.clear()
        self._in_flight.clear()
        self._names.clear()
        if not self.queue_file.exists():
            return 0

        try:
            with open(self.queue_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            for item in data:
                ref = EntityRef.from_dict(item)
                if ref.name not in self._names:
                    self._entries.append(ref)
                    self._names.add(ref.name)
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning("Queue file corrupted: %s", e)
            try:
                backup = backup_corrupted(self.queue_file)
                if backup:
                    logger.warning("Backed up corrupted queue to %s", backup)
            except OSError as backup_error:
                logger.error("Failed to back up corrupted queue: %s", backup_error)
            self._entries.clear()
            self._names.clear()

        return len(self._entries)

    def enqueue(self, entries: Iterable[EntityRef], processed_names: Optional[Set[str]] = None) -> int:
        """
        Append entries that are neither processed nor already queued.

        Args:
            entries: Refs in discovery order
            processed_names: Names already durably completed

        Returns:
            Number of entries added
        """
        processed_names = processed_names or set()
        added = 0
        for ref in entries:
            if ref.name in processed_names or ref.name in self._names:
                continue
            self._entries.append(ref)
            self._names.add(ref.name)
            added += 1

        if added:
            self._persist()
        return added

    def dequeue_chunk(self, n: int) -> List[EntityRef]:
        """
        Remove and return up to `n` entries from the front.

        The entries stay on disk until `ack` or `requeue_front` is called
        for them.

        Args:
            n: Maximum chunk size
        """
        chunk: List[EntityRef] = []
        while self._entries and len(chunk) < n:
            ref = self._entries.popleft()
            self._in_flight[ref.name] = ref
            chunk.append(ref)
        return chunk

    def ack(self, ref: EntityRef):
        """Drop a dequeued entry for good (completed or skipped)."""
        if self._in_flight.pop(ref.name, None) is None:
            return
        self._names.discard(ref.name)
        self._persist()

    def requeue_front(self, entries: List[EntityRef]):
        """
        Put entries back at the front, keeping their relative order.

        Args:
            entries: Refs whose extraction failed
        """
        for ref in reversed(entries):
            if self._in_flight.pop(ref.name, None) is None and ref.name in self._names:
                continue
            self._entries.appendleft(ref)
            self._names.add(ref.name)
        self._persist()

    def clear(self):
        """Empty the queue and remove its file."""
        self._entries.clear()
        self._in_flight.clear()
        self._names.clear()
        if self.queue_file.exists():
            self.queue_file.unlink()

    def _persist(self):
        data = [ref.to_dict() for ref in self._in_flight.values()]
        data.extend(ref.to_dict() for ref in self._entries)
        try:
            atomic_write_json(self.queue_file, data)
        except OSError as e:
            raise StateFileError(f"Failed to save queue: {e}") from e
