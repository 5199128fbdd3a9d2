"""
Checkpoint persistence for resumable crawls.
Holds the processed-name set and the traversal cursor (last tab, last page).
"""

import json
import logging
from pathlib import Path
from typing import Optional

from ..errors import StateFileError
from ..models import Checkpoint
from ..utils import atomic_write_json, backup_corrupted, now_iso


logger = logging.getLogger(__name__)


class CheckpointStore:
    """Manages the on-disk checkpoint for a crawl."""

    FILENAME = "checkpoint.json"

    def __init__(self, state_dir: str = "crawler_state"):
        """
        Initialize store with state directory.

        Args:
            state_dir: Directory to store state files
        """
        self.state_dir = Path(state_dir)
        self.state_file = self.state_dir / self.FILENAME
        self._checkpoint: Optional[Checkpoint] = None
        self.state_dir.mkdir(parents=True, exist_ok=True)

    @property
    def checkpoint(self) -> Optional[Checkpoint]:
        return self._checkpoint

    def exists(self) -> bool:
        return self.state_file.exists()

    def load(self) -> Optional[Checkpoint]:
        """
        Load existing checkpoint from disk.

        Returns:
            Checkpoint if present and valid, None otherwise
        """
        if not self.state_file.exists():
            return None

        try:
            with open(self.state_file, 'r', encoding='utf-8') as f:
                data = json.load(f)

            self._checkpoint = Checkpoint(
                started_at=data.get('started_at', ''),
                last_updated=data.get('last_updated', ''),
                processed_names=set(data.get('processed_names', [])),
                last_tab_url=data.get('last_tab_url'),
                last_page_url=data.get('last_page_url'),
                total_processed=int(data.get('total_processed', 0)),
            )
            return self._checkpoint

        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Checkpoint file corrupted: %s", e)
            try:
                backup = backup_corrupted(self.state_file)
                if backup:
                    logger.warning("Backed up corrupted checkpoint to %s", backup)
            except OSError as backup_error:
                logger.error("Failed to back up corrupted checkpoint: %s", backup_error)
            return None

    def create_new(self) -> Checkpoint:
        """Create and persist a checkpoint for a fresh crawl."""
        started = now_iso()
        self._checkpoint = Checkpoint(started_at=started, last_updated=started)
        self.save(self._checkpoint)
        return self._checkpoint

    def save(self, checkpoint: Checkpoint):
        """
        Atomically save checkpoint to disk.

        Args:
            checkpoint: Checkpoint to persist
        """
        self._checkpoint = checkpoint
        checkpoint.last_updated = now_iso()

        data = {
            'started_at': checkpoint.started_at,
            'last_updated': checkpoint.last_updated,
            'processed_names': sorted(checkpoint.processed_names),
            'last_tab_url': checkpoint.last_tab_url,
            'last_page_url': checkpoint.last_page_url,
            'total_processed': checkpoint.total_processed,
        }

        try:
            atomic_write_json(self.state_file, data)
        except OSError as e:
            raise StateFileError(f"Failed to save checkpoint: {e}") from e

    def clear(self):
        """Delete the checkpoint; only done once the whole crawl has finished."""
        if self.state_file.exists():
            self.state_file.unlink()
        self._checkpoint = None

    def get_stats(self) -> dict:
        """
        Get checkpoint statistics.

        Returns:
            Dict with cursor and processed count
        """
        if self._checkpoint is None:
            return {
                'processed': 0,
                'last_tab_url': None,
                'last_page_url': None,
            }
        return {
            'processed': self._checkpoint.total_processed,
            'last_tab_url': self._checkpoint.last_tab_url,
            'last_page_url': self._checkpoint.last_page_url,
        }
