"""
Resilience components for the directory crawler.
"""

from .checkpoint_store import CheckpointStore
from .retry_handler import RetryHandler
from .work_queue import WorkQueue

__all__ = [
    'CheckpointStore',
    'RetryHandler',
    'WorkQueue'
]
