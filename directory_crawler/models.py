"""
Data models for the directory crawler.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Set, Union


@dataclass
class Tab:
    """Top-level category partition of the directory (e.g. a letter bucket)."""
    url: str
    label: str


@dataclass
class EntityRef:
    """Reference to an entity's detail page; `name` is the dedup key."""
    name: str
    detail_url: str
    source_tab_url: str

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'detail_url': self.detail_url,
            'source_tab_url': self.source_tab_url,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EntityRef":
        return cls(
            name=data['name'],
            detail_url=data['detail_url'],
            source_tab_url=data.get('source_tab_url', ''),
        )


@dataclass
class ExtractedRecord:
    """One output row."""
    source_tab_url: str
    name: str
    homepage_url: str = ""


@dataclass
class Checkpoint:
    """Persistent state for resumable crawls."""
    started_at: str
    last_updated: str
    processed_names: Set[str] = field(default_factory=set)
    last_tab_url: Optional[str] = None
    last_page_url: Optional[str] = None
    total_processed: int = 0

    def is_processed(self, name: str) -> bool:
        return name in self.processed_names

    def mark_processed(self, name: str):
        if name not in self.processed_names:
            self.processed_names.add(name)
            self.total_processed += 1


@dataclass
class Found:
    """Extraction reached the target; `fields` holds what was read."""
    fields: Dict[str, str] = field(default_factory=dict)


@dataclass
class NotFound:
    """Target loaded but the optional fields were absent."""
    reason: str = ""


@dataclass
class ExtractionError:
    """Extraction failed and may be retried."""
    reason: str


ExtractionOutcome = Union[Found, NotFound, ExtractionError]


@dataclass
class PoolStats:
    """Counters from draining the work queue."""
    completed: int = 0
    skipped: int = 0
    failed: int = 0
    chunks: int = 0

    def add(self, other: "PoolStats"):
        self.completed += other.completed
        self.skipped += other.skipped
        self.failed += other.failed
        self.chunks += other.chunks


@dataclass
class CrawlResult:
    """Result of a crawl run."""
    success: bool
    finished: bool
    started_at: str
    completed_at: str
    tabs_total: int
    pages_visited: int
    total_discovered: int
    total_completed: int
    total_skipped: int
    total_failed: int
    duration_seconds: float = 0.0
    records_per_hour: float = 0.0
