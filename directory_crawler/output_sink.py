"""
Append-only CSV output.
"""

import csv
import os
from pathlib import Path
from typing import List

from .models import ExtractedRecord


HEADER = ['sourceurl', 'company_name', 'company_homepage_url']


class CsvOutputSink:
    """Appends one quoted row per extracted record; never rewrites the file."""

    def __init__(self, path: str = "output.csv"):
        self.path = Path(path)

    def ensure_header_exists(self):
        """Write the header row if the file is missing or empty."""
        if self.path.exists() and self.path.stat().st_size > 0:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'a', encoding='utf-8', newline='') as f:
            f.write(",".join(HEADER) + "\n")

    def append_record(self, record: ExtractedRecord):
        """Append one row and flush it to disk."""
        with open(self.path, 'a', encoding='utf-8', newline='') as f:
            writer = csv.writer(f, quoting=csv.QUOTE_ALL, lineterminator="\n")
            writer.writerow([record.source_tab_url, record.name, record.homepage_url or ""])
            f.flush()
            os.fsync(f.fileno())

    def read_names(self) -> List[str]:
        """Company names in file order, header excluded."""
        if not self.path.exists():
            return []
        with open(self.path, 'r', encoding='utf-8', newline='') as f:
            rows = list(csv.reader(f))
        return [row[1] for row in rows[1:] if len(row) > 1]
