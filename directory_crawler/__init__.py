"""
Resumable crawler for paginated public directories.

Walks category tabs and their listing pages, extracts a small record per
entity and appends it to a CSV file. Progress is checkpointed so an
interrupted crawl picks up where it stopped.
"""

__version__ = "0.1.0"
