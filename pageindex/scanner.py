"""
Scanner - Deterministic listing of the document corpus.

Only the top level of the source directory is listed. Hidden files and
system files are skipped; the result is sorted by name so every run
walks the corpus in the same order.
"""

import logging
import os
import time
from pathlib import Path
from typing import List

from .config import get_config, PipelineConfig
from .errors import DiscoveryError
from .models import Document, ScanResult


logger = logging.getLogger(__name__)


class Scanner:
    """Lists documents whose extension matches the configured set."""

    def __init__(self, config: PipelineConfig | None = None):
        self.config = config or get_config()

    def scan(self, source_dir: Path | None = None) -> ScanResult:
        """
        List candidate documents, sorted lexicographically by name.

        Raises:
            DiscoveryError: if the directory is missing or unreadable
        """
        source_dir = Path(source_dir or self.config.source_dir)
        start_time = time.monotonic()

        if not source_dir.is_dir():
            raise DiscoveryError(f"Source directory not found: {source_dir}")

        try:
            entries = list(os.scandir(source_dir))
        except OSError as e:
            raise DiscoveryError(f"Cannot read source directory {source_dir}: {e}") from e

        documents: List[Document] = []
        for entry in entries:
            if self._should_skip_file(entry.name):
                continue
            try:
                if not entry.is_file():
                    continue
                size = entry.stat().st_size
            except OSError as e:
                logger.warning(f"Cannot stat {entry.name}: {e}")
                continue
            documents.append(Document.from_path(Path(entry.path), size))

        documents.sort(key=lambda d: d.name)
        duration = time.monotonic() - start_time

        logger.debug(f"Scanned {len(documents)} documents in {duration:.2f}s")

        return ScanResult(documents=documents, duration_seconds=duration)

    def _should_skip_file(self, name: str) -> bool:
        """Check if a directory entry is not a candidate document."""
        if name.startswith("."):
            return True

        ext = Path(name).suffix.lower()
        return ext not in self.config.extensions


def scan_corpus(
    source_dir: Path | None = None,
    config: PipelineConfig | None = None,
) -> ScanResult:
    """
    Convenience function to list the corpus.

    Usage:
        result = scan_corpus(Path("public/pdfs"))
        for doc in result.documents:
            print(doc.name)
    """
    return Scanner(config).scan(source_dir)
