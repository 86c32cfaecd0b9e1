"""
Append-only outputs of the extraction pipeline.

- RecordLog: docs.jsonl, one PageRecord JSON object per line
- ErrorLedger: errors.log, one tab-separated `doc step reason` line per failure

Both assume a single writer. Lines are written whole and flushed before
the call returns.
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

from .models import ErrorEntry, PageRecord


logger = logging.getLogger(__name__)


class RecordLog:
    """Append-only JSONL log of page records."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def touch(self) -> None:
        """Create the file (and parents) if missing, without truncating."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch(exist_ok=True)

    def append(self, record: PageRecord) -> None:
        line = json.dumps(record.to_dict(), ensure_ascii=False)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(line + "\n")

    def max_id(self) -> Optional[int]:
        """
        Highest record id in the log, or None if the log is missing or empty.

        A truncated trailing line (interrupted write) is ignored.
        """
        if not self.path.exists():
            return None

        highest: Optional[int] = None
        with open(self.path, "r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    record_id = int(json.loads(line)["id"])
                except (ValueError, KeyError, TypeError):
                    logger.warning(f"Unreadable record at {self.path.name}:{lineno}")
                    continue
                if highest is None or record_id > highest:
                    highest = record_id
        return highest

    def size(self) -> int:
        return self.path.stat().st_size if self.path.exists() else 0


class ErrorLedger:
    """Append-only tab-separated failure log. Entries are never deduplicated."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def touch(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch(exist_ok=True)

    def append(self, entry: ErrorEntry) -> None:
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(entry.to_line())

    def record(self, doc: str, step: str, reason: str) -> ErrorEntry:
        entry = ErrorEntry(doc=doc, step=step, reason=reason)
        self.append(entry)
        return entry

    def entries(self) -> List[ErrorEntry]:
        if not self.path.exists():
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            return [ErrorEntry.from_line(line) for line in f if line.strip()]
