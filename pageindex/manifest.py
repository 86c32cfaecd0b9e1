"""
Manifest Store - Checkpoint of per-document progress and the id counter.

A missing or unreadable manifest is replaced by an empty one so a damaged
checkpoint never blocks a run. Because that can rewind the id counter,
`reconcile` compares it with the record log before ids are handed out.
"""

import json
import logging
import os
import tempfile
from pathlib import Path

from .errors import PersistenceError
from .models import Manifest
from .records import RecordLog


logger = logging.getLogger(__name__)


class ManifestStore:
    """Reads and writes manifest.json."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Manifest:
        """
        Load the persisted manifest.

        Returns an empty manifest ({done: {}, lastId: 0}) when the file is
        missing or its content is malformed.
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return Manifest()
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable manifest {self.path}: {e}")
            return Manifest()

        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed manifest {self.path}: not an object")
            return Manifest()

        try:
            return Manifest.from_dict(data)
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring malformed manifest {self.path}: {e}")
            return Manifest()

    def save(self, manifest: Manifest) -> None:
        """Overwrite the manifest file with the full current state."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(manifest.to_dict(), indent=2, ensure_ascii=False)

        # Write to a sibling temp file, then swap it in
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise PersistenceError(f"Cannot write manifest {self.path}: {e}") from e
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug(f"Saved manifest: {len(manifest.done)} documents, lastId={manifest.last_id}")


def reconcile(manifest: Manifest, record_log: RecordLog) -> Manifest:
    """
    Make sure the id counter is ahead of every id already in the record log.

    Returns the same manifest, with `last_id` raised if it was behind.
    """
    max_id = record_log.max_id()
    if max_id is not None and manifest.last_id <= max_id:
        logger.warning(
            f"Manifest lastId={manifest.last_id} is behind record log "
            f"(max id {max_id}); resuming ids at {max_id + 1}"
        )
        manifest.last_id = max_id + 1
    return manifest
