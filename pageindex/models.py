"""
Data Models - Type definitions for the extraction and indexing pipeline.

These dataclasses represent the data flowing through the pipeline stages
and their on-disk JSON forms (manifest, record log, shard manifest).
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


class DocState(Enum):
    """Terminal status of a document in the manifest."""
    OK = "ok"
    ERROR = "error"


@dataclass
class Document:
    """
    A corpus file found by the scanner.

    Status is never stored here; it lives only in the manifest.
    """
    path: Path
    name: str
    size: int

    @classmethod
    def from_path(cls, path: Path, size: int) -> "Document":
        return cls(path=path, name=path.name, size=size)


@dataclass(frozen=True)
class PageRecord:
    """
    One line of the record log.

    `page` is zero-based; `text` is the whitespace-collapsed page text and
    `norm` its normalized form used for indexing.
    """
    id: int
    doc: str
    page: int
    text: str
    norm: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "doc": self.doc,
            "page": self.page,
            "text": self.text,
            "norm": self.norm,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PageRecord":
        return cls(
            id=int(data["id"]),
            doc=str(data["doc"]),
            page=int(data["page"]),
            text=str(data["text"]),
            norm=str(data["norm"]),
        )


@dataclass
class DocStatus:
    """
    Manifest entry for a processed document.

    Entries written by other tools or versions that do not parse are kept
    in `raw` and written back unchanged; `status` is then None.
    """
    status: Optional[DocState]
    step: Optional[str] = None
    reason: Optional[str] = None
    pages: Optional[int] = None
    emitted: Optional[int] = None
    raw: Any = None

    @classmethod
    def ok(cls, pages: int, emitted: int) -> "DocStatus":
        return cls(status=DocState.OK, pages=pages, emitted=emitted)

    @classmethod
    def failed(cls, step: str, reason: str) -> "DocStatus":
        return cls(status=DocState.ERROR, step=step, reason=reason)

    def to_dict(self) -> Any:
        if self.status is None:
            return self.raw
        data: Dict[str, Any] = {"status": self.status.value}
        for key in ("step", "reason", "pages", "emitted"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "DocStatus":
        if not isinstance(data, dict):
            return cls(status=None, raw=data)
        try:
            status = DocState(data.get("status"))
        except ValueError:
            return cls(status=None, raw=data)
        return cls(
            status=status,
            step=data.get("step"),
            reason=data.get("reason"),
            pages=data.get("pages"),
            emitted=data.get("emitted"),
        )


@dataclass
class Manifest:
    """
    Persisted pipeline progress.

    `last_id` is the next record id to allocate. A document present in
    `done` is never reprocessed, whatever its status.
    """
    done: Dict[str, DocStatus] = field(default_factory=dict)
    last_id: int = 0

    def is_done(self, name: str) -> bool:
        return name in self.done

    def to_dict(self) -> Dict[str, Any]:
        return {
            "done": {name: status.to_dict() for name, status in self.done.items()},
            "lastId": self.last_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Manifest":
        done = data.get("done", {})
        if not isinstance(done, dict):
            raise ValueError("manifest 'done' must be an object")
        last_id = data.get("lastId", 0)
        if not isinstance(last_id, int) or isinstance(last_id, bool) or last_id < 0:
            raise ValueError(f"manifest 'lastId' must be a non-negative integer, got {last_id!r}")
        return cls(
            done={name: DocStatus.from_dict(status) for name, status in done.items()},
            last_id=last_id,
        )


@dataclass(frozen=True)
class ErrorEntry:
    """One line of the Error Ledger."""
    doc: str
    step: str
    reason: str

    def to_line(self) -> str:
        # Tabs and newlines inside fields would break the TSV layout
        reason = " ".join(self.reason.split())
        return f"{self.doc}\t{self.step}\t{reason}\n"

    @classmethod
    def from_line(cls, line: str) -> "ErrorEntry":
        doc, step, reason = line.rstrip("\n").split("\t", 2)
        return cls(doc=doc, step=step, reason=reason)


@dataclass
class ShardManifest:
    """
    Describes how to reassemble the serialized index from its shards.

    Shards are read in ascending ordinal order and concatenated.
    """
    total_bytes: int
    shards: int
    shard_bytes: int
    checksums: List[str] = field(default_factory=list)
    checksum: str = ""
    version: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "totalBytes": self.total_bytes,
            "shards": self.shards,
            "shardBytes": self.shard_bytes,
            "checksums": list(self.checksums),
            "checksum": self.checksum,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShardManifest":
        return cls(
            version=int(data.get("version", 1)),
            total_bytes=int(data["totalBytes"]),
            shards=int(data["shards"]),
            shard_bytes=int(data["shardBytes"]),
            checksums=list(data.get("checksums") or []),
            checksum=str(data.get("checksum") or ""),
        )


@dataclass
class ScanResult:
    """Result of listing the corpus directory."""
    documents: List[Document]
    duration_seconds: float

    @property
    def names(self) -> List[str]:
        return [d.name for d in self.documents]


@dataclass
class DocumentResult:
    """Outcome of processing a single document."""
    name: str
    status: DocStatus
    page_errors: int = 0

    @property
    def success(self) -> bool:
        return self.status.status is DocState.OK


@dataclass
class ExtractionStats:
    """Statistics from an extraction run."""
    documents_total: int = 0
    documents_pending: int = 0
    documents_ok: int = 0
    documents_failed: int = 0
    pages_seen: int = 0
    records_emitted: int = 0
    page_errors: int = 0
    duration_seconds: float = 0.0

    @property
    def failures(self) -> int:
        return self.documents_failed + self.page_errors

    def __str__(self) -> str:
        return (
            f"OK: {self.documents_ok}, errors: {self.documents_failed} "
            f"({self.records_emitted} records from {self.pages_seen} pages, "
            f"{self.page_errors} page errors) "
            f"in {self.duration_seconds:.1f}s"
        )
