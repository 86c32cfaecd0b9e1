"""
Index Builder - Token index over page records, serialized and sharded.

Reads docs.jsonl end to end, indexes the `norm` field, serializes the
whole index to one canonical JSON buffer and cuts that buffer into
fixed-size shards:

    index-0.json, index-1.json, ...   consecutive byte slices
    manifest.json                     {version, totalBytes, shards, shardBytes, ...}

A reader fetches the shards in ordinal order, concatenates them and
parses the result. The index is rebuilt from scratch on every run.
"""

import json
import logging
import re
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .config import get_config, PipelineConfig
from .errors import RecordLogError, ShardIntegrityError
from .hasher import hash_bytes, hash_chunks
from .models import PageRecord, ShardManifest
from .text import normalize_text, terms


logger = logging.getLogger(__name__)


SHARD_MANIFEST_NAME = "manifest.json"
SERIALIZATION_VERSION = 1

_SHARD_NAME_RE = re.compile(r"^index-(\d+)\.json$")


def shard_name(ordinal: int) -> str:
    return f"index-{ordinal}.json"


class TokenIndex:
    """
    Inverted index over the `norm` field of page records.

    Documents get dense internal ids in insertion order; `doc`, `page` and
    `text` are stored for retrieval but not indexed.
    """

    fields = ("norm",)
    store_fields = ("doc", "page", "text")

    def __init__(self):
        self._record_ids: List[int] = []
        self._field_length: List[int] = []
        self._stored: List[Dict[str, Any]] = []
        self._postings: Dict[str, Dict[int, int]] = defaultdict(dict)
        self._seen: set = set()

    def __len__(self) -> int:
        return len(self._record_ids)

    @property
    def vocabulary(self) -> List[str]:
        return sorted(self._postings)

    def add(self, record: PageRecord) -> None:
        if record.id in self._seen:
            raise ValueError(f"duplicate record id {record.id}")
        self._seen.add(record.id)

        short_id = len(self._record_ids)
        tokens = terms(record.norm)

        self._record_ids.append(record.id)
        self._field_length.append(len(tokens))
        self._stored.append({name: getattr(record, name) for name in self.store_fields})

        for term in tokens:
            postings = self._postings[term]
            postings[short_id] = postings.get(short_id, 0) + 1

    def add_all(self, records: Iterable[PageRecord]) -> None:
        for record in records:
            self.add(record)

    def search(self, query: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Records containing every term of the query.

        The query goes through the same normalization as indexed text.
        Results are ranked by summed term frequency, ties by record id.
        """
        query_terms = list(dict.fromkeys(terms(normalize_text(query))))
        if not query_terms:
            return []

        matches: Optional[set] = None
        for term in query_terms:
            found = set(self._postings.get(term, {}))
            matches = found if matches is None else matches & found
            if not matches:
                return []

        scored = []
        for short_id in matches:
            score = sum(self._postings[t][short_id] for t in query_terms)
            scored.append((-score, self._record_ids[short_id], short_id))
        scored.sort()

        results = []
        for neg_score, record_id, short_id in scored[:limit]:
            hit = {"id": record_id, "score": -neg_score}
            hit.update(self._stored[short_id])
            results.append(hit)
        return results

    def to_dict(self) -> Dict[str, Any]:
        count = len(self._record_ids)
        average = sum(self._field_length) / count if count else 0.0
        return {
            "serializationVersion": SERIALIZATION_VERSION,
            "fields": list(self.fields),
            "storeFields": list(self.store_fields),
            "documentCount": count,
            "documentIds": list(self._record_ids),
            "fieldLength": list(self._field_length),
            "averageFieldLength": average,
            "storedFields": list(self._stored),
            "index": [
                [term, sorted(self._postings[term].items())]
                for term in sorted(self._postings)
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenIndex":
        version = data.get("serializationVersion")
        if version != SERIALIZATION_VERSION:
            raise ValueError(f"unsupported index serialization version {version!r}")

        index = cls()
        index._record_ids = [int(i) for i in data["documentIds"]]
        index._seen = set(index._record_ids)
        index._field_length = [int(n) for n in data["fieldLength"]]
        index._stored = [dict(s) for s in data["storedFields"]]
        for term, postings in data["index"]:
            index._postings[term] = {int(short): int(tf) for short, tf in postings}
        return index

    def serialize(self) -> bytes:
        """Canonical UTF-8 JSON: same records in, same bytes out."""
        text = json.dumps(
            self.to_dict(), ensure_ascii=False, sort_keys=True, separators=(",", ":")
        )
        return text.encode("utf-8")

    @classmethod
    def deserialize(cls, data: bytes) -> "TokenIndex":
        return cls.from_dict(json.loads(data.decode("utf-8")))


def load_records(path: Path) -> List[PageRecord]:
    """
    Read every record from the record log.

    Raises:
        RecordLogError: if the file is missing, a line is not a record,
            or there are no records at all
    """
    path = Path(path)
    if not path.exists():
        raise RecordLogError(f"{path} does not exist. Run the extraction first")

    records: List[PageRecord] = []
    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                records.append(PageRecord.from_dict(json.loads(line)))
            except (ValueError, KeyError, TypeError) as e:
                raise RecordLogError(f"Bad record at {path.name}:{lineno}: {e}") from e

    if not records:
        raise RecordLogError(f"{path} is empty")
    return records


def _remove_stale_shards(out_dir: Path, keep: int) -> None:
    """Delete shard files left over from a previous, larger build."""
    for path in out_dir.glob("index-*.json"):
        match = _SHARD_NAME_RE.match(path.name)
        if match and int(match.group(1)) >= keep:
            path.unlink()
            logger.debug(f"Removed stale shard {path.name}")


def write_shards(data: bytes, out_dir: Path, shard_bytes: int) -> ShardManifest:
    """
    Cut `data` into consecutive slices of at most `shard_bytes` and write
    them, followed by the shard manifest.
    """
    if shard_bytes <= 0:
        raise ValueError(f"shard_bytes must be positive, got {shard_bytes}")

    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    checksums: List[str] = []
    shards = 0

    for offset in range(0, len(data), shard_bytes):
        chunk = data[offset:offset + shard_bytes]
        path = out_dir / shard_name(shards)
        path.write_bytes(chunk)
        checksums.append(hash_bytes(chunk))
        logger.info(f"Shard {shards} -> {path} ({len(chunk)} bytes)")
        shards += 1

    _remove_stale_shards(out_dir, shards)

    manifest = ShardManifest(
        total_bytes=len(data),
        shards=shards,
        shard_bytes=shard_bytes,
        checksums=checksums,
        checksum=hash_bytes(data),
    )
    (out_dir / SHARD_MANIFEST_NAME).write_text(
        json.dumps(manifest.to_dict()), encoding="utf-8"
    )
    return manifest


def read_shard_manifest(out_dir: Path) -> ShardManifest:
    path = Path(out_dir) / SHARD_MANIFEST_NAME
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ShardIntegrityError(f"Missing shard manifest {path}") from e
    except ValueError as e:
        raise ShardIntegrityError(f"Unreadable shard manifest {path}: {e}") from e

    try:
        return ShardManifest.from_dict(data)
    except (KeyError, ValueError, TypeError, AttributeError) as e:
        raise ShardIntegrityError(f"Malformed shard manifest {path}: {e}") from e


def read_shards(out_dir: Path) -> bytes:
    """
    Concatenate the shards in ordinal order and verify them.

    Raises:
        ShardIntegrityError: on a missing or malformed manifest, a missing
            shard, or a size/checksum mismatch
    """
    out_dir = Path(out_dir)
    manifest = read_shard_manifest(out_dir)
    if manifest.checksums and len(manifest.checksums) != manifest.shards:
        raise ShardIntegrityError(
            f"Manifest lists {len(manifest.checksums)} checksums for {manifest.shards} shards"
        )

    chunks: List[bytes] = []
    for ordinal in range(manifest.shards):
        path = out_dir / shard_name(ordinal)
        try:
            chunk = path.read_bytes()
        except FileNotFoundError as e:
            raise ShardIntegrityError(f"Missing shard {path.name}") from e

        if len(chunk) > manifest.shard_bytes:
            raise ShardIntegrityError(
                f"Shard {path.name} is {len(chunk)} bytes, bound is {manifest.shard_bytes}"
            )
        if manifest.checksums and hash_bytes(chunk) != manifest.checksums[ordinal]:
            raise ShardIntegrityError(f"Checksum mismatch in {path.name}")
        chunks.append(chunk)

    total = sum(len(c) for c in chunks)
    if total != manifest.total_bytes:
        raise ShardIntegrityError(
            f"Shards hold {total} bytes, manifest says {manifest.total_bytes}"
        )
    if manifest.checksum and hash_chunks(chunks) != manifest.checksum:
        raise ShardIntegrityError("Checksum mismatch in reassembled index")

    return b"".join(chunks)


def load_index(out_dir: Path) -> TokenIndex:
    """Reassemble the shards in `out_dir` into a TokenIndex."""
    return TokenIndex.deserialize(read_shards(out_dir))


class IndexBuilder:
    """Builds the token index from the record log and writes its shards."""

    def __init__(
        self,
        config: PipelineConfig | None = None,
        records_path: Path | None = None,
        out_dir: Path | None = None,
        shard_bytes: int | None = None,
    ):
        self.config = config or get_config()
        self.records_path = Path(records_path or self.config.records_path)
        self.out_dir = Path(out_dir or self.config.index_dir)
        self.shard_bytes = shard_bytes or self.config.shard_bytes

    def build_index(self) -> TokenIndex:
        records = load_records(self.records_path)
        logger.info(f"Records to index: {len(records)}")

        index = TokenIndex()
        try:
            index.add_all(records)
        except ValueError as e:
            raise RecordLogError(f"{self.records_path.name}: {e}") from e

        logger.debug(f"Indexed {len(index.vocabulary)} distinct terms")
        return index

    def build(self) -> ShardManifest:
        """Full pass: read records, index, serialize, shard."""
        data = self.build_index().serialize()
        manifest = write_shards(data, self.out_dir, self.shard_bytes)
        logger.info(
            f"OK -> {manifest.shards} shard(s) + manifest in {self.out_dir} "
            f"({manifest.total_bytes} bytes)"
        )
        return manifest


def build_index(config: PipelineConfig | None = None) -> ShardManifest:
    """
    Convenience function to build and shard the index.

    Usage:
        manifest = build_index()
        print(f"{manifest.shards} shards, {manifest.total_bytes} bytes")
    """
    return IndexBuilder(config).build()
