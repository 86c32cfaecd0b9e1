"""
Index Builder Tests - Verify indexing, serialization and sharding.

Tests:
- Byte-exact shard reassembly
- Shard sizing and manifest totals
- Term filtering
- Record log validation
"""

import json

import pytest

from pageindex.errors import RecordLogError, ShardIntegrityError
from pageindex.index_builder import (
    SHARD_MANIFEST_NAME, IndexBuilder, TokenIndex, build_index, load_index, load_records,
    read_shard_manifest, read_shards, shard_name, write_shards,
)
from pageindex.models import PageRecord
from pageindex.records import RecordLog
from pageindex.text import normalize_text


MIB = 1024 * 1024


def _record(record_id, text, doc="a.pdf", page=0):
    return PageRecord(id=record_id, doc=doc, page=page, text=text, norm=normalize_text(text))


@pytest.fixture
def record_log(test_config):
    log = RecordLog(test_config.records_path)
    log.touch()
    log.append(_record(0, "Hello World, a quick test", page=0))
    log.append(_record(1, "Árbol de la vida", page=1))
    log.append(_record(2, "hello again hello", doc="b.pdf", page=0))
    return log


class TestWriteShards:
    """Tests for write_shards / read_shards."""

    def test_twelve_mib_makes_three_shards(self, temp_dir):
        """12 MiB with a 5 MiB bound gives shards of 5, 5 and 2 MiB."""
        data = bytes(range(256)) * (12 * MIB // 256)
        out = temp_dir / "index"

        manifest = write_shards(data, out, 5 * MIB)

        assert manifest.shards == 3
        assert manifest.total_bytes == 12 * MIB
        sizes = [(out / shard_name(i)).stat().st_size for i in range(3)]
        assert sizes == [5 * MIB, 5 * MIB, 2 * MIB]
        assert sum(sizes) == manifest.total_bytes
        assert not (out / shard_name(3)).exists()

        on_disk = json.loads((out / "manifest.json").read_text())
        assert on_disk["version"] == 1
        assert on_disk["shards"] == 3
        assert on_disk["totalBytes"] == 12 * MIB
        assert on_disk["shardBytes"] == 5 * MIB

    def test_concatenation_is_byte_exact(self, temp_dir):
        data = "índice ✓ ".encode("utf-8") * 1000
        out = temp_dir / "index"

        manifest = write_shards(data, out, 777)

        joined = b"".join((out / shard_name(i)).read_bytes() for i in range(manifest.shards))
        assert joined == data
        assert read_shards(out) == data

    def test_exact_multiple_has_no_empty_shard(self, temp_dir):
        manifest = write_shards(b"x" * 100, temp_dir, 50)
        assert manifest.shards == 2

    def test_removes_stale_shards(self, temp_dir):
        """A smaller rebuild deletes shards beyond the new count."""
        write_shards(b"a" * 500, temp_dir, 100)
        assert (temp_dir / shard_name(4)).exists()

        write_shards(b"b" * 150, temp_dir, 100)

        assert sorted(p.name for p in temp_dir.glob("index-*.json")) == [
            "index-0.json", "index-1.json",
        ]
        assert read_shards(temp_dir) == b"b" * 150

    def test_detects_tampered_shard(self, temp_dir):
        write_shards(b"0123456789" * 10, temp_dir, 30)
        (temp_dir / shard_name(1)).write_bytes(b"X" * 30)

        with pytest.raises(ShardIntegrityError):
            read_shards(temp_dir)

    def test_detects_missing_shard(self, temp_dir):
        write_shards(b"0123456789" * 10, temp_dir, 30)
        (temp_dir / shard_name(2)).unlink()

        with pytest.raises(ShardIntegrityError):
            read_shards(temp_dir)

    def test_detects_checksum_count_mismatch(self, temp_dir):
        write_shards(b"0123456789" * 10, temp_dir, 30)
        manifest_path = temp_dir / SHARD_MANIFEST_NAME
        data = json.loads(manifest_path.read_text(encoding="utf-8"))
        data["checksums"] = data["checksums"][:2]
        manifest_path.write_text(json.dumps(data), encoding="utf-8")

        with pytest.raises(ShardIntegrityError):
            read_shards(temp_dir)

    @pytest.mark.parametrize("content", [None, "{broken", '{"shards": 2}'])
    def test_bad_shard_manifest(self, temp_dir, content):
        """A missing or malformed manifest.json is an integrity error."""
        write_shards(b"0123456789", temp_dir, 30)
        manifest_path = temp_dir / SHARD_MANIFEST_NAME
        if content is None:
            manifest_path.unlink()
        else:
            manifest_path.write_text(content, encoding="utf-8")

        with pytest.raises(ShardIntegrityError):
            read_shards(temp_dir)
    def test_rejects_non_positive_bound(self, temp_dir):
        with pytest.raises(ValueError):
            write_shards(b"data", temp_dir, 0)


class TestTokenIndex:
    """Tests for TokenIndex."""

    def test_no_single_character_terms(self):
        index = TokenIndex()
        index.add(_record(0, "a b c de f gh 1 23"))

        assert index.vocabulary == ["23", "de", "gh"]
        assert all(len(term) > 1 for term in index.vocabulary)

    def test_serialization_is_deterministic(self):
        records = [_record(i, f"page number {i} of the book") for i in range(20)]
        first, second = TokenIndex(), TokenIndex()
        first.add_all(records)
        second.add_all(records)

        assert first.serialize() == second.serialize()

    def test_roundtrip_keeps_search_results(self):
        index = TokenIndex()
        index.add_all([
            _record(10, "Canción del río"),
            _record(11, "El río grande río abajo", doc="b.pdf", page=4),
        ])

        restored = TokenIndex.deserialize(index.serialize())

        hits = restored.search("RÍO")
        assert [h["id"] for h in hits] == [11, 10]
        assert hits[0]["doc"] == "b.pdf"
        assert hits[0]["page"] == 4
        assert hits[0]["text"] == "El río grande río abajo"

    def test_search_requires_all_terms(self):
        index = TokenIndex()
        index.add_all([_record(0, "red apple"), _record(1, "green apple")])

        assert [h["id"] for h in index.search("apple green")] == [1]
        assert index.search("apple purple") == []
        assert index.search("a") == []

    def test_stored_fields_are_not_searchable(self):
        index = TokenIndex()
        index.add(_record(0, "body text", doc="secretname.pdf"))

        assert index.search("secretname") == []

    def test_duplicate_ids_rejected(self):
        index = TokenIndex()
        index.add(_record(0, "one"))

        with pytest.raises(ValueError):
            index.add(_record(0, "two"))


class TestLoadRecords:
    """Tests for load_records."""

    def test_missing_file(self, temp_dir):
        with pytest.raises(RecordLogError):
            load_records(temp_dir / "docs.jsonl")

    def test_empty_file(self, temp_dir):
        path = temp_dir / "docs.jsonl"
        path.write_text("\n\n", encoding="utf-8")

        with pytest.raises(RecordLogError):
            load_records(path)

    def test_bad_line(self, temp_dir):
        path = temp_dir / "docs.jsonl"
        path.write_text('{"id": 0, "doc": "a.pdf"}\n', encoding="utf-8")

        with pytest.raises(RecordLogError):
            load_records(path)


class TestIndexBuilder:
    """Tests for IndexBuilder."""

    def test_build_and_reload(self, test_config, record_log):
        manifest = IndexBuilder(test_config, shard_bytes=64).build()

        assert manifest.shards > 1
        assert read_shard_manifest(test_config.index_dir).total_bytes == manifest.total_bytes

        index = load_index(test_config.index_dir)
        assert len(index) == 3
        hits = index.search("hello")
        assert [h["id"] for h in hits] == [2, 0]
        assert index.search("arbol")[0]["text"] == "Árbol de la vida"

    def test_shards_match_serialized_index(self, test_config, record_log):
        manifest = IndexBuilder(test_config, shard_bytes=100).build()
        expected = IndexBuilder(test_config).build_index().serialize()

        files = [test_config.index_dir / shard_name(i) for i in range(manifest.shards)]
        assert b"".join(f.read_bytes() for f in files) == expected
        assert sum(f.stat().st_size for f in files) == manifest.total_bytes

    def test_default_bound_is_five_mib(self, test_config, record_log):
        manifest = build_index(test_config)

        assert manifest.shard_bytes == 5 * MIB
        assert manifest.shards == 1

    def test_duplicate_ids_in_log(self, test_config, record_log):
        record_log.append(_record(1, "duplicate id"))

        with pytest.raises(RecordLogError):
            IndexBuilder(test_config).build()
