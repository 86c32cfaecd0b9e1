"""
pageindex - Resumable PDF page extraction and sharded full-text indexing.

Modules:
    - config: Centralized configuration
    - scanner: Deterministic corpus listing
    - invoker: Bounded-time subprocess runner (watchdog)
    - extractor: pdfinfo / pdftotext page extraction
    - manifest: Checkpointed progress and id counter
    - checkpoint: When to persist the manifest
    - records: Append-only record log and Error Ledger
    - pipeline: Main extraction loop
    - index_builder: Token index, serialization and sharding
    - hasher: xxHash shard checksums

Flow:
    Scan → diff manifest → pdfinfo → pdftotext per page → docs.jsonl
    docs.jsonl → TokenIndex → canonical JSON → index-N.json shards

Usage:
    from pageindex import ExtractionPipeline, IndexBuilder

    stats = await ExtractionPipeline().run()
    manifest = IndexBuilder().build()
"""

from .index_builder import IndexBuilder
from .pipeline import ExtractionPipeline

__all__ = ["ExtractionPipeline", "IndexBuilder"]
