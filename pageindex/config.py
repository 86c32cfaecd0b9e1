"""
Pipeline Configuration - Centralized settings for extraction and indexing.

Uses environment variables with sensible defaults. All paths are resolved
to absolute paths for reliability.
"""

import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Set


SHARD_BYTES_DEFAULT = 5 * 1024 * 1024  # ~5 MB per shard


@dataclass
class PipelineConfig:
    """
    Configuration for the extraction pipeline and the index builder.

    Output paths default to files inside build_dir; pass them explicitly
    to place them elsewhere.
    """

    # --- Paths ---
    source_dir: Path = field(default_factory=lambda: Path("public") / "pdfs")
    build_dir: Path = field(default_factory=lambda: Path("public") / "build")
    index_dir: Path = field(default_factory=lambda: Path("public") / "index")
    records_path: Optional[Path] = None    # docs.jsonl
    errors_path: Optional[Path] = None     # errors.log
    manifest_path: Optional[Path] = None   # manifest.json

    # --- Corpus ---
    extensions: Set[str] = field(default_factory=lambda: {".pdf"})

    # --- External toolchain (Poppler) ---
    pdfinfo_cmd: List[str] = field(default_factory=lambda: ["pdfinfo"])
    pdftotext_cmd: List[str] = field(default_factory=lambda: ["pdftotext"])
    info_timeout: float = 15.0     # seconds per page-count query
    page_timeout: float = 20.0     # seconds per single-page extraction

    # --- Batching ---
    limit: int = 0                 # max documents per run (0 = unlimited)
    checkpoint_every: int = 10     # save manifest every N documents
    checkpoint_seconds: float = 0  # also save after N seconds (0 = off)

    # --- Index ---
    shard_bytes: int = SHARD_BYTES_DEFAULT

    def __post_init__(self):
        """Resolve paths and fill in output locations under build_dir."""
        self.source_dir = Path(self.source_dir).expanduser().resolve()
        self.build_dir = Path(self.build_dir).expanduser().resolve()
        self.index_dir = Path(self.index_dir).expanduser().resolve()

        if self.records_path is None:
            self.records_path = self.build_dir / "docs.jsonl"
        if self.errors_path is None:
            self.errors_path = self.build_dir / "errors.log"
        if self.manifest_path is None:
            self.manifest_path = self.build_dir / "manifest.json"

        self.records_path = Path(self.records_path).expanduser().resolve()
        self.errors_path = Path(self.errors_path).expanduser().resolve()
        self.manifest_path = Path(self.manifest_path).expanduser().resolve()

        self.extensions = {ext.lower() for ext in self.extensions}

        if self.shard_bytes <= 0:
            raise ValueError(f"shard_bytes must be positive, got {self.shard_bytes}")

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """
        Create config from environment variables.

        Supported env vars:
            PAGEINDEX_SOURCE_DIR: Directory holding the PDF corpus
            PAGEINDEX_BUILD_DIR: Directory for docs.jsonl, errors.log, manifest.json
            PAGEINDEX_INDEX_DIR: Directory for index shards
            PAGEINDEX_PDFINFO / PAGEINDEX_PDFTOTEXT: Tool command lines
            PAGEINDEX_INFO_TIMEOUT / PAGEINDEX_PAGE_TIMEOUT: Seconds
            PAGEINDEX_LIMIT (or LIMIT): Max documents per run
            PAGEINDEX_CHECKPOINT_EVERY: Documents between manifest saves
            PAGEINDEX_CHECKPOINT_SECONDS: Seconds between manifest saves
            PAGEINDEX_SHARD_BYTES: Maximum shard size
        """
        kwargs = {}

        if source := os.environ.get("PAGEINDEX_SOURCE_DIR"):
            kwargs["source_dir"] = Path(source)

        if build := os.environ.get("PAGEINDEX_BUILD_DIR"):
            kwargs["build_dir"] = Path(build)

        if index := os.environ.get("PAGEINDEX_INDEX_DIR"):
            kwargs["index_dir"] = Path(index)

        if pdfinfo := os.environ.get("PAGEINDEX_PDFINFO"):
            kwargs["pdfinfo_cmd"] = shlex.split(pdfinfo)

        if pdftotext := os.environ.get("PAGEINDEX_PDFTOTEXT"):
            kwargs["pdftotext_cmd"] = shlex.split(pdftotext)

        if info_timeout := os.environ.get("PAGEINDEX_INFO_TIMEOUT"):
            kwargs["info_timeout"] = float(info_timeout)

        if page_timeout := os.environ.get("PAGEINDEX_PAGE_TIMEOUT"):
            kwargs["page_timeout"] = float(page_timeout)

        if limit := os.environ.get("PAGEINDEX_LIMIT", os.environ.get("LIMIT")):
            kwargs["limit"] = int(limit)

        if every := os.environ.get("PAGEINDEX_CHECKPOINT_EVERY"):
            kwargs["checkpoint_every"] = int(every)

        if seconds := os.environ.get("PAGEINDEX_CHECKPOINT_SECONDS"):
            kwargs["checkpoint_seconds"] = float(seconds)

        if shard_bytes := os.environ.get("PAGEINDEX_SHARD_BYTES"):
            kwargs["shard_bytes"] = int(shard_bytes)

        return cls(**kwargs)


# Singleton default config
_default_config: PipelineConfig | None = None


def get_config() -> PipelineConfig:
    """Get the default configuration (singleton)."""
    global _default_config
    if _default_config is None:
        _default_config = PipelineConfig.from_env()
    return _default_config


def set_config(config: PipelineConfig | None) -> None:
    """Override the default configuration (for testing)."""
    global _default_config
    _default_config = config
