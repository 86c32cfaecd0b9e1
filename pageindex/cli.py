"""
Command line entry points.

    pageindex extract [--source DIR] [--build DIR] [--limit N] [-v]
    pageindex index   [--records FILE] [--out DIR] [--shard-bytes N] [-v]

Exit status is 1 when the corpus or the record log is missing or empty,
or when anything else goes wrong; 0 otherwise.
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from .config import PipelineConfig
from .errors import DiscoveryError, RecordLogError, handle_error
from .extractor import check_toolchain
from .index_builder import IndexBuilder
from .pipeline import ExtractionPipeline


logger = logging.getLogger("pageindex")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pageindex",
        description="Extract PDF pages to JSONL and build a sharded search index",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    extract = sub.add_parser("extract", help="Extract page text from the PDF corpus")
    extract.add_argument("--source", type=Path, help="Directory holding the PDFs")
    extract.add_argument("--build", type=Path, help="Directory for docs.jsonl, errors.log, manifest.json")
    extract.add_argument("--limit", type=int, help="Process at most N pending documents (0 = all)")
    extract.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    index = sub.add_parser("index", help="Build the index shards from docs.jsonl")
    index.add_argument("--records", type=Path, help="Record log to index")
    index.add_argument("--out", type=Path, help="Directory for shards and manifest")
    index.add_argument("--shard-bytes", type=int, help="Maximum shard size in bytes")
    index.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    return parser


def _config_from_args(args: argparse.Namespace) -> PipelineConfig:
    config = PipelineConfig.from_env()
    changes = {}

    if getattr(args, "source", None):
        changes["source_dir"] = args.source
    if getattr(args, "build", None):
        # Output files follow the new build dir
        changes.update(
            build_dir=args.build, records_path=None, errors_path=None, manifest_path=None
        )
    if getattr(args, "limit", None) is not None:
        changes["limit"] = args.limit
    if getattr(args, "records", None):
        changes["records_path"] = args.records
    if getattr(args, "out", None):
        changes["index_dir"] = args.out
    if getattr(args, "shard_bytes", None):
        changes["shard_bytes"] = args.shard_bytes

    return replace(config, **changes) if changes else config


def _run_extract(config: PipelineConfig) -> int:
    missing = check_toolchain(config)
    if missing:
        logger.warning(
            f"Not found on PATH: {', '.join(missing)}. "
            "Install poppler (brew install poppler / apt install poppler-utils)"
        )

    stats = asyncio.run(ExtractionPipeline(config).run())
    print(f"\n{stats}")
    return 0


def _run_index(config: PipelineConfig) -> int:
    manifest = IndexBuilder(config).build()
    print(f"\n{manifest.shards} shard(s), {manifest.total_bytes} bytes -> {config.index_dir}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(name)s: %(message)s",
    )

    try:
        config = _config_from_args(args)
        if args.command == "extract":
            return _run_extract(config)
        return _run_index(config)
    except (DiscoveryError, RecordLogError) as e:
        handle_error(e)
        return 1
    except KeyboardInterrupt:
        print("\nStopped.")
        return 1
    except Exception:
        logger.exception("FATAL")
        return 1


if __name__ == "__main__":
    sys.exit(main())
