"""
Pipeline - Resumable page extraction over the whole corpus.

Flow per run:
    Scan → diff against manifest → for each pending document:
        pdfinfo (page count) → pdftotext per page → append records
    → checkpoint the manifest per policy → final save

Everything runs sequentially. Failures are isolated: a failed page is
logged and skipped, a failed page count abandons only that document.
Documents already in the manifest are never processed again, so an
interrupted run is resumed by simply running it again.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

from .checkpoint import CheckpointPolicy, policy_from_config
from .config import get_config, PipelineConfig
from .errors import DiscoveryError, ExtractionError, handle_error
from .extractor import PAGE_COUNT_STEP, PageExtractor, page_step
from .invoker import InvokeFn
from .manifest import ManifestStore, reconcile
from .models import (
    Document, DocStatus, DocumentResult, ExtractionStats, Manifest, PageRecord
)
from .records import ErrorLedger, RecordLog
from .scanner import Scanner
from .text import normalize_text


logger = logging.getLogger(__name__)


@dataclass
class PipelineContext:
    """
    Mutable state threaded through one extraction run.

    Holds the id counter and checkpoint bookkeeping so the pipeline itself
    keeps no run state between calls.
    """
    manifest: Manifest
    policy: CheckpointPolicy
    next_id: int = 0
    processed: int = 0
    stats: ExtractionStats = field(default_factory=ExtractionStats)
    started: float = field(default_factory=time.monotonic)

    @classmethod
    def start(cls, manifest: Manifest, policy: CheckpointPolicy) -> "PipelineContext":
        return cls(manifest=manifest, policy=policy, next_id=manifest.last_id)

    def allocate_id(self) -> int:
        record_id = self.next_id
        self.next_id += 1
        return record_id

    def sync_manifest(self) -> Manifest:
        """Copy the id counter into the manifest before it is saved."""
        self.manifest.last_id = self.next_id
        return self.manifest

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started


class ExtractionPipeline:
    """
    Turns the PDF corpus into page records.

    Components are built from the config; `invoke_fn` replaces the real
    subprocess runner and `policy` the checkpoint cadence.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        invoke_fn: Optional[InvokeFn] = None,
        policy: Optional[CheckpointPolicy] = None,
    ):
        self.config = config or get_config()

        self._scanner = Scanner(self.config)
        self._extractor = PageExtractor(self.config, invoke_fn)
        self._store = ManifestStore(self.config.manifest_path)
        self._records = RecordLog(self.config.records_path)
        self._ledger = ErrorLedger(self.config.errors_path)
        self._policy = policy

    @property
    def records(self) -> RecordLog:
        return self._records

    @property
    def ledger(self) -> ErrorLedger:
        return self._ledger

    @property
    def store(self) -> ManifestStore:
        return self._store

    def _make_policy(self) -> CheckpointPolicy:
        if self._policy is not None:
            return self._policy
        return policy_from_config(
            self.config.checkpoint_every, self.config.checkpoint_seconds
        )

    async def run(self) -> ExtractionStats:
        """
        Process every pending document once.

        Raises:
            DiscoveryError: if the source directory is missing or has no documents
        """
        logger.info("Using Poppler (pdfinfo/pdftotext)")

        self._records.touch()
        self._ledger.touch()

        scan = self._scanner.scan()
        if not scan.documents:
            raise DiscoveryError(f"No documents in {self.config.source_dir}")

        manifest = reconcile(self._store.load(), self._records)
        pending_all = [d for d in scan.documents if not manifest.is_done(d.name)]
        pending = self._apply_limit(pending_all)

        ctx = PipelineContext.start(manifest, self._make_policy())
        ctx.stats.documents_total = len(scan.documents)
        ctx.stats.documents_pending = len(pending_all)

        limited = f" (processing only {len(pending)})" if len(pending) < len(pending_all) else ""
        logger.info(
            f"Total documents: {len(scan.documents)} - Pending: {len(pending_all)}{limited}"
        )

        if not pending:
            logger.info("Nothing pending, all documents are in the manifest")

        try:
            for index, doc in enumerate(pending, start=1):
                result = await self.process_document(doc, ctx)
                ctx.processed += 1
                self._report_document(index, len(pending), result)
                if ctx.policy.should_checkpoint(ctx.processed):
                    self._checkpoint(ctx)
                    self._report_progress(ctx)
        finally:
            self._store.save(ctx.sync_manifest())
            ctx.stats.duration_seconds = ctx.elapsed

        self._report_summary(ctx)
        return ctx.stats

    def _apply_limit(self, pending: List[Document]) -> List[Document]:
        if self.config.limit > 0:
            return pending[:self.config.limit]
        return pending

    async def process_document(
        self, doc: Document, ctx: PipelineContext
    ) -> DocumentResult:
        """
        Extract one document and record its outcome in the manifest.

        Page failures go to the Error Ledger and the document still ends
        up `ok`; only a failed page count marks it `error`.
        """
        try:
            pages = await self._extractor.page_count(doc.path)
        except ExtractionError as e:
            reason = str(e)
            handle_error(e, doc.name, PAGE_COUNT_STEP)
            self._ledger.record(doc.name, PAGE_COUNT_STEP, reason)
            status = DocStatus.failed(PAGE_COUNT_STEP, reason)
            ctx.manifest.done[doc.name] = status
            ctx.stats.documents_failed += 1
            return DocumentResult(name=doc.name, status=status)

        emitted = 0
        page_errors = 0

        for page_number in range(1, pages + 1):
            try:
                text = await self._extractor.page_text(doc.path, page_number)
            except ExtractionError as e:
                step = page_step(page_number)
                handle_error(e, doc.name, step, page_level=True)
                self._ledger.record(doc.name, step, str(e))
                page_errors += 1
                continue

            if not text:
                continue

            record = PageRecord(
                id=ctx.allocate_id(),
                doc=doc.name,
                page=page_number - 1,
                text=text,
                norm=normalize_text(text),
            )
            self._records.append(record)
            emitted += 1

        status = DocStatus.ok(pages=pages, emitted=emitted)
        ctx.manifest.done[doc.name] = status

        ctx.stats.documents_ok += 1
        ctx.stats.pages_seen += pages
        ctx.stats.records_emitted += emitted
        ctx.stats.page_errors += page_errors

        return DocumentResult(name=doc.name, status=status, page_errors=page_errors)

    def _checkpoint(self, ctx: PipelineContext) -> None:
        self._store.save(ctx.sync_manifest())
        ctx.policy.mark(ctx.processed)

    def _report_document(self, index: int, total: int, result: DocumentResult) -> None:
        status = result.status
        if result.success:
            outcome = f"OK ({status.emitted}/{status.pages})"
            if result.page_errors:
                outcome += f", {result.page_errors} page errors"
        else:
            outcome = f"{status.step}:ERROR"
        logger.info(f"({index}/{total}) {result.name} ... {outcome}")

    def _report_progress(self, ctx: PipelineContext) -> None:
        logger.info(
            f"Progress: {ctx.stats.documents_ok} OK, "
            f"{ctx.stats.documents_failed} errors - {round(ctx.elapsed)}s"
        )

    def _report_summary(self, ctx: PipelineContext) -> None:
        stats = ctx.stats
        logger.info(f"Done - {stats}")
        logger.info(f"Records -> {self._records.path} ({self._records.size()} bytes)")
        logger.info(f"Manifest -> {self._store.path}")
        if stats.failures:
            logger.info(f"Errors -> {self._ledger.path}")


async def run_extraction(
    config: Optional[PipelineConfig] = None,
    invoke_fn: Optional[InvokeFn] = None,
) -> ExtractionStats:
    """
    Convenience function to run the extraction pipeline.

    Usage:
        stats = await run_extraction()
        print(stats)
    """
    return await ExtractionPipeline(config, invoke_fn).run()
