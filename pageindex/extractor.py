"""
Extractor - Page-level text extraction through the Poppler CLI tools.

`pdfinfo` reports the page count; `pdftotext` is then run once per page
(-f N -l N) so one bad page cannot take the rest of the document with it.
"""

import logging
import re
import shutil
from pathlib import Path
from typing import List

from .config import get_config, PipelineConfig
from .errors import PageCountError
from .invoker import InvokeFn, invoke
from .text import collapse_whitespace


logger = logging.getLogger(__name__)


_PAGES_RE = re.compile(r"Pages:\s+(\d+)", re.IGNORECASE)

PAGE_COUNT_STEP = "pdfinfo"


def page_step(page_number: int) -> str:
    """Error Ledger step name for a one-based page number."""
    return f"pdftotext(page={page_number})"


def parse_page_count(report: str) -> int:
    """
    Pull the page count out of a pdfinfo report.

    Raises:
        PageCountError: if no `Pages: N` line is present or N < 1
    """
    match = _PAGES_RE.search(report or "")
    pages = int(match.group(1)) if match else 0
    if pages < 1:
        raise PageCountError("pages=0")
    return pages


def check_toolchain(config: PipelineConfig | None = None) -> List[str]:
    """Return the configured tools that cannot be found on PATH."""
    config = config or get_config()
    missing = []
    for cmd in (config.pdfinfo_cmd, config.pdftotext_cmd):
        if cmd and shutil.which(cmd[0]) is None:
            missing.append(cmd[0])
    return missing


class PageExtractor:
    """
    Runs the page-count and page-text tools for one document at a time.

    The tool runner is injectable so tests can stand in for Poppler.
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        invoke_fn: InvokeFn | None = None,
    ):
        self.config = config or get_config()
        self._invoke = invoke_fn or invoke

    async def _run(self, cmd: List[str], args: List[str], timeout: float) -> str:
        result = await self._invoke(cmd[0], [*cmd[1:], *args], timeout)
        return result.stdout

    async def page_count(self, path: Path) -> int:
        """Number of pages reported by pdfinfo."""
        report = await self._run(
            self.config.pdfinfo_cmd, [str(path)], self.config.info_timeout
        )
        return parse_page_count(report)

    async def page_text(self, path: Path, page_number: int) -> str:
        """
        Whitespace-collapsed text of one page (one-based page number).

        -layout keeps some structure; -nopgbrk drops the form feed.
        """
        args = [
            "-enc", "UTF-8",
            "-layout",
            "-nopgbrk",
            "-f", str(page_number),
            "-l", str(page_number),
            str(path),
            "-",
        ]
        stdout = await self._run(
            self.config.pdftotext_cmd, args, self.config.page_timeout
        )
        return collapse_whitespace(stdout)
