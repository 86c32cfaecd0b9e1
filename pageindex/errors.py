"""
Error Handling - Centralized error policies and custom exceptions.

This module defines how different error types are handled by the
extraction pipeline: page failures are skipped, page-count failures
abandon the document, everything else stops the run.
"""

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


logger = logging.getLogger(__name__)


class ErrorAction(Enum):
    """What to do when an error occurs."""
    SKIP_PAGE = auto()       # Record it, continue with the next page
    ABORT_DOCUMENT = auto()  # Record it, move on to the next document
    ABORT_RUN = auto()       # Stop the entire pipeline


class PipelineError(Exception):
    """Base exception for pipeline errors."""
    pass


class DiscoveryError(PipelineError):
    """Source directory is missing, unreadable, or holds no documents."""
    pass


class ExtractionError(PipelineError):
    """A step of the external toolchain did not produce usable output."""
    pass


class ToolInvocationError(ExtractionError):
    """External process exited nonzero, failed to launch, or was killed."""

    def __init__(
        self,
        message: str,
        command: str = "",
        returncode: Optional[int] = None,
        stderr: str = "",
        timed_out: bool = False,
    ):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        self.timed_out = timed_out
        super().__init__(message)


class PageCountError(ExtractionError):
    """The page-count report could not be parsed into a positive integer."""
    pass


class PersistenceError(PipelineError):
    """Manifest, Error Ledger, or record log could not be read or written."""
    pass


class RecordLogError(PipelineError):
    """Record log is missing or contains no records."""
    pass


class ShardIntegrityError(PipelineError):
    """Shards on disk do not match their manifest."""
    pass


@dataclass
class ErrorPolicy:
    """Policy for handling a specific error type."""
    action: ErrorAction
    log_level: int
    message_template: str = "{doc} [{step}]: {error}"


# Error type to policy mapping. Page-level steps override ABORT_DOCUMENT
# with SKIP_PAGE in handle_error.
ERROR_POLICIES: dict[type, ErrorPolicy] = {
    ToolInvocationError: ErrorPolicy(
        action=ErrorAction.ABORT_DOCUMENT,
        log_level=logging.WARNING,
        message_template="Tool failed: {doc} [{step}] - {error}",
    ),
    PageCountError: ErrorPolicy(
        action=ErrorAction.ABORT_DOCUMENT,
        log_level=logging.WARNING,
        message_template="Unreadable page count: {doc} [{step}] - {error}",
    ),
    ExtractionError: ErrorPolicy(
        action=ErrorAction.ABORT_DOCUMENT,
        log_level=logging.WARNING,
    ),
    DiscoveryError: ErrorPolicy(
        action=ErrorAction.ABORT_RUN,
        log_level=logging.ERROR,
        message_template="Corpus unavailable: {error}",
    ),
    RecordLogError: ErrorPolicy(
        action=ErrorAction.ABORT_RUN,
        log_level=logging.ERROR,
        message_template="Record log unusable: {error}",
    ),
}


def handle_error(
    error: Exception,
    doc: str = "",
    step: str = "",
    page_level: bool = False,
) -> ErrorAction:
    """
    Handle an error according to the defined policies.

    Args:
        error: The exception that occurred
        doc: Name of the document being processed (if applicable)
        step: Pipeline step that failed (e.g. "pdfinfo")
        page_level: True when the failure is scoped to a single page

    Returns:
        The action to take (SKIP_PAGE, ABORT_DOCUMENT, ABORT_RUN)
    """
    policy = None
    for error_type, p in ERROR_POLICIES.items():
        if isinstance(error, error_type):
            policy = p
            break

    # Unknown errors (including PersistenceError) stop the run
    if policy is None:
        policy = ErrorPolicy(
            action=ErrorAction.ABORT_RUN,
            log_level=logging.ERROR,
            message_template="Unexpected error: {doc} [{step}] - {error}",
        )

    message = policy.message_template.format(
        doc=doc or "<unknown>", step=step or "-", error=str(error)
    )
    logger.log(policy.log_level, message)

    if page_level and policy.action is ErrorAction.ABORT_DOCUMENT:
        return ErrorAction.SKIP_PAGE
    return policy.action
