"""
Checkpoint policies - when to persist the manifest mid-run.

The pipeline calls `should_checkpoint` after every processed document and
`mark` after every save. The final save at the end of a run is not subject
to the policy.
"""

import time
from typing import Callable, List


class CheckpointPolicy:
    """Base policy: never checkpoints mid-run."""

    def should_checkpoint(self, processed: int) -> bool:
        return False

    def mark(self, processed: int) -> None:
        pass


class EveryNDocuments(CheckpointPolicy):
    """Checkpoint each time `n` more documents have been processed."""

    def __init__(self, n: int = 10):
        if n < 1:
            raise ValueError(f"n must be >= 1, got {n}")
        self.n = n

    def should_checkpoint(self, processed: int) -> bool:
        return processed > 0 and processed % self.n == 0


class ElapsedTime(CheckpointPolicy):
    """Checkpoint when `seconds` have passed since the last save."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        if seconds <= 0:
            raise ValueError(f"seconds must be positive, got {seconds}")
        self.seconds = seconds
        self._clock = clock
        self._last = clock()

    def should_checkpoint(self, processed: int) -> bool:
        return self._clock() - self._last >= self.seconds

    def mark(self, processed: int) -> None:
        self._last = self._clock()


class AnyOf(CheckpointPolicy):
    """Checkpoint when any of the wrapped policies says so."""

    def __init__(self, *policies: CheckpointPolicy):
        self.policies: List[CheckpointPolicy] = list(policies)

    def should_checkpoint(self, processed: int) -> bool:
        return any(p.should_checkpoint(processed) for p in self.policies)

    def mark(self, processed: int) -> None:
        for p in self.policies:
            p.mark(processed)


def policy_from_config(every: int, seconds: float = 0) -> CheckpointPolicy:
    """Build the policy described by checkpoint_every / checkpoint_seconds."""
    policies: List[CheckpointPolicy] = []
    if every > 0:
        policies.append(EveryNDocuments(every))
    if seconds > 0:
        policies.append(ElapsedTime(seconds))

    if not policies:
        return CheckpointPolicy()
    if len(policies) == 1:
        return policies[0]
    return AnyOf(*policies)
