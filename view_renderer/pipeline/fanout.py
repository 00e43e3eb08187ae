"""
Concurrent fan-out with joined outcome reporting.

Every branch is launched at once and allowed to run to completion; one
branch failing never cancels or blocks its siblings. The outcome reports
success only when no branch failed, and otherwise carries every error.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Iterable, List, Optional

import structlog

from ..framework.metrics import PipelineMetrics
from ..utils.errors import BatchFailedError, error_code_of

logger = structlog.get_logger(__name__)


@dataclass
class BatchContext:
    """Mutable state of one fan-out, owned by a single ``run`` call."""
    label: str
    total: int = 0
    completed: int = 0
    errors: List[BaseException] = field(default_factory=list)
    started_at: float = field(default_factory=time.monotonic)

    @property
    def pending(self) -> int:
        return self.total - self.completed


@dataclass(frozen=True)
class BatchOutcome:
    """Joined result of a fan-out."""
    label: str
    total: int
    errors: List[BaseException] = field(default_factory=list)
    duration: float = 0.0

    @property
    def succeeded(self) -> bool:
        return not self.errors

    def raise_for_failure(self) -> None:
        """Raise BatchFailedError carrying every collected error, if any branch failed."""
        if self.errors:
            raise BatchFailedError(
                f"Failures {self.label}: {len(self.errors)} of {self.total} operations failed",
                errors=self.errors,
                label=self.label,
            )


class FanOutAggregator:
    """
    Runs independent awaitables concurrently and joins their outcomes.

    ``label`` is free text for log lines; ``kind`` is a fixed name used as
    the metric label.
    """

    def __init__(self, label: str, kind: str = "batch", metrics: Optional[PipelineMetrics] = None):
        self.label = label
        self.kind = kind
        self.metrics = metrics

    async def run(self, operations: Iterable[Awaitable[object]]) -> BatchOutcome:
        """
        Launch every operation, wait for all of them, and report the outcome.

        An empty set of operations succeeds immediately.
        """
        context = BatchContext(label=self.label)
        branches = [self._guard(context, operation) for operation in operations]
        context.total = len(branches)

        if branches:
            await asyncio.gather(*branches)

        outcome = BatchOutcome(
            label=context.label,
            total=context.total,
            errors=list(context.errors),
            duration=time.monotonic() - context.started_at,
        )
        if outcome.succeeded:
            logger.debug("Fan-out complete", label=self.label, total=outcome.total)
        else:
            logger.warning(
                "Fan-out complete with failures",
                label=self.label,
                total=outcome.total,
                failed=len(outcome.errors),
            )
        return outcome

    async def _guard(self, context: BatchContext, operation: Awaitable[object]) -> None:
        try:
            await operation
        except Exception as e:
            context.errors.append(e)
            code = error_code_of(e)
            logger.error("Fan-out branch failed", label=context.label, kind=self.kind, error_code=code, error=str(e))
            if self.metrics:
                self.metrics.record_branch_failure(self.kind, code)
        finally:
            context.completed += 1
