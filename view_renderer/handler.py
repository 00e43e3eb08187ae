"""
Invocation handlers for the episodes and views table streams.

Each handler processes one stream batch to completion and raises
BatchFailedError when any branch failed, so the invoking runtime marks
the invocation as failed and applies its own retry policy.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Mapping, Optional

import structlog

from .framework.config import RendererConfig
from .framework.metrics import PipelineMetrics
from .pipeline.dispatcher import ChangeEventDispatcher
from .pipeline.fanout import BatchOutcome
from .utils.errors import describe_error
from .utils.logging import setup_logging

logger = structlog.get_logger(__name__)

_dispatcher: Optional[ChangeEventDispatcher] = None


def get_dispatcher() -> ChangeEventDispatcher:
    """Build the process-wide dispatcher on first use; clients are reused across invocations."""
    global _dispatcher
    if _dispatcher is None:
        config = RendererConfig.from_env()
        setup_logging(
            config.service_name,
            log_level=config.observability.log_level,
            format_type=config.observability.log_format,
        )
        metrics = PipelineMetrics(config.service_name) if config.observability.metrics_enabled else None
        _dispatcher = ChangeEventDispatcher.from_config(config, metrics=metrics)
    return _dispatcher


def handle_view_update(event: Mapping[str, Any], context: Any = None) -> Dict[str, Any]:
    """Handle a stream batch from the views table."""
    dispatcher = get_dispatcher()
    outcome = asyncio.run(dispatcher.process_view_changes(event))
    return _finish(outcome)


def handle_episode_update(event: Mapping[str, Any], context: Any = None) -> Dict[str, Any]:
    """Handle a stream batch from the episodes table."""
    dispatcher = get_dispatcher()
    outcome = asyncio.run(dispatcher.process_episode_changes(event))
    return _finish(outcome)


def _finish(outcome: BatchOutcome) -> Dict[str, Any]:
    if not outcome.succeeded:
        logger.error(
            "Batch failed",
            label=outcome.label,
            errors=[describe_error(error) for error in outcome.errors],
        )
        outcome.raise_for_failure()
    return {"status": "ok", "processed": outcome.total}
