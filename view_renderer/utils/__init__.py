"""Utility helpers: error taxonomy and structured logging."""

from .errors import (
    BatchFailedError,
    ConfigError,
    ErrorContext,
    PipelineError,
    RecordNotFoundError,
    RenderError,
    StoreError,
)
from .logging import get_logger, setup_logging

__all__ = [
    "BatchFailedError",
    "ConfigError",
    "ErrorContext",
    "PipelineError",
    "RecordNotFoundError",
    "RenderError",
    "StoreError",
    "get_logger",
    "setup_logging",
]
