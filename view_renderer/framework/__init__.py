"""
Core framework components for the rendering pipeline.

Provides typed configuration and metrics collection shared by the
invocation handlers and the rebuild script.
"""

from .config import RendererConfig, TableSchema, AWSConfig, ObservabilityConfig
from .metrics import PipelineMetrics

__all__ = [
    "RendererConfig",
    "TableSchema",
    "AWSConfig",
    "ObservabilityConfig",
    "PipelineMetrics",
]
