"""
Configuration management for the rendering pipeline.

Provides typed configuration classes with environment variable
injection and validation.
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Dict, Any


@dataclass(frozen=True)
class TableSchema:
    """Name and key attributes of a key-value table."""
    name: str
    partition_key: str = "feedId"
    sort_key: str = "id"


@dataclass
class AWSConfig:
    """AWS client configuration."""
    region: str = field(default_factory=lambda: os.getenv("VIEW_RENDERER_AWS_REGION", "us-west-2"))
    endpoint_url: Optional[str] = field(default_factory=lambda: os.getenv("VIEW_RENDERER_AWS_ENDPOINT_URL") or None)


@dataclass
class ObservabilityConfig:
    """Observability configuration."""
    log_level: str = field(default_factory=lambda: os.getenv("VIEW_RENDERER_LOG_LEVEL", "info"))
    log_format: str = field(default_factory=lambda: os.getenv("VIEW_RENDERER_LOG_FORMAT", "json"))
    metrics_enabled: bool = field(default_factory=lambda: os.getenv("VIEW_RENDERER_METRICS_ENABLED", "true").lower() == "true")


@dataclass
class RendererConfig:
    """Base configuration for the view rendering pipeline."""
    service_name: str = "view-renderer"
    environment: str = field(default_factory=lambda: os.getenv("VIEW_RENDERER_ENV", "local"))

    episodes_table: TableSchema = field(default_factory=lambda: TableSchema(
        name=os.getenv("VIEW_RENDERER_EPISODES_TABLE", "podcast-episodes"),
        partition_key="feedId",
        sort_key="episodeId",
    ))
    views_table: TableSchema = field(default_factory=lambda: TableSchema(
        name=os.getenv("VIEW_RENDERER_VIEWS_TABLE", "podcast-views"),
        partition_key="feedId",
        sort_key="viewId",
    ))

    aws: AWSConfig = field(default_factory=AWSConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    # Pipeline settings
    query_page_size: Optional[int] = field(default_factory=lambda: int(os.getenv("VIEW_RENDERER_QUERY_PAGE_SIZE", "0")) or None)
    default_filename: str = field(default_factory=lambda: os.getenv("VIEW_RENDERER_DEFAULT_FILENAME", "index.html"))

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.service_name:
            raise ValueError("service_name is required")

        if self.environment not in ["local", "dev", "staging", "prod"]:
            raise ValueError(f"Invalid environment: {self.environment}")

        if self.query_page_size is not None and self.query_page_size <= 0:
            raise ValueError("query_page_size must be positive")

        if not self.default_filename:
            raise ValueError("default_filename is required")

    @classmethod
    def from_env(cls) -> "RendererConfig":
        """Create configuration from environment variables."""
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "service_name": self.service_name,
            "environment": self.environment,
            "episodes_table": {
                "name": self.episodes_table.name,
                "partition_key": self.episodes_table.partition_key,
                "sort_key": self.episodes_table.sort_key,
            },
            "views_table": {
                "name": self.views_table.name,
                "partition_key": self.views_table.partition_key,
                "sort_key": self.views_table.sort_key,
            },
            "aws": {
                "region": self.aws.region,
                "endpoint_url": self.aws.endpoint_url,
            },
            "observability": {
                "log_level": self.observability.log_level,
                "log_format": self.observability.log_format,
                "metrics_enabled": self.observability.metrics_enabled,
            },
            "query_page_size": self.query_page_size,
            "default_filename": self.default_filename,
        }
