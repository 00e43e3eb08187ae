"""Pytest configuration and fixtures."""

import pytest
from prometheus_client import CollectorRegistry

from tests.fixtures.mock_services import MockBlobBackend, MockRecordStore
from view_renderer.framework.config import RendererConfig
from view_renderer.framework.metrics import PipelineMetrics
from view_renderer.pipeline.dispatcher import ChangeEventDispatcher
from view_renderer.rendering.renderer import TemplateRenderer
from view_renderer.schemas.records import EpisodeRecord, ViewRecord
from view_renderer.storage.blob import ArtifactStore
from view_renderer.storage.paging import PagedReader


@pytest.fixture
def config():
    """Renderer configuration with default table names."""
    return RendererConfig(environment="local")


@pytest.fixture
def record_store():
    """In-memory record store paging two items at a time."""
    return MockRecordStore(page_size=2)


@pytest.fixture
def blob_backend():
    """In-memory blob backend."""
    return MockBlobBackend()


@pytest.fixture
def metrics():
    """Metrics collector with an isolated registry."""
    return PipelineMetrics("test_renderer", registry=CollectorRegistry())


@pytest.fixture
def artifact_store(blob_backend, metrics):
    return ArtifactStore(blob_backend, metrics=metrics)


@pytest.fixture
def dispatcher(config, record_store, artifact_store, metrics):
    """Dispatcher wired to the in-memory stores."""
    return ChangeEventDispatcher(
        episodes=PagedReader(record_store, config.episodes_table, EpisodeRecord),
        views=PagedReader(record_store, config.views_table, ViewRecord),
        renderer=TemplateRenderer(default_filename=config.default_filename),
        artifacts=artifact_store,
        metrics=metrics,
    )
