"""
Change-to-rerender dispatch for the episodes and views tables.

Each entry point classifies one batch of change events, deduplicates the
affected keys, and fans out one branch per key. Classification is
fail-fast: an unrecognized event aborts the batch before any branch
starts. Branch failures are collected, never propagated early.
"""

from __future__ import annotations

import time
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union
from uuid import uuid4

import structlog

from ..framework.config import RendererConfig
from ..framework.metrics import PipelineMetrics
from ..rendering.renderer import TemplateRenderer
from ..schemas.events import ChangeEvent, ChangeKind, parse_batch
from ..schemas.records import EpisodeRecord, RecordKey, ViewRecord
from ..storage.blob import ArtifactStore, RenderedArtifact, S3BlobBackend
from ..storage.dynamo import DynamoRecordStore
from ..storage.paging import PagedReader
from ..utils.errors import ConfigError
from ..utils.logging import bind_batch_id, clear_batch_id
from .dedup import Action, DedupEntry, DedupSet
from .fanout import BatchOutcome, FanOutAggregator

logger = structlog.get_logger(__name__)

ChangeBatch = Union[Mapping[str, Any], Iterable[Union[ChangeEvent, Mapping[str, Any]]]]


class ChangeEventDispatcher:
    """Turns change batches into re-render and delete operations."""

    def __init__(
        self,
        episodes: PagedReader[EpisodeRecord],
        views: PagedReader[ViewRecord],
        renderer: TemplateRenderer,
        artifacts: ArtifactStore,
        metrics: Optional[PipelineMetrics] = None,
    ) -> None:
        self.episodes = episodes
        self.views = views
        self.renderer = renderer
        self.artifacts = artifacts
        self.metrics = metrics

    @classmethod
    def from_config(
        cls,
        config: RendererConfig,
        metrics: Optional[PipelineMetrics] = None,
    ) -> "ChangeEventDispatcher":
        """Wire the dispatcher to DynamoDB and S3."""
        store = DynamoRecordStore(config.aws, page_size=config.query_page_size)
        return cls(
            episodes=PagedReader(store, config.episodes_table, EpisodeRecord),
            views=PagedReader(store, config.views_table, ViewRecord),
            renderer=TemplateRenderer(default_filename=config.default_filename),
            artifacts=ArtifactStore(S3BlobBackend(config.aws), metrics=metrics),
            metrics=metrics,
        )

    async def process_view_changes(self, batch: ChangeBatch) -> BatchOutcome:
        """
        Re-render or delete every view touched by the batch.

        Raises:
            ConfigError: If an event is unrecognized; no branch is started.
        """
        events = self._parse(batch)
        targets: DedupSet[RecordKey] = DedupSet()

        for event in events:
            key = event.key_for(self.views.table)
            if event.kind is ChangeKind.REMOVE:
                targets.mark(key, Action.REMOVE, event.old_image)
            else:
                targets.mark(key, Action.UPDATE, event.new_image)

        return await self._run_batch(
            kind="views",
            label="updating views",
            event_count=len(events),
            operations=[self._apply_view_action(entry) for entry in targets],
        )

    async def process_episode_changes(self, batch: ChangeBatch) -> BatchOutcome:
        """
        Re-render every view of every feed touched by the batch.

        Raises:
            ConfigError: If an event is unrecognized; no branch is started.
        """
        events = self._parse(batch)
        feeds: DedupSet[Any] = DedupSet()

        for event in events:
            for feed_id in event.affected_partitions(self.episodes.table):
                feeds.mark(feed_id)

        return await self._run_batch(
            kind="episodes",
            label="updating feeds",
            event_count=len(events),
            operations=[self._refresh_feed(feed_id) for feed_id in feeds.keys()],
        )

    async def render_feed(self, feed_id: Any) -> BatchOutcome:
        """Render every view of a feed against the feed's full episode list."""
        episodes = await self.episodes.fetch_all(feed_id)
        views = await self.views.fetch_all(feed_id)
        logger.info("Rendering feed", feed_id=feed_id, episodes=len(episodes), views=len(views))

        aggregator = FanOutAggregator(f"rendering feed {feed_id}", kind="feed_views", metrics=self.metrics)
        return await aggregator.run(self.render_view(view, episodes) for view in views)

    async def render_view(self, view: ViewRecord, episodes: Optional[Sequence[EpisodeRecord]] = None) -> None:
        """Render a view and store every artifact it produces."""
        if episodes is None:
            episodes = await self.episodes.fetch_all(view.feed_id)

        artifacts = self.renderer.render(view, episodes)
        await self._store_all(view, artifacts)

    async def remove_view(self, view: ViewRecord) -> None:
        """Delete the stored artifact of a view."""
        await self.artifacts.delete(view.bucket, view.object_key)

    async def _apply_view_action(self, entry: DedupEntry[RecordKey]) -> None:
        if entry.action is Action.REMOVE:
            if entry.snapshot:
                view = self._view_from_snapshot(entry)
            else:
                view = await self.views.get(entry.key)
            await self.remove_view(view)
        else:
            view = await self.views.get(entry.key)
            await self.render_view(view)

    @staticmethod
    def _view_from_snapshot(entry: DedupEntry[RecordKey]) -> ViewRecord:
        try:
            return ViewRecord.from_item(entry.snapshot)
        except ValueError as e:
            raise ConfigError(
                f"Malformed view image in REMOVE event for {entry.key.partition}/{entry.key.sort}: {e}",
                config_key="OldImage",
                details={"feed_id": str(entry.key.partition), "view_id": str(entry.key.sort)},
            ) from e

    async def _refresh_feed(self, feed_id: Any) -> None:
        outcome = await self.render_feed(feed_id)
        outcome.raise_for_failure()

    async def _store_all(self, view: ViewRecord, artifacts: List[RenderedArtifact]) -> None:
        if len(artifacts) == 1:
            await self.artifacts.store(artifacts[0])
            return

        aggregator = FanOutAggregator(f"storing view {view.view_id}", kind="artifacts", metrics=self.metrics)
        outcome = await aggregator.run(self.artifacts.store(artifact) for artifact in artifacts)
        outcome.raise_for_failure()

    async def _run_batch(
        self,
        kind: str,
        label: str,
        event_count: int,
        operations: list,
    ) -> BatchOutcome:
        batch_id = str(uuid4())
        bind_batch_id(batch_id)
        started = time.monotonic()
        try:
            logger.info("Processing change batch", kind=kind, events=event_count, targets=len(operations))
            outcome = await FanOutAggregator(label, kind=kind, metrics=self.metrics).run(operations)
        finally:
            clear_batch_id()

        if self.metrics:
            self.metrics.record_batch(kind, outcome.succeeded, time.monotonic() - started)

        logger.info(
            "Change batch complete",
            batch_id=batch_id,
            kind=kind,
            targets=outcome.total,
            failed=len(outcome.errors),
        )
        return outcome

    @staticmethod
    def _parse(batch: ChangeBatch) -> List[ChangeEvent]:
        if isinstance(batch, Mapping):
            return parse_batch(batch)
        return [
            event if isinstance(event, ChangeEvent) else ChangeEvent.from_record(event)
            for event in batch
        ]
