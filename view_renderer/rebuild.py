#!/usr/bin/env python3
"""
Rebuild script for re-rendering feeds on demand.

Renders every view of the given feeds against their current episodes,
without waiting for a change batch. Useful after a template engine change
or to repair artifacts left stale by a failed batch.
"""

import argparse
import asyncio
import sys
from typing import List, Optional

import structlog

from .framework.config import RendererConfig
from .pipeline.dispatcher import ChangeEventDispatcher
from .pipeline.fanout import FanOutAggregator
from .utils.errors import describe_error
from .utils.logging import setup_logging


logger = structlog.get_logger()


class FeedRebuilder:
    """Feed rebuild orchestration."""

    def __init__(self, dispatcher: ChangeEventDispatcher):
        self.dispatcher = dispatcher
        self.logger = structlog.get_logger("feed-rebuilder")

    async def list_views(self, feed_id: str) -> List[str]:
        """Return the ids of the views a rebuild would render."""
        views = await self.dispatcher.views.fetch_all(feed_id)
        return [view.view_id for view in views]

    async def rebuild(self, feed_ids: List[str]) -> bool:
        """Re-render every feed; returns True when all succeeded."""
        aggregator = FanOutAggregator("rebuilding feeds", kind="feeds", metrics=self.dispatcher.metrics)
        outcome = await aggregator.run(self._rebuild_feed(feed_id) for feed_id in feed_ids)

        for error in outcome.errors:
            self.logger.error("Feed rebuild failed", **describe_error(error))
        return outcome.succeeded

    async def _rebuild_feed(self, feed_id: str) -> None:
        outcome = await self.dispatcher.render_feed(feed_id)
        outcome.raise_for_failure()
        self.logger.info("Feed rebuilt", feed_id=feed_id, views=outcome.total)


async def run(argv: Optional[List[str]] = None, dispatcher: Optional[ChangeEventDispatcher] = None) -> int:
    """Parse arguments and run the rebuild; returns the process exit code."""
    parser = argparse.ArgumentParser(description="Re-render every view of the given feeds")
    parser.add_argument("feed_ids", nargs="+", help="Feed IDs to rebuild")
    parser.add_argument("--log-level", default="info", help="Logging level")
    parser.add_argument("--dry-run", action="store_true", help="List views without rendering")

    args = parser.parse_args(argv)

    config = RendererConfig.from_env()
    setup_logging(config.service_name, log_level=args.log_level, format_type="console")

    rebuilder = FeedRebuilder(dispatcher or ChangeEventDispatcher.from_config(config))

    if args.dry_run:
        for feed_id in args.feed_ids:
            view_ids = await rebuilder.list_views(feed_id)
            logger.info("Dry run - would render views", feed_id=feed_id, view_ids=view_ids)
        return 0

    succeeded = await rebuilder.rebuild(args.feed_ids)
    return 0 if succeeded else 1


def main() -> None:
    """Main entry point."""
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
