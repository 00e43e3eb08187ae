"""
Template rendering for view definitions.

Views carry their own templates. Output expressions use ``<%= expr %>``,
statements use ``<% stmt %>`` and comments ``<%# text %>``; expansion is
done by Jinja2 with strict undefined handling, so a reference to a
missing field fails instead of rendering as an empty string.
"""

from __future__ import annotations

from collections.abc import Mapping, Sized
from typing import Any, Dict, List, Optional, Sequence

import structlog
from jinja2 import Environment, StrictUndefined, Template, TemplateError

from ..schemas.records import Record, ViewRecord
from ..storage.blob import RenderedArtifact
from ..utils.errors import RenderError

logger = structlog.get_logger(__name__)


class ViewTemplateEnvironment(Environment):
    """Jinja environment using the view template delimiters."""

    def __init__(self, **options: Any) -> None:
        options.setdefault("undefined", StrictUndefined)
        super().__init__(
            block_start_string="<%",
            block_end_string="%>",
            variable_start_string="<%=",
            variable_end_string="%>",
            comment_start_string="<%#",
            comment_end_string="%>",
            **options,
        )

    def getattr(self, obj: Any, attribute: str) -> Any:
        # `.length` on lists and strings, unless a mapping defines the key itself.
        if attribute == "length" and isinstance(obj, Sized):
            if not (isinstance(obj, Mapping) and "length" in obj):
                return len(obj)
        return super().getattr(obj, attribute)


class TemplateRenderer:
    """Expands a view's templates against a collection of records."""

    def __init__(
        self,
        default_filename: str = "index.html",
        environment: Optional[Environment] = None,
        item_name: str = "episode",
        collection_name: str = "episodes",
    ) -> None:
        self.default_filename = default_filename
        self.environment = environment or ViewTemplateEnvironment()
        self.item_name = item_name
        self.collection_name = collection_name

    def render(self, view: ViewRecord, items: Sequence[Record]) -> List[RenderedArtifact]:
        """Render per item when the view asks for it, otherwise one aggregate artifact."""
        if view.render_each:
            return self.render_per_item(view, items)
        return [self.render_aggregate(view, items)]

    def render_aggregate(self, view: ViewRecord, items: Sequence[Record]) -> RenderedArtifact:
        """Render one artifact from the whole collection."""
        content_template = self._compile(view, view.template)
        filename_template = self._compile(view, view.filename_template) if view.filename_template else None

        context = {
            "view": view.to_context(),
            self.collection_name: [item.to_context() for item in items],
        }
        name = self._filename(view, filename_template, context)
        content = self._expand(view, content_template, context)

        logger.debug("Rendered aggregate view", view_id=view.view_id, name=name, items=len(items))
        return RenderedArtifact(bucket=view.bucket, name=name, content=content)

    def render_per_item(self, view: ViewRecord, items: Sequence[Record]) -> List[RenderedArtifact]:
        """Render one artifact per item; an empty collection renders nothing."""
        if not items:
            return []

        content_template = self._compile(view, view.template)
        filename_template = self._compile(view, view.filename_template) if view.filename_template else None
        view_context = view.to_context()

        artifacts = []
        for item in items:
            context = {"view": view_context, self.item_name: item.to_context()}
            name = self._filename(view, filename_template, context, item)
            content = self._expand(view, content_template, context, item)
            artifacts.append(RenderedArtifact(bucket=view.bucket, name=name, content=content))

        logger.debug("Rendered per-item view", view_id=view.view_id, artifacts=len(artifacts))
        return artifacts

    def _filename(
        self,
        view: ViewRecord,
        template: Optional[Template],
        context: Dict[str, Any],
        item: Optional[Record] = None,
    ) -> str:
        if template is None:
            return view.object_key or self.default_filename
        return self._expand(view, template, context, item)

    def _compile(self, view: ViewRecord, source: str) -> Template:
        try:
            return self.environment.from_string(source)
        except TemplateError as e:
            raise RenderError(
                f"Malformed template in view {view.view_id}: {e}",
                view_id=view.view_id,
            ) from e

    def _expand(
        self,
        view: ViewRecord,
        template: Template,
        context: Dict[str, Any],
        item: Optional[Record] = None,
    ) -> str:
        try:
            return template.render(**context)
        except (TemplateError, TypeError, ValueError) as e:
            item_id = item.record_id if item is not None else None
            raise RenderError(
                f"Failed to render view {view.view_id}"
                + (f" for item {item_id}" if item_id is not None else "")
                + f": {e}",
                view_id=view.view_id,
                item_id=item_id,
            ) from e
