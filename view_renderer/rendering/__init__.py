"""Template rendering for views."""

from .renderer import TemplateRenderer, ViewTemplateEnvironment

__all__ = ["TemplateRenderer", "ViewTemplateEnvironment"]
