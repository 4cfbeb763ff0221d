"""Template rendering service using Jinja2.

This module renders survey greeting structures with respondent context using
Jinja2. Every string leaf of a greeting (nested dicts and lists allowed) is a
template. Templates are rendered with StrictUndefined to catch missing
variables early.
"""

from typing import Any, Optional
from jinja2 import Environment, BaseLoader, StrictUndefined, TemplateError

from tracer_survey.logging_config import get_logger

logger = get_logger(__name__)


class TemplateRenderError(Exception):
    """Raised when template rendering fails."""
    pass


class TemplateRenderer:
    """Service for rendering Jinja2 templates with respondent context."""

    def __init__(self):
        """Initialize Jinja2 environment with strict settings."""
        self.env = Environment(
            loader=BaseLoader(),
            autoescape=True,  # Escape HTML/XML for security
            undefined=StrictUndefined,  # Raise error on undefined variables
        )

    def render(self, template_text: str, context: dict) -> str:
        """Render template with context variables.

        Args:
            template_text: Template string with Jinja2 syntax
            context: Dictionary of variables for template

        Returns:
            Rendered text

        Raises:
            TemplateRenderError: If template is invalid or variables are missing

        Example:
            >>> renderer = TemplateRenderer()
            >>> renderer.render("Dear {{ full_name }}", {"full_name": "Alice"})
            'Dear Alice'
        """
        try:
            template = self.env.from_string(template_text)
            return template.render(context)
        except TemplateError as e:
            logger.error(f"Template rendering error: {e}")
            raise TemplateRenderError(f"Failed to render template: {e}")

    def render_structure(self, structure: Any, context: dict) -> Any:
        """Render every string leaf of a nested dict/list structure.

        Non-string leaves (numbers, booleans, None) are returned unchanged.

        Args:
            structure: Greeting structure
            context: Dictionary of variables for templates

        Returns:
            A new structure of the same shape with rendered strings
        """
        if isinstance(structure, str):
            return self.render(structure, context)
        if isinstance(structure, dict):
            return {key: self.render_structure(value, context) for key, value in structure.items()}
        if isinstance(structure, list):
            return [self.render_structure(item, context) for item in structure]
        return structure


# Global singleton instance
_renderer_instance: Optional[TemplateRenderer] = None


def get_template_renderer() -> TemplateRenderer:
    """Get global TemplateRenderer instance.

    Returns:
        Global TemplateRenderer instance
    """
    global _renderer_instance
    if _renderer_instance is None:
        _renderer_instance = TemplateRenderer()
    return _renderer_instance
