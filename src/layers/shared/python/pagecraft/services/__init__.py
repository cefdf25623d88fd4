"""Service classes for business logic."""

from pagecraft.services.css_scope import scope
from pagecraft.services.interpreter import InterpreterRegistry, create_interpreter
from pagecraft.services.page_renderer import PageRenderer
from pagecraft.services.render_engine import RenderEngine, get_render_engine
from pagecraft.services.settings_normalizer import normalize
from pagecraft.services.snippet_resolver import SnippetResolver
from pagecraft.services.template_store import TemplateStore
from pagecraft.services.template_validator import (
    parse_candidate,
    split_schema_tag,
    validate,
    validate_or_errors,
)

__all__ = [
    "InterpreterRegistry",
    "PageRenderer",
    "RenderEngine",
    "SnippetResolver",
    "TemplateStore",
    "create_interpreter",
    "get_render_engine",
    "normalize",
    "parse_candidate",
    "scope",
    "split_schema_tag",
    "validate",
    "validate_or_errors",
]
