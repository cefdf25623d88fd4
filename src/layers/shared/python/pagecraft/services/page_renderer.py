"""Whole-page rendering.

Sections of a page render concurrently; the output keeps the page's
declared order no matter which section finishes first.
"""

import asyncio
import html
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from pagecraft.models.section import PageDocument, SectionInstance
from pagecraft.services.render_engine import (
    RenderEngine,
    fallback_section_html,
    get_render_engine,
)

logger = structlog.get_logger()


def missing_page_section_html(section_id: str) -> str:
    """Placeholder for an ordered section id with no section data."""
    escaped = html.escape(section_id, quote=True)
    return (
        f'<div class="section section--missing" data-section-id="{escaped}">'
        f"Section data not found: {html.escape(section_id)}</div>"
    )


class PageRenderer:
    """Renders page documents through a RenderEngine."""

    def __init__(self, engine: RenderEngine | None = None):
        """Initialize the page renderer.

        Args:
            engine: Render engine for individual sections.
        """
        self.engine = engine or get_render_engine()
        self.logger = logger.bind(service="page_renderer")

    async def _render_one(self, tenant_id: str, page: PageDocument, section_id: str) -> str:
        section = page.sections.get(section_id)
        if section is None:
            self.logger.warning("Section data not found", tenant_id=tenant_id, section_id=section_id)
            return missing_page_section_html(section_id)
        try:
            return await self.engine.render_section(tenant_id, section, section_id)
        except Exception:
            # render_section does not raise; keep siblings safe if that ever changes
            self.logger.exception("Section render failed", tenant_id=tenant_id, section_id=section_id)
            raw = section.model_dump() if isinstance(section, SectionInstance) else section
            if not isinstance(raw, dict):
                raw = {}
            return fallback_section_html(str(raw.get("type") or "unknown"), section_id, raw.get("settings"))

    async def render_page(self, tenant_id: str, page: PageDocument | dict[str, Any]) -> str:
        """Render every section of a page, joined by newlines in declared order.

        Args:
            tenant_id: The tenant ID.
            page: ``{sections: {id: section}, order: [id, ...]}``.

        Returns:
            The page body HTML.
        """
        if isinstance(page, dict):
            try:
                page = PageDocument.model_validate(page)
            except PydanticValidationError:
                self.logger.warning("Malformed page document", tenant_id=tenant_id)
                return ""

        fragments = await asyncio.gather(
            *(self._render_one(tenant_id, page, section_id) for section_id in page.order)
        )
        self.logger.info("Page rendered", tenant_id=tenant_id, sections=len(fragments))
        return "\n".join(fragments)

    async def render_document(
        self,
        tenant_id: str,
        page: PageDocument | dict[str, Any],
        title: str | None = None,
    ) -> str:
        """Render a page wrapped in a minimal HTML5 document."""
        body = await self.render_page(tenant_id, page)
        return (
            "<!DOCTYPE html>\n"
            '<html lang="en">\n'
            "<head>\n"
            '<meta charset="utf-8">\n'
            '<meta name="viewport" content="width=device-width, initial-scale=1">\n'
            f"<title>{html.escape(title or '')}</title>\n"
            "</head>\n"
            f"<body>\n{body}\n</body>\n"
            "</html>\n"
        )
