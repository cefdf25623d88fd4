"""Section and block rendering.

The engine looks up a section's template, normalizes and coerces the
instance settings, evaluates the markup with the tenant's interpreter in a
worker thread, and wraps the result with the instance's scoped styles.

Rendering never raises. A missing template renders a placeholder naming the
type; a failing or slow template renders a diagnostic fragment with the
instance's settings so the rest of the page still renders.
"""

import asyncio
import html
import json
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from pagecraft.models.section import BlockInstance, SectionInstance, ShopContext
from pagecraft.models.template import BlockSchema, SectionTemplate
from pagecraft.services.css_scope import scope
from pagecraft.services.interpreter import (
    InterpreterRegistry,
    TemplateEnvironment,
    create_interpreter,
)
from pagecraft.services.settings_normalizer import normalize
from pagecraft.services.snippet_resolver import SnippetResolver
from pagecraft.services.template_store import TemplateStore
from pagecraft.utils.exceptions import TemplateEvaluationError

logger = structlog.get_logger()

DEFAULT_RENDER_TIMEOUT_SECONDS = 5.0


@dataclass
class RenderContext:
    """Everything one section render sees. Built per call, never shared."""

    section_id: str
    section_type: str
    section_name: str
    settings: dict[str, Any]
    blocks: list[dict[str, Any]] = field(default_factory=list)

    def section_vars(self) -> dict[str, Any]:
        """The ``section`` object as templates see it."""
        return {
            "id": self.section_id,
            "type": self.section_type,
            "name": self.section_name,
            "settings": self.settings,
            "blocks": self.blocks,
            "blocks_count": len(self.blocks),
        }

    def to_template_vars(self) -> dict[str, Any]:
        """Template variables for the section markup."""
        return {"section": self.section_vars()}


def _attr(value: Any) -> str:
    return html.escape(str(value), quote=True)


def _padding_style(settings: dict[str, Any]) -> str:
    declarations = []
    for key, prop in (("padding_top", "padding-top"), ("padding_bottom", "padding-bottom")):
        value = settings.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            declarations.append(f"{prop}:{value}px")
    return ";".join(declarations)


def missing_section_html(section_type: str, instance_id: str) -> str:
    """Placeholder for a section whose template does not exist."""
    return (
        f'<div class="section section--missing" data-section-id="{_attr(instance_id)}" '
        f'data-section-type="{_attr(section_type)}">'
        f"Section not found: {html.escape(section_type)}</div>"
    )


def missing_block_html(block_type: str, block_id: str) -> str:
    """Placeholder for a block whose type is not declared by its section."""
    return (
        f'<div class="block block--missing" data-block-id="{_attr(block_id)}" '
        f'data-block-type="{_attr(block_type)}">'
        f"Block not found: {html.escape(block_type)}</div>"
    )


def _pretty_settings(settings: Any) -> str:
    payload = json.dumps(settings or {}, indent=2, sort_keys=True, default=str)
    return html.escape(payload, quote=False)


def fallback_section_html(section_type: str, instance_id: str, settings: Any) -> str:
    """Diagnostic rendering of a section that failed to evaluate."""
    return (
        f'<div class="section section--error" data-section-id="{_attr(instance_id)}" '
        f'data-section-type="{_attr(section_type)}">'
        f"<p>Failed to render section: {html.escape(section_type)}</p>"
        f"<pre>{_pretty_settings(settings)}</pre></div>"
    )


def fallback_block_html(block_type: str, block_id: str, settings: Any) -> str:
    """Diagnostic rendering of a block that failed to evaluate."""
    return (
        f'<div class="block block--error" data-block-id="{_attr(block_id)}" '
        f'data-block-type="{_attr(block_type)}">'
        f"<p>Failed to render block: {html.escape(block_type)}</p>"
        f"<pre>{_pretty_settings(settings)}</pre></div>"
    )


def wrap_block(block_type: str, block_id: str, body: str) -> str:
    """Wrap rendered block markup in its block element."""
    return (
        f'<div class="block" data-block-id="{_attr(block_id)}" '
        f'data-block-type="{_attr(block_type)}">{body}</div>'
    )


def wrap_section(template: SectionTemplate, instance_id: str, settings: dict[str, Any], body: str) -> str:
    """Prefix the scoped stylesheet and wrap rendered markup in its section element."""
    css = scope(template.stylesheet, instance_id)
    style_block = f"<style>{css}</style>" if css and css.strip() else ""
    padding = _padding_style(settings)
    style_attr = f' style="{padding}"' if padding else ""
    return (
        f"{style_block}"
        f'<div class="section" data-section-id="{_attr(instance_id)}" '
        f'data-section-type="{_attr(template.type)}"{style_attr}>{body}</div>'
    )


class RenderEngine:
    """Renders section and block instances for tenants."""

    def __init__(
        self,
        store: TemplateStore | None = None,
        snippet_resolver: SnippetResolver | None = None,
        registry: InterpreterRegistry | None = None,
        timeout: float | None = None,
        shop_provider: Callable[[str], ShopContext] | None = None,
    ):
        """Initialize the render engine.

        Args:
            store: Template store used for lookups.
            snippet_resolver: Resolver backing the interpreters' snippet loaders.
            registry: Tenant -> interpreter cache. The engine owns it; share one
                registry between engines only if they share a resolver.
            timeout: Evaluation timeout in seconds. Defaults to
                RENDER_TIMEOUT_SECONDS.
            shop_provider: Builds a tenant's ShopContext when its interpreter is
                created.
        """
        self.snippet_resolver = snippet_resolver or SnippetResolver()
        self.store = store or TemplateStore(snippet_resolver=self.snippet_resolver)
        self.registry = registry or InterpreterRegistry()
        if timeout is None:
            timeout = float(
                os.environ.get("RENDER_TIMEOUT_SECONDS", DEFAULT_RENDER_TIMEOUT_SECONDS)
            )
        self.timeout = timeout
        self.shop_provider = shop_provider or (lambda tenant_id: ShopContext(tenant_id=tenant_id))
        self.logger = logger.bind(service="render_engine")

    def interpreter(self, tenant_id: str) -> TemplateEnvironment:
        """Get or create the tenant's interpreter."""
        return self.registry.get_or_create(tenant_id, self._create_interpreter)

    def _create_interpreter(self, tenant_id: str) -> TemplateEnvironment:
        return create_interpreter(tenant_id, self.snippet_resolver, self.shop_provider(tenant_id))

    def invalidate_tenant(self, tenant_id: str) -> bool:
        """Drop the tenant's interpreter so the next render rebuilds it."""
        return self.registry.invalidate(tenant_id)

    async def render_section(
        self,
        tenant_id: str,
        instance: SectionInstance | Any,
        instance_id: str,
    ) -> str:
        """Render one section instance to HTML.

        Args:
            tenant_id: The tenant whose templates and snippets apply.
            instance: The section instance, or its raw data. Raw data that
                does not form a valid instance renders the diagnostic fallback.
            instance_id: The section's ID on the page.

        Returns:
            The rendered fragment, a placeholder, or a diagnostic fallback.
            Disabled sections render as an empty string.
        """
        log = self.logger.bind(tenant_id=tenant_id, section_id=instance_id)

        if not isinstance(instance, SectionInstance):
            try:
                instance = SectionInstance.model_validate(instance)
            except PydanticValidationError:
                log.warning("Malformed section instance")
                raw = instance if isinstance(instance, dict) else {}
                return fallback_section_html(
                    str(raw.get("type") or "unknown"), instance_id, raw.get("settings")
                )

        if instance.disabled:
            return ""

        log = log.bind(section_type=instance.type)
        try:
            template = await asyncio.to_thread(self.store.get, tenant_id, instance.type)
        except Exception:
            log.exception("Template lookup failed")
            return fallback_section_html(instance.type, instance_id, instance.settings)

        if template is None:
            log.warning("Template not found")
            return missing_section_html(instance.type, instance_id)

        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._evaluate_section, tenant_id, template, instance, instance_id),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            log.warning("Section evaluation timed out", timeout=self.timeout)
        except Exception as e:
            error = TemplateEvaluationError(instance.type, str(e))
            log.error("Section evaluation failed", error=error.message, exc_info=True)
        return fallback_section_html(instance.type, instance_id, instance.settings)

    async def render_block(
        self,
        tenant_id: str,
        section_type: str,
        block: BlockInstance | dict[str, Any],
        block_id: str,
        section_settings: dict[str, Any] | None = None,
    ) -> str:
        """Render one block with its own sub-template.

        Args:
            tenant_id: The tenant ID.
            section_type: Type of the section the block belongs to.
            block: The block instance.
            block_id: The block's key within its section.
            section_settings: Settings of the enclosing section, exposed as
                ``section.settings``.

        Returns:
            The wrapped block fragment, a placeholder, or a diagnostic fallback.
        """
        log = self.logger.bind(tenant_id=tenant_id, section_type=section_type, block_id=block_id)

        if isinstance(block, dict):
            try:
                block = BlockInstance.model_validate(block)
            except PydanticValidationError:
                log.warning("Malformed block instance")
                return fallback_block_html(str(block.get("type") or "unknown"), block_id, block.get("settings"))

        if block.disabled:
            return ""

        try:
            template = await asyncio.to_thread(self.store.get, tenant_id, section_type)
        except Exception:
            log.exception("Template lookup failed")
            return fallback_block_html(block.type, block_id, block.settings)

        if template is None:
            log.warning("Template not found")
            return missing_section_html(section_type, block_id)

        block_schema = template.template_schema.get_block(block.type)
        if block_schema is None:
            log.warning("Block type not declared", block_type=block.type)
            return missing_block_html(block.type, block_id)

        section_vars = {
            "type": template.type,
            "name": template.name,
            "settings": self._section_settings(template, section_settings or {}),
        }
        block_vars = self._block_vars(block_id, block, block_schema, index0=0, count=1)

        try:
            return await asyncio.wait_for(
                asyncio.to_thread(
                    self._evaluate_block, tenant_id, block_schema, block_vars, section_vars
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            log.warning("Block evaluation timed out", timeout=self.timeout)
        except Exception as e:
            error = TemplateEvaluationError(f"{section_type}/{block.type}", str(e))
            log.error("Block evaluation failed", error=error.message, exc_info=True)
        return fallback_block_html(block.type, block_id, block.settings)

    def _section_settings(self, template: SectionTemplate, values: dict[str, Any]) -> dict[str, Any]:
        """Template defaults under normalized instance values, coerced by type."""
        merged = {**normalize(template.settings), **normalize(values)}
        return template.template_schema.coerce_settings(merged)

    def _block_vars(
        self,
        block_id: str,
        block: BlockInstance,
        block_schema: BlockSchema | None,
        index0: int,
        count: int,
    ) -> dict[str, Any]:
        settings = normalize(block.settings)
        if block_schema is not None:
            settings = block_schema.coerce_settings(settings)
        return {
            "id": block_id,
            "type": block.type,
            "settings": settings,
            "index": index0 + 1,
            "index0": index0,
            "first": index0 == 0,
            "last": index0 == count - 1,
            "blocks_count": count,
            "html": "",
        }

    def _ordered_blocks(
        self,
        template: SectionTemplate,
        instance: SectionInstance,
    ) -> list[tuple[str, BlockInstance]]:
        """Enabled blocks in repaired order, within the section and type limits."""
        schema = template.template_schema
        selected: list[tuple[str, BlockInstance]] = []
        per_type: dict[str, int] = {}
        for key in instance.ordered_block_keys():
            block = instance.blocks[key]
            if block.disabled:
                continue
            if schema.max_blocks is not None and len(selected) >= schema.max_blocks:
                break
            block_schema = schema.get_block(block.type)
            if block_schema is not None and block_schema.limit is not None:
                if per_type.get(block.type, 0) >= block_schema.limit:
                    continue
            per_type[block.type] = per_type.get(block.type, 0) + 1
            selected.append((key, block))
        return selected

    def _evaluate_block(
        self,
        tenant_id: str,
        block_schema: BlockSchema,
        block_vars: dict[str, Any],
        section_vars: dict[str, Any],
    ) -> str:
        body = ""
        if block_schema.markup:
            env = self.interpreter(tenant_id)
            body = env.from_string(block_schema.markup).render(block=block_vars, section=section_vars)
        return wrap_block(block_vars["type"], block_vars["id"], body)

    def _evaluate_section(
        self,
        tenant_id: str,
        template: SectionTemplate,
        instance: SectionInstance,
        instance_id: str,
    ) -> str:
        """Build the render context and evaluate the markup. Runs in a worker thread."""
        env = self.interpreter(tenant_id)
        schema = template.template_schema
        settings = self._section_settings(template, instance.settings)

        ordered = self._ordered_blocks(template, instance)
        blocks = [
            self._block_vars(key, block, schema.get_block(block.type), index0, len(ordered))
            for index0, (key, block) in enumerate(ordered)
        ]
        context = RenderContext(
            section_id=instance_id,
            section_type=template.type,
            section_name=template.name,
            settings=settings,
            blocks=blocks,
        )
        section_vars = context.section_vars()

        for block_vars, (_, block) in zip(blocks, ordered):
            block_schema = schema.get_block(block.type)
            if block_schema is None or not block_schema.markup:
                continue
            try:
                block_vars["html"] = self._evaluate_block(tenant_id, block_schema, block_vars, section_vars)
            except Exception:
                self.logger.exception(
                    "Block evaluation failed",
                    tenant_id=tenant_id,
                    section_id=instance_id,
                    block_id=block_vars["id"],
                )
                block_vars["html"] = fallback_block_html(block.type, block_vars["id"], block.settings)

        body = env.from_string(template.markup).render(context.to_template_vars())
        return wrap_section(template, instance_id, settings, body)


_engine: RenderEngine | None = None


def get_render_engine() -> RenderEngine:
    """Process-wide engine, so warm Lambda containers keep their interpreters."""
    global _engine
    if _engine is None:
        _engine = RenderEngine()
    return _engine
