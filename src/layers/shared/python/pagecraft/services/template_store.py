"""Persistence of named section templates.

Saving is idempotent: a candidate whose content fingerprint matches the
stored template is a no-op, anything else bumps the version under
optimistic locking. Candidate snippets are written through the snippet
resolver and, when a snippet lands under a suffixed key, the markup's
``render`` and ``include`` references are rewritten to follow it.
"""

import hashlib
import json
import re
from typing import Any

import structlog

from pagecraft.models.section import BlockInstance, SectionInstance
from pagecraft.models.template import BlockSchema, SectionTemplate, TemplateSchema
from pagecraft.repositories.template import TemplateRepository
from pagecraft.services.snippet_resolver import SnippetResolver
from pagecraft.services.template_validator import parse_candidate
from pagecraft.utils.exceptions import NotFoundError, TemplateNotFoundError

logger = structlog.get_logger()

_SNIPPET_REFERENCE = re.compile(
    r"(?P<head>\{%-?\s*(?:render|include)\s+)(?P<quote>['\"])(?P<key>[^'\"]+)(?P=quote)"
)


def rewrite_snippet_references(markup: str, renamed: dict[str, str]) -> str:
    """Point ``render``/``include`` tags at renamed snippet keys."""
    if not renamed:
        return markup

    def replace(match: re.Match) -> str:
        key = renamed.get(match.group("key"), match.group("key"))
        quote = match.group("quote")
        return f"{match.group('head')}{quote}{key}{quote}"

    return _SNIPPET_REFERENCE.sub(replace, markup)


def content_hash(
    name: str,
    schema: TemplateSchema,
    markup: str,
    stylesheet: str,
    settings: dict[str, Any],
    snippets: dict[str, str],
) -> str:
    """Fingerprint of everything a save can change."""
    canonical = json.dumps(
        {
            "name": name,
            "schema": schema.model_dump(mode="json", by_alias=True),
            "markup": markup,
            "stylesheet": stylesheet,
            "settings": settings,
            "snippets": snippets,
        },
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class TemplateStore:
    """CRUD and idempotent saves for section templates."""

    def __init__(
        self,
        repo: TemplateRepository | None = None,
        snippet_resolver: SnippetResolver | None = None,
    ):
        """Initialize the template store.

        Args:
            repo: Template repository (created if not provided).
            snippet_resolver: Resolver used to store candidate snippets.
        """
        self.repo = repo or TemplateRepository()
        self.snippet_resolver = snippet_resolver or SnippetResolver()
        self.logger = logger.bind(service="template_store")

    def save(self, tenant_id: str, candidate: dict[str, Any]) -> SectionTemplate:
        """Validate and persist an authored template.

        Args:
            tenant_id: The owning tenant.
            candidate: ``{type, name, schema, markup, stylesheet, snippets?, settings?}``.
                ``schema`` may be a JSON string or be embedded in ``markup``
                as a ``{% schema %}`` tag.

        Returns:
            The stored template.

        Raises:
            TemplateValidationError: If the candidate is rejected. Nothing is
                written in that case.
            ConflictError: If another writer updated the template concurrently.
        """
        parsed = parse_candidate(candidate)

        resolved: dict[str, str] = {}
        for key, source in parsed.snippets.items():
            snippet = self.snippet_resolver.put(tenant_id, key, source)
            resolved[key] = snippet.key
        renamed = {key: new for key, new in resolved.items() if key != new}

        schema = parsed.template_schema
        if renamed:
            blocks = [
                block.model_copy(update={"markup": rewrite_snippet_references(block.markup, renamed)})
                if block.markup else block
                for block in schema.blocks
            ]
            schema = schema.model_copy(update={"blocks": blocks})
        markup = rewrite_snippet_references(parsed.markup, renamed)
        name = parsed.name or parsed.type

        fingerprint = content_hash(
            name, schema, markup, parsed.stylesheet, parsed.settings, resolved
        )

        existing = self.repo.get_by_type(tenant_id, parsed.type)
        if existing and existing.content_hash == fingerprint:
            self.logger.info(
                "Template unchanged",
                tenant_id=tenant_id,
                template_type=parsed.type,
                version=existing.version,
            )
            return existing

        if existing:
            existing.name = name
            existing.template_schema = schema
            existing.markup = markup
            existing.stylesheet = parsed.stylesheet
            existing.settings = parsed.settings
            existing.snippets = resolved
            existing.content_hash = fingerprint
            template = self.repo.update_template(existing)
        else:
            template = self.repo.create_template(
                SectionTemplate(
                    tenant_id=tenant_id,
                    type=parsed.type,
                    name=name,
                    template_schema=schema,
                    markup=markup,
                    stylesheet=parsed.stylesheet,
                    snippets=resolved,
                    settings=parsed.settings,
                    content_hash=fingerprint,
                )
            )

        self.logger.info(
            "Template saved",
            tenant_id=tenant_id,
            template_type=template.type,
            version=template.version,
            renamed_snippets=renamed or None,
        )
        return template

    def get(self, tenant_id: str, template_type: str) -> SectionTemplate | None:
        """Get a template by section type, or None."""
        return self.repo.get_by_type(tenant_id, template_type)

    def get_or_raise(self, tenant_id: str, template_type: str) -> SectionTemplate:
        """Get a template by section type.

        Raises:
            TemplateNotFoundError: If the tenant has no such template.
        """
        template = self.get(tenant_id, template_type)
        if template is None:
            raise TemplateNotFoundError(tenant_id, template_type)
        return template

    def delete(self, tenant_id: str, template_type: str) -> bool:
        """Delete a template. Returns False if it did not exist."""
        deleted = self.repo.delete_template(tenant_id, template_type)
        if deleted:
            self.logger.info("Template deleted", tenant_id=tenant_id, template_type=template_type)
        return deleted

    def get_block_template(
        self,
        tenant_id: str,
        section_type: str,
        block_type: str,
    ) -> BlockSchema | None:
        """Get the descriptor of one block type of a section template."""
        template = self.get(tenant_id, section_type)
        if template is None:
            return None
        return template.template_schema.get_block(block_type)

    def instantiate_preset(
        self,
        tenant_id: str,
        template_type: str,
        preset_name: str | None = None,
    ) -> SectionInstance:
        """Build a section instance from one of a template's presets.

        Args:
            tenant_id: The tenant ID.
            template_type: The section type.
            preset_name: Preset to use; the first preset when omitted.

        Raises:
            TemplateNotFoundError: If the template does not exist.
            NotFoundError: If the preset does not exist.
        """
        template = self.get_or_raise(tenant_id, template_type)
        schema = template.template_schema
        preset = schema.get_preset(preset_name)
        if preset is None:
            raise NotFoundError("Preset", preset_name or template_type)

        blocks: dict[str, BlockInstance] = {}
        for index, preset_block in enumerate(preset.blocks, start=1):
            block_schema = schema.get_block(preset_block.type)
            defaults = block_schema.defaults() if block_schema else {}
            blocks[f"{preset_block.type}-{index}"] = BlockInstance(
                type=preset_block.type,
                settings={**defaults, **preset_block.settings},
            )

        return SectionInstance(
            type=template.type,
            settings={**schema.defaults(), **preset.settings},
            blocks=blocks,
            block_order=list(blocks),
        )

    # Defined last so the builtin ``list`` stays usable in the annotations above
    def list(self, tenant_id: str) -> list[SectionTemplate]:
        """List every template of a tenant."""
        return self.repo.list_by_tenant(tenant_id)
