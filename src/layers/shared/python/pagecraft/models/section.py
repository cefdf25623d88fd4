"""Section, block and page instance models.

These are page data, not templates: they carry concrete setting values and
are handed to the render engine as-is. None of them is persisted here.
"""

import os
from typing import Any

from pydantic import AliasChoices, BaseModel as PydanticBaseModel, ConfigDict, Field


def repair_block_order(
    blocks: dict[str, Any],
    block_order: list[str] | None,
) -> list[str]:
    """Reconcile a block order with the blocks that actually exist.

    Keys in ``block_order`` that exist in ``blocks`` are kept (first
    occurrence wins), then any remaining block keys are appended in their
    insertion order.

    Args:
        blocks: Block key -> block instance.
        block_order: The declared order, possibly stale, partial or missing.

    Returns:
        A permutation of the keys of ``blocks``.
    """
    repaired: list[str] = []
    seen: set[str] = set()
    for key in block_order or []:
        if key in blocks and key not in seen:
            repaired.append(key)
            seen.add(key)
    for key in blocks:
        if key not in seen:
            repaired.append(key)
            seen.add(key)
    return repaired


class BlockInstance(PydanticBaseModel):
    """A concrete block inside a section instance."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str = Field(..., min_length=1)
    settings: dict[str, Any] = Field(default_factory=dict)
    disabled: bool = False


class SectionInstance(PydanticBaseModel):
    """A concrete section on a page."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str = Field(..., min_length=1)
    settings: dict[str, Any] = Field(default_factory=dict)
    blocks: dict[str, BlockInstance] = Field(default_factory=dict)
    block_order: list[str] | None = Field(
        default=None,
        validation_alias=AliasChoices("block_order", "blockOrder"),
    )
    disabled: bool = False

    def ordered_block_keys(self) -> list[str]:
        """Block keys in repaired order."""
        return repair_block_order(self.blocks, self.block_order)

    def with_repaired_block_order(self) -> "SectionInstance":
        """Return a copy whose block order is a permutation of its blocks."""
        return self.model_copy(update={"block_order": self.ordered_block_keys()})


class PageDocument(PydanticBaseModel):
    """An ordered collection of section instances.

    Sections are kept as raw data; each one is validated when it renders, so
    a malformed section only affects its own output.
    """

    model_config = ConfigDict(extra="allow")

    sections: dict[str, Any] = Field(default_factory=dict)
    order: list[str] = Field(default_factory=list)


class ShopContext(PydanticBaseModel):
    """Tenant-scoped globals exposed to templates as ``shop``."""

    tenant_id: str
    name: str | None = None
    currency: str = Field(default_factory=lambda: os.environ.get("DEFAULT_CURRENCY", "USD"))
    money_format: str = "${{amount}}"
    asset_base_url: str = Field(
        default_factory=lambda: os.environ.get("ASSET_BASE_URL", "https://cdn.pagecraft.dev")
    )
    image_base_url: str | None = Field(default_factory=lambda: os.environ.get("IMAGE_BASE_URL"))

    @property
    def resolved_image_base_url(self) -> str:
        """Image base URL, falling back to the asset base."""
        return self.image_base_url or self.asset_base_url

    def to_template_globals(self) -> dict[str, Any]:
        """The ``shop`` object as templates see it."""
        return {
            "id": self.tenant_id,
            "name": self.name or self.tenant_id,
            "currency": self.currency,
            "money_format": self.money_format,
        }


class RenderSectionRequest(PydanticBaseModel):
    """Request model for rendering one section."""

    section: SectionInstance
    section_id: str = Field(..., min_length=1)


class RenderBlockRequest(PydanticBaseModel):
    """Request model for rendering one block."""

    section_type: str = Field(..., min_length=1)
    block: BlockInstance
    block_id: str = Field(..., min_length=1)
    section_settings: dict[str, Any] = Field(default_factory=dict)


class RenderPageRequest(PydanticBaseModel):
    """Request model for rendering a page."""

    page: PageDocument
    document: bool = False
    title: str | None = None
