"""Pydantic models for Pagecraft entities."""

from pagecraft.models.base import BaseModel, TimestampMixin, generate_ulid, tenant_pk
from pagecraft.models.section import (
    BlockInstance,
    PageDocument,
    SectionInstance,
    ShopContext,
    repair_block_order,
)
from pagecraft.models.setting_field import (
    BaseSetting,
    CheckboxSetting,
    ChoiceSetting,
    ColorSetting,
    GenericSetting,
    MediaSetting,
    NumberSetting,
    SettingField,
    TextSetting,
    parse_setting,
)
from pagecraft.models.snippet import GLOBAL_TENANT_ID, Snippet, is_valid_snippet_key
from pagecraft.models.template import (
    BlockSchema,
    Preset,
    PresetBlock,
    SectionTemplate,
    TemplateCandidate,
    TemplateSchema,
)

__all__ = [
    # Base
    "BaseModel",
    "TimestampMixin",
    "generate_ulid",
    "tenant_pk",
    # Setting fields
    "BaseSetting",
    "SettingField",
    "TextSetting",
    "NumberSetting",
    "CheckboxSetting",
    "ChoiceSetting",
    "ColorSetting",
    "MediaSetting",
    "GenericSetting",
    "parse_setting",
    # Templates
    "BlockSchema",
    "Preset",
    "PresetBlock",
    "TemplateSchema",
    "SectionTemplate",
    "TemplateCandidate",
    # Snippets
    "Snippet",
    "GLOBAL_TENANT_ID",
    "is_valid_snippet_key",
    # Instances
    "BlockInstance",
    "SectionInstance",
    "PageDocument",
    "ShopContext",
    "repair_block_order",
]
