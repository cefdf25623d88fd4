"""Section template model and its schema."""

from typing import Any, ClassVar

from pydantic import BaseModel as PydanticBaseModel, ConfigDict, Field

from pagecraft.models.base import BaseModel, tenant_pk
from pagecraft.models.setting_field import BaseSetting, SettingField


class _SettingsHolder(PydanticBaseModel):
    """Anything that declares an ordered list of setting fields."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    settings: list[SettingField] = Field(default_factory=list)

    def get_setting(self, setting_id: str) -> BaseSetting | None:
        """Find a setting descriptor by id."""
        for setting in self.settings:
            if setting.id == setting_id:
                return setting
        return None

    def setting_ids(self) -> list[str]:
        """Declared setting ids, in order."""
        return [setting.id for setting in self.settings]

    def defaults(self) -> dict[str, Any]:
        """Declared default values keyed by setting id."""
        return {s.id: s.default for s in self.settings if s.default is not None}

    def coerce_settings(self, values: dict[str, Any]) -> dict[str, Any]:
        """Layer defaults under ``values`` and coerce declared settings.

        Keys without a descriptor pass through untouched.
        """
        merged = {**self.defaults(), **values}
        for setting in self.settings:
            if setting.id in merged:
                merged[setting.id] = setting.coerce(merged[setting.id])
        return merged


class BlockSchema(_SettingsHolder):
    """A block type a section accepts."""

    type: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    markup: str | None = None
    limit: int | None = Field(default=None, ge=0)


class PresetBlock(PydanticBaseModel):
    """A block inside a preset."""

    model_config = ConfigDict(extra="allow")

    type: str = Field(..., min_length=1)
    settings: dict[str, Any] = Field(default_factory=dict)


class Preset(PydanticBaseModel):
    """A named starting configuration for a section."""

    model_config = ConfigDict(extra="allow")

    name: str = Field(..., min_length=1)
    settings: dict[str, Any] = Field(default_factory=dict)
    blocks: list[PresetBlock] = Field(default_factory=list)


class TemplateSchema(_SettingsHolder):
    """The settings schema of a section template."""

    blocks: list[BlockSchema] = Field(default_factory=list)
    presets: list[Preset] = Field(default_factory=list)
    max_blocks: int | None = Field(default=None, ge=0)

    def get_block(self, block_type: str) -> BlockSchema | None:
        """Find a block descriptor by type."""
        for block in self.blocks:
            if block.type == block_type:
                return block
        return None

    def get_preset(self, name: str | None = None) -> Preset | None:
        """Find a preset by name, or the first preset when no name is given."""
        if not self.presets:
            return None
        if name is None:
            return self.presets[0]
        for preset in self.presets:
            if preset.name == name:
                return preset
        return None


class SectionTemplate(BaseModel):
    """A named, per-tenant section template.

    Key pattern:
        PK: TENANT#{tenant_id}
        SK: TEMPLATE#{type}
    """

    _pk_prefix: ClassVar[str] = "TENANT#"
    _sk_prefix: ClassVar[str] = "TEMPLATE#"

    tenant_id: str = Field(..., description="Owning tenant (shop) ID")
    type: str = Field(..., min_length=1, max_length=100, description="Section type identifier")
    name: str = Field(..., min_length=1, max_length=255)
    template_schema: TemplateSchema = Field(default_factory=TemplateSchema, alias="schema")
    markup: str = Field(default="", description="Template source with the schema tag stripped")
    stylesheet: str = Field(default="", description="Unscoped CSS")
    snippets: dict[str, str] = Field(
        default_factory=dict, description="Requested snippet key -> resolved key"
    )
    settings: dict[str, Any] = Field(default_factory=dict, description="Template-level defaults")
    content_hash: str | None = None

    def get_pk(self) -> str:
        """Get partition key: TENANT#{tenant_id}."""
        return tenant_pk(self.tenant_id)

    def get_sk(self) -> str:
        """Get sort key: TEMPLATE#{type}."""
        return f"TEMPLATE#{self.type}"


class TemplateCandidate(PydanticBaseModel):
    """An authored template submission, after structural validation.

    Snippets here map key -> template source; the store replaces them with
    requested key -> resolved key on the persisted template.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: str = Field(..., min_length=1, max_length=100)
    name: str | None = Field(default=None, max_length=255)
    template_schema: TemplateSchema = Field(..., alias="schema")
    markup: str
    stylesheet: str = ""
    snippets: dict[str, str] = Field(default_factory=dict)
    settings: dict[str, Any] = Field(default_factory=dict)
