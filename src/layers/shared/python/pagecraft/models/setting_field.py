"""Setting-field descriptors as a tagged union.

Each descriptor variant owns the rules for its own shape (enforced by
pydantic) and the coercion applied to instance values at render time.
The ``type`` string selects the variant through ``SETTING_TYPE_TAGS``;
any type not listed there falls back to ``GenericSetting``.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel as PydanticBaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    TypeAdapter,
    model_validator,
)

_TRUTHY = {"true", "1", "yes", "on"}
_FALSY = {"false", "0", "no", "off", ""}


class BaseSetting(PydanticBaseModel):
    """Common fields of every setting-field descriptor."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str = Field(..., min_length=1)
    id: str = Field(..., min_length=1)
    label: str = Field(..., min_length=1)
    default: Any = None
    info: str | None = None

    def coerce(self, value: Any) -> Any:
        """Convert an instance value into the shape templates expect."""
        return value


class TextSetting(BaseSetting):
    """Free text, rich text and raw markup fields."""

    type: Literal["text", "textarea", "richtext", "inline_richtext", "html", "liquid"]
    placeholder: str | None = None

    def coerce(self, value: Any) -> Any:
        if isinstance(value, (int, float, bool)):
            return str(value)
        return value


class NumberSetting(BaseSetting):
    """Numeric inputs; ranges are clamped to their bounds."""

    type: Literal["number", "range"]
    min: float | None = None
    max: float | None = None
    step: float | None = None
    unit: str | None = None

    @model_validator(mode="after")
    def check_bounds(self) -> "NumberSetting":
        """Ranges need both bounds, in order."""
        if self.type == "range":
            if self.min is None or self.max is None:
                raise ValueError(f"Range setting '{self.id}' requires min and max")
            if self.min >= self.max:
                raise ValueError(f"Range setting '{self.id}' requires min < max")
        return self

    def coerce(self, value: Any) -> Any:
        if value is None or isinstance(value, bool):
            return value
        number: int | float
        if isinstance(value, (int, float)):
            number = value
        else:
            try:
                number = float(str(value).strip())
            except ValueError:
                return self.default
        if isinstance(number, float) and number.is_integer():
            number = int(number)
        if self.type == "range":
            if self.min is not None and number < self.min:
                number = self.min
            if self.max is not None and number > self.max:
                number = self.max
        return number


class CheckboxSetting(BaseSetting):
    """Boolean toggles."""

    type: Literal["checkbox"]

    def coerce(self, value: Any) -> Any:
        if value is None or isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUTHY:
                return True
            if lowered in _FALSY:
                return False
        return bool(value)


class SelectOption(PydanticBaseModel):
    """A single choice of a select or radio setting."""

    model_config = ConfigDict(extra="allow")

    value: Any
    label: str


class ChoiceSetting(BaseSetting):
    """Select and radio inputs."""

    type: Literal["select", "radio"]
    options: list[SelectOption] = Field(..., min_length=1)

    def coerce(self, value: Any) -> Any:
        allowed = [option.value for option in self.options]
        if value in allowed or self.default is None:
            return value
        return self.default


class ColorSetting(BaseSetting):
    """Color pickers."""

    type: Literal["color", "color_background"]

    def coerce(self, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class MediaSetting(BaseSetting):
    """Image, video and URL pickers."""

    type: Literal["image_picker", "video", "video_url", "url"]

    def coerce(self, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class GenericSetting(BaseSetting):
    """Any setting type without a dedicated variant; values pass through."""


SETTING_TYPE_TAGS: dict[str, str] = {
    **{name: "text" for name in ("text", "textarea", "richtext", "inline_richtext", "html", "liquid")},
    **{name: "number" for name in ("number", "range")},
    "checkbox": "checkbox",
    **{name: "choice" for name in ("select", "radio")},
    **{name: "color" for name in ("color", "color_background")},
    **{name: "media" for name in ("image_picker", "video", "video_url", "url")},
}


def _setting_tag(value: Any) -> str:
    """Pick the union member for a raw descriptor or a built model."""
    if isinstance(value, dict):
        type_name = value.get("type")
    else:
        type_name = getattr(value, "type", None)
    return SETTING_TYPE_TAGS.get(type_name, "generic")


SettingField = Annotated[
    Union[
        Annotated[TextSetting, Tag("text")],
        Annotated[NumberSetting, Tag("number")],
        Annotated[CheckboxSetting, Tag("checkbox")],
        Annotated[ChoiceSetting, Tag("choice")],
        Annotated[ColorSetting, Tag("color")],
        Annotated[MediaSetting, Tag("media")],
        Annotated[GenericSetting, Tag("generic")],
    ],
    Discriminator(_setting_tag),
]

_setting_adapter = TypeAdapter(SettingField)


def parse_setting(descriptor: dict[str, Any]) -> BaseSetting:
    """Build the variant model for one raw descriptor.

    Raises:
        pydantic.ValidationError: If the descriptor breaks its variant's rules.
    """
    return _setting_adapter.validate_python(descriptor)
