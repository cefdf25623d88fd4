"""Flatten nested and legacy setting shapes into one underscore-keyed map.

Older editor versions stored settings in semantic bundles
(``{"typography": {"fontSize": 16}}``); templates read flat keys
(``section.settings.font_size``). Normalization is pure and idempotent.
"""

import re
from typing import Any

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_NON_WORD = re.compile(r"[^a-zA-Z0-9]+")

BUNDLE_KEY_MAPS: dict[str, dict[str, str]] = {
    "typography": {
        "fontSize": "font_size",
        "fontFamily": "font_family",
        "fontWeight": "font_weight",
        "lineHeight": "line_height",
        "letterSpacing": "letter_spacing",
        "textAlign": "text_align",
        "textTransform": "text_transform",
    },
    "spacing": {
        "paddingTop": "padding_top",
        "paddingBottom": "padding_bottom",
        "paddingLeft": "padding_left",
        "paddingRight": "padding_right",
        "marginTop": "margin_top",
        "marginBottom": "margin_bottom",
        "gap": "gap",
    },
    "colors": {
        "text": "text_color",
        "background": "background_color",
        "accent": "accent_color",
        "heading": "heading_color",
        "button": "button_color",
        "buttonText": "button_text_color",
        "link": "link_color",
        "border": "border_color",
    },
    "background": {
        "color": "background_color",
        "image": "background_image",
        "position": "background_position",
        "size": "background_size",
        "repeat": "background_repeat",
        "overlay": "background_overlay",
        "overlayOpacity": "background_overlay_opacity",
    },
    "border": {
        "width": "border_width",
        "color": "border_color",
        "style": "border_style",
        "radius": "border_radius",
    },
}


def snake_case(key: str) -> str:
    """Convert camelCase, kebab-case or spaced keys to snake_case."""
    key = _CAMEL_BOUNDARY.sub("_", key)
    key = _NON_WORD.sub("_", key)
    return key.strip("_").lower()


def _bundle_key(bundle: str, sub_key: str) -> str:
    mapped = BUNDLE_KEY_MAPS[bundle].get(sub_key)
    if mapped:
        return mapped
    return f"{bundle}_{snake_case(sub_key)}"


def _flatten_into(target: dict[str, Any], source: dict[str, Any], owned: set[str]) -> None:
    """Merge the entries of a container into ``target`` without overriding.

    ``owned`` holds keys that were present at the top level of the input;
    they always win. Other keys are first-come, first-served.
    """
    for key, value in source.items():
        if isinstance(value, dict):
            _flatten_into(target, value, owned)
        elif key not in owned and key not in target:
            target[key] = value


def normalize(settings: Any) -> dict[str, Any]:
    """Normalize a settings map.

    Args:
        settings: Raw settings, possibly nested. Non-dict input yields ``{}``.

    Returns:
        A new flat dict whose values are never plain dicts.
    """
    if not isinstance(settings, dict):
        return {}

    owned = {key for key, value in settings.items() if not isinstance(value, dict)}
    result: dict[str, Any] = {key: settings[key] for key in settings if key in owned}

    for key, value in settings.items():
        if not isinstance(value, dict):
            continue
        if key in BUNDLE_KEY_MAPS:
            for sub_key, sub_value in value.items():
                if isinstance(sub_value, dict):
                    _flatten_into(result, sub_value, owned)
                    continue
                flat_key = _bundle_key(key, sub_key)
                if flat_key not in owned and flat_key not in result:
                    result[flat_key] = sub_value
        else:
            _flatten_into(result, value, owned)

    return result
