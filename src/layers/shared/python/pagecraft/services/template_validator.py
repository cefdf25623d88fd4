"""Structural acceptance gate for authored section templates.

Every candidate, hand-written or AI-generated, passes through ``validate``
before it may enter the template store. Rules run in a fixed order and the
first failure rejects the candidate with a ``TemplateValidationError``.
"""

import json
import re
from collections.abc import Callable, Iterator
from typing import Any

import structlog
from jinja2 import TemplateSyntaxError
from pydantic import ValidationError as PydanticValidationError

from pagecraft.models.setting_field import parse_setting
from pagecraft.models.snippet import is_valid_snippet_key
from pagecraft.models.template import TemplateCandidate
from pagecraft.services.interpreter import check_syntax
from pagecraft.utils.exceptions import TemplateValidationError

logger = structlog.get_logger()

_SCHEMA_TAG = re.compile(
    r"\{%-?\s*schema\s*-?%\}(?P<body>.*?)\{%-?\s*endschema\s*-?%\}",
    re.DOTALL,
)

REQUIRED_SETTING_KEYS = ("type", "id", "label")
REQUIRED_BLOCK_KEYS = ("type", "name")

Failure = tuple[str, str]


def split_schema_tag(markup: str) -> tuple[str | None, str]:
    """Split a ``{% schema %}`` tag out of markup.

    Returns:
        The schema tag's body (None if there is no tag) and the markup
        without the tag.
    """
    match = _SCHEMA_TAG.search(markup)
    if not match:
        return None, markup
    stripped = (markup[: match.start()] + markup[match.end():]).strip()
    return match.group("body").strip(), stripped


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _prepare(candidate: Any) -> tuple[dict[str, Any], Failure | None]:
    """Copy the candidate with a JSON-string schema decoded."""
    if not isinstance(candidate, dict):
        return {}, ("", "candidate must be an object")
    prepared = dict(candidate)
    schema = prepared.get("schema")
    if isinstance(schema, str):
        try:
            prepared["schema"] = json.loads(schema)
        except json.JSONDecodeError as e:
            return prepared, ("schema", f"schema is not valid JSON: {e.msg}")
    return prepared, None


def _check_required(candidate: dict[str, Any]) -> Iterator[Failure]:
    if candidate.get("schema") is None:
        yield "schema", "schema is required"
    elif not isinstance(candidate["schema"], dict):
        yield "schema", "schema must be an object"
    if candidate.get("markup") is None:
        yield "markup", "markup is required"
    elif not isinstance(candidate["markup"], str):
        yield "markup", "markup must be a string"


def _check_stylesheet(candidate: dict[str, Any]) -> Iterator[Failure]:
    stylesheet = candidate.get("stylesheet")
    if stylesheet is not None and not isinstance(stylesheet, str):
        yield "stylesheet", "stylesheet must be a string"


def _check_snippets(candidate: dict[str, Any]) -> Iterator[Failure]:
    snippets = candidate.get("snippets")
    if snippets is None:
        return
    if not isinstance(snippets, dict):
        yield "snippets", "snippets must be a map of key to template source"
        return
    for key, source in snippets.items():
        if not isinstance(key, str) or not isinstance(source, str):
            yield f"snippets.{key}", "snippet sources must be strings"


def _check_setting_list(settings: Any, path: str) -> Iterator[Failure]:
    if not isinstance(settings, list):
        yield path, f"{path} must be a list"
        return
    for i, setting in enumerate(settings):
        if not isinstance(setting, dict):
            yield f"{path}[{i}]", "setting must be an object"
            continue
        for key in REQUIRED_SETTING_KEYS:
            if not _non_empty_str(setting.get(key)):
                yield f"{path}[{i}].{key}", f"setting at {path}[{i}] is missing '{key}'"


def _schema(candidate: dict[str, Any]) -> dict[str, Any]:
    schema = candidate.get("schema")
    return schema if isinstance(schema, dict) else {}


def _check_settings(candidate: dict[str, Any]) -> Iterator[Failure]:
    if not isinstance(candidate.get("schema"), dict):
        return
    yield from _check_setting_list(_schema(candidate).get("settings"), "schema.settings")


def _check_blocks(candidate: dict[str, Any]) -> Iterator[Failure]:
    blocks = _schema(candidate).get("blocks")
    if blocks is None:
        return
    if not isinstance(blocks, list):
        yield "schema.blocks", "schema.blocks must be a list"
        return
    for i, block in enumerate(blocks):
        path = f"schema.blocks[{i}]"
        if not isinstance(block, dict):
            yield path, "block must be an object"
            continue
        for key in REQUIRED_BLOCK_KEYS:
            if not _non_empty_str(block.get(key)):
                yield f"{path}.{key}", f"block at {path} is missing '{key}'"
        yield from _check_setting_list(block.get("settings"), f"{path}.settings")


def _setting_lists(schema: dict[str, Any]) -> Iterator[tuple[str, list[dict[str, Any]]]]:
    yield "schema.settings", schema.get("settings") or []
    for i, block in enumerate(schema.get("blocks") or []):
        yield f"schema.blocks[{i}].settings", block.get("settings") or []


def _check_unique_ids(candidate: dict[str, Any]) -> Iterator[Failure]:
    schema = _schema(candidate)
    for path, settings in _setting_lists(schema):
        seen: set[str] = set()
        for setting in settings:
            if setting["id"] in seen:
                yield path, f"duplicate setting id '{setting['id']}' in {path}"
            seen.add(setting["id"])

    block_types: set[str] = set()
    for block in schema.get("blocks") or []:
        if block["type"] in block_types:
            yield "schema.blocks", f"duplicate block type '{block['type']}'"
        block_types.add(block["type"])


def _check_setting_variants(candidate: dict[str, Any]) -> Iterator[Failure]:
    schema = _schema(candidate)
    for path, settings in _setting_lists(schema):
        for i, setting in enumerate(settings):
            try:
                parse_setting(setting)
            except PydanticValidationError as e:
                first = e.errors()[0]
                # loc starts with the union tag
                where = ".".join(str(part) for part in first["loc"][1:])
                message = f"{where}: {first['msg']}" if where else first["msg"]
                yield f"{path}[{i}]", f"setting '{setting['id']}' ({setting['type']}): {message}"

    for i, block in enumerate(schema.get("blocks") or []):
        markup = block.get("markup")
        if markup is not None and not isinstance(markup, str):
            yield f"schema.blocks[{i}].markup", "block markup must be a string"
        limit = block.get("limit")
        if limit is not None and (not isinstance(limit, int) or isinstance(limit, bool) or limit < 0):
            yield f"schema.blocks[{i}].limit", "block limit must be a non-negative integer"


def _check_max_blocks(candidate: dict[str, Any]) -> Iterator[Failure]:
    max_blocks = _schema(candidate).get("max_blocks")
    if max_blocks is None:
        return
    if not isinstance(max_blocks, int) or isinstance(max_blocks, bool) or max_blocks < 0:
        yield "schema.max_blocks", "max_blocks must be a non-negative integer"


def _check_presets(candidate: dict[str, Any]) -> Iterator[Failure]:
    schema = _schema(candidate)
    presets = schema.get("presets")
    if presets is None:
        return
    if not isinstance(presets, list):
        yield "schema.presets", "schema.presets must be a list"
        return

    setting_ids = {s["id"] for s in schema.get("settings") or []}
    block_settings = {
        b["type"]: {s["id"] for s in b.get("settings") or []}
        for b in schema.get("blocks") or []
    }

    for i, preset in enumerate(presets):
        path = f"schema.presets[{i}]"
        if not isinstance(preset, dict) or not _non_empty_str(preset.get("name")):
            yield f"{path}.name", f"preset at {path} is missing 'name'"
            continue
        settings = preset.get("settings") or {}
        if not isinstance(settings, dict):
            yield f"{path}.settings", "preset settings must be an object"
            continue
        for key in settings:
            if key not in setting_ids:
                yield f"{path}.settings", f"preset '{preset['name']}' sets undeclared setting '{key}'"

        blocks = preset.get("blocks") or []
        if not isinstance(blocks, list):
            yield f"{path}.blocks", "preset blocks must be a list"
            continue
        for j, block in enumerate(blocks):
            block_type = block.get("type") if isinstance(block, dict) else None
            if block_type not in block_settings:
                yield f"{path}.blocks[{j}]", f"preset '{preset['name']}' uses undeclared block type '{block_type}'"
                continue
            block_values = block.get("settings") or {}
            if not isinstance(block_values, dict):
                yield f"{path}.blocks[{j}].settings", "preset block settings must be an object"
                continue
            for key in block_values:
                if key not in block_settings[block_type]:
                    yield (
                        f"{path}.blocks[{j}].settings",
                        f"preset '{preset['name']}' sets undeclared setting '{key}' on block '{block_type}'",
                    )


def _check_snippet_keys(candidate: dict[str, Any]) -> Iterator[Failure]:
    for key in candidate.get("snippets") or {}:
        if not is_valid_snippet_key(key):
            yield f"snippets.{key}", f"invalid snippet key '{key}'"


def _sources(candidate: dict[str, Any]) -> Iterator[tuple[str, str]]:
    yield "markup", candidate["markup"]
    for i, block in enumerate(_schema(candidate).get("blocks") or []):
        if block.get("markup"):
            yield f"schema.blocks[{i}].markup", block["markup"]
    for key, source in (candidate.get("snippets") or {}).items():
        yield f"snippets.{key}", source


def _check_compiles(candidate: dict[str, Any]) -> Iterator[Failure]:
    for path, source in _sources(candidate):
        try:
            check_syntax(source)
        except TemplateSyntaxError as e:
            yield path, f"{path} does not compile: {e.message} (line {e.lineno})"


STRUCTURAL_RULES: list[Callable[[dict[str, Any]], Iterator[Failure]]] = [
    _check_required,
    _check_stylesheet,
    _check_snippets,
    _check_settings,
    _check_blocks,
]

CONTENT_RULES: list[Callable[[dict[str, Any]], Iterator[Failure]]] = [
    _check_unique_ids,
    _check_setting_variants,
    _check_max_blocks,
    _check_presets,
    _check_snippet_keys,
    _check_compiles,
]


def _failures(candidate: Any) -> Iterator[Failure]:
    """Yield failures in rule order.

    Content rules assume a sound structure, so they only run once every
    structural rule has passed.
    """
    prepared, failure = _prepare(candidate)
    if failure:
        yield failure
        return

    structural_ok = True
    for rule in STRUCTURAL_RULES:
        for failure in rule(prepared):
            structural_ok = False
            yield failure
    if not structural_ok:
        return

    for rule in CONTENT_RULES:
        yield from rule(prepared)


def validate(candidate: Any) -> None:
    """Reject a candidate that breaks any rule.

    Args:
        candidate: The author submission
            (``{type, name, schema, markup, stylesheet, snippets?, settings?}``).

    Raises:
        TemplateValidationError: On the first failing rule.
    """
    for field, reason in _failures(candidate):
        logger.info("Template rejected", field=field, reason=reason)
        raise TemplateValidationError(reason, field=field)


def validate_or_errors(candidate: Any) -> list[str]:
    """Every failing rule's reason, for editor feedback. Empty when valid."""
    return [reason for _, reason in _failures(candidate)]


def parse_candidate(candidate: Any) -> TemplateCandidate:
    """Validate a candidate and build its model.

    A markup-embedded schema tag is always removed from the markup; its body
    becomes the schema only when ``schema`` is absent.

    Raises:
        TemplateValidationError: If the candidate is rejected.
    """
    if isinstance(candidate, dict) and isinstance(candidate.get("markup"), str):
        embedded, stripped = split_schema_tag(candidate["markup"])
        if embedded is not None:
            candidate = {**candidate, "markup": stripped}
            if candidate.get("schema") is None:
                candidate["schema"] = embedded

    validate(candidate)
    prepared, _ = _prepare(candidate)
    prepared["stylesheet"] = prepared.get("stylesheet") or ""
    prepared["snippets"] = prepared.get("snippets") or {}
    prepared["settings"] = prepared.get("settings") or {}

    if not _non_empty_str(prepared.get("type")):
        raise TemplateValidationError("type is required", field="type")

    try:
        return TemplateCandidate.model_validate(prepared)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(loc) for loc in first.get("loc", []))
        raise TemplateValidationError(first.get("msg", "Invalid value"), field=field) from e
