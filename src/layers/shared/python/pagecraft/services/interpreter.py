"""Per-tenant template interpreter.

Section markup is evaluated by a sandboxed Jinja2 environment extended with
the storefront tags and filters authors expect:

    {% schema %}...{% endschema %}           discarded
    {% style %}...{% endstyle %}             literal body inside <style>
    {% stylesheet %}...{% endstylesheet %}   same as style
    {% javascript %}...{% endjavascript %}   literal body inside <script>
    {% render 'key', title: heading %}       snippet with the current scope

Snippets resolve through a loader bound to the tenant, so ``include`` and
``render`` see the tenant's snippets first and the global ones second. An
unknown snippet renders as nothing.
"""

import json
import re
import threading
from collections.abc import Callable
from functools import partial
from typing import Any
from urllib.parse import urlencode

import structlog
from jinja2 import BaseLoader, ChainableUndefined, Undefined, nodes
from jinja2.ext import Extension
from jinja2.sandbox import SandboxedEnvironment

from pagecraft.models.section import ShopContext
from pagecraft.services.snippet_resolver import SnippetResolver

logger = structlog.get_logger()

_SCHEMA_BLOCK = re.compile(
    r"\{%-?\s*schema\s*-?%\}.*?\{%-?\s*endschema\s*-?%\}",
    re.DOTALL,
)
_STYLE_BLOCK = re.compile(
    r"\{%-?\s*(?P<tag>stylesheet|style)\s*-?%\}(?P<body>.*?)\{%-?\s*end(?P=tag)\s*-?%\}",
    re.DOTALL,
)
_SCRIPT_BLOCK = re.compile(
    r"\{%-?\s*javascript\s*-?%\}(?P<body>.*?)\{%-?\s*endjavascript\s*-?%\}",
    re.DOTALL,
)
_MONEY_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")
_HANDLE_STRIP = re.compile(r"[^a-z0-9]+")
_SIZE = re.compile(r"^(\d*)x(\d*)$")


def _literal(open_tag: str, close_tag: str) -> Callable[[re.Match], str]:
    def replace(match: re.Match) -> str:
        return f"{open_tag}{{% raw %}}{match.group('body')}{{% endraw %}}{close_tag}"

    return replace


class StorefrontExtension(Extension):
    """Storefront tags: schema, style, stylesheet, javascript and render."""

    tags = {"schema", "style", "stylesheet", "javascript", "render"}

    def preprocess(self, source: str, name: str | None, filename: str | None = None) -> str:
        # Keep line numbers stable for syntax errors further down
        source = _SCHEMA_BLOCK.sub(lambda m: "\n" * m.group(0).count("\n"), source)
        source = _STYLE_BLOCK.sub(_literal("<style>", "</style>"), source)
        return _SCRIPT_BLOCK.sub(_literal("<script>", "</script>"), source)

    def parse(self, parser):
        token = next(parser.stream)
        lineno = token.lineno
        if token.value == "render":
            return self._parse_render(parser, lineno)

        body = parser.parse_statements((f"name:end{token.value}",), drop_needle=True)
        if token.value == "schema":
            return nodes.Output([], lineno=lineno)

        if token.value == "javascript":
            open_tag, close_tag = "<script>", "</script>"
        else:
            open_tag, close_tag = "<style>", "</style>"
        return [
            nodes.Output([nodes.TemplateData(open_tag)], lineno=lineno),
            *body,
            nodes.Output([nodes.TemplateData(close_tag)], lineno=lineno),
        ]

    def _parse_render(self, parser, lineno: int):
        snippet = parser.parse_expression()
        pairs = []
        while parser.stream.skip_if("comma"):
            key = parser.stream.expect("name")
            if not parser.stream.skip_if("colon"):
                parser.stream.expect("assign")
            value = parser.parse_expression()
            pairs.append(nodes.Pair(nodes.Const(key.value), value, lineno=key.lineno))

        call = self.call_method(
            "_render_snippet",
            [snippet, nodes.Dict(pairs, lineno=lineno), nodes.DerivedContextReference()],
            lineno=lineno,
        )
        return nodes.Output([call], lineno=lineno)

    def _render_snippet(self, key: Any, arguments: dict[str, Any], context) -> str:
        if isinstance(key, Undefined) or not key:
            return ""
        template = self.environment.get_template(str(key))
        variables = dict(context.get_all())
        variables.update(arguments)
        return template.render(variables)


class SnippetLoader(BaseLoader):
    """Loads snippet sources for one tenant.

    Unknown keys load as an empty template. Sources are re-read on every
    lookup so snippet edits apply without invalidating the interpreter.
    """

    def __init__(self, tenant_id: str, resolver: SnippetResolver | None = None):
        self.tenant_id = tenant_id
        self.resolver = resolver

    def get_source(self, environment, template: str):
        source = None
        if self.resolver is not None:
            source = self.resolver.get(self.tenant_id, template)
        if source is None:
            logger.warning("Snippet not found", tenant_id=self.tenant_id, key=template)
            source = ""
        return source, None, lambda: False


class TemplateEnvironment(SandboxedEnvironment):
    """Sandboxed environment where ``a.b`` prefers the key ``b`` of a mapping.

    Settings named ``items`` or ``values`` must not resolve to dict methods.
    """

    def getattr(self, obj: Any, attribute: str) -> Any:
        if isinstance(obj, dict) and attribute in obj:
            return obj[attribute]
        return super().getattr(obj, attribute)


def _is_absolute(url: str) -> bool:
    return url.startswith(("http://", "https://", "//", "data:"))


def asset_url(value: Any, shop: ShopContext) -> str:
    """URL of a theme asset on the CDN."""
    if isinstance(value, Undefined) or value is None or value == "":
        return ""
    path = str(value)
    if _is_absolute(path):
        return path
    base = shop.asset_base_url.rstrip("/")
    return f"{base}/{shop.tenant_id}/assets/{path.lstrip('/')}"


def image_url(
    value: Any,
    size: str | None = None,
    shop: ShopContext | None = None,
    width: int | None = None,
    height: int | None = None,
) -> str:
    """URL of an image, optionally resized.

    ``value`` may be a path, an absolute URL, or an image object with a
    ``src`` or ``url`` key. ``size`` accepts ``"300x"``, ``"x200"`` or
    ``"300x200"``.
    """
    if isinstance(value, dict):
        value = value.get("src") or value.get("url")
    if isinstance(value, Undefined) or not value:
        return ""

    src = str(value)
    if not _is_absolute(src) and shop is not None:
        base = shop.resolved_image_base_url.rstrip("/")
        src = f"{base}/{shop.tenant_id}/images/{src.lstrip('/')}"

    if size:
        match = _SIZE.match(str(size))
        if match:
            width = width or (int(match.group(1)) if match.group(1) else None)
            height = height or (int(match.group(2)) if match.group(2) else None)

    params = {k: v for k, v in (("width", width), ("height", height)) if v}
    if not params:
        return src
    separator = "&" if "?" in src else "?"
    return f"{src}{separator}{urlencode(params)}"


def _format_amount(amount: float, kind: str) -> str:
    if kind == "amount_no_decimals":
        return f"{round(amount):,}"
    if kind == "amount_with_comma_separator":
        return f"{amount:,.2f}".replace(",", " ").replace(".", ",").replace(" ", ".")
    if kind == "amount_no_decimals_with_comma_separator":
        return f"{round(amount):,}".replace(",", ".")
    return f"{amount:,.2f}"


def money(value: Any, shop: ShopContext) -> str:
    """Format an amount in major units with the shop's money format.

    Non-numeric values are returned unchanged; missing values render empty.
    """
    if isinstance(value, Undefined) or value is None or value == "":
        return ""
    if isinstance(value, bool):
        return str(value)
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return str(value)

    return _MONEY_PLACEHOLDER.sub(
        lambda m: _format_amount(amount, m.group(1)),
        shop.money_format,
    )


def money_with_currency(value: Any, shop: ShopContext) -> str:
    """Format an amount like ``money`` and append the currency code."""
    formatted = money(value, shop)
    if not formatted:
        return ""
    return f"{formatted} {shop.currency}"


def to_json(value: Any) -> str:
    """Serialize a value as JSON."""
    if isinstance(value, Undefined):
        value = None
    return json.dumps(value, default=str)


def default(value: Any, default_value: Any = "", *, allow_false: bool = False) -> Any:
    """Substitute ``default_value`` for blank values.

    Blank means undefined, None, an empty string or collection, and False
    unless ``allow_false`` is set.
    """
    if isinstance(value, Undefined) or value is None:
        return default_value
    if value is False:
        return value if allow_false else default_value
    if isinstance(value, (str, list, tuple, dict)) and len(value) == 0:
        return default_value
    return value


def handle(value: Any) -> str:
    """Turn a title into a URL handle: ``"Summer Sale!"`` -> ``"summer-sale"``."""
    if isinstance(value, Undefined) or value is None:
        return ""
    return _HANDLE_STRIP.sub("-", str(value).lower()).strip("-")


def create_interpreter(
    tenant_id: str,
    resolver: SnippetResolver | None = None,
    shop: ShopContext | None = None,
) -> TemplateEnvironment:
    """Build the interpreter for one tenant.

    Args:
        tenant_id: The tenant whose snippets the loader resolves.
        resolver: Snippet resolver. Without one, every snippet is empty.
        shop: Tenant globals used by the URL and money filters.

    Returns:
        A sandboxed environment with the storefront tags and filters.
    """
    shop = shop or ShopContext(tenant_id=tenant_id)
    env = TemplateEnvironment(
        loader=SnippetLoader(tenant_id, resolver),
        autoescape=False,
        undefined=ChainableUndefined,
        extensions=[StorefrontExtension],
    )
    env.filters.update(
        {
            "asset_url": partial(asset_url, shop=shop),
            "image_url": partial(image_url, shop=shop),
            "img_url": partial(image_url, shop=shop),
            "money": partial(money, shop=shop),
            "money_with_currency": partial(money_with_currency, shop=shop),
            "json": to_json,
            "default": default,
            "handle": handle,
        }
    )
    env.globals["shop"] = shop.to_template_globals()
    return env


_syntax_env: TemplateEnvironment | None = None
_syntax_lock = threading.Lock()


def check_syntax(source: str) -> None:
    """Parse template source without evaluating it.

    Raises:
        jinja2.TemplateSyntaxError: If the source does not compile.
    """
    global _syntax_env
    if _syntax_env is None:
        with _syntax_lock:
            if _syntax_env is None:
                _syntax_env = create_interpreter("__syntax__")
    _syntax_env.parse(source)


class InterpreterRegistry:
    """Tenant -> interpreter cache with atomic get-or-create.

    Nothing is invalidated automatically. Callers that change a tenant's shop
    profile must call ``invalidate``.
    """

    def __init__(self):
        self._interpreters: dict[str, TemplateEnvironment] = {}
        self._lock = threading.Lock()

    def get_or_create(
        self,
        tenant_id: str,
        factory: Callable[[str], TemplateEnvironment],
    ) -> TemplateEnvironment:
        """Get the tenant's interpreter, building it with ``factory`` if absent."""
        with self._lock:
            interpreter = self._interpreters.get(tenant_id)
            if interpreter is None:
                interpreter = factory(tenant_id)
                self._interpreters[tenant_id] = interpreter
                logger.info("Interpreter created", tenant_id=tenant_id)
            return interpreter

    def invalidate(self, tenant_id: str) -> bool:
        """Drop a tenant's interpreter. Returns True if one was cached."""
        with self._lock:
            removed = self._interpreters.pop(tenant_id, None) is not None
        if removed:
            logger.info("Interpreter invalidated", tenant_id=tenant_id)
        return removed

    def clear(self) -> None:
        """Drop every cached interpreter."""
        with self._lock:
            self._interpreters.clear()

    def __contains__(self, tenant_id: str) -> bool:
        with self._lock:
            return tenant_id in self._interpreters

    def __len__(self) -> int:
        with self._lock:
            return len(self._interpreters)
