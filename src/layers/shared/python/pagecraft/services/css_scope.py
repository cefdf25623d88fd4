"""Scope a stylesheet's selectors to one rendered section instance.

A minimal tokenizer walks the stylesheet, treating quoted strings and
comments as opaque, and rewrites every selector of every style rule so it
only matches inside ``[data-section-id="<id>"]``. Declarations and at-rule
preludes are never touched.
"""

import re

GROUP_AT_RULES = frozenset({"media", "supports", "container", "layer", "document"})

_AT_NAME = re.compile(r"@([-\w]+)")
_VENDOR_PREFIX = re.compile(r"^-[a-z]+-")
_ROOT_SELECTOR = re.compile(r"^(?::root|html|body)(?![-\w])", re.IGNORECASE)


def css_string_escape(value: str) -> str:
    """Escape a value for use inside a double-quoted CSS string."""
    return (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\a ")
        .replace("\r", "\\d ")
    )


def scope_attribute(instance_id: str) -> str:
    """The attribute selector that identifies a section instance."""
    return f'[data-section-id="{css_string_escape(instance_id)}"]'


def at_rule_name(prelude: str) -> str:
    """Lower-cased at-rule name without any vendor prefix."""
    match = _AT_NAME.match(prelude.lstrip())
    if not match:
        return ""
    return _VENDOR_PREFIX.sub("", match.group(1).lower())


class _Scanner:
    """Cursor over CSS source that knows how to skip opaque tokens."""

    def __init__(self, css: str):
        self.css = css
        self.pos = 0

    @property
    def at_end(self) -> bool:
        return self.pos >= len(self.css)

    def peek(self) -> str:
        return self.css[self.pos]

    def starts_comment(self) -> bool:
        return self.css.startswith("/*", self.pos)

    def read_string(self) -> str:
        """Read a quoted string; an unterminated one runs to end of input."""
        start = self.pos
        quote = self.css[self.pos]
        self.pos += 1
        while self.pos < len(self.css):
            char = self.css[self.pos]
            if char == "\\":
                self.pos += 2
                continue
            self.pos += 1
            if char == quote:
                break
        self.pos = min(self.pos, len(self.css))
        return self.css[start:self.pos]

    def read_comment(self) -> str:
        """Read a comment; an unterminated one runs to end of input."""
        start = self.pos
        end = self.css.find("*/", self.pos + 2)
        self.pos = len(self.css) if end == -1 else end + 2
        return self.css[start:self.pos]

    def read_opaque(self) -> str | None:
        """Read a string or comment at the cursor, if one starts here."""
        if self.at_end:
            return None
        if self.peek() in "\"'":
            return self.read_string()
        if self.starts_comment():
            return self.read_comment()
        return None

    def read_trivia(self) -> str:
        """Read whitespace and comments."""
        start = self.pos
        while not self.at_end:
            if self.peek().isspace():
                self.pos += 1
            elif self.starts_comment():
                self.read_comment()
            else:
                break
        return self.css[start:self.pos]

    def read_prelude(self) -> tuple[str, str]:
        """Read up to the next ``{``, ``}`` or top-level ``;``.

        Returns:
            The prelude text and the terminator (``""`` at end of input).
            The terminator is not consumed.
        """
        parts: list[str] = []
        depth = 0
        while not self.at_end:
            opaque = self.read_opaque()
            if opaque is not None:
                parts.append(opaque)
                continue
            char = self.peek()
            if char in "{}" or (char == ";" and depth == 0):
                return "".join(parts), char
            if char == "(":
                depth += 1
            elif char == ")" and depth:
                depth -= 1
            parts.append(char)
            self.pos += 1
        return "".join(parts), ""

    def read_block_body(self) -> str:
        """Copy a block after its ``{`` through the matching ``}``.

        An unclosed block is closed at end of input.
        """
        parts: list[str] = []
        depth = 1
        while not self.at_end:
            opaque = self.read_opaque()
            if opaque is not None:
                parts.append(opaque)
                continue
            char = self.peek()
            self.pos += 1
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    parts.append(char)
                    return "".join(parts)
            parts.append(char)
        parts.append("}")
        return "".join(parts)


def split_selectors(prelude: str) -> list[str]:
    """Split a selector list on top-level commas, keeping surrounding whitespace."""
    scanner = _Scanner(prelude)
    selectors: list[str] = []
    current: list[str] = []
    depth = 0
    while not scanner.at_end:
        opaque = scanner.read_opaque()
        if opaque is not None:
            current.append(opaque)
            continue
        char = scanner.peek()
        scanner.pos += 1
        if char in "([":
            depth += 1
        elif char in ")]" and depth:
            depth -= 1
        elif char == "," and depth == 0:
            selectors.append("".join(current))
            current = []
            continue
        current.append(char)
    selectors.append("".join(current))
    return selectors


def scope_selector(selector: str, instance_id: str) -> str:
    """Prefix one selector with the scope attribute selector."""
    stripped = selector.strip()
    if not stripped:
        return selector
    leading = selector[: len(selector) - len(selector.lstrip())]
    trailing = selector[len(selector.rstrip()):]
    attribute = scope_attribute(instance_id)

    if stripped.startswith(attribute):
        scoped = stripped
    else:
        root = _ROOT_SELECTOR.match(stripped)
        if root:
            scoped = attribute + stripped[root.end():]
        else:
            scoped = f"{attribute} {stripped}"
    return f"{leading}{scoped}{trailing}"


def _scope_rules(scanner: _Scanner, instance_id: str, nested: bool) -> str:
    """Scope a run of rules until the enclosing block closes."""
    out: list[str] = []
    while True:
        out.append(scanner.read_trivia())
        if scanner.at_end:
            return "".join(out)

        char = scanner.peek()
        if char == "}":
            scanner.pos += 1
            if nested:
                return "".join(out)
            # Unbalanced closing brace at top level
            continue
        if char == ";":
            scanner.pos += 1
            out.append(char)
            continue

        prelude, terminator = scanner.read_prelude()
        is_at_rule = prelude.lstrip().startswith("@")

        if terminator == "{":
            scanner.pos += 1
            if is_at_rule and at_rule_name(prelude) in GROUP_AT_RULES:
                out.append(prelude + "{")
                out.append(_scope_rules(scanner, instance_id, nested=True))
                out.append("}")
            elif is_at_rule:
                out.append(prelude + "{" + scanner.read_block_body())
            else:
                selectors = split_selectors(prelude)
                out.append(",".join(scope_selector(s, instance_id) for s in selectors))
                out.append("{" + scanner.read_block_body())
        elif terminator == ";":
            scanner.pos += 1
            out.append(prelude + ";")
        else:
            out.append(prelude)


def scope(css: str, instance_id: str) -> str:
    """Scope every style rule of a stylesheet to one section instance.

    Args:
        css: The unscoped stylesheet.
        instance_id: The section instance ID.

    Returns:
        The scoped stylesheet. Empty CSS or an empty ID return ``css`` as-is.
    """
    if not css or not instance_id:
        return css
    return _scope_rules(_Scanner(css), instance_id, nested=False)
