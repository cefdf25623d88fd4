"""Tests for stylesheet scoping."""

import pytest

from pagecraft.services.css_scope import scope, split_selectors

SCOPE = '[data-section-id="s1"]'


class TestScope:
    """Tests for scope()."""

    def test_simple_rule(self):
        """Test a single selector is prefixed."""
        assert scope(".a { color: red; }", "s1") == f"{SCOPE} .a {{ color: red; }}"

    def test_selector_list(self):
        """Test every comma-separated selector is prefixed."""
        assert scope(".a, .b{x:y}", "s1") == f"{SCOPE} .a, {SCOPE} .b{{x:y}}"

    def test_multiple_rules(self):
        """Test each rule is scoped independently."""
        result = scope(".a{}\n.b > p{}", "s1")

        assert result == f"{SCOPE} .a{{}}\n{SCOPE} .b > p{{}}"

    def test_comma_inside_parentheses_does_not_split(self):
        """Test commas inside :is() stay in one selector."""
        result = scope(".x :is(.a, .b) p{}", "s1")

        assert result == f"{SCOPE} .x :is(.a, .b) p{{}}"

    def test_comma_inside_attribute_string_does_not_split(self):
        """Test commas inside quoted attribute values stay in one selector."""
        result = scope('[title="a,b"] {}', "s1")

        assert result == f'{SCOPE} [title="a,b"] {{}}'

    def test_media_prelude_kept_and_nested_rules_scoped(self):
        """Test @media passes through while its rules are scoped."""
        css = "@media (max-width: 600px) { .a { color: red } }"

        result = scope(css, "s1")

        assert result == f"@media (max-width: 600px) {{ {SCOPE} .a {{ color: red }} }}"

    def test_supports_nested_rules_scoped(self):
        """Test @supports rules are scoped like @media rules."""
        result = scope("@supports (display: grid) {.grid{display:grid}}", "s1")

        assert result == f"@supports (display: grid) {{{SCOPE} .grid{{display:grid}}}}"

    def test_nested_group_rules(self):
        """Test group rules nested in group rules are scoped."""
        css = "@media screen { @supports (gap: 1px) { .a{gap:1px} } }"

        result = scope(css, "s1")

        assert f"{SCOPE} .a{{gap:1px}}" in result
        assert result.startswith("@media screen { @supports (gap: 1px) {")

    @pytest.mark.parametrize("css", [
        "@keyframes spin { from { transform: rotate(0) } to { transform: rotate(360deg) } }",
        "@-webkit-keyframes spin { from { opacity: 0 } }",
        "@font-face { font-family: X; src: url(x.woff); }",
        "@page { margin: 1cm; }",
    ])
    def test_verbatim_at_rules(self, css):
        """Test non-group at-rule blocks are copied verbatim."""
        assert scope(css, "s1") == css

    def test_statement_at_rules(self):
        """Test statement at-rules are copied and following rules scoped."""
        css = '@import url("x.css");@charset "utf-8";.a{}'

        assert scope(css, "s1") == f'@import url("x.css");@charset "utf-8";{SCOPE} .a{{}}'

    def test_strings_in_declarations_are_opaque(self):
        """Test braces inside strings never change structure."""
        css = '.a::before { content: "}{,"; } .b{}'

        result = scope(css, "s1")

        assert result == f'{SCOPE} .a::before {{ content: "}}{{,"; }} {SCOPE} .b{{}}'

    def test_escaped_quote_in_string(self):
        """Test backslash escapes do not end a string."""
        css = '.a { content: "\\"}"; }'

        assert scope(css, "s1") == f"{SCOPE} {css}"

    def test_comments_preserved(self):
        """Test comments are kept in place and never parsed."""
        css = "/* .x { } */ .a{}"

        assert scope(css, "s1") == f"/* .x {{ }} */ {SCOPE} .a{{}}"

    def test_unterminated_comment_runs_to_end(self):
        """Test an unterminated comment swallows the rest of input."""
        assert scope(".a{} /* open .b{}", "s1") == f"{SCOPE} .a{{}} /* open .b{{}}"

    def test_unterminated_string_runs_to_end(self):
        """Test an unterminated string does not raise and the block is closed."""
        result = scope('.a { content: "oops }', "s1")

        assert result.startswith(f"{SCOPE} .a {{")
        assert result.endswith("}")

    @pytest.mark.parametrize("selector", [":root", "html", "body"])
    def test_root_selectors_map_to_scope(self, selector):
        """Test document-level selectors become the scope selector itself."""
        assert scope(f"{selector} {{ --c: red; }}", "s1") == f"{SCOPE} {{ --c: red; }}"

    def test_body_descendant(self):
        """Test a body-prefixed selector keeps its descendant part."""
        assert scope("body .x{}", "s1") == f"{SCOPE} .x{{}}"

    def test_htmlfoo_is_not_a_root_selector(self):
        """Test element names that merely start with html are prefixed normally."""
        assert scope("html-widget{}", "s1") == f"{SCOPE} html-widget{{}}"

    def test_scoping_is_stable(self):
        """Test scoping already scoped CSS changes nothing."""
        css = ":root{--a:1} .a, .b{} @media print { .c{} }"

        once = scope(css, "s1")

        assert scope(once, "s1") == once

    def test_instance_id_escaped(self):
        """Test quotes and backslashes in the instance id are escaped in the selector."""
        instance_id = 'we"ird\\id'

        once = scope(".a{} :root{}", instance_id)

        assert once == '[data-section-id="we\\"ird\\\\id"] .a{} [data-section-id="we\\"ird\\\\id"]{}'
        assert scope(once, instance_id) == once

    def test_unbalanced_closing_brace_dropped(self):
        """Test stray closing braces are dropped."""
        assert scope(".a{} } .b{}", "s1") == f"{SCOPE} .a{{}}  {SCOPE} .b{{}}"

    def test_unclosed_block_closed(self):
        """Test a rule left open at end of input is closed."""
        assert scope(".a { color: red", "s1") == f"{SCOPE} .a {{ color: red}}"

    def test_unclosed_group_rule_closed(self):
        """Test an open @media block is closed at end of input."""
        result = scope("@media print { .a { color: red }", "s1")

        assert result == f"@media print {{ {SCOPE} .a {{ color: red }}}}"

    def test_empty_css_unchanged(self):
        """Test empty CSS is returned as-is."""
        assert scope("", "s1") == ""

    def test_empty_instance_id_unchanged(self):
        """Test an empty instance id leaves the CSS alone."""
        assert scope(".a{}", "") == ".a{}"


class TestSplitSelectors:
    """Tests for split_selectors()."""

    def test_keeps_whitespace(self):
        """Test surrounding whitespace stays with each selector."""
        assert split_selectors(".a, .b ") == [".a", " .b "]

    def test_respects_brackets_and_parens(self):
        """Test commas nested in brackets or parentheses do not split."""
        assert split_selectors(":not(.a, .b), [x='1,2']") == [":not(.a, .b)", " [x='1,2']"]
