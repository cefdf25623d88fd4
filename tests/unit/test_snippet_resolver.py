"""Tests for SnippetResolver."""

import pytest

from pagecraft.models.snippet import GLOBAL_TENANT_ID, SNIPPET_KEY_MAX_LENGTH, Snippet
from pagecraft.services.snippet_resolver import MAX_SUFFIX_ATTEMPTS, suffixed_key
from pagecraft.utils.exceptions import ConflictError, NotFoundError, ValidationError

TENANT_ID = "test-tenant-456"
OTHER_TENANT_ID = "other-tenant-789"


class TestSuffixedKey:
    """Tests for suffixed_key()."""

    def test_short_key(self):
        """Test the suffix is appended to short keys."""
        assert suffixed_key("card", 3) == "card-3"

    def test_long_key_truncated(self):
        """Test long keys are shortened so the result stays within the limit."""
        key = "a" * SNIPPET_KEY_MAX_LENGTH

        result = suffixed_key(key, 12)

        assert len(result) == SNIPPET_KEY_MAX_LENGTH
        assert result.endswith("-12")

    def test_truncation_never_leaves_double_dash(self):
        """Test truncating at a dash does not produce an invalid key."""
        key = "a" * 61 + "-bc"

        assert suffixed_key(key, 1) == "a" * 61 + "-1"


class TestSnippetLookup:
    """Tests for snippet lookup."""

    def test_get_missing(self, snippet_resolver):
        """Test unknown keys resolve to None."""
        assert snippet_resolver.get(TENANT_ID, "nope") is None

    def test_invalid_key_is_none(self, snippet_resolver):
        """Test invalid keys resolve to None without a lookup error."""
        assert snippet_resolver.get(TENANT_ID, "../etc/passwd") is None

    def test_global_fallback(self, snippet_resolver):
        """Test global snippets are visible to every tenant."""
        snippet_resolver.put(GLOBAL_TENANT_ID, "price", "global price")

        assert snippet_resolver.get(TENANT_ID, "price") == "global price"
        assert snippet_resolver.get(OTHER_TENANT_ID, "price") == "global price"

    def test_tenant_shadows_global(self, snippet_resolver):
        """Test a tenant snippet wins over a global one with the same key."""
        snippet_resolver.put(GLOBAL_TENANT_ID, "price", "global price")
        snippet_resolver.put(TENANT_ID, "price", "tenant price")

        assert snippet_resolver.get(TENANT_ID, "price") == "tenant price"
        assert snippet_resolver.get(OTHER_TENANT_ID, "price") == "global price"

    def test_tenants_isolated(self, snippet_resolver):
        """Test one tenant never sees another tenant's snippets."""
        snippet_resolver.put(TENANT_ID, "secret", "mine")

        assert snippet_resolver.get(OTHER_TENANT_ID, "secret") is None


class TestSnippetPut:
    """Tests for collision-safe writes."""

    def test_put_new_key(self, snippet_resolver):
        """Test a free key is used as requested."""
        snippet = snippet_resolver.put(TENANT_ID, "card", "<div>card</div>", name="Card")

        assert snippet.key == "card"
        assert snippet.name == "Card"
        assert snippet_resolver.get(TENANT_ID, "card") == "<div>card</div>"

    def test_put_same_content_reuses_key(self, snippet_resolver):
        """Test writing identical content is idempotent."""
        first = snippet_resolver.put(TENANT_ID, "card", "same")
        second = snippet_resolver.put(TENANT_ID, "card", "same")

        assert second.key == "card"
        assert second.id == first.id
        assert [s.key for s in snippet_resolver.list(TENANT_ID)] == ["card"]

    def test_put_different_content_gets_suffix(self, snippet_resolver):
        """Test different content never overwrites and lands under key-1."""
        snippet_resolver.put(TENANT_ID, "card", "v1")

        renamed = snippet_resolver.put(TENANT_ID, "card", "v2")

        assert renamed.key == "card-1"
        assert snippet_resolver.get(TENANT_ID, "card") == "v1"
        assert snippet_resolver.get(TENANT_ID, "card-1") == "v2"

    def test_put_picks_lowest_free_suffix(self, snippet_resolver):
        """Test suffixes are probed in order."""
        snippet_resolver.put(TENANT_ID, "card", "v1")
        snippet_resolver.put(TENANT_ID, "card", "v2")

        third = snippet_resolver.put(TENANT_ID, "card", "v3")
        again = snippet_resolver.put(TENANT_ID, "card", "v2")

        assert third.key == "card-2"
        assert again.key == "card-1"

    def test_put_does_not_collide_with_global(self, snippet_resolver):
        """Test a global snippet does not force a tenant write to rename."""
        snippet_resolver.put(GLOBAL_TENANT_ID, "card", "global")

        snippet = snippet_resolver.put(TENANT_ID, "card", "tenant")

        assert snippet.key == "card"

    def test_put_invalid_key(self, snippet_resolver):
        """Test invalid keys are rejected."""
        with pytest.raises(ValidationError):
            snippet_resolver.put(TENANT_ID, "Not A Key", "x")

    def test_put_exhausts_suffixes(self, snippet_resolver, monkeypatch):
        """Test a conflict is raised when every candidate key is taken."""
        taken = Snippet(tenant_id=TENANT_ID, key="card", markup="other")
        monkeypatch.setattr(snippet_resolver.repo, "get_by_key", lambda tenant_id, key: taken)

        with pytest.raises(ConflictError):
            snippet_resolver.put(TENANT_ID, "card", "mine")

    def test_put_probes_bounded_number_of_keys(self, snippet_resolver, monkeypatch):
        """Test probing stops after the attempt limit."""
        probed = []
        taken = Snippet(tenant_id=TENANT_ID, key="card", markup="other")

        def fake_get(tenant_id, key):
            probed.append(key)
            return taken

        monkeypatch.setattr(snippet_resolver.repo, "get_by_key", fake_get)

        with pytest.raises(ConflictError):
            snippet_resolver.put(TENANT_ID, "card", "mine")

        assert len(probed) == MAX_SUFFIX_ATTEMPTS + 1
        assert probed[-1] == f"card-{MAX_SUFFIX_ATTEMPTS}"


class TestSnippetUpdateDelete:
    """Tests for explicit overwrite and delete."""

    def test_update(self, snippet_resolver):
        """Test update overwrites and bumps the version."""
        snippet_resolver.put(TENANT_ID, "card", "v1")

        updated = snippet_resolver.update(TENANT_ID, "card", "v2", description="Second")

        assert updated.version == 2
        assert updated.description == "Second"
        assert snippet_resolver.get(TENANT_ID, "card") == "v2"

    def test_update_missing(self, snippet_resolver):
        """Test updating an unknown snippet raises."""
        with pytest.raises(NotFoundError):
            snippet_resolver.update(TENANT_ID, "card", "v2")

    def test_delete(self, snippet_resolver):
        """Test delete removes the tenant's snippet."""
        snippet_resolver.put(TENANT_ID, "card", "v1")

        assert snippet_resolver.delete(TENANT_ID, "card") is True
        assert snippet_resolver.delete(TENANT_ID, "card") is False
        assert snippet_resolver.get(TENANT_ID, "card") is None

    def test_delete_reveals_global(self, snippet_resolver):
        """Test deleting a shadowing snippet reveals the global one."""
        snippet_resolver.put(GLOBAL_TENANT_ID, "card", "global")
        snippet_resolver.put(TENANT_ID, "card", "tenant")

        snippet_resolver.delete(TENANT_ID, "card")

        assert snippet_resolver.get(TENANT_ID, "card") == "global"


class TestSnippetListing:
    """Tests for list and search."""

    def test_list_merges_global(self, snippet_resolver):
        """Test listing includes unshadowed global snippets, sorted by key."""
        snippet_resolver.put(GLOBAL_TENANT_ID, "badge", "g-badge")
        snippet_resolver.put(GLOBAL_TENANT_ID, "card", "g-card")
        snippet_resolver.put(TENANT_ID, "card", "t-card")

        snippets = snippet_resolver.list(TENANT_ID)

        assert [(s.key, s.is_global) for s in snippets] == [("badge", True), ("card", False)]

    def test_list_without_global(self, snippet_resolver):
        """Test global snippets can be excluded."""
        snippet_resolver.put(GLOBAL_TENANT_ID, "badge", "g-badge")
        snippet_resolver.put(TENANT_ID, "card", "t-card")

        assert [s.key for s in snippet_resolver.list(TENANT_ID, include_global=False)] == ["card"]

    def test_search(self, snippet_resolver):
        """Test search matches key, name and description."""
        snippet_resolver.put(TENANT_ID, "product-card", "x", name="Product card")
        snippet_resolver.put(TENANT_ID, "badge", "y", description="Sale badge for products")
        snippet_resolver.put(TENANT_ID, "footer", "z")

        assert [s.key for s in snippet_resolver.search(TENANT_ID, "PRODUCT")] == ["badge", "product-card"]
        assert len(snippet_resolver.search(TENANT_ID, "")) == 3
