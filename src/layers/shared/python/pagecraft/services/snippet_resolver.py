"""Per-tenant snippet lookup with collision-safe writes.

Snippets are reusable template fragments pulled into markup with
``{% render 'key' %}`` or ``{% include 'key' %}``. A tenant's own snippet
shadows a global one of the same key. Writing a key that already holds
different content never overwrites it: the new content lands under the
lowest free ``key-N`` suffix instead.
"""

import structlog

from pagecraft.models.snippet import (
    GLOBAL_TENANT_ID,
    SNIPPET_KEY_MAX_LENGTH,
    Snippet,
    is_valid_snippet_key,
)
from pagecraft.repositories.snippet import SnippetRepository
from pagecraft.utils.exceptions import ConflictError, NotFoundError, ValidationError

logger = structlog.get_logger()

MAX_SUFFIX_ATTEMPTS = 100


def suffixed_key(key: str, n: int) -> str:
    """Build ``key-n``, shortening ``key`` so the result stays a valid key."""
    suffix = f"-{n}"
    base = key[: SNIPPET_KEY_MAX_LENGTH - len(suffix)].rstrip("-")
    return f"{base}{suffix}"


class SnippetResolver:
    """Resolves and stores snippets for tenants."""

    def __init__(self, repo: SnippetRepository | None = None):
        """Initialize the snippet resolver.

        Args:
            repo: Snippet repository (created if not provided).
        """
        self.repo = repo or SnippetRepository()
        self.logger = logger.bind(service="snippet_resolver")

    def get_snippet(self, tenant_id: str, key: str) -> Snippet | None:
        """Get the snippet a tenant sees under a key.

        Args:
            tenant_id: The tenant ID.
            key: The snippet key.

        Returns:
            The tenant's snippet, else the global one, else None.
        """
        if not is_valid_snippet_key(key):
            return None

        snippet = self.repo.get_by_key(tenant_id, key)
        if snippet is None and tenant_id != GLOBAL_TENANT_ID:
            snippet = self.repo.get_by_key(GLOBAL_TENANT_ID, key)
        return snippet

    def get(self, tenant_id: str, key: str) -> str | None:
        """Get the template source of a snippet, or None when not found."""
        snippet = self.get_snippet(tenant_id, key)
        return snippet.markup if snippet else None

    def put(
        self,
        tenant_id: str,
        key: str,
        source: str,
        name: str | None = None,
        description: str | None = None,
    ) -> Snippet:
        """Store a snippet without ever overwriting different content.

        Args:
            tenant_id: The tenant ID.
            key: The requested key.
            source: The snippet's template source.
            name: Optional display name.
            description: Optional description.

        Returns:
            The stored snippet. Its ``key`` is the resolved key, which differs
            from the requested one when a collision was resolved.

        Raises:
            ValidationError: If the key is not a valid snippet key.
            ConflictError: If no free suffix could be found.
        """
        if not is_valid_snippet_key(key):
            raise ValidationError(
                message=f"Invalid snippet key: {key}",
                errors=[{
                    "field": "key",
                    "message": "Snippet keys are lowercase kebab-case, at most "
                    f"{SNIPPET_KEY_MAX_LENGTH} characters",
                }],
            )

        for attempt in range(MAX_SUFFIX_ATTEMPTS + 1):
            candidate_key = key if attempt == 0 else suffixed_key(key, attempt)
            stored = self._claim(tenant_id, candidate_key, source, name, description)
            if stored is not None:
                if attempt:
                    self.logger.info(
                        "Snippet collision resolved",
                        tenant_id=tenant_id,
                        requested_key=key,
                        resolved_key=stored.key,
                    )
                return stored
            if attempt == 0:
                self.logger.info("Snippet collision", tenant_id=tenant_id, key=key)

        raise ConflictError(
            f"No free key for snippet '{key}' after {MAX_SUFFIX_ATTEMPTS} attempts",
            conflict_type="snippet_key",
        )

    def _claim(
        self,
        tenant_id: str,
        key: str,
        source: str,
        name: str | None,
        description: str | None,
    ) -> Snippet | None:
        """Reuse ``key`` if it holds ``source``, create it if free, else None."""
        existing = self.repo.get_by_key(tenant_id, key)
        if existing is None:
            snippet = Snippet(
                tenant_id=tenant_id,
                key=key,
                name=name or key,
                markup=source,
                description=description,
            )
            try:
                created = self.repo.create_snippet(snippet)
                self.logger.info("Snippet created", tenant_id=tenant_id, key=key)
                return created
            except ConflictError:
                # Someone else took the key in the meantime
                existing = self.repo.get_by_key(tenant_id, key)
                if existing is None:
                    return None

        if existing.markup == source:
            return existing
        return None

    def update(
        self,
        tenant_id: str,
        key: str,
        source: str,
        name: str | None = None,
        description: str | None = None,
    ) -> Snippet:
        """Explicitly overwrite a tenant's snippet.

        Raises:
            NotFoundError: If the tenant has no snippet under this key.
        """
        snippet = self.repo.get_by_key(tenant_id, key) if is_valid_snippet_key(key) else None
        if snippet is None:
            raise NotFoundError("Snippet", key)

        snippet.markup = source
        if name is not None:
            snippet.name = name
        if description is not None:
            snippet.description = description

        updated = self.repo.update_snippet(snippet)
        self.logger.info("Snippet updated", tenant_id=tenant_id, key=key, version=updated.version)
        return updated

    def delete(self, tenant_id: str, key: str) -> bool:
        """Delete a tenant's own snippet.

        Returns:
            True if deleted, False if not found.
        """
        if not is_valid_snippet_key(key):
            return False
        deleted = self.repo.delete_snippet(tenant_id, key)
        if deleted:
            self.logger.info("Snippet deleted", tenant_id=tenant_id, key=key)
        return deleted

    def search(self, tenant_id: str, query: str) -> list[Snippet]:
        """Find visible snippets whose key, name or description contains ``query``."""
        needle = (query or "").strip().lower()
        snippets = self.list(tenant_id)
        if not needle:
            return snippets
        return [
            s for s in snippets
            if needle in s.key
            or needle in (s.name or "").lower()
            or needle in (s.description or "").lower()
        ]

    # Defined last so the builtin ``list`` stays usable in the annotations above
    def list(self, tenant_id: str, include_global: bool = True) -> list[Snippet]:
        """List the snippets a tenant sees, sorted by key.

        Args:
            tenant_id: The tenant ID.
            include_global: Whether to include unshadowed global snippets.
        """
        snippets = {s.key: s for s in self.repo.list_by_tenant(tenant_id)}
        if include_global and tenant_id != GLOBAL_TENANT_ID:
            for snippet in self.repo.list_by_tenant(GLOBAL_TENANT_ID):
                snippets.setdefault(snippet.key, snippet)
        return [snippets[key] for key in sorted(snippets)]
