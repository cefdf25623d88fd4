"""Snippet repository for DynamoDB operations."""

from pagecraft.models.base import tenant_pk
from pagecraft.models.snippet import Snippet
from pagecraft.repositories.base import BaseRepository


class SnippetRepository(BaseRepository[Snippet]):
    """Repository for Snippet entities."""

    def __init__(self, table_name: str | None = None):
        """Initialize snippet repository."""
        super().__init__(Snippet, table_name)

    def get_by_key(self, tenant_id: str, key: str) -> Snippet | None:
        """Get a snippet stored directly under a tenant.

        Args:
            tenant_id: The tenant ID (or the global tenant).
            key: The snippet key.

        Returns:
            Snippet or None if not found.
        """
        return self.get(pk=tenant_pk(tenant_id), sk=f"SNIPPET#{key}")

    def list_by_tenant(self, tenant_id: str) -> list[Snippet]:
        """List every snippet stored directly under a tenant."""
        return self.query_all(pk=tenant_pk(tenant_id), sk_begins_with="SNIPPET#")

    def create_snippet(self, snippet: Snippet) -> Snippet:
        """Create a snippet.

        Raises:
            ConflictError: If the key is already taken.
        """
        return self.create(snippet)

    def update_snippet(self, snippet: Snippet) -> Snippet:
        """Overwrite a snippet with optimistic locking."""
        return self.update(snippet)

    def delete_snippet(self, tenant_id: str, key: str) -> bool:
        """Delete a snippet.

        Returns:
            True if deleted, False if not found.
        """
        return self.delete(pk=tenant_pk(tenant_id), sk=f"SNIPPET#{key}")
