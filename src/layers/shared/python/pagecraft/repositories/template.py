"""Section template repository for DynamoDB operations."""

from pagecraft.models.base import tenant_pk
from pagecraft.models.template import SectionTemplate
from pagecraft.repositories.base import BaseRepository


class TemplateRepository(BaseRepository[SectionTemplate]):
    """Repository for SectionTemplate entities."""

    def __init__(self, table_name: str | None = None):
        """Initialize template repository."""
        super().__init__(SectionTemplate, table_name)

    def get_by_type(self, tenant_id: str, template_type: str) -> SectionTemplate | None:
        """Get a tenant's template by section type.

        Args:
            tenant_id: The tenant ID.
            template_type: The section type.

        Returns:
            SectionTemplate or None if not found.
        """
        return self.get(pk=tenant_pk(tenant_id), sk=f"TEMPLATE#{template_type}")

    def list_by_tenant(self, tenant_id: str) -> list[SectionTemplate]:
        """List every template of a tenant."""
        return self.query_all(pk=tenant_pk(tenant_id), sk_begins_with="TEMPLATE#")

    def create_template(self, template: SectionTemplate) -> SectionTemplate:
        """Create a new template (fails if the type is taken)."""
        return self.create(template)

    def update_template(self, template: SectionTemplate) -> SectionTemplate:
        """Update an existing template with optimistic locking."""
        return self.update(template)

    def delete_template(self, tenant_id: str, template_type: str) -> bool:
        """Delete a template.

        Returns:
            True if deleted, False if not found.
        """
        return self.delete(pk=tenant_pk(tenant_id), sk=f"TEMPLATE#{template_type}")
