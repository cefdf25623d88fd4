"""Snippet model."""

import re
from typing import ClassVar

from pydantic import BaseModel as PydanticBaseModel, Field

from pagecraft.models.base import BaseModel, tenant_pk

GLOBAL_TENANT_ID = "__global__"
SNIPPET_KEY_MAX_LENGTH = 64
SNIPPET_KEY_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def is_valid_snippet_key(key: object) -> bool:
    """Check that a key is kebab-case and short enough."""
    return (
        isinstance(key, str)
        and 0 < len(key) <= SNIPPET_KEY_MAX_LENGTH
        and SNIPPET_KEY_PATTERN.match(key) is not None
    )


class Snippet(BaseModel):
    """A reusable template fragment.

    Key pattern:
        PK: TENANT#{tenant_id}
        SK: SNIPPET#{key}
    """

    _pk_prefix: ClassVar[str] = "TENANT#"
    _sk_prefix: ClassVar[str] = "SNIPPET#"

    tenant_id: str = Field(..., description="Owning tenant, or __global__")
    key: str = Field(
        ...,
        min_length=1,
        max_length=SNIPPET_KEY_MAX_LENGTH,
        pattern=SNIPPET_KEY_PATTERN.pattern,
    )
    name: str | None = Field(None, max_length=255)
    markup: str = Field(default="", description="Template source")
    description: str | None = Field(None, max_length=1000)

    @property
    def is_global(self) -> bool:
        """Whether this snippet is shared with every tenant."""
        return self.tenant_id == GLOBAL_TENANT_ID

    def get_pk(self) -> str:
        """Get partition key: TENANT#{tenant_id}."""
        return tenant_pk(self.tenant_id)

    def get_sk(self) -> str:
        """Get sort key: SNIPPET#{key}."""
        return f"SNIPPET#{self.key}"


class CreateSnippetRequest(PydanticBaseModel):
    """Request model for creating a snippet."""

    key: str = Field(..., min_length=1, max_length=SNIPPET_KEY_MAX_LENGTH)
    markup: str
    name: str | None = Field(None, max_length=255)
    description: str | None = Field(None, max_length=1000)


class UpdateSnippetRequest(PydanticBaseModel):
    """Request model for overwriting a snippet."""

    markup: str
    name: str | None = Field(None, max_length=255)
    description: str | None = Field(None, max_length=1000)
