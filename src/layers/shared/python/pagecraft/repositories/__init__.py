"""DynamoDB repositories for data access."""

from pagecraft.repositories.base import BaseRepository
from pagecraft.repositories.snippet import SnippetRepository
from pagecraft.repositories.template import TemplateRepository

__all__ = [
    "BaseRepository",
    "SnippetRepository",
    "TemplateRepository",
]
