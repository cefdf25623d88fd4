"""Utility functions and helpers."""

from pagecraft.utils.responses import (
    conflict,
    created,
    error,
    forbidden,
    html,
    not_found,
    success,
    validation_error,
)
from pagecraft.utils.auth import get_auth_context, require_tenant_access, AuthContext
from pagecraft.utils.exceptions import (
    PagecraftError,
    NotFoundError,
    ValidationError,
    TemplateValidationError,
    TemplateNotFoundError,
    TemplateEvaluationError,
    ForbiddenError,
    ConflictError,
    UnauthorizedError,
)

__all__ = [
    # Response helpers
    "success",
    "created",
    "error",
    "html",
    "validation_error",
    "not_found",
    "forbidden",
    "conflict",
    # Auth
    "get_auth_context",
    "require_tenant_access",
    "AuthContext",
    # Exceptions
    "PagecraftError",
    "NotFoundError",
    "ValidationError",
    "TemplateValidationError",
    "TemplateNotFoundError",
    "TemplateEvaluationError",
    "ForbiddenError",
    "ConflictError",
    "UnauthorizedError",
]
