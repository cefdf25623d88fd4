"""Authentication context helpers."""

from dataclasses import dataclass
from typing import Any

import structlog

from pagecraft.utils.exceptions import ForbiddenError, UnauthorizedError

logger = structlog.get_logger()


@dataclass
class AuthContext:
    """Authentication context extracted from API Gateway event.

    Contains user identity and the tenants (shops) the user may act on.
    """

    user_id: str
    email: str | None = None
    tenant_ids: list[str] | None = None
    is_admin: bool = False

    def has_tenant_access(self, tenant_id: str) -> bool:
        """Check if user has access to a specific tenant.

        Args:
            tenant_id: The tenant ID to check.

        Returns:
            True if user has access, False otherwise.
        """
        if self.is_admin:
            return True
        if not self.tenant_ids:
            return False
        return tenant_id in self.tenant_ids


def get_auth_context(event: dict[str, Any]) -> AuthContext:
    """Extract authentication context from API Gateway event.

    Args:
        event: API Gateway event dict.

    Returns:
        AuthContext with user information.

    Raises:
        UnauthorizedError: If authentication context cannot be extracted.
    """
    request_context = event.get("requestContext", {})
    authorizer = request_context.get("authorizer", {}) or {}

    # Lambda authorizer payload v2 nests the context under "lambda"
    context = authorizer
    if "lambda" in authorizer:
        context = authorizer["lambda"]

    user_id = context.get("userId") or context.get("user_id") or context.get("sub")

    if not user_id:
        logger.warning("No user ID in auth context", authorizer=authorizer)
        raise UnauthorizedError("No user ID in authentication context")

    # Tenant IDs may be a comma-separated string or a list
    tenant_ids_raw = context.get("tenantIds") or context.get("tenant_ids")
    tenant_ids = None

    if tenant_ids_raw:
        if isinstance(tenant_ids_raw, str):
            tenant_ids = [t.strip() for t in tenant_ids_raw.split(",") if t.strip()]
        elif isinstance(tenant_ids_raw, list):
            tenant_ids = tenant_ids_raw

    is_admin = context.get("isAdmin", False) or context.get("is_admin", False)
    if isinstance(is_admin, str):
        is_admin = is_admin.lower() == "true"

    return AuthContext(
        user_id=user_id,
        email=context.get("email"),
        tenant_ids=tenant_ids,
        is_admin=is_admin,
    )


def require_tenant_access(auth: AuthContext, tenant_id: str) -> None:
    """Ensure user has access to a tenant.

    Args:
        auth: Authentication context.
        tenant_id: Tenant ID to check access for.

    Raises:
        ForbiddenError: If user doesn't have access.
    """
    if not auth.has_tenant_access(tenant_id):
        logger.warning(
            "Tenant access denied",
            user_id=auth.user_id,
            tenant_id=tenant_id,
            user_tenants=auth.tenant_ids,
        )
        raise ForbiddenError(
            message=f"You don't have access to tenant '{tenant_id}'",
            resource_type="Tenant",
            action="access",
        )
