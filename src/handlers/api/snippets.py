"""Snippets API handler (authenticated)."""

import json
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from pagecraft.models.snippet import CreateSnippetRequest, UpdateSnippetRequest
from pagecraft.services.snippet_resolver import SnippetResolver
from pagecraft.utils.auth import get_auth_context, require_tenant_access
from pagecraft.utils.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from pagecraft.utils.responses import (
    conflict,
    created,
    error,
    forbidden,
    not_found,
    success,
    validation_error,
)

logger = structlog.get_logger()


def handler(event: dict[str, Any], context: Any) -> dict:
    """Handle snippet API requests.

    Routes:
        GET    /tenants/{tenant_id}/snippets
        POST   /tenants/{tenant_id}/snippets
        GET    /tenants/{tenant_id}/snippets/{key}
        PUT    /tenants/{tenant_id}/snippets/{key}
        DELETE /tenants/{tenant_id}/snippets/{key}
    """
    try:
        http_method = event.get("httpMethod", "").upper()
        path_params = event.get("pathParameters", {}) or {}
        tenant_id = path_params.get("tenant_id")
        key = path_params.get("key")

        auth = get_auth_context(event)
        if not tenant_id:
            return error("tenant_id is required", 400)
        require_tenant_access(auth, tenant_id)

        resolver = SnippetResolver()

        if http_method == "GET" and key:
            return get_snippet(resolver, tenant_id, key)
        elif http_method == "GET":
            return list_snippets(resolver, tenant_id, event)
        elif http_method == "POST":
            return create_snippet(resolver, tenant_id, event)
        elif http_method == "PUT" and key:
            return update_snippet(resolver, tenant_id, key, event)
        elif http_method == "DELETE" and key:
            return delete_snippet(resolver, tenant_id, key)
        else:
            return error("Method not allowed", 405)

    except ValidationError as e:
        return validation_error(e.errors, message=e.message)
    except NotFoundError as e:
        return not_found(e.resource_type, e.resource_id)
    except UnauthorizedError as e:
        return error(e.message, 401, error_code=e.error_code)
    except ForbiddenError as e:
        return forbidden(e.message)
    except ConflictError as e:
        return conflict(e.message)
    except ValueError as e:
        return error(str(e), 400)
    except Exception as e:
        logger.exception("Snippets handler error", error=str(e))
        return error("Internal server error", 500)


def list_snippets(resolver: SnippetResolver, tenant_id: str, event: dict) -> dict:
    """List or search the snippets a tenant sees."""
    query_params = event.get("queryStringParameters", {}) or {}
    query = query_params.get("q")

    if query:
        snippets = resolver.search(tenant_id, query)
    else:
        include_global = query_params.get("include_global", "true").lower() != "false"
        snippets = resolver.list(tenant_id, include_global=include_global)

    return success({"items": [s.model_dump(mode="json") for s in snippets]})


def get_snippet(resolver: SnippetResolver, tenant_id: str, key: str) -> dict:
    """Get the snippet a tenant sees under a key."""
    snippet = resolver.get_snippet(tenant_id, key)
    if not snippet:
        return not_found("Snippet", key)
    return success(snippet.model_dump(mode="json"))


def create_snippet(resolver: SnippetResolver, tenant_id: str, event: dict) -> dict:
    """Store a snippet, suffixing its key if different content already holds it."""
    try:
        body = json.loads(event.get("body") or "{}")
        request = CreateSnippetRequest.model_validate(body)
    except PydanticValidationError as e:
        logger.warning("Snippet request validation failed", errors=e.errors())
        return validation_error(ValidationError.from_pydantic(e).errors)
    except json.JSONDecodeError:
        return error("Invalid JSON body", 400)

    snippet = resolver.put(
        tenant_id,
        request.key,
        request.markup,
        name=request.name,
        description=request.description,
    )

    return created({
        **snippet.model_dump(mode="json"),
        "requested_key": request.key,
    })


def update_snippet(resolver: SnippetResolver, tenant_id: str, key: str, event: dict) -> dict:
    """Overwrite an existing snippet."""
    try:
        body = json.loads(event.get("body") or "{}")
        request = UpdateSnippetRequest.model_validate(body)
    except PydanticValidationError as e:
        logger.warning("Snippet update validation failed", errors=e.errors())
        return validation_error(ValidationError.from_pydantic(e).errors)
    except json.JSONDecodeError:
        return error("Invalid JSON body", 400)

    snippet = resolver.update(
        tenant_id,
        key,
        request.markup,
        name=request.name,
        description=request.description,
    )
    return success(snippet.model_dump(mode="json"))


def delete_snippet(resolver: SnippetResolver, tenant_id: str, key: str) -> dict:
    """Delete a tenant's own snippet."""
    if not resolver.delete(tenant_id, key):
        return not_found("Snippet", key)
    return success({"deleted": True, "key": key})
