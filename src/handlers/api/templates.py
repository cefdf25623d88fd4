"""Section templates API handler (authenticated)."""

import json
from typing import Any

import structlog

from pagecraft.services.render_engine import get_render_engine
from pagecraft.services.template_store import TemplateStore
from pagecraft.services.template_validator import validate_or_errors
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
    """Handle section template API requests.

    Routes:
        GET    /tenants/{tenant_id}/templates
        POST   /tenants/{tenant_id}/templates
        POST   /tenants/{tenant_id}/templates/validate
        GET    /tenants/{tenant_id}/templates/{template_type}
        DELETE /tenants/{tenant_id}/templates/{template_type}
        POST   /tenants/{tenant_id}/templates/{template_type}/presets
    """
    try:
        http_method = event.get("httpMethod", "").upper()
        path = event.get("path", "")
        path_params = event.get("pathParameters", {}) or {}
        tenant_id = path_params.get("tenant_id")
        template_type = path_params.get("template_type")

        auth = get_auth_context(event)
        if not tenant_id:
            return error("tenant_id is required", 400)
        require_tenant_access(auth, tenant_id)

        store = TemplateStore()

        if path.endswith("/templates/validate") and http_method == "POST":
            return validate_template(event)
        elif path.endswith("/presets") and http_method == "POST" and template_type:
            return instantiate_preset(store, tenant_id, template_type, event)
        elif http_method == "GET" and template_type:
            return get_template(store, tenant_id, template_type)
        elif http_method == "GET":
            return list_templates(store, tenant_id)
        elif http_method == "POST":
            return save_template(store, tenant_id, event)
        elif http_method == "DELETE" and template_type:
            return delete_template(store, tenant_id, template_type)
        else:
            return error("Method not allowed", 405)

    except ValidationError as e:
        return validation_error(e.errors, message=e.message)
    except NotFoundError as e:
        return error(e.message, 404, error_code="NOT_FOUND", details=e.details)
    except UnauthorizedError as e:
        return error(e.message, 401, error_code=e.error_code)
    except ForbiddenError as e:
        return forbidden(e.message)
    except ConflictError as e:
        return conflict(e.message)
    except ValueError as e:
        return error(str(e), 400)
    except Exception as e:
        logger.exception("Templates handler error", error=str(e))
        return error("Internal server error", 500)


def _parse_body(event: dict) -> dict:
    try:
        body = json.loads(event.get("body") or "{}")
    except json.JSONDecodeError:
        raise ValueError("Invalid JSON body")
    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object")
    return body


def list_templates(store: TemplateStore, tenant_id: str) -> dict:
    """List a tenant's templates."""
    templates = store.list(tenant_id)
    return success({
        "items": [t.model_dump(mode="json", by_alias=True) for t in templates],
    })


def get_template(store: TemplateStore, tenant_id: str, template_type: str) -> dict:
    """Get a single template by section type."""
    template = store.get(tenant_id, template_type)
    if not template:
        return not_found("SectionTemplate", template_type)
    return success(template.model_dump(mode="json", by_alias=True))


def save_template(store: TemplateStore, tenant_id: str, event: dict) -> dict:
    """Validate and store an authored template."""
    body = _parse_body(event)
    logger.info("Save template request", tenant_id=tenant_id, template_type=body.get("type"))

    template = store.save(tenant_id, body)
    get_render_engine().invalidate_tenant(tenant_id)

    if template.version == 1:
        return created(template.model_dump(mode="json", by_alias=True))
    return success(template.model_dump(mode="json", by_alias=True))


def validate_template(event: dict) -> dict:
    """Check a candidate template without storing it."""
    body = _parse_body(event)
    errors = validate_or_errors(body)
    return success({"valid": not errors, "errors": errors})


def delete_template(store: TemplateStore, tenant_id: str, template_type: str) -> dict:
    """Delete a template."""
    if not store.delete(tenant_id, template_type):
        return not_found("SectionTemplate", template_type)
    get_render_engine().invalidate_tenant(tenant_id)
    return success({"deleted": True, "type": template_type})


def instantiate_preset(
    store: TemplateStore,
    tenant_id: str,
    template_type: str,
    event: dict,
) -> dict:
    """Build a section instance from a preset."""
    body = _parse_body(event)
    instance = store.instantiate_preset(tenant_id, template_type, body.get("preset"))
    return success(instance.model_dump(mode="json"))
