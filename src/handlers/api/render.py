"""Rendering API handler (authenticated).

Returns rendered HTML for editor previews. Rendering itself never fails:
broken sections come back as diagnostic fragments inside a 200 response.
"""

import asyncio
import json
from collections.abc import Coroutine
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from pagecraft.models.section import RenderBlockRequest, RenderPageRequest, RenderSectionRequest
from pagecraft.services.page_renderer import PageRenderer
from pagecraft.services.render_engine import get_render_engine
from pagecraft.utils.auth import get_auth_context, require_tenant_access
from pagecraft.utils.exceptions import ForbiddenError, UnauthorizedError, ValidationError
from pagecraft.utils.responses import error, forbidden, html, validation_error

logger = structlog.get_logger()


def handler(event: dict[str, Any], context: Any) -> dict:
    """Handle rendering API requests.

    Routes:
        POST /tenants/{tenant_id}/render/section
        POST /tenants/{tenant_id}/render/block
        POST /tenants/{tenant_id}/render/page
    """
    try:
        http_method = event.get("httpMethod", "").upper()
        path = event.get("path", "")
        path_params = event.get("pathParameters", {}) or {}
        tenant_id = path_params.get("tenant_id")

        auth = get_auth_context(event)
        if not tenant_id:
            return error("tenant_id is required", 400)
        require_tenant_access(auth, tenant_id)

        if http_method != "POST":
            return error("Method not allowed", 405)

        try:
            body = json.loads(event.get("body") or "{}")
        except json.JSONDecodeError:
            return error("Invalid JSON body", 400)

        if path.endswith("/render/section"):
            return render_section(tenant_id, body)
        elif path.endswith("/render/block"):
            return render_block(tenant_id, body)
        elif path.endswith("/render/page"):
            return render_page(tenant_id, body)
        else:
            return error("Not found", 404)

    except PydanticValidationError as e:
        return validation_error(ValidationError.from_pydantic(e).errors)
    except UnauthorizedError as e:
        return error(e.message, 401, error_code=e.error_code)
    except ForbiddenError as e:
        return forbidden(e.message)
    except ValueError as e:
        return error(str(e), 400)
    except Exception as e:
        logger.exception("Render handler error", error=str(e))
        return error("Internal server error", 500)


def _run(coro: Coroutine) -> str:
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def render_section(tenant_id: str, body: dict) -> dict:
    """Render one section instance."""
    request = RenderSectionRequest.model_validate(body)
    engine = get_render_engine()
    return html(_run(engine.render_section(tenant_id, request.section, request.section_id)))


def render_block(tenant_id: str, body: dict) -> dict:
    """Render one block with its own sub-template."""
    request = RenderBlockRequest.model_validate(body)
    engine = get_render_engine()
    return html(_run(engine.render_block(
        tenant_id,
        request.section_type,
        request.block,
        request.block_id,
        section_settings=request.section_settings,
    )))


def render_page(tenant_id: str, body: dict) -> dict:
    """Render a page body, or a full HTML document."""
    request = RenderPageRequest.model_validate(body)
    renderer = PageRenderer(get_render_engine())

    if request.document:
        result = _run(renderer.render_document(tenant_id, request.page, title=request.title))
    else:
        result = _run(renderer.render_page(tenant_id, request.page))

    logger.info("Page render request", tenant_id=tenant_id, sections=len(request.page.order))
    return html(result)
