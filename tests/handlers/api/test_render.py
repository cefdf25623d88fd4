"""Tests for rendering endpoints."""

import json

TENANT_ID = "test-tenant-456"
BASE_PATH = f"/tenants/{TENANT_ID}/render"


def _save_hero(hero_candidate):
    from pagecraft.services.template_store import TemplateStore

    TemplateStore().save(TENANT_ID, hero_candidate)


def _render(api_gateway_event, handler, kind, body):
    event = api_gateway_event(
        method="POST",
        path=f"{BASE_PATH}/{kind}",
        path_params={"tenant_id": TENANT_ID},
        body=body,
    )
    return handler(event, None)


class TestRenderSection:
    """Tests for POST /tenants/{tenant_id}/render/section."""

    def test_render_section(self, dynamodb_table, api_gateway_event, hero_candidate):
        """Test a section renders to an HTML response."""
        from api.render import handler

        _save_hero(hero_candidate)

        response = _render(api_gateway_event, handler, "section", {
            "section_id": "hero-1",
            "section": {"type": "hero", "settings": {"heading": "Hello there"}},
        })

        assert response["statusCode"] == 200
        assert response["headers"]["Content-Type"].startswith("text/html")
        assert '<h1 class="hero__heading">Hello there</h1>' in response["body"]
        assert 'data-section-id="hero-1"' in response["body"]

    def test_render_missing_type(self, dynamodb_table, api_gateway_event):
        """Test an unknown type still returns 200 with a placeholder."""
        from api.render import handler

        response = _render(api_gateway_event, handler, "section", {
            "section_id": "s1",
            "section": {"type": "ghost"},
        })

        assert response["statusCode"] == 200
        assert "Section not found: ghost" in response["body"]

    def test_render_invalid_request(self, dynamodb_table, api_gateway_event):
        """Test a request without a section id returns 400."""
        from api.render import handler

        response = _render(api_gateway_event, handler, "section", {"section": {"type": "hero"}})

        assert response["statusCode"] == 400
        assert json.loads(response["body"])["error_code"] == "VALIDATION_ERROR"

    def test_render_forbidden(self, dynamodb_table, api_gateway_event):
        """Test rendering another tenant's templates is forbidden."""
        from api.render import handler

        event = api_gateway_event(
            method="POST",
            path="/tenants/not-mine/render/section",
            path_params={"tenant_id": "not-mine"},
            body={"section_id": "s1", "section": {"type": "hero"}},
        )

        assert handler(event, None)["statusCode"] == 403

    def test_get_not_allowed(self, dynamodb_table, api_gateway_event):
        """Test only POST is accepted."""
        from api.render import handler

        event = api_gateway_event(
            method="GET",
            path=f"{BASE_PATH}/section",
            path_params={"tenant_id": TENANT_ID},
        )

        assert handler(event, None)["statusCode"] == 405


class TestRenderBlock:
    """Tests for POST /tenants/{tenant_id}/render/block."""

    def test_render_block(self, dynamodb_table, api_gateway_event, hero_candidate):
        """Test a single block renders with its sub-template."""
        from api.render import handler

        _save_hero(hero_candidate)

        response = _render(api_gateway_event, handler, "block", {
            "section_type": "hero",
            "block_id": "button-1",
            "block": {"type": "button", "settings": {"label": "Buy", "link": "/buy"}},
        })

        assert response["statusCode"] == 200
        assert response["body"] == (
            '<div class="block" data-block-id="button-1" data-block-type="button">'
            '<a class="btn" href="/buy">Buy</a></div>'
        )


class TestRenderPage:
    """Tests for POST /tenants/{tenant_id}/render/page."""

    def test_render_page(self, dynamodb_table, api_gateway_event, hero_candidate):
        """Test sections render in page order."""
        from api.render import handler

        _save_hero(hero_candidate)

        response = _render(api_gateway_event, handler, "page", {
            "page": {
                "sections": {
                    "a": {"type": "hero", "settings": {"heading": "First"}},
                    "b": {"type": "hero", "settings": {"heading": "Second"}},
                },
                "order": ["b", "a", "c"],
            },
        })

        body = response["body"]
        assert response["statusCode"] == 200
        assert body.index(">Second<") < body.index(">First<")
        assert "Section data not found: c" in body

    def test_render_page_with_malformed_section(self, dynamodb_table, api_gateway_event, hero_candidate):
        """Test one invalid section does not fail the whole page."""
        from api.render import handler

        _save_hero(hero_candidate)

        response = _render(api_gateway_event, handler, "page", {
            "page": {
                "sections": {
                    "a": {"type": "hero", "settings": {"heading": "Kept"}},
                    "b": {"type": "hero", "settings": None},
                },
                "order": ["a", "b"],
            },
        })

        body = response["body"]
        assert response["statusCode"] == 200
        assert ">Kept</h1>" in body
        assert "Failed to render section: hero" in body

    def test_render_document(self, dynamodb_table, api_gateway_event):
        """Test a full document is returned when requested."""
        from api.render import handler

        response = _render(api_gateway_event, handler, "page", {
            "page": {"sections": {}, "order": []},
            "document": True,
            "title": "Home",
        })

        assert response["body"].startswith("<!DOCTYPE html>")
        assert "<title>Home</title>" in response["body"]
