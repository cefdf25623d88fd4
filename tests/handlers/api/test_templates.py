"""Tests for section template endpoints."""

import copy
import json

TENANT_ID = "test-tenant-456"
BASE_PATH = f"/tenants/{TENANT_ID}/templates"


class TestSaveTemplate:
    """Tests for POST /tenants/{tenant_id}/templates."""

    def test_save_creates(self, dynamodb_table, api_gateway_event, hero_candidate):
        """Test saving a new template returns 201."""
        from api.templates import handler

        event = api_gateway_event(
            method="POST",
            path=BASE_PATH,
            path_params={"tenant_id": TENANT_ID},
            body=hero_candidate,
        )

        response = handler(event, None)

        assert response["statusCode"] == 201
        body = json.loads(response["body"])
        assert body["type"] == "hero"
        assert body["version"] == 1
        assert body["schema"]["max_blocks"] == 3
        assert body["snippets"] == {"hero-badge": "hero-badge"}

    def test_save_again_unchanged(self, dynamodb_table, api_gateway_event, hero_candidate):
        """Test re-saving identical content returns 200 with the same version."""
        from api.templates import handler

        event = api_gateway_event(
            method="POST",
            path=BASE_PATH,
            path_params={"tenant_id": TENANT_ID},
            body=hero_candidate,
        )
        handler(event, None)

        response = handler(event, None)

        assert response["statusCode"] == 200
        assert json.loads(response["body"])["version"] == 1

    def test_save_invalidates_interpreter(self, dynamodb_table, api_gateway_event, hero_candidate):
        """Test saving drops the tenant's cached interpreter."""
        from api.templates import handler
        from pagecraft.services.render_engine import get_render_engine

        engine = get_render_engine()
        engine.interpreter(TENANT_ID)
        assert TENANT_ID in engine.registry

        event = api_gateway_event(
            method="POST",
            path=BASE_PATH,
            path_params={"tenant_id": TENANT_ID},
            body=hero_candidate,
        )
        handler(event, None)

        assert TENANT_ID not in engine.registry

    def test_save_invalid_candidate(self, dynamodb_table, api_gateway_event, hero_candidate):
        """Test a rejected candidate returns 400 with the reason."""
        from api.templates import handler

        candidate = copy.deepcopy(hero_candidate)
        candidate["schema"]["settings"].append({"type": "text", "id": "heading", "label": "Again"})
        event = api_gateway_event(
            method="POST",
            path=BASE_PATH,
            path_params={"tenant_id": TENANT_ID},
            body=candidate,
        )

        response = handler(event, None)

        assert response["statusCode"] == 400
        body = json.loads(response["body"])
        assert body["error_code"] == "VALIDATION_ERROR"
        assert "duplicate setting id 'heading'" in body["message"]
        assert body["details"]["errors"][0]["field"] == "schema.settings"

    def test_save_invalid_json(self, dynamodb_table, api_gateway_event):
        """Test a malformed body returns 400."""
        from api.templates import handler

        event = api_gateway_event(
            method="POST",
            path=BASE_PATH,
            path_params={"tenant_id": TENANT_ID},
            body="{not json",
        )

        response = handler(event, None)

        assert response["statusCode"] == 400

    def test_save_other_tenant_forbidden(self, dynamodb_table, api_gateway_event, hero_candidate):
        """Test users cannot write templates of tenants they do not belong to."""
        from api.templates import handler

        event = api_gateway_event(
            method="POST",
            path="/tenants/not-mine/templates",
            path_params={"tenant_id": "not-mine"},
            body=hero_candidate,
        )

        response = handler(event, None)

        assert response["statusCode"] == 403

    def test_save_without_identity(self, dynamodb_table, api_gateway_event, hero_candidate):
        """Test requests without an authorizer identity return 401."""
        from api.templates import handler

        event = api_gateway_event(
            method="POST",
            path=BASE_PATH,
            path_params={"tenant_id": TENANT_ID},
            body=hero_candidate,
        )
        event["requestContext"] = {}

        response = handler(event, None)

        assert response["statusCode"] == 401
        assert json.loads(response["body"])["error_code"] == "UNAUTHORIZED"


class TestReadTemplates:
    """Tests for GET endpoints."""

    def _save(self, api_gateway_event, candidate):
        from api.templates import handler

        handler(api_gateway_event(
            method="POST",
            path=BASE_PATH,
            path_params={"tenant_id": TENANT_ID},
            body=candidate,
        ), None)

    def test_get_template(self, dynamodb_table, api_gateway_event, hero_candidate):
        """Test getting a template by type."""
        from api.templates import handler

        self._save(api_gateway_event, hero_candidate)
        event = api_gateway_event(
            method="GET",
            path=f"{BASE_PATH}/hero",
            path_params={"tenant_id": TENANT_ID, "template_type": "hero"},
        )

        response = handler(event, None)

        assert response["statusCode"] == 200
        assert json.loads(response["body"])["name"] == "Hero"

    def test_get_missing_template(self, dynamodb_table, api_gateway_event):
        """Test unknown types return 404."""
        from api.templates import handler

        event = api_gateway_event(
            method="GET",
            path=f"{BASE_PATH}/ghost",
            path_params={"tenant_id": TENANT_ID, "template_type": "ghost"},
        )

        response = handler(event, None)

        assert response["statusCode"] == 404

    def test_list_templates(self, dynamodb_table, api_gateway_event, hero_candidate):
        """Test listing a tenant's templates."""
        from api.templates import handler

        self._save(api_gateway_event, hero_candidate)
        event = api_gateway_event(
            method="GET",
            path=BASE_PATH,
            path_params={"tenant_id": TENANT_ID},
        )

        response = handler(event, None)

        assert response["statusCode"] == 200
        items = json.loads(response["body"])["items"]
        assert [item["type"] for item in items] == ["hero"]


class TestValidateTemplate:
    """Tests for POST /tenants/{tenant_id}/templates/validate."""

    def test_validate_valid(self, dynamodb_table, api_gateway_event, hero_candidate):
        """Test a valid candidate reports no errors and is not stored."""
        from api.templates import handler
        from pagecraft.services.template_store import TemplateStore

        event = api_gateway_event(
            method="POST",
            path=f"{BASE_PATH}/validate",
            path_params={"tenant_id": TENANT_ID},
            body=hero_candidate,
        )

        response = handler(event, None)

        assert response["statusCode"] == 200
        assert json.loads(response["body"]) == {"valid": True, "errors": []}
        assert TemplateStore().get(TENANT_ID, "hero") is None

    def test_validate_invalid(self, dynamodb_table, api_gateway_event):
        """Test every structural problem is reported."""
        from api.templates import handler

        event = api_gateway_event(
            method="POST",
            path=f"{BASE_PATH}/validate",
            path_params={"tenant_id": TENANT_ID},
            body={"type": "x", "schema": {"settings": [{"id": "a"}]}},
        )

        response = handler(event, None)

        body = json.loads(response["body"])
        assert body["valid"] is False
        assert "markup is required" in body["errors"]
        assert len(body["errors"]) == 3


class TestPresetAndDelete:
    """Tests for presets and deletion."""

    def _save(self, api_gateway_event, candidate):
        from api.templates import handler

        handler(api_gateway_event(
            method="POST",
            path=BASE_PATH,
            path_params={"tenant_id": TENANT_ID},
            body=candidate,
        ), None)

    def test_instantiate_preset(self, dynamodb_table, api_gateway_event, hero_candidate):
        """Test a preset becomes a section instance."""
        from api.templates import handler

        self._save(api_gateway_event, hero_candidate)
        event = api_gateway_event(
            method="POST",
            path=f"{BASE_PATH}/hero/presets",
            path_params={"tenant_id": TENANT_ID, "template_type": "hero"},
            body={"preset": "Default hero"},
        )

        response = handler(event, None)

        assert response["statusCode"] == 200
        body = json.loads(response["body"])
        assert body["settings"]["heading"] == "Big news"
        assert body["block_order"] == ["button-1"]

    def test_instantiate_unknown_preset(self, dynamodb_table, api_gateway_event, hero_candidate):
        """Test unknown presets return 404."""
        from api.templates import handler

        self._save(api_gateway_event, hero_candidate)
        event = api_gateway_event(
            method="POST",
            path=f"{BASE_PATH}/hero/presets",
            path_params={"tenant_id": TENANT_ID, "template_type": "hero"},
            body={"preset": "Nope"},
        )

        response = handler(event, None)

        assert response["statusCode"] == 404

    def test_delete(self, dynamodb_table, api_gateway_event, hero_candidate):
        """Test deleting a template, then deleting it again."""
        from api.templates import handler

        self._save(api_gateway_event, hero_candidate)
        event = api_gateway_event(
            method="DELETE",
            path=f"{BASE_PATH}/hero",
            path_params={"tenant_id": TENANT_ID, "template_type": "hero"},
        )

        first = handler(event, None)
        second = handler(event, None)

        assert first["statusCode"] == 200
        assert json.loads(first["body"]) == {"deleted": True, "type": "hero"}
        assert second["statusCode"] == 404

    def test_method_not_allowed(self, dynamodb_table, api_gateway_event):
        """Test unsupported methods return 405."""
        from api.templates import handler

        event = api_gateway_event(
            method="PATCH",
            path=BASE_PATH,
            path_params={"tenant_id": TENANT_ID},
        )

        assert handler(event, None)["statusCode"] == 405
