"""HTTP surface: auth header, Graph error mapping, bulk leads, error reporting, metrics."""

from types import SimpleNamespace

from pageleads import create_app
from pageleads.config import TestingConfig
from pageleads.utils.error_handlers import handle_rate_limit

from .conftest import FakeGraphSession, graph_error, graph_ok

ALL_SCOPES = ["pages_show_list", "pages_read_engagement", "leads_retrieval", "pages_manage_metadata"]


def scopes_ok():
    return graph_ok(data=[{"permission": p, "status": "granted"} for p in ALL_SCOPES])


def lead_page(page_id="p1", tasks=("ACCESS_LEAD_GEN",)):
    return {"id": page_id, "name": "Page One", "access_token": "EAApage", "tasks": list(tasks)}


# =============================================================================
# Authentication
# =============================================================================


class TestAuthentication:
    def test_missing_bearer_token(self, client):
        response = client.get("/api/facebook/pages")

        assert response.status_code == 401

    def test_malformed_header(self, client):
        response = client.get("/api/facebook/pages", headers={"Authorization": "Token abc"})

        assert response.status_code == 401


# =============================================================================
# Pages
# =============================================================================


class TestPagesResource:
    def test_lists_profile_and_pages(self, client, fake_session, auth_headers):
        fake_session.add("me", graph_ok(id="u1", name="Ada"))
        fake_session.add("me/accounts", graph_ok(data=[lead_page()]))

        response = client.get("/api/facebook/pages", headers=auth_headers)

        assert response.status_code == 200
        body = response.get_json()
        assert body["user"]["id"] == "u1"
        assert body["total_pages"] == 1
        assert fake_session.calls_to("me")[0]["params"]["access_token"] == "EAAusertoken123"

    def test_expired_token_maps_to_401(self, client, fake_session, auth_headers):
        fake_session.add("me", graph_error(190, "Error validating access token", subcode=463))
        fake_session.add("me/accounts", graph_error(190, "Error validating access token", subcode=463))

        response = client.get("/api/facebook/pages", headers=auth_headers)

        assert response.status_code == 401
        body = response.get_json()
        assert body["success"] is False
        assert body["errors"]["code"] == 190

    def test_permission_code_maps_to_403(self, client, fake_session, auth_headers):
        fake_session.add("me", graph_error(200, "Permissions error", error_type="OAuthException"))
        fake_session.add("me/accounts", graph_ok(data=[]))

        response = client.get("/api/facebook/pages", headers=auth_headers)

        assert response.status_code == 403

    def test_unknown_object_maps_to_404(self, client, fake_session, auth_headers):
        fake_session.add("me", graph_error(100, "Unsupported get request"))
        fake_session.add("me/accounts", graph_ok(data=[]))

        response = client.get("/api/facebook/pages", headers=auth_headers)

        assert response.status_code == 404

    def test_upstream_outage_maps_to_500(self, client, fake_session, auth_headers):
        fake_session.add("me", graph_error(2, "Service temporarily unavailable", status=500))
        fake_session.add("me/accounts", graph_ok(data=[]))

        response = client.get("/api/facebook/pages", headers=auth_headers)

        assert response.status_code == 500
        assert len(fake_session.calls_to("me")) == 3


# =============================================================================
# Leads
# =============================================================================


class TestPageLeadsResource:
    def test_leads_for_page(self, client, fake_session, auth_headers):
        fake_session.add("me/permissions", scopes_ok())
        fake_session.add("me/accounts", graph_ok(data=[lead_page()]))
        fake_session.add("p1/leadgen_forms", graph_ok(data=[{"id": "f1", "name": "Form 1"}, {"id": "f2", "name": "Form 2"}]))
        fake_session.add("f1/leads", graph_ok(data=[{"id": "l1"}]))
        fake_session.add("f2/leads", graph_error(100, "Unsupported get request"))

        response = client.get("/api/facebook/leads/p1", headers=auth_headers)

        assert response.status_code == 200
        body = response.get_json()
        assert body["page"] == {"id": "p1", "name": "Page One"}
        assert body["leads"][0]["leads"] == [{"id": "l1"}]
        assert body["leads"][1]["error_code"] == 100

    def test_missing_scope_maps_to_403_with_missing_list(self, client, fake_session, auth_headers):
        fake_session.add("me/permissions", graph_ok(data=[{"permission": "pages_show_list", "status": "granted"}]))

        response = client.get("/api/facebook/leads/p1", headers=auth_headers)

        assert response.status_code == 403
        body = response.get_json()
        assert body["level"] == "account"
        assert "leads_retrieval" in body["errors"]["missing"]

    def test_missing_page_task_maps_to_403_with_help_url(self, client, fake_session, auth_headers):
        fake_session.add("me/permissions", scopes_ok())
        fake_session.add("me/accounts", graph_ok(data=[lead_page(tasks=["ANALYZE"])]))

        response = client.get("/api/facebook/leads/p1", headers=auth_headers)

        assert response.status_code == 403
        body = response.get_json()
        assert body["level"] == "page"
        assert body["errors"]["missing"] == ["ACCESS_LEAD_GEN"]
        assert body["help_url"].startswith("https://")

    def test_page_without_token_maps_to_403(self, client, fake_session, auth_headers):
        page = lead_page()
        del page["access_token"]
        fake_session.add("me/permissions", scopes_ok())
        fake_session.add("me/accounts", graph_ok(data=[page]))

        response = client.get("/api/facebook/leads/p1", headers=auth_headers)

        assert response.status_code == 403
        body = response.get_json()
        assert body["level"] == "page"
        assert body["errors"]["missing"] == ["access_token"]

    def test_unknown_page_maps_to_403(self, client, fake_session, auth_headers):
        fake_session.add("me/permissions", scopes_ok())
        fake_session.add("me/accounts", graph_ok(data=[lead_page("other")]))

        response = client.get("/api/facebook/leads/p1", headers=auth_headers)

        assert response.status_code == 403
        assert response.get_json()["message"] == "Page not found or no access"

    def test_forms_for_page(self, client, fake_session, auth_headers):
        fake_session.add("me/accounts", graph_ok(data=[lead_page()]))
        fake_session.add("p1/leadgen_forms", graph_ok(data=[{"id": "f1", "name": "Form 1"}]))

        response = client.get("/api/facebook/leads/p1/forms", headers=auth_headers)

        assert response.status_code == 200
        assert response.get_json()["forms"] == [{"id": "f1", "name": "Form 1"}]

    def test_leads_for_form(self, client, fake_session, auth_headers):
        fake_session.add("me/accounts", graph_ok(data=[lead_page()]))
        fake_session.add("f1/leads", graph_ok(data=[{"id": "l1"}]))

        response = client.get("/api/facebook/leads/p1/forms/f1/leads", headers=auth_headers)

        assert response.status_code == 200
        assert response.get_json()["leads"] == [{"id": "l1"}]


class TestBulkLeadsResource:
    def test_bulk_leads(self, client, fake_session, auth_headers):
        fake_session.add("p1/leadgen_forms", graph_ok(data=[{"id": "f1"}]))
        fake_session.add("f1/leads", graph_ok(data=[{"id": "l1"}]))
        fake_session.add("p2/leadgen_forms", graph_error(190, "bad page token"))

        response = client.post(
            "/api/facebook/leads",
            json={"page_ids": ["p1", "p2"], "page_tokens": ["EAAp1", "EAAp2"]},
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data[0] == {"page_id": "p1", "leads": [{"id": "l1"}]}
        assert data[1]["error_code"] == 190
        assert "EAAp2" not in response.get_data(as_text=True)

    def test_mismatched_lists_rejected(self, client, auth_headers):
        response = client.post(
            "/api/facebook/leads",
            json={"page_ids": ["p1", "p2"], "page_tokens": ["EAAp1"]},
            headers=auth_headers,
        )

        assert response.status_code == 422
        assert "page_tokens" in response.get_json()["errors"]["json"]

    def test_missing_fields_rejected(self, client, auth_headers):
        response = client.post("/api/facebook/leads", json={}, headers=auth_headers)

        assert response.status_code == 422
        assert "page_ids" in response.get_json()["errors"]["json"]


# =============================================================================
# Error reporting and metrics
# =============================================================================


class TestErrorReportingResource:
    def test_client_error_is_queued_and_sanitized(self, app, client):
        response = client.post("/api/error-reporting", json={
            "name": "TypeError",
            "message": "fetch failed for ?access_token=EAAclientsecret",
            "context": {"component": "LeadsTable"},
        }, headers={"User-Agent": "pytest-agent"})

        assert response.status_code == 200
        pending = app.extensions["pageleads"]["error_reporter"].pending()
        assert len(pending) == 1
        assert "EAAclientsecret" not in pending[0]["message"]
        assert pending[0]["context"]["user_agent"] == "pytest-agent"

    def test_view_crash_is_reported(self, app):
        def broken_view():
            return {}["missing"]

        app.add_url_rule("/api/broken", "broken", broken_view)
        app.config["PROPAGATE_EXCEPTIONS"] = False

        response = app.test_client().get("/api/broken")

        assert response.status_code == 500
        pending = app.extensions["pageleads"]["error_reporter"].pending()
        assert len(pending) == 1
        assert pending[0]["type"] == "unhandled_exception"
        assert pending[0]["url"] == "/api/broken"

    def test_message_required(self, client):
        response = client.post("/api/error-reporting", json={"name": "Error"})

        assert response.status_code == 422


class TestMetricsResource:
    PAYLOAD = {"componentName": "LeadsTable", "metrics": {"firstContentfulPaint": 120.5}, "timestamp": 1700000000000}

    def test_post_stores_metrics(self, app, client):
        response = client.post("/api/metrics", json=self.PAYLOAD)

        assert response.status_code == 200
        assert len(app.extensions["pageleads"]["metrics_store"]) == 1

    def test_invalid_payload(self, client):
        response = client.post("/api/metrics", json={"componentName": "x"})

        assert response.status_code == 422

    def test_get_forbidden_outside_development(self, client):
        assert client.get("/api/metrics").status_code == 403

    def test_get_in_development(self):
        app = create_app({**vars_of(TestingConfig), "APP_ENV": "development"}, graph_session=FakeGraphSession())
        client = app.test_client()
        client.post("/api/metrics", json=self.PAYLOAD)
        client.post("/api/metrics", json={**self.PAYLOAD, "componentName": "Other", "timestamp": 1700000000001})

        body = client.get("/api/metrics?component=LeadsTable").get_json()

        assert body["total"] == 1
        assert body["metrics"][0]["componentName"] == "LeadsTable"
        assert body["metrics"][0]["metrics"] == {"firstContentfulPaint": 120.5}


def vars_of(config_class):
    return {key: getattr(config_class, key) for key in dir(config_class) if key.isupper()}


class TestRateLimitHandler:
    def test_returns_429(self, app):
        with app.test_request_context("/api/facebook/pages"):
            response, status = handle_rate_limit(SimpleNamespace(description="20 per 1 minute"))

        assert status == 429
        assert response.get_json()["error"] == "Too Many Requests"
