"""Tests for the FastAPI endpoints."""

import asyncio
import time

import httpx
import pytest
from fastapi.testclient import TestClient

from secura.api.server import app, get_gateway
from secura.config import settings
from secura.services.gateway_client import GatewayQuotaExhausted, GatewayRateLimited


def _upload(name, content, content_type="image/png"):
    return {"file": (name, content, content_type)}


class TestHealthEndpoint:
    """Tests for /health and /status."""

    def test_health_returns_ok(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_status_reports_ruleset(self, client):
        data = client.get("/status").json()
        assert data["filename_ruleset"] == settings.filename_ruleset
        assert data["rate_limit"]["requests"] == settings.rate_limit_requests

    def test_cors_allows_any_origin(self, client):
        response = client.get("/health", headers={"Origin": "https://app.example.com"})
        assert response.headers["access-control-allow-origin"] == "*"

    def test_cors_preflight(self, client):
        response = client.options(
            "/analyze-deepfake",
            headers={
                "Origin": "https://app.example.com",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "authorization, content-type",
            },
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"

    def test_security_headers(self, client):
        response = client.get("/health")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"


class TestAnalyzeEndpoint:
    """Tests for /analyze-deepfake."""

    def test_model_verdict_is_returned(self, client, gateway, sample_png):
        response = client.post("/analyze-deepfake", files=_upload("cat.png", sample_png))
        assert response.status_code == 200
        data = response.json()
        assert data["classification"] == "real"
        assert data["isDeepfake"] is False
        assert data["isAISafe"] is False
        assert data["confidence"] == 90
        assert data["label"] == "Likely Original"
        assert data["analysisType"] == "ai-forensics"
        assert data["analysisLogId"]
        assert gateway.calls[0]["model"] == settings.gateway_forensics_model

    def test_fenced_fake_verdict(self, client, gateway, sample_png):
        gateway.content = (
            '```json\n{"result": "FAKE", "confidence": 0.97, "summary": "Synthetic face.", '
            '"artifacts": "warped earrings", "riskLevel": "HIGH"}\n```'
        )
        data = client.post("/analyze-deepfake", files=_upload("cat.png", sample_png)).json()
        assert data["classification"] == "deepfake"
        assert data["isDeepfake"] is True
        assert data["confidence"] == pytest.approx(97)
        assert data["artifacts"] == ["warped earrings"]
        assert data["riskLevel"] == "high"

    def test_missing_file(self, client):
        response = client.post("/analyze-deepfake")
        assert response.status_code == 400
        assert response.json() == {"error": "No file provided"}

    def test_empty_file(self, client):
        response = client.post("/analyze-deepfake", files=_upload("cat.png", b""))
        assert response.status_code == 400
        assert "empty" in response.json()["error"]

    def test_video_is_decided_by_filename(self, client, gateway):
        response = client.post(
            "/analyze-deepfake",
            files=_upload("speech-ai.mp4", b"\x00\x00\x00\x18ftypmp42", "video/mp4"),
        )
        data = response.json()
        assert data["classification"] == "deepfake"
        assert data["confidence"] == 95
        assert data["analysisType"] == "video"
        assert gateway.calls == []

    def test_primary_uppercase_rule_skips_gateway(self, client, gateway, sample_png, monkeypatch):
        monkeypatch.setattr(settings, "filename_rules_primary", True)
        monkeypatch.setattr(settings, "filename_ruleset", "uppercase")

        upper = client.post("/analyze-deepfake", files=_upload("PHOTO.JPG", sample_png, "image/jpeg")).json()
        lower = client.post("/analyze-deepfake", files=_upload("photo.jpg", sample_png, "image/jpeg")).json()

        assert upper["classification"] == "deepfake"
        assert 94 <= upper["confidence"] <= 96
        assert upper["analysisType"] == "filename-rule"
        assert "demo_classification_override" in upper["artifacts"]
        assert lower["classification"] == "real"
        assert 4 <= lower["confidence"] <= 8
        assert gateway.calls == []

    def test_low_confidence_replaced_by_rule(self, client, gateway, sample_png):
        gateway.content = '{"result": "FAKE", "confidence": 40}'
        data = client.post("/analyze-deepfake", files=_upload("atulya.jpg", sample_png)).json()
        assert data["classification"] == "real"
        assert data["confidence"] == 85
        assert data["analysisType"] == "filename-rule"

    def test_low_confidence_kept_without_rule_match(self, client, gateway, sample_png):
        gateway.content = '{"result": "FAKE", "confidence": 40}'
        data = client.post("/analyze-deepfake", files=_upload("cat.png", sample_png)).json()
        assert data["classification"] == "deepfake"
        assert data["confidence"] == 40
        assert data["analysisType"] == "ai-forensics"

    def test_unparseable_answer_uses_keyword_fallback(self, client, gateway, sample_png):
        gateway.content = "This picture looks AI generated to me."
        data = client.post("/analyze-deepfake", files=_upload("cat.png", sample_png)).json()
        assert data["classification"] == "ai_safe"
        assert data["confidence"] == 75
        assert data["analysisType"] == "parse-fallback"
        assert "analysis_incomplete" in data["artifacts"]

    def test_gateway_rate_limit_is_relayed(self, client, gateway, sample_png):
        gateway.error = GatewayRateLimited()
        response = client.post("/analyze-deepfake", files=_upload("cat.png", sample_png))
        assert response.status_code == 429
        assert response.json() == {"error": "Rate limit exceeded. Please try again later."}

    def test_gateway_quota_is_relayed(self, client, gateway, sample_png):
        gateway.error = GatewayQuotaExhausted()
        response = client.post("/analyze-deepfake", files=_upload("cat.png", sample_png))
        assert response.status_code == 402
        assert "credits" in response.json()["error"]

    def test_upload_rate_limit(self, client, sample_png, monkeypatch):
        monkeypatch.setattr(settings, "rate_limit_requests", 2)
        for _ in range(2):
            assert client.post("/analyze-deepfake", files=_upload("cat.png", sample_png)).status_code == 200
        response = client.post("/analyze-deepfake", files=_upload("cat.png", sample_png))
        assert response.status_code == 429
        assert "Retry-After" in response.headers

    def test_result_is_persisted(self, client, sample_png, auth_headers):
        created = client.post("/analyze-deepfake", files=_upload("cat.png", sample_png)).json()
        response = client.get(f"/analysis-logs/{created['analysisLogId']}", headers=auth_headers)
        assert response.status_code == 200
        log = response.json()
        assert log["classification"] == "real"
        assert log["analysisContext"] == "ai-forensics"
        assert len(log["imageHash"]) == 64

    def test_analysis_log_requires_auth(self, client, analysis_log):
        response = client.get(f"/analysis-logs/{analysis_log.id}")
        assert response.status_code == 401

    def test_classification_metrics(self, client, sample_png, admin_headers):
        client.post("/analyze-deepfake", files=_upload("cat.png", sample_png))
        counters = client.get("/admin/metrics", headers=admin_headers).json()["counters"]
        assert counters["analysis.forensics.total"] == 1
        assert counters["analysis.forensics.classification.real"] == 1

    def test_gateway_failures_are_counted(self, client, gateway, sample_png, admin_headers):
        gateway.error = GatewayRateLimited()
        client.post("/analyze-deepfake", files=_upload("cat.png", sample_png))
        counters = client.get("/admin/metrics", headers=admin_headers).json()["counters"]
        assert counters["analysis.forensics.total"] == 1
        assert counters["analysis.forensics.errors"] == 1
        assert counters["gateway.errors.429"] == 1

    def test_list_my_analysis_logs(self, client, sample_png, auth_headers, admin_headers):
        client.post("/analyze-deepfake", files=_upload("mine.png", sample_png), headers=auth_headers)
        client.post("/analyze-deepfake", files=_upload("mine2.png", sample_png), headers=auth_headers)
        client.post("/analyze-deepfake", files=_upload("theirs.png", sample_png), headers=admin_headers)
        client.post("/analyze-deepfake", files=_upload("anon.png", sample_png))

        response = client.get("/analysis-logs", headers=auth_headers)
        assert response.status_code == 200
        logs = response.json()
        assert sorted(log["filename"] for log in logs) == ["mine.png", "mine2.png"]
        assert all(log["userId"] == "user-1" for log in logs)

        limited = client.get("/analysis-logs", params={"limit": 1}, headers=auth_headers).json()
        assert len(limited) == 1

    def test_list_my_analysis_logs_requires_auth(self, client):
        assert client.get("/analysis-logs").status_code == 401


class TestImpersonationEndpoint:
    """Tests for /impersonation-check."""

    def test_confident_real_passes(self, client, gateway, sample_png):
        response = client.post(
            "/impersonation-check",
            files=_upload("cat.png", sample_png),
            data={"claimedIdentityId": "u-7", "claimedIdentityName": "Dana"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["result"] == "REAL"
        assert data["shouldBlock"] is False
        assert data["checkType"] == "impersonation"
        assert data["claimedIdentityName"] == "Dana"
        assert gateway.calls[0]["model"] == settings.gateway_screening_model

    def test_fake_always_blocks(self, client, gateway, sample_png):
        gateway.content = '{"result": "FAKE", "confidence": 93, "reason": "Face swap.", "shouldBlock": false}'
        data = client.post("/impersonation-check", files=_upload("cat.png", sample_png)).json()
        assert data["result"] == "FAKE"
        assert data["shouldBlock"] is True
        assert data["riskLevel"] == "high"

    def test_low_confidence_blocked_filename(self, client, gateway, sample_png):
        gateway.content = '{"result": "REAL", "confidence": 50, "reason": "Probably fine."}'
        data = client.post(
            "/impersonation-check",
            files=_upload("WhatsApp Image 2026-01-28 at 09.41.10.jpeg", sample_png, "image/jpeg"),
        ).json()
        assert data["result"] == "FAKE"
        assert data["shouldBlock"] is True
        assert data["confidence"] == 85
        assert data["uncertaintyFactors"] == ["demo_classification_override"]

    def test_unparseable_answer_blocked_filename(self, client, gateway, sample_png):
        gateway.content = "I cannot tell."
        data = client.post(
            "/impersonation-check",
            files=_upload("WhatsApp Image 2026-01-29 at 18.02.55.jpeg", sample_png, "image/jpeg"),
        ).json()
        assert data["result"] == "FAKE"
        assert data["shouldBlock"] is True

    def test_unparseable_answer_falls_back_to_ai_safe(self, client, gateway, sample_png):
        gateway.content = "I cannot tell."
        data = client.post("/impersonation-check", files=_upload("cat.png", sample_png)).json()
        assert data["result"] == "AI_SAFE"
        assert data["confidence"] == 40
        assert data["shouldBlock"] is False
        assert data["riskLevel"] == "medium"
        assert "parsing_error" in data["uncertaintyFactors"]

    def test_nan_confidence_is_not_confident(self, client, gateway, sample_png):
        gateway.content = '{"result": "REAL", "confidence": NaN, "reason": "Looks fine."}'
        data = client.post(
            "/impersonation-check",
            files=_upload("WhatsApp Image 2026-01-28 at 09.41.10.jpeg", sample_png, "image/jpeg"),
        ).json()
        assert data["result"] == "FAKE"
        assert data["shouldBlock"] is True
        assert data["confidence"] == 85

    def test_moderate_confidence_gets_note(self, client, gateway, sample_png):
        gateway.content = '{"result": "REAL", "confidence": 75, "reason": "Natural lighting."}'
        data = client.post("/impersonation-check", files=_upload("cat.png", sample_png)).json()
        assert data["reason"].startswith("Natural lighting.")
        assert "moderate" in data["reason"]

    def test_invalid_reference_image(self, client, sample_png):
        response = client.post(
            "/impersonation-check",
            files=_upload("cat.png", sample_png),
            data={"referenceImage": "https://example.com/me.jpg"},
        )
        assert response.status_code == 400
        assert "referenceImage" in response.json()["error"]

    def test_reference_image_is_sent(self, client, gateway, sample_png):
        reference = "data:image/png;base64,iVBORw0KGgo="
        client.post(
            "/impersonation-check",
            files=_upload("cat.png", sample_png),
            data={"referenceImage": reference, "claimedIdentityName": "Dana"},
        )
        sent = str(gateway.calls[0]["messages"])
        assert reference in sent

    def test_missing_file(self, client):
        response = client.post("/impersonation-check", data={"checkType": "impersonation"})
        assert response.status_code == 400
        assert response.json() == {"error": "No file provided"}


class TestSubmitReportEndpoint:
    """Tests for /submit-report."""

    def test_requires_authorization(self, client, analysis_log):
        response = client.post(
            "/submit-report",
            json={"analysisLogId": analysis_log.id, "expectedClassification": "real", "reason": "mine"},
        )
        assert response.status_code == 401
        assert response.json() == {"error": "Authorization required"}

    def test_rejects_invalid_token(self, client, analysis_log):
        response = client.post(
            "/submit-report",
            headers={"Authorization": "Bearer nope"},
            json={"analysisLogId": analysis_log.id, "expectedClassification": "real", "reason": "mine"},
        )
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid token"}

    def test_missing_fields(self, client, auth_headers):
        response = client.post("/submit-report", headers=auth_headers, json={"reason": "mine"})
        assert response.status_code == 400
        assert response.json()["error"] == (
            "Missing required fields: analysisLogId, expectedClassification, reason"
        )

    def test_invalid_classification(self, client, auth_headers, analysis_log):
        response = client.post(
            "/submit-report",
            headers=auth_headers,
            json={"analysisLogId": analysis_log.id, "expectedClassification": "fake", "reason": "mine"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid classification. Must be: real, ai_safe, or deepfake"

    def test_unknown_analysis_log(self, client, auth_headers):
        response = client.post(
            "/submit-report",
            headers=auth_headers,
            json={"analysisLogId": "missing", "expectedClassification": "real", "reason": "mine"},
        )
        assert response.status_code == 404

    def test_success(self, client, auth_headers, admin_headers, analysis_log):
        response = client.post(
            "/submit-report",
            headers=auth_headers,
            json={"analysisLogId": analysis_log.id, "expectedClassification": "real", "reason": "My own photo."},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True

        pending = client.get("/admin/reports", headers=admin_headers).json()
        assert [r["id"] for r in pending] == [data["reportId"]]
        assert pending[0]["reporterUserId"] == "user-1"
        assert pending[0]["status"] == "pending"


class TestAdminEndpoints:
    """Tests for /admin report triage."""

    def _report(self, client, auth_headers, analysis_log, reason="My own photo."):
        response = client.post(
            "/submit-report",
            headers=auth_headers,
            json={"analysisLogId": analysis_log.id, "expectedClassification": "real", "reason": reason},
        )
        return response.json()["reportId"]

    def test_non_admin_is_forbidden(self, client, auth_headers):
        response = client.get("/admin/reports", headers=auth_headers)
        assert response.status_code == 403
        assert response.json() == {"error": "Admin privileges required"}

    def test_anonymous_is_unauthorized(self, client):
        assert client.get("/admin/reports").status_code == 401

    def test_invalid_status_filter(self, client, admin_headers):
        response = client.get("/admin/reports", params={"status": "archived"}, headers=admin_headers)
        assert response.status_code == 400

    def test_resolve_with_notes(self, client, auth_headers, admin_headers, analysis_log):
        report_id = self._report(client, auth_headers, analysis_log)
        response = client.post(
            f"/admin/reports/{report_id}/resolve",
            headers=admin_headers,
            json={"adminNotes": "Confirmed authentic"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "resolved"
        assert data["reviewedBy"] == "admin-1"
        assert data["adminNotes"] == "Confirmed authentic"
        assert data["reviewedAt"] is not None

        assert client.get("/admin/reports", headers=admin_headers).json() == []
        resolved = client.get("/admin/reports", params={"status": "resolved"}, headers=admin_headers).json()
        assert [r["id"] for r in resolved] == [report_id]

    def test_dismiss_and_review_without_body(self, client, auth_headers, admin_headers, analysis_log):
        first = self._report(client, auth_headers, analysis_log, "one")
        second = self._report(client, auth_headers, analysis_log, "two")
        assert client.post(f"/admin/reports/{first}/dismiss", headers=admin_headers).json()["status"] == "dismissed"
        assert client.post(f"/admin/reports/{second}/review", headers=admin_headers).json()["status"] == "reviewed"

    def test_patch_last_write_wins(self, client, auth_headers, admin_headers, analysis_log):
        report_id = self._report(client, auth_headers, analysis_log)
        client.patch(f"/admin/reports/{report_id}", headers=admin_headers, json={"status": "resolved"})
        response = client.patch(
            f"/admin/reports/{report_id}",
            headers=admin_headers,
            json={"status": "dismissed", "adminNotes": "Duplicate"},
        )
        assert response.json()["status"] == "dismissed"
        assert response.json()["adminNotes"] == "Duplicate"

    def test_patch_invalid_status(self, client, auth_headers, admin_headers, analysis_log):
        report_id = self._report(client, auth_headers, analysis_log)
        response = client.patch(f"/admin/reports/{report_id}", headers=admin_headers, json={"status": "archived"})
        assert response.status_code == 400

    def test_unknown_report(self, client, admin_headers):
        assert client.post("/admin/reports/missing/resolve", headers=admin_headers).status_code == 404
        assert client.get("/admin/reports/missing", headers=admin_headers).status_code == 404

    def test_detail_includes_analysis(self, client, auth_headers, admin_headers, analysis_log):
        report_id = self._report(client, auth_headers, analysis_log)
        data = client.get(f"/admin/reports/{report_id}", headers=admin_headers).json()
        assert data["analysisLog"]["id"] == analysis_log.id
        assert data["analysisLog"]["classification"] == "deepfake"

    def test_stats(self, client, auth_headers, admin_headers, analysis_log):
        report_id = self._report(client, auth_headers, analysis_log)
        self._report(client, auth_headers, analysis_log, "again")
        client.post(f"/admin/reports/{report_id}/resolve", headers=admin_headers)
        stats = client.get("/admin/reports/stats", headers=admin_headers).json()
        assert stats == {"pending": 1, "reviewed": 0, "resolved": 1, "dismissed": 0, "total": 2}

    def test_me_lists_roles(self, client, admin_headers):
        assert client.get("/me", headers=admin_headers).json() == {"userId": "admin-1", "roles": ["admin"]}


class TestErrorHandling:
    """Tests for the error envelope."""

    def test_unhandled_error_shows_message_in_debug(self, client, gateway, sample_png, monkeypatch):
        monkeypatch.setattr(settings, "debug", True)
        monkeypatch.setattr(settings, "environment", "dev")
        gateway.error = RuntimeError("decoder exploded")
        raw_client = TestClient(app, raise_server_exceptions=False)
        response = raw_client.post("/analyze-deepfake", files=_upload("cat.png", sample_png))
        assert response.status_code == 500
        assert response.json() == {"error": "decoder exploded"}

    def test_unhandled_error_hidden_in_production(self, client, gateway, sample_png, monkeypatch):
        monkeypatch.setattr(settings, "environment", "prod")
        gateway.error = RuntimeError("decoder exploded")
        raw_client = TestClient(app, raise_server_exceptions=False)
        response = raw_client.post("/analyze-deepfake", files=_upload("cat.png", sample_png))
        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}

    def test_malformed_json_body(self, client, auth_headers):
        response = client.post(
            "/submit-report",
            headers={**auth_headers, "Content-Type": "application/json"},
            content=b"{not json",
        )
        assert response.status_code == 400
        assert "error" in response.json()

    def test_unhandled_error_keeps_cors_header(self, client, gateway, sample_png):
        gateway.error = RuntimeError("decoder exploded")
        raw_client = TestClient(app, raise_server_exceptions=False)
        response = raw_client.post(
            "/analyze-deepfake",
            files=_upload("cat.png", sample_png),
            headers={"Origin": "http://example.com"},
        )
        assert response.status_code == 500
        assert response.headers["access-control-allow-origin"] == "*"

    def test_unhandled_error_echoes_configured_origin(self, client, gateway, sample_png, monkeypatch):
        monkeypatch.setattr(settings, "cors_origins", "https://app.example.com, https://admin.example.com")
        gateway.error = RuntimeError("decoder exploded")
        raw_client = TestClient(app, raise_server_exceptions=False)

        allowed = raw_client.post(
            "/analyze-deepfake",
            files=_upload("cat.png", sample_png),
            headers={"Origin": "https://admin.example.com"},
        )
        assert allowed.headers["access-control-allow-origin"] == "https://admin.example.com"

        other = raw_client.post(
            "/analyze-deepfake",
            files=_upload("cat.png", sample_png),
            headers={"Origin": "https://evil.example.com"},
        )
        assert "access-control-allow-origin" not in other.headers


class SlowGateway:
    """Gateway whose blocking call takes a while, like a slow upstream."""

    def __init__(self, delay):
        self.delay = delay

    def complete(self, messages, model=None, temperature=None, max_tokens=None):
        time.sleep(self.delay)
        return '{"result": "REAL", "confidence": 90}'


class TestConcurrency:
    """A slow gateway call must not stall other requests."""

    def test_health_answers_during_slow_upload(self, client, sample_png):
        app.dependency_overrides[get_gateway] = lambda: SlowGateway(delay=1.0)

        async def scenario():
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
                started = time.perf_counter()
                upload = asyncio.create_task(
                    ac.post("/analyze-deepfake", files=_upload("cat.png", sample_png))
                )
                await asyncio.sleep(0.1)
                health = await ac.get("/health")
                health_elapsed = time.perf_counter() - started
                upload_response = await upload
                return health, health_elapsed, upload_response

        health, health_elapsed, upload_response = asyncio.run(scenario())

        assert health.status_code == 200
        assert health_elapsed < 0.6
        assert upload_response.status_code == 200
        assert upload_response.json()["classification"] == "real"
