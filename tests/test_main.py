"""
Tests for the assembled FastAPI application.
"""

from unittest.mock import AsyncMock
from uuid import uuid4

from fastapi.testclient import TestClient


class TestAppEndpoints:
    """Root, metrics and routing through the full app."""

    def test_root(self, client: TestClient):
        """Root reports the service name and status."""
        body = client.get("/").json()
        assert body["service"] == "Device Inventory Console API"
        assert body["status"] == "running"

    def test_metrics(self, client: TestClient):
        """Prometheus metrics are exposed with the console prefix."""
        client.get("/")
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "console_http_requests_total" in response.text

    def test_health_through_app(self, client: TestClient):
        """Health goes through the read database dependency."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_validation_error_shape(self, client: TestClient):
        """Invalid path values return sanitized 422 details."""
        response = client.get("/v1/dashboard/mrr/region")
        assert response.status_code == 422
        assert response.json()["detail"][0]["loc"] == ["path", "dimension"]

    def test_cron_guard(self, client: TestClient, db_session: AsyncMock, result_factory):
        """Invoice generation works without a configured cron secret."""
        db_session.execute = AsyncMock(return_value=result_factory(scalar=2))
        response = client.post("/v1/invoices/generate")
        assert response.status_code == 200
        assert response.json() == {"generated": 2}

    def test_alerts_through_app(
        self, client: TestClient, db_session: AsyncMock, result_factory
    ):
        """Alerts are ranked and serialized end to end."""
        db_session.execute = AsyncMock(
            return_value=result_factory(
                mappings=[
                    {"id": "1", "alert_type": "renewal_due", "severity": "low",
                     "date_val": "2026-03-01"},
                    {"id": "2", "alert_type": "overdue_invoice", "severity": "high",
                     "date_val": "2026-03-09"},
                ]
            )
        )

        response = client.get("/v1/alerts?limit=10")

        assert response.status_code == 200
        body = response.json()
        assert [a["id"] for a in body["alerts"]] == ["2", "1"]
        assert body["total"] == 2
        assert [g["type"] for g in body["groups"]] == ["overdue_invoice", "renewal_due"]
        assert body["groups"][0]["label"] == "Overdue invoices"
        assert body["groups"][1]["count"] == 1

    def test_import_upload(self, client: TestClient, db_session: AsyncMock):
        """A multipart CSV upload returns import counts."""
        response = client.post(
            "/v1/imports/clients",
            files={"file": ("clients.csv", b"name,email\nAcme,a@x.com\nAcme 2,A@X.COM\n")},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] == 1
        assert body["skipped"] == 1

    def test_import_records_uploader(self, client: TestClient, db_session: AsyncMock):
        """The created_by form field is stored on the import job."""
        from app.db.models import ImportJob

        user_id = uuid4()
        response = client.post(
            "/v1/imports/clients",
            files={"file": ("clients.csv", b"name,email\nAcme,a@x.com\n")},
            data={"created_by": str(user_id)},
        )

        assert response.status_code == 200
        jobs = [
            call.args[0]
            for call in db_session.add.call_args_list
            if isinstance(call.args[0], ImportJob)
        ]
        assert jobs[0].created_by == user_id
        assert jobs[0].source_file == "clients.csv"

    def test_blank_mail_subject_rejected(self, client: TestClient):
        """A whitespace-only subject never reaches the mail provider."""
        response = client.post(
            f"/v1/clients/{uuid4()}/mail",
            json={"subject": "   ", "body_html": "<p>Hi</p>"},
        )
        assert response.status_code == 422

    def test_profile_role_through_app(self, client: TestClient, db_session: AsyncMock):
        """Role flags are served for a stored profile."""
        from app.db.models import Profile

        user_id = uuid4()
        db_session.get = AsyncMock(return_value=Profile(id=user_id, role="technician"))

        response = client.get(f"/v1/profiles/{user_id}/role?allowed=technician&allowed=admin")

        assert response.status_code == 200
        body = response.json()
        assert body["role"] == "technician"
        assert body["is_technician"] is True
        assert body["can_edit"] is True
        assert body["allowed"] is True
