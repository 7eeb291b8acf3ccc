"""Integration tests for the e-filing HTTP API.

The FastAPI app runs against a real TaxBanditClient whose requests.Session is
mocked, and a poll registry driven by the manual scheduler.
"""

from typing import Any, Dict, Generator

import pytest
import requests
from fastapi.testclient import TestClient
from pytest_mock import MockType

from api.main import app
from api.polling import PollRegistry
from api.routers import efile
from taxbandit import FormType, PollOptions, TaxBanditClient

OPTIONS = PollOptions(initial_interval=100, long_interval=500, switch_after=150, max_duration=1000)


class FakeTaxBandits:
    """Routes mocked API calls by path; responses can be replaced per test."""

    def __init__(self, make_response):
        self.make_response = make_response
        self.responses: Dict[str, Any] = {
            "Create": (200, {"SubmissionId": "sub-1", "Records": [{"RecordId": "rec-1"}]}),
            "Validate": (200, {"StatusCode": 200, "Errors": None}),
            "Transmit": (200, {"StatusCode": 200}),
            "Status": (
                200,
                {"Records": [{"Status": "Transmitted", "AcknowledgementStatus": "Pending"}]},
            ),
            "RequestPDFURL": (200, {"PDFURL": "https://files.example.test/sub-1.pdf"}),
            "List": (200, {"Records": [], "TotalRecords": 0}),
            "Delete": (200, None),
        }
        self.calls = []

    def __call__(self, method: str, url: str, **kwargs) -> requests.Response:
        operation = url.rsplit("/", 1)[-1]
        self.calls.append((method, url, kwargs))
        response = self.responses[operation]
        if isinstance(response, Exception):
            raise response
        status_code, body = response
        return self.make_response(status_code, body)


@pytest.fixture
def fake_api(session: MockType, make_response) -> FakeTaxBandits:
    fake = FakeTaxBandits(make_response)
    session.request.side_effect = fake
    return fake


@pytest.fixture
def registry(scheduler) -> PollRegistry:
    return PollRegistry(scheduler=scheduler)


@pytest.fixture
def api_client(
    client: TaxBanditClient, registry: PollRegistry, fake_api: FakeTaxBandits
) -> Generator[TestClient, None, None]:
    app.dependency_overrides[efile.get_client] = lambda: client
    app.dependency_overrides[efile.get_poll_registry] = lambda: registry
    app.dependency_overrides[efile.get_poll_options] = lambda: OPTIONS
    efile.limiter.enabled = False
    yield TestClient(app)
    app.dependency_overrides.clear()
    efile.limiter.enabled = True
    registry.stop_all()


@pytest.mark.integration
class TestForms:
    def test_list_form_types(self, api_client: TestClient) -> None:
        response = api_client.get("/api/efile/forms")

        assert response.status_code == 200
        form_types = {item["form_type"] for item in response.json()}
        assert form_types == {form.value for form in FormType}

    def test_unknown_form_type(self, api_client: TestClient) -> None:
        response = api_client.get("/api/efile/Form9999/sub-1/status")

        assert response.status_code == 404

    def test_health_and_security_headers(self, api_client: TestClient) -> None:
        """Health reports active poll sessions; filing data is never cached."""
        api_client.post("/api/efile/Form1099NEC/sub-1/poll")

        response = api_client.get("/health")

        assert response.json()["status"] == "healthy"
        assert response.json()["active_polls"] == 1
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["Cache-Control"] == "no-store"


@pytest.mark.integration
class TestSubmit:
    """Test POST /{form_type}/submit."""

    def test_submit_files(self, api_client: TestClient, fake_api: FakeTaxBandits) -> None:
        response = api_client.post(
            "/api/efile/Form1099NEC/submit", json={"payload": {"ReturnHeader": {}}}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "filed"
        assert data["submission_id"] == "sub-1"
        assert data["record_ids"] == ["rec-1"]
        assert data["filed_at"] is not None

        method, url, kwargs = fake_api.calls[-1]
        assert url.endswith("/Form1099NEC/Transmit")
        assert kwargs["json"] == {"SubmissionId": "sub-1", "RecordIds": ["rec-1"]}

    def test_path_is_case_insensitive(self, api_client: TestClient, fake_api) -> None:
        response = api_client.post("/api/efile/formw2/submit", json={"payload": {}})

        assert response.status_code == 200
        assert response.json()["form_type"] == "FormW2"

    def test_validation_errors(self, api_client: TestClient, fake_api: FakeTaxBandits) -> None:
        fake_api.responses["Validate"] = (
            200,
            {"Errors": [{"Id": "E1", "Field": "TIN", "Message": "Invalid TIN", "Code": "F100"}]},
        )

        response = api_client.post("/api/efile/Form1099NEC/submit", json={"payload": {}})

        data = response.json()
        assert data["state"] == "rejected"
        assert data["validation_errors"][0]["field"] == "TIN"
        assert not any(url.endswith("/Transmit") for _, url, _ in fake_api.calls)

    def test_remote_error_is_502(self, api_client: TestClient, fake_api: FakeTaxBandits) -> None:
        fake_api.responses["Create"] = (
            400,
            {"StatusName": "BadRequest", "Errors": [{"Id": "1", "Name": "TIN", "Message": "Required"}]},
        )

        response = api_client.post("/api/efile/Form1099NEC/submit", json={"payload": {}})

        assert response.status_code == 502
        detail = response.json()["detail"]
        assert detail["status_code"] == 400
        assert detail["errors"][0]["message"] == "Required"

    def test_network_error_is_503(self, api_client: TestClient, fake_api: FakeTaxBandits) -> None:
        fake_api.responses["Create"] = requests.exceptions.ConnectionError()

        response = api_client.post("/api/efile/Form1099NEC/submit", json={"payload": {}})

        assert response.status_code == 503
        assert response.json()["detail"]["status_name"] == "NetworkError"

    def test_failed_transmit_reports_submission_id(
        self, api_client: TestClient, fake_api: FakeTaxBandits
    ) -> None:
        """An error after create tells the caller which submission exists remotely."""
        fake_api.responses["Transmit"] = requests.exceptions.ConnectionError()

        response = api_client.post("/api/efile/Form1099NEC/submit", json={"payload": {}})

        assert response.status_code == 503
        detail = response.json()["detail"]
        assert detail["status_name"] == "NetworkError"
        assert detail["submission_id"] == "sub-1"
        assert detail["record_ids"] == ["rec-1"]

    def test_error_before_create_has_no_submission_id(
        self, api_client: TestClient, fake_api: FakeTaxBandits
    ) -> None:
        fake_api.responses["Create"] = requests.exceptions.ConnectionError()

        response = api_client.post("/api/efile/Form1099NEC/submit", json={"payload": {}})

        assert "submission_id" not in response.json()["detail"]

    def test_retry_with_submission_id_creates_once(
        self, api_client: TestClient, fake_api: FakeTaxBandits
    ) -> None:
        """Resuming after a failed transmit does not file a duplicate."""
        fake_api.responses["Transmit"] = requests.exceptions.ConnectionError()
        detail = api_client.post(
            "/api/efile/Form1099NEC/submit", json={"payload": {"ReturnHeader": {}}}
        ).json()["detail"]

        fake_api.responses["Transmit"] = (200, {"StatusCode": 200})
        response = api_client.post(
            "/api/efile/Form1099NEC/submit",
            json={
                "payload": {"ReturnHeader": {}},
                "submission_id": detail["submission_id"],
                "record_ids": detail["record_ids"],
            },
        )

        assert response.status_code == 200
        assert response.json()["state"] == "filed"
        assert response.json()["submission_id"] == "sub-1"
        creates = [url for _, url, _ in fake_api.calls if url.endswith("/Create")]
        assert len(creates) == 1
        assert fake_api.calls[-1][2]["json"] == {"SubmissionId": "sub-1", "RecordIds": ["rec-1"]}

    def test_missing_payload_is_422(self, api_client: TestClient) -> None:
        response = api_client.post("/api/efile/Form1099NEC/submit", json={})

        assert response.status_code == 422


@pytest.mark.integration
class TestStatusAndPolling:
    """Test status, poll, PDF, list and delete routes."""

    def test_check_status(self, api_client: TestClient, fake_api: FakeTaxBandits) -> None:
        fake_api.responses["Status"] = (
            200,
            {
                "Records": [
                    {
                        "Status": "Transmitted",
                        "AcknowledgementStatus": "Rejected",
                        "IRSErrors": [{"ErrorCode": "R1", "ErrorMessage": "Bad TIN"}],
                    }
                ]
            },
        )

        response = api_client.get("/api/efile/Form1099NEC/sub-1/status")

        data = response.json()
        assert data["acknowledgement_status"] == "Rejected"
        assert data["irs_errors"] == [{"code": "R1", "message": "Bad TIN"}]
        assert data["message"] == efile.STATUS_MESSAGES["rejected"]

    def test_poll_until_accepted(
        self, api_client: TestClient, fake_api: FakeTaxBandits, scheduler
    ) -> None:
        response = api_client.post("/api/efile/Form1099NEC/sub-1/poll")
        assert response.status_code == 202
        assert response.json()["active"] is True
        assert response.json()["last_result"] is None

        scheduler.advance(100)
        fake_api.responses["Status"] = (
            200,
            {"Records": [{"Status": "Transmitted", "AcknowledgementStatus": "Accepted"}]},
        )
        scheduler.advance(100)

        data = api_client.get("/api/efile/Form1099NEC/sub-1/poll").json()
        assert data["active"] is False
        assert data["poll_count"] == 2
        assert data["last_result"]["acknowledgement_status"] == "Accepted"
        assert data["message"] == efile.STATUS_MESSAGES["accepted"]

    def test_poll_timeout_message(self, api_client: TestClient, scheduler) -> None:
        api_client.post("/api/efile/Form1099NEC/sub-1/poll")
        scheduler.advance(5000)

        data = api_client.get("/api/efile/Form1099NEC/sub-1/poll").json()

        assert data["timed_out"] is True
        assert data["message"] == efile.TIMED_OUT_MESSAGE

    def test_stop_poll(self, api_client: TestClient, registry: PollRegistry) -> None:
        """A stopped session is cancelled and forgotten."""
        api_client.post("/api/efile/Form1099NEC/sub-1/poll")
        session = registry.get("Form1099NEC", "sub-1")

        assert api_client.delete("/api/efile/Form1099NEC/sub-1/poll").status_code == 204
        assert session.stopped is True
        assert registry.get("Form1099NEC", "sub-1") is None
        assert api_client.get("/api/efile/Form1099NEC/sub-1/poll").status_code == 404

    def test_start_stop_cycles_do_not_accumulate(
        self, api_client: TestClient, registry: PollRegistry, scheduler
    ) -> None:
        """Sessions stopped over HTTP leave nothing behind in the registry."""
        for i in range(50):
            api_client.post(f"/api/efile/Form1099NEC/sub-{i}/poll")
            api_client.delete(f"/api/efile/Form1099NEC/sub-{i}/poll")

        assert len(registry) == 0
        assert registry.active_count() == 0
        assert scheduler.pending == []

    def test_poll_not_found(self, api_client: TestClient) -> None:
        assert api_client.get("/api/efile/Form1099NEC/missing/poll").status_code == 404
        assert api_client.delete("/api/efile/Form1099NEC/missing/poll").status_code == 404

    def test_restart_poll_replaces_session(
        self, api_client: TestClient, registry: PollRegistry
    ) -> None:
        api_client.post("/api/efile/Form1099NEC/sub-1/poll")
        first = registry.get("Form1099NEC", "sub-1")

        api_client.post("/api/efile/Form1099NEC/sub-1/poll")

        assert first.stopped is True
        assert registry.get("Form1099NEC", "sub-1") is not first

    def test_pdf(self, api_client: TestClient) -> None:
        response = api_client.get("/api/efile/Form1099NEC/sub-1/pdf")

        assert response.json() == {
            "submission_id": "sub-1",
            "pdf_url": "https://files.example.test/sub-1.pdf",
        }

    def test_list(self, api_client: TestClient, fake_api: FakeTaxBandits) -> None:
        response = api_client.get("/api/efile/Form941?page=2&page_size=5")

        assert response.status_code == 200
        assert response.json()["page"] == 2
        assert fake_api.calls[-1][2]["params"] == {"Page": 2, "PageSize": 5}

    def test_delete_stops_polling(
        self, api_client: TestClient, registry: PollRegistry, fake_api: FakeTaxBandits
    ) -> None:
        api_client.post("/api/efile/Form1099NEC/sub-1/poll")
        session = registry.get("Form1099NEC", "sub-1")

        response = api_client.delete("/api/efile/Form1099NEC/sub-1")

        assert response.status_code == 204
        assert fake_api.calls[-1][0] == "DELETE"
        assert session.stopped is True
        assert registry.get("Form1099NEC", "sub-1") is None
