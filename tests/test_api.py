"""
Tests for API endpoints in courtbook/api/.

These tests verify the FastAPI endpoints for health checks, availability,
bookings and auth using the TestClient, with the services mocked out.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from courtbook.models.schemas import AuthenticatedUser, BookingOutcome, OutcomeKind

OWNER = AuthenticatedUser(id="user-1", email="owner@example.com")


@pytest.fixture
def test_client() -> TestClient:
    """Create a TestClient for the FastAPI app."""
    from courtbook.main import app

    return TestClient(app)


@pytest.fixture
def signed_in():
    """Authenticate every request as OWNER."""
    with patch("courtbook.api.deps.auth_service") as mock_auth:
        mock_auth.authenticate = AsyncMock(return_value=OWNER)
        yield mock_auth


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_health_check(self, test_client: TestClient) -> None:
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "courtbook"}

    def test_root_endpoint(self, test_client: TestClient) -> None:
        response = test_client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["version"] == "0.1.0"
        assert data["endpoints"]["request_code"] == "/bookings/request-code"
        assert data["endpoints"]["submit_code"] == "/bookings/submit-code"


class TestAvailabilityEndpoint:
    """Tests for POST /courts/availability."""

    def test_availability(self, test_client: TestClient) -> None:
        """Availability needs no authentication."""
        outcome = BookingOutcome(
            kind=OutcomeKind.AVAILABILITY,
            message="DuPont has 1 available time slots on 2025-06-10: 3:00 PM.",
            data={"available_times": ["3:00 PM"]},
        )
        with patch("courtbook.api.courts.booking_service") as mock_service:
            mock_service.check_availability = AsyncMock(return_value=outcome)

            response = test_client.post(
                "/courts/availability", json={"date": "2025-06-10", "time": "3pm"}
            )

            mock_service.check_availability.assert_awaited_once_with(
                target_date="2025-06-10", court=None, requested_time="3pm"
            )

        assert response.status_code == 200
        assert response.json()["kind"] == "availability"
        assert response.json()["data"]["available_times"] == ["3:00 PM"]

    def test_invalid_date_is_422(self, test_client: TestClient) -> None:
        outcome = BookingOutcome(
            kind=OutcomeKind.INVALID_REQUEST, message="Invalid date format: 'someday'"
        )
        with patch("courtbook.api.courts.booking_service") as mock_service:
            mock_service.check_availability = AsyncMock(return_value=outcome)

            response = test_client.post("/courts/availability", json={"date": "someday"})

        assert response.status_code == 422
        assert response.json()["detail"] == "Invalid date format: 'someday'"


class TestBookingEndpoints:
    """Tests for the two-phase booking endpoints."""

    def test_request_code_requires_auth(self, test_client: TestClient) -> None:
        """Without a valid session the caller is told how to authenticate."""
        with patch("courtbook.api.deps.auth_service") as mock_auth, patch(
            "courtbook.api.bookings.booking_service"
        ) as mock_service:
            mock_auth.authenticate = AsyncMock(return_value=None)
            mock_service.request_verification_code = AsyncMock()

            response = test_client.post("/bookings/request-code", json={"time": "3pm"})

            mock_service.request_verification_code.assert_not_awaited()

        assert response.status_code == 401
        assert response.json()["detail"].startswith("Auth required.")

    def test_request_code(self, test_client: TestClient, signed_in) -> None:
        outcome = BookingOutcome(
            kind=OutcomeKind.AWAITING_CODE,
            message="SMS verification code requested.",
            state="awaiting_code",
            data={"ticket": "abcd1234"},
        )
        with patch("courtbook.api.bookings.booking_service") as mock_service:
            mock_service.request_verification_code = AsyncMock(return_value=outcome)

            response = test_client.post(
                "/bookings/request-code",
                json={"court": "DuPont", "time": "3pm", "date": "2025-06-10"},
                headers={"X-User-Id": "user-1"},
            )

            mock_service.request_verification_code.assert_awaited_once_with(
                OWNER, court="DuPont", requested_time="3pm", target_date="2025-06-10"
            )

        signed_in.authenticate.assert_awaited_once_with("user-1")
        assert response.status_code == 200
        assert response.json()["data"]["ticket"] == "abcd1234"

    def test_request_code_failure_is_reported(self, test_client: TestClient, signed_in) -> None:
        """Booking failures are outcomes, not HTTP errors."""
        outcome = BookingOutcome(
            kind=OutcomeKind.SLOT_UNAVAILABLE,
            message="2:00 PM not available. Available: 9:00 AM, 3:00 PM",
        )
        with patch("courtbook.api.bookings.booking_service") as mock_service:
            mock_service.request_verification_code = AsyncMock(return_value=outcome)

            response = test_client.post("/bookings/request-code", json={"time": "2pm"})

        assert response.status_code == 200
        assert response.json()["kind"] == "slot_unavailable"

    def test_request_code_requires_time(self, test_client: TestClient, signed_in) -> None:
        response = test_client.post("/bookings/request-code", json={"court": "DuPont"})

        assert response.status_code == 422

    def test_submit_code(self, test_client: TestClient, signed_in) -> None:
        outcome = BookingOutcome(
            kind=OutcomeKind.BOOKED, message="Booking complete!", state="succeeded"
        )
        with patch("courtbook.api.bookings.booking_service") as mock_service:
            mock_service.submit_verification_code = AsyncMock(return_value=outcome)

            response = test_client.post(
                "/bookings/submit-code", json={"code": "123456", "ticket": "abcd1234"}
            )

            mock_service.submit_verification_code.assert_awaited_once_with(
                OWNER, "123456", ticket="abcd1234"
            )

        assert response.status_code == 200
        assert response.json()["kind"] == "booked"

    def test_history_days_bounds(self, test_client: TestClient, signed_in) -> None:
        outcome = BookingOutcome(kind=OutcomeKind.HISTORY, message="No bookings found.")
        with patch("courtbook.api.bookings.booking_service") as mock_service:
            mock_service.get_history = AsyncMock(return_value=outcome)

            ok = test_client.get("/bookings/history?days=7")
            too_many = test_client.get("/bookings/history?days=1000")

            mock_service.get_history.assert_awaited_once_with(OWNER, 7)

        assert ok.status_code == 200
        assert too_many.status_code == 422


class TestAuthEndpoints:
    """Tests for /auth endpoints."""

    def test_authenticate(self, test_client: TestClient) -> None:
        with patch("courtbook.api.auth.auth_service") as mock_auth:
            mock_auth.authorize = AsyncMock(return_value=OWNER)

            response = test_client.post(
                "/auth/authenticate", json={"user_id": "user-1", "email": "owner@example.com"}
            )

        assert response.status_code == 200
        assert response.json()["email"] == "owner@example.com"

    def test_authenticate_unauthorized_email(self, test_client: TestClient) -> None:
        with patch("courtbook.api.auth.auth_service") as mock_auth:
            mock_auth.authorize = AsyncMock(return_value=None)

            response = test_client.post(
                "/auth/authenticate", json={"user_id": "user-3", "email": "stranger@example.com"}
            )

        assert response.status_code == 403

    def test_status_when_signed_out(self, test_client: TestClient) -> None:
        with patch("courtbook.api.auth.auth_service") as mock_auth:
            mock_auth.authenticate = AsyncMock(return_value=None)

            response = test_client.get("/auth/status")

        assert response.status_code == 200
        assert response.json()["authenticated"] is False
        assert "auth_url" in response.json()

    def test_status_when_signed_in(self, test_client: TestClient) -> None:
        with patch("courtbook.api.auth.auth_service") as mock_auth:
            mock_auth.authenticate = AsyncMock(return_value=OWNER)

            response = test_client.get("/auth/status", headers={"X-User-Id": "user-1"})

        assert response.json()["authenticated"] is True
        assert response.json()["user_id"] == "user-1"


class TestDiagnosticsEndpoint:
    def test_browser_check(self, test_client: TestClient) -> None:
        outcome = BookingOutcome(
            kind=OutcomeKind.DIAGNOSTIC, message="Browser OK", data={"title": "Example Domain"}
        )
        with patch("courtbook.api.diagnostics.booking_service") as mock_service:
            mock_service.diagnostic_ping = AsyncMock(return_value=outcome)

            response = test_client.get("/diagnostics/browser")

        assert response.status_code == 200
        assert response.json()["data"]["title"] == "Example Domain"
