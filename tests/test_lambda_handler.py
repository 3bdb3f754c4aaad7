"""Tests for AWS Lambda handler."""

import base64
import json
from unittest.mock import patch

import pytest

import lambda_handler as handler_module
from commission_engine import AggregationFailed
from lambda_handler import lambda_handler

PAYLOAD = {
    "organization_id": "org-1",
    "period": "2026-10",
    "trainer_id": "t-alice",
    "trainers": [
        {"id": "t-alice", "name": "Alice", "email": "alice@gym.test", "organization_id": "org-1"},
    ],
    "sessions": [
        {"trainer_id": "t-alice", "session_date": f"2026-10-{day:02d}", "value": 100, "validated": True}
        for day in range(1, 16)
    ],
}


def post(path, body):
    return {"httpMethod": "POST", "path": path, "body": body if isinstance(body, str) else json.dumps(body)}


class TestLambdaHandler:
    """Test the Lambda handler routes and responses."""

    def test_health_check(self):
        """GET /health returns healthy status."""
        response = lambda_handler({"httpMethod": "GET", "path": "/health"}, None)

        assert response["statusCode"] == 200
        body = json.loads(response["body"])
        assert body["status"] == "healthy"
        assert "environment" in body

    def test_api_info(self):
        """GET /api returns API information."""
        response = lambda_handler({"httpMethod": "GET", "path": "/api"}, None)

        assert response["statusCode"] == 200
        body = json.loads(response["body"])
        assert body["status"] == "ok"
        assert body["runtime"] == "AWS Lambda"
        assert "calculate_roster" in body["endpoints"]

    def test_cors_preflight(self):
        """OPTIONS requests return CORS headers."""
        response = lambda_handler({"httpMethod": "OPTIONS", "path": "/calculate_commission"}, None)

        assert response["statusCode"] == 200
        assert "Access-Control-Allow-Origin" in response["headers"]
        assert "Access-Control-Allow-Methods" in response["headers"]

    def test_not_found(self):
        """Unknown paths return 404."""
        response = lambda_handler({"httpMethod": "GET", "path": "/unknown"}, None)

        assert response["statusCode"] == 404
        assert json.loads(response["body"])["path"] == "/unknown"

    def test_http_api_event_format(self):
        """HTTP API (v2) events carry method and path elsewhere."""
        event = {"rawPath": "/health", "requestContext": {"http": {"method": "GET"}}}
        assert lambda_handler(event, None)["statusCode"] == 200

    def test_calculate_commission_success(self):
        """POST /calculate_commission computes one trainer."""
        response = lambda_handler(post("/calculate_commission", PAYLOAD), None)

        assert response["statusCode"] == 200
        body = json.loads(response["body"])
        assert body["total_sessions"] == 15
        assert body["commission_amount"] == 750.0
        assert body["snapshot_id"]

    def test_base64_body(self):
        """API Gateway may base64-encode the body."""
        event = post("/calculate_commission", base64.b64encode(json.dumps(PAYLOAD).encode()).decode())
        event["isBase64Encoded"] = True

        assert lambda_handler(event, None)["statusCode"] == 200

    def test_trainer_profile_selects_tiers_and_method(self):
        """A trainer's commission profile replaces the organization tiers."""
        payload = dict(
            PAYLOAD,
            trainers=[dict(PAYLOAD["trainers"][0], profile_id="p-senior")],
            profiles=[{
                "id": "p-senior",
                "name": "Senior Trainer",
                "calculation_method": "GRADUATED",
                "tiers": [
                    {"min_sessions": 1, "max_sessions": 5, "percentage": 0.5},
                    {"min_sessions": 6, "max_sessions": None, "percentage": 0.7},
                ],
            }],
        )
        body = json.loads(lambda_handler(post("/calculate_commission", payload), None)["body"])

        assert body["method"] == "GRADUATED"
        assert body["commission_amount"] == 950.0
        assert body["trainer"]["profile_name"] == "Senior Trainer"
        assert body["profile_id"] == "p-senior"

    def test_calculate_roster_success(self):
        response = lambda_handler(post("/calculate_roster", PAYLOAD), None)

        assert response["statusCode"] == 200
        body = json.loads(response["body"])
        assert body["totals"]["trainer_count"] == 1
        assert body["complete"] is True

    def test_export_returns_csv(self):
        response = lambda_handler(post("/export", PAYLOAD), None)

        assert response["statusCode"] == 200
        assert response["headers"]["Content-Type"] == "text/csv"
        assert response["body"].startswith("Trainer Name,Email,Location")

    def test_empty_body(self):
        """POST with empty body returns 400."""
        response = lambda_handler(post("/calculate_commission", ""), None)

        assert response["statusCode"] == 400
        assert "error" in json.loads(response["body"])

    def test_invalid_json(self):
        """POST with invalid JSON returns 400."""
        response = lambda_handler(post("/calculate_commission", "not valid json"), None)

        assert response["statusCode"] == 400
        assert "Invalid JSON" in json.loads(response["body"])["error"]

    @pytest.mark.parametrize("change", [
        {"method": "FLAT"},
        {"trainer_id": "t-nobody"},
        {"organization_id": ""},
        {"period": "October"},
        {"tiers": [{"min_sessions": 1, "max_sessions": 10, "percentage": 0.4}]},
        {"tiers": [{"min_sessions": 1, "max_sessions": None, "percentage": "abc"}]},
        {"sessions": [{"trainer_id": "t-alice", "session_date": "2026-10-01", "value": "abc"}]},
    ])
    def test_validation_errors(self, change):
        """Bad methods, trainers, periods, tier tables and amounts return 400."""
        response = lambda_handler(post("/calculate_commission", dict(PAYLOAD, **change)), None)

        assert response["statusCode"] == 400
        assert json.loads(response["body"])["status"] == "validation_failed"

    def test_aggregation_failure_is_retryable(self):
        """Session store failures return 503 so callers can retry."""
        with patch.object(handler_module.processor, "calculate_trainer_from_dict",
                          side_effect=AggregationFailed("t-alice", "timeout")):
            response = lambda_handler(post("/calculate_commission", PAYLOAD), None)

        assert response["statusCode"] == 503
        assert json.loads(response["body"])["status"] == "retryable"

    def test_unexpected_error_hides_details(self):
        with patch.object(handler_module.processor, "calculate_trainer_from_dict",
                          side_effect=RuntimeError("secret connection string")):
            response = lambda_handler(post("/calculate_commission", PAYLOAD), None)

        assert response["statusCode"] == 500
        assert "secret" not in response["body"]
