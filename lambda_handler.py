"""
AWS Lambda handler for the Trainer Commission Engine API.

This is the production entry point for AWS Lambda deployments.
For local development, use main.py (Flask app) instead.
"""

import base64
import json
import logging
import os

from commission_engine import AggregationFailed, CommissionProcessor, SnapshotFailed

# Configure logging
logger = logging.getLogger()
logger.setLevel(logging.INFO)

# Environment (dev, staging, prod)
ENVIRONMENT = os.environ.get("ENVIRONMENT", "dev")

# Organization default method, used when a request does not name one
DEFAULT_METHOD = os.environ.get("COMMISSION_METHOD", "PROGRESSIVE")

# Initialize processor (reused across warm invocations)
processor = CommissionProcessor(
    default_method=DEFAULT_METHOD,
    max_workers=int(os.environ.get("COMMISSION_MAX_WORKERS", 4)),
)

# CORS headers for API Gateway
CORS_HEADERS = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,Authorization",
    "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
}

CSV_HEADERS = dict(CORS_HEADERS, **{"Content-Type": "text/csv"})


def lambda_handler(event, context):
    """
    Main Lambda entry point.

    Handles API Gateway events for:
    - GET /health
    - GET /api
    - POST /calculate_commission
    - POST /calculate_roster
    - POST /export
    - OPTIONS (CORS preflight)
    """
    # Handle CORS preflight
    http_method = event.get("httpMethod") or event.get("requestContext", {}).get("http", {}).get("method", "")
    if http_method == "OPTIONS":
        return {"statusCode": 200, "headers": CORS_HEADERS, "body": ""}

    # Get path (supports both REST API and HTTP API formats)
    path = event.get("path") or event.get("rawPath", "")

    # Route to appropriate handler
    if path == "/health" and http_method == "GET":
        return handle_health()
    elif path == "/api" and http_method == "GET":
        return handle_api_info()
    elif path == "/calculate_commission" and http_method == "POST":
        return handle_post(event, processor.calculate_trainer_from_dict)
    elif path == "/calculate_roster" and http_method == "POST":
        return handle_post(event, processor.calculate_roster_from_dict)
    elif path == "/export" and http_method == "POST":
        return handle_post(event, processor.export_from_dict, csv=True)
    else:
        return {"statusCode": 404, "headers": CORS_HEADERS, "body": json.dumps({"error": "Not found", "path": path})}


def handle_health():
    """Health check endpoint."""
    return {
        "statusCode": 200,
        "headers": CORS_HEADERS,
        "body": json.dumps({"status": "healthy", "environment": ENVIRONMENT}),
    }


def handle_api_info():
    """API information endpoint."""
    return {
        "statusCode": 200,
        "headers": CORS_HEADERS,
        "body": json.dumps(
            {
                "status": "ok",
                "message": "Trainer Commission Calculator API",
                "version": "1.0",
                "environment": ENVIRONMENT,
                "runtime": "AWS Lambda",
                "default_method": DEFAULT_METHOD,
                "endpoints": {
                    "calculate_commission": "/calculate_commission [POST]",
                    "calculate_roster": "/calculate_roster [POST]",
                    "export": "/export [POST]",
                    "health": "/health [GET]",
                },
            }
        ),
    }


def _parse_body(event):
    body = event.get("body", "")
    if not isinstance(body, str):
        return body
    if not body:
        return None
    # Handle base64 encoded body (API Gateway)
    if event.get("isBase64Encoded"):
        body = base64.b64decode(body).decode("utf-8")
    return json.loads(body)


def _failure(status, message, state):
    return {"statusCode": status, "headers": CORS_HEADERS, "body": json.dumps({"error": message, "status": state})}


def handle_post(event, operation, csv=False):
    """Run a calculation operation on the request body."""
    try:
        input_data = _parse_body(event)
        if not input_data:
            return _failure(400, "No input data provided", "failed")

        logger.info(f"Processing {event.get('path') or event.get('rawPath')} for organization: "
                    f"{input_data.get('organization_id', 'Unknown')}")

        result = operation(input_data)

        if csv:
            return {"statusCode": 200, "headers": CSV_HEADERS, "body": result}
        return {"statusCode": 200, "headers": CORS_HEADERS, "body": json.dumps(result)}

    except json.JSONDecodeError as e:
        logger.error(f"JSON parse error: {str(e)}")
        return _failure(400, f"Invalid JSON: {str(e)}", "failed")

    except (ValueError, KeyError, TypeError) as e:
        # Validation errors from engine (invalid tiers, ineligible trainer, bad payload)
        logger.error(f"Validation error: {str(e)}")
        return _failure(400, f"Validation error: {str(e)}", "validation_failed")

    except (AggregationFailed, SnapshotFailed) as e:
        logger.error(f"Retryable error: {str(e)}")
        return _failure(503, str(e), "retryable")

    except Exception as e:
        # Unexpected errors - log details but return generic message to avoid information disclosure
        logger.error(f"Unexpected processing error: {str(e)}", exc_info=True)
        return _failure(500, "An unexpected error occurred during processing", "failed")
