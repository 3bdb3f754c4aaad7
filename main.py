from flask import Flask, request, jsonify, make_response
from flask_cors import CORS
from commission_engine import AggregationFailed, CommissionProcessor, SnapshotFailed
import os
import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = Flask(__name__)

# Enable CORS for all routes (the dashboard and report jobs call the API)
CORS(app)

# Organization default method, used when a request does not name one
DEFAULT_METHOD = os.environ.get("COMMISSION_METHOD", "PROGRESSIVE")
MAX_WORKERS = int(os.environ.get("COMMISSION_MAX_WORKERS", 4))

# Initialize the commission processor
processor = CommissionProcessor(default_method=DEFAULT_METHOD, max_workers=MAX_WORKERS)


@app.route("/api", methods=["GET"])
def api_info():
    """API information endpoint"""
    return jsonify({
        "status": "ok",
        "message": "Trainer Commission Calculator API",
        "version": "1.0",
        "default_method": DEFAULT_METHOD,
        "endpoints": {
            "calculate_commission": "/calculate_commission [POST]",
            "calculate_roster": "/calculate_roster [POST]",
            "export": "/export [POST]",
            "health": "/health [GET]"
        }
    }), 200


@app.route("/health", methods=["GET"])
def health():
    """Health check for monitoring"""
    return jsonify({"status": "healthy"}), 200


def _get_input():
    input_data = request.get_json(force=True, silent=True)
    if not input_data:
        raise ValueError("No input data provided")
    return input_data


def _error_response(e: Exception):
    """Map engine errors to HTTP responses."""
    if isinstance(e, (ValueError, KeyError, TypeError)):
        # Validation errors from engine (invalid tiers, ineligible trainer, bad payload)
        logger.error(f"Validation error: {str(e)}")
        return jsonify({"error": str(e), "status": "validation_failed"}), 400

    if isinstance(e, (AggregationFailed, SnapshotFailed)):
        logger.error(f"Retryable error: {str(e)}")
        return jsonify({"error": str(e), "status": "retryable"}), 503

    # Unexpected errors
    logger.error(f"Processing error: {str(e)}", exc_info=True)
    return jsonify({"error": "An unexpected error occurred during processing", "status": "failed"}), 500


@app.route("/calculate_commission", methods=["POST"])
def calculate_commission():
    """
    Calculate one trainer's commission for a period
    """
    try:
        input_data = _get_input()
        trainer_id = input_data.get("trainer_id", "Unknown")
        logger.info(f"Calculating commission for trainer: {trainer_id}")

        result = processor.calculate_trainer_from_dict(input_data)

        logger.info(f"Commission calculated for trainer: {trainer_id}")
        return jsonify(result), 200

    except Exception as e:
        return _error_response(e)


@app.route("/calculate_roster", methods=["POST"])
def calculate_roster():
    """
    Calculate commissions for every eligible trainer of an organization
    """
    try:
        input_data = _get_input()
        logger.info(f"Calculating roster for organization: {input_data.get('organization_id', 'Unknown')}")

        result = processor.calculate_roster_from_dict(input_data)

        return jsonify(result), 200

    except Exception as e:
        return _error_response(e)


@app.route("/export", methods=["POST"])
def export_report():
    """
    Roster report as a CSV attachment
    """
    try:
        input_data = _get_input()
        csv = processor.export_from_dict(input_data)

        period = input_data.get("period")
        suffix = period if isinstance(period, str) else "custom"
        response = make_response(csv, 200)
        response.headers["Content-Type"] = "text/csv"
        response.headers["Content-Disposition"] = f'attachment; filename="commission-report-{suffix}.csv"'
        return response

    except Exception as e:
        return _error_response(e)


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port, debug=False)
