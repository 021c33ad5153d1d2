# ABOUTME: JSON HTTP service exposing batch anomaly detection to dashboards
# ABOUTME: Detect endpoint plus read/update of the effective detection config

import os
from datetime import datetime

import structlog
from dotenv import load_dotenv
from flask import Flask, jsonify, request
from pydantic import ValidationError

from housewatch.config import DetectionConfig
from housewatch.normalizer import READING_ADAPTERS
from housewatch.service import AnomalyDetectionService

load_dotenv()

app = Flask(__name__)
logger = structlog.get_logger(__name__)

service = AnomalyDetectionService(
    DetectionConfig.from_env(),
    max_workers=int(os.getenv("HOUSEWATCH_MAX_WORKERS", 4)),
)


@app.route("/api/anomalies/detect", methods=["POST"])
def detect_anomalies():
    """Run detection over the posted batch of readings"""
    data = request.get_json(silent=True)
    if isinstance(data, list):
        readings, source = data, None
    elif isinstance(data, dict) and isinstance(data.get("readings"), list):
        readings, source = data["readings"], data.get("source")
    else:
        return jsonify({"success": False, "error": "readings list required"}), 400

    if not (source is None or isinstance(source, str)) or source not in READING_ADAPTERS:
        return jsonify({"success": False, "error": f"unknown source: {source}"}), 400

    result = service.detect(readings, source=source)
    logger.info(
        "api.detect",
        run_id=result.run_id,
        readings=len(readings),
        anomalies=result.summary.total_anomalies,
    )
    return jsonify(result.to_wire())


@app.route("/api/anomalies/config", methods=["GET"])
def get_config():
    return jsonify(service.get_config().to_wire())


@app.route("/api/anomalies/config", methods=["PATCH", "POST"])
def update_config():
    """Merge a partial config; invalid values leave the current config intact"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"success": False, "error": "JSON object required"}), 400

    try:
        service.update_config(data)
    except ValidationError as e:
        logger.warning("api.config_rejected", errors=e.errors(include_url=False))
        return (
            jsonify(
                {
                    "success": False,
                    "error": "invalid configuration",
                    "details": e.errors(include_url=False, include_context=False),
                }
            ),
            400,
        )

    return jsonify(service.get_config().to_wire())


@app.route("/api/status")
def status():
    """Service status"""
    return jsonify(
        {
            "status": "ok",
            "config": service.get_config().to_wire(),
            "timestamp": datetime.now().isoformat(),
        }
    )


if __name__ == "__main__":
    port = int(os.getenv("HOUSEWATCH_PORT", "5001"))
    app.run(host="0.0.0.0", port=port, debug=os.getenv("DEBUG", False), threaded=True)
