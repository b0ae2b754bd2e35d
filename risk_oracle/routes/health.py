from datetime import datetime, timezone

from flask import Blueprint, jsonify

from risk_oracle.scanning import get_scan_queue

bp = Blueprint("health", __name__)


@bp.get("/healthz")
def healthz():
    """
    Healthcheck (liveness)
    ---
    tags:
      - Health
    responses:
      200:
        description: OK
    """
    return jsonify({"ok": True}), 200


@bp.get("/health")
def health():
    """
    Service health with scan queue state
    ---
    tags:
      - Health
    responses:
      200:
        description: OK
    """
    return jsonify({
        "status": "ok",
        "queue": get_scan_queue().get_queue_state(),
        "timestamp": datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z"),
    }), 200
