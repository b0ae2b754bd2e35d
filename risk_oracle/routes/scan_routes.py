# risk_oracle/routes/scan_routes.py
from flask import Blueprint, jsonify, request

from risk_oracle.scanning import get_scan_queue, target_status
from risk_oracle.services.report_service import get_report
from risk_oracle.services.scan_queue import is_valid_address

bp = Blueprint("scan", __name__)

# Rough wall-clock cost of one scan, for the client-side ETA
MINUTES_PER_SCAN = 2


def _as_bool(v) -> bool:
    return str(v).lower() in ("1", "true", "yes", "on")


@bp.post("/scan")
def scan():
    """
    Request a contract scan
    ---
    tags:
      - Scan
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - address
          properties:
            address:
              type: string
              description: Contract address to audit.
              example: "0x10ed43c718714eb63d5aa57b78b54704e256024e"
            force:
              type: boolean
              description: Re-scan even if a report exists or the cooldown is active.
              default: false
    responses:
      200:
        description: Queued, or already audited
      400:
        description: Missing or invalid address
      429:
        description: Rejected (cooldown active or queue full)
    """
    data = request.get_json(silent=True) or {}
    address = data.get("address")
    force = _as_bool(data.get("force", False))

    if not address or not isinstance(address, str):
        return jsonify({"ok": False, "error": "Missing 'address' in request body"}), 400
    address = address.strip()
    if not is_valid_address(address):
        return jsonify({"ok": False, "error": "Invalid address format"}), 400

    if not force:
        cached = get_report(address)
        if cached:
            return jsonify({"status": "completed", "report": cached.to_dict()}), 200

    result = get_scan_queue().enqueue(address, force=force)
    if not result.accepted:
        return jsonify({"ok": False, "error": result.message}), 429

    return jsonify({
        "status": "queued",
        "message": result.message,
        "position": result.position,
        "estimatedTime": f"~{max(result.position or 1, 1) * MINUTES_PER_SCAN} minutes",
    }), 200


@bp.get("/status/<address>")
def status(address: str):
    """
    Scan status for a contract
    ---
    tags:
      - Scan
    parameters:
      - in: path
        name: address
        required: true
        type: string
    responses:
      200:
        description: completed (with report), pending, processing, failed or unknown
    """
    return jsonify(target_status(address)), 200


@bp.get("/queue")
def queue_state():
    """
    Scan queue counters
    ---
    tags:
      - Scan
    responses:
      200:
        description: "{pending, processing, total}"
    """
    return jsonify(get_scan_queue().get_queue_state()), 200
