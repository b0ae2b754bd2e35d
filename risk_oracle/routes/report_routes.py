# risk_oracle/routes/report_routes.py
from flask import Blueprint, jsonify

from risk_oracle.services.report_service import get_report, list_reports

bp = Blueprint("reports", __name__)


@bp.get("/reports.json")
def reports():
    """
    All report summaries (Explorer feed)
    ---
    tags:
      - Reports
    responses:
      200:
        description: List of report summaries, newest first
    """
    return jsonify([r.to_dict() for r in list_reports()]), 200


@bp.get("/report/<address>")
def report(address: str):
    """
    Report summary for one contract
    ---
    tags:
      - Reports
    parameters:
      - in: path
        name: address
        required: true
        type: string
        example: "0x10ed43c718714eb63d5aa57b78b54704e256024e"
    responses:
      200:
        description: OK
      404:
        description: Not audited
    """
    rec = get_report(address)
    if not rec:
        return jsonify({"error": "Not audited"}), 404
    return jsonify(rec.to_dict()), 200
