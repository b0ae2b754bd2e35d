# risk_oracle/routes/batch_routes.py
from collections import Counter

from flask import Blueprint, jsonify, request

from risk_oracle.models import db, BatchJob
from risk_oracle.scanning import get_scan_queue, target_status
from risk_oracle.services.batch_scanner import TIER1_CONTRACTS
from risk_oracle.services.report_service import get_report
from risk_oracle.services.scan_queue import is_valid_address, normalize_target

bp = Blueprint("batch", __name__)  # prefix applied in risk_oracle/__init__.py


def _as_bool(v) -> bool:
    return str(v).lower() in ("1", "true", "yes", "on")


def _iso(dt):
    return dt.replace(microsecond=0).isoformat() + "Z" if dt else None


def _admit(address: str, force: bool) -> dict:
    if not force and get_report(address):
        return {"address": address, "accepted": False, "message": "Already audited", "position": None}
    result = get_scan_queue().enqueue(address, force=force)
    return {"address": address, **result.to_dict()}


@bp.post("/start")
def start():
    """
    Batch scan: submit many contracts to the scan queue
    ---
    tags:
      - Batch
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        required: false
        schema:
          type: object
          properties:
            addresses:
              type: array
              items: {type: string}
              description: Contracts to scan. Defaults to the built-in tier-1 list.
            force:
              type: boolean
              default: false
    responses:
      202:
        description: Batch recorded; per-address admission results
      400:
        description: Invalid addresses
    """
    data = request.get_json(silent=True) or {}
    addresses = data.get("addresses") or TIER1_CONTRACTS
    force = _as_bool(data.get("force", False))

    if not isinstance(addresses, list):
        return jsonify({"ok": False, "error": "'addresses' must be a list"}), 400
    invalid = [a for a in addresses if not isinstance(a, str) or not is_valid_address(a)]
    if invalid:
        return jsonify({"ok": False, "error": "Invalid address format", "invalid": invalid}), 400

    # dedupe, keep request order
    addresses = list(dict.fromkeys(normalize_target(a) for a in addresses))
    admissions = [_admit(a, force) for a in addresses]

    job = BatchJob(addresses=addresses, admissions=admissions, forced=force)
    db.session.add(job)
    db.session.commit()

    accepted = sum(1 for a in admissions if a["accepted"])
    return jsonify({
        "ok": True,
        "job_id": job.id,
        "accepted": accepted,
        "rejected": len(admissions) - accepted,
        "results": admissions,
    }), 202


@bp.get("/status/<int:job_id>")
def status(job_id: int):
    """
    Batch scan: live status of every target in the batch
    ---
    tags:
      - Batch
    parameters:
      - in: path
        name: job_id
        required: true
        type: integer
    responses:
      200:
        description: OK
      404:
        description: Not found
    """
    job = db.session.get(BatchJob, job_id)
    if not job:
        return jsonify({"ok": False, "error": "job not found"}), 404

    targets = [{"address": a, **target_status(a)} for a in job.addresses]
    return jsonify({
        "ok": True,
        "job_id": job.id,
        "forced": job.forced,
        "created_at": _iso(job.created_at),
        "summary": dict(Counter(t["status"] for t in targets)),
        "admissions": job.admissions,
        "targets": targets,
    }), 200
