# risk_oracle/scanning.py
"""Wires the scan queue, the pipeline and the on-chain listener into the Flask app."""
import logging
import time
from datetime import datetime, timezone
from typing import Iterable, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from risk_oracle.models import db
from risk_oracle.services.oracle_service import OracleClient
from risk_oracle.services.pipeline import ScanPipeline
from risk_oracle.services.report_service import get_report, list_reports
from risk_oracle.services.scan_queue import ScanQueue

logger = logging.getLogger(__name__)

EXTENSION_KEY = "scan_queue"


def _iso_ts(ts):
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_oracle(config) -> Optional[OracleClient]:
    if config.get("SKIP_ONCHAIN"):
        return None
    if not (config.get("ORACLE_ADDRESS") and config.get("AGENT_PRIVATE_KEY")):
        return None
    oracle = OracleClient(
        config["ORACLE_ADDRESS"],
        config["AGENT_PRIVATE_KEY"],
        config.get("BSC_RPC_URL"),
        poll_seconds=config.get("ORACLE_POLL_SECONDS", 15),
        use_poa=config.get("WEB3_USE_POA", True),
    )
    logger.info("Oracle client initialized. Agent: %s", oracle.address)
    return oracle


def seed_cooldowns(queue: ScanQueue, reports: Iterable, now: Optional[float] = None) -> int:
    """Stamp the cooldown record from stored reports still inside the window."""
    now = time.time() if now is None else now
    seeded = 0
    for rec in reports:
        if rec.timestamp is None:
            continue
        # timestamps are stored as naive UTC
        when = rec.timestamp.replace(tzinfo=timezone.utc).timestamp()
        if now - when < queue.cooldown_seconds:
            queue.mark_scanned(rec.address, when=when)
            seeded += 1
    return seeded


def _seed_from_store(app, queue: ScanQueue) -> None:
    with app.app_context():
        try:
            seeded = seed_cooldowns(queue, list_reports())
        except SQLAlchemyError as e:
            # fresh database without tables yet
            db.session.rollback()
            logger.warning("Could not seed scan cooldowns from stored reports: %s", e)
            return
        finally:
            db.session.remove()
    if seeded:
        logger.info("Seeded cooldown for %d recently scanned contracts", seeded)


def init_scanning(app, pipeline: Optional[ScanPipeline] = None) -> ScanQueue:
    oracle = build_oracle(app.config)
    pipeline = pipeline or ScanPipeline.from_config(app.config, oracle=oracle)

    def process(target: str) -> None:
        # Queue workers run outside any request
        with app.app_context():
            pipeline.run(target)

    queue = ScanQueue(
        process,
        cooldown_seconds=app.config["SCAN_COOLDOWN_SECONDS"],
        min_interval_seconds=app.config["SCAN_MIN_INTERVAL_SECONDS"],
        max_pending=app.config["SCAN_MAX_PENDING"],
        history_limit=app.config["SCAN_HISTORY_LIMIT"],
        cooldown_on_failure=app.config["SCAN_COOLDOWN_ON_FAILURE"],
    )
    _seed_from_store(app, queue)
    app.extensions[EXTENSION_KEY] = queue

    if oracle is not None and app.config.get("ORACLE_LISTENER_ENABLED"):
        def on_request(target, requester):
            result = queue.enqueue(target)
            logger.info(
                "On-chain audit requested for %s by %s: %s", target, requester, result.message
            )

        try:
            oracle.listen_for_requests(on_request)
        except Exception:
            logger.exception("Could not start AuditRequested listener")

    return queue


def get_scan_queue() -> ScanQueue:
    return current_app.extensions[EXTENSION_KEY]


def target_status(address: str) -> dict:
    """
    Status of one target as the API reports it: an in-flight queue item wins,
    then a stored report, then the last terminal queue item.
    """
    item = get_scan_queue().get_status(address)
    if item and item.is_active:
        return {"status": item.status, "requestedAt": _iso_ts(item.requested_at)}

    cached = get_report(address)
    if cached:
        return {"status": "completed", "report": cached.to_dict()}

    if item:
        return {
            "status": item.status,
            "error": item.error,
            "requestedAt": _iso_ts(item.requested_at),
        }
    return {"status": "unknown"}
