from datetime import datetime
from typing import List, Optional

from risk_oracle.models import db
from risk_oracle.models.report import ReportSummary
from risk_oracle.services.scorer import ScoreBreakdown


def _norm_addr(address: str) -> str:
    if not address:
        raise ValueError("Empty or invalid contract address")
    return address.strip().lower()


def get_report(address: str) -> Optional[ReportSummary]:
    return ReportSummary.query.filter_by(address=_norm_addr(address)).first()


def list_reports() -> List[ReportSummary]:
    return ReportSummary.query.order_by(ReportSummary.timestamp.desc()).all()


def upsert_report(
    address: str,
    contract_name: str,
    breakdown: ScoreBreakdown,
    source_verified: bool,
    ipfs_hash: str = "",
    tx_hash: str = "",
    timestamp: Optional[datetime] = None,
) -> ReportSummary:
    """
    Insert or replace the summary for `address` and RETURN the DB record.
    Latest write wins; one row per lower-cased address.
    """
    addr = _norm_addr(address)
    rec = ReportSummary.query.filter_by(address=addr).first()
    if rec is None:
        rec = ReportSummary(address=addr)
        db.session.add(rec)

    rec.contract_name = contract_name or "Unknown"
    rec.risk_score = breakdown.risk_score
    rec.risk_level = breakdown.risk_level
    rec.total_findings = breakdown.total_findings
    rec.critical_count = breakdown.critical_count
    rec.high_count = breakdown.high_count
    rec.medium_count = breakdown.medium_count
    rec.low_count = breakdown.low_count
    rec.source_verified = bool(source_verified)
    rec.ipfs_hash = ipfs_hash or ""
    rec.tx_hash = tx_hash or ""
    rec.timestamp = timestamp or datetime.utcnow()

    db.session.commit()
    return rec
