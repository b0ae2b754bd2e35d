# risk_oracle/models/report.py
from datetime import datetime

from risk_oracle.models import db


class ReportSummary(db.Model):
    """Latest audit result per contract (one row per lower-cased address)."""

    __tablename__ = "report_summaries"

    id = db.Column(db.Integer, primary_key=True)
    address = db.Column(db.String(42), nullable=False, unique=True, index=True)
    contract_name = db.Column(db.String(128), nullable=False, default="Unknown")

    risk_score = db.Column(db.Integer, nullable=False, default=0)       # 0..100
    risk_level = db.Column(db.String(16), nullable=False, default="low")  # low|medium|high|critical
    total_findings = db.Column(db.Integer, nullable=False, default=0)
    critical_count = db.Column(db.Integer, nullable=False, default=0)
    high_count = db.Column(db.Integer, nullable=False, default=0)
    medium_count = db.Column(db.Integer, nullable=False, default=0)
    low_count = db.Column(db.Integer, nullable=False, default=0)
    source_verified = db.Column(db.Boolean, nullable=False, default=False)

    ipfs_hash = db.Column(db.String(128), nullable=False, default="")
    tx_hash = db.Column(db.String(80), nullable=False, default="")
    timestamp = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "contractName": self.contract_name,
            "riskScore": self.risk_score,
            "riskLevel": self.risk_level,
            "totalFindings": self.total_findings,
            "criticalCount": self.critical_count,
            "highCount": self.high_count,
            "mediumCount": self.medium_count,
            "lowCount": self.low_count,
            "sourceVerified": self.source_verified,
            "ipfsHash": self.ipfs_hash,
            "txHash": self.tx_hash,
            "timestamp": self.timestamp.replace(microsecond=0).isoformat() + "Z" if self.timestamp else None,
        }
