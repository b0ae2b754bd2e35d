from datetime import datetime

from risk_oracle.models import db


class BatchJob(db.Model):
    """A batch of targets submitted to the scan queue in one request."""

    __tablename__ = "batch_jobs"

    id = db.Column(db.Integer, primary_key=True)
    addresses = db.Column(db.JSON, nullable=False)  # normalized targets, request order
    admissions = db.Column(db.JSON, nullable=False)  # per-target enqueue outcome
    forced = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
