# risk_oracle/models/__init__.py
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()


def init_app(app):
    app.config.setdefault("SQLALCHEMY_TRACK_MODIFICATIONS", False)
    db.init_app(app)
    migrate.init_app(app, db)


# Registers the models on the metadata
from .report import ReportSummary  # noqa
from .batch_job import BatchJob  # noqa

__all__ = ["db", "migrate", "ReportSummary", "BatchJob"]
