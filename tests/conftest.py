import os
import threading

import pytest

from risk_oracle import create_app
from risk_oracle.models import db as _db, BatchJob, ReportSummary
from risk_oracle.services.scan_queue import ScanQueue
from risk_oracle.services.scorer import Finding
from risk_oracle.services.source_service import ContractSource, SourceFile


def _addr(n: int) -> str:
    return f"0x{n:040x}"


@pytest.fixture(scope="session")
def app():
    os.environ["FLASK_ENV"] = "testing"
    app = create_app("testing")
    with app.app_context():
        _db.create_all()
        yield app
        _db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def clean_tables(app):
    yield
    _db.session.rollback()
    ReportSummary.query.delete()
    BatchJob.query.delete()
    _db.session.commit()


class GatedProcessor:
    """Fake scan processor: records calls and blocks until released."""

    def __init__(self, blocking=False):
        self.calls = []
        self.fail = set()
        self.release = threading.Event()
        if not blocking:
            self.release.set()

    def __call__(self, target):
        self.calls.append(target)
        assert self.release.wait(5), "processor never released"
        if target in self.fail:
            raise RuntimeError(f"boom: {target}")


@pytest.fixture()
def processor():
    return GatedProcessor()


@pytest.fixture()
def blocking_processor():
    proc = GatedProcessor(blocking=True)
    yield proc
    proc.release.set()


@pytest.fixture()
def make_queue():
    created = []

    def _make(proc, **kwargs):
        kwargs.setdefault("min_interval_seconds", 0)
        q = ScanQueue(proc, **kwargs)
        created.append(q)
        return q

    yield _make
    for q in created:
        q.shutdown()


@pytest.fixture()
def app_queue(app, monkeypatch, processor):
    """Swap the app's scan queue for one driven by a fake processor."""
    q = ScanQueue(processor, min_interval_seconds=0)
    monkeypatch.setitem(app.extensions, "scan_queue", q)
    yield q
    q.shutdown()


@pytest.fixture()
def finding():
    def _finding(id="RULE", severity="medium", line=None, **kwargs):
        kwargs.setdefault("title", id.title())
        return Finding(id=id, severity=severity, line=line, **kwargs)
    return _finding


@pytest.fixture()
def contract_source():
    def _source(address=None, verified=True, code="contract Token {}", name="Token", files=None):
        if files is None:
            files = [SourceFile(path=f"{name}.sol", content=code)] if verified else []
        return ContractSource(
            address=address or _addr(1),
            name=name,
            compiler_version="v0.8.19+commit.7dd6d404",
            source_code=code if verified else "",
            verified=verified,
            files=files,
        )
    return _source
