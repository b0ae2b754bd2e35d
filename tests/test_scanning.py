from datetime import datetime, timedelta

from risk_oracle.scanning import EXTENSION_KEY, init_scanning, seed_cooldowns
from risk_oracle.services.pipeline import ScanPipeline
from risk_oracle.services.report_service import list_reports, upsert_report
from risk_oracle.services.scorer import score

RECENT = "0x" + "ab" * 20
STALE = "0x" + "cd" * 20


def _store(address, age):
    upsert_report(address, "Token", score([], [], True, 0), True, timestamp=datetime.utcnow() - age)


def test_seed_cooldowns_from_recent_reports(app, make_queue, processor):
    _store(RECENT, timedelta(hours=1))
    _store(STALE, timedelta(hours=25))
    q = make_queue(processor)

    assert seed_cooldowns(q, list_reports()) == 1
    assert q.enqueue(RECENT).accepted is False
    assert q.enqueue(STALE).accepted is True
    assert q.enqueue(RECENT, force=True).accepted is True


def test_init_scanning_restores_cooldown_after_restart(app, monkeypatch, contract_source):
    _store(RECENT, timedelta(minutes=5))
    monkeypatch.setitem(app.extensions, EXTENSION_KEY, app.extensions[EXTENSION_KEY])

    pipeline = ScanPipeline(fetch_source=lambda t: contract_source(address=t), llm_reviewer=None)
    queue = init_scanning(app, pipeline=pipeline)
    try:
        assert app.extensions[EXTENSION_KEY] is queue
        res = queue.enqueue(RECENT)
        assert res.accepted is False
        assert "cooldown" in res.message
    finally:
        queue.shutdown()
