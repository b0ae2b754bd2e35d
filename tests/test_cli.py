from types import SimpleNamespace

import pytest

from risk_oracle import cli
from risk_oracle.services.pipeline import ScanPipeline
from risk_oracle.services.scorer import Finding

ADDR = "0x" + "ab" * 20


@pytest.fixture()
def cli_pipeline(monkeypatch, contract_source):
    def rules(code, path):
        return [Finding(id="TX_ORIGIN", title="tx.origin used for authorization", severity="high", line=3)]

    pipeline = ScanPipeline(
        fetch_source=lambda target: contract_source(address=target, name="Vault"),
        rule_engine=rules,
        llm_reviewer=None,
    )
    monkeypatch.setattr(cli, "ScanPipeline", SimpleNamespace(from_config=lambda config: pipeline))
    return pipeline


def test_scan_command_prints_report(app, cli_pipeline):
    result = app.test_cli_runner().invoke(args=["scan", ADDR, "--no-llm"])
    assert result.exit_code == 0, result.output
    assert "Contract: Vault" in result.output
    assert "Rule findings: 1 | LLM findings: 0" in result.output
    assert "TX_ORIGIN" in result.output


def test_scan_command_rejects_bad_address(app, cli_pipeline):
    result = app.test_cli_runner().invoke(args=["scan", "0x12"])
    assert result.exit_code != 0
    assert "invalid address" in result.output


def test_batch_scan_command(app, cli_pipeline):
    other = "0x" + "cd" * 20
    result = app.test_cli_runner().invoke(args=["batch-scan", ADDR, other, "--static-only"])
    assert result.exit_code == 0, result.output
    assert "--- 2 contracts (rules) ---" in result.output
    assert "[OK] Vault -> 10/100 (low)" in result.output
    assert "=== Done: 2 scanned, 0 failed ===" in result.output
