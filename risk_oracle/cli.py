# risk_oracle/cli.py
"""`flask scan` / `flask batch-scan` commands."""
import click
from flask import current_app
from flask.cli import with_appcontext

from risk_oracle.services.batch_scanner import TIER1_CONTRACTS, TIER2_CONTRACTS, scan_many
from risk_oracle.services.pipeline import ScanPipeline
from risk_oracle.services.reporter import report_to_markdown
from risk_oracle.services.scan_queue import is_valid_address


def _check_addresses(addresses):
    bad = [a for a in addresses if not is_valid_address(a)]
    if bad:
        raise click.BadParameter(f"invalid address(es): {', '.join(bad)}")


@click.command("scan")
@click.argument("address")
@click.option("--no-llm", is_flag=True, help="Rule analysis only.")
@with_appcontext
def scan_command(address, no_llm):
    """Scan one contract and print the Markdown report (nothing is published or stored)."""
    _check_addresses([address])
    pipeline = ScanPipeline.from_config(current_app.config)
    result = pipeline.analyze(address, use_llm=not no_llm)

    src = result.source
    click.echo(f"Contract: {src.name}")
    click.echo(f"Verified: {src.verified}")
    click.echo(f"Compiler: {src.compiler_version}")
    click.echo(f"Files: {len(src.files)}")
    click.echo(f"Rule findings: {len(result.rule_findings)} | LLM findings: {len(result.llm_findings)}")
    click.echo("=" * 60)
    click.echo(report_to_markdown(result.report))


@click.command("batch-scan")
@click.argument("addresses", nargs=-1)
@click.option("--static-only", is_flag=True, help="Skip the LLM review for every contract.")
@with_appcontext
def batch_scan_command(addresses, static_only):
    """
    Scan contracts sequentially and store their summaries.

    Without ADDRESSES, scans the built-in list: tier 1 with LLM review,
    tier 2 with rules only.
    """
    pipeline = ScanPipeline.from_config(current_app.config)
    pause = current_app.config.get("BATCH_PAUSE_SECONDS", 1.5)

    if addresses:
        _check_addresses(addresses)
        runs = [(list(addresses), not static_only)]
    else:
        runs = [(TIER1_CONTRACTS, not static_only), (TIER2_CONTRACTS, False)]

    scanned, failed = 0, []
    for batch, use_llm in runs:
        click.echo(f"--- {len(batch)} contracts ({'LLM + rules' if use_llm else 'rules'}) ---")
        res = scan_many(pipeline, batch, use_llm=use_llm, pause_seconds=pause)
        scanned += res["scanned"]
        failed += res["failed"]
        for r in res["reports"]:
            click.echo(f"  [OK] {r['contractName']} -> {r['riskScore']}/100 ({r['riskLevel']})")

    for address in failed:
        click.echo(f"  [ERR] {address}")
    click.echo(f"=== Done: {scanned} scanned, {len(failed)} failed ===")


def init_app(app):
    app.cli.add_command(scan_command)
    app.cli.add_command(batch_scan_command)
