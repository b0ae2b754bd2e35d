from datetime import datetime, timezone
from typing import Iterable, List

from risk_oracle.services.scorer import SEVERITIES, Finding, ScoreBreakdown, dedupe_findings

REPORT_VERSION = "1.0"


def generate_report(
    address: str,
    contract_name: str,
    compiler_version: str,
    source_verified: bool,
    breakdown: ScoreBreakdown,
    findings: Iterable[Finding],
) -> dict:
    """Full JSON report document (what gets pinned to IPFS)."""
    unique = dedupe_findings(findings)
    rank = {sev: i for i, sev in enumerate(SEVERITIES)}
    ordered: List[Finding] = sorted(unique, key=lambda f: rank.get(f.severity, len(rank)))

    return {
        "version": REPORT_VERSION,
        "address": address.lower(),
        "contractName": contract_name,
        "compilerVersion": compiler_version,
        "sourceVerified": source_verified,
        "timestamp": datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z"),
        "riskScore": breakdown.risk_score,
        "riskLevel": breakdown.risk_level,
        "breakdown": breakdown.to_dict(),
        "findings": [f.to_dict() for f in ordered],
    }


def report_to_markdown(report: dict) -> str:
    lines = [
        f"# Security report: {report['contractName']}",
        "",
        f"- Address: `{report['address']}`",
        f"- Compiler: {report.get('compilerVersion') or 'n/a'}",
        f"- Source verified: {'yes' if report['sourceVerified'] else 'no'}",
        f"- Risk score: **{report['riskScore']}/100** ({report['riskLevel']})",
        "",
        "## Score breakdown",
        "",
    ]
    b = report["breakdown"]
    for label, key in (
        ("Critical", "critical_score"),
        ("High", "high_score"),
        ("Medium", "medium_score"),
        ("Unverified source", "unverified_score"),
        ("Centralization", "centralization_score"),
    ):
        lines.append(f"- {label}: {b[key]}")

    lines += ["", f"## Findings ({len(report['findings'])})", ""]
    if not report["findings"]:
        lines.append("No findings.")
    for f in report["findings"]:
        where = f" (line {f['line']})" if f.get("line") else ""
        lines.append(f"### [{f['severity'].upper()}] {f['title']}{where}")
        lines.append("")
        lines.append(f"`{f['id']}`, confidence {f['confidence']}")
        if f.get("description"):
            lines += ["", f["description"]]
        lines.append("")
    return "\n".join(lines)
