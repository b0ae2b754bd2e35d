# risk_oracle/services/scorer.py
from dataclasses import dataclass, asdict
from typing import Iterable, List, Optional

SEVERITIES = ("critical", "high", "medium", "low", "info")
CONFIDENCES = ("high", "medium", "low")

# Caps per tier (diminishing returns)
CRITICAL_WEIGHT, CRITICAL_CAP = 20, 40
HIGH_WEIGHT, HIGH_CAP = 10, 25
MEDIUM_WEIGHT, MEDIUM_CAP = 5, 15
UNVERIFIED_PENALTY = 10
CENTRALIZATION_WEIGHT, CENTRALIZATION_CAP = 3, 10
MAX_SCORE = 100


@dataclass(frozen=True)
class Finding:
    """One detected issue, from the rule engine or the LLM reviewer."""

    id: str
    title: str
    severity: str
    description: str = ""
    confidence: str = "medium"
    line: Optional[int] = None
    pattern: str = ""
    file: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ScoreBreakdown:
    risk_score: int
    critical_score: int
    high_score: int
    medium_score: int
    unverified_score: int
    centralization_score: int
    critical_count: int
    high_count: int
    medium_count: int
    low_count: int
    info_count: int
    total_findings: int
    risk_level: str

    def to_dict(self) -> dict:
        return asdict(self)


def dedupe_findings(findings: Iterable[Finding]) -> List[Finding]:
    """
    Collapse findings sharing the same (id, line) pair.
    Keeps the first occurrence and preserves input order.
    """
    seen = set()
    unique = []
    for f in findings:
        key = (f.id, f.line)
        if key in seen:
            continue
        seen.add(key)
        unique.append(f)
    return unique


def risk_level_for(score: int) -> str:
    if score <= 20:
        return "low"
    if score <= 50:
        return "medium"
    if score <= 75:
        return "high"
    return "critical"


def score(
    rule_findings: Iterable[Finding],
    llm_findings: Iterable[Finding],
    source_verified: bool,
    centralization_factors: int,
) -> ScoreBreakdown:
    """
    Merge both finding sources and compute a bounded 0..100 risk score.

    Low and info findings are counted but never weigh on the score.
    Pure function: same inputs always give the same breakdown.
    """
    unique = dedupe_findings(list(rule_findings) + list(llm_findings))

    counts = {sev: 0 for sev in SEVERITIES}
    for f in unique:
        if f.severity in counts:
            counts[f.severity] += 1

    critical_score = min(CRITICAL_CAP, counts["critical"] * CRITICAL_WEIGHT)
    high_score = min(HIGH_CAP, counts["high"] * HIGH_WEIGHT)
    medium_score = min(MEDIUM_CAP, counts["medium"] * MEDIUM_WEIGHT)
    unverified_score = 0 if source_verified else UNVERIFIED_PENALTY
    centralization_score = min(
        CENTRALIZATION_CAP, max(0, int(centralization_factors)) * CENTRALIZATION_WEIGHT
    )

    total = critical_score + high_score + medium_score + unverified_score + centralization_score
    total = max(0, min(MAX_SCORE, total))

    return ScoreBreakdown(
        risk_score=total,
        critical_score=critical_score,
        high_score=high_score,
        medium_score=medium_score,
        unverified_score=unverified_score,
        centralization_score=centralization_score,
        critical_count=counts["critical"],
        high_count=counts["high"],
        medium_count=counts["medium"],
        low_count=counts["low"],
        info_count=counts["info"],
        total_findings=len(unique),
        risk_level=risk_level_for(total),
    )
