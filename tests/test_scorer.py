import pytest

from risk_oracle.services.scorer import dedupe_findings, risk_level_for, score


def test_empty_inputs_verified_source_scores_zero():
    b = score([], [], True, 0)
    assert b.risk_score == 0
    assert b.risk_level == "low"
    assert b.total_findings == 0


def test_unverified_penalty_applies_without_findings():
    b = score([], [], False, 0)
    assert b.unverified_score == 10
    assert b.risk_score == 10
    assert b.risk_level == "low"


def test_two_critical_one_high_unverified(finding):
    rules = [finding("SELFDESTRUCT", "critical", 10), finding("DELEGATECALL", "critical", 20)]
    llm = [finding("LLM_ACCESS", "high", 5)]
    b = score(rules, llm, False, 0)
    assert b.critical_score == 40
    assert b.high_score == 10
    assert b.unverified_score == 10
    assert b.risk_score == 60
    assert b.risk_level == "high"


def test_dedup_by_id_and_line(finding):
    rules = [finding("REENTRANCY", "high", 12), finding("REENTRANCY", "high", 30)]
    llm = [finding("REENTRANCY", "high", 12), finding("TX_ORIGIN", "high"), finding("TX_ORIGIN", "high")]
    b = score(rules, llm, True, 0)
    assert b.high_count == 3
    assert b.total_findings == 3


def test_dedup_keeps_first_occurrence(finding):
    first = finding("X", "critical", 1, title="first")
    second = finding("X", "low", 1, title="second")
    assert dedupe_findings([first, second]) == [first]


def test_rescoring_deduplicated_list_is_stable(finding):
    findings = [finding("A", "medium", 1), finding("A", "medium", 1), finding("B", "low"), finding("B", "low")]
    once = score(findings, [], True, 1)
    again = score(dedupe_findings(findings), [], True, 1)
    assert once == again
    assert score(findings, [], True, 1) == once


@pytest.mark.parametrize("n", [2, 3, 10, 100])
def test_critical_subscore_is_capped(finding, n):
    b = score([finding(f"C{i}", "critical", i) for i in range(n)], [], True, 0)
    assert b.critical_score == 40
    assert b.critical_count == n


def test_tier_caps(finding):
    highs = [finding(f"H{i}", "high", i) for i in range(5)]
    mediums = [finding(f"M{i}", "medium", i) for i in range(7)]
    b = score(highs, mediums, True, 9)
    assert b.high_score == 25
    assert b.medium_score == 15
    assert b.centralization_score == 10


def test_total_is_capped_at_100(finding):
    findings = (
        [finding(f"C{i}", "critical", i) for i in range(5)]
        + [finding(f"H{i}", "high", i) for i in range(5)]
        + [finding(f"M{i}", "medium", i) for i in range(5)]
    )
    b = score(findings, [], False, 4)
    # 40 + 25 + 15 + 10 + 10 = 100
    assert b.risk_score == 100
    assert b.risk_level == "critical"


def test_low_and_info_only_count(finding):
    b = score([finding("L", "low", 1), finding("I", "info", 2)], [], True, 0)
    assert b.risk_score == 0
    assert b.low_count == 1
    assert b.info_count == 1
    assert b.total_findings == 2


def test_centralization_counts_factors_not_findings():
    assert score([], [], True, 1).centralization_score == 3
    assert score([], [], True, 3).centralization_score == 9
    assert score([], [], True, 4).centralization_score == 10
    assert score([], [], True, -2).centralization_score == 0


@pytest.mark.parametrize(
    "value, level",
    [(0, "low"), (20, "low"), (21, "medium"), (50, "medium"), (51, "high"), (75, "high"), (76, "critical"), (100, "critical")],
)
def test_risk_level_boundaries(value, level):
    assert risk_level_for(value) == level


def test_breakdown_serializes(finding):
    data = score([finding("A", "high", 1)], [], True, 0).to_dict()
    assert data["risk_score"] == 10
    assert data["risk_level"] == "low"
    assert set(data) >= {"critical_count", "high_count", "medium_count", "low_count", "info_count"}
