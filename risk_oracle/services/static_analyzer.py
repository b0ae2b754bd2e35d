# risk_oracle/services/static_analyzer.py
"""
Regex/heuristic rule engine for Solidity sources.

Fast and deterministic; runs before the LLM review to give baseline findings.
"""
import re
from dataclasses import dataclass
from typing import List, Optional, Pattern

from risk_oracle.services.scorer import Finding


@dataclass(frozen=True)
class PatternRule:
    id: str
    title: str
    severity: str
    pattern: Pattern
    description: str
    confidence: str


RULES: List[PatternRule] = [
    # --- critical ---
    PatternRule(
        "SELFDESTRUCT", "Selfdestruct present", "critical",
        re.compile(r"selfdestruct\s*\(|suicide\s*\("),
        "Contract contains selfdestruct which can permanently destroy the contract "
        "and send remaining ETH/BNB to an arbitrary address.",
        "high",
    ),
    PatternRule(
        "DELEGATECALL_USER_INPUT", "Delegatecall with user-controlled input", "critical",
        re.compile(r"\.delegatecall\s*\("),
        "Delegatecall executes code in the context of the calling contract. If the target "
        "is user-controlled, an attacker can execute arbitrary code.",
        "medium",
    ),
    # --- high ---
    PatternRule(
        "REENTRANCY", "Potential reentrancy", "high",
        re.compile(r"\.call\{[^}]*value\s*:.*?\}|\.transfer\(|\.send\("),
        "External call that transfers value detected. If state changes occur after this "
        "call, the contract may be vulnerable to reentrancy.",
        "medium",
    ),
    PatternRule(
        "TX_ORIGIN", "tx.origin used for authentication", "high",
        re.compile(r"tx\.origin"),
        "tx.origin returns the original sender of the transaction. Using it for auth is "
        "vulnerable to phishing attacks where a malicious contract forwards calls.",
        "high",
    ),
    PatternRule(
        "UNCHECKED_LOW_LEVEL", "Unchecked low-level call return value", "high",
        re.compile(r"(?:address\s*\([^)]*\)\s*)?\.call\{?[^}]*\}?\s*\([^)]*\)\s*;"),
        "Low-level call without checking the return value. If the call fails silently, "
        "the contract may continue with incorrect state.",
        "medium",
    ),
    # --- medium ---
    PatternRule(
        "MISSING_ZERO_CHECK", "Missing zero-address validation", "medium",
        re.compile(r"function\s+(?:set|update|change|transfer)\w*\s*\([^)]*address\s+\w+[^)]*\)"),
        "Setter function takes an address parameter without checking for address(0). "
        "Setting critical addresses to zero can brick the contract.",
        "low",
    ),
    PatternRule(
        "ARBITRARY_SEND", "Arbitrary ETH/BNB transfer", "medium",
        re.compile(r"\.call\{[^}]*value\s*:[^}]+\}\s*\(\s*\"\"\s*\)"),
        "ETH/BNB sent to an address that may be user-controlled. Verify the recipient is intended.",
        "medium",
    ),
    PatternRule(
        "BLOCK_TIMESTAMP", "Block timestamp used for critical logic", "medium",
        re.compile(r"block\.timestamp"),
        "block.timestamp can be slightly manipulated by validators. Avoid using it as the "
        "sole source of randomness or for precise timing.",
        "low",
    ),
    PatternRule(
        "UNSAFE_CAST", "Unsafe type casting", "medium",
        re.compile(r"uint(?:8|16|32|64|128)\s*\(\s*\w+\s*\)"),
        "Downcasting without an explicit range check can silently truncate values.",
        "low",
    ),
    # --- low / info ---
    PatternRule(
        "MISSING_EVENTS", "State change without event emission", "low",
        re.compile(
            r"function\s+(?:set|update|change|pause|unpause|withdraw|deposit)\w*\s*\([^)]*\)"
            r"[^{]*\{(?:(?!emit\s+\w+)[^}])*\}",
            re.DOTALL,
        ),
        "State-changing function does not emit an event. Events are important for "
        "off-chain monitoring and transparency.",
        "low",
    ),
    PatternRule(
        "PUBLIC_FUNC", "Function could be external instead of public", "info",
        re.compile(r"function\s+\w+\s*\([^)]*\)\s+public\b(?!\s+view|\s+pure)"),
        "Public functions that are never called internally should be declared external to save gas.",
        "low",
    ),
    # --- centralization ---
    PatternRule(
        "CENTRALIZATION_PROXY", "Upgradeable proxy pattern detected", "medium",
        re.compile(r"upgradeTo\s*\(|_upgradeTo\s*\(|ERC1967Upgrade|TransparentUpgradeableProxy|UUPSUpgradeable"),
        "Contract uses an upgradeable proxy. The admin can change the implementation at any time.",
        "high",
    ),
    PatternRule(
        "CENTRALIZATION_PAUSE", "Pausable functionality", "low",
        re.compile(r"Pausable|whenNotPaused|_pause\s*\(\)|paused\s*\(\)"),
        "Contract can be paused by an admin, freezing user funds. Check for a timelock or multisig.",
        "high",
    ),
    PatternRule(
        "CENTRALIZATION_MINT", "Unrestricted mint capability", "medium",
        re.compile(r"function\s+mint\s*\([^)]*\)[^{]*\{"),
        "Mint function detected. If callable by a single admin without supply cap, it can "
        "dilute token holders.",
        "medium",
    ),
    PatternRule(
        "CENTRALIZATION_FEE", "Admin-controlled fee mechanism", "low",
        re.compile(r"function\s+(?:set|update|change)(?:Fee|Tax|Rate)\s*\("),
        "Admin can change fees. Verify there's a maximum cap to prevent setting fees to 100%.",
        "medium",
    ),
]

# Rules that may legitimately fire at several locations in one file
REPEATABLE_IDS = frozenset({"REENTRANCY", "UNCHECKED_LOW_LEVEL", "MISSING_ZERO_CHECK"})

CENTRALIZATION_IDS = frozenset({
    "CENTRALIZATION_PROXY",
    "CENTRALIZATION_PAUSE",
    "CENTRALIZATION_MINT",
    "CENTRALIZATION_FEE",
})


def _line_of(source: str, offset: int) -> int:
    return source.count("\n", 0, offset) + 1


def analyze_static(source_code: str, file_name: Optional[str] = None) -> List[Finding]:
    """Run every rule over one source file."""
    findings: List[Finding] = []
    seen_ids = set()

    for rule in RULES:
        for match in rule.pattern.finditer(source_code):
            if rule.id not in REPEATABLE_IDS:
                if rule.id in seen_ids:
                    break
                seen_ids.add(rule.id)
            findings.append(Finding(
                id=rule.id,
                title=rule.title,
                severity=rule.severity,
                description=rule.description,
                confidence=rule.confidence,
                line=_line_of(source_code, match.start()),
                pattern=match.group(0)[:100],
                file=file_name,
            ))

    return findings


def count_centralization_factors(findings: List[Finding]) -> int:
    """Number of distinct centralization rules that fired."""
    return len({f.id for f in findings if f.id in CENTRALIZATION_IDS})
