# risk_oracle/services/llm_service.py
import json
import logging
import os
import re
from typing import Any, Dict, List, Optional

import anthropic

from risk_oracle.services.scorer import CONFIDENCES, SEVERITIES, Finding

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
MAX_SOURCE_CHARS = 100_000

SYSTEM_PROMPT = """You are an expert smart contract security auditor with deep experience in DeFi protocols on EVM chains.

Analyze the provided Solidity source code and identify security vulnerabilities.

Respond with JSON only, in this exact shape:
{
  "findings": [
    {
      "id": "LLM_<SHORT_ID>",
      "title": "Brief title",
      "severity": "critical|high|medium|low|info",
      "description": "What is wrong and what an attacker gains",
      "line": <line_number_or_null>,
      "confidence": "high|medium|low"
    }
  ]
}

Severity guide:
- critical: direct theft of funds, permanent freezing of funds, unauthorized minting
- high: theft of unclaimed yield, permanent DoS of critical functions, governance manipulation
- medium: griefing, unbounded gas consumption, temporary DoS
- low: missing events, suboptimal patterns
- info: best practice suggestions

Focus on business logic flaws, economic attacks (flash loans, oracle manipulation, MEV),
access control gaps, reentrancy, token handling, external call safety and centralization risks.

Do NOT flag intentionally used well-known patterns (e.g. OpenZeppelin Ownable), compiler
version suggestions for 0.8.x+ contracts, pure gas optimizations or style issues.
Only report findings you are confident about."""

_JSON_BLOCK = re.compile(r"\{[\s\S]*\"findings\"[\s\S]*\}")

_CLIENT = None


def _get_client():
    global _CLIENT
    if _CLIENT is None:
        _CLIENT = anthropic.Anthropic(api_key=os.getenv("ANTHROPIC_API_KEY"))
    return _CLIENT


def _build_prompt(source_code: str, contract_name: str, compiler_version: str) -> str:
    if len(source_code) > MAX_SOURCE_CHARS:
        source_code = source_code[:MAX_SOURCE_CHARS] + "\n// ... truncated ..."
    return (
        "Analyze this Solidity contract for security vulnerabilities:\n\n"
        f"Contract: {contract_name}\n"
        f"Compiler: {compiler_version}\n\n"
        f"```solidity\n{source_code}\n```\n\n"
        'Return your findings as JSON. If no vulnerabilities are found, return {"findings": []}.'
    )


def _to_line(value: Any) -> Optional[int]:
    try:
        line = int(value)
    except (TypeError, ValueError):
        return None
    return line if line > 0 else None


def _to_text(value: Any, default: str = "") -> str:
    # the model occasionally returns lists or objects where a string belongs
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        return default
    return str(value).strip() or default


def parse_findings(text: str) -> List[Finding]:
    """Extract findings from the model reply (the JSON may be wrapped in markdown)."""
    match = _JSON_BLOCK.search(text or "")
    if not match:
        logger.warning("LLM response did not contain JSON findings")
        return []

    parsed = json.loads(match.group(0))
    raw_findings = parsed.get("findings") if isinstance(parsed, dict) else None
    if not isinstance(raw_findings, list):
        return []

    findings = []
    for f in raw_findings:
        if not isinstance(f, dict):
            continue
        severity = f.get("severity") if f.get("severity") in SEVERITIES else "info"
        confidence = f.get("confidence") if f.get("confidence") in CONFIDENCES else "medium"
        findings.append(Finding(
            id=_to_text(f.get("id"), "LLM_UNKNOWN"),
            title=_to_text(f.get("title"), "Unknown finding"),
            severity=severity,
            description=_to_text(f.get("description")),
            confidence=confidence,
            line=_to_line(f.get("line")),
            pattern="LLM analysis",
        ))
    return findings


def analyze_llm(
    source_code: str,
    contract_name: str,
    compiler_version: str,
    *,
    client=None,
    model: Optional[str] = None,
    max_tokens: Optional[int] = None,
) -> List[Finding]:
    """
    Ask the model for findings. Any failure (API, parsing) yields an empty list;
    the review is best-effort and must never fail a scan.
    """
    params: Dict[str, Any] = {
        "model": model or os.getenv("LLM_MODEL", DEFAULT_MODEL),
        "max_tokens": int(max_tokens or os.getenv("LLM_MAX_TOKENS", 4096)),
        "system": SYSTEM_PROMPT,
        "messages": [{"role": "user", "content": _build_prompt(source_code, contract_name, compiler_version)}],
    }
    try:
        response = (client or _get_client()).messages.create(**params)
        text = "".join(
            getattr(block, "text", "") for block in response.content if getattr(block, "type", "") == "text"
        )
        return parse_findings(text)
    except Exception:
        logger.exception("LLM analysis failed for %s", contract_name)
        return []
