# risk_oracle/services/pipeline.py
"""
Scan pipeline for a single contract: fetch -> analyze -> score -> publish -> persist.

Only a failed source fetch is fatal. LLM review, IPFS upload and on-chain
submission are best-effort: they are logged and the report is degraded.
"""
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, List, Optional

from risk_oracle.services import scorer
from risk_oracle.services.ipfs_service import ipfs_url, upload_to_ipfs
from risk_oracle.services.llm_service import analyze_llm
from risk_oracle.services.report_service import upsert_report
from risk_oracle.services.reporter import generate_report
from risk_oracle.services.source_service import (
    ContractSource,
    fetch_contract_source,
    filter_custom_files,
)
from risk_oracle.services.static_analyzer import analyze_static, count_centralization_factors

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    source: ContractSource
    rule_findings: List[scorer.Finding]
    llm_findings: List[scorer.Finding]
    breakdown: scorer.ScoreBreakdown
    report: dict
    ipfs_hash: str = ""
    tx_hash: str = ""
    notes: List[str] = field(default_factory=list)


def _llm_input(source: ContractSource, custom_files) -> str:
    if custom_files:
        return "\n\n".join(f"// File: {f.path}\n{f.content}" for f in custom_files)
    return source.source_code


class ScanPipeline:
    def __init__(
        self,
        *,
        fetch_source: Callable[[str], ContractSource] = fetch_contract_source,
        rule_engine: Callable = analyze_static,
        llm_reviewer: Optional[Callable] = analyze_llm,
        publisher: Optional[Callable[[dict, str], str]] = None,
        oracle=None,
        store: Callable = upsert_report,
    ):
        self.fetch_source = fetch_source
        self.rule_engine = rule_engine
        self.llm_reviewer = llm_reviewer
        self.publisher = publisher
        self.oracle = oracle
        self.store = store

    @classmethod
    def from_config(cls, config, oracle=None) -> "ScanPipeline":
        """Wire the default collaborators from a Flask config mapping."""
        publisher = None
        if config.get("PINATA_API_KEY") and config.get("PINATA_SECRET"):
            publisher = partial(
                upload_to_ipfs,
                api_key=config["PINATA_API_KEY"],
                secret=config["PINATA_SECRET"],
            )

        llm_reviewer = None
        if not config.get("SKIP_LLM"):
            llm_reviewer = partial(
                analyze_llm,
                model=config.get("LLM_MODEL"),
                max_tokens=config.get("LLM_MAX_TOKENS"),
            )

        return cls(
            fetch_source=partial(
                fetch_contract_source,
                api_key=config.get("BSCSCAN_API_KEY", ""),
                chain_id=config.get("SCAN_CHAIN_ID"),
                base_url=config.get("ETHERSCAN_V2_BASE"),
            ),
            llm_reviewer=llm_reviewer,
            publisher=publisher,
            oracle=oracle,
        )

    # ---------------------------
    # Stages
    # ---------------------------

    def analyze(self, target: str, use_llm: bool = True) -> ScanResult:
        """Fetch and analyze without publishing. Raises if the source fetch fails."""
        logger.info("Fetching source for %s", target)
        source = self.fetch_source(target)
        logger.info(
            "Contract %s | verified=%s | files=%d", source.name, source.verified, len(source.files)
        )

        custom_files = filter_custom_files(source.files)
        rule_findings = [f for file in custom_files for f in self.rule_engine(file.content, file.path)]
        logger.info("Rule findings: %d", len(rule_findings))

        llm_findings: List[scorer.Finding] = []
        notes: List[str] = []
        if use_llm and self.llm_reviewer and source.verified and source.source_code:
            logger.info("Running LLM review for %s", source.name)
            try:
                llm_findings = list(
                    self.llm_reviewer(_llm_input(source, custom_files), source.name, source.compiler_version)
                )
            except Exception:
                logger.exception("LLM review failed for %s", target)
                notes.append("llm_failed")
            logger.info("LLM findings: %d", len(llm_findings))
        else:
            logger.info("Skipping LLM review for %s", source.name)

        breakdown = scorer.score(
            rule_findings,
            llm_findings,
            source.verified,
            count_centralization_factors(rule_findings),
        )
        logger.info("Risk score %s/100 (%s)", breakdown.risk_score, breakdown.risk_level)

        report = generate_report(
            target,
            source.name,
            source.compiler_version,
            source.verified,
            breakdown,
            rule_findings + llm_findings,
        )
        return ScanResult(source, rule_findings, llm_findings, breakdown, report, notes=notes)

    def publish(self, target: str, result: ScanResult) -> ScanResult:
        if self.publisher is not None:
            try:
                result.ipfs_hash = self.publisher(result.report, target) or ""
                if result.ipfs_hash:
                    logger.info("Report pinned: %s", ipfs_url(result.ipfs_hash))
            except Exception:
                logger.exception("IPFS upload failed for %s", target)
                result.notes.append("ipfs_failed")

        if self.oracle is not None:
            b = result.breakdown
            try:
                result.tx_hash = self.oracle.submit_report(
                    target,
                    b.risk_score,
                    result.ipfs_hash or "pending",
                    b.total_findings,
                    b.critical_count,
                    b.high_count,
                    b.medium_count,
                    b.low_count,
                    result.source.verified,
                ) or ""
                logger.info("Report submitted on-chain: %s", result.tx_hash)
            except Exception:
                logger.exception("On-chain submission failed for %s", target)
                result.notes.append("onchain_failed")
        return result

    def persist(self, target: str, result: ScanResult):
        return self.store(
            target,
            result.source.name,
            result.breakdown,
            result.source.verified,
            ipfs_hash=result.ipfs_hash,
            tx_hash=result.tx_hash,
        )

    def run(self, target: str):
        """Full pipeline; this is the Scan Queue processor."""
        logger.info("=== Scanning %s ===", target)
        result = self.publish(target, self.analyze(target))
        summary = self.persist(target, result)
        logger.info(
            "=== Done: %s -> score %s (%s) ===",
            result.source.name, result.breakdown.risk_score, result.breakdown.risk_level,
        )
        return summary
