# risk_oracle/services/batch_scanner.py
"""Sequential scanner used by `flask batch-scan` to seed the report store."""
import logging
import time
from typing import Iterable, List, Optional

from risk_oracle.services.pipeline import ScanPipeline

logger = logging.getLogger(__name__)

# Explorer free tier allows ~5 req/s; stay well below
DEFAULT_PAUSE_SECONDS = 1.5

# Well-known BSC contracts (full LLM + rule analysis)
TIER1_CONTRACTS = [
    "0x10ed43c718714eb63d5aa57b78b54704e256024e",  # PancakeSwap Router V2
    "0x13f4ea83d0bd40e75c8222255bc855a974568dd4",  # PancakeSwap Router V3
    "0xbb4cdb9cbd36b01bd1cbaebf2de08d9173bc095c",  # WBNB
    "0x0e09fabb73bd3ade0a17ecc321fd13a19e81ce82",  # CAKE
    "0xcf6bb5389c92bdda8a3747ddb454cb7a64626c63",  # Venus XVS
    "0x55d398326f99059ff775485246999027b3197955",  # BSC-USD
    "0x8ac76a51cc950d9822d68b83fe1ad97b32cd580d",  # USDC
    "0xe9e7cea3dedca5984780bafc599bd69add087d56",  # BUSD
]

# Rule analysis only (keeps LLM cost down)
TIER2_CONTRACTS = [
    "0x3ee2200efb3400fabb9aacf31297cbdd1d435d47",  # ADA
    "0xf8a0bf9cf54bb92f17374d9e9a321e6a111a51bd",  # LINK
    "0xca143ce32fe78f1f7019d7d551a6402fc5350c73",  # PancakeSwap Factory V2
    "0x73feaa1ee314f8c655e354234017be2193c9e24e",  # PancakeSwap MasterChef
]


def scan_one(pipeline: ScanPipeline, address: str, use_llm: bool = True) -> Optional[dict]:
    """Analyze and persist one contract without publishing. Returns the summary or None."""
    try:
        result = pipeline.analyze(address, use_llm=use_llm)
        summary = pipeline.persist(address, result)
    except Exception as e:
        logger.exception("[ERR] %s: %s", address, e)
        return None

    b = result.breakdown
    logger.info(
        "[OK] %s -> %s/100 (%s) [%s, %d findings]",
        result.source.name, b.risk_score, b.risk_level,
        "llm+rules" if use_llm else "rules", b.total_findings,
    )
    return summary.to_dict()


def scan_many(
    pipeline: ScanPipeline,
    addresses: Iterable[str],
    use_llm: bool = True,
    pause_seconds: float = DEFAULT_PAUSE_SECONDS,
) -> dict:
    scanned: List[dict] = []
    failed: List[str] = []
    for i, address in enumerate(addresses):
        if i and pause_seconds:
            time.sleep(pause_seconds)
        summary = scan_one(pipeline, address, use_llm=use_llm)
        if summary is None:
            failed.append(address)
        else:
            scanned.append(summary)

    logger.info("Batch done: %d scanned, %d failed", len(scanned), len(failed))
    return {"scanned": len(scanned), "failed": failed, "reports": scanned}
