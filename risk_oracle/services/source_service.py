import json
import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

import requests

logger = logging.getLogger(__name__)

# Etherscan v2 multichain endpoint (BscScan keys work against chainid=56)
ETHERSCAN_V2_BASE = os.getenv("ETHERSCAN_V2_BASE", "https://api.etherscan.io/v2/api")
DEFAULT_CHAIN_ID = "56"

STANDARD_LIB_PREFIXES = (
    "@openzeppelin/",
    "@chainlink/",
    "@uniswap/",
    "hardhat/",
    "forge-std/",
    "solmate/",
)


class SourceFetchError(RuntimeError):
    """Source could not be retrieved at all (network, HTTP or payload error)."""


@dataclass
class SourceFile:
    path: str
    content: str


@dataclass
class ContractSource:
    address: str
    name: str = "Unknown"
    compiler_version: str = ""
    optimization_used: bool = False
    runs: int = 0
    source_code: str = ""
    abi: str = ""
    license: str = ""
    is_proxy: bool = False
    implementation_address: Optional[str] = None
    verified: bool = False
    files: List[SourceFile] = field(default_factory=list)


# ---------------------------
# Parsing helpers
# ---------------------------

def _files_from_standard_json(raw: str) -> List[SourceFile]:
    parsed = json.loads(raw)
    sources = parsed.get("sources") or {}
    return [SourceFile(path=path, content=(obj or {}).get("content", "")) for path, obj in sources.items()]


def _split_source(raw: str, contract_name: str) -> List[SourceFile]:
    """
    Etherscan returns source in three shapes:
      - "{{ ... }}"  standard JSON input wrapped in an extra pair of braces
      - "{ ... }"    standard JSON input
      - anything else: a single flattened file
    Unparseable JSON falls back to one flat file.
    """
    if raw.startswith("{{"):
        try:
            return _files_from_standard_json(raw[1:-1])
        except (json.JSONDecodeError, AttributeError):
            return [SourceFile(path="contract.sol", content=raw)]
    if raw.startswith("{"):
        try:
            return _files_from_standard_json(raw)
        except (json.JSONDecodeError, AttributeError):
            return [SourceFile(path="contract.sol", content=raw)]
    return [SourceFile(path=f"{contract_name or 'contract'}.sol", content=raw)]


def parse_source_result(address: str, data: dict) -> ContractSource:
    """
    Build a ContractSource from a `getsourcecode` response.
    status != "1" (or an empty result) means the contract is not verified.
    """
    result = data.get("result")
    if str(data.get("status")) != "1" or not isinstance(result, list) or not result:
        return ContractSource(address=address)

    entry = result[0] or {}
    raw = entry.get("SourceCode") or ""
    name = entry.get("ContractName") or "Unknown"
    verified = raw != ""

    files: List[SourceFile] = []
    full_source = ""
    if verified:
        files = _split_source(raw, entry.get("ContractName"))
        if len(files) == 1 and files[0].content == raw:
            full_source = raw
        else:
            full_source = "".join(f"// File: {f.path}\n{f.content}\n\n" for f in files)

    try:
        runs = int(entry.get("Runs") or 0)
    except (TypeError, ValueError):
        runs = 0

    return ContractSource(
        address=address,
        name=name,
        compiler_version=entry.get("CompilerVersion") or "",
        optimization_used=str(entry.get("OptimizationUsed")) == "1",
        runs=runs,
        source_code=full_source,
        abi=entry.get("ABI") or "",
        license=entry.get("LicenseType") or "",
        is_proxy=str(entry.get("Proxy")) == "1",
        implementation_address=entry.get("Implementation") or None,
        verified=verified,
        files=files,
    )


# ---------------------------
# Fetch
# ---------------------------

def fetch_contract_source(
    address: str,
    api_key: Optional[str] = None,
    chain_id: Optional[str] = None,
    base_url: Optional[str] = None,
    timeout: float = 20,
) -> ContractSource:
    """Fetch verified source for `address`. Raises SourceFetchError if unreachable."""
    params = {
        "module": "contract",
        "action": "getsourcecode",
        "address": address,
        "apikey": api_key if api_key is not None else os.getenv("BSCSCAN_API_KEY", ""),
        "chainid": chain_id or os.getenv("SCAN_CHAIN_ID", DEFAULT_CHAIN_ID),
    }
    try:
        resp = requests.get(base_url or ETHERSCAN_V2_BASE, params=params, timeout=timeout)
        resp.raise_for_status()
        data = resp.json()
    except (requests.RequestException, ValueError) as e:
        raise SourceFetchError(f"Could not fetch source for {address}: {e}") from e

    if not isinstance(data, dict):
        raise SourceFetchError(f"Unexpected explorer response for {address}: {data!r}")

    source = parse_source_result(address, data)
    if not source.verified:
        logger.info("No verified source for %s (%s)", address, data.get("message"))
    return source


def filter_custom_files(files: List[SourceFile]) -> List[SourceFile]:
    """Drop well-known library files so analysis focuses on project code."""
    return [f for f in files if not any(prefix in f.path for prefix in STANDARD_LIB_PREFIXES)]
