# risk_oracle/services/oracle_service.py
"""On-chain SecurityOracle client: report submission and AuditRequested polling."""
import logging
import threading
from typing import Callable, Optional

from web3 import Web3
from web3.exceptions import ContractCustomError, ContractLogicError

logger = logging.getLogger(__name__)

ORACLE_ABI = [
    {
        "type": "function",
        "name": "submitReport",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "target", "type": "address"},
            {"name": "riskScore", "type": "uint8"},
            {"name": "ipfsHash", "type": "string"},
            {"name": "findingsCount", "type": "uint16"},
            {"name": "criticalCount", "type": "uint8"},
            {"name": "highCount", "type": "uint8"},
            {"name": "mediumCount", "type": "uint8"},
            {"name": "lowCount", "type": "uint8"},
            {"name": "sourceVerified", "type": "bool"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "getScore",
        "stateMutability": "view",
        "inputs": [{"name": "target", "type": "address"}],
        "outputs": [{"name": "", "type": "uint8"}],
    },
    {
        "type": "function",
        "name": "isAudited",
        "stateMutability": "view",
        "inputs": [{"name": "target", "type": "address"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "function",
        "name": "getAuditedCount",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "event",
        "name": "AuditRequested",
        "anonymous": False,
        "inputs": [
            {"name": "target", "type": "address", "indexed": True},
            {"name": "requester", "type": "address", "indexed": True},
        ],
    },
    {
        "type": "event",
        "name": "ReportSubmitted",
        "anonymous": False,
        "inputs": [
            {"name": "target", "type": "address", "indexed": True},
            {"name": "riskScore", "type": "uint8", "indexed": False},
            {"name": "ipfsHash", "type": "string", "indexed": False},
        ],
    },
]

DEFAULT_POLL_SECONDS = 15.0


def _build_w3(rpc_url: str, use_poa: bool = True) -> Web3:
    w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": 15}))
    if use_poa:
        # BSC and most testnets are PoA chains
        from web3.middleware import ExtraDataToPOAMiddleware
        w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    return w3


def _clamp(value: int, upper: int) -> int:
    return max(0, min(upper, int(value)))


class OracleClient:
    def __init__(
        self,
        oracle_address: str,
        private_key: str,
        rpc_url: Optional[str] = None,
        *,
        w3: Optional[Web3] = None,
        chain_id: Optional[int] = None,
        poll_seconds: float = DEFAULT_POLL_SECONDS,
        use_poa: bool = True,
    ):
        if not oracle_address or not private_key:
            raise RuntimeError("ORACLE_ADDRESS and AGENT_PRIVATE_KEY are required")
        if w3 is None:
            if not rpc_url:
                raise RuntimeError("BSC_RPC_URL not configured")
            w3 = _build_w3(rpc_url, use_poa=use_poa)

        self.w3 = w3
        self._private_key = private_key
        self.account = w3.eth.account.from_key(private_key)
        self.contract = w3.eth.contract(address=Web3.to_checksum_address(oracle_address), abi=ORACLE_ABI)
        self._chain_id = chain_id
        self.poll_seconds = float(poll_seconds)

        self._last_block = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self) -> str:
        return self.account.address

    # ---------------------------
    # Writes
    # ---------------------------

    def submit_report(
        self,
        target: str,
        risk_score: int,
        ipfs_hash: str,
        findings_count: int,
        critical_count: int,
        high_count: int,
        medium_count: int,
        low_count: int,
        source_verified: bool,
        receipt_timeout: int = 180,
    ) -> str:
        """Sign and send submitReport, wait for the receipt and return the tx hash (0x...)."""
        fn = self.contract.functions.submitReport(
            Web3.to_checksum_address(target),
            _clamp(risk_score, 100),
            ipfs_hash,
            _clamp(findings_count, 2**16 - 1),
            _clamp(critical_count, 255),
            _clamp(high_count, 255),
            _clamp(medium_count, 255),
            _clamp(low_count, 255),
            bool(source_verified),
        )

        tx_params = {
            "from": self.account.address,
            "nonce": self.w3.eth.get_transaction_count(self.account.address, "pending"),
            "chainId": self._chain_id or self.w3.eth.chain_id,
        }
        try:
            gas = fn.estimate_gas(tx_params)
        except (ContractCustomError, ContractLogicError) as e:
            raise RuntimeError(f"submitReport would revert: {e}") from e
        tx_params["gas"] = int(gas * 1.2)

        # EIP-1559 when the chain exposes baseFeePerGas, legacy otherwise
        latest = self.w3.eth.get_block("latest")
        base_fee = latest.get("baseFeePerGas")
        if base_fee is not None:
            max_priority = self.w3.to_wei(1, "gwei")
            tx_params["maxFeePerGas"] = int(base_fee * 2) + max_priority
            tx_params["maxPriorityFeePerGas"] = max_priority
        else:
            tx_params["gasPrice"] = self.w3.eth.gas_price

        tx = fn.build_transaction(tx_params)
        signed = self.w3.eth.account.sign_transaction(tx, private_key=self._private_key)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=receipt_timeout)
        if receipt.get("status") == 0:
            raise RuntimeError(f"submitReport reverted: {Web3.to_hex(tx_hash)}")
        return Web3.to_hex(tx_hash)

    # ---------------------------
    # Reads
    # ---------------------------

    def is_audited(self, target: str) -> bool:
        return bool(self.contract.functions.isAudited(Web3.to_checksum_address(target)).call())

    def get_score(self, target: str) -> int:
        return int(self.contract.functions.getScore(Web3.to_checksum_address(target)).call())

    def get_audited_count(self) -> int:
        return int(self.contract.functions.getAuditedCount().call())

    # ---------------------------
    # AuditRequested listener
    # ---------------------------

    def poll_once(self, callback: Callable[[str, str], object]) -> int:
        """
        Deliver AuditRequested events mined since the last poll.
        HTTP RPC endpoints don't support filters, so this uses eth_getLogs ranges.
        """
        current = self.w3.eth.block_number
        if current <= self._last_block:
            return 0

        events = self.contract.events.AuditRequested().get_logs(
            from_block=self._last_block + 1, to_block=current
        )
        for event in events:
            args = event["args"]
            callback(args["target"], args["requester"])
        self._last_block = current
        return len(events)

    def listen_for_requests(self, callback: Callable[[str, str], object]) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._last_block = self.w3.eth.block_number
        logger.info("Polling AuditRequested events from block %s", self._last_block)

        self._stop.clear()
        self._thread = threading.Thread(
            target=self._poll_loop, args=(callback,), name="oracle-listener", daemon=True
        )
        self._thread.start()

    def stop_listening(self) -> None:
        self._stop.set()

    def _poll_loop(self, callback):
        while not self._stop.wait(self.poll_seconds):
            try:
                self.poll_once(callback)
            except Exception:
                # Transient RPC errors are expected; retry on the next tick
                logger.warning("AuditRequested poll failed", exc_info=True)
