import threading
from types import SimpleNamespace

import pytest
from eth_account import Account
from web3 import Web3

from risk_oracle.services.oracle_service import OracleClient

ORACLE = "0x" + "12" * 20
TARGET = "0x" + "ab" * 20
REQUESTER = "0x" + "cd" * 20
KEY = "0x" + "11" * 32
TX_HASH = b"\xab" * 32


class FakeFunction:
    def __init__(self, name, args, gas=100_000):
        self.name = name
        self.args = args
        self.gas = gas
        self.built = None

    def estimate_gas(self, params):
        return self.gas

    def build_transaction(self, params):
        self.built = dict(params, to=ORACLE, data="0x")
        return self.built

    def call(self):
        return {"isAudited": True, "getScore": 42, "getAuditedCount": 7}[self.name]


class FakeFunctions:
    def __init__(self):
        self.created = []

    def __getattr__(self, name):
        def _make(*args):
            fn = FakeFunction(name, args)
            self.created.append(fn)
            return fn
        return _make


class FakeEvent:
    def __init__(self, logs):
        self.logs = logs
        self.ranges = []

    def get_logs(self, from_block, to_block):
        self.ranges.append((from_block, to_block))
        return [e for e in self.logs if from_block <= e["blockNumber"] <= to_block]


class FakeEth:
    def __init__(self, base_fee=None):
        self.block_number = 100
        self.chain_id = 56
        self.gas_price = 3_000_000_000
        self.base_fee = base_fee
        self.receipt_status = 1
        self.sent = []
        self.signed = []
        self.account = SimpleNamespace(from_key=Account.from_key, sign_transaction=self._sign)
        self.functions = FakeFunctions()
        self.event = FakeEvent([])

    def _sign(self, tx, private_key):
        self.signed.append(tx)
        return SimpleNamespace(raw_transaction=b"\x02raw")

    def contract(self, address, abi):
        return SimpleNamespace(
            address=address,
            functions=self.functions,
            events=SimpleNamespace(AuditRequested=lambda: self.event),
        )

    def get_transaction_count(self, address, block):
        return 9

    def get_block(self, ident):
        block = {"number": self.block_number}
        if self.base_fee is not None:
            block["baseFeePerGas"] = self.base_fee
        return block

    def send_raw_transaction(self, raw):
        self.sent.append(raw)
        return TX_HASH

    def wait_for_transaction_receipt(self, tx_hash, timeout):
        return {"status": self.receipt_status, "transactionHash": tx_hash}


def _client(eth, **kwargs):
    w3 = SimpleNamespace(eth=eth, to_wei=Web3.to_wei)
    return OracleClient(ORACLE, KEY, w3=w3, **kwargs)


def test_requires_credentials():
    with pytest.raises(RuntimeError):
        OracleClient("", KEY, "http://localhost:8545")
    with pytest.raises(RuntimeError):
        OracleClient(ORACLE, KEY)


def test_agent_address_comes_from_key():
    assert _client(FakeEth()).address == Account.from_key(KEY).address


def test_submit_report_eip1559():
    eth = FakeEth(base_fee=Web3.to_wei(5, "gwei"))
    oracle = _client(eth)

    tx = oracle.submit_report(TARGET, 150, "bafy", 3, 1, 1, 1, 0, True)

    assert tx == "0x" + "ab" * 32
    fn = eth.functions.created[0]
    assert fn.name == "submitReport"
    assert fn.args == (Web3.to_checksum_address(TARGET), 100, "bafy", 3, 1, 1, 1, 0, True)

    sent = eth.signed[0]
    assert sent["nonce"] == 9
    assert sent["chainId"] == 56
    assert sent["gas"] == 120_000
    assert sent["maxPriorityFeePerGas"] == Web3.to_wei(1, "gwei")
    assert sent["maxFeePerGas"] == Web3.to_wei(11, "gwei")
    assert "gasPrice" not in sent
    assert eth.sent == [b"\x02raw"]


def test_submit_report_legacy_gas_price():
    eth = FakeEth()
    tx = _client(eth, chain_id=97).submit_report(TARGET, 10, "pending", 0, 0, 0, 0, 0, False)

    sent = eth.signed[0]
    assert sent["gasPrice"] == 3_000_000_000
    assert sent["chainId"] == 97
    assert "maxFeePerGas" not in sent
    assert tx.startswith("0x")


def test_submit_report_reverted_receipt():
    eth = FakeEth()
    eth.receipt_status = 0
    with pytest.raises(RuntimeError, match="reverted"):
        _client(eth).submit_report(TARGET, 10, "pending", 0, 0, 0, 0, 0, False)


def test_reads():
    oracle = _client(FakeEth())
    assert oracle.is_audited(TARGET) is True
    assert oracle.get_score(TARGET) == 42
    assert oracle.get_audited_count() == 7


def _request(block):
    return {"blockNumber": block, "args": {"target": TARGET, "requester": REQUESTER}}


def test_poll_once_delivers_each_event_once():
    eth = FakeEth()
    oracle = _client(eth)
    oracle._last_block = 100
    eth.event.logs = [_request(101), _request(103)]
    seen = []

    eth.block_number = 103
    assert oracle.poll_once(lambda t, r: seen.append((t, r))) == 2
    assert oracle.poll_once(lambda t, r: seen.append((t, r))) == 0

    assert seen == [(TARGET, REQUESTER)] * 2
    assert eth.event.ranges == [(101, 103)]


def test_listener_thread_enqueues_requests():
    eth = FakeEth()
    oracle = _client(eth, poll_seconds=0.01)
    got = threading.Event()
    seen = []

    def on_request(target, requester):
        seen.append(target)
        got.set()

    oracle.listen_for_requests(on_request)
    try:
        eth.event.logs = [_request(101)]
        eth.block_number = 101
        assert got.wait(2)
    finally:
        oracle.stop_listening()

    assert seen == [TARGET]
