import pytest

from risk_oracle.services import ipfs_service
from risk_oracle.services.ipfs_service import ipfs_url, upload_to_ipfs

REPORT = {"address": "0x" + "a" * 40, "riskScore": 20}


class _Resp:
    def __init__(self, payload, status=200, reason="OK"):
        self._payload = payload
        self.status_code = status
        self.reason = reason
        self.ok = status < 400

    def json(self):
        return self._payload


def test_upload_pins_report_and_returns_cid(monkeypatch):
    seen = {}

    def fake_post(url, json, headers, timeout):
        seen.update(url=url, body=json, headers=headers, timeout=timeout)
        return _Resp({"IpfsHash": "bafyreport", "PinSize": 123})

    monkeypatch.setattr(ipfs_service.requests, "post", fake_post)
    assert upload_to_ipfs(REPORT, "0xabc", api_key="k", secret="s") == "bafyreport"

    assert seen["url"] == ipfs_service.PINATA_PIN_JSON_URL
    assert seen["body"]["pinataContent"] == REPORT
    assert seen["body"]["pinataMetadata"] == {"name": "risk-report-0xabc"}
    assert seen["headers"] == {"pinata_api_key": "k", "pinata_secret_api_key": "s"}
    assert seen["timeout"] == 30


@pytest.mark.parametrize("api_key,secret", [("", "s"), ("k", ""), (None, None)])
def test_upload_requires_keys(monkeypatch, api_key, secret):
    def fake_post(*args, **kwargs):
        raise AssertionError("must not call Pinata without credentials")

    monkeypatch.setattr(ipfs_service.requests, "post", fake_post)
    with pytest.raises(RuntimeError, match="not configured"):
        upload_to_ipfs(REPORT, "x", api_key=api_key, secret=secret)


def test_upload_rejected_by_pinata(monkeypatch):
    monkeypatch.setattr(
        ipfs_service.requests, "post", lambda *a, **k: _Resp({"error": "bad key"}, status=401, reason="Unauthorized")
    )
    with pytest.raises(RuntimeError, match="401 Unauthorized"):
        upload_to_ipfs(REPORT, "x", api_key="k", secret="s")


@pytest.mark.parametrize("payload", [{}, {"IpfsHash": ""}, ["bafy"]])
def test_upload_without_cid(monkeypatch, payload):
    monkeypatch.setattr(ipfs_service.requests, "post", lambda *a, **k: _Resp(payload))
    with pytest.raises(RuntimeError, match="without IpfsHash"):
        upload_to_ipfs(REPORT, "x", api_key="k", secret="s")


def test_ipfs_url_uses_gateway():
    assert ipfs_url("bafy") == f"{ipfs_service.IPFS_GATEWAY}/bafy"
