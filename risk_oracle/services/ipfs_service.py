import os

import requests

PINATA_PIN_JSON_URL = os.getenv("PINATA_PIN_JSON_URL", "https://api.pinata.cloud/pinning/pinJSONToIPFS")
IPFS_GATEWAY = os.getenv("IPFS_GATEWAY", "https://gateway.pinata.cloud/ipfs")


def upload_to_ipfs(content: dict, name: str, api_key: str, secret: str, timeout: float = 30) -> str:
    """Pin a JSON document on Pinata and return its CID."""
    if not api_key or not secret:
        raise RuntimeError("PINATA_API_KEY / PINATA_SECRET not configured")

    resp = requests.post(
        PINATA_PIN_JSON_URL,
        json={
            "pinataContent": content,
            "pinataMetadata": {"name": f"risk-report-{name}"},
        },
        headers={
            "pinata_api_key": api_key,
            "pinata_secret_api_key": secret,
        },
        timeout=timeout,
    )
    if not resp.ok:
        raise RuntimeError(f"Pinata upload failed: {resp.status_code} {resp.reason}")

    body = resp.json()
    cid = body.get("IpfsHash") if isinstance(body, dict) else None
    if not cid:
        raise RuntimeError("Pinata response without IpfsHash")
    return cid


def ipfs_url(cid: str) -> str:
    return f"{IPFS_GATEWAY}/{cid}"
