"""Mint the demo asset set through a running registry's admin API.

Env:
  ARVA_REGISTRY_URL       base URL of the registry (default http://127.0.0.1:3000)
  ARVA_ADMIN_MNEMONIC     mnemonic of the administrator key (ARVA_ADMIN_SS58 on the server)
"""

from __future__ import annotations

import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import bittensor as bt
import requests

from arva.api.client import RegistryClient
from arva.registry.store.snapshot import DEMO_SEEDS
from arva.utils.env import _env_float, _env_str


def main() -> int:
    base_url = _env_str("ARVA_REGISTRY_URL", "http://127.0.0.1:3000")
    mnemonic = _env_str("ARVA_ADMIN_MNEMONIC", "")
    if not mnemonic:
        bt.logging.error("ARVA_ADMIN_MNEMONIC is required")
        return 2

    client = RegistryClient(
        base_url,
        bt.Keypair.create_from_mnemonic(mnemonic),
        timeout_s=_env_float("ARVA_HTTP_TIMEOUT_S", 10.0),
    )
    failures = 0
    for seed in DEMO_SEEDS:
        if seed.revoked_at or seed.expiry_at:
            continue  # only the valid showcase assets
        if client.verify(seed.identifier).get("isVerified"):
            bt.logging.info(f"{seed.identifier}: already registered, skipping")
            continue
        try:
            out = client.mint(
                owner=seed.owner,
                unique_id=seed.identifier,
                issuer_did=seed.issuer_did,
                asset_type=seed.asset_type,
                metadata_uri=seed.metadata_ref,
                confirm_timeout_s=120.0,
            )
        except requests.HTTPError as e:
            failures += 1
            bt.logging.error(f"{seed.identifier}: mint failed: {e.response.text if e.response is not None else e}")
            continue
        bt.logging.info(f"{seed.identifier}: minted token {out['tokenId']} on {out['blockchainNetwork']}")
    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
