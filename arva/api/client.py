from __future__ import annotations

from typing import Any, Dict, List, Optional

import bittensor as bt
import requests

from arva.api.signing import sign_admin_request


class RegistryClient:
    """Thin HTTP client for the verification API; admin calls need the owner keypair."""

    def __init__(
        self,
        base_url: str,
        keypair: Optional[bt.Keypair] = None,
        *,
        timeout_s: float = 5.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.keypair = keypair
        self.timeout_s = timeout_s

    def _post(self, path: str, body: Dict[str, Any], *, timeout_s: Optional[float] = None) -> Dict[str, Any]:
        r = requests.post(f"{self.base_url}{path}", json=body, timeout=timeout_s or self.timeout_s)
        r.raise_for_status()
        return r.json()

    def _post_signed(self, path: str, body: Dict[str, Any], *, timeout_s: Optional[float] = None) -> Dict[str, Any]:
        if self.keypair is None:
            raise RuntimeError("admin calls require the registry owner keypair")
        return self._post(path, sign_admin_request(body, keypair=self.keypair), timeout_s=timeout_s)

    def health(self) -> Dict[str, Any]:
        r = requests.get(f"{self.base_url}/health", timeout=self.timeout_s)
        r.raise_for_status()
        return r.json()

    def verify(self, unique_id: str) -> Dict[str, Any]:
        return self._post("/verify", {"uniqueId": unique_id})

    def verify_detailed(self, unique_id: str) -> Dict[str, Any]:
        return self._post("/verify/detailed", {"uniqueId": unique_id})

    def mint(
        self,
        *,
        owner: str,
        unique_id: str,
        issuer_did: str,
        asset_type: str = "",
        metadata_uri: str = "",
        expiry_date: int = 0,
        confirm_timeout_s: Optional[float] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "owner": owner,
            "uniqueId": unique_id,
            "issuerDID": issuer_did,
            "assetType": asset_type,
            "metadataURI": metadata_uri,
            "expiryDate": int(expiry_date),
        }
        http_timeout = self.timeout_s
        if confirm_timeout_s is not None:
            body["timeoutS"] = float(confirm_timeout_s)
            # Leave room for the server to report its own Timeout.
            http_timeout = max(self.timeout_s, float(confirm_timeout_s) + 5.0)
        return self._post_signed("/admin/mint", body, timeout_s=http_timeout)

    def batch_mint(self, *, issuer_did: str, asset_type: str, items: List[Dict[str, Any]]) -> Dict[str, Any]:
        return self._post_signed(
            "/admin/batch-mint",
            {"issuerDID": issuer_did, "assetType": asset_type, "items": items},
        )

    def revoke(self, token_id: int) -> Dict[str, Any]:
        return self._post_signed("/admin/revoke", {"tokenId": int(token_id)})
