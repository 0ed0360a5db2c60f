from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, Optional

import bittensor as bt

from arva.registry.errors import InvalidArgument, Unauthorized


@dataclass
class IssuerEntry:
    did: str
    enabled: bool = True
    # Descriptive profile only; never consulted for authorization.
    profile: Dict[str, str] = field(default_factory=dict)


# Issuers vouching for the built-in demo assets.
DEMO_ISSUERS: Dict[str, Dict[str, str]] = {
    "did:qie:mit-university-verified": {
        "name": "Massachusetts Institute of Technology",
        "type": "Educational Institution",
        "website": "https://mit.edu",
    },
    "did:qie:rolex-authorized-dealer": {
        "name": "Rolex Authorized Dealer Network",
        "type": "Luxury Goods",
        "website": "https://rolex.com",
    },
    "did:qie:amazon-aws-certification": {
        "name": "Amazon Web Services",
        "type": "Technology Certification",
        "website": "https://aws.amazon.com",
    },
    "did:qie:christies-auction-house": {
        "name": "Christie's Auction House",
        "type": "Art & Collectibles",
        "website": "https://christies.com",
    },
}


class IssuerAuthorizationTable:
    """issuer DID -> enabled flag, writable only by the registry administrator."""

    def __init__(self, admin: str, *, seed: Optional[Dict[str, Dict[str, str]]] = None) -> None:
        self.admin = admin
        self._lock = threading.Lock()
        self._entries: Dict[str, IssuerEntry] = {}
        for did, profile in (seed or {}).items():
            self._entries[did] = IssuerEntry(did=did, enabled=True, profile=dict(profile))

    def _require_admin(self, caller: str) -> None:
        if caller != self.admin:
            raise Unauthorized("caller is not the registry owner")

    def authorize(self, caller: str, issuer_did: str, *, profile: Optional[Dict[str, str]] = None) -> IssuerEntry:
        self._require_admin(caller)
        if not issuer_did:
            raise InvalidArgument("issuer DID is required")
        with self._lock:
            entry = self._entries.get(issuer_did)
            if entry is None:
                entry = IssuerEntry(did=issuer_did)
                self._entries[issuer_did] = entry
            entry.enabled = True
            if profile:
                entry.profile.update(profile)
        bt.logging.info(f"Issuer authorized: {issuer_did}")
        return entry

    def deauthorize(self, caller: str, issuer_did: str) -> IssuerEntry:
        self._require_admin(caller)
        with self._lock:
            entry = self._entries.get(issuer_did)
            if entry is None:
                entry = IssuerEntry(did=issuer_did, enabled=False)
                self._entries[issuer_did] = entry
            entry.enabled = False
        bt.logging.info(f"Issuer deauthorized: {issuer_did}")
        return entry

    def is_authorized(self, issuer_did: str) -> bool:
        entry = self._entries.get(issuer_did)
        return bool(entry and entry.enabled)

    def get(self, issuer_did: str) -> Optional[IssuerEntry]:
        return self._entries.get(issuer_did)
