from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import bittensor as bt

from arva.registry.errors import DuplicateAsset, InvalidArgument, NotFound, ReadOnlyBackend
from arva.registry.fingerprint import fingerprint
from arva.registry.models import NO_EXPIRY, AssetDraft, AssetRecord, AssetState
from arva.registry.store.base import AssetRecordStore

DEMO_NETWORK = "demo-mode"


@dataclass(frozen=True)
class SnapshotSeed:
    identifier: str
    token_id: int
    issuer_did: str
    owner: str
    asset_type: str
    minted_at: int
    expiry_at: int = NO_EXPIRY
    metadata_ref: str = ""
    revoked: bool = False
    revoked_at: Optional[int] = None


DEMO_SEEDS: List[SnapshotSeed] = [
    SnapshotSeed(
        identifier="DEGREE-MIT-2024-001",
        token_id=1,
        issuer_did="did:qie:mit-university-verified",
        owner="0x1234567890123456789012345678901234567890",
        asset_type="DEGREE",
        minted_at=1718409600,
        metadata_ref="ipfs://arva-demo/degree-mit-2024-001.json",
    ),
    SnapshotSeed(
        identifier="LUXURY-ROLEX-SUB-2024-ABC123",
        token_id=2,
        issuer_did="did:qie:rolex-authorized-dealer",
        owner="0x2345678901234567890123456789012345678901",
        asset_type="LUXURY_WATCH",
        minted_at=1705276800,
        metadata_ref="ipfs://arva-demo/luxury-rolex-sub-2024-abc123.json",
    ),
    SnapshotSeed(
        identifier="CERT-AWS-SAA-2024-XYZ789",
        token_id=3,
        issuer_did="did:qie:amazon-aws-certification",
        owner="0x3456789012345678901234567890123456789012",
        asset_type="CERTIFICATE",
        minted_at=1710892800,
        metadata_ref="ipfs://arva-demo/cert-aws-saa-2024-xyz789.json",
    ),
    SnapshotSeed(
        identifier="ART-PICASSO-AUTH-2024-P001",
        token_id=4,
        issuer_did="did:qie:christies-auction-house",
        owner="0x4567890123456789012345678901234567890123",
        asset_type="ARTWORK",
        minted_at=1711929600,
        metadata_ref="ipfs://arva-demo/art-picasso-auth-2024-p001.json",
    ),
    SnapshotSeed(
        identifier="CERT-AWS-CCP-2019-EXP001",
        token_id=5,
        issuer_did="did:qie:amazon-aws-certification",
        owner="0x3456789012345678901234567890123456789012",
        asset_type="CERTIFICATE",
        minted_at=1546300800,
        expiry_at=1640995200,
        metadata_ref="ipfs://arva-demo/cert-aws-ccp-2019-exp001.json",
    ),
    SnapshotSeed(
        identifier="LUXURY-ROLEX-DJ-2023-REV042",
        token_id=6,
        issuer_did="did:qie:rolex-authorized-dealer",
        owner="0x2345678901234567890123456789012345678901",
        asset_type="LUXURY_WATCH",
        minted_at=1688169600,
        metadata_ref="ipfs://arva-demo/luxury-rolex-dj-2023-rev042.json",
        revoked_at=1704067200,
    ),
]

# Never minted anywhere; handy for demonstrating a "not found" answer.
INVALID_EXAMPLES = ["FAKE-DEGREE-2024-XXX", "COUNTERFEIT-WATCH-123", "INVALID-CERT-000"]


_SEED_KEYS = frozenset(
    {
        "uniqueId",
        "tokenId",
        "issuerDID",
        "owner",
        "assetType",
        "mintedAt",
        "expiryAt",
        "expiryDate",
        "metadataRef",
        "metadataURI",
        "revoked",
        "revokedAt",
    }
)


def _seed_from_dict(d: Dict[str, Any]) -> SnapshotSeed:
    if not isinstance(d, dict):
        raise InvalidArgument(f"bad snapshot seed entry {d!r}: expected an object")
    unknown = sorted(set(d) - _SEED_KEYS)
    if unknown:
        raise InvalidArgument(f"bad snapshot seed entry {d.get('uniqueId')!r}: unknown keys {unknown}")
    try:
        minted_at = int(d.get("mintedAt") or 0)
        expiry = d.get("expiryAt", d.get("expiryDate"))
        revoked_at = int(d["revokedAt"]) if d.get("revokedAt") else None
        revoked = d.get("revoked", revoked_at is not None)
        if not isinstance(revoked, bool):
            raise TypeError(f"revoked must be a boolean, got {revoked!r}")
        if not revoked and revoked_at is not None:
            raise ValueError("revoked=false contradicts revokedAt")
        if revoked and revoked_at is None:
            revoked_at = minted_at
        return SnapshotSeed(
            identifier=str(d["uniqueId"]),
            token_id=int(d["tokenId"]),
            issuer_did=str(d["issuerDID"]),
            owner=str(d["owner"]),
            asset_type=str(d.get("assetType") or ""),
            minted_at=minted_at,
            expiry_at=int(expiry or NO_EXPIRY),
            metadata_ref=str(d.get("metadataRef") or d.get("metadataURI") or ""),
            revoked=revoked,
            revoked_at=revoked_at,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidArgument(f"bad snapshot seed entry {d!r}: {e}") from e


def load_seed_file(path: str) -> List[SnapshotSeed]:
    """Load seeds from a JSON list of `{uniqueId, tokenId, issuerDID, owner, ...}` objects."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise InvalidArgument(f"snapshot seed file {path} must contain a JSON list")
    return [_seed_from_dict(item) for item in data]


class SnapshotStore(AssetRecordStore):
    """
    Non-authoritative in-memory copy of the registry.

    Seeded once in the constructor, so the mapping is complete before any reader
    can see the store. Read-only unless `mutable=True`; mutable writes live in
    this process only and are serialized by one lock. Reads never lock.
    """

    backend = "snapshot"
    authoritative = False

    def __init__(
        self,
        seeds: Sequence[SnapshotSeed] = DEMO_SEEDS,
        *,
        mutable: bool = False,
        network: str = DEMO_NETWORK,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.network = network
        self.mutable = mutable
        self._clock = clock
        self._write_lock = threading.Lock()

        records: Dict[bytes, AssetRecord] = {}
        identifiers: Dict[int, str] = {}
        for s in seeds:
            fp = fingerprint(s.identifier)
            if fp in records:
                raise InvalidArgument(f"duplicate snapshot seed identifier {s.identifier!r}")
            if s.token_id in identifiers:
                raise InvalidArgument(f"duplicate snapshot seed token id {s.token_id}")
            revoked = s.revoked or s.revoked_at is not None
            state = AssetState.REVOKED if revoked else AssetState.ACTIVE
            revoked_at = s.revoked_at if s.revoked_at is not None or not revoked else s.minted_at
            records[fp] = AssetRecord(
                token_id=s.token_id,
                fingerprint=fp,
                issuer_did=s.issuer_did,
                owner=s.owner,
                asset_type=s.asset_type,
                minted_at=s.minted_at,
                expiry_at=s.expiry_at,
                metadata_ref=s.metadata_ref,
                state=state,
                revoked_at=revoked_at,
            )
            identifiers[s.token_id] = s.identifier

        self._records: Dict[bytes, AssetRecord] = records
        self._by_token: Dict[int, bytes] = {r.token_id: fp for fp, r in records.items()}
        self._identifiers: Dict[int, str] = identifiers
        self._next_token_id = max(self._by_token, default=0) + 1
        bt.logging.info(f"Snapshot store seeded with {len(records)} records (mutable={mutable})")

    def _check_writable(self) -> None:
        if not self.mutable:
            raise ReadOnlyBackend("snapshot store is read-only; ledger backend required for writes")

    def put(self, draft: AssetDraft, *, timeout_s: Optional[float] = None) -> AssetRecord:
        return self.put_many([draft], timeout_s=timeout_s)[0]

    def put_many(self, drafts: Sequence[AssetDraft], *, timeout_s: Optional[float] = None) -> List[AssetRecord]:
        self._check_writable()
        with self._write_lock:
            seen = set()
            for d in drafts:
                if d.fingerprint in self._records or d.fingerprint in seen:
                    raise DuplicateAsset(f"asset already registered: {d.identifier!r}")
                seen.add(d.fingerprint)

            now = int(self._clock())
            out: List[AssetRecord] = []
            records = dict(self._records)
            by_token = dict(self._by_token)
            identifiers = dict(self._identifiers)
            token_id = self._next_token_id
            for d in drafts:
                rec = AssetRecord.from_draft(d, token_id=token_id, minted_at=now)
                records[d.fingerprint] = rec
                by_token[token_id] = d.fingerprint
                identifiers[token_id] = d.identifier
                out.append(rec)
                token_id += 1

            # Swap whole maps so lock-free readers never see a half-applied batch.
            self._records = records
            self._by_token = by_token
            self._identifiers = identifiers
            self._next_token_id = token_id
        return out

    def get(self, fingerprint: bytes) -> AssetRecord:
        rec = self._records.get(fingerprint)
        if rec is None:
            raise NotFound("asset not found")
        return rec

    def get_by_token_id(self, token_id: int) -> AssetRecord:
        fp = self._by_token.get(int(token_id))
        if fp is None:
            raise NotFound(f"asset {token_id} not found")
        return self._records[fp]

    def mark_revoked(self, fingerprint: bytes, *, timeout_s: Optional[float] = None) -> AssetRecord:
        self._check_writable()
        with self._write_lock:
            rec = self.get(fingerprint)
            revoked = rec.revoke(int(self._clock()))
            records = dict(self._records)
            records[fingerprint] = revoked
            self._records = records
        return revoked

    def exists(self, fingerprint: bytes) -> bool:
        return fingerprint in self._records

    def list_records(self) -> List[AssetRecord]:
        return sorted(self._records.values(), key=lambda r: r.token_id)

    def identifier_for(self, token_id: int) -> Optional[str]:
        return self._identifiers.get(int(token_id))
