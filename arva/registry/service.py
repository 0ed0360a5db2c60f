"""Registry service: mint, batch mint, revoke and verify against one bound store.

Business rules live here so they hold for every backend:
- only the registry owner mints and revokes
- identifiers are never re-minted, revoked ones included
- validity (not expired, not revoked) is computed at query time
"""

from __future__ import annotations

import dataclasses
import time
from typing import Callable, List, Optional, Sequence

import bittensor as bt
from web3 import Web3

from arva.registry.audit import AuditEvent, AuditLog
from arva.registry.errors import DuplicateAsset, InvalidArgument, NotFound, Unauthorized
from arva.registry.fingerprint import fingerprint
from arva.registry.issuers import IssuerAuthorizationTable, IssuerEntry
from arva.registry.models import (
    AssetDraft,
    AssetRecord,
    DetailedVerification,
    MintItem,
    MintReceipt,
    VerificationReason,
    VerificationResult,
)
from arva.registry.store.base import AssetRecordStore


def _require_identifier(identifier: Optional[str]) -> str:
    if not isinstance(identifier, str) or not identifier:
        raise InvalidArgument("Unique identifier is required")
    return identifier


def _normalize_owner(owner: str) -> str:
    if not isinstance(owner, str) or not Web3.is_address(owner):
        raise InvalidArgument(f"malformed owner reference: {owner!r}")
    return Web3.to_checksum_address(owner)


class RegistryService:
    def __init__(
        self,
        store: AssetRecordStore,
        *,
        owner: str,
        issuers: Optional[IssuerAuthorizationTable] = None,
        enforce_issuer_authorization: bool = False,
        audit: Optional[AuditLog] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.owner = owner
        self.issuers = issuers if issuers is not None else IssuerAuthorizationTable(owner)
        self.enforce_issuer_authorization = enforce_issuer_authorization
        self.audit = audit if audit is not None else AuditLog()
        self._clock = clock

    @property
    def network(self) -> str:
        return self.store.network

    def now(self) -> int:
        return int(self._clock())

    def _require_owner(self, caller: str) -> None:
        if caller != self.owner:
            bt.logging.warning(f"Rejected write from non-owner caller {caller!r}")
            raise Unauthorized("caller is not the registry owner")

    def _require_issuer(self, issuer_did: str) -> None:
        if not isinstance(issuer_did, str) or not issuer_did:
            raise InvalidArgument("Invalid Issuer DID")
        if self.enforce_issuer_authorization and not self.issuers.is_authorized(issuer_did):
            raise Unauthorized(f"issuer {issuer_did!r} is not authorized")

    def _draft(
        self,
        *,
        owner: str,
        identifier: str,
        issuer_did: str,
        asset_type: str,
        expiry_at: int,
        metadata_ref: str,
    ) -> AssetDraft:
        identifier = _require_identifier(identifier)
        if int(expiry_at) < 0:
            raise InvalidArgument("expiry must be a unix timestamp or 0")
        return AssetDraft(
            identifier=identifier,
            fingerprint=fingerprint(identifier),
            issuer_did=issuer_did,
            owner=_normalize_owner(owner),
            asset_type=asset_type or "",
            expiry_at=int(expiry_at),
            metadata_ref=metadata_ref or "",
        )

    def _emit(self, kind: str, record: AssetRecord) -> None:
        self.audit.emit(AuditEvent.for_record(kind, record, network=self.network, timestamp=self.now()))

    # ----------------------------------------------------------------- writes

    def mint(
        self,
        caller: str,
        owner: str,
        identifier: str,
        issuer_did: str,
        expiry_at: int = 0,
        metadata_ref: str = "",
        asset_type: str = "",
        *,
        timeout_s: Optional[float] = None,
    ) -> MintReceipt:
        """
        Register a new asset.

        Mint is keyed by fingerprint: after a LedgerTimeout, check `exists()` before
        retrying, a landed retry surfaces as DuplicateAsset rather than a second record.
        """
        self._require_owner(caller)
        self._require_issuer(issuer_did)
        draft = self._draft(
            owner=owner,
            identifier=identifier,
            issuer_did=issuer_did,
            asset_type=asset_type,
            expiry_at=expiry_at,
            metadata_ref=metadata_ref,
        )
        if self.store.exists(draft.fingerprint):
            raise DuplicateAsset(f"asset already registered: {identifier!r}")

        record = self.store.put(draft, timeout_s=timeout_s)
        bt.logging.info(f"Minted asset token={record.token_id} issuer={issuer_did} on {self.network}")
        self._emit("asset_minted", record)
        return MintReceipt(fingerprint=record.fingerprint, token_id=record.token_id)

    def batch_mint(
        self,
        caller: str,
        issuer_did: str,
        asset_type: str,
        items: Sequence[MintItem],
        *,
        timeout_s: Optional[float] = None,
    ) -> List[MintReceipt]:
        """All-or-nothing: any invalid or duplicate item rejects the whole batch."""
        self._require_owner(caller)
        self._require_issuer(issuer_did)
        if not items:
            raise InvalidArgument("batch must contain at least one item")

        drafts: List[AssetDraft] = []
        seen = set()
        for i, item in enumerate(items):
            try:
                draft = self._draft(
                    owner=item.owner,
                    identifier=item.identifier,
                    issuer_did=issuer_did,
                    asset_type=asset_type,
                    expiry_at=item.expiry_at,
                    metadata_ref=item.metadata_ref,
                )
            except InvalidArgument as e:
                raise InvalidArgument(f"batch item {i}: {e.message}") from e
            if draft.fingerprint in seen or self.store.exists(draft.fingerprint):
                raise DuplicateAsset(f"batch item {i}: asset already registered: {item.identifier!r}")
            seen.add(draft.fingerprint)
            drafts.append(draft)

        records = self.store.put_many(drafts, timeout_s=timeout_s)
        bt.logging.info(f"Batch minted {len(records)} assets for issuer={issuer_did} on {self.network}")
        for r in records:
            self._emit("asset_minted", r)
        return [MintReceipt(fingerprint=r.fingerprint, token_id=r.token_id) for r in records]

    def revoke(self, caller: str, token_id: int, *, timeout_s: Optional[float] = None) -> AssetRecord:
        self._require_owner(caller)
        current = self.store.get_by_token_id(int(token_id))
        record = self.store.mark_revoked(current.fingerprint, timeout_s=timeout_s)
        if record.revoked_at is None:
            record = dataclasses.replace(record, revoked_at=self.now())
        bt.logging.info(f"Revoked asset token={record.token_id} on {self.network}")
        self._emit("asset_revoked", record)
        return record

    def authorize_issuer(self, caller: str, issuer_did: str, *, profile: Optional[dict] = None) -> IssuerEntry:
        entry = self.issuers.authorize(caller, issuer_did, profile=profile)
        mirror = getattr(self.store, "authorize_issuer", None)
        if mirror is not None:
            mirror(issuer_did)
        return entry

    def deauthorize_issuer(self, caller: str, issuer_did: str) -> IssuerEntry:
        entry = self.issuers.deauthorize(caller, issuer_did)
        mirror = getattr(self.store, "deauthorize_issuer", None)
        if mirror is not None:
            mirror(issuer_did)
        return entry

    # ------------------------------------------------------------------ reads

    def exists(self, identifier: str) -> bool:
        return self.store.exists(fingerprint(_require_identifier(identifier)))

    def verify(self, identifier: str) -> VerificationResult:
        identifier = _require_identifier(identifier)
        now = self.now()
        try:
            record = self.store.get(fingerprint(identifier))
        except NotFound:
            bt.logging.debug(f"Verification miss on {self.network}")
            return VerificationResult.not_found(network=self.network, checked_at=now)

        # Revoked outranks expired when both hold.
        if record.revoked:
            reason = VerificationReason.REVOKED
        elif record.is_expired(now):
            reason = VerificationReason.EXPIRED
        else:
            reason = VerificationReason.VERIFIED
        return VerificationResult(
            fingerprint=record.fingerprint,
            issuer_did=record.issuer_did,
            is_verified=reason is VerificationReason.VERIFIED,
            reason=reason,
            network=self.network,
            checked_at=now,
            record=record,
        )

    def detailed_verify(self, identifier: str) -> DetailedVerification:
        result = self.verify(identifier)
        record = result.record
        return DetailedVerification(
            result=result,
            is_expired=bool(record and record.is_expired(result.checked_at)),
            is_revoked=bool(record and record.revoked),
        )

    def get_asset(self, token_id: int) -> AssetRecord:
        return self.store.get_by_token_id(int(token_id))

    def list_assets(self) -> Optional[List[AssetRecord]]:
        return self.store.list_records()

    def assets_owned_by(self, owner: str) -> List[AssetRecord]:
        return self.store.list_owned_by(_normalize_owner(owner))
