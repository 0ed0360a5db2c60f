from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from arva.registry.errors import AlreadyRevoked
from arva.registry.fingerprint import ZERO_FINGERPRINT, to_hex


class AssetState(str, Enum):
    ACTIVE = "active"
    REVOKED = "revoked"


class VerificationReason(str, Enum):
    VERIFIED = "VERIFIED"
    NOT_FOUND = "NOT_FOUND"
    EXPIRED = "EXPIRED"
    REVOKED = "REVOKED"


NO_EXPIRY = 0


def is_expired(expiry_at: int, now: int) -> bool:
    return expiry_at != NO_EXPIRY and expiry_at <= now


@dataclass(frozen=True)
class AssetDraft:
    """A record about to be created; the store assigns token_id and minted_at."""

    identifier: str
    fingerprint: bytes
    issuer_did: str
    owner: str
    asset_type: str = ""
    expiry_at: int = NO_EXPIRY
    metadata_ref: str = ""


@dataclass(frozen=True)
class AssetRecord:
    token_id: int
    fingerprint: bytes
    issuer_did: str
    owner: str
    asset_type: str
    minted_at: int
    expiry_at: int = NO_EXPIRY
    metadata_ref: str = ""
    state: AssetState = AssetState.ACTIVE
    revoked_at: Optional[int] = None

    @property
    def revoked(self) -> bool:
        return self.state is AssetState.REVOKED

    @property
    def fingerprint_hex(self) -> str:
        return to_hex(self.fingerprint)

    def is_expired(self, now: int) -> bool:
        return is_expired(self.expiry_at, now)

    def revoke(self, at: int) -> "AssetRecord":
        # Active -> Revoked is the only transition; Revoked is terminal.
        if self.state is AssetState.REVOKED:
            raise AlreadyRevoked(f"asset {self.token_id} is already revoked")
        return dataclasses.replace(self, state=AssetState.REVOKED, revoked_at=int(at))

    @classmethod
    def from_draft(cls, draft: AssetDraft, *, token_id: int, minted_at: int) -> "AssetRecord":
        return cls(
            token_id=int(token_id),
            fingerprint=draft.fingerprint,
            issuer_did=draft.issuer_did,
            owner=draft.owner,
            asset_type=draft.asset_type,
            minted_at=int(minted_at),
            expiry_at=int(draft.expiry_at),
            metadata_ref=draft.metadata_ref,
        )


@dataclass(frozen=True)
class MintReceipt:
    fingerprint: bytes
    token_id: int

    @property
    def fingerprint_hex(self) -> str:
        return to_hex(self.fingerprint)


@dataclass(frozen=True)
class MintItem:
    """One entry of a batch mint; issuer and asset type are shared by the batch."""

    owner: str
    identifier: str
    expiry_at: int = NO_EXPIRY
    metadata_ref: str = ""


@dataclass(frozen=True)
class VerificationResult:
    fingerprint: bytes
    issuer_did: str
    is_verified: bool
    reason: VerificationReason
    network: str
    checked_at: int
    record: Optional[AssetRecord] = None

    @classmethod
    def not_found(cls, *, network: str, checked_at: int) -> "VerificationResult":
        return cls(
            fingerprint=ZERO_FINGERPRINT,
            issuer_did="",
            is_verified=False,
            reason=VerificationReason.NOT_FOUND,
            network=network,
            checked_at=checked_at,
        )


@dataclass(frozen=True)
class DetailedVerification:
    result: VerificationResult
    is_expired: bool
    is_revoked: bool

    @property
    def is_verified(self) -> bool:
        return self.result.is_verified

    @property
    def found(self) -> bool:
        return self.result.record is not None

    @property
    def minted_at(self) -> int:
        return self.result.record.minted_at if self.result.record else 0

    @property
    def expiry_at(self) -> int:
        return self.result.record.expiry_at if self.result.record else NO_EXPIRY

    @property
    def current_owner(self) -> str:
        return self.result.record.owner if self.result.record else ""
