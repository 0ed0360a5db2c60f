from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Literal, Optional, Sequence

from arva.registry.errors import BackendUnavailable
from arva.registry.models import AssetDraft, AssetRecord

BackendKind = Literal["ledger", "snapshot"]


class AssetRecordStore(ABC):
    """
    Keyed store of asset records, primary key = identifier fingerprint.

    Both implementations raise the same error taxonomy:
    - put / put_many: DuplicateAsset
    - get / get_by_token_id: NotFound
    - mark_revoked: NotFound, AlreadyRevoked
    Writes may additionally raise ReadOnlyBackend, BackendUnavailable or LedgerTimeout.
    """

    backend: BackendKind
    network: str
    authoritative: bool

    @abstractmethod
    def put(self, draft: AssetDraft, *, timeout_s: Optional[float] = None) -> AssetRecord:
        ...

    @abstractmethod
    def put_many(self, drafts: Sequence[AssetDraft], *, timeout_s: Optional[float] = None) -> List[AssetRecord]:
        """All-or-nothing: either every draft becomes a record or none does."""

    @abstractmethod
    def get(self, fingerprint: bytes) -> AssetRecord:
        ...

    @abstractmethod
    def get_by_token_id(self, token_id: int) -> AssetRecord:
        ...

    @abstractmethod
    def mark_revoked(self, fingerprint: bytes, *, timeout_s: Optional[float] = None) -> AssetRecord:
        ...

    @abstractmethod
    def exists(self, fingerprint: bytes) -> bool:
        ...

    def is_reachable(self) -> bool:
        return True

    def list_records(self) -> Optional[List[AssetRecord]]:
        """Enumerate records where the backend can; None when it cannot."""
        return None

    def list_owned_by(self, owner: str) -> List[AssetRecord]:
        """Records currently held by `owner` (a checksummed address)."""
        records = self.list_records()
        if records is None:
            raise BackendUnavailable(f"{self.backend} backend cannot enumerate records")
        return [r for r in records if r.owner.lower() == owner.lower()]
