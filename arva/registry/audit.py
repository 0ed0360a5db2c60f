from __future__ import annotations

import threading
from collections import deque
from typing import Callable, Deque, List, Literal, Optional

import bittensor as bt
from pydantic import BaseModel, ConfigDict, Field

from arva.registry.models import AssetRecord


class AuditEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    schema_: Literal["arva_audit_event_v1"] = Field("arva_audit_event_v1", alias="schema")

    kind: Literal["asset_minted", "asset_revoked"]
    network: str
    timestamp: int

    # Enough to rebuild the record without asking the store again.
    token_id: int
    fingerprint: str
    issuer_did: str
    owner: str
    asset_type: str
    minted_at: int
    expiry_at: int
    metadata_ref: str
    revoked: bool
    revoked_at: Optional[int] = None

    @classmethod
    def for_record(cls, kind: str, record: AssetRecord, *, network: str, timestamp: int) -> "AuditEvent":
        return cls(
            kind=kind,
            network=network,
            timestamp=int(timestamp),
            token_id=record.token_id,
            fingerprint=record.fingerprint_hex,
            issuer_did=record.issuer_did,
            owner=record.owner,
            asset_type=record.asset_type,
            minted_at=record.minted_at,
            expiry_at=record.expiry_at,
            metadata_ref=record.metadata_ref,
            revoked=record.revoked,
            revoked_at=record.revoked_at,
        )


Subscriber = Callable[[AuditEvent], None]


class AuditLog:
    """Append-only event log with a bounded in-memory tail for external indexers."""

    def __init__(self, maxlen: int = 1000) -> None:
        self._events: Deque[AuditEvent] = deque(maxlen=maxlen)
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, fn: Subscriber) -> None:
        self._subscribers.append(fn)

    def emit(self, event: AuditEvent) -> None:
        with self._lock:
            self._events.append(event)
        bt.logging.info(f"[audit] {event.kind} token={event.token_id} fp={event.fingerprint[:18]} net={event.network}")
        for fn in list(self._subscribers):
            try:
                fn(event)
            except Exception as e:
                # A broken indexer must not undo a confirmed ledger write.
                bt.logging.error(f"Audit subscriber failed for {event.kind} token={event.token_id}: {e}")

    def tail(self, limit: int = 100) -> List[AuditEvent]:
        with self._lock:
            events = list(self._events)
        return events[-max(0, int(limit)):] if limit else []
