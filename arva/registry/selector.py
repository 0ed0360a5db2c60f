"""Backend selection between the ledger store and the snapshot store.

The ledger is bound when it is configured and reachable at startup; otherwise
the snapshot store answers and every response is tagged "demo-mode". The
binding is fixed for the process unless a re-probe interval is configured, in
which case a recovered ledger is picked up again. Switching happens under a
single-writer lock; readers just grab the current service reference.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

import bittensor as bt

from arva.registry.audit import AuditLog
from arva.registry.errors import BackendUnavailable, ReadOnlyBackend
from arva.registry.issuers import DEMO_ISSUERS, IssuerAuthorizationTable
from arva.registry.service import RegistryService
from arva.registry.store.base import AssetRecordStore
from arva.registry.store.snapshot import DEMO_SEEDS, SnapshotStore, load_seed_file

T = TypeVar("T")


@dataclass(frozen=True)
class BackendBinding:
    kind: str  # "ledger" | "snapshot" | "none"
    network: str
    authoritative: bool

    @property
    def blockchain(self) -> str:
        return "connected" if self.kind == "ledger" else "demo-mode"


UNBOUND = BackendBinding(kind="none", network="unavailable", authoritative=False)


class BackendSelector:
    def __init__(
        self,
        *,
        ledger: Optional[AssetRecordStore] = None,
        snapshot: Optional[AssetRecordStore] = None,
        owner: str,
        issuers: Optional[IssuerAuthorizationTable] = None,
        enforce_issuer_authorization: bool = False,
        audit: Optional[AuditLog] = None,
        reprobe_interval_s: float = 0.0,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ledger = ledger
        self.snapshot = snapshot
        self.owner = owner
        self.issuers = issuers if issuers is not None else IssuerAuthorizationTable(owner)
        self.enforce_issuer_authorization = enforce_issuer_authorization
        self.audit = audit if audit is not None else AuditLog()
        self.reprobe_interval_s = float(reprobe_interval_s)
        self._monotonic = monotonic

        self._switch_lock = threading.Lock()
        self._service: Optional[RegistryService] = None
        self._binding: BackendBinding = UNBOUND
        self._last_probe = self._monotonic()

        if self.ledger is not None and self.ledger.is_reachable():
            self._bind(self.ledger)
        elif self.snapshot is not None:
            if self.ledger is not None:
                bt.logging.warning("Ledger configured but unreachable; serving verification from snapshot")
            else:
                bt.logging.warning("No ledger configured; running in demo mode")
            self._bind(self.snapshot)
        else:
            bt.logging.error("Ledger unreachable and no snapshot fallback configured; registry unavailable")

    @classmethod
    def from_config(cls, cfg) -> "BackendSelector":
        from arva.registry.store.ledger import LedgerStore

        ledger = LedgerStore.from_config(cfg.ledger) if cfg.ledger is not None else None

        snapshot: Optional[SnapshotStore] = None
        issuer_seed = None
        if cfg.snapshot.enabled:
            seeds = load_seed_file(cfg.snapshot.seed_path) if cfg.snapshot.seed_path else DEMO_SEEDS
            snapshot = SnapshotStore(seeds, mutable=cfg.snapshot.mutable)
            if not cfg.snapshot.seed_path:
                issuer_seed = DEMO_ISSUERS

        return cls(
            ledger=ledger,
            snapshot=snapshot,
            owner=cfg.owner,
            issuers=IssuerAuthorizationTable(cfg.owner, seed=issuer_seed),
            enforce_issuer_authorization=cfg.enforce_issuer_authorization,
            reprobe_interval_s=cfg.reprobe_interval_s,
        )

    def _bind(self, store: AssetRecordStore) -> None:
        owner = self.owner
        sender = getattr(store, "sender", None)
        if callable(sender):
            # The ledger's owner account is the only identity it accepts writes from.
            owner = sender()
        # Issuer administration follows whichever owner the bound store accepts.
        self.issuers.admin = owner
        self._service = RegistryService(
            store,
            owner=owner,
            issuers=self.issuers,
            enforce_issuer_authorization=self.enforce_issuer_authorization,
            audit=self.audit,
        )
        self._binding = BackendBinding(kind=store.backend, network=store.network, authoritative=store.authoritative)
        bt.logging.info(f"Registry bound to {store.backend} backend ({store.network})")

    @property
    def binding(self) -> BackendBinding:
        return self._binding

    def maybe_reprobe(self) -> None:
        if self.reprobe_interval_s <= 0 or self.ledger is None or self._binding.kind == "ledger":
            return
        if self._monotonic() - self._last_probe < self.reprobe_interval_s:
            return
        if not self._switch_lock.acquire(blocking=False):
            return  # another request is already probing
        try:
            self._last_probe = self._monotonic()
            if self._binding.kind != "ledger" and self.ledger.is_reachable():
                bt.logging.info("Ledger reachable again; switching back from snapshot")
                self._bind(self.ledger)
        finally:
            self._switch_lock.release()

    def service(self) -> RegistryService:
        self.maybe_reprobe()
        svc = self._service
        if svc is None:
            raise BackendUnavailable("no registry backend available")
        return svc

    def _fall_back(self, failed: RegistryService, err: BackendUnavailable) -> Optional[RegistryService]:
        if self.snapshot is None or failed.store is not self.ledger:
            return None
        with self._switch_lock:
            if self._service is failed:
                bt.logging.warning(f"Ledger read failed ({err.message}); falling back to snapshot")
                self._bind(self.snapshot)
                self._last_probe = self._monotonic()
            return self._service

    def read(self, fn: Callable[[RegistryService], T]) -> T:
        """Run a read against the bound service, falling back to the snapshot if the ledger drops."""
        svc = self.service()
        try:
            return fn(svc)
        except ReadOnlyBackend:
            raise
        except BackendUnavailable as e:
            fallback = self._fall_back(svc, e)
            if fallback is None:
                raise
            return fn(fallback)

    def write(self, fn: Callable[[RegistryService], T]) -> T:
        """Writes never fall back: offline mutation is not part of the contract."""
        return fn(self.service())
