"""Ledger-backed asset record store.

Every read goes to the contract's current state; every write is a transaction
sent from the registry owner's node-managed account, and the call blocks until
the receipt arrives or the caller's timeout expires. A timed-out write is NOT
rolled back: the transaction may still be included later.
"""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING, Any, List, Optional, Sequence

import bittensor as bt
import requests
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted

from arva.registry.errors import (
    AlreadyRevoked,
    BackendUnavailable,
    DuplicateAsset,
    InvalidArgument,
    LedgerTimeout,
    NotFound,
    RegistryError,
    Unauthorized,
)
from arva.registry.models import AssetDraft, AssetRecord, AssetState
from arva.registry.store.abi import ARVA_ABI
from arva.registry.store.base import AssetRecordStore

if TYPE_CHECKING:
    from arva.config import LedgerConfig

# Revert reason fragment -> error class. Order matters: first match wins.
_REVERT_MAP = (
    ("already registered", DuplicateAsset),
    ("already revoked", AlreadyRevoked),
    ("caller is not the owner", Unauthorized),
    ("OwnableUnauthorizedAccount", Unauthorized),
    ("nonexistent token", NotFound),
    ("invalid token ID", NotFound),
    ("ERC721NonexistentToken", NotFound),
    ("does not exist", NotFound),
    ("Invalid Issuer DID", InvalidArgument),
    ("Invalid", InvalidArgument),
)

_TRANSPORT_ERRORS = (requests.exceptions.RequestException, ConnectionError, OSError)

MAX_TOKEN_ID = 2**256 - 1


def translate_revert(err: ContractLogicError) -> RegistryError:
    text = str(getattr(err, "message", None) or err)
    for fragment, cls in _REVERT_MAP:
        if fragment.lower() in text.lower():
            return cls(text)
    return RegistryError(f"ledger rejected transaction: {text}")


class LedgerStore(AssetRecordStore):
    backend = "ledger"
    authoritative = True

    def __init__(
        self,
        w3: Any,
        contract: Any,
        *,
        network: str,
        sender: Optional[str] = None,
        confirm_timeout_s: float = 120.0,
        poll_latency_s: float = 0.5,
    ) -> None:
        self.w3 = w3
        self.contract = contract
        self.network = network
        self.confirm_timeout_s = confirm_timeout_s
        self.poll_latency_s = poll_latency_s
        self._sender = sender

    @classmethod
    def from_config(cls, cfg: "LedgerConfig") -> "LedgerStore":
        w3 = Web3(Web3.HTTPProvider(cfg.rpc_url, request_kwargs={"timeout": cfg.probe_timeout_s}))
        contract = w3.eth.contract(address=Web3.to_checksum_address(cfg.contract_address), abi=ARVA_ABI)
        return cls(
            w3,
            contract,
            network=cfg.network_name,
            sender=cfg.owner_address,
            confirm_timeout_s=cfg.confirm_timeout_s,
        )

    # ------------------------------------------------------------------ reads

    def _call(self, fn: Any) -> Any:
        try:
            return fn.call()
        except ContractLogicError as e:
            raise translate_revert(e) from e
        except _TRANSPORT_ERRORS as e:
            raise BackendUnavailable(f"ledger unreachable: {e}") from e

    def is_reachable(self) -> bool:
        try:
            if not self.w3.is_connected():
                return False
            code = self.w3.eth.get_code(self.contract.address)
            return len(code) > 0
        except Exception as e:
            bt.logging.warning(f"Ledger probe failed: {e}")
            return False

    def _token_id_for(self, fingerprint: bytes) -> int:
        return int(self._call(self.contract.functions.identifierHashToTokenId(fingerprint)))

    def get_by_token_id(self, token_id: int) -> AssetRecord:
        token_id = int(token_id)
        # Anything outside uint256 cannot even be ABI-encoded, let alone minted.
        if token_id <= 0 or token_id > MAX_TOKEN_ID:
            raise NotFound(f"asset {token_id} not found")
        raw = self._call(self.contract.functions.getAssetRecord(token_id))
        issuer_did, identifier_hash, expiry, minted_at, is_revoked, asset_type = raw
        if int(minted_at) == 0:
            raise NotFound(f"asset {token_id} not found")
        owner = self._call(self.contract.functions.ownerOf(token_id))
        metadata_ref = self._call(self.contract.functions.tokenURI(token_id))
        return AssetRecord(
            token_id=token_id,
            fingerprint=bytes(identifier_hash),
            issuer_did=issuer_did,
            owner=owner,
            asset_type=asset_type,
            minted_at=int(minted_at),
            expiry_at=int(expiry),
            metadata_ref=metadata_ref,
            state=AssetState.REVOKED if is_revoked else AssetState.ACTIVE,
        )

    def get(self, fingerprint: bytes) -> AssetRecord:
        token_id = self._token_id_for(fingerprint)
        if token_id == 0:
            raise NotFound("asset not found")
        return self.get_by_token_id(token_id)

    def exists(self, fingerprint: bytes) -> bool:
        return self._token_id_for(fingerprint) != 0

    def list_owned_by(self, owner: str) -> List[AssetRecord]:
        # No on-chain owner index: scan sequential token ids until the balance is accounted for.
        balance = int(self._call(self.contract.functions.balanceOf(owner)))
        if balance == 0:
            return []
        total = int(self._call(self.contract.functions.totalSupply()))
        out: List[AssetRecord] = []
        for token_id in range(1, total + 1):
            if str(self._call(self.contract.functions.ownerOf(token_id))).lower() == owner.lower():
                out.append(self.get_by_token_id(token_id))
                if len(out) == balance:
                    break
        return out

    def native_balance(self, address: str) -> int:
        """Native coin balance in wei."""
        try:
            return int(self.w3.eth.get_balance(address))
        except _TRANSPORT_ERRORS as e:
            raise BackendUnavailable(f"ledger unreachable: {e}") from e

    # ----------------------------------------------------------------- writes

    def sender(self) -> str:
        if not self._sender:
            self._sender = self._call(self.contract.functions.owner())
        return self._sender

    def _submit(self, fn: Any, *, label: str, timeout_s: Optional[float]) -> Any:
        try:
            tx_hash = fn.transact({"from": self.sender()})
        except ContractLogicError as e:
            raise translate_revert(e) from e
        except _TRANSPORT_ERRORS as e:
            raise BackendUnavailable(f"ledger unreachable: {e}") from e

        tx_hex = Web3.to_hex(tx_hash)
        timeout = self.confirm_timeout_s if timeout_s is None else float(timeout_s)
        bt.logging.info(f"Submitted {label} tx {tx_hex}; waiting up to {timeout:.1f}s for inclusion")
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=timeout, poll_latency=self.poll_latency_s
            )
        except TimeExhausted as e:
            raise LedgerTimeout(
                f"{label} tx {tx_hex} not confirmed within {timeout:.1f}s; it may still be included"
            ) from e
        except _TRANSPORT_ERRORS as e:
            raise BackendUnavailable(f"lost ledger connection while waiting for {tx_hex}: {e}") from e

        if int(receipt["status"]) != 1:
            raise RegistryError(f"{label} tx {tx_hex} reverted on inclusion")
        bt.logging.info(f"Confirmed {label} tx {tx_hex} in block {receipt['blockNumber']}")
        return receipt

    def _minted_token_ids(self, receipt: Any) -> List[int]:
        events = self.contract.events.AssetMinted().process_receipt(receipt)
        return [int(ev["args"]["tokenId"]) for ev in events]

    def put(self, draft: AssetDraft, *, timeout_s: Optional[float] = None) -> AssetRecord:
        fn = self.contract.functions.mintAsset(
            Web3.to_checksum_address(draft.owner),
            draft.identifier,
            draft.issuer_did,
            int(draft.expiry_at),
            draft.metadata_ref,
            draft.asset_type,
        )
        try:
            receipt = self._submit(fn, label="mintAsset", timeout_s=timeout_s)
        except RegistryError as e:
            # A status-0 receipt carries no reason; a concurrent landing is the usual cause.
            if type(e) is RegistryError and self.exists(draft.fingerprint):
                raise DuplicateAsset(f"asset already registered: {draft.identifier!r}") from e
            raise
        token_ids = self._minted_token_ids(receipt)
        if not token_ids:
            return self.get(draft.fingerprint)
        return self.get_by_token_id(token_ids[0])

    def put_many(self, drafts: Sequence[AssetDraft], *, timeout_s: Optional[float] = None) -> List[AssetRecord]:
        if not drafts:
            return []
        issuers = {d.issuer_did for d in drafts}
        asset_types = {d.asset_type for d in drafts}
        if len(issuers) != 1 or len(asset_types) != 1:
            raise InvalidArgument("a ledger batch must share one issuer DID and one asset type")

        fn = self.contract.functions.batchMintAssets(
            [Web3.to_checksum_address(d.owner) for d in drafts],
            [d.identifier for d in drafts],
            drafts[0].issuer_did,
            [int(d.expiry_at) for d in drafts],
            [d.metadata_ref for d in drafts],
            drafts[0].asset_type,
        )
        receipt = self._submit(fn, label="batchMintAssets", timeout_s=timeout_s)
        token_ids = self._minted_token_ids(receipt)
        if len(token_ids) != len(drafts):
            return [self.get(d.fingerprint) for d in drafts]
        return [self.get_by_token_id(t) for t in token_ids]

    def mark_revoked(self, fingerprint: bytes, *, timeout_s: Optional[float] = None) -> AssetRecord:
        current = self.get(fingerprint)
        if current.revoked:
            raise AlreadyRevoked(f"asset {current.token_id} is already revoked")
        receipt = self._submit(
            self.contract.functions.revokeAsset(current.token_id), label="revokeAsset", timeout_s=timeout_s
        )
        revoked_at: Optional[int] = None
        for ev in self.contract.events.AssetRevoked().process_receipt(receipt):
            revoked_at = int(ev["args"]["timestamp"])
        refreshed = self.get_by_token_id(current.token_id)
        if revoked_at is not None:
            return dataclasses.replace(refreshed, revoked_at=revoked_at)
        return refreshed

    # ----------------------------------------------------- issuer mirroring

    def authorize_issuer(self, issuer_did: str, *, timeout_s: Optional[float] = None) -> None:
        self._submit(self.contract.functions.authorizeIssuer(issuer_did), label="authorizeIssuer", timeout_s=timeout_s)

    def deauthorize_issuer(self, issuer_did: str, *, timeout_s: Optional[float] = None) -> None:
        self._submit(
            self.contract.functions.revokeIssuerAuthorization(issuer_did),
            label="revokeIssuerAuthorization",
            timeout_s=timeout_s,
        )
