"""Unsigned transaction intents for wallets.

The registry never signs: it only ABI-encodes the call so an external wallet
(MetaMask or similar) can add gas/nonce, sign and broadcast it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from web3 import Web3

from arva.registry.errors import BackendUnavailable, InvalidArgument
from arva.registry.store.abi import ARVA_ABI

# Provider-less instance: encoding needs no node.
_OFFLINE = Web3()


@dataclass(frozen=True)
class MintIntent:
    to: str
    data: str
    chain_id: int
    message: str = "Sign this transaction with your wallet"


def prepare_mint(
    *,
    contract_address: Optional[str],
    chain_id: int,
    owner: str,
    identifier: str,
    issuer_did: str,
    asset_type: str,
    metadata_ref: str,
    expiry_at: int = 0,
) -> MintIntent:
    if not contract_address:
        raise BackendUnavailable("ledger contract address is not configured")
    if not owner or not Web3.is_address(owner):
        raise InvalidArgument("Invalid wallet address")
    if not identifier or not issuer_did or not asset_type or not metadata_ref:
        raise InvalidArgument(
            "Missing required fields: walletAddress, uniqueId, issuerDID, assetType, metadataURI"
        )
    if int(expiry_at) < 0:
        raise InvalidArgument("expiry must be a unix timestamp or 0")

    contract = _OFFLINE.eth.contract(address=Web3.to_checksum_address(contract_address), abi=ARVA_ABI)
    data = contract.encode_abi(
        "mintAsset",
        args=[
            Web3.to_checksum_address(owner),
            identifier,
            issuer_did,
            int(expiry_at),
            metadata_ref,
            asset_type,
        ],
    )
    return MintIntent(to=contract.address, data=data, chain_id=int(chain_id))
