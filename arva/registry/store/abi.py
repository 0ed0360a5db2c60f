"""ABI of the ARVA asset NFT contract (the subset this package calls)."""

from __future__ import annotations

from typing import Any, Dict, List


def _fn(name: str, inputs: List[tuple], outputs: List[Any], mutability: str) -> Dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "stateMutability": mutability,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": outputs,
    }


def _out(*pairs: tuple) -> List[Dict[str, str]]:
    return [{"name": n, "type": t} for n, t in pairs]


ASSET_RECORD_TUPLE = {
    "name": "",
    "type": "tuple",
    "components": _out(
        ("issuerDID", "string"),
        ("identifierHash", "bytes32"),
        ("expiryDate", "uint256"),
        ("mintedAt", "uint256"),
        ("isRevoked", "bool"),
        ("assetType", "string"),
    ),
}

ARVA_ABI: List[Dict[str, Any]] = [
    _fn(
        "mintAsset",
        [
            ("to", "address"),
            ("uniqueId", "string"),
            ("issuerDID", "string"),
            ("expiryDate", "uint256"),
            ("tokenURI", "string"),
            ("assetType", "string"),
        ],
        _out(("", "uint256")),
        "nonpayable",
    ),
    _fn(
        "batchMintAssets",
        [
            ("recipients", "address[]"),
            ("uniqueIds", "string[]"),
            ("issuerDID", "string"),
            ("expiryDates", "uint256[]"),
            ("tokenURIs", "string[]"),
            ("assetType", "string"),
        ],
        _out(("", "uint256[]")),
        "nonpayable",
    ),
    _fn("revokeAsset", [("tokenId", "uint256")], [], "nonpayable"),
    _fn(
        "verifyAsset",
        [("uniqueId", "string")],
        _out(("tokenId", "uint256"), ("issuerDID", "string"), ("isVerified", "bool")),
        "view",
    ),
    _fn("getAssetRecord", [("tokenId", "uint256")], [ASSET_RECORD_TUPLE], "view"),
    _fn("identifierHashToTokenId", [("identifierHash", "bytes32")], _out(("", "uint256")), "view"),
    _fn("isIdentifierRegistered", [("uniqueId", "string")], _out(("", "bool")), "view"),
    _fn("ownerOf", [("tokenId", "uint256")], _out(("", "address")), "view"),
    _fn("balanceOf", [("owner", "address")], _out(("", "uint256")), "view"),
    _fn("tokenURI", [("tokenId", "uint256")], _out(("", "string")), "view"),
    _fn("owner", [], _out(("", "address")), "view"),
    _fn("totalSupply", [], _out(("", "uint256")), "view"),
    _fn("authorizeIssuer", [("issuerDID", "string")], [], "nonpayable"),
    _fn("revokeIssuerAuthorization", [("issuerDID", "string")], [], "nonpayable"),
    _fn("authorizedIssuers", [("issuerDID", "string")], _out(("", "bool")), "view"),
    {
        "type": "event",
        "name": "AssetMinted",
        "anonymous": False,
        "inputs": [
            {"name": "tokenId", "type": "uint256", "indexed": True},
            {"name": "owner", "type": "address", "indexed": True},
            {"name": "issuerDID", "type": "string", "indexed": False},
            {"name": "identifierHash", "type": "bytes32", "indexed": False},
            {"name": "assetType", "type": "string", "indexed": False},
            {"name": "expiryDate", "type": "uint256", "indexed": False},
        ],
    },
    {
        "type": "event",
        "name": "AssetRevoked",
        "anonymous": False,
        "inputs": [
            {"name": "tokenId", "type": "uint256", "indexed": True},
            {"name": "issuerDID", "type": "string", "indexed": False},
            {"name": "timestamp", "type": "uint256", "indexed": False},
        ],
    },
]
