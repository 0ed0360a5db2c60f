from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class VerifyRequest(BaseModel):
    # Optional at the schema level so a missing id is a 400 InvalidArgument, not a 422.
    uniqueId: Optional[str] = None


class VerifyResponse(BaseModel):
    status: str
    isVerified: bool
    tokenId: Optional[str] = None
    issuerDID: Optional[str] = None
    owner: Optional[str] = None
    assetType: Optional[str] = None
    mintedAt: Optional[str] = None
    expiryDate: Optional[str] = None
    message: Optional[str] = None
    verificationTimestamp: str
    blockchainNetwork: str


class DetailedVerifyResponse(VerifyResponse):
    isExpired: bool = False
    isRevoked: bool = False
    currentOwner: Optional[str] = None
    fingerprint: str
    reason: str


class AssetResponse(BaseModel):
    tokenId: str
    fingerprint: str
    owner: str
    issuerDID: str
    assetType: str
    mintedAt: str
    expiryDate: str
    isRevoked: bool
    revokedAt: Optional[str] = None
    tokenURI: str
    blockchainNetwork: str


class HealthResponse(BaseModel):
    status: str = "healthy"
    service: str = "ARVA Backend"
    version: str
    blockchain: Literal["connected", "demo-mode"]
    network: str
    timestamp: str


class ErrorResponse(BaseModel):
    status: str = "Error"
    isVerified: bool = False
    error: str
    code: str


class DemoAsset(BaseModel):
    uniqueId: str
    tokenId: str
    issuerDID: str
    owner: str
    assetType: str
    isVerified: bool


class DemoAssetsResponse(BaseModel):
    message: str = "Demo assets for testing verification"
    validAssets: List[str] = Field(default_factory=list)
    invalidExamples: List[str] = Field(default_factory=list)
    assets: List[DemoAsset] = Field(default_factory=list)


class IssuerResponse(BaseModel):
    did: str
    enabled: bool
    name: Optional[str] = None
    type: Optional[str] = None
    website: Optional[str] = None


class WalletNetworkResponse(BaseModel):
    networkName: str
    chainId: int
    chainIdHex: str
    rpcUrl: str
    contractAddress: Optional[str] = None


class WalletValidateRequest(BaseModel):
    address: Optional[str] = None


class WalletValidateResponse(BaseModel):
    valid: bool
    address: Optional[str] = None
    message: str


class WalletAssetsResponse(BaseModel):
    address: str
    totalAssets: int
    assets: List[AssetResponse] = Field(default_factory=list)
    blockchainNetwork: str


class WalletBalanceResponse(BaseModel):
    address: str
    balance: str
    balanceWei: str
    currency: str
    network: str


class PrepareMintRequest(BaseModel):
    walletAddress: Optional[str] = None
    uniqueId: Optional[str] = None
    issuerDID: Optional[str] = None
    assetType: Optional[str] = None
    metadataURI: Optional[str] = None
    expiryDate: int = 0


class PrepareMintResponse(BaseModel):
    to: str
    data: str
    chainId: int
    prepared: bool = True
    message: str


# --------------------------------------------------------------------- admin
# Every admin body carries `timestamp`, `signer` and `signature` (sr25519 over
# the canonical JSON of all other fields).


class SignedRequest(BaseModel):
    timestamp: int
    signer: str
    signature: str


class AdminMintRequest(SignedRequest):
    owner: str
    uniqueId: str
    issuerDID: str
    assetType: str = ""
    metadataURI: str = ""
    expiryDate: int = 0
    timeoutS: Optional[float] = None


class AdminBatchItem(BaseModel):
    owner: str
    uniqueId: str
    expiryDate: int = 0
    metadataURI: str = ""


class AdminBatchMintRequest(SignedRequest):
    issuerDID: str
    assetType: str = ""
    items: List[AdminBatchItem]
    timeoutS: Optional[float] = None


class AdminRevokeRequest(SignedRequest):
    tokenId: int
    timeoutS: Optional[float] = None


class AdminIssuerRequest(SignedRequest):
    issuerDID: str
    enabled: bool = True
    profile: Dict[str, str] = Field(default_factory=dict)


class MintResult(BaseModel):
    tokenId: str
    fingerprint: str
    blockchainNetwork: str


class BatchMintResult(BaseModel):
    minted: List[MintResult]
    blockchainNetwork: str


class RevokeResult(BaseModel):
    tokenId: str
    isRevoked: bool
    revokedAt: Optional[str] = None
    blockchainNetwork: str
