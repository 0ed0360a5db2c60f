"""HTTP façade over the registry.

Verification routes are public and unauthenticated. Admin routes exist only
when an administrator key is configured and accept only bodies signed by it.
A verification miss is a 200 with `isVerified=false`; only malformed input,
rejected writes and missing backends produce error statuses.
"""

from __future__ import annotations

import traceback
from datetime import datetime, timezone
from typing import List, Optional

import bittensor as bt
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from web3 import Web3

from arva import __version__
from arva.api.schemas import (
    AdminBatchMintRequest,
    AdminIssuerRequest,
    AdminMintRequest,
    AdminRevokeRequest,
    AssetResponse,
    BatchMintResult,
    DemoAsset,
    DemoAssetsResponse,
    DetailedVerifyResponse,
    ErrorResponse,
    HealthResponse,
    IssuerResponse,
    MintResult,
    PrepareMintRequest,
    PrepareMintResponse,
    RevokeResult,
    VerifyRequest,
    VerifyResponse,
    WalletAssetsResponse,
    WalletBalanceResponse,
    WalletNetworkResponse,
    WalletValidateRequest,
    WalletValidateResponse,
)
from arva.api.signing import check_admin_request
from arva.config import DEFAULT_CHAIN_ID, DEFAULT_NETWORK_NAME
from arva.registry.errors import BackendUnavailable, InvalidArgument, NotFound, RegistryError
from arva.registry.fingerprint import to_hex
from arva.registry.intents import prepare_mint
from arva.registry.models import AssetRecord, MintItem, VerificationReason, VerificationResult
from arva.registry.selector import BackendSelector
from arva.registry.store.snapshot import INVALID_EXAMPLES

_NOT_VERIFIED_MESSAGES = {
    VerificationReason.NOT_FOUND: "Asset not found",
    VerificationReason.EXPIRED: "Asset has expired",
    VerificationReason.REVOKED: "Asset has been revoked",
}


def _iso(ts: Optional[int]) -> Optional[str]:
    if not ts:
        return None
    return datetime.fromtimestamp(int(ts), tz=timezone.utc).isoformat()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _expiry(ts: int) -> str:
    return _iso(ts) or "No Expiry"


def _require_unique_id(body: VerifyRequest) -> str:
    unique_id = body.uniqueId
    if not unique_id:
        raise InvalidArgument("Unique identifier is required")
    return unique_id


def _verify_fields(result: VerificationResult) -> dict:
    rec = result.record
    out = {
        "isVerified": result.is_verified,
        "verificationTimestamp": _now_iso(),
        "blockchainNetwork": result.network,
    }
    if rec is not None:
        out.update(
            tokenId=str(rec.token_id),
            issuerDID=rec.issuer_did,
            owner=rec.owner,
            assetType=rec.asset_type,
            mintedAt=_iso(rec.minted_at),
            expiryDate=_expiry(rec.expiry_at),
        )
    if not result.is_verified:
        out["message"] = _NOT_VERIFIED_MESSAGES[result.reason]
    return out


def _asset_response(rec: AssetRecord, network: str) -> AssetResponse:
    return AssetResponse(
        tokenId=str(rec.token_id),
        fingerprint=rec.fingerprint_hex,
        owner=rec.owner,
        issuerDID=rec.issuer_did,
        assetType=rec.asset_type,
        mintedAt=_iso(rec.minted_at) or "",
        expiryDate=_expiry(rec.expiry_at),
        isRevoked=rec.revoked,
        revokedAt=_iso(rec.revoked_at),
        tokenURI=rec.metadata_ref,
        blockchainNetwork=network,
    )


def _error_response(status_code: int, error: str, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=error, code=code).model_dump())


def _wallet_address(address: str) -> str:
    if not Web3.is_address(address):
        raise InvalidArgument("Invalid wallet address")
    return Web3.to_checksum_address(address)


async def _raw_json(request: Request) -> dict:
    # Signatures cover the body as sent, before any model coercion.
    data = await request.json()
    if not isinstance(data, dict):
        raise InvalidArgument("request body must be a JSON object")
    return data


def create_app(
    selector: BackendSelector,
    *,
    admin_ss58: Optional[str] = None,
    chain_id: int = DEFAULT_CHAIN_ID,
    contract_address: Optional[str] = None,
    rpc_url: str = "",
    network_name: str = DEFAULT_NETWORK_NAME,
    native_currency: str = "QIE",
    cors_origins: Optional[List[str]] = None,
) -> FastAPI:
    app = FastAPI(title="ARVA Asset Verification Registry", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.state.selector = selector

    # --- Error rendering ------------------------------------------------

    @app.exception_handler(RegistryError)
    def registry_error(_request: Request, exc: RegistryError):
        if exc.http_status >= 500:
            bt.logging.warning(f"{exc.code}: {exc.message}")
        return _error_response(exc.http_status, exc.message, exc.code)

    @app.exception_handler(RequestValidationError)
    def validation_error(_request: Request, exc: RequestValidationError):
        return _error_response(400, f"Malformed request: {exc.errors()}", InvalidArgument.code)

    @app.exception_handler(Exception)
    def unexpected_error(_request: Request, exc: Exception):
        bt.logging.error(f"Unhandled error: {exc}\n{traceback.format_exc()}")
        return _error_response(500, "Internal server error", "Internal")

    # --- Public routes ----------------------------------------------------

    @app.get("/health", response_model=HealthResponse)
    def health():
        selector.maybe_reprobe()
        binding = selector.binding
        return HealthResponse(
            status="healthy" if binding.kind != "none" else "degraded",
            version=__version__,
            blockchain=binding.blockchain,
            network=binding.network,
            timestamp=_now_iso(),
        )

    @app.post("/verify", response_model=VerifyResponse, response_model_exclude_none=True)
    def verify(body: VerifyRequest):
        unique_id = _require_unique_id(body)
        bt.logging.info(f"Verification request for: {unique_id}")
        result = selector.read(lambda svc: svc.verify(unique_id))
        bt.logging.info(f"Verification result: {'VERIFIED' if result.is_verified else result.reason.value}")
        return VerifyResponse(status="Verified" if result.is_verified else "Not Verified", **_verify_fields(result))

    @app.post("/verify/detailed", response_model=DetailedVerifyResponse, response_model_exclude_none=True)
    def verify_detailed(body: VerifyRequest):
        unique_id = _require_unique_id(body)
        bt.logging.info(f"Detailed verification request for: {unique_id}")
        detail = selector.read(lambda svc: svc.detailed_verify(unique_id))
        result = detail.result
        if not detail.found:
            status = "Not Found"
        else:
            status = "Verified" if result.is_verified else "Invalid"
        return DetailedVerifyResponse(
            status=status,
            isExpired=detail.is_expired,
            isRevoked=detail.is_revoked,
            currentOwner=detail.current_owner or None,
            fingerprint=to_hex(result.fingerprint),
            reason=result.reason.value,
            **_verify_fields(result),
        )

    @app.get("/asset/{token_id}", response_model=AssetResponse, response_model_exclude_none=True)
    def get_asset(token_id: str):
        try:
            tid = int(token_id)
        except ValueError:
            raise NotFound("Asset not found")
        rec, network = selector.read(lambda svc: (svc.get_asset(tid), svc.network))
        return _asset_response(rec, network)

    @app.get("/demo/assets", response_model=DemoAssetsResponse)
    def demo_assets():
        svc = selector.service()
        records = svc.list_assets()
        identifier_for = getattr(svc.store, "identifier_for", None)
        if records is None or identifier_for is None:
            raise NotFound("Demo assets are only listed in demo mode")
        now = svc.now()
        assets = [
            DemoAsset(
                uniqueId=identifier_for(r.token_id) or "",
                tokenId=str(r.token_id),
                issuerDID=r.issuer_did,
                owner=r.owner,
                assetType=r.asset_type,
                isVerified=not r.revoked and not r.is_expired(now),
            )
            for r in records
        ]
        return DemoAssetsResponse(
            validAssets=[a.uniqueId for a in assets if a.isVerified],
            invalidExamples=list(INVALID_EXAMPLES),
            assets=assets,
        )

    @app.get("/issuer/{did}", response_model=IssuerResponse, response_model_exclude_none=True)
    def issuer(did: str):
        entry = selector.issuers.get(did)
        if entry is None:
            raise NotFound("Issuer not found")
        return IssuerResponse(
            did=entry.did,
            enabled=entry.enabled,
            name=entry.profile.get("name"),
            type=entry.profile.get("type"),
            website=entry.profile.get("website"),
        )

    # --- Wallet helpers (unsigned intents only) -----------------------------

    @app.get("/wallet/network", response_model=WalletNetworkResponse, response_model_exclude_none=True)
    def wallet_network():
        return WalletNetworkResponse(
            networkName=network_name,
            chainId=int(chain_id),
            chainIdHex=hex(int(chain_id)),
            rpcUrl=rpc_url,
            contractAddress=contract_address,
        )

    @app.post("/wallet/validate", response_model=WalletValidateResponse, response_model_exclude_none=True)
    def wallet_validate(body: WalletValidateRequest):
        if not body.address:
            raise InvalidArgument("Address required")
        valid = Web3.is_address(body.address)
        return WalletValidateResponse(
            valid=valid,
            address=Web3.to_checksum_address(body.address) if valid else None,
            message="Valid Ethereum/QIE address" if valid else "Invalid address format",
        )

    @app.get("/wallet/assets/{address}", response_model=WalletAssetsResponse)
    def wallet_assets(address: str):
        owner = _wallet_address(address)
        records, network = selector.read(lambda svc: (svc.assets_owned_by(owner), svc.network))
        return WalletAssetsResponse(
            address=owner,
            totalAssets=len(records),
            assets=[_asset_response(r, network) for r in records],
            blockchainNetwork=network,
        )

    @app.get("/wallet/balance/{address}", response_model=WalletBalanceResponse)
    def wallet_balance(address: str):
        holder = _wallet_address(address)

        def _balance(svc):
            native_balance = getattr(svc.store, "native_balance", None)
            if native_balance is None:
                raise BackendUnavailable("Blockchain not connected")
            return native_balance(holder), svc.network

        wei, network = selector.read(_balance)
        return WalletBalanceResponse(
            address=holder,
            balance=str(Web3.from_wei(wei, "ether")),
            balanceWei=str(wei),
            currency=native_currency,
            network=network,
        )

    @app.post("/wallet/prepare-mint", response_model=PrepareMintResponse)
    def wallet_prepare_mint(body: PrepareMintRequest):
        intent = prepare_mint(
            contract_address=contract_address,
            chain_id=chain_id,
            owner=body.walletAddress or "",
            identifier=body.uniqueId or "",
            issuer_did=body.issuerDID or "",
            asset_type=body.assetType or "",
            metadata_ref=body.metadataURI or "",
            expiry_at=body.expiryDate,
        )
        return PrepareMintResponse(to=intent.to, data=intent.data, chainId=intent.chain_id, message=intent.message)

    # --- Admin routes (owner-signed) ---------------------------------------

    if admin_ss58:
        _register_admin_routes(app, selector, admin_ss58)
    else:
        bt.logging.info("ARVA_ADMIN_SS58 not set; admin routes disabled")

    return app


def _register_admin_routes(app: FastAPI, selector: BackendSelector, admin_ss58: str) -> None:
    def _authenticate(body, raw: dict) -> None:
        try:
            check_admin_request(raw, admin_ss58=admin_ss58)
        except RegistryError as e:
            bt.logging.warning(f"Rejected admin request from {body.signer!r}: {e.message}")
            raise

    @app.post("/admin/mint", response_model=MintResult)
    def admin_mint(body: AdminMintRequest, raw: dict = Depends(_raw_json)):
        _authenticate(body, raw)
        receipt, network = selector.write(
            lambda svc: (
                svc.mint(
                    svc.owner,
                    body.owner,
                    body.uniqueId,
                    body.issuerDID,
                    expiry_at=body.expiryDate,
                    metadata_ref=body.metadataURI,
                    asset_type=body.assetType,
                    timeout_s=body.timeoutS,
                ),
                svc.network,
            )
        )
        return MintResult(tokenId=str(receipt.token_id), fingerprint=receipt.fingerprint_hex, blockchainNetwork=network)

    @app.post("/admin/batch-mint", response_model=BatchMintResult)
    def admin_batch_mint(body: AdminBatchMintRequest, raw: dict = Depends(_raw_json)):
        _authenticate(body, raw)
        items = [
            MintItem(owner=i.owner, identifier=i.uniqueId, expiry_at=i.expiryDate, metadata_ref=i.metadataURI)
            for i in body.items
        ]
        receipts, network = selector.write(
            lambda svc: (
                svc.batch_mint(svc.owner, body.issuerDID, body.assetType, items, timeout_s=body.timeoutS),
                svc.network,
            )
        )
        return BatchMintResult(
            minted=[
                MintResult(tokenId=str(r.token_id), fingerprint=r.fingerprint_hex, blockchainNetwork=network)
                for r in receipts
            ],
            blockchainNetwork=network,
        )

    @app.post("/admin/revoke", response_model=RevokeResult, response_model_exclude_none=True)
    def admin_revoke(body: AdminRevokeRequest, raw: dict = Depends(_raw_json)):
        _authenticate(body, raw)
        rec, network = selector.write(
            lambda svc: (svc.revoke(svc.owner, body.tokenId, timeout_s=body.timeoutS), svc.network)
        )
        return RevokeResult(
            tokenId=str(rec.token_id), isRevoked=rec.revoked, revokedAt=_iso(rec.revoked_at), blockchainNetwork=network
        )

    @app.post("/admin/issuers", response_model=IssuerResponse, response_model_exclude_none=True)
    def admin_issuers(body: AdminIssuerRequest, raw: dict = Depends(_raw_json)):
        _authenticate(body, raw)
        if body.enabled:
            entry = selector.write(lambda svc: svc.authorize_issuer(svc.owner, body.issuerDID, profile=body.profile))
        else:
            entry = selector.write(lambda svc: svc.deauthorize_issuer(svc.owner, body.issuerDID))
        return IssuerResponse(
            did=entry.did,
            enabled=entry.enabled,
            name=entry.profile.get("name"),
            type=entry.profile.get("type"),
            website=entry.profile.get("website"),
        )
