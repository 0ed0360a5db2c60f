from __future__ import annotations

import pytest

from arva.registry.errors import AlreadyRevoked, DuplicateAsset, InvalidArgument, NotFound, Unauthorized
from arva.registry.fingerprint import ZERO_FINGERPRINT, fingerprint
from arva.registry.issuers import IssuerAuthorizationTable
from arva.registry.models import MintItem, VerificationReason
from arva.registry.service import RegistryService
from arva.registry.store.snapshot import SnapshotStore

from conftest import HOLDER, OTHER_HOLDER, REGISTRY_OWNER


@pytest.fixture(params=["snapshot", "ledger"])
def svc(request) -> RegistryService:
    # Same business contract regardless of backend.
    return request.getfixturevalue("service" if request.param == "snapshot" else "ledger_service")


def test_mint_then_verify(svc):
    receipt = svc.mint(REGISTRY_OWNER, HOLDER, "DEGREE-MIT-2024-999", "did:x:mit", expiry_at=0)
    assert receipt.fingerprint == fingerprint("DEGREE-MIT-2024-999")
    assert receipt.token_id > 0

    result = svc.verify("DEGREE-MIT-2024-999")
    assert result.is_verified is True
    assert result.reason is VerificationReason.VERIFIED
    assert result.issuer_did == "did:x:mit"
    assert result.fingerprint == receipt.fingerprint
    assert result.record.owner == HOLDER


def test_mint_with_future_expiry_verifies(svc, clock):
    svc.mint(REGISTRY_OWNER, HOLDER, "CERT-FUTURE", "did:x:aws", expiry_at=clock.now + 3600)
    assert svc.verify("CERT-FUTURE").is_verified is True


def test_expiry_uses_query_time_clock(svc, clock):
    svc.mint(REGISTRY_OWNER, HOLDER, "CERT-SOON", "did:x:aws", expiry_at=clock.now + 10)
    assert svc.verify("CERT-SOON").is_verified is True
    clock.now += 10
    result = svc.verify("CERT-SOON")
    assert result.is_verified is False
    assert result.reason is VerificationReason.EXPIRED


def test_past_expiry_is_expired_not_revoked(svc, clock):
    svc.mint(REGISTRY_OWNER, HOLDER, "EXPIRED-CERT-001", "did:x:aws", expiry_at=clock.now - 3600)
    detail = svc.detailed_verify("EXPIRED-CERT-001")
    assert detail.is_verified is False
    assert detail.is_expired is True
    assert detail.is_revoked is False


def test_duplicate_mint_fails_regardless_of_other_fields(svc):
    svc.mint(REGISTRY_OWNER, HOLDER, "DUP-1", "did:x:mit", asset_type="DEGREE")
    with pytest.raises(DuplicateAsset):
        svc.mint(REGISTRY_OWNER, OTHER_HOLDER, "DUP-1", "did:x:other", asset_type="WATCH")


def test_revoked_identifier_cannot_be_reminted(svc):
    receipt = svc.mint(REGISTRY_OWNER, HOLDER, "REV-1", "did:x:mit")
    svc.revoke(REGISTRY_OWNER, receipt.token_id)
    with pytest.raises(DuplicateAsset):
        svc.mint(REGISTRY_OWNER, HOLDER, "REV-1", "did:x:mit")


def test_revoke_then_verify_and_double_revoke(svc):
    receipt = svc.mint(REGISTRY_OWNER, HOLDER, "REV-2", "did:x:mit")
    record = svc.revoke(REGISTRY_OWNER, receipt.token_id)
    assert record.revoked is True
    assert record.revoked_at is not None

    detail = svc.detailed_verify("REV-2")
    assert detail.is_verified is False
    assert detail.is_revoked is True
    assert detail.result.reason is VerificationReason.REVOKED

    with pytest.raises(AlreadyRevoked):
        svc.revoke(REGISTRY_OWNER, receipt.token_id)


def test_revoke_unknown_token(svc):
    with pytest.raises(NotFound):
        svc.revoke(REGISTRY_OWNER, 424242)


def test_verify_never_minted_is_an_answer(svc):
    result = svc.verify("FAKE-DEGREE-2024-XXX")
    assert result.is_verified is False
    assert result.reason is VerificationReason.NOT_FOUND
    assert result.issuer_did == ""
    assert result.fingerprint == ZERO_FINGERPRINT
    assert result.record is None


def test_verify_rejects_empty_identifier(svc):
    with pytest.raises(InvalidArgument):
        svc.verify("")


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(owner=HOLDER, identifier="", issuer_did="did:x:a"),
        dict(owner=HOLDER, identifier="X-1", issuer_did=""),
        dict(owner="not-an-address", identifier="X-1", issuer_did="did:x:a"),
        dict(owner=HOLDER, identifier="X-1", issuer_did="did:x:a", expiry_at=-1),
    ],
)
def test_mint_rejects_invalid_arguments(svc, kwargs):
    with pytest.raises(InvalidArgument):
        svc.mint(REGISTRY_OWNER, **kwargs)
    assert svc.exists("X-1") is False


def test_only_owner_mints_and_revokes(svc):
    with pytest.raises(Unauthorized):
        svc.mint(OTHER_HOLDER, HOLDER, "X-2", "did:x:a")
    receipt = svc.mint(REGISTRY_OWNER, HOLDER, "X-3", "did:x:a")
    with pytest.raises(Unauthorized):
        svc.revoke(OTHER_HOLDER, receipt.token_id)
    assert svc.verify("X-3").is_verified is True


def test_mint_emits_reconstructible_audit_event(svc):
    receipt = svc.mint(
        REGISTRY_OWNER, HOLDER, "AUD-1", "did:x:a", metadata_ref="ipfs://aud-1", asset_type="DEGREE"
    )
    event = svc.audit.tail(1)[0]
    assert event.kind == "asset_minted"
    assert event.token_id == receipt.token_id
    assert event.fingerprint == receipt.fingerprint_hex
    assert event.issuer_did == "did:x:a"
    assert event.owner == HOLDER
    assert event.metadata_ref == "ipfs://aud-1"
    assert event.asset_type == "DEGREE"
    assert event.revoked is False

    svc.revoke(REGISTRY_OWNER, receipt.token_id)
    revoked = svc.audit.tail(1)[0]
    assert revoked.kind == "asset_revoked"
    assert revoked.revoked is True and revoked.revoked_at is not None


def test_batch_mint_all_succeed(svc):
    receipts = svc.batch_mint(
        REGISTRY_OWNER,
        "did:x:mit",
        "DEGREE",
        [MintItem(owner=HOLDER, identifier="BATCH-001"), MintItem(owner=OTHER_HOLDER, identifier="BATCH-002")],
    )
    assert [r.fingerprint for r in receipts] == [fingerprint("BATCH-001"), fingerprint("BATCH-002")]
    assert svc.verify("BATCH-001").is_verified
    assert svc.get_asset(receipts[1].token_id).owner == OTHER_HOLDER


def test_batch_mint_rejects_whole_batch(svc):
    svc.mint(REGISTRY_OWNER, HOLDER, "BATCH-EXISTING", "did:x:mit")
    with pytest.raises(DuplicateAsset):
        svc.batch_mint(
            REGISTRY_OWNER,
            "did:x:mit",
            "DEGREE",
            [MintItem(owner=HOLDER, identifier="BATCH-NEW"), MintItem(owner=HOLDER, identifier="BATCH-EXISTING")],
        )
    assert svc.exists("BATCH-NEW") is False

    with pytest.raises(InvalidArgument):
        svc.batch_mint(
            REGISTRY_OWNER,
            "did:x:mit",
            "DEGREE",
            [MintItem(owner=HOLDER, identifier="BATCH-OK"), MintItem(owner="bad", identifier="BATCH-BAD")],
        )
    assert svc.exists("BATCH-OK") is False


def test_batch_mint_rejects_in_batch_duplicates(svc):
    with pytest.raises(DuplicateAsset):
        svc.batch_mint(
            REGISTRY_OWNER,
            "did:x:mit",
            "DEGREE",
            [MintItem(owner=HOLDER, identifier="SAME"), MintItem(owner=HOLDER, identifier="SAME")],
        )


def test_per_issuer_authorization_is_opt_in(snapshot_store, clock):
    issuers = IssuerAuthorizationTable(REGISTRY_OWNER)
    strict = RegistryService(
        snapshot_store, owner=REGISTRY_OWNER, issuers=issuers, enforce_issuer_authorization=True, clock=clock
    )
    with pytest.raises(Unauthorized):
        strict.mint(REGISTRY_OWNER, HOLDER, "ISS-1", "did:x:unknown")

    strict.authorize_issuer(REGISTRY_OWNER, "did:x:unknown")
    strict.mint(REGISTRY_OWNER, HOLDER, "ISS-1", "did:x:unknown")

    strict.deauthorize_issuer(REGISTRY_OWNER, "did:x:unknown")
    with pytest.raises(Unauthorized):
        strict.mint(REGISTRY_OWNER, HOLDER, "ISS-2", "did:x:unknown")

    # Default policy: owner gate only.
    lax = RegistryService(snapshot_store, owner=REGISTRY_OWNER, issuers=issuers, clock=clock)
    lax.mint(REGISTRY_OWNER, HOLDER, "ISS-3", "did:x:unknown")


def test_issuer_table_is_owner_only():
    table = IssuerAuthorizationTable(REGISTRY_OWNER)
    with pytest.raises(Unauthorized):
        table.authorize(HOLDER, "did:x:a")
    table.authorize(REGISTRY_OWNER, "did:x:a", profile={"name": "A"})
    assert table.is_authorized("did:x:a") is True
    assert table.get("did:x:a").profile["name"] == "A"
    assert table.is_authorized("did:x:b") is False


@pytest.mark.parametrize("backend", ["snapshot", "ledger"])
def test_degree_scenario_on_empty_registry(backend, ledger_service, clock):
    if backend == "snapshot":
        svc = RegistryService(SnapshotStore([], mutable=True, clock=clock), owner=REGISTRY_OWNER, clock=clock)
    else:
        svc = ledger_service
    svc.mint(REGISTRY_OWNER, HOLDER, "DEGREE-MIT-2024-001", "did:x:mit", expiry_at=0)

    assert svc.verify("DEGREE-MIT-2024-001").is_verified is True
    assert svc.verify("DEGREE-MIT-2024-001").issuer_did == "did:x:mit"
    assert svc.verify("FAKE-DEGREE-2024-XXX").is_verified is False
