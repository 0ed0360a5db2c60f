from __future__ import annotations

import pytest
from web3.exceptions import ContractLogicError

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
from arva.registry.fingerprint import fingerprint
from arva.registry.models import AssetDraft, AssetState
from arva.registry.store.ledger import LedgerStore, translate_revert

from conftest import HOLDER, OTHER_HOLDER, REGISTRY_OWNER, FakeContract, FakeWeb3


def _draft(identifier: str, **kw) -> AssetDraft:
    fields = dict(
        identifier=identifier,
        fingerprint=fingerprint(identifier),
        issuer_did="did:qie:mit",
        owner=HOLDER,
        asset_type="DEGREE",
        expiry_at=0,
        metadata_ref=f"ipfs://{identifier}",
    )
    fields.update(kw)
    return AssetDraft(**fields)


def test_put_then_get_reads_contract_state(ledger_store, chain, clock):
    record = ledger_store.put(_draft("LEDGER-1"))
    assert record.token_id == 1
    assert record.minted_at == clock.now
    assert record.state is AssetState.ACTIVE
    assert record.metadata_ref == "ipfs://LEDGER-1"

    again = ledger_store.get(fingerprint("LEDGER-1"))
    assert again == record
    assert ledger_store.exists(fingerprint("LEDGER-1")) is True
    assert chain.sent[0][0] == "mintAsset"
    assert chain.sent[0][2] == REGISTRY_OWNER


def test_missing_records_are_not_found(ledger_store):
    with pytest.raises(NotFound):
        ledger_store.get(fingerprint("NOPE"))
    with pytest.raises(NotFound):
        ledger_store.get_by_token_id(99)
    with pytest.raises(NotFound):
        ledger_store.get_by_token_id(0)
    assert ledger_store.exists(fingerprint("NOPE")) is False


@pytest.mark.parametrize("token_id", [2**256, 2**256 + 5, -1])
def test_token_ids_outside_uint256_are_not_found_without_a_call(ledger_store, chain, token_id):
    # A down chain proves the range check answers before any encoding or RPC.
    chain.down = True
    with pytest.raises(NotFound):
        ledger_store.get_by_token_id(token_id)


def test_list_owned_by_scans_for_holder(ledger_store, chain):
    ledger_store.put(_draft("OWNED-1"))
    ledger_store.put(_draft("OWNED-2", owner=OTHER_HOLDER))
    ledger_store.put(_draft("OWNED-3"))

    owned = ledger_store.list_owned_by(HOLDER)
    assert [r.token_id for r in owned] == [1, 3]
    assert ledger_store.list_owned_by(REGISTRY_OWNER) == []

    chain.down = True
    with pytest.raises(BackendUnavailable):
        ledger_store.list_owned_by(HOLDER)


def test_native_balance(ledger_store, chain):
    chain.balances[HOLDER] = 3 * 10**18
    assert ledger_store.native_balance(HOLDER) == 3 * 10**18
    assert ledger_store.native_balance(OTHER_HOLDER) == 0
    chain.down = True
    with pytest.raises(BackendUnavailable):
        ledger_store.native_balance(HOLDER)


def test_contract_reverts_map_to_registry_errors(ledger_store):
    ledger_store.put(_draft("LEDGER-2"))
    with pytest.raises(DuplicateAsset):
        ledger_store.put(_draft("LEDGER-2", owner=OTHER_HOLDER))
    with pytest.raises(InvalidArgument):
        ledger_store.put(_draft("LEDGER-3", issuer_did=""))


def test_non_owner_sender_is_rejected(chain):
    store = LedgerStore(FakeWeb3(chain), FakeContract(chain), network="QIE Testnet", sender=OTHER_HOLDER)
    with pytest.raises(Unauthorized):
        store.put(_draft("LEDGER-4"))
    assert chain.records == {}


def test_sender_defaults_to_contract_owner(chain):
    store = LedgerStore(FakeWeb3(chain), FakeContract(chain), network="QIE Testnet")
    assert store.sender() == REGISTRY_OWNER


def test_revoke_is_one_way(ledger_store, clock):
    record = ledger_store.put(_draft("LEDGER-5"))
    clock.now += 60
    revoked = ledger_store.mark_revoked(record.fingerprint)
    assert revoked.revoked is True
    assert revoked.revoked_at == clock.now
    with pytest.raises(AlreadyRevoked):
        ledger_store.mark_revoked(record.fingerprint)
    assert ledger_store.get(record.fingerprint).revoked is True


def test_timeout_is_not_rolled_back(ledger_store, chain):
    chain.confirm = False
    with pytest.raises(LedgerTimeout) as exc:
        ledger_store.put(_draft("LEDGER-6"), timeout_s=0.1)
    assert exc.value.code == "Timeout"
    assert exc.value.http_status == 504

    # The transaction landed anyway; a retry must surface as a duplicate.
    chain.confirm = True
    assert ledger_store.exists(fingerprint("LEDGER-6")) is True
    with pytest.raises(DuplicateAsset):
        ledger_store.put(_draft("LEDGER-6"))


def test_unreachable_ledger(ledger_store, chain):
    assert ledger_store.is_reachable() is True
    chain.down = True
    assert ledger_store.is_reachable() is False
    with pytest.raises(BackendUnavailable):
        ledger_store.get(fingerprint("LEDGER-7"))
    with pytest.raises(BackendUnavailable):
        ledger_store.put(_draft("LEDGER-7"))


def test_contract_without_code_is_unreachable(chain):
    contract = FakeContract(chain)
    contract.address = OTHER_HOLDER
    store = LedgerStore(FakeWeb3(chain), contract, network="QIE Testnet", sender=REGISTRY_OWNER)
    assert store.is_reachable() is False


def test_put_many_single_transaction(ledger_store, chain):
    records = ledger_store.put_many([_draft("BATCH-A"), _draft("BATCH-B", owner=OTHER_HOLDER)])
    assert [r.token_id for r in records] == [1, 2]
    assert records[1].owner == OTHER_HOLDER
    assert [name for name, _, _ in chain.sent] == ["batchMintAssets"]


def test_put_many_requires_shared_issuer_and_type(ledger_store, chain):
    with pytest.raises(InvalidArgument):
        ledger_store.put_many([_draft("BATCH-C"), _draft("BATCH-D", issuer_did="did:qie:other")])
    with pytest.raises(InvalidArgument):
        ledger_store.put_many([_draft("BATCH-E"), _draft("BATCH-F", asset_type="WATCH")])
    assert chain.sent == []


def test_put_many_duplicate_leaves_no_partial_state(ledger_store, chain):
    ledger_store.put(_draft("BATCH-G"))
    with pytest.raises(DuplicateAsset):
        ledger_store.put_many([_draft("BATCH-H"), _draft("BATCH-G")])
    assert ledger_store.exists(fingerprint("BATCH-H")) is False


def test_issuer_changes_are_mirrored(ledger_store, chain):
    ledger_store.authorize_issuer("did:qie:mit")
    assert chain.issuers == {"did:qie:mit": True}
    ledger_store.deauthorize_issuer("did:qie:mit")
    assert chain.issuers == {"did:qie:mit": False}


@pytest.mark.parametrize(
    "reason,cls",
    [
        ("ARVA: Asset already registered", DuplicateAsset),
        ("ARVA: Asset already revoked", AlreadyRevoked),
        ("OwnableUnauthorizedAccount(0xabc)", Unauthorized),
        ("ERC721: invalid token ID", NotFound),
        ("ARVA: Invalid Issuer DID", InvalidArgument),
    ],
)
def test_translate_revert(reason, cls):
    assert type(translate_revert(ContractLogicError(f"execution reverted: {reason}"))) is cls


def test_translate_revert_unknown_reason():
    err = translate_revert(ContractLogicError("execution reverted: out of gas"))
    assert type(err) is RegistryError
    assert "out of gas" in err.message
