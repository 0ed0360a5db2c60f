import sys
from pathlib import Path

# Ensure repo root is on sys.path so `import arva` works under all pytest import modes.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import itertools  # noqa: E402
from typing import Any, Dict, List, Optional, Tuple  # noqa: E402

import pytest  # noqa: E402
import requests  # noqa: E402
from web3.exceptions import ContractLogicError, TimeExhausted  # noqa: E402

from arva.registry.fingerprint import ZERO_FINGERPRINT, fingerprint  # noqa: E402
from arva.registry.service import RegistryService  # noqa: E402
from arva.registry.store.ledger import LedgerStore  # noqa: E402
from arva.registry.store.snapshot import SnapshotStore  # noqa: E402

REGISTRY_OWNER = "0x00000000000000000000000000000000000000AA"
HOLDER = "0x1111111111111111111111111111111111111111"
OTHER_HOLDER = "0x2222222222222222222222222222222222222222"
CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
NOW = 1_750_000_000


class FakeClock:
    def __init__(self, now: int = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return float(self.now)


# ---------------------------------------------------------------- fake ledger
# Mirrors the ARVA contract closely enough to exercise LedgerStore end to end:
# transact() applies immediately (like a dev node with automine), and
# wait_for_transaction_receipt() can be told to time out.


def _revert(reason: str) -> ContractLogicError:
    return ContractLogicError(f"execution reverted: {reason}")


class FakeChain:
    def __init__(self, owner: str = REGISTRY_OWNER, clock: Optional[FakeClock] = None) -> None:
        self.owner = owner
        self.clock = clock or FakeClock()
        self.records: Dict[int, Dict[str, Any]] = {}
        self.by_hash: Dict[bytes, int] = {}
        self.receipts: Dict[bytes, Dict[str, Any]] = {}
        self.issuers: Dict[str, bool] = {}
        self.balances: Dict[str, int] = {}
        self.next_id = 1
        self.block = 100
        self.down = False
        self.confirm = True
        self.sent: List[Tuple[str, tuple, str]] = []
        self._tx = itertools.count(1)

    def _check_up(self) -> None:
        if self.down:
            raise requests.exceptions.ConnectionError("connection refused")

    # reads
    def call(self, name: str, args: tuple) -> Any:
        self._check_up()
        if name == "identifierHashToTokenId":
            return self.by_hash.get(bytes(args[0]), 0)
        if name == "getAssetRecord":
            r = self.records.get(int(args[0]))
            if r is None:
                return ("", ZERO_FINGERPRINT, 0, 0, False, "")
            return (r["issuer"], r["hash"], r["expiry"], r["minted_at"], r["revoked"], r["asset_type"])
        if name in ("ownerOf", "tokenURI"):
            r = self.records.get(int(args[0]))
            if r is None:
                raise _revert("ERC721: invalid token ID")
            return r["owner"] if name == "ownerOf" else r["uri"]
        if name == "balanceOf":
            return sum(1 for r in self.records.values() if r["owner"].lower() == str(args[0]).lower())
        if name == "totalSupply":
            return len(self.records)
        if name == "owner":
            return self.owner
        raise AssertionError(f"unexpected call {name}")

    # writes
    def _mint_one(self, to: str, uid: str, did: str, expiry: int, uri: str, asset_type: str) -> Dict[str, Any]:
        if not did:
            raise _revert("ARVA: Invalid Issuer DID")
        h = fingerprint(uid)
        if h in self.by_hash:
            raise _revert("ARVA: Asset already registered")
        tid = self.next_id
        self.next_id += 1
        self.records[tid] = {
            "issuer": did,
            "hash": h,
            "expiry": int(expiry),
            "minted_at": int(self.clock()),
            "revoked": False,
            "asset_type": asset_type,
            "owner": to,
            "uri": uri,
        }
        self.by_hash[h] = tid
        return {"event": "AssetMinted", "args": {"tokenId": tid, "owner": to, "identifierHash": h}}

    def transact(self, name: str, args: tuple, sender: str) -> bytes:
        self._check_up()
        if sender != self.owner:
            raise _revert("Ownable: caller is not the owner")
        logs: List[Dict[str, Any]] = []
        if name == "mintAsset":
            logs.append(self._mint_one(*args))
        elif name == "batchMintAssets":
            recipients, uids, did, expiries, uris, asset_type = args
            # Pre-check so a failing batch leaves no partial state.
            hashes = [fingerprint(u) for u in uids]
            if len(set(hashes)) != len(hashes) or any(h in self.by_hash for h in hashes):
                raise _revert("ARVA: Asset already registered")
            for to, uid, exp, uri in zip(recipients, uids, expiries, uris):
                logs.append(self._mint_one(to, uid, did, exp, uri, asset_type))
        elif name == "revokeAsset":
            r = self.records.get(int(args[0]))
            if r is None:
                raise _revert("ERC721: invalid token ID")
            if r["revoked"]:
                raise _revert("ARVA: Asset already revoked")
            r["revoked"] = True
            logs.append({"event": "AssetRevoked", "args": {"tokenId": int(args[0]), "timestamp": int(self.clock())}})
        elif name == "authorizeIssuer":
            self.issuers[args[0]] = True
        elif name == "revokeIssuerAuthorization":
            self.issuers[args[0]] = False
        else:
            raise AssertionError(f"unexpected transact {name}")
        self.sent.append((name, args, sender))
        tx_hash = next(self._tx).to_bytes(32, "big")
        self.block += 1
        self.receipts[tx_hash] = {"status": 1, "blockNumber": self.block, "logs": logs}
        return tx_hash


class _Fn:
    def __init__(self, chain: FakeChain, name: str, args: tuple) -> None:
        self.chain, self.name, self.args = chain, name, args

    def call(self) -> Any:
        return self.chain.call(self.name, self.args)

    def transact(self, tx: Dict[str, Any]) -> bytes:
        return self.chain.transact(self.name, self.args, tx["from"])


class _Functions:
    def __init__(self, chain: FakeChain) -> None:
        self._chain = chain

    def __getattr__(self, name: str):
        return lambda *args: _Fn(self._chain, name, args)


class _Event:
    def __init__(self, name: str) -> None:
        self.name = name

    def process_receipt(self, receipt: Dict[str, Any]) -> List[Dict[str, Any]]:
        return [log for log in receipt["logs"] if log["event"] == self.name]


class _Events:
    def __getattr__(self, name: str):
        return lambda: _Event(name)


class FakeContract:
    def __init__(self, chain: FakeChain) -> None:
        self.address = CONTRACT
        self.functions = _Functions(chain)
        self.events = _Events()


class _FakeEth:
    def __init__(self, chain: FakeChain) -> None:
        self._chain = chain

    def get_code(self, address: str) -> bytes:
        self._chain._check_up()
        return b"\x60\x80" if address == CONTRACT else b""

    def get_balance(self, address: str) -> int:
        self._chain._check_up()
        return self._chain.balances.get(address, 0)

    def wait_for_transaction_receipt(self, tx_hash: bytes, timeout: float = 120, poll_latency: float = 0.1):
        if not self._chain.confirm:
            raise TimeExhausted(f"Transaction {tx_hash.hex()} is not in the chain after {timeout} seconds")
        return self._chain.receipts[tx_hash]


class FakeWeb3:
    def __init__(self, chain: FakeChain) -> None:
        self._chain = chain
        self.eth = _FakeEth(chain)

    def is_connected(self) -> bool:
        return not self._chain.down


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def chain(clock) -> FakeChain:
    return FakeChain(clock=clock)


@pytest.fixture
def ledger_store(chain) -> LedgerStore:
    return LedgerStore(
        FakeWeb3(chain),
        FakeContract(chain),
        network="QIE Testnet",
        sender=REGISTRY_OWNER,
        confirm_timeout_s=5.0,
        poll_latency_s=0.0,
    )


@pytest.fixture
def snapshot_store(clock) -> SnapshotStore:
    return SnapshotStore(mutable=True, clock=clock)


@pytest.fixture
def service(snapshot_store, clock) -> RegistryService:
    return RegistryService(snapshot_store, owner=REGISTRY_OWNER, clock=clock)


@pytest.fixture
def ledger_service(ledger_store, clock) -> RegistryService:
    return RegistryService(ledger_store, owner=REGISTRY_OWNER, clock=clock)
