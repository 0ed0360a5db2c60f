from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from web3 import Web3

from arva.utils.env import _env_bool, _env_csv, _env_float, _env_int, _env_str


DEFAULT_NETWORK_NAME = "QIE Testnet"
DEFAULT_CHAIN_ID = 5656
# Stand-in owner identity when no ledger is configured (demo/snapshot mode).
DEMO_OWNER = "arva-demo-owner"


@dataclass(frozen=True)
class LedgerConfig:
    rpc_url: str
    contract_address: str
    owner_address: Optional[str]
    network_name: str
    chain_id: int
    confirm_timeout_s: float
    probe_timeout_s: float


@dataclass(frozen=True)
class SnapshotConfig:
    enabled: bool
    seed_path: Optional[str]
    mutable: bool


@dataclass(frozen=True)
class RegistryEnvConfig:
    ledger: Optional[LedgerConfig]
    snapshot: SnapshotConfig
    owner: str
    admin_ss58: Optional[str]
    enforce_issuer_authorization: bool
    reprobe_interval_s: float
    cors_origins: List[str]
    chain_id: int
    contract_address: Optional[str]
    rpc_url: str
    network_name: str
    host: str
    port: int


def _die(msg: str) -> None:
    raise SystemExit(f"[arva] {msg}")


def load_registry_env() -> RegistryEnvConfig:
    """
    Load registry configuration from env/.env with strict validation.

    The ledger is configured only when both ARVA_RPC_URL and ARVA_CONTRACT_ADDRESS
    are set; otherwise the process runs against the snapshot store.
    """
    try:
        chain_id = _env_int("ARVA_CHAIN_ID", DEFAULT_CHAIN_ID)
        confirm_timeout_s = _env_float("ARVA_CONFIRM_TIMEOUT_S", 120.0, minimum=1.0)
        probe_timeout_s = _env_float("ARVA_PROBE_TIMEOUT_S", 3.0, minimum=0.1)
        reprobe_interval_s = _env_float("ARVA_LEDGER_REPROBE_S", 0.0, minimum=0.0)
        port = _env_int("ARVA_PORT", 3000)
    except ValueError as e:
        _die(f"Invalid numeric env var: {e}")

    rpc_url = _env_str("ARVA_RPC_URL", "").rstrip("/")
    contract_address = _env_str("ARVA_CONTRACT_ADDRESS", "") or None
    owner_address = _env_str("ARVA_OWNER_ADDRESS", "") or None
    network_name = _env_str("ARVA_NETWORK_NAME", DEFAULT_NETWORK_NAME) or DEFAULT_NETWORK_NAME

    if rpc_url and not rpc_url.startswith("http"):
        _die(f"ARVA_RPC_URL must be http(s). Got: {rpc_url!r}")
    if contract_address and not Web3.is_address(contract_address):
        _die(f"ARVA_CONTRACT_ADDRESS is not a valid address: {contract_address!r}")
    if owner_address and not Web3.is_address(owner_address):
        _die(f"ARVA_OWNER_ADDRESS is not a valid address: {owner_address!r}")

    ledger_cfg: Optional[LedgerConfig] = None
    if rpc_url and contract_address:
        ledger_cfg = LedgerConfig(
            rpc_url=rpc_url,
            contract_address=Web3.to_checksum_address(contract_address),
            owner_address=Web3.to_checksum_address(owner_address) if owner_address else None,
            network_name=network_name,
            chain_id=chain_id,
            confirm_timeout_s=confirm_timeout_s,
            probe_timeout_s=probe_timeout_s,
        )

    snapshot_cfg = SnapshotConfig(
        enabled=_env_bool("ARVA_DEMO_FALLBACK", True),
        seed_path=_env_str("ARVA_SNAPSHOT_PATH", "") or None,
        mutable=_env_bool("ARVA_SNAPSHOT_MUTABLE", False),
    )
    if ledger_cfg is None and not snapshot_cfg.enabled:
        _die("No ledger configured (ARVA_RPC_URL + ARVA_CONTRACT_ADDRESS) and ARVA_DEMO_FALLBACK=false.")

    return RegistryEnvConfig(
        ledger=ledger_cfg,
        snapshot=snapshot_cfg,
        owner=Web3.to_checksum_address(owner_address) if owner_address else DEMO_OWNER,
        admin_ss58=_env_str("ARVA_ADMIN_SS58", "") or None,
        enforce_issuer_authorization=_env_bool("ARVA_ENFORCE_ISSUER_AUTHORIZATION", False),
        reprobe_interval_s=reprobe_interval_s,
        cors_origins=_env_csv("ARVA_CORS_ORIGINS", "*") or ["*"],
        chain_id=chain_id,
        contract_address=Web3.to_checksum_address(contract_address) if contract_address else None,
        rpc_url=rpc_url,
        network_name=network_name,
        host=_env_str("ARVA_HOST", "0.0.0.0") or "0.0.0.0",
        port=port,
    )
