"""ASGI entry point: `uvicorn arva.api.server:app`."""

from __future__ import annotations

from arva.api.app import create_app
from arva.config import load_registry_env
from arva.registry.selector import BackendSelector

config = load_registry_env()
selector = BackendSelector.from_config(config)
app = create_app(
    selector,
    admin_ss58=config.admin_ss58,
    chain_id=config.chain_id,
    contract_address=config.contract_address,
    rpc_url=config.rpc_url,
    network_name=config.network_name,
    cors_origins=config.cors_origins,
)
