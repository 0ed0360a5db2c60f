from __future__ import annotations

import sys
from pathlib import Path

# Allow running as a script without requiring `PYTHONPATH=.`.
REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import bittensor as bt
import uvicorn

from arva.api.server import app, config, selector


def main() -> None:
    binding = selector.binding
    bt.logging.info("ARVA registry starting")
    bt.logging.info(f"  URL: http://{config.host}:{config.port}")
    bt.logging.info(f"  Backend: {binding.kind} ({binding.blockchain}, network={binding.network})")
    bt.logging.info(f"  Contract: {config.contract_address or 'Not configured'}")
    bt.logging.info(f"  Admin routes: {'enabled' if config.admin_ss58 else 'disabled'}")
    uvicorn.run(app, host=config.host, port=config.port, log_level="info")


if __name__ == "__main__":
    main()
