"""Asset verification registry core.

The registry answers "is this printed identifier backed by an active record?"
against whichever record store the backend selector bound at startup:
- a ledger-backed store (EVM contract, authoritative)
- an in-memory snapshot store (demo/fallback, non-authoritative)
"""
