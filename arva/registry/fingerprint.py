from __future__ import annotations

from web3 import Web3

FINGERPRINT_SIZE = 32
ZERO_FINGERPRINT = b"\x00" * FINGERPRINT_SIZE


def fingerprint(identifier: str) -> bytes:
    """
    Map a raw asset identifier to its registry primary key.

    keccak-256 over the exact UTF-8 bytes of the identifier, the same digest the
    contract computes with `keccak256(bytes(uniqueId))`. No trimming or case
    folding: callers must pass the identifier exactly as printed. The empty
    string hashes like any other input; rejecting it is the caller's job.
    """
    return bytes(Web3.keccak(identifier.encode("utf-8")))


def to_hex(fp: bytes) -> str:
    return Web3.to_hex(fp)


def fingerprint_hex(identifier: str) -> str:
    return to_hex(fingerprint(identifier))


def from_hex(value: str) -> bytes:
    raw = bytes(Web3.to_bytes(hexstr=value))
    if len(raw) != FINGERPRINT_SIZE:
        raise ValueError(f"fingerprint must be {FINGERPRINT_SIZE} bytes, got {len(raw)}")
    return raw
