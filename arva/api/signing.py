from __future__ import annotations

import json
import time
from typing import Any, Dict, Optional

import bittensor as bt

from arva.registry.errors import InvalidSignature

# Signed admin requests older/newer than this are replays or clock skew.
MAX_SKEW_S = 120


def canon_json(obj: Dict[str, Any]) -> bytes:
    # Stable canonical encoding for signing/verifying.
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True).encode("utf-8")


def sign_payload(payload: Dict[str, Any], *, keypair: bt.Keypair) -> str:
    return keypair.sign(canon_json(payload)).hex()


def verify_payload(payload: Dict[str, Any], *, ss58_address: str, signature_hex: str) -> bool:
    try:
        sig = bytes.fromhex(signature_hex)
    except (TypeError, ValueError):
        return False
    kp = bt.Keypair(ss58_address=ss58_address)
    try:
        return bool(kp.verify(canon_json(payload), sig))
    except Exception:
        return False


def sign_admin_request(body: Dict[str, Any], *, keypair: bt.Keypair, now: Optional[int] = None) -> Dict[str, Any]:
    """Stamp, attribute and sign an admin request body."""
    payload = dict(body)
    payload["timestamp"] = int(now if now is not None else time.time())
    payload["signer"] = keypair.ss58_address
    payload["signature"] = sign_payload(payload, keypair=keypair)
    return payload


def check_admin_request(body: Dict[str, Any], *, admin_ss58: str, now: Optional[int] = None) -> None:
    """Raise InvalidSignature unless `body` was signed by the registry administrator."""
    payload = dict(body)
    sig = payload.pop("signature", None)
    if not sig:
        raise InvalidSignature("missing signature")
    if payload.get("signer") != admin_ss58:
        raise InvalidSignature("signer is not the registry administrator")

    now = int(now if now is not None else time.time())
    try:
        ts = int(payload.get("timestamp"))
    except (TypeError, ValueError):
        raise InvalidSignature("missing or malformed timestamp")
    if abs(now - ts) > MAX_SKEW_S:
        raise InvalidSignature("Bad timestamp")

    if not verify_payload(payload, ss58_address=admin_ss58, signature_hex=sig):
        raise InvalidSignature("Invalid signature")
