"""Registry error taxonomy.

Verification outcomes (not found, expired, revoked) are answers, not errors,
and never raise. Everything here is a rejected request or an unusable backend.
"""

from __future__ import annotations


class RegistryError(Exception):
    code = "RegistryError"
    http_status = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class InvalidArgument(RegistryError):
    code = "InvalidArgument"
    http_status = 400


class Unauthorized(RegistryError):
    code = "Unauthorized"
    http_status = 403


class InvalidSignature(Unauthorized):
    code = "InvalidSignature"
    http_status = 401


class NotFound(RegistryError):
    code = "NotFound"
    http_status = 404


class DuplicateAsset(RegistryError):
    code = "DuplicateAsset"
    http_status = 409


class AlreadyRevoked(RegistryError):
    code = "AlreadyRevoked"
    http_status = 409


class BackendUnavailable(RegistryError):
    code = "BackendUnavailable"
    http_status = 503


class ReadOnlyBackend(BackendUnavailable):
    code = "ReadOnlyBackend"


class LedgerTimeout(RegistryError):
    """The ledger did not confirm in time. The transaction may still land."""

    code = "Timeout"
    http_status = 504
