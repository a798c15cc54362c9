from __future__ import annotations

from typing import Iterable


class TokenImportError(Exception):
    """
    Base error for token catalog writes.

    Carries the contract address hashes of the call that failed so the
    calling pipeline can report which batch to re-submit.
    """

    def __init__(self, message: str, *, keys: Iterable[bytes] = ()) -> None:
        super().__init__(message)
        self.keys: tuple[bytes, ...] = tuple(keys)

    @property
    def key(self) -> bytes | None:
        return self.keys[0] if self.keys else None

    def __str__(self) -> str:
        message = super().__str__()
        if not self.keys:
            return message
        shown = ", ".join("0x" + k.hex() for k in self.keys[:5])
        more = "" if len(self.keys) <= 5 else f" (+{len(self.keys) - 5} more)"
        return f"{message} [keys: {shown}{more}]"


class ValidationError(TokenImportError):
    """Batch rejected before reaching the store (duplicate or malformed key, unknown field)."""


class LockTimeoutError(TokenImportError):
    """Row locks (or the whole statement) not acquired within the timeout."""


class StoreUnavailableError(TokenImportError):
    """Transport / connectivity failure talking to the store."""


class ConstraintViolation(TokenImportError):
    """Integrity or type violation reported by the store."""

    def __init__(
        self,
        message: str,
        *,
        keys: Iterable[bytes] = (),
        orig: BaseException | None = None,
    ) -> None:
        super().__init__(message, keys=keys)
        self.orig = orig


class MergePolicyConfigError(ValueError):
    """Invalid mergeable-field set."""
