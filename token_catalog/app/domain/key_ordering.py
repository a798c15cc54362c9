"""
Key normalization and ordering for token batches.

Every writer to the tokens table (upserts and holder-count deltas) must
acquire row locks in ascending contract_address_hash order. Two calls that
lock overlapping keys in the same global order cannot wait on each other
in a cycle, so no deadlock is possible without a global lock manager.
"""
from __future__ import annotations

from collections import Counter
from typing import Any, Callable, Iterable, Mapping, TypeVar

from web3 import Web3

from token_catalog.app.domain.errors import ValidationError
from token_catalog.app.domain.tokens import ADDRESS_HASH_LENGTH

T = TypeVar("T")


def normalize_address_hash(value: Any) -> bytes:
    """
    Normalize a contract address hash into its raw 20-byte form.

    Accepts bytes-like values of the right length or a 0x-prefixed hex address.
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        if len(raw) != ADDRESS_HASH_LENGTH:
            raise ValidationError(
                f"contract_address_hash must be {ADDRESS_HASH_LENGTH} bytes, got {len(raw)}",
                keys=(raw,),
            )
        return raw

    if isinstance(value, str) and value.startswith(("0x", "0X")) and Web3.is_address(value):
        return bytes(Web3.to_bytes(hexstr=value))

    raise ValidationError(f"Malformed contract_address_hash: {value!r}")


def format_address_hash(value: bytes) -> str:
    return Web3.to_checksum_address("0x" + value.hex())


def ensure_unique_keys(keys: Iterable[bytes]) -> None:
    """
    Fail fast on duplicate keys: the upsert conflict target is a single key,
    so one statement cannot touch the same row twice.
    """
    duplicates = [key for key, count in Counter(keys).items() if count > 1]
    if duplicates:
        raise ValidationError(
            "Duplicate contract_address_hash in batch",
            keys=sorted(duplicates),
        )


def _contract_address_hash(item: Mapping[str, Any]) -> bytes:
    return item["contract_address_hash"]


def order_by_key(
    items: Iterable[T],
    key: Callable[[T], bytes] = _contract_address_hash,  # type: ignore[assignment]
) -> list[T]:
    """Sort items ascending by raw key bytes (the global lock-acquisition order)."""
    return sorted(items, key=key)
