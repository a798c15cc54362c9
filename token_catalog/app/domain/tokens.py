from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping

# Address-hash length of a token contract (EVM address).
ADDRESS_HASH_LENGTH = 20

# Columns a token record carries besides the primary key.
TOKEN_METADATA_FIELDS: tuple[str, ...] = (
    "name",
    "symbol",
    "total_supply",
    "decimals",
    "type",
    "cataloged",
    "skip_metadata",
    "bridged",
)
TOKEN_FIELDS: tuple[str, ...] = (
    "contract_address_hash",
    *TOKEN_METADATA_FIELDS,
    "holder_count",
    "inserted_at",
    "updated_at",
)


class Cataloged(enum.Enum):
    """
    Tri-state catalog flag.

    UNKNOWN is stored as NULL so an incoming FALSE can still replace it
    on merge, while a known TRUE/FALSE is never replaced by UNKNOWN.
    """

    UNKNOWN = "unknown"
    TRUE = "true"
    FALSE = "false"

    @classmethod
    def coerce(cls, value: Any) -> "Cataloged":
        if value is None:
            return cls.UNKNOWN
        if isinstance(value, cls):
            return value
        if value is True:
            return cls.TRUE
        if value is False:
            return cls.FALSE
        return cls(value)

    def to_bool(self) -> bool | None:
        if self is Cataloged.UNKNOWN:
            return None
        return self is Cataloged.TRUE


@dataclass(frozen=True)
class Token:
    """
    Canonical catalog entry for a token contract, as persisted.
    """

    contract_address_hash: bytes
    type: str
    name: str | None = None
    symbol: str | None = None
    total_supply: Decimal | None = None
    decimals: Decimal | None = None
    cataloged: Cataloged = Cataloged.UNKNOWN
    skip_metadata: bool | None = None
    bridged: bool | None = None
    holder_count: int | None = None
    inserted_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Token":
        contract_address_hash = row["contract_address_hash"]
        # asyncpg might return memoryview; normalize to bytes
        if isinstance(contract_address_hash, memoryview):
            contract_address_hash = contract_address_hash.tobytes()

        return cls(
            contract_address_hash=bytes(contract_address_hash),
            type=row["type"],
            name=row["name"],
            symbol=row["symbol"],
            total_supply=row["total_supply"],
            decimals=row["decimals"],
            cataloged=Cataloged.coerce(row["cataloged"]),
            skip_metadata=row["skip_metadata"],
            bridged=row["bridged"],
            holder_count=row["holder_count"],
            inserted_at=row["inserted_at"],
            updated_at=row["updated_at"],
        )


@dataclass(frozen=True)
class HolderCountDelta:
    """Signed increment for the holder_count of one token."""

    contract_address_hash: bytes
    delta: int


@dataclass(frozen=True)
class TokenHolderCount:
    contract_address_hash: bytes
    holder_count: int
