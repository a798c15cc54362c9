from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Index,
    LargeBinary,
    Numeric,
    PrimaryKeyConstraint,
    Text,
)
from sqlalchemy.dialects.postgresql import BYTEA
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from token_catalog.app.domain.tokens import Cataloged
from token_catalog.app.infrastructure.db.db_base import BaseDB

# BYTEA on PostgreSQL, BLOB elsewhere (SQLite in tests)
AddressHash = LargeBinary().with_variant(BYTEA(), "postgresql")


class CatalogedType(TypeDecorator[Cataloged]):
    """
    Persists the tri-state Cataloged flag as a nullable boolean.

    NULL means UNKNOWN, so COALESCE in the upsert keeps a known value
    over an incoming UNKNOWN but lets an incoming FALSE replace UNKNOWN.
    """

    impl = Boolean
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> bool | None:
        return Cataloged.coerce(value).to_bool()

    def process_result_value(self, value: Any, dialect: Any) -> Cataloged:
        return Cataloged.coerce(value)


class TokensDB(BaseDB):
    """
    Token catalog.

    One row = one token contract. Metadata columns are merged by the
    upserter; holder_count is owned by the holder-count delta updater.
    """

    __tablename__ = "tokens"
    __table_args__ = (
        PrimaryKeyConstraint("contract_address_hash"),
        Index("ix_tokens_symbol", "symbol"),
        Index("ix_tokens_type", "type"),
    )

    contract_address_hash: Mapped[bytes] = mapped_column(AddressHash, nullable=False)

    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    symbol: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_supply: Mapped[Decimal | None] = mapped_column(Numeric(100, 0), nullable=True)
    decimals: Mapped[Decimal | None] = mapped_column(Numeric(100, 0), nullable=True)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    cataloged: Mapped[Cataloged] = mapped_column(CatalogedType, nullable=True)
    skip_metadata: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    bridged: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    # Not initialized (NULL) until a backfill computes it; deltas skip NULL rows
    holder_count: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    inserted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
