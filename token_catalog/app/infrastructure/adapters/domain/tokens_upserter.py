from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping, Sequence, TypeVar

from sqlalchemy import Table, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from token_catalog.app.domain.errors import ValidationError
from token_catalog.app.domain.key_ordering import (
    ensure_unique_keys,
    normalize_address_hash,
    order_by_key,
)
from token_catalog.app.domain.merge_policy import MergePolicy
from token_catalog.app.domain.options import DEFAULT_TIMEOUT, ImportOptions, Timestamps
from token_catalog.app.domain.tokens import TOKEN_FIELDS, Cataloged, Token
from token_catalog.app.infrastructure.db.models.domain.tokens import TokensDB
from token_catalog.app.infrastructure.db.transactions import run_in_transaction

logger = logging.getLogger(__name__)

T = TypeVar("T")

_INSERTS: dict[str, Callable[[Table], Any]] = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _chunks(seq: list[T], size: int) -> Iterable[list[T]]:
    for i in range(0, len(seq), size):
        yield seq[i : i + size]


def _insert_for(conn: AsyncConnection) -> Callable[[Table], Any]:
    try:
        return _INSERTS[conn.dialect.name]
    except KeyError:
        raise ValueError(f"Unsupported dialect for token upserts: {conn.dialect.name!r}")


class SqlAlchemyTokensUpserter:
    """
    Upserter adapter: inserts new tokens and merges metadata into existing ones.

    Strategy:
    - Validate the batch (keys, fields) before touching the store.
    - Default brand new tokens: holder_count=0, cataloged=UNKNOWN, timestamps from options.
    - Sort rows ascending by contract_address_hash (global lock order).
    - INSERT ... ON CONFLICT DO UPDATE with the merge policy's SET/WHERE clauses,
      in batches, inside one transaction. Rows the write guard skips keep their
      timestamps and are read back so every key is reported.

    holder_count is never part of the SET clause.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        merge_policy: MergePolicy | None = None,
        batch_size: int = 500,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self._engine = engine
        self._merge_policy = merge_policy or MergePolicy()
        self._batch_size = batch_size
        self._table: Table = TokensDB.__table__  # type: ignore[assignment]

    @property
    def merge_policy(self) -> MergePolicy:
        return self._merge_policy

    async def fetch_existing_tokens(
        self,
        *,
        contract_address_hashes: Iterable[bytes],
        timeout: float | None = None,
    ) -> dict[bytes, Token]:
        keys = sorted({normalize_address_hash(k) for k in contract_address_hashes})
        if not keys:
            return {}

        table = self._table

        async def _select(conn: AsyncConnection) -> dict[bytes, Token]:
            existing: dict[bytes, Token] = {}
            for chunk in _chunks(keys, self._batch_size):
                result = await conn.execute(
                    select(table).where(table.c.contract_address_hash.in_(chunk))
                )
                for row in result.mappings():
                    token = Token.from_row(row)
                    existing[token.contract_address_hash] = token
            return existing

        return await run_in_transaction(
            self._engine,
            _select,
            timeout=timeout or DEFAULT_TIMEOUT,
            keys=keys,
            operation="fetch_existing_tokens",
        )

    async def upsert_tokens(
        self,
        changes_list: Sequence[Mapping[str, Any]],
        *,
        options: ImportOptions,
    ) -> list[Token]:
        if not changes_list:
            return []

        ordered_rows = self._prepare_rows(changes_list, options.timestamps)
        keys = [row["contract_address_hash"] for row in ordered_rows]
        policy = options.on_conflict or self._merge_policy
        table = self._table

        async def _upsert(conn: AsyncConnection) -> list[Token]:
            insert = _insert_for(conn)
            tokens: dict[bytes, Token] = {}

            for chunk in _chunks(ordered_rows, self._batch_size):
                stmt = insert(table).values(chunk)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[table.c.contract_address_hash],
                    set_=policy.on_conflict_set(table, stmt.excluded),
                    where=policy.on_conflict_where(table, stmt.excluded),
                ).returning(*table.c)

                result = await conn.execute(stmt)
                for row in result.mappings():
                    token = Token.from_row(row)
                    tokens[token.contract_address_hash] = token

            written = len(tokens)

            # Rows left alone by the write guard: report their current state
            untouched = [key for key in keys if key not in tokens]
            for chunk in _chunks(untouched, self._batch_size):
                result = await conn.execute(
                    select(table)
                    .where(table.c.contract_address_hash.in_(chunk))
                    .order_by(table.c.contract_address_hash)
                )
                for row in result.mappings():
                    token = Token.from_row(row)
                    tokens[token.contract_address_hash] = token

            logger.info(
                "Upserted %s tokens (written=%s, unchanged=%s)",
                len(keys),
                written,
                len(keys) - written,
            )
            return [tokens[key] for key in keys]

        return await run_in_transaction(
            self._engine,
            _upsert,
            timeout=options.timeout,
            keys=keys,
            operation="upsert_tokens",
        )

    @staticmethod
    def _prepare_rows(
        changes_list: Sequence[Mapping[str, Any]],
        timestamps: Timestamps,
    ) -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = []

        for changes in changes_list:
            key = normalize_address_hash(changes.get("contract_address_hash"))

            unknown = sorted(set(changes) - set(TOKEN_FIELDS))
            if unknown:
                raise ValidationError(f"Unknown token fields: {', '.join(unknown)}", keys=(key,))
            if not changes.get("type"):
                raise ValidationError("Token type is required", keys=(key,))

            row = {field: changes.get(field) for field in TOKEN_FIELDS}
            row["contract_address_hash"] = key
            # brand new tokens start with no holders
            if "holder_count" not in changes:
                row["holder_count"] = 0
            # UNKNOWN (NULL), not FALSE: COALESCE on conflict must keep a known value
            row["cataloged"] = Cataloged.coerce(row["cataloged"])
            row["inserted_at"] = row["inserted_at"] or timestamps.inserted_at
            row["updated_at"] = row["updated_at"] or timestamps.updated_at

            rows.append(row)

        ensure_unique_keys(row["contract_address_hash"] for row in rows)

        # Enforce tokens row-lock order
        return order_by_key(rows)
