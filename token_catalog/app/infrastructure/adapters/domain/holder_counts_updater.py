from __future__ import annotations

import logging
from operator import attrgetter
from typing import Any, Iterable, Mapping, Sequence

from sqlalchemy import BigInteger, Table, case, literal, select, update
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from token_catalog.app.domain.holder_count_deltas import sum_holder_count_deltas
from token_catalog.app.domain.key_ordering import order_by_key
from token_catalog.app.domain.options import ImportOptions
from token_catalog.app.domain.tokens import HolderCountDelta, TokenHolderCount
from token_catalog.app.infrastructure.db.models.domain.tokens import TokensDB
from token_catalog.app.infrastructure.db.transactions import run_in_transaction

logger = logging.getLogger(__name__)


def _chunks(seq: list[Any], size: int) -> Iterable[list[Any]]:
    for i in range(0, len(seq), size):
        yield seq[i : i + size]


def _as_bytes(value: Any) -> bytes:
    # asyncpg might return memoryview; normalize to bytes
    if isinstance(value, memoryview):
        return value.tobytes()
    return bytes(value)


class SqlAlchemyHolderCountsUpdater:
    """
    Applies signed holder-count deltas to tokens.

    Strategy:
    - Sum deltas per contract address hash.
    - SELECT ... ORDER BY contract_address_hash FOR NO KEY UPDATE to lock the
      target rows whose holder_count is initialized, in ascending key order
      (the same order the upserter writes in).
    - One bulk UPDATE per batch: holder_count + CASE <key> WHEN ... THEN <delta>,
      RETURNING the new counts.

    Rows with NULL holder_count are not initialized by this path and are
    omitted from the result.
    """

    def __init__(self, engine: AsyncEngine, *, batch_size: int = 500) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self._engine = engine
        self._batch_size = batch_size
        self._table: Table = TokensDB.__table__  # type: ignore[assignment]

    async def update_holder_counts_with_deltas(
        self,
        deltas: Sequence[HolderCountDelta | Mapping[str, Any]],
        *,
        options: ImportOptions,
    ) -> list[TokenHolderCount]:
        summed = sum_holder_count_deltas(deltas)
        if not summed:
            return []

        keys = order_by_key(summed, key=lambda k: k)
        updated_at = options.timestamps.updated_at
        table = self._table
        address_hash = table.c.contract_address_hash

        async def _apply(conn: AsyncConnection) -> list[TokenHolderCount]:
            locked: list[bytes] = []
            for chunk in _chunks(keys, self._batch_size):
                result = await conn.execute(
                    select(address_hash)
                    .where(address_hash.in_(chunk), table.c.holder_count.is_not(None))
                    .order_by(address_hash)
                    .with_for_update(key_share=True)
                )
                locked.extend(_as_bytes(value) for value in result.scalars())

            counts: list[TokenHolderCount] = []
            for chunk in _chunks(locked, self._batch_size):
                delta = case(
                    {key: literal(summed[key], BigInteger) for key in chunk},
                    value=address_hash,
                    else_=literal(0, BigInteger),
                )
                result = await conn.execute(
                    update(table)
                    .where(address_hash.in_(chunk), table.c.holder_count.is_not(None))
                    .values(holder_count=table.c.holder_count + delta, updated_at=updated_at)
                    .returning(address_hash, table.c.holder_count)
                )
                counts.extend(
                    TokenHolderCount(
                        contract_address_hash=_as_bytes(row.contract_address_hash),
                        holder_count=row.holder_count,
                    )
                    for row in result
                )

            logger.info(
                "Applied holder count deltas to %s tokens (requested=%s, skipped=%s)",
                len(counts),
                len(keys),
                len(keys) - len(counts),
            )
            return order_by_key(counts, key=attrgetter("contract_address_hash"))

        return await run_in_transaction(
            self._engine,
            _apply,
            timeout=options.timeout,
            keys=keys,
            operation="update_holder_counts_with_deltas",
        )
