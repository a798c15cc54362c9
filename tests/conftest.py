"""
Pytest configuration for token catalog tests.

Settings are instantiated at import time, so the required database
variables get harmless defaults before any application module is imported.
"""
import os
from datetime import datetime
from typing import Any

os.environ.setdefault("PROJECT_NAME", "token-catalog-tests")
os.environ.setdefault("POSTGRES_USER", "postgres")
os.environ.setdefault("POSTGRES_PASSWORD", "postgres")
os.environ.setdefault("POSTGRES_SERVER", "localhost")
os.environ.setdefault("POSTGRES_PORT", "5432")
os.environ.setdefault("POSTGRES_DB", "token_catalog")

import pytest
import pytest_asyncio
from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from token_catalog.app.domain.options import ImportOptions, Timestamps
from token_catalog.app.domain.tokens import Token
from token_catalog.app.infrastructure.adapters.domain.holder_counts_updater import (
    SqlAlchemyHolderCountsUpdater,
)
from token_catalog.app.infrastructure.adapters.domain.tokens_upserter import (
    SqlAlchemyTokensUpserter,
)
from token_catalog.app.infrastructure.db.db_base import BaseDB
from token_catalog.app.infrastructure.db.models.domain.tokens import TokensDB

# SQLite drops tzinfo on DateTime columns, so tests use naive UTC values
T0 = datetime(2024, 1, 1, 0, 0, 0)
T1 = datetime(2024, 1, 2, 0, 0, 0)
T2 = datetime(2024, 1, 3, 0, 0, 0)
T3 = datetime(2024, 1, 4, 0, 0, 0)


def address(n: int) -> bytes:
    """Deterministic 20-byte contract address hash."""
    return n.to_bytes(20, "big")


def options_at(inserted_at: datetime, updated_at: datetime | None = None, **kwargs: Any) -> ImportOptions:
    return ImportOptions(
        timestamps=Timestamps(inserted_at=inserted_at, updated_at=updated_at or inserted_at),
        **kwargs,
    )


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncEngine:
    """File-backed SQLite so concurrent connections share one database."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'tokens.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(BaseDB.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def upserter(engine: AsyncEngine) -> SqlAlchemyTokensUpserter:
    return SqlAlchemyTokensUpserter(engine)


@pytest.fixture
def updater(engine: AsyncEngine) -> SqlAlchemyHolderCountsUpdater:
    return SqlAlchemyHolderCountsUpdater(engine)


async def seed_token(engine: AsyncEngine, contract_address_hash: bytes, **fields: Any) -> None:
    """Insert a row directly, bypassing the merge logic."""
    row = {
        "contract_address_hash": contract_address_hash,
        "type": "ERC-20",
        "inserted_at": T1,
        "updated_at": T2,
        **fields,
    }
    async with engine.begin() as conn:
        await conn.execute(insert(TokensDB.__table__).values(row))


async def load_tokens(engine: AsyncEngine) -> dict[bytes, Token]:
    table = TokensDB.__table__
    async with engine.connect() as conn:
        result = await conn.execute(select(table).order_by(table.c.contract_address_hash))
        return {token.contract_address_hash: token for token in map(Token.from_row, result.mappings())}
