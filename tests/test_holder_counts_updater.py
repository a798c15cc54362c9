"""Tests for applying holder-count deltas (SQLite backend)."""
import asyncio

import pytest

from token_catalog.app.domain.errors import ValidationError
from token_catalog.app.domain.tokens import Cataloged, HolderCountDelta, TokenHolderCount

from conftest import T1, T2, T3, address, load_tokens, options_at, seed_token


@pytest.mark.asyncio
async def test_empty_deltas_are_a_noop(updater):
    assert await updater.update_holder_counts_with_deltas([], options=options_at(T3)) == []


@pytest.mark.asyncio
async def test_deltas_are_added_to_current_counts(engine, updater):
    await seed_token(engine, address(1), holder_count=10)
    await seed_token(engine, address(2), holder_count=0)

    counts = await updater.update_holder_counts_with_deltas(
        [HolderCountDelta(address(2), 5), HolderCountDelta(address(1), -3)],
        options=options_at(T3),
    )

    assert counts == [
        TokenHolderCount(contract_address_hash=address(1), holder_count=7),
        TokenHolderCount(contract_address_hash=address(2), holder_count=5),
    ]


@pytest.mark.asyncio
async def test_uninitialized_and_unknown_tokens_are_skipped(engine, updater):
    await seed_token(engine, address(1), holder_count=None, updated_at=T2)
    await seed_token(engine, address(2), holder_count=4)

    counts = await updater.update_holder_counts_with_deltas(
        [
            {"contract_address_hash": address(1), "delta": 3},
            {"contract_address_hash": address(2), "delta": 1},
            {"contract_address_hash": address(9), "delta": 1},
        ],
        options=options_at(T3),
    )

    assert counts == [TokenHolderCount(contract_address_hash=address(2), holder_count=5)]

    stored = await load_tokens(engine)
    assert stored[address(1)].holder_count is None
    assert stored[address(1)].updated_at == T2
    assert address(9) not in stored


@pytest.mark.asyncio
async def test_duplicate_deltas_for_one_token_are_summed(engine, updater):
    await seed_token(engine, address(1), holder_count=10)

    counts = await updater.update_holder_counts_with_deltas(
        [
            HolderCountDelta(address(1), 2),
            HolderCountDelta(address(1), 3),
            HolderCountDelta(address(1), -1),
        ],
        options=options_at(T3),
    )

    assert counts == [TokenHolderCount(contract_address_hash=address(1), holder_count=14)]


@pytest.mark.asyncio
async def test_deltas_touch_only_counter_and_updated_at(engine, updater):
    await seed_token(
        engine,
        address(1),
        name="Foo",
        symbol="FOO",
        cataloged=True,
        holder_count=1,
        inserted_at=T1,
        updated_at=T2,
    )
    before = (await load_tokens(engine))[address(1)]

    await updater.update_holder_counts_with_deltas(
        [HolderCountDelta(address(1), 1)],
        options=options_at(T1, T3),
    )
    after = (await load_tokens(engine))[address(1)]

    assert after.holder_count == 2
    assert after.updated_at == T3
    assert after.inserted_at == before.inserted_at
    assert (after.name, after.symbol, after.cataloged) == ("Foo", "FOO", Cataloged.TRUE)


@pytest.mark.asyncio
async def test_metadata_upsert_does_not_touch_counter(engine, upserter, updater):
    await seed_token(engine, address(1), name="Foo", holder_count=3)

    await updater.update_holder_counts_with_deltas([HolderCountDelta(address(1), 4)], options=options_at(T3))
    [token] = await upserter.upsert_tokens(
        [{"contract_address_hash": address(1), "type": "ERC-20", "name": "Renamed", "holder_count": 0}],
        options=options_at(T3),
    )

    assert token.name == "Renamed"
    assert token.holder_count == 7


@pytest.mark.asyncio
async def test_concurrent_delta_batches_do_not_lose_updates(engine, updater):
    await seed_token(engine, address(1), holder_count=0)
    await seed_token(engine, address(2), holder_count=0)

    await asyncio.gather(
        *(
            updater.update_holder_counts_with_deltas(
                [HolderCountDelta(address(2), 1), HolderCountDelta(address(1), 1)]
                if i % 2
                else [HolderCountDelta(address(1), 1), HolderCountDelta(address(2), 1)],
                options=options_at(T3),
            )
            for i in range(6)
        )
    )

    stored = await load_tokens(engine)
    assert stored[address(1)].holder_count == 6
    assert stored[address(2)].holder_count == 6


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "delta",
    [
        {"contract_address_hash": address(1), "delta": "1"},
        {"contract_address_hash": address(1), "delta": True},
        {"contract_address_hash": b"\x01", "delta": 1},
    ],
)
async def test_malformed_deltas_are_rejected(engine, updater, delta):
    await seed_token(engine, address(1), holder_count=1)

    with pytest.raises(ValidationError):
        await updater.update_holder_counts_with_deltas([delta], options=options_at(T3))

    assert (await load_tokens(engine))[address(1)].holder_count == 1
