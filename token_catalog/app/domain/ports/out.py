from __future__ import annotations

from typing import Any, Iterable, Mapping, Protocol, Sequence

from token_catalog.app.domain.merge_policy import MergePolicy
from token_catalog.app.domain.options import ImportOptions
from token_catalog.app.domain.tokens import HolderCountDelta, Token, TokenHolderCount


class TokensUpserter(Protocol):
    """
    Port for writing token metadata into the catalog.

    Implementations are responsible for:
    - reading the current rows for a set of contract address hashes,
    - inserting new tokens and merging metadata into existing ones
      in a single atomic call, acquiring row locks in ascending key order,
    - skipping physical writes that would not change any merged field.

    holder_count is never touched by a metadata merge.
    """

    @property
    def merge_policy(self) -> MergePolicy: ...

    async def fetch_existing_tokens(
        self,
        *,
        contract_address_hashes: Iterable[bytes],
        timeout: float | None = None,
    ) -> dict[bytes, Token]: ...

    async def upsert_tokens(
        self,
        changes_list: Sequence[Mapping[str, Any]],
        *,
        options: ImportOptions,
    ) -> list[Token]:
        """
        Return the post-operation record for every key in the batch,
        ascending by contract_address_hash.
        """
        ...


class HolderCountsUpdater(Protocol):
    """
    Port for maintaining token holder counts from signed deltas.

    Only rows whose holder_count is already initialized are updated;
    other keys are left untouched and omitted from the result.
    """

    async def update_holder_counts_with_deltas(
        self,
        deltas: Sequence[HolderCountDelta],
        *,
        options: ImportOptions,
    ) -> list[TokenHolderCount]: ...
