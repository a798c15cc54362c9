from __future__ import annotations

from typing import Any, Mapping, Sequence

from token_catalog.app.domain.options import ImportOptions
from token_catalog.app.domain.ports.out import HolderCountsUpdater
from token_catalog.app.domain.tokens import HolderCountDelta, TokenHolderCount


async def update_holder_counts(
    *,
    updater: HolderCountsUpdater,
    deltas: Sequence[HolderCountDelta | Mapping[str, Any]],
    options: ImportOptions,
) -> list[TokenHolderCount]:
    if not deltas:
        return []

    return await updater.update_holder_counts_with_deltas(deltas, options=options)
