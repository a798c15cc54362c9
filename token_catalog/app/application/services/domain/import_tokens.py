from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from token_catalog.app.domain.change_filter import filter_changed_tokens
from token_catalog.app.domain.key_ordering import ensure_unique_keys, normalize_address_hash
from token_catalog.app.domain.options import ImportOptions
from token_catalog.app.domain.ports.out import TokensUpserter
from token_catalog.app.domain.tokens import Token

logger = logging.getLogger(__name__)


async def import_tokens(
    *,
    upserter: TokensUpserter,
    changes_list: Sequence[Mapping[str, Any]],
    options: ImportOptions,
) -> list[Token]:
    """
    Import a batch of candidate tokens into the catalog.

    Candidates that would not change an existing token are dropped up front
    (a read-only snapshot), the rest go through the upsert, which re-checks
    the same write guard against the locked rows.
    """
    if not changes_list:
        return []

    # Reject malformed or duplicate keys before any store round trip
    keys = [normalize_address_hash(token.get("contract_address_hash")) for token in changes_list]
    ensure_unique_keys(keys)

    policy = options.on_conflict or upserter.merge_policy

    existing_tokens = await upserter.fetch_existing_tokens(
        contract_address_hashes=keys,
        timeout=options.timeout,
    )
    filtered = filter_changed_tokens(changes_list, existing_tokens, policy=policy)

    logger.info(
        "Filtered token candidates: %s of %s need a write",
        len(filtered),
        len(changes_list),
    )

    return await upserter.upsert_tokens(filtered, options=options)
