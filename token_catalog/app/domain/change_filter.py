from __future__ import annotations

from typing import Any, Mapping, Sequence

from token_catalog.app.domain.key_ordering import normalize_address_hash
from token_catalog.app.domain.merge_policy import MergePolicy
from token_catalog.app.domain.tokens import Token


def filter_changed_tokens(
    changes_list: Sequence[Mapping[str, Any]],
    existing_tokens: Mapping[bytes, Token],
    *,
    policy: MergePolicy,
) -> list[Mapping[str, Any]]:
    """
    Drop candidates that would be no-ops under the merge policy.

    Unknown tokens are always kept. Order is preserved and kept candidates
    are returned as given. This is an optimization only: the upsert
    re-checks the write guard against the locked row at write time.
    """
    filtered: list[Mapping[str, Any]] = []

    for token in changes_list:
        existing = existing_tokens.get(normalize_address_hash(token.get("contract_address_hash")))
        if existing is None or policy.has_changes(token, existing):
            filtered.append(token)

    return filtered
