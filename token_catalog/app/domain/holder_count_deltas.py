from __future__ import annotations

from typing import Any, Iterable, Mapping

from token_catalog.app.domain.errors import ValidationError
from token_catalog.app.domain.key_ordering import normalize_address_hash
from token_catalog.app.domain.tokens import HolderCountDelta


def coerce_holder_count_delta(value: HolderCountDelta | Mapping[str, Any]) -> HolderCountDelta:
    if isinstance(value, HolderCountDelta):
        contract_address_hash, delta = value.contract_address_hash, value.delta
    else:
        contract_address_hash, delta = value.get("contract_address_hash"), value.get("delta")

    key = normalize_address_hash(contract_address_hash)

    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError(f"delta must be an integer, got {delta!r}", keys=(key,))

    return HolderCountDelta(contract_address_hash=key, delta=delta)


def sum_holder_count_deltas(
    deltas: Iterable[HolderCountDelta | Mapping[str, Any]],
) -> dict[bytes, int]:
    """
    Collapse deltas by contract address hash.

    Several deltas for one token in the same call add up; none of them is dropped.
    """
    summed: dict[bytes, int] = {}
    for item in deltas:
        delta = coerce_holder_count_delta(item)
        summed[delta.contract_address_hash] = summed.get(delta.contract_address_hash, 0) + delta.delta
    return summed
