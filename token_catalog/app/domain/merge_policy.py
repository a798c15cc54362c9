"""
Field-level merge policy for token catalog upserts.

A policy knows which metadata fields are active and how a candidate value
combines with the existing one:

- metadata fields coalesce (a provided candidate value wins, otherwise the
  existing value is kept),
- inserted_at keeps the earliest value, updated_at keeps the latest.

holder_count and contract_address_hash are never merged.

The same combinator table is rendered two ways: as plain Python (used by the
change filter and for in-memory merges) and as SQL expressions for the
ON CONFLICT DO UPDATE clause of the upsert.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, NamedTuple

from sqlalchemy import ColumnElement, case, false, func, or_

from token_catalog.app.domain.errors import MergePolicyConfigError
from token_catalog.app.domain.tokens import TOKEN_METADATA_FIELDS, Cataloged

BASE_MERGE_FIELDS: tuple[str, ...] = (
    "name",
    "symbol",
    "total_supply",
    "decimals",
    "type",
    "cataloged",
    "skip_metadata",
)
EXTENDED_MERGE_FIELD = "bridged"

TIMESTAMP_FIELDS: tuple[str, ...] = ("inserted_at", "updated_at")

_NEVER_MERGED = frozenset({"contract_address_hash", "holder_count"})


@dataclass(frozen=True)
class MergeConfig:
    """Runtime switch for the active mergeable-field set."""

    enable_extended_field_set: bool = False

    def active_fields(self) -> tuple[str, ...]:
        if self.enable_extended_field_set:
            return BASE_MERGE_FIELDS + (EXTENDED_MERGE_FIELD,)
        return BASE_MERGE_FIELDS


def is_provided(value: Any) -> bool:
    """A candidate value that carries an opinion (None and UNKNOWN do not)."""
    return value is not None and value is not Cataloged.UNKNOWN


def _normalize(field: str, value: Any) -> Any:
    if field == "cataloged":
        return Cataloged.coerce(value)
    return value


def _coalesce(new: Any, existing: Any) -> Any:
    return new if is_provided(new) else existing


def _earliest(new: Any, existing: Any) -> Any:
    if new is None or existing is None:
        return existing if new is None else new
    return min(new, existing)


def _latest(new: Any, existing: Any) -> Any:
    if new is None or existing is None:
        return existing if new is None else new
    return max(new, existing)


def _sql_coalesce(new: ColumnElement[Any], existing: ColumnElement[Any]) -> ColumnElement[Any]:
    return func.coalesce(new, existing)


def _sql_earliest(new: ColumnElement[Any], existing: ColumnElement[Any]) -> ColumnElement[Any]:
    # LEAST() is PostgreSQL-only; CASE renders on every dialect
    return case((new < existing, new), else_=existing)


def _sql_latest(new: ColumnElement[Any], existing: ColumnElement[Any]) -> ColumnElement[Any]:
    return case((new > existing, new), else_=existing)


class _Combinator(NamedTuple):
    python: Callable[[Any, Any], Any]
    sql: Callable[[ColumnElement[Any], ColumnElement[Any]], ColumnElement[Any]]


COALESCE = _Combinator(_coalesce, _sql_coalesce)
EARLIEST = _Combinator(_earliest, _sql_earliest)
LATEST = _Combinator(_latest, _sql_latest)


def _value(record: Any, field: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(field)
    return getattr(record, field, None)


class MergePolicy:
    """
    Merge rules for one upsert call.

    Subclass and pass the instance as ``ImportOptions.on_conflict`` to
    override how conflicting rows are combined.
    """

    def __init__(self, fields: Iterable[str] = BASE_MERGE_FIELDS) -> None:
        fields = tuple(fields)

        forbidden = sorted(_NEVER_MERGED.intersection(fields))
        if forbidden:
            raise MergePolicyConfigError(f"Fields can not be merged: {', '.join(forbidden)}")

        unknown = sorted(set(fields) - set(TOKEN_METADATA_FIELDS))
        if unknown:
            raise MergePolicyConfigError(f"Unknown mergeable fields: {', '.join(unknown)}")

        if len(set(fields)) != len(fields):
            raise MergePolicyConfigError("Mergeable fields must be unique")

        self._fields = fields

    @classmethod
    def from_config(cls, config: MergeConfig) -> "MergePolicy":
        return cls(config.active_fields())

    @property
    def fields(self) -> tuple[str, ...]:
        return self._fields

    def combinators(self) -> dict[str, _Combinator]:
        combinators = {field: COALESCE for field in self._fields}
        combinators["inserted_at"] = EARLIEST
        combinators["updated_at"] = LATEST
        return combinators

    # -------------------------------------------------------------------------
    # Python rendition
    # -------------------------------------------------------------------------
    def merge(self, existing: Any, candidate: Mapping[str, Any]) -> dict[str, Any]:
        """
        Merged values of every combined field.

        Fields outside the policy (holder_count included) are not returned:
        they keep whatever the existing record holds.
        """
        return {
            field: combinator.python(
                _normalize(field, candidate.get(field)),
                _normalize(field, _value(existing, field)),
            )
            for field, combinator in self.combinators().items()
        }

    def has_changes(self, candidate: Mapping[str, Any], existing: Any) -> bool:
        """
        Write guard: True iff some active field has a provided candidate value
        that differs from the existing record's current value.
        """
        for field in self._fields:
            new = _normalize(field, candidate.get(field))
            if not is_provided(new):
                continue
            if new != _normalize(field, _value(existing, field)):
                return True
        return False

    # -------------------------------------------------------------------------
    # SQL rendition (ON CONFLICT DO UPDATE)
    # -------------------------------------------------------------------------
    def on_conflict_set(self, table: Any, excluded: Any) -> dict[str, ColumnElement[Any]]:
        """SET clause: ``table`` is the target table, ``excluded`` the proposed row."""
        return {
            field: combinator.sql(excluded[field], table.c[field])
            for field, combinator in self.combinators().items()
        }

    def on_conflict_where(self, table: Any, excluded: Any) -> ColumnElement[bool]:
        """WHERE clause: the SQL form of ``has_changes`` against the locked row."""
        if not self._fields:
            return false()

        return or_(
            *(
                excluded[field].is_not(None) & excluded[field].is_distinct_from(table.c[field])
                for field in self._fields
            )
        )
