from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from token_catalog.app.domain.merge_policy import MergePolicy

# seconds
DEFAULT_TIMEOUT = 60.0


@dataclass(frozen=True)
class Timestamps:
    inserted_at: datetime
    updated_at: datetime

    @classmethod
    def now(cls) -> "Timestamps":
        # Keep a single timestamp per call (nicer for debugging)
        ts = datetime.now(timezone.utc)
        return cls(inserted_at=ts, updated_at=ts)


@dataclass(frozen=True)
class ImportOptions:
    """
    Per-call options for token catalog writes.

    - on_conflict: merge policy override; None means the default policy
      of the upserter.
    - timeout: upper bound (seconds) for the whole call, lock waits included.
    - timestamps: applied to rows that do not carry their own.
    """

    on_conflict: MergePolicy | None = None
    timeout: float = DEFAULT_TIMEOUT
    timestamps: Timestamps = field(default_factory=Timestamps.now)

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
