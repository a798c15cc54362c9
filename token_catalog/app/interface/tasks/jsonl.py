from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

_TIMESTAMP_FIELDS = ("inserted_at", "updated_at")


def load_jsonl(path: str | Path) -> list[dict[str, Any]]:
    """
    Read one JSON object per line; blank lines are skipped.

    Floats are parsed as Decimal (total_supply / decimals are numeric columns)
    and ISO-8601 timestamps are parsed into datetimes.
    """
    records: list[dict[str, Any]] = []

    with Path(path).open(encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                record = json.loads(line, parse_float=Decimal)
            except json.JSONDecodeError as exc:
                raise ValueError(f"{path}:{line_no}: invalid JSON ({exc.msg})") from exc
            if not isinstance(record, dict):
                raise ValueError(f"{path}:{line_no}: expected a JSON object")

            for field in _TIMESTAMP_FIELDS:
                if isinstance(record.get(field), str):
                    record[field] = datetime.fromisoformat(record[field])

            records.append(record)

    return records
