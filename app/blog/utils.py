from __future__ import annotations

from datetime import datetime, timezone

from flask import request


def utcnow() -> datetime:
    """Naive UTC timestamp (all DateTime columns are timezone=False)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def request_payload() -> dict:
    """Body of the current request as a dict: JSON first, then form fields."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    if request.form:
        return request.form.to_dict()
    return {}


def clean_str(payload: dict, key: str) -> str:
    value = payload.get(key)
    if value is None:
        return ""
    return str(value).strip()


# Largest value a BIGINT/SQLite INTEGER primary key can hold.
MAX_DB_ID = 2**63 - 1


def valid_id(value: int) -> bool:
    return 0 < value <= MAX_DB_ID


def parse_id(raw) -> int | None:
    """
    Integer id from a payload value, or None. Accepts ints and digit strings;
    rejects bools, fractional numbers and anything outside the key range.
    """
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, float):
        if not raw.is_integer():
            return None
        value = int(raw)
    elif isinstance(raw, str) and raw.strip().isdigit():
        value = int(raw.strip())
    else:
        return None
    return value if valid_id(value) else None
