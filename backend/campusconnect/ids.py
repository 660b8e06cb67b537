import re
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Tuple

from .errors import InvalidInput

_ID_RE = re.compile(r"^[0-9a-f]{32}$")


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    # naive UTC, the way the store keeps it
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat(ts: datetime | None) -> str | None:
    if ts is None:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.isoformat()


def parse_id(value: Any, field: str) -> str:
    """Return ``value`` as a normalized identifier or raise ``InvalidInput``."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidInput(f"Missing field: {field}")
    if not isinstance(value, str) or not _ID_RE.match(value.strip().lower()):
        raise InvalidInput(f"Malformed identifier: {field}")
    return value.strip().lower()


def normalize_id(value: Any) -> Optional[str]:
    """Lookup form of an identifier; ``None`` when it cannot name anything."""
    if not isinstance(value, str):
        return None
    value = value.strip().lower()
    return value if _ID_RE.match(value) else None


def canonical_pair(id_a: str, id_b: str) -> Tuple[str, str]:
    return (id_a, id_b) if id_a <= id_b else (id_b, id_a)


def pair_key(id_a: str, id_b: str) -> str:
    """Deterministic key of the unordered pair {id_a, id_b}."""
    low, high = canonical_pair(id_a, id_b)
    return f"{low}:{high}"
