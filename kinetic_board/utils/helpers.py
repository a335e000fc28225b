"""
KINETIC BOARD - Common Utility Functions
"""
from datetime import datetime, timezone
from typing import Iterator, List, Sequence, TypeVar
from urllib.parse import quote
import math
import uuid

T = TypeVar("T")


def utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(timezone.utc)


def utc_now_ms() -> int:
    """Current UTC time as epoch milliseconds."""
    return int(utc_now().timestamp() * 1000)


def sanitize(value: float, fallback: float = 0.0) -> float:
    """Coerce a value to a finite float, or return the fallback."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    return number if math.isfinite(number) else fallback


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive slices of at most `size` items."""
    if size < 1:
        raise ValueError("chunk size must be >= 1")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def new_correlation_id() -> str:
    """Short random id used to follow one ingestion run through the logs."""
    return uuid.uuid4().hex[:12]


def safe_filename(name: str) -> str:
    """
    Reversible file-name encoding: BTC/USD -> BTC%2FUSD, BTC_USD -> BTC_USD.

    Percent-encoding is injective, so distinct names never share a file.
    Names made only of dots (and the empty name) are encoded in full so they
    cannot resolve to the current or parent directory.
    """
    encoded = quote(name, safe="")
    if encoded.strip("."):
        return encoded
    return "%" + "".join("%2E" for _ in name)
