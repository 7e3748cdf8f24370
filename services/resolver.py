"""Selection of the current sensor record from a raw realtime snapshot."""

from __future__ import annotations

import logging
import math
import re
from functools import reduce
from numbers import Real
from typing import Any, Iterable, Mapping, NamedTuple, Optional

from models.channels import PROBE_FIELD, REQUIRED_FIELDS
from models.records import RawSensorRecord

logger = logging.getLogger(__name__)

_INTEGER_KEY = re.compile(r"[+-]?[0-9]+")


class _Candidate(NamedTuple):
    key: Any
    rank: float
    record: RawSensorRecord


def is_number(value: Any) -> bool:
    """Finite real, excluding ``bool``."""
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return math.isfinite(value)


def is_complete_record(entry: Any) -> bool:
    """True when ``entry`` carries all six channel fields as numbers."""
    if not isinstance(entry, Mapping):
        return False
    return all(is_number(entry.get(field)) for field in REQUIRED_FIELDS)


def entry_rank(key: Any, entry: Mapping[str, Any]) -> float:
    """Order entries by integer key, then by their own timestamp, else 0.

    Only plain decimal integer keys (optional sign, ASCII digits) count as
    ranks. Keys such as ``"1700000000.5"`` or ``"1_700"`` fall through to the
    entry's ``timestamp``.
    """
    if isinstance(key, int) and not isinstance(key, bool):
        return key
    text = str(key).strip()
    if _INTEGER_KEY.fullmatch(text):
        return int(text)
    timestamp = entry.get("timestamp")
    if is_number(timestamp):
        return timestamp
    return 0


def _keep_newest(best: Optional[_Candidate], item: tuple[Any, Any]) -> Optional[_Candidate]:
    key, entry = item
    if not is_complete_record(entry):
        logger.debug("Skipping incomplete snapshot entry.", extra={"snapshot_key": key})
        return best
    rank = entry_rank(key, entry)
    # Strictly greater: ties keep the first entry seen.
    if best is None or rank > best.rank:
        return _Candidate(key=key, rank=rank, record=entry)
    return best


def _entries(raw: Any) -> Iterable[tuple[Any, Any]]:
    if isinstance(raw, Mapping):
        return raw.items()
    if isinstance(raw, (list, tuple)):
        return enumerate(raw)
    return ()


def resolve_snapshot(raw: Any) -> Optional[RawSensorRecord]:
    """Return the newest complete record in ``raw``, or None.

    A snapshot whose top level already carries the probe field as a number is
    a single flat record. Otherwise every child is considered and the
    structurally complete one with the greatest rank wins. Integer-keyed
    children delivered as a list are ranked by index.
    """
    if isinstance(raw, Mapping) and is_number(raw.get(PROBE_FIELD)):
        if is_complete_record(raw):
            return raw
        logger.warning("Flat snapshot is missing channel fields.")
        return None

    best = reduce(_keep_newest, _entries(raw), None)
    if best is None:
        return None
    logger.debug(
        "Resolved newest snapshot entry.",
        extra={"snapshot_key": best.key, "rank": best.rank},
    )
    return best.record
