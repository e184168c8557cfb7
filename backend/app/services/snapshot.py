"""Snapshots: ordered field maps over a closed set of value kinds.

Snapshots are what the change log stores in ``before``/``after``. Values are
kept JSON-safe: dates and datetimes are stored as ISO-8601 strings, decimals
as floats. Diffing only ever looks at *data* fields; ``id``, ``created_at``
and ``updated_at`` are managed by the record store and never restored.
"""
import enum
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

logger = logging.getLogger(__name__)

Snapshot = dict[str, Any]

SYSTEM_FIELDS = frozenset({"id", "created_at", "updated_at"})


class ValueKind(str, enum.Enum):
    string = "string"
    number = "number"
    boolean = "boolean"
    null = "null"
    date = "date"


def kind_of(value: Any) -> ValueKind:
    """Classify a snapshot value. Raises TypeError for anything outside the closed set."""
    if value is None:
        return ValueKind.null
    # bool is a subclass of int, so test it first
    if isinstance(value, bool):
        return ValueKind.boolean
    if isinstance(value, (int, float, Decimal)):
        return ValueKind.number
    if isinstance(value, (date, datetime)):
        return ValueKind.date
    if isinstance(value, str):
        return ValueKind.string
    raise TypeError(f"Unsupported snapshot value of type {type(value).__name__}")


def encode_value(value: Any) -> Any:
    """Convert a column value to its JSON-safe snapshot form."""
    kind = kind_of(value)
    if kind is ValueKind.date:
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, enum.Enum):
        return value.value
    return value


def make_snapshot(fields: dict[str, Any]) -> Snapshot:
    """Build a snapshot from raw column values, preserving field order."""
    return {name: encode_value(value) for name, value in fields.items()}


def values_equal(a: Any, b: Any) -> bool:
    """Compare two snapshot values kind-aware.

    Numbers compare numerically (3 == 3.0) but never equal booleans; dates
    compare by their ISO form so a ``date`` equals its stored string.
    """
    if a is None or b is None:
        return a is None and b is None
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, (date, datetime)):
        a = a.isoformat()
    if isinstance(b, (date, datetime)):
        b = b.isoformat()
    return a == b


def data_fields(snapshot: Optional[Snapshot]) -> Snapshot:
    if not snapshot:
        return {}
    return {k: v for k, v in snapshot.items() if k not in SYSTEM_FIELDS}


def changed_fields(before: Optional[Snapshot], after: Optional[Snapshot]) -> list[str]:
    """Data fields whose value differs between two snapshots.

    A field present on only one side counts as changed. Order follows
    ``before`` first, then fields new in ``after``.
    """
    old = data_fields(before)
    new = data_fields(after)
    names = list(old) + [k for k in new if k not in old]
    return [name for name in names if name not in old or name not in new or not values_equal(old[name], new[name])]


def snapshots_match(current: Optional[Snapshot], expected: Optional[Snapshot]) -> bool:
    """True when every data field of ``expected`` has the same value in ``current``."""
    if current is None or expected is None:
        return current is None and expected is None
    cur = data_fields(current)
    return all(
        name in cur and values_equal(cur[name], value)
        for name, value in data_fields(expected).items()
    )
