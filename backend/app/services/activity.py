"""Activity projector — renders change records as readable sentences.

``describe`` is pure and total: any well-formed record (and most malformed
ones) yields a sentence, never an exception.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from app.services.snapshot import values_equal

PRIORITY_LABELS = {1: "Urgent", 2: "High", 3: "Medium", 4: "Low", 5: "None"}

OPERATION_VERBS = {"CREATE": "created", "UPDATE": "updated", "DELETE": "deleted"}


def _tag(value: Any) -> str:
    return str(getattr(value, "value", value) or "")


def _label_for(snapshot: Optional[dict]) -> Optional[str]:
    if not isinstance(snapshot, dict):
        return None
    label = snapshot.get("title") or snapshot.get("name")
    return str(label) if label else None


def _priority(value: Any) -> str:
    try:
        return PRIORITY_LABELS.get(int(value), str(value))
    except (TypeError, ValueError, OverflowError):
        return str(value)


def _quoted_change(field_name: str, old: Any, new: Any, render=str) -> str:
    return f'{field_name} from "{render(old)}" to "{render(new)}"'


# (field, renderer): fields shown with their old and new values
_VALUE_RULES = (
    ("status", str),
    ("priority", _priority),
    ("due_date", str),
)

# (field, phrase): fields only named
_NAMED_RULES = (
    ("title", "title"),
    ("name", "name"),
    ("description", "description"),
    ("assignee_id", "assignee"),
    ("milestone_id", "milestone"),
)


def _field_changes(before: dict, after: dict) -> list[str]:
    changes = []
    for name, render in _VALUE_RULES:
        if name in before and name in after and not values_equal(before[name], after[name]):
            changes.append(_quoted_change(name, before[name], after[name], render))
    for name, phrase in _NAMED_RULES:
        if name in before and name in after and not values_equal(before[name], after[name]):
            changes.append(phrase)
    return changes


def describe(record) -> str:
    """Human-readable sentence for one change record."""
    operation = _tag(getattr(record, "operation", ""))
    entity = _tag(getattr(record, "entity_type", "")) or "record"
    target = f"{entity} #{getattr(record, 'entity_id', '?')}"
    before = getattr(record, "before", None)
    after = getattr(record, "after", None)

    if operation == "CREATE":
        label = _label_for(after)
        sentence = f'created {entity} "{label}"' if label else f"created {target}"
    elif operation == "DELETE":
        label = _label_for(before)
        sentence = f'deleted {entity} "{label}"' if label else f"deleted {target}"
    elif operation == "UPDATE":
        changes = []
        if isinstance(before, dict) and isinstance(after, dict):
            changes = _field_changes(before, after)
        if changes:
            sentence = f"changed {', '.join(changes)} on {target}"
        else:
            sentence = f"made changes to {target}"
    else:
        verb = OPERATION_VERBS.get(operation, operation.lower() or "changed")
        sentence = f"{verb} {target}"

    if getattr(record, "rolled_back", False):
        sentence += " (undone)"
    return sentence


@dataclass
class ActivityItem:
    id: int
    actor_id: str
    operation: str
    entity_type: str
    entity_id: int
    description: str
    rolled_back: bool
    created_at: Optional[datetime]


def project(record) -> ActivityItem:
    return ActivityItem(
        id=record.id,
        actor_id=record.actor_id,
        operation=_tag(record.operation),
        entity_type=_tag(record.entity_type),
        entity_id=record.entity_id,
        description=describe(record),
        rolled_back=bool(record.rolled_back),
        created_at=record.created_at,
    )
