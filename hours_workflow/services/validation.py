"""
Declaration input validation - hour caps, required fields, hierarchy path.

Hour and required-field checks are pure. The path check needs a lookup
callable ``lookup(model, id) -> record | None`` so it can run against the
store in production and against plain dicts in tests.

All failures raise ValidationError with a field-level ``details`` dict.
"""

from __future__ import annotations

import math
from numbers import Real

from hours_workflow.core.exceptions import ValidationError
from hours_workflow.models.org import ORG_PATH

DEFAULT_DAILY_HOURS_CAP = 8

REQUIRED_FIELDS = ("date", "department_id", "course_element_id")


def _as_hours(name: str, value) -> float:
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (Real, str)):
        raise ValidationError(f"{name} must be a number", details={name: "not a number"})
    try:
        hours = float(value)
    except ValueError:
        raise ValidationError(f"{name} must be a number", details={name: "not a number"})
    if math.isnan(hours) or math.isinf(hours):
        raise ValidationError(f"{name} must be a number", details={name: "not a number"})
    if hours < 0:
        raise ValidationError(f"{name} cannot be negative", details={name: "must be >= 0"})
    return hours


def compute_total_hours(hours_cm, hours_td, hours_tp) -> float:
    return float(hours_cm or 0) + float(hours_td or 0) + float(hours_tp or 0)


def validate_hours(hours_cm, hours_td, hours_tp, cap: float = DEFAULT_DAILY_HOURS_CAP) -> dict:
    """Normalise the three hour categories and check the daily cap.

    Returns:
        {"hours_cm", "hours_td", "hours_tp", "hours"} with floats.

    Raises:
        ValidationError: non-numeric or negative value, zero total, or
        total above ``cap``.
    """
    cm = _as_hours("hours_cm", hours_cm)
    td = _as_hours("hours_td", hours_td)
    tp = _as_hours("hours_tp", hours_tp)
    total = compute_total_hours(cm, td, tp)
    if total <= 0:
        raise ValidationError("At least one hour must be declared", details={"hours": "must be > 0"})
    if total > cap:
        raise ValidationError(
            f"Total hours ({total:g}) exceed the daily cap of {cap:g}",
            details={"hours": f"must be <= {cap:g}"},
        )
    return {"hours_cm": cm, "hours_td": td, "hours_tp": tp, "hours": total}


def validate_required(data: dict) -> None:
    missing = [f for f in REQUIRED_FIELDS if data.get(f) in (None, "")]
    if missing:
        raise ValidationError(
            "Please fill in all required fields",
            details={f: "is required" for f in missing},
        )


def validate_org_path(lookup, path: dict) -> None:
    """Check that the organisational path forms one branch of the tree.

    Every id given must resolve, and every resolved record's parent must be
    the next id given above it. Walking up from the course element must
    reach the declared department whenever the chain is unbroken.

    Args:
        lookup: ``lookup(model, id)`` returning the record or None.
        path: mapping with any of department_id … course_element_id.
    """
    resolved = {}
    for key, model in ORG_PATH:
        ident = path.get(key)
        if ident in (None, ""):
            continue
        record = lookup(model, ident)
        if record is None:
            raise ValidationError(
                f"Unknown {model.__name__} id={ident}",
                details={key: "does not exist"},
            )
        resolved[key] = record

    # Walk bottom-up, comparing each record's parent with the declared
    # ancestor, or adopting it when the ancestor was left out.
    keys = [key for key, _ in ORG_PATH]
    models = dict(ORG_PATH)
    for idx in range(len(keys) - 1, 0, -1):
        child_key, parent_key = keys[idx], keys[idx - 1]
        child = resolved.get(child_key)
        if child is None:
            continue
        parent_id = getattr(child, parent_key)
        declared = path.get(parent_key)
        if declared not in (None, ""):
            if parent_id is None or str(parent_id) != str(declared):
                raise ValidationError(
                    f"{models[child_key].__name__} id={child.id} does not belong to "
                    f"{models[parent_key].__name__} id={declared}",
                    details={child_key: f"not part of {parent_key}={declared}"},
                )
        elif parent_id is not None and parent_key not in resolved:
            parent = lookup(models[parent_key], parent_id)
            if parent is not None:
                resolved[parent_key] = parent
