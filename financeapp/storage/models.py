"""
Snapshot encoding for the key-value store.

The whole input record is stored as a single JSON object. Decoding falls back
to a documented default for every missing field; anything present but
malformed makes the whole snapshot invalid.
"""

import json
import math
from typing import Any, Dict, List, Optional

from financeapp.core.items import DirectCostItem, ExpenseKind, OperatingExpenseItem
from financeapp.core.model import AllocationTargets, FinancialInputs
from financeapp.core.taxes import TaxRegime

# Defaults applied per missing field when loading a snapshot
SNAPSHOT_DEFAULTS: Dict[str, Any] = {
    "regime": TaxRegime.FLAT_MONTHLY_FEE.value,
    "revenue": 15000.0,
    "owner_draw": 2500.0,
    "tax_rate": 6.0,
    "flat_fee": 75.0,
    "other_taxes": 0.0,
    "operating_expenses": [],
    "direct_costs": [],
}

ALLOCATION_FIELDS = ("reserve", "future_taxes", "reinvestment", "distribution")


class SnapshotDecodeError(ValueError):
    """Raised when a stored snapshot cannot be turned back into inputs."""


def encode_inputs(inputs: FinancialInputs) -> str:
    """Serialize inputs into the JSON payload stored under the snapshot key."""
    payload = {
        "regime": inputs.regime.value,
        "revenue": inputs.revenue,
        "owner_draw": inputs.owner_draw,
        "tax_rate": inputs.tax_rate,
        "flat_fee": inputs.flat_fee,
        "other_taxes": inputs.other_taxes,
        "operating_expenses": [
            {
                "id": item.id,
                "name": item.name,
                "amount": item.amount,
                "kind": item.kind.value,
                "category": item.category,
            }
            for item in inputs.operating_expenses
        ],
        "direct_costs": [
            {"id": item.id, "name": item.name, "amount": item.amount}
            for item in inputs.direct_costs
        ],
        "allocation": {
            name: getattr(inputs.allocation, name) for name in ALLOCATION_FIELDS
        },
    }
    return json.dumps(payload, ensure_ascii=False)


def decode_inputs(
    payload: str,
    default_allocation: Optional[AllocationTargets] = None
) -> FinancialInputs:
    """Parse a stored payload back into inputs.

    Args:
        payload: JSON text as written by encode_inputs
        default_allocation: Allocation used when the snapshot has none

    Returns:
        FinancialInputs rebuilt from the snapshot

    Raises:
        SnapshotDecodeError: If the payload is unparseable or any field is malformed
    """
    try:
        raw = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise SnapshotDecodeError(f"Snapshot is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise SnapshotDecodeError("Snapshot root must be an object")

    data = dict(SNAPSHOT_DEFAULTS)
    data.update({k: v for k, v in raw.items() if v is not None})

    try:
        regime = TaxRegime(data["regime"])
    except (TypeError, ValueError) as e:
        raise SnapshotDecodeError(f"Unknown regime: {data['regime']!r}") from e

    try:
        return FinancialInputs(
            regime=regime,
            revenue=_number(data, "revenue"),
            owner_draw=_number(data, "owner_draw"),
            flat_fee=_number(data, "flat_fee"),
            tax_rate=_number(data, "tax_rate"),
            other_taxes=_number(data, "other_taxes"),
            operating_expenses=tuple(_decode_expenses(data["operating_expenses"])),
            direct_costs=tuple(_decode_direct_costs(data["direct_costs"])),
            allocation=_decode_allocation(
                raw.get("allocation"),
                default_allocation or AllocationTargets()
            ),
        )
    except SnapshotDecodeError:
        raise
    except (KeyError, TypeError, ValueError) as e:
        raise SnapshotDecodeError(f"Malformed snapshot: {e}") from e


def _number(data: Dict[str, Any], key: str) -> float:
    """Read a non-negative number field."""
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SnapshotDecodeError(f"'{key}' must be a number")
    if not math.isfinite(value):
        raise SnapshotDecodeError(f"'{key}' must be finite")
    if value < 0:
        raise SnapshotDecodeError(f"'{key}' cannot be negative")
    return float(value)


def _text(data: Dict[str, Any], key: str) -> str:
    """Read a non-empty string field."""
    value = data[key]
    if not isinstance(value, str) or not value:
        raise SnapshotDecodeError(f"'{key}' must be a non-empty string")
    return value


def _check_list(value: Any, key: str) -> List[Dict[str, Any]]:
    if not isinstance(value, list) or not all(isinstance(v, dict) for v in value):
        raise SnapshotDecodeError(f"'{key}' must be a list of objects")
    ids = [v.get("id") for v in value]
    if any(not isinstance(i, str) or not i for i in ids):
        raise SnapshotDecodeError(f"Every item in '{key}' needs an id")
    if len(set(ids)) != len(ids):
        raise SnapshotDecodeError(f"Duplicate ids in '{key}'")
    return value


def _decode_expenses(value: Any) -> List[OperatingExpenseItem]:
    items = []
    for entry in _check_list(value, "operating_expenses"):
        category = entry.get("category")
        if category is not None and not isinstance(category, str):
            raise SnapshotDecodeError("'category' must be a string")
        items.append(OperatingExpenseItem(
            id=entry["id"],
            name=_text(entry, "name"),
            amount=_number(entry, "amount"),
            kind=ExpenseKind(entry.get("kind", ExpenseKind.FIXED.value)),
            category=category or None,
        ))
    return items


def _decode_direct_costs(value: Any) -> List[DirectCostItem]:
    return [
        DirectCostItem(
            id=entry["id"],
            name=_text(entry, "name"),
            amount=_number(entry, "amount"),
        )
        for entry in _check_list(value, "direct_costs")
    ]


def _decode_allocation(value: Any, default: AllocationTargets) -> AllocationTargets:
    if value is None:
        return default
    if not isinstance(value, dict):
        raise SnapshotDecodeError("'allocation' must be an object")
    merged = {name: getattr(default, name) for name in ALLOCATION_FIELDS}
    for name in ALLOCATION_FIELDS:
        if value.get(name) is not None:
            merged[name] = _number(value, name)
    return AllocationTargets(**merged)
