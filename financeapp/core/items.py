"""
Expense and direct cost items.

Defines the two user-managed item lists and the pure list operations used to
add, replace and remove items while keeping ids unique.
"""

import math
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional, Tuple, TypeVar


class ExpenseKind(Enum):
    """Whether an operating expense is fixed or varies month to month."""
    FIXED = "fixed"
    VARIABLE = "variable"


@dataclass(frozen=True)
class OperatingExpenseItem:
    """Monthly operating expense (software, rent, utilities...)."""
    id: str
    name: str
    amount: float
    kind: ExpenseKind = ExpenseKind.FIXED
    category: Optional[str] = None

    def __post_init__(self):
        """Validate item fields."""
        if not self.name:
            raise ValueError("name cannot be empty")
        if self.amount < 0:
            raise ValueError("amount cannot be negative")


@dataclass(frozen=True)
class DirectCostItem:
    """Monthly average cost tied directly to revenue-generating jobs."""
    id: str
    name: str
    amount: float

    def __post_init__(self):
        """Validate item fields."""
        if not self.name:
            raise ValueError("name cannot be empty")
        if self.amount < 0:
            raise ValueError("amount cannot be negative")


Item = TypeVar("Item", OperatingExpenseItem, DirectCostItem)


def new_item_id() -> str:
    """Generate a fresh item id. Only uniqueness matters."""
    return uuid.uuid4().hex


def is_valid_entry(name: Optional[str], amount: float) -> bool:
    """Check the add/edit guard: non-empty name and strictly positive, finite amount."""
    return bool(name) and math.isfinite(amount) and amount > 0


def normalize_category(category: Optional[str]) -> Optional[str]:
    """Blank categories are stored as None."""
    if category is None:
        return None
    category = category.strip()
    return category or None


def sum_amounts(items: Iterable[Item], selector: Callable[[Item], float] = lambda i: i.amount) -> float:
    """Sum a numeric field across items; 0 for an empty sequence."""
    return sum((selector(item) for item in items), 0.0)


def append_item(items: Tuple[Item, ...], item: Item) -> Tuple[Item, ...]:
    """Return a new list with item appended at the end (append order = display order)."""
    return items + (item,)


def replace_item(items: Tuple[Item, ...], item_id: str, replacement: Item) -> Optional[Tuple[Item, ...]]:
    """Replace the item with the given id, keeping its position.

    Args:
        items: Current items
        item_id: Id of the item to replace
        replacement: New item; must carry the same id

    Returns:
        The updated items, or None if no item has that id
    """
    if replacement.id != item_id:
        raise ValueError("replacement must keep the original id")
    for index, item in enumerate(items):
        if item.id == item_id:
            return items[:index] + (replacement,) + items[index + 1:]
    return None


def remove_item(items: Tuple[Item, ...], item_id: str) -> Tuple[Item, ...]:
    """Return the items without the one matching item_id (unchanged if absent)."""
    return tuple(item for item in items if item.id != item_id)


def find_item(items: Iterable[Item], item_id: str) -> Optional[Item]:
    """Look up an item by id."""
    for item in items:
        if item.id == item_id:
            return item
    return None
