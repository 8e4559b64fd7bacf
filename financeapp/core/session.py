"""
Interactive calculator session.

The session owns the single input record, applies user mutations one at a
time and persists the record after every accepted change. Rejected
mutations leave the record untouched and report False; they never raise.
"""

import dataclasses
import logging
import math
import sqlite3
from typing import Optional

from .items import (
    DirectCostItem,
    ExpenseKind,
    OperatingExpenseItem,
    append_item,
    find_item,
    is_valid_entry,
    new_item_id,
    normalize_category,
    remove_item,
    replace_item,
)
from .model import AllocationTargets, FinancialInputs, FinancialSummary, derive
from .taxes import TaxRegime
from financeapp.storage.repository import DEFAULT_SNAPSHOT_KEY, SnapshotRepository

logger = logging.getLogger(__name__)


def default_scenario(allocation: Optional[AllocationTargets] = None) -> FinancialInputs:
    """Example scenario used for a brand new session.

    Args:
        allocation: Allocation dials to start with (10/5/10/20 when omitted)

    Returns:
        FinancialInputs with three example expenses and two direct costs
    """
    return FinancialInputs(
        regime=TaxRegime.FLAT_MONTHLY_FEE,
        revenue=15000.0,
        owner_draw=2500.0,
        flat_fee=75.0,
        tax_rate=6.0,
        other_taxes=0.0,
        operating_expenses=(
            OperatingExpenseItem(new_item_id(), "Adobe CC", 224.9, ExpenseKind.FIXED, "Software"),
            OperatingExpenseItem(new_item_id(), "Internet", 120.0, ExpenseKind.FIXED, "Infra"),
            OperatingExpenseItem(new_item_id(), "Aluguel sala", 1200.0, ExpenseKind.FIXED, "Aluguel"),
        ),
        direct_costs=(
            DirectCostItem(new_item_id(), "Banco de música (job)", 60.0),
            DirectCostItem(new_item_id(), "Freela edição (job)", 800.0),
        ),
        allocation=allocation or AllocationTargets(),
    )


class FinanceSession:
    """Serial owner of the calculator inputs.

    Every accepted mutation swaps in a new immutable FinancialInputs and then
    writes it to the repository. Persistence is fire-and-forget: a failed
    write is logged and the in-memory state stays authoritative.
    """

    def __init__(
        self,
        inputs: Optional[FinancialInputs] = None,
        repository: Optional[SnapshotRepository] = None,
        snapshot_key: str = DEFAULT_SNAPSHOT_KEY
    ):
        """Initialize a session.

        Args:
            inputs: Starting inputs (default scenario when omitted)
            repository: Snapshot store; None keeps the session in memory only
            snapshot_key: Key the snapshot is stored under
        """
        self._inputs = inputs if inputs is not None else default_scenario()
        self.repository = repository
        self.snapshot_key = snapshot_key

    @classmethod
    def open(
        cls,
        repository: SnapshotRepository,
        snapshot_key: str = DEFAULT_SNAPSHOT_KEY,
        default_allocation: Optional[AllocationTargets] = None
    ) -> "FinanceSession":
        """Start a session from the stored snapshot, or the default scenario.

        Args:
            repository: Snapshot store
            snapshot_key: Key the snapshot is stored under
            default_allocation: Allocation dials for a fresh scenario

        Returns:
            FinanceSession bound to the repository
        """
        inputs = repository.load(snapshot_key, default_allocation)
        if inputs is None:
            logger.info("Starting from the default scenario")
            inputs = default_scenario(default_allocation)
        return cls(inputs=inputs, repository=repository, snapshot_key=snapshot_key)

    @property
    def inputs(self) -> FinancialInputs:
        """Current inputs."""
        return self._inputs

    @property
    def summary(self) -> FinancialSummary:
        """Derived figures, recomputed in full from the current inputs."""
        return derive(self._inputs)

    def persist(self) -> bool:
        """Write the current inputs to the repository.

        Returns:
            True if the snapshot was written
        """
        if self.repository is None:
            return False
        try:
            self.repository.save(self._inputs, self.snapshot_key)
        except (sqlite3.Error, OSError) as e:
            logger.warning("Could not persist snapshot %r: %s", self.snapshot_key, e)
            return False
        return True

    def _commit(self, inputs: FinancialInputs, action: str) -> bool:
        self._inputs = inputs
        logger.debug("Applied %s", action)
        self.persist()
        return True

    def _reject(self, action: str, reason: str) -> bool:
        logger.debug("Rejected %s: %s", action, reason)
        return False

    # Scalar inputs

    def set_regime(self, regime: TaxRegime) -> bool:
        """Switch tax regime, keeping both regimes' parameters."""
        return self._commit(dataclasses.replace(self._inputs, regime=regime), "set_regime")

    def set_revenue(self, revenue: float) -> bool:
        """Set monthly revenue."""
        return self._set_amount("revenue", revenue)

    def set_owner_draw(self, owner_draw: float) -> bool:
        """Set the monthly pro-labore."""
        return self._set_amount("owner_draw", owner_draw)

    def set_flat_fee(self, flat_fee: float) -> bool:
        """Set the flat monthly fee (MEI DAS)."""
        return self._set_amount("flat_fee", flat_fee)

    def set_tax_rate(self, tax_rate: float) -> bool:
        """Set the effective revenue-percentage rate."""
        return self._set_amount("tax_rate", tax_rate)

    def set_other_taxes(self, other_taxes: float) -> bool:
        """Set other monthly taxes and fees."""
        return self._set_amount("other_taxes", other_taxes)

    def _set_amount(self, field_name: str, value: float) -> bool:
        action = f"set_{field_name}"
        if not math.isfinite(value) or value < 0:
            return self._reject(action, "negative or non-finite value")
        return self._commit(dataclasses.replace(self._inputs, **{field_name: float(value)}), action)

    def set_allocation(
        self,
        reserve: Optional[float] = None,
        future_taxes: Optional[float] = None,
        reinvestment: Optional[float] = None,
        distribution: Optional[float] = None
    ) -> bool:
        """Adjust one or more allocation dials; omitted dials keep their value.

        Returns:
            False (no change) if any given percentage is negative or non-finite
        """
        changes = {
            name: float(value)
            for name, value in (
                ("reserve", reserve),
                ("future_taxes", future_taxes),
                ("reinvestment", reinvestment),
                ("distribution", distribution),
            )
            if value is not None
        }
        if any(not math.isfinite(value) or value < 0 for value in changes.values()):
            return self._reject("set_allocation", "negative or non-finite percentage")
        allocation = dataclasses.replace(self._inputs.allocation, **changes)
        return self._commit(dataclasses.replace(self._inputs, allocation=allocation), "set_allocation")

    # Operating expenses

    def add_operating_expense(
        self,
        name: str,
        amount: float,
        kind: ExpenseKind = ExpenseKind.FIXED,
        category: Optional[str] = None
    ) -> Optional[OperatingExpenseItem]:
        """Append a new operating expense.

        Returns:
            The created item, or None if name is empty or amount <= 0
        """
        if not is_valid_entry(name, amount):
            self._reject("add_operating_expense", "empty name or non-positive amount")
            return None
        item = OperatingExpenseItem(
            id=new_item_id(),
            name=name,
            amount=float(amount),
            kind=kind,
            category=normalize_category(category),
        )
        expenses = append_item(self._inputs.operating_expenses, item)
        self._commit(dataclasses.replace(self._inputs, operating_expenses=expenses), "add_operating_expense")
        return item

    def edit_operating_expense(
        self,
        item_id: str,
        name: str,
        amount: float,
        kind: ExpenseKind,
        category: Optional[str] = None
    ) -> bool:
        """Replace every field of an operating expense except its id."""
        if not is_valid_entry(name, amount):
            return self._reject("edit_operating_expense", "empty name or non-positive amount")
        replacement = OperatingExpenseItem(
            id=item_id,
            name=name,
            amount=float(amount),
            kind=kind,
            category=normalize_category(category),
        )
        expenses = replace_item(self._inputs.operating_expenses, item_id, replacement)
        if expenses is None:
            return self._reject("edit_operating_expense", f"unknown id {item_id}")
        return self._commit(dataclasses.replace(self._inputs, operating_expenses=expenses), "edit_operating_expense")

    def remove_operating_expense(self, item_id: str) -> bool:
        """Remove an operating expense; no-op when the id is unknown."""
        if find_item(self._inputs.operating_expenses, item_id) is None:
            return self._reject("remove_operating_expense", f"unknown id {item_id}")
        expenses = remove_item(self._inputs.operating_expenses, item_id)
        return self._commit(dataclasses.replace(self._inputs, operating_expenses=expenses), "remove_operating_expense")

    # Direct costs

    def add_direct_cost(self, name: str, amount: float) -> Optional[DirectCostItem]:
        """Append a new direct cost.

        Returns:
            The created item, or None if name is empty or amount <= 0
        """
        if not is_valid_entry(name, amount):
            self._reject("add_direct_cost", "empty name or non-positive amount")
            return None
        item = DirectCostItem(id=new_item_id(), name=name, amount=float(amount))
        costs = append_item(self._inputs.direct_costs, item)
        self._commit(dataclasses.replace(self._inputs, direct_costs=costs), "add_direct_cost")
        return item

    def edit_direct_cost(self, item_id: str, name: str, amount: float) -> bool:
        """Replace name and amount of a direct cost."""
        if not is_valid_entry(name, amount):
            return self._reject("edit_direct_cost", "empty name or non-positive amount")
        replacement = DirectCostItem(id=item_id, name=name, amount=float(amount))
        costs = replace_item(self._inputs.direct_costs, item_id, replacement)
        if costs is None:
            return self._reject("edit_direct_cost", f"unknown id {item_id}")
        return self._commit(dataclasses.replace(self._inputs, direct_costs=costs), "edit_direct_cost")

    def remove_direct_cost(self, item_id: str) -> bool:
        """Remove a direct cost; no-op when the id is unknown."""
        if find_item(self._inputs.direct_costs, item_id) is None:
            return self._reject("remove_direct_cost", f"unknown id {item_id}")
        costs = remove_item(self._inputs.direct_costs, item_id)
        return self._commit(dataclasses.replace(self._inputs, direct_costs=costs), "remove_direct_cost")

    def reset(self) -> None:
        """Restore the default scenario, keeping the current allocation dials."""
        self._commit(default_scenario(self._inputs.allocation), "reset")
