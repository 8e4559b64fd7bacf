"""
Financial model derivation.

Turns the session inputs into every derived figure: list totals, taxes,
gross and operating result, margins, break-even revenue and the profit
allocation plan.

Derivation is a pure function of FinancialInputs and is recomputed in full
after every change. Nothing derived is stored alongside the inputs.
"""

import math
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Tuple

from .items import DirectCostItem, ExpenseKind, OperatingExpenseItem, sum_amounts
from .taxes import TaxRegime, compute_taxes

# Assumed direct cost ratio when there is no revenue to measure it against
DEFAULT_DIRECT_COST_RATIO = 0.5


@dataclass(frozen=True)
class AllocationTargets:
    """Profit allocation dials, in percent.

    Each dial is independent: the four may sum to more or less than 100.
    """
    reserve: float = 10.0
    future_taxes: float = 5.0
    reinvestment: float = 10.0
    distribution: float = 20.0

    def __post_init__(self):
        """Validate percentages are not negative."""
        for name in ("reserve", "future_taxes", "reinvestment", "distribution"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} percentage cannot be negative")

    @property
    def total_pct(self) -> float:
        """Sum of the four dials."""
        return self.reserve + self.future_taxes + self.reinvestment + self.distribution


@dataclass(frozen=True)
class FinancialInputs:
    """Every user-editable input of the calculator."""
    regime: TaxRegime = TaxRegime.FLAT_MONTHLY_FEE
    revenue: float = 15000.0
    owner_draw: float = 2500.0
    flat_fee: float = 75.0
    tax_rate: float = 6.0
    other_taxes: float = 0.0
    operating_expenses: Tuple[OperatingExpenseItem, ...] = ()
    direct_costs: Tuple[DirectCostItem, ...] = ()
    allocation: AllocationTargets = field(default_factory=AllocationTargets)


@dataclass(frozen=True)
class AllocationPlan:
    """Profit distribution amounts for a positive operating result."""
    allocatable_profit: float
    reserve: float
    future_taxes: float
    reinvestment: float
    distribution: float
    unallocated: float

    @property
    def has_positive_profit(self) -> bool:
        """False when there is nothing to allocate (loss or break-even)."""
        return self.allocatable_profit > 0

    @property
    def allocated_total(self) -> float:
        """Sum of the four allocated amounts (may exceed the profit)."""
        return self.reserve + self.future_taxes + self.reinvestment + self.distribution


@dataclass(frozen=True)
class FinancialSummary:
    """All derived figures for one set of inputs."""
    revenue: float
    direct_costs_total: float
    fixed_expenses_total: float
    variable_expenses_total: float
    operating_expenses_total: float
    owner_draw: float
    taxes: float
    gross_profit: float
    operating_result: float
    gross_margin_pct: float
    operating_margin_pct: float
    direct_cost_ratio: float
    fixed_burden: float
    contribution_margin: float
    break_even_revenue: float
    allocation: AllocationPlan

    @property
    def no_positive_profit(self) -> bool:
        """True when the operating result is zero or a loss."""
        return self.operating_result <= 0

    def percent_of_revenue(self, value: float) -> float:
        """Raw share of revenue for any monetary value, in percent."""
        return percent_of_revenue(value, self.revenue)


def percent_of_revenue(value: float, revenue: float) -> float:
    """Share of revenue in percent; 0 when there is no revenue.

    Args:
        value: Monetary value to express as a share
        revenue: Monthly revenue

    Returns:
        Unrounded percentage
    """
    if revenue > 0:
        return value / revenue * 100
    return 0.0


def round_display(value: float, places: int = 1) -> float:
    """Round a figure for display using half-up rounding.

    Derivations always use raw values; rounding is for presentation only.

    Args:
        value: Raw value
        places: Decimal places to keep

    Returns:
        Rounded value
    """
    if not math.isfinite(value):
        return value
    quantum = Decimal(1).scaleb(-places)
    with localcontext() as ctx:
        # enough digits for any finite float plus the kept decimals
        ctx.prec = 330 + places
        return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def compute_break_even_revenue(
    revenue: float,
    direct_costs_total: float,
    fixed_burden: float
) -> Tuple[float, float, float]:
    """Estimate the revenue at which the operating result reaches zero.

    Direct costs are treated as proportional to revenue at the current ratio;
    everything else, taxes included, is treated as fixed. Under the
    revenue-percentage regime the tax amount at current revenue is reused as a
    constant rather than recomputed at the break-even level.

    Args:
        revenue: Monthly revenue
        direct_costs_total: Total direct costs
        fixed_burden: Operating expenses + owner draw + taxes

    Returns:
        (direct_cost_ratio, contribution_margin, break_even_revenue)
    """
    if revenue > 0:
        direct_cost_ratio = direct_costs_total / revenue
    else:
        direct_cost_ratio = DEFAULT_DIRECT_COST_RATIO
    contribution_margin = 1 - direct_cost_ratio
    if contribution_margin > 0:
        break_even = fixed_burden / contribution_margin
    else:
        break_even = 0.0
    return direct_cost_ratio, contribution_margin, break_even


def compute_allocation(operating_result: float, targets: AllocationTargets) -> AllocationPlan:
    """Split a positive operating result across the four allocation dials.

    Losses allocate nothing. When the dials sum past 100 the excess is
    absorbed and unallocated is reported as 0, never negative.

    Args:
        operating_result: Monthly operating result (may be negative)
        targets: Allocation percentages

    Returns:
        AllocationPlan with the amount for each bucket
    """
    profit = max(0.0, operating_result)
    reserve = profit * targets.reserve / 100
    future_taxes = profit * targets.future_taxes / 100
    reinvestment = profit * targets.reinvestment / 100
    distribution = profit * targets.distribution / 100
    unallocated = max(0.0, profit - (reserve + future_taxes + reinvestment + distribution))
    return AllocationPlan(
        allocatable_profit=profit,
        reserve=reserve,
        future_taxes=future_taxes,
        reinvestment=reinvestment,
        distribution=distribution,
        unallocated=unallocated
    )


def derive(inputs: FinancialInputs) -> FinancialSummary:
    """Compute every derived figure from the inputs.

    Args:
        inputs: Current calculator inputs

    Returns:
        FinancialSummary with totals, margins, break-even and allocation
    """
    revenue = inputs.revenue

    direct_costs_total = sum_amounts(inputs.direct_costs)
    fixed_total = sum_amounts(
        e for e in inputs.operating_expenses if e.kind == ExpenseKind.FIXED
    )
    variable_total = sum_amounts(
        e for e in inputs.operating_expenses if e.kind == ExpenseKind.VARIABLE
    )
    operating_total = fixed_total + variable_total

    taxes = compute_taxes(
        regime=inputs.regime,
        revenue=revenue,
        flat_fee=inputs.flat_fee,
        tax_rate=inputs.tax_rate,
        other_taxes=inputs.other_taxes
    )

    gross_profit = revenue - direct_costs_total
    operating_result = gross_profit - operating_total - inputs.owner_draw - taxes

    fixed_burden = operating_total + inputs.owner_draw + taxes
    ratio, contribution_margin, break_even = compute_break_even_revenue(
        revenue=revenue,
        direct_costs_total=direct_costs_total,
        fixed_burden=fixed_burden
    )

    return FinancialSummary(
        revenue=revenue,
        direct_costs_total=direct_costs_total,
        fixed_expenses_total=fixed_total,
        variable_expenses_total=variable_total,
        operating_expenses_total=operating_total,
        owner_draw=inputs.owner_draw,
        taxes=taxes,
        gross_profit=gross_profit,
        operating_result=operating_result,
        gross_margin_pct=percent_of_revenue(gross_profit, revenue),
        operating_margin_pct=percent_of_revenue(operating_result, revenue),
        direct_cost_ratio=ratio,
        fixed_burden=fixed_burden,
        contribution_margin=contribution_margin,
        break_even_revenue=break_even,
        allocation=compute_allocation(operating_result, inputs.allocation)
    )
