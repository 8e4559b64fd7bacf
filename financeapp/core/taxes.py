"""
Tax computation for micro-entrepreneur regimes.

MEI pays a flat monthly DAS fee; Simples Nacional pays an effective rate over
revenue. Both add any other monthly taxes or fees on top.
"""

from enum import Enum


class TaxRegime(Enum):
    """Supported tax regimes."""
    FLAT_MONTHLY_FEE = "flat_monthly_fee"  # MEI
    REVENUE_PERCENTAGE = "revenue_percentage"  # Simples Nacional


def compute_taxes(
    regime: TaxRegime,
    revenue: float,
    flat_fee: float,
    tax_rate: float,
    other_taxes: float
) -> float:
    """Compute the monthly tax amount for the selected regime.

    Only the parameter of the active regime is used; the other one is ignored
    but kept by the caller so switching back loses nothing.

    Args:
        regime: Active tax regime
        revenue: Monthly revenue
        flat_fee: Flat monthly fee (FLAT_MONTHLY_FEE)
        tax_rate: Effective rate in percent, 0-100 (REVENUE_PERCENTAGE)
        other_taxes: Other monthly taxes and fees

    Returns:
        Monthly taxes
    """
    if regime == TaxRegime.FLAT_MONTHLY_FEE:
        return flat_fee + other_taxes
    return revenue * (tax_rate / 100) + other_taxes
