"""
Tabular export of operating expenses.

Produces a delimited text table (name;kind;category;amount) with a
locale-style decimal separator, for opening in spreadsheet software.
"""

import logging
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional, Union

import pandas as pd

from .items import ExpenseKind, OperatingExpenseItem

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = ["name", "kind", "category", "amount"]

KIND_LABELS = {
    ExpenseKind.FIXED: "Fixed",
    ExpenseKind.VARIABLE: "Variable",
}


def format_amount(amount: float, decimal_separator: str = ",") -> str:
    """Render an amount with the shortest decimal form and the given separator.

    120.0 becomes "120" and 224.9 becomes "224,9". Every digit of the
    shortest round-trip form is kept, so 1e-07 becomes "0,0000001".
    """
    text = format(Decimal(repr(amount)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text.replace(".", decimal_separator)


def expenses_to_frame(
    expenses: Iterable[OperatingExpenseItem],
    decimal_separator: str = ","
) -> pd.DataFrame:
    """Build the export table, one row per expense in list order."""
    rows = [
        {
            "name": item.name,
            "kind": KIND_LABELS[item.kind],
            "category": item.category or "",
            "amount": format_amount(item.amount, decimal_separator),
        }
        for item in expenses
    ]
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def export_expenses_csv(
    expenses: Iterable[OperatingExpenseItem],
    path: Optional[Union[str, Path]] = None,
    delimiter: str = ";",
    decimal_separator: str = ","
) -> str:
    """Export operating expenses as delimited text.

    Args:
        expenses: Operating expenses to export
        path: Optional file to write; the text is returned either way
        delimiter: Column separator
        decimal_separator: Replaces the period in amounts

    Returns:
        The exported text (header row, then one row per item, "\\n" terminated)
    """
    frame = expenses_to_frame(expenses, decimal_separator)
    text = frame.to_csv(sep=delimiter, index=False, lineterminator="\n")
    if path is not None:
        Path(path).write_text(text, encoding="utf-8")
        logger.info("Exported %d expenses to %s", len(frame), path)
    return text
