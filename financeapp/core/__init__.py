"""
Core modules for FinanceApp Pro.

This package contains the financial model: expense and direct cost items,
tax computation, derivation of margins, break-even and profit allocation,
and the session that applies user mutations.
"""
