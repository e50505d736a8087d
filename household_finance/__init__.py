"""
Household Finance - Source Package

A shared tracker for a household's incomes, expenses, savings goals and
starting balance, kept in one collaborative workspace.

DESIGN PRINCIPLES:
1. Validate → Store → Recompute
2. Fail early, fail visibly
3. No silent corrections
4. Every view is derived from the full current snapshot
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Household Finance Team"
