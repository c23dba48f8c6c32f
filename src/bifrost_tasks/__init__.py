"""
Bifrost task engine.

Recurring-task scheduling plus best-effort reconciliation of local tasks with
an external calendar.
"""

__version__ = "0.1.0"
