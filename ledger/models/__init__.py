"""
Data Models Package

This package contains all Pydantic models used in the Budget Ledger.
All data flowing through the ledger must conform to these schemas.
"""

from ledger.models.budget import (
    DEFAULT_CURRENCY,
    BudgetActual,
    BudgetAdjustment,
    BudgetMonth,
    BudgetMonthTotals,
    BudgetPlannedItem,
    BudgetRecurringAllocation,
    Currency,
    FinancialSnapshot,
    Frequency,
    PlannedExpenseItem,
    PlannedExpensePriority,
    PlannedExpenseStatus,
    Profile,
    RecurringExpense,
    Transaction,
)
from ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Budget models
    "DEFAULT_CURRENCY",
    "BudgetActual",
    "BudgetAdjustment",
    "BudgetMonth",
    "BudgetMonthTotals",
    "BudgetPlannedItem",
    "BudgetRecurringAllocation",
    "Currency",
    "FinancialSnapshot",
    "Frequency",
    "PlannedExpenseItem",
    "PlannedExpensePriority",
    "PlannedExpenseStatus",
    "Profile",
    "RecurringExpense",
    "Transaction",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
