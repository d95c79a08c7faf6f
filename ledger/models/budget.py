"""
Core Data Models for Budget Ledger

These models define the schemas for all data flowing through the ledger.
They are designed to:
1. Enforce type safety at runtime
2. Stay wire-compatible with the persisted camelCase snapshot format
3. Be immutable, so every engine operation returns a new snapshot

DESIGN DECISION: Money is Decimal in memory but serializes to a plain JSON
number. Snapshots written by other client versions store plain numbers,
and we must round-trip them without changing their shape.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
)
from pydantic.alias_generators import to_camel


Amount = Annotated[
    Decimal,
    PlainSerializer(lambda v: float(v), return_type=float, when_used="json"),
]


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Currency(str, Enum):
    """
    Supported settlement currencies.

    The ledger never converts between them; a month's currency is
    resolved once and applied to everything derived for that month.
    """
    INR = "INR"
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    SGD = "SGD"


DEFAULT_CURRENCY = Currency.INR


class PlannedExpenseStatus(str, Enum):
    """Lifecycle of a planned expense."""
    PENDING = "pending"
    PURCHASED = "purchased"
    CANCELLED = "cancelled"
    RECONCILED = "reconciled"


class PlannedExpensePriority(str, Enum):
    """How important a planned expense is."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Frequency(str, Enum):
    """Recurrence of a recurring expense."""
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    ANNUALLY = "Annually"


class LedgerModel(BaseModel):
    """
    Base for every persisted ledger record.

    Attributes are snake_case in Python and camelCase on the wire.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        str_strip_whitespace=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump to the persisted camelCase shape (JSON-safe values)."""
        return self.model_dump(by_alias=True, mode="json")


# =============================================================================
# BUDGET MONTH ENTRIES
# =============================================================================

class BudgetPlannedItem(LedgerModel):
    """Planned spend against a category (modern shape)."""

    id: str
    category_id: str
    name: str
    planned_amount: Amount
    rollover_amount: Optional[Amount] = None
    currency: Currency
    notes: Optional[str] = None


class PlannedExpenseItem(LedgerModel):
    """
    Planned spend in the legacy flat shape.

    Still the system of record for several call sites, so every write
    goes through the synchronizer to keep BudgetPlannedItem in step.
    """

    id: str
    name: str
    planned_amount: Amount
    actual_amount: Optional[Amount] = None
    category_id: str
    due_date: Optional[str] = Field(
        default=None,
        description="ISO-8601 date; decides which month owns the expense"
    )
    priority: PlannedExpensePriority = PlannedExpensePriority.MEDIUM
    remainder_amount: Optional[Amount] = Field(
        default=None,
        description="Leftover carried as the planned item's rollover amount"
    )
    status: PlannedExpenseStatus = PlannedExpenseStatus.PENDING
    notes: Optional[str] = None
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)


class BudgetActual(LedgerModel):
    """Realized spend, matched to a planned item or category."""

    id: str
    category_id: Optional[str] = None
    description: str = ""
    amount: Amount
    currency: Currency
    occurred_on: Optional[str] = None
    transaction_id: Optional[str] = None


class BudgetAdjustment(LedgerModel):
    """
    Manual correction or rollover entry.

    rollover_source_month: money leaving that month.
    rollover_target_month: money arriving in that month.
    """

    id: str
    category_id: Optional[str] = None
    amount: Amount
    currency: Currency
    reason: str = ""
    rollover_source_month: Optional[str] = None
    rollover_target_month: Optional[str] = None


class BudgetRecurringAllocation(LedgerModel):
    """The slice of a recurring expense attributed to one month."""

    id: str
    recurring_expense_id: str
    category_id: str
    amount: Amount
    currency: Currency
    start_month: str
    end_month: str


class BudgetMonthTotals(LedgerModel):
    """Cached totals for one month. Derived, never hand-edited."""

    planned: Amount = Decimal("0")
    actual: Amount = Decimal("0")
    difference: Amount = Decimal("0")
    rollover_from_previous: Amount = Decimal("0")
    rollover_to_next: Amount = Decimal("0")


class BudgetMonth(LedgerModel):
    """
    One calendar month of the ledger, keyed by "YYYY-MM".

    The key is stored again in `month` so a month survives being
    detached from its position in the snapshot mapping.
    """

    month: str
    currency: Optional[Currency] = None
    planned_items: list[BudgetPlannedItem] = Field(default_factory=list)
    planned_expenses: list[PlannedExpenseItem] = Field(default_factory=list)
    actuals: list[BudgetActual] = Field(default_factory=list)
    unassigned_actuals: list[BudgetActual] = Field(default_factory=list)
    adjustments: list[BudgetAdjustment] = Field(default_factory=list)
    recurring_allocations: list[BudgetRecurringAllocation] = Field(default_factory=list)
    totals: BudgetMonthTotals = Field(default_factory=BudgetMonthTotals)
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)

    @classmethod
    def empty(cls, key: str, currency: Optional[Currency]) -> 'BudgetMonth':
        """A month with no entries and all-zero totals."""
        now = utc_now_iso()
        return cls(month=key, currency=currency, created_at=now, updated_at=now)

    @property
    def planned_ids(self) -> list[str]:
        return [item.id for item in self.planned_items]

    @property
    def planned_expense_ids(self) -> list[str]:
        return [item.id for item in self.planned_expenses]


# =============================================================================
# SNAPSHOT-LEVEL RECORDS
# =============================================================================

class Transaction(LedgerModel):
    """A raw account transaction (negative amounts are spend)."""

    id: str
    account_id: str
    amount: Amount
    currency: Optional[Currency] = None
    date: str
    description: str = ""
    category_id: Optional[str] = None
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)


class RecurringExpense(LedgerModel):
    """A recurring bill; lives in the month of its next due date."""

    id: str
    name: str
    amount: Amount
    category_id: str
    frequency: Frequency = Frequency.MONTHLY
    due_date: Optional[str] = None
    currency: Optional[Currency] = None
    is_estimated: bool = False
    next_due_date: Optional[str] = None
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)

    @property
    def due_reference(self) -> Optional[str]:
        """The date that decides which month owns this expense (a blank date still counts as set)."""
        for value in (self.next_due_date, self.due_date):
            if value is not None:
                return value
        return self.created_at


class Profile(LedgerModel):
    """Household profile; only its currency matters to the ledger."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    name: Optional[str] = None
    currency: Currency = DEFAULT_CURRENCY
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)


class FinancialSnapshot(LedgerModel):
    """
    The full immutable ledger state.

    Fields the ledger doesn't own (accounts, goals, insights, ...) are
    carried through untouched.
    """

    model_config = ConfigDict(extra="allow")

    profile: Optional[Profile] = None
    transactions: list[Transaction] = Field(default_factory=list)
    planned_expenses: list[PlannedExpenseItem] = Field(
        default_factory=list,
        description="Pre-month legacy list; only read by the load-time migration"
    )
    recurring_expenses: list[RecurringExpense] = Field(default_factory=list)
    budget_months: dict[str, BudgetMonth] = Field(default_factory=dict)
    revision: int = Field(default=0, ge=0)
    last_local_change_at: str = Field(default_factory=utc_now_iso)

    @property
    def profile_currency(self) -> Optional[Currency]:
        return self.profile.currency if self.profile else None
