"""
Tests for the cross-month mutation coordinator.
"""

import pytest
from decimal import Decimal

from ledger.engine import (
    add_planned_expense,
    add_recurring_expense,
    delete_planned_expense,
    delete_recurring_expense,
    ensure_budget_month,
    recompute_budget_month,
    update_planned_expense,
    update_recurring_expense,
)
from ledger.models.budget import (
    BudgetMonth,
    Currency,
    FinancialSnapshot,
    PlannedExpenseItem,
    Profile,
    RecurringExpense,
)


def planned_expense(expense_id: str, amount, due_date=None, **kwargs) -> PlannedExpenseItem:
    return PlannedExpenseItem(
        id=expense_id,
        name=expense_id,
        planned_amount=amount,
        category_id="general",
        due_date=due_date,
        **kwargs,
    )


def recurring(expense_id: str, amount, next_due_date=None, due_date=None) -> RecurringExpense:
    return RecurringExpense(
        id=expense_id,
        name=expense_id,
        amount=amount,
        category_id="bills",
        due_date=due_date,
        next_due_date=next_due_date,
    )


def assert_lists_agree(snapshot: FinancialSnapshot, key: str) -> None:
    month = snapshot.budget_months[key]
    assert set(month.planned_ids) == set(month.planned_expense_ids)


@pytest.fixture
def empty_snapshot() -> FinancialSnapshot:
    return FinancialSnapshot(profile=Profile(currency=Currency.INR))


@pytest.fixture
def ledger(empty_snapshot) -> FinancialSnapshot:
    """January and March each own one planned expense."""
    snapshot = add_planned_expense(empty_snapshot, planned_expense("jan", 100, "2024-01-10", actual_amount=40))
    return add_planned_expense(snapshot, planned_expense("mar", 300, "2024-03-02"))


class TestMonthStore:
    """Tests for ensure and recompute."""

    def test_ensure_creates_month_in_profile_currency(self):
        """Test lazy month creation."""
        snapshot = FinancialSnapshot(profile=Profile(currency=Currency.GBP))
        result = ensure_budget_month(snapshot, "2024-04")
        assert result.budget_months["2024-04"].currency == Currency.GBP
        assert result.budget_months["2024-04"].month == "2024-04"

    def test_ensure_existing_is_noop(self, ledger):
        """Test that ensuring an existing month changes nothing."""
        assert ensure_budget_month(ledger, "2024-01") is ledger

    def test_months_kept_in_key_order(self, empty_snapshot):
        """Test that months are stored sorted by key."""
        snapshot = ensure_budget_month(empty_snapshot, "2024-05")
        snapshot = ensure_budget_month(snapshot, "2024-02")
        assert list(snapshot.budget_months) == ["2024-02", "2024-05"]

    def test_recompute_missing_month_is_noop(self, empty_snapshot):
        """Test recompute on a month that doesn't exist."""
        assert recompute_budget_month(empty_snapshot, "2024-01") is empty_snapshot

    def test_recompute_refreshes_stale_totals(self, ledger):
        """Test that recompute replaces hand-edited totals."""
        month = ledger.budget_months["2024-01"]
        stale = month.model_copy(update={"totals": month.totals.model_copy(update={"planned": Decimal("9999")})})
        snapshot = ledger.model_copy(update={"budget_months": {**ledger.budget_months, "2024-01": stale}})

        result = recompute_budget_month(snapshot, "2024-01")
        assert result.budget_months["2024-01"].totals.planned == 100


class TestPlannedExpenses:
    """Tests for planned expense mutations."""

    def test_add_files_under_due_month(self, empty_snapshot):
        """Test that a new expense lands in its due month with totals."""
        result = add_planned_expense(empty_snapshot, planned_expense("tv", 800, "2024-02-20"))

        month = result.budget_months["2024-02"]
        assert month.planned_expense_ids == ["tv"]
        assert month.planned_ids == ["tv"]
        assert month.totals.planned == 800
        assert month.totals.difference == 800

    def test_add_without_due_date_uses_created_at(self, empty_snapshot):
        """Test the created_at fallback."""
        expense = planned_expense("gift", 50, created_at="2023-11-30T08:00:00+00:00")
        result = add_planned_expense(empty_snapshot, expense)
        assert result.budget_months["2023-11"].planned_expense_ids == ["gift"]

    def test_blank_due_date_is_not_treated_as_missing(self, empty_snapshot):
        """Test that an empty due date maps to the current month, not to created_at."""
        from ledger.engine import current_month_key

        expense = planned_expense("blank", 50, "", created_at="2023-11-30T08:00:00+00:00")
        result = add_planned_expense(empty_snapshot, expense)

        assert result.budget_months[current_month_key()].planned_expense_ids == ["blank"]
        assert "2023-11" not in result.budget_months

    def test_add_does_not_mutate_input(self, empty_snapshot):
        """Test that the input snapshot is left untouched."""
        add_planned_expense(empty_snapshot, planned_expense("tv", 800, "2024-02-20"))
        assert empty_snapshot.budget_months == {}

    def test_re_adding_existing_id_moves_it(self, ledger):
        """Test that an id is never owned by two months."""
        result = add_planned_expense(ledger, planned_expense("jan", 100, "2024-02-01"))
        assert "jan" not in result.budget_months["2024-01"].planned_expense_ids
        assert result.budget_months["2024-02"].planned_expense_ids == ["jan"]

    def test_update_within_month_replaces_in_place(self, empty_snapshot):
        """Test that an update keeps the expense's position."""
        snapshot = add_planned_expense(empty_snapshot, planned_expense("a", 10, "2024-01-01"))
        snapshot = add_planned_expense(snapshot, planned_expense("b", 20, "2024-01-02"))

        result = update_planned_expense(snapshot, "a", {"planned_amount": Decimal("15")})

        month = result.budget_months["2024-01"]
        assert month.planned_expense_ids == ["a", "b"]
        assert month.planned_items[0].planned_amount == 15
        assert month.totals.planned == 35

    def test_update_moves_between_months(self, ledger):
        """Test that changing the due date moves the expense and recomputes both months."""
        march_before = ledger.budget_months["2024-03"]

        result = update_planned_expense(ledger, "jan", {"due_date": "2024-02-14"})

        january = result.budget_months["2024-01"]
        february = result.budget_months["2024-02"]
        assert "jan" not in january.planned_expense_ids
        assert "jan" not in january.planned_ids
        assert february.planned_expense_ids == ["jan"]
        assert february.planned_ids == ["jan"]
        assert january.totals.planned == 0
        assert january.totals.actual == 0
        assert february.totals.planned == 100
        assert february.totals.actual == 40
        assert result.budget_months["2024-03"] is march_before

    def test_update_never_changes_id(self, ledger):
        """Test that an id in the patch is ignored."""
        result = update_planned_expense(ledger, "jan", {"id": "other", "name": "Renamed"})
        assert result.budget_months["2024-01"].planned_expenses[0].id == "jan"
        assert result.budget_months["2024-01"].planned_items[0].name == "Renamed"

    def test_update_unknown_id_is_noop(self, ledger):
        """Test that an unknown id returns the snapshot unchanged."""
        result = update_planned_expense(ledger, "missing", {"planned_amount": 1})
        assert result is ledger
        assert result == ledger

    def test_delete(self, ledger):
        """Test that delete removes from both lists and recomputes."""
        result = delete_planned_expense(ledger, "mar")
        month = result.budget_months["2024-03"]
        assert month.planned_expenses == []
        assert month.planned_items == []
        assert month.totals.planned == 0

    def test_delete_unknown_id_is_noop(self, ledger):
        """Test that deleting an unknown id returns the snapshot unchanged."""
        result = delete_planned_expense(ledger, "missing")
        assert result is ledger
        assert result == ledger

    def test_lists_agree_after_every_mutation(self, ledger):
        """Test the dual-list invariant through a sequence of writes."""
        snapshot = add_planned_expense(ledger, planned_expense("x", 5, "2024-03-20"))
        for key in snapshot.budget_months:
            assert_lists_agree(snapshot, key)

        snapshot = update_planned_expense(snapshot, "x", {"due_date": "2024-01-20"})
        for key in snapshot.budget_months:
            assert_lists_agree(snapshot, key)

        snapshot = delete_planned_expense(snapshot, "jan")
        for key in snapshot.budget_months:
            assert_lists_agree(snapshot, key)

    def test_malformed_due_date_lands_in_current_month(self, empty_snapshot):
        """Test that a bad due date degrades instead of failing."""
        from ledger.engine import current_month_key

        result = add_planned_expense(empty_snapshot, planned_expense("odd", 5, "someday"))
        assert result.budget_months[current_month_key()].planned_expense_ids == ["odd"]


class TestRecurringExpenses:
    """Tests for recurring expense mutations."""

    def test_add_allocates_to_due_month(self, empty_snapshot):
        """Test that the allocation is rebuilt in the month of the next due date."""
        result = add_recurring_expense(empty_snapshot, recurring("rent", 1200, next_due_date="2024-04-01"))

        assert [e.id for e in result.recurring_expenses] == ["rent"]
        allocations = result.budget_months["2024-04"].recurring_allocations
        assert len(allocations) == 1
        assert allocations[0].recurring_expense_id == "rent"
        assert allocations[0].start_month == allocations[0].end_month == "2024-04"
        assert allocations[0].amount == 1200

    def test_allocations_rebuilt_not_appended(self, empty_snapshot):
        """Test that recompute never duplicates allocations."""
        snapshot = add_recurring_expense(empty_snapshot, recurring("rent", 1200, due_date="2024-04-01"))
        snapshot = add_recurring_expense(snapshot, recurring("net", 40, due_date="2024-04-09"))
        snapshot = recompute_budget_month(snapshot, "2024-04")

        ids = [a.recurring_expense_id for a in snapshot.budget_months["2024-04"].recurring_allocations]
        assert ids == ["rent", "net"]

    def test_update_moves_allocation(self, empty_snapshot):
        """Test that both the old and new months are recomputed."""
        snapshot = add_recurring_expense(empty_snapshot, recurring("rent", 1200, next_due_date="2024-04-01"))

        result = update_recurring_expense(snapshot, "rent", {"next_due_date": "2024-05-01"})

        assert result.budget_months["2024-04"].recurring_allocations == []
        assert result.budget_months["2024-05"].recurring_allocations[0].recurring_expense_id == "rent"

    def test_update_unknown_is_noop(self, empty_snapshot):
        """Test updating a recurring expense that doesn't exist."""
        assert update_recurring_expense(empty_snapshot, "nope", {"amount": 1}) is empty_snapshot

    def test_delete(self, empty_snapshot):
        """Test that delete drops the allocation from its month."""
        snapshot = add_recurring_expense(empty_snapshot, recurring("rent", 1200, due_date="2024-04-01"))
        result = delete_recurring_expense(snapshot, "rent")

        assert result.recurring_expenses == []
        assert result.budget_months["2024-04"].recurring_allocations == []

    def test_delete_unknown_is_noop(self, empty_snapshot):
        """Test deleting a recurring expense that doesn't exist."""
        assert delete_recurring_expense(empty_snapshot, "nope") is empty_snapshot

    def test_re_adding_same_id_replaces(self, empty_snapshot):
        """Test that adding a known id updates instead of duplicating."""
        snapshot = add_recurring_expense(empty_snapshot, recurring("rent", 1200, due_date="2024-04-01"))
        result = add_recurring_expense(snapshot, recurring("rent", 1300, due_date="2024-04-01"))

        assert len(result.recurring_expenses) == 1
        assert result.recurring_expenses[0].amount == 1300
        assert result.budget_months["2024-04"].recurring_allocations[0].amount == 1300


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
