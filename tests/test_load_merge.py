"""
Tests for snapshot migration on load and for merging two snapshots.
"""

import pytest
from decimal import Decimal

from ledger.engine import load_snapshot, merge_snapshots
from ledger.models.budget import Currency


NOW = "2024-06-15T09:00:00+00:00"


def expense(expense_id: str, amount, due_date: str, updated_at: str = "2024-01-01T00:00:00+00:00", **extra) -> dict:
    return {
        "id": expense_id,
        "name": expense_id.title(),
        "plannedAmount": amount,
        "categoryId": "general",
        "dueDate": due_date,
        "createdAt": "2024-01-01T00:00:00+00:00",
        "updatedAt": updated_at,
        **extra,
    }


class TestLoadSnapshot:
    """Tests for load_snapshot."""

    def test_empty_input_gets_current_month(self):
        """Test that nothing stored still yields one month to write into."""
        snapshot = load_snapshot(None, now=NOW)
        assert list(snapshot.budget_months) == ["2024-06"]
        assert snapshot.budget_months["2024-06"].currency == Currency.INR

    def test_empty_month_uses_profile_currency(self):
        """Test the profile currency for a freshly created month."""
        snapshot = load_snapshot({"profile": {"currency": "EUR"}}, now=NOW)
        assert snapshot.budget_months["2024-06"].currency == Currency.EUR

    def test_legacy_top_level_list_becomes_months(self):
        """Test the oldest shape: planned expenses without any months."""
        raw = {
            "plannedExpenses": [
                expense("rent", 1000, "2024-02-01", actualAmount=1000),
                expense("trip", 500, "2024-03-20"),
            ],
        }
        snapshot = load_snapshot(raw, now=NOW)

        assert list(snapshot.budget_months) == ["2024-02", "2024-03"]
        february = snapshot.budget_months["2024-02"]
        assert february.planned_expense_ids == ["rent"]
        assert february.planned_ids == ["rent"]
        assert february.totals.planned == 1000
        assert february.totals.actual == 1000
        assert february.totals.difference == 0

    def test_list_payload(self):
        """Test months stored as a list instead of a mapping."""
        raw = {
            "budgetMonths": [
                {"month": "2024-03", "plannedExpenses": [expense("b", 20, "2024-03-05")]},
                {"month": "2024-01", "plannedExpenses": [expense("a", 10, "2024-01-05")]},
            ],
        }
        snapshot = load_snapshot(raw, now=NOW)
        assert list(snapshot.budget_months) == ["2024-01", "2024-03"]
        assert snapshot.budget_months["2024-03"].planned_ids == ["b"]

    def test_invalid_month_key_falls_back(self):
        """Test that a corrupt key lands in the month of `now`."""
        raw = {"budgetMonths": {"not-a-month": {"plannedExpenses": [expense("a", 10, "2024-01-05")]}}}
        snapshot = load_snapshot(raw, now=NOW)
        assert list(snapshot.budget_months) == ["2024-06"]
        assert snapshot.budget_months["2024-06"].month == "2024-06"

    def test_snake_case_keys_accepted(self):
        """Test payloads written by the Python side before aliases."""
        raw = {"budget_months": {"2024-01": {"planned_expenses": [expense("a", 10, "2024-01-05")]}}}
        snapshot = load_snapshot(raw, now=NOW)
        assert snapshot.budget_months["2024-01"].planned_ids == ["a"]

    def test_planned_items_without_legacy_copy_are_kept(self):
        """Test that modern-only entries get a legacy twin instead of being dropped."""
        raw = {
            "budgetMonths": {
                "2024-01": {
                    "currency": "USD",
                    "plannedItems": [
                        {"id": "m", "categoryId": "c", "name": "Modern", "plannedAmount": 75, "currency": "USD"},
                    ],
                },
            },
        }
        snapshot = load_snapshot(raw, now=NOW)
        month = snapshot.budget_months["2024-01"]
        assert month.planned_expense_ids == ["m"]
        assert month.planned_ids == ["m"]
        assert month.totals.planned == 75

    def test_stale_totals_recomputed(self):
        """Test that persisted totals are refreshed on load."""
        raw = {
            "budgetMonths": {
                "2024-01": {
                    "plannedExpenses": [expense("a", 10, "2024-01-05")],
                    "totals": {"planned": 999, "actual": 0, "difference": 999},
                },
            },
        }
        snapshot = load_snapshot(raw, now=NOW)
        assert snapshot.budget_months["2024-01"].totals.planned == 10

    def test_unknown_fields_survive(self):
        """Test that other features' data passes through."""
        snapshot = load_snapshot({"accounts": [{"id": "acc-1"}]}, now=NOW)
        assert snapshot.to_wire()["accounts"] == [{"id": "acc-1"}]

    def test_reload_is_stable(self):
        """Test that loading an already migrated snapshot changes nothing."""
        raw = {
            "profile": {"currency": "GBP"},
            "plannedExpenses": [expense("rent", 1000, "2024-02-01", actualAmount=950)],
            "recurringExpenses": [
                {"id": "gym", "name": "Gym", "amount": 30, "categoryId": "health", "dueDate": "2024-02-10"},
            ],
        }
        first = load_snapshot(raw, now=NOW)
        second = load_snapshot(first.to_wire(), now=NOW)

        assert second.budget_months == first.budget_months
        assert second.recurring_expenses == first.recurring_expenses

    def test_partial_entries_do_not_fail_the_load(self):
        """Test that unreadable entries are dropped and the rest of the snapshot loads."""
        raw = {
            "profile": {"currency": "JPY", "name": "Home"},
            "transactions": [
                {"id": "t1", "accountId": "acc", "amount": -10, "currency": "JPY", "date": "2024-01-02"},
                {"id": "t2", "amount": -10},
            ],
            "budgetMonths": {
                "2024-01": {
                    "currency": "USD",
                    "actuals": [{"id": "a", "amount": 9}, {"id": "b"}],
                },
                "2024-02": "not a month",
            },
        }
        snapshot = load_snapshot(raw, now=NOW)

        assert snapshot.profile.currency == Currency.INR
        assert snapshot.profile.name == "Home"
        assert [(t.id, t.currency) for t in snapshot.transactions] == [("t1", None)]
        assert list(snapshot.budget_months) == ["2024-01"]
        january = snapshot.budget_months["2024-01"]
        assert [(a.id, a.currency) for a in january.actuals] == [("a", Currency.USD)]
        assert january.totals.actual == 9

    def test_expense_in_two_months_keeps_newest_copy(self):
        """Test that an id stored in two months ends up owned by one."""
        raw = {
            "budgetMonths": {
                "2024-01": {"plannedExpenses": [expense("p", 10, "2024-01-05")]},
                "2024-02": {
                    "plannedExpenses": [
                        expense("p", 25, "2024-02-05", updated_at="2024-02-01T00:00:00+00:00"),
                    ],
                },
            },
        }
        snapshot = load_snapshot(raw, now=NOW)

        january = snapshot.budget_months["2024-01"]
        february = snapshot.budget_months["2024-02"]
        assert january.planned_expense_ids == []
        assert january.planned_ids == []
        assert january.totals.planned == 0
        assert february.planned_expense_ids == ["p"]
        assert february.planned_ids == ["p"]
        assert february.totals.planned == 25

    def test_duplicate_planned_item_dropped_with_its_expense(self):
        """Test that a stale modern copy is not carried back over on reconcile."""
        stale = {"id": "p", "name": "P", "plannedAmount": 10, "categoryId": "general", "currency": "INR"}
        raw = {
            "budgetMonths": {
                "2024-01": {
                    "plannedItems": [stale],
                    "plannedExpenses": [expense("p", 10, "2024-01-05")],
                },
                "2024-02": {
                    "plannedExpenses": [
                        expense("p", 25, "2024-02-05", updated_at="2024-02-01T00:00:00+00:00"),
                    ],
                },
            },
        }
        snapshot = load_snapshot(raw, now=NOW)

        assert snapshot.budget_months["2024-01"].planned_ids == []
        assert snapshot.budget_months["2024-02"].planned_ids == ["p"]

    def test_duplicate_with_equal_timestamps_stays_in_earlier_month(self):
        """Test the tie-break for two identical copies."""
        raw = {
            "budgetMonths": {
                "2024-03": {"plannedExpenses": [expense("p", 10, "2024-03-05")]},
                "2024-01": {"plannedExpenses": [expense("p", 10, "2024-01-05")]},
            },
        }
        snapshot = load_snapshot(raw, now=NOW)

        assert snapshot.budget_months["2024-01"].planned_expense_ids == ["p"]
        assert snapshot.budget_months["2024-03"].planned_expense_ids == []


class TestMergeSnapshots:
    """Tests for merge_snapshots."""

    def test_union_of_months(self):
        """Test that months from both sides are kept."""
        local = load_snapshot({"plannedExpenses": [expense("a", 10, "2024-01-05")]}, now=NOW)
        remote = load_snapshot({"plannedExpenses": [expense("b", 20, "2024-02-05")]}, now=NOW)

        merged = merge_snapshots(local, remote)

        assert list(merged.budget_months) == ["2024-01", "2024-02"]
        assert merged.budget_months["2024-01"].planned_ids == ["a"]
        assert merged.budget_months["2024-02"].planned_ids == ["b"]

    def test_same_month_entries_unioned_by_id(self):
        """Test that the remote copy of a shared id wins."""
        local = load_snapshot(
            {"plannedExpenses": [expense("a", 10, "2024-01-05"), expense("c", 5, "2024-01-09")]},
            now=NOW,
        )
        remote = load_snapshot(
            {"plannedExpenses": [expense("a", 15, "2024-01-05", updated_at="2024-01-02T00:00:00+00:00")]},
            now=NOW,
        )

        merged = merge_snapshots(local, remote)

        month = merged.budget_months["2024-01"]
        assert sorted(month.planned_ids) == ["a", "c"]
        assert set(month.planned_ids) == set(month.planned_expense_ids)
        assert month.totals.planned == Decimal("20")

    def test_moved_expense_lives_in_one_month(self):
        """Test that a move made on one device doesn't duplicate the expense."""
        local = load_snapshot({"plannedExpenses": [expense("x", 10, "2024-01-05")]}, now=NOW)
        remote = load_snapshot(
            {"plannedExpenses": [expense("x", 10, "2024-02-05", updated_at="2024-03-01T00:00:00+00:00")]},
            now=NOW,
        )

        merged = merge_snapshots(local, remote)

        assert merged.budget_months["2024-01"].planned_ids == []
        assert merged.budget_months["2024-01"].totals.planned == 0
        assert merged.budget_months["2024-02"].planned_ids == ["x"]

    def test_recurring_newer_wins(self):
        """Test that recurring expenses resolve by updated_at."""
        gym = {"id": "gym", "name": "Gym", "categoryId": "health", "dueDate": "2024-02-10"}
        local = load_snapshot(
            {"recurringExpenses": [{**gym, "amount": 30, "updatedAt": "2024-02-01T00:00:00+00:00"}]},
            now=NOW,
        )
        remote = load_snapshot(
            {"recurringExpenses": [{**gym, "amount": 35, "updatedAt": "2024-01-01T00:00:00+00:00"}]},
            now=NOW,
        )

        merged = merge_snapshots(local, remote)

        assert [e.amount for e in merged.recurring_expenses] == [30]
        allocations = merged.budget_months["2024-02"].recurring_allocations
        assert [a.amount for a in allocations] == [30]

    def test_updated_at_compared_as_instants(self):
        """Test that timestamp spelling doesn't decide which copy wins."""
        gym = {"id": "gym", "name": "Gym", "categoryId": "health", "dueDate": "2024-02-10"}
        # 10:00+02:00 is 08:00 UTC, an hour before the remote edit
        local = load_snapshot(
            {"recurringExpenses": [{**gym, "amount": 30, "updatedAt": "2024-01-01T10:00:00+02:00"}]},
            now=NOW,
        )
        remote = load_snapshot(
            {"recurringExpenses": [{**gym, "amount": 35, "updatedAt": "2024-01-01T09:00:00Z"}]},
            now=NOW,
        )

        merged = merge_snapshots(local, remote)

        assert [e.amount for e in merged.recurring_expenses] == [35]

    def test_fractional_seconds_decide_the_newer_copy(self):
        """Test that "Z" vs "+00:00" with extra precision still orders by time."""
        local = load_snapshot(
            {"plannedExpenses": [expense("x", 10, "2024-01-05", updated_at="2024-01-01T09:00:00Z")]},
            now=NOW,
        )
        remote = load_snapshot(
            {"plannedExpenses": [expense("x", 10, "2024-02-05", updated_at="2024-01-01T09:00:00.500000+00:00")]},
            now=NOW,
        )

        merged = merge_snapshots(local, remote)

        assert merged.budget_months["2024-01"].planned_ids == []
        assert merged.budget_months["2024-02"].planned_ids == ["x"]

    def test_revision_is_max(self):
        """Test that the merged revision never goes backwards."""
        local = load_snapshot({"revision": 4}, now=NOW)
        remote = load_snapshot({"revision": 9}, now=NOW)
        assert merge_snapshots(local, remote).revision == 9


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
