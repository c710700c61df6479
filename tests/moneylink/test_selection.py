# ruff: noqa: S101
"""Tests for bank and service selection state."""

import pytest

from moneylink.errors import SelectionValidationError
from moneylink.linking.schemas import SyncCategory
from moneylink.linking.selection import BankSelection, ServiceSelection


class TestBankSelection:
    """Tests for BankSelection."""

    @pytest.mark.unit
    def test_toggle_adds_and_removes(self) -> None:
        selection = BankSelection()
        selection.toggle("acc1")
        selection.toggle("acc2")
        selection.toggle("acc1")

        assert selection.ids == ["acc2"]
        assert "acc1" not in selection

    @pytest.mark.unit
    def test_toggle_all_fills_then_clears(self) -> None:
        """Toggle-all flips between the full list and empty."""
        selection = BankSelection(["acc1"])
        all_ids = ["acc1", "acc2", "acc3"]

        selection.toggle_all(all_ids)
        assert selection.ids == all_ids
        assert selection.is_all_selected(all_ids)

        selection.toggle_all(all_ids)
        assert selection.ids == []

    @pytest.mark.unit
    def test_toggle_all_uses_length_only(self) -> None:
        """A same-length selection of stale ids counts as complete and clears."""
        selection = BankSelection(["old1", "old2"])
        selection.toggle_all(["new1", "new2"])

        assert selection.ids == []

    @pytest.mark.unit
    def test_validate_requires_an_account(self) -> None:
        with pytest.raises(SelectionValidationError) as exc_info:
            BankSelection().validate()

        assert exc_info.value.title == "No Accounts Selected"
        assert exc_info.value.message == "Please select at least one account to import."

    @pytest.mark.unit
    def test_duplicates_are_collapsed(self) -> None:
        assert BankSelection(["a", "b", "a"]).ids == ["a", "b"]


class TestServiceSelection:
    """Tests for ServiceSelection."""

    @pytest.mark.unit
    def test_default_categories(self) -> None:
        """Accounts, transactions, invoices and bills are on by default."""
        selection = ServiceSelection()

        assert selection.enabled_categories == [
            SyncCategory.ACCOUNTS,
            SyncCategory.TRANSACTIONS,
            SyncCategory.INVOICES,
            SyncCategory.BILLS,
        ]
        assert not selection[SyncCategory.CUSTOMERS].enabled
        assert not selection[SyncCategory.VENDORS].enabled

    @pytest.mark.unit
    def test_preferences_payload(self) -> None:
        """Empty or disabled restrictions serialize as None."""
        selection = ServiceSelection(enabled={SyncCategory.ACCOUNTS, SyncCategory.INVOICES})
        selection.toggle_item(SyncCategory.INVOICES, "101")
        selection.toggle_item(SyncCategory.VENDORS, "v1")

        payload = selection.to_preferences()

        assert payload["syncAccounts"] is True
        assert payload["syncInvoices"] is True
        assert payload["syncVendors"] is False
        assert payload["selectedAccountIds"] is None
        assert payload["selectedInvoiceIds"] == ["101"]
        assert payload["selectedVendorIds"] is None
        assert len(payload) == 2 * len(SyncCategory)

    @pytest.mark.unit
    def test_sync_request_contains_flags_only(self) -> None:
        request = ServiceSelection(enabled={SyncCategory.BILLS}).to_sync_request()

        assert request == {
            "syncAccounts": False,
            "syncTransactions": False,
            "syncInvoices": False,
            "syncBills": True,
            "syncCustomers": False,
            "syncVendors": False,
        }

    @pytest.mark.unit
    def test_toggle_select_all_per_category(self) -> None:
        selection = ServiceSelection()
        selection.toggle_select_all(SyncCategory.ACCOUNTS, ["a1", "a2"])

        assert selection[SyncCategory.ACCOUNTS].selected_ids == ["a1", "a2"]
        assert selection.is_all_selected(SyncCategory.ACCOUNTS, ["a1", "a2"])
        assert selection[SyncCategory.TRANSACTIONS].selected_ids == []

        selection.toggle_select_all(SyncCategory.ACCOUNTS, ["a1", "a2"])
        assert selection[SyncCategory.ACCOUNTS].selected_ids == []

    @pytest.mark.unit
    def test_validate_requires_a_category(self) -> None:
        selection = ServiceSelection(enabled=set())
        with pytest.raises(SelectionValidationError, match="at least one data type"):
            selection.validate()

        selection.toggle_category(SyncCategory.VENDORS)
        selection.validate()
