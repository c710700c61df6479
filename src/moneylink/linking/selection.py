"""Selection state for the select step.

BANK providers select a flat set of account ids. SERVICE providers enable
whole data categories and may further restrict each enabled category to a
subset of item ids; an empty subset means "every item in the category".
"""

from dataclasses import dataclass, field
from typing import Any

from ..errors import SelectionValidationError
from .schemas import DEFAULT_ENABLED_CATEGORIES, SyncCategory


class BankSelection:
    """Selected bank account ids, kept in the order they were chosen."""

    def __init__(self, account_ids: list[str] | None = None):
        self._ids: list[str] = list(dict.fromkeys(account_ids or []))

    def __repr__(self) -> str:
        return f"BankSelection({self._ids!r})"

    def __contains__(self, account_id: object) -> bool:
        return account_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    @property
    def ids(self) -> list[str]:
        return list(self._ids)

    def toggle(self, account_id: str) -> None:
        """Flip membership of one account."""
        if account_id in self._ids:
            self._ids.remove(account_id)
        else:
            self._ids.append(account_id)

    def toggle_all(self, all_ids: list[str]) -> None:
        """Select everything, or clear when the selection is already complete.

        Completeness is judged by length only, so a selection gathered against
        an older preview list flips to the new full list rather than clearing.
        """
        self._ids = [] if len(self._ids) == len(all_ids) else list(dict.fromkeys(all_ids))

    def is_all_selected(self, all_ids: list[str]) -> bool:
        return len(self._ids) == len(all_ids) and len(all_ids) > 0

    def clear(self) -> None:
        self._ids = []

    def validate(self) -> None:
        """Raise unless at least one account is selected."""
        if not self._ids:
            raise SelectionValidationError(
                "Please select at least one account to import.",
                title="No Accounts Selected",
            )


@dataclass
class CategorySelection:
    """Enable flag and optional item restriction for one service category."""

    enabled: bool = False
    selected_ids: list[str] = field(default_factory=list)


class ServiceSelection:
    """Per-category sync preferences for an accounting service."""

    def __init__(self, enabled: set[SyncCategory] | frozenset[SyncCategory] | None = None):
        if enabled is None:
            enabled = DEFAULT_ENABLED_CATEGORIES
        self._categories: dict[SyncCategory, CategorySelection] = {
            category: CategorySelection(enabled=category in enabled)
            for category in SyncCategory
        }

    def __repr__(self) -> str:
        enabled = ", ".join(c.value for c in self.enabled_categories)
        return f"ServiceSelection(enabled=[{enabled}])"

    def __getitem__(self, category: SyncCategory) -> CategorySelection:
        return self._categories[category]

    @property
    def enabled_categories(self) -> list[SyncCategory]:
        return [c for c, sel in self._categories.items() if sel.enabled]

    def toggle_category(self, category: SyncCategory) -> None:
        selection = self._categories[category]
        selection.enabled = not selection.enabled

    def toggle_item(self, category: SyncCategory, item_id: str) -> None:
        """Flip membership of one item in the category's restriction."""
        ids = self._categories[category].selected_ids
        if item_id in ids:
            ids.remove(item_id)
        else:
            ids.append(item_id)

    def toggle_select_all(self, category: SyncCategory, all_ids: list[str]) -> None:
        """Same length-based empty/full toggle as :meth:`BankSelection.toggle_all`."""
        selection = self._categories[category]
        if len(selection.selected_ids) == len(all_ids):
            selection.selected_ids = []
        else:
            selection.selected_ids = list(dict.fromkeys(all_ids))

    def is_all_selected(self, category: SyncCategory, all_ids: list[str]) -> bool:
        ids = self._categories[category].selected_ids
        return len(ids) == len(all_ids) and len(all_ids) > 0

    def validate(self) -> None:
        """Raise unless at least one category is enabled."""
        if not self.enabled_categories:
            raise SelectionValidationError(
                "Please enable at least one data type to sync.",
                title="No Data Selected",
            )

    def to_preferences(self) -> dict[str, Any]:
        """Serialize for ``PUT /integrations/{provider}/sync-preferences``.

        Selected ids are sent only for enabled categories with a non-empty
        restriction; otherwise ``None`` means "no restriction".
        """
        payload: dict[str, Any] = {}
        for category, selection in self._categories.items():
            payload[category.sync_key] = selection.enabled
        for category, selection in self._categories.items():
            restricted = selection.enabled and bool(selection.selected_ids)
            payload[category.selected_ids_key] = (
                list(selection.selected_ids) if restricted else None
            )
        return payload

    def to_sync_request(self) -> dict[str, bool]:
        """Category flags sent with the start-sync mutation."""
        return {category.sync_key: sel.enabled for category, sel in self._categories.items()}
