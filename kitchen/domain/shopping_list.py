"""The shopping list: ingredients still to buy, grouped per recipe.

Invariants:

- At most one entry per recipe name (exact match).
- No entry is ever empty. Removing the last item drops the entry.

Every mutation writes the whole document back to the store before returning.
"""

import logging

from pydantic import TypeAdapter

from kitchen.domain.models import Ingredient, ShoppingListItem
from kitchen.domain.storage import KeyValueStore


logger = logging.getLogger(__name__)


ENTRIES = TypeAdapter(list[ShoppingListItem])


class ShoppingList:
    def __init__(
        self,
        *,
        store: KeyValueStore,
        key: str,
        entries: list[ShoppingListItem] | None = None,
    ) -> None:
        self.store = store
        self.key = key
        self.entries: list[ShoppingListItem] = [] if entries is None else entries

    @classmethod
    async def load(cls, store: KeyValueStore, key: str) -> "ShoppingList":
        try:
            raw = await store.get(key)
            entries = [] if raw is None else ENTRIES.validate_json(raw)
        except Exception:
            logger.exception("Could not load shopping list %s", key)
            entries = []
        return cls(store=store, key=key, entries=entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def get(self, recipe_name: str) -> ShoppingListItem | None:
        for entry in self.entries:
            if entry.recipe_name == recipe_name:
                return entry
        return None

    def total_item_count(self) -> int:
        return sum(len(entry.items) for entry in self.entries)

    async def add_to_list(
        self,
        recipe_name: str,
        new_items: list[Ingredient],
        servings: str,
    ) -> None:
        existing = self.get(recipe_name)
        if existing is None:
            self.entries.append(
                ShoppingListItem(
                    recipe_name=recipe_name,
                    items=list(new_items),
                    servings=servings,
                )
            )
        else:
            # Servings stay as first written.
            have = {item.name.lower() for item in existing.items}
            existing.items.extend(
                item for item in new_items if item.name.lower() not in have
            )
        await self.save()

    async def remove_item(self, recipe_name: str, item: Ingredient) -> None:
        # Exact name match, unlike the case-insensitive dedup in add_to_list.
        for entry in self.entries:
            if entry.recipe_name == recipe_name:
                entry.items = [i for i in entry.items if i.name != item.name]
        self.entries = [entry for entry in self.entries if entry.items]
        await self.save()

    async def remove_recipe(self, recipe_name: str) -> None:
        self.entries = [e for e in self.entries if e.recipe_name != recipe_name]
        await self.save()

    async def clear(self) -> None:
        self.entries = []
        try:
            await self.store.delete(self.key)
        except Exception:
            logger.exception("Could not delete shopping list %s", self.key)

    async def save(self) -> None:
        value = ENTRIES.dump_json(self.entries, by_alias=True).decode("utf-8")
        try:
            await self.store.set(self.key, value)
        except Exception:
            logger.exception("Could not save shopping list %s", self.key)

    def to_list(self) -> list[dict[str, object]]:
        return [entry.to_dict() for entry in self.entries]
