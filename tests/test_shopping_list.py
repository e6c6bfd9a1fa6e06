import json

import pytest

from kitchen.domain.models import Ingredient
from kitchen.domain.shopping_list import ShoppingList
from kitchen.domain.storage import MemoryStore


KEY = "cookingAppShoppingList_abc"


def ing(name: str, quantity: str = "1") -> Ingredient:
    return Ingredient(name=name, quantity=quantity)


def names(shopping: ShoppingList, recipe_name: str) -> list[str]:
    entry = shopping.get(recipe_name)
    assert entry is not None
    return [i.name for i in entry.items]


def assert_count(shopping: ShoppingList) -> None:
    assert shopping.total_item_count() == sum(len(e.items) for e in shopping)


@pytest.mark.asyncio
async def test_add_new_recipe_creates_one_entry(store: MemoryStore) -> None:
    shopping = ShoppingList(store=store, key=KEY)
    await shopping.add_to_list("Omelette", [ing("egg", "3"), ing("butter")], "1")
    assert len(shopping) == 1
    assert names(shopping, "Omelette") == ["egg", "butter"]
    assert_count(shopping)


@pytest.mark.asyncio
async def test_merge_is_case_insensitive_and_keeps_servings(store: MemoryStore) -> None:
    shopping = ShoppingList(store=store, key=KEY)
    await shopping.add_to_list(
        "Tomato Soup", [ing("tomato", "3"), ing("salt", "1tsp")], "4 servings"
    )
    assert len(shopping) == 1
    assert shopping.total_item_count() == 2

    await shopping.add_to_list(
        "Tomato Soup", [ing("Tomato", "2"), ing("basil", "5 leaves")], "2 servings"
    )
    entry = shopping.get("Tomato Soup")
    assert entry is not None
    assert [(i.name, i.quantity) for i in entry.items] == [
        ("tomato", "3"),
        ("salt", "1tsp"),
        ("basil", "5 leaves"),
    ]
    assert entry.servings == "4 servings"
    assert len(shopping) == 1
    assert_count(shopping)


@pytest.mark.asyncio
async def test_adding_same_items_twice_is_a_no_op(store: MemoryStore) -> None:
    shopping = ShoppingList(store=store, key=KEY)
    items = [ing("rice"), ing("peas")]
    await shopping.add_to_list("Risotto", items, "2")
    await shopping.add_to_list("Risotto", items, "2")
    assert names(shopping, "Risotto") == ["rice", "peas"]


@pytest.mark.asyncio
async def test_new_entries_keep_insertion_order(store: MemoryStore) -> None:
    shopping = ShoppingList(store=store, key=KEY)
    for name in ("B", "A", "C"):
        await shopping.add_to_list(name, [ing("x")], "1")
    assert [e.recipe_name for e in shopping] == ["B", "A", "C"]


@pytest.mark.asyncio
async def test_recipe_names_match_exactly(store: MemoryStore) -> None:
    shopping = ShoppingList(store=store, key=KEY)
    await shopping.add_to_list("Pasta", [ing("flour")], "2")
    await shopping.add_to_list("pasta", [ing("flour")], "2")
    assert len(shopping) == 2


@pytest.mark.asyncio
async def test_remove_item_leaves_others(store: MemoryStore) -> None:
    shopping = ShoppingList(store=store, key=KEY)
    await shopping.add_to_list("Salad", [ing("lettuce"), ing("feta"), ing("olive")], "2")
    await shopping.remove_item("Salad", ing("feta"))
    assert names(shopping, "Salad") == ["lettuce", "olive"]
    assert_count(shopping)


@pytest.mark.asyncio
async def test_remove_item_is_case_sensitive(store: MemoryStore) -> None:
    shopping = ShoppingList(store=store, key=KEY)
    await shopping.add_to_list("Salad", [ing("Feta")], "2")
    await shopping.remove_item("Salad", ing("feta"))
    assert names(shopping, "Salad") == ["Feta"]


@pytest.mark.asyncio
async def test_removing_last_item_drops_entry(store: MemoryStore) -> None:
    shopping = ShoppingList(store=store, key=KEY)
    await shopping.add_to_list(
        "Tomato Soup", [ing("tomato", "3"), ing("salt", "1tsp")], "4 servings"
    )
    await shopping.add_to_list("Tomato Soup", [ing("basil", "5 leaves")], "4")
    await shopping.add_to_list("Toast", [ing("bread")], "1")

    await shopping.remove_item("Tomato Soup", ing("salt"))
    await shopping.remove_item("Tomato Soup", ing("tomato"))
    assert len(shopping) == 2
    await shopping.remove_item("Tomato Soup", ing("basil"))
    assert len(shopping) == 1
    assert shopping.get("Tomato Soup") is None
    assert_count(shopping)


@pytest.mark.asyncio
async def test_remove_recipe_then_add_recreates_fresh(store: MemoryStore) -> None:
    shopping = ShoppingList(store=store, key=KEY)
    await shopping.add_to_list("Stew", [ing("beef"), ing("carrot")], "6")
    await shopping.remove_recipe("Stew")
    assert len(shopping) == 0
    await shopping.add_to_list("Stew", [ing("carrot")], "2")
    entry = shopping.get("Stew")
    assert entry is not None
    assert names(shopping, "Stew") == ["carrot"]
    assert entry.servings == "2"


@pytest.mark.asyncio
async def test_every_mutation_is_persisted(store: MemoryStore) -> None:
    shopping = ShoppingList(store=store, key=KEY)
    await shopping.add_to_list("Tomato Soup", [ing("tomato", "3")], "4 servings")
    assert json.loads(store.data[KEY]) == [
        {
            "recipeName": "Tomato Soup",
            "items": [{"name": "tomato", "quantity": "3"}],
            "servings": "4 servings",
        }
    ]
    await shopping.remove_recipe("Tomato Soup")
    assert json.loads(store.data[KEY]) == []


@pytest.mark.asyncio
async def test_clear_deletes_the_document(store: MemoryStore) -> None:
    shopping = ShoppingList(store=store, key=KEY)
    await shopping.add_to_list("Toast", [ing("bread")], "1")
    await shopping.clear()
    assert len(shopping) == 0
    assert shopping.total_item_count() == 0
    assert KEY not in store.data

    reloaded = await ShoppingList.load(store, KEY)
    assert len(reloaded) == 0


@pytest.mark.asyncio
async def test_load_round_trips_saved_list(store: MemoryStore) -> None:
    shopping = ShoppingList(store=store, key=KEY)
    await shopping.add_to_list("Toast", [ing("bread"), ing("jam")], "1")
    reloaded = await ShoppingList.load(store, KEY)
    assert reloaded.to_list() == shopping.to_list()
    assert reloaded.total_item_count() == 2


@pytest.mark.asyncio
async def test_load_treats_corrupt_document_as_empty() -> None:
    store = MemoryStore({KEY: "{not json"})
    shopping = await ShoppingList.load(store, KEY)
    assert len(shopping) == 0


class BrokenStore(MemoryStore):
    async def set(self, key: str, value: str) -> None:
        raise OSError("disk full")


@pytest.mark.asyncio
async def test_save_failure_keeps_memory_state() -> None:
    shopping = ShoppingList(store=BrokenStore(), key=KEY)
    await shopping.add_to_list("Toast", [ing("bread")], "1")
    assert shopping.total_item_count() == 1
