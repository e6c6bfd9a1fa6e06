import logging

from pydantic import TypeAdapter

from kitchen.domain.models import Recipe
from kitchen.domain.storage import KeyValueStore


logger = logging.getLogger(__name__)


RECIPES = TypeAdapter(list[Recipe])


class Favorites:
    """Saved recipes, unique by name, in the order they were saved."""

    def __init__(
        self,
        *,
        store: KeyValueStore,
        key: str,
        recipes: list[Recipe] | None = None,
    ) -> None:
        self.store = store
        self.key = key
        self.recipes: list[Recipe] = [] if recipes is None else recipes

    @classmethod
    async def load(cls, store: KeyValueStore, key: str) -> "Favorites":
        try:
            raw = await store.get(key)
            recipes = [] if raw is None else RECIPES.validate_json(raw)
        except Exception:
            logger.exception("Could not load favorites %s", key)
            recipes = []
        return cls(store=store, key=key, recipes=recipes)

    def __len__(self) -> int:
        return len(self.recipes)

    def __iter__(self):
        return iter(self.recipes)

    def is_favorite(self, recipe_name: str) -> bool:
        return any(r.recipe_name == recipe_name for r in self.recipes)

    @property
    def names(self) -> set[str]:
        return {r.recipe_name for r in self.recipes}

    async def toggle(self, recipe: Recipe) -> None:
        if self.is_favorite(recipe.recipe_name):
            self.recipes = [
                r for r in self.recipes if r.recipe_name != recipe.recipe_name
            ]
        else:
            self.recipes.append(recipe)
        await self.save()

    async def save(self) -> None:
        value = RECIPES.dump_json(self.recipes, by_alias=True).decode("utf-8")
        try:
            await self.store.set(self.key, value)
        except Exception:
            logger.exception("Could not save favorites %s", self.key)
