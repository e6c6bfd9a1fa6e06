"""Which screen the browser sees, and why.

The controller owns the per-session state: the current view, the latest
suggestions, the selected recipe, the active dietary filters, the open
substitution panel, and the owner's shopping list and favorites.

An outstanding or finished collaborator call is one of `Pending`,
`Success` or `Failure`. An error is only ever a `Failure`, so starting a new
request replaces it and a loading screen can never carry a stale error.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Generic, TypeVar

from kitchen.domain.favorites import Favorites
from kitchen.domain.models import (
    Ingredient,
    KitchenSuggestions,
    Recipe,
    Substitution,
)
from kitchen.domain.shopping_list import ShoppingList


DIETARY_FILTERS = (
    "Vegetarian",
    "Vegan",
    "Gluten-Free",
    "Dairy-Free",
    "Low-Carb",
    "Keto",
)

NO_INPUT = "Please provide some input."
INGESTION_FAILED = "Could not process your input or find recipes. Please try again."
SUBSTITUTIONS_FAILED = (
    "Sorry, we couldn't find substitutes right now. Please try again later."
)


T = TypeVar("T")


@dataclass(frozen=True)
class Pending:
    pass


@dataclass(frozen=True)
class Success(Generic[T]):
    payload: T


@dataclass(frozen=True)
class Failure:
    reason: str


type RequestState[T] = Pending | Success[T] | Failure


class View(Enum):
    UPLOAD = auto()
    LOADING = auto()
    RECIPES = auto()
    COOKING = auto()
    SHOPPING = auto()
    FAVORITES = auto()


class Screen(Enum):
    """What is actually rendered; an error overlays every view but loading."""

    UPLOAD = auto()
    LOADING = auto()
    RECIPES = auto()
    COOKING = auto()
    SHOPPING = auto()
    FAVORITES = auto()
    ERROR = auto()


class SubstitutionPanel:
    def __init__(self, ingredient: Ingredient) -> None:
        self.ingredient = ingredient
        self.request: RequestState[list[Substitution]] = Pending()

    @property
    def loading(self) -> bool:
        return isinstance(self.request, Pending)

    @property
    def error(self) -> str | None:
        return self.request.reason if isinstance(self.request, Failure) else None

    @property
    def substitutions(self) -> list[Substitution]:
        return self.request.payload if isinstance(self.request, Success) else []


class ViewController:
    def __init__(self, *, shopping: ShoppingList, favorites: Favorites) -> None:
        self.shopping = shopping
        self.favorites = favorites
        self.view = View.UPLOAD
        self.request: RequestState[KitchenSuggestions] | None = None
        self.recipes: list[Recipe] = []
        self.identified_ingredients: list[str] = []
        self.selected: Recipe | None = None
        self.active_filters: list[str] = []
        self.panel: SubstitutionPanel | None = None

    def __repr__(self) -> str:
        return f"<ViewController(view={self.view.name}, screen={self.screen.name})>"

    @property
    def loading(self) -> bool:
        return isinstance(self.request, Pending)

    @property
    def error(self) -> str | None:
        return self.request.reason if isinstance(self.request, Failure) else None

    @property
    def screen(self) -> Screen:
        if self.loading or self.view == View.LOADING:
            return Screen.LOADING
        if self.error is not None:
            return Screen.ERROR
        return Screen[self.view.name]

    @property
    def shopping_count(self) -> int:
        return self.shopping.total_item_count()

    @property
    def favorite_recipe_names(self) -> set[str]:
        return self.favorites.names

    def _clear_error(self) -> None:
        if isinstance(self.request, Failure):
            self.request = None

    # Ingestion

    def submit(self) -> None:
        self.request = Pending()
        self.view = View.LOADING

    def input_error(self, reason: str = NO_INPUT) -> None:
        self.request = Failure(reason)

    def ingestion_succeeded(self, suggestions: KitchenSuggestions) -> None:
        self.request = Success(suggestions)
        self.recipes = list(suggestions.suggested_recipes)
        self.identified_ingredients = list(suggestions.identified_ingredients)
        self.view = View.RECIPES

    def ingestion_failed(self, reason: str = INGESTION_FAILED) -> None:
        self.request = Failure(reason)
        self.view = View.UPLOAD

    # Navigation

    def select_recipe(self, recipe: Recipe) -> None:
        if self.view not in (View.RECIPES, View.FAVORITES):
            raise ValueError(f"Cannot select a recipe from {self.view.name}.")
        self._clear_error()
        self.selected = recipe
        self.panel = None
        self.view = View.COOKING

    async def add_all_to_list(self) -> None:
        if self.view != View.COOKING or self.selected is None:
            raise ValueError("No recipe is being cooked.")
        recipe = self.selected
        await self.shopping.add_to_list(
            recipe.recipe_name, recipe.ingredients, recipe.servings
        )
        self._clear_error()
        self.view = View.SHOPPING

    def show_shopping(self) -> None:
        self._clear_error()
        self.view = View.SHOPPING

    def show_favorites(self) -> None:
        self._clear_error()
        self.view = View.FAVORITES

    def home(self) -> None:
        """Reset the transient session state. Saved documents are kept."""
        self.view = View.UPLOAD
        self.request = None
        self.recipes = []
        self.identified_ingredients = []
        self.selected = None
        self.panel = None

    # Sidebar

    def toggle_filter(self, label: str) -> None:
        if label not in DIETARY_FILTERS:
            raise ValueError(f"Unknown dietary filter: {label}")
        if label in self.active_filters:
            self.active_filters.remove(label)
        else:
            self.active_filters.append(label)

    async def toggle_favorite(self, recipe: Recipe) -> None:
        await self.favorites.toggle(recipe)

    def is_favorite(self, recipe_name: str) -> bool:
        return self.favorites.is_favorite(recipe_name)

    # Substitutions

    def open_substitutions(self, ingredient: Ingredient) -> SubstitutionPanel:
        self.panel = SubstitutionPanel(ingredient)
        return self.panel

    def substitutions_succeeded(self, substitutions: list[Substitution]) -> None:
        if self.panel is not None:
            self.panel.request = Success(substitutions)

    def substitutions_failed(self, reason: str = SUBSTITUTIONS_FAILED) -> None:
        if self.panel is not None:
            self.panel.request = Failure(reason)

    def close_substitutions(self) -> None:
        self.panel = None
