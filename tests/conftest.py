import os
from pathlib import Path

import pytest

os.environ.setdefault("OPENAI_API_KEY", "sk-test")

from kitchen.config import Config  # noqa: E402
from kitchen.domain.models import Ingredient, Recipe  # noqa: E402
from kitchen.domain.storage import MemoryStore  # noqa: E402


ROOT = Path(__file__).parent.parent


def make_recipe(name: str = "Tomato Soup", **kwargs: object) -> Recipe:
    data: dict[str, object] = {
        "recipe_name": name,
        "difficulty": "Easy",
        "prep_time": "30 min",
        "calories": 250,
        "servings": "4 servings",
        "ingredients": [
            Ingredient(name="tomato", quantity="3"),
            Ingredient(name="salt", quantity="1tsp"),
        ],
        "steps": ["Chop the tomatoes.", "Simmer for **20 minutes**."],
    }
    data.update(kwargs)
    return Recipe.model_validate(data)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def recipe() -> Recipe:
    return make_recipe()


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(
        html_dir=ROOT / "assets" / "html",
        assets_dir=ROOT / "assets",
        db_url=f"sqlite+aiosqlite:///{tmp_path / 'kitchen.db'}",
        openai_api_key="sk-test",
        session_secret="test-secret",
    )
