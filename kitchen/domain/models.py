from enum import Enum
import io
import wave

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Document(BaseModel):
    """Camel-cased on the wire, snake-cased in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)


class Difficulty(Enum):
    easy = "Easy"
    medium = "Medium"
    hard = "Hard"


class Ingredient(Document):
    name: str
    quantity: str


class Recipe(Document):
    recipe_name: str
    difficulty: Difficulty
    prep_time: str
    calories: float
    servings: str
    ingredients: list[Ingredient]
    steps: list[str]

    def __repr__(self) -> str:
        return f"<Recipe(recipe_name={self.recipe_name})>"


class ShoppingListItem(Document):
    recipe_name: str
    items: list[Ingredient]
    servings: str


class Substitution(Document):
    name: str
    amount: str
    notes: str | None = None


class KitchenSuggestions(Document):
    identified_ingredients: list[str]
    suggested_recipes: list[Recipe]


class SpeechAudio:
    """Raw 16-bit mono PCM as returned by the speech endpoint."""

    def __init__(
        self,
        pcm: bytes,
        *,
        sample_rate: int = 24000,
        channels: int = 1,
        sample_width: int = 2,
    ) -> None:
        self.pcm = pcm
        self.sample_rate = sample_rate
        self.channels = channels
        self.sample_width = sample_width

    def to_wav(self) -> bytes:
        buf = io.BytesIO()
        with wave.open(buf, "wb") as wav:
            wav.setnchannels(self.channels)
            wav.setsampwidth(self.sample_width)
            wav.setframerate(self.sample_rate)
            wav.writeframes(self.pcm)
        return buf.getvalue()
