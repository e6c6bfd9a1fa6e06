PREAMBLE = """
You are a world-class, creative, and practical kitchen assistant.
Users show you what is in their fridge, either as a photo, a spoken
description or a written list, and you help them decide what to cook."""

IDENTIFY = """
First, identify every ingredient in the user's input. Normalise each
ingredient to its base form (for example 'tomatoes' to 'tomato', 'eggs' to
'egg'), singular and lower case. Then, based on the identified ingredients,
suggest 5 diverse recipes."""

INGREDIENTS_GENERAL = """
For each recipe provide the COMPLETE list of ingredients it requires, each
with the quantity needed. Do not assume the user has a standard pantry."""

FORMAT = """
Respond ONLY with a valid JSON object with exactly these keys:

{
  "identifiedIngredients": ["tomato", "egg"],
  "suggestedRecipes": [
    {
      "recipeName": "Shakshuka",
      "difficulty": "Easy",
      "prepTime": "30 min",
      "calories": 350,
      "servings": "2 servings",
      "ingredients": [{"name": "tomato", "quantity": "4"}],
      "steps": ["Dice the tomatoes.", "..."]
    }
  ]
}

"difficulty" is one of "Easy", "Medium" or "Hard". "calories" is a number.
Do not include any text before or after the JSON object."""


SOURCE = {
    "image": "Analyse this image of the contents of a fridge.",
    "text": 'Analyse the following list of ingredients from a fridge: "{data}".',
    "audio": (
        "This is the transcript of a user describing the contents of their "
        'fridge: "{data}".'
    ),
}


def dietary_note(filters: list[str]) -> str:
    if not filters:
        return ""
    return (
        "Please make sure every suggested recipe suits the following diets: "
        f"{', '.join(filters)}."
    )


class SuggestRecipesPrompt:
    def __init__(
        self,
        filters: list[str] | None = None,
        content: str | None = None,
    ) -> None:
        self.filters = [] if filters is None else filters
        self.content = (
            "\n".join(
                [PREAMBLE, IDENTIFY, INGREDIENTS_GENERAL, dietary_note(self.filters)]
            )
            if content is None
            else content
        )

    def __str__(self) -> str:
        return f"{self.content}\n{FORMAT}".strip()


def source_prompt(kind: str, data: str = "") -> str:
    return SOURCE[kind].format(data=data)


def substitutions_prompt(
    ingredient_name: str, ingredient_quantity: str, recipe_name: str
) -> str:
    return (
        "You are a helpful cooking assistant. "
        f'A user is making "{recipe_name}" and needs a substitute for '
        f'"{ingredient_quantity} of {ingredient_name}". '
        "Suggest up to 3 common and appropriate culinary substitutions. "
        "For each one give the name, the equivalent amount to use and a short "
        "note on how it could change the flavour or texture of the dish. "
        'Respond ONLY with a valid JSON object of the form {"substitutions": '
        '[{"name": "...", "amount": "...", "notes": "..."}]}. '
        "Do not include any text before or after the JSON object."
    )
