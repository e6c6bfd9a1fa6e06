from jinja2 import Environment
from markdown2 import (  # pyright: ignore[reportMissingTypeStubs]
    markdown,  # pyright: ignore[reportUnknownVariableType]
)
from markupsafe import Markup

from kitchen.domain.models import Recipe
from kitchen.domain.views import SubstitutionPanel


def inline_markdown(text: str) -> Markup:
    """Steps come back from the model with the odd **bold** or _tip_."""
    html = markdown(text, safe_mode="escape").strip()
    if html.startswith("<p>") and html.endswith("</p>"):
        html = html[3:-4]
    return Markup(html)


class CookingPage:
    def __init__(
        self,
        recipe: Recipe,
        *,
        environment: Environment,
        is_favorite: bool = False,
        panel: SubstitutionPanel | None = None,
        template_name: str = "cooking.html",
    ) -> None:
        self.recipe = recipe
        self.env = environment
        self.is_favorite = is_favorite
        self.panel = panel
        self.name = template_name

    @property
    def title(self) -> str:
        return self.recipe.recipe_name

    @property
    def calories(self) -> str:
        return f"{self.recipe.calories:.0f} kcal"

    @property
    def steps(self) -> list[Markup]:
        return [inline_markdown(step) for step in self.recipe.steps]

    def render(self, **context: object) -> str:
        return self.env.get_template(self.name).render(page=self, **context)
