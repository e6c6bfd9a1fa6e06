import json
from typing import Any, Callable

import httpx
import openai
import pytest

from kitchen.domain.llm_service import (
    InputKind,
    KitchenInput,
    LLMService,
    RequestError,
)
from kitchen.domain.models import Difficulty


SUGGESTIONS = {
    "identifiedIngredients": ["tomato", "egg"],
    "suggestedRecipes": [
        {
            "recipeName": "Shakshuka",
            "difficulty": "Easy",
            "prepTime": "30 min",
            "calories": 350.5,
            "servings": "2 servings",
            "ingredients": [
                {"name": "tomato", "quantity": "4"},
                {"name": "egg", "quantity": "3"},
            ],
            "steps": ["Dice the tomatoes.", "Crack in the eggs."],
        }
    ],
}


def completion(content: str) -> dict[str, Any]:
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 0,
        "model": "gpt-4o",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
    }


class FakeOpenAI:
    """Routes OpenAI api calls to canned responses and records the requests."""

    def __init__(self, **routes: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        name = request.url.path.rsplit("/v1/", 1)[-1].replace("/", "_")
        return self.routes[name](request)

    def service(self) -> LLMService:
        client = openai.AsyncOpenAI(
            api_key="sk-test",
            base_url="http://openai.test/v1",
            max_retries=0,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(self.handler)),
        )
        return LLMService(client, model="gpt-4o")

    def bodies(self, name: str) -> list[dict[str, Any]]:
        return [
            json.loads(r.content)
            for r in self.requests
            if r.url.path.endswith(name)
        ]


def chat_returning(content: str) -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(200, json=completion(content))


@pytest.mark.asyncio
async def test_suggest_recipes_from_text() -> None:
    fake = FakeOpenAI(chat_completions=chat_returning(json.dumps(SUGGESTIONS)))
    llm = fake.service()
    got = await llm.suggest_recipes(
        KitchenInput(InputKind.text, "tomatoes, eggs"), ["Vegetarian"]
    )
    assert got.identified_ingredients == ["tomato", "egg"]
    (recipe,) = got.suggested_recipes
    assert recipe.recipe_name == "Shakshuka"
    assert recipe.difficulty == Difficulty.easy
    assert [i.name for i in recipe.ingredients] == ["tomato", "egg"]

    (body,) = fake.bodies("chat/completions")
    assert body["response_format"] == {"type": "json_object"}
    system, user = body["messages"]
    assert system["role"] == "system"
    assert "Vegetarian" in system["content"]
    assert "tomatoes, eggs" in user["content"][0]["text"]


@pytest.mark.asyncio
async def test_suggest_recipes_from_image_sends_data_url() -> None:
    fake = FakeOpenAI(chat_completions=chat_returning(json.dumps(SUGGESTIONS)))
    llm = fake.service()
    await llm.suggest_recipes(
        KitchenInput(InputKind.image, b"\xff\xd8fake", mime_type="image/png")
    )
    (body,) = fake.bodies("chat/completions")
    image, text = body["messages"][1]["content"]
    assert image["type"] == "image_url"
    assert image["image_url"]["url"].startswith("data:image/png;base64,")
    assert image["image_url"]["detail"] == "high"
    assert "fridge" in text["text"]


@pytest.mark.asyncio
async def test_suggest_recipes_from_audio_transcribes_first() -> None:
    fake = FakeOpenAI(
        audio_transcriptions=lambda request: httpx.Response(
            200, json={"text": "I have some leeks and potatoes"}
        ),
        chat_completions=chat_returning(json.dumps(SUGGESTIONS)),
    )
    llm = fake.service()
    await llm.suggest_recipes(KitchenInput(InputKind.audio, b"webm-bytes"))
    assert [r.url.path for r in fake.requests] == [
        "/v1/audio/transcriptions",
        "/v1/chat/completions",
    ]
    (body,) = fake.bodies("chat/completions")
    assert "leeks and potatoes" in body["messages"][1]["content"][0]["text"]


@pytest.mark.asyncio
async def test_empty_input_is_rejected() -> None:
    llm = FakeOpenAI().service()
    with pytest.raises(ValueError):
        await llm.suggest_recipes(KitchenInput(InputKind.text, "   "))


@pytest.mark.parametrize(
    "content",
    (
        "Sorry, I can't help with that.",
        json.dumps({"identifiedIngredients": []}),
        json.dumps(
            {
                "identifiedIngredients": [],
                "suggestedRecipes": [{"recipeName": "Half a recipe"}],
            }
        ),
    ),
)
@pytest.mark.asyncio
async def test_unparseable_suggestions_raise_request_error(content: str) -> None:
    llm = FakeOpenAI(chat_completions=chat_returning(content)).service()
    with pytest.raises(RequestError):
        await llm.suggest_recipes(KitchenInput(InputKind.text, "eggs"))


@pytest.mark.asyncio
async def test_api_failure_raises_request_error() -> None:
    fake = FakeOpenAI(
        chat_completions=lambda request: httpx.Response(
            400, json={"error": {"message": "bad", "type": "invalid_request_error"}}
        )
    )
    with pytest.raises(RequestError):
        await fake.service().suggest_recipes(KitchenInput(InputKind.text, "eggs"))


@pytest.mark.asyncio
async def test_substitutions_capped_at_three() -> None:
    subs = {
        "substitutions": [
            {"name": "margarine", "amount": "150 g", "notes": "Less rich."},
            {"name": "coconut oil", "amount": "120 g"},
            {"name": "olive oil", "amount": "100 ml"},
            {"name": "ghee", "amount": "150 g"},
        ]
    }
    fake = FakeOpenAI(chat_completions=chat_returning(json.dumps(subs)))
    got = await fake.service().substitutions("butter", "150 g", "Shortbread")
    assert [s.name for s in got] == ["margarine", "coconut oil", "olive oil"]
    assert got[0].notes == "Less rich."
    assert got[1].notes is None

    (body,) = fake.bodies("chat/completions")
    prompt = body["messages"][0]["content"]
    assert "Shortbread" in prompt
    assert "150 g of butter" in prompt


@pytest.mark.asyncio
async def test_bad_substitutions_raise_request_error() -> None:
    fake = FakeOpenAI(chat_completions=chat_returning('["margarine"]'))
    with pytest.raises(RequestError):
        await fake.service().substitutions("butter", "150 g", "Shortbread")


@pytest.mark.asyncio
async def test_text_to_speech_returns_pcm() -> None:
    pcm = b"\x01\x00" * 480
    fake = FakeOpenAI(
        audio_speech=lambda request: httpx.Response(
            200, content=pcm, headers={"content-type": "audio/pcm"}
        )
    )
    audio = await fake.service().text_to_speech("Dice the tomatoes.")
    assert audio.pcm == pcm
    assert audio.sample_rate == 24000
    (body,) = fake.bodies("audio/speech")
    assert body["response_format"] == "pcm"
    assert body["input"] == "Dice the tomatoes."


@pytest.mark.asyncio
async def test_text_to_speech_without_audio_fails() -> None:
    fake = FakeOpenAI(audio_speech=lambda request: httpx.Response(200, content=b""))
    with pytest.raises(RequestError):
        await fake.service().text_to_speech("Serve.")


@pytest.mark.asyncio
async def test_completion_without_choices_raises_request_error() -> None:
    fake = FakeOpenAI(
        chat_completions=lambda request: httpx.Response(
            200, json=completion("") | {"choices": []}
        )
    )
    with pytest.raises(RequestError):
        await fake.service().suggest_recipes(KitchenInput(InputKind.text, "eggs"))
