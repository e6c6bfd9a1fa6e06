from enum import Enum
import logging

import openai
from pydantic import ValidationError

from kitchen.domain.aopenai import (
    ChatMsg,
    Content,
    ImgContent,
    MAX_TOKENS,
    Role,
    TextContent,
    json_chat,
    openai_client_factory,
)
from kitchen.domain.models import (
    Document,
    KitchenSuggestions,
    SpeechAudio,
    Substitution,
)
from kitchen.domain.prompts import (
    SuggestRecipesPrompt,
    source_prompt,
    substitutions_prompt,
)


logger = logging.getLogger(__name__)


MAX_SUBSTITUTIONS = 3
SPEECH_SAMPLE_RATE = 24000


class RequestError(Exception):
    """A collaborator call failed or answered with something unusable."""


class InputKind(Enum):
    image = "image"
    audio = "audio"
    text = "text"


class KitchenInput:
    def __init__(
        self,
        kind: InputKind,
        data: bytes | str,
        *,
        mime_type: str | None = None,
        filename: str | None = None,
    ) -> None:
        self.kind = kind
        self.data = data
        self.mime_type = mime_type
        self.filename = filename

    def __repr__(self) -> str:
        return f"<KitchenInput(kind={self.kind.value}, size={len(self.data)})>"

    @property
    def empty(self) -> bool:
        if isinstance(self.data, str):
            return not self.data.strip()
        return not self.data


class SubstitutionList(Document):
    substitutions: list[Substitution]


class LLMService:
    def __init__(
        self,
        openai_client: openai.AsyncOpenAI | None = None,
        *,
        model: str = "gpt-4o",
        transcription_model: str = "whisper-1",
        speech_model: str = "tts-1",
        speech_voice: str = "alloy",
        max_tokens: int = MAX_TOKENS,
    ) -> None:
        self.openai_client = (
            openai_client_factory() if openai_client is None else openai_client
        )
        self.model = model
        self.transcription_model = transcription_model
        self.speech_model = speech_model
        self.speech_voice = speech_voice
        self.max_tokens = max_tokens

    async def _json(self, messages: list[ChatMsg]) -> str:
        try:
            return await json_chat(
                messages,
                openai_client=self.openai_client,
                model=self.model,
                max_tokens=self.max_tokens,
            )
        except openai.OpenAIError as e:
            raise RequestError(f"Chat completion failed: {e}") from e

    async def transcribe(
        self,
        audio: bytes,
        *,
        filename: str = "clip.webm",
        mime_type: str = "audio/webm",
    ) -> str:
        try:
            resp = await self.openai_client.audio.transcriptions.create(
                file=(filename, audio, mime_type),
                model=self.transcription_model,
            )
        except openai.OpenAIError as e:
            raise RequestError(f"Transcription failed: {e}") from e
        return resp.text

    async def suggest_recipes(
        self,
        kitchen_input: KitchenInput,
        filters: list[str] | None = None,
    ) -> KitchenSuggestions:
        """Identify the ingredients in the input and suggest recipes for them."""
        if kitchen_input.empty:
            raise ValueError("Provide an image, a recording or a description.")

        prompt = SuggestRecipesPrompt(filters)
        content: list[Content] = []

        match kitchen_input.kind:
            case InputKind.image:
                assert isinstance(kitchen_input.data, bytes)
                content.append(
                    ImgContent(
                        kitchen_input.data, kitchen_input.mime_type or "image/jpeg"
                    )
                )
                content.append(TextContent(source_prompt("image")))
            case InputKind.audio:
                assert isinstance(kitchen_input.data, bytes)
                transcript = await self.transcribe(
                    kitchen_input.data,
                    filename=kitchen_input.filename or "clip.webm",
                    mime_type=kitchen_input.mime_type or "audio/webm",
                )
                logger.info("Transcript: %s", transcript)
                content.append(TextContent(source_prompt("audio", transcript)))
            case InputKind.text:
                assert isinstance(kitchen_input.data, str)
                content.append(TextContent(source_prompt("text", kitchen_input.data)))

        messages = [
            ChatMsg.system(str(prompt)),
            ChatMsg(role=Role.user, content=content),
        ]
        ans = await self._json(messages)
        try:
            return KitchenSuggestions.model_validate_json(ans)
        except ValidationError as e:
            logger.error("Unexpected recipe suggestions: %s", ans)
            raise RequestError(
                "Could not understand the recipe suggestions. "
                "The format was unexpected."
            ) from e

    async def substitutions(
        self,
        ingredient_name: str,
        ingredient_quantity: str,
        recipe_name: str,
    ) -> list[Substitution]:
        msg = substitutions_prompt(ingredient_name, ingredient_quantity, recipe_name)
        ans = await self._json([ChatMsg.user(msg)])
        try:
            subs = SubstitutionList.model_validate_json(ans).substitutions
        except ValidationError as e:
            logger.error("Unexpected substitutions: %s", ans)
            raise RequestError(
                "Could not get ingredient substitutions. The format was unexpected."
            ) from e
        return subs[:MAX_SUBSTITUTIONS]

    async def text_to_speech(self, text: str) -> SpeechAudio:
        try:
            resp = await self.openai_client.audio.speech.create(
                model=self.speech_model,
                voice=self.speech_voice,  # pyright: ignore[reportArgumentType]
                input=text,
                response_format="pcm",
            )
        except openai.OpenAIError as e:
            raise RequestError(f"Speech failed: {e}") from e
        pcm = resp.content
        if not pcm:
            raise RequestError("No audio data received.")
        return SpeechAudio(pcm, sample_rate=SPEECH_SAMPLE_RATE)
