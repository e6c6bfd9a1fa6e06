import base64
from enum import Enum
import os
from typing import Any, Protocol, Self

import httpx
import openai


OPENAI_TOKEN = os.environ.get("OPENAI_API_KEY")
MAX_TOKENS = 3000
TIMEOUT = 60 * 2
DEFAULT_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o")


def openai_client_factory(
    token: str | None = None,
    *,
    timeout: float = TIMEOUT,
    http_client: httpx.AsyncClient | None = None,
) -> openai.AsyncOpenAI:
    token = OPENAI_TOKEN if token is None else token
    return openai.AsyncOpenAI(api_key=token, timeout=timeout, http_client=http_client)


def encode_image(data: bytes, mime_type: str = "image/jpeg") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('utf-8')}"


class Content(Protocol):
    def to_dict(self) -> dict[str, Any]:
        ...


class Role(Enum):
    system = "system"
    user = "user"


class TextContent:
    def __init__(self, text: str) -> None:
        self.text = text

    def to_dict(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


class ImgContent:
    """An uploaded photo, sent inline as a data url.

    Fridge and pantry shots are busy, so the default asks the vision model for
    its high detail pass.
    """

    def __init__(
        self, data: bytes, mime_type: str = "image/jpeg", *, detail: str = "high"
    ) -> None:
        self.data = data
        self.mime_type = mime_type
        self.detail = detail

    @property
    def url(self) -> str:
        return encode_image(self.data, self.mime_type)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "image_url",
            "image_url": {"url": self.url, "detail": self.detail},
        }


class ChatMsg:
    def __init__(self, *, role: Role, content: str | list[Content]) -> None:
        self.role = role
        self.content = content

    @classmethod
    def system(cls, text: str) -> Self:
        return cls(role=Role.system, content=text)

    @classmethod
    def user(cls, *content: Content | str) -> Self:
        if len(content) == 1 and isinstance(content[0], str):
            return cls(role=Role.user, content=content[0])
        parts = [TextContent(c) if isinstance(c, str) else c for c in content]
        return cls(role=Role.user, content=parts)

    def to_dict(self) -> dict[str, Any]:
        if isinstance(self.content, str):
            return {"role": self.role.value, "content": self.content}
        return {
            "role": self.role.value,
            "content": [c.to_dict() for c in self.content],
        }


async def json_chat(
    messages: list[ChatMsg],
    *,
    openai_client: openai.AsyncOpenAI,
    model: str | None = None,
    max_tokens: int = MAX_TOKENS,
) -> str:
    """Chat completion constrained to a single JSON object."""
    model = DEFAULT_MODEL if model is None else model
    resp = await openai_client.chat.completions.create(
        model=model,
        messages=[m.to_dict() for m in messages],  # pyright: ignore[reportArgumentType]
        max_tokens=max_tokens,
        response_format={"type": "json_object"},
    )
    if not resp.choices:
        return ""
    ans = resp.choices[0].message.content or ""
    return ans.strip()
