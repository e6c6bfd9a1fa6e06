"""Where the shopping list and favorites live between requests.

Documents are plain JSON strings stored by key. The key is qualified by the
owner, a signed-in user's id or a per-browser id, so two owners never share a
document.
"""

from enum import Enum
from typing import Protocol


class Purpose(Enum):
    SHOPPING_LIST = "cookingAppShoppingList"
    FAVORITES = "cookingAppFavorites"


def storage_key(purpose: Purpose, owner: str | None = None) -> str:
    if owner is None:
        return purpose.value
    return f"{purpose.value}_{owner}"


class KeyValueStore(Protocol):
    async def get(self, key: str) -> str | None:
        ...

    async def set(self, key: str, value: str) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...


class MemoryStore:
    def __init__(self, data: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = {} if data is None else data

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        pass

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)
