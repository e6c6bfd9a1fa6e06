from databases import Database


CREATE_DOCUMENTS_TABLE = """
CREATE TABLE IF NOT EXISTS Documents (key VARCHAR(256) PRIMARY KEY, value TEXT NOT NULL)
"""


UPSERT_DOCUMENT = """
INSERT INTO Documents(key, value) VALUES (:key, :value)
ON CONFLICT(key) DO UPDATE SET value = excluded.value
"""


GET_DOCUMENT = "SELECT value FROM Documents WHERE key = :key"


DELETE_DOCUMENT = "DELETE FROM Documents WHERE key = :key"


class DocumentStore:
    """Key-value documents in a SQL table."""

    def __init__(self, db: Database | str) -> None:
        self.db = Database(db) if isinstance(db, str) else db

    async def connect(self) -> None:
        await self.db.connect()
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            query=CREATE_DOCUMENTS_TABLE
        )

    async def disconnect(self) -> None:
        await self.db.disconnect()

    async def get(self, key: str) -> str | None:
        result = await self.db.fetch_one(  # pyright: ignore[reportUnknownMemberType]
            GET_DOCUMENT, values={"key": key}
        )
        if result is None:
            return None
        return result["value"]

    async def set(self, key: str, value: str) -> None:
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            UPSERT_DOCUMENT, values={"key": key, "value": value}
        )

    async def delete(self, key: str) -> None:
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            DELETE_DOCUMENT, values={"key": key}
        )
