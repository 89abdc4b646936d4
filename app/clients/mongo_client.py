import re
import logging
from contextlib import contextmanager
from typing import Any, Optional
from fastapi import HTTPException
from pydantic import BaseModel, ValidationError
from pymongo import AsyncMongoClient, ReturnDocument
from pymongo.errors import PyMongoError
from app import config
from app.models import PokemonFields

logger = logging.getLogger(__name__)

# Name fields matched by search. name.chinese is deliberately not searched.
SEARCHABLE_NAME_FIELDS = ("name.english", "name.french", "name.japanese")


# Any failure raised by the store itself (connection, duplicate key, schema check)
class PersistenceError(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=500, detail=detail)


class StartupResult(BaseModel):
    ok: bool
    error: Optional[str] = None


def _describe_violations(exc: ValidationError) -> str:
    violations = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in exc.errors()
    )
    return f"Pokemon validation failed: {violations}"


@contextmanager
def _store_errors(operation: str):
    """Converts driver exceptions into PersistenceError, keeping the driver's message."""
    try:
        yield
    except PyMongoError as e:
        logger.error(f"MongoDB {operation} failed: {e}")
        raise PersistenceError(detail=str(e))


class PokemonStore:
    """
    Owns the MongoDB connection and every query against the pokemon collection.
    Created once at startup and injected into the service layer.
    """

    def __init__(self, uri: str = None, collection: str = None):
        if uri is None:
            uri = config.MONGODB_URI
        self.client = AsyncMongoClient(uri)
        self.db = self.client[config.database_name(uri)]
        self.collection = self.db[collection or config.MONGODB_COLLECTION]

    async def connect(self) -> StartupResult:
        """Checks the server is reachable and declares the unique index on the external id."""
        logger.info("Attempting to connect to MongoDB...")
        try:
            await self.client.admin.command("ping")
            await self.collection.create_index("id", unique=True)
        except PyMongoError as e:
            logger.error(f"Error connecting to MongoDB: {e}")
            return StartupResult(ok=False, error=str(e))
        logger.info("Connected to MongoDB successfully")
        return StartupResult(ok=True)

    async def find_page(self, skip: int, limit: int) -> list[dict]:
        # No sort: store-native (insertion) order
        with _store_errors("find"):
            cursor = self.collection.find({}).skip(skip).limit(limit)
            return await cursor.to_list(length=limit)

    async def count(self) -> int:
        with _store_errors("count"):
            return await self.collection.count_documents({})

    async def find_by_id(self, pokemon_id: int) -> Optional[dict]:
        with _store_errors("find_one"):
            return await self.collection.find_one({"id": pokemon_id})

    async def find_by_name(self, name: str) -> Optional[dict]:
        """First pokemon whose english, french or japanese name contains `name`, ignoring case."""
        pattern = {"$regex": re.escape(name), "$options": "i"}
        query = {"$or": [{field: pattern} for field in SEARCHABLE_NAME_FIELDS]}
        with _store_errors("find_one"):
            return await self.collection.find_one(query)

    async def insert(self, document: dict[str, Any]) -> dict:
        document = dict(document)
        with _store_errors("insert"):
            result = await self.collection.insert_one(document)
        document["_id"] = result.inserted_id
        return document

    async def update(self, pokemon_id: int, changes: dict[str, Any]) -> Optional[dict]:
        """
        Replaces the given top-level fields of one pokemon.

        The fields are checked against the entity schema before the write, so a
        `base` missing a stat or a `name` without `english` never reaches the
        collection.
        """
        try:
            fields = PokemonFields.model_validate(changes)
        except ValidationError as e:
            message = _describe_violations(e)
            logger.error(f"Rejected update for pokemon {pokemon_id}: {message}")
            raise PersistenceError(detail=message)

        update = fields.model_dump(exclude_none=True)
        if not update:
            return await self.find_by_id(pokemon_id)

        with _store_errors("find_one_and_update"):
            return await self.collection.find_one_and_update(
                {"id": pokemon_id},
                {"$set": update},
                return_document=ReturnDocument.AFTER,
            )

    async def delete(self, pokemon_id: int) -> Optional[dict]:
        with _store_errors("find_one_and_delete"):
            return await self.collection.find_one_and_delete({"id": pokemon_id})

    async def replace_all(self, documents: list[dict[str, Any]]) -> int:
        """Empties the collection and bulk-inserts `documents`. Used by the import command."""
        with _store_errors("replace_all"):
            deleted = await self.collection.delete_many({})
            logger.info(f"Cleared {deleted.deleted_count} existing pokemons")
            if not documents:
                return 0
            result = await self.collection.insert_many([dict(doc) for doc in documents])
        return len(result.inserted_ids)

    async def close(self):
        """Close the MongoDB connection (call on app shutdown)."""
        await self.client.close()
