import copy
import re
import pytest
from bson import ObjectId
from pydantic import ValidationError
from app.clients.mongo_client import PersistenceError, StartupResult
from app.models import PokemonFields

BULBASAUR = {
    "id": 1,
    "name": {"english": "Bulbasaur"},
    "type": ["Grass", "Poison"],
    "base": {"HP": 45, "Attack": 49, "Defense": 49, "SpecialAttack": 65, "SpecialDefense": 65, "Speed": 45},
    "image": "http://x/b.png",
}

CHARMANDER = {
    "id": 4,
    "name": {"english": "Charmander", "french": "Salamèche", "japanese": "ヒトカゲ", "chinese": "小火龙"},
    "type": ["Fire"],
    "base": {"HP": 39, "Attack": 52, "Defense": 43, "SpecialAttack": 60, "SpecialDefense": 50, "Speed": 65},
    "image": "http://localhost:3000/assets/004.png",
}


class InMemoryPokemonStore:
    """
    Test double with the same async interface as PokemonStore, backed by a list.
    Keeps insertion order and rejects duplicate ids like the unique index does.
    """

    def __init__(self, documents=(), startup_error: str = None):
        self.documents = []
        self.startup_error = startup_error
        self.connected = False
        self.closed = False
        for document in documents:
            self.documents.append({"_id": ObjectId(), **copy.deepcopy(document)})

    async def connect(self):
        if self.startup_error:
            return StartupResult(ok=False, error=self.startup_error)
        self.connected = True
        return StartupResult(ok=True)

    def _find(self, pokemon_id):
        return next((doc for doc in self.documents if doc["id"] == pokemon_id), None)

    async def find_page(self, skip, limit):
        return copy.deepcopy(self.documents[skip:skip + limit])

    async def count(self):
        return len(self.documents)

    async def find_by_id(self, pokemon_id):
        return copy.deepcopy(self._find(pokemon_id))

    async def find_by_name(self, name):
        pattern = re.compile(re.escape(name), re.IGNORECASE)
        for doc in self.documents:
            names = doc.get("name", {})
            if any(pattern.search(names.get(lang) or "") for lang in ("english", "french", "japanese")):
                return copy.deepcopy(doc)
        return None

    async def insert(self, document):
        if self._find(document["id"]) is not None:
            raise PersistenceError(detail=f"E11000 duplicate key error dup key: {{ id: {document['id']} }}")
        stored = {"_id": ObjectId(), **copy.deepcopy(document)}
        self.documents.append(stored)
        return copy.deepcopy(stored)

    async def update(self, pokemon_id, changes):
        try:
            update = PokemonFields.model_validate(changes).model_dump(exclude_none=True)
        except ValidationError as e:
            raise PersistenceError(detail=f"Pokemon validation failed: {e.error_count()} error(s)")
        doc = self._find(pokemon_id)
        if doc is None:
            return None
        doc.update(update)
        return copy.deepcopy(doc)

    async def delete(self, pokemon_id):
        doc = self._find(pokemon_id)
        if doc is None:
            return None
        self.documents.remove(doc)
        return doc

    async def replace_all(self, documents):
        self.documents = [{"_id": ObjectId(), **copy.deepcopy(doc)} for doc in documents]
        return len(self.documents)

    async def close(self):
        self.closed = True


@pytest.fixture
def bulbasaur():
    return copy.deepcopy(BULBASAUR)


@pytest.fixture
def charmander():
    return copy.deepcopy(CHARMANDER)


@pytest.fixture
def memory_store():
    return InMemoryPokemonStore()


@pytest.fixture
def make_store():
    """Builds an in-memory store pre-filled with the given documents."""
    return InMemoryPokemonStore
