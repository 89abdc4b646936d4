import re
import pytest
from unittest.mock import AsyncMock, MagicMock
from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError
from app.clients.mongo_client import PersistenceError, PokemonStore


@pytest.fixture
def collection():
    """A mocked pymongo collection: find() is sync and returns a cursor, the rest are awaited."""
    collection = MagicMock()
    for method in ("find_one", "insert_one", "count_documents", "find_one_and_update",
                   "find_one_and_delete", "create_index", "delete_many", "insert_many"):
        setattr(collection, method, AsyncMock())
    return collection

@pytest.fixture
def store(collection):
    # The client connects lazily, so building one needs no server
    store = PokemonStore(uri="mongodb://localhost:27017/pokemon-test")
    store.collection = collection
    store.client = MagicMock()
    store.client.admin.command = AsyncMock(return_value={"ok": 1})
    store.client.close = AsyncMock()
    return store


def test_database_name_comes_from_the_uri():
    store = PokemonStore(uri="mongodb://localhost:27017/pokemon-test", collection="mons")

    assert store.db.name == "pokemon-test"
    assert store.collection.name == "mons"


@pytest.mark.asyncio
async def test_connect_declares_unique_id_index(store, collection):
    result = await store.connect()

    assert result.model_dump() == {"ok": True, "error": None}
    assert result.ok is True
    store.client.admin.command.assert_awaited_once_with("ping")
    collection.create_index.assert_awaited_once_with("id", unique=True)


@pytest.mark.asyncio
async def test_connect_reports_failure_instead_of_exiting(store):
    store.client.admin.command.side_effect = ServerSelectionTimeoutError("localhost:27017: connection refused")

    result = await store.connect()

    assert result.ok is False
    assert "connection refused" in result.error


@pytest.mark.asyncio
async def test_find_page_uses_skip_and_limit_without_sorting(store, collection):
    cursor = collection.find.return_value.skip.return_value.limit.return_value
    cursor.to_list = AsyncMock(return_value=[{"id": 21}])

    result = await store.find_page(skip=20, limit=10)

    collection.find.assert_called_once_with({})
    collection.find.return_value.skip.assert_called_once_with(20)
    collection.find.return_value.skip.return_value.limit.assert_called_once_with(10)
    assert result == [{"id": 21}]


@pytest.mark.asyncio
async def test_find_by_name_searches_three_languages_literally(store, collection):
    await store.find_by_name("Mr. Mime")

    query = collection.find_one.call_args.args[0]
    pattern = {"$regex": re.escape("Mr. Mime"), "$options": "i"}
    assert query == {
        "$or": [
            {"name.english": pattern},
            {"name.french": pattern},
            {"name.japanese": pattern},
        ]
    }


@pytest.mark.asyncio
async def test_insert_returns_document_with_object_id(store, collection, bulbasaur):
    object_id = ObjectId()
    collection.insert_one.return_value = MagicMock(inserted_id=object_id)

    result = await store.insert(bulbasaur)

    assert result == {"_id": object_id, **bulbasaur}
    assert "_id" not in bulbasaur


@pytest.mark.asyncio
async def test_duplicate_id_becomes_persistence_error(store, collection, bulbasaur):
    collection.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key error collection: pokemons index: id_1")

    with pytest.raises(PersistenceError) as excinfo:
        await store.insert(bulbasaur)

    assert excinfo.value.status_code == 500
    assert "E11000" in excinfo.value.detail


@pytest.mark.asyncio
async def test_update_sets_only_given_fields(store, collection):
    await store.update(1, {"type": ["Water"]})

    collection.find_one_and_update.assert_awaited_once_with(
        {"id": 1},
        {"$set": {"type": ["Water"]}},
        return_document=ReturnDocument.AFTER,
    )


@pytest.mark.asyncio
async def test_update_rejects_incomplete_base_before_writing(store, collection):
    with pytest.raises(PersistenceError) as excinfo:
        await store.update(1, {"base": {"HP": 50}})

    assert "base.Attack" in excinfo.value.detail
    collection.find_one_and_update.assert_not_awaited()


@pytest.mark.asyncio
async def test_update_without_changes_just_reads(store, collection):
    collection.find_one.return_value = {"id": 1}

    result = await store.update(1, {})

    assert result == {"id": 1}
    collection.find_one.assert_awaited_once_with({"id": 1})
    collection.find_one_and_update.assert_not_awaited()


@pytest.mark.asyncio
async def test_delete_by_external_id(store, collection):
    collection.find_one_and_delete.return_value = None

    assert await store.delete(3) is None
    collection.find_one_and_delete.assert_awaited_once_with({"id": 3})


@pytest.mark.asyncio
async def test_replace_all_clears_then_inserts(store, collection, bulbasaur, charmander):
    collection.delete_many.return_value = MagicMock(deleted_count=5)
    collection.insert_many.return_value = MagicMock(inserted_ids=[ObjectId(), ObjectId()])

    inserted = await store.replace_all([bulbasaur, charmander])

    assert inserted == 2
    collection.delete_many.assert_awaited_once_with({})
    collection.insert_many.assert_awaited_once_with([bulbasaur, charmander])
