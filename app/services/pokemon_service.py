import math
import logging
from fastapi import HTTPException
from app.clients.mongo_client import PokemonStore
from app.models import (
    DeletedPokemonResponse,
    Pagination,
    PokemonCreate,
    PokemonPage,
    PokemonRecord,
    PokemonUpdate,
)

logger = logging.getLogger(__name__)


class PokemonNotFoundError(HTTPException):
    def __init__(self):
        super().__init__(status_code=404, detail="Pokemon not found")


class MissingFieldsError(HTTPException):
    def __init__(self):
        super().__init__(status_code=400, detail="Missing required fields")


class PokemonService:
    # The store is injected so tests can swap in a double
    def __init__(self, store: PokemonStore):
        self._store = store

    async def list_pokemons(self, page: int = 1, limit: int = 20) -> PokemonPage:
        """
        One page of pokemons in the store's natural order, plus a pagination
        summary. A page past the end is simply empty.
        """
        skip = (page - 1) * limit
        documents = await self._store.find_page(skip=skip, limit=limit)
        total = await self._store.count()

        return PokemonPage(
            data=[PokemonRecord.model_validate(doc) for doc in documents],
            pagination=Pagination(
                current_page=page,
                total_pages=math.ceil(total / limit),
                total_pokemons=total,
                pokemons_per_page=limit,
            ),
        )

    async def get_pokemon(self, pokemon_id: int) -> PokemonRecord:
        document = await self._store.find_by_id(pokemon_id)
        if document is None:
            raise PokemonNotFoundError()
        return PokemonRecord.model_validate(document)

    async def search_pokemon(self, name: str) -> PokemonRecord:
        """First pokemon whose english, french or japanese name contains `name` (any case)."""
        document = await self._store.find_by_name(name)
        if document is None:
            logger.info(f"No pokemon matches '{name}'")
            raise PokemonNotFoundError()
        return PokemonRecord.model_validate(document)

    async def create_pokemon(self, payload: PokemonCreate) -> PokemonRecord:
        # Re-check after validation; the model should already guarantee these
        missing = payload.missing_fields()
        if missing:
            logger.warning(f"Create rejected, empty fields: {missing}")
            raise MissingFieldsError()

        document = await self._store.insert(payload.to_document())
        logger.info(f"Created pokemon {payload.id}")
        return PokemonRecord.model_validate(document)

    async def update_pokemon(self, pokemon_id: int, payload: PokemonUpdate) -> PokemonRecord:
        """Partial update: each supplied top-level field replaces the stored one as a whole."""
        document = await self._store.update(pokemon_id, payload.changes())
        if document is None:
            raise PokemonNotFoundError()
        logger.info(f"Updated pokemon {pokemon_id}")
        return PokemonRecord.model_validate(document)

    async def delete_pokemon(self, pokemon_id: int) -> DeletedPokemonResponse:
        document = await self._store.delete(pokemon_id)
        if document is None:
            raise PokemonNotFoundError()
        logger.info(f"Deleted pokemon {pokemon_id}")
        return DeletedPokemonResponse(
            message="Pokemon deleted successfully",
            pokemon=PokemonRecord.model_validate(document),
        )
