import os
import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Depends, Path, Query, status
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles
from app import config
from app.dependencies import enforce_rate_limit, get_pokemon_service, get_rate_limiter, get_store
from app.error_handlers import register_error_handlers
from app.middleware import register_middleware
from app.models import DeletedPokemonResponse, PokemonCreate, PokemonPage, PokemonRecord, PokemonUpdate
from app.services.pokemon_service import PokemonService
from app.validation import search_name

logger = logging.getLogger(__name__)

ROUTES_SUMMARY = (
    "Pokemon API - Available routes: GET /pokemons (with pagination), GET /pokemons/search/:name, "
    "GET /pokemons/:id, POST /pokemons, PUT /pokemons/:id, DELETE /pokemons/:id"
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect the store before serving; a store that cannot be reached stops the process."""
    config.configure_logging()
    # Honour dependency overrides so tests run the same startup sequence against doubles
    store = app.dependency_overrides.get(get_store, get_store)()
    limiter = app.dependency_overrides.get(get_rate_limiter, get_rate_limiter)()

    result = await store.connect()
    if not result.ok:
        logger.critical(f"MongoDB unavailable at startup, shutting down: {result.error}")
        raise SystemExit(1)

    logger.info("Pokemon API started")
    yield
    logger.info("Pokemon API shutting down")
    await store.close()
    await limiter.close()


app = FastAPI(
    title="Pokemon API",
    description="CRUD API over a MongoDB collection of Pokemon.",
    lifespan=lifespan,
    dependencies=[Depends(enforce_rate_limit)],
)

register_middleware(app, allowed_origins=config.cors_origins(), max_body_bytes=config.MAX_BODY_BYTES)
register_error_handlers(app)


@app.get("/", response_class=PlainTextResponse, summary="Lists the available routes")
async def index():
    return ROUTES_SUMMARY


@app.get("/pokemons", response_model=PokemonPage, summary="Paginated list of Pokemon")
async def list_pokemons(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: PokemonService = Depends(get_pokemon_service),
):
    return await service.list_pokemons(page=page, limit=limit)


# Registered before /pokemons/{id} so "search" is never read as an id
@app.get("/pokemons/search/{name}", response_model=PokemonRecord, summary="Finds a Pokemon by name")
async def search_pokemon(
    name: str = Depends(search_name),
    service: PokemonService = Depends(get_pokemon_service),
):
    """Case-insensitive substring match on the english, french or japanese name. Returns the first match."""
    return await service.search_pokemon(name)


@app.get("/pokemons/{id}", response_model=PokemonRecord, summary="Fetches a Pokemon by id")
async def get_pokemon(
    id: int = Path(ge=1),
    service: PokemonService = Depends(get_pokemon_service),
):
    return await service.get_pokemon(id)


@app.post(
    "/pokemons",
    response_model=PokemonRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Creates a Pokemon",
)
async def create_pokemon(
    payload: PokemonCreate,
    service: PokemonService = Depends(get_pokemon_service),
):
    return await service.create_pokemon(payload)


@app.put("/pokemons/{id}", response_model=PokemonRecord, summary="Partially updates a Pokemon")
async def update_pokemon(
    payload: Optional[PokemonUpdate] = None,
    id: int = Path(ge=1),
    service: PokemonService = Depends(get_pokemon_service),
):
    """Only the top-level fields present in the body are replaced, each one as a whole."""
    # No body at all is an empty update
    if payload is None:
        payload = PokemonUpdate()
    return await service.update_pokemon(id, payload)


@app.delete("/pokemons/{id}", response_model=DeletedPokemonResponse, summary="Deletes a Pokemon")
async def delete_pokemon(
    id: int = Path(ge=1),
    service: PokemonService = Depends(get_pokemon_service),
):
    return await service.delete_pokemon(id)


def mount_assets(app: FastAPI, directory: str) -> bool:
    """Serves `directory` under /assets if it exists. Assets are not rate limited."""
    if not os.path.isdir(directory):
        logger.info(f"No assets directory at {directory}, /assets is not served")
        return False
    app.mount("/assets", StaticFiles(directory=directory), name="assets")
    return True


mount_assets(app, config.ASSETS_DIR)
