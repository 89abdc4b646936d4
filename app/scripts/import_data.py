"""Seed the pokemon collection from a JSON dump.

Usage:
    python -m app.scripts.import_data                                   # data/pokemons.json
    python -m app.scripts.import_data path/to/pokemons.json
    python -m app.scripts.import_data https://example.com/pokemons.json
    python -m app.scripts.import_data --image-base-url https://api.example.com

The collection is emptied first, then every record is inserted. Image URLs
pointing at the local dev server are rewritten to --image-base-url.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Optional

import httpx
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from app import config
from app.clients.mongo_client import PersistenceError, PokemonStore
from app.models import PokemonCreate

DEFAULT_SOURCE = "data/pokemons.json"
LOCAL_IMAGE_HOST = "http://localhost:3000"

# Older dumps spell two of the base stats differently
LEGACY_STAT_KEYS = {
    "Sp. Attack": "SpecialAttack",
    "Sp. Defense": "SpecialDefense",
}

cli = typer.Typer(
    name="import-data",
    help="Replace the pokemon collection with the contents of a JSON dump",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)


class ImportFailed(Exception):
    """Raised when the dump cannot be read or contains invalid records."""


def load_source(source: str) -> list[dict[str, Any]]:
    """Reads the dump from a local path or an http(s) URL."""
    try:
        if source.startswith(("http://", "https://")):
            response = httpx.get(source, timeout=30.0, follow_redirects=True)
            response.raise_for_status()
            data = response.json()
        else:
            data = json.loads(Path(source).read_text(encoding="utf-8"))
    except httpx.HTTPError as e:
        raise ImportFailed(f"Could not download {source}: {e}") from e
    except OSError as e:
        raise ImportFailed(f"Could not read {source}: {e}") from e
    except ValueError as e:
        raise ImportFailed(f"{source} is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise ImportFailed(f"{source} must contain a JSON array of pokemons")
    return data


def normalize_record(record: dict[str, Any], image_base_url: Optional[str] = None) -> dict[str, Any]:
    normalized = dict(record)

    base = normalized.get("base")
    if isinstance(base, dict):
        normalized["base"] = {LEGACY_STAT_KEYS.get(key, key): value for key, value in base.items()}

    image = normalized.get("image")
    if image_base_url and isinstance(image, str) and image.startswith(LOCAL_IMAGE_HOST):
        normalized["image"] = image_base_url.rstrip("/") + image[len(LOCAL_IMAGE_HOST):]

    return normalized


def prepare_documents(records: list[dict[str, Any]], image_base_url: Optional[str] = None) -> list[dict[str, Any]]:
    """Normalizes and validates every record; any invalid one fails the whole import."""
    documents = []
    invalid = []
    for index, record in enumerate(records):
        try:
            pokemon = PokemonCreate.model_validate(normalize_record(record, image_base_url))
        except ValidationError as e:
            invalid.append(f"#{index}: {e.error_count()} error(s), first: {e.errors()[0]['msg']}")
            continue
        documents.append(pokemon.to_document())

    if invalid:
        raise ImportFailed("Invalid records:\n  " + "\n  ".join(invalid))
    return documents


async def import_pokemons(store: PokemonStore, documents: list[dict[str, Any]]) -> int:
    try:
        result = await store.connect()
        if not result.ok:
            raise ImportFailed(f"Could not connect to MongoDB: {result.error}")
        return await store.replace_all(documents)
    except PersistenceError as e:
        raise ImportFailed(f"Import failed: {e.detail}") from e
    finally:
        await store.close()


@cli.command()
def main(
    source: str = typer.Argument(DEFAULT_SOURCE, help="Path or http(s) URL of the JSON dump"),
    image_base_url: Optional[str] = typer.Option(
        config.IMAGE_BASE_URL, "--image-base-url", help=f"Replaces {LOCAL_IMAGE_HOST} in image URLs"
    ),
    mongodb_uri: str = typer.Option(config.MONGODB_URI, "--mongodb-uri", help="MongoDB connection string"),
) -> None:
    """Empty the pokemon collection and load SOURCE into it."""
    config.configure_logging()
    try:
        records = load_source(source)
        console.print(f"Found {len(records)} pokemons to import...")
        documents = prepare_documents(records, image_base_url)
        imported = asyncio.run(import_pokemons(PokemonStore(uri=mongodb_uri), documents))
    except ImportFailed as e:
        err_console.print(f"[red]Error importing data:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    console.print(f"[green]Successfully imported {imported} pokemons[/green]")


if __name__ == "__main__":
    cli()
