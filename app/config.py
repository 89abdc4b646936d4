import os
import logging
from urllib.parse import urlparse
from dotenv import load_dotenv

load_dotenv()

DEFAULT_MONGODB_URI = "mongodb://localhost:27017/pokemon-db-2"
DEFAULT_DATABASE = "pokemon-db-2"

MONGODB_URI = os.getenv("MONGODB_URI", DEFAULT_MONGODB_URI)
MONGODB_COLLECTION = os.getenv("MONGODB_COLLECTION", "pokemons")
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")

RATE_LIMIT_MAX = int(os.getenv("RATE_LIMIT_MAX", "300"))
RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", str(15 * 60)))
MAX_BODY_BYTES = int(os.getenv("MAX_BODY_BYTES", str(1024 * 1024)))  # 1mb

ASSETS_DIR = os.getenv("ASSETS_DIR", "assets")
IMAGE_BASE_URL = os.getenv("IMAGE_BASE_URL")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def database_name(uri: str) -> str:
    """Database name from the URI path, e.g. mongodb://host:27017/<name>."""
    name = urlparse(uri).path.lstrip("/")
    return name or DEFAULT_DATABASE


def cors_origins(raw: str | None = None) -> list[str]:
    """Parses the comma-separated CORS_ORIGINS allow-list."""
    if raw is None:
        raw = os.getenv("CORS_ORIGINS", "")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
