"""Client modules for the backing stores (MongoDB and Redis)."""
from .mongo_client import PokemonStore, PersistenceError, StartupResult
from .rate_limiter import SlidingWindowRateLimiter, RateLimitExceededError

__all__ = [
    'PokemonStore',
    'PersistenceError',
    'StartupResult',
    'SlidingWindowRateLimiter',
    'RateLimitExceededError',
]
