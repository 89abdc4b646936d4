from fastapi import Depends, Request, Response
from app.clients import PokemonStore, SlidingWindowRateLimiter, RateLimitExceededError
from app.services import PokemonService

_store = None
_rate_limiter = None

def get_store() -> PokemonStore:
    global _store
    if _store is None:
        _store = PokemonStore()
    return _store

def get_rate_limiter() -> SlidingWindowRateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = SlidingWindowRateLimiter()
    return _rate_limiter

def get_pokemon_service(
    store: PokemonStore = Depends(get_store),
) -> PokemonService:
    return PokemonService(store=store)

async def enforce_rate_limit(
    request: Request,
    response: Response,
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
) -> None:
    """Counts the request against the caller's window and reports the quota in headers."""
    client_id = request.client.host if request.client else "unknown"
    status = await limiter.hit(client_id)
    # Error handlers build their own responses and read the quota from here
    request.state.rate_limit = status
    if not status.allowed:
        raise RateLimitExceededError(headers=status.headers())
    response.headers.update(status.headers())
