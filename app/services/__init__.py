from .pokemon_service import PokemonService, PokemonNotFoundError, MissingFieldsError

__all__ = [
    'PokemonService',
    'PokemonNotFoundError',
    'MissingFieldsError',
]
