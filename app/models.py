from typing import Annotated, Any, Optional
from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    PositiveInt,
    StringConstraints,
    TypeAdapter,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

_http_url = TypeAdapter(HttpUrl)


def _validate_image_url(value: str) -> str:
    # Checked as a URL, stored exactly as sent
    try:
        _http_url.validate_python(value)
    except ValidationError:
        raise ValueError("image must be a valid URL") from None
    return value


# Field-level constraints shared by every model below
EnglishName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
LocalizedName = Annotated[str, StringConstraints(strip_whitespace=True, max_length=50)]
TypeName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=20)]
Stat = Annotated[int, Field(ge=1, le=255)]
ImageUrl = Annotated[str, AfterValidator(_validate_image_url)]
PokemonTypes = Annotated[list[TypeName], Field(min_length=1, max_length=2)]

REQUIRED_FIELDS = ("id", "name", "type", "base", "image")


# --- Entity schema (what a stored record must look like) ---

class PokemonName(BaseModel):
    english: EnglishName
    french: Optional[LocalizedName] = None
    japanese: Optional[LocalizedName] = None
    chinese: Optional[LocalizedName] = None


class PokemonBase(BaseModel):
    HP: Stat
    Attack: Stat
    Defense: Stat
    SpecialAttack: Stat
    SpecialDefense: Stat
    Speed: Stat


class PokemonFields(BaseModel):
    """
    Store-level schema for a set of top-level fields about to be written.
    Every field is optional, but a supplied field must be a complete, valid
    value: updates replace whole fields, they never merge into the old ones.
    """
    name: Optional[PokemonName] = None
    type: Optional[PokemonTypes] = None
    base: Optional[PokemonBase] = None
    image: Optional[ImageUrl] = None


# --- Request bodies ---

class PokemonCreate(BaseModel):
    id: PositiveInt
    name: PokemonName
    type: PokemonTypes
    base: PokemonBase
    image: ImageUrl

    def missing_fields(self) -> list[str]:
        """Top-level fields that ended up empty after validation."""
        return [field for field in REQUIRED_FIELDS if not getattr(self, field)]

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class PokemonNameUpdate(BaseModel):
    english: Optional[EnglishName] = None
    french: Optional[LocalizedName] = None
    japanese: Optional[LocalizedName] = None
    chinese: Optional[LocalizedName] = None


class PokemonBaseUpdate(BaseModel):
    HP: Optional[Stat] = None
    Attack: Optional[Stat] = None
    Defense: Optional[Stat] = None
    SpecialAttack: Optional[Stat] = None
    SpecialDefense: Optional[Stat] = None
    Speed: Optional[Stat] = None


class PokemonUpdate(BaseModel):
    # The external id is immutable, a body "id" is ignored like any unknown key
    name: Optional[PokemonNameUpdate] = None
    type: Optional[PokemonTypes] = None
    base: Optional[PokemonBaseUpdate] = None
    image: Optional[ImageUrl] = None

    def changes(self) -> dict[str, Any]:
        """Only the top-level fields the caller actually supplied."""
        return self.model_dump(exclude_none=True)


# --- Responses ---

class PokemonRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    object_id: str = Field(alias="_id")
    id: int
    name: dict[str, str]
    type: list[str]
    base: dict[str, int]
    image: str

    @field_validator("object_id", mode="before")
    @classmethod
    def stringify_object_id(cls, value: Any) -> str:
        return str(value)


class Pagination(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    current_page: int
    total_pages: int
    total_pokemons: int
    pokemons_per_page: int


class PokemonPage(BaseModel):
    data: list[PokemonRecord]
    pagination: Pagination


class DeletedPokemonResponse(BaseModel):
    message: str
    pokemon: PokemonRecord
