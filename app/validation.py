from typing import Annotated, Any
from fastapi import Path
from fastapi.exceptions import RequestValidationError
from pydantic import StringConstraints, TypeAdapter, ValidationError

SearchName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
_search_name = TypeAdapter(SearchName)

# Friendlier wording for the parameters callers get wrong most often
FIELD_MESSAGES = {
    ("query", "page"): "page must be >= 1",
    ("query", "limit"): "limit must be between 1 and 100",
    ("path", "id"): "id must be a positive integer",
    ("path", "name"): "name must be 1-50 chars",
    ("body", "id"): "id must be a positive integer",
    ("body", "image"): "image must be a valid URL",
}


def search_name(name: str = Path(description="Full or partial english, french or japanese name")) -> str:
    """Trims the searched name, then requires 1-50 characters."""
    try:
        return _search_name.validate_python(name)
    except ValidationError as e:
        raise RequestValidationError(
            [{**err, "loc": ("path", "name")} for err in e.errors(include_url=False)]
        )


def describe_violation(error: dict[str, Any]) -> dict[str, str]:
    loc = tuple(str(part) for part in error["loc"])
    location = loc[0] if loc else "request"
    field = ".".join(loc[1:]) or location
    return {
        "field": field,
        "location": location,
        "message": FIELD_MESSAGES.get((location, field), error["msg"]),
        "type": error["type"],
    }


def validation_error_content(errors: list[dict[str, Any]]) -> dict:
    """Every violated field of the request, not only the first one."""
    return {
        "error": "Validation failed",
        "details": [describe_violation(error) for error in errors],
    }
