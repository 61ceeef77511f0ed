from typing import Annotated, Dict, Optional

from pydantic import HttpUrl, StringConstraints, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError

TOKEN_PATTERN = r"^[A-Za-z0-9_-]+$"
MAX_NAME_LENGTH = 500
MAX_URL_LENGTH = 2048
MAX_TOKEN_LENGTH = 32

Token = Annotated[str, StringConstraints(min_length=1, max_length=MAX_TOKEN_LENGTH, pattern=TOKEN_PATTERN)]
Name = Annotated[str, StringConstraints(min_length=1, max_length=MAX_NAME_LENGTH)]

_url_adapter = TypeAdapter(HttpUrl)
_token_adapter = TypeAdapter(Token)

TOKEN_MESSAGES = {
    "string_too_short": "must be provided",
    "string_too_long": f"must not be more than {MAX_TOKEN_LENGTH} characters long",
    "string_pattern_mismatch": "may only contain letters, digits, hyphens and underscores",
}


def check_url(url: str) -> Optional[str]:
    """Return an error message for an unusable destination URL, or None."""
    if not url:
        return "must be provided"
    if len(url) > MAX_URL_LENGTH:
        return f"must not be more than {MAX_URL_LENGTH} characters long"
    try:
        _url_adapter.validate_python(url)
    except PydanticValidationError as e:
        if e.errors()[0]["type"] == "url_scheme":
            return "must use http or https"
        return "must be a valid absolute URL"
    return None


def check_token(token: str) -> Optional[str]:
    try:
        _token_adapter.validate_python(token)
    except PydanticValidationError as e:
        return TOKEN_MESSAGES.get(e.errors()[0]["type"], "is invalid")
    return None


def validate_link(name: str, destination: str, token: Optional[str], require_token: bool = True) -> None:
    errors: Dict[str, str] = {}

    if not name or not name.strip():
        errors["name"] = "must be provided"
    elif len(name) > MAX_NAME_LENGTH:
        errors["name"] = f"must not be more than {MAX_NAME_LENGTH} characters long"

    url_error = check_url(destination)
    if url_error:
        errors["destination"] = url_error

    if token or require_token:
        token_error = check_token(token or "")
        if token_error:
            errors["token"] = token_error

    if errors:
        raise ValidationError(errors)
