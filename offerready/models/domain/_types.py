from typing import Annotated
from uuid import UUID

from pydantic import BeforeValidator


def _uuid_to_str(value):
    return str(value) if isinstance(value, UUID) else value


# psycopg returns uuid columns as UUID; the API speaks strings
RowId = Annotated[str, BeforeValidator(_uuid_to_str)]


def is_row_id(value: str) -> bool:
    """True when `value` can name a row, i.e. parses as a UUID."""
    try:
        UUID(value)
    except (TypeError, ValueError, AttributeError):
        return False
    return True
