"""
Greenlight — Pydantic Request/Response Schemas
===============================================

What:  The API contract for movie resources.
How:   Request models are strict (no str → int coercion, unknown keys are
       rejected). Response models are built from ORM objects and wrapped in a
       named envelope: ``{"movie": {...}}``, ``{"movies": [...], "metadata": {...}}``.

Runtime encoding:
    The database stores minutes as an integer; JSON carries "<n> mins".
    Input must be a JSON string in exactly that form, anything else is
    rejected with "invalid runtime format".
"""

import re
from typing import Annotated, Dict, List, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer

_RUNTIME_RX = re.compile(r"^([+-]?\d+) mins$")
_INT32_MAX = 2**31 - 1

INVALID_RUNTIME_FORMAT = "invalid runtime format"


def parse_runtime(value: object) -> int:
    """Decode ``"102 mins"`` to ``102``."""
    if not isinstance(value, str):
        raise ValueError(INVALID_RUNTIME_FORMAT)
    match = _RUNTIME_RX.match(value)
    if match is None:
        raise ValueError(INVALID_RUNTIME_FORMAT)
    minutes = int(match.group(1))
    if abs(minutes) > _INT32_MAX:
        raise ValueError(INVALID_RUNTIME_FORMAT)
    return minutes


def format_runtime(minutes: int) -> str:
    return f"{minutes} mins"


RuntimeInput = Annotated[int, BeforeValidator(parse_runtime)]
RuntimeOutput = Annotated[int, PlainSerializer(format_runtime, return_type=str)]


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class MovieInput(BaseModel):
    """
    Body of POST /v1/movies and PATCH /v1/movies/{id}.

    Every field is optional at decode time. For create, missing fields are
    reported by validate_movie (422). For update, a missing or null field
    leaves the stored value unchanged.
    """

    model_config = ConfigDict(extra="forbid", strict=True)

    title: Optional[str] = Field(default=None, description="Movie title (max 500 bytes)")
    year: Optional[int] = Field(default=None, description="Release year, 1888 to current year")
    runtime: Optional[RuntimeInput] = Field(
        default=None, description='Runtime as "<minutes> mins", e.g. "102 mins"'
    )
    genres: Optional[List[str]] = Field(default=None, description="1 to 5 unique genres")


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class MovieResponse(BaseModel):
    id: int
    title: str
    year: int
    runtime: RuntimeOutput
    genres: List[str]
    version: int

    model_config = {"from_attributes": True}


class MovieEnvelope(BaseModel):
    movie: MovieResponse


class Metadata(BaseModel):
    """
    Pagination metadata for GET /v1/movies.

    All fields are None (serialized as ``{}``) when the query matched nothing.
    """

    current_page: Optional[int] = None
    page_size: Optional[int] = None
    first_page: Optional[int] = None
    last_page: Optional[int] = None
    total_records: Optional[int] = None


class MovieListResponse(BaseModel):
    movies: List[MovieResponse]
    metadata: Metadata


class MessageResponse(BaseModel):
    message: str


class SystemInfo(BaseModel):
    environment: str
    version: str


class HealthResponse(BaseModel):
    status: str = Field(description="available, or degraded when the database is unreachable")
    system_info: SystemInfo
    database: str = Field(description="connected or disconnected")


class ErrorResponse(BaseModel):
    """
    Every non-2xx body.

    ``error`` is a message string, or a field → message map for 422 responses.
    """

    error: Union[str, Dict[str, str]]
    request_id: Optional[str] = None
