"""
Greenlight — Request Reading Helpers
=====================================

What:  Path, query-string and body helpers shared by the route handlers.
How:   Query readers fall back to a default when a key is absent. Integer
       parse failures are recorded on a Validator so every bad parameter is
       reported together in one 422 response. ``describe_body_errors``
       reduces FastAPI's RequestValidationError list to a single
       client-facing 400 message.
"""

import re
from typing import Any, Dict, List, Optional, Sequence

from starlette.datastructures import QueryParams

from greenlight.exceptions import NotFoundError
from greenlight.validator import Validator, matches

_INTEGER_RX = re.compile(r"^[+-]?\d+$")

# movies.id is a bigint
MAX_ID = 2**63 - 1


# ── Path ──────────────────────────────────────────────────────────────────

def read_id_param(raw: str) -> int:
    """
    Parse the ``{movie_id}`` path segment.

    Anything but an integer in 1..MAX_ID is a 404 and never reaches the
    database.
    """
    if not matches(raw, _INTEGER_RX):
        raise NotFoundError(resource="movie", resource_id=raw)
    movie_id = int(raw)
    if movie_id < 1 or movie_id > MAX_ID:
        raise NotFoundError(resource="movie", resource_id=raw)
    return movie_id


# ── Query String ──────────────────────────────────────────────────────────

def read_string(qs: QueryParams, key: str, default: str) -> str:
    value = qs.get(key)
    return value if value else default


def read_csv(qs: QueryParams, key: str, default: List[str]) -> List[str]:
    value = qs.get(key)
    if not value:
        return default
    return value.split(",")


def read_int(qs: QueryParams, key: str, default: int, v: Validator) -> int:
    value = qs.get(key)
    if not value:
        return default
    if not matches(value, _INTEGER_RX):
        v.add_error(key, "must be an integer value")
        return default
    return int(value)


# ── Body ──────────────────────────────────────────────────────────────────

def _body_field(loc: Sequence[Any]) -> Optional[str]:
    for part in loc[1:]:
        if isinstance(part, str):
            return part
    return None


def describe_body_errors(errors: Sequence[Dict[str, Any]]) -> str:
    """
    Translate the first pydantic/FastAPI error into a 400 message.

    Examples:
        json_invalid      → body contains badly-formed JSON (at character 12)
        missing body      → body must not be empty
        extra_forbidden   → body contains unknown key "rating"
        int_type on year  → body contains incorrect JSON type for field "year"
        runtime validator → invalid runtime format
    """
    if not errors:
        return "body contains badly-formed JSON"

    error = errors[0]
    kind = error.get("type", "")
    loc = tuple(error.get("loc", ()))
    ctx = error.get("ctx") or {}

    if loc and loc[0] != "body":
        return str(error.get("msg", "bad request"))

    if kind == "json_invalid":
        detail = str(ctx.get("error", ""))
        if detail.startswith("Extra data"):
            return "body must only contain a single JSON value"
        position = loc[1] if len(loc) > 1 else 0
        return f"body contains badly-formed JSON (at character {position})"

    field = _body_field(loc)

    if kind == "missing" and field is None:
        return "body must not be empty"
    if kind == "extra_forbidden":
        return f'body contains unknown key "{field}"'
    if kind == "value_error" and "error" in ctx:
        return str(ctx["error"])
    if field is None:
        return "body contains incorrect JSON type"
    return f'body contains incorrect JSON type for field "{field}"'
