"""
Greenlight — Movie Route Handlers
==================================

What:  The five /v1/movies endpoints.
How:   Handlers read path/query/body input, call MovieService and wrap the
       result in its envelope. All error responses come from the global
       exception handlers in ``greenlight.main``.

Endpoints:
    GET    /v1/movies            list (title, genres, page, page_size, sort)
    POST   /v1/movies            create → 201 + Location header
    GET    /v1/movies/{id}       show
    PATCH  /v1/movies/{id}       partial update, honours X-Expected-Version
    DELETE /v1/movies/{id}       delete
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from greenlight.database import get_db_session
from greenlight.routes.params import (
    read_csv,
    read_id_param,
    read_int,
    read_string,
)
from greenlight.schemas.movie import (
    ErrorResponse,
    MessageResponse,
    MovieEnvelope,
    MovieInput,
    MovieListResponse,
)
from greenlight.services.filters import Filters, validate_filters
from greenlight.services.movie_service import movie_service
from greenlight.validator import Validator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["Movies"])

_ERRORS = {
    400: {"description": "Malformed request body", "model": ErrorResponse},
    404: {"description": "Movie not found", "model": ErrorResponse},
    422: {"description": "Failed validation", "model": ErrorResponse},
    429: {"description": "Rate limit exceeded", "model": ErrorResponse},
    500: {"description": "Server error", "model": ErrorResponse},
}


@dataclass
class ListMoviesQuery:
    title: str = ""
    genres: List[str] = field(default_factory=list)
    filters: Filters = field(default_factory=Filters)


def list_movies_query(request: Request) -> ListMoviesQuery:
    """Read and validate the list query string; every problem is reported in one 422."""
    qs = request.query_params
    v = Validator()

    title = read_string(qs, "title", "")
    genres = read_csv(qs, "genres", [])
    filters = Filters(
        page=read_int(qs, "page", 1, v),
        page_size=read_int(qs, "page_size", 20, v),
        sort=read_string(qs, "sort", "id"),
    )

    validate_filters(v, filters)
    v.ensure_valid()
    return ListMoviesQuery(title=title, genres=genres, filters=filters)


@router.get(
    "/movies",
    response_model=MovieListResponse,
    response_model_exclude_none=True,
    responses={422: _ERRORS[422], 500: _ERRORS[500]},
    summary="List movies",
    description=(
        "Full-text title search, genre containment (comma separated), "
        "sorting by id/title/year/runtime (prefix '-' for descending) and "
        "page-based pagination with metadata."
    ),
)
async def list_movies(
    query: ListMoviesQuery = Depends(list_movies_query),
    db: AsyncSession = Depends(get_db_session),
) -> MovieListResponse:
    return await movie_service.list_movies(
        db=db,
        title=query.title,
        genres=query.genres,
        filters=query.filters,
    )


@router.post(
    "/movies",
    status_code=201,
    response_model=MovieEnvelope,
    responses={k: _ERRORS[k] for k in (400, 422, 429, 500)},
    summary="Create a movie",
)
async def create_movie(
    payload: MovieInput,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> MovieEnvelope:
    movie = await movie_service.create_movie(db=db, payload=payload)
    response.headers["Location"] = f"/v1/movies/{movie.id}"
    return MovieEnvelope(movie=movie)


@router.get(
    "/movies/{movie_id}",
    response_model=MovieEnvelope,
    responses={404: _ERRORS[404], 500: _ERRORS[500]},
    summary="Show a movie",
)
async def show_movie(
    movie_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> MovieEnvelope:
    movie = await movie_service.get_movie(db=db, movie_id=read_id_param(movie_id))
    return MovieEnvelope(movie=movie)


@router.patch(
    "/movies/{movie_id}",
    response_model=MovieEnvelope,
    responses={
        **{k: _ERRORS[k] for k in (400, 404, 422, 500)},
        409: {"description": "Edit conflict", "model": ErrorResponse},
    },
    summary="Partially update a movie",
    description=(
        "Only fields present in the body are changed. Send X-Expected-Version "
        "to fail with 409 unless the stored version still matches."
    ),
)
async def update_movie(
    movie_id: str,
    payload: MovieInput,
    x_expected_version: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> MovieEnvelope:
    movie = await movie_service.update_movie(
        db=db,
        movie_id=read_id_param(movie_id),
        payload=payload,
        expected_version=x_expected_version,
    )
    return MovieEnvelope(movie=movie)


@router.delete(
    "/movies/{movie_id}",
    response_model=MessageResponse,
    responses={404: _ERRORS[404], 500: _ERRORS[500]},
    summary="Delete a movie",
)
async def delete_movie(
    movie_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await movie_service.delete_movie(db=db, movie_id=read_id_param(movie_id))
    return MessageResponse(message="movie successfully deleted")
