"""
Greenlight — Movie Service (Business Logic)
============================================

What:  Validation and persistence for movie records.
Who:   Called by the /v1/movies route handlers.

Optimistic Locking (update):
    1. Read the row (404 if missing) and remember its version N.
    2. If the client sent a non-empty X-Expected-Version that is not N → 409.
    3. Merge the partial update, validate the result (422 on failure).
    4. UPDATE movies SET ..., version = version + 1
           WHERE id = :id AND version = N RETURNING version
       No returned row means another request won the race → 409.

    The compare-and-swap happens inside a single UPDATE statement, so the
    database's row lock is the only synchronization involved.

Every statement is bounded by DB_QUERY_TIMEOUT. Timeouts and driver errors
are wrapped in DatabaseError; client-caused errors propagate unchanged.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import Select, delete, func, literal_column, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from greenlight.config import settings
from greenlight.exceptions import DatabaseError, EditConflictError, NotFoundError
from greenlight.models.movie import Movie
from greenlight.schemas.movie import MovieInput, MovieListResponse, MovieResponse
from greenlight.services.filters import Filters, calculate_metadata
from greenlight.validator import Validator, unique

logger = logging.getLogger(__name__)

# Text-search configuration: no stemming or stop words, so any title word matches.
_TS_CONFIG = literal_column("'simple'")

MAX_TITLE_BYTES = 500
MIN_YEAR = 1888
MAX_GENRES = 5


def validate_movie(v: Validator, movie: Any) -> None:
    """Record field errors for a create payload or a merged update."""
    title = movie.title or ""
    year = movie.year or 0
    runtime = movie.runtime or 0
    genres = movie.genres

    v.check(title != "", "title", "must be provided")
    v.check(len(title.encode("utf-8")) <= MAX_TITLE_BYTES, "title", "must not be more than 500 bytes long")

    v.check(year != 0, "year", "must be provided")
    v.check(year >= MIN_YEAR, "year", "must be greater than 1888")
    v.check(year <= datetime.now(timezone.utc).year, "year", "must not be in the future")

    v.check(runtime != 0, "runtime", "must be provided")
    v.check(runtime > 0, "runtime", "must be a positive integer")

    v.check(genres is not None, "genres", "must be provided")
    genres = genres or []
    v.check(len(genres) >= 1, "genres", "must contain at least 1 genre")
    v.check(len(genres) <= MAX_GENRES, "genres", "must not contain more than 5 genres")
    v.check(unique(genres), "genres", "must not contain duplicate values")


def build_list_query(title: str, genres: Sequence[str], filters: Filters) -> Select:
    """
    SELECT movies.*, count(*) OVER() AS total_records with optional filters.

    - title:  to_tsvector('simple', title) @@ plainto_tsquery('simple', :title)
    - genres: genres @> :genres (the movie must carry every requested genre)
    - order:  safelisted column in the requested direction, then id ASC so
              pages are stable when the sort column has ties
    """
    total_records = func.count().over().label("total_records")
    query = select(Movie, total_records)

    if title:
        query = query.where(
            func.to_tsvector(_TS_CONFIG, Movie.title).bool_op("@@")(
                func.plainto_tsquery(_TS_CONFIG, title)
            )
        )
    if genres:
        query = query.where(Movie.genres.contains(list(genres)))

    column = getattr(Movie, filters.sort_column())
    ordering = column.desc() if filters.sort_direction() == "DESC" else column.asc()

    return (
        query.order_by(ordering, Movie.id.asc())
        .limit(filters.limit())
        .offset(filters.offset())
    )


class MovieService:
    """
    Stateless business logic for movies; every call receives its session.

    Responsibilities:
        - create_movie(): validate + INSERT ... RETURNING
        - get_movie():    single lookup with not-found handling
        - update_movie(): partial update guarded by the version column
        - delete_movie(): DELETE with row-count check
        - list_movies():  filtered, sorted, paginated listing
    """

    async def _execute(self, db: AsyncSession, statement: Any):
        return await asyncio.wait_for(db.execute(statement), timeout=settings.db_query_timeout)

    async def _fetch(self, db: AsyncSession, movie_id: int) -> Movie:
        if movie_id < 1:
            raise NotFoundError(resource="movie", resource_id=str(movie_id))
        try:
            result = await self._execute(db, select(Movie).where(Movie.id == movie_id))
        except (SQLAlchemyError, asyncio.TimeoutError) as e:
            logger.error("Database error fetching movie %s: %s", movie_id, e)
            raise DatabaseError(
                context={"movie_id": movie_id, "error_type": type(e).__name__},
            ) from e

        movie = result.scalar_one_or_none()
        if movie is None:
            raise NotFoundError(resource="movie", resource_id=str(movie_id))
        return movie

    async def create_movie(self, db: AsyncSession, payload: MovieInput) -> MovieResponse:
        """
        Validate and insert a new movie.

        Raises:
            FailedValidationError: A field is missing or out of range (→ 422)
            DatabaseError: INSERT failed or timed out (→ 500)
        """
        v = Validator()
        validate_movie(v, payload)
        v.ensure_valid()

        movie = Movie(
            title=payload.title,
            year=payload.year,
            runtime=payload.runtime,
            genres=list(payload.genres),
            version=1,
        )
        try:
            db.add(movie)
            # Flush issues INSERT ... RETURNING id, created_at
            await asyncio.wait_for(db.flush(), timeout=settings.db_query_timeout)
        except (SQLAlchemyError, asyncio.TimeoutError) as e:
            logger.error("Database error inserting movie %r: %s", payload.title, e)
            raise DatabaseError(context={"error_type": type(e).__name__}) from e

        logger.info("Movie created: id=%s title=%r", movie.id, movie.title)
        return MovieResponse.model_validate(movie)

    async def get_movie(self, db: AsyncSession, movie_id: int) -> MovieResponse:
        movie = await self._fetch(db, movie_id)
        return MovieResponse.model_validate(movie)

    async def update_movie(
        self,
        db: AsyncSession,
        movie_id: int,
        payload: MovieInput,
        expected_version: Optional[str] = None,
    ) -> MovieResponse:
        """
        Apply a partial update with optimistic locking.

        Args:
            movie_id: Target record
            payload: Fields to change; absent or null fields keep their value
            expected_version: X-Expected-Version header value; blank means unset

        Raises:
            NotFoundError: No such movie (→ 404)
            EditConflictError: Version mismatch before or during the write (→ 409)
            FailedValidationError: Merged record is invalid (→ 422)
            DatabaseError: Query failed or timed out (→ 500)
        """
        movie = await self._fetch(db, movie_id)

        expected = (expected_version or "").strip()
        if expected and expected != str(movie.version):
            raise EditConflictError(
                context={"movie_id": movie_id, "expected": expected_version, "actual": movie.version},
            )

        merged = {
            "title": movie.title,
            "year": movie.year,
            "runtime": movie.runtime,
            "genres": list(movie.genres),
        }
        merged.update(payload.model_dump(exclude_none=True))
        # Values are already typed; construct without re-running the strict input validators.
        draft = MovieInput.model_construct(**merged)

        v = Validator()
        validate_movie(v, draft)
        v.ensure_valid()

        statement = (
            update(Movie)
            .where(Movie.id == movie.id, Movie.version == movie.version)
            .values(
                title=draft.title,
                year=draft.year,
                runtime=draft.runtime,
                genres=list(draft.genres),
                version=Movie.version + 1,
            )
            .returning(Movie.version)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self._execute(db, statement)
        except (SQLAlchemyError, asyncio.TimeoutError) as e:
            logger.error("Database error updating movie %s: %s", movie_id, e)
            raise DatabaseError(
                context={"movie_id": movie_id, "error_type": type(e).__name__},
            ) from e

        new_version = result.scalar_one_or_none()
        if new_version is None:
            logger.warning("Edit conflict on movie %s at version %s", movie_id, movie.version)
            raise EditConflictError(context={"movie_id": movie_id, "version": movie.version})

        logger.info("Movie %s updated: version %s -> %s", movie_id, movie.version, new_version)
        return MovieResponse(
            id=movie.id,
            title=draft.title,
            year=draft.year,
            runtime=draft.runtime,
            genres=list(draft.genres),
            version=new_version,
        )

    async def delete_movie(self, db: AsyncSession, movie_id: int) -> None:
        if movie_id < 1:
            raise NotFoundError(resource="movie", resource_id=str(movie_id))
        statement = (
            delete(Movie)
            .where(Movie.id == movie_id)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self._execute(db, statement)
        except (SQLAlchemyError, asyncio.TimeoutError) as e:
            logger.error("Database error deleting movie %s: %s", movie_id, e)
            raise DatabaseError(
                context={"movie_id": movie_id, "error_type": type(e).__name__},
            ) from e

        if result.rowcount == 0:
            raise NotFoundError(resource="movie", resource_id=str(movie_id))
        logger.info("Movie %s deleted", movie_id)

    async def list_movies(
        self,
        db: AsyncSession,
        title: str,
        genres: Sequence[str],
        filters: Filters,
    ) -> MovieListResponse:
        """
        One page of movies plus pagination metadata.

        The total comes from the window function on the same query, so a page
        past the end returns no rows and empty metadata.
        """
        try:
            result = await self._execute(db, build_list_query(title, genres, filters))
            rows = result.all()
        except (SQLAlchemyError, asyncio.TimeoutError) as e:
            logger.error("Database error listing movies: %s", e, exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__}) from e

        total_records = 0
        movies = []
        for movie, total in rows:
            total_records = total
            movies.append(MovieResponse.model_validate(movie))

        return MovieListResponse(
            movies=movies,
            metadata=calculate_metadata(total_records, filters.page, filters.page_size),
        )


movie_service = MovieService()
