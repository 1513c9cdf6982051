"""
Greenlight — Movie Service Unit Tests
======================================

What:  MovieService against a mocked AsyncSession (no real database).

What we test:
    ✅ Create validates before touching the session
    ✅ Get / delete translate missing rows and non-positive ids into NotFoundError
    ✅ Update merges partial input, honours X-Expected-Version and the version CAS
    ✅ List builds metadata from the window-function total
    ✅ Driver errors and timeouts become DatabaseError
"""

import asyncio
import re
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.dialects import postgresql

from greenlight.exceptions import (
    DatabaseError,
    EditConflictError,
    FailedValidationError,
    NotFoundError,
)
from greenlight.models.movie import Movie
from greenlight.schemas.movie import MovieInput
from greenlight.services.filters import Filters
from greenlight.services.movie_service import MovieService


def result_returning(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


def valid_payload(**overrides):
    data = {
        "title": "Moana",
        "year": 2016,
        "runtime": "107 mins",
        "genres": ["animation", "adventure"],
    }
    data.update(overrides)
    return MovieInput.model_validate(data)


class TestMovieServiceCreate:
    def setup_method(self):
        self.service = MovieService()

    @pytest.mark.asyncio
    async def test_create_movie_success(self, mock_db_session):
        mock_db_session.add.side_effect = lambda movie: setattr(movie, "id", 42)

        result = await self.service.create_movie(mock_db_session, valid_payload())

        assert result.id == 42
        assert result.title == "Moana"
        assert result.runtime == 107
        assert result.version == 1
        mock_db_session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_create_movie_invalid_never_touches_session(self, mock_db_session):
        payload = MovieInput.model_validate({"title": "", "year": 1800, "genres": []})

        with pytest.raises(FailedValidationError) as excinfo:
            await self.service.create_movie(mock_db_session, payload)

        assert excinfo.value.errors == {
            "title": "must be provided",
            "year": "must be greater than 1888",
            "runtime": "must be provided",
            "genres": "must contain at least 1 genre",
        }
        mock_db_session.add.assert_not_called()
        mock_db_session.flush.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_create_movie_database_failure(self, mock_db_session):
        mock_db_session.flush = AsyncMock(side_effect=SQLAlchemyError("connection reset"))

        with pytest.raises(DatabaseError):
            await self.service.create_movie(mock_db_session, valid_payload())

    @pytest.mark.asyncio
    async def test_create_movie_timeout(self, mock_db_session):
        mock_db_session.flush = AsyncMock(side_effect=asyncio.TimeoutError())

        with pytest.raises(DatabaseError) as excinfo:
            await self.service.create_movie(mock_db_session, valid_payload())

        assert excinfo.value.context["error_type"] == "TimeoutError"


class TestMovieServiceGet:
    def setup_method(self):
        self.service = MovieService()

    @pytest.mark.asyncio
    async def test_get_movie_found(self, mock_db_session, sample_movie):
        mock_db_session.execute.return_value = result_returning(sample_movie)

        result = await self.service.get_movie(mock_db_session, 7)

        assert result.id == 7
        assert result.genres == ["drama", "romance", "war"]

    @pytest.mark.asyncio
    async def test_get_movie_not_found(self, mock_db_session):
        mock_db_session.execute.return_value = result_returning(None)

        with pytest.raises(NotFoundError):
            await self.service.get_movie(mock_db_session, 99)

    @pytest.mark.asyncio
    async def test_get_movie_non_positive_id_skips_query(self, mock_db_session):
        with pytest.raises(NotFoundError):
            await self.service.get_movie(mock_db_session, 0)

        mock_db_session.execute.assert_not_awaited()


class TestMovieServiceUpdate:
    def setup_method(self):
        self.service = MovieService()

    @pytest.mark.asyncio
    async def test_partial_update_keeps_other_fields(self, mock_db_session, sample_movie):
        mock_db_session.execute = AsyncMock(
            side_effect=[result_returning(sample_movie), result_returning(2)]
        )

        result = await self.service.update_movie(
            mock_db_session, 7, MovieInput.model_validate({"year": 1943})
        )

        assert result.year == 1943
        assert result.title == "Casablanca"
        assert result.runtime == 102
        assert result.version == 2
        assert mock_db_session.execute.await_count == 2

    @pytest.mark.asyncio
    async def test_null_fields_are_left_unchanged(self, mock_db_session, sample_movie):
        mock_db_session.execute = AsyncMock(
            side_effect=[result_returning(sample_movie), result_returning(2)]
        )

        result = await self.service.update_movie(
            mock_db_session, 7, MovieInput.model_validate({"title": None, "genres": None})
        )

        assert result.title == "Casablanca"
        assert result.genres == ["drama", "romance", "war"]

    @pytest.mark.asyncio
    async def test_expected_version_mismatch(self, mock_db_session, sample_movie):
        mock_db_session.execute = AsyncMock(side_effect=[result_returning(sample_movie)])

        with pytest.raises(EditConflictError):
            await self.service.update_movie(
                mock_db_session, 7, MovieInput(), expected_version="5"
            )

        assert mock_db_session.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_expected_version_match(self, mock_db_session, sample_movie):
        mock_db_session.execute = AsyncMock(
            side_effect=[result_returning(sample_movie), result_returning(2)]
        )

        result = await self.service.update_movie(
            mock_db_session, 7, MovieInput(), expected_version="1"
        )

        assert result.version == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("header", ["", "   "])
    async def test_blank_expected_version_is_ignored(self, mock_db_session, sample_movie, header):
        mock_db_session.execute = AsyncMock(
            side_effect=[result_returning(sample_movie), result_returning(2)]
        )

        result = await self.service.update_movie(
            mock_db_session, 7, MovieInput(), expected_version=header
        )

        assert result.version == 2
        assert mock_db_session.execute.await_count == 2

    @pytest.mark.asyncio
    async def test_update_is_version_compare_and_swap(self, mock_db_session, sample_movie):
        """The write is guarded by the version read earlier and bumps it in the same statement."""
        sample_movie.version = 4
        mock_db_session.execute = AsyncMock(
            side_effect=[result_returning(sample_movie), result_returning(5)]
        )

        await self.service.update_movie(
            mock_db_session, 7, MovieInput.model_validate({"year": 1943})
        )

        statement = mock_db_session.execute.await_args_list[1].args[0]
        sql = str(statement.compile(dialect=postgresql.dialect()))
        where = str(
            statement.whereclause.compile(
                dialect=postgresql.dialect(), compile_kwargs={"literal_binds": True}
            )
        )

        assert sql.startswith("UPDATE movies SET ")
        assert re.search(r"version=\(?movies\.version \+ %\(\w+\)s\)?", sql)
        assert sql.endswith("RETURNING movies.version")
        assert where == "movies.id = 7 AND movies.version = 4"
        assert statement.compile(dialect=postgresql.dialect()).params["year"] == 1943

    @pytest.mark.asyncio
    async def test_lost_race_is_edit_conflict(self, mock_db_session, sample_movie):
        # UPDATE ... WHERE version = 1 matched no row
        mock_db_session.execute = AsyncMock(
            side_effect=[result_returning(sample_movie), result_returning(None)]
        )

        with pytest.raises(EditConflictError):
            await self.service.update_movie(
                mock_db_session, 7, MovieInput.model_validate({"title": "Casablanca (1942)"})
            )

    @pytest.mark.asyncio
    async def test_invalid_merge_is_rejected_before_write(self, mock_db_session, sample_movie):
        mock_db_session.execute = AsyncMock(side_effect=[result_returning(sample_movie)])

        with pytest.raises(FailedValidationError) as excinfo:
            await self.service.update_movie(
                mock_db_session, 7, MovieInput.model_validate({"genres": ["drama", "drama"]})
            )

        assert excinfo.value.errors == {"genres": "must not contain duplicate values"}
        assert mock_db_session.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_update_missing_movie(self, mock_db_session):
        mock_db_session.execute.return_value = result_returning(None)

        with pytest.raises(NotFoundError):
            await self.service.update_movie(mock_db_session, 3, MovieInput())


class TestMovieServiceDelete:
    def setup_method(self):
        self.service = MovieService()

    @pytest.mark.asyncio
    async def test_delete_existing(self, mock_db_session):
        mock_db_session.execute.return_value = MagicMock(rowcount=1)

        await self.service.delete_movie(mock_db_session, 7)

        mock_db_session.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_delete_missing(self, mock_db_session):
        mock_db_session.execute.return_value = MagicMock(rowcount=0)

        with pytest.raises(NotFoundError):
            await self.service.delete_movie(mock_db_session, 7)

    @pytest.mark.asyncio
    async def test_delete_negative_id(self, mock_db_session):
        with pytest.raises(NotFoundError):
            await self.service.delete_movie(mock_db_session, -1)

        mock_db_session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_database_failure(self, mock_db_session):
        mock_db_session.execute = AsyncMock(side_effect=SQLAlchemyError("boom"))

        with pytest.raises(DatabaseError):
            await self.service.delete_movie(mock_db_session, 7)


class TestMovieServiceList:
    def setup_method(self):
        self.service = MovieService()

    @pytest.mark.asyncio
    async def test_list_movies_empty(self, mock_db_session):
        mock_result = MagicMock()
        mock_result.all.return_value = []
        mock_db_session.execute.return_value = mock_result

        result = await self.service.list_movies(mock_db_session, "", [], Filters())

        assert result.movies == []
        assert result.metadata.model_dump(exclude_none=True) == {}

    @pytest.mark.asyncio
    async def test_list_movies_with_results(self, mock_db_session):
        movies = [
            Movie(id=i, title=f"Movie {i}", year=2000 + i, runtime=90 + i, genres=["drama"], version=1)
            for i in range(1, 4)
        ]
        mock_result = MagicMock()
        mock_result.all.return_value = [(movie, 23) for movie in movies]
        mock_db_session.execute.return_value = mock_result

        result = await self.service.list_movies(
            mock_db_session, "", ["drama"], Filters(page=2, page_size=10)
        )

        assert [m.id for m in result.movies] == [1, 2, 3]
        assert result.metadata.current_page == 2
        assert result.metadata.page_size == 10
        assert result.metadata.first_page == 1
        assert result.metadata.last_page == 3
        assert result.metadata.total_records == 23
