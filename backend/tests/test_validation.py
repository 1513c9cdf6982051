"""
Greenlight — Validation, Filters & Query Builder Tests
=======================================================

What:  Pure functions behind the movie endpoints (no I/O).

What we test:
    ✅ Validator keeps the first message per field
    ✅ validate_movie enforces the title/year/runtime/genres rules
    ✅ Filters derive LIMIT/OFFSET/ORDER BY only from the safelist
    ✅ calculate_metadata rounds the last page up and is empty for zero rows
    ✅ build_list_query renders full-text search, genre containment and a stable order
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy.dialects import postgresql

from greenlight.exceptions import FailedValidationError
from greenlight.schemas.movie import MovieInput
from greenlight.services.filters import Filters, calculate_metadata, validate_filters
from greenlight.services.movie_service import build_list_query, validate_movie
from greenlight.validator import Validator, permitted_value, unique


def movie_input(**overrides):
    data = {"title": "Moana", "year": 2016, "runtime": 107, "genres": ["animation"]}
    data.update(overrides)
    return MovieInput.model_construct(**data)


class TestValidator:
    def test_first_error_wins(self):
        v = Validator()
        v.add_error("title", "must be provided")
        v.add_error("title", "must not be more than 500 bytes long")

        assert v.errors == {"title": "must be provided"}
        assert not v.valid()

    def test_ensure_valid_raises_with_all_errors(self):
        v = Validator()
        v.check(False, "year", "must be provided")
        v.check(True, "title", "never recorded")

        with pytest.raises(FailedValidationError) as excinfo:
            v.ensure_valid()

        assert excinfo.value.errors == {"year": "must be provided"}
        assert excinfo.value.status_code == 422

    def test_helpers(self):
        assert permitted_value("year", "id", "year")
        assert not permitted_value("rating", "id", "year")
        assert unique(["drama", "war"])
        assert not unique(["drama", "drama"])


class TestValidateMovie:
    def test_valid_movie(self):
        v = Validator()
        validate_movie(v, movie_input())
        assert v.valid()

    def test_title_limit_is_in_bytes(self):
        v = Validator()
        # 250 two-byte characters: 250 runes but 500 bytes
        validate_movie(v, movie_input(title="é" * 250))
        assert v.valid()

        v = Validator()
        validate_movie(v, movie_input(title="é" * 251))
        assert v.errors == {"title": "must not be more than 500 bytes long"}

    @pytest.mark.parametrize(
        "overrides, expected",
        [
            ({"title": ""}, {"title": "must be provided"}),
            ({"title": None}, {"title": "must be provided"}),
            ({"year": 0}, {"year": "must be provided"}),
            ({"year": None}, {"year": "must be provided"}),
            ({"year": 1887}, {"year": "must be greater than 1888"}),
            ({"runtime": 0}, {"runtime": "must be provided"}),
            ({"runtime": None}, {"runtime": "must be provided"}),
            ({"genres": []}, {"genres": "must contain at least 1 genre"}),
            ({"genres": ["drama", "war", "drama"]}, {"genres": "must not contain duplicate values"}),
        ],
    )
    def test_field_rules(self, overrides, expected):
        v = Validator()
        validate_movie(v, movie_input(**overrides))
        assert v.errors == expected

    def test_every_field_reported_once(self):
        v = Validator()
        validate_movie(v, movie_input(title="", year=0, runtime=0, genres=[]))

        # year=0 also fails the 1888 and runtime=0 the positive check; only the first message stays
        assert v.errors == {
            "title": "must be provided",
            "year": "must be provided",
            "runtime": "must be provided",
            "genres": "must contain at least 1 genre",
        }

    def test_future_year(self):
        v = Validator()
        validate_movie(v, movie_input(year=datetime.now(timezone.utc).year + 1))
        assert v.errors == {"year": "must not be in the future"}

    def test_negative_runtime(self):
        v = Validator()
        validate_movie(v, movie_input(runtime=-5))
        assert v.errors == {"runtime": "must be a positive integer"}

    def test_missing_genres(self):
        v = Validator()
        validate_movie(v, movie_input(genres=None))
        assert v.errors == {"genres": "must be provided"}

    def test_too_many_genres(self):
        v = Validator()
        validate_movie(v, movie_input(genres=["a", "b", "c", "d", "e", "f"]))
        assert v.errors == {"genres": "must not contain more than 5 genres"}


class TestFilters:
    def test_limit_and_offset(self):
        f = Filters(page=3, page_size=25)
        assert f.limit() == 25
        assert f.offset() == 50

    def test_sort_column_and_direction(self):
        assert Filters(sort="-year").sort_column() == "year"
        assert Filters(sort="-year").sort_direction() == "DESC"
        assert Filters(sort="title").sort_direction() == "ASC"

    def test_unsafe_sort_raises(self):
        with pytest.raises(ValueError, match="unsafe sort parameter"):
            Filters(sort="title; DROP TABLE movies").sort_column()

    @pytest.mark.parametrize(
        "filters, expected",
        [
            (Filters(page=0), {"page": "must be greater than zero"}),
            (Filters(page=10_000_001), {"page": "must be a maximum of 10 million"}),
            (Filters(page_size=0), {"page_size": "must be greater than zero"}),
            (Filters(page_size=101), {"page_size": "must be a maximum of 100"}),
            (Filters(sort="rating"), {"sort": "invalid sort value"}),
            (Filters(page=10_000_000, page_size=100, sort="-runtime"), {}),
        ],
    )
    def test_validate_filters(self, filters, expected):
        v = Validator()
        validate_filters(v, filters)
        assert v.errors == expected


class TestCalculateMetadata:
    def test_zero_records(self):
        assert calculate_metadata(0, 1, 20).model_dump(exclude_none=True) == {}

    def test_last_page_rounds_up(self):
        metadata = calculate_metadata(41, 2, 20)

        assert metadata.current_page == 2
        assert metadata.first_page == 1
        assert metadata.last_page == 3
        assert metadata.total_records == 41


class TestBuildListQuery:
    @staticmethod
    def compile(query):
        return query.compile(dialect=postgresql.dialect())

    def test_default_query(self):
        compiled = self.compile(build_list_query("", [], Filters()))
        sql = str(compiled)

        assert "count(*) OVER () AS total_records" in sql
        assert "WHERE" not in sql
        assert "ORDER BY movies.id ASC, movies.id ASC" in sql
        assert "LIMIT" in sql and "OFFSET" in sql
        assert 20 in compiled.params.values()
        assert 0 in compiled.params.values()

    def test_filters_and_descending_sort(self):
        compiled = self.compile(
            build_list_query("black panther", ["action", "adventure"], Filters(page=2, page_size=10, sort="-year"))
        )
        sql = str(compiled)
        params = list(compiled.params.values())

        assert "to_tsvector('simple', movies.title) @@ plainto_tsquery('simple'," in sql
        assert "movies.genres @>" in sql
        assert "ORDER BY movies.year DESC, movies.id ASC" in sql
        assert "black panther" in params
        assert ["action", "adventure"] in params
        assert 10 in params
