"""
Greenlight — List Filters & Pagination Metadata
================================================

What:  Page / page_size / sort handling for GET /v1/movies.
How:   ``Filters`` turns validated query values into LIMIT, OFFSET and an
       ORDER BY column. The column only ever comes from the sort safelist, so
       user input never reaches the SQL text.
"""

import math
from dataclasses import dataclass
from typing import Tuple

from greenlight.schemas.movie import Metadata
from greenlight.validator import Validator, permitted_value

MOVIE_SORT_SAFELIST: Tuple[str, ...] = (
    "id", "title", "year", "runtime",
    "-id", "-title", "-year", "-runtime",
)

MAX_PAGE = 10_000_000
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class Filters:
    page: int = 1
    page_size: int = 20
    sort: str = "id"
    sort_safelist: Tuple[str, ...] = MOVIE_SORT_SAFELIST

    def limit(self) -> int:
        return self.page_size

    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def sort_column(self) -> str:
        """
        Column name for ORDER BY, without the leading "-".

        Raises:
            ValueError: ``sort`` is not in the safelist. validate_filters
                rejects such values first, so reaching this is a bug.
        """
        if self.sort in self.sort_safelist:
            return self.sort.lstrip("-")
        raise ValueError(f"unsafe sort parameter: {self.sort}")

    def sort_direction(self) -> str:
        return "DESC" if self.sort.startswith("-") else "ASC"


def validate_filters(v: Validator, f: Filters) -> None:
    v.check(f.page > 0, "page", "must be greater than zero")
    v.check(f.page <= MAX_PAGE, "page", "must be a maximum of 10 million")
    v.check(f.page_size > 0, "page_size", "must be greater than zero")
    v.check(f.page_size <= MAX_PAGE_SIZE, "page_size", "must be a maximum of 100")
    v.check(permitted_value(f.sort, *f.sort_safelist), "sort", "invalid sort value")


def calculate_metadata(total_records: int, page: int, page_size: int) -> Metadata:
    if total_records == 0:
        return Metadata()
    return Metadata(
        current_page=page,
        page_size=page_size,
        first_page=1,
        last_page=math.ceil(total_records / page_size),
        total_records=total_records,
    )
