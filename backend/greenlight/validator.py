"""
Greenlight — Field Validator
=============================

Collects field → message errors so a handler can report every problem in one
422 response instead of failing on the first.

Usage:
    v = Validator()
    v.check(movie.title != "", "title", "must be provided")
    v.ensure_valid()   # raises FailedValidationError when anything was recorded
"""

from typing import Dict, Hashable, Iterable, Pattern

from greenlight.exceptions import FailedValidationError


class Validator:
    def __init__(self) -> None:
        self.errors: Dict[str, str] = {}

    def valid(self) -> bool:
        return not self.errors

    def add_error(self, key: str, message: str) -> None:
        # First message for a field wins.
        self.errors.setdefault(key, message)

    def check(self, ok: bool, key: str, message: str) -> None:
        if not ok:
            self.add_error(key, message)

    def ensure_valid(self) -> None:
        if self.errors:
            raise FailedValidationError(self.errors)


def permitted_value(value: Hashable, *permitted: Hashable) -> bool:
    return value in permitted


def matches(value: str, rx: Pattern[str]) -> bool:
    return rx.match(value) is not None


def unique(values: Iterable[Hashable]) -> bool:
    items = list(values)
    return len(set(items)) == len(items)
