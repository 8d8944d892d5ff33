"""Row predicates shared by backend queries and realtime subscriptions.

The same ``Filter`` object compiles to a SQLAlchemy clause for ``select`` and
evaluates against a plain row dict when a realtime event is delivered, so a
subscription scoped by ``eq("conversation_id", 7)`` sees exactly the rows a
query with that filter would return.
"""
from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from sqlalchemy import Integer, Uuid, and_, or_
from sqlalchemy.sql.elements import ColumnElement

_OPERATORS = {"eq", "neq", "is", "in", "ilike"}


@dataclass(frozen=True)
class Filter:
    column: str
    op: str
    value: Any = None

    def __post_init__(self) -> None:
        if self.op not in _OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.op}")

    def compile(self, model: type) -> ColumnElement[bool]:
        column = getattr(model, self.column, None)
        if column is None or not hasattr(column, "property"):
            raise ValueError(f"Unknown column {self.column!r} for {model.__name__}")
        if self.op == "eq":
            return column == _coerce(column, self.value)
        if self.op == "neq":
            return column != _coerce(column, self.value)
        if self.op == "is":
            return column.is_(self.value)
        if self.op == "in":
            return column.in_([_coerce(column, item) for item in self.value])
        return column.ilike(str(self.value))

    def matches(self, row: Mapping[str, Any]) -> bool:
        actual = row.get(self.column)
        if self.op == "eq":
            return _normalize(actual) == _normalize(self.value)
        if self.op == "neq":
            return _normalize(actual) != _normalize(self.value)
        if self.op == "is":
            return actual is self.value or _normalize(actual) == _normalize(self.value)
        if self.op == "in":
            return _normalize(actual) in {_normalize(item) for item in self.value}
        if actual is None:
            return False
        return _like_regex(str(self.value)).fullmatch(str(actual)) is not None


@dataclass(frozen=True)
class AnyOf:
    """Disjunction of filters, e.g. "either participant column is the viewer"."""

    filters: tuple[Filter, ...]

    def compile(self, model: type) -> ColumnElement[bool]:
        return or_(*(item.compile(model) for item in self.filters))

    def matches(self, row: Mapping[str, Any]) -> bool:
        return any(item.matches(row) for item in self.filters)


Predicate = Filter | AnyOf


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def neq(column: str, value: Any) -> Filter:
    return Filter(column, "neq", value)


def is_(column: str, value: bool | None) -> Filter:
    return Filter(column, "is", value)


def in_(column: str, values: Iterable[Any]) -> Filter:
    return Filter(column, "in", tuple(values))


def ilike(column: str, pattern: str) -> Filter:
    return Filter(column, "ilike", pattern)


def any_of(*filters: Filter) -> AnyOf:
    return AnyOf(tuple(filters))


def compile_all(model: type, predicates: Iterable[Predicate]) -> ColumnElement[bool] | None:
    clauses = [predicate.compile(model) for predicate in predicates]
    if not clauses:
        return None
    return and_(*clauses)


def matches_all(row: Mapping[str, Any], predicates: Iterable[Predicate]) -> bool:
    return all(predicate.matches(row) for predicate in predicates)


def parse_filter(text: str) -> Filter:
    """Parse the ``column=op.value`` wire form, e.g. ``conversation_id=eq.42``."""

    column, sep, rest = (text or "").partition("=")
    op, dot, raw = rest.partition(".")
    column = column.strip()
    if not sep or not dot or not column:
        raise ValueError(f"Malformed filter: {text!r}")
    op = op.strip().lower()
    if op == "in":
        items = raw.strip().strip("()")
        return Filter(column, "in", tuple(part.strip() for part in items.split(",") if part.strip()))
    if op == "is":
        lowered = raw.strip().lower()
        if lowered not in {"null", "true", "false"}:
            raise ValueError(f"Unsupported value for is filter: {raw!r}")
        return Filter(column, "is", {"null": None, "true": True, "false": False}[lowered])
    return Filter(column, op, raw)


def _coerce(column: Any, value: Any) -> Any:
    column_type = getattr(column, "type", None)
    if isinstance(value, str):
        if isinstance(column_type, Uuid):
            try:
                return uuid.UUID(value)
            except ValueError as exc:
                raise ValueError(f"Invalid UUID for {column.key}: {value!r}") from exc
        if isinstance(column_type, Integer):
            try:
                return int(value)
            except ValueError as exc:
                raise ValueError(f"Invalid integer for {column.key}: {value!r}") from exc
    return value


def _normalize(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _like_regex(pattern: str) -> re.Pattern[str]:
    parts = (re.escape(chunk) for chunk in pattern.split("%"))
    return re.compile(".*".join(parts).replace("_", "."), re.IGNORECASE | re.DOTALL)


__all__ = [
    "Filter",
    "AnyOf",
    "Predicate",
    "eq",
    "neq",
    "is_",
    "in_",
    "ilike",
    "any_of",
    "compile_all",
    "matches_all",
    "parse_filter",
]
