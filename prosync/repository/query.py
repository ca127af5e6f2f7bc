"""
Backend-neutral query description for the record store.

A ``Query`` collects filters, ordering and a limit; each backend compiles it
to its own SQL dialect. Builder methods mutate and return the query so calls
chain::

    Query().eq("user_id", uid).gte("date", start).order("date", desc=True).limit(100)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from prosync.security.sql import validate_identifier


@dataclass(frozen=True)
class Filter:
    op: str  # eq | neq | gte | lte | in | any_eq | search
    columns: tuple[str, ...]
    value: Any


@dataclass
class Query:
    filters: list[Filter] = field(default_factory=list)
    ordering: list[tuple[str, bool]] = field(default_factory=list)
    max_rows: int | None = None

    def _add(self, op: str, columns: tuple[str, ...], value: Any) -> Query:
        for column in columns:
            validate_identifier(column)
        self.filters.append(Filter(op, columns, value))
        return self

    def eq(self, column: str, value: Any) -> Query:
        """Match rows whose *column* equals *value* (``None`` matches missing/null)."""
        return self._add("eq", (column,), value)

    def neq(self, column: str, value: Any) -> Query:
        return self._add("neq", (column,), value)

    def gte(self, column: str, value: Any) -> Query:
        return self._add("gte", (column,), value)

    def lte(self, column: str, value: Any) -> Query:
        return self._add("lte", (column,), value)

    def in_(self, column: str, values: list[Any] | tuple[Any, ...] | set[Any]) -> Query:
        return self._add("in", (column,), tuple(values))

    def any_eq(self, **pairs: Any) -> Query:
        """Match rows where at least one ``column == value`` pair holds."""
        if not pairs:
            raise ValueError("any_eq() needs at least one column")
        columns = tuple(pairs)
        return self._add("any_eq", columns, tuple(pairs[c] for c in columns))

    def ilike(self, column: str, text: str) -> Query:
        """Case-insensitive substring match; wildcards in *text* are literal."""
        return self.search((column,), text)

    def search(self, columns: tuple[str, ...] | list[str], text: str) -> Query:
        """Case-insensitive substring match against any of *columns*."""
        columns = tuple(columns)
        if not columns:
            raise ValueError("search() needs at least one column")
        return self._add("search", columns, text)

    def order(self, column: str, *, desc: bool = False) -> Query:
        self.ordering.append((validate_identifier(column), desc))
        return self

    def limit(self, count: int) -> Query:
        if count < 0:
            raise ValueError("limit must be >= 0")
        self.max_rows = int(count)
        return self
