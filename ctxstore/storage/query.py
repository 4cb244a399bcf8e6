"""Predicate builder for filtered reads.

Every read is scoped to one project, narrowed by zero or more optional
equality filters, then ordered by a fixed per-entity policy and limited.
All values travel as bound parameters; nothing is spliced into SQL text.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Self

from sqlalchemy import Select, Table, and_, select
from sqlalchemy.sql.elements import ColumnElement


class QueryBuilder:
    """Accumulates equality clauses for one table, then emits a single SELECT."""

    def __init__(self, table: Table, project_name: str) -> None:
        self._table = table
        self._clauses: list[ColumnElement[bool]] = [table.c.project_name == project_name]

    @property
    def clause_count(self) -> int:
        return len(self._clauses)

    def where_equal(self, column: str, value: Any) -> Self:
        """AND `column = value`. An omitted filter (None or empty string) adds nothing."""
        if value is None or value == "":
            return self
        self._clauses.append(self._table.c[column] == value)
        return self

    def where_flag(self, column: str, value: bool, *, enabled: bool) -> Self:
        """AND `column = value` only when enabled (e.g. activeOnly, includeSensitive=false)."""
        if enabled:
            self._clauses.append(self._table.c[column].is_(value))
        return self

    def build(self, order_by: Sequence[ColumnElement[Any]], limit: int) -> Select:
        return (
            select(self._table)
            .where(and_(*self._clauses))
            .order_by(*order_by)
            .limit(limit)
        )
