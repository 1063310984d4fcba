"""SQL scoring-fragment builders for the external full-text/trigram substrate.

Fragments carry psycopg-style named placeholders (``%(query)s``) plus their
parameters, so the query layer can bind values instead of interpolating them.
:meth:`SqlFragment.render` inlines the parameters as quoted literals for
substrates that cannot bind.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Sequence

from pydantic import BaseModel, ConfigDict, Field

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*$")
_PLACEHOLDER_RE = re.compile(r"%\((\w+)\)s")


class SqlFragment(BaseModel):
    """A SQL expression with named placeholders and their values."""

    model_config = ConfigDict(frozen=True)

    sql: str
    params: dict[str, Any] = Field(default_factory=dict)

    def render(self) -> str:
        """Inline every parameter as a literal (single quotes doubled)."""
        return _PLACEHOLDER_RE.sub(lambda m: quote_literal(self.params[m.group(1)]), self.sql)


def quote_literal(value: Any) -> str:  # noqa: ANN401
    """Render *value* as a SQL literal."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, (date, datetime)):
        value = value.isoformat()
    escaped = str(value).replace("'", "''")
    return f"'{escaped}'"


def _identifier(name: str) -> str:
    if not _IDENTIFIER_RE.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


def build_fts_rank_sql(search_vector: str, query: str) -> SqlFragment:
    """``ts_rank`` of *search_vector* against ``plainto_tsquery`` of *query*."""
    column = _identifier(search_vector)
    return SqlFragment(
        sql=f"ts_rank({column}, plainto_tsquery('english', %(query)s))",
        params={"query": query},
    )


def build_trigram_sql(column: str, query: str) -> SqlFragment:
    """``pg_trgm`` similarity between *column* and *query*."""
    return SqlFragment(
        sql=f"similarity({_identifier(column)}, %(query)s)",
        params={"query": query},
    )


def build_multi_column_trigram_sql(columns: Sequence[str], query: str) -> SqlFragment:
    """Best trigram similarity of *query* across *columns*."""
    if not columns:
        raise ValueError("At least one column is required.")
    parts = ", ".join(
        f"COALESCE(similarity({_identifier(col)}, %(query)s), 0)" for col in columns
    )
    return SqlFragment(sql=f"GREATEST({parts})", params={"query": query})


def build_recency_boost_sql(
    date_column: str,
    reference_date: date | datetime | None = None,
) -> SqlFragment:
    """``CASE`` expression equivalent to :func:`~event_search.pipeline.rank.recency_boost_for_days`.

    Day differences are whole days (``date - date``) evaluated in double
    precision with the same operation order as the in-process curve, so the
    two agree at the 0 / 14 / 30 day boundaries. Uses ``CURRENT_DATE`` unless
    *reference_date* is given.
    """
    column = _identifier(date_column)
    params: dict[str, Any] = {}
    if reference_date is None:
        reference = "CURRENT_DATE"
    else:
        if isinstance(reference_date, datetime):
            reference_date = reference_date.date()
        reference = "CAST(%(reference_date)s AS date)"
        params["reference_date"] = reference_date

    days = f"CAST((CAST({column} AS date) - {reference}) AS double precision)"
    sql = (
        "CASE\n"
        f"  WHEN {days} < 0 THEN GREATEST(0.0, EXP({days} / 7) * 0.3)\n"
        f"  WHEN {days} = 0 THEN 1.0\n"
        f"  WHEN {days} <= 14 THEN 1.0 - ({days} / 14) * 0.5\n"
        f"  WHEN {days} <= 30 THEN 0.5 - (({days} - 14) / 16) * 0.2\n"
        f"  ELSE GREATEST(0.1, 0.3 - (({days} - 30) / 60) * 0.2)\n"
        "END"
    )
    return SqlFragment(sql=sql, params=params)
