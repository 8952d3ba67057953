"""Batch planner.

Groups consecutive compiled statements that share one SQL shape so each
group can be sent with ``Connection.execute_many``.  Rows run in exactly
the input order: a shape that reappears after a different one starts a
new group.  Groups larger than ``chunk_size`` are split, one round-trip
per chunk.

Example::

    stmts = [insert(a), insert(b), insert(c_with_extra_column), insert(d)]
    plan_batch(stmts, chunk_size=500)
    # [BatchGroup(sql_ab, rows=[a, b], indexes=(0, 1)),
    #  BatchGroup(sql_c,  rows=[c],    indexes=(2,)),
    #  BatchGroup(sql_ab, rows=[d],    indexes=(3,))]
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Any

from activesql.core.compiler import CompiledStatement

DEFAULT_CHUNK_SIZE = 500


@dataclass(frozen=True)
class BatchGroup:
    """One round-trip: a SQL shape and the parameter rows sent with it.

    ``indexes`` are the positions of the rows in the planner's input, so
    a failure can be reported against the caller's records.
    """

    sql: str
    rows: tuple[tuple[Any, ...], ...]
    indexes: tuple[int, ...]
    table: str | None = None

    def __len__(self) -> int:
        return len(self.rows)


def _chunks(items: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    for i in range(0, len(items), size):
        yield items[i : i + size]


def plan_batch(
    statements: Sequence[CompiledStatement],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> list[BatchGroup]:
    """Plan the round-trips for ``statements``.

    Zero statements plan zero groups.
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")

    groups: list[BatchGroup] = []
    runs: list[list[int]] = []
    for index, stmt in enumerate(statements):
        if runs and statements[runs[-1][0]].sql == stmt.sql:
            runs[-1].append(index)
        else:
            runs.append([index])

    for run in runs:
        first = statements[run[0]]
        for chunk in _chunks(run, chunk_size):
            groups.append(
                BatchGroup(
                    sql=first.sql,
                    rows=tuple(statements[i].params for i in chunk),
                    indexes=tuple(chunk),
                    table=first.table,
                )
            )
    return groups


__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "BatchGroup",
    "plan_batch",
]
