"""Page requests and the pagination resolver.

A :class:`Page` is 1-based: page 1 covers rows ``[0, page_size)``.
:func:`resolve_page` appends the requested ordering and the dialect's
bounding clause to already-compiled SQL; limit and offset are bound as
parameters so every page of the same query shares one SQL shape.

Unordered paging on mutable data is non-deterministic.  Asking for a page
beyond the first without any ``ORDER BY`` logs a warning; enforcing an
order is left to the caller.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from activesql.core.dialect import Dialect
from activesql.core.errors import InvalidPage
from activesql.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

_MAX_OFFSET = 2**63 - 1
_ORDER_BY = re.compile(r"\border\s+by\b", re.IGNORECASE)


class Direction(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


@dataclass(frozen=True)
class Order:
    """One ``ORDER BY`` term."""

    column: str
    direction: Direction = Direction.ASC

    @classmethod
    def parse(cls, text: str) -> Order:
        """``"name"`` / ``"name desc"`` / ``"-name"`` → :class:`Order`."""
        text = text.strip()
        if text.startswith("-"):
            return cls(text[1:].strip(), Direction.DESC)
        column, _, direction = text.partition(" ")
        direction = direction.strip().upper() or "ASC"
        try:
            return cls(column, Direction(direction))
        except ValueError:
            raise InvalidPage(f"Unknown sort direction {direction!r} for {column!r}") from None


@dataclass(frozen=True)
class Page:
    """1-based page request.

    Example::

        Page(2, 10, order_by=("created_at desc", "id"))
    """

    page_number: int = 1
    page_size: int = 20
    order_by: tuple[Order, ...] = field(default=())

    def __post_init__(self) -> None:
        if isinstance(self.page_number, bool) or not isinstance(self.page_number, int):
            raise InvalidPage(f"page_number must be an int, got {self.page_number!r}")
        if isinstance(self.page_size, bool) or not isinstance(self.page_size, int):
            raise InvalidPage(f"page_size must be an int, got {self.page_size!r}")
        if self.page_number < 1:
            raise InvalidPage(f"page_number must be >= 1, got {self.page_number}")
        if self.page_size < 1:
            raise InvalidPage(f"page_size must be >= 1, got {self.page_size}")
        if (self.page_number - 1) * self.page_size > _MAX_OFFSET:
            raise InvalidPage(f"Offset of page {self.page_number} x {self.page_size} overflows")

        orders = self.order_by
        if isinstance(orders, (str, Order)):
            orders = (orders,)
        object.__setattr__(
            self,
            "order_by",
            tuple(o if isinstance(o, Order) else Order.parse(o) for o in orders),
        )

    @property
    def offset(self) -> int:
        """Zero-based index of the first row on this page."""
        return (self.page_number - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size

    def next(self) -> Page:
        return Page(self.page_number + 1, self.page_size, self.order_by)


@dataclass(frozen=True)
class PageResult(Generic[T]):
    """One page of rows plus the total row count of the unbounded query."""

    items: list[T]
    page: Page
    total: int

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.page.page_size)

    @property
    def has_next(self) -> bool:
        return self.page.page_number < self.total_pages

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)


def order_terms(orders: Sequence[Order], dialect: Dialect) -> str:
    return ", ".join(f"{dialect.quote(o.column)} {o.direction.value}" for o in orders)


def resolve_page(
    sql: str,
    page: Page,
    dialect: Dialect,
    start: int = 0,
) -> tuple[str, tuple[Any, ...]]:
    """Bound ``sql`` to ``page``.

    Args:
        sql: Compiled base query (placeholders already rendered).
        page: The page request.
        dialect: Supplies ordering quoting and the bounding clause.
        start: Number of parameters already bound in ``sql``; numbered
            placeholder styles continue from there.

    Returns:
        The bounded SQL and the extra parameters to append, in
        placeholder order.
    """
    base = sql.rstrip().rstrip(";").rstrip()
    ordered = bool(_ORDER_BY.search(base))

    if page.order_by:
        # the requested ordering replaces any ordering of the base query
        if ordered:
            base = f"SELECT * FROM ({base}) page_base"
        parts = [base, f"ORDER BY {order_terms(page.order_by, dialect)}"]
    else:
        parts = [base]

    if not page.order_by and not ordered and page.page_number > 1:
        logger.warning(
            "unordered_page",
            page_number=page.page_number,
            page_size=page.page_size,
        )

    fragment, names = dialect.limit_offset(start)
    parts.append(fragment)
    values = {"limit": page.limit, "offset": page.offset}
    return " ".join(parts), tuple(values[name] for name in names)


__all__ = [
    "Direction",
    "Order",
    "Page",
    "PageResult",
    "resolve_page",
]
