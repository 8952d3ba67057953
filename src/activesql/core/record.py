"""Records, identifiers and declared table mappings.

A :class:`Record` is one row: an insertion-ordered ``column -> value``
mapping tagged with its table.  It is the only shape the statement
compiler understands.  Structured objects reach the compiler through a
:class:`TableMapping` that was *declared* for their class; nothing is
discovered by inspecting objects at call time.

Usage::

    user = Record("users", name="ada", email=None)
    user.non_null()          # {'name': 'ada'}

    registry = MappingRegistry()

    @registry.mapped("users", fields={"id": "id", "user_name": "name"})
    @dataclass
    class User:
        id: int | None
        name: str

    registry.to_record(User(None, "ada"))
    # Record('users', {'id': None, 'user_name': 'ada'})

Tags:
    record, active-record, mapping, identifier, activesql
"""

from __future__ import annotations

import datetime
import decimal
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from operator import attrgetter
from typing import Any, Generic, TypeVar

from activesql.core.errors import MissingIdentifier, SchemaMismatch, UnmappedType

T = TypeVar("T")

# Value = null | integer | float | text | boolean | binary | temporal
SUPPORTED_VALUE_TYPES: tuple[type, ...] = (
    bool,
    int,
    float,
    decimal.Decimal,
    str,
    bytes,
    bytearray,
    memoryview,
    datetime.date,
    datetime.datetime,
    datetime.time,
)


def is_supported_value(value: Any) -> bool:
    """True for ``None`` and every scalar type a column value may take."""
    return value is None or isinstance(value, SUPPORTED_VALUE_TYPES)


class Record(dict):
    """One row: ordered ``column -> value`` mapping with a table name.

    Behaves like a ``dict`` in every respect; the extra ``table`` attribute
    names the target table.  Two records are equal when their fields are
    equal and, if both carry one, their table names match.
    """

    __slots__ = ("table",)

    def __init__(
        self,
        table: str | None = None,
        fields: Mapping[str, Any] | Iterable[tuple[str, Any]] | None = None,
        /,
        **kwargs: Any,
    ) -> None:
        super().__init__(fields or (), **kwargs)
        self.table = table

    def set(self, column: str, value: Any) -> Record:
        """Set one field and return ``self`` for chaining."""
        self[column] = value
        return self

    def non_null(self) -> dict[str, Any]:
        """Fields whose value is not ``None``, in insertion order."""
        return {k: v for k, v in self.items() if v is not None}

    def key_values(self, key_columns: Sequence[str]) -> tuple[Any, ...]:
        """Values of ``key_columns`` (``None`` where absent)."""
        return tuple(self.get(c) for c in key_columns)

    def with_table(self, table: str) -> Record:
        """Copy of this record targeting ``table``."""
        return Record(table, self)

    def copy(self) -> Record:
        return Record(self.table, self)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Record):
            if self.table and other.table and self.table != other.table:
                return False
        return dict.__eq__(self, other)

    def __ne__(self, other: object) -> bool:
        result = self.__eq__(other)
        return result if result is NotImplemented else not result

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Record({self.table!r}, {dict.__repr__(self)})"

    def __reduce__(self) -> tuple[Any, ...]:
        return (self.__class__, (self.table, dict(self)))


def normalize_identifier(
    value: Any,
    key_columns: Sequence[str],
    *,
    table: str | None = None,
) -> tuple[Any, ...]:
    """Turn a caller-supplied identifier into a tuple of key values.

    Accepted shapes:

    - a scalar, for single-column keys
    - a tuple/list with one value per key column
    - a mapping (or :class:`Record`) keyed by the key columns

    Raises:
        MissingIdentifier: when a key value is missing/``None`` or the
            arity does not match ``key_columns``.
    """
    if not key_columns:
        raise MissingIdentifier(f"Table {table!r} declares no primary key", table=table)

    if isinstance(value, Mapping):
        values = tuple(value.get(c) for c in key_columns)
    elif isinstance(value, (tuple, list)):
        values = tuple(value)
    else:
        values = (value,)

    if len(values) != len(key_columns):
        raise MissingIdentifier(
            f"Identifier has {len(values)} value(s), key {tuple(key_columns)} needs {len(key_columns)}",
            table=table,
        )
    if any(v is None for v in values):
        raise MissingIdentifier(
            f"Identifier for key {tuple(key_columns)} contains a null value",
            table=table,
        )
    return values


# =========================================================================
# Structured records
# =========================================================================


@dataclass(frozen=True)
class TableMapping(Generic[T]):
    """Declared column-to-attribute mapping for one class.

    ``fields`` maps column names to attribute names, in column order; a
    plain sequence of names means column and attribute share the name.
    ``factory`` builds an instance from attribute keyword arguments
    (usually the class itself).
    """

    table: str
    fields: Mapping[str, str] | Sequence[str]
    factory: Callable[..., T]
    _getters: tuple[tuple[str, Callable[[Any], Any]], ...] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        if isinstance(self.fields, Mapping):
            normalized = dict(self.fields)
        else:
            normalized = {name: name for name in self.fields}
        if not normalized:
            raise SchemaMismatch(f"Mapping for table {self.table!r} declares no fields", table=self.table)
        object.__setattr__(self, "fields", normalized)
        object.__setattr__(
            self,
            "_getters",
            tuple((column, attrgetter(attr)) for column, attr in normalized.items()),
        )

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(self.fields)

    def to_record(self, obj: T) -> Record:
        """Read the declared attributes of ``obj`` into a Record."""
        return Record(self.table, ((column, get(obj)) for column, get in self._getters))

    def from_record(self, record: Mapping[str, Any]) -> T:
        """Build an instance from the declared columns present in ``record``."""
        kwargs = {attr: record[column] for column, attr in self.fields.items() if column in record}
        return self.factory(**kwargs)


class MappingRegistry:
    """Explicit ``class -> TableMapping`` registry.

    Lookup is by exact class; subclasses must be registered on their own.
    """

    def __init__(self) -> None:
        self._mappings: dict[type, TableMapping[Any]] = {}

    def register(self, cls: type[T], mapping: TableMapping[T]) -> None:
        self._mappings[cls] = mapping

    def mapped(
        self,
        table: str,
        fields: Mapping[str, str] | Sequence[str],
        factory: Callable[..., Any] | None = None,
    ) -> Callable[[type[T]], type[T]]:
        """Class decorator registering a mapping for the decorated class."""

        def decorator(cls: type[T]) -> type[T]:
            self.register(cls, TableMapping(table, fields, factory or cls))
            return cls

        return decorator

    def get(self, cls: type[T]) -> TableMapping[T]:
        try:
            return self._mappings[cls]
        except KeyError:
            raise UnmappedType(f"No table mapping registered for {cls.__name__}") from None

    def __contains__(self, cls: object) -> bool:
        return cls in self._mappings

    def to_record(self, obj: Any) -> Record:
        """Pass Records through; convert mapped objects; reject everything else."""
        if isinstance(obj, Record):
            return obj
        return self.get(type(obj)).to_record(obj)


__all__ = [
    "SUPPORTED_VALUE_TYPES",
    "is_supported_value",
    "Record",
    "normalize_identifier",
    "TableMapping",
    "MappingRegistry",
]
