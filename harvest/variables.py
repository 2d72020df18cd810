"""Variable model for the execution engine.

Every processor produces a ``Variable``. There are four variants:

- ``EmptyVariable``: the absence of a value (a singleton, ``EMPTY``)
- ``NodeVariable``: one opaque value (text, number, lxml element, script object)
- ``ListVariable``: an ordered, flat sequence of variables
- ``BinaryVariable``: raw bytes, e.g. fetched images

Variables are immutable once constructed. Use ``create_variable`` to turn an
arbitrary Python value into the right variant.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from typing import Any

from harvest.xml import is_node, serialize_item

DEFAULT_CHARSET = "UTF-8"

_COLLECTION_TYPES = (list, tuple, set, frozenset)


def is_boolean_true(value: str | None) -> bool:
    """Check if a string represents boolean true (``1``, ``true``, ``yes``)."""
    return value is not None and value.strip().lower() in ("1", "true", "yes")


class Variable(ABC):
    """Base class of all result values."""

    @abstractmethod
    def to_string(self, charset: str = DEFAULT_CHARSET) -> str:
        """Return the textual form of this variable."""

    @abstractmethod
    def to_list(self) -> list[Variable]:
        """Return this variable as a list of variables."""

    @abstractmethod
    def wrapped_object(self) -> Any:
        """Return the Python value handed to scripting engines."""

    def to_bytes(self, charset: str = DEFAULT_CHARSET) -> bytes:
        return self.to_string(charset).encode(charset)

    def to_bool(self) -> bool:
        return is_boolean_true(self.to_string())

    def is_empty(self) -> bool:
        return self.to_string().strip() == ""

    def __str__(self) -> str:
        return self.to_string()

    def __bool__(self) -> bool:
        return not self.is_empty()

    def __iter__(self) -> Iterator[Variable]:
        return iter(self.to_list())


class EmptyVariable(Variable):
    """The empty result. There is exactly one instance, ``EMPTY``."""

    _instance: EmptyVariable | None = None

    def __new__(cls) -> EmptyVariable:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def to_string(self, charset: str = DEFAULT_CHARSET) -> str:
        return ""

    def to_list(self) -> list[Variable]:
        return []

    def wrapped_object(self) -> Any:
        return None

    def is_empty(self) -> bool:
        return True

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Variable) and other.is_empty()

    def __hash__(self) -> int:
        return hash("")

    def __repr__(self) -> str:
        return "EMPTY"


EMPTY = EmptyVariable()


class NodeVariable(Variable):
    """Wraps a single value.

    Attributes:
        value: The wrapped object. lxml elements are kept as elements and
            serialized lazily when their text is requested.
    """

    __slots__ = ("value",)

    def __init__(self, value: Any) -> None:
        self.value = value

    def to_string(self, charset: str = DEFAULT_CHARSET) -> str:
        if self.value is None:
            return ""
        if isinstance(self.value, str):
            return self.value
        if isinstance(self.value, (bytes, bytearray)):
            return bytes(self.value).decode(charset, errors="replace")
        if is_node(self.value) or isinstance(self.value, (bool, float)):
            return serialize_item(self.value)
        return str(self.value)

    def to_list(self) -> list[Variable]:
        return [self]

    def wrapped_object(self) -> Any:
        return self.value

    def __eq__(self, other: object) -> bool:
        if isinstance(other, NodeVariable):
            return self.to_string() == other.to_string()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.to_string())

    def __repr__(self) -> str:
        return f"NodeVariable({self.value!r})"


class ListVariable(Variable):
    """An ordered sequence of variables.

    Nested collections and list variables are flattened at construction, so
    a list never contains another list. ``EMPTY`` items and blank raw values
    are dropped; node variables are kept as given, even when blank.
    """

    __slots__ = ("_items",)

    def __init__(self, items: Iterable[Any] = ()) -> None:
        flat: list[Variable] = []
        _flatten_into(items, flat)
        self._items = tuple(flat)

    def to_string(self, charset: str = DEFAULT_CHARSET) -> str:
        return "\n".join(
            text
            for text in (item.to_string(charset) for item in self._items)
            if text
        )

    def to_list(self) -> list[Variable]:
        return list(self._items)

    def wrapped_object(self) -> Any:
        return [item.wrapped_object() for item in self._items]

    def is_empty(self) -> bool:
        return not self._items

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index: int) -> Variable:
        return self._items[index]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ListVariable):
            return self._items == other._items
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._items)

    def __repr__(self) -> str:
        return f"ListVariable({list(self._items)!r})"


class BinaryVariable(Variable):
    """Raw bytes, such as a downloaded image."""

    __slots__ = ("data",)

    def __init__(self, data: bytes) -> None:
        self.data = bytes(data)

    def to_string(self, charset: str = DEFAULT_CHARSET) -> str:
        return self.data.decode(charset, errors="replace")

    def to_bytes(self, charset: str = DEFAULT_CHARSET) -> bytes:
        return self.data

    def to_list(self) -> list[Variable]:
        return [self]

    def wrapped_object(self) -> Any:
        return self.data

    def is_empty(self) -> bool:
        return not self.data

    def __eq__(self, other: object) -> bool:
        if isinstance(other, BinaryVariable):
            return self.data == other.data
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.data)

    def __repr__(self) -> str:
        return f"BinaryVariable({len(self.data)} bytes)"


def _is_collection(value: Any) -> bool:
    return isinstance(value, _COLLECTION_TYPES) or (
        isinstance(value, Iterator) and not is_node(value)
    )


def _flatten_into(items: Iterable[Any], out: list[Variable]) -> None:
    for item in items:
        if isinstance(item, ListVariable):
            out.extend(item._items)
        elif isinstance(item, (NodeVariable, BinaryVariable)):
            out.append(item)
        elif _is_collection(item):
            _flatten_into(item, out)
        else:
            variable = create_variable(item)
            if not variable.is_empty():
                out.append(variable)


def create_variable(value: Any) -> Variable:
    """Normalize any value into a Variable.

    - ``None``, blank strings and empty variables become ``EMPTY``
    - non-empty variables are returned unchanged
    - ``bytes`` become a ``BinaryVariable``
    - lists, tuples, sets and iterators become a ``ListVariable``
    - everything else is wrapped in a ``NodeVariable``

    Args:
        value: Any Python value.

    Returns:
        The normalized variable.
    """
    if isinstance(value, Variable):
        return EMPTY if value.is_empty() else value
    if value is None or (isinstance(value, str) and not value.strip()):
        return EMPTY
    if isinstance(value, (bytes, bytearray)):
        return BinaryVariable(value) if value else EMPTY
    if _is_collection(value):
        variable = ListVariable(value)
        return EMPTY if variable.is_empty() else variable
    return NodeVariable(value)
