"""Case-insensitive name handling shared by the compiler, planner and executor.

Every comparison of table, column, mixin, index-field and attribute names goes
through this module so the matching rule stays identical everywhere.

Usage:
    from schemashift.schema.names import name_key, names_equal

    names_equal("User", "USER")  # True
    tables[name_key("User")] = table
"""

from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import TypeVar

T = TypeVar("T")


def name_key(name: str) -> str:
    """Return the normalized lookup key for *name*."""
    return name.casefold()


def names_equal(left: str, right: str) -> bool:
    """True if two names match ignoring case."""
    return name_key(left) == name_key(right)


def name_sequences_equal(left: Sequence[str], right: Sequence[str]) -> bool:
    """True if two ordered name lists match element by element ignoring case."""
    if len(left) != len(right):
        return False
    return all(names_equal(a, b) for a, b in zip(left, right))


def contains_name(names: Iterable[str], name: str) -> bool:
    """True if *name* is in *names* ignoring case."""
    key = name_key(name)
    return any(name_key(candidate) == key for candidate in names)


def find_by_name(items: Iterable[T], name: str, get_name: Callable[[T], str]) -> T | None:
    """Return the first item whose name matches *name*, or None.

    Example:
        >>> find_by_name(table.fields, "email", lambda f: f.name)
    """
    key = name_key(name)
    for item in items:
        if name_key(get_name(item)) == key:
            return item
    return None


def has_attribute(attributes: Mapping[str, bool], name: str) -> bool:
    """True if an attribute flag named *name* is present and set."""
    key = name_key(name)
    return any(name_key(attr) == key and enabled for attr, enabled in attributes.items())
