from __future__ import annotations

from typing import Iterable, List, Union

from ..errors import InvalidArgumentError

Identifier = Union[str, int]
Identifiers = Union[Identifier, Iterable[Identifier]]

_COLLECTIONS = (list, tuple, set, frozenset)


def make_id(value: object, name: str = "identifier") -> str:
    """Normalize a single identifier to a string."""
    # bool is an int subclass but never a valid identifier
    if isinstance(value, bool):
        raise InvalidArgumentError(f"{name} must be a string or integer, got bool")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        if not value:
            raise InvalidArgumentError(f"{name} must not be empty")
        return value
    raise InvalidArgumentError(
        f"{name} must be a string or integer, got {type(value).__name__}"
    )


def make_list(value: object, name: str = "identifiers") -> List[str]:
    """Normalize one identifier or a collection of them to a list of strings.

    Duplicates are dropped, first occurrence wins.
    """
    if isinstance(value, _COLLECTIONS):
        items = [make_id(item, name) for item in value]
    else:
        items = [make_id(value, name)]
    return list(dict.fromkeys(items))
