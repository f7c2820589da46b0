"""
Helmsman utilities shared by the values, flags, params and commands layers.

- Unset: falsey singleton meaning "argument not given", distinct from None.
- coalesce(value, default): replace Unset (and only Unset) with a default.
- rename(name): decorator giving generated callables a readable name.
- mirror(name): read-only property over self._<name>; containers come back
  as immutable copies (tuple, dict copy, frozenset).
- ordinal(number): "first", "second", ..., "11th", "22nd"; used in fault
  messages to point at a token.

    >>> coalesce(Unset, 3), coalesce(None, 3)
    (3, None)
    >>> ordinal(3), ordinal(12), ordinal(23)
    ('third', '12th', '23rd')
"""
import functools
from collections.abc import Mapping, Sequence, Set
from typing import final


@final
class UnsetType:
    """
    Type of the Unset sentinel; instantiating it always yields Unset.
    """

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


Unset = UnsetType()


def coalesce(object, default=None, /):
    return default if object is Unset else object


def rename(name, /):
    """
    Return a decorator that sets __name__ and __qualname__ to `name`.
    """
    if not isinstance(name, str):
        raise TypeError("rename() argument must be a string")

    def decorator(callable):
        callable.__name__ = callable.__qualname__ = name
        return callable

    return decorator


def _frozen(object):
    match object:
        case str():
            return object
        case Mapping():
            return {key: _frozen(value) for key, value in object.items()}
        case Sequence():
            return tuple(_frozen(item) for item in object)
        case Set():
            return frozenset(_frozen(item) for item in object)
    return object


def mirror(name, /):
    """
    Read-only property exposing self._<name>.
    """
    if not isinstance(name, str):
        raise TypeError("mirror() argument must be a string")

    attribute = "_" + name

    @rename(name)
    def getter(self):
        return _frozen(getattr(self, attribute))

    return property(getter)


_WORDS = ("first", "second", "third", "fourth", "fifth", "sixth", "seventh", "eighth", "ninth", "tenth")


@functools.cache
def ordinal(number, /):
    if 1 <= number <= len(_WORDS):
        return _WORDS[number - 1]
    if number % 100 in (11, 12, 13):
        return f"{number}th"
    return str(number) + {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")


__all__ = (
    "UnsetType",
    "Unset",
    "coalesce",
    "rename",
    "mirror",
    "ordinal",
)
