"""
Helmsman positional parameters.

A ParamSet holds the ordered parameter names of one command and binds the
tokens left over after flag parsing to them, one token per name, in a
single pass:
- fewer tokens than names: trailing names stay unbound (not an error).
- more tokens than names: the excess is kept, in order, as `unparsed`.
"""
from .logger import logger
from .utils import *


class Param:
    """
    One declared positional parameter.
    """

    name = mirror("name")

    def __init__(self, name, /):
        self._name = name

    def __repr__(self):
        return f"param(name={self._name!r})"


class ParamSet:
    names = mirror("names")
    unparsed = mirror("unparsed")
    parsed = mirror("parsed")

    def __init__(self, *names):
        self._params = []
        self._names = []
        self._values = {}
        self._unparsed = []
        self._parsed = False
        self.define(*names)

    def define(self, *names):
        """
        Replace the declared parameter list (no merge with a previous one).
        """
        for name in names:
            if not isinstance(name, str):
                raise TypeError("param names must be strings")
            if not name.strip():
                raise ValueError("param names cannot be empty-strings")
        self._params = [Param(name) for name in names]
        self._names = list(names)
        self._values.clear()
        self._unparsed.clear()
        self._parsed = False

    def reset(self):
        """
        Drop the bindings of the previous pass; the declared names are kept.
        """
        self._values = {}
        self._unparsed = []
        self._parsed = False

    def bind(self, tokens, /):
        """
        Assign tokens to the declared names in order and keep the overflow.

        Returns
        - tuple[str, ...]: the overflow tokens (same as `unparsed`).
        """
        tokens = list(tokens)
        self._values = dict(zip(self._params, tokens))
        self._unparsed = tokens[len(self._params):]
        self._parsed = True
        logger.debug("bound %d param(s), %d unparsed", len(self._values), len(self._unparsed))
        return tuple(self._unparsed)

    def param(self, name, /):
        """
        Return the raw token bound to `name`, or None when it stayed unbound.

        Raises
        - KeyError: `name` is not a declared parameter.
        """
        for param in self._params:
            if param.name == name:
                return self._values.get(param)
        raise KeyError(f"param not defined: {name}")

    @property
    def params(self):
        """
        Mapping of bound parameter names to their raw tokens.
        """
        return {param.name: value for param, value in self._values.items()}

    def __len__(self):
        return len(self._params)

    def usage(self):
        """
        Render the parameter list as '<first> <second> ...'.
        """
        return " ".join("<%s>" % name for name in self._names)

    def __repr__(self):
        return f"param-set(names={tuple(self._names)!r}, parsed={self._parsed!r})"


__all__ = (
    "Param",
    "ParamSet",
)
