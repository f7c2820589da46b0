"""
Helmsman faults (errors) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for all user-facing parse
  faults. Codes are grouped by domain to keep copy consistent and make
  logs/searches predictable.
- ConfigurationError: programmer errors raised while a command tree is being
  built (duplicate flag, unknown alias target, alias reuse, duplicate
  subcommand). Never routed through a policy; they surface immediately.
- ValueParseError: a value variant refused a raw string. Always wrapped into
  InvalidValueError at the registry boundary.
- CommandException / ParseError: faults raised while scanning tokens. They
  carry message + options and know how to render themselves.
- trigger(): central entry point to surface a fault (respecting shell/fancy/colorful).
- getdoc(): optional description lookup for a code from the host application.

Policy
- In non-shell mode, faults are raised to the caller as typed exceptions.
- In shell mode, they are rendered via rich on stderr and the process exits
  with status 1.
"""
import copy
import sys
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset, UnsetType, coalesce

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the parser (stable identifiers).

    grouping (by high-level domain)
    - flags (1111x)
      • MALFORMED_FLAG, UNKNOWN_FLAG, UNKNOWN_ALIAS, MISSING_VALUE, INVALID_VALUE

    normalize() allows host remapping to custom labels while keeping code-stability.
    """
    # --- flag errors (11xxx) ---
    MALFORMED_FLAG = 11111
    UNKNOWN_FLAG   = 11112
    UNKNOWN_ALIAS  = 11113
    MISSING_VALUE  = 11114
    INVALID_VALUE  = 11115

    def normalize(self):
        """
        label shown in rendered faults: __main__.__codes__[code] when the host
        maps it, else the number itself.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class ConfigurationError(Exception):
    """
    raised while defining flags, aliases or subcommands.

    these are programming errors: they are never caught by the library and
    never subject to the shell/raise policy of a command.
    """


class DuplicateFlagError(ConfigurationError): ...
class UndefinedFlagError(ConfigurationError): ...
class DuplicateAliasError(ConfigurationError): ...
class DuplicateCommandError(ConfigurationError): ...


class ValueParseError(ValueError):
    """
    raised by a value variant when a raw string cannot be converted.
    """


_PALETTE = {
    "prog-name": "bold #E6E6F0",
    "code": "bold #00E5FF",
    "error-title": "bold #FF4DA6",
    "error-message": "#C8C8D0",
    "hint-arrow": "#9CE19C dim",
    "hint": "italic #9CE19C",
    "docs": "dim #A3A3A3",
}


class CommandException(Exception):
    """
    fault raised while turning tokens into flags, params and a handler.

    options carry the rendering context: title, code, hint, docs, token,
    index, cause, plus the runtime options (tool, shell, fancy, colorful)
    merged in by the command that reports it.
    """

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | UnsetType)
        super().__init__(coalesce(message, ""))
        self.message = coalesce(message, "")
        self.options = MappingProxyType(options)

    def __rich__(self):
        main = __import__("__main__")
        palette = defaultdict(str, _PALETTE | getattr(main, "__styles__", {}))
        colorful = self.options.get("colorful", False)

        def paint(fragment, style):
            return Text(str(fragment or ""), palette[style] if colorful else "")

        tool = self.options.get("tool")
        code = self.options.get("code")
        prog = getattr(main, "__prog__", tool.root.name if tool else "helmsman")

        header = Text.assemble(
            "[ ", paint(prog, "prog-name"),
            " — ", paint(code.normalize() if code else "?", "code"),
            " | ", paint(self.options.get("title", "error").title(), "error-title"), " ]",
        )
        lines = [paint(self.message, "error-message")]
        if hint := self.options.get("hint"):
            lines.append(Text.assemble(paint(" → ", "hint-arrow"), paint(hint, "hint")))
        if docs := self.options.get("docs"):
            lines.append(paint(docs, "docs"))

        if self.options.get("fancy", False):
            return Panel(Group(*lines), title=header, title_align="left", width=console.width - 4)
        return Group(header, *lines)

    def __trigger__(self):
        if not self.options.get("shell", False):
            raise self from self.options.get("cause")
        console.print(self)
        sys.exit(1)

    def __replace__(self, /, **overrides):
        return type(self)(self.message, **(dict(self.options) | overrides))


class ParseError(CommandException):
    """
    base of every fault raised while scanning a token sequence.
    """


class MalformedFlagError(ParseError): ...
class UnknownFlagError(ParseError): ...
class UnknownAliasError(ParseError): ...
class MissingValueError(ParseError): ...
class InvalidValueError(ParseError): ...


def trigger(fault, /, **options):
    """
    merge options into the fault, then raise it or report it.

    fault must implement __trigger__ and __replace__ (see CommandException).
    """
    if not callable(getattr(fault, "__trigger__", None)) or not callable(getattr(fault, "__replace__", None)):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    copy.replace(fault, **options).__trigger__()


def getdoc(code, /):
    """
    documentation registered by the host in __main__.__docs__ for a code, or None.
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be a fault-code")
    return getattr(__import__("__main__"), "__docs__", {}).get(code)


__all__ = (
    "FaultCode",
    "ConfigurationError",
    "DuplicateFlagError",
    "UndefinedFlagError",
    "DuplicateAliasError",
    "DuplicateCommandError",
    "ValueParseError",
    "CommandException",
    "ParseError",
    "MalformedFlagError",
    "UnknownFlagError",
    "UnknownAliasError",
    "MissingValueError",
    "InvalidValueError",
    "trigger",
    "getdoc",
)
