"""
Helmsman command layer: build, compose, and run command trees.

What this module provides
- Command: a named handler owning a FlagRegistry and a ParamSet, with child
  commands (subcommands) and flags that propagate down the tree.
- Context: the read-only view handed to a handler (own flags, inherited
  flags, bound params, unparsed tokens, ancestor contexts).
- command(...): create a Command or a decorator that produces one.
- invoke(obj, prompt): convenience runner for Commands or plain callables.

Dispatch (one pass per invocation)
    Entry → FlagParsing → SubcommandCheck → ParamBinding → Dispatched
- FlagParsing: the command's registry (own flags + flags propagated by
  ancestors) consumes the leading flag tokens.
- SubcommandCheck: when the first remaining token names a child exactly, the
  token is consumed and the whole cycle restarts on the child, carrying an
  explicit pass state (propagated flags, consumed offset, parent context).
- ParamBinding: remaining tokens are bound to the declared params. A leading
  "--" left by FlagParsing is dropped here, so it never reaches a param and
  the tokens after it are never matched against child names.
- Every pass first clears the params bound by the previous one, on every
  command it crosses, ancestors included.
- Dispatched: the handler runs exactly once, on the deepest command reached.

Quick start
    from helmsman import command, invoke

    @command(params=("target",), version="1.0.0")
    def tool(context):
        print(context.get("verbose"), context.param("target"))

    tool.define_bool("verbose", False, "chatty output")
    tool.alias("V", "verbose")

    if __name__ == "__main__":
        invoke(tool)

Faults
- setup mistakes raise ConfigurationError subclasses immediately.
- parse faults follow the command's policy: raised to the caller by default,
  or rendered with rich followed by sys.exit(1) when shell=True. A fallback
  registered with Command.fallback() receives the fault instead.
"""
import copy
import functools
import inspect
import operator
import os.path
import shlex
import sys
import weakref
from collections import defaultdict
from collections.abc import Iterable
from typing import NamedTuple

from rich.box import ROUNDED
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .faults import *
from .flags import FlagRegistry
from .logger import logger
from .params import ParamSet
from .utils import *


class _Pass(NamedTuple):
    """
    Explicit state carried from a command into the child it descends into.
    """
    inherited: tuple
    offset: int
    parent: "Context | None"


class Context:
    """
    Read-only view handed to a handler once its command is dispatched.

    - flag(name)/get(name): own flags and flags propagated by ancestors (the
      latter are copies; changing them never reaches the ancestor).
    - param(name)/params: bound positional parameters.
    - unparsed: tokens beyond the declared params.
    - parent: the context of the ancestor command, or None at the root.
    """

    command = mirror("command")
    parent = mirror("parent")

    def __init__(self, command, parent=None, /):
        self._command = command
        self._parent = parent

    @property
    def path(self):
        """
        Commands from the root to the dispatched one.
        """
        return self._command.path

    def flag(self, name, /):
        return self._command.registry.flag(name)

    def get(self, name, /):
        return self._command.registry.get(name)

    @property
    def flags(self):
        return self._command.registry.flags

    def param(self, name, /):
        return self._command.params.param(name)

    @property
    def params(self):
        return self._command.params.params

    @property
    def unparsed(self):
        return self._command.params.unparsed

    def __repr__(self):
        return f"context(command={self._command.name!r}, params={self.params!r})"


def _attach_to_parent(self, parent):
    """
    Register this command under its parent, enforcing unique names.
    """
    if not parent:
        return
    if parent._children.setdefault(name := self.name, self) is self:
        return
    typeof = "subcommand" if parent.parent else "command"
    raise DuplicateCommandError(f"{typeof} name {name!r} is already in use under {parent.name!r}")


class Command:
    """
    A node of the command tree.

    Responsibilities
    - Owns one FlagRegistry (flags + aliases) and one ParamSet.
    - Holds children by name; keeps only a weak reference to its parent.
    - Marks some of its flags as propagating so every descendant can parse
      and read them.
    - Runs one dispatch pass per invocation (see module docs).

    Runtime options
    - shell, fancy, colorful: bool | Unset. Unset inherits from the parent
      (False at the root). shell selects the fault policy; fancy/colorful
      shape the rich output.
    """

    __displayable__ = (
        "name",
        "descr",
        "version",
        "children",
    )

    name = mirror("name")
    descr = mirror("descr")
    version = mirror("version")
    propagating = mirror("propagating")
    children = mirror("children")
    shell = mirror("shell")
    fancy = mirror("fancy")
    colorful = mirror("colorful")
    registry = mirror("registry")
    params = mirror("params")

    def __init__(
            self,
            callback,
            /,
            name=Unset,
            descr=Unset,
            params=(),
            version=Unset,
            parent=Unset,
            *,
            shell=Unset,
            fancy=Unset,
            colorful=Unset
    ):
        """
        Parameters
        - callback: Callable[[Context], Any]
          handler invoked when this command is the deepest one resolved.
        - name: str | Unset
          defaults to the callback's __name__, else the program file name.
        - descr: str | Unset
          defaults to the callback's docstring.
        - params: Iterable[str]
          positional parameter names (see define_params()).
        - version: str | Unset
          enables the auto-injected --version/-v flag.
        - parent: Command | Unset
          attaches this command as a child of parent.
        - shell, fancy, colorful: bool | Unset (keyword-only)

        Raises
        - TypeError/ValueError on malformed metadata.
        - DuplicateCommandError when parent already has a child with this name.
        """
        if not callable(callback):
            raise TypeError("command 'callback' must be callable")
        if not isinstance(parent, Command | UnsetType):
            raise TypeError("command 'parent' must be a command")

        name = coalesce(name, getattr(callback, "__name__", os.path.basename(sys.argv[0])))
        if not isinstance(name, str):
            raise TypeError("command 'name' must be a string")
        elif not (name := name.strip()) or name.startswith("-") or any(char.isspace() for char in name):
            raise ValueError(f"invalid command name {name!r}")

        descr = coalesce(descr, inspect.getdoc(callback) or "")
        if not isinstance(descr, str):
            raise TypeError("command 'descr' must be a string")

        if not isinstance(version, str | UnsetType):
            raise TypeError("command 'version' must be a string")

        self._callback = callback
        self._name = name
        self._descr = descr.strip()
        self._version = coalesce(version, "")
        self._registry = FlagRegistry(self._version)
        self._params = ParamSet(*params)
        self._children = {}
        self._propagating = []
        self._parent = weakref.ref(parent) if parent else None
        self._fallback = Unset
        self._stderr = False
        self._shell = bool(coalesce(shell, getattr(parent, "shell", False)))
        self._fancy = bool(coalesce(fancy, getattr(parent, "fancy", False)))
        self._colorful = bool(coalesce(colorful, getattr(parent, "colorful", False)))

        _attach_to_parent(self, parent)

    @property
    def parent(self):
        """
        The parent command, or None for a root (never owned by the child).
        """
        return self._parent() if self._parent is not None else None

    @property
    def root(self):
        """
        Return the topmost command in the current command hierarchy.
        """
        child, parent = self, self.parent
        while parent:
            child, parent = parent, parent.parent
        return child

    @property
    def path(self):
        """
        Return the full ancestry from root to this command as a tuple.
        """
        path = [command := self]
        while command.parent:
            path.append(command := command.parent)
        return tuple(reversed(path))

    def __repr__(self):
        return f"command({", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))})"

    def __rich_repr__(self):
        for name in self.__displayable__:
            yield name, getattr(self, name)

    def __bool__(self):
        return True

    # ── construction ─────────────────────────────────────────────────────────

    def define_params(self, *names):
        """
        Replace the positional parameter names of this command.
        """
        self._params.define(*names)

    def propagate(self, *names):
        """
        Mark own flags as propagating: every descendant re-exposes them.

        Raises
        - UndefinedFlagError: a name is not a flag of this command.
        """
        for name in names:
            if (flag := self._registry.lookup(name)) is None or flag.inherited:
                raise UndefinedFlagError(f"flag not defined: {name}")
            if name not in self._propagating:
                self._propagating.append(name)

    def command(self, callback=Unset, /, *args, **kwargs):
        """
        Create a subcommand under this command (direct or decorator form).

            @root.command(params=("target",))
            def sub(context): ...
        """
        return command(callback, *args, parent=self, **kwargs)

    def fallback(self, fallback, /):
        """
        Register a one-time handler that receives parse faults instead of the policy.

        Returns the same callable, enabling decorator-style usage: @cmd.fallback
        """
        if not callable(fallback):
            raise TypeError("command fallback must be callable")
        if self._fallback is not Unset:
            raise TypeError("command fallback cannot be overridden")
        self._fallback = fallback
        return fallback

    # ── faults ───────────────────────────────────────────────────────────────

    def trigger(self, fault, /, **options):
        """
        Apply this command's policy to a parse fault.

        - fallback registered → fallback(fault), its result is returned.
        - shell=True → help is printed to stderr, then the fault, then exit(1).
        - otherwise → the fault is raised to the caller.
        """
        fault = copy.replace(fault, **options, tool=self, shell=self.shell, fancy=self.fancy, colorful=self.colorful)
        logger.debug("fault %s in %r: %s", type(fault).__name__, self.name, fault)
        if self._fallback:
            return self._fallback(fault)
        if self.shell:
            self._stderr = True
            try:
                self._helper()
            finally:
                self._stderr = False
        trigger(fault)

    # ── rendering ────────────────────────────────────────────────────────────

    def usage(self):
        """
        Plain usage text: synopsis, description, options and subcommands.
        """
        route = " ".join(step.name for step in self.path)
        synopsis = [route, "[options...]"]
        if len(self._params):
            synopsis.append(self._params.usage())
        if self._children:
            synopsis.append("[command]")

        sections = ["Usage:\n  " + " ".join(synopsis)]
        if self._descr:
            sections.append(self._descr)
        if flags := self._registry.usage():
            sections.append("Options:\n" + flags)
        if self._children:
            width = max(map(len, self._children))
            sections.append("Subcommands:\n" + "\n".join(
                "  %s  %s" % (name.ljust(width), child.descr) for name, child in self._children.items()
            ))
        return "\n\n".join(sections)

    def _helper(self):
        """
        Render help to the console (stderr while a fault is being reported).

        Palette keys
        - usage-label, program-name, usage-section, description-section
        - options-label, options
        - children-title, children-table, children, children-description
        - panel-title

        Define a mapping named __styles__ in __main__ to override any entry.
        """
        console = Console(stderr=self._stderr)
        styles = defaultdict(str, {
            "usage-label": "bold #00E6FF",
            "program-name": "bold #FF4D94",
            "usage-section": "bold #36C5F0",
            "description-section": "italic #A3A3A3",
            "options-label": "bold #FFFFFF",
            "options": "#9CA3AF",
            "children-title": "bold #FFFFFF",
            "children-table": "#4B5563",
            "children": "bold #36C5F0",
            "children-description": "#9CA3AF",
            "panel-title": "bold #FF4D94",
        } | getattr(__import__("__main__"), "__styles__", {}))

        def styler(style):
            return styles[style] if self.colorful else ""

        def text(fragment, style=""):
            return Text(str(fragment), styler(style))

        renders = []

        usage = Text()
        usage.append("usage", styler("usage-label")).append(": ")
        usage.append(text(" ".join(step.name for step in self.path), "program-name"))
        usage.append(" ")
        usage.append(text(" ".join(filter(None, (
            "[options...]",
            self._params.usage(),
            "[command]" if self._children else "",
        ))), "usage-section"))
        renders.append(usage.append("\n"))

        if self._descr:
            renders.append(text(self._descr, "description-section").append("\n"))

        if flags := self._registry.usage():
            renders.append(text("options", "options-label"))
            renders.append(text(flags, "options").append("\n"))

        if self._children:
            table = Table(
                "name", "help",
                title=text("subcommands" if self.parent else "commands", "children-title"),
                box=ROUNDED,
                style=styler("children-table"),
                header_style=styler("children-title"),
            )
            for name, child in self._children.items():
                table.add_row(text(name, "children"), text(child.descr, "children-description"))
            renders.append(table)

        renderable = Group(*renders)
        if self.fancy:
            renderable = Panel(
                renderable,
                title=Text.assemble("[ ", f"{self.name} HELP".upper(), " ]", style=styler("panel-title")),
                title_align="left",
            )
        console.print(renderable)

    def _versioner(self):
        console = Console(stderr=self._stderr)
        console.print(Text.assemble(
            (self.root.name, "bold #FF4D94" if self.colorful else ""),
            " ",
            self.version or self.root.version,
        ))

    # ── dispatch ─────────────────────────────────────────────────────────────

    def _lineage(self, state):
        """
        Flags this command hands to its children: the ones it inherited plus
        its own propagating ones (own definitions shadow inherited names).
        """
        names = list(dict.fromkeys([flag.name for flag in state.inherited] + self._propagating))
        return tuple(self._registry.lookup(name) for name in names)

    def _dispatch(self, tokens, state):
        # Entry → FlagParsing
        self._params.reset()
        self._registry.inherit(state.inherited)
        try:
            remaining = self._registry.parse(tokens, offset=state.offset)
        except CommandException as fault:
            return self.trigger(fault)
        offset = state.offset + len(tokens) - len(remaining)
        context = Context(self, state.parent)

        # auto-injected help/version short-circuit the pass; user-defined ones do not
        autoflags = self._registry.autoflags
        if "help" in autoflags and autoflags["help"].value.get():
            self._helper()
            return None
        if "version" in autoflags and autoflags["version"].value.get():
            self._versioner()
            return None

        # SubcommandCheck
        if remaining and remaining[0] == "--":
            # flags were terminated explicitly: the rest are parameters only
            remaining = remaining[1:]
        elif remaining and (child := self._children.get(remaining[0])) is not None:
            logger.debug("descending from %r into %r", self.name, child.name)
            return child._dispatch(remaining[1:], _Pass(self._lineage(state), offset + 1, context))

        # ParamBinding → Dispatched
        self._params.bind(remaining)
        logger.debug("dispatching %r", " ".join(step.name for step in self.path))
        return self._callback(context)

    def __invoke__(self, prompt=Unset):
        """
        Execute this command with a token stream and return the handler's result.

        Parameters
        - prompt:
          • Unset: read tokens from sys.argv[1:].
          • str: shell-like string; will be split via shlex.split.
          • Iterable[str]: pre-tokenized sequence, used as-is.

        Raises
        - TypeError: when prompt is not Unset/str/Iterable[str].
        """
        if prompt is Unset:
            tokens = sys.argv[1:]
        elif isinstance(prompt, str):
            tokens = shlex.split(prompt)
        elif isinstance(prompt, Iterable):
            tokens = list(prompt)
            if not all(isinstance(token, str) for token in tokens):
                raise TypeError("__invoke__() argument must be a string or an iterable of strings")
        else:
            raise TypeError("__invoke__() argument must be a string or an iterable of strings")

        return self._dispatch(tokens, _Pass((), 0, None))

    start = __invoke__


def _delegate(name):
    """
    Build a Command method forwarding to the FlagRegistry method of the same name.
    """
    @rename(name)
    def method(self, /, *args, **kwargs):
        return getattr(self._registry, name)(*args, **kwargs)
    method.__doc__ = f"Forward to FlagRegistry.{name}() of this command."
    return method


for _name in (
        "define",
        "define_bool",
        "define_int",
        "define_int32",
        "define_int64",
        "define_uint",
        "define_uint32",
        "define_uint64",
        "define_float",
        "define_string",
        "define_duration",
        "alias",
):
    setattr(Command, _name, _delegate(_name))
del _name


def command(callback=Unset, /, *args, **kwargs):
    """
    Create a Command or return a decorator to build it later.

    Invocation modes
    - Direct:    cmd = command(func, name="x", ...)
    - Decorator: @command(name="x", ...) or bare @command

    Parameters
    - callback: Unset | Callable
      When Unset, a decorator is returned. Otherwise a Command is created.
    - *args, **kwargs: forwarded to Command(...).
    """
    @rename("command")
    def wrapper(callback, /):
        if not callable(callback):
            raise TypeError("@command() must be applied to a callable")
        return Command(callback, *args, **kwargs)

    return wrapper(callback) if callback is not Unset else wrapper


def invoke(object, prompt=Unset, /):
    """
    Convenience runner for commands or callables.

    - If 'object' implements __invoke__, call it with prompt.
    - If 'object' is a plain callable, wrap it as a Command and then invoke.
    - Otherwise, raise TypeError.
    """
    if hasattr(object, "__invoke__") and callable(object.__invoke__):
        return object.__invoke__(prompt)

    if callable(object):
        return invoke(command(object), prompt)

    target = "argument" if prompt is Unset else "first argument"
    raise TypeError(f"invoke() {target} must implement __invoke__ method") from None


__all__ = (
    "Context",
    "Command",
    "command",
    "invoke",
)
