r"""
Helmsman flag registry and parsing engine.

Overview
- Flag: a named, typed unit of configuration (name, usage, frozen default,
  owned value, optional single-character aliases).
- FlagRegistry: owns the flags and aliases of one command and turns the
  leading flag tokens of an argument list into typed values.

Grammar
- long form:   --name, --name=value
- short form:  -a, -abc (cluster of aliases), -abc=value (value goes to the last alias)
- terminator:  -- (ends flag scanning; returned to the caller with everything after it)
- anything not starting with '-' ends flag scanning as well.

Value assignment
- an explicit '=value' is handed to the flag's value (conversion faults become
  InvalidValueError).
- without '=value', only self-sufficient (boolean) values may appear; they are
  switched on. Anything else raises MissingValueError.
- in a cluster carrying '=value', every alias before the last one must be
  self-sufficient: the value is never redirected to an earlier alias.

After scanning stops, every flag that was not touched is back-filled with its
frozen default, so each defined flag has a materialized value.

Quick example:
    >>> registry = FlagRegistry()
    >>> count = registry.define_int("count", 1, "how many times")
    >>> force = registry.define_bool("force", False, "overwrite files")
    >>> registry.alias("f", "force")
    >>> registry.parse(["-f", "--count=5", "target"])
    ['target']
    >>> count.get(), force.get()
    (5, True)
"""
import copy

from .faults import *
from .logger import logger
from .utils import *
from .values import *


class Flag:
    """
    One registered flag.

    The default string is frozen from value.render() at construction and never
    recomputed. Inherited flags are copies re-exposed from an ancestor command.
    """

    name = mirror("name")
    usage = mirror("usage")
    value = mirror("value")
    default = mirror("default")
    aliases = mirror("aliases")
    inherited = mirror("inherited")

    def __init__(self, value, name, usage="", /, *, inherited=False):
        self._value = value
        self._name = name
        self._usage = usage
        self._default = value.render()
        self._aliases = []
        self._inherited = bool(inherited)

    @property
    def boolean(self):
        """
        True when presence alone is enough to set the flag.
        """
        return bool(getattr(self._value, "boolean", False))

    @property
    def descriptor(self):
        """
        Usage column for this flag: '--name, -a="default"' ('="default"' omitted for booleans).
        """
        descriptor = ", ".join(["--" + self._name, *("-" + alias for alias in self._aliases)])
        if not self.boolean:
            descriptor += '="%s"' % self._default
        return descriptor

    def __repr__(self):
        return f"flag(name={self._name!r}, default={self._default!r}, aliases={tuple(self._aliases)!r})"


class FlagRegistry:
    """
    Flags and aliases of one command, plus the per-pass parsed state.

    State
    - flags: name → Flag (insertion ordered; the order is used for usage text).
    - aliases: character → Flag.
    - values: Flag → Value, only for flags that are materialized in this pass.
    - terminated: once True, no further token is interpreted as a flag.

    A pass starts on every parse() call: the parsed state is reset first, so the
    same registry can parse several argument lists one after another.
    """

    version = mirror("version")
    terminated = mirror("terminated")
    parsed = mirror("parsed")
    autoflags = mirror("autoflags")

    def __init__(self, version=Unset, /):
        if not isinstance(version, str | UnsetType):
            raise TypeError("flag registry 'version' must be a string")
        self._version = coalesce(version, "")
        self._flags = {}
        self._aliases = {}
        self._values = {}
        self._terminated = False
        self._parsed = False
        self._autoflags = {}

    # ── definition ───────────────────────────────────────────────────────────

    def define(self, value, name, usage="", /):
        """
        Register a new flag holding `value` and return it.

        Raises
        - TypeError: value lacks set()/render(), or name/usage are not strings.
        - ValueError: name is empty, starts with '-' or contains '='.
        - DuplicateFlagError: name is already registered here.
        """
        if not callable(getattr(value, "set", None)) or not callable(getattr(value, "render", None)):
            raise TypeError("flag value must provide set() and render() methods")
        if not isinstance(name, str):
            raise TypeError("flag name must be a string")
        if not name or name.startswith("-") or "=" in name:
            raise ValueError(f"invalid flag name {name!r}")
        if not isinstance(usage, str):
            raise TypeError("flag usage must be a string")

        if (existing := self._flags.get(name)) is not None and not existing.inherited:
            raise DuplicateFlagError(f"flag redefined: {name}")
        if existing is not None:
            # an own flag shadows an inherited one
            self._forget(existing)

        self._flags[name] = flag = Flag(value, name, usage)
        logger.debug("defined flag %r (default %r)", name, flag.default)
        return flag

    def define_bool(self, name, default=False, usage=""):
        return self.define(BoolValue(default), name, usage).value

    def define_int(self, name, default=0, usage=""):
        return self.define(IntValue(default), name, usage).value

    def define_int32(self, name, default=0, usage=""):
        return self.define(Int32Value(default), name, usage).value

    def define_int64(self, name, default=0, usage=""):
        return self.define(Int64Value(default), name, usage).value

    def define_uint(self, name, default=0, usage=""):
        return self.define(UintValue(default), name, usage).value

    def define_uint32(self, name, default=0, usage=""):
        return self.define(Uint32Value(default), name, usage).value

    def define_uint64(self, name, default=0, usage=""):
        return self.define(Uint64Value(default), name, usage).value

    def define_float(self, name, default=0.0, usage=""):
        return self.define(FloatValue(default), name, usage).value

    def define_string(self, name, default="", usage=""):
        return self.define(StringValue(default), name, usage).value

    def define_duration(self, name, default=Unset, usage=""):
        return self.define(DurationValue(default), name, usage).value

    def alias(self, alias, name, /):
        """
        Bind a single-character alias to an already registered flag.

        Raises
        - TypeError/ValueError: alias is not a single character, or is '-' or '='.
        - UndefinedFlagError: no flag called `name` in this registry.
        - DuplicateAliasError: the character is already bound.
        """
        if not isinstance(alias, str):
            raise TypeError("flag alias must be a string")
        if len(alias) != 1 or alias in "-=":
            raise ValueError(f"flag alias must be a single character, got {alias!r}")
        try:
            flag = self._flags[name]
        except KeyError:
            raise UndefinedFlagError(f"flag not defined: {name}") from None
        if alias in self._aliases:
            raise DuplicateAliasError(f"alias already defined: {alias} (bound to {self._aliases[alias].name})")
        self._aliases[alias] = flag
        flag._aliases.append(alias)

    def inherit(self, flags, /):
        """
        Re-expose ancestor flags in this registry.

        Previously inherited flags are dropped first. Each incoming flag becomes
        an independent copy whose default is the ancestor's current rendered
        value, so parsing here never writes back into the ancestor. Own flags
        and aliases already taken here win over inherited ones.
        """
        for flag in [flag for flag in self._flags.values() if flag.inherited]:
            self._forget(flag)

        for flag in flags:
            if flag.name in self._flags:
                continue
            clone = Flag(copy.copy(flag.value), flag.name, flag.usage, inherited=True)
            self._flags[flag.name] = clone
            for alias in flag.aliases:
                if alias not in self._aliases:
                    self._aliases[alias] = clone
                    clone._aliases.append(alias)

    def _forget(self, flag):
        del self._flags[flag.name]
        self._values.pop(flag, None)
        for alias in flag.aliases:
            if self._aliases.get(alias) is flag:
                del self._aliases[alias]

    def _define_helper(self):
        if "help" in self._flags:
            return
        self.define_bool("help", False, "show help and exit")
        self._autoflags["help"] = self._flags["help"]
        if "h" not in self._aliases:
            self.alias("h", "help")

    def _define_versioner(self):
        if "version" in self._flags or not self._version:
            return
        self.define_bool("version", False, "show version and exit")
        self._autoflags["version"] = self._flags["version"]
        if "v" not in self._aliases:
            self.alias("v", "version")

    # ── parsing ──────────────────────────────────────────────────────────────

    def parse(self, tokens, /, *, offset=0):
        """
        Consume the leading flag tokens and return the unconsumed suffix.

        Parameters
        - tokens: Iterable[str]
          argument list without the program name.
        - offset: int (keyword-only)
          number of tokens already consumed by ancestors; only used to report
          1-based positions in fault messages.

        Returns
        - list[str]: the tokens starting at the first non-flag token or at the
          '--' terminator (which is kept), or an empty list.

        Raises
        - ParseError subclasses (MalformedFlagError, UnknownFlagError,
          UnknownAliasError, MissingValueError, InvalidValueError).
        """
        tokens = list(tokens)

        self._define_helper()
        self._define_versioner()

        self._values.clear()
        self._terminated = False
        self._parsed = True

        index = 0
        while index < len(tokens):
            self._consume(tokens[index], offset + index + 1)
            if self._terminated:
                logger.debug("flag scanning stopped at %r", tokens[index])
                break
            index += 1

        self._backfill()
        return tokens[index:]

    def _consume(self, token, position):
        """
        Interpret one token, or mark the registry as terminated.
        """
        if self._terminated:
            return

        # non-flag tokens (and a lone '-') hand control back to the caller
        if not token.startswith("-") or token == "-":
            self._terminated = True
            return

        if token.endswith("="):
            raise MalformedFlagError(
                "invalid flag format %r at %s position" % (token, ordinal(position)),
                title="invalid flag format",
                code=FaultCode.MALFORMED_FLAG,
                hint="add a value after '=' (for example: %s<value>) or remove the '='" % token,
                token=token,
                index=position,
                docs=getdoc(FaultCode.MALFORMED_FLAG),
            )

        head, *rest = token.split("=")
        value = rest[0] if rest else None

        if head == "--":
            self._terminated = True
            return

        if head == "-":
            raise MalformedFlagError(
                "invalid flag format %r at %s position" % (token, ordinal(position)),
                title="invalid flag format",
                code=FaultCode.MALFORMED_FLAG,
                hint="use --name=value or -a=value",
                token=token,
                index=position,
                docs=getdoc(FaultCode.MALFORMED_FLAG),
            )

        if head.startswith("--"):
            name = head[2:]
            try:
                flag = self._flags[name]
            except KeyError:
                raise UnknownFlagError(
                    "unknown flag %r at %s position" % (head, ordinal(position)),
                    title="unknown flag",
                    code=FaultCode.UNKNOWN_FLAG,
                    hint="run with --help to see all available flags",
                    token=token,
                    name=name,
                    index=position,
                    docs=getdoc(FaultCode.UNKNOWN_FLAG),
                ) from None
            self._assign(flag, value, "--" + name, token, position)
            return

        flags = []
        for alias in head[1:]:
            try:
                flags.append(self._aliases[alias])
            except KeyError:
                raise UnknownAliasError(
                    "unknown alias %r in %r at %s position" % (alias, token, ordinal(position)),
                    title="unknown alias",
                    code=FaultCode.UNKNOWN_ALIAS,
                    hint="run with --help to see all available aliases",
                    token=token,
                    alias=alias,
                    index=position,
                    docs=getdoc(FaultCode.UNKNOWN_ALIAS),
                ) from None

        # a trailing value only ever belongs to the last alias of the cluster
        *leading, (alias, last) = zip(head[1:], flags)
        for character, flag in leading:
            self._assign(flag, None, "-" + character, token, position)
        self._assign(last, value, "-" + alias, token, position)

    def _assign(self, flag, value, spelling, token, position):
        if value is None:
            if not flag.boolean:
                raise MissingValueError(
                    'flag "--%s" is missing a value (given as %r at %s position)' % (flag.name, spelling, ordinal(position)),
                    title="missing value",
                    code=FaultCode.MISSING_VALUE,
                    hint="pass a value inline (for example: --%s=<value>)" % flag.name,
                    token=token,
                    name=flag.name,
                    index=position,
                    docs=getdoc(FaultCode.MISSING_VALUE),
                )
            value = "true"
        self._store(flag, value, token, position)

    def _store(self, flag, value, token, position):
        try:
            flag.value.set(value)
        except ValueParseError as error:
            raise InvalidValueError(
                'invalid value %r for flag "--%s" at %s position: %s' % (value, flag.name, ordinal(position), error),
                title="invalid value",
                code=FaultCode.INVALID_VALUE,
                hint="check the expected format of --%s in --help" % flag.name,
                token=token,
                name=flag.name,
                value=value,
                index=position,
                cause=error,
                docs=getdoc(FaultCode.INVALID_VALUE),
            ) from error
        self._values[flag] = flag.value

    def _backfill(self):
        defaults = [flag for flag in self._flags.values() if flag not in self._values]
        for flag in defaults:
            self._store(flag, flag.default, flag.default, 0)
        if defaults:
            logger.debug("back-filled defaults for %s", ", ".join(flag.name for flag in defaults))

    # ── accessors ────────────────────────────────────────────────────────────

    def lookup(self, name, /):
        """
        Return the Flag registered as `name`, or None.
        """
        return self._flags.get(name)

    def flag(self, name, /):
        """
        Return the materialized value of `name` (None before it is parsed).

        Raises
        - UndefinedFlagError: no such flag.
        """
        try:
            flag = self._flags[name]
        except KeyError:
            raise UndefinedFlagError(f"flag not defined: {name}") from None
        return self._values.get(flag)

    def get(self, name, /):
        """
        Return the Python object held by `name` (None before it is parsed).
        """
        value = self.flag(name)
        return None if value is None else value.get()

    @property
    def flags(self):
        """
        Mapping of every flag name to its materialized value (or None).
        """
        return {name: self._values.get(flag) for name, flag in self._flags.items()}

    @property
    def aliases(self):
        """
        Mapping of alias character to flag name.
        """
        return {alias: flag.name for alias, flag in self._aliases.items()}

    @property
    def count(self):
        """
        Number of flags holding a materialized value.
        """
        return len(self._values)

    def __iter__(self):
        return iter(tuple(self._flags.values()))

    def __len__(self):
        return len(self._flags)

    def __contains__(self, name):
        return name in self._flags

    def usage(self):
        """
        Render one line per flag: '  --name, -a="default" # usage text'.

        Descriptor columns are padded to the widest descriptor of the registry.
        """
        descriptors = [(flag.descriptor, flag.usage) for flag in self._flags.values()]
        if not descriptors:
            return ""
        width = max(len(descriptor) for descriptor, _ in descriptors)
        return "\n".join("  %s # %s" % (descriptor.ljust(width), usage) for descriptor, usage in descriptors)

    def __repr__(self):
        return f"flag-registry(flags={tuple(self._flags)!r}, parsed={self._parsed!r})"


__all__ = (
    "Flag",
    "FlagRegistry",
)
