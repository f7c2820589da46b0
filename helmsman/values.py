"""
Helmsman value variants.

Overview
- Value: base class of every typed, settable unit of data a flag can hold.
  • set(raw): convert a raw command-line string and store it (ValueParseError on failure).
  • render(): stable textual form; also used as the frozen default of a flag.
  • get(): the current Python object.
  • boolean: capability marker; True when presence alone is enough to set the
    value (a bare --name or -n switches it on).

- Variants
  • BoolValue: accepts 1/t/T/true/TRUE/True and 0/f/F/false/FALSE/False.
  • Int32Value, Int64Value (IntValue): signed integers, range checked.
  • Uint32Value, Uint64Value (UintValue): unsigned integers, range checked.
  • FloatValue: binary floating point.
  • StringValue: any string.
  • DurationValue: "1h30m", "1.5s", "300ms"... stored as datetime.timedelta.

Extension
- Subclass Value and implement parse()/format() (or override set()/render())
  to plug a custom type into a flag registry.

Quick example:
    >>> value = IntValue(3)
    >>> value.set("0x10")
    >>> value.get(), value.render()
    (16, '16')
"""
import re
from abc import ABC, abstractmethod
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from .faults import ValueParseError
from .utils import Unset, coalesce


class Value(ABC):
    """
    Typed, settable unit of data with a string round-trip.

    Subclasses provide:
    - zero: the Python object used when no default is given.
    - parse(raw) -> object: convert a raw string, raising ValueParseError.
    - format(object) -> str: render a Python object.
    - check(object) -> object (optional): validate/normalize a Python object
      (used for defaults and after parse).
    """
    boolean = False
    zero = None

    def __init_subclass__(cls, **options):
        super().__init_subclass__(**options)
        cls.__typename__ = re.sub(r"(?<!^)(?=[A-Z])", r"-", cls.__name__).lower()

    def __init__(self, default=Unset, /):
        self._value = self.check(coalesce(default, self.zero))

    @abstractmethod
    def parse(self, raw, /):
        raise NotImplementedError

    @abstractmethod
    def format(self, object, /):
        raise NotImplementedError

    def check(self, object, /):
        return object

    def set(self, raw, /):
        if not isinstance(raw, str):
            raise TypeError(f"{type(self).__typename__} raw value must be a string")
        self._value = self.check(self.parse(raw))

    def render(self):
        return self.format(self._value)

    def get(self):
        return self._value

    def __str__(self):
        return self.render()

    def __repr__(self):
        return f"{type(self).__typename__}({self.render()!r})"


class BoolValue(Value):
    """
    Boolean variant; the only self-sufficient one.
    """
    boolean = True
    zero = False

    _literals = {
        "1": True, "t": True, "T": True, "true": True, "TRUE": True, "True": True,
        "0": False, "f": False, "F": False, "false": False, "FALSE": False, "False": False,
    }

    def parse(self, raw, /):
        try:
            return self._literals[raw]
        except KeyError:
            raise ValueParseError(f"invalid boolean literal {raw!r}") from None

    def format(self, object, /):
        return "true" if object else "false"

    def check(self, object, /):
        if not isinstance(object, bool):
            raise TypeError(f"{type(self).__typename__} default must be a boolean")
        return object


class _IntegerValue(Value):
    """
    Shared integer behavior: base-prefixed literals, underscores and range checks.
    """
    zero = 0
    bits = 64
    signed = True

    def parse(self, raw, /):
        if raw != raw.strip() or not raw:
            raise ValueParseError(f"invalid integer literal {raw!r}")
        if not self.signed and raw[0] in "+-":
            raise ValueParseError(f"invalid unsigned integer literal {raw!r}")
        try:
            return int(raw, 0)
        except ValueError:
            raise ValueParseError(f"invalid integer literal {raw!r}") from None

    def format(self, object, /):
        return str(object)

    def check(self, object, /):
        if isinstance(object, bool) or not isinstance(object, int):
            raise TypeError(f"{type(self).__typename__} default must be an integer")
        if self.signed:
            low, high = -(1 << (self.bits - 1)), (1 << (self.bits - 1)) - 1
        else:
            low, high = 0, (1 << self.bits) - 1
        if not low <= object <= high:
            raise ValueParseError(f"value {object} out of range for {self.bits}-bit "
                                  f"{'signed' if self.signed else 'unsigned'} integer")
        return object


class Int32Value(_IntegerValue):
    bits = 32


class Int64Value(_IntegerValue):
    bits = 64


class Uint32Value(_IntegerValue):
    bits = 32
    signed = False


class Uint64Value(_IntegerValue):
    bits = 64
    signed = False


IntValue = Int64Value
UintValue = Uint64Value


class FloatValue(Value):
    zero = 0.0

    def parse(self, raw, /):
        if raw != raw.strip():
            raise ValueParseError(f"invalid float literal {raw!r}")
        try:
            return float(raw)
        except ValueError:
            raise ValueParseError(f"invalid float literal {raw!r}") from None

    def format(self, object, /):
        text = repr(object)
        return text[:-2] if text.endswith(".0") else text

    def check(self, object, /):
        if isinstance(object, bool) or not isinstance(object, int | float):
            raise TypeError(f"{type(self).__typename__} default must be a number")
        return float(object)


class StringValue(Value):
    zero = ""

    def parse(self, raw, /):
        return raw

    def format(self, object, /):
        return object

    def check(self, object, /):
        if not isinstance(object, str):
            raise TypeError(f"{type(self).__typename__} default must be a string")
        return object


# nanoseconds per unit
_UNITS = {
    "ns": 1,
    "us": 10 ** 3,
    "µs": 10 ** 3,  # micro sign
    "μs": 10 ** 3,  # greek mu
    "ms": 10 ** 6,
    "s": 10 ** 9,
    "m": 60 * 10 ** 9,
    "h": 3600 * 10 ** 9,
}

_DURATION = re.compile(r"(?P<number>\d+\.?\d*|\.\d+)(?P<unit>ns|us|µs|μs|ms|s|m|h)")


def _fraction(value, scale):
    whole, part = divmod(value, scale)
    if not part:
        return str(whole)
    digits = str(part).rjust(len(str(scale)) - 1, "0").rstrip("0")
    return f"{whole}.{digits}"


class DurationValue(Value):
    """
    Duration variant.

    accepted forms
    - "0", or an optional sign followed by one or more <number><unit> pairs
      ("1h30m", "-1.5s", "300ms", "2us").

    rendering
    - "0s" for zero; sub-second durations use the largest fitting unit
      ("1.5ms"); longer ones use h/m/s ("1h30m0s", "1m0.5s").
    """
    zero = timedelta(0)

    def parse(self, raw, /):
        if raw in ("0", "+0", "-0"):
            return timedelta(0)

        body = raw[1:] if raw[:1] in ("+", "-") else raw
        if not body:
            raise ValueParseError(f"invalid duration {raw!r}")

        total = Decimal(0)
        position = 0
        while position < len(body):
            if not (match := _DURATION.match(body, position)):
                raise ValueParseError(f"invalid duration {raw!r}")
            try:
                total += Decimal(match["number"]) * _UNITS[match["unit"]]
            except InvalidOperation:
                raise ValueParseError(f"invalid duration {raw!r}") from None
            position = match.end()

        # sub-microsecond precision is truncated (timedelta resolution)
        microseconds = int(total) // 1000
        if raw.startswith("-"):
            microseconds = -microseconds
        try:
            return timedelta(microseconds=microseconds)
        except OverflowError:
            raise ValueParseError(f"duration {raw!r} out of range") from None

    def format(self, object, /):
        nanoseconds = ((object.days * 86400 + object.seconds) * 10 ** 6 + object.microseconds) * 1000
        if not nanoseconds:
            return "0s"

        sign = "-" if nanoseconds < 0 else ""
        nanoseconds = abs(nanoseconds)

        if nanoseconds < 10 ** 9:
            for unit, scale in (("ms", 10 ** 6), ("µs", 10 ** 3), ("ns", 1)):
                if nanoseconds >= scale:
                    return sign + _fraction(nanoseconds, scale) + unit

        hours, rest = divmod(nanoseconds, 3600 * 10 ** 9)
        minutes, rest = divmod(rest, 60 * 10 ** 9)
        text = _fraction(rest, 10 ** 9) + "s"
        if hours or minutes:
            text = f"{minutes}m" + text
        if hours:
            text = f"{hours}h" + text
        return sign + text

    def check(self, object, /):
        if not isinstance(object, timedelta):
            raise TypeError(f"{type(self).__typename__} default must be a timedelta")
        return object


__all__ = (
    "Value",
    "BoolValue",
    "Int32Value",
    "Int64Value",
    "IntValue",
    "Uint32Value",
    "Uint64Value",
    "UintValue",
    "FloatValue",
    "StringValue",
    "DurationValue",
)
