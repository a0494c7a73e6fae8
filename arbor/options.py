r"""
Arbor option definitions and token spelling rules.

Overview
- Option: a named option declared on a command node. Options are either
  value-bearing (ValueType.STRING) or boolean (ValueType.BOOL).
- ValueType: the type tag distinguishing boolean from value-bearing options.
- normalize_token(): turns the text of a long option token (after '--') into its
  lookup key, inline value and spelling flags.
- boolean(): the single interpretation of option strings as booleans.

Values
- Every recorded option value is a string. Booleans use "1" for true and "" for
  false; "0", "false" and "off" (any case) are also false when given explicitly.

Spellings understood by normalize_token()
- "name" / "name=value"            → plain lookup (value may be empty: "name=")
- "loose-name"                     → tolerated when no such option is defined
- "skip-name" / "disable-name"     → negated boolean (records "")
- "enable-name"                    → same as "name"
- underscores and case are normalized: "Dry_Run" → "dry-run"

Example
    >>> Option("verbose", "v", ValueType.BOOL, descr="print more")
    option(name='verbose', shorthand='v', type=<ValueType.BOOL: 'bool'>, ...)
"""
import builtins
import functools
import operator
import re
from enum import Enum

from rich.text import Text

from .utils import *

TRUE = "1"

_NAME = re.compile(r"[a-z0-9](-?[a-z0-9]+)*")

# Spellings normalize_token() strips before lookup.
_PREFIXES = ("loose-", "skip-", "disable-", "enable-")


class ValueType(Enum):
    STRING = "string"
    BOOL = "bool"


class OptionType(type):
    """
    Metaclass giving Option stable introspection.

    - __typename__ is derived from the class name (camel-case split with hyphens).
    - every name in __introspectable__ becomes a read-only property mirroring "_{name}".
    - __repr__/__rich_repr__ list those properties in declaration order.
    """
    __introspectable__ = ()

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            return f"{type(self).__typename__}({
                ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
            })"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in type(self).__introspectable__:
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


class Option(metaclass=OptionType):
    """
    Definition of one named option.

    Parameters
    - name: str (positional-only)
      canonical long name, lowercase with single hyphens ("dry-run"). Recorded
      values are keyed by this name whatever spelling the user typed. Names starting
      with a spelling prefix (loose-, skip-, disable-, enable-) are rejected.
    - shorthand: str | Unset
      single-character abbreviation ("-n"); Unset means none.
    - type: ValueType
      ValueType.BOOL options take no separate value token; ValueType.STRING options do.
    - default: str | bool | Unset
      value reported by Config when the option is not supplied. Booleans accept
      True/False and store "1"/"".
    - descr: str | Text | Unset
      one-line help text.
    - require_value: bool (keyword-only)
      a STRING option that must be followed by a value ("--out file" or "--out=file").
      Without it, a bare "--out" records "".
    - hidden: bool (keyword-only)
      left out of rendered help.

    Raises
    - TypeError/ValueError on malformed names, shorthands or conflicting settings.
    """
    __introspectable__ = (
        "name",
        "shorthand",
        "type",
        "default",
        "descr",
        "require_value",
        "hidden",
    )

    def __init__(
            self,
            name,
            /,
            shorthand=Unset,
            type=ValueType.STRING,
            default=Unset,
            descr=Unset,
            *,
            require_value=False,
            hidden=False,
    ):
        cls = builtins.type(self)

        if not isinstance(name, str):
            raise TypeError(f"{cls.__typename__} 'name' must be a string")
        elif not _NAME.fullmatch(name := name.strip()):
            raise ValueError(f"{cls.__typename__} 'name' must be lowercase words joined by single hyphens")
        elif name.startswith(_PREFIXES):
            raise ValueError(f"{cls.__typename__} 'name' cannot start with a spelling prefix ({', '.join(_PREFIXES)})")

        if not isinstance(shorthand, str | Unset):
            raise TypeError(f"{cls.__typename__} 'shorthand' must be a string")
        elif isinstance(shorthand, str) and (len(shorthand) != 1 or shorthand in "-= \t"):
            raise ValueError(f"{cls.__typename__} 'shorthand' must be a single character other than '-' or '='")

        if not isinstance(type, ValueType):
            raise TypeError(f"{cls.__typename__} 'type' must be a value-type")

        if type is ValueType.BOOL:
            if require_value:
                raise ValueError(f"{cls.__typename__} boolean option {name!r} cannot require a value")
            if not isinstance(default, bool | str | Unset):
                raise TypeError(f"{cls.__typename__} 'default' must be a boolean or a string")
            default = TRUE if default is True or isinstance(default, str) and boolean(default) else ""
        elif not isinstance(default, str | Unset):
            raise TypeError(f"{cls.__typename__} 'default' must be a string")

        if not isinstance(descr, str | Text | Unset):
            raise TypeError(f"{cls.__typename__} 'descr' must be a string")
        elif isinstance(descr, str) and not (descr := descr.strip()):
            raise ValueError(f"{cls.__typename__} 'descr' cannot be empty")

        self._name = name
        self._shorthand = coalesce(shorthand)
        self._type = type
        self._default = coalesce(default, "")
        self._descr = coalesce(descr)
        self._require_value = bool(require_value)
        self._hidden = bool(hidden)

    @property
    def is_boolean(self):
        """whether the option is boolean-typed."""
        return self._type is ValueType.BOOL


def boolean(value, /):
    """
    interpret an option value string as a boolean.

    false: "", "0", "false", "off" (case-insensitive, surrounding blanks ignored)
    true: anything else
    """
    if not isinstance(value, str):
        raise TypeError("boolean() argument must be a string")
    return value.strip().lower() not in ("", "0", "false", "off")


def normalize_token(token, /):
    """
    split the text of a long option token into (key, value, has_value, loose).

    - key: lookup name, trimmed, lowercased, '_' → '-', spelling prefixes removed.
    - value: inline value, verbatim ("" when none was given).
    - has_value: True when the token carried a value, including "name=" (empty) and
      negated spellings; False for a bare "name".
    - loose: True for the "loose-" prefix, meaning an unknown key must be ignored.

    Examples
        "out=a.txt"          → ("out", "a.txt", True, False)
        "dry-run"            → ("dry-run", "", False, False)
        "skip-color"         → ("color", "", True, False)
        "skip-color=0"       → ("color", "1", True, False)
        "loose-Fancy_Thing"  → ("fancy-thing", "", False, True)
    """
    key, separator, value = token.partition("=")
    key = key.strip().lower().replace("_", "-")
    loose = negated = False

    if not key:
        return key, "", False, False

    if key.startswith("loose-"):
        key = key.removeprefix("loose-")
        loose = True

    if key.startswith("skip-"):
        key = key.removeprefix("skip-")
        negated = True
    elif key.startswith("disable-"):
        key = key.removeprefix("disable-")
        negated = True
    elif key.startswith("enable-"):
        key = key.removeprefix("enable-")

    if separator:
        if negated:
            value = "" if boolean(value) else TRUE
        return key, value, True, loose

    if negated:
        return key, "", True, loose

    return key, "", False, loose


__all__ = (
    "Option",
    "ValueType",
    "TRUE",
    "boolean",
    "normalize_token",
)
