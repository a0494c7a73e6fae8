"""
Arbor faults (parse errors) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing parse error.
  Codes are grouped by domain to keep copy consistent and make logs/searches predictable.
- CommandException: base type that carries message + options and knows how to render
  itself in a friendly, lowercased, and actionable way.
- trigger(): central entry point to surface any fault (respecting shell/fancy/colorful).
- getdoc(): optional description lookup for a code from the host application.

UX goals
- Position-first messages: option and positional errors name the ordinal position of
  the offending token (“at third position”).
- Soft but technical language: short titles, one-sentence bodies, a single clear hint.

Integration
- The parser raises faults directly (fail-fast, one fault per parse).
- Command.run() routes them through trigger(): raised again outside shell mode,
  rendered via rich and turned into exit status 1 in shell mode.
"""
import copy
import sys
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the parser (stable identifiers).

    grouping
    - invocation/routing (1110x)
      • EMPTY_INVOCATION, UNKNOWN_COMMAND
    - options (1111x)
      • OPTION_NOT_DEFINED, OPTION_MISSING_VALUE
    - positionals (1112x)
      • EXTRA_POSITIONAL_ARG, TOO_FEW_POSITIONAL_ARGS

    spacing leaves room for future additions without reshuffling existing codes.
    """
    # --- invocation/routing errors (11xxx) ---
    EMPTY_INVOCATION            = 11100
    UNKNOWN_COMMAND             = 11101

    # --- option errors (11xxx) ---
    OPTION_NOT_DEFINED          = 11112
    OPTION_MISSING_VALUE        = 11117

    # --- positional errors (11xxx) ---
    EXTRA_POSITIONAL_ARG        = 11121
    TOO_FEW_POSITIONAL_ARGS     = 11125

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels. when no mapping
        is present, the numeric value is returned as a string.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class CommandException(Exception):
    """
    base parse fault.

    options (read-only mapping) carry the rendering context and the structured
    details a caller may inspect instead of parsing the message:
    - title, code, hint, docs            → rendering
    - name, index, suggestions, source   → what failed, where, and from which provider
    - command                            → the command node selected when it failed
    - tool, shell, fancy, colorful       → runtime context merged in by trigger()
    """

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        self.message = message
        self.options = MappingProxyType(options)

    def __rich__(self):
        main = __import__("__main__")
        colorful = self.options.get("colorful", False)
        fancy = self.options.get("fancy", False)

        styles = defaultdict(str, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "error-title": "bold #FF4DA6",  # friendly pinky title

            # body
            "error-message": "#C8C8D0",  # soft light gray message
            "hint-arrow": "#9CE19C dim",  # gentle green arrow
            "hint": "italic #9CE19C",  # gentle green hint text
        } | getattr(main, "__styles__", {}))

        def styler(style):
            return styles[style] if colorful else ""

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            if not colorful:
                return Text(str(fragment))
            if isinstance(fragment, Text):
                return fragment
            return Text(str(fragment), style)

        try:
            prog = getattr(main, "__prog__", self.options["tool"].root.name)
        except KeyError:
            prog = getattr(main, "__prog__", "")

        header = Text.assemble(
            "[ ",
            text(prog, styler("prog-name")),
            " — ",
            text(self.options["code"].normalize() if "code" in self.options else "", styler("code")),
            " | ",
            text(self.options.get("title", "error").title(), styler("error-title")),
            " ]"
        )
        message = text(self.message, styler("error-message"))
        hint = Text.assemble(text(" → ", styler("hint-arrow")), text(self.options.get("hint"), styler("hint")))

        if fancy:
            return Panel(Group(message, hint), title=header, title_align="left")

        return Group(header, message, hint)

    def __trigger__(self) -> None:
        if not self.options.get("shell", False):
            raise self from None
        console.print(self)
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class EmptyInvocationError(CommandException): ...
class UnknownCommandError(CommandException): ...
class OptionNotDefinedError(CommandException): ...
class OptionMissingValueError(CommandException): ...
class ExtraPositionalArgError(CommandException): ...
class TooFewPositionalArgsError(CommandException): ...


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see CommandException).
    - options are merged into the fault via copy.replace(fault, **options) before triggering.
    - in shell mode, rendering happens via the rich console and the process exits with 1;
      otherwise the merged fault is raised.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    copy.replace(fault, **options).__trigger__()


def getdoc(code, /):
    """
    optional documentation fetch for a fault code.

    the host application may expose a __docs__ mapping in __main__ where keys
    are FaultCode instances and values are short documentation strings.
    when not found, returns None (renderers treat docs as optional).
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be a fault-code")
    try:
        return getattr(__import__("__main__"), "__docs__", {})[code]
    except KeyError:
        return None


__all__ = (
    "CommandException",
    "EmptyInvocationError",
    "UnknownCommandError",
    "OptionNotDefinedError",
    "OptionMissingValueError",
    "ExtraPositionalArgError",
    "TooFewPositionalArgsError",
    "FaultCode",
    "trigger",
    "getdoc",
)
