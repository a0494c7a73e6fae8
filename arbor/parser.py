"""
Arbor parser: turn an argv-like vector into a CommandLine for a command tree.

Pipeline
- OptionIndex.build(root)     → long-name and shorthand lookups in scope for the root.
- Dispatcher.run()            → classify every token by an ordered rule table, record
                                option values and positional args, descend into
                                subcommands (merging their options over the index).
- Dispatcher.validate()       → minimum positional-argument check.
- finalize(cli)               → help/version requested through option syntax become a
                                RenderAndExit outcome; a bare command suite is routed to
                                its 'help' subcommand; anything else is Proceed(cli).

Token classes (first matching rule wins)
    terminator   "--"                       → later tokens are never options
    long         "--name", "--name=value"   → parse_long()
    short        "-x", "-xvalue", "-xyz"    → parse_short()
    subcommand   any token while the selected command is a suite
    implicit     bare "help"/"version" before any positional arg
    overflow     positional beyond the selected command's maximum
    positional   everything else

Nothing here writes into Command objects and nothing exits the process: every
failure is raised as a fault from arbor.faults, and help/version display is left
to whoever holds the RenderAndExit outcome (see Command.run()).
"""
import difflib
import functools
from collections import deque, namedtuple
from collections.abc import Sequence
from types import MappingProxyType

from .faults import *
from .options import TRUE, boolean, normalize_token

TERMINATOR = "--"

# Reserved words accepted as options when spelled as the first bare positional.
IMPLICIT = ("help", "version")


@functools.cache
def _ordinal(number):
    """
    human-friendly ordinal for a 1-based position ("first", "second", …, "11th", "22nd").
    """
    try:
        return {
            1: "first",
            2: "second",
            3: "third",
            4: "fourth",
            5: "fifth",
            6: "sixth",
            7: "seventh",
            8: "eighth",
            9: "ninth",
            10: "tenth",
        }[number]
    except KeyError:
        pass

    if 10 < number % 100 < 20:
        return f"{number}th"

    return f'{number}%s' % {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")


def _route(command):
    return " ".join(step.name for step in command.path)


class CommandLine:
    """
    The parse result: how the program was invoked, which command was selected,
    the option values and the positional args.

    Parsing mutates the private storage only; the public attributes are read-only
    views (option_values is a MappingProxyType, arg_values a tuple).
    """

    def __init__(self, invoked_as, command, /):
        self._invoked_as = invoked_as
        self._command = command
        self._option_values = {}
        self._arg_values = []

    @property
    def invoked_as(self):
        return self._invoked_as

    @property
    def command(self):
        return self._command

    @property
    def option_values(self):
        return MappingProxyType(self._option_values)

    @property
    def arg_values(self):
        return tuple(self._arg_values)

    def option_value(self, name, default=None, /):
        """value recorded for option 'name' on the command line, else 'default'."""
        return self._option_values.get(name, default)

    def supplied(self, name, /):
        """whether option 'name' was given on the command line (even as an empty value)."""
        return name in self._option_values

    def __repr__(self):
        return "command-line(invoked_as=%r, command=%r, option_values=%r, arg_values=%r)" % (
            self._invoked_as,
            _route(self._command),
            self._option_values,
            self._arg_values,
        )


class OptionIndex:
    """
    Long-name and shorthand lookups for the options in scope.

    Both maps belong to one parse only. merge() never writes into the index it is
    called on: it returns a new one, so neither earlier indices nor the command
    objects they were built from change while parsing.
    """
    __slots__ = ("long", "short")

    def __init__(self, long=(), short=(), /):
        self.long = dict(long)
        self.short = dict(short)

    @classmethod
    def build(cls, command, /):
        """index the options visible from 'command' (its own plus every ancestor's)."""
        long = command.inherited_options()
        return cls(long, {option.shorthand: option for option in long.values() if option.shorthand})

    def merge(self, command, /):
        """
        return a new index with the own options of 'command' written over this one.

        a child's option replaces a same-named ancestor entry in the long map and,
        when it declares a shorthand, the shorthand slot as well.
        """
        long = dict(self.long)
        short = dict(self.short)
        for name, option in command.options.items():
            long[name] = option
            if option.shorthand:
                short[option.shorthand] = option
        return type(self)(long, short)

    def __repr__(self):
        return "option-index(long=%r, short=%r)" % (sorted(self.long), sorted(self.short))


def _takes(tokens):
    """whether the next queued token can be consumed as an option value."""
    return bool(tokens) and not tokens[0].startswith("-")


def parse_long(cli, text, tokens, long, /, **context):
    """
    consume one long option; 'text' is the token without its leading '--'.

    - unknown key: ignored when spelled loosely ("--loose-name"), else OptionNotDefinedError.
    - no inline value: a value-required option takes the next token unless it is
      missing or looks like an option (OptionMissingValueError); a boolean records
      "1"; any other option records "".
    - the value is stored under the option's canonical name, replacing earlier ones.

    context (index, command) only feeds fault messages.
    """
    key, value, has_value, loose = normalize_token(text)

    try:
        option = long[key]
    except KeyError:
        if loose:
            return
        suggestions = difflib.get_close_matches(key, long.keys(), 5)
        raise _not_defined("--" + key, key, suggestions, **context) from None

    if not has_value:
        if option.require_value:
            if not _takes(tokens):
                raise _missing_value("--" + option.name, option, **context)
            value = tokens.popleft()
        elif option.is_boolean:
            value = TRUE

    cli._option_values[option.name] = value


def parse_short(cli, text, tokens, short, /, **context):
    """
    consume one short option token; 'text' is the token without its leading '-'.

    characters are read left to right:
    - unknown character → OptionNotDefinedError (shorthands are never loose).
    - a non-boolean option followed by more characters takes them as its value ("-ofile").
    - a value-required option at the end of the token takes the next token ("-o file").
    - otherwise booleans record "1", other options "", and reading continues ("-xyz").
    """
    characters = deque(text)

    while characters:
        character = characters.popleft()
        try:
            option = short[character]
        except KeyError:
            suggestions = difflib.get_close_matches(character, short.keys(), 5)
            raise _not_defined("-" + character, character, suggestions, **context) from None

        if characters and not option.is_boolean:
            cli._option_values[option.name] = "".join(characters)
            return

        if option.require_value:
            if not _takes(tokens):
                raise _missing_value("-" + character, option, **context)
            value = tokens.popleft()
        else:
            value = TRUE if option.is_boolean else ""

        cli._option_values[option.name] = value


def _not_defined(spelling, name, suggestions, /, *, index, command):
    route = _route(command)
    try:
        hint = "did you mean %r? you can also run '%s --help' to see all options" % (
            ("--" if spelling.startswith("--") else "-") + suggestions[0],
            route,
        )
    except IndexError:
        hint = "try '%s --help' to see all available options" % route
    return OptionNotDefinedError(
        "unknown option %r at %s position" % (spelling, _ordinal(index)),
        title="unknown option",
        code=FaultCode.OPTION_NOT_DEFINED,
        name=name,
        index=index,
        command=command,
        suggestions=suggestions,
        source="CLI",
        hint=hint,
        docs=getdoc(FaultCode.OPTION_NOT_DEFINED),
    )


def _missing_value(spelling, option, /, *, index, command):
    return OptionMissingValueError(
        "option %r at %s position requires a value" % (spelling, _ordinal(index)),
        title="missing option value",
        code=FaultCode.OPTION_MISSING_VALUE,
        name=option.name,
        index=index,
        command=command,
        source="CLI",
        hint="pass it inline (--%s=<value>) or as the next argument" % option.name,
        docs=getdoc(FaultCode.OPTION_MISSING_VALUE),
    )


Rule = namedtuple("Rule", ("name", "guard", "action"))


class Dispatcher:
    """
    Token-by-token state machine over one argument vector.

    state
    - cli: the CommandLine being filled (its command moves down the tree).
    - tokens: remaining tokens (deque); option parsers may consume one extra token.
    - index: OptionIndex in scope for the selected command.
    - terminated: whether "--" has been seen.
    - position: 1-based position of the token being handled (for messages).

    rules are tried in order for every token; the first guard that accepts the
    token picks the action. classify() exposes that choice without acting on it.
    """
    rules = (
        Rule("terminator", "_is_terminator", "_terminate"),
        Rule("long", "_is_long", "_long"),
        Rule("short", "_is_short", "_short"),
        Rule("subcommand", "_is_suite", "_descend"),
        Rule("implicit", "_is_implicit", "_implicit"),
        Rule("overflow", "_is_overflow", "_overflow"),
        Rule("positional", "_is_positional", "_append"),
    )

    def __init__(self, command, argv, /):
        self.cli = CommandLine(argv[0], command)
        self.tokens = deque(argv[1:])
        self.length = len(self.tokens)
        self.index = OptionIndex.build(command)
        self.terminated = False
        self.position = 0

    # ── guards ────────────────────────────────────────────────────────────────
    def _is_terminator(self, token):
        return token == TERMINATOR

    def _is_long(self, token):
        return not self.terminated and len(token) > 2 and token.startswith("--")

    def _is_short(self, token):
        return not self.terminated and len(token) > 1 and token.startswith("-")

    def _is_suite(self, token):
        return bool(self.cli.command.subcommands)

    def _is_implicit(self, token):
        # Checked even after the terminator, matching the rule order.
        return not self.cli._arg_values and token in IMPLICIT

    def _is_overflow(self, token):
        return len(self.cli._arg_values) >= self.cli.command.max_args

    def _is_positional(self, token):
        return True

    # ── actions ───────────────────────────────────────────────────────────────
    def _terminate(self, token):
        self.terminated = True

    def _long(self, token):
        parse_long(self.cli, token[2:], self.tokens, self.index.long, **self._context())

    def _short(self, token):
        parse_short(self.cli, token[1:], self.tokens, self.index.short, **self._context())

    def _implicit(self, token):
        parse_long(self.cli, token, self.tokens, self.index.long, **self._context())

    def _descend(self, token):
        command = self.cli.command
        try:
            child = command.subcommands[token]
        except KeyError:
            raise unknown_command(command, token, index=self.position) from None
        self.cli._command = child
        self.index = self.index.merge(child)

    def _overflow(self, token):
        command = self.cli.command
        raise ExtraPositionalArgError(
            "extra positional argument %r at %s position; command %r takes a max of %d args" % (
                token, _ordinal(self.position), command.name, command.max_args
            ),
            title="extra positional argument",
            code=FaultCode.EXTRA_POSITIONAL_ARG,
            name=token,
            index=self.position,
            command=command,
            maximum=command.max_args,
            source="CLI",
            hint="remove this extra value or run '%s --help' to see the expected usage" % _route(command),
            docs=getdoc(FaultCode.EXTRA_POSITIONAL_ARG),
        )

    def _append(self, token):
        self.cli._arg_values.append(token)

    # ── driving ───────────────────────────────────────────────────────────────
    def _context(self):
        return {"index": self.position, "command": self.cli.command}

    def classify(self, token, /):
        """return the first rule whose guard accepts 'token' in the current state."""
        for rule in self.rules:
            if getattr(self, rule.guard)(token):
                return rule
        raise RuntimeError("unreachable")

    def step(self):
        """handle the next queued token."""
        token = self.tokens.popleft()
        self.position = self.length - len(self.tokens)
        getattr(self, self.classify(token).action)(token)

    def validate(self):
        """raise TooFewPositionalArgsError when the selected command is short of args."""
        command = self.cli.command
        if len(self.cli._arg_values) < command.min_args:
            raise TooFewPositionalArgsError(
                "too few positional args supplied; command %r requires at least %d args" % (
                    command.name, command.min_args
                ),
                title="too few positional args",
                code=FaultCode.TOO_FEW_POSITIONAL_ARGS,
                name=command.name,
                command=command,
                minimum=command.min_args,
                source="CLI",
                hint="add the missing values, then run '%s --help' to see the expected order" % _route(command),
                docs=getdoc(FaultCode.TOO_FEW_POSITIONAL_ARGS),
            )

    def run(self):
        """drain the token queue, validate arity and return the CommandLine."""
        while self.tokens:
            self.step()
        self.validate()
        return self.cli


def unknown_command(command, name, /, *, index=None):
    suggestions = difflib.get_close_matches(name, command.subcommands.keys(), 5)
    typeof = "subcommand" if command.parent else "command"
    route = _route(command)
    try:
        hint = "did you mean %r? you can also run '%s help' to see available %ss" % (suggestions[0], route, typeof)
    except IndexError:
        hint = "run '%s help' to see available %ss" % (route, typeof)
    if index:
        message = "unknown %s %r at %s position" % (typeof, name, _ordinal(index))
    else:
        message = "unknown %s %r" % (typeof, name)
    return UnknownCommandError(
        message,
        title="unknown %s" % typeof,
        code=FaultCode.UNKNOWN_COMMAND,
        name=name,
        index=index,
        command=command,
        suggestions=suggestions,
        source="CLI",
        hint=hint,
        docs=getdoc(FaultCode.UNKNOWN_COMMAND),
    )


class Proceed(namedtuple("Proceed", ("cli",))):
    """parsing succeeded; run the handler of cli.command."""
    __slots__ = ()


class RenderAndExit(namedtuple("RenderAndExit", ("kind", "command", "cli", "status"))):
    """
    help or version was requested; render it for 'command', then exit with 'status'.

    the parser only describes this outcome. Command.run() performs it; tests can
    inspect it, or call render() with a recording console, without exiting.
    """
    __slots__ = ()

    def render(self, console=None, /):
        match self.kind:
            case "help":
                self.command.render_help(console)
            case "version":
                self.command.render_version(console)
            case _:
                raise ValueError("unknown render kind %r" % self.kind)


def describe(cli, name, /):
    """
    resolve the command a help request is about.

    empty name → the selected command; otherwise a subcommand of the selected
    command, then of the root command. unknown names raise UnknownCommandError.
    """
    if not name:
        return cli.command
    for command in (cli.command, cli.command.root):
        try:
            return command.subcommands[name]
        except KeyError:
            pass
    raise unknown_command(cli.command, name)


def finalize(cli, /):
    """
    decide what a successfully parsed CommandLine leads to.

    - help option recorded → RenderAndExit("help", <described command>, cli, 0)
    - version option true  → RenderAndExit("version", root, cli, 0)
    - selected command is a suite → select its 'help' subcommand, Proceed(cli)
    - otherwise → Proceed(cli)
    """
    if cli.supplied("help"):
        return RenderAndExit("help", describe(cli, cli.option_value("help")), cli, 0)

    if boolean(cli.option_value("version", "")):
        return RenderAndExit("version", cli.command.root, cli, 0)

    if cli.command.subcommands:
        cli._command = cli.command.subcommands["help"]

    return Proceed(cli)


def parse(command, argv, /):
    """
    parse 'argv' (argv[0] is the program name, as in sys.argv) against 'command'.

    returns Proceed or RenderAndExit; raises a CommandException subclass on any
    structural problem. 'command' and its tree are only read.
    """
    if isinstance(argv, str) or not isinstance(argv, Sequence):
        raise TypeError("parse() argument must be a sequence of strings")
    if any(not isinstance(token, str) for token in argv):
        raise TypeError("parse() argument must be a sequence of strings")

    if not argv:
        raise EmptyInvocationError(
            "no command-line supplied",
            title="empty invocation",
            code=FaultCode.EMPTY_INVOCATION,
            command=command,
            source="CLI",
            hint="pass the program name first, as in sys.argv",
            docs=getdoc(FaultCode.EMPTY_INVOCATION),
        )

    return finalize(Dispatcher(command, argv).run())


__all__ = (
    "CommandLine",
    "OptionIndex",
    "Dispatcher",
    "Rule",
    "Proceed",
    "RenderAndExit",
    "parse_long",
    "parse_short",
    "describe",
    "finalize",
    "parse",
    "TERMINATOR",
    "IMPLICIT",
)
