"""
Arbor command layer: declare, compose, render and run command trees.

What this module provides
- Command: one node of a CLI tree with:
  • its own options (arbor.options.Option), keyed by long name,
  • declared positional args (Arg), which fix the min/max positional count,
  • subcommands; a node with subcommands is a command suite,
  • a handler callable that receives an arbor.config.Config,
  • polished help/version renderers (Rich-based, color-aware).

- Factories and helpers:
  • command(...): create a Command or a decorator that produces one.
  • invoke(obj, prompt): convenience runner for Commands.

Built-ins
- A root command (no parent) always gets a 'help' option (string, shorthand '?',
  value optional) and a 'version' option (boolean) unless they were declared.
- The first child attached to a node turns it into a suite and adds a 'help'
  subcommand (optional COMMAND arg) and a 'version' subcommand.

Quick start
    from arbor import Command, Option, ValueType, invoke

    tool = Command(name="tool", version="1.4.0", summary="build things")

    @tool.command(args=("target",), options=[Option("jobs", "j", require_value=True)])
    def build(config):
        print(config.args[0], config.get_int("jobs"))

    if __name__ == "__main__":
        invoke(tool)           # tool build -j 4 app

Design notes
- Parsing never writes into Command objects; see arbor.parser.
- Public fields are read-only mirrors; containers are handed out as copies.
"""
import copy
import functools
import inspect
import operator
import os.path
import re
import shlex
import sys
from collections import defaultdict, namedtuple
from collections.abc import Iterable

from rich.box import ROUNDED
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .config import Config
from .faults import *
from .options import Option, ValueType
from .parser import RenderAndExit, parse, unknown_command
from .utils import *

Arg = namedtuple("Arg", ("name", "required"), defaults=(True,))
Arg.__doc__ = "declared positional argument; required args must precede optional ones."


class CommandType(type):
    """
    Metaclass that gives Command stable introspection.

    - __typename__ is derived from the class name (camel-case split with hyphens).
    - every name in __introspectable__ becomes a read-only property via mirror().
    - __repr__/__rich_repr__ show __displayable__ (or __introspectable__) fields.
    """
    __introspectable__ = ()
    __displayable__ = Unset

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
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


def _process_strings(cls, metadata):
    """
    Normalize scalar string/Text metadata fields in place.

    - each value must be str | Text | Unset; strings are trimmed and must not be empty.
    - Unset becomes None.
    """
    for name in ("name", "summary", "descr", "usage", "version"):
        if not isinstance(object := metadata[name], str | Text | Unset):
            raise TypeError(f"{cls.__typename__} {name!r} must be a string")
        elif isinstance(object, str) and not (object := object.strip()):
            raise ValueError(f"{cls.__typename__} {name!r} cannot be empty")
        metadata[name] = coalesce(object)

    if re.search(r"\s", name := str(metadata["name"])) or name.startswith("-"):
        raise ValueError(f"{cls.__typename__} 'name' cannot contain blanks or start with '-'")


def _attach_to_parent(self, parent):
    """
    Register this command under its parent, enforcing unique names, then make
    sure the parent carries the suite built-ins ('help' and 'version').
    """
    if not parent:
        return
    if parent.args:
        raise ValueError(f"{type(self).__typename__} 'parent' command cannot declare positional args")
    if parent._subcommands.setdefault(name := str(self.name), self) is not self:
        typeof = "subcommand" if parent.parent else "command"
        raise ValueError(f"{type(self).__typename__} {typeof} name {name!r} is already in use")

    if "help" not in parent._subcommands:
        Command(
            _helper,
            parent,
            "help",
            "show help for a command",
            "Show the help of the named command, or of the command suite when no name is given.",
            args=(Arg("command", False),),
        )
    if "version" not in parent._subcommands:
        Command(_versioner, parent, "version", "show the program version", "Print the program name and version.")


def _helper(config):
    """handler of the 'help' subcommand."""
    suite = config.command.parent
    if not config.args:
        return suite.render_help()
    try:
        target = suite.subcommands[name := config.args[0]]
    except KeyError:
        raise unknown_command(suite, name) from None
    target.render_help()


def _versioner(config):
    """handler of the 'version' subcommand."""
    config.command.root.render_version()


class Command(metaclass=CommandType):
    """
    One node in a command tree.

    Responsibilities
    - Declaration: options, positional args and subcommands (add_option/add_arg/command).
    - Scope: inherited_options() merges ancestors' options under the node's own.
    - Rendering: help/usage/version output via Rich (render_help/render_version).
    - Invocation: run()/__invoke__ parse an argv and call the selected handler.

    Parameters
    - handler: Callable[[Config], Any] | Unset (positional-only)
      body executed when this command is selected; suites usually have none.
    - parent: Command | Unset
      node to attach to. Unset makes this a root command.
    - name: str | Unset
      defaults to the handler's name (underscores become hyphens), or the
      program's basename for handler-less roots.
    - summary, descr, usage, version: str | Text | Unset
      help scalars; summary defaults to the first line of descr, descr to the
      handler's docstring.
    - options: Iterable[Option] (keyword-only)
    - args: Iterable[str | Arg] (keyword-only)
    - shell, fancy, colorful: bool | Unset (keyword-only)
      runtime flags. If Unset, values inherit from parent (or default False).
    """

    __introspectable__ = (
        "name",
        "summary",
        "descr",
        "usage",
        "version",
        "handler",
        "options",
        "args",
        "subcommands",
        "parent",
        "shell",
        "fancy",
        "colorful",
    )

    # parent is left out to keep reprs finite.
    __displayable__ = (
        "name",
        "summary",
        "version",
        "options",
        "args",
        "subcommands",
        "shell",
        "fancy",
        "colorful",
    )

    @property
    def root(self):
        """the topmost command of this tree."""
        child, parent = self, self.parent
        while parent:
            child, parent = parent, parent.parent
        return child

    @property
    def path(self):
        """ancestry from the root to this command, as a tuple."""
        path = [command := self]
        while command.parent:
            path.append(command := command.parent)
        return tuple(reversed(path))

    @property
    def min_args(self):
        return sum(arg.required for arg in self._args)

    @property
    def max_args(self):
        return len(self._args)

    def __init__(
            self,
            handler=Unset,
            /,
            parent=Unset,
            name=Unset,
            summary=Unset,
            descr=Unset,
            usage=Unset,
            version=Unset,
            *,
            options=(),
            args=(),
            shell=Unset,
            fancy=Unset,
            colorful=Unset,
    ):
        cls = type(self)

        if not isinstance(parent, Command | Unset):
            raise TypeError(f"{cls.__typename__} 'parent' must be a command")
        if handler is not Unset and not callable(handler):
            raise TypeError(f"{cls.__typename__} 'handler' must be callable")

        if name is Unset and handler is not Unset:
            name = getattr(handler, "__name__", Unset)
            if isinstance(name, str):
                name = name.strip("_").replace("_", "-")
        descr = coalesce(descr, inspect.getdoc(handler) or Unset if handler is not Unset else Unset)

        metadata = {
            "name": coalesce(name, os.path.basename(sys.argv[0]) or "main"),
            "summary": summary,
            "descr": descr,
            "usage": usage,
            "version": version,
        }
        _process_strings(cls, metadata)
        if metadata["summary"] is None and str(metadata["descr"] or "").strip():
            metadata["summary"] = str(metadata["descr"]).strip().splitlines()[0]

        for name, object in metadata.items():
            setattr(self, "_" + name, object)

        self._handler = handler
        self._parent = parent
        self._options = {}
        self._shorthands = {}
        self._args = []
        self._subcommands = {}
        self._shell = bool(coalesce(shell, getattr(parent, "shell", False)))
        self._fancy = bool(coalesce(fancy, getattr(parent, "fancy", False)))
        self._colorful = bool(coalesce(colorful, getattr(parent, "colorful", False)))

        if isinstance(options, Option) or not isinstance(options, Iterable):
            raise TypeError(f"{cls.__typename__} 'options' must be an iterable of options")
        for option in options:
            self.add_option(option)

        if isinstance(args, str) or not isinstance(args, Iterable):
            raise TypeError(f"{cls.__typename__} 'args' must be an iterable of names or args")
        for arg in args:
            if isinstance(arg, Arg):
                self.add_arg(arg.name, required=arg.required)
            else:
                self.add_arg(arg)

        if not parent:
            if "help" not in self._options:
                self.add_option(Option(
                    "help",
                    "?" if "?" not in self._shorthands else Unset,
                    descr="show help for this command, or for the named subcommand",
                ))
            if "version" not in self._options:
                self.add_option(Option("version", type=ValueType.BOOL, descr="show the program version"))

        _attach_to_parent(self, parent)

    def add_option(self, option, /):
        """declare 'option' on this command; returns it."""
        if not isinstance(option, Option):
            raise TypeError(f"{type(self).__typename__} option must be an option")
        if option.name in self._options:
            raise ValueError(f"{type(self).__typename__} option name {option.name!r} is already in use")
        if option.shorthand and option.shorthand in self._shorthands:
            raise ValueError(f"{type(self).__typename__} option shorthand {option.shorthand!r} is already in use")
        self._options[option.name] = option
        if option.shorthand:
            self._shorthands[option.shorthand] = option
        return option

    def add_arg(self, name, /, required=True):
        """declare the next positional arg; returns its Arg."""
        if not isinstance(name, str):
            raise TypeError(f"{type(self).__typename__} arg name must be a string")
        elif not (name := name.strip()):
            raise ValueError(f"{type(self).__typename__} arg name cannot be empty")
        if self._subcommands:
            raise ValueError(f"{type(self).__typename__} command suite cannot declare positional args")
        if required and self._args and not self._args[-1].required:
            raise ValueError(f"{type(self).__typename__} required arg {name!r} cannot follow an optional one")
        self._args.append(arg := Arg(name, bool(required)))
        return arg

    def inherited_options(self):
        """
        return a new dict of every option in scope for this command.

        ancestors' options come first; an option declared closer to this command
        replaces a same-named one declared above it.
        """
        options = {}
        for command in self.path:
            options.update(command._options)
        return options

    def command(self, handler=Unset, /, **kwargs):
        """
        Create a subcommand under this command, or return a decorator that does.

            @tool.command(args=("target",))
            def build(config): ...
        """
        return command(handler, parent=self, **kwargs)

    def render_help(self, console=None, /):
        """
        Render help to the console (stdout unless a console is given).

        Palette keys
        - usage-label, program-name, usage-section, summary-section, description-section
        - children-title, children-table, children, children-description
        - group-label, option-name, metavar, option-description, default
        - panel-title

        Customization
        - Define a mapping named __styles__ in __main__ to override any palette entry.
        - When colorful is False, styling is suppressed.
        """
        console = console or Console()
        styles = defaultdict(str, {
            # === Head sections ===
            "usage-label": "bold #00E6FF",
            "program-name": "bold #FF4D94",
            "usage-section": "bold #36C5F0",
            "summary-section": "bold #E5E7EB",
            "description-section": "italic #A3A3A3",

            # === Children table ===
            "children-title": "bold #FFFFFF",
            "children-table": "#4B5563",
            "children": "bold #36C5F0",
            "children-description": "#9CA3AF",

            # === Options ===
            "group-label": "bold #FFFFFF",
            "option-name": "bold #00E6FF",
            "metavar": "bold #FFD600",
            "option-description": "#9CA3AF",
            "default": "italic #737373",

            # === Fancy panel ===
            "panel-title": "bold #FF4D94",
        } | getattr(__import__('__main__'), "__styles__", {}))

        def styler(style):
            return styles[style] if self.colorful else ""

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            if not self.colorful:
                return Text(str(fragment))
            if isinstance(fragment, Text):
                return fragment
            return Text(str(fragment), style)

        route = " ".join(step.name for step in self.path)
        scope = self.inherited_options()
        renders = []

        usage = Text()
        usage.append("usage", styler("usage-label")).append(": ")
        if self.usage:
            usage.append(text(self.usage, styler("usage-section")))
        else:
            usage.append(text(route, styler("program-name")))
            if self._subcommands:
                usage.append(" ").append(text("<command>", styler("metavar")))
            if any(not option.hidden for option in scope.values()):
                usage.append(" [<options>]")
            for arg in self._args:
                metavar = text(f"<{arg.name}>", styler("metavar"))
                usage.append(" ").append(metavar if arg.required else Text.assemble("[", metavar, "]"))
        renders.append(usage)

        if self.summary:
            renders.append(Text("\n").append(text(self.summary, styler("summary-section"))))
        if self.descr and str(self.descr) != str(self.summary):
            renders.append(Text("\n").append(text(self.descr, styler("description-section"))))

        if self._subcommands:
            table = Table(
                "name", "summary",
                title=text("subcommands" if self.parent else "commands", styler("children-title")),
                box=ROUNDED,
                style=styler("children-table"),
                header_style=styler("children-title"),
            )
            for name, child in self._subcommands.items():
                table.add_row(
                    text(name, styler("children")),
                    text(child.summary or f"run '{route} help {name}' for details", styler("children-description")),
                )
            renders.append(Text(""))
            renders.append(table)

        groups = (
            ("options", [option for option in self._options.values() if not option.hidden]),
            ("inherited options", [
                option for name, option in scope.items()
                if name not in self._options and not option.hidden
            ]),
        )
        for group, options in groups:
            if not options:
                continue
            grid = Table.grid(padding=(0, 3))
            grid.add_column(no_wrap=True)
            grid.add_column()
            for option in sorted(options, key=operator.attrgetter("name")):
                names = Text("  ")
                if option.shorthand:
                    names.append(text("-" + option.shorthand, styler("option-name"))).append(", ")
                else:
                    names.append("    ")
                names.append(text("--" + option.name, styler("option-name")))
                if not option.is_boolean:
                    metavar = text("<value>", styler("metavar"))
                    if option.require_value:
                        names.append(" ").append(metavar)
                    else:
                        names.append(Text.assemble("[=", metavar, "]"))
                descr = text(option.descr, styler("option-description")).copy()
                if option.default and not option.is_boolean:
                    descr.append(" ").append(text(f"(default {option.default!r})", styler("default")))
                grid.add_row(names, descr)
            renders.append(Text("\n").append(text(group, styler("group-label"))).append(":"))
            renders.append(grid)

        renderable = Group(*renders)

        if self.fancy:
            renderable = Panel(
                renderable,
                title=Text.assemble("[", " ", f"{route} HELP".upper(), " ", "]", style=styler("panel-title")),
                title_align="left",
            )

        console.print(renderable)

    def render_version(self, console=None, /):
        """
        Render "<name> — <version>" (and the summary, when set) to the console.

        Palette keys: program-name, program-version, summary-section, panel-title.
        """
        console = console or Console()
        styles = defaultdict(str, {
            "program-name": "bold #FF4D94",
            "program-version": "bold #00E6FF",
            "summary-section": "#9CA3AF",
            "panel-title": "bold #FF4D94",
        } | getattr(__import__('__main__'), "__styles__", {}))

        def styler(style):
            return styles[style] if self.colorful else ""

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            if not self.colorful:
                return Text(str(fragment))
            if isinstance(fragment, Text):
                return fragment
            return Text(str(fragment), style)

        renders = [Text(" — ").join((
            text(self.name, styler("program-name")),
            text(self.version or "unknown version", styler("program-version")),
        ))]
        if self.summary:
            renders.append(text(self.summary, styler("summary-section")))

        renderable = Group(*renders)

        if self.fancy:
            renderable = Panel(
                renderable,
                title=Text.assemble("[", " ", f"{self.name} VERSION".upper(), " ", "]", style=styler("panel-title")),
                title_align="left",
            )

        console.print(renderable)

    def trigger(self, fault, /, **options):
        """
        Surface a fault raised while running this command.

        The fault is re-targeted with this command's runtime flags. In shell mode
        the help of the command that was selected when it failed is printed to
        stderr first; arbor.faults.trigger() then prints it and exits with status
        1. Outside shell mode the fault is raised again.
        """
        if (
                not hasattr(fault, "__trigger__") or
                not callable(fault.__trigger__) or
                not hasattr(fault, "__replace__") or
                not callable(fault.__replace__)
        ):
            raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
        fault = copy.replace(fault, **(options | {
            "tool": self,
            "shell": self.shell,
            "fancy": self.fancy,
            "colorful": self.colorful,
        }))
        if self.shell:
            fault.options.get("command", self).render_help(Console(stderr=True))
        trigger(fault)

    def run(self, argv=None, /):
        """
        Parse 'argv' (sys.argv when None) and execute the outcome.

        - help/version requested → render it and exit with status 0.
        - otherwise call the selected command's handler with a Config and return
          its result (None when the command has no handler).
        - faults from parsing or from a handler go through trigger().
        """
        argv = sys.argv if argv is None else argv
        try:
            outcome = parse(self, argv)
            if isinstance(outcome, RenderAndExit):
                outcome.render()
                sys.exit(outcome.status)
            handler = outcome.cli.command.handler
            if handler is None:
                return None
            return handler(Config(outcome.cli))
        except CommandException as fault:
            self.trigger(fault)

    def __invoke__(self, prompt=Unset):
        """
        Execute this command with a prompt.

        - Unset: sys.argv as-is.
        - str: shell-like string (shlex.split), run as if typed after the root's name.
        - Iterable[str]: a complete argv, program name first.
        """
        if prompt is Unset:
            argv = sys.argv
        elif isinstance(prompt, str):
            argv = [self.root.name, *shlex.split(prompt)]
        elif isinstance(prompt, Iterable):
            argv = list(prompt)
            if any(not isinstance(item, str) for item in argv):
                raise TypeError("__invoke__() argument must be a string or an iterable of strings")
        else:
            raise TypeError("__invoke__() argument must be a string or an iterable of strings")

        return self.run(argv)


def command(source=Unset, /, *args, **kwargs):
    """
    Create a Command or return a decorator to build it later.

    Invocation modes
    - Direct:     cmd = command(func, name="x", ...)
    - Decorator:  @command(name="x", ...)
                  def func(config): ...

    Parameters
    - source: Unset | Callable
      When Unset, a decorator is returned. Otherwise a Command is created.
    - *args, **kwargs: forwarded to Command (parent, name, summary, options, args, ...).
    """
    @rename("command")
    def wrapper(source, /):
        if not callable(source):
            raise TypeError("@command() must be applied to a callable")
        return Command(source, *args, **kwargs)

    return wrapper(source) if source is not Unset else wrapper


def invoke(object, prompt=Unset, /):
    """
    Convenience runner for commands.

    - object: an instance providing __invoke__(prompt).
    - prompt: Unset (sys.argv), a shell-like str, or a full argv iterable.

    Returns whatever the selected handler returned.
    """
    if hasattr(object, "__invoke__") and callable(object.__invoke__):
        return object.__invoke__(prompt)

    target = "argument" if prompt is Unset else "first argument"
    raise TypeError(f"invoke() {target} must implement __invoke__ method") from None


__all__ = (
    "Arg",
    "Command",
    "command",
    "invoke",
)

del CommandType
