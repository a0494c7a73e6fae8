"""
Arbor config: option values as a command handler sees them.

A Config wraps one parsed CommandLine and answers "what is the value of option X"
for every option in scope of the selected command: the command-line value when
one was supplied, the option's declared default otherwise.

    def build(config):
        if config.get_bool("dry-run"):
            ...
        jobs = config.get_int("jobs")
        target, = config.args
"""
from .faults import FaultCode, OptionNotDefinedError, getdoc
from .options import boolean


class Config:
    """
    Read-only lookup over a CommandLine and the option definitions in scope.

    - get(name):       command-line value, else the option default.
    - get_bool(name):  get() interpreted by arbor.options.boolean().
    - get_int(name):   get() as int; ValueError for non-integers.
    - supplied(name):  given on the command line (even as "").
    - changed(name):   supplied with a value different from the default.

    unknown option names raise OptionNotDefinedError with source "config": they
    are programming errors in the handler, not user input errors.
    """

    def __init__(self, cli, /):
        self._cli = cli
        self._options = cli.command.inherited_options()

    @property
    def cli(self):
        return self._cli

    @property
    def command(self):
        return self._cli.command

    @property
    def args(self):
        return self._cli.arg_values

    def _option(self, name):
        try:
            return self._options[name]
        except KeyError:
            raise OptionNotDefinedError(
                "option %r is not defined for command %r" % (name, self._cli.command.name),
                title="unknown option",
                code=FaultCode.OPTION_NOT_DEFINED,
                name=name,
                command=self._cli.command,
                source="config",
                hint="declare the option on the command or one of its parents",
                docs=getdoc(FaultCode.OPTION_NOT_DEFINED),
            ) from None

    def get(self, name, /):
        return self._cli.option_value(name, self._option(name).default)

    def get_bool(self, name, /):
        return boolean(self.get(name))

    def get_int(self, name, /):
        value = self.get(name)
        try:
            return int(value)
        except ValueError:
            raise ValueError("option %r value %r is not an integer" % (name, value)) from None

    def supplied(self, name, /):
        self._option(name)
        return self._cli.supplied(name)

    def changed(self, name, /):
        return self.supplied(name) and self._cli.option_value(name) != self._option(name).default

    def __repr__(self):
        return "config(command=%r, args=%r)" % (self._cli.command.name, self.args)


__all__ = (
    "Config",
)
