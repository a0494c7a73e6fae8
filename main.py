from rich.pretty import pprint

from arbor import *

tool = Command(
    name="tool",
    version="0.1.0",
    summary="build and test things",
    options=[Option("verbose", "v", ValueType.BOOL, descr="print more")],
    colorful=True,
)


@tool.command(args=("target", Arg("mode", False)), options=[
    Option("jobs", "j", require_value=True, default="2", descr="parallel jobs"),
])
def build(config):
    """Compile a target."""
    pprint(config)
    return config.get_int("jobs")


if __name__ == '__main__':
    pprint(tool)
    invoke(tool)
