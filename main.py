from rich.pretty import pprint

from helmsman import *


@command(params=("target",), version="0.1.0", shell=True, colorful=True)
def deploy(context):
    """Ship a build to a target environment."""
    pprint(context.flags)
    pprint(context.params)


@deploy.command
def rollback(context):
    """Undo the last deployment."""
    pprint(context.get("verbose"))


deploy.define_bool("verbose", False, "chatty output")
deploy.alias("V", "verbose")
deploy.define_duration("timeout", usage="give up after this long")
deploy.propagate("verbose")


if __name__ == '__main__':
    pprint(deploy)
    invoke(deploy)
