import click

from cli.get_quorum import get_quorum
from cli.index_governor import index_governor


@click.group()
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx):
    pass


# Stream Governor events into the proposal/vote snapshot
cli.add_command(index_governor, "index_governor")

# One-off quorum lookup through the cached effect
cli.add_command(get_quorum, "get_quorum")
