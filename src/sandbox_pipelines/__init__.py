import typer

# --------------------------------------------------------------------------- #
from sandbox_pipelines import flags
from sandbox_pipelines.stack import ProbeCommand, StackCommand


class Command:

    @classmethod
    def create_typer(cls):
        cli = typer.Typer()
        cli.callback()(flags.ContextData.typer_callback)
        cli.add_typer(StackCommand.create_typer(), name="stack")
        cli.command("probe")(ProbeCommand.probe)
        return cli


def main():
    Command.create_typer()()
