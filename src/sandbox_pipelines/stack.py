"""Drive the sandbox stack from python.

The pulumi program itself lives in ``sandbox_pulumi`` and is started by the
pulumi CLI from ``__main__.py``. This module wraps the automation api [1] so
that the usual ``up``, ``preview`` and ``destroy`` can be run and so that the
frontend can be probed once the deployment finishes.

.. code:: text

   [1] https://www.pulumi.com/docs/using-pulumi/automation-api/
"""

# =========================================================================== #
import time
from typing import Any, Callable, Dict, Generator

import httpx
import typer
from pulumi import automation as auto
from rich.markup import escape

# --------------------------------------------------------------------------- #
from sandbox_pipelines import flags
from sandbox_pipelines.config import PipelineConfig
from sandbox_pulumi import util
from sandbox_pulumi.config import SandboxSettings

CONSOLE = util.CONSOLE
SECRET = "[secret]"

logger = util.get_logger(__name__)


def select_stack(config: PipelineConfig) -> auto.Stack:
    logger.debug("Selecting stack `%s` in `%s`.", config.stack, config.work_dir)
    return auto.create_or_select_stack(
        stack_name=config.stack,
        work_dir=config.work_dir,
    )


def create_client() -> httpx.Client:
    return httpx.Client(timeout=10, follow_redirects=True)


def print_output(line: str):
    # NOTE: Engine output is plain text, brackets in it are not markup.
    CONSOLE.print(line.rstrip("\n"), markup=False, highlight=False)


def render_outputs(outputs: Dict[str, Any]) -> Dict[str, Any]:
    return {
        name: SECRET if getattr(output, "secret", False) else output.value
        for name, output in outputs.items()
    }


def probe(
    client: httpx.Client,
    url: str,
    *,
    timeout: float,
    interval: float,
    sleep: Callable[[float], Any] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> Generator[str, None, bool]:
    """Request ``url`` until it answers ``200`` or ``timeout`` runs out.

    Yields a line per attempt, the return value says if the frontend came up.
    Transport errors are expected while the load balancer warms up and only
    count as a failed attempt.
    """

    deadline = clock() + timeout
    attempt = 0
    while True:
        attempt += 1
        try:
            res = client.get(url)
        except httpx.TransportError as err:
            yield f"Attempt {attempt}: `{url}` unreachable ({type(err).__name__})."
        else:
            _, err = util.check(res)
            if err is None:
                yield f"Attempt {attempt}: `{url}` is up."
                return True
            yield f"Attempt {attempt}: `{url}` answered `{res.status_code}`."

        if clock() + interval > deadline:
            return False
        sleep(interval)


# --------------------------------------------------------------------------- #


class StackCommand:

    @classmethod
    def run(cls, context: typer.Context, fn: Callable[[auto.Stack], Any]) -> Any:
        context_data: flags.ContextData = context.obj
        try:
            stack = select_stack(context_data.config)
            return fn(stack)
        except auto.CommandError as err:
            CONSOLE.print(f"[red]Pulumi failed for `{context_data.config.stack}`.")
            logger.debug("Pulumi error.", exc_info=err)
            raise typer.Exit(1)

    @classmethod
    def up(cls, context: typer.Context):
        result = cls.run(context, lambda stack: stack.up(on_output=print_output))
        util.print_yaml(render_outputs(result.outputs))

    @classmethod
    def preview(cls, context: typer.Context):
        cls.run(context, lambda stack: stack.preview(on_output=print_output))

    @classmethod
    def destroy(cls, context: typer.Context):
        cls.run(context, lambda stack: stack.destroy(on_output=print_output))

    @classmethod
    def outputs(cls, context: typer.Context):
        outputs = cls.run(context, lambda stack: stack.outputs())
        util.print_yaml(render_outputs(outputs))

    @classmethod
    def settings(cls, context: typer.Context):
        values = cls.run(context, lambda stack: stack.get_all_config())
        try:
            settings = SandboxSettings.from_stack_config(values)
        except ValueError as err:
            CONSOLE.print(f"[red]Invalid stack configuration: {escape(str(err))}")
            raise typer.Exit(1)

        util.print_yaml(settings.model_dump(mode="json"))

    @classmethod
    def create_typer(cls):
        cli = typer.Typer()
        cli.command("up")(cls.up)
        cli.command("preview")(cls.preview)
        cli.command("destroy")(cls.destroy)
        cli.command("outputs")(cls.outputs)
        cli.command("config")(cls.settings)

        return cli


class ProbeCommand:

    @classmethod
    def probe(
        cls,
        context: typer.Context,
        url: flags.FlagUrl = None,
        timeout: flags.FlagTimeout = None,
        interval: flags.FlagInterval = None,
    ):
        context_data: flags.ContextData = context.obj
        config = context_data.config

        if url is None:
            outputs = StackCommand.run(context, lambda stack: stack.outputs())
            if (output := outputs.get("frontend_url")) is None:
                CONSOLE.print(f"[red]Stack `{config.stack}` has no `frontend_url`.")
                raise typer.Exit(1)
            url = output.value

        with create_client() as client:
            gen = probe(
                client,
                url,
                timeout=timeout if timeout is not None else config.probe_timeout,
                interval=interval if interval is not None else config.probe_interval,
            )
            while True:
                try:
                    CONSOLE.print(next(gen))
                except StopIteration as stop:
                    ok = stop.value
                    break

        if not ok:
            CONSOLE.print(f"[red]`{url}` did not come up.")
            raise typer.Exit(1)

        CONSOLE.print(f"[green]`{url}` is ready.")
