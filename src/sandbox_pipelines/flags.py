# =========================================================================== #
from typing import Annotated, Optional

import typer
import yaml
from pydantic import BaseModel

# --------------------------------------------------------------------------- #
from sandbox_pipelines.config import PipelineConfig

FlagConfig = Annotated[Optional[str], typer.Option("--config")]
FlagStack = Annotated[Optional[str], typer.Option("--stack", "-s")]
FlagTimeout = Annotated[Optional[int], typer.Option("--timeout")]
FlagInterval = Annotated[Optional[float], typer.Option("--interval")]
FlagUrl = Annotated[Optional[str], typer.Argument()]


class ContextData(BaseModel):
    config: PipelineConfig

    @classmethod
    def typer_callback(
        cls,
        context: typer.Context,
        config_path: FlagConfig = None,
        stack: FlagStack = None,
    ) -> None:

        if config_path is None:
            config = PipelineConfig()  # type: ignore
        else:
            with open(config_path, "r") as file:
                raw = yaml.safe_load(file) or dict()

            config = PipelineConfig.model_validate(raw)

        if stack is not None:
            config.stack = stack

        self = cls(config=config)
        context.obj = self
