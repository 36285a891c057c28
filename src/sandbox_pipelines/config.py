# =========================================================================== #
from typing import Annotated

from pydantic import Field
from yaml_settings_pydantic import (
    BaseYamlSettings,
    YamlFileConfigDict,
    YamlSettingsConfigDict,
)

# --------------------------------------------------------------------------- #
from sandbox_pulumi import util

PIPELINES_CONFIG = util.path.config("pipelines.yaml")


class PipelineConfig(BaseYamlSettings):

    # NOTE: The file is optional, everything has a default and can be set
    #       from the environment, e.g. ``SANDBOX_STACK=sandbox-prod``.
    model_config = YamlSettingsConfigDict(
        yaml_files={
            PIPELINES_CONFIG: YamlFileConfigDict(subpath=None, required=False),
        },
        env_prefix="SANDBOX_",
    )

    stack: Annotated[str, Field(default="sandbox-dev")]
    work_dir: Annotated[
        str,
        Field(
            default=util.PATH_BASE,
            description="Directory containing ``Pulumi.yaml``.",
        ),
    ]
    probe_timeout: Annotated[int, Field(default=300, ge=1)]
    probe_interval: Annotated[float, Field(default=5, gt=0)]
