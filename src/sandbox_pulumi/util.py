# =========================================================================== #
import enum
import logging
import logging.config
import re
from os import path as p
from typing import Any, Dict, Tuple

import httpx
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax

CONSOLE = Console()
PATH_BASE: str = p.realpath(p.join(p.dirname(__file__), "..", ".."))
PATH_CONFIGS: str = p.realpath(p.join(PATH_BASE, "configs"))

# NOTE: GCP label keys and values only allow lowercase letters, digits,
#       underscores and dashes. See https://cloud.google.com/compute/docs/labeling-resources
LABEL_PREFIX = "sandbox"
PATTERN_LABEL = re.compile("^[a-z0-9_-]{0,63}$")


class path:
    @staticmethod
    def base(*segments: str) -> str:
        return p.join(PATH_BASE, *segments)

    @staticmethod
    def config(*segments: str) -> str:
        return p.join(PATH_CONFIGS, *segments)


PATH_CONFIG_LOG = path.base("logging.yaml")


def params(**kwargs) -> Dict[str, Any]:
    return {k: v for k, v in kwargs.items() if v is not None}


def check(
    res: httpx.Response, *, status_code: int = 200
) -> Tuple[Any, AssertionError | None]:
    try:
        data = res.json()
    except ValueError:
        # NOTE: Not JSON, or not even valid UTF-8 (HTML pages often are not).
        data = res.text.strip()

    err = None
    if res.status_code != status_code:
        msg = f"Unexpected response from `{res.request.url}`. "
        msg += "Expected response status code `{}`, got `{}`. Data=`{}`."
        err = AssertionError(msg.format(status_code, res.status_code, data))
        return data, err

    return data, err


def print_yaml(raw, *, is_dumped: bool = False, syntax: bool = True):
    rendered = yaml.dump(raw) if not is_dumped else raw

    if syntax:
        CONSOLE.print(Syntax(rendered, "yaml", background_color="default"))
        return
    else:
        print(rendered)


class LabelTier(str, enum.Enum):
    base = "base"


class LabelComponent(str, enum.Enum):
    cluster = "cluster"
    node_pool = "node-pool"


def create_labels(
    *,
    tier: LabelTier,
    component: LabelComponent,
    from_: str,
    **extra: str,
) -> Dict[str, str]:
    tags = {"tier": tier.value, "component": component.value, "from": from_, **extra}
    labels = {f"{LABEL_PREFIX}-{field}": value for field, value in tags.items()}

    if len(bad := {k: v for k, v in labels.items() if not valid_label(k, v)}):
        raise ValueError(f"Invalid GCP labels `{bad}`.")

    return labels


def valid_label(key: str, value: str) -> bool:
    return (
        bool(key)
        and key[0].isalpha()
        and PATTERN_LABEL.match(key) is not None
        and PATTERN_LABEL.match(value) is not None
    )


def setup_logging(config_path: str = PATH_CONFIG_LOG):
    if not p.isfile(config_path):
        config = dict(version=1, disable_existing_loggers=False)
        logging.basicConfig(
            level=logging.INFO,
            format="%(message)s",
            handlers=[RichHandler(console=CONSOLE, rich_tracebacks=True)],
        )
        return config, logging.getLogger

    with open(config_path, "r") as file:
        config = yaml.safe_load(file)

    logging.config.dictConfig(config)

    return config, logging.getLogger


DEFAULT_LOGGING_CONFIG, _get_logger = setup_logging()


def get_logger(name: str) -> logging.Logger:
    ll = _get_logger(name)
    return ll
