"""Stack settings.

Values live in the pulumi stack configuration (``Pulumi.<stack>.yaml``) under
the project namespace, e.g.

.. code:: sh

   pulumi config set project_id my-project
   pulumi config set --path 'zones[0]' us-central1-a

Structured values (``zones``, ``gsa_roles``, ``labels``) are stored by pulumi
as JSON strings, so they are decoded before validation.
"""

# =========================================================================== #
import json
import re
from typing import Annotated, Any, Callable, Dict, List, Self

import pulumi
from pydantic import BaseModel, BeforeValidator, Field, computed_field, field_validator

# --------------------------------------------------------------------------- #
from sandbox_pulumi import util

PROJECT = "SandboxPulumi"

PATTERN_ZONE = re.compile("^(?P<region>[a-z]+-[a-z]+[0-9]+)-(?P<letter>[a-z])$")
PATTERN_GSA = re.compile("^[a-z](?:[-a-z0-9]{4,28}[a-z0-9])$")

# NOTE: Zones where the default machine type is available. The pick is seeded,
#       so the same project lands in the same zone on every run.
ZONES_DEFAULT = [
    "us-central1-a",
    "us-central1-b",
    "us-central1-c",
    "us-central1-f",
    "us-east1-b",
    "us-east1-c",
    "us-east1-d",
    "us-west1-a",
    "us-west1-b",
    "us-west1-c",
    "europe-west1-b",
    "europe-west1-c",
    "europe-west1-d",
    "europe-west2-a",
    "europe-west2-b",
    "europe-west2-c",
    "asia-east1-a",
    "asia-east1-b",
    "asia-east1-c",
]
GSA_ROLES_DEFAULT = [
    "roles/cloudtrace.agent",
    "roles/monitoring.metricWriter",
    "roles/logging.logWriter",
    "roles/cloudprofiler.agent",
]


def decode_json(v):
    if not isinstance(v, str):
        return v

    try:
        return json.loads(v)
    except json.JSONDecodeError as err:
        raise ValueError(f"Expected a JSON encoded value, got `{v}`.") from err


class SandboxSettings(BaseModel):
    project_id: Annotated[str, Field(min_length=1)]

    # Cluster.
    cluster_name: Annotated[str, Field(default="cloud-ops-sandbox")]
    zone: Annotated[
        str | None,
        Field(default=None, description="Fixed zone. Skips the random pick."),
    ]
    zones: Annotated[
        List[str],
        Field(default_factory=lambda: list(ZONES_DEFAULT), min_length=1),
        BeforeValidator(decode_json),
    ]
    zone_seed: Annotated[
        str | None,
        Field(default=None, description="Seed for the zone pick."),
    ]
    machine_type: Annotated[str, Field(default="n1-standard-2")]
    node_count: Annotated[int, Field(default=4, ge=1)]
    node_pool_name: Annotated[str, Field(default="default-pool")]

    # Identity.
    gsa_name: Annotated[str, Field(default="cloud-ops-sandbox")]
    gsa_roles: Annotated[
        List[str],
        Field(default_factory=lambda: list(GSA_ROLES_DEFAULT)),
        BeforeValidator(decode_json),
    ]
    ksa_name: Annotated[str, Field(default="default")]
    ksa_namespace: Annotated[str, Field(default="default")]

    # Provisioners.
    istio_script: Annotated[str, Field(default="istio/install_istio.sh")]
    manifests: Annotated[str, Field(default="kubernetes-manifests")]
    readiness_timeout: Annotated[int, Field(default=600, ge=1)]
    ingress_service: Annotated[str, Field(default="istio-ingressgateway")]
    ingress_namespace: Annotated[str, Field(default="istio-system")]

    labels: Annotated[
        Dict[str, str],
        Field(default_factory=dict),
        BeforeValidator(decode_json),
    ]

    @field_validator("zone")
    @classmethod
    def check_zone(cls, v: str | None) -> str | None:
        if v is not None and PATTERN_ZONE.match(v) is None:
            raise ValueError(f"`{v}` is not a zone.")
        return v

    @field_validator("zones")
    @classmethod
    def check_zones(cls, v: List[str]) -> List[str]:
        if len(bad := [zone for zone in v if PATTERN_ZONE.match(zone) is None]):
            raise ValueError(f"Not zones: `{bad}`.")
        return v

    @field_validator("gsa_name")
    @classmethod
    def check_gsa_name(cls, v: str) -> str:
        if PATTERN_GSA.match(v) is None:
            msg = f"`{v}` is not a valid service account id. Must match `{PATTERN_GSA.pattern}`."
            raise ValueError(msg)
        return v

    @field_validator("gsa_roles")
    @classmethod
    def check_gsa_roles(cls, v: List[str]) -> List[str]:
        # NOTE: Each role is a resource, repeats would collide.
        return list(dict.fromkeys(v))

    @field_validator("labels")
    @classmethod
    def check_labels(cls, v: Dict[str, str]) -> Dict[str, str]:
        bad = {
            key: value
            for key, value in v.items()
            if not util.valid_label(f"{util.LABEL_PREFIX}-{key}", value)
        }
        if len(bad):
            raise ValueError(f"Invalid GCP labels `{bad}`.")
        return v

    @computed_field
    @property
    def seed(self) -> str:
        return self.zone_seed if self.zone_seed is not None else self.project_id

    @computed_field
    @property
    def workload_pool(self) -> str:
        return f"{self.project_id}.svc.id.goog"

    @computed_field
    @property
    def workload_member(self) -> str:
        return (
            f"serviceAccount:{self.workload_pool}"
            f"[{self.ksa_namespace}/{self.ksa_name}]"
        )

    # ----------------------------------------------------------------------- #

    @classmethod
    def from_values(cls, get: Callable[[str], Any]) -> Self:
        """Build from any lookup returning ``None`` for unset fields."""

        fields = (name for name in cls.model_fields if name != "project_id")
        data = util.params(**{name: get(name) for name in fields})
        data.update(project_id=get("project_id"))
        return cls.model_validate(data)

    @classmethod
    def from_config(cls, config: pulumi.Config | None = None) -> Self:
        config = config if config is not None else pulumi.Config()
        project_id = config.require("project_id")

        return cls.from_values(
            lambda name: project_id if name == "project_id" else config.get(name)
        )

    @classmethod
    def from_stack_config(cls, values: Dict[str, Any], project: str = PROJECT) -> Self:
        """Build from the ``{namespace:key: ConfigValue}`` mapping returned by
        ``Stack.get_all_config``."""

        prefix = f"{project}:"

        def get(name: str):
            if (item := values.get(prefix + name)) is None:
                return None
            return getattr(item, "value", item)

        return cls.from_values(get)
