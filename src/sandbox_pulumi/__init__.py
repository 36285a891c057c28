# =========================================================================== #
from typing import Any, Dict

import pulumi
from pulumi import Output

# --------------------------------------------------------------------------- #
# NOTE: DO NOT ADD MAIN! The program is started from ``__main__.py`` in the
#       project root, see https://github.com/pulumi/pulumi/issues/7360
from sandbox_pulumi import gcp, k8s
from sandbox_pulumi.config import SandboxSettings

__version__ = "0.1.0"


def create_sandbox(
    settings: SandboxSettings | None = None,
    *,
    export: bool = True,
) -> Dict[str, Any]:
    settings = settings if settings is not None else SandboxSettings.from_config()

    # Create cluster and identity.
    zone = gcp.create_zone(settings)
    cluster, node_pool = gcp.create_cluster(settings, zone=zone)
    account, binding, _ = gcp.create_service_account(settings, cluster=cluster)

    # Install istio, deploy and wait.
    provisioners = k8s.create_provisioners(
        settings,
        zone=zone,
        cluster=cluster,
        node_pool=node_pool,
        account=account,
        binding=binding,
    )

    external_ip = provisioners.external_ip
    outputs = dict(
        project_id=settings.project_id,
        zone=zone,
        cluster_name=cluster.name,
        cluster_endpoint=Output.secret(cluster.endpoint),
        service_account_email=account.email,
        workload_pool=settings.workload_pool,
        external_ip=external_ip,
        frontend_url=external_ip.apply(lambda ip: f"http://{ip}"),
    )
    if export:
        for name, value in outputs.items():
            pulumi.export(name, value)

    return outputs
