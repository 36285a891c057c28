"""Post-cluster deployment steps.

Everything here shells out to ``gcloud``, ``kubectl`` and the istio install
script through ``local.Command``. Each step depends on the one before it so
that the chain is strictly sequential:

.. code:: text

   node pool -> credentials -> install-istio -> annotate-ksa -> deploy-manifests
             -> wait-ready -> collect-ingress

A non-zero exit fails the step and the engine stops there.

Resource:

.. code:: text

   [1] https://www.pulumi.com/registry/packages/command/api-docs/local/command/
   [2] https://kubernetes.io/docs/reference/kubectl/generated/kubectl_wait/
"""

# =========================================================================== #
import shlex
from dataclasses import dataclass
from typing import Dict, List

import pulumi
import pulumi_gcp as gcp
from pulumi import Input, Output, ResourceOptions
from pulumi_command import local

# --------------------------------------------------------------------------- #
from sandbox_pulumi import util
from sandbox_pulumi.config import SandboxSettings

ANNOTATION_GSA = "iam.gke.io/gcp-service-account"
INGRESS_POLL_INTERVAL = 5
JSONPATH_INGRESS_IP = "{.status.loadBalancer.ingress[0].ip}"

logger = util.get_logger(__name__)


# --------------------------------------------------------------------------- #
# NOTE: Commands. These only build strings so that they are easy to test.


def command_credentials(cluster: str, *, zone: str, project: str) -> str:
    return shlex.join(
        [
            "gcloud",
            "container",
            "clusters",
            "get-credentials",
            cluster,
            "--zone",
            zone,
            "--project",
            project,
        ]
    )


def command_install_istio(script: str) -> str:
    return shlex.join(["bash", script])


def command_annotate_ksa(ksa: str, *, namespace: str, email: str) -> str:
    return shlex.join(
        [
            "kubectl",
            "annotate",
            "serviceaccount",
            ksa,
            "--namespace",
            namespace,
            f"{ANNOTATION_GSA}={email}",
            "--overwrite",
        ]
    )


def command_apply_manifests(manifests: str) -> str:
    return shlex.join(["kubectl", "apply", "--recursive", "-f", manifests])


def command_wait_ready(*, namespace: str, timeout: int) -> str:
    return shlex.join(
        [
            "kubectl",
            "wait",
            "--for=condition=available",
            f"--timeout={timeout}s",
            "deployment",
            "--all",
            "--namespace",
            namespace,
        ]
    )


def command_collect_ingress(
    service: str,
    *,
    namespace: str,
    timeout: int,
    interval: int = INGRESS_POLL_INTERVAL,
) -> str:
    """Poll for the load balancer address of ``service``.

    The address is only assigned some time after the service exists, so the
    lookup is retried every ``interval`` seconds. Exits ``1`` without an
    address. Each attempt is capped at ``interval`` seconds and there is no
    sleep after the last one, so ``n`` attempts take at most
    ``(2n - 1) * interval`` seconds, which never exceeds ``timeout`` unless
    a single attempt already does.
    """
    if interval < 1:
        raise ValueError(f"Interval must be positive, got `{interval}`.")

    get = shlex.join(
        [
            "kubectl",
            "get",
            "service",
            service,
            "--namespace",
            namespace,
            f"--request-timeout={interval}s",
            "--output",
            f"jsonpath={JSONPATH_INGRESS_IP}",
        ]
    )
    attempts = max(1, (timeout + interval) // (2 * interval))
    failed = shlex.quote(f"No address for {service} after {timeout}s.")
    return (
        f"for attempt in $(seq {attempts}); do "
        f'ip="$({get} 2>/dev/null)"; '
        'if [ -n "$ip" ]; then printf "%s" "$ip"; exit 0; fi; '
        f'if [ "$attempt" -lt {attempts} ]; then sleep {interval}; fi; '
        "done; "
        f"echo {failed} >&2; exit 1"
    )


# --------------------------------------------------------------------------- #


@dataclass
class Provisioners:
    credentials: local.Command
    install_istio: local.Command
    annotate_ksa: local.Command
    deploy_manifests: local.Command
    wait_ready: local.Command
    collect_ingress: local.Command

    @property
    def steps(self) -> List[local.Command]:
        return [
            self.credentials,
            self.install_istio,
            self.annotate_ksa,
            self.deploy_manifests,
            self.wait_ready,
            self.collect_ingress,
        ]

    @property
    def external_ip(self) -> Output[str]:
        return self.collect_ingress.stdout.apply(lambda stdout: (stdout or "").strip())


def create_step(
    name: str,
    create: Input[str],
    *,
    depends_on: List[pulumi.Resource],
    triggers: List[Input[str]],
    environment: Dict[str, Input[str]] | None = None,
) -> local.Command:
    logger.debug("Declaring step `%s`.", name)
    return local.Command(
        f"sandbox-{name}",
        local.CommandArgs(
            create=create,
            environment=environment,
            triggers=triggers,
        ),
        opts=ResourceOptions(depends_on=depends_on),
    )


def create_provisioners(
    settings: SandboxSettings,
    *,
    zone: Output[str] | str,
    cluster: gcp.container.Cluster,
    node_pool: gcp.container.NodePool,
    account: gcp.serviceaccount.Account,
    binding: gcp.serviceaccount.IAMBinding,
) -> Provisioners:
    zone = Output.from_input(zone)

    # NOTE: Re-run everything when the cluster is replaced.
    triggers: List[Input[str]] = [cluster.id]

    credentials = create_step(
        "credentials",
        Output.all(cluster.name, zone).apply(
            lambda args: command_credentials(
                args[0], zone=args[1], project=settings.project_id
            )
        ),
        depends_on=[node_pool],
        triggers=triggers,
    )

    install_istio = create_step(
        "install-istio",
        command_install_istio(settings.istio_script),
        environment={
            "ZONE": zone,
            "CLUSTER_NAME": cluster.name,
            "PROJECT_ID": settings.project_id,
        },
        depends_on=[credentials],
        triggers=triggers,
    )

    annotate_ksa = create_step(
        "annotate-ksa",
        account.email.apply(
            lambda email: command_annotate_ksa(
                settings.ksa_name,
                namespace=settings.ksa_namespace,
                email=email,
            )
        ),
        depends_on=[install_istio, binding],
        triggers=[*triggers, account.email],
    )

    deploy_manifests = create_step(
        "deploy-manifests",
        command_apply_manifests(settings.manifests),
        depends_on=[annotate_ksa],
        triggers=triggers,
    )

    wait_ready = create_step(
        "wait-ready",
        command_wait_ready(
            namespace=settings.ksa_namespace,
            timeout=settings.readiness_timeout,
        ),
        depends_on=[deploy_manifests],
        triggers=triggers,
    )

    collect_ingress = create_step(
        "collect-ingress",
        command_collect_ingress(
            settings.ingress_service,
            namespace=settings.ingress_namespace,
            timeout=settings.readiness_timeout,
        ),
        depends_on=[wait_ready],
        triggers=triggers,
    )

    return Provisioners(
        credentials=credentials,
        install_istio=install_istio,
        annotate_ksa=annotate_ksa,
        deploy_manifests=deploy_manifests,
        wait_ready=wait_ready,
        collect_ingress=collect_ingress,
    )
