"""
Useful links

  .. code:: txt

    [1] Workload identity:  https://cloud.google.com/kubernetes-engine/docs/how-to/workload-identity
    [2] Zones:              https://cloud.google.com/compute/docs/regions-zones
    [3] Node pool scopes:   https://cloud.google.com/kubernetes-engine/docs/how-to/access-scopes
"""

# =========================================================================== #
from typing import List, Tuple

import pulumi
import pulumi_gcp as gcp
import pulumi_random as random
from pulumi import Output, ResourceOptions

# --------------------------------------------------------------------------- #
from sandbox_pulumi import util
from sandbox_pulumi.config import SandboxSettings

ROLE_WORKLOAD_IDENTITY = "roles/iam.workloadIdentityUser"
OAUTH_SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]

logger = util.get_logger(__name__)


def create_labels(
    settings: SandboxSettings,
    *,
    tier: util.LabelTier,
    component: util.LabelComponent,
):
    return util.create_labels(
        tier=tier,
        component=component,
        from_="pulumi",
        **settings.labels,
    )


def member_name(role: str) -> str:
    """Resource name for the grant of ``role``, unique per role.

    Custom roles like ``projects/p/roles/logWriter`` may share a suffix with
    predefined ones, so the whole role goes into the name.
    """
    return "sandbox-gsa-" + role.replace("/", "-").replace(".", "-")


# --------------------------------------------------------------------------- #


def create_zone(settings: SandboxSettings) -> Output[str]:
    """Pick the zone for the cluster.

    Seeded, so the same seed and zone list always give the same zone. A zone
    set explicitly in the stack configuration wins.
    """
    if settings.zone is not None:
        logger.debug("Using configured zone `%s`.", settings.zone)
        return Output.from_input(settings.zone)

    shuffle = random.RandomShuffle(
        "sandbox-zone",
        random.RandomShuffleArgs(
            inputs=settings.zones,
            result_count=1,
            seed=settings.seed,
        ),
    )
    return shuffle.results.apply(lambda results: results[0])


def create_cluster(
    settings: SandboxSettings,
    *,
    zone: Output[str] | str,
) -> Tuple[gcp.container.Cluster, gcp.container.NodePool]:

    # NOTE: The default pool cannot be configured for workload metadata
    #       after the fact, so it is dropped and replaced by ``node_pool``.
    cluster = gcp.container.Cluster(
        "sandbox-cluster",
        gcp.container.ClusterArgs(
            name=settings.cluster_name,
            project=settings.project_id,
            location=zone,
            initial_node_count=1,
            remove_default_node_pool=True,
            deletion_protection=False,
            workload_identity_config=gcp.container.ClusterWorkloadIdentityConfigArgs(
                workload_pool=settings.workload_pool,
            ),
            resource_labels=create_labels(
                settings,
                tier=util.LabelTier.base,
                component=util.LabelComponent.cluster,
            ),
        ),
    )

    node_pool = gcp.container.NodePool(
        "sandbox-node-pool",
        gcp.container.NodePoolArgs(
            name=settings.node_pool_name,
            project=settings.project_id,
            location=zone,
            cluster=cluster.name,
            node_count=settings.node_count,
            node_config=gcp.container.NodePoolNodeConfigArgs(
                machine_type=settings.machine_type,
                oauth_scopes=OAUTH_SCOPES,
                workload_metadata_config=gcp.container.NodePoolNodeConfigWorkloadMetadataConfigArgs(
                    mode="GKE_METADATA",
                ),
                labels=create_labels(
                    settings,
                    tier=util.LabelTier.base,
                    component=util.LabelComponent.node_pool,
                ),
            ),
            management=gcp.container.NodePoolManagementArgs(
                auto_repair=True,
                auto_upgrade=True,
            ),
        ),
        opts=ResourceOptions(depends_on=[cluster]),
    )

    return cluster, node_pool


def create_service_account(
    settings: SandboxSettings,
    *,
    cluster: gcp.container.Cluster,
) -> Tuple[
    gcp.serviceaccount.Account,
    gcp.serviceaccount.IAMBinding,
    List[gcp.projects.IAMMember],
]:
    account = gcp.serviceaccount.Account(
        "sandbox-gsa",
        gcp.serviceaccount.AccountArgs(
            account_id=settings.gsa_name,
            display_name=settings.gsa_name,
            project=settings.project_id,
        ),
    )

    # NOTE: The identity pool only exists once the cluster has workload
    #       identity enabled, hence the dependency on the cluster.
    binding = gcp.serviceaccount.IAMBinding(
        "sandbox-gsa-workload-identity",
        gcp.serviceaccount.IAMBindingArgs(
            service_account_id=account.name,
            role=ROLE_WORKLOAD_IDENTITY,
            members=[settings.workload_member],
        ),
        opts=ResourceOptions(depends_on=[cluster]),
    )

    member = account.email.apply(lambda email: f"serviceAccount:{email}")
    members = [
        gcp.projects.IAMMember(
            member_name(role),
            gcp.projects.IAMMemberArgs(
                project=settings.project_id,
                role=role,
                member=member,
            ),
        )
        for role in settings.gsa_roles
    ]

    pulumi.log.info(
        f"Granting `{len(members)}` project roles to `{settings.gsa_name}`."
    )
    return account, binding, members
