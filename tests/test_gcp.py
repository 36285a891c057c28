# =========================================================================== #
import pulumi
from pulumi import Output

# --------------------------------------------------------------------------- #
from sandbox_pulumi import gcp
from sandbox_pulumi.config import SandboxSettings
from tests.mocks import SandboxMocks, pick


def field(value, snake: str, camel: str):
    if isinstance(value, dict):
        return pick(value, camel, snake)
    return getattr(value, snake)


@pulumi.runtime.test
def test_zone_configured(mocks: SandboxMocks):
    settings = SandboxSettings(project_id="zone-fixed", zone="europe-west2-b")
    count = len(mocks.resources)
    zone = gcp.create_zone(settings)

    def check(zone: str):
        assert zone == "europe-west2-b"
        assert len(mocks.resources) == count, "No shuffle when zone is set."

    return zone.apply(check)


@pulumi.runtime.test
def test_zone_shuffled(mocks: SandboxMocks, settings: SandboxSettings):
    zone = gcp.create_zone(settings)

    def check(zone: str):
        shuffle = mocks.named("sandbox-zone")
        assert shuffle.typ == "random:index/randomShuffle:RandomShuffle"
        assert pick(shuffle.inputs, "seed") == settings.project_id
        assert int(pick(shuffle.inputs, "resultCount", "result_count")) == 1
        assert list(pick(shuffle.inputs, "inputs")) == settings.zones
        assert zone in settings.zones

    return zone.apply(check)


@pulumi.runtime.test
def test_cluster(settings: SandboxSettings):
    cluster, node_pool = gcp.create_cluster(settings, zone="us-central1-c")

    def check(args):
        name, location, remove_default, protection, identity, labels = args[:6]
        assert name == "cloud-ops-sandbox"
        assert location == "us-central1-c"
        assert remove_default is True
        assert protection is False
        assert field(identity, "workload_pool", "workloadPool") == (
            "sandbox-test-project.svc.id.goog"
        )
        assert labels["sandbox-component"] == "cluster"
        assert labels["sandbox-from"] == "pulumi"

        pool_cluster, pool_location, node_count, node_config = args[6:]
        assert pool_cluster == name
        assert pool_location == location
        assert node_count == 4
        assert field(node_config, "machine_type", "machineType") == "n1-standard-2"
        assert field(node_config, "oauth_scopes", "oauthScopes") == gcp.OAUTH_SCOPES

        metadata = field(
            node_config, "workload_metadata_config", "workloadMetadataConfig"
        )
        assert field(metadata, "mode", "mode") == "GKE_METADATA"

    return Output.all(
        cluster.name,
        cluster.location,
        cluster.remove_default_node_pool,
        cluster.deletion_protection,
        cluster.workload_identity_config,
        cluster.resource_labels,
        node_pool.cluster,
        node_pool.location,
        node_pool.node_count,
        node_pool.node_config,
    ).apply(check)


@pulumi.runtime.test
def test_service_account(settings: SandboxSettings):
    cluster, _ = gcp.create_cluster(settings, zone="us-central1-c")
    account, binding, members = gcp.create_service_account(settings, cluster=cluster)

    assert len(members) == len(settings.gsa_roles)

    def check(args):
        email, binding_account, role, binding_members, *granted = args
        assert email == (
            "cloud-ops-sandbox@sandbox-test-project.iam.gserviceaccount.com"
        )
        assert binding_account.endswith(email)
        assert role == gcp.ROLE_WORKLOAD_IDENTITY
        assert binding_members == [settings.workload_member]

        roles = granted[: len(members)]
        member_values = granted[len(members) :]
        assert roles == settings.gsa_roles
        assert set(member_values) == {f"serviceAccount:{email}"}

    return Output.all(
        account.email,
        binding.service_account_id,
        binding.role,
        binding.members,
        *(member.role for member in members),
        *(member.member for member in members),
    ).apply(check)


def test_labels_extra(settings: SandboxSettings):
    settings.labels = {"owner": "platform"}
    labels = gcp.create_labels(
        settings,
        tier=gcp.util.LabelTier.base,
        component=gcp.util.LabelComponent.cluster,
    )
    assert labels == {
        "sandbox-tier": "base",
        "sandbox-component": "cluster",
        "sandbox-from": "pulumi",
        "sandbox-owner": "platform",
    }


@pulumi.runtime.test
def test_service_account_member_names(mocks: SandboxMocks):
    settings = SandboxSettings(
        project_id="sandbox-roles",
        gsa_roles=["roles/logging.logWriter", "projects/sandbox-roles/roles/logWriter"],
    )
    cluster, _ = gcp.create_cluster(settings, zone="us-central1-c")
    _, _, members = gcp.create_service_account(settings, cluster=cluster)

    names = [gcp.member_name(role) for role in settings.gsa_roles]
    assert names == [
        "sandbox-gsa-roles-logging-logWriter",
        "sandbox-gsa-projects-sandbox-roles-roles-logWriter",
    ]

    def check(roles):
        for name, role in zip(names, roles):
            assert mocks.named(name).inputs["role"] == role

    return Output.all(*(member.role for member in members)).apply(check)
