# =========================================================================== #
import pulumi
import pytest

# --------------------------------------------------------------------------- #
from sandbox_pipelines.config import PipelineConfig
from sandbox_pulumi.config import PROJECT, SandboxSettings
from tests.mocks import SandboxMocks

PYTEST_STASHKEY_MOCKS = pytest.StashKey[SandboxMocks]()
PYTEST_STASHKEY_CONFIG_PIPELINES = pytest.StashKey[PipelineConfig]()

PROJECT_ID = "sandbox-test-project"


# NOTE: Using the stash means that there are many cases where the number of
#       fixtures used is fewer! Mocks must be installed before any resource
#       is declared, which is why this happens in ``pytest_configure``.
def pytest_configure(config: pytest.Config):
    mocks = SandboxMocks()
    pulumi.runtime.set_mocks(mocks, project=PROJECT, stack="test", preview=False)

    config.stash[PYTEST_STASHKEY_MOCKS] = mocks
    config.stash[PYTEST_STASHKEY_CONFIG_PIPELINES] = PipelineConfig(
        stack="test", probe_timeout=3, probe_interval=1
    )  # type: ignore


@pytest.fixture
def mocks(pytestconfig: pytest.Config) -> SandboxMocks:
    return pytestconfig.stash[PYTEST_STASHKEY_MOCKS]


@pytest.fixture
def config_pipelines(pytestconfig: pytest.Config) -> PipelineConfig:
    return pytestconfig.stash[PYTEST_STASHKEY_CONFIG_PIPELINES]


@pytest.fixture
def settings() -> SandboxSettings:
    return SandboxSettings(project_id=PROJECT_ID)
