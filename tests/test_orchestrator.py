"""
Tests for the deploy orchestrator — pipeline order, parameters, failures.
"""

from pathlib import Path

import pytest

from deploybot.adapters.mock import MockDeployer
from deploybot.adapters.registry import DeployerRegistry
from deploybot.adapters.vcs.git import GitCommitResolver, RepositoryInaccessible
from deploybot.core.engine.orchestrator import (
    DeployOrchestrator,
    build_parameters,
    describe_deploy,
)
from deploybot.core.models import (
    DeployParameters,
    DeployRequest,
    FailureReason,
    Project,
    ResolvedCommit,
)


class _StubResolver:
    """Resolver double returning canned hashes or raising."""

    def __init__(self, hashes=None, error: Exception | None = None):
        self.hashes = hashes or []
        self.error = error
        self.calls = []

    def resolve(self, project, branch):
        self.calls.append((project.name, branch))
        if self.error is not None:
            raise self.error
        return list(self.hashes)


@pytest.fixture
def mock_deployer() -> MockDeployer:
    return MockDeployer()


@pytest.fixture
def registry(mock_deployer: MockDeployer) -> DeployerRegistry:
    registry = DeployerRegistry()
    registry.register("mock", lambda: mock_deployer)
    return registry


@pytest.fixture
def orchestrator(registry: DeployerRegistry, cache_dir: Path) -> DeployOrchestrator:
    return DeployOrchestrator(registry=registry, resolver=GitCommitResolver(cache_dir=cache_dir))


# ── Parameters & Summary ─────────────────────────────────────────────


class TestBuildParameters:
    def test_branch_only(self, demo_project: Project):
        params = build_parameters(DeployRequest(project=demo_project))
        assert params.to_dict() == {"branch": "master"}

    def test_via_is_metadata(self, demo_project: Project):
        params = build_parameters(DeployRequest(project=demo_project, via="web"))
        assert params.to_dict() == {"branch": "master", "via": "web"}

    def test_box_never_without_env(self, demo_project: Project):
        params = build_parameters(DeployRequest(project=demo_project, box="web1"))
        assert params.box is None
        assert "box" not in params.to_dict()


class TestDescribeDeploy:
    def test_plain(self):
        commit = ResolvedCommit(branch="master", hash="abc")
        params = DeployParameters(branch="master")
        assert describe_deploy("demo", commit, params) == "executing deploy demo/master/abc"

    def test_actions_env_box(self):
        commit = ResolvedCommit(branch="topic", hash="abc")
        params = DeployParameters(
            branch="topic", actions=["migrate", "restart"], env="staging", box="web1"
        )
        assert (
            describe_deploy("demo", commit, params)
            == "executing deploy/migrate/restart demo/topic/abc to staging/web1"
        )

    def test_env_without_box(self):
        commit = ResolvedCommit(branch="master", hash="abc")
        params = DeployParameters(branch="master", env="production")
        assert describe_deploy("demo", commit, params).endswith(" to production")


# ── Scenarios ────────────────────────────────────────────────────────


class TestDeployScenarios:
    def test_default_branch(
        self,
        orchestrator: DeployOrchestrator,
        demo_project: Project,
        mock_deployer: MockDeployer,
        master_hashes: list[str],
    ):
        outcome = orchestrator.deploy(demo_project)

        assert outcome.ok
        assert outcome.commit == master_hashes[0]
        assert outcome.parameters.to_dict() == {"branch": "master"}
        assert outcome.summary == f"executing deploy demo/master/{master_hashes[0]}"
        assert mock_deployer.call_count == 1
        deploy, config = mock_deployer.call_log[0]
        assert deploy.commit == master_hashes[0]
        assert deploy.branch == "master"
        assert config.to_dict() == {"branch": "master"}

    def test_actions_environment_box(
        self,
        orchestrator: DeployOrchestrator,
        demo_project: Project,
        mock_deployer: MockDeployer,
    ):
        outcome = orchestrator.deploy(
            demo_project,
            actions=["migrate", "restart"],
            environment="staging",
            box="web1",
        )

        assert outcome.ok
        assert outcome.parameters.to_dict() == {
            "branch": "master",
            "actions": ["migrate", "restart"],
            "env": "staging",
            "box": "web1",
        }
        assert outcome.summary.startswith("executing deploy/migrate/restart demo/master/")
        assert outcome.summary.endswith("to staging/web1")
        deploy, _ = mock_deployer.call_log[0]
        assert deploy.environment == "staging"
        assert deploy.box == "web1"
        assert deploy.actions == ["migrate", "restart"]

    def test_other_branch(
        self,
        orchestrator: DeployOrchestrator,
        demo_project: Project,
        topic_head: str,
    ):
        outcome = orchestrator.deploy(demo_project, branch="topic", environment="development", box="dev1")
        assert outcome.ok
        assert outcome.commit == topic_head
        assert outcome.deploy.branch == "topic"
        assert outcome.summary.endswith(f"demo/topic/{topic_head} to development/dev1")

    def test_box_without_environment(
        self,
        orchestrator: DeployOrchestrator,
        demo_project: Project,
        mock_deployer: MockDeployer,
    ):
        outcome = orchestrator.deploy(demo_project, box="web1")
        assert outcome.ok
        assert "box" not in outcome.parameters.to_dict()
        assert " to " not in outcome.summary
        assert mock_deployer.call_log[0][0].box is None

    def test_unknown_deploy_type(
        self,
        orchestrator: DeployOrchestrator,
        git_repo: Path,
        mock_deployer: MockDeployer,
    ):
        project = Project(name="demo", repo_url=str(git_repo), deploy_type="capistrano")
        outcome = orchestrator.deploy(project)

        assert outcome.failed
        assert outcome.failure_reason == FailureReason.UNKNOWN_DEPLOY_TYPE
        assert "capistrano" in outcome.message
        assert mock_deployer.call_count == 0
        assert mock_deployer.setup_log == []

    def test_branch_not_found(
        self,
        orchestrator: DeployOrchestrator,
        demo_project: Project,
        mock_deployer: MockDeployer,
    ):
        outcome = orchestrator.deploy(demo_project, branch="no-branch")

        assert outcome.failed
        assert outcome.failure_reason == FailureReason.BRANCH_NOT_FOUND
        assert outcome.commit is None
        assert mock_deployer.setup_log == []
        assert mock_deployer.call_count == 0

    def test_project_not_found(self, orchestrator: DeployOrchestrator, mock_deployer: MockDeployer):
        outcome = orchestrator.deploy(None)
        assert outcome.failure_reason == FailureReason.PROJECT_NOT_FOUND
        assert mock_deployer.call_count == 0

    def test_repository_inaccessible(
        self,
        orchestrator: DeployOrchestrator,
        tmp_path: Path,
        mock_deployer: MockDeployer,
    ):
        project = Project(name="gone", repo_url=str(tmp_path / "missing"), deploy_type="mock")
        outcome = orchestrator.deploy(project)
        assert outcome.failure_reason == FailureReason.REPOSITORY_INACCESSIBLE
        assert mock_deployer.call_count == 0


# ── Setup / Execute Failures ─────────────────────────────────────────


class TestDeployerFailures:
    @pytest.fixture
    def project(self) -> Project:
        return Project(name="demo", repo_url="./repo", deploy_type="mock")

    def _orchestrator(self, deployer: MockDeployer) -> DeployOrchestrator:
        registry = DeployerRegistry()
        registry.register("mock", lambda: deployer)
        return DeployOrchestrator(registry=registry, resolver=_StubResolver(["h2", "h1"]))

    def test_takes_first_hash(self, project: Project):
        deployer = MockDeployer()
        outcome = self._orchestrator(deployer).deploy(project)
        assert outcome.commit == "h2"

    def test_setup_failure_skips_execute(self, project: Project):
        deployer = MockDeployer(setup_result=False)
        outcome = self._orchestrator(deployer).deploy(project)
        assert outcome.failure_reason == FailureReason.SETUP_FAILED
        assert deployer.call_count == 0
        assert outcome.summary == "executing deploy demo/master/h2"

    def test_setup_exception(self, project: Project):
        deployer = MockDeployer()
        deployer.setup_error = RuntimeError("disk full")
        outcome = self._orchestrator(deployer).deploy(project)
        assert outcome.failure_reason == FailureReason.SETUP_FAILED
        assert "disk full" in outcome.message
        assert deployer.call_count == 0

    def test_execute_failure(self, project: Project):
        deployer = MockDeployer(execute_result=False)
        outcome = self._orchestrator(deployer).deploy(project)
        assert outcome.failure_reason == FailureReason.EXECUTE_FAILED
        assert deployer.call_count == 1

    def test_execute_exception(self, project: Project):
        deployer = MockDeployer()
        deployer.execute_error = RuntimeError("connection reset")
        outcome = self._orchestrator(deployer).deploy(project)
        assert outcome.failure_reason == FailureReason.EXECUTE_FAILED
        assert "connection reset" in outcome.message

    def test_resolver_error(self, project: Project):
        registry = DeployerRegistry()
        registry.register("mock", MockDeployer)
        resolver = _StubResolver(error=RepositoryInaccessible("demo", "auth failed"))
        outcome = DeployOrchestrator(registry=registry, resolver=resolver).deploy(project)
        assert outcome.failure_reason == FailureReason.REPOSITORY_INACCESSIBLE
        assert "auth failed" in outcome.message

    def test_deployer_factory_error(self, project: Project):
        def broken():
            raise RuntimeError("boom")

        registry = DeployerRegistry()
        registry.register("mock", broken)
        outcome = DeployOrchestrator(registry=registry, resolver=_StubResolver(["h1"])).deploy(project)
        assert outcome.failure_reason == FailureReason.UNKNOWN_DEPLOY_TYPE
        assert "boom" in outcome.message
        assert outcome.summary == "executing deploy demo/master/h1"

    def test_factory_returning_non_deployer(self, project: Project):
        registry = DeployerRegistry()
        registry.register("mock", lambda: object())
        outcome = DeployOrchestrator(registry=registry, resolver=_StubResolver(["h1"])).deploy(project)
        assert outcome.failure_reason == FailureReason.UNKNOWN_DEPLOY_TYPE
        assert "not a Deployer" in outcome.message

    def test_variables_are_passed_through_untouched(self, project: Project):
        deployer = MockDeployer()
        variables = {"replicas": 3, "canary": True, "release": "v1"}
        outcome = self._orchestrator(deployer).deploy(project, variables=variables)
        assert outcome.ok
        deploy, _ = deployer.call_log[0]
        assert deploy.variables == variables

    def test_setup_twice_same_outcome(self, project: Project):
        deployer = MockDeployer()
        orchestrator = self._orchestrator(deployer)
        first = orchestrator.deploy(project)
        second = orchestrator.deploy(project)
        assert first.ok and second.ok
        assert deployer.prepared == {"demo"}

    def test_run_with_request(self, project: Project):
        deployer = MockDeployer()
        request = DeployRequest(project=project, branch="topic", via="web")
        outcome = self._orchestrator(deployer).run(request)
        assert outcome.ok
        assert outcome.deploy.via == "web"
        assert outcome.parameters.to_dict() == {"branch": "topic", "via": "web"}
