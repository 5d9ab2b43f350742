"""Shared fixtures and fake host collaborators for deployment tests."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import pytest

from servicedeploy.components.build_manager import BuildResult
from servicedeploy.components.status_reporter import StatusReporter
from servicedeploy.config import DeploymentOptions, DeploymentTarget
from servicedeploy.utils.errors import BuildError, SupervisorError

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeSupervisor:
    """In-memory systemd: tracks running state and every call made."""

    def __init__(self, running: bool = True, fail: Optional[set] = None) -> None:
        self.running = running
        self.fail = set(fail or ())
        self.calls: List[tuple] = []
        self.units: dict[str, str] = {}
        self.enabled: set = set()
        self.started_binaries: List[Path] = []
        self.current_binary: Optional[Path] = None

    def _record(self, action: str, *args) -> None:
        self.calls.append((action, *args))
        if action in self.fail:
            raise SupervisorError(f"{action} failed", action)

    @property
    def mutating_calls(self) -> List[tuple]:
        return [c for c in self.calls if c[0] not in ("is_active", "status", "recent_logs")]

    def stop(self, service: str) -> None:
        self._record("stop", service)
        self.running = False

    def start(self, service: str) -> None:
        self._record("start", service)
        self.running = True
        self.started_binaries.append(self.current_binary)

    def enable(self, service: str) -> None:
        self._record("enable", service)
        self.enabled.add(service)

    def reload_unit_cache(self) -> None:
        self._record("reload_unit_cache")

    def register_unit(self, service: str, content: str) -> Path:
        self._record("register_unit", service)
        self.units[service] = content
        return Path(f"/etc/systemd/system/{service}.service")

    def is_active(self, service: str) -> bool:
        self._record("is_active", service)
        return self.running

    def status(self, service: str) -> str:
        self._record("status", service)
        return f"● {service}.service\n   Active: {'active (running)' if self.running else 'inactive (dead)'}"

    def recent_logs(self, service: str, count: int = 10) -> List[str]:
        self._record("recent_logs", service, count)
        return [f"log line {i}" for i in range(count)]


class FakeBuilder:
    """Build step stand-in; optionally writes the artifact like a real build."""

    def __init__(self, produce_artifact: bool = True, supervisor: Optional[FakeSupervisor] = None) -> None:
        self.produce_artifact = produce_artifact
        self.supervisor = supervisor
        self.calls = 0

    def build(self, target: DeploymentTarget) -> BuildResult:
        self.calls += 1
        if self.produce_artifact:
            target.binary_path.parent.mkdir(parents=True, exist_ok=True)
            target.binary_path.write_text("new binary")
            if self.supervisor is not None:
                self.supervisor.current_binary = target.binary_path
        return BuildResult(
            succeeded=target.binary_path.is_file(),
            artifact_path=target.binary_path,
            log_output="",
            return_code=0,
        )

    def require_artifact(self, target: DeploymentTarget) -> BuildResult:
        result = self.build(target)
        if not result.succeeded:
            raise BuildError("no artifact", result)
        return result


class FakePackages:
    def __init__(self) -> None:
        self.calls: List[tuple] = []

    def refresh_index(self) -> None:
        self.calls.append(("refresh_index",))

    def install(self, packages: List[str]) -> None:
        self.calls.append(("install", tuple(packages)))


class FakePermissions:
    def __init__(self, member: bool = False) -> None:
        self.member = member
        self.calls: List[tuple] = []

    def ensure_membership(self, user: str, group: str) -> bool:
        self.calls.append(("ensure_membership", user, group))
        if self.member:
            return False
        self.member = True
        return True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    project = tmp_path / "watering-backend"
    project.mkdir()
    (project / "Cargo.toml").write_text('[package]\nname = "watering-backend"\n')
    return project


@pytest.fixture
def target(project_dir: Path) -> DeploymentTarget:
    return DeploymentTarget(
        project_directory=project_dir,
        service_name="watering-backend",
        runtime_user="pi",
        binary_relative_path=Path("target/release/watering-backend"),
    )


@pytest.fixture
def options() -> DeploymentOptions:
    return DeploymentOptions(settle_seconds=0)


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def make_reporter(sleeps: List[float]):
    def _make(supervisor, **kwargs) -> StatusReporter:
        return StatusReporter(supervisor, sleep=sleeps.append, **kwargs)

    return _make
