"""
HOMESERVER Service Deployment Components
Copyright (C) 2024 HOMESERVER LLC

Service Unit Component

Generates the systemd unit definition registered at install time.
"""

from dataclasses import dataclass, field
from pathlib import Path
from ..config import DeploymentOptions, DeploymentTarget


@dataclass(frozen=True)
class RestartPolicy:
    always: bool = True
    delay_seconds: int = 10


@dataclass(frozen=True)
class ServiceUnitSpec:
    """What the supervisor needs to run the deployed binary."""
    description: str
    after_dependency: str
    user: str
    working_directory: Path
    exec_start: Path
    restart_policy: RestartPolicy = field(default_factory=RestartPolicy)
    enable_on_boot: bool = True
    wanted_by: str = "multi-user.target"

    @classmethod
    def from_target(cls, target: DeploymentTarget, options: DeploymentOptions) -> 'ServiceUnitSpec':
        return cls(
            description=options.description,
            after_dependency=options.after,
            user=target.runtime_user,
            working_directory=target.project_directory,
            exec_start=target.binary_path,
            restart_policy=RestartPolicy(always=True, delay_seconds=options.restart_delay_seconds)
        )

    def render(self) -> str:
        """Serialize to systemd unit file syntax."""
        lines = [
            "[Unit]",
            f"Description={self.description}",
            f"After={self.after_dependency}",
            "",
            "[Service]",
            "Type=simple",
            f"User={self.user}",
            f"WorkingDirectory={self.working_directory}",
            f"ExecStart={self.exec_start}",
            f"Restart={'always' if self.restart_policy.always else 'no'}",
            f"RestartSec={self.restart_policy.delay_seconds}",
        ]
        if self.enable_on_boot:
            lines += [
                "",
                "[Install]",
                f"WantedBy={self.wanted_by}",
            ]
        return "\n".join(lines) + "\n"
