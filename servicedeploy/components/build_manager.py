"""
HOMESERVER Service Deployment Components
Copyright (C) 2024 HOMESERVER LLC

Build Manager Component

Runs the release build for a deployment target and decides whether it
produced a usable artifact. The artifact on disk is the success signal; the
build tool's exit status is only reported.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
from ..config import DeploymentTarget
from ..utils.commands import run_command, tail_lines
from ..utils.errors import BuildError
from ..utils.index import log_message

DEFAULT_BUILD_COMMAND = ["cargo", "build", "--release", "--features", "gpio"]


@dataclass
class BuildResult:
    """Outcome of one build invocation."""
    succeeded: bool
    artifact_path: Path
    log_output: str = ""
    return_code: Optional[int] = None


class BuildManager:
    """Handles the build step shared by install and update."""

    def __init__(self, build_command: Optional[List[str]] = None, output_tail: int = 20):
        self.build_command = list(build_command or DEFAULT_BUILD_COMMAND)
        self.output_tail = output_tail

    def build(self, target: DeploymentTarget) -> BuildResult:
        """
        Run the build command in the project directory.

        Returns:
            BuildResult: succeeded is True exactly when the artifact exists
        """
        artifact_path = target.binary_path
        log_message(f"[BUILD] Running: {' '.join(self.build_command)}")

        return_code = None
        try:
            completed = run_command(self.build_command, cwd=str(target.project_directory))
            return_code = completed.returncode
            output = (completed.stdout or "") + (completed.stderr or "")
        except OSError as e:
            output = f"Build command could not be executed: {e}"
            log_message(f"[BUILD] ✗ {output}", "ERROR")

        succeeded = artifact_path.is_file()

        if succeeded:
            if return_code not in (0, None):
                log_message(f"[BUILD] ⚠ Build tool exited with {return_code} but {artifact_path} exists", "WARNING")
            log_message(f"[BUILD] ✓ Artifact ready: {artifact_path}")
        else:
            log_message(f"[BUILD] ✗ Build failed: no binary at {artifact_path} (exit status {return_code})", "ERROR")
            for line in tail_lines(output, self.output_tail):
                log_message(f"[BUILD]   {line}", "ERROR")

        return BuildResult(
            succeeded=succeeded,
            artifact_path=artifact_path,
            log_output=output,
            return_code=return_code
        )

    def require_artifact(self, target: DeploymentTarget) -> BuildResult:
        """
        Build and raise unless the artifact was produced.

        Raises:
            BuildError: If the artifact is missing after the build
        """
        result = self.build(target)
        if not result.succeeded:
            raise BuildError(f"Build did not produce {result.artifact_path}", result)
        return result
