"""
HOMESERVER Service Deployment System
Copyright (C) 2024 HOMESERVER LLC

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

"""
Sequential step driver.

A run is an ordered list of named steps. Each step either returns or raises
a DeploymentError; the driver stops at the first raised error so nothing
downstream of a fatal step executes.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple
from .errors import DeploymentError
from .index import log_message

Step = Tuple[str, str, Callable[[], Any]]


@dataclass
class RunResult:
    """Outcome of an install or update run."""
    operation: str
    success: bool = False
    error: Optional[DeploymentError] = None
    steps_completed: List[str] = field(default_factory=list)
    status_report: Optional[Any] = None
    compound_failure: bool = False

    @property
    def exit_code(self) -> int:
        if self.success:
            return 0
        if self.error is not None:
            return self.error.exit_code
        return 1

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "success": self.success,
            "error": str(self.error) if self.error else None,
            "error_type": type(self.error).__name__ if self.error else None,
            "steps_completed": list(self.steps_completed),
            "compound_failure": self.compound_failure,
        }


def run_steps(result: RunResult, steps: List[Step]):
    """
    Execute (name, title, callable) steps in order, recording each completed
    step name on `result`.

    Raises:
        DeploymentError: Whatever the first failing step raised
    """
    total = len(steps)
    for position, (name, title, step) in enumerate(steps, start=1):
        log_message(f"Step {position}/{total}: {title}...")
        step()
        result.steps_completed.append(name)
