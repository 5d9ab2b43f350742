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
Installer

One-time provisioning of a host: prerequisites, hardware-access group,
release build, systemd unit registration, enable and start, then an
advisory status report.
"""

from typing import Optional
from .components.build_manager import BuildManager, BuildResult
from .components.service_unit import ServiceUnitSpec
from .components.status_reporter import StatusReporter
from .config import DeploymentOptions, DeploymentTarget, check_project
from .utils.errors import DeploymentError
from .utils.index import log_message
from .utils.packages import AptPackageManager
from .utils.permissions import GroupPermissionManager
from .utils.steps import RunResult, run_steps
from .utils.systemd import SystemdSupervisor


class Installer:
    """Brings a fresh host from no service to a supervised, running service."""

    def __init__(self, target: DeploymentTarget,
                 options: Optional[DeploymentOptions] = None,
                 supervisor=None,
                 builder=None,
                 packages=None,
                 permissions=None,
                 reporter=None):
        self.target = target
        self.options = options or DeploymentOptions()
        self.supervisor = supervisor or SystemdSupervisor(self.options.unit_directory)
        self.builder = builder or BuildManager(self.options.build_command)
        self.packages = packages or AptPackageManager()
        self.permissions = permissions or GroupPermissionManager()
        self.reporter = reporter or StatusReporter(
            self.supervisor,
            settle_seconds=self.options.settle_seconds,
            wait_timeout=self.options.wait_timeout,
            log_lines=self.options.log_lines,
            health_check=self.options.health_check
        )
        self.build_result: Optional[BuildResult] = None
        self.group_granted = False

    # --- Steps ---
    def check_project(self):
        check_project(self.target)

    def install_prerequisites(self):
        self.packages.refresh_index()
        self.packages.install(self.options.packages)

    def grant_hardware_access(self):
        self.group_granted = self.permissions.ensure_membership(
            self.target.runtime_user, self.options.hardware_group
        )

    def build(self):
        self.build_result = self.builder.require_artifact(self.target)

    def register_unit(self):
        unit = ServiceUnitSpec.from_target(self.target, self.options)
        self.supervisor.register_unit(self.target.service_name, unit.render())
        self.supervisor.reload_unit_cache()
        log_message(f"✓ Registered {self.target.service_name} with systemd")

    def enable_and_start(self):
        self.supervisor.enable(self.target.service_name)
        self.supervisor.start(self.target.service_name)

    # --- Driver ---
    def run(self) -> RunResult:
        """
        Execute the install sequence.

        Returns:
            RunResult: success is True when every fatal step completed. A
            service that is not running afterwards is reported, not failed.
        """
        result = RunResult(operation="install")
        service = self.target.service_name

        log_message(f"Installing {service} from {self.target.project_directory}")
        steps = [
            ("check_project", "Checking project directory", self.check_project),
            ("install_prerequisites", "Installing system prerequisites", self.install_prerequisites),
            ("grant_hardware_access", f"Granting {self.options.hardware_group} access", self.grant_hardware_access),
            ("build", "Building release binary", self.build),
            ("register_unit", "Registering systemd service", self.register_unit),
            ("enable_and_start", "Enabling and starting service", self.enable_and_start),
        ]

        try:
            run_steps(result, steps)
        except DeploymentError as e:
            result.error = e
            log_message(f"✗ Installation failed ({type(e).__name__}): {e}", "ERROR")
            return result

        result.success = True
        result.status_report = self.reporter.report(service)
        log_message(f"✓ Installation of {service} completed")
        self._log_next_steps()
        return result

    def _log_next_steps(self):
        service = self.target.service_name
        health = self.options.health_check
        log_message("Next steps:")
        log_message(f"  1. Check the service: curl -H '{health.api_key_header}: <api-key>' {health.url}")
        log_message(f"  2. Follow the logs:   sudo journalctl -u {service} -f")
        log_message("  3. After code changes run: servicedeploy update")
        if self.group_granted:
            log_message(f"  Log in again so {self.target.runtime_user} picks up the "
                        f"{self.options.hardware_group} group", "WARNING")
