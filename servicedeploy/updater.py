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
Updater

Replaces a running service's binary with a fresh build:

    RUNNING --stop--> STOPPED --build--> succeeded --start--> RUNNING --report--> DONE
                                     \\-> failed ----start (rollback)--> RUNNING, BuildError

A failed build never leaves a previously running service stopped. If the
rollback start fails too, the run ends in a RollbackError and the service is
down with no known-good binary running.
"""

from typing import Optional
from .components.build_manager import BuildManager, BuildResult
from .components.status_reporter import StatusReporter
from .config import DeploymentOptions, DeploymentTarget, check_project
from .utils.errors import BuildError, DeploymentError, RollbackError, SupervisorError
from .utils.index import log_message
from .utils.steps import RunResult, run_steps
from .utils.systemd import SystemdSupervisor


class Updater:
    """Stop, rebuild, verify, restart (or roll back) and report."""

    def __init__(self, target: DeploymentTarget,
                 options: Optional[DeploymentOptions] = None,
                 supervisor=None,
                 builder=None,
                 reporter=None):
        self.target = target
        self.options = options or DeploymentOptions()
        self.supervisor = supervisor or SystemdSupervisor(self.options.unit_directory)
        self.builder = builder or BuildManager(self.options.build_command)
        self.reporter = reporter or StatusReporter(
            self.supervisor,
            settle_seconds=self.options.settle_seconds,
            wait_timeout=self.options.wait_timeout,
            log_lines=self.options.log_lines,
            health_check=self.options.health_check
        )
        self.was_running = True
        self.build_result: Optional[BuildResult] = None

    # --- Steps ---
    def check_project(self):
        check_project(self.target)

    def record_service_state(self):
        service = self.target.service_name
        try:
            self.was_running = self.supervisor.is_active(service)
        except Exception as e:
            # Unknown counts as running so a failed build still restarts it
            log_message(f"Could not query {service} state ({e}); assuming it is running", "WARNING")
            self.was_running = True
        log_message(f"{service} is {'running' if self.was_running else 'not running'}")

    def stop_service(self):
        """Stop first to release anything the running binary holds (GPIO handles)."""
        try:
            self.supervisor.stop(self.target.service_name)
            log_message(f"✓ Stopped {self.target.service_name}")
        except SupervisorError as e:
            log_message(f"⚠ Failed to stop {self.target.service_name}: {e}; building anyway", "WARNING")

    def build(self):
        try:
            self.build_result = self.builder.build(self.target)
        except DeploymentError:
            raise
        except Exception as e:
            # The service is already stopped, so any builder crash still goes through rollback
            log_message(f"[BUILD] ✗ Build step raised {type(e).__name__}: {e}", "ERROR")
            self.build_result = BuildResult(
                succeeded=False,
                artifact_path=self.target.binary_path,
                log_output=str(e)
            )
        if self.build_result.succeeded:
            return
        self._roll_back(self.build_result)

    def restart_service(self):
        self.supervisor.start(self.target.service_name)
        log_message(f"✓ Started {self.target.service_name} on {self.target.binary_path}")

    def _roll_back(self, build_result: BuildResult):
        """
        Put the service back the way it was, then fail the run.

        Raises:
            BuildError: Always, once the service is back in its prior state
            RollbackError: If the service was running and cannot be started
        """
        service = self.target.service_name
        message = f"Build did not produce {build_result.artifact_path}"

        if not self.was_running:
            log_message(f"{service} was not running before the update; leaving it stopped", "WARNING")
            raise BuildError(message, build_result)

        log_message(f"Restarting {service} on the previous binary...", "WARNING")
        try:
            self.supervisor.start(service)
        except SupervisorError as e:
            raise RollbackError(f"{message}, and {service} could not be restarted: {e}", build_result, e)
        log_message(f"✓ {service} restarted on the previous binary")
        raise BuildError(message, build_result)

    # --- Driver ---
    def run(self) -> RunResult:
        """
        Execute the update sequence.

        Returns:
            RunResult: success iff the build succeeded and the restart was
            issued. The status report never changes that outcome.
        """
        result = RunResult(operation="update")
        service = self.target.service_name

        log_message(f"Updating {service} in {self.target.project_directory}")
        steps = [
            ("check_project", "Checking project directory", self.check_project),
            ("record_service_state", "Checking current service state", self.record_service_state),
            ("stop", "Stopping service", self.stop_service),
            ("build", "Building release binary", self.build),
            ("restart", "Restarting service", self.restart_service),
        ]

        try:
            run_steps(result, steps)
        except RollbackError as e:
            result.error = e
            result.compound_failure = True
            log_message(f"✗✗ {service} IS DOWN: {e}", "CRITICAL")
            log_message(f"Manual intervention required: sudo systemctl status {service}", "CRITICAL")
            return result
        except BuildError as e:
            result.error = e
            log_message(f"✗ Update failed (BuildError): {e}", "ERROR")
            if self.was_running:
                result.status_report = self.reporter.report(service)
            return result
        except DeploymentError as e:
            result.error = e
            log_message(f"✗ Update failed ({type(e).__name__}): {e}", "ERROR")
            return result

        result.success = True
        result.status_report = self.reporter.report(service, include_logs=True)
        log_message(f"✓ Update of {service} completed")
        log_message(f"Follow the logs with: sudo journalctl -u {service} -f")
        return result
