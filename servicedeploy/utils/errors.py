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
Error taxonomy for deployment runs.

Every fatal step raises exactly one of these. Advisory steps (status, logs,
health probe) never raise them.
"""

from typing import Optional


class DeploymentError(Exception):
    """Base exception for failures that abort a deployment run."""
    exit_code = 1


class ConfigurationError(DeploymentError):
    """Required project structure or configuration is missing or invalid."""
    pass


class PackageInstallError(DeploymentError):
    """System prerequisites could not be installed."""
    pass


class PermissionSetupError(DeploymentError):
    """The hardware-access group grant could not be completed."""
    pass


class SupervisorError(DeploymentError):
    """A systemd control call (stop/start/enable/register) failed."""

    def __init__(self, message: str, action: Optional[str] = None, service: Optional[str] = None):
        super().__init__(message)
        self.action = action
        self.service = service


class BuildError(DeploymentError):
    """The build did not produce the expected artifact."""

    def __init__(self, message: str, build_result=None):
        super().__init__(message)
        self.build_result = build_result


class RollbackError(BuildError):
    """
    The build failed and the service could not be restarted on the previous
    binary either. The service is left down.
    """
    exit_code = 2

    def __init__(self, message: str, build_result=None, restart_error: Optional[Exception] = None):
        super().__init__(message, build_result)
        self.restart_error = restart_error
