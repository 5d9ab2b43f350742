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
Utilities for the deployment orchestration system.

Host-facing collaborators (systemd, apt, group database) and the shared
logging, error and step-driver plumbing.
"""

from .index import log_message, setup_global_deploy_logging
from .errors import (
    DeploymentError,
    ConfigurationError,
    PackageInstallError,
    PermissionSetupError,
    SupervisorError,
    BuildError,
    RollbackError
)
from .commands import privileged, run_command
from .systemd import SystemdSupervisor
from .packages import AptPackageManager
from .permissions import GroupPermissionManager
from .steps import RunResult, run_steps

__all__ = [
    'log_message',
    'setup_global_deploy_logging',
    'DeploymentError',
    'ConfigurationError',
    'PackageInstallError',
    'PermissionSetupError',
    'SupervisorError',
    'BuildError',
    'RollbackError',
    'privileged',
    'run_command',
    'SystemdSupervisor',
    'AptPackageManager',
    'GroupPermissionManager',
    'RunResult',
    'run_steps'
]
