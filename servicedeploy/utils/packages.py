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

import os
from typing import List, Optional
from .commands import privileged, run_command
from .errors import PackageInstallError
from .index import log_message


class AptPackageManager:
    """Installs system prerequisites with apt-get. Safe to re-run."""

    def __init__(self, use_sudo: Optional[bool] = None):
        self.use_sudo = use_sudo

    def _apt(self, args: List[str]):
        # Use DEBIAN_FRONTEND=noninteractive to prevent hanging on prompts
        env = os.environ.copy()
        env['DEBIAN_FRONTEND'] = 'noninteractive'
        command = privileged(["apt-get"] + args, self.use_sudo)
        if command[0] == "sudo":
            # sudo drops the environment unless asked to keep this variable
            command = ["sudo", "--preserve-env=DEBIAN_FRONTEND"] + command[1:]

        try:
            result = run_command(command, env=env)
        except OSError as e:
            raise PackageInstallError(f"apt-get {args[0]} could not be executed: {e}")

        if result.returncode != 0:
            raise PackageInstallError(f"apt-get {args[0]} failed: {result.stderr.strip()}")
        return result

    def refresh_index(self):
        log_message("Refreshing package index...")
        self._apt(["update"])

    def install(self, packages: List[str]):
        if not packages:
            log_message("No prerequisite packages configured", "WARNING")
            return
        log_message(f"Installing packages: {', '.join(packages)}")
        self._apt(["install", "-y"] + list(packages))
        log_message(f"✓ Installed {len(packages)} package(s)")
