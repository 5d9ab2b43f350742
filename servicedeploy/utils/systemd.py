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
systemd control surface.

Wraps systemctl and journalctl for the handful of operations a deployment
needs: stop, start, enable, status, recent logs, unit registration and
daemon-reload. Mutating calls raise SupervisorError on failure; read-only
queries only raise when the tool itself cannot be executed.
"""

import subprocess
from pathlib import Path
from typing import List, Optional
from .commands import privileged, run_command, is_root
from .errors import SupervisorError
from .index import log_message

UNIT_DIRECTORY = "/etc/systemd/system"


class SystemdSupervisor:
    """Drives a single host's systemd instance."""

    def __init__(self, unit_directory: str = UNIT_DIRECTORY, use_sudo: Optional[bool] = None):
        self.unit_directory = Path(unit_directory)
        self.use_sudo = use_sudo

    def _run(self, command: List[str], input_text: Optional[str] = None) -> subprocess.CompletedProcess:
        return run_command(privileged(command, self.use_sudo), input_text=input_text)

    def _systemctl(self, action: str, service: Optional[str] = None) -> subprocess.CompletedProcess:
        command = ["systemctl", action]
        if service:
            command.append(service)
        label = " ".join(command)
        try:
            result = self._run(command)
        except OSError as e:
            raise SupervisorError(f"{label} could not be executed: {e}", action, service)

        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()
            raise SupervisorError(f"{label} failed (rc={result.returncode}): {detail}", action, service)
        return result

    # --- Service lifecycle ---
    def stop(self, service: str):
        log_message(f"Stopping {service}...")
        self._systemctl("stop", service)

    def start(self, service: str):
        log_message(f"Starting {service}...")
        self._systemctl("start", service)

    def enable(self, service: str):
        log_message(f"Enabling {service} at boot...")
        self._systemctl("enable", service)

    def reload_unit_cache(self):
        self._systemctl("daemon-reload")

    # --- Queries ---
    def is_active(self, service: str) -> bool:
        try:
            result = run_command(["systemctl", "is-active", "--quiet", service])
        except OSError as e:
            raise SupervisorError(f"systemctl is-active could not be executed: {e}", "is-active", service)
        return result.returncode == 0

    def status(self, service: str) -> str:
        """
        Return the human-readable status block.

        systemctl exits non-zero for inactive or failed units; the text is
        still what the operator wants to see, so it is returned as-is.
        """
        try:
            result = self._run(["systemctl", "status", service, "--no-pager"])
        except OSError as e:
            raise SupervisorError(f"systemctl status could not be executed: {e}", "status", service)
        return (result.stdout or result.stderr or "").rstrip()

    def recent_logs(self, service: str, count: int = 10) -> List[str]:
        command = ["journalctl", "-u", service, "-n", str(count), "--no-pager"]
        try:
            result = self._run(command)
        except OSError as e:
            raise SupervisorError(f"journalctl could not be executed: {e}", "logs", service)
        if result.returncode != 0:
            raise SupervisorError(f"journalctl failed (rc={result.returncode}): {result.stderr.strip()}",
                                  "logs", service)
        return [line for line in result.stdout.splitlines() if line.strip()]

    # --- Unit definitions ---
    def unit_path(self, service: str) -> Path:
        return self.unit_directory / f"{service}.service"

    def register_unit(self, service: str, content: str) -> Path:
        """
        Write the unit definition for `service`, overwriting any existing one.

        Runs through `sudo tee` when the orchestrator is not root, matching
        how every other privileged call is made.
        """
        unit_path = self.unit_path(service)
        use_sudo = self.use_sudo if self.use_sudo is not None else not is_root()

        if not use_sudo:
            try:
                unit_path.parent.mkdir(parents=True, exist_ok=True)
                unit_path.write_text(content, encoding="utf-8")
            except OSError as e:
                raise SupervisorError(f"Failed to write unit file {unit_path}: {e}", "register", service)
        else:
            try:
                result = self._run(["tee", str(unit_path)], input_text=content)
            except OSError as e:
                raise SupervisorError(f"Failed to write unit file {unit_path}: {e}", "register", service)
            if result.returncode != 0:
                raise SupervisorError(f"Failed to write unit file {unit_path}: {result.stderr.strip()}",
                                      "register", service)

        log_message(f"✓ Wrote unit file {unit_path}")
        return unit_path
