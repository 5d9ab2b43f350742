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
import subprocess
from typing import Dict, List, Optional
from .index import log_message


def is_root() -> bool:
    return os.geteuid() == 0


def privileged(command: List[str], use_sudo: Optional[bool] = None) -> List[str]:
    """
    Prefix a command with sudo when the orchestrator is not running as root.

    Args:
        command: The argv to run with elevated privileges
        use_sudo: Force sudo on/off; None decides from the effective uid

    Returns:
        List[str]: The argv to execute
    """
    if use_sudo is None:
        use_sudo = not is_root()
    if use_sudo:
        return ["sudo"] + list(command)
    return list(command)


def run_command(command: List[str],
                cwd: Optional[str] = None,
                env: Optional[Dict[str, str]] = None,
                input_text: Optional[str] = None) -> subprocess.CompletedProcess:
    """
    Run a command to completion and capture its output.

    The return code is left for the caller to judge. A missing executable
    raises OSError (FileNotFoundError). Output that is not valid UTF-8 is
    decoded with replacement characters.
    """
    log_message(f"Running: {' '.join(command)}", "DEBUG")
    return subprocess.run(
        command,
        cwd=cwd,
        env=env,
        input=input_text,
        capture_output=True,
        text=True,
        encoding="utf-8",
        errors="replace",
        check=False
    )


def tail_lines(output: str, count: int) -> List[str]:
    """Return the last `count` non-empty lines of command output."""
    lines = [line for line in (output or "").splitlines() if line.strip()]
    return lines[-count:] if count > 0 else []
