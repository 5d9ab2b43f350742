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
Deployment configuration.

Defaults live in DEFAULT_CONFIG and can be overridden by an index.json style
file ({"metadata": {...}, "config": {...}}) and then by command-line flags.
The resolved values are frozen into a DeploymentTarget and DeploymentOptions
that are passed explicitly to the Installer and Updater.
"""

import copy
import getpass
import json
import os
import pwd
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
from .utils.errors import ConfigurationError
from .utils.index import log_message

DEFAULT_PROJECT_NAME = "watering-backend"

DEFAULT_CONFIG = {
    "metadata": {
        "schema_version": "1.0.0",
        "module_name": "servicedeploy"
    },
    "config": {
        "target": {
            "project_directory": None,
            "service_name": DEFAULT_PROJECT_NAME,
            "runtime_user": None,
            "binary_relative_path": f"target/release/{DEFAULT_PROJECT_NAME}",
            "build_manifest": "Cargo.toml"
        },
        "build": {
            "command": ["cargo", "build", "--release", "--features", "gpio"]
        },
        "install": {
            "packages": ["build-essential"],
            "hardware_group": "gpio",
            "description": "Watering System Backend (Rust)",
            "after": "network.target",
            "restart_delay_seconds": 10,
            "unit_directory": "/etc/systemd/system"
        },
        "report": {
            "settle_seconds": 3,
            "wait_timeout": None,
            "log_lines": 10
        },
        "health_check": {
            "enabled": False,
            "url": "http://localhost:5000/status",
            "api_key_header": "X-API-KEY",
            "api_key": "",
            "timeout": 5
        }
    }
}


@dataclass(frozen=True)
class DeploymentTarget:
    """The single service a run operates on. Immutable for the run."""
    project_directory: Path
    service_name: str
    runtime_user: str
    binary_relative_path: Path
    build_manifest: str = "Cargo.toml"

    @property
    def binary_path(self) -> Path:
        return self.project_directory / self.binary_relative_path

    @property
    def manifest_path(self) -> Path:
        return self.project_directory / self.build_manifest


@dataclass(frozen=True)
class HealthCheckConfig:
    enabled: bool = False
    url: str = "http://localhost:5000/status"
    api_key_header: str = "X-API-KEY"
    api_key: str = ""
    timeout: float = 5


@dataclass(frozen=True)
class DeploymentOptions:
    """Everything about a run that is not the target's identity."""
    build_command: List[str] = field(default_factory=lambda: ["cargo", "build", "--release", "--features", "gpio"])
    packages: List[str] = field(default_factory=lambda: ["build-essential"])
    hardware_group: str = "gpio"
    description: str = "Watering System Backend (Rust)"
    after: str = "network.target"
    restart_delay_seconds: int = 10
    unit_directory: str = "/etc/systemd/system"
    settle_seconds: float = 3
    wait_timeout: Optional[float] = None
    log_lines: int = 10
    health_check: HealthCheckConfig = field(default_factory=HealthCheckConfig)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load deployment configuration, layering a JSON file over the defaults.

    Args:
        config_path: Optional path to an index.json style file

    Returns:
        dict: The merged configuration

    Raises:
        ConfigurationError: If the file is given but missing or unreadable
    """
    if not config_path:
        return copy.deepcopy(DEFAULT_CONFIG)

    path = Path(config_path)
    if not path.is_file():
        raise ConfigurationError(f"Configuration file not found: {path}")

    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Failed to load configuration from {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration in {path} must be a JSON object")

    log_message(f"Loaded configuration from {path}")
    return _deep_merge(DEFAULT_CONFIG, data)


def default_runtime_user() -> str:
    """The user the service runs as: the sudo caller if any, else the current user."""
    return os.environ.get("SUDO_USER") or getpass.getuser()


def default_project_directory(user: str) -> Path:
    try:
        home = Path(pwd.getpwnam(user).pw_dir)
    except KeyError:
        home = Path.home()
    return home / DEFAULT_PROJECT_NAME


def resolve_target(config: Dict[str, Any], overrides: Optional[Dict[str, Any]] = None) -> DeploymentTarget:
    """Build the DeploymentTarget from merged config plus non-None overrides."""
    values = dict(config.get("config", {}).get("target", {}))
    values.update({k: v for k, v in (overrides or {}).items() if v is not None})

    user = values.get("runtime_user") or default_runtime_user()
    project_directory = values.get("project_directory")
    project_directory = Path(project_directory).expanduser() if project_directory else default_project_directory(user)

    service_name = values.get("service_name")
    if not service_name:
        raise ConfigurationError("service_name must not be empty")

    binary_relative_path = Path(values.get("binary_relative_path") or f"target/release/{service_name}")
    if binary_relative_path.is_absolute():
        raise ConfigurationError(f"binary_relative_path must be relative to the project: {binary_relative_path}")

    return DeploymentTarget(
        project_directory=project_directory.resolve(),
        service_name=service_name,
        runtime_user=user,
        binary_relative_path=binary_relative_path,
        build_manifest=values.get("build_manifest") or "Cargo.toml"
    )


def resolve_options(config: Dict[str, Any], overrides: Optional[Dict[str, Any]] = None) -> DeploymentOptions:
    """Build DeploymentOptions from merged config plus non-None overrides."""
    section = config.get("config", {})
    build = section.get("build", {})
    install = section.get("install", {})
    report = dict(section.get("report", {}))
    health = dict(section.get("health_check", {}))

    overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
    for key in ("settle_seconds", "wait_timeout", "log_lines"):
        if key in overrides:
            report[key] = overrides[key]
    if overrides.get("health_check"):
        health["enabled"] = True

    # Keep the API key out of config files when the environment provides it
    api_key = os.environ.get("SERVICEDEPLOY_API_KEY", health.get("api_key", ""))

    build_command = build.get("command")
    if not build_command or not isinstance(build_command, list):
        raise ConfigurationError("build.command must be a non-empty list")

    try:
        return DeploymentOptions(
            build_command=[str(part) for part in build_command],
            packages=list(install.get("packages", [])),
            hardware_group=install.get("hardware_group", "gpio"),
            description=install.get("description", "Watering System Backend (Rust)"),
            after=install.get("after", "network.target"),
            restart_delay_seconds=int(install.get("restart_delay_seconds", 10)),
            unit_directory=install.get("unit_directory", "/etc/systemd/system"),
            settle_seconds=float(report.get("settle_seconds", 3)),
            wait_timeout=float(report["wait_timeout"]) if report.get("wait_timeout") is not None else None,
            log_lines=int(report.get("log_lines", 10)),
            health_check=HealthCheckConfig(
                enabled=bool(health.get("enabled", False)),
                url=health.get("url", "http://localhost:5000/status"),
                api_key_header=health.get("api_key_header", "X-API-KEY"),
                api_key=api_key,
                timeout=float(health.get("timeout", 5))
            )
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid deployment option: {e}")


def check_project(target: DeploymentTarget):
    """
    Verify the project directory holds the build manifest.

    Raises:
        ConfigurationError: If the directory or the manifest is missing
    """
    if not target.project_directory.is_dir():
        raise ConfigurationError(f"Project directory not found: {target.project_directory}")
    if not target.manifest_path.is_file():
        raise ConfigurationError(
            f"{target.build_manifest} not found in {target.project_directory}; "
            f"run from a checkout of the project or pass --project-dir"
        )
    log_message(f"✓ Found {target.manifest_path}")
