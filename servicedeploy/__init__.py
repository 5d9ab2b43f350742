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
along with this program. If not, see <https://www.gnu.org/licenses/>.
"""

from .utils.index import log_message
from .config import DeploymentTarget, DeploymentOptions, load_config, resolve_target, resolve_options
from .installer import Installer
from .updater import Updater

__version__ = "1.0.0"

__all__ = [
    'log_message',
    'DeploymentTarget',
    'DeploymentOptions',
    'load_config',
    'resolve_target',
    'resolve_options',
    'Installer',
    'Updater'
]
