#!/usr/bin/env python3
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
Group Permission Utilities

Grants the service's runtime user membership in a hardware-access group
(gpio on a Raspberry Pi). Membership is tested before anything is mutated,
so repeated installs leave the user/group database untouched.
"""

import grp
import pwd
from typing import Optional
from .commands import privileged, run_command
from .errors import PermissionSetupError
from .index import log_message


class GroupPermissionManager:
    """Checks and grants supplementary group membership."""

    def __init__(self, use_sudo: Optional[bool] = None):
        self.use_sudo = use_sudo

    def group_exists(self, group: str) -> bool:
        try:
            grp.getgrnam(group)
            return True
        except KeyError:
            return False

    def is_member(self, user: str, group: str) -> bool:
        """
        Check whether `user` belongs to `group`, either as a listed member or
        through its primary group.

        Raises:
            PermissionSetupError: If the group or the user does not exist
        """
        try:
            group_info = grp.getgrnam(group)
        except KeyError:
            raise PermissionSetupError(f"Group '{group}' does not exist on this host")

        try:
            user_info = pwd.getpwnam(user)
        except KeyError:
            raise PermissionSetupError(f"User '{user}' does not exist on this host")

        return user in group_info.gr_mem or user_info.pw_gid == group_info.gr_gid

    def add_to_group(self, user: str, group: str):
        command = privileged(["usermod", "-a", "-G", group, user], self.use_sudo)
        try:
            result = run_command(command)
        except OSError as e:
            raise PermissionSetupError(f"usermod could not be executed: {e}")
        if result.returncode != 0:
            raise PermissionSetupError(f"Failed to add {user} to {group}: {result.stderr.strip()}")

    def ensure_membership(self, user: str, group: str) -> bool:
        """
        Make sure `user` is in `group`.

        Returns:
            bool: True if membership was granted by this call, False if the
            user was already a member
        """
        if self.is_member(user, group):
            log_message(f"✓ {user} is already a member of {group}")
            return False

        self.add_to_group(user, group)
        log_message(f"✓ Added {user} to the {group} group")
        log_message(f"Group membership takes effect after {user} logs in again", "WARNING")
        return True
