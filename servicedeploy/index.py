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

import argparse
import os
import sys
import traceback
from typing import List, Optional
from .config import load_config, resolve_options, resolve_target
from .installer import Installer
from .updater import Updater
from .utils.errors import ConfigurationError
from .utils.index import log_message, setup_global_deploy_logging

EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="servicedeploy",
                                     description="Build and deploy a systemd-managed service")
    parser.add_argument("command", choices=["install", "update"],
                        help="install: provision host and register the service; "
                             "update: rebuild and restart, rolling back on build failure")
    parser.add_argument("--config", metavar="PATH",
                        help="JSON configuration file (index.json layout)")
    parser.add_argument("--project-dir", metavar="PATH",
                        help="Project checkout holding the build manifest (default: ~/watering-backend)")
    parser.add_argument("--service-name",
                        help="systemd service name")
    parser.add_argument("--user", dest="runtime_user",
                        help="User the service runs as (default: $SUDO_USER or the current user)")
    parser.add_argument("--settle-seconds", type=float,
                        help="Fixed wait after starting before querying status")
    parser.add_argument("--wait-timeout", type=float,
                        help="Poll for an active service up to this many seconds instead of a fixed wait")
    parser.add_argument("--log-lines", type=int,
                        help="Number of journal lines to show after an update")
    parser.add_argument("--health-check", action="store_true",
                        help="Probe the service's HTTP status endpoint after starting")
    parser.add_argument("--verbose", action="store_true",
                        help="Show debug output, including every command run")
    return parser


def setup_session_banner(command: str):
    log_message("=" * 80)
    log_message(f"SERVICE {command.upper()} SESSION STARTED")
    log_message(f"Command: {' '.join(sys.argv)}")
    log_message(f"Working Directory: {os.getcwd()}")
    log_message("=" * 80)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the deployment orchestrator.

    Returns:
        int: 0 on success, 1 on a fatal failure, 2 when a failed update also
        left the service down, 130 when interrupted
    """
    args = build_parser().parse_args(argv)

    try:
        setup_global_deploy_logging(verbose=args.verbose)
        setup_session_banner(args.command)

        config = load_config(args.config)
        target = resolve_target(config, {
            "project_directory": args.project_dir,
            "service_name": args.service_name,
            "runtime_user": args.runtime_user,
        })
        options = resolve_options(config, {
            "settle_seconds": args.settle_seconds,
            "wait_timeout": args.wait_timeout,
            "log_lines": args.log_lines,
            "health_check": args.health_check,
        })

        if args.command == "install":
            result = Installer(target, options).run()
        else:
            result = Updater(target, options).run()

        log_message("=" * 80)
        if result.success:
            log_message(f"✓ {args.command} completed")
        else:
            log_message(f"✗ {args.command} failed", "ERROR")
        return result.exit_code

    except ConfigurationError as e:
        log_message(f"Configuration error: {e}", "ERROR")
        return 1
    except KeyboardInterrupt:
        log_message(f"{args.command} interrupted by user", "WARNING")
        return EXIT_INTERRUPTED
    except Exception as e:
        log_message(f"Unhandled error during {args.command}: {e}", "ERROR")
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
