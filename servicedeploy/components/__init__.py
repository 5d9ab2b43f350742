"""
HOMESERVER Service Deployment Components
Copyright (C) 2024 HOMESERVER LLC

Building blocks shared by the installer and the updater.
"""

from .build_manager import BuildManager, BuildResult
from .service_unit import ServiceUnitSpec, RestartPolicy
from .status_reporter import StatusReporter, ServiceStatusReport, HealthCheckResult

__all__ = [
    'BuildManager',
    'BuildResult',
    'ServiceUnitSpec',
    'RestartPolicy',
    'StatusReporter',
    'ServiceStatusReport',
    'HealthCheckResult'
]
