"""
HOMESERVER Service Deployment Components
Copyright (C) 2024 HOMESERVER LLC

Status Reporter Component

Advisory post-restart reporting: settle delay (or a bounded readiness poll),
service status, recent journal lines and an optional HTTP health probe.
Nothing in here raises; every failure degrades to a partial report.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional
import requests
from ..config import HealthCheckConfig
from ..utils.index import log_message


@dataclass
class HealthCheckResult:
    url: str
    ok: bool
    status_code: Optional[int] = None
    detail: str = ""


@dataclass
class ServiceStatusReport:
    """Read-only snapshot for the operator. Never stored."""
    running: Optional[bool] = None
    status_text: str = ""
    recent_log_lines: List[str] = field(default_factory=list)
    health_check: Optional[HealthCheckResult] = None
    errors: List[str] = field(default_factory=list)


class StatusReporter:
    """Collects and prints a ServiceStatusReport after a state change."""

    def __init__(self, supervisor,
                 settle_seconds: float = 3,
                 wait_timeout: Optional[float] = None,
                 poll_interval: float = 1.0,
                 log_lines: int = 10,
                 health_check: Optional[HealthCheckConfig] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.supervisor = supervisor
        self.settle_seconds = settle_seconds
        self.wait_timeout = wait_timeout
        self.poll_interval = poll_interval
        self.log_lines = log_lines
        self.health_check = health_check or HealthCheckConfig()
        self.sleep = sleep
        self.clock = clock

    def settle(self, service: str):
        """
        Give the service time to come up before it is queried.

        With no wait_timeout this is the fixed settle delay. With one, poll
        is-active until the unit reports active or the timeout elapses.
        """
        if self.wait_timeout is None:
            log_message(f"Waiting {self.settle_seconds:g}s for {service} to start...")
            self.sleep(self.settle_seconds)
            return

        log_message(f"Waiting up to {self.wait_timeout:g}s for {service} to become active...")
        deadline = self.clock() + self.wait_timeout
        while True:
            try:
                if self.supervisor.is_active(service):
                    log_message(f"✓ {service} is active")
                    return
            except Exception as e:
                log_message(f"Readiness check failed: {e}", "WARNING")
            remaining = deadline - self.clock()
            if remaining <= 0:
                log_message(f"{service} did not become active within {self.wait_timeout:g}s", "WARNING")
                return
            self.sleep(min(self.poll_interval, remaining))

    def collect(self, service: str, include_logs: bool = False) -> ServiceStatusReport:
        report = ServiceStatusReport()

        try:
            report.running = self.supervisor.is_active(service)
        except Exception as e:
            report.errors.append(f"is-active: {e}")

        try:
            report.status_text = self.supervisor.status(service)
        except Exception as e:
            report.errors.append(f"status: {e}")

        if include_logs:
            try:
                report.recent_log_lines = self.supervisor.recent_logs(service, self.log_lines)
            except Exception as e:
                report.errors.append(f"logs: {e}")

        if self.health_check.enabled:
            report.health_check = self.probe_health()

        return report

    def probe_health(self) -> HealthCheckResult:
        """Hit the deployed service's status endpoint with its API key header."""
        config = self.health_check
        headers = {}
        if config.api_key:
            headers[config.api_key_header] = config.api_key
        try:
            r = requests.get(config.url, headers=headers, timeout=config.timeout)
            return HealthCheckResult(url=config.url, ok=r.ok, status_code=r.status_code, detail=r.text[:200])
        except requests.RequestException as e:
            return HealthCheckResult(url=config.url, ok=False, detail=str(e))

    def report(self, service: str, include_logs: bool = False) -> ServiceStatusReport:
        """Settle, collect and log the report. Always returns, never raises."""
        try:
            self.settle(service)
        except Exception as e:
            log_message(f"Settle delay interrupted: {e}", "WARNING")

        report = self.collect(service, include_logs=include_logs)
        self._log_report(service, report, include_logs)
        return report

    def _log_report(self, service: str, report: ServiceStatusReport, include_logs: bool):
        log_message("Service status:")
        if report.status_text:
            for line in report.status_text.splitlines():
                log_message(f"  {line}")

        if report.running is True:
            log_message(f"✓ {service} is running")
        elif report.running is False:
            log_message(f"⚠ {service} is not running; check the status and logs above", "WARNING")

        if include_logs:
            log_message(f"Recent logs (last {self.log_lines} lines):")
            for line in report.recent_log_lines:
                log_message(f"  {line}")

        if report.health_check is not None:
            hc = report.health_check
            if hc.ok:
                log_message(f"✓ Health check {hc.url} returned {hc.status_code}")
            else:
                log_message(f"⚠ Health check {hc.url} failed: {hc.status_code or hc.detail}", "WARNING")

        for error in report.errors:
            log_message(f"Status query failed ({error}); report is partial", "WARNING")
