"""Availability report for the external tools the scanner can use."""

from __future__ import annotations

from dataclasses import dataclass

from .scanner.select import BACKEND_FD, BACKEND_RG, find_backend_executable, find_executable
from .scanner.types import ScanOptions

LEVEL_OK = "ok"
LEVEL_WARN = "warn"


@dataclass(frozen=True)
class HealthCheck:
    name: str
    level: str
    message: str


def check_tools(options: ScanOptions | None = None) -> list[HealthCheck]:
    options = options if options is not None else ScanOptions()
    checks: list[HealthCheck] = []

    fd_path = find_backend_executable(BACKEND_FD)
    if fd_path is not None:
        checks.append(HealthCheck("fd", LEVEL_OK, f"fd available at {fd_path}"))
    elif options.use_fd:
        checks.append(HealthCheck("fd", LEVEL_WARN, "fd not found; falling back (disable with --no-fd to silence)"))
    else:
        checks.append(HealthCheck("fd", LEVEL_OK, "fd disabled"))

    rg_path = find_backend_executable(BACKEND_RG)
    if rg_path is not None:
        checks.append(HealthCheck("rg", LEVEL_OK, f"ripgrep available at {rg_path}"))
    elif options.use_rg:
        checks.append(HealthCheck("rg", LEVEL_WARN, "ripgrep not found; native walker used when fd is missing"))
    else:
        checks.append(HealthCheck("rg", LEVEL_OK, "ripgrep disabled"))

    git_path = find_executable("git")
    if git_path is not None:
        checks.append(HealthCheck("git", LEVEL_OK, f"git available at {git_path}"))
    else:
        checks.append(HealthCheck("git", LEVEL_WARN, "git not found; status badges will be unavailable"))
    return checks


def format_health(checks: list[HealthCheck]) -> str:
    return "\n".join(f"[{check.level.upper()}] {check.name}: {check.message}" for check in checks)


__all__ = ["LEVEL_OK", "LEVEL_WARN", "HealthCheck", "check_tools", "format_health"]
