"""This module provides a registry and functions for pre-flight checks.

These checks are run before analysis and migration to catch systemic
problems early: an unreachable server, a REST module that does not expose
the product models, or a user without the access rights to create them.
"""

from dataclasses import dataclass, field
from typing import Any, Callable

from ..logging_config import log
from .client import CatalogClient
from .internal.exceptions import RemoteError
from .internal.ui import _show_error_panel, _show_warning_panel

# A registry to hold all pre-flight check functions
PREFLIGHT_CHECKS: list[Callable[..., bool]] = []

REQUIRED_MODELS = [
    "product.template",
    "product.product",
    "product.attribute",
    "product.attribute.value",
    "product.template.attribute.line",
]
WRITE_MODELS = [
    "product.template",
    "product.attribute",
    "product.attribute.value",
    "product.template.attribute.line",
]
# Models that are only ever read, so a disabled POST is not worth a warning
READ_ONLY_MODELS = ("product.product", "product.category")


@dataclass
class SyncIssue:
    severity: str
    model: str
    code: str
    message: str
    action: str = ""


@dataclass
class PreCheckResult:
    """Outcome of interpreting a remote health report."""

    can_sync: bool
    critical_issues: list[SyncIssue] = field(default_factory=list)
    warnings: list[SyncIssue] = field(default_factory=list)


def register_check(func: Callable[..., bool]) -> Callable[..., bool]:
    """A decorator to register a new pre-flight check function."""
    PREFLIGHT_CHECKS.append(func)
    return func


def _check_rest_config(report: dict[str, Any]) -> list[SyncIssue]:
    issues = []
    rest_config = report.get("rest_api_config") or {}
    for model in REQUIRED_MODELS:
        config = rest_config.get(model)
        if not config:
            issues.append(
                SyncIssue(
                    "critical",
                    model,
                    "NOT_CONFIGURED",
                    f"Model {model} is not configured in REST API",
                    "Add this model in Connection API settings",
                )
            )
            continue
        if not config.get("get"):
            issues.append(
                SyncIssue(
                    "critical",
                    model,
                    "GET_DISABLED",
                    f"GET is disabled for {model}",
                    "Enable GET in Connection API settings",
                )
            )
        if model not in READ_ONLY_MODELS and not config.get("post"):
            issues.append(
                SyncIssue(
                    "warning",
                    model,
                    "POST_DISABLED",
                    f"POST is disabled for {model}: cannot create new records",
                )
            )
    return issues


def _check_model_access(report: dict[str, Any]) -> list[SyncIssue]:
    issues = []
    model_access = report.get("model_access") or {}
    for model in [*REQUIRED_MODELS, "product.category"]:
        access = model_access.get(model)
        if not access:
            continue
        if not access.get("exists"):
            issues.append(
                SyncIssue(
                    "critical",
                    model,
                    "MODEL_NOT_EXISTS",
                    f"Model {model} does not exist (module not installed)",
                )
            )
            continue
        if not access.get("read"):
            issues.append(
                SyncIssue("critical", model, "NO_READ_ACCESS", f"No read access for {model}")
            )

    for model in WRITE_MODELS:
        access = model_access.get(model)
        if not access or not access.get("exists", True):
            continue
        if not access.get("write"):
            issues.append(
                SyncIssue("warning", model, "NO_WRITE_ACCESS", f"No write access for {model}")
            )
        if not access.get("create"):
            issues.append(
                SyncIssue(
                    "warning", model, "NO_CREATE_ACCESS", f"No create access for {model}"
                )
            )
    return issues


def run_sync_precheck(report: dict[str, Any]) -> PreCheckResult:
    """Interprets the remote health report.

    A report carrying an ``error`` means the server could not run the check
    itself; the configuration is then assumed correct and a warning is
    returned instead of blocking the migration.
    """
    if report.get("error"):
        return PreCheckResult(
            can_sync=True,
            warnings=[
                SyncIssue(
                    "warning",
                    "System",
                    "HEALTH_CHECK_SKIPPED",
                    f"Automatic check skipped: {report['error']}. "
                    "Assuming manual config is correct.",
                )
            ],
        )

    issues = _check_rest_config(report) + _check_model_access(report)
    critical = [i for i in issues if i.severity == "critical"]
    warnings = [i for i in issues if i.severity == "warning"]
    return PreCheckResult(can_sync=not critical, critical_issues=critical, warnings=warnings)


@register_check
def connection_check(client: CatalogClient, **kwargs: Any) -> bool:
    """Pre-flight check to verify the remote catalog is reachable."""
    log.info("Running pre-flight check: Verifying remote connection...")
    try:
        client.authenticate()
        units = client.fetch_units()
        log.info(f"Connection successful ({len(units)} units of measure found).")
        return True
    except Exception as e:
        _show_error_panel(
            "Connection Error",
            f"Could not reach the remote catalog. "
            f"Please check your configuration.\nError: {e}",
        )
        return False


@register_check
def health_check(client: CatalogClient, **kwargs: Any) -> bool:
    """Pre-flight check of the REST configuration and access rights."""
    log.info("Running pre-flight check: Verifying remote configuration...")
    try:
        report = client.check_system_health()
    except RemoteError as e:
        log.warning(f"System health check failed: {e}")
        report = {"error": f"Health check failed: {e}"}

    result = run_sync_precheck(report)
    for warning in result.warnings:
        log.warning(f"[{warning.model}] {warning.message}")

    if result.can_sync:
        log.info("Pre-flight Check Successful: remote catalog is ready.")
        return True

    message = "\n".join(
        f"  - [{i.code}] {i.message}" + (f"\n    {i.action}" if i.action else "")
        for i in result.critical_issues
    )
    _show_error_panel("Remote Configuration Problems", message)
    if result.warnings:
        _show_warning_panel(
            "Warnings", "\n".join(f"  - {w.message}" for w in result.warnings)
        )
    return False


def run_preflight_checks(client: CatalogClient, **kwargs: Any) -> bool:
    """Runs every registered check, stopping at the first failure."""
    for check in PREFLIGHT_CHECKS:
        if not check(client=client, **kwargs):
            return False
    return True
