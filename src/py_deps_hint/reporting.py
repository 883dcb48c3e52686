"""
Reporting and output formatting for version check results.

Provides color-coded console output using Rich library.
"""

from typing import Any, Dict, List, Optional, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .dependency import Dependency, get_dependency_stats
from .updates import UpdatePlan, current_version_of
from .version_service import DependencyVersions, VersionError, VersionInfo
from .versioning import analyze_version_update, compare_versions

STATUS_UP_TO_DATE = "up-to-date"
STATUS_OUTDATED = "outdated"

_ERROR_LABELS = {
    VersionError.NOT_FOUND: "[red]not found[/red]",
    VersionError.FETCH_ERROR: "[red]connection failed[/red]",
    VersionError.NO_COMPATIBLE_VERSION: "[yellow]no compatible version[/yellow]",
}

_UPDATE_TYPE_STYLES = {
    "major": "bold red",
    "minor": "yellow",
    "patch": "green",
}


def dependency_status(report: DependencyVersions) -> str:
    """
    Summarize one dependency as a status keyword.

    Returns:
        The error value when the lookup failed, ``up-to-date`` when the
        declared version is the latest or newer, otherwise ``outdated``
    """
    if report.latest.error:
        return report.latest.error.value
    if report.compatible.error and report.compatible.error is not VersionError.NO_COMPATIBLE_VERSION:
        return report.compatible.error.value

    current = current_version_of(report.dependency)
    latest = report.latest.latest_compatible
    if current and latest and compare_versions(current, latest) >= 0:
        return STATUS_UP_TO_DATE
    if not current and report.compatible.latest_compatible == report.latest.latest_compatible:
        return STATUS_UP_TO_DATE
    return STATUS_OUTDATED


def update_type_of(report: DependencyVersions) -> Optional[str]:
    """Kind of update from the declared version to the latest one."""
    current = current_version_of(report.dependency)
    latest = report.latest.latest_compatible
    if not current or not latest or compare_versions(current, latest) >= 0:
        return None
    return analyze_version_update(current, latest).update_type


def _section_label(dep: Dependency) -> str:
    if dep.kind == "pyproject" and dep.is_optional:
        return f"extra: {dep.extra}"
    return "main"


def _info_to_dict(info: VersionInfo) -> Dict[str, Any]:
    return {
        "version": info.latest_compatible,
        "error": info.error.value if info.error else None,
    }


def build_json_results(
    reports: Sequence[DependencyVersions], file_path: str, duration_ms: int
) -> Dict[str, Any]:
    """Build the JSON document printed by ``check --output-format json``."""
    stats = get_dependency_stats([r.dependency for r in reports])
    statuses = [dependency_status(r) for r in reports]

    return {
        "file_path": file_path,
        "total_dependencies": stats.total,
        "check_duration_ms": duration_ms,
        "summary": {
            "main": stats.main_dependencies,
            "optional": stats.optional_dependencies,
            "by_extra": stats.by_extra,
            "up_to_date": statuses.count(STATUS_UP_TO_DATE),
            "outdated": statuses.count(STATUS_OUTDATED),
            "errors": len(statuses)
            - statuses.count(STATUS_UP_TO_DATE)
            - statuses.count(STATUS_OUTDATED),
        },
        "dependencies": [
            {
                "package": r.dependency.package_name,
                "specifier": r.dependency.version_specifier,
                "line": r.dependency.line + 1,
                "section": _section_label(r.dependency),
                "compatible": _info_to_dict(r.compatible),
                "latest": _info_to_dict(r.latest),
                "update_type": update_type_of(r),
                "status": status,
            }
            for r, status in zip(reports, statuses)
        ],
    }


class VersionReporter:
    """Formats and displays version check results."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def print_check_results(
        self, reports: Sequence[DependencyVersions], file_path: str, duration_ms: int
    ) -> None:
        """
        Print check results in a user-friendly format.

        Args:
            reports: Resolved versions for each dependency
            file_path: Path to the checked file
            duration_ms: Time spent resolving, in milliseconds
        """
        self.console.print()
        self._print_header(file_path)

        if reports:
            self._print_versions_table(reports)
            self._print_summary(reports)
        else:
            self.console.print("✅ No dependencies found to check.", style="green")

        self._print_footer(len(reports), duration_ms)

    def _print_header(self, file_path: str) -> None:
        self.console.print(
            Panel(
                f"📦 Dependency Versions: {file_path}",
                title="[bold blue]py-deps-hint[/bold blue]",
                border_style="blue",
            )
        )

    def _print_versions_table(self, reports: Sequence[DependencyVersions]) -> None:
        table = Table(box=box.ROUNDED, title="📋 Dependencies", title_style="bold cyan")
        table.add_column("Line", justify="right", style="dim")
        table.add_column("Package", style="bold")
        table.add_column("Specifier")
        table.add_column("Section", style="dim")
        table.add_column("Compatible", style="cyan")
        table.add_column("Latest", style="cyan")
        table.add_column("Update")
        table.add_column("Status")

        for report in reports:
            dep = report.dependency
            status = dependency_status(report)
            update_type = update_type_of(report)

            if status == STATUS_UP_TO_DATE:
                status_text = "[green]✓ up to date[/green]"
            elif status == STATUS_OUTDATED:
                status_text = "[yellow]⬆ outdated[/yellow]"
            else:
                status_text = _ERROR_LABELS[VersionError(status)]

            update_text = (
                f"[{_UPDATE_TYPE_STYLES[update_type]}]{update_type}[/{_UPDATE_TYPE_STYLES[update_type]}]"
                if update_type
                else "-"
            )

            table.add_row(
                str(dep.line + 1),
                dep.package_name,
                escape(dep.version_specifier) if dep.version_specifier else "[dim]any[/dim]",
                _section_label(dep),
                report.compatible.latest_compatible
                or _ERROR_LABELS.get(report.compatible.error, "-"),
                report.latest.latest_compatible or "-",
                update_text,
                status_text,
            )

        self.console.print(table)
        self.console.print()

    def _print_summary(self, reports: Sequence[DependencyVersions]) -> None:
        statuses = [dependency_status(r) for r in reports]
        up_to_date = statuses.count(STATUS_UP_TO_DATE)
        outdated = statuses.count(STATUS_OUTDATED)
        errors = len(statuses) - up_to_date - outdated

        summary = f"[green]{up_to_date} up to date[/green], [yellow]{outdated} outdated[/yellow]"
        if errors:
            summary += f", [red]{errors} unresolved[/red]"
        self.console.print(summary)

    def _print_footer(self, total: int, duration_ms: int) -> None:
        self.console.print(
            f"\n[dim]Checked {total} dependencies in {duration_ms / 1000:.2f} seconds[/dim]"
        )

    def print_update_plan(self, plan: UpdatePlan) -> None:
        """Print the safe and risky updates of a plan."""
        if not plan.total:
            self.console.print("✅ All dependencies are up to date.", style="green")
            return

        table = Table(box=box.ROUNDED, title="⬆️  Planned Updates", title_style="bold cyan")
        table.add_column("Package", style="bold")
        table.add_column("Current")
        table.add_column("New", style="cyan")
        table.add_column("Type")
        table.add_column("Risk")

        for update in plan.safe + plan.risky:
            style = _UPDATE_TYPE_STYLES[update.analysis.update_type]
            table.add_row(
                update.dependency.package_name,
                update.current_version,
                update.new_version,
                f"[{style}]{update.analysis.update_type}[/{style}]",
                f"[{style}]{update.analysis.risk_level}[/{style}]",
            )

        self.console.print(table)

    def print_risky_updates(self, plan: UpdatePlan) -> None:
        """Warn about major updates that may break the project."""
        lines: List[str] = [
            f"• {u.dependency.package_name}: {u.current_version} → {u.new_version} (Major)"
            for u in plan.risky
        ]
        self.console.print(
            Panel(
                "\n".join(lines),
                title=f"[bold yellow]⚠️  {len(plan.risky)} major update(s) found[/bold yellow]",
                border_style="yellow",
            )
        )
