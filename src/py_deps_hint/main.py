import asyncio
import json
import sys
import time
from pathlib import Path
from typing import List, Optional, Tuple

import click
from rich.console import Console
from rich.panel import Panel

from .cli_config import (
    ComprehensiveConfig,
    apply_file_config,
    create_sample_config,
    get_config,
    load_config,
    load_config_file,
    validate_config_values,
)
from .dependency import Dependency
from .parsers import FileType, detect_file_type, parse_dependencies
from .reporting import VersionReporter, build_json_results
from .structured_logging import configure_logging
from .updates import UpdatePlan, apply_updates, plan_updates
from .version_service import DependencyVersions, get_version_service

__version__ = "1.0.0"

console = Console()


def read_manifest(file_path: str) -> Tuple[str, List[Dependency], bool]:
    """
    Read and parse a dependency manifest.

    Returns:
        (content, dependencies, whether the file is TOML)
    """
    try:
        with open(file_path, encoding="utf-8", newline="") as f:
            content = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise click.ClickException(f"Failed to read dependency file: {e}")

    detection = detect_file_type(file_path, content)
    if not detection.is_valid:
        raise click.ClickException(f"Unsupported dependency file: {file_path}")

    return content, parse_dependencies(file_path, content), detection.type is FileType.PYPROJECT


async def async_check_dependencies(
    deps: List[Dependency],
    include_prerelease: bool,
    ttl_minutes: int,
    max_concurrent: int,
    registry_url: Optional[str],
) -> List[DependencyVersions]:
    service = get_version_service()
    return await service.check_dependencies(
        deps,
        include_prerelease=include_prerelease,
        ttl_minutes=ttl_minutes,
        max_concurrent=max_concurrent,
        registry_base_url=registry_url,
    )


async def async_plan_updates(
    deps: List[Dependency],
    include_prerelease: bool,
    ttl_minutes: int,
    max_concurrent: int,
    registry_url: Optional[str],
) -> UpdatePlan:
    service = get_version_service()
    infos = await service.get_latest_versions(
        deps,
        include_prerelease=include_prerelease,
        ttl_minutes=ttl_minutes,
        max_concurrent=max_concurrent,
        registry_base_url=registry_url,
        constrained=False,
    )
    return plan_updates(deps, [info.latest_compatible for info in infos])


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version information")
@click.pass_context
def cli(ctx, version):
    """
    📦 py-deps-hint: Latest compatible versions for Python dependencies

    Reads requirements.txt and pyproject.toml files and shows, for every
    dependency, the newest PyPI release its specifier allows.
    """
    if version:
        console.print(f"py-deps-hint version {__version__}", style="bold blue")
        ctx.exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
    else:
        logging_config = get_config().logging
        configure_logging(logging_config.log_level, logging_config.enable_json)


@cli.command()
@click.argument(
    "file_path", type=click.Path(exists=True, readable=True, dir_okay=False)
)
@click.option("--prerelease", is_flag=True, help="Include pre-release versions")
@click.option(
    "--output-format",
    type=click.Choice(["console", "json"], case_sensitive=False),
    default="console",
    help="Output format for results",
    show_default=True,
)
@click.option("--ttl", type=int, help="Cache TTL in minutes (default from config or 60)")
@click.option(
    "--max-concurrent",
    type=int,
    help="Maximum concurrent registry lookups (default from config or 20)",
)
@click.option("--registry-url", help="Registry base URL (default https://pypi.org)")
def check(
    file_path: str,
    prerelease: bool,
    output_format: str,
    ttl: Optional[int],
    max_concurrent: Optional[int],
    registry_url: Optional[str],
) -> None:
    """
    Show the latest compatible and latest versions of every dependency.

    Examples:

      py-deps-hint check requirements.txt

      py-deps-hint check pyproject.toml --prerelease

      py-deps-hint check requirements.txt --output-format json
    """
    try:
        config = load_config()

        if not config.resolution.enabled:
            console.print("Version hints are disabled by configuration", style="yellow")
            return

        final_ttl = ttl if ttl is not None else config.resolution.cache_ttl_minutes
        final_max_concurrent = (
            max_concurrent if max_concurrent is not None else config.resolution.max_concurrent
        )
        if final_ttl <= 0:
            raise click.ClickException("TTL must be positive")
        if final_max_concurrent <= 0:
            raise click.ClickException("Max concurrent must be positive")

        include_prerelease = prerelease or config.resolution.show_prerelease
        final_registry_url = registry_url or config.network.registry_url

        _, deps, _ = read_manifest(file_path)

        start_time = time.time()
        reports = asyncio.run(
            async_check_dependencies(
                deps,
                include_prerelease,
                final_ttl,
                final_max_concurrent,
                final_registry_url,
            )
        )
        duration_ms = int((time.time() - start_time) * 1000)

        if output_format.lower() == "json":
            print(json.dumps(build_json_results(reports, file_path, duration_ms), indent=2))
        else:
            VersionReporter(console).print_check_results(reports, file_path, duration_ms)

    except KeyboardInterrupt:
        Console(stderr=True).print("\n⚠️  Check interrupted by user", style="yellow")
        sys.exit(130)
    except Exception as e:
        Console(stderr=True).print(f"❌ Error: {str(e)}", style="red")
        sys.exit(1)


@cli.command()
@click.argument(
    "file_path", type=click.Path(exists=True, readable=True, writable=True, dir_okay=False)
)
@click.option("--yes", "-y", is_flag=True, help="Apply major updates without asking")
@click.option("--safe-only", is_flag=True, help="Skip major updates")
@click.option("--dry-run", is_flag=True, help="Show planned updates without writing")
@click.option("--prerelease", is_flag=True, help="Allow updating to pre-release versions")
@click.option("--registry-url", help="Registry base URL (default https://pypi.org)")
def update(
    file_path: str,
    yes: bool,
    safe_only: bool,
    dry_run: bool,
    prerelease: bool,
    registry_url: Optional[str],
) -> None:
    """
    Update pinned versions to the latest releases.

    Minor and patch updates are applied directly; major updates are listed
    and need confirmation unless --yes is given.

    Examples:

      py-deps-hint update requirements.txt --dry-run

      py-deps-hint update pyproject.toml --safe-only
    """
    if yes and safe_only:
        raise click.UsageError("--yes and --safe-only cannot be used together")

    try:
        config = load_config()
        content, deps, is_toml = read_manifest(file_path)

        plan = asyncio.run(
            async_plan_updates(
                deps,
                prerelease or config.resolution.show_prerelease,
                config.resolution.cache_ttl_minutes,
                config.resolution.max_concurrent,
                registry_url or config.network.registry_url,
            )
        )

        reporter = VersionReporter(console)
        reporter.print_update_plan(plan)
        if not plan.total:
            return

        selected = list(plan.safe)
        if plan.risky:
            if safe_only:
                console.print(
                    f"Skipping {len(plan.risky)} major update(s)", style="yellow"
                )
            elif yes:
                selected.extend(plan.risky)
            elif not dry_run:
                reporter.print_risky_updates(plan)
                if click.confirm("Apply major updates too?", default=False):
                    selected.extend(plan.risky)

        if dry_run:
            console.print("Dry run: no changes written", style="dim")
            return

        if not selected:
            console.print("No updates applied", style="yellow")
            return

        with open(file_path, "w", encoding="utf-8", newline="") as f:
            f.write(apply_updates(content, selected, is_toml))

        console.print(
            f"✅ Updated {len(selected)} dependencies in {file_path}", style="green"
        )

    except click.Abort:
        raise
    except KeyboardInterrupt:
        Console(stderr=True).print("\n⚠️  Update interrupted by user", style="yellow")
        sys.exit(130)
    except Exception as e:
        Console(stderr=True).print(f"❌ Error: {str(e)}", style="red")
        sys.exit(1)


@cli.command()
def info():
    """Show information about supported file types and configuration."""
    info_text = """
[bold blue]📋 Supported File Types:[/bold blue]

• [green]requirements.txt[/green] - pip requirements (also requirements-*.txt)
• [green]pyproject.toml[/green] - PEP 621 [project] dependencies and optional-dependencies

[bold blue]🔢 Version Specifiers:[/bold blue]

• [yellow]==, !=, >=, <=, >, <[/yellow] - comparison operators, comma-separated
• [yellow]~=[/yellow] - compatible release (~=1.4.2 allows 1.4.x from 1.4.2)
• Pre-releases (a, b, rc, dev) are skipped unless --prerelease is given

[bold blue]🌍 Environment Variables:[/bold blue]

• [cyan]PY_DEPS_HINT_ENABLED[/cyan] - Enable or disable version hints
• [cyan]PY_DEPS_HINT_SHOW_PRERELEASE[/cyan] - Include pre-release versions
• [cyan]PY_DEPS_HINT_CACHE_TTL_MINUTES[/cyan] - Cache TTL in minutes
• [cyan]PY_DEPS_HINT_MAX_CONCURRENT[/cyan] - Maximum concurrent lookups
• [cyan]PY_DEPS_HINT_REGISTRY_URL[/cyan] - Registry base URL
• [cyan]PY_DEPS_HINT_TIMEOUT[/cyan] - Request timeout in seconds
• [cyan]PY_DEPS_HINT_LOG_LEVEL[/cyan] - Log level for JSON event logs

[bold blue]📄 Configuration Files:[/bold blue]

• [green].py-deps-hint.json[/green] / [green].py-deps-hint.yaml[/green] - Project-level config
• [green]pyproject.toml[/green] - [tool.py-deps-hint] table
• [green]~/.config/py-deps-hint/config.json[/green] - User-level config

[bold blue]💡 Usage Examples:[/bold blue]

  # Show versions
  py-deps-hint check requirements.txt

  # JSON output for automation
  py-deps-hint check pyproject.toml --output-format json

  # Preview updates
  py-deps-hint update requirements.txt --dry-run

  # Generate sample config
  py-deps-hint config init
"""
    console.print(
        Panel(
            info_text,
            title="[bold]py-deps-hint Information[/bold]",
            border_style="blue",
        )
    )


@cli.group()
def config():
    """Configuration management commands."""
    pass


@config.command("init")
@click.option(
    "--path",
    type=click.Path(),
    default=".py-deps-hint.json",
    help="Path where to create the config file",
    show_default=True,
)
@click.option("--force", is_flag=True, help="Overwrite existing config file")
def config_init(path: str, force: bool):
    """Create a sample configuration file."""
    config_path = Path(path)

    if config_path.exists() and not force:
        console.print(f"⚠️  Config file already exists at {config_path}", style="yellow")
        console.print("Use --force to overwrite", style="dim")
        return

    try:
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_sample_config())

        console.print(f"✅ Created configuration file at {config_path}", style="green")
        console.print("Edit this file to customize your settings", style="dim")

    except OSError as e:
        console.print(f"❌ Failed to create config file: {e}", style="red")


@config.command("show")
def config_show():
    """Show current configuration settings."""
    current_config = get_config()

    console.print(Panel("[bold blue]🔧 Configuration[/bold blue]", border_style="blue"))

    console.print("\n[bold cyan]🔢 Resolution Settings:[/bold cyan]")
    console.print(f"  Enabled: {current_config.resolution.enabled}")
    console.print(f"  Show Pre-releases: {current_config.resolution.show_prerelease}")
    console.print(f"  Cache TTL: {current_config.resolution.cache_ttl_minutes} min")
    console.print(f"  Max Concurrent: {current_config.resolution.max_concurrent}")

    console.print("\n[bold cyan]🌐 Network Settings:[/bold cyan]")
    console.print(f"  Registry URL: {current_config.network.registry_url}")
    console.print(f"  Timeout: {current_config.network.timeout_seconds}s")
    console.print(f"  User Agent: {current_config.network.user_agent}")

    console.print("\n[bold cyan]📝 Logging Settings:[/bold cyan]")
    console.print(f"  Log Level: {current_config.logging.log_level}")
    console.print(f"  JSON Events: {current_config.logging.enable_json}")


@config.command("validate")
@click.argument("config_file", type=click.Path(exists=True))
def config_validate(config_file: str):
    """Validate a configuration file."""
    config_data = load_config_file(Path(config_file))

    if config_data is None:
        console.print(f"❌ Could not load config from {config_file}", style="red")
        sys.exit(1)

    candidate = ComprehensiveConfig()
    apply_file_config(candidate, config_data)

    try:
        errors = validate_config_values(candidate)
    except (TypeError, AttributeError) as e:
        errors = [f"invalid value type: {e}"]

    if errors:
        console.print("❌ Configuration validation failed:", style="red")
        for error in errors:
            console.print(f"  • {error}", style="red")
        sys.exit(1)

    console.print(f"✅ Configuration file {config_file} is valid", style="green")


if __name__ == "__main__":
    cli()
