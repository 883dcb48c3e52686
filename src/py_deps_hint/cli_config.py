"""
Configuration management for py-deps-hint.

Provides configurable settings for version resolution, registry access and
logging, loaded from defaults, an optional config file and environment
variables.
"""

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml
from rich.console import Console

try:
    import yaml

    HAS_YAML = True
except ImportError:
    HAS_YAML = False

console = Console(stderr=True)

DEFAULT_REGISTRY_URL = "https://pypi.org"
PYPROJECT_TOOL_SECTION = "py-deps-hint"


@dataclass
class ResolutionConfig:
    """Version resolution behaviour."""

    enabled: bool = True
    show_prerelease: bool = False
    cache_ttl_minutes: int = 60
    max_concurrent: int = 20


@dataclass
class NetworkConfig:
    """Network and registry configuration."""

    registry_url: str = DEFAULT_REGISTRY_URL
    timeout_seconds: float = 10.0
    user_agent: str = "py-deps-hint/1.0.0"


@dataclass
class LoggingConfig:
    """Logging configuration."""

    log_level: str = "WARNING"
    enable_json: bool = True


@dataclass
class ComprehensiveConfig:
    """Main configuration containing all subsections."""

    resolution: ResolutionConfig = field(default_factory=ResolutionConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_global_config: Optional[ComprehensiveConfig] = None


def validate_config_values(config: ComprehensiveConfig) -> List[str]:
    """
    Validate configuration values and return any errors.

    Args:
        config: Configuration to validate

    Returns:
        List[str]: List of validation errors (empty if valid)
    """
    errors = []

    if config.resolution.cache_ttl_minutes <= 0:
        errors.append("resolution.cache_ttl_minutes must be positive")
    if config.resolution.max_concurrent <= 0:
        errors.append("resolution.max_concurrent must be positive")

    if config.network.timeout_seconds <= 0:
        errors.append("network.timeout_seconds must be positive")
    if not config.network.registry_url.startswith(("http://", "https://")):
        errors.append("network.registry_url must be an http(s) URL")

    if config.logging.log_level.upper() not in {
        "DEBUG",
        "INFO",
        "WARNING",
        "ERROR",
        "CRITICAL",
    }:
        errors.append(f"logging.log_level is not a valid level: {config.logging.log_level}")

    return errors


def load_config_file(config_path: Path) -> Optional[Dict[str, Any]]:
    """Load config from a JSON, YAML or pyproject.toml file."""
    if not config_path.exists():
        return None

    try:
        with open(config_path, encoding="utf-8") as f:
            if config_path.suffix.lower() in [".yaml", ".yml"]:
                if HAS_YAML:
                    return yaml.safe_load(f)
                console.print(
                    "⚠️  PyYAML not installed, skipping YAML config", style="yellow"
                )
                return None
            if config_path.suffix.lower() == ".json":
                return json.load(f)
            if config_path.suffix.lower() == ".toml":
                data = toml.load(f)
                return data.get("tool", {}).get(PYPROJECT_TOOL_SECTION)
    except Exception as e:
        console.print(f"⚠️  Error loading config from {config_path}: {e}", style="yellow")

    return None


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / ".py-deps-hint.json",
        Path.cwd() / ".py-deps-hint.yaml",
        Path.cwd() / ".py-deps-hint.yml",
        Path.home() / ".config" / "py-deps-hint" / "config.json",
        Path.home() / ".config" / "py-deps-hint" / "config.yaml",
    ]

    for location in locations:
        if location.exists():
            return location

    pyproject = Path.cwd() / "pyproject.toml"
    if pyproject.exists() and load_config_file(pyproject):
        return pyproject

    return None


def load_environment_overrides(config: ComprehensiveConfig) -> None:
    """Load environment variable overrides."""

    def get_env_bool(key: str, default: bool) -> bool:
        value = os.environ.get(key, "").lower()
        return value in ["true", "1", "yes", "on"] if value else default

    def get_env_int(key: str) -> Optional[int]:
        try:
            return int(os.environ[key]) if key in os.environ else None
        except ValueError:
            console.print(f"⚠️  Invalid integer value for {key}, using default", style="yellow")
            return None

    def get_env_float(key: str) -> Optional[float]:
        try:
            return float(os.environ[key]) if key in os.environ else None
        except ValueError:
            console.print(f"⚠️  Invalid float value for {key}, using default", style="yellow")
            return None

    config.resolution.enabled = get_env_bool(
        "PY_DEPS_HINT_ENABLED", config.resolution.enabled
    )
    config.resolution.show_prerelease = get_env_bool(
        "PY_DEPS_HINT_SHOW_PRERELEASE", config.resolution.show_prerelease
    )
    if (ttl := get_env_int("PY_DEPS_HINT_CACHE_TTL_MINUTES")) is not None:
        config.resolution.cache_ttl_minutes = ttl
    if (max_concurrent := get_env_int("PY_DEPS_HINT_MAX_CONCURRENT")) is not None:
        config.resolution.max_concurrent = max_concurrent

    if registry_url := os.environ.get("PY_DEPS_HINT_REGISTRY_URL"):
        config.network.registry_url = registry_url
    if (timeout := get_env_float("PY_DEPS_HINT_TIMEOUT")) is not None:
        config.network.timeout_seconds = timeout
    if user_agent := os.environ.get("PY_DEPS_HINT_USER_AGENT"):
        config.network.user_agent = user_agent

    if log_level := os.environ.get("PY_DEPS_HINT_LOG_LEVEL"):
        config.logging.log_level = log_level.upper()


def apply_config_section(
    config: Any, section_data: Dict[str, Any], section_name: str
) -> None:
    """Apply configuration from dictionary to config section."""
    for key, value in section_data.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            console.print(f"⚠️  Unknown config key in {section_name}: {key}", style="yellow")


def apply_file_config(config: ComprehensiveConfig, file_config: Dict[str, Any]) -> None:
    """Apply every known section of a loaded config file."""
    for section_name in ("resolution", "network", "logging"):
        if isinstance(file_config.get(section_name), dict):
            apply_config_section(
                getattr(config, section_name), file_config[section_name], section_name
            )


def load_config(config_path: Optional[Path] = None) -> ComprehensiveConfig:
    """Load configuration from file and environment."""
    global _global_config

    if _global_config is not None and config_path is None:
        return _global_config

    config = ComprehensiveConfig()

    config_file = config_path or find_config_file()
    if config_file:
        file_config = load_config_file(config_file)
        if file_config:
            apply_file_config(config, file_config)

    load_environment_overrides(config)

    validation_errors = validate_config_values(config)
    if validation_errors:
        console.print("⚠️  Configuration validation errors:", style="red")
        for error in validation_errors:
            console.print(f"  • {error}", style="red")

    _global_config = config
    return config


def get_config() -> ComprehensiveConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _global_config
    _global_config = None


def create_sample_config() -> str:
    """Generate a sample JSON configuration."""
    return json.dumps(ComprehensiveConfig().to_dict(), indent=2)
