"""
CLI interface tests for py-deps-hint.
Tests the command-line interface and main entry points.
"""

import json

import pytest
from click.testing import CliRunner
from unittest.mock import AsyncMock, MagicMock, patch

from py_deps_hint.cache_manager import VersionCache
from py_deps_hint.main import cli
from py_deps_hint.parsers import parse_dependencies
from py_deps_hint.registry_clients import PyPIClient
from py_deps_hint.reporting import build_json_results, dependency_status, update_type_of
from py_deps_hint.structured_logging import (
    StructuredFormatter,
    configure_logging,
    get_registry_logger,
)
from py_deps_hint.version_service import (
    DependencyVersions,
    VersionError,
    VersionInfo,
    VersionService,
)

RELEASES = {
    "flask": ["2.0.0", "2.3.3", "3.0.0"],
    "requests": ["2.28.0", "2.31.0"],
    "uvicorn": ["0.20.0", "0.20.1", "0.23.0"],
    "click": ["8.1.7"],
}


@pytest.fixture
def mock_registry(pypi_transport):
    """Route the session version service to a mock PyPI."""
    transport = pypi_transport(RELEASES)
    service = VersionService(
        cache=VersionCache(),
        client_factory=lambda base_url: PyPIClient(
            registry_base_url=base_url, transport=transport
        ),
    )
    with patch("py_deps_hint.main.get_version_service", return_value=service):
        yield service


class TestCLIBasics:
    """Test basic CLI functionality."""

    def test_cli_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "py-deps-hint" in result.output.lower()

    def test_cli_version(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "1.0.0" in result.output

    def test_info_command(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["info"])

        assert result.exit_code == 0
        assert "PY_DEPS_HINT_REGISTRY_URL" in result.output


class TestCheckCommand:
    """Test the check command."""

    def test_check_requirements_json(self, mock_registry, sample_requirements_txt):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["check", str(sample_requirements_txt), "--output-format", "json"]
        )

        assert result.exit_code == 0
        data = json.loads(result.output)
        by_name = {d["package"]: d for d in data["dependencies"]}

        assert data["total_dependencies"] == 4
        assert by_name["flask"]["compatible"]["version"] == "2.0.0"
        assert by_name["flask"]["latest"]["version"] == "3.0.0"
        assert by_name["flask"]["update_type"] == "major"
        assert by_name["flask"]["status"] == "outdated"
        assert by_name["requests"]["compatible"]["version"] == "2.31.0"
        assert by_name["uvicorn"]["compatible"]["version"] == "0.20.1"
        assert by_name["click"]["status"] == "up-to-date"

    def test_check_pyproject_console(self, mock_registry, sample_pyproject_toml):
        runner = CliRunner()
        result = runner.invoke(cli, ["check", str(sample_pyproject_toml)])

        assert result.exit_code == 0
        assert "flask" in result.output
        assert "sphinx" in result.output

    def test_check_reports_missing_packages(self, mock_registry, temp_dir):
        path = temp_dir / "requirements.txt"
        path.write_text("no-such-package==1.0\n")

        runner = CliRunner()
        result = runner.invoke(cli, ["check", str(path), "--output-format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["dependencies"][0]["status"] == "not-found"
        assert data["summary"]["errors"] == 1

    def test_check_options_are_forwarded(self, sample_requirements_txt):
        service = MagicMock()
        service.check_dependencies = AsyncMock(return_value=[])

        with patch("py_deps_hint.main.get_version_service", return_value=service):
            runner = CliRunner()
            result = runner.invoke(
                cli,
                [
                    "check",
                    str(sample_requirements_txt),
                    "--prerelease",
                    "--ttl",
                    "5",
                    "--registry-url",
                    "https://mirror.example.org",
                ],
            )

        assert result.exit_code == 0
        kwargs = service.check_dependencies.await_args.kwargs
        assert kwargs["include_prerelease"] is True
        assert kwargs["ttl_minutes"] == 5
        assert kwargs["registry_base_url"] == "https://mirror.example.org"

    def test_check_nonexistent_file(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["check", "missing-requirements.txt"])

        assert result.exit_code != 0

    def test_check_unsupported_file(self, temp_dir):
        path = temp_dir / "notes.md"
        path.write_text("just some notes\n")

        runner = CliRunner()
        result = runner.invoke(cli, ["check", str(path)])

        assert result.exit_code == 1

    def test_check_invalid_ttl(self, sample_requirements_txt):
        runner = CliRunner()
        result = runner.invoke(cli, ["check", str(sample_requirements_txt), "--ttl", "0"])

        assert result.exit_code == 1

    def test_check_zero_ttl_from_environment(self, sample_requirements_txt, monkeypatch):
        monkeypatch.setenv("PY_DEPS_HINT_CACHE_TTL_MINUTES", "0")

        runner = CliRunner()
        result = runner.invoke(cli, ["check", str(sample_requirements_txt)])

        assert result.exit_code == 1

    def test_check_disabled(self, sample_requirements_txt, monkeypatch):
        monkeypatch.setenv("PY_DEPS_HINT_ENABLED", "false")

        runner = CliRunner()
        result = runner.invoke(cli, ["check", str(sample_requirements_txt)])

        assert result.exit_code == 0
        assert "disabled" in result.output


class TestUpdateCommand:
    """Test the update command."""

    def test_dry_run_does_not_write(self, mock_registry, temp_dir):
        path = temp_dir / "requirements.txt"
        before = "flask==2.0.0\nrequests>=2.28.0\n"
        path.write_text(before)

        runner = CliRunner()
        result = runner.invoke(cli, ["update", str(path), "--dry-run"])

        assert result.exit_code == 0
        assert path.read_text() == before

    def test_safe_only(self, mock_registry, temp_dir):
        path = temp_dir / "requirements.txt"
        path.write_text("flask==2.0.0\nrequests>=2.28.0\n")

        runner = CliRunner()
        result = runner.invoke(cli, ["update", str(path), "--safe-only"])

        assert result.exit_code == 0
        assert path.read_text() == "flask==2.0.0\nrequests>=2.31.0\n"

    def test_yes_applies_major_updates(self, mock_registry, temp_dir):
        path = temp_dir / "requirements.txt"
        path.write_text("flask==2.0.0\nrequests>=2.28.0\n")

        runner = CliRunner()
        result = runner.invoke(cli, ["update", str(path), "--yes"])

        assert result.exit_code == 0
        assert path.read_text() == "flask==3.0.0\nrequests>=2.31.0\n"

    def test_confirmation_declined(self, mock_registry, temp_dir):
        path = temp_dir / "requirements.txt"
        path.write_text("flask==2.0.0\nrequests>=2.28.0\n")

        runner = CliRunner()
        result = runner.invoke(cli, ["update", str(path)], input="n\n")

        assert result.exit_code == 0
        assert path.read_text() == "flask==2.0.0\nrequests>=2.31.0\n"

    def test_confirmation_accepted(self, mock_registry, temp_dir):
        path = temp_dir / "requirements.txt"
        path.write_text("flask==2.0.0\n")

        runner = CliRunner()
        result = runner.invoke(cli, ["update", str(path)], input="y\n")

        assert result.exit_code == 0
        assert path.read_text() == "flask==3.0.0\n"

    def test_pyproject_update(self, mock_registry, sample_pyproject_toml):
        runner = CliRunner()
        result = runner.invoke(cli, ["update", str(sample_pyproject_toml), "--safe-only"])

        assert result.exit_code == 0
        content = sample_pyproject_toml.read_text()
        assert '"requests>=2.31.0",' in content
        assert '"flask==2.0.0",' in content

    def test_yes_and_safe_only_conflict(self, sample_requirements_txt):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["update", str(sample_requirements_txt), "--yes", "--safe-only"]
        )

        assert result.exit_code == 2


class TestConfigCommands:
    """Test configuration management commands."""

    def test_config_init(self, temp_dir):
        config_file = temp_dir / "test-config.json"

        runner = CliRunner()
        result = runner.invoke(cli, ["config", "init", "--path", str(config_file)])

        assert result.exit_code == 0
        config_data = json.loads(config_file.read_text())
        assert config_data["resolution"]["cache_ttl_minutes"] == 60

    def test_config_init_does_not_overwrite(self, temp_dir):
        config_file = temp_dir / "test-config.json"
        config_file.write_text("{}")

        runner = CliRunner()
        result = runner.invoke(cli, ["config", "init", "--path", str(config_file)])

        assert result.exit_code == 0
        assert config_file.read_text() == "{}"

    def test_config_show(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "show"])

        assert result.exit_code == 0
        assert "https://pypi.org" in result.output

    def test_plain_event_logs_from_config_file(self, tmp_path):
        (tmp_path / ".py-deps-hint.json").write_text(
            json.dumps({"logging": {"enable_json": False}})
        )

        runner = CliRunner()
        try:
            result = runner.invoke(cli, ["config", "show"])
            formatter = get_registry_logger().logger.handlers[0].formatter
        finally:
            configure_logging()

        assert result.exit_code == 0
        assert "JSON Events: False" in result.output
        assert not isinstance(formatter, StructuredFormatter)

    def test_config_validate_valid_file(self, temp_dir):
        config_file = temp_dir / "valid-config.json"
        config_file.write_text(json.dumps({"resolution": {"max_concurrent": 5}}))

        runner = CliRunner()
        result = runner.invoke(cli, ["config", "validate", str(config_file)])

        assert result.exit_code == 0
        assert "valid" in result.output.lower()

    def test_config_validate_bad_values(self, temp_dir):
        config_file = temp_dir / "bad-config.json"
        config_file.write_text(json.dumps({"network": {"timeout_seconds": -1}}))

        runner = CliRunner()
        result = runner.invoke(cli, ["config", "validate", str(config_file)])

        assert result.exit_code == 1

    def test_config_validate_invalid_file(self, temp_dir):
        config_file = temp_dir / "invalid-config.json"
        config_file.write_text("invalid json content")

        runner = CliRunner()
        result = runner.invoke(cli, ["config", "validate", str(config_file)])

        assert result.exit_code == 1


class TestReporting:
    """Test status and JSON report building."""

    def test_status_for_errors_and_unpinned(self):
        dep = parse_dependencies("requirements.txt", "click\n")[0]
        latest = VersionInfo("click", "8.1.7")

        assert dependency_status(DependencyVersions(dep, latest, latest)) == "up-to-date"
        failed = VersionInfo("click", error=VersionError.FETCH_ERROR)
        assert dependency_status(DependencyVersions(dep, failed, failed)) == "fetch-error"

    def test_json_results(self):
        dep = parse_dependencies("requirements.txt", "flask==2.0.0\n")[0]
        report = DependencyVersions(
            dep,
            VersionInfo("flask", "2.0.0"),
            VersionInfo("flask", "2.3.3"),
        )

        data = build_json_results([report], "requirements.txt", 12)

        assert data["check_duration_ms"] == 12
        assert data["summary"]["outdated"] == 1
        assert data["dependencies"][0]["line"] == 1
        assert data["dependencies"][0]["update_type"] == "minor"

    def test_declared_version_newer_than_latest_is_up_to_date(self):
        dep = parse_dependencies("requirements.txt", "flask==2.0.0.post1\n")[0]
        latest = VersionInfo("flask", "2.0.0")
        report = DependencyVersions(dep, latest, latest)

        assert dependency_status(report) == "up-to-date"
        assert update_type_of(report) is None
