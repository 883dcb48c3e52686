"""Shared fixtures for py-deps-hint tests."""

import json
import os

import httpx
import pytest

from py_deps_hint.cli_config import reset_config
from py_deps_hint.version_service import reset_version_service


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Run every test away from real config files and environment overrides."""
    for key in list(os.environ):
        if key.startswith("PY_DEPS_HINT_"):
            monkeypatch.delenv(key, raising=False)

    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)

    reset_config()
    reset_version_service()
    yield
    reset_config()
    reset_version_service()


@pytest.fixture
def temp_dir(tmp_path):
    """Directory for files written by a test."""
    work = tmp_path / "work"
    work.mkdir()
    return work


@pytest.fixture
def sample_requirements_txt(temp_dir):
    """A requirements.txt with pins, ranges, comments and skipped lines."""
    path = temp_dir / "requirements.txt"
    path.write_text(
        "# web stack\n"
        "flask==2.0.0\n"
        "requests>=2.28.0,<3.0\n"
        "\n"
        "-r base.txt\n"
        "-e git+https://github.com/org/repo.git#egg=repo\n"
        "./local-pkg\n"
        "uvicorn[standard]~=0.20.0\n"
        "click\n"
    )
    return path


@pytest.fixture
def sample_pyproject_toml(temp_dir):
    """A pyproject.toml with main and optional dependencies."""
    path = temp_dir / "pyproject.toml"
    path.write_text(
        "[build-system]\n"
        'requires = ["setuptools>=64"]\n'
        "\n"
        "[project]\n"
        'name = "demo"\n'
        'version = "0.1.0"\n'
        "dependencies = [\n"
        '    "flask==2.0.0",\n'
        '    "requests>=2.28.0",\n'
        "]\n"
        "\n"
        "[project.optional-dependencies]\n"
        'dev = ["pytest>=7.0.0", "black==23.1.0"]\n'
        "docs = [\n"
        '    "sphinx>=5.0",\n'
        "]\n"
        "\n"
        "[tool.black]\n"
        "line-length = 88\n"
    )
    return path


def make_pypi_transport(releases_by_package, summaries=None, calls=None):
    """
    Build an httpx.MockTransport serving the PyPI JSON API.

    Args:
        releases_by_package: Mapping of lower-case package name to versions
        summaries: Optional mapping of package name to info.summary
        calls: Optional list that receives every requested URL path
    """
    summaries = summaries or {}

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request.url.path)

        parts = request.url.path.strip("/").split("/")
        if len(parts) != 3 or parts[0] != "pypi" or parts[2] != "json":
            return httpx.Response(404)

        name = parts[1].lower()
        if name not in releases_by_package:
            return httpx.Response(404, json={"message": "Not Found"})

        body = {
            "info": {"name": name, "summary": summaries.get(name)},
            "releases": {version: [] for version in releases_by_package[name]},
        }
        return httpx.Response(200, content=json.dumps(body))

    return httpx.MockTransport(handler)


@pytest.fixture
def pypi_transport():
    """Factory fixture for mock PyPI transports."""
    return make_pypi_transport


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    """Clock for VersionCache that only moves when a test advances it."""
    return FakeClock()
