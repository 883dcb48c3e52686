"""
Registry client for the PyPI JSON API.

Fetches the list of published versions for a package. Every outcome is
returned as a ``FetchResult``; network and decoding failures never escape as
exceptions.
"""

import time
from dataclasses import dataclass, field
from typing import Literal, Optional, Tuple
from urllib.parse import quote

import httpx
from httpx import RequestError

from .cli_config import DEFAULT_REGISTRY_URL, get_config
from .error_handling import log_network_error
from .structured_logging import log_registry_fetch

FetchError = Literal["not-found", "fetch-error", "parse-error"]


@dataclass(frozen=True)
class FetchResult:
    """Result of fetching a package's version list."""

    success: bool
    package_name: str
    versions: Tuple[str, ...] = field(default_factory=tuple)
    fetched_at: Optional[float] = None
    error: Optional[FetchError] = None
    summary: Optional[str] = None


def _base_url(registry_base_url: Optional[str]) -> str:
    return (registry_base_url or DEFAULT_REGISTRY_URL).rstrip("/")


def get_package_json_url(package_name: str, registry_base_url: Optional[str] = None) -> str:
    """URL of the JSON metadata document for a package."""
    return f"{_base_url(registry_base_url)}/pypi/{quote(package_name, safe='')}/json"


def get_package_url(package_name: str, registry_base_url: Optional[str] = None) -> str:
    """Browser URL of a package's project page."""
    return f"{_base_url(registry_base_url)}/project/{quote(package_name, safe='')}/"


class PyPIClient:
    """
    Client for the PyPI JSON API.

    Uses the async context manager pattern for ``httpx.AsyncClient`` resource
    management: the HTTP client is created on entry and closed on exit.
    """

    def __init__(
        self,
        registry_base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        config = get_config()

        self.base_url = _base_url(registry_base_url or config.network.registry_url)
        self.timeout = timeout if timeout is not None else config.network.timeout_seconds
        self.transport = transport
        self.client: Optional[httpx.AsyncClient] = None

        self._headers = {
            "User-Agent": user_agent or config.network.user_agent,
            "Accept": "application/json",
        }

    async def __aenter__(self):
        """Initialize the HTTP client when entering the context."""
        self.client = httpx.AsyncClient(
            timeout=self.timeout, headers=self._headers, transport=self.transport
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Clean up the HTTP client when exiting the context."""
        if self.client:
            await self.client.aclose()
            self.client = None

    def _failure(
        self, package_name: str, error: FetchError, url: str, started: float
    ) -> FetchResult:
        log_registry_fetch(
            package_name,
            url,
            error,
            response_time_ms=round((time.time() - started) * 1000, 1),
        )
        return FetchResult(success=False, package_name=package_name, error=error)

    async def fetch_versions(self, package_name: str) -> FetchResult:
        """
        Fetch all published versions of a package.

        Args:
            package_name: Package name as written in the manifest

        Returns:
            FetchResult with the version list, or an error of ``not-found``
            (HTTP 404), ``fetch-error`` (other statuses, network failures and
            timeouts) or ``parse-error`` (undecodable body or missing
            ``releases`` object)
        """
        if self.client is None:
            raise RuntimeError("HTTP client not initialized - use within async context manager")

        url = get_package_json_url(package_name, self.base_url)
        started = time.time()

        try:
            response = await self.client.get(url)
        except RequestError as e:
            log_network_error(
                f"Request for {package_name} failed: {e}",
                "registry_clients",
                "fetch_versions",
                url=url,
                exception=e,
            )
            return self._failure(package_name, "fetch-error", url, started)

        if response.status_code == 404:
            return self._failure(package_name, "not-found", url, started)

        if response.status_code != 200:
            log_network_error(
                f"Registry returned HTTP {response.status_code} for {package_name}",
                "registry_clients",
                "fetch_versions",
                url=url,
                status_code=response.status_code,
            )
            return self._failure(package_name, "fetch-error", url, started)

        try:
            data = response.json()
        except ValueError:
            return self._failure(package_name, "parse-error", url, started)

        releases = data.get("releases") if isinstance(data, dict) else None
        if not isinstance(releases, dict):
            return self._failure(package_name, "parse-error", url, started)

        info = data.get("info")
        summary = info.get("summary") if isinstance(info, dict) else None

        versions = tuple(releases.keys())
        log_registry_fetch(
            package_name,
            url,
            "ok",
            version_count=len(versions),
            response_time_ms=round((time.time() - started) * 1000, 1),
        )

        return FetchResult(
            success=True,
            package_name=package_name,
            versions=versions,
            fetched_at=time.time(),
            summary=summary or None,
        )


async def fetch_versions(
    package_name: str,
    registry_base_url: Optional[str] = None,
    timeout: Optional[float] = None,
) -> FetchResult:
    """Fetch a package's versions with a one-shot client."""
    async with PyPIClient(registry_base_url=registry_base_url, timeout=timeout) as client:
        return await client.fetch_versions(package_name)
