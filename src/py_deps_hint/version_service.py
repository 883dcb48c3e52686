"""
Version service coordinating the cache, the registry client and the resolver.

This is the integration point used by the command-line host: given a package
name and an optional specifier it returns either a definite version or a
classified reason for failure, with caching transparent to the caller.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .cache_manager import VersionCache
from .cli_config import get_config
from .dependency import Dependency
from .error_handling import log_network_error
from .registry_clients import FetchResult, PyPIClient
from .structured_logging import log_version_resolved
from .updates import clean_specifier
from .versioning import resolve

ClientFactory = Callable[[Optional[str]], PyPIClient]


class VersionError(Enum):
    """Why no version could be reported for a package."""

    NOT_FOUND = "not-found"
    NO_COMPATIBLE_VERSION = "no-compatible-version"
    FETCH_ERROR = "fetch-error"


@dataclass(frozen=True)
class VersionInfo:
    """Latest compatible version of a package, or the reason there is none."""

    package_name: str
    latest_compatible: Optional[str] = None
    error: Optional[VersionError] = None


@dataclass(frozen=True)
class DependencyVersions:
    """Compatible and unconstrained latest versions for one dependency."""

    dependency: Dependency
    compatible: VersionInfo
    latest: VersionInfo


class VersionService:
    """
    Resolves the newest published version of packages against specifiers.

    Features:
    - Cache checked before every fetch, written only on successful fetches
    - Concurrent lookups of the same package share one in-flight fetch
    - Bounded concurrency for bulk lookups
    """

    def __init__(
        self,
        cache: Optional[VersionCache] = None,
        client_factory: Optional[ClientFactory] = None,
        registry_base_url: Optional[str] = None,
    ):
        """
        Initialize the service.

        Args:
            cache: Version cache to use (a new one is created if omitted)
            client_factory: Builds a registry client for a base URL
            registry_base_url: Default registry base URL (defaults to config)
        """
        self.cache = cache if cache is not None else VersionCache()
        self._client_factory = client_factory or (
            lambda base_url: PyPIClient(registry_base_url=base_url)
        )
        self.registry_base_url = registry_base_url
        self._in_flight: Dict[Tuple[str, Optional[str]], asyncio.Task] = {}

    async def _fetch(self, package_name: str, registry_base_url: Optional[str]) -> FetchResult:
        try:
            async with self._client_factory(registry_base_url) as client:
                result = await client.fetch_versions(package_name)
        except Exception as e:
            log_network_error(
                f"Unexpected error fetching {package_name}: {e}",
                "version_service",
                "_fetch",
                url=registry_base_url,
                exception=e,
            )
            return FetchResult(success=False, package_name=package_name, error="fetch-error")

        if result.success:
            self.cache.set(package_name, result.versions)
        return result

    async def _fetch_shared(
        self, package_name: str, registry_base_url: Optional[str]
    ) -> FetchResult:
        key = (package_name.lower(), registry_base_url)
        task = self._in_flight.get(key)

        if task is None:
            task = asyncio.ensure_future(self._fetch(package_name, registry_base_url))
            self._in_flight[key] = task

            def _forget(done: asyncio.Task) -> None:
                if self._in_flight.get(key) is done:
                    del self._in_flight[key]

            task.add_done_callback(_forget)

        # A cancelled waiter must not cancel the fetch other callers share
        return await asyncio.shield(task)

    async def get_latest_compatible(
        self,
        package_name: str,
        specifier: str = "",
        include_prerelease: bool = False,
        ttl_minutes: float = 60,
        registry_base_url: Optional[str] = None,
    ) -> VersionInfo:
        """
        Get the newest version of a package matching a specifier.

        Args:
            package_name: Package name as written in the manifest
            specifier: Specifier such as ``>=1.0,<2``; empty means latest
            include_prerelease: Whether pre-releases may be reported
            ttl_minutes: Maximum age of cached version lists
            registry_base_url: Registry to query instead of the default

        Returns:
            VersionInfo with ``latest_compatible`` set, or with ``error`` set
            to not-found, fetch-error or no-compatible-version
        """
        base_url = registry_base_url or self.registry_base_url
        versions = self.cache.get(package_name, ttl_minutes)

        if versions is None:
            result = await self._fetch_shared(package_name, base_url)
            if not result.success:
                error = (
                    VersionError.NOT_FOUND
                    if result.error == "not-found"
                    else VersionError.FETCH_ERROR
                )
                log_version_resolved(package_name, specifier, None, error.value)
                return VersionInfo(package_name=package_name, error=error)
            versions = result.versions

        resolved = resolve(versions, specifier, include_prerelease)
        if not resolved.found:
            log_version_resolved(
                package_name, specifier, None, VersionError.NO_COMPATIBLE_VERSION.value
            )
            return VersionInfo(
                package_name=package_name, error=VersionError.NO_COMPATIBLE_VERSION
            )

        log_version_resolved(package_name, specifier, resolved.version)
        return VersionInfo(package_name=package_name, latest_compatible=resolved.version)

    async def get_latest_versions(
        self,
        deps: Sequence[Dependency],
        include_prerelease: Optional[bool] = None,
        ttl_minutes: Optional[float] = None,
        max_concurrent: Optional[int] = None,
        registry_base_url: Optional[str] = None,
        constrained: bool = True,
    ) -> List[VersionInfo]:
        """
        Resolve the compatible version of every dependency concurrently.

        Declared specifiers are cleaned of comments, markers and quotes first.
        Unset options fall back to the resolution config.

        Args:
            constrained: If False, ignore declared specifiers and resolve the
                latest version of each package

        Returns:
            One VersionInfo per dependency, in input order
        """
        config = get_config().resolution
        prerelease = config.show_prerelease if include_prerelease is None else include_prerelease
        ttl = config.cache_ttl_minutes if ttl_minutes is None else ttl_minutes
        semaphore = asyncio.Semaphore(max_concurrent or config.max_concurrent)

        async def lookup(dep: Dependency) -> VersionInfo:
            async with semaphore:
                return await self.get_latest_compatible(
                    dep.package_name,
                    clean_specifier(dep.version_specifier) if constrained else "",
                    prerelease,
                    ttl,
                    registry_base_url,
                )

        return list(await asyncio.gather(*(lookup(dep) for dep in deps)))

    async def check_dependencies(
        self,
        deps: Sequence[Dependency],
        include_prerelease: Optional[bool] = None,
        ttl_minutes: Optional[float] = None,
        max_concurrent: Optional[int] = None,
        registry_base_url: Optional[str] = None,
    ) -> List[DependencyVersions]:
        """
        Resolve both the compatible and the unconstrained latest version of
        every dependency. The second lookup is served from the cache.
        """
        config = get_config().resolution
        prerelease = config.show_prerelease if include_prerelease is None else include_prerelease
        ttl = config.cache_ttl_minutes if ttl_minutes is None else ttl_minutes
        semaphore = asyncio.Semaphore(max_concurrent or config.max_concurrent)

        async def lookup(dep: Dependency) -> DependencyVersions:
            async with semaphore:
                compatible = await self.get_latest_compatible(
                    dep.package_name,
                    clean_specifier(dep.version_specifier),
                    prerelease,
                    ttl,
                    registry_base_url,
                )
                latest = await self.get_latest_compatible(
                    dep.package_name, "", prerelease, ttl, registry_base_url
                )
            return DependencyVersions(dependency=dep, compatible=compatible, latest=latest)

        return list(await asyncio.gather(*(lookup(dep) for dep in deps)))

    def shutdown(self) -> None:
        """Clear the cache at the end of a session."""
        for task in self._in_flight.values():
            task.cancel()
        self._in_flight.clear()
        self.cache.clear()


_global_version_service: Optional[VersionService] = None


def get_version_service() -> VersionService:
    """
    Get the session-wide version service.

    Returns:
        Global VersionService instance
    """
    global _global_version_service

    if _global_version_service is None:
        _global_version_service = VersionService()

    return _global_version_service


def reset_version_service() -> None:
    """Reset the session-wide version service (useful for testing)."""
    global _global_version_service

    if _global_version_service:
        _global_version_service.shutdown()
        _global_version_service = None
