"""PyPI metadata service.

:class:`PyPIService` is the single entry point completion, hover, quick
actions and the CLI use to learn about a package. It combines an
:class:`~tombo.utils.http.HTTPClient` with a
:class:`~tombo.core.cache.PackageCache`, both injected by the caller, and
derives every version list from the raw PyPI JSON document.

Cache keys are namespaced (``pkg:``, ``versions:``, ``info:``,
``connectivity:``) and include the pre-release preference, so the stable
and "include pre-releases" views of a package are cached separately.
Concurrent requests for the same package share one network call.

Typical usage::

    async with PyPIService.from_config(config) as service:
        metadata = await service.get_package_metadata("requests")
        print(metadata.versions[:3], metadata.latest_version)
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from functools import cmp_to_key
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from tombo.config import TomboConfig, has_significant_change
from tombo.core.cache import PackageCache
from tombo.utils.http import HTTPClient, join_url, normalize_index_url
from tombo.utils.logger import get_logger
from tombo.utils.version_utils import compare_versions, is_prerelease, sort_versions
from tombo.exceptions import InvalidResponseError, PyPIError
from tombo.constants import CONNECTIVITY_TTL_SECONDS, DEFAULT_CONCURRENCY
from tombo.models.dependency import normalize_package_name
from tombo.models.metadata import PackageInfo, PackageMetadata, VersionInfo

logger = get_logger("service")

__all__ = ["PyPIService"]

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class PyPIService:
    """Cached access to PyPI package metadata.

    Args:
        http_client: Client bound to the index base URL.
        cache: Cache owned by this service for its lifetime.
        include_pre_releases: Default pre-release preference used when a
            call does not specify one.
    """

    def __init__(
        self,
        http_client: HTTPClient,
        cache: PackageCache[Any],
        *,
        include_pre_releases: bool = False,
    ) -> None:
        self.http_client = http_client
        self.cache = cache
        self.include_pre_releases = include_pre_releases

        self._in_flight: Dict[str, "asyncio.Future[Dict[str, Any]]"] = {}
        self._closed = False
        self._config: Optional[TomboConfig] = None

    @classmethod
    def from_config(cls, config: TomboConfig) -> "PyPIService":
        """Build a service, its HTTP client and its cache from configuration."""
        http_client = HTTPClient(
            config.pypi_index_url,
            timeout=config.request_timeout / 1000,
            retry_attempts=config.retry_attempts,
            retry_delay=config.retry_delay / 1000,
        )
        cache: PackageCache[Any] = PackageCache(
            ttl=config.cache_timeout_minutes * 60,
            max_entries=config.max_cache_size,
            check_period=config.cache_check_period,
        )
        service = cls(http_client, cache, include_pre_releases=config.list_pre_releases)
        service._config = config
        return service

    async def __aenter__(self) -> "PyPIService":
        self.cache.start_sweeper()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    @property
    def base_url(self) -> str:
        return self.http_client.base_url

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    async def get_package_metadata(
        self,
        name: str,
        include_pre_releases: Optional[bool] = None,
    ) -> PackageMetadata:
        """Return the filtered, sorted view of ``name``.

        Args:
            name: Package name in any casing or separator style.
            include_pre_releases: Keep pre-releases in ``versions``;
                ``None`` uses the service default.

        Raises:
            PyPIError: Any fetch failure, tagged with ``name``. The
                subclass is preserved.

        Example::

            >>> meta = await service.get_package_metadata("Django")
            >>> meta.versions[0], meta.latest_version
            ('5.0.6', '5.0.6')
        """
        include = self._resolve_pre(include_pre_releases)
        key = PackageCache.package_key(normalize_package_name(name), include)

        cached = self.cache.get(key)
        if cached is not None:
            return cached

        raw = await self._fetch_raw(name)
        metadata = self._derive_metadata(name, raw, include)
        self.cache.set(key, metadata)
        return metadata

    async def get_package_versions(
        self,
        name: str,
        include_pre_releases: Optional[bool] = None,
    ) -> List[VersionInfo]:
        """Return per-release details, newest upload first.

        Releases without any uploaded file have no date and come last.
        """
        include = self._resolve_pre(include_pre_releases)
        key = PackageCache.versions_key(normalize_package_name(name), include)

        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)

        raw = await self._fetch_raw(name)
        versions = self._derive_versions(name, raw, include)
        self.cache.set(key, tuple(versions))
        return versions

    async def get_package_info(self, name: str) -> PackageInfo:
        """Return descriptive fields (links, authors, license) for ``name``."""
        key = PackageCache.info_key(normalize_package_name(name))

        cached = self.cache.get(key)
        if cached is not None:
            return cached

        raw = await self._fetch_raw(name)
        info = self._derive_info(name, raw)
        self.cache.set(key, info)
        return info

    async def get_latest_version(self, name: str) -> Optional[str]:
        """Return PyPI's ``info.version`` for ``name``."""
        metadata = await self.get_package_metadata(name, include_pre_releases=False)
        return metadata.latest_version

    async def prefetch(
        self,
        names: Iterable[str],
        *,
        include_pre_releases: Optional[bool] = None,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> Dict[str, Union[PackageMetadata, PyPIError]]:
        """Warm the cache for many packages at once.

        A failure for one package does not stop the others; it is returned
        in place of that package's metadata.

        Returns:
            Mapping of each requested name to its metadata or error.
        """
        unique = list(dict.fromkeys(names))
        semaphore = asyncio.Semaphore(max(1, concurrency))

        async def fetch_one(name: str) -> Union[PackageMetadata, PyPIError]:
            async with semaphore:
                try:
                    return await self.get_package_metadata(name, include_pre_releases)
                except PyPIError as exc:
                    logger.debug("Prefetch of %s failed: %s", name, exc)
                    return exc

        results = await asyncio.gather(*(fetch_one(name) for name in unique))
        return dict(zip(unique, results))

    # ------------------------------------------------------------------
    # Connectivity and lifecycle
    # ------------------------------------------------------------------

    async def check_connectivity(self) -> bool:
        """Check the index is reachable; the answer is cached for 30 seconds either way."""
        key = PackageCache.connectivity_key(self.base_url)
        cached = self.cache.get(key)
        if cached is not None:
            return bool(cached)

        reachable = await self.http_client.ping()
        if not reachable:
            logger.warning("Package index %s is not reachable", self.base_url)
        self.cache.set(key, reachable, ttl=CONNECTIVITY_TTL_SECONDS)
        return reachable

    def clear_cache(self) -> None:
        self.cache.clear()

    def update_base_url(self, base_url: str) -> None:
        """Point the service at another index and drop everything cached."""
        self.http_client.update_base_url(base_url)
        self.cache.clear()
        logger.info("Package index changed to %s; cache cleared", self.http_client.base_url)

    def apply_config(self, config: TomboConfig) -> None:
        """Re-derive client and cache settings after a configuration change.

        Only the pre-release default is updated when no significant
        setting changed. A different index URL also clears the cache.
        """
        previous, self._config = self._config, config
        self.include_pre_releases = config.list_pre_releases
        if previous is not None and not has_significant_change(previous, config):
            logger.debug("Configuration change needs no client or cache rebuild")
            return

        self.http_client.configure(
            timeout=config.request_timeout / 1000,
            retry_attempts=config.retry_attempts,
            retry_delay=config.retry_delay / 1000,
        )
        self.cache.reconfigure(
            ttl=config.cache_timeout_minutes * 60,
            max_entries=config.max_cache_size,
        )

        if normalize_index_url(config.pypi_index_url) != self.base_url:
            self.update_base_url(config.pypi_index_url)

    def get_statistics(self) -> Dict[str, Any]:
        """Cache statistics plus the client settings, for diagnostics."""
        return {
            "cache": self.cache.get_statistics().to_dict(),
            "base_url": self.base_url,
            "timeout": self.http_client.timeout,
            "retry_attempts": self.http_client.retry_attempts,
            "in_flight": len(self._in_flight),
        }

    async def close(self) -> None:
        """Release the sweeper and the connection pool. Idempotent."""
        if self._closed:
            return
        self._closed = True

        for future in list(self._in_flight.values()):
            future.cancel()
        self._in_flight.clear()

        self.cache.dispose()
        await self.http_client.close()

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def _resolve_pre(self, include_pre_releases: Optional[bool]) -> bool:
        return self.include_pre_releases if include_pre_releases is None else include_pre_releases

    async def _fetch_raw(self, name: str) -> Dict[str, Any]:
        """GET ``<name>/json``, sharing one request between concurrent callers."""
        key = normalize_package_name(name)

        future = self._in_flight.get(key)
        if future is None:
            future = asyncio.ensure_future(self.http_client.get(join_url("", name.strip(), "json")))
            self._in_flight[key] = future
            future.add_done_callback(lambda done: self._forget(key, done))

        try:
            return await asyncio.shield(future)
        except PyPIError as exc:
            raise exc.with_package(name)

    def _forget(self, key: str, future: "asyncio.Future[Dict[str, Any]]") -> None:
        if self._in_flight.get(key) is future:
            del self._in_flight[key]
        # Mark the exception as retrieved when every waiter was cancelled
        if not future.cancelled():
            future.exception()

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    @staticmethod
    def _split_payload(
        name: str,
        raw: Mapping[str, Any],
    ) -> Tuple[Mapping[str, Any], Mapping[str, Any]]:
        info = raw.get("info")
        releases = raw.get("releases", {})
        if not isinstance(info, Mapping) or not isinstance(releases, Mapping):
            raise InvalidResponseError(
                "Malformed package document: missing 'info' or 'releases'",
                package_name=name,
            )
        return info, releases

    def _derive_metadata(
        self,
        name: str,
        raw: Mapping[str, Any],
        include_pre_releases: bool,
    ) -> PackageMetadata:
        info, releases = self._split_payload(name, raw)

        try:
            pre_releases = frozenset(v for v in releases if is_prerelease(v))
            yanked = frozenset(v for v, files in releases.items() if _any_yanked(files))
            visible = [v for v in releases if include_pre_releases or v not in pre_releases]

            return PackageMetadata(
                name=info.get("name") or name,
                versions=tuple(sort_versions(visible)),
                latest_version=info.get("version") or None,
                summary=info.get("summary") or "",
                classifiers=tuple(info.get("classifiers") or ()),
                requires_python=info.get("requires_python") or None,
                yanked_versions=yanked,
                pre_release_versions=pre_releases,
            )
        except (AttributeError, TypeError) as exc:
            raise InvalidResponseError(
                f"Malformed package document: {exc}",
                package_name=name,
            ) from exc

    def _derive_versions(
        self,
        name: str,
        raw: Mapping[str, Any],
        include_pre_releases: bool,
    ) -> List[VersionInfo]:
        _, releases = self._split_payload(name, raw)

        try:
            infos = [
                _version_info(version, files)
                for version, files in releases.items()
                if include_pre_releases or not is_prerelease(version)
            ]
        except (AttributeError, TypeError) as exc:
            raise InvalidResponseError(
                f"Malformed release list: {exc}",
                package_name=name,
            ) from exc

        # Newest version first among equal dates, then newest date first
        infos.sort(key=cmp_to_key(lambda a, b: compare_versions(a.version, b.version)), reverse=True)
        infos.sort(
            key=lambda v: (v.release_date is not None, v.release_date or _EPOCH),
            reverse=True,
        )
        return infos

    def _derive_info(self, name: str, raw: Mapping[str, Any]) -> PackageInfo:
        info, _ = self._split_payload(name, raw)
        project_urls = info.get("project_urls") or {}
        if not isinstance(project_urls, Mapping):
            project_urls = {}

        return PackageInfo(
            name=info.get("name") or name,
            version=info.get("version") or None,
            summary=info.get("summary") or "",
            package_url=info.get("package_url") or info.get("project_url") or None,
            home_page=info.get("home_page") or None,
            docs_url=info.get("docs_url") or None,
            author=info.get("author") or None,
            maintainer=info.get("maintainer") or None,
            license=info.get("license") or None,
            requires_python=info.get("requires_python") or None,
            classifiers=tuple(info.get("classifiers") or ()),
            project_urls={str(k): str(v) for k, v in project_urls.items()},
        )


# ---------------------------------------------------------------------------
# Release helpers
# ---------------------------------------------------------------------------


def _any_yanked(files: Any) -> bool:
    return any(bool(f.get("yanked")) for f in files or ())


def _parse_upload_time(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _version_info(version: str, files: Any) -> VersionInfo:
    files = list(files or ())
    dates = [
        d
        for d in (_parse_upload_time(f.get("upload_time_iso_8601") or f.get("upload_time")) for f in files)
        if d is not None
    ]
    yanked_file = next((f for f in files if f.get("yanked")), None)
    requires_python = next((f["requires_python"] for f in files if f.get("requires_python")), None)

    return VersionInfo(
        version=version,
        is_pre_release=is_prerelease(version),
        is_yanked=yanked_file is not None,
        yanked_reason=(yanked_file.get("yanked_reason") or None) if yanked_file else None,
        release_date=min(dates) if dates else None,
        requires_python=requires_python,
    )
