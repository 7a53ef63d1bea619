from __future__ import annotations

from typing import Any, Dict, Generator, Iterable, Optional
from unittest.mock import AsyncMock, patch

import pytest

from tombo.exceptions import PackageNotFoundError
from tombo.utils.http import HTTPClient
from tombo.utils.logger import disable_logging


def pypi_payload(
    name: str,
    versions: Iterable[str],
    *,
    latest: Optional[str] = None,
    yanked: Iterable[str] = (),
    **info: Any,
) -> Dict[str, Any]:
    """Build a minimal PyPI JSON document.

    Releases get one file each, uploaded one day apart in the order given,
    so the last version is the newest upload.
    """
    yanked = set(yanked)
    releases = {}
    for day, version in enumerate(versions, start=1):
        releases[version] = [
            {
                "upload_time_iso_8601": f"2024-01-{day:02d}T12:00:00Z",
                "yanked": version in yanked,
                "yanked_reason": "Broken release" if version in yanked else None,
            }
        ]
    return {
        "info": {"name": name, "version": latest, "summary": f"The {name} package.", **info},
        "releases": releases,
    }


REQUESTS = pypi_payload(
    "requests",
    ["2.30.0", "2.31.0", "2.32.0", "2.32.1", "2.32.2", "2.32.3", "3.0.0b1"],
    latest="2.32.3",
    yanked=["2.32.1"],
    requires_python=">=3.8",
    author="Kenneth Reitz",
    license="Apache-2.0",
    home_page="https://requests.readthedocs.io",
    project_urls={"Source": "https://github.com/psf/requests"},
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "License :: OSI Approved :: Apache Software License",
        "Programming Language :: Python :: 3",
        "Topic :: Internet :: WWW/HTTP",
    ],
)

RICH = pypi_payload("rich", ["13.6.0", "13.7.0", "13.7.1"], latest="13.7.1")


@pytest.fixture
def fake_index() -> Generator[AsyncMock, None, None]:
    """Serve ``REQUESTS`` and ``RICH`` from a patched HTTPClient.get.

    Any other package answers 404. Tests may add entries to
    ``fake_index.packages``.
    """
    packages: Dict[str, Dict[str, Any]] = {"requests": REQUESTS, "rich": RICH}

    async def get(path: str) -> Dict[str, Any]:
        name = path.strip("/").split("/")[0].lower()
        if name not in packages:
            raise PackageNotFoundError("Package not found", status_code=404)
        return packages[name]

    with patch.object(HTTPClient, "get", new_callable=AsyncMock, side_effect=get) as mock:
        mock.packages = packages
        yield mock


@pytest.fixture(autouse=True)
def _quiet_logging() -> Generator[None, None, None]:
    """Drop handlers the CLI installs so they never outlive a test's streams."""
    yield
    disable_logging()
