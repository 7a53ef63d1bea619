"""
Centralized constants for tombo.

This module defines immutable configuration values shared by the parser,
the metadata cache, the PyPI client and the CLI. All values are intended
to be treated as read-only.
"""

from typing import Final, FrozenSet, Tuple

# ---------------------------------------------------------------------------
# Project metadata
# ---------------------------------------------------------------------------

#: HTTP User-Agent template used for outbound requests.
USER_AGENT_TEMPLATE: Final[str] = "tombo/{version} (PyPI metadata for dependency manifests)"

# ---------------------------------------------------------------------------
# PyPI endpoints
# ---------------------------------------------------------------------------

#: Public PyPI JSON API root. Package metadata lives at ``<root>/<name>/json``.
DEFAULT_PYPI_URL: Final[str] = "https://pypi.org/pypi"

#: Human-facing project page template used in hover links.
PYPI_PROJECT_URL: Final[str] = "https://pypi.org/project/{package}/"

# ---------------------------------------------------------------------------
# HTTP configuration
# ---------------------------------------------------------------------------

#: Default request timeout in milliseconds.
DEFAULT_REQUEST_TIMEOUT_MS: Final[int] = 10_000

#: Default number of attempts (first try included) for a failed request.
DEFAULT_RETRY_ATTEMPTS: Final[int] = 3

#: Base delay in milliseconds before the first retry.
DEFAULT_RETRY_DELAY_MS: Final[int] = 1_000

#: Upper bound in seconds for a server-provided ``Retry-After`` wait.
MAX_RETRY_AFTER_SECONDS: Final[float] = 60.0

#: Default number of packages fetched concurrently by bulk operations.
DEFAULT_CONCURRENCY: Final[int] = 10

# ---------------------------------------------------------------------------
# Cache configuration
# ---------------------------------------------------------------------------

#: Default metadata freshness window in minutes.
DEFAULT_CACHE_TIMEOUT_MINUTES: Final[int] = 10

#: Default cache capacity (number of entries).
DEFAULT_MAX_CACHE_SIZE: Final[int] = 1_000

#: Interval in seconds between background expiry sweeps.
DEFAULT_CACHE_CHECK_PERIOD: Final[int] = 300

#: TTL in seconds for cached connectivity checks.
CONNECTIVITY_TTL_SECONDS: Final[int] = 30

# ---------------------------------------------------------------------------
# Configuration bounds (inclusive)
# ---------------------------------------------------------------------------

REQUEST_TIMEOUT_RANGE: Final[Tuple[int, int]] = (1_000, 60_000)
CACHE_TIMEOUT_RANGE: Final[Tuple[int, int]] = (1, 1_440)
MAX_CACHE_SIZE_RANGE: Final[Tuple[int, int]] = (10, 10_000)
RETRY_ATTEMPTS_RANGE: Final[Tuple[int, int]] = (1, 10)

# ---------------------------------------------------------------------------
# Manifest syntax
# ---------------------------------------------------------------------------

#: Version operators recognised in constraints, longest first.
VERSION_OPERATORS: Final[Tuple[str, ...]] = (
    "===",
    "~=",
    "==",
    "!=",
    ">=",
    "<=",
    ">",
    "<",
    "^",
    "~",
)

#: Operator inserted when completing a bare package name.
DEFAULT_OPERATOR: Final[str] = "~="

#: Operators offered by the "change constraint" quick actions.
CONSTRAINT_ACTION_OPERATORS: Final[Tuple[str, ...]] = ("==", "~=", ">=", "^")

#: Identifiers that look like package names but never are.
DEFAULT_NAME_DENYLIST: Final[FrozenSet[str]] = frozenset(
    {
        "if",
        "or",
        "and",
        "not",
        "in",
        "is",
        "for",
        "while",
        "def",
        "class",
        "try",
        "except",
        "finally",
        "with",
        "as",
        "import",
        "from",
        "return",
        "pass",
        "break",
        "continue",
        "true",
        "false",
        "none",
        "abc",
        "test",
        "example",
    }
)

#: Poetry / PEP 621 table keys that are not dependencies.
NON_PACKAGE_KEYS: Final[FrozenSet[str]] = frozenset(
    {
        "python",
        "name",
        "version",
        "description",
        "readme",
        "license",
        "authors",
        "maintainers",
        "keywords",
        "classifiers",
        "homepage",
        "repository",
        "documentation",
        "requires-python",
        "dependencies",
        "optional-dependencies",
        "urls",
        "scripts",
        "packages",
        "include",
        "exclude",
        "optional",
        "extras",
        "markers",
        "source",
        "allow-prereleases",
        "git",
        "branch",
        "tag",
        "rev",
        "path",
        "url",
        "develop",
        "platform",
    }
)

#: Prefixes marking a VCS or direct URL requirement.
URL_SCHEMES: Final[Tuple[str, ...]] = (
    "git+",
    "hg+",
    "svn+",
    "bzr+",
    "http://",
    "https://",
    "file://",
    "ftp://",
)

# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------

#: Maximum number of non-latest versions offered by completion.
MAX_COMPLETION_VERSIONS: Final[int] = 25

#: Number of recent versions listed in hover text.
HOVER_RECENT_VERSIONS: Final[int] = 5

#: Number of recent stable versions offered as quick actions.
QUICK_ACTION_VERSIONS: Final[int] = 3

#: Classifier prefixes worth surfacing in hover text.
IMPORTANT_CLASSIFIER_PREFIXES: Final[Tuple[str, ...]] = (
    "Development Status",
    "License",
    "Programming Language :: Python ::",
)

# ---------------------------------------------------------------------------
# Security constraints
# ---------------------------------------------------------------------------

#: Maximum allowed file size (in bytes) when reading manifests.
MAX_FILE_SIZE: Final[int] = 10 * 1024 * 1024  # 10 MB

# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------

#: Timestamp format for verbose logging.
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

#: Default log format (non-verbose).
LOG_DEFAULT_FORMAT: Final[str] = "%(levelname)s: %(message)s"

#: Verbose log format including timestamp and logger name.
LOG_VERBOSE_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
