"""Configuration constants.

Values here are not user-configurable: file names, format versions and
defaults that other layers reference.

For configurable values, see models.py.
"""

# =============================================================================
# Defaults for CoverageConfig
# =============================================================================

DEFAULT_REPORTERS: tuple[str, ...] = ("json", "text", "lcov")
"""Reporters used when none are configured."""

DEFAULT_COVERAGE_DIRECTORY = "coverage"
"""Output directory for file reporters, relative to the project root."""

DEFAULT_CACHE_DIRECTORY = ".coverplane/cache"
"""Instrumentation cache location, relative to the project root."""

DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = (
    "**/node_modules/**",
    "**/.venv/**",
    "**/__pycache__/**",
)
"""Glob patterns excluded from coverage unless overridden."""

# =============================================================================
# On-disk formats
# =============================================================================

PARTIAL_FORMAT_VERSION = 1
"""Version of the worker partial coverage document."""

CACHE_FORMAT_VERSION = 1
"""Version of a persisted cache entry. Entries of other versions are misses."""

CONFIG_DIR_NAME = ".coverplane"
"""Per-project directory holding config.yaml and the default cache."""

# =============================================================================
# Construct categories
# =============================================================================

CATEGORIES: tuple[str, ...] = ("statements", "branches", "functions", "lines")
"""Construct categories, in report column order."""
