"""Directories the scope walker skips, in two tiers.

Tier 0 (HARDCODED_DIRS): Never traversed, not user-configurable.
    - VCS internals, Coverplane data directories

Tier 1 (DEFAULT_PRUNABLE_DIRS): Skipped by default. A collect_from pattern
    that names the directory explicitly (e.g. "vendor/lib/**") opts it in.
"""

from __future__ import annotations

HARDCODED_DIRS: frozenset[str] = frozenset(
    (
        # VCS internals
        ".git",
        ".svn",
        ".hg",
        ".bzr",
        # Coverplane data
        ".coverplane",
    )
)

DEFAULT_PRUNABLE_DIRS: frozenset[str] = frozenset(
    (
        # JavaScript/Node.js
        "node_modules",
        "bower_components",
        ".next",
        ".nuxt",
        ".turbo",
        # Python
        "venv",
        ".venv",
        ".virtualenv",
        "__pycache__",
        ".pytest_cache",
        ".mypy_cache",
        ".ruff_cache",
        ".tox",
        ".nox",
        ".eggs",
        "site-packages",
        "htmlcov",
        # Generic build/output directories
        "dist",
        "build",
        "coverage",
        ".coverage",
        ".nyc_output",
        # IDE/Editor directories
        ".idea",
        ".vscode",
        # Misc
        ".cache",
        "vendor",
    )
)


def is_hardcoded_dir(dirname: str) -> bool:
    """Check if directory is hardcoded (never traversable, not overridable)."""
    return dirname in HARDCODED_DIRS


def is_default_prunable(dirname: str) -> bool:
    """Check if directory is prunable by default (but patterns can opt in)."""
    return dirname in DEFAULT_PRUNABLE_DIRS


__all__ = [
    "HARDCODED_DIRS",
    "DEFAULT_PRUNABLE_DIRS",
    "is_hardcoded_dir",
    "is_default_prunable",
]
