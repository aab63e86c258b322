"""Schema bootstrap for the queue engine tables."""

from .runner import VERSIONS_DIR, MigrationRunner

__all__ = ["MigrationRunner", "VERSIONS_DIR"]
