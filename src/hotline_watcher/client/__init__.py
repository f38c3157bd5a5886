"""Directory service client."""

from .directory import DirectoryClient

__all__ = ["DirectoryClient"]
