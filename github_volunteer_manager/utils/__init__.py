"""Utility modules for shared functionality."""

from .github import build_item_url, normalize_repository_url, split_repository_url
from .locks import KeyedLock

__all__ = [
    "KeyedLock",
    "build_item_url",
    "normalize_repository_url",
    "split_repository_url",
]
