"""
Model Bundle Handling

Core Components:
- fetcher: HTTP retrieval of bundle archives
- files: Archive extraction and filesystem helpers
- normalizer: Canonical layout detection for extracted bundles
"""

from .fetcher import BundleFetcher
from .files import copy_tree, ensure_directory, extract_archive, remove_tree
from .normalizer import (
    NormalizedLayout,
    contains_descriptor,
    find_aux_folder,
    find_descriptor,
    normalize,
)

__all__ = [
    # Retrieval
    "BundleFetcher",
    # Filesystem
    "extract_archive",
    "remove_tree",
    "ensure_directory",
    "copy_tree",
    # Layout
    "NormalizedLayout",
    "normalize",
    "find_descriptor",
    "find_aux_folder",
    "contains_descriptor",
]
