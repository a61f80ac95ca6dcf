"""
Bundle Structure Normalizer

Converts whatever layout an extracted bundle arrived in into the canonical
shape ``<root>/<model_folder>/<descriptor>[, <aux_folder>/]``.

Two layouts are recognised:

- flat: the descriptor sits directly in the extraction root. Every root
  entry is moved into a new folder named after the descriptor.
- nested: the descriptor sits somewhere below an immediate subdirectory,
  at most ``MAX_DESCRIPTOR_SEARCH_DEPTH`` directories deep.

Both passes stop at the first match. Ambiguous bundles containing several
descriptors are not rejected; whichever is found first wins.
"""

import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from avatarslots.constants import (
    AUX_FOLDER_NAME,
    AUX_FOLDER_SUFFIXES,
    AUX_IMAGE_EXTENSIONS,
    DESCRIPTOR_SUFFIX,
    MAX_DESCRIPTOR_SEARCH_DEPTH,
)
from avatarslots.exceptions import FileSystemError, NoModelFoundError
from avatarslots.log_utils import logger
from avatarslots.paths import Pathish


@dataclass(frozen=True)
class NormalizedLayout:
    """Result of normalizing one extraction root."""

    asset_folder: str
    """Model folder relative to the extraction root, with forward slashes"""

    descriptor_file: str
    """Descriptor file name inside ``asset_folder``"""

    aux_asset_folder: Optional[str] = None
    """Texture folder name inside ``asset_folder``, if one was detected"""


def is_descriptor_name(name: str) -> bool:
    return name.endswith(DESCRIPTOR_SUFFIX) and len(name) > len(DESCRIPTOR_SUFFIX)


def _sorted_entries(directory: Path) -> List[Path]:
    """
    List a directory's entries in a stable, name-sorted order.

    Raises:
        FileSystemError: If the directory cannot be read.
    """
    try:
        return sorted(directory.iterdir(), key=lambda p: p.name)
    except OSError as e:
        raise FileSystemError(
            "Failed to read directory", path=str(directory), details=str(e)
        ) from e


def find_descriptor(
    directory: Pathish, max_depth: int = MAX_DESCRIPTOR_SEARCH_DEPTH
) -> Optional[Tuple[Path, str]]:
    """
    Search `directory` for a descriptor file, at most `max_depth` levels deep.

    `directory` itself counts as the first level. Within each directory files
    are checked before any subdirectory is entered, and the first hit is
    returned without looking for a better candidate. Unreadable directories
    are skipped.

    Returns:
        Optional[Tuple[Path, str]]: (directory holding the descriptor,
        descriptor file name), or None when nothing is found.
    """
    if max_depth <= 0:
        return None

    directory = Path(directory)
    try:
        entries = sorted(directory.iterdir(), key=lambda p: p.name)
    except OSError as e:
        logger.debug(f"Skipping unreadable directory {directory}: {e}")
        return None

    for entry in entries:
        if entry.is_file() and is_descriptor_name(entry.name):
            return directory, entry.name

    for entry in entries:
        if entry.is_dir():
            found = find_descriptor(entry, max_depth - 1)
            if found is not None:
                return found

    return None


def _has_image(directory: Path) -> bool:
    try:
        return any(
            child.is_file() and child.name.endswith(AUX_IMAGE_EXTENSIONS)
            for child in directory.iterdir()
        )
    except OSError:
        return False


def find_aux_folder(model_dir: Pathish) -> Optional[str]:
    """
    Locate the auxiliary (texture) folder one level inside `model_dir`.

    Checked in order: a size-tag suffix (``.2048``, ``.4096``, ``.1024``), the
    literal ``textures``, then the first subdirectory holding an image file.

    Returns:
        Optional[str]: The folder name, or None when no candidate exists.
    """
    model_dir = Path(model_dir)
    try:
        subdirs = [
            p for p in sorted(model_dir.iterdir(), key=lambda p: p.name) if p.is_dir()
        ]
    except OSError as e:
        logger.debug(f"Cannot scan {model_dir} for textures: {e}")
        return None

    for subdir in subdirs:
        if subdir.name.endswith(AUX_FOLDER_SUFFIXES):
            return subdir.name

    for subdir in subdirs:
        if subdir.name == AUX_FOLDER_NAME:
            return subdir.name

    for subdir in subdirs:
        if _has_image(subdir):
            return subdir.name

    return None


def reorganize_flat_layout(root: Pathish, descriptor_name: str) -> str:
    """
    Move a wrapper-less bundle into a folder named after its descriptor.

    A folder that already exists under the target name is reused as-is, but
    a root entry whose name is already taken by a directory inside it is
    refused rather than nested.

    Returns:
        str: The model folder name.

    Raises:
        FileSystemError: If the folder cannot be created or an entry cannot be moved.
    """
    root = Path(root)
    model_name = descriptor_name[: -len(DESCRIPTOR_SUFFIX)]
    model_folder = root / model_name

    try:
        model_folder.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FileSystemError(
            "Failed to create model folder", path=str(model_folder), details=str(e)
        ) from e

    for entry in _sorted_entries(root):
        if entry.name == model_name:
            continue
        destination = model_folder / entry.name
        if destination.is_dir():
            raise FileSystemError(
                f"Failed to move {entry.name}: destination already exists",
                path=str(destination),
            )
        try:
            shutil.move(os.fspath(entry), os.fspath(destination))
        except (OSError, shutil.Error) as e:
            raise FileSystemError(
                f"Failed to move {entry.name}", path=str(entry), details=str(e)
            ) from e

    logger.debug(f"Reorganized flat bundle into {model_folder}")
    return model_name


def normalize(root: Pathish) -> NormalizedLayout:
    """
    Normalize the bundle extracted at `root` into its canonical layout.

    Returns:
        NormalizedLayout: Model folder, descriptor and optional texture folder.

    Raises:
        NoModelFoundError: If no descriptor exists within the search bounds.
        FileSystemError: If the root cannot be read or reorganized.
    """
    root = Path(root)
    entries = _sorted_entries(root)

    for entry in entries:
        if entry.is_file() and is_descriptor_name(entry.name):
            model_name = reorganize_flat_layout(root, entry.name)
            layout = NormalizedLayout(
                asset_folder=model_name,
                descriptor_file=entry.name,
                aux_asset_folder=find_aux_folder(root / model_name),
            )
            logger.info(f"Detected flat bundle layout: {layout.asset_folder}")
            return layout

    for entry in entries:
        if not entry.is_dir():
            continue
        found = find_descriptor(entry, MAX_DESCRIPTOR_SEARCH_DEPTH)
        if found is None:
            continue
        model_dir, descriptor_name = found
        layout = NormalizedLayout(
            asset_folder=model_dir.relative_to(root).as_posix(),
            descriptor_file=descriptor_name,
            aux_asset_folder=find_aux_folder(model_dir),
        )
        logger.info(f"Detected nested bundle layout: {layout.asset_folder}")
        return layout

    raise NoModelFoundError(str(root))


def contains_descriptor(folder: Pathish) -> bool:
    """
    Return whether `folder` would normalize successfully.

    True when a descriptor sits directly in `folder` or within the search
    depth below one of its immediate subdirectories.
    """
    folder = Path(folder)
    entries = _sorted_entries(folder)
    if any(e.is_file() and is_descriptor_name(e.name) for e in entries):
        return True
    return any(
        e.is_dir() and find_descriptor(e, MAX_DESCRIPTOR_SEARCH_DEPTH) is not None
        for e in entries
    )
