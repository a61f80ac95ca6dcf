"""
File Operations for the Bundle Subsystem

This module provides archive extraction, atomic JSON writes and the
directory wipe/copy helpers used while provisioning a slot.
"""

import io
import json
import os
import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import Any, Callable, List

from avatarslots.exceptions import ExtractionError, FileSystemError
from avatarslots.log_utils import logger
from avatarslots.paths import Pathish


def _is_within_base(real_base_dir: str, candidate: str) -> bool:
    """
    Determine whether the candidate path resides within the given base directory.

    Returns:
        True if the candidate path is inside `real_base_dir`, False otherwise.
    """
    try:
        return os.path.commonpath([real_base_dir, candidate]) == real_base_dir
    except ValueError:
        return False


def _is_safe_archive_member(member_name: str) -> bool:
    """
    Determine whether an archive member name is safe to extract.

    Returns:
        `True` if the member name contains no absolute paths, parent-directory
        references, or null bytes, `False` otherwise.
    """
    if not member_name or member_name.startswith(("/", "\\")):
        return False
    if "\x00" in member_name:
        return False
    normalized = os.path.normpath(member_name)
    if os.path.isabs(normalized):
        return False
    if normalized == "..":
        return False
    if normalized.startswith(f"..{os.sep}"):
        return False
    if os.altsep and normalized.startswith(f"..{os.altsep}"):
        return False
    return True


def safe_extract_path(extract_dir: Pathish, member_name: str) -> str:
    """
    Resolve a safe absolute extraction path and prevent directory traversal.

    Parameters:
        extract_dir: Base directory intended for extraction.
        member_name: Member path from the archive to be extracted.

    Returns:
        str: Absolute, normalized path inside extract_dir.

    Raises:
        ValueError: If the resolved path is outside extract_dir.
    """
    real_extract_dir = os.path.realpath(extract_dir)
    prospective_path = os.path.join(real_extract_dir, member_name)
    normalized_path = os.path.realpath(prospective_path)

    if not _is_within_base(real_extract_dir, normalized_path):
        raise ValueError(
            f"Unsafe extraction path '{member_name}' is outside base '{extract_dir}'"
        )

    return normalized_path


def extract_archive(payload: bytes, extract_dir: Pathish) -> List[Path]:
    """
    Extract every entry of a ZIP payload into `extract_dir`, in archive order.

    Directory-only entries (trailing separator) are created as directories;
    intermediate directories are created for file entries. Extraction is not
    atomic: on failure, whatever was already written stays on disk.

    Parameters:
        payload: Raw bytes of the ZIP archive.
        extract_dir: Destination directory; created if missing.

    Returns:
        List[Path]: Paths of the files written, in archive order.

    Raises:
        ExtractionError: If the archive is malformed, a member would escape
            the destination, or the destination cannot be written.
    """
    dest = Path(extract_dir)
    extracted: List[Path] = []

    try:
        dest.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(io.BytesIO(payload), "r") as zip_ref:
            for file_info in zip_ref.infolist():
                member_name = file_info.filename
                if not _is_safe_archive_member(member_name):
                    raise ExtractionError(
                        f"Unsafe archive member {member_name!r}",
                        archive_path=str(dest),
                        details="possible path traversal",
                    )
                try:
                    target = safe_extract_path(dest, member_name)
                except ValueError as e:
                    raise ExtractionError(
                        f"Unsafe archive member {member_name!r}",
                        archive_path=str(dest),
                        details=str(e),
                    ) from e

                if file_info.is_dir():
                    os.makedirs(target, exist_ok=True)
                    continue

                os.makedirs(os.path.dirname(target), exist_ok=True)
                with zip_ref.open(file_info) as source, open(target, "wb") as out:
                    shutil.copyfileobj(source, out)
                extracted.append(Path(target))
                logger.debug(f"Extracted {member_name} to {target}")
    except (zipfile.BadZipFile, zipfile.LargeZipFile) as e:
        raise ExtractionError(
            "Failed to read zip", archive_path=str(dest), details=str(e)
        ) from e
    except OSError as e:
        raise ExtractionError(
            f"Failed to write extracted files to {dest}",
            archive_path=str(dest),
            details=str(e),
        ) from e

    logger.debug(f"Extracted {len(extracted)} files into {dest}")
    return extracted


def remove_tree(path: Pathish) -> bool:
    """
    Remove a directory tree if it exists.

    Returns:
        bool: `True` if something was removed, `False` if the path was absent.

    Raises:
        FileSystemError: If removal fails.
    """
    target = Path(path)
    if not target.exists() and not target.is_symlink():
        return False
    try:
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        else:
            target.unlink()
    except OSError as e:
        raise FileSystemError(
            "Failed to clear directory", path=str(target), details=str(e)
        ) from e
    logger.debug(f"Removed {target}")
    return True


def ensure_directory(path: Pathish) -> Path:
    """
    Create `path` (and parents) if missing.

    Raises:
        FileSystemError: If the directory cannot be created.
    """
    target = Path(path)
    try:
        target.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FileSystemError(
            "Failed to create directory", path=str(target), details=str(e)
        ) from e
    return target


def copy_tree(source: Pathish, destination: Pathish) -> None:
    """
    Copy the contents of `source` into `destination`, merging into existing dirs.

    Raises:
        FileSystemError: If any entry cannot be read or written.
    """
    try:
        shutil.copytree(source, destination, dirs_exist_ok=True)
    except (OSError, shutil.Error) as e:
        raise FileSystemError(
            f"Failed to copy {source}", path=str(destination), details=str(e)
        ) from e


def _atomic_write(
    file_path: Pathish, writer_func: Callable[[Any], None], suffix: str = ".tmp"
) -> None:
    """
    Write a text file atomically through a temporary sibling and os.replace.

    Parameters:
        file_path: Destination file path to be written.
        writer_func: Callable receiving the open text file object.
        suffix: Suffix for the temporary file name.

    Raises:
        OSError: If the temporary file cannot be created, written or moved.
    """
    directory = os.path.dirname(os.fspath(file_path)) or "."
    temp_fd, temp_path = tempfile.mkstemp(dir=directory, prefix="tmp-", suffix=suffix)
    try:
        with os.fdopen(temp_fd, "w", encoding="utf-8") as temp_f:
            writer_func(temp_f)
        os.replace(temp_path, file_path)
    finally:
        if os.path.exists(temp_path):
            try:
                os.remove(temp_path)
            except OSError:
                pass


def _atomic_write_json(file_path: Pathish, data: Any) -> None:
    """Atomically write `data` to `file_path` as pretty-printed JSON."""
    _atomic_write(file_path, lambda f: json.dump(data, f, indent=2), suffix=".json")
