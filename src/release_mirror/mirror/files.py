"""
File Operations for the release mirror

This module provides the path-safety checks and atomic write helpers that the
cache store relies on.
"""

import os
import tempfile
from pathlib import Path
from typing import BinaryIO, Callable, Optional

from release_mirror.constants import TEMP_FILE_SUFFIX
from release_mirror.exceptions import PathValidationError
from release_mirror.log_utils import logger


def validate_path_component(component: Optional[str], label: str) -> str:
    """
    Validate a single cache path component (a release tag or an asset name).

    Components are rejected, not sanitized: the value must be non-empty, must not
    contain `..`, a path separator or a null byte, must not be absolute, and must
    be neither `.` nor a name ending in the in-progress `.tmp` suffix.

    Parameters:
        component (Optional[str]): The candidate component.
        label (str): Field name used in the error (e.g. "tag", "asset").

    Returns:
        str: The component, unchanged.

    Raises:
        PathValidationError: When the component is unsafe or empty.
    """
    if component is None or not component.strip():
        raise PathValidationError(f"Missing {label}", field=label, value=component)

    if component == "." or ".." in component:
        raise PathValidationError(
            f"Illegal path in {label}", field=label, value=component
        )

    # Temp files are never servable cache entries
    if component.endswith(TEMP_FILE_SUFFIX):
        raise PathValidationError(
            f"Illegal path in {label}", field=label, value=component
        )

    if "\x00" in component or os.path.isabs(component):
        raise PathValidationError(
            f"Illegal path in {label}", field=label, value=component
        )

    for separator in ("/", "\\", os.sep, os.altsep):
        if separator and separator in component:
            raise PathValidationError(
                f"Illegal path in {label}", field=label, value=component
            )

    return component


def is_within_base(base_dir: Path, candidate: Path) -> bool:
    """
    Determine whether the candidate path resides within the given base directory.

    Both paths are resolved first, so symlinks pointing outside the base are caught.
    """
    real_base = os.path.realpath(base_dir)
    real_candidate = os.path.realpath(candidate)
    try:
        return os.path.commonpath([real_base, real_candidate]) == real_base
    except ValueError:
        return False


def remove_quietly(path: str) -> bool:
    """
    Remove a file if it exists, logging rather than raising on failure.

    Returns:
        bool: `True` if the file is gone afterwards, `False` if removal failed.
    """
    try:
        os.remove(path)
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.warning(f"Error removing temporary file {path}: {e}")
        return False
    return True


def atomic_write_stream(
    final_path: Path, writer_func: Callable[[BinaryIO], int]
) -> int:
    """
    Write a file atomically through a uniquely named `.tmp` sibling.

    `writer_func` receives the open binary temp file and returns the number of
    bytes it wrote. On success the temp file is promoted with `os.replace`; on any
    exception the temp file is removed and the exception propagates, so the final
    path is either untouched or complete.

    Parameters:
        final_path (Path): Destination path; its parent directory must exist.
        writer_func (Callable[[BinaryIO], int]): Writes the content and returns the byte count.

    Returns:
        int: The byte count reported by `writer_func`.
    """
    temp_fd, temp_path = tempfile.mkstemp(
        dir=os.fspath(final_path.parent),
        prefix=f".{final_path.name}.",
        suffix=TEMP_FILE_SUFFIX,
    )
    try:
        with os.fdopen(temp_fd, "wb") as temp_f:
            written = writer_func(temp_f)
            temp_f.flush()
            os.fsync(temp_f.fileno())
        os.replace(temp_path, final_path)
    finally:
        if os.path.exists(temp_path):
            remove_quietly(temp_path)
    return written
