"""Utility functions for LyricSync."""

import os
import logging
import mimetypes
from .exceptions import FileSystemError

logger = logging.getLogger(__name__)

DEFAULT_EXPORT_BASENAME = "lyrics"

def ensure_dir_exists(dir_path: str) -> None:
    """
    Ensures that a directory exists. Creates it if it doesn't.

    Args:
        dir_path: The path to the directory.

    Raises:
        FileSystemError: If the directory cannot be created due to permissions
                         or if the path exists but is not a directory.
    """
    if not dir_path:
        raise ValueError("Directory path cannot be empty.")
    try:
        if not os.path.exists(dir_path):
            os.makedirs(dir_path)
            logger.info(f"Created directory: {dir_path}")
        elif not os.path.isdir(dir_path):
            raise FileSystemError(f"Path exists but is not a directory: {dir_path}")
    except OSError as e:
        logger.error(f"Error creating or accessing directory {dir_path}: {e}", exc_info=True)
        raise FileSystemError(f"Could not create or access directory {dir_path}: {e}") from e

def export_basename(file_name: str) -> str:
    """
    Derives the base name used for exported subtitle files.

    Everything before the last '.' of the source file name, or "lyrics" when
    there is no usable name (no file, no dot, or a dot-file like ".mp4").
    """
    if not file_name:
        return DEFAULT_EXPORT_BASENAME
    file_name = os.path.basename(file_name)
    dot = file_name.rfind('.')
    if dot <= 0:
        return DEFAULT_EXPORT_BASENAME
    return file_name[:dot]

def suffix_for_mime_type(mime_type: str) -> str:
    """Returns a file suffix (with dot) for a media MIME type, '.bin' if unknown."""
    suffix = mimetypes.guess_extension(mime_type or '') if mime_type else None
    return suffix or '.bin'
