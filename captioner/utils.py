"""Utility functions for Captioner."""

import os
import re
import logging
from .exceptions import FileSystemError, FormattingError

logger = logging.getLogger(__name__)

_SRT_TIME_RE = re.compile(r"^(\d{2,}):(\d{2}):(\d{2}),(\d{3})$")

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

def to_milliseconds(seconds: float) -> int:
    """Rounds a time in seconds to whole milliseconds, clamping negatives to zero."""
    if seconds < 0:
        seconds = 0.0
    return int(round(seconds * 1000))

def format_time_srt(seconds: float) -> str:
    """
    Formats seconds into SRT time format HH:MM:SS,mmm.

    Args:
        seconds: Time in seconds.

    Returns:
        Formatted time string.
    """
    milliseconds = to_milliseconds(seconds)
    hrs = milliseconds // 3600000
    milliseconds %= 3600000
    mins = milliseconds // 60000
    milliseconds %= 60000
    secs = milliseconds // 1000
    milliseconds %= 1000
    return f"{hrs:02d}:{mins:02d}:{secs:02d},{milliseconds:03d}"

def parse_time_srt(value: str) -> float:
    """Parses an SRT timestamp (HH:MM:SS,mmm) back into seconds."""
    match = _SRT_TIME_RE.match(value.strip())
    if not match:
        raise FormattingError(f"Invalid SRT timestamp: {value!r}")
    hrs, mins, secs, millis = (int(part) for part in match.groups())
    return (hrs * 3600000 + mins * 60000 + secs * 1000 + millis) / 1000.0

def format_time_ass(seconds: float) -> str:
    """Formats seconds into ASS time format h:mm:ss.cc (centiseconds)."""
    if seconds < 0:
        seconds = 0.0
    centiseconds = int(round(seconds * 100))
    hrs = centiseconds // 360000
    centiseconds %= 360000
    mins = centiseconds // 6000
    centiseconds %= 6000
    secs = centiseconds // 100
    centiseconds %= 100
    return f"{hrs}:{mins:02d}:{secs:02d}.{centiseconds:02d}"

def default_srt_path(input_path: str, target_language: str) -> str:
    """`/videos/talk.mp4` -> `/videos/talk.<target>.srt`"""
    base_name = os.path.splitext(os.path.basename(input_path))[0] or "output"
    return os.path.join(os.path.dirname(input_path) or ".", f"{base_name}.{target_language}.srt")

def default_video_path(input_path: str, target_language: str) -> str:
    """`/videos/talk.mp4` -> `/videos/talk.<target>.mp4`"""
    base_name = os.path.splitext(os.path.basename(input_path))[0] or "output"
    return os.path.join(os.path.dirname(input_path) or ".", f"{base_name}.{target_language}.mp4")
