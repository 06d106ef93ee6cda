"""Produces the output video: burned-in (re-encoded) or soft-muxed subtitles."""

import fnmatch
import logging
import os
import shutil
import sys
from typing import List, Optional

import ffmpeg

from .exceptions import FileSystemError, VideoRenderError
from .utils import ensure_dir_exists

logger = logging.getLogger(__name__)

FONTS_DIR_ENV = "CAPTIONER_FONTS_DIR"

def escape_filter_path(path: str) -> str:
    """Escapes a path for use inside an ffmpeg filter argument."""
    return path.replace("\\", "\\\\").replace(":", "\\:").replace("=", "\\=").replace("'", "\\'")

def _system_font_dirs() -> List[str]:
    if sys.platform == "darwin":
        return ["/System/Library/Fonts", "/Library/Fonts", os.path.expanduser("~/Library/Fonts")]
    if sys.platform.startswith("win"):
        return ["C:/Windows/Fonts"]
    return ["/usr/share/fonts", "/usr/local/share/fonts", "/usr/share/fonts/truetype"]

def resolve_fonts_dir(preferred: Optional[str] = None) -> Optional[str]:
    """
    Finds a fonts directory for libass.

    Order: the preferred directory, ./fonts in the working directory, the
    CAPTIONER_FONTS_DIR environment variable, then common system locations.
    """
    candidates = []
    if preferred:
        candidates.append(preferred)
    candidates.append(os.path.join(os.getcwd(), "fonts"))
    if os.environ.get(FONTS_DIR_ENV):
        candidates.append(os.environ[FONTS_DIR_ENV])
    candidates.extend(_system_font_dirs())
    for candidate in candidates:
        if os.path.isdir(candidate):
            return candidate
    return None

FONT_FILE_PATTERN = "*Noto*CJ*K*TC*"
FONT_EXTENSIONS = ('.otf', '.ttf', '.ttc', '.otc')

def collect_fonts(dest_dir: str, pattern: str = FONT_FILE_PATTERN,
                  search_dirs: Optional[List[str]] = None) -> List[str]:
    """
    Copies font files matching `pattern` from the system font directories into `dest_dir`.

    Args:
        dest_dir: Directory to fill, created if missing (usually ./fonts).
        pattern: Shell-style file name pattern.
        search_dirs: Directories searched recursively; system locations when None.

    Returns:
        Paths of the copied files, empty when nothing matched.

    Raises:
        FileSystemError: If `dest_dir` cannot be created or a copy fails.
    """
    ensure_dir_exists(dest_dir)
    dest_real = os.path.realpath(dest_dir)
    copied = []
    for root_dir in search_dirs if search_dirs is not None else _system_font_dirs():
        if not os.path.isdir(root_dir):
            continue
        for current, _, files in os.walk(root_dir):
            if os.path.realpath(current) == dest_real:
                continue
            for name in sorted(files):
                if not fnmatch.fnmatch(name, pattern) or not name.lower().endswith(FONT_EXTENSIONS):
                    continue
                source = os.path.join(current, name)
                target = os.path.join(dest_dir, name)
                try:
                    shutil.copyfile(source, target)
                except OSError as e:
                    raise FileSystemError(f"Could not copy font {source} to {dest_dir}: {e}") from e
                logger.info(f"Copied font: {source} -> {target}")
                copied.append(target)
    return copied

def build_subtitles_filter(subtitle_path: str, fonts_dir: Optional[str] = None, font_name: Optional[str] = None) -> str:
    """
    Builds the `subtitles=` video filter string.

    `force_style` is only applied to non-ASS inputs since ASS files carry their
    own style.
    """
    vf = f"subtitles={escape_filter_path(subtitle_path)}"
    if fonts_dir:
        vf += f":fontsdir={escape_filter_path(fonts_dir)}"
    if font_name and not subtitle_path.lower().endswith(".ass"):
        safe = font_name.replace("'", "\\'")
        vf += f":force_style='FontName={safe}'"
    return vf

class VideoRenderer:
    """Runs ffmpeg to attach subtitles to a video."""

    def __init__(self, ffmpeg_path: Optional[str] = None):
        self.ffmpeg_cmd = ffmpeg_path or 'ffmpeg'

    def _run(self, stream, what: str) -> None:
        try:
            stream.overwrite_output().run(cmd=self.ffmpeg_cmd, capture_stdout=True, capture_stderr=True)
        except ffmpeg.Error as e:
            stderr_output = e.stderr.decode('utf-8', errors='replace') if e.stderr else "No stderr output"
            logger.error(f"ffmpeg error during {what}: {stderr_output}")
            raise VideoRenderError(f"ffmpeg failed during {what}: {stderr_output}") from e
        except OSError as e:
            raise VideoRenderError(f"ffmpeg is required but could not be run: {e}") from e

    def burn_in(self, video_path: str, subtitle_path: str, output_path: str,
                fonts_dir: Optional[str] = None, font_name: Optional[str] = None) -> str:
        """
        Re-encodes the video with subtitles rendered into the picture. Audio is copied.

        Raises:
            VideoRenderError: If ffmpeg fails.
        """
        vf = build_subtitles_filter(subtitle_path, fonts_dir, font_name)
        logger.info(f"Burning subtitles into video: {output_path}")
        logger.debug(f"Video filter: {vf}")
        stream = ffmpeg.input(video_path).output(output_path, vf=vf, **{'c:a': 'copy'})
        self._run(stream, f"burn-in to {output_path}")
        logger.info(f"Video with burned-in subtitles written to: {output_path}")
        return output_path

    def mux(self, video_path: str, srt_path: str, output_path: str, language: Optional[str] = None) -> str:
        """
        Copies audio and video and adds the SRT as a mov_text subtitle track.

        Raises:
            VideoRenderError: If ffmpeg fails.
        """
        logger.info(f"Muxing subtitle track into video: {output_path}")
        video = ffmpeg.input(video_path)
        subs = ffmpeg.input(srt_path)
        kwargs = {'c:v': 'copy', 'c:a': 'copy', 'c:s': 'mov_text'}
        if language:
            kwargs['metadata:s:s:0'] = f"language={language}"
        stream = ffmpeg.output(video['v'], video['a'], subs['s'], output_path, **kwargs)
        self._run(stream, f"muxing to {output_path}")
        logger.info(f"Video with subtitle track written to: {output_path}")
        return output_path
