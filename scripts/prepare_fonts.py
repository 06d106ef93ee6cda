#!/usr/bin/env python3
"""
Prepares a fonts directory for burned-in subtitles.

Copies installed Noto CJK TC fonts from the system font locations into
./fonts (or the given directory). When none are installed, prints how to
install them.
"""

import argparse
import logging
import sys

from captioner.exceptions import FileSystemError
from captioner.log_setup import setup_logging
from captioner.video_renderer import FONT_FILE_PATTERN, collect_fonts

logger = logging.getLogger("prepare_fonts")

INSTALL_HINT = """No Noto CJK TC fonts found on this system. Install them, then re-run this script:

  macOS (Homebrew):       brew install --cask font-noto-sans-cjk
  Linux (Debian/Ubuntu):  sudo apt-get install fonts-noto-cjk
"""

def main() -> None:
    parser = argparse.ArgumentParser(description="Copy Noto CJK TC fonts into a fonts directory for burn-in.")
    parser.add_argument("dest_dir", nargs="?", default="./fonts", help="Directory to fill.")
    parser.add_argument("--pattern", default=FONT_FILE_PATTERN, help="Font file name pattern.")
    args = parser.parse_args()

    setup_logging(log_level=logging.INFO, log_file="prepare_fonts.log")
    try:
        copied = collect_fonts(args.dest_dir, pattern=args.pattern)
    except FileSystemError as e:
        logger.error(f"Could not prepare fonts: {e}")
        sys.exit(1)

    if not copied:
        logger.warning(INSTALL_HINT)
        sys.exit(1)
    logger.info(
        f"Fonts prepared in {args.dest_dir}. Use --font-dir {args.dest_dir} "
        f"or set CAPTIONER_FONTS_DIR={args.dest_dir}"
    )

if __name__ == "__main__":
    main()
