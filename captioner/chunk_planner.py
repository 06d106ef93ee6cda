"""Splits the total audio duration into fixed-size transcription windows."""

import logging
import math
from typing import List

from .models import Chunk
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SECONDS = 600.0

def plan_chunks(total_duration: float, chunk_seconds: float = DEFAULT_CHUNK_SECONDS) -> List[Chunk]:
    """
    Plans the chunks covering [0, total_duration) with no gaps and no overlap.

    Chunk `i` starts at `i * chunk_seconds`; the final chunk may be shorter.

    Args:
        total_duration: Length of the audio in seconds.
        chunk_seconds: Maximum length of one chunk in seconds.

    Returns:
        Chunks ordered by index.

    Raises:
        ConfigurationError: If either value is not positive.
    """
    if chunk_seconds is None or chunk_seconds <= 0:
        raise ConfigurationError(f"Chunk length must be positive, got {chunk_seconds}")
    if total_duration is None or total_duration <= 0:
        raise ConfigurationError(f"Audio duration must be positive, got {total_duration}")

    count = max(1, math.ceil(total_duration / chunk_seconds))
    chunks = []
    for index in range(count):
        start = index * chunk_seconds
        duration = min(chunk_seconds, total_duration - start)
        if duration <= 0:
            # ceil() of an inexact float ratio can overshoot by one
            break
        chunks.append(Chunk(index=index, start_offset=start, duration=duration))

    logger.info(f"Planned {len(chunks)} chunk(s) of up to {chunk_seconds:g}s for {total_duration:.2f}s of audio.")
    return chunks
