"""Reconciles chunk-local transcription timestamps into one continuous timeline."""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models import Chunk, Segment
from .exceptions import TranscriptionError

logger = logging.getLogger(__name__)

class TimelineMerger:
    """
    Accumulates per-chunk segments and merges them in chunk-index order.

    Results may arrive in any order (e.g. from a thread pool); each one is
    stored in the slot of its chunk index and only ordered at merge time.
    """

    def __init__(self, chunks: Sequence[Chunk]):
        self.chunks = sorted(chunks, key=lambda c: c.index)
        self._slots: List[Optional[List[Segment]]] = [None] * len(self.chunks)
        self._position: Dict[int, int] = {chunk.index: pos for pos, chunk in enumerate(self.chunks)}

    def add(self, chunk: Chunk, segments: Iterable[Segment]) -> None:
        """Stores a chunk's segments (chunk-local times) in its slot."""
        if chunk.index not in self._position:
            raise ValueError(f"Chunk {chunk.index} was not planned for this timeline.")
        self._slots[self._position[chunk.index]] = list(segments)

    @property
    def is_complete(self) -> bool:
        return all(slot is not None for slot in self._slots)

    def merged(self) -> List[Segment]:
        """
        Returns the full timeline, strictly ordered and non-overlapping.

        Each segment is shifted by its chunk's start offset. Segments whose end
        does not come after their start are dropped. A segment starting
        before the previous segment ends is clipped to start at that end, and
        dropped when clipping leaves nothing.

        Raises:
            TranscriptionError: If any chunk has not been added.
        """
        missing = [chunk.index for chunk, slot in zip(self.chunks, self._slots) if slot is None]
        if missing:
            raise TranscriptionError(f"Timeline is missing chunk(s) {missing}", chunk_index=missing[0])

        merged: List[Segment] = []
        dropped = 0
        clipped = 0
        for chunk, slot in zip(self.chunks, self._slots):
            for local_segment in slot:
                segment = local_segment.shifted(chunk.start_offset)
                if segment.start_time >= segment.end_time:
                    logger.debug(f"Dropping empty segment at {segment.start_time:.3f}s: {segment.text[:30]!r}")
                    dropped += 1
                    continue
                if merged and segment.start_time < merged[-1].end_time:
                    new_start = merged[-1].end_time
                    if new_start >= segment.end_time:
                        logger.debug(f"Dropping overlapped segment at {segment.start_time:.3f}s: {segment.text[:30]!r}")
                        dropped += 1
                        continue
                    segment = Segment(new_start, segment.end_time, segment.text)
                    clipped += 1
                merged.append(segment)

        if clipped or dropped:
            logger.info(f"Timeline merge clipped {clipped} and dropped {dropped} empty or overlapping segment(s).")
        logger.info(f"Merged {len(merged)} segments from {len(self.chunks)} chunk(s).")
        return merged

def merge_chunk_segments(results: Iterable[Tuple[Chunk, Sequence[Segment]]]) -> List[Segment]:
    """Merges (chunk, chunk-local segments) pairs given in any order."""
    pairs = list(results)
    merger = TimelineMerger([chunk for chunk, _ in pairs])
    for chunk, segments in pairs:
        merger.add(chunk, segments)
    return merger.merged()
