"""Data models for Captioner."""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

@dataclass(frozen=True)
class Segment:
    """Represents a single timed piece of recognized source text."""
    start_time: float
    end_time: float
    text: str

    def shifted(self, offset: float) -> "Segment":
        return Segment(self.start_time + offset, self.end_time + offset, self.text)

@dataclass(frozen=True)
class Chunk:
    """A fixed-size time window of the source audio, transcribed as one request."""
    index: int
    start_offset: float
    duration: float

    @property
    def end_offset(self) -> float:
        return self.start_offset + self.duration

@dataclass(frozen=True)
class TranslatedSegment:
    """A segment paired with its translation. Fallback entries carry the source text."""
    segment: Segment
    translated_text: str
    is_fallback: bool = False

@dataclass(frozen=True)
class TranslationBatch:
    """Consecutive segments translated together; `start` is the position of the first one."""
    start: int
    segments: Tuple[Segment, ...]

    @property
    def batch_size(self) -> int:
        return len(self.segments)

    @property
    def texts(self) -> List[str]:
        return [segment.text for segment in self.segments]

    def split(self) -> Tuple["TranslationBatch", "TranslationBatch"]:
        # Odd sizes give the extra element to the first half.
        middle = (len(self.segments) + 1) // 2
        return (
            TranslationBatch(self.start, self.segments[:middle]),
            TranslationBatch(self.start + middle, self.segments[middle:]),
        )

@dataclass
class TranslationReport:
    """Outcome of a translation pass, in original segment order."""
    segments: List[TranslatedSegment] = field(default_factory=list)
    fallback_indices: List[int] = field(default_factory=list)

    @property
    def fallback_count(self) -> int:
        return len(self.fallback_indices)

@dataclass(frozen=True)
class SubtitleEntry:
    """One numbered, timed subtitle block ready for serialization."""
    index: int
    start_time: float
    end_time: float
    lines: Tuple[str, ...]

@dataclass
class TranscriptionResult:
    """Holds the merged output from the ASR process."""
    language: Optional[str]
    segments: List[Segment] = field(default_factory=list)
    original_audio_path: Optional[str] = None

@dataclass
class PipelineResult:
    """What a finished run reports back to the caller."""
    srt_path: str
    video_path: Optional[str] = None
    segment_count: int = 0
    fallback_indices: List[int] = field(default_factory=list)

    @property
    def fallback_count(self) -> int:
        return len(self.fallback_indices)
