"""Assembles translated segments into subtitle entries and serializes them (SRT, ASS)."""

import logging
import re
from abc import ABC, abstractmethod
from typing import List, Sequence, Tuple

from .models import SubtitleEntry, TranslatedSegment
from .exceptions import FormattingError
from .utils import format_time_ass, format_time_srt, parse_time_srt, to_milliseconds

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_MARKER = "[untranslated]"

def _single_line(text: str) -> str:
    # A blank line inside a block would end the SRT entry early.
    return " ".join(text.split())

class SubtitleAssembler:
    """Pairs segments with their translations and numbers the resulting entries."""

    def __init__(self, bilingual: bool = False, fallback_marker: str = DEFAULT_FALLBACK_MARKER):
        """
        Args:
            bilingual: If True, each entry shows the translation first and the
                       original line second.
            fallback_marker: Placeholder that flags untranslated entries in the
                       output. An empty marker shows the source text alone.
        """
        self.bilingual = bilingual
        self.fallback_marker = _single_line(fallback_marker or "")

    def _lines(self, translated: str, source: str, is_fallback: bool) -> Tuple[str, ...]:
        if is_fallback:
            if not self.fallback_marker:
                return (source,)
            if self.bilingual:
                return (self.fallback_marker, source)
            return (f"{self.fallback_marker} {source}",)
        if self.bilingual:
            return (translated, source)
        return (translated,)

    def assemble(self, translated_segments: Sequence[TranslatedSegment]) -> List[SubtitleEntry]:
        """
        Builds one SubtitleEntry per segment, numbered from 1.

        Fallback entries (translation unavailable) show the fallback marker in
        place of the translation, followed by the source text. An empty
        translation is treated the same way. An entry whose start and end
        round to the same millisecond gets its end moved forward by one
        millisecond.
        """
        entries = []
        for position, item in enumerate(translated_segments, start=1):
            segment = item.segment
            source = _single_line(segment.text)
            translated = _single_line(item.translated_text)
            is_fallback = item.is_fallback
            if not translated and not is_fallback:
                logger.warning(f"Entry {position} has an empty translation. Marking it untranslated.")
                is_fallback = True
            lines = self._lines(translated, source, is_fallback)

            start_time, end_time = segment.start_time, segment.end_time
            start_ms, end_ms = to_milliseconds(start_time), to_milliseconds(end_time)
            if end_ms <= start_ms:
                logger.warning(
                    f"Entry {position} has no duration ({format_time_srt(start_time)} -> "
                    f"{format_time_srt(end_time)}). Extending end by 1ms."
                )
                end_time = (start_ms + 1) / 1000.0

            entries.append(SubtitleEntry(index=position, start_time=start_time, end_time=end_time, lines=lines))
        return entries

class SubtitleFormatter(ABC):
    """Abstract base class for subtitle formatters."""

    @abstractmethod
    def render(self, entries: Sequence[SubtitleEntry]) -> str:
        """
        Serializes entries into the formatter's text format.

        Args:
            entries: Entries in display order.

        Returns:
            The complete file content.
        """
        pass

    def write(self, entries: Sequence[SubtitleEntry], output_path: str) -> None:
        """
        Renders and writes the entries to `output_path` as UTF-8.

        Raises:
            FormattingError: If writing fails.
        """
        logger.info(f"Writing {len(entries)} subtitle entries to {output_path}")
        content = self.render(entries)
        try:
            with open(output_path, 'w', encoding='utf-8', newline='\n') as f:
                f.write(content)
        except IOError as e:
            logger.error(f"Failed to write subtitle file to {output_path}: {e}", exc_info=True)
            raise FormattingError(f"Could not write subtitle file: {e}") from e
        logger.info(f"Successfully wrote {output_path}")

class SRTFormatter(SubtitleFormatter):
    """Formats subtitles into the SRT (SubRip Text) format."""

    def render(self, entries: Sequence[SubtitleEntry]) -> str:
        blocks = []
        for entry in entries:
            blocks.append(
                f"{entry.index}\n"
                f"{format_time_srt(entry.start_time)} --> {format_time_srt(entry.end_time)}\n"
                + "".join(f"{line}\n" for line in entry.lines)
                + "\n"
            )
        return "".join(blocks)

def parse_srt(content: str) -> List[SubtitleEntry]:
    """
    Parses SRT text back into entries.

    Raises:
        FormattingError: If a block is missing its index or timestamp line.
    """
    entries = []
    for block in re.split(r"\n\s*\n", content.replace("\r\n", "\n").strip()):
        if not block.strip():
            continue
        lines = block.split("\n")
        if len(lines) < 2 or "-->" not in lines[1]:
            raise FormattingError(f"Malformed SRT block: {block[:60]!r}")
        try:
            index = int(lines[0].strip())
        except ValueError as e:
            raise FormattingError(f"Invalid SRT index: {lines[0]!r}") from e
        start, end = (part.strip() for part in lines[1].split("-->", 1))
        entries.append(SubtitleEntry(
            index=index,
            start_time=parse_time_srt(start),
            end_time=parse_time_srt(end),
            lines=tuple(lines[2:]),
        ))
    return entries

class ASSFormatter(SubtitleFormatter):
    """Formats subtitles into a minimal ASS script with one explicit font style."""

    def __init__(self, font_name: str = "Noto Sans CJK TC", font_size: int = 36):
        self.font_name = font_name
        self.font_size = font_size

    @staticmethod
    def _escape(text: str) -> str:
        # Braces open override blocks in ASS.
        return text.replace("{", "(").replace("}", ")")

    def render(self, entries: Sequence[SubtitleEntry]) -> str:
        font = self.font_name.replace(",", " ")
        out = [
            "[Script Info]",
            "ScriptType: v4.00+",
            "WrapStyle: 0",
            "ScaledBorderAndShadow: yes",
            "YCbCr Matrix: TV.601",
            "",
            "[V4+ Styles]",
            "Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, BackColour, "
            "Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, BorderStyle, Outline, Shadow, "
            "Alignment, MarginL, MarginR, MarginV, Encoding",
            # White text, black outline, bottom-center
            f"Style: Default,{font},{self.font_size},&H00FFFFFF,&H000000FF,&H00000000,&H64000000,"
            "0,0,0,0,100,100,0,0,1,2,0,2,10,10,20,1",
            "",
            "[Events]",
            "Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text",
        ]
        for entry in entries:
            text = "\\N".join(self._escape(line).replace("\n", "\\N") for line in entry.lines)
            out.append(
                f"Dialogue: 0,{format_time_ass(entry.start_time)},{format_time_ass(entry.end_time)},"
                f"Default,,0,0,0,,{text}"
            )
        return "\n".join(out) + "\n"
