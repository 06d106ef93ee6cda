"""Orchestrates the subtitle generation pipeline."""

import logging
import os
import shutil
import tempfile
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Optional

from tqdm import tqdm

from .audio_extractor import AudioExtractor
from .batch_translator import BatchTranslator
from .chunk_planner import plan_chunks
from .config_loader import validate_config
from .exceptions import CaptionerError, FileSystemError
from .models import Chunk, PipelineResult, Segment, SubtitleEntry, TranscriptionResult, TranslationReport
from .retry_policy import RetryPolicy
from .subtitle_formatter import DEFAULT_FALLBACK_MARKER, ASSFormatter, SRTFormatter, SubtitleAssembler
from .timeline import TimelineMerger
from .transcriber import Transcriber
from .translator import Translator
from .utils import default_srt_path, default_video_path, ensure_dir_exists
from .video_renderer import VideoRenderer, resolve_fonts_dir

logger = logging.getLogger(__name__)

class SubtitleGenerator:
    """
    Manages the end-to-end process of generating translated subtitles for a video file.
    """

    def __init__(
        self,
        config: dict,
        audio_extractor: AudioExtractor,
        transcriber: Transcriber,
        translator: Translator,
        video_renderer: Optional[VideoRenderer] = None,
    ):
        """
        Initializes the SubtitleGenerator.

        Args:
            config: A validated configuration dictionary (see config_loader.DEFAULT_CONFIG).
            audio_extractor: Extracts, probes and slices audio.
            transcriber: Transcribes single chunks.
            translator: Issues translation requests.
            video_renderer: Burns in or muxes subtitles; built from config when omitted.
        """
        self.config = validate_config(config)
        self.audio_extractor = audio_extractor
        self.transcriber = transcriber
        self.video_renderer = video_renderer or VideoRenderer(ffmpeg_path=config.get('ffmpeg_path'))
        self.show_progress = bool(config.get('show_progress', True))

        self.batch_translator = BatchTranslator(
            translator,
            batch_size=int(config['translate_batch_size']),
            retry_policy=RetryPolicy.from_config(config),
            max_workers=int(config['translation_workers']),
            single_line_fallback=bool(config.get('single_line_fallback', True)),
            show_progress=self.show_progress,
        )
        self.bilingual = bool(config.get('bilingual', True))
        self.assembler = SubtitleAssembler(
            bilingual=self.bilingual, fallback_marker=config.get('fallback_marker', DEFAULT_FALLBACK_MARKER)
        )
        self.subtitle_formatter = SRTFormatter()

        self.temp_dir = config.get('temp_dir')
        if self.temp_dir:
            try:
                ensure_dir_exists(self.temp_dir)
            except (FileSystemError, ValueError) as e:
                raise CaptionerError(f"Temporary directory '{self.temp_dir}' is invalid: {e}") from e

    def transcribe(self, audio_path: str, work_dir: str) -> TranscriptionResult:
        """
        Transcribes the whole audio file chunk by chunk and merges the timeline.

        Chunk requests run on a bounded pool; results are merged in chunk order
        regardless of completion order.

        Raises:
            AudioExtractionError: If probing or slicing fails.
            TranscriptionError: If any chunk fails; the run is aborted.
        """
        duration = self.audio_extractor.probe_duration(audio_path)
        chunks = plan_chunks(duration, float(self.config['chunk_seconds']))
        merger = TimelineMerger(chunks)
        language = self.config['source_language']

        def transcribe_one(chunk: Chunk) -> List[Segment]:
            audio_bytes = self.audio_extractor.read_chunk(audio_path, chunk, work_dir)
            return self.transcriber.transcribe_chunk(audio_bytes, chunk, language)

        workers = min(int(self.config['transcription_workers']), len(chunks))
        with ThreadPoolExecutor(max_workers=workers) as executor, \
                tqdm(total=len(chunks), unit="chunk", desc="Transcribing", disable=not self.show_progress) as pbar:
            futures = {executor.submit(transcribe_one, chunk): chunk for chunk in chunks}
            try:
                for future in as_completed(futures):
                    merger.add(futures[future], future.result())
                    pbar.update(1)
            except BaseException:
                # In-flight chunks write into work_dir, so they are still awaited before cleanup.
                executor.shutdown(wait=True, cancel_futures=True)
                raise

        return TranscriptionResult(language=language, segments=merger.merged(), original_audio_path=audio_path)

    def translate(self, segments: List[Segment]) -> TranslationReport:
        return self.batch_translator.translate(
            segments, self.config['source_language'], self.config['target_language']
        )

    def write_subtitles(self, report: TranslationReport, srt_path: str) -> List[SubtitleEntry]:
        """Assembles entries from a finished translation and writes the SRT file."""
        entries = self.assembler.assemble(report.segments)
        output_dir = os.path.dirname(os.path.abspath(srt_path))
        ensure_dir_exists(output_dir)
        self.subtitle_formatter.write(entries, srt_path)
        return entries

    def render_video(self, video_path: str, entries: List[SubtitleEntry], srt_path: str,
                     output_video: str, work_dir: str) -> str:
        """Burns the subtitles in (via an ASS file) or muxes the SRT as a track."""
        if not self.config.get('burn_in', True):
            return self.video_renderer.mux(video_path, srt_path, output_video, language=self.config['target_language'])

        font_size = self.config.get('font_size') or (30 if self.bilingual else 36)
        ass_path = os.path.join(work_dir, "subs.ass")
        ASSFormatter(font_name=self.config['font_name'], font_size=font_size).write(entries, ass_path)
        fonts_dir = resolve_fonts_dir(self.config.get('font_dir'))
        if fonts_dir:
            logger.info(f"Using fonts dir: {fonts_dir}")
        else:
            logger.warning(
                "No fonts dir found; relying on system font fallback. "
                "Run scripts/prepare_fonts.py to fill ./fonts with Noto CJK TC."
            )
        return self.video_renderer.burn_in(video_path, ass_path, output_video, fonts_dir=fonts_dir)

    def _cleanup_work_dir(self, work_dir: str) -> None:
        if work_dir and os.path.isdir(work_dir):
            try:
                shutil.rmtree(work_dir)
                logger.info(f"Cleaned up temporary directory: {work_dir}")
            except OSError as e:
                logger.warning(f"Could not remove temporary directory {work_dir}: {e}", exc_info=False)

    def generate(self, video_path: str, output_srt: Optional[str] = None,
                 output_video: Optional[str] = None) -> PipelineResult:
        """
        Executes the full pipeline for a single video.

        Args:
            video_path: Path to the input video file.
            output_srt: Where to write the SRT file; defaults next to the input.
            output_video: Where to write the output video. When None, a video is
                          only produced if burn-in is enabled (default path).

        Returns:
            A PipelineResult, including the positions of untranslated segments.

        Raises:
            CaptionerError: For any configuration or processing errors in the pipeline.
            FileNotFoundError: If the input video is not found.
        """
        start_time = time.time()
        logger.info(f"--- Starting Captioner process for: {video_path} ---")
        target_language = self.config['target_language']
        srt_path = output_srt or default_srt_path(video_path, target_language)
        if output_video is None and self.config.get('burn_in', True):
            output_video = default_video_path(video_path, target_language)

        work_dir = None
        try:
            work_dir = tempfile.mkdtemp(prefix="captioner_", dir=self.temp_dir)

            logger.info("Step 1: Extracting Audio...")
            audio_path = self.audio_extractor.extract_audio(video_path, work_dir, "audio_16k_mono")

            logger.info("Step 2: Transcribing Audio...")
            transcription = self.transcribe(audio_path, work_dir)
            if not transcription.segments:
                raise CaptionerError("Transcription produced no segments. Cannot proceed.")

            logger.info("Step 3: Translating Segments...")
            report = self.translate(transcription.segments)

            logger.info("Step 4: Writing Subtitles...")
            entries = self.write_subtitles(report, srt_path)

            video_out = None
            if output_video:
                logger.info("Step 5: Rendering Video...")
                video_out = self.render_video(video_path, entries, srt_path, output_video, work_dir)

            logger.info(
                f"--- Captioner process completed in {time.time() - start_time:.2f} seconds: "
                f"{len(entries)} entries, {report.fallback_count} untranslated ---"
            )
            return PipelineResult(
                srt_path=srt_path,
                video_path=video_out,
                segment_count=len(entries),
                fallback_indices=list(report.fallback_indices),
            )

        except (CaptionerError, FileNotFoundError) as e:
            logger.error(f"Captioner process failed: {e}", exc_info=False)
            raise
        except Exception as e:
            logger.critical(f"An unexpected critical error occurred during subtitle generation: {e}", exc_info=True)
            raise CaptionerError(f"An unexpected critical error occurred: {e}") from e
        finally:
            self._cleanup_work_dir(work_dir)
