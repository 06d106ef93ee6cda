"""Adaptive batch translation with recursive splitting on failure."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Optional, Sequence, Tuple

from tqdm import tqdm

from .models import Segment, TranslatedSegment, TranslationBatch, TranslationReport
from .exceptions import (
    ConfigurationError,
    MalformedResponseError,
    PermanentServiceError,
    TransientServiceError,
    TranslationError,
)
from .retry_policy import RetryPolicy
from .translator import Translator

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 60

# Rejections that may be caused by the batch content itself; worth splitting.
SPLITTABLE_STATUS_CODES = frozenset({400, 413, 422})

# (text, is_fallback) for one segment
_Outcome = Tuple[str, bool]

class BatchTranslator:
    """
    Translates a full segment timeline in batches.

    Each batch is requested as one structured call whose answer must be a list
    of the same length, matched by position. A batch that keeps failing after
    its retry budget is halved and both halves are translated recursively, down
    to single segments. A single segment that still fails keeps its source text
    and is reported as a fallback instead of aborting the run.
    """

    def __init__(
        self,
        translator: Translator,
        batch_size: int = DEFAULT_BATCH_SIZE,
        retry_policy: Optional[RetryPolicy] = None,
        max_workers: int = 4,
        single_line_fallback: bool = True,
        show_progress: bool = False,
    ):
        if batch_size < 1:
            raise ConfigurationError(f"Translation batch size must be >= 1, got {batch_size}")
        if max_workers < 1:
            raise ConfigurationError(f"Translation workers must be >= 1, got {max_workers}")
        self.translator = translator
        self.batch_size = batch_size
        # Wrong-shape answers are retried like transient errors.
        self.retry_policy = (retry_policy or RetryPolicy()).with_retry_on(MalformedResponseError)
        self.max_workers = max_workers
        self.single_line_fallback = single_line_fallback
        self.show_progress = show_progress
        self._aborted = threading.Event()

    def partition(self, segments: Sequence[Segment]) -> List[TranslationBatch]:
        """Splits segments into consecutive batches of at most `batch_size`."""
        return [
            TranslationBatch(start, tuple(segments[start:start + self.batch_size]))
            for start in range(0, len(segments), self.batch_size)
        ]

    def translate(self, segments: Sequence[Segment], source_lang: str, target_lang: str) -> TranslationReport:
        """
        Translates every segment, preserving order.

        Args:
            segments: The merged timeline.
            source_lang: Source language code.
            target_lang: Target language code.

        Returns:
            A TranslationReport with one TranslatedSegment per input segment and
            the positions of the segments that fell back to source text.

        Raises:
            TranslationError: On a non-recoverable service rejection
                (e.g. authentication), which would fail every batch alike.
        """
        segments = list(segments)
        if not segments:
            return TranslationReport()

        batches = self.partition(segments)
        logger.info(
            f"Translating {len(segments)} segments in {len(batches)} batch(es) of up to {self.batch_size} "
            f"({source_lang}->{target_lang}, {min(self.max_workers, len(batches))} worker(s))."
        )

        outcomes: List[Optional[_Outcome]] = [None] * len(segments)
        self._aborted.clear()
        executor = ThreadPoolExecutor(max_workers=self.max_workers)
        with tqdm(total=len(segments), unit="line", desc="Translating", disable=not self.show_progress) as pbar:
            futures = {
                executor.submit(self._translate_batch, batch, source_lang, target_lang): batch
                for batch in batches
            }
            try:
                for future in as_completed(futures):
                    batch = futures[future]
                    for offset, outcome in enumerate(future.result()):
                        outcomes[batch.start + offset] = outcome
                    pbar.update(batch.batch_size)
            except BaseException:
                # In-flight batches stop at their next request or split.
                self._aborted.set()
                executor.shutdown(wait=False, cancel_futures=True)
                raise
        executor.shutdown()

        report = TranslationReport()
        for position, (segment, outcome) in enumerate(zip(segments, outcomes)):
            text, is_fallback = outcome
            report.segments.append(TranslatedSegment(segment=segment, translated_text=text, is_fallback=is_fallback))
            if is_fallback:
                report.fallback_indices.append(position)

        if report.fallback_count:
            logger.warning(f"{report.fallback_count} segment(s) could not be translated and use source text.")
        logger.info(f"Translation complete: {len(segments) - report.fallback_count}/{len(segments)} segments translated.")
        return report

    def _request_batch(self, batch: TranslationBatch, source_lang: str, target_lang: str) -> List[str]:
        translations = self.translator.translate_batch(batch.texts, source_lang, target_lang)
        if len(translations) != batch.batch_size:
            raise MalformedResponseError(
                f"Translation count mismatch: expected {batch.batch_size}, got {len(translations)}"
            )
        return translations

    def _check_aborted(self) -> None:
        if self._aborted.is_set():
            raise TranslationError("Translation aborted after a fatal error in another batch.")

    def _translate_batch(self, batch: TranslationBatch, source_lang: str, target_lang: str) -> List[_Outcome]:
        self._check_aborted()
        end = batch.start + batch.batch_size - 1
        try:
            translations = self.retry_policy.call(
                self._request_batch, batch, source_lang, target_lang,
                description=f"Translation of segments {batch.start}-{end}",
            )
        except (TransientServiceError, MalformedResponseError) as e:
            reason = e
        except PermanentServiceError as e:
            if e.status_code not in SPLITTABLE_STATUS_CODES:
                raise TranslationError(f"Translation rejected for segments {batch.start}-{end}: {e}") from e
            reason = e
        else:
            outcomes = []
            for offset, text in enumerate(translations):
                if text.strip():
                    outcomes.append((text, False))
                    continue
                # A blank answer for one item is a failure of that item only.
                single = TranslationBatch(batch.start + offset, (batch.segments[offset],))
                outcomes.append(self._translate_single(
                    single, source_lang, target_lang, MalformedResponseError("empty translation")
                ))
            return outcomes

        if batch.batch_size == 1:
            return [self._translate_single(batch, source_lang, target_lang, reason)]

        first, second = batch.split()
        logger.warning(
            f"Batch {batch.start}-{end} ({batch.batch_size} segments) failed: {reason}. "
            f"Splitting into {first.batch_size} + {second.batch_size}."
        )
        return (
            self._translate_batch(first, source_lang, target_lang)
            + self._translate_batch(second, source_lang, target_lang)
        )

    def _translate_single(
        self, batch: TranslationBatch, source_lang: str, target_lang: str, reason: Exception
    ) -> _Outcome:
        segment = batch.segments[0]
        if self.single_line_fallback:
            self._check_aborted()
            try:
                text = self.retry_policy.call(
                    self.translator.translate_text, segment.text, source_lang, target_lang,
                    description=f"Single-line translation of segment {batch.start}",
                )
                if text.strip():
                    return text, False
                reason = MalformedResponseError("empty single-line translation")
            except (TransientServiceError, MalformedResponseError) as e:
                reason = e
            except PermanentServiceError as e:
                if e.status_code not in SPLITTABLE_STATUS_CODES:
                    raise TranslationError(f"Translation rejected for segment {batch.start}: {e}") from e
                reason = e

        logger.warning(
            f"Segment {batch.start} at {segment.start_time:.2f}s left untranslated ({reason}). "
            f"Using source text: '{segment.text[:50]}'"
        )
        return segment.text, True
