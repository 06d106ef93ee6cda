"""Handles Speech-to-Text transcription of audio chunks."""

import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from openai import OpenAI, OpenAIError

from .models import Chunk, Segment
from .exceptions import (
    MalformedResponseError,
    ServiceError,
    TranscriptionError,
)
from .openai_backend import to_service_error
from .retry_policy import RetryPolicy

logger = logging.getLogger(__name__)

class Transcriber(ABC):
    """Abstract base class for transcription services."""

    def __init__(self, retry_policy: Optional[RetryPolicy] = None):
        self.retry_policy = retry_policy or RetryPolicy()

    @abstractmethod
    def request_segments(self, audio_bytes: bytes, chunk: Chunk, language: str) -> List[Segment]:
        """
        Performs one transcription request for a chunk.

        Args:
            audio_bytes: The chunk as 16kHz mono WAV bytes.
            chunk: The chunk being transcribed.
            language: Source-language hint (e.g. 'ja').

        Returns:
            Segments with chunk-local timestamps, in order.

        Raises:
            TransientServiceError: For rate limiting, server and connection errors.
            PermanentServiceError: For any other rejected request.
            MalformedResponseError: If the response has no usable segment list.
        """
        pass

    def transcribe_chunk(self, audio_bytes: bytes, chunk: Chunk, language: str) -> List[Segment]:
        """
        Transcribes one chunk, retrying transient failures.

        An empty segment list is requested once more before it is accepted.

        Raises:
            TranscriptionError: If the chunk cannot be transcribed. This is fatal
                for the run since a missing chunk breaks timeline continuity.
        """
        description = f"Transcription of chunk {chunk.index}"
        try:
            segments = self.retry_policy.call(
                self.request_segments, audio_bytes, chunk, language, description=description
            )
            if not segments:
                logger.warning(f"Chunk {chunk.index} returned zero segments. Requesting once more.")
                segments = self.retry_policy.call(
                    self.request_segments, audio_bytes, chunk, language, description=description
                )
                if not segments:
                    logger.warning(f"Chunk {chunk.index} returned zero segments again; treating it as silent.")
        except (ServiceError, MalformedResponseError) as e:
            logger.error(f"{description} failed: {e}")
            raise TranscriptionError(f"Chunk {chunk.index} failed to transcribe: {e}", chunk_index=chunk.index) from e

        logger.info(f"Chunk {chunk.index}: {len(segments)} segments.")
        return segments

def _field(record: Any, name: str) -> Any:
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)

def parse_verbose_segments(response: Any) -> List[Segment]:
    """
    Extracts ordered segments from a verbose_json transcription response.

    Raises:
        MalformedResponseError: If the response carries no segment list or a
            segment lacks numeric timestamps.
    """
    raw_segments = _field(response, 'segments')
    if raw_segments is None:
        raise MalformedResponseError("Transcription response did not contain 'segments'.")

    segments = []
    for seg_data in raw_segments:
        start, end, text = _field(seg_data, 'start'), _field(seg_data, 'end'), _field(seg_data, 'text')
        try:
            start_time, end_time = float(start), float(end)
        except (TypeError, ValueError) as e:
            raise MalformedResponseError(f"Segment has invalid timestamps: {seg_data!r}") from e
        text = (text or "").strip()
        if not text:
            logger.debug(f"Skipping blank segment at {start_time:.2f}s")
            continue
        segments.append(Segment(start_time=start_time, end_time=end_time, text=text))
    return segments

class OpenAITranscriber(Transcriber):
    """Implements transcription using the OpenAI audio transcription endpoint."""

    def __init__(self, client: OpenAI, model_name: str = "whisper-1", retry_policy: Optional[RetryPolicy] = None):
        """
        Initializes the OpenAITranscriber.

        Args:
            client: A configured OpenAI client.
            model_name: The transcription model (e.g. "whisper-1").
            retry_policy: Policy for transient failures.
        """
        super().__init__(retry_policy)
        self.client = client
        self.model_name = model_name
        logger.info(f"Initializing OpenAITranscriber with model '{self.model_name}'")

    def request_segments(self, audio_bytes: bytes, chunk: Chunk, language: str) -> List[Segment]:
        context = f"OpenAI transcription (chunk {chunk.index})"
        try:
            response = self.client.audio.transcriptions.create(
                model=self.model_name,
                file=(f"chunk_{chunk.index:05d}.wav", audio_bytes, "audio/wav"),
                response_format="verbose_json",
                language=language,
                timestamp_granularities=["segment"],
            )
        except OpenAIError as e:
            mapped = to_service_error(e, context)
            if mapped is None:
                raise MalformedResponseError(f"{context}: {e}") from e
            raise mapped from e
        return parse_verbose_segments(response)
