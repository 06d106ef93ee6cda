"""Handles audio extraction, probing and chunk slicing using ffmpeg."""

import ffmpeg
import os
import logging
from .exceptions import AudioExtractionError, FileSystemError
from .models import Chunk
from typing import Optional
from .utils import ensure_dir_exists

logger = logging.getLogger(__name__)

class AudioExtractor:
    """Extracts the audio track from video files and slices it into chunks."""

    def __init__(self, ffmpeg_path: Optional[str] = None):
        """
        Initializes the AudioExtractor.

        Args:
            ffmpeg_path: Optional path to the ffmpeg executable.
                         If None, assumes ffmpeg is in the system PATH.
        """
        self.ffmpeg_cmd = ffmpeg_path or 'ffmpeg'
        # ffprobe is expected next to ffmpeg.
        ffmpeg_dir = os.path.dirname(self.ffmpeg_cmd)
        self.ffprobe_cmd = os.path.join(ffmpeg_dir, 'ffprobe') if ffmpeg_dir else 'ffprobe'
        logger.info(f"Using ffmpeg command: {self.ffmpeg_cmd}")

    def _run(self, stream, output_path: str, what: str) -> None:
        try:
            stream.overwrite_output().run(cmd=self.ffmpeg_cmd, capture_stdout=True, capture_stderr=True)
        except ffmpeg.Error as e:
            stderr_output = e.stderr.decode('utf-8', errors='replace') if e.stderr else "No stderr output"
            logger.error(f"ffmpeg error during {what}: {stderr_output}")
            if os.path.exists(output_path):
                try:
                    os.remove(output_path)
                except OSError:
                    logger.warning(f"Could not clean up partially created audio file: {output_path}")
            raise AudioExtractionError(f"ffmpeg failed during {what}: {stderr_output}") from e
        except OSError as e:
            logger.error(f"Could not run ffmpeg ({self.ffmpeg_cmd}) for {what}: {e}")
            raise AudioExtractionError(f"ffmpeg is required but could not be run: {e}") from e

    def extract_audio(self, video_filepath: str, output_audio_dir: str, output_filename: Optional[str] = None) -> str:
        """
        Extracts the audio stream from a video file to a 16kHz mono WAV file.

        Args:
            video_filepath: Path to the input video file.
            output_audio_dir: Directory to save the extracted audio file.
            output_filename: Optional base name for the output audio file.
                             If None, uses the video filename.

        Returns:
            The full path to the extracted audio file (WAV format).

        Raises:
            FileNotFoundError: If the input video file does not exist.
            AudioExtractionError: If ffmpeg fails to extract the audio.
            FileSystemError: If the output directory cannot be created/accessed.
        """
        logger.info(f"Starting audio extraction for: {video_filepath}")
        if not os.path.exists(video_filepath):
            raise FileNotFoundError(f"Input video file not found: {video_filepath}")

        ensure_dir_exists(output_audio_dir)

        if output_filename is None:
            base_name = os.path.splitext(os.path.basename(video_filepath))[0]
        else:
            base_name = os.path.splitext(output_filename)[0]

        output_audio_path = os.path.join(output_audio_dir, f"{base_name}.wav")

        if os.path.exists(output_audio_path):
            logger.warning(f"Output audio file already exists, overwriting: {output_audio_path}")
            try:
                os.remove(output_audio_path)
            except OSError as e:
                raise FileSystemError(f"Could not remove existing audio file {output_audio_path}: {e}") from e

        # pcm_s16le at 16kHz mono is what the transcription service expects
        stream = ffmpeg.input(video_filepath).output(output_audio_path, vn=None, acodec='pcm_s16le', ar=16000, ac=1)
        self._run(stream, output_audio_path, f"audio extraction for {video_filepath}")
        logger.info(f"Successfully extracted audio to: {output_audio_path}")
        return output_audio_path

    def probe_duration(self, audio_path: str) -> float:
        """
        Returns the duration of a media file in seconds.

        Raises:
            AudioExtractionError: If ffprobe fails or reports no duration.
        """
        try:
            info = ffmpeg.probe(audio_path, cmd=self.ffprobe_cmd)
        except ffmpeg.Error as e:
            stderr_output = e.stderr.decode('utf-8', errors='replace') if e.stderr else "No stderr output"
            raise AudioExtractionError(f"ffprobe failed for {audio_path}: {stderr_output}") from e
        except OSError as e:
            raise AudioExtractionError(f"ffprobe is required but could not be run: {e}") from e

        duration = info.get('format', {}).get('duration')
        if duration is None:
            durations = [s.get('duration') for s in info.get('streams', []) if s.get('duration')]
            duration = max((float(d) for d in durations), default=None)
        if duration is None:
            raise AudioExtractionError(f"Could not determine duration of {audio_path}")
        logger.info(f"Audio duration: {float(duration):.2f}s")
        return float(duration)

    def extract_chunk(self, audio_path: str, chunk: Chunk, output_dir: str) -> str:
        """
        Cuts one chunk out of the extracted WAV file.

        Returns:
            Path to the chunk WAV file. The caller deletes it once read.

        Raises:
            AudioExtractionError: If ffmpeg fails.
        """
        chunk_path = os.path.join(output_dir, f"chunk_{chunk.index:05d}.wav")
        stream = ffmpeg.input(audio_path, ss=chunk.start_offset, t=chunk.duration).output(
            chunk_path, acodec='pcm_s16le', ar=16000, ac=1
        )
        self._run(stream, chunk_path, f"slicing chunk {chunk.index}")
        logger.debug(f"Chunk {chunk.index} written to {chunk_path}")
        return chunk_path

    def read_chunk(self, audio_path: str, chunk: Chunk, output_dir: str) -> bytes:
        """Extracts a chunk, returns its bytes, and removes the temporary file."""
        chunk_path = self.extract_chunk(audio_path, chunk, output_dir)
        try:
            with open(chunk_path, 'rb') as f:
                return f.read()
        except OSError as e:
            raise AudioExtractionError(f"Could not read chunk file {chunk_path}: {e}") from e
        finally:
            try:
                os.remove(chunk_path)
            except OSError:
                logger.warning(f"Could not remove temporary chunk file: {chunk_path}")
