import os
from typing import Callable, Dict, List, Optional

import pytest

from captioner.models import Chunk, Segment
from captioner.retry_policy import RetryPolicy
from captioner.transcriber import Transcriber
from captioner.translator import Translator


def make_policy(max_attempts: int = 3) -> RetryPolicy:
    return RetryPolicy(max_attempts=max_attempts, initial_delay=0, max_delay=0, jitter=0, sleep=lambda _: None)


@pytest.fixture
def no_wait_policy() -> RetryPolicy:
    return make_policy()


class FakeTranscriber(Transcriber):
    """Replays scripted responses per chunk index; an exception instance is raised."""

    def __init__(self, responses: Dict[int, List[object]], retry_policy: Optional[RetryPolicy] = None):
        super().__init__(retry_policy or make_policy())
        self.responses = {index: list(items) for index, items in responses.items()}
        self.calls: List[int] = []

    def request_segments(self, audio_bytes: bytes, chunk: Chunk, language: str) -> List[Segment]:
        self.calls.append(chunk.index)
        queue = self.responses[chunk.index]
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, BaseException):
            raise item
        return list(item)


class FakeTranslator(Translator):
    """Translates by prefixing; `behaviour(texts)` may override the answer or raise."""

    def __init__(self, behaviour: Optional[Callable[[List[str]], Optional[List[str]]]] = None,
                 single: Optional[Callable[[str], Optional[str]]] = None):
        self.behaviour = behaviour
        self.single = single
        self.batch_sizes: List[int] = []
        self.single_calls: List[str] = []

    def translate_batch(self, texts, source_lang, target_lang):
        self.batch_sizes.append(len(texts))
        if self.behaviour is not None:
            answer = self.behaviour(list(texts))
            if answer is not None:
                return answer
        return [f"T:{text}" for text in texts]

    def translate_text(self, text, source_lang, target_lang):
        self.single_calls.append(text)
        if self.single is not None:
            answer = self.single(text)
            if answer is not None:
                return answer
        return super().translate_text(text, source_lang, target_lang)


class FakeAudioExtractor:
    """Stands in for ffmpeg: writes a placeholder WAV and serves chunk bytes."""

    def __init__(self, duration: float):
        self.duration = duration
        self.work_dirs: List[str] = []
        self.chunks_read: List[int] = []

    def extract_audio(self, video_filepath, output_audio_dir, output_filename=None):
        if not os.path.exists(video_filepath):
            raise FileNotFoundError(f"Input video file not found: {video_filepath}")
        self.work_dirs.append(output_audio_dir)
        path = os.path.join(output_audio_dir, f"{output_filename or 'audio'}.wav")
        with open(path, "wb") as f:
            f.write(b"RIFF")
        return path

    def probe_duration(self, audio_path):
        return self.duration

    def read_chunk(self, audio_path, chunk, output_dir):
        self.chunks_read.append(chunk.index)
        return f"chunk-{chunk.index}".encode()


class FakeVideoRenderer:
    def __init__(self):
        self.burned = []
        self.muxed = []

    def burn_in(self, video_path, subtitle_path, output_path, fonts_dir=None, font_name=None):
        with open(subtitle_path, encoding="utf-8") as f:
            self.burned.append((video_path, f.read(), output_path))
        return output_path

    def mux(self, video_path, srt_path, output_path, language=None):
        self.muxed.append((video_path, srt_path, output_path, language))
        return output_path


@pytest.fixture
def video_file(tmp_path):
    path = tmp_path / "talk.mp4"
    path.write_bytes(b"\x00\x00\x00\x18ftypmp42")
    return str(path)
