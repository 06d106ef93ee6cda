import os

import pytest

from captioner.exceptions import FileSystemError, FormattingError
from captioner.utils import (
    default_srt_path,
    default_video_path,
    ensure_dir_exists,
    format_time_ass,
    format_time_srt,
    parse_time_srt,
)


@pytest.mark.parametrize("seconds, expected", [
    (0.0, "00:00:00,000"),
    (1.234, "00:00:01,234"),
    (3661.234, "01:01:01,234"),
    (-2.0, "00:00:00,000"),
    (359999.999, "99:59:59,999"),
])
def test_format_time_srt(seconds, expected):
    assert format_time_srt(seconds) == expected


def test_parse_time_srt_inverts_format():
    assert parse_time_srt("01:01:01,234") == pytest.approx(3661.234)
    with pytest.raises(FormattingError):
        parse_time_srt("1:01:01,234")


@pytest.mark.parametrize("seconds, expected", [(0.0, "0:00:00.00"), (1.23, "0:00:01.23"), (3661.23, "1:01:01.23")])
def test_format_time_ass(seconds, expected):
    assert format_time_ass(seconds) == expected


def test_default_output_paths_sit_next_to_input():
    assert default_srt_path("/tmp/sample.mp4", "zh-TW") == os.path.join("/tmp", "sample.zh-TW.srt")
    assert default_video_path("/tmp/sample.mp4", "zh-TW") == os.path.join("/tmp", "sample.zh-TW.mp4")
    assert default_srt_path("clip.mp4", "en") == os.path.join(".", "clip.en.srt")


def test_ensure_dir_exists(tmp_path):
    target = tmp_path / "a" / "b"
    ensure_dir_exists(str(target))
    assert target.is_dir()

    blocker = tmp_path / "file"
    blocker.write_text("x")
    with pytest.raises(FileSystemError):
        ensure_dir_exists(str(blocker))
