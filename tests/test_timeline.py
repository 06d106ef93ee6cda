import pytest

from captioner.exceptions import TranscriptionError
from captioner.models import Chunk, Segment
from captioner.timeline import TimelineMerger, merge_chunk_segments


def _chunks(count, length=600.0):
    return [Chunk(index=i, start_offset=i * length, duration=length) for i in range(count)]


def test_three_chunks_of_two_segments_merge_in_order():
    chunks = _chunks(3)
    local = [Segment(10.0, 20.0, "a"), Segment(300.0, 590.0, "b")]
    merged = merge_chunk_segments([(chunk, local) for chunk in chunks])

    assert len(merged) == 6
    assert [s.start_time for s in merged] == [10.0, 300.0, 610.0, 900.0, 1210.0, 1500.0]
    assert merged[-1].end_time == 1790.0
    assert all(0 <= s.start_time < s.end_time <= 1800.0 for s in merged)


def test_results_added_out_of_order_merge_by_chunk_index():
    chunks = _chunks(3)
    merger = TimelineMerger(chunks)
    merger.add(chunks[2], [Segment(1.0, 2.0, "third")])
    merger.add(chunks[0], [Segment(1.0, 2.0, "first")])
    assert not merger.is_complete
    merger.add(chunks[1], [Segment(1.0, 2.0, "second")])

    assert merger.is_complete
    assert [s.text for s in merger.merged()] == ["first", "second", "third"]


def test_boundary_overlap_of_50ms_is_clipped():
    chunks = _chunks(2)
    merged = merge_chunk_segments([
        (chunks[0], [Segment(595.0, 600.05, "end of first")]),
        (chunks[1], [Segment(0.0, 3.0, "start of second")]),
    ])

    assert len(merged) == 2
    assert merged[1].start_time == pytest.approx(600.05)
    assert merged[1].end_time == pytest.approx(603.0)
    assert merged[1].text == "start of second"


def test_fully_duplicated_segment_is_dropped():
    chunks = _chunks(2)
    merged = merge_chunk_segments([
        (chunks[0], [Segment(590.0, 600.5, "duplicated")]),
        (chunks[1], [Segment(0.0, 0.4, "duplicated"), Segment(1.0, 2.0, "next")]),
    ])

    assert [s.text for s in merged] == ["duplicated", "next"]


def test_merged_output_is_strictly_ordered():
    chunks = _chunks(3, length=10.0)
    merged = merge_chunk_segments([
        (chunks[0], [Segment(0.0, 4.0, "a"), Segment(3.0, 8.0, "b"), Segment(7.5, 10.2, "c")]),
        (chunks[1], [Segment(0.0, 0.1, "d"), Segment(0.1, 5.0, "e"), Segment(6.0, 6.0, "zero")]),
        (chunks[2], [Segment(-0.5, 2.0, "f"), Segment(5.0, 3.0, "inverted"), Segment(6.0, 7.0, "g")]),
    ])

    assert all(s.start_time < s.end_time for s in merged)
    assert "zero" not in [s.text for s in merged]
    assert "inverted" not in [s.text for s in merged]
    assert merged[-1].text == "g"
    for previous, current in zip(merged, merged[1:]):
        assert current.start_time >= previous.end_time


def test_zero_length_and_inverted_segments_are_dropped():
    chunk = _chunks(1)[0]
    merged = merge_chunk_segments([
        (chunk, [Segment(1.0, 1.0, "zero"), Segment(5.0, 3.0, "inverted"), Segment(6.0, 7.0, "kept")]),
    ])

    assert merged == [Segment(6.0, 7.0, "kept")]


def test_missing_chunk_raises():
    chunks = _chunks(2)
    merger = TimelineMerger(chunks)
    merger.add(chunks[0], [Segment(0.0, 1.0, "only")])

    with pytest.raises(TranscriptionError) as exc_info:
        merger.merged()
    assert exc_info.value.chunk_index == 1


def test_unplanned_chunk_is_rejected():
    merger = TimelineMerger(_chunks(1))

    with pytest.raises(ValueError):
        merger.add(Chunk(index=5, start_offset=3000.0, duration=600.0), [])
