"""Boundary selection from word timestamps"""

import pytest

from reelforge.content_generation.alignment import (
    TimestampSegmenter,
    closest_word_end,
    find_split_points,
    is_sentence_end,
    split_targets,
)
from reelforge.media_generation.media_models import WordTimestamp
from reelforge.utils.errors import InputError
from reelforge.video_assembly.video_models import SplitPlan


def words(*triples):
    return [WordTimestamp(word=w, start=s, end=e) for w, s, e in triples]


def test_worked_example_pins_exact_boundaries(scenario_a_timestamps):
    # "crucial" ends exactly on 10.0, so nothing later can displace it;
    # "Finally," (19.8) is the closest end to 20.0
    assert find_split_points(scenario_a_timestamps, 10) == [10.0, 19.8]


def test_worked_example_boundaries_are_word_ends(scenario_a_timestamps):
    ends = {w.end for w in scenario_a_timestamps}
    for target in (3, 5, 7.5, 10, 12):
        for boundary in find_split_points(scenario_a_timestamps, target):
            assert boundary in ends


def test_no_boundary_at_or_beyond_total():
    timeline = words(("one", 0.0, 4.0), ("two.", 4.0, 10.0))
    # 10 is not strictly below the 10.0s total
    assert split_targets(10.0, 10.0) == []
    assert find_split_points(timeline, 10) == []
    assert find_split_points(timeline, 5) == [4.0]


def test_short_narration_gives_empty_plan():
    timeline = words(("Hello", 0.0, 1.0), ("there.", 1.0, 3.0))
    assert TimestampSegmenter(10.0).plan(timeline).is_empty


def test_empty_timestamps():
    assert find_split_points([], 10) == []
    assert TimestampSegmenter().plan([]).boundaries == []


@pytest.mark.parametrize("target", [0, -1.5])
def test_non_positive_target_rejected(target):
    with pytest.raises(InputError):
        find_split_points(words(("a", 0.0, 1.0)), target)
    with pytest.raises(InputError):
        TimestampSegmenter(target)


def test_sentence_end_within_band_beats_closer_word():
    # "ahead" is 0.10 from the target, "done." is 0.14: inside 1.5 x 0.10
    timeline = words(("ahead", 4.5, 4.9), ("done.", 4.9, 5.14), ("tail", 5.5, 6.0))
    assert find_split_points(timeline, 5) == [5.14]


def test_word_outside_band_does_not_win():
    # 0.16 is beyond 1.5 x 0.10, so the sentence end loses
    timeline = words(("ahead", 4.5, 4.9), ("done.", 4.9, 5.16), ("tail", 5.5, 6.0))
    assert find_split_points(timeline, 5) == [4.9]


def test_pause_counts_as_sentence_end():
    timeline = words(("a", 0.0, 1.0), ("b", 1.5, 2.0), ("c", 2.0, 3.0))
    assert is_sentence_end(timeline, 0)
    assert not is_sentence_end(timeline, 1)
    # Final word is never a candidate
    assert not is_sentence_end(timeline, 2)


def test_first_word_chosen_when_all_equal_distance():
    timeline = words(("a", 0.0, 1.0), ("b", 1.0, 3.0), ("c", 3.0, 4.0))
    assert closest_word_end(timeline, 2.0) == 0


def test_repeated_targets_keep_duplicates_in_raw_plan():
    # Both targets (1.0 and 2.0) resolve to the end of "long"
    timeline = words(("a", 0.0, 0.2), ("long", 0.2, 1.5), ("end", 1.5, 3.0))
    raw = find_split_points(timeline, 1.0)
    assert raw == [1.5, 1.5]
    assert SplitPlan(boundaries=raw).normalized(3.0).boundaries == [1.5]


def test_segmenter_override_target(scenario_a_timestamps):
    segmenter = TimestampSegmenter(target_duration=10.0)
    plan = segmenter.plan(scenario_a_timestamps, target_duration=20.0)
    assert plan.boundaries == [19.8]


def test_word_timestamp_validation():
    with pytest.raises(ValueError):
        WordTimestamp(word="x", start=2.0, end=1.0)
    with pytest.raises(ValueError):
        WordTimestamp(word="x", start=-0.1, end=1.0)
