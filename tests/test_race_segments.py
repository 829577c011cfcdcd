import dataclasses

import pytest

from paceplan.config import Settings, init_settings
from paceplan.errors import InvalidDistanceError
from paceplan.pace_math import calculate_total_seconds, calculate_total_time
from paceplan.race_segments import (
    RaceCategory,
    apply_split_strategy,
    create_plan,
    create_plan_from_average_pace,
    generate_segments,
    get_default_plan,
    reset_to_target,
    scale_target_time,
    update_remaining_segments,
    update_segment_pace,
)


def assert_partition(segments, total):
    assert segments[0].start_distance == 0
    for prev, nxt in zip(segments, segments[1:]):
        assert prev.end_distance == nxt.start_distance
    assert all(seg.end_distance > seg.start_distance for seg in segments)
    assert segments[-1].end_distance == total


class TestSegmentTemplates:

    def test_full_marathon_partition(self):
        """Nine segments: eight of 5 km and a 2.195 km finish"""
        segments = generate_segments(RaceCategory.FULL)
        assert len(segments) == 9
        assert_partition(segments, 42.195)
        assert segments[-1].name == "40-42.195km"
        assert segments[-1].distance == pytest.approx(2.195)

    def test_half_marathon_partition(self):
        segments = generate_segments("Half")
        assert len(segments) == 5
        assert_partition(segments, 21.0975)

    @pytest.mark.parametrize("category, count", [("5K", 5), ("10K", 10)])
    def test_short_races_use_1km_segments(self, category, count):
        segments = generate_segments(category)
        assert len(segments) == count
        assert all(seg.distance == pytest.approx(1.0) for seg in segments)

    def test_ultra_remainder(self):
        """55 km ultra: five 10 km segments and a 5 km remainder"""
        segments = generate_segments(RaceCategory.ULTRA, ultra_distance=55)
        assert [seg.distance for seg in segments] == [10, 10, 10, 10, 10, 5]
        assert_partition(segments, 55)

    def test_short_ultra_is_single_segment(self):
        segments = generate_segments(RaceCategory.ULTRA, ultra_distance=8)
        assert len(segments) == 1
        assert segments[0].name == "0-8km"

    @pytest.mark.parametrize("distance", [None, 0, -5])
    def test_ultra_needs_positive_distance(self, distance):
        with pytest.raises(InvalidDistanceError):
            generate_segments(RaceCategory.ULTRA, ultra_distance=distance)

    def test_default_pace(self):
        segments = generate_segments(RaceCategory.TEN_K)
        for seg in segments:
            assert seg.target_pace == seg.custom_pace == 300
            assert seg.segment_time == "5:00"
            assert seg.pace == "5:00/km"

    def test_default_pace_from_settings(self):
        init_settings(Settings(_env_file=None, default_pace="6:00/km"))
        segments = generate_segments(RaceCategory.FIVE_K)
        assert segments[0].custom_pace == 360

    def test_segments_are_immutable(self):
        segments = generate_segments(RaceCategory.FIVE_K)
        with pytest.raises(dataclasses.FrozenInstanceError):
            segments[0].custom_pace = 200
        faster = segments[0].with_pace(240)
        assert segments[0].custom_pace == 300
        assert faster.segment_seconds == 240


class TestPlanCreation:

    def test_even_marathon_plan(self):
        """3:30:00 marathon: 298.6 s/km everywhere, total reproduced"""
        plan = create_plan(RaceCategory.FULL, "3:30:00")
        for seg in plan.segments:
            assert seg.custom_pace == pytest.approx(12600 / 42.195)
        assert calculate_total_time(plan.segments) == "3:30:00"
        assert plan.total_time == "3:30:00"
        assert plan.name == "Full Plan (3:30:00)"

    def test_plan_from_average_pace(self):
        plan = create_plan_from_average_pace("10K", "5:00/km")
        assert plan.target_time == "0:50:00"
        assert plan.total_time == "0:50:00"

    def test_scale_target_time(self):
        assert scale_target_time("3:30:00", 42.195, 21.0975) == "1:45:00"

    def test_scale_target_time_zero_distance(self):
        with pytest.raises(InvalidDistanceError):
            scale_target_time("3:30:00", 0, 10)

    def test_default_plan(self):
        plan = get_default_plan()
        assert plan.name == "Marathon Plan"
        assert plan.race_category is RaceCategory.FULL
        assert len(plan.segments) == 9
        assert all(seg.custom_pace == 300 for seg in plan.segments)
        assert plan.total_seconds == pytest.approx(42.195 * 300, abs=1)
        assert plan.total_time == plan.target_time
        assert get_default_plan("4:30/km").segments[0].custom_pace == 270


class TestSplitStrategy:

    def test_negative_split_is_faster_late(self):
        plan = create_plan(RaceCategory.FULL, "3:30:00", split_strategy=-20)
        assert plan.segments[0].custom_pace > plan.segments[-1].custom_pace
        assert calculate_total_seconds(plan.segments) == pytest.approx(12600)

    def test_positive_split_is_faster_early(self):
        plan = create_plan(RaceCategory.TEN_K, "0:50:00")
        split = apply_split_strategy(plan.segments, 30)
        assert split[0].custom_pace < split[-1].custom_pace
        assert calculate_total_seconds(split) == pytest.approx(3000)
        # target pace is the reference and stays put
        assert split[0].target_pace == plan.segments[0].target_pace

    def test_zero_strategy_is_noop(self):
        segments = generate_segments(RaceCategory.TEN_K)
        assert apply_split_strategy(segments, 0) == segments

    def test_reset_to_target(self):
        segments = apply_split_strategy(generate_segments(RaceCategory.TEN_K), 40)
        reset = reset_to_target(segments)
        assert all(seg.custom_pace == seg.target_pace for seg in reset)


class TestManualEdits:

    def test_edit_rebalances_other_segments(self):
        plan = create_plan(RaceCategory.FULL, "3:30:00")
        edited = update_segment_pace(plan.segments, 3, "5:30/km")
        assert edited[2].custom_pace == 330
        assert calculate_total_seconds(edited) == pytest.approx(12600)
        assert edited[0].custom_pace < plan.segments[0].custom_pace

    def test_edit_without_rebalance_changes_total(self):
        segments = generate_segments(RaceCategory.FIVE_K)
        edited = update_segment_pace(segments, 1, "6:00/km", rebalance=False)
        assert calculate_total_seconds(edited) == pytest.approx(1560)
        assert edited[1:] == segments[1:]

    def test_edit_unknown_segment_is_noop(self):
        segments = generate_segments(RaceCategory.FIVE_K)
        assert update_segment_pace(segments, 99, "4:00/km") == segments

    def test_rebalance_skipped_when_segment_uses_whole_total(self):
        """One 30:00/km km is longer than the whole 25:00 plan"""
        segments = generate_segments(RaceCategory.FIVE_K)
        edited = update_segment_pace(segments, 1, "30:00/km")
        assert edited[0].custom_pace == 1800
        assert edited[1:] == segments[1:]

    def test_update_remaining_segments(self):
        segments = generate_segments(RaceCategory.TEN_K)
        updated = update_remaining_segments(segments, 7, "4:30/km")
        assert [seg.custom_pace for seg in updated[:7]] == [300] * 7
        assert [seg.custom_pace for seg in updated[7:]] == [270] * 3
        assert updated[9].segment_time == "4:30"
