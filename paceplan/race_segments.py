import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Sequence, Tuple

from paceplan.config import get_settings
from paceplan.errors import InvalidDistanceError
from paceplan.pace_math import (
    apportion_seconds,
    calculate_total_seconds,
    format_clock,
    format_duration,
    pace_to_seconds,
    parse_duration,
    seconds_to_pace,
)

logger = logging.getLogger(__name__)

# Boundary comparisons are done in km
DISTANCE_EPS = 1e-9


class RaceCategory(str, Enum):
    FIVE_K = "5K"
    TEN_K = "10K"
    HALF = "Half"
    FULL = "Full"
    ULTRA = "Ultra"


RACE_DISTANCES = {
    RaceCategory.FIVE_K: 5.0,
    RaceCategory.TEN_K: 10.0,
    RaceCategory.HALF: 21.0975,
    RaceCategory.FULL: 42.195,
}

SEGMENT_STEP_KM = {
    RaceCategory.FIVE_K: 1.0,
    RaceCategory.TEN_K: 1.0,
    RaceCategory.HALF: 5.0,
    RaceCategory.FULL: 5.0,
    RaceCategory.ULTRA: 10.0,
}


def _fmt_km(value):
    return f"{round(value, 4):g}"


@dataclass(frozen=True)
class Segment:
    id: int
    start_distance: float
    end_distance: float
    target_pace: float  # s/km
    custom_pace: float  # s/km
    segment_seconds: float

    @property
    def distance(self):
        return self.end_distance - self.start_distance

    @property
    def name(self):
        return f"{_fmt_km(self.start_distance)}-{_fmt_km(self.end_distance)}km"

    @property
    def pace(self):
        return seconds_to_pace(self.custom_pace)

    @property
    def target_pace_text(self):
        return seconds_to_pace(self.target_pace)

    @property
    def segment_time(self):
        return format_duration(self.segment_seconds)

    def with_pace(self, pace_seconds):
        """Copy with a new effective pace and a recomputed segment time."""
        return replace(
            self,
            custom_pace=pace_seconds,
            segment_seconds=pace_seconds * self.distance,
        )


@dataclass(frozen=True)
class PacePlan:
    name: str
    target_time: str
    race_category: RaceCategory
    distance_km: float
    segments: Tuple[Segment, ...]

    @property
    def total_seconds(self):
        return calculate_total_seconds(self.segments)

    @property
    def total_time(self):
        return format_clock(self.total_seconds)


def race_distance(category, ultra_distance=None):
    category = RaceCategory(category)
    if category is RaceCategory.ULTRA:
        if ultra_distance is None or ultra_distance <= 0:
            raise InvalidDistanceError(
                f"Ultra races need a positive custom distance, got {ultra_distance!r}"
            )
        return float(ultra_distance)
    return RACE_DISTANCES[category]


def generate_segments(category, ultra_distance=None, pace=None) -> Tuple[Segment, ...]:
    """
    Build the segment template for a race.

    5K/10K are split every 1 km, Half/Full every 5 km and Ultra every 10 km.
    The last segment covers whatever remains so the segments partition
    [0, distance] exactly.
    """
    category = RaceCategory(category)
    total = race_distance(category, ultra_distance)
    step = SEGMENT_STEP_KM[category]
    pace_s = pace_to_seconds(pace if pace is not None else get_settings().default_pace)

    segments = []
    k = 0
    # Boundaries are k * step, so no drift accumulates over long ultras
    while k * step < total - DISTANCE_EPS:
        start = k * step
        end = min((k + 1) * step, total)
        if total - end < DISTANCE_EPS:
            end = total
        segments.append(Segment(
            id=k + 1,
            start_distance=start,
            end_distance=end,
            target_pace=pace_s,
            custom_pace=pace_s,
            segment_seconds=pace_s * (end - start),
        ))
        k += 1

    logger.debug("Generated %d segments for %s (%.4f km)", len(segments), category.value, total)
    return tuple(segments)


def renormalize(segments: Sequence[Segment], target_seconds: float) -> Tuple[Segment, ...]:
    """
    Scale every pace by one factor so the plan total equals `target_seconds`.

    Segment times are stored as whole seconds, the leftover rounding spread
    over the segments, so the displayed times add up to the target exactly.
    A plan whose total is zero is returned unchanged.
    """
    current = math.fsum(seg.segment_seconds for seg in segments)
    if current <= 0:
        logger.warning("Cannot renormalize a plan with zero total time")
        return tuple(segments)
    factor = target_seconds / current
    whole = apportion_seconds([seg.segment_seconds * factor for seg in segments], target_seconds)
    return tuple(
        replace(seg, custom_pace=seg.custom_pace * factor, segment_seconds=float(s))
        for seg, s in zip(segments, whole)
    )


def apply_split_strategy(segments: Sequence[Segment], strategy: float) -> Tuple[Segment, ...]:
    """
    Tilt the plan towards a negative (< 0) or positive (> 0) split.

    strategy is in -50..50. Each segment moves by
    (position - 0.5) * 2 * strategy * target_pace * 0.002 seconds, where
    position runs 0..1 along the race; the result keeps the previous total.
    """
    segments = tuple(segments)
    if strategy == 0 or len(segments) < 2:
        return segments
    strategy = max(-50.0, min(50.0, float(strategy)))

    original_total = calculate_total_seconds(segments)
    last = len(segments) - 1
    tilted = []
    for i, seg in enumerate(segments):
        position = i / last
        adjustment = (position - 0.5) * 2
        delta = adjustment * strategy * seg.target_pace * 0.002
        tilted.append(seg.with_pace(max(1.0, seg.target_pace + delta)))
    return renormalize(tilted, original_total)


def reset_to_target(segments: Sequence[Segment]) -> Tuple[Segment, ...]:
    return tuple(seg.with_pace(seg.target_pace) for seg in segments)


def update_segment_pace(segments: Sequence[Segment], segment_id, pace, rebalance=True) -> Tuple[Segment, ...]:
    """
    Set the effective pace of one segment.

    With `rebalance`, the other segments are scaled by a common factor so the
    plan keeps its total time. If the edited segment alone already uses up
    the whole total, the rebalance is skipped.
    """
    segments = tuple(segments)
    pace_s = pace_to_seconds(pace)
    if not any(seg.id == segment_id for seg in segments):
        logger.warning("No segment with id %s; plan unchanged", segment_id)
        return segments

    original_total = calculate_total_seconds(segments)
    edited = tuple(seg.with_pace(pace_s) if seg.id == segment_id else seg for seg in segments)
    if not rebalance:
        return edited

    edited_seconds = calculate_total_seconds(seg for seg in edited if seg.id == segment_id)
    others = [seg for seg in edited if seg.id != segment_id]
    remaining = original_total - edited_seconds
    if calculate_total_seconds(others) <= 0 or remaining <= 0:
        logger.warning(
            "Segment %s takes %.0fs of a %.0fs plan; skipping rebalance",
            segment_id, edited_seconds, original_total,
        )
        return edited

    rebalanced = iter(renormalize(others, remaining))
    return tuple(seg if seg.id == segment_id else next(rebalanced) for seg in edited)


def update_remaining_segments(segments: Sequence[Segment], start_index, pace) -> Tuple[Segment, ...]:
    """Give every segment from `start_index` onward the same pace."""
    pace_s = pace_to_seconds(pace)
    return tuple(
        seg.with_pace(pace_s) if i >= start_index else seg
        for i, seg in enumerate(segments)
    )


def scale_target_time(target_time, from_distance, to_distance):
    """Keep the per-km pace of `target_time` when the race distance changes."""
    if from_distance <= 0:
        raise InvalidDistanceError(f"Invalid distance: {from_distance!r}")
    pace_s = parse_duration(target_time) / from_distance
    return format_clock(pace_s * to_distance)


def create_plan(category, target_time, ultra_distance=None, name=None, split_strategy=0) -> PacePlan:
    """Even-paced plan that finishes in `target_time`."""
    category = RaceCategory(category)
    total = race_distance(category, ultra_distance)
    target_seconds = parse_duration(target_time)
    # Keep the fractional pace; rounding only happens when displayed
    even_pace = target_seconds / total

    segments = renormalize(generate_segments(category, ultra_distance, pace=even_pace), target_seconds)
    segments = apply_split_strategy(segments, split_strategy)

    target_text = format_clock(target_seconds)
    plan = PacePlan(
        name=name or f"{category.value} Plan ({target_text})",
        target_time=target_text,
        race_category=category,
        distance_km=total,
        segments=segments,
    )
    logger.info("Created %s at %s", plan.name, seconds_to_pace(even_pace))
    return plan


def create_plan_from_average_pace(category, pace, ultra_distance=None, name=None, split_strategy=0) -> PacePlan:
    category = RaceCategory(category)
    total = race_distance(category, ultra_distance)
    target_seconds = pace_to_seconds(pace) * total
    return create_plan(
        category,
        format_clock(target_seconds),
        ultra_distance=ultra_distance,
        name=name,
        split_strategy=split_strategy,
    )


def replace_segments(plan: PacePlan, segments: Sequence[Segment]) -> PacePlan:
    return replace(plan, segments=tuple(segments))


def get_default_plan(pace: Optional[str] = None) -> PacePlan:
    """A full marathon at the default pace, used before the user sets a target."""
    segments = generate_segments(RaceCategory.FULL, pace=pace)
    total = calculate_total_seconds(segments)
    return PacePlan(
        name="Marathon Plan",
        target_time=format_clock(total),
        race_category=RaceCategory.FULL,
        distance_km=RACE_DISTANCES[RaceCategory.FULL],
        segments=segments,
    )
