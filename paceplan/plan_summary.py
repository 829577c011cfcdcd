import logging
from dataclasses import dataclass
from typing import Optional

import pandas as pd

from paceplan.pace_math import (
    calculate_average_pace,
    calculate_cumulative_times,
    calculate_total_seconds,
    format_clock,
    pace_to_seconds,
    parse_duration,
)
from paceplan.race_segments import PacePlan, RaceCategory, Segment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanSummary:
    total_time: str
    total_seconds: int
    average_pace: str
    fastest: Optional[Segment]
    slowest: Optional[Segment]


def find_fastest_and_slowest(segments):
    """Segments with the lowest and highest pace; ties go to the earlier segment."""
    segments = list(segments)
    if not segments:
        return None, None
    # min()/max() keep the first of equal keys
    fastest = min(segments, key=lambda s: s.custom_pace)
    slowest = max(segments, key=lambda s: s.custom_pace)
    return fastest, slowest


def summarize(segments, distance_km=None) -> PlanSummary:
    """
    Recompute the plan totals from the current segment list.
    `distance_km` defaults to the distance the segments cover.
    """
    segments = list(segments)
    total_seconds = calculate_total_seconds(segments)
    if distance_km is None:
        distance_km = sum(seg.distance for seg in segments)
    fastest, slowest = find_fastest_and_slowest(segments)

    summary = PlanSummary(
        total_time=format_clock(total_seconds),
        total_seconds=total_seconds,
        average_pace=calculate_average_pace(total_seconds, distance_km),
        fastest=fastest,
        slowest=slowest,
    )
    logger.debug("Plan summary: %s at %s", summary.total_time, summary.average_pace)
    return summary


def summarize_plan(plan: PacePlan) -> PlanSummary:
    return summarize(plan.segments, plan.distance_km)


def plan_to_dict(plan: PacePlan):
    """Serializable record of a plan, for whatever storage the caller uses."""
    return {
        "name": plan.name,
        "targetTime": plan.target_time,
        "raceCategory": plan.race_category.value,
        "distanceKm": plan.distance_km,
        "segments": [
            {
                "id": seg.id,
                "name": seg.name,
                "startDistance": seg.start_distance,
                "endDistance": seg.end_distance,
                "targetPace": seg.target_pace_text,
                "customPace": seg.pace,
                "segmentTime": seg.segment_time,
            }
            for seg in plan.segments
        ],
        "totalTime": plan.total_time,
    }


def plan_from_dict(data) -> PacePlan:
    """
    Rebuild a plan from `plan_to_dict` output.
    Stored segment times are kept as they are, even if edited by hand.
    """
    segments = []
    for raw in data["segments"]:
        start = float(raw["startDistance"])
        end = float(raw["endDistance"])
        custom = pace_to_seconds(raw["customPace"])
        target = pace_to_seconds(raw.get("targetPace", raw["customPace"]))
        if raw.get("segmentTime"):
            seconds = float(parse_duration(raw["segmentTime"]))
        else:
            seconds = custom * (end - start)
        segments.append(Segment(
            id=int(raw["id"]),
            start_distance=start,
            end_distance=end,
            target_pace=target,
            custom_pace=custom,
            segment_seconds=seconds,
        ))

    return PacePlan(
        name=data["name"],
        target_time=data["targetTime"],
        race_category=RaceCategory(data["raceCategory"]),
        distance_km=float(data["distanceKm"]),
        segments=tuple(segments),
    )


def plan_to_dataframe(plan: PacePlan) -> pd.DataFrame:
    """Segment table for display or CSV export."""
    segments = plan.segments
    df = pd.DataFrame({
        'segment': [seg.name for seg in segments],
        'distance_km': [round(seg.distance, 3) for seg in segments],
        'target_pace': [seg.target_pace_text for seg in segments],
        'pace': [seg.pace for seg in segments],
        'segment_time': [seg.segment_time for seg in segments],
        'cumulative_time': calculate_cumulative_times(segments),
    })
    return df
