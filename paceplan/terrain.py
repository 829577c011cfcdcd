import logging
from dataclasses import dataclass
from typing import List

import numpy as np

from paceplan.gpx_handler import Track

logger = logging.getLogger(__name__)

# Tolerance (km) for the closed end of the last interval
BOUNDARY_EPS = 1e-6


@dataclass(frozen=True)
class ElevationSegment:
    start_distance: float
    end_distance: float
    elev_gain: float = 0.0
    elev_loss: float = 0.0
    avg_gradient: float = 0.0  # %
    is_uphill: bool = False

    @property
    def distance(self):
        return self.end_distance - self.start_distance


def bucket_size_for(total_distance):
    if total_distance <= 5:
        return 1.0
    elif total_distance > 50:
        return 10.0
    return 5.0


def _as_range(boundary):
    if hasattr(boundary, "start_distance"):
        return float(boundary.start_distance), float(boundary.end_distance)
    start, end = boundary
    return float(start), float(end)


def _aggregate(distances, elevations, start, end, closed) -> ElevationSegment:
    # A bucket owns the points in [start, end), the last one also its end point
    if closed:
        mask = (distances >= start) & (distances <= end + BOUNDARY_EPS)
    else:
        mask = (distances >= start) & (distances < end)
    own = elevations[mask]

    if own.size == 0:
        return ElevationSegment(start_distance=start, end_distance=end)

    # Close the profile at both boundaries so climbs across them are split, not lost
    edge_start, edge_end = np.interp([start, end], distances, elevations)
    profile = np.concatenate(([edge_start], own, [edge_end]))

    diffs = np.diff(profile)
    elev_gain = float(np.clip(diffs, 0, None).sum())
    elev_loss = float(np.clip(-diffs, 0, None).sum())

    length_m = (end - start) * 1000
    avg_gradient = float((edge_end - edge_start) / length_m * 100) if length_m > 0 else 0.0

    return ElevationSegment(
        start_distance=start,
        end_distance=end,
        elev_gain=elev_gain,
        elev_loss=elev_loss,
        avg_gradient=avg_gradient,
        is_uphill=avg_gradient > 0,
    )


def align_to_segments(track: Track, boundaries) -> List[ElevationSegment]:
    """
    Elevation aggregates for each (start, end) range, in order.

    `boundaries` holds race segments (anything with start_distance and
    end_distance) or plain (start, end) pairs. Ranges without any track point
    come back zero-filled, so the output always matches the input length.
    """
    ranges = [_as_range(b) for b in boundaries]
    distances = np.array([p.distance for p in track.points], dtype=float)
    elevations = np.array([p.elevation for p in track.points], dtype=float)

    last = len(ranges) - 1
    return [
        _aggregate(distances, elevations, start, end, closed=(i == last))
        for i, (start, end) in enumerate(ranges)
    ]


def bucket_boundaries(total_distance, bucket_size=None):
    size = bucket_size or bucket_size_for(total_distance)
    ranges = []
    k = 0
    while k * size < total_distance - BOUNDARY_EPS:
        start = k * size
        end = min((k + 1) * size, total_distance)
        ranges.append((start, end))
        k += 1
    return ranges


def segment_track(track: Track, bucket_size=None) -> List[ElevationSegment]:
    """Split the whole track into buckets sized for its length (1, 5 or 10 km)."""
    ranges = bucket_boundaries(track.total_distance, bucket_size)
    logger.debug("Segmenting %.2f km track into %d buckets", track.total_distance, len(ranges))
    return align_to_segments(track, ranges)
