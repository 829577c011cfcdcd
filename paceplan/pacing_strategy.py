import logging
import math

from paceplan.config import get_settings
from paceplan.pace_math import calculate_total_seconds
from paceplan.race_segments import renormalize
from paceplan.terrain import align_to_segments

logger = logging.getLogger(__name__)

MIN_INTENSITY = 0.0
MAX_INTENSITY = 2.0

# Boundaries (km) closer than this are treated as the same segment
MATCH_TOLERANCE_KM = 1e-6


def terrain_pace_delta(elevation_segment):
    """
    Seconds per km to add for a stretch of course.

    A step table on average gradient (%) and elevation gain/loss (m), so the
    adjustment for any segment can be read straight off the table.
    """
    gradient = elevation_segment.avg_gradient
    gain = elevation_segment.elev_gain
    loss = elevation_segment.elev_loss

    if gradient > 4 or (gradient > 2 and gain > 100):
        return 30
    elif gradient > 2 or (gradient > 1 and gain > 80):
        return 20
    elif gradient > 0.5 or (gradient > 0 and gain > 50):
        return 10
    elif gradient < -4 or (gradient < -2 and loss > 100):
        return -15
    elif gradient < -2:
        return -8
    return 0


def _find_matching(segment, elevation_segments):
    for elev in elevation_segments:
        if (math.isclose(elev.start_distance, segment.start_distance, abs_tol=MATCH_TOLERANCE_KM)
                and math.isclose(elev.end_distance, segment.end_distance, abs_tol=MATCH_TOLERANCE_KM)):
            return elev
    return None


class PacingStrategy:
    def __init__(self, intensity=None):
        """
        intensity: 0.0 to 2.0, share of the table adjustment to apply
                   (1.0 = 100%). Defaults to the configured intensity.
        """
        if intensity is None:
            intensity = get_settings().default_intensity
        intensity = float(intensity)
        if not MIN_INTENSITY <= intensity <= MAX_INTENSITY:
            clamped = max(MIN_INTENSITY, min(MAX_INTENSITY, intensity))
            logger.warning("Intensity %.2f out of range, using %.2f", intensity, clamped)
            intensity = clamped
        self.intensity = intensity

    def pace_deltas(self, segments, elevation_segments):
        """Scaled delta (s/km) per race segment; 0 where no elevation data matches."""
        deltas = []
        for seg in segments:
            elev = _find_matching(seg, elevation_segments)
            if elev is None:
                logger.debug("No elevation data for %s; leaving pace as is", seg.name)
                deltas.append(0.0)
                continue
            deltas.append(terrain_pace_delta(elev) * self.intensity)
        return deltas

    def apply_terrain(self, segments, elevation_segments):
        """
        Shift each segment's pace by its terrain delta, then rescale every
        pace by one factor so the plan still finishes in the same total time.
        """
        segments = tuple(segments)
        original_total = calculate_total_seconds(segments)
        deltas = self.pace_deltas(segments, elevation_segments)

        adjusted = tuple(
            seg.with_pace(max(0.0, seg.custom_pace + delta))
            for seg, delta in zip(segments, deltas)
        )

        # --- Renormalization (keep the finish time) ---
        new_total = calculate_total_seconds(adjusted)
        if new_total <= 0:
            logger.warning("Adjusted plan has zero total time; skipping renormalization")
            return adjusted
        if new_total != original_total:
            adjusted = renormalize(adjusted, original_total)
            logger.debug(
                "Renormalized terrain plan by x%.5f (%.1fs -> %.1fs)",
                original_total / new_total, new_total, original_total,
            )
        return adjusted

    def adjust_for_track(self, segments, track):
        """Align the (normalized) track to the race segments and apply the terrain adjustment."""
        segments = tuple(segments)
        elevation_segments = align_to_segments(track, segments)
        return self.apply_terrain(segments, elevation_segments)
