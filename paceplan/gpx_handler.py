import logging
from dataclasses import dataclass, replace
from typing import Optional, Tuple

import gpxpy
import numpy as np
import pandas as pd
from gpxpy.gpx import GPXException

from paceplan.config import get_settings
from paceplan.errors import (
    InsufficientDataError,
    InvalidDistanceError,
    PacePlanError,
    TrackTooLargeError,
)

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class TrackPoint:
    distance: float  # km from track start
    elevation: float  # m
    lat: float = 0.0
    lon: float = 0.0
    cum_elev_gain: float = 0.0
    cum_elev_loss: float = 0.0


@dataclass(frozen=True)
class Track:
    points: Tuple[TrackPoint, ...]
    total_distance: float
    total_elev_gain: float
    total_elev_loss: float
    max_elevation: float
    min_elevation: float


@dataclass(frozen=True)
class TrackParseResult:
    """Either a parsed track or the reason it could not be produced."""
    track: Optional[Track] = None
    error: Optional[str] = None

    @property
    def ok(self):
        return self.track is not None and self.error is None


def haversine_vectorized(lat1, lon1, lat2, lon2):
    """Great-circle distance in km between arrays of coordinates."""
    phi1, phi2 = np.radians(lat1), np.radians(lat2)
    dphi = np.radians(lat2 - lat1)
    dlambda = np.radians(lon2 - lon1)
    a = np.sin(dphi/2)**2 + np.cos(phi1)*np.cos(phi2) * np.sin(dlambda/2)**2
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1-a))
    return EARTH_RADIUS_KM * c


def _numeric_column(df, *names):
    # First column present wins; missing or unparseable values become 0
    values = pd.Series(np.nan, index=df.index, dtype=float)
    for name in names:
        if name in df.columns:
            values = values.fillna(pd.to_numeric(df[name], errors="coerce"))
    return values.fillna(0.0).to_numpy(dtype=float)


def parse_track(samples) -> Track:
    """
    Turn raw samples (mappings with lat, lon and elevation/ele) into a
    distance-indexed track with running elevation gain and loss.
    """
    samples = list(samples)
    if len(samples) < 2:
        raise InsufficientDataError(
            f"A track needs at least 2 points, got {len(samples)}"
        )
    max_points = get_settings().max_track_points
    if len(samples) > max_points:
        raise TrackTooLargeError(
            f"Track has {len(samples)} points (limit {max_points})"
        )

    df_raw = pd.DataFrame.from_records(samples)
    raw_lat = _numeric_column(df_raw, "lat")
    raw_lon = _numeric_column(df_raw, "lon")
    raw_ele = _numeric_column(df_raw, "elevation", "ele")

    # --- 1. Cumulative distance (km) ---
    dists = haversine_vectorized(
        raw_lat[:-1], raw_lon[:-1],
        raw_lat[1:], raw_lon[1:]
    )
    cum_dist = np.concatenate(([0.0], np.cumsum(dists)))

    # --- 2. Cumulative elevation gain / loss (m) ---
    ele_diff = np.diff(raw_ele)
    cum_gain = np.concatenate(([0.0], np.cumsum(np.clip(ele_diff, 0, None))))
    cum_loss = np.concatenate(([0.0], np.cumsum(np.clip(-ele_diff, 0, None))))

    points = tuple(
        TrackPoint(
            distance=float(d),
            elevation=float(e),
            lat=float(la),
            lon=float(lo),
            cum_elev_gain=float(g),
            cum_elev_loss=float(l),
        )
        for d, e, la, lo, g, l in zip(cum_dist, raw_ele, raw_lat, raw_lon, cum_gain, cum_loss)
    )

    track = Track(
        points=points,
        total_distance=float(cum_dist[-1]),
        total_elev_gain=float(cum_gain[-1]),
        total_elev_loss=float(cum_loss[-1]),
        max_elevation=float(raw_ele.max()),
        min_elevation=float(raw_ele.min()),
    )
    logger.info(
        "Parsed track: %d points, %.2f km, +%.0fm / -%.0fm",
        len(points), track.total_distance, track.total_elev_gain, track.total_elev_loss,
    )
    return track


def normalize_to_race_distance(track: Track, target_distance: float) -> Track:
    """
    Rescale the distance axis so the track ends at `target_distance` km.
    Elevations (and the gain/loss totals) are left as recorded.
    """
    if target_distance <= 0:
        raise InvalidDistanceError(f"Target distance must be positive, got {target_distance!r}")
    if track.total_distance <= 0:
        raise InvalidDistanceError("Cannot normalize a track with zero length")

    ratio = target_distance / track.total_distance
    points = tuple(replace(p, distance=p.distance * ratio) for p in track.points)
    logger.debug("Scaled track %.3f km -> %.3f km (x%.4f)", track.total_distance, target_distance, ratio)
    return replace(track, points=points, total_distance=float(target_distance))


def samples_from_gpx(gpx):
    """Flatten a gpxpy document into sample dicts. Routes are used when there are no tracks."""
    samples = []
    for track in gpx.tracks:
        for segment in track.segments:
            for point in segment.points:
                samples.append({
                    'lat': point.latitude,
                    'lon': point.longitude,
                    'elevation': point.elevation,
                })
    if not samples:
        for route in gpx.routes:
            for point in route.points:
                samples.append({
                    'lat': point.latitude,
                    'lon': point.longitude,
                    'elevation': point.elevation,
                })
    return samples


def load_track(gpx_text, target_distance=None) -> TrackParseResult:
    """
    Parse GPX XML into a track, optionally normalized to a race distance.
    Failures are returned in the result instead of raised.
    """
    try:
        gpx = gpxpy.parse(gpx_text)
        track = parse_track(samples_from_gpx(gpx))
        if target_distance is not None:
            track = normalize_to_race_distance(track, target_distance)
    except GPXException as e:
        logger.warning("Invalid GPX: %s", e)
        return TrackParseResult(error=f"Invalid GPX: {e}")
    except PacePlanError as e:
        logger.warning("Unusable GPX track: %s", e)
        return TrackParseResult(error=str(e))
    return TrackParseResult(track=track)


class GPXHandler:
    def __init__(self, gpx_path):
        self.gpx_path = gpx_path

    def read_samples(self):
        with open(self.gpx_path, 'r') as gpx_file:
            gpx = gpxpy.parse(gpx_file)
        return samples_from_gpx(gpx)

    def parse(self) -> Track:
        return parse_track(self.read_samples())

    def to_race_track(self, target_distance) -> Track:
        """Parse the file and map it onto the official race distance."""
        return normalize_to_race_distance(self.parse(), target_distance)

    def load(self, target_distance=None) -> TrackParseResult:
        try:
            with open(self.gpx_path, 'r') as gpx_file:
                gpx_text = gpx_file.read()
        except OSError as e:
            logger.warning("Could not read %s: %s", self.gpx_path, e)
            return TrackParseResult(error=f"Could not read {self.gpx_path}: {e}")
        return load_track(gpx_text, target_distance)
