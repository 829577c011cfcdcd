import math

import pytest

from paceplan.config import Settings, init_settings
from paceplan.gpx_handler import Track, TrackPoint

# km per degree of latitude on the haversine sphere
KM_PER_DEGREE = 6371.0 * math.pi / 180


@pytest.fixture(autouse=True)
def default_settings():
    """Fresh settings for every test, ignoring any local .env file."""
    settings = init_settings(Settings(_env_file=None))
    yield settings
    init_settings(Settings(_env_file=None))


def meridian_samples(distances_km, elevations):
    """Samples due north along lon=0, so track distances match `distances_km`."""
    return [
        {'lat': d / KM_PER_DEGREE, 'lon': 0.0, 'elevation': e}
        for d, e in zip(distances_km, elevations)
    ]


def gpx_document(samples, tag="trkpt"):
    pts = "".join(
        f'<{tag} lat="{s["lat"]}" lon="{s["lon"]}"><ele>{s["elevation"]}</ele></{tag}>'
        for s in samples
    )
    if tag == "rtept":
        body = f"<rte>{pts}</rte>"
    else:
        body = f"<trk><trkseg>{pts}</trkseg></trk>"
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<gpx version="1.1" creator="tests" xmlns="http://www.topografix.com/GPX/1/1">'
        f"{body}</gpx>"
    )


def track_from_profile(distances_km, elevations):
    """Track with exact distances, bypassing the haversine step."""
    points = []
    gain = loss = 0.0
    for i, (d, e) in enumerate(zip(distances_km, elevations)):
        if i:
            diff = e - elevations[i - 1]
            gain += max(diff, 0.0)
            loss += max(-diff, 0.0)
        points.append(TrackPoint(distance=float(d), elevation=float(e), cum_elev_gain=gain, cum_elev_loss=loss))
    return Track(
        points=tuple(points),
        total_distance=float(distances_km[-1]),
        total_elev_gain=gain,
        total_elev_loss=loss,
        max_elevation=float(max(elevations)),
        min_elevation=float(min(elevations)),
    )
