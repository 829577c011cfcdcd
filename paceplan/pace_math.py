import re

from paceplan.errors import InvalidDurationError, InvalidPaceError

# Pace conversion ratios (applied to the seconds-per-unit value)
KM_TO_MILE = 0.621371
MILE_TO_KM = 1.60934

_PACE_RE = re.compile(r"^\s*(\d+):(\d+(?:\.\d+)?)\s*(?:/\s*(km|mile|mi))?\s*$")


def whole_seconds(seconds):
    """The whole seconds a duration is displayed as."""
    return int(round(max(0.0, seconds)))


def apportion_seconds(seconds, total):
    """
    Round each duration to whole seconds so that together they add up to
    round(total). The seconds lost to flooring go to the largest remainders,
    earlier entries first on ties.
    """
    target = whole_seconds(total)
    floors = [int(max(0.0, s)) for s in seconds]
    shortfall = target - sum(floors)
    if not 0 <= shortfall <= len(floors):
        return [whole_seconds(s) for s in seconds]
    order = sorted(range(len(floors)), key=lambda i: max(0.0, seconds[i]) - floors[i], reverse=True)
    for i in order[:shortfall]:
        floors[i] += 1
    return floors
def pace_to_seconds(pace):
    """
    Convert a pace string ("4:58", "4:58/km", "8:00/mile") to seconds per unit.
    The unit suffix is ignored. Numbers are returned as float seconds.
    """
    if isinstance(pace, (int, float)):
        return float(pace)
    match = _PACE_RE.match(str(pace))
    if not match:
        raise InvalidPaceError(f"Invalid pace: {pace!r} (expected M:SS/km)")
    minutes, seconds = match.group(1), match.group(2)
    return int(minutes) * 60 + float(seconds)


def seconds_to_pace(seconds, unit="km"):
    """Format seconds per unit as "M:SS/km". Rounds to whole seconds."""
    total = whole_seconds(seconds)
    minutes, secs = divmod(total, 60)
    return f"{minutes}:{secs:02d}/{unit}"


def parse_duration(text):
    """Parse "H:MM:SS" or "MM:SS" into seconds."""
    parts = str(text).strip().split(":")
    try:
        values = [int(p) for p in parts]
    except ValueError:
        raise InvalidDurationError(f"Invalid duration: {text!r}") from None

    if any(v < 0 for v in values):
        raise InvalidDurationError(f"Invalid duration: {text!r}")
    if len(values) == 3:  # h:mm:ss
        h, m, s = values
        return h * 3600 + m * 60 + s
    elif len(values) == 2:  # mm:ss
        m, s = values
        return m * 60 + s
    raise InvalidDurationError(f"Invalid duration: {text!r}")


def format_duration(seconds):
    """MM:SS below one hour, H:MM:SS above."""
    total = whole_seconds(seconds)
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    if h > 0:
        return f"{h}:{m:02d}:{s:02d}"
    return f"{m}:{s:02d}"


def format_clock(seconds):
    total = whole_seconds(seconds)
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    return f"{h}:{m:02d}:{s:02d}"


def calculate_segment_time(pace, distance_km):
    return format_duration(pace_to_seconds(pace) * distance_km)


def calculate_total_seconds(segments):
    """
    Sum the stored time of each segment, in the whole seconds it is shown as,
    so the total always equals the displayed segment times added up.
    Segment times are not recomputed from pace x distance: whatever time a
    segment carries is authoritative for the plan total.
    """
    return sum(whole_seconds(seg.segment_seconds) for seg in segments)


def calculate_total_time(segments):
    return format_clock(calculate_total_seconds(segments))


def calculate_cumulative_times(segments):
    """Elapsed time (H:MM:SS) at the end of each segment."""
    times = []
    elapsed = 0
    for seg in segments:
        elapsed += whole_seconds(seg.segment_seconds)
        times.append(format_clock(elapsed))
    return times


def calculate_average_pace(total_time, distance_km):
    if distance_km <= 0:
        return seconds_to_pace(0)
    if isinstance(total_time, str):
        total_time = parse_duration(total_time)
    return seconds_to_pace(total_time / distance_km)


def calculate_pace(time, distance_km):
    """Pace needed to cover `distance_km` in `time`."""
    return calculate_average_pace(time, distance_km)


def calculate_time(pace, distance_km):
    return format_clock(pace_to_seconds(pace) * distance_km)


def adjust_pace_by_seconds(pace, seconds_adjustment):
    # Never slower than zero: 1 s/km is the floor
    adjusted = max(pace_to_seconds(pace) + seconds_adjustment, 1)
    return seconds_to_pace(adjusted)


def km_pace_to_mile_pace(km_pace):
    return seconds_to_pace(pace_to_seconds(km_pace) / KM_TO_MILE, unit="mile")


def mile_pace_to_km_pace(mile_pace):
    return seconds_to_pace(pace_to_seconds(mile_pace) / MILE_TO_KM)
