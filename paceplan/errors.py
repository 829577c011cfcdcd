class PacePlanError(Exception):
    """Base class for every error raised by the pace planning core."""


class InvalidPaceError(PacePlanError, ValueError):
    """A pace string could not be parsed as M:SS (with optional unit)."""


class InvalidDurationError(PacePlanError, ValueError):
    """A duration string could not be parsed as H:MM:SS or MM:SS."""


class InvalidDistanceError(PacePlanError, ValueError):
    """A race or track distance is missing, zero or negative."""


class InsufficientDataError(PacePlanError):
    """A track has too few points to derive distance or elevation."""


class TrackTooLargeError(PacePlanError):
    """A track has more points than the configured limit."""
