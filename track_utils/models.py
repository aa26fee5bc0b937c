"""
Data structures for vessel track simplification.

Positions arrive in degrees; waypoints carry latitude/longitude in radians
until an exporter converts them. Distances are in meters, speeds in knots as
reported by AIS (SOG).
"""

import datetime
import math
import numbers
import threading
from dataclasses import dataclass
from typing import Optional

from track_utils.errors import InvalidInputError


@dataclass(frozen=True)
class PositionRecord:
    """
    Single AIS position report.

    Attributes:
        time: Offset in seconds from base_date.
        base_date: T0 of the day the report belongs to (00:00:00 UTC).
        lat: Latitude in decimal degrees, None when missing.
        lon: Longitude in decimal degrees, None when missing.
        sog: Speed over ground, None when missing.
        heading: True heading in degrees, None when missing.
    """
    time: int
    base_date: datetime.datetime
    lat: Optional[float] = None
    lon: Optional[float] = None
    sog: Optional[float] = None
    heading: Optional[int] = None
    cog: Optional[float] = None
    rot: Optional[float] = None
    navigational_status_index: Optional[int] = None
    draught: Optional[float] = None
    destination_index: Optional[int] = None
    eta_seconds_until: Optional[int] = None

    @property
    def base_date_time(self) -> datetime.datetime:
        return self.base_date + datetime.timedelta(seconds=self.time)

    @property
    def is_valid(self) -> bool:
        return self.lat is not None and self.lon is not None


@dataclass
class Waypoint:
    """Route waypoint; lat/lon in radians."""
    index: int
    time: datetime.datetime
    lat: float
    lon: float
    speed: float = 0.0
    heading: int = 0
    alt: float = 0.0
    name: str = ""
    eta: int = 0
    delay: int = 0
    mode: str = ""
    track_mode: str = "Track"
    port_xte: float = 20.0
    stbd_xte: float = 20.0
    min_speed: float = 0.0
    max_speed: float = 0.0

    @property
    def lat_degrees(self) -> float:
        return math.degrees(self.lat)

    @property
    def lon_degrees(self) -> float:
        return math.degrees(self.lon)


@dataclass(frozen=True)
class OptimizationOptions:
    tolerance_meters: float = 50.0

    def __post_init__(self):
        tolerance = self.tolerance_meters
        if isinstance(tolerance, bool) or not isinstance(tolerance, numbers.Real):
            raise InvalidInputError(f"Tolerance must be a number, got {tolerance!r}")
        if not math.isfinite(tolerance) or tolerance < 0:
            raise InvalidInputError(
                f"Tolerance must be a finite non-negative number of meters, got {tolerance}"
            )
        object.__setattr__(self, "tolerance_meters", float(tolerance))


@dataclass(frozen=True)
class OptimizationProgress:
    """Progress snapshot; defect counters are filled in on the final snapshot."""
    processed_points: int
    total_points: int
    defaulted_heading_count: int = 0
    defaulted_sog_count: int = 0

    @property
    def fraction(self) -> float:
        return self.processed_points / self.total_points if self.total_points > 0 else 0.0


class CancellationToken:
    """Cooperative cancellation flag, safe to set from another thread."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()
