"""
Vessel track simplification.

Reduces a time-ordered sequence of AIS position reports to the waypoints
needed to keep the track's shape within a tolerance in meters, using the
Douglas-Peucker algorithm with cross-track distance on the sphere.

Example:
    >>> from track_utils import optimize_track, OptimizationOptions
    >>> waypoints = optimize_track(positions, OptimizationOptions(tolerance_meters=50.0))
"""

from .errors import InvalidInputError, OptimizationCancelled
from .models import (
    CancellationToken,
    OptimizationOptions,
    OptimizationProgress,
    PositionRecord,
    Waypoint,
)
from .projection import project_positions
from .simplification import (
    douglas_peucker,
    finalize_waypoints,
    optimize_track,
    optimize_track_in_background,
    simplify_waypoints,
)

__all__ = [
    'InvalidInputError',
    'OptimizationCancelled',
    'CancellationToken',
    'OptimizationOptions',
    'OptimizationProgress',
    'PositionRecord',
    'Waypoint',
    'project_positions',
    'douglas_peucker',
    'finalize_waypoints',
    'optimize_track',
    'optimize_track_in_background',
    'simplify_waypoints',
]
