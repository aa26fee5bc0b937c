"""
Douglas-Peucker simplification of vessel tracks on the sphere.

The error metric is the cross-track distance (meters) of an interior point from
the great circle through the segment end points. Segments are processed
depth-first, left before right, from an explicit work stack instead of
recursion, so long tracks do not run into the interpreter recursion limit.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from typing import Callable, List, Optional, Sequence

import numpy as np

from track_utils.errors import InvalidInputError, OptimizationCancelled
from track_utils.geo import cross_track_distances
from track_utils.models import (
    CancellationToken,
    OptimizationOptions,
    OptimizationProgress,
    PositionRecord,
    Waypoint,
)
from track_utils.projection import project_positions

ProgressSink = Callable[[OptimizationProgress], None]

# progress is reported when a finished segment ends on a multiple of this
PROGRESS_INTERVAL = 100


def _check_cancelled(cancel_token: Optional[CancellationToken]):
    if cancel_token is not None and cancel_token.is_cancelled:
        raise OptimizationCancelled("Track optimization cancelled")


def farthest_point(distances: np.ndarray):
    """
    Position and value of the largest distance. The first maximum in scan
    order wins; returns (-1, 0.0) when no distance is positive.
    """
    if len(distances) == 0:
        return -1, 0.0
    idx = int(np.argmax(distances))
    dmax = float(distances[idx])
    if not dmax > 0:
        return -1, 0.0
    return idx, dmax


def douglas_peucker(
    waypoints: Sequence[Waypoint],
    tolerance: float,
    progress: Optional[ProgressSink] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> List[bool]:
    """
    Mark the waypoints to keep so that no dropped point lies farther than
    `tolerance` meters from the kept polyline.

    Args:
        waypoints: Projected waypoints (lat/lon in radians), in track order.
        tolerance: Maximum cross-track distance in meters.
        progress: Optional sink receiving OptimizationProgress snapshots.
        cancel_token: Optional token polled before every segment.

    Returns:
        list[bool]: keep flag per waypoint; first and last are always True.
    """
    tolerance = OptimizationOptions(tolerance).tolerance_meters
    n = len(waypoints)
    if n == 0:
        raise InvalidInputError("Waypoint list is empty")

    keep = [False] * n
    keep[0] = True
    keep[n - 1] = True

    lats = np.fromiter((wp.lat for wp in waypoints), dtype=np.float64, count=n)
    lons = np.fromiter((wp.lon for wp in waypoints), dtype=np.float64, count=n)

    # (start, end, finished): a finished entry only emits the segment's progress
    # report once both halves have been processed
    stack = [(0, n - 1, False)]
    while stack:
        start, end, finished = stack.pop()
        if finished:
            if progress is not None and end % PROGRESS_INTERVAL == 0:
                progress(OptimizationProgress(processed_points=end, total_points=n))
            continue

        _check_cancelled(cancel_token)

        if end - start <= 1:
            continue

        distances = cross_track_distances(
            lats[start + 1:end],
            lons[start + 1:end],
            lats[start],
            lons[start],
            lats[end],
            lons[end],
        )
        offset, max_distance = farthest_point(distances)

        stack.append((start, end, True))
        if max_distance > tolerance:
            max_index = start + 1 + offset
            keep[max_index] = True
            stack.append((max_index, end, False))
            stack.append((start, max_index, False))

    return keep


def finalize_waypoints(waypoints: Sequence[Waypoint], keep: Sequence[bool]) -> List[Waypoint]:
    """
    Copies of the kept waypoints, re-indexed 1..N and stamped with the
    track-wide max speed. The input waypoints are left untouched.
    """
    kept_waypoints = [wp for wp, kept in zip(waypoints, keep) if kept]
    max_speed = max((wp.speed for wp in kept_waypoints), default=0.0)
    return [
        replace(wp, index=i, max_speed=max_speed)
        for i, wp in enumerate(kept_waypoints, start=1)
    ]


def simplify_waypoints(
    waypoints: Sequence[Waypoint],
    tolerance: float,
    progress: Optional[ProgressSink] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> List[Waypoint]:
    keep = douglas_peucker(waypoints, tolerance, progress=progress, cancel_token=cancel_token)
    return finalize_waypoints(waypoints, keep)


def optimize_track(
    positions: Sequence[PositionRecord],
    options: Optional[OptimizationOptions] = None,
    progress: Optional[ProgressSink] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> List[Waypoint]:
    """
    Reduce a vessel track to the waypoints needed to keep its shape within
    options.tolerance_meters.

    A final progress snapshot with processed == total carries the number of
    records whose heading and SOG were defaulted.

    Raises:
        InvalidInputError: empty track or records without usable coordinates.
        OptimizationCancelled: cancel_token was set during the run.
    """
    options = options or OptimizationOptions()

    positions = list(positions)
    if len(positions) == 0:
        raise InvalidInputError("Position list is empty")

    logging.info(
        f"[SIMPLIFY] Optimizing track with {len(positions)} positions "
        f"using tolerance {options.tolerance_meters} meters"
    )
    _check_cancelled(cancel_token)

    waypoints, defaulted_heading, defaulted_sog = project_positions(positions)
    optimized = simplify_waypoints(
        waypoints, options.tolerance_meters, progress=progress, cancel_token=cancel_token
    )

    if progress is not None:
        progress(
            OptimizationProgress(
                processed_points=len(waypoints),
                total_points=len(waypoints),
                defaulted_heading_count=defaulted_heading,
                defaulted_sog_count=defaulted_sog,
            )
        )

    logging.info(
        f"[SIMPLIFY] Optimization complete: {len(positions)} positions → {len(optimized)} waypoints"
    )
    return optimized


def optimize_track_in_background(
    positions: Sequence[PositionRecord],
    options: Optional[OptimizationOptions] = None,
    progress: Optional[ProgressSink] = None,
    cancel_token: Optional[CancellationToken] = None,
    executor: Optional[ThreadPoolExecutor] = None,
) -> Future:
    """
    Run optimize_track on a worker thread and return its Future.

    The future resolves to the waypoint list, or raises OptimizationCancelled /
    InvalidInputError from result(). The progress sink is called on the worker thread.
    """
    positions = list(positions)
    if executor is not None:
        return executor.submit(optimize_track, positions, options, progress, cancel_token)

    own_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="track-optimizer")
    try:
        return own_executor.submit(optimize_track, positions, options, progress, cancel_token)
    finally:
        # lets the submitted job finish, then releases the worker
        own_executor.shutdown(wait=False)
