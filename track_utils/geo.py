# geo.py

from math import sin, cos, sqrt, atan2, asin
import numpy as np

# --- Constants ---
EARTH_RADIUS_M = 6371000.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate great-circle distance between two points in meters using Haversine formula.
    Inputs are in radians.
    """
    dphi = lat2 - lat1
    dlambda = lon2 - lon1
    a = sin(dphi / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlambda / 2) ** 2
    # rounding can push a just past 1 for near-antipodal points
    a = min(max(a, 0.0), 1.0)
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return EARTH_RADIUS_M * c


def initial_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Initial bearing (radians) of the great circle from point 1 to point 2."""
    return atan2(
        sin(lon2 - lon1) * cos(lat2),
        cos(lat1) * sin(lat2) - sin(lat1) * cos(lat2) * cos(lon2 - lon1),
    )


def cross_track_distance(
    lat: float, lon: float, lat1: float, lon1: float, lat2: float, lon2: float
) -> float:
    """
    Perpendicular distance in meters from a point to the great circle running
    from (lat1, lon1) to (lat2, lon2). All coordinates in radians.
    """
    d13 = haversine_distance(lat1, lon1, lat, lon)
    theta13 = initial_bearing(lat1, lon1, lat, lon)
    theta12 = initial_bearing(lat1, lon1, lat2, lon2)
    return abs(asin(sin(d13 / EARTH_RADIUS_M) * sin(theta13 - theta12)) * EARTH_RADIUS_M)


def cross_track_distances(
    lats: np.ndarray,
    lons: np.ndarray,
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
) -> np.ndarray:
    """
    Vectorised cross_track_distance over arrays of point coordinates (radians).
    Returns an array of distances in meters aligned with the inputs.
    """
    lats = np.asarray(lats, dtype=np.float64)
    lons = np.asarray(lons, dtype=np.float64)

    dlat = lats - lat1
    dlon = lons - lon1
    a = np.sin(dlat / 2) ** 2 + np.cos(lat1) * np.cos(lats) * np.sin(dlon / 2) ** 2
    # rounding can push a just past 1 for near-antipodal points
    a = np.clip(a, 0.0, 1.0)
    d13 = EARTH_RADIUS_M * 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))

    theta13 = np.arctan2(
        np.sin(dlon) * np.cos(lats),
        np.cos(lat1) * np.sin(lats) - np.sin(lat1) * np.cos(lats) * np.cos(dlon),
    )
    theta12 = initial_bearing(lat1, lon1, lat2, lon2)

    return np.abs(np.arcsin(np.sin(d13 / EARTH_RADIUS_M) * np.sin(theta13 - theta12)) * EARTH_RADIUS_M)
