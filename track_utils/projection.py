import logging
import math
from typing import List, Sequence, Tuple

from track_utils.errors import InvalidInputError
from track_utils.models import PositionRecord, Waypoint


def to_radians(degrees: float) -> float:
    return degrees * math.pi / 180.0


def project_positions(
    positions: Sequence[PositionRecord],
) -> Tuple[List[Waypoint], int, int]:
    """
    Convert position records into waypoints with latitude/longitude in radians.

    Missing heading and SOG are defaulted to 0 and counted.

    Args:
        positions: Ordered, non-empty sequence of records that all carry coordinates.

    Returns:
        (waypoints, defaulted_heading_count, defaulted_sog_count)
    """
    if len(positions) == 0:
        raise InvalidInputError("Position list is empty")

    defaulted_heading = 0
    defaulted_sog = 0
    waypoints = []
    for i, p in enumerate(positions):
        if not p.is_valid:
            raise InvalidInputError(
                f"Position {i} at {p.base_date_time} has no coordinates"
            )
        if not (math.isfinite(p.lat) and math.isfinite(p.lon)):
            raise InvalidInputError(
                f"Position {i} at {p.base_date_time} has non-finite coordinates ({p.lat}, {p.lon})"
            )
        if p.heading is None:
            defaulted_heading += 1
        if p.sog is None:
            defaulted_sog += 1

        waypoints.append(
            Waypoint(
                index=i + 1,
                time=p.base_date_time,
                lat=to_radians(p.lat),
                lon=to_radians(p.lon),
                speed=p.sog if p.sog is not None else 0.0,
                heading=p.heading if p.heading is not None else 0,
            )
        )

    if defaulted_heading > 0 or defaulted_sog > 0:
        logging.info(
            f"Applied defaults: {defaulted_heading} records with missing Heading, "
            f"{defaulted_sog} records with missing SOG"
        )

    return waypoints, defaulted_heading, defaulted_sog
