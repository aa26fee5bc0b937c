import glob
import logging
import math
import os
from typing import Dict, List, Optional, Tuple

import polars as pl
from tqdm import tqdm

from track_utils.errors import InvalidInputError
from track_utils.models import OptimizationOptions, OptimizationProgress, PositionRecord, Waypoint
from track_utils.simplification import optimize_track

# optional AIS columns carried into PositionRecord when present
OPTIONAL_POSITION_COLS = {
    "sog": "sog",
    "heading": "heading",
    "cog": "cog",
    "rot": "rot",
    "navigational_status_index": "navigational_status_index",
    "draught": "draught",
    "destination_index": "destination_index",
    "eta_seconds_until": "eta_seconds_until",
}
INT_POSITION_FIELDS = {"heading", "navigational_status_index", "destination_index", "eta_seconds_until"}

WAYPOINT_SCHEMA = {
    "index": pl.Int64,
    "name": pl.Utf8,
    "time": pl.Datetime,
    "lat_rad": pl.Float64,
    "lon_rad": pl.Float64,
    "latitude": pl.Float64,
    "longitude": pl.Float64,
    "alt": pl.Float64,
    "speed": pl.Float64,
    "heading": pl.Int64,
    "eta": pl.Int64,
    "delay": pl.Int64,
    "mode": pl.Utf8,
    "track_mode": pl.Utf8,
    "port_xte": pl.Float64,
    "stbd_xte": pl.Float64,
    "min_speed": pl.Float64,
    "max_speed": pl.Float64,
}


def _missing(value) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def drop_invalid_positions(
    df: pl.DataFrame, lat_col: str = "latitude", lon_col: str = "longitude"
) -> Tuple[pl.DataFrame, int]:
    """Drop rows whose latitude or longitude is null or NaN. Returns (df, dropped)."""
    missing = set([lat_col, lon_col]) - set(df.columns)
    if missing:
        raise InvalidInputError(f"Columns not found: {missing}")
    before = df.height
    cleaned = df.filter(
        pl.col(lat_col).is_not_null()
        & pl.col(lon_col).is_not_null()
        & ~pl.col(lat_col).cast(pl.Float64).is_nan()
        & ~pl.col(lon_col).cast(pl.Float64).is_nan()
    )
    dropped = before - cleaned.height
    if dropped > 0:
        logging.warning(f"[CLEAN] Dropped {dropped} rows with missing or NaN coordinates.")
    return cleaned, dropped


def _time_columns(df: pl.DataFrame, timestamp_col: str) -> Tuple[pl.DataFrame, str, str]:
    """Return df with a base date column and a seconds-offset column, plus their names."""
    if timestamp_col in df.columns:
        if not isinstance(df.schema[timestamp_col], (pl.Datetime, pl.Date)):
            raise InvalidInputError(f"Column '{timestamp_col}' must be a datetime or date type")
        ts = pl.col(timestamp_col).cast(pl.Datetime)
        df = df.with_columns(ts.dt.truncate("1d").alias("_base_date")).with_columns(
            (ts - pl.col("_base_date")).dt.total_seconds().alias("_time")
        )
        return df, "_base_date", "_time"
    if "base_date" in df.columns and "time" in df.columns:
        df = df.with_columns(pl.col("base_date").cast(pl.Datetime).alias("_base_date"))
        return df, "_base_date", "time"
    raise InvalidInputError(
        f"Frame needs a '{timestamp_col}' column or 'base_date' and 'time' columns"
    )


def positions_from_frame(
    df: pl.DataFrame,
    timestamp_col: str = "timestamp",
    lat_col: str = "latitude",
    lon_col: str = "longitude",
) -> List[PositionRecord]:
    """
    Build PositionRecords from a frame of AIS positions, in row order.
    Null or NaN optional fields become None. The time offset is whole seconds,
    so sub-second parts of a timestamp are truncated.
    """
    missing = set([lat_col, lon_col]) - set(df.columns)
    if missing:
        raise InvalidInputError(f"Columns not found: {missing}")
    df, base_col, time_col = _time_columns(df, timestamp_col)

    optional_cols = {field: col for field, col in OPTIONAL_POSITION_COLS.items() if col in df.columns}
    positions = []
    for row in df.iter_rows(named=True):
        extra = {}
        for field, col in optional_cols.items():
            value = row[col]
            if _missing(value):
                value = None
            elif field in INT_POSITION_FIELDS:
                value = int(value)
            extra[field] = value
        lat, lon = row[lat_col], row[lon_col]
        positions.append(
            PositionRecord(
                time=int(row[time_col]),
                base_date=row[base_col],
                lat=None if _missing(lat) else float(lat),
                lon=None if _missing(lon) else float(lon),
                **extra,
            )
        )
    return positions


def waypoints_to_frame(waypoints: List[Waypoint]) -> pl.DataFrame:
    """One row per waypoint; coordinates both in radians and degrees."""
    rows = [
        {
            "index": wp.index,
            "name": wp.name,
            "time": wp.time,
            "lat_rad": wp.lat,
            "lon_rad": wp.lon,
            "latitude": wp.lat_degrees,
            "longitude": wp.lon_degrees,
            "alt": float(wp.alt),
            "speed": float(wp.speed),
            "heading": int(wp.heading),
            "eta": wp.eta,
            "delay": wp.delay,
            "mode": wp.mode,
            "track_mode": wp.track_mode,
            "port_xte": float(wp.port_xte),
            "stbd_xte": float(wp.stbd_xte),
            "min_speed": float(wp.min_speed),
            "max_speed": float(wp.max_speed),
        }
        for wp in waypoints
    ]
    return pl.DataFrame(rows, schema=WAYPOINT_SCHEMA)


class TrackProgressBar:
    """Progress sink that keeps the last snapshot and drives a tqdm bar."""

    def __init__(self, desc: str, enabled: bool = False):
        self.desc = desc
        self.enabled = enabled
        self.last: Optional[OptimizationProgress] = None
        self._bar = None

    def __call__(self, snapshot: OptimizationProgress):
        self.last = snapshot
        if self._bar is None:
            self._bar = tqdm(
                total=snapshot.total_points, desc=self.desc, unit="pt", leave=False,
                disable=not self.enabled,
            )
        self._bar.update(snapshot.processed_points - self._bar.n)

    def close(self):
        if self._bar is not None:
            self._bar.close()


def simplify_tracks_across_parquet(
    input_dir: str,
    output_dir: str,
    tolerance_meters: float = 50.0,
    vessel_col: str = "mmsi",
    timestamp_col: str = "timestamp",
    lat_col: str = "latitude",
    lon_col: str = "longitude",
    show_progress: bool = False,
) -> Dict[str, Dict[str, int]]:
    """
    Simplifies every vessel track found in the parquet files of input_dir and writes
    one waypoint table per input file (same file name) to output_dir.

    Args:
        input_dir (str): Directory containing parquet files of AIS positions.
        output_dir (str): Directory to save the simplified waypoint tables.
        tolerance_meters (float): Maximum cross-track deviation of dropped positions.
        vessel_col (str): Column identifying the vessel; without it a file is one track.
        timestamp_col (str): Datetime column ordering the positions.
        lat_col (str): Latitude column, degrees.
        lon_col (str): Longitude column, degrees.
        show_progress (bool): Show a tqdm bar per track.

    Returns:
        dict: per-file statistics keyed by file name.
    """
    options = OptimizationOptions(tolerance_meters)
    os.makedirs(output_dir, exist_ok=True)

    parquet_files = sorted(glob.glob(os.path.join(input_dir, "*.parquet")))
    file_stats: Dict[str, Dict[str, int]] = {}

    for parquet_file in parquet_files:
        fname = os.path.basename(parquet_file)
        logging.info(f"Processing {parquet_file} ...")
        try:
            df = pl.read_parquet(parquet_file)
        except Exception as e:
            logging.error(f"Failed to read {parquet_file}: {e}")
            raise

        stats = {
            "rows": df.height,
            "dropped_rows": 0,
            "tracks": 0,
            "waypoints": 0,
            "defaulted_heading": 0,
            "defaulted_sog": 0,
        }
        df, stats["dropped_rows"] = drop_invalid_positions(df, lat_col, lon_col)
        if df.is_empty():
            logging.warning(f"[SIMPLIFY] No valid positions in {fname}, skipping.")
            file_stats[fname] = stats
            continue

        has_vessel = vessel_col in df.columns
        if timestamp_col in df.columns:
            time_cols = [timestamp_col]
        elif "base_date" in df.columns and "time" in df.columns:
            time_cols = ["base_date", "time"]
        else:
            raise InvalidInputError(
                f"{fname} needs a '{timestamp_col}' column or 'base_date' and 'time' columns"
            )
        df = df.sort(([vessel_col] if has_vessel else []) + time_cols)
        tracks = df.partition_by(vessel_col, maintain_order=True) if has_vessel else [df]

        out_frames = []
        for track_df in tracks:
            track_id = track_df[vessel_col][0] if has_vessel else fname
            positions = positions_from_frame(track_df, timestamp_col, lat_col, lon_col)
            bar = TrackProgressBar(desc=f"{fname}:{track_id}", enabled=show_progress)
            try:
                waypoints = optimize_track(positions, options, progress=bar)
            finally:
                bar.close()

            wp_df = waypoints_to_frame(waypoints)
            if has_vessel:
                wp_df = wp_df.select(
                    pl.lit(track_id, dtype=df.schema[vessel_col]).alias(vessel_col),
                    pl.all(),
                )
            out_frames.append(wp_df)

            stats["tracks"] += 1
            stats["waypoints"] += len(waypoints)
            if bar.last is not None:
                stats["defaulted_heading"] += bar.last.defaulted_heading_count
                stats["defaulted_sog"] += bar.last.defaulted_sog_count
            logging.debug(f"[SIMPLIFY] {fname} track {track_id}: {len(positions)} -> {len(waypoints)}")

        out_path = os.path.join(output_dir, fname)
        pl.concat(out_frames).write_parquet(out_path)
        logging.info(f"Saved {out_path} ({stats['waypoints']} waypoints from {stats['rows']} rows).")
        file_stats[fname] = stats

    return file_stats
