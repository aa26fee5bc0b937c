import json
import logging
import os
import shutil
import sys
import tempfile
import importlib.util
from datetime import datetime, timedelta
from pathlib import Path
import polars as pl
import pytest
from track_utils.errors import InvalidInputError
from track_utils.track_io import (
    drop_invalid_positions,
    positions_from_frame,
    waypoints_to_frame,
    simplify_tracks_across_parquet,
)
from track_utils.simplification import optimize_track

T0 = datetime(2024, 3, 1, 6, 0, 0)


@pytest.fixture
def temp_dirs():
    input_dir = tempfile.mkdtemp()
    output_dir = tempfile.mkdtemp()
    yield input_dir, output_dir
    shutil.rmtree(input_dir)
    shutil.rmtree(output_dir)


def create_test_parquet(input_dir, filename, data):
    df = pl.DataFrame(data)
    df.write_parquet(os.path.join(input_dir, filename))


def two_vessel_data():
    # vessel 111: straight along the equator, one bad row
    # vessel 222: a dog-leg that must keep its corner
    return {
        "mmsi": [111, 111, 111, 111, 222, 222, 222],
        "timestamp": [T0 + timedelta(minutes=m) for m in [0, 10, 20, 30, 0, 10, 20]],
        "latitude": [0.0, 0.0, None, 0.0, 10.0, 10.05, 10.0],
        "longitude": [0.0, 1.0, 1.5, 2.0, 0.0, 0.5, 1.0],
        "sog": [10.0, None, 11.0, 12.0, 8.0, 9.0, 7.5],
        "heading": [90, 90, 90, None, 45, None, 135],
    }


def test_drop_invalid_positions_counts_rows(caplog):
    caplog.set_level(logging.WARNING)
    df = pl.DataFrame({"latitude": [1.0, None, float("nan"), 2.0], "longitude": [1.0, 1.0, 1.0, None]})
    cleaned, dropped = drop_invalid_positions(df)
    assert cleaned.height == 1
    assert dropped == 3
    assert any("[CLEAN] Dropped 3 rows" in rec.message for rec in caplog.records)


def test_drop_invalid_positions_missing_column():
    with pytest.raises(InvalidInputError):
        drop_invalid_positions(pl.DataFrame({"latitude": [1.0]}))


def test_positions_from_frame_splits_timestamp():
    df = pl.DataFrame({
        "timestamp": [datetime(2024, 3, 1, 1, 2, 3)],
        "latitude": [55.5],
        "longitude": [12.5],
        "heading": [float("nan")],
        "draught": [7.2],
    })
    [p] = positions_from_frame(df)
    assert p.base_date == datetime(2024, 3, 1)
    assert p.time == 3723
    assert p.base_date_time == datetime(2024, 3, 1, 1, 2, 3)
    assert p.heading is None
    assert p.sog is None
    assert p.draught == 7.2


def test_positions_from_frame_with_base_date_and_offset():
    df = pl.DataFrame({
        "base_date": [datetime(2024, 3, 2), datetime(2024, 3, 2)],
        "time": [0, 600],
        "latitude": [55.5, 55.6],
        "longitude": [12.5, 12.6],
        "sog": [3.0, 4.0],
        "heading": [10.0, 20.0],
    })
    positions = positions_from_frame(df)
    assert [p.base_date_time for p in positions] == [datetime(2024, 3, 2), datetime(2024, 3, 2, 0, 10)]
    assert [p.heading for p in positions] == [10, 20]


def test_positions_from_frame_needs_time_columns():
    with pytest.raises(InvalidInputError):
        positions_from_frame(pl.DataFrame({"latitude": [1.0], "longitude": [1.0]}))


def test_waypoints_to_frame_degrees_and_radians():
    df = pl.DataFrame({
        "timestamp": [T0, T0 + timedelta(minutes=1), T0 + timedelta(minutes=2)],
        "latitude": [0.0, 0.01, 0.0],
        "longitude": [0.0, 1.0, 2.0],
        "sog": [1.0, 2.0, 3.0],
    })
    waypoints = optimize_track(positions_from_frame(df))
    out = waypoints_to_frame(waypoints)
    assert out.height == 3
    assert out["index"].to_list() == [1, 2, 3]
    assert out["latitude"].to_list() == pytest.approx([0.0, 0.01, 0.0])
    assert out["lon_rad"][2] == pytest.approx(0.0349066, rel=1e-5)
    assert out["max_speed"].to_list() == [3.0, 3.0, 3.0]
    assert out["track_mode"].to_list() == ["Track"] * 3


def test_simplify_tracks_across_parquet(temp_dirs):
    input_dir, output_dir = temp_dirs
    create_test_parquet(input_dir, "2024-03-01.parquet", two_vessel_data())

    stats = simplify_tracks_across_parquet(input_dir, output_dir, tolerance_meters=50.0)

    file_stats = stats["2024-03-01.parquet"]
    assert file_stats == {
        "rows": 7,
        "dropped_rows": 1,
        "tracks": 2,
        "waypoints": 5,
        "defaulted_heading": 2,
        "defaulted_sog": 1,
    }

    out = pl.read_parquet(os.path.join(output_dir, "2024-03-01.parquet"))
    assert out.columns[0] == "mmsi"
    v111 = out.filter(pl.col("mmsi") == 111)
    v222 = out.filter(pl.col("mmsi") == 222)
    assert v111["longitude"].to_list() == pytest.approx([0.0, 2.0])
    assert v111["index"].to_list() == [1, 2]
    assert v222["index"].to_list() == [1, 2, 3]
    assert v222["max_speed"].to_list() == [9.0, 9.0, 9.0]


def test_simplify_tracks_without_vessel_column(temp_dirs):
    input_dir, output_dir = temp_dirs
    data = two_vessel_data()
    del data["mmsi"]
    data["timestamp"] = [T0 + timedelta(minutes=m) for m in range(7)]
    create_test_parquet(input_dir, "single.parquet", data)

    stats = simplify_tracks_across_parquet(input_dir, output_dir)
    assert stats["single.parquet"]["tracks"] == 1
    out = pl.read_parquet(os.path.join(output_dir, "single.parquet"))
    assert "mmsi" not in out.columns
    assert out["index"].to_list() == list(range(1, out.height + 1))


def test_simplify_tracks_skips_files_without_valid_positions(temp_dirs, caplog):
    input_dir, output_dir = temp_dirs
    caplog.set_level(logging.WARNING)
    create_test_parquet(input_dir, "empty.parquet", {
        "mmsi": [1, 1],
        "timestamp": [T0, T0 + timedelta(minutes=1)],
        "latitude": [float("nan"), None],
        "longitude": [1.0, 2.0],
    })
    stats = simplify_tracks_across_parquet(input_dir, output_dir)
    assert stats["empty.parquet"]["dropped_rows"] == 2
    assert stats["empty.parquet"]["tracks"] == 0
    assert not os.path.exists(os.path.join(output_dir, "empty.parquet"))
    assert any("No valid positions" in rec.message for rec in caplog.records)


def load_step_script():
    path = Path(__file__).parent.parent / "scripts" / "05_douglas_peucker.py"
    spec = importlib.util.spec_from_file_location("douglas_peucker_step", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_step_script_writes_metadata(temp_dirs, monkeypatch):
    input_dir, output_dir = temp_dirs
    create_test_parquet(input_dir, "2024-03-01.parquet", two_vessel_data())
    step = load_step_script()
    monkeypatch.setattr(sys, "argv", [
        "05_douglas_peucker.py", "--input-dir", input_dir, "--output-dir", output_dir, "--tolerance", "50",
    ])
    step.main()

    with open(os.path.join(output_dir, "step_metadata.json")) as f:
        meta = json.load(f)
    assert meta["parameters"]["tolerance_meters"] == 50.0
    assert meta["totals"]["waypoints"] == 5
    assert meta["files"]["2024-03-01.parquet"]["dropped_rows"] == 1


def test_positions_from_frame_truncates_sub_second_offsets():
    df = pl.DataFrame({
        "timestamp": [datetime(2024, 3, 1, 0, 0, 5, 750000)],
        "latitude": [55.5],
        "longitude": [12.5],
    })
    [p] = positions_from_frame(df)
    assert p.time == 5
    assert p.base_date_time == datetime(2024, 3, 1, 0, 0, 5)
