import argparse
import logging
from track_utils.pipeline_helpers import configure_logging, StepMetadataLogger
from track_utils.track_io import simplify_tracks_across_parquet


def main(argv=None):
    parser = argparse.ArgumentParser(description="Step 05: Douglas-Peucker simplification of vessel tracks into route waypoints.")
    parser.add_argument('--input-dir', required=True, help='Input directory containing parquet files of AIS positions')
    parser.add_argument('--output-dir', required=True, help='Output directory for simplified waypoint files')
    parser.add_argument('--tolerance', type=float, default=50.0, help='Maximum cross-track deviation in meters (default: 50.0)')
    parser.add_argument('--vessel-col', default='mmsi', help='Column name identifying the vessel')
    parser.add_argument('--timestamp-col', default='timestamp', help='Column name for timestamp')
    parser.add_argument('--progress', action='store_true', help='Show a progress bar per track')
    parser.add_argument('--verbose', action='store_true', help='Enable verbose logging')
    args = parser.parse_args(argv)

    configure_logging(verbose=args.verbose)
    logging.info(f"Running Douglas-Peucker simplification: {args}")

    metadata_logger = StepMetadataLogger(output_dir=args.output_dir)
    metadata_logger.add_parameters(
        input_dir=args.input_dir,
        tolerance_meters=args.tolerance,
        vessel_col=args.vessel_col,
        timestamp_col=args.timestamp_col,
    )

    file_stats = simplify_tracks_across_parquet(
        input_dir=args.input_dir,
        output_dir=args.output_dir,
        tolerance_meters=args.tolerance,
        vessel_col=args.vessel_col,
        timestamp_col=args.timestamp_col,
        show_progress=args.progress,
    )
    for fname, stats in file_stats.items():
        metadata_logger.record_file(fname, stats)

    metadata_logger.log_stats()
    metadata_logger.save()
    return file_stats

if __name__ == "__main__":
    main()
