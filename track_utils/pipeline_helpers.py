import logging
import sys
import os
import json
from typing import Any, Dict


def configure_logging(verbose: bool = False):
    """Log to stdout; DEBUG when verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
    )


class StepMetadataLogger:
    """
    Collects the statistics of one pipeline step: run parameters, per-file
    counts and their running totals. Saved as JSON next to the step output.
    """

    def __init__(self, output_dir: str, filename: str = "step_metadata.json"):
        self.output_dir = output_dir
        self.filepath = os.path.join(output_dir, filename)
        self.metadata: Dict[str, Any] = {"parameters": {}, "files": {}, "totals": {}}

    def add_parameters(self, **params: Any):
        self.metadata["parameters"].update(params)

    def record_file(self, fname: str, stats: Dict[str, Any]):
        """Store a file's counts and add its numeric values to the totals."""
        self.metadata["files"][fname] = dict(stats)
        totals = self.metadata["totals"]
        for key, value in stats.items():
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                totals[key] = totals.get(key, 0) + value

    def totals(self) -> Dict[str, Any]:
        return self.metadata["totals"]

    def log_stats(self, level=logging.INFO):
        for key, value in self.metadata["parameters"].items():
            logging.log(level, f"[METADATA] {key}: {value}")
        for key, value in self.metadata["totals"].items():
            logging.log(level, f"[METADATA] total {key}: {value}")

    def save(self):
        os.makedirs(self.output_dir, exist_ok=True)
        with open(self.filepath, "w") as f:
            json.dump(self.metadata, f, indent=2)
        logging.info(f"Step metadata saved to {self.filepath}")
