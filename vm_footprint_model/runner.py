"""
Run executor for configs and their utilization records.

Orchestrates config -> model configure/execute -> structured output.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any, List
import csv
import json
import logging

from .config import PARAM_EXPECTED_LIFESPAN, RunConfig, validate_config
from .energy import FIELD_CPU_UTIL, FIELD_DURATION
from .model import FIELD_EMBODIED_CARBON, FIELD_ENERGY, InstanceFootprintModel, get_variant
from .registry import InstanceMetricsRegistry

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

# CSV columns converted to numbers on load
NUMERIC_COLUMNS = (FIELD_DURATION, FIELD_CPU_UTIL, PARAM_EXPECTED_LIFESPAN)


def _format_timestamp() -> str:
    """Return ISO 8601 timestamp in UTC."""
    return datetime.now(timezone.utc).isoformat()


def _coerce_csv_row(row: Dict[str, str]) -> Dict[str, Any]:
    record: Dict[str, Any] = {}
    for key, value in row.items():
        if value is None or value == "":
            continue
        if key in NUMERIC_COLUMNS:
            try:
                record[key] = float(value)
                continue
            except ValueError:
                pass  # left as text; the model reports it
        record[key] = value
    return record


def load_records(path: str | Path) -> List[Dict[str, Any]]:
    """
    Load utilization records from a CSV or JSON file.

    CSV files need a header row; 'duration', 'cpu-util' and
    'expected-lifespan' columns are converted to numbers and empty cells are
    dropped. JSON files must contain a list of objects.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If a JSON file does not contain a list
    """
    path = Path(path)
    if path.suffix.lower() == ".csv":
        with open(path, 'r', newline='') as f:
            records = [_coerce_csv_row(row) for row in csv.DictReader(f)]
    else:
        with open(path, 'r') as f:
            records = json.load(f)
        if not isinstance(records, list):
            raise ValueError(f"Records file {path} must contain a JSON list")
    logger.debug("Loaded %d records from %s", len(records), path)
    return records


@dataclass
class RunResult:
    """
    Complete result from a run.

    Contains metadata, echoed config, the augmented records and totals.
    """
    meta: Dict[str, Any]
    config: dict
    outputs: List[Dict[str, Any]]
    totals: Dict[str, float]

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "meta": self.meta,
            "config": self.config,
            "outputs": self.outputs,
            "totals": self.totals,
        }


class Runner:
    """
    Run executor that configures a model and processes the config's records.

    Example:
        config = load_config("configs/example.json")
        runner = Runner(config, config_path="configs/example.json")
        result = runner.run()
        save_result(result, "results/example.json")
    """

    def __init__(
        self,
        config: RunConfig,
        config_path: Optional[str] = None,
        registry: Optional[InstanceMetricsRegistry] = None,
    ):
        """
        Initialize runner with a run config.

        Args:
            config: Run configuration
            config_path: Optional path to config file (for metadata, and to
                resolve a relative 'inputs_file')
            registry: Optional registry (defaults to the bundled tables)

        Raises:
            ValueError: If the config is invalid
        """
        self.config = config
        self.config_path = config_path
        self.registry = registry

        errors = validate_config(config)
        if errors:
            raise ValueError(f"Invalid config: {'; '.join(errors)}")

    def _inputs_path(self) -> Path:
        path = Path(self.config.inputs_file)
        if not path.is_absolute() and self.config_path is not None:
            path = Path(self.config_path).parent / path
        return path

    def _records(self) -> List[Dict[str, Any]]:
        """Inline records first, then those of inputs_file. Copies, so the config is untouched."""
        records = [dict(record) for record in self.config.inputs]
        if self.config.inputs_file is not None:
            records.extend(load_records(self._inputs_path()))
        return records

    def build_model(self) -> InstanceFootprintModel:
        """Create and configure the model described by the config."""
        model = InstanceFootprintModel(registry=self.registry, variant=get_variant(self.config.variant))
        return model.configure(self.config.model)

    def run(self) -> RunResult:
        """
        Execute the run and return results.

        Raises:
            FootprintModelError: If the model rejects the configuration or a record
        """
        meta = {
            "timestamp": _format_timestamp(),
            "version": VERSION,
            "config_file": self.config_path,
            "experiment_name": self.config.name,
        }

        model = self.build_model()
        outputs = model.execute(self._records())

        totals = {
            FIELD_ENERGY: sum(record[FIELD_ENERGY] for record in outputs),
            FIELD_EMBODIED_CARBON: sum(record[FIELD_EMBODIED_CARBON] for record in outputs),
        }
        logger.info("Run %s: %d records, %.6f kWh, %.6f gCO2e embodied",
                    self.config.name, len(outputs), totals[FIELD_ENERGY], totals[FIELD_EMBODIED_CARBON])

        return RunResult(
            meta=meta,
            config=self.config.to_dict(),
            outputs=outputs,
            totals=totals,
        )


def save_result(result: RunResult, path: str | Path) -> None:
    """
    Save a run result to JSON file.

    Args:
        result: RunResult to save
        path: Output file path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(result.to_dict(), f, indent=2)


def load_result(path: str | Path) -> dict:
    """Load a previous run result from JSON file."""
    path = Path(path)
    with open(path, 'r') as f:
        return json.load(f)


def generate_output_filename(config: RunConfig, timestamp: Optional[str] = None) -> str:
    """
    Generate a default output filename for a config.

    Format: {name}_{timestamp}.json

    Args:
        config: Run config
        timestamp: Optional ISO timestamp (uses current time if not provided)
    """
    if timestamp is None:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    else:
        # Clean up ISO timestamp for filename
        timestamp = timestamp.replace(":", "").replace("-", "")[:15]

    safe_name = config.name.replace(" ", "_").replace("/", "_")
    return f"{safe_name}_{timestamp}.json"
