"""
Bundled hardware reference tables.

The bundled files hold a sample of rows in the column layout of the public
Cloud Carbon Footprint coefficient datasets (per-architecture min/max watts
per vCPU, instance shapes, embodied emissions totals) and, for AWS, of the
Teads instance dataset with four-point calibration wattages. Cells keep the
published formatting (strings, comma decimal separators) and are normalized
by the registry. Embodied totals are illustrative values, not a published
dataset; pass full tables to InstanceMetricsRegistry.build for real use.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple
import json
import logging

from .config import Vendor

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"

Row = Dict[str, Any]


@dataclass(frozen=True)
class TableLayout:
    """
    Column names of a vendor's instance table.

    architecture_source is either "mapping" (architectures come from a
    separate instance type -> processor names mapping and must resolve) or
    "column" (a single architecture column, unknown names fall back to the
    vendor average).
    """
    name_column: str
    vcpus_column: str
    max_vcpus_column: str
    architecture_source: str = "column"
    architecture_column: Optional[str] = "Microarchitecture"
    calibration_columns: Optional[Tuple[str, str, str, str]] = None

    # Architecture table
    architecture_name_column: str = "Architecture"
    min_watts_column: str = "Min Watts"
    max_watts_column: str = "Max Watts"

    # Embodied table
    embodied_type_column: str = "type"
    embodied_total_column: str = "total"


LAYOUTS: Dict[Vendor, TableLayout] = {
    Vendor.AWS: TableLayout(
        name_column="Instance type",
        vcpus_column="Instance vCPU",
        max_vcpus_column="Platform Total Number of vCPU",
        architecture_source="mapping",
        architecture_column=None,
        calibration_columns=(
            "Instance @ Idle",
            "Instance @ 10%",
            "Instance @ 50%",
            "Instance @ 100%",
        ),
    ),
    Vendor.GCP: TableLayout(
        name_column="Machine type",
        vcpus_column="Instance vCPUs",
        max_vcpus_column="Platform vCPUs (highest vCPU possible)",
    ),
    Vendor.AZURE: TableLayout(
        name_column="Virtual Machine",
        vcpus_column="Instance vCPUs",
        max_vcpus_column="Platform vCPUs (highest vCPU possible)",
    ),
}


@dataclass(frozen=True)
class VendorTables:
    """Pre-parsed tables for one vendor."""
    instances: List[Row]
    architectures: List[Row]
    embodied: List[Row] = field(default_factory=list)
    processor_mapping: Mapping[str, List[str]] = field(default_factory=dict)
    layout: Optional[TableLayout] = None


def _read_json(path: Path) -> Any:
    with open(path, 'r') as f:
        return json.load(f)


def load_vendor_tables(vendor: Vendor, data_dir: str | Path = DATA_DIR) -> VendorTables:
    """
    Load the bundled tables of one vendor.

    Files are named {vendor}-instances.json, {vendor}-use.json and
    {vendor}-embodied.json; AWS also ships aws-processors.json.

    Raises:
        FileNotFoundError: If a required table is missing
    """
    data_dir = Path(data_dir)
    prefix = vendor.value
    instances = _read_json(data_dir / f"{prefix}-instances.json")
    architectures = _read_json(data_dir / f"{prefix}-use.json")

    embodied_path = data_dir / f"{prefix}-embodied.json"
    embodied = _read_json(embodied_path) if embodied_path.exists() else []
    if not embodied:
        logger.warning("No embodied emissions table for %s in %s", prefix, data_dir)

    processor_mapping = {}
    layout = LAYOUTS[vendor]
    if layout.architecture_source == "mapping":
        processor_mapping = _read_json(data_dir / f"{prefix}-processors.json")

    return VendorTables(
        instances=instances,
        architectures=architectures,
        embodied=embodied,
        processor_mapping=processor_mapping,
        layout=layout,
    )


def load_reference_tables(data_dir: str | Path = DATA_DIR) -> Dict[Vendor, VendorTables]:
    """Load the bundled tables of every vendor."""
    tables = {vendor: load_vendor_tables(vendor, data_dir) for vendor in Vendor}
    logger.debug("Loaded reference tables for %s from %s",
                 ", ".join(v.value for v in tables), data_dir)
    return tables
