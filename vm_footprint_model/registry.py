"""
Instance Metrics Registry.

Normalizes heterogeneous vendor hardware tables into one power-consumption
profile per instance type:

    vendor -> instance type -> InstanceProfile

Per-vCPU min/max wattage comes from architecture tables (averaged over the
architectures an instance family runs on, then scaled by the instance's
vCPUs). Vendors that publish four-point calibration wattages (idle, 10%,
50%, 100%) keep them alongside. Embodied emissions totals are merged from a
separate table.

The registry is built once and is read-only afterwards; share one instance
between as many models as needed.
"""

from dataclasses import dataclass, replace
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple
import logging

from .config import Vendor, parse_vendor
from .errors import InputValidationError, UnsupportedValueError, error_message
from .reference import LAYOUTS, Row, TableLayout, VendorTables, load_reference_tables

logger = logging.getLogger(__name__)

AVERAGE_ARCHITECTURE = "Average"

COMPONENT = "InstanceMetricsRegistry"


@dataclass(frozen=True)
class CalibrationPoints:
    """Measured instance wattage at 0, 10, 50 and 100% CPU utilization."""
    idle: float
    ten_percent: float
    fifty_percent: float
    hundred_percent: float

    @property
    def watts(self) -> Tuple[float, float, float, float]:
        return (self.idle, self.ten_percent, self.fifty_percent, self.hundred_percent)


@dataclass(frozen=True)
class PowerConsumption:
    """Power description of an instance type (watts for the whole instance)."""
    min_watts: float
    max_watts: float
    calibration: Optional[CalibrationPoints] = None


@dataclass(frozen=True)
class InstanceProfile:
    """Standardized power and resource-sharing description of an instance type."""
    vendor: Vendor
    name: str
    vcpus: int
    max_vcpus: int  # vCPUs of the whole physical host class
    consumption: PowerConsumption
    architectures: Tuple[str, ...] = ()
    embodied_emission_kg: Optional[float] = None  # lifecycle total for the host

    @property
    def has_calibration(self) -> bool:
        return self.consumption.calibration is not None

    @property
    def resource_share(self) -> float:
        """Fraction of the physical host this instance occupies."""
        return self.vcpus / self.max_vcpus


# --- Table parsing ---

def parse_decimal(value: Any) -> Optional[float]:
    """
    Parse a number that may use ',' as decimal separator.

    Returns None for missing or blank values.
    """
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    text = str(value).strip()
    if not text:
        return None
    return float(text.replace(',', '.'))


def _cell_number(row: Row, column: str) -> Optional[float]:
    """parse_decimal for a table cell; None when blank or not a number."""
    try:
        return parse_decimal(row.get(column))
    except ValueError:
        return None


def _required_number(row: Row, column: str, table: str) -> float:
    """A non-negative number from a required column."""
    value = _cell_number(row, column)
    if value is None or value < 0:
        raise InputValidationError(
            error_message(COMPONENT, f"{table} row {row!r} needs a non-negative number in '{column}'")
        )
    return value


def _parse_count(row: Row, column: str, vendor: Vendor) -> int:
    value = _cell_number(row, column)
    if value is None:
        raise InputValidationError(
            error_message(COMPONENT, f"{vendor.value} row {row!r} needs a number in '{column}'")
        )
    if value < 1:
        raise InputValidationError(
            error_message(COMPONENT, f"{vendor.value} row {row!r} needs a positive '{column}'")
        )
    return int(value)


def average_architecture(rows: List[Row], layout: TableLayout) -> Dict[str, Tuple[float, float]]:
    """
    Index per-vCPU (min, max) watts by architecture and add an 'Average' entry.

    The average is the arithmetic mean of min and of max watts across all
    listed architectures.
    """
    by_architecture: Dict[str, Tuple[float, float]] = {}
    for row in rows:
        by_architecture[row[layout.architecture_name_column]] = (
            _required_number(row, layout.min_watts_column, "Architecture"),
            _required_number(row, layout.max_watts_column, "Architecture"),
        )

    if by_architecture:
        count = len(by_architecture)
        avg_min = sum(w[0] for w in by_architecture.values()) / count
        avg_max = sum(w[1] for w in by_architecture.values()) / count
        by_architecture[AVERAGE_ARCHITECTURE] = (avg_min, avg_max)
    else:
        logger.warning("Architecture table is empty; no '%s' entry available", AVERAGE_ARCHITECTURE)

    return by_architecture


def resolve_architecture(name: str, known: Mapping[str, Any]) -> str:
    """
    Map a processor name onto a key of the architecture table.

    Processor names in instance mappings and architecture names in wattage
    tables are spelled differently ("AMD EPYC 2nd Gen" vs "EPYC 2nd Gen",
    "Skylake" vs "Sky Lake", "AWS Graviton2" vs "Graviton2").

    Raises:
        UnsupportedValueError: If the resolved name is not in known
    """
    architecture = name
    if architecture.startswith("AMD "):
        architecture = architecture[len("AMD "):]

    if "Skylake" in architecture:
        architecture = "Sky Lake"

    if "Graviton" in architecture:
        architecture = "Graviton2" if "2" in architecture else "Graviton"

    if "Unknown" in architecture:
        architecture = AVERAGE_ARCHITECTURE

    if architecture not in known:
        raise UnsupportedValueError(
            error_message(COMPONENT, f"Architecture '{architecture}' is not supported")
        )
    return architecture


def _instance_architectures(
    row: Row,
    name: str,
    tables: VendorTables,
    layout: TableLayout,
    known: Mapping[str, Any],
) -> Tuple[str, ...]:
    if layout.architecture_source == "mapping":
        processors = tables.processor_mapping.get(name) or [AVERAGE_ARCHITECTURE]
        return tuple(resolve_architecture(p, known) for p in processors)

    architecture = row.get(layout.architecture_column) or AVERAGE_ARCHITECTURE
    if architecture not in known:
        logger.debug("Architecture %r of %s not in table, using %s",
                     architecture, name, AVERAGE_ARCHITECTURE)
        architecture = AVERAGE_ARCHITECTURE
    return (architecture,)


def _calibration(row: Row, layout: TableLayout, name: str) -> Optional[CalibrationPoints]:
    """Four-point calibration of a row; None when any point is blank, malformed or negative."""
    if layout.calibration_columns is None:
        return None
    try:
        values = [parse_decimal(row.get(column)) for column in layout.calibration_columns]
    except ValueError:
        logger.warning("Malformed calibration data for %s ignored", name)
        return None
    if any(v is None for v in values):
        return None
    if any(v < 0 for v in values):
        logger.warning("Negative calibration wattage for %s ignored: %r", name, values)
        return None
    return CalibrationPoints(*values)


def build_vendor_profiles(vendor: Vendor, tables: VendorTables) -> Dict[str, InstanceProfile]:
    """
    Build the profiles of one vendor.

    Raises:
        UnsupportedValueError: If an instance maps onto an unknown architecture
        InputValidationError: If an instance row lacks its name or positive
            vCPU counts, or an architecture row lacks its wattages
    """
    layout = tables.layout or LAYOUTS[vendor]
    watts_by_architecture = average_architecture(tables.architectures, layout)

    profiles: Dict[str, InstanceProfile] = {}
    for row in tables.instances:
        name = row.get(layout.name_column)
        if not name:
            raise InputValidationError(
                error_message(COMPONENT, f"{vendor.value} row {row!r} has no '{layout.name_column}'")
            )
        vcpus = _parse_count(row, layout.vcpus_column, vendor)
        max_vcpus = _parse_count(row, layout.max_vcpus_column, vendor)
        if vcpus > max_vcpus:
            logger.warning("%s %s has more vCPUs (%d) than its host (%d)",
                           vendor.value, name, vcpus, max_vcpus)

        architectures = _instance_architectures(row, name, tables, layout, watts_by_architecture)
        # Average across architectures, not sum
        min_per_vcpu = sum(watts_by_architecture[a][0] for a in architectures) / len(architectures)
        max_per_vcpu = sum(watts_by_architecture[a][1] for a in architectures) / len(architectures)

        profiles[name] = InstanceProfile(
            vendor=vendor,
            name=name,
            vcpus=vcpus,
            max_vcpus=max_vcpus,
            consumption=PowerConsumption(
                min_watts=min_per_vcpu * vcpus,
                max_watts=max_per_vcpu * vcpus,
                calibration=_calibration(row, layout, name),
            ),
            architectures=architectures,
        )

    for row in tables.embodied:
        name = row.get(layout.embodied_type_column)
        total = _cell_number(row, layout.embodied_total_column)
        if name not in profiles:
            logger.warning("Embodied emissions for unknown %s instance type %r skipped", vendor.value, name)
            continue
        if total is None or total < 0:
            logger.warning("Invalid embodied emissions %r for %s %s skipped", total, vendor.value, name)
            continue
        profiles[name] = replace(profiles[name], embodied_emission_kg=total)

    return profiles


class InstanceMetricsRegistry:
    """
    Read-only lookup of instance profiles by vendor and instance type.

    Example:
        registry = InstanceMetricsRegistry.build(load_reference_tables())
        profile = registry.get("aws", "t2.micro")
    """

    def __init__(self, profiles: Mapping[Vendor, Mapping[str, InstanceProfile]]):
        self._profiles = MappingProxyType({
            parse_vendor(vendor): MappingProxyType(dict(by_name))
            for vendor, by_name in profiles.items()
        })

    @classmethod
    def build(cls, tables: Mapping[Vendor, VendorTables]) -> "InstanceMetricsRegistry":
        """Build a registry from pre-parsed vendor tables."""
        profiles = {}
        for vendor, vendor_tables in tables.items():
            vendor = parse_vendor(vendor)
            profiles[vendor] = build_vendor_profiles(vendor, vendor_tables)
            logger.info("Loaded %d %s instance profiles", len(profiles[vendor]), vendor.value)
        return cls(profiles)

    @property
    def vendors(self) -> Tuple[Vendor, ...]:
        return tuple(self._profiles)

    def profiles(self, vendor: Vendor | str) -> Mapping[str, InstanceProfile]:
        vendor = parse_vendor(vendor, COMPONENT)
        if vendor not in self._profiles:
            raise UnsupportedValueError(error_message(COMPONENT, f"Vendor {vendor.value} not supported"))
        return self._profiles[vendor]

    def instance_types(self, vendor: Vendor | str) -> List[str]:
        """Sorted instance type names of a vendor."""
        return sorted(self.profiles(vendor))

    def get(self, vendor: Vendor | str, instance_type: str, component: str = COMPONENT) -> InstanceProfile:
        """
        Look up a profile.

        Raises:
            UnsupportedValueError: If vendor or instance type is unknown
        """
        by_name = self.profiles(vendor)
        if instance_type not in by_name:
            raise UnsupportedValueError(
                error_message(component, f"Instance type {instance_type} is not supported", "configure")
            )
        return by_name[instance_type]

    def __contains__(self, key: Tuple[Vendor | str, str]) -> bool:
        vendor, instance_type = key
        try:
            return instance_type in self.profiles(vendor)
        except UnsupportedValueError:
            return False

    def __iter__(self) -> Iterator[InstanceProfile]:
        for by_name in self._profiles.values():
            yield from by_name.values()

    def __len__(self) -> int:
        return sum(len(by_name) for by_name in self._profiles.values())


@lru_cache(maxsize=None)
def default_registry() -> InstanceMetricsRegistry:
    """The registry built from the bundled reference tables (built once per process)."""
    return InstanceMetricsRegistry.build(load_reference_tables())
