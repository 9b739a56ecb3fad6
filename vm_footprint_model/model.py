"""
Instance footprint model.

Estimates, for every utilization record of a VM instance, the operational
energy (kWh) and the apportioned embodied carbon (gCO2e):

    model = InstanceFootprintModel()
    model.configure({"vendor": "aws", "instance-type": "t2.micro"})
    model.execute([{"timestamp": "2024-01-01T00:00:00Z", "duration": 3600, "cpu-util": 50}])
    # -> [{..., "energy": ..., "embodied-carbon": ...}]

The model is a two-state machine (unconfigured -> configured). Records are
processed independently and in order; each record is augmented in place.

Variants
--------
Two published methodologies share the same formulas and differ only in a
few policies, captured by ModelVariant:
- CLOUD_CARBON_FOOTPRINT: aws/gcp/azure, linear interpolation between the
  architecture min/max watts, spline where calibration data exists.
- TEADS_AWS: aws only, linear interpolation between the four calibration
  points, per-record overrides of the instance parameters.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
import logging

from .config import ModelConfiguration, Vendor
from .embodied import EmbodiedPolicy, apportion_embodied, missing_embodied_message
from .energy import (
    FIELD_CPU_UTIL, LinearCurve, energy_kwh, power_curve_for, validate_record,
)
from .errors import FootprintModelError, InputValidationError, UnsupportedValueError, error_message
from .registry import InstanceMetricsRegistry, InstanceProfile, default_registry

logger = logging.getLogger(__name__)

# Output fields
FIELD_ENERGY = "energy"
FIELD_EMBODIED_CARBON = "embodied-carbon"


class ModelState(str, Enum):
    UNCONFIGURED = "unconfigured"
    CONFIGURED = "configured"


@dataclass(frozen=True)
class ModelVariant:
    """Policies that distinguish one published methodology from another."""
    name: str
    component: str  # Name used in error messages
    vendors: Tuple[Vendor, ...]
    linear_curve: LinearCurve = LinearCurve.BOUNDS
    missing_embodied: EmbodiedPolicy = EmbodiedPolicy.ERROR
    record_overrides: bool = False  # Records may override instance parameters

    @property
    def default_vendor(self) -> Optional[Vendor]:
        """The implied vendor of single-vendor variants."""
        return self.vendors[0] if len(self.vendors) == 1 else None


CLOUD_CARBON_FOOTPRINT = ModelVariant(
    name="ccf",
    component="CloudCarbonFootprint",
    vendors=(Vendor.AWS, Vendor.GCP, Vendor.AZURE),
)

TEADS_AWS = ModelVariant(
    name="teads-aws",
    component="TeadsAWS",
    vendors=(Vendor.AWS,),
    linear_curve=LinearCurve.CALIBRATION,
    record_overrides=True,
)

VARIANTS: Dict[str, ModelVariant] = {v.name: v for v in (CLOUD_CARBON_FOOTPRINT, TEADS_AWS)}


def get_variant(name: str) -> ModelVariant:
    if name not in VARIANTS:
        raise UnsupportedValueError(
            error_message("InstanceFootprintModel", f"Variant {name} not supported. Valid: {list(VARIANTS)}")
        )
    return VARIANTS[name]


@dataclass(frozen=True)
class Outcome:
    """Result of try_configure/try_execute: a value or the model error raised."""
    value: Any = None
    error: Optional[FootprintModelError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        """Return the value, re-raising the error if there is one."""
        if self.error is not None:
            raise self.error
        return self.value


@dataclass(frozen=True)
class _Resolved:
    config: ModelConfiguration
    profile: InstanceProfile
    curve: Any


class InstanceFootprintModel:
    """
    Energy and embodied-carbon model of one VM instance type.

    Args:
        registry: Instance profiles to resolve instance types against
            (defaults to the registry built from the bundled tables)
        variant: Methodology policies (defaults to CLOUD_CARBON_FOOTPRINT)
    """

    def __init__(
        self,
        registry: Optional[InstanceMetricsRegistry] = None,
        variant: ModelVariant = CLOUD_CARBON_FOOTPRINT,
    ):
        self.registry = registry if registry is not None else default_registry()
        self.variant = variant
        self._resolved: Optional[_Resolved] = None

    @property
    def component(self) -> str:
        return self.variant.component

    @property
    def state(self) -> ModelState:
        return ModelState.UNCONFIGURED if self._resolved is None else ModelState.CONFIGURED

    @property
    def config(self) -> Optional[ModelConfiguration]:
        return self._resolved.config if self._resolved else None

    @property
    def profile(self) -> Optional[InstanceProfile]:
        return self._resolved.profile if self._resolved else None

    @property
    def power_curve(self):
        return self._resolved.curve if self._resolved else None

    # --- Configuration ---

    def configure(self, params: Optional[Mapping[str, Any]]) -> "InstanceFootprintModel":
        """
        Validate and apply a configuration, replacing any previous one.

        Args:
            params: Flat parameters: 'vendor' (implied for single-vendor
                variants), 'instance-type', optional 'expected-lifespan'
                (years, default 4) and 'interpolation' ('linear' | 'spline')

        Raises:
            InputValidationError: If params are missing or malformed
            UnsupportedValueError: If vendor, instance type or interpolation
                is not supported

        On failure the previous configuration is kept.
        """
        config = ModelConfiguration.from_params(
            params, default_vendor=self.variant.default_vendor, component=self.component
        )
        self._resolved = self._resolve(config)
        logger.info("%s configured for %s %s (%s, lifespan %g years)",
                    self.component, config.vendor.value, config.instance_type,
                    config.interpolation.value, config.expected_lifespan_years)
        return self

    def _resolve(self, config: ModelConfiguration) -> _Resolved:
        if config.vendor not in self.variant.vendors:
            raise UnsupportedValueError(
                error_message(self.component, f"Vendor {config.vendor.value} not supported", "configure")
            )

        profile = self.registry.get(config.vendor, config.instance_type, component=self.component)
        curve = power_curve_for(profile, config.interpolation, self.variant.linear_curve, self.component)

        if profile.embodied_emission_kg is None and self.variant.missing_embodied is EmbodiedPolicy.ERROR:
            raise UnsupportedValueError(missing_embodied_message(profile, self.component))

        return _Resolved(config=config, profile=profile, curve=curve)

    def _resolve_record(self, record: Mapping[str, Any]) -> _Resolved:
        """Apply per-record overrides on top of the configuration (this record only)."""
        config = self._resolved.config.merged(record, component=self.component)
        if config == self._resolved.config:
            return self._resolved
        return self._resolve(config)

    # --- Execution ---

    def execute(self, records: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Add 'energy' (kWh) and 'embodied-carbon' (gCO2e) to every record.

        Each record needs 'timestamp', 'duration' (seconds) and 'cpu-util'
        (percent). Records are augmented in place and returned in input
        order; no other field is touched.

        Raises:
            InputValidationError: If the model is not configured, records is
                not a sequence, or a record is invalid (processing stops at
                the first invalid record)
            UnsupportedValueError: If a per-record override is not supported
        """
        if self._resolved is None:
            raise InputValidationError(
                error_message(self.component,
                              "Incomplete configuration: 'instance-type' or 'vendor' is missing", "execute")
            )
        if records is None or isinstance(records, (str, bytes, Mapping)) or not isinstance(records, Sequence):
            raise InputValidationError(
                error_message(self.component, "inputs should be an array of records", "execute")
            )

        return [self._execute_record(record, index) for index, record in enumerate(records)]

    def _execute_record(self, record: Dict[str, Any], index: int) -> Dict[str, Any]:
        duration, cpu = validate_record(record, index, self.component)

        resolved = self._resolve_record(record) if self.variant.record_overrides else self._resolved

        wattage = resolved.curve.power_at_util(cpu)
        record[FIELD_ENERGY] = energy_kwh(wattage, duration)
        record[FIELD_EMBODIED_CARBON] = apportion_embodied(
            resolved.profile,
            duration,
            resolved.config.expected_lifespan_years,
            self.variant.missing_embodied,
            self.component,
        )
        logger.debug("input[%d]: %s=%s -> %.3f W", index, FIELD_CPU_UTIL, cpu, wattage)
        return record

    # --- Explicit results ---

    def try_configure(self, params: Optional[Mapping[str, Any]]) -> Outcome:
        """Like configure, but returns an Outcome instead of raising model errors."""
        try:
            return Outcome(value=self.configure(params))
        except FootprintModelError as error:
            return Outcome(error=error)

    def try_execute(self, records: Sequence[Dict[str, Any]]) -> Outcome:
        """Like execute, but returns an Outcome instead of raising model errors."""
        try:
            return Outcome(value=self.execute(records))
        except FootprintModelError as error:
            return Outcome(error=error)
