"""
CPU energy from thermal design power (TDP).

When no instance profile is available, the Teads generic server curve scales
the processor TDP by the fraction of it drawn at 0/10/50/100% utilization:

    P(u) = TDP * curve(u) * vcpus_allocated / vcpus_total

Writes 'energy-cpu' (kWh) on every record.
"""

from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional, Sequence
import logging

from .config import Interpolation, is_number, parse_interpolation
from .energy import (
    FIELD_CPU_UTIL, FIELD_DURATION, FIELD_TIMESTAMP,
    PiecewiseLinearPowerCurve, SplinePowerCurve, energy_kwh,
)
from .errors import InputValidationError, error_message

logger = logging.getLogger(__name__)

# Fraction of TDP drawn at 0, 10, 50 and 100% utilization
TEADS_CURVE_COEFFICIENTS = (0.12, 0.32, 0.75, 1.02)

PARAM_TDP = "thermal-design-power"
PARAM_VCPUS_ALLOCATED = "vcpus-allocated"
PARAM_VCPUS_TOTAL = "vcpus-total"
FIELD_ENERGY_CPU = "energy-cpu"

COMPONENT = "TeadsCurve"

# Distinct TDPs seen per process; older curves are evicted first
CURVE_CACHE_SIZE = 64


def _required(message_param: str) -> InputValidationError:
    return InputValidationError(f'"{message_param}" parameter is required.')


def _parse_vcpus(value: Any, name: str, index: int) -> float:
    """vCPU counts may be numbers or numeric strings."""
    if is_number(value):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            pass
    raise InputValidationError(error_message(COMPONENT, f"Invalid type for '{name}' in input[{index}]."))


@lru_cache(maxsize=CURVE_CACHE_SIZE)
def teads_curve(tdp: float, interpolation: Interpolation):
    """Generic server curve scaled to a processor TDP."""
    watts = [tdp * c for c in TEADS_CURVE_COEFFICIENTS]
    logger.debug("Built %s curve for TDP %g W", interpolation.value, tdp)
    if interpolation is Interpolation.SPLINE:
        return SplinePowerCurve(watts)
    return PiecewiseLinearPowerCurve(tuple(watts))


class TeadsCurve:
    """
    TDP-based CPU energy model.

    Args:
        config: Optional 'thermal-design-power' (watts, may instead be given
            per record) and 'interpolation' ('spline' by default, or 'linear')

    Example:
        TeadsCurve({"thermal-design-power": 200}).execute(
            [{"timestamp": "2024-01-01T00:00:00Z", "duration": 3600, "cpu-util": 50}]
        )
        # -> [{..., "energy-cpu": 0.15}]
    """

    def __init__(self, config: Optional[Mapping[str, Any]] = None):
        config = dict(config or {})
        self.thermal_design_power = config.get(PARAM_TDP)
        if self.thermal_design_power is not None:
            self._check_tdp(self.thermal_design_power)
        self.interpolation = parse_interpolation(config.get("interpolation", Interpolation.SPLINE), COMPONENT)

    @staticmethod
    def _check_tdp(value: Any) -> float:
        if not is_number(value) or value <= 0:
            raise InputValidationError(f'"{PARAM_TDP}" parameter must be a positive number.')
        return float(value)

    def execute(self, records: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Add 'energy-cpu' (kWh) to every record, in place and in order.

        Raises:
            InputValidationError: If a record lacks a required parameter or
                has an invalid value
        """
        if records is None or isinstance(records, (str, bytes, Mapping)) or not isinstance(records, Sequence):
            raise InputValidationError(error_message(COMPONENT, "inputs should be an array of records", "execute"))
        return [self._execute_record(record, index) for index, record in enumerate(records)]

    def _execute_record(self, record: Dict[str, Any], index: int) -> Dict[str, Any]:
        if not isinstance(record, Mapping):
            raise InputValidationError(error_message(
                COMPONENT, f"input[{index}] must be a mapping, got {type(record).__name__}", "execute"
            ))
        tdp = record.get(PARAM_TDP, self.thermal_design_power)
        if tdp is None:
            raise _required(PARAM_TDP)
        tdp = self._check_tdp(tdp)

        for name in (FIELD_CPU_UTIL, FIELD_DURATION, FIELD_TIMESTAMP):
            if name not in record:
                raise _required(name)

        cpu = record[FIELD_CPU_UTIL]
        if not is_number(cpu):
            raise InputValidationError(f'"{FIELD_CPU_UTIL}" parameter must be a number.')
        if cpu < 0:
            raise InputValidationError(f'"{FIELD_CPU_UTIL}" parameter must be greater than or equal to 0.')
        if cpu > 100:
            raise InputValidationError(f'"{FIELD_CPU_UTIL}" parameter must be less than or equal to 100.')

        duration = record[FIELD_DURATION]
        if not is_number(duration) or duration < 0:
            raise InputValidationError(f'"{FIELD_DURATION}" parameter must be a non-negative number.')

        wattage = teads_curve(tdp, self.interpolation).power_at_util(float(cpu))

        # Both counts are needed to scale; otherwise the whole processor is used
        if PARAM_VCPUS_ALLOCATED in record and PARAM_VCPUS_TOTAL in record:
            allocated = _parse_vcpus(record[PARAM_VCPUS_ALLOCATED], PARAM_VCPUS_ALLOCATED, index)
            total = _parse_vcpus(record[PARAM_VCPUS_TOTAL], PARAM_VCPUS_TOTAL, index)
            if total <= 0:
                raise InputValidationError(
                    error_message(COMPONENT, f"'{PARAM_VCPUS_TOTAL}' in input[{index}] must be positive.")
                )
            wattage = wattage * allocated / total

        record[FIELD_ENERGY_CPU] = energy_kwh(wattage, duration)
        return record
