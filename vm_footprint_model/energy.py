"""
Energy Interpolation Engine.

Maps CPU utilization onto instance wattage, then wattage and duration onto
energy:

    energy_kWh = wattage * duration_s / 3600 / 1000

Three power curves are available:
- LinearPowerCurve: straight line between min and max watts
- PiecewiseLinearPowerCurve: linear between the four calibration points
- SplinePowerCurve: natural cubic spline through the four calibration points
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Sequence, Tuple

import numpy as np
from scipy.interpolate import CubicSpline

from .config import Interpolation, is_number
from .errors import InputValidationError, UnsupportedValueError, error_message
from .registry import InstanceProfile

# CPU utilization (%) of the calibration points
UTILIZATION_KNOTS = (0.0, 10.0, 50.0, 100.0)

SECONDS_PER_HOUR = 3600
WH_PER_KWH = 1000

# Record fields
FIELD_TIMESTAMP = "timestamp"
FIELD_DURATION = "duration"
FIELD_CPU_UTIL = "cpu-util"
REQUIRED_FIELDS = (FIELD_DURATION, FIELD_CPU_UTIL, FIELD_TIMESTAMP)


class LinearCurve(str, Enum):
    """Which data a model's linear interpolation runs on."""
    BOUNDS = "bounds"            # min/max watts
    CALIBRATION = "calibration"  # four calibration points, bounds if absent


@dataclass(frozen=True)
class LinearPowerCurve:
    """
    Models instance power as a straight line in utilization.

    P(u) = p_idle + (p_max - p_idle) * u / 100
    """
    p_idle: float  # Watts at 0% utilization
    p_max: float   # Watts at 100% utilization

    def power_at_util(self, cpu_util_pct: float) -> float:
        """Return power (Watts) at given utilization [0, 100]."""
        return self.p_idle + (self.p_max - self.p_idle) * (cpu_util_pct / 100)


@dataclass(frozen=True)
class PiecewiseLinearPowerCurve:
    """Linear interpolation between the calibration points at 0/10/50/100%."""
    watts: Tuple[float, float, float, float]

    def power_at_util(self, cpu_util_pct: float) -> float:
        # np.interp returns the calibration wattage exactly at a knot
        return float(np.interp(cpu_util_pct, UTILIZATION_KNOTS, self.watts))


class SplinePowerCurve:
    """
    Natural cubic spline through the calibration points at 0/10/50/100%.

    The spline passes through every calibration point and has a continuous
    first (and second) derivative between them.
    """

    def __init__(self, watts: Sequence[float]):
        self.watts = tuple(float(w) for w in watts)
        if len(self.watts) != len(UTILIZATION_KNOTS):
            raise ValueError(f"Expected {len(UTILIZATION_KNOTS)} calibration wattages, got {len(self.watts)}")
        self._spline = CubicSpline(UTILIZATION_KNOTS, self.watts, bc_type='natural')

    def power_at_util(self, cpu_util_pct: float) -> float:
        if cpu_util_pct in UTILIZATION_KNOTS:
            return self.watts[UTILIZATION_KNOTS.index(cpu_util_pct)]
        return float(self._spline(cpu_util_pct))

    def __repr__(self) -> str:
        return f"SplinePowerCurve(watts={self.watts})"


def power_curve_for(
    profile: InstanceProfile,
    interpolation: Interpolation = Interpolation.LINEAR,
    linear_curve: LinearCurve = LinearCurve.BOUNDS,
    component: str = "EnergyInterpolation",
):
    """
    Pick the power curve of a profile for an interpolation mode.

    Raises:
        UnsupportedValueError: If spline is requested for a profile without
            four-point calibration data
    """
    calibration = profile.consumption.calibration

    if interpolation is Interpolation.SPLINE:
        if calibration is None:
            raise UnsupportedValueError(
                error_message(
                    component,
                    f"Interpolation spline method is not supported for {profile.vendor.value} "
                    f"instance type {profile.name} (no calibration data)",
                    "configure",
                )
            )
        return SplinePowerCurve(calibration.watts)

    if linear_curve is LinearCurve.CALIBRATION and calibration is not None:
        return PiecewiseLinearPowerCurve(calibration.watts)

    return LinearPowerCurve(profile.consumption.min_watts, profile.consumption.max_watts)


def energy_kwh(wattage: float, duration_s: float) -> float:
    """
    Convert a constant wattage over a duration into kilowatt-hours.

    e.g. 30 W x 300 s = 9000 J = 2.5 Wh = 0.0025 kWh
    """
    return wattage * duration_s / SECONDS_PER_HOUR / WH_PER_KWH


def validate_record(record: Any, index: int, component: str) -> Tuple[float, float]:
    """
    Check a utilization record and return its (duration, cpu-util).

    Raises:
        InputValidationError: If a required field is missing, not a number,
            or out of range
    """
    if not isinstance(record, Mapping):
        raise InputValidationError(
            error_message(component, f"input[{index}] must be a mapping, got {type(record).__name__}",
                          "execute")
        )

    missing = [name for name in REQUIRED_FIELDS if name not in record]
    if missing:
        raise InputValidationError(
            error_message(
                component,
                f"Required parameters {', '.join(repr(m) for m in missing)} are not provided for input[{index}]",
                "execute",
            )
        )

    duration = record[FIELD_DURATION]
    if not is_number(duration) or duration < 0:
        raise InputValidationError(
            error_message(component, f"'{FIELD_DURATION}' in input[{index}] must be a non-negative number "
                                     f"of seconds, got {duration!r}", "execute")
        )

    cpu = record[FIELD_CPU_UTIL]
    if not is_number(cpu) or not 0 <= cpu <= 100:
        raise InputValidationError(
            error_message(component, f"'{FIELD_CPU_UTIL}' in input[{index}] must be a percentage in "
                                     f"[0, 100], got {cpu!r}", "execute")
        )

    return float(duration), float(cpu)
