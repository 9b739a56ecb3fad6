"""
Embodied Emissions Calculator.

Apportions the lifecycle (manufacturing) emissions of a physical host to one
reservation window of one instance:

    M = TE * (TR / EL) * (RR / TotalR)

where
    TE     = total embodied emissions of the host (kgCO2e)
    TR     = time reserved, the length of the window (hours)
    EL     = expected lifespan of the host (hours)
    RR     = resources reserved by the instance (vCPUs)
    TotalR = total resources of the host (vCPUs)

The result is reported in gCO2e.
"""

from enum import Enum
import logging

from .energy import SECONDS_PER_HOUR
from .errors import UnsupportedValueError, error_message
from .registry import InstanceProfile

logger = logging.getLogger(__name__)

HOURS_PER_YEAR = 8760
GRAMS_PER_KG = 1000


class EmbodiedPolicy(str, Enum):
    """What a profile without an embodied emissions total contributes."""
    ZERO = "zero"    # nothing
    ERROR = "error"  # the instance type cannot be used


def embodied_carbon_g(
    total_embodied_kg: float,
    duration_s: float,
    expected_lifespan_years: float,
    reserved_vcpus: float,
    total_vcpus: float,
) -> float:
    """
    Embodied carbon (gCO2e) of a reservation window.

    Ratios above 1 (a window longer than the lifespan, an instance larger
    than its host) are passed through un-clamped.
    """
    time_reserved_h = duration_s / SECONDS_PER_HOUR
    expected_lifespan_h = expected_lifespan_years * HOURS_PER_YEAR
    time_share = time_reserved_h / expected_lifespan_h
    resource_share = reserved_vcpus / total_vcpus

    if time_share > 1 or resource_share > 1:
        logger.warning(
            "Embodied apportionment above 1 (time share %.3f, resource share %.3f); check the profile",
            time_share, resource_share,
        )

    return total_embodied_kg * GRAMS_PER_KG * time_share * resource_share


def apportion_embodied(
    profile: InstanceProfile,
    duration_s: float,
    expected_lifespan_years: float,
    policy: EmbodiedPolicy = EmbodiedPolicy.ERROR,
    component: str = "EmbodiedEmissions",
) -> float:
    """
    Embodied carbon (gCO2e) of a window on an instance profile.

    Raises:
        UnsupportedValueError: If the profile has no embodied total and the
            policy is ERROR
    """
    if profile.embodied_emission_kg is None:
        if policy is EmbodiedPolicy.ZERO:
            return 0.0
        raise UnsupportedValueError(missing_embodied_message(profile, component))

    return embodied_carbon_g(
        profile.embodied_emission_kg,
        duration_s,
        expected_lifespan_years,
        profile.vcpus,
        profile.max_vcpus,
    )


def missing_embodied_message(profile: InstanceProfile, component: str) -> str:
    return error_message(
        component,
        f"Instance type {profile.name} has no embodied emissions data for {profile.vendor.value}",
    )
