"""
VM Instance Footprint Model

Estimates the operational energy (kWh) and the apportioned embodied carbon
(gCO2e) of cloud VM instances from CPU utilization records, using vendor
hardware reference tables for AWS, GCP and Azure.

Example usage (programmatic):
    from vm_footprint_model import InstanceFootprintModel

    model = InstanceFootprintModel()
    model.configure({"vendor": "aws", "instance-type": "m5n.large", "interpolation": "spline"})
    records = model.execute([
        {"timestamp": "2024-01-01T00:00:00Z", "duration": 3600, "cpu-util": 50},
    ])
    print(records[0]["energy"], records[0]["embodied-carbon"])

Example usage (JSON config):
    from vm_footprint_model import load_config, Runner, save_result

    config = load_config("configs/example.json")
    result = Runner(config).run()
    save_result(result, "results/example.json")

CLI usage:
    vm-footprint configs/example.json
"""

from .errors import (
    FootprintModelError,
    InputValidationError,
    UnsupportedValueError,
)

from .config import (
    Vendor,
    Interpolation,
    ModelConfiguration,
    RunConfig,
    load_config,
    save_config,
    validate_config,
)

from .registry import (
    CalibrationPoints,
    PowerConsumption,
    InstanceProfile,
    InstanceMetricsRegistry,
    default_registry,
)

from .reference import load_reference_tables

from .energy import (
    LinearPowerCurve,
    PiecewiseLinearPowerCurve,
    SplinePowerCurve,
    energy_kwh,
)

from .embodied import (
    EmbodiedPolicy,
    embodied_carbon_g,
)

from .model import (
    InstanceFootprintModel,
    ModelVariant,
    Outcome,
    CLOUD_CARBON_FOOTPRINT,
    TEADS_AWS,
    get_variant,
)

from .tdp_curve import TeadsCurve

from .runner import (
    Runner,
    RunResult,
    load_records,
    save_result,
    load_result,
)

# Plotting (optional, requires matplotlib)
try:
    from .plot import (
        plot_power_curve,
        plot_result,
    )
    _HAS_PLOT = True
except ImportError:
    _HAS_PLOT = False
    plot_power_curve = None
    plot_result = None

__all__ = [
    # Errors
    'FootprintModelError',
    'InputValidationError',
    'UnsupportedValueError',
    # Config
    'Vendor',
    'Interpolation',
    'ModelConfiguration',
    'RunConfig',
    'load_config',
    'save_config',
    'validate_config',
    # Registry
    'CalibrationPoints',
    'PowerConsumption',
    'InstanceProfile',
    'InstanceMetricsRegistry',
    'default_registry',
    'load_reference_tables',
    # Energy and embodied emissions
    'LinearPowerCurve',
    'PiecewiseLinearPowerCurve',
    'SplinePowerCurve',
    'energy_kwh',
    'EmbodiedPolicy',
    'embodied_carbon_g',
    # Model
    'InstanceFootprintModel',
    'ModelVariant',
    'Outcome',
    'CLOUD_CARBON_FOOTPRINT',
    'TEADS_AWS',
    'get_variant',
    'TeadsCurve',
    # Runner
    'Runner',
    'RunResult',
    'load_records',
    'save_result',
    'load_result',
    # Plotting (optional)
    'plot_power_curve',
    'plot_result',
]

__version__ = '0.1.0'
