"""
Configuration types, parsing and serialization.

Two layers live here:
- ModelConfiguration: the typed, immutable configuration of a footprint model
  (vendor, instance type, expected lifespan, interpolation), parsed from the
  flat key-value surface used by pipelines ("instance-type", ...).
- RunConfig: a JSON-serializable description of a whole run (model params
  plus the utilization records to process), used by the runner and CLI.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional
import json
import math
import numbers
from pathlib import Path

try:
    import json5
    _HAS_JSON5 = True
except ImportError:
    _HAS_JSON5 = False

from .errors import InputValidationError, UnsupportedValueError, error_message


class Vendor(str, Enum):
    """Cloud vendors with bundled reference tables."""
    AWS = "aws"
    GCP = "gcp"
    AZURE = "azure"


class Interpolation(str, Enum):
    """How CPU utilization is mapped onto the instance power curve."""
    LINEAR = "linear"
    SPLINE = "spline"


DEFAULT_EXPECTED_LIFESPAN_YEARS = 4.0

# Flat parameter names
PARAM_VENDOR = "vendor"
PARAM_INSTANCE_TYPE = "instance-type"
PARAM_EXPECTED_LIFESPAN = "expected-lifespan"
PARAM_INTERPOLATION = "interpolation"

MODEL_PARAMS = (PARAM_VENDOR, PARAM_INSTANCE_TYPE, PARAM_EXPECTED_LIFESPAN, PARAM_INTERPOLATION)

# Names of the model variants a run config may select (see model.VARIANTS)
VARIANT_NAMES = ("ccf", "teads-aws")


def is_number(value: Any) -> bool:
    """True for finite real numbers (bools excluded)."""
    return (isinstance(value, numbers.Real)
            and not isinstance(value, bool)
            and math.isfinite(value))


def parse_vendor(value: Any, component: str = "ModelConfiguration") -> Vendor:
    if isinstance(value, Vendor):
        return value
    try:
        return Vendor(value)
    except ValueError:
        raise UnsupportedValueError(
            error_message(component, f"Vendor {value} not supported", "configure")
        ) from None


def parse_interpolation(value: Any, component: str = "ModelConfiguration") -> Interpolation:
    if isinstance(value, Interpolation):
        return value
    try:
        return Interpolation(value)
    except ValueError:
        raise UnsupportedValueError(
            error_message(component, f"Interpolation {value} method not supported", "configure")
        ) from None


def parse_lifespan(value: Any, component: str = "ModelConfiguration") -> float:
    if not is_number(value) or value <= 0:
        raise InputValidationError(
            error_message(
                component,
                f"'{PARAM_EXPECTED_LIFESPAN}' must be a positive number of years, got {value!r}",
                "configure",
            )
        )
    return float(value)


def parse_instance_type(value: Any, component: str = "ModelConfiguration") -> str:
    if not isinstance(value, str) or not value.strip():
        raise InputValidationError(
            error_message(component, f"'{PARAM_INSTANCE_TYPE}' must be a non-empty string, got {value!r}",
                          "configure")
        )
    return value


@dataclass(frozen=True)
class ModelConfiguration:
    """
    Validated configuration of a footprint model.

    Every field is checked on construction, so an instance is always usable;
    registry membership of the instance type is checked by the model itself.
    """
    vendor: Vendor
    instance_type: str
    expected_lifespan_years: float = DEFAULT_EXPECTED_LIFESPAN_YEARS
    interpolation: Interpolation = Interpolation.LINEAR

    def __post_init__(self):
        object.__setattr__(self, "vendor", parse_vendor(self.vendor))
        object.__setattr__(self, "instance_type", parse_instance_type(self.instance_type))
        object.__setattr__(self, "expected_lifespan_years", parse_lifespan(self.expected_lifespan_years))
        object.__setattr__(self, "interpolation", parse_interpolation(self.interpolation))

    @classmethod
    def from_params(
        cls,
        params: Mapping[str, Any],
        default_vendor: Optional[Vendor] = None,
        component: str = "ModelConfiguration",
    ) -> "ModelConfiguration":
        """
        Parse the flat parameter surface.

        Args:
            params: Mapping with 'vendor', 'instance-type' and optionally
                'expected-lifespan' and 'interpolation'
            default_vendor: Vendor to assume when 'vendor' is absent
            component: Name used in error messages

        Raises:
            InputValidationError: If a required parameter is missing or malformed
            UnsupportedValueError: If vendor or interpolation is not supported
        """
        if params is None:
            raise InputValidationError(error_message(component, "Input data is missing", "configure"))
        if not isinstance(params, Mapping):
            raise InputValidationError(
                error_message(component, f"Parameters must be a mapping, got {type(params).__name__}",
                              "configure")
            )

        if PARAM_VENDOR in params:
            vendor = parse_vendor(params[PARAM_VENDOR], component)
        elif default_vendor is not None:
            vendor = default_vendor
        else:
            raise InputValidationError(error_message(component, "Vendor is not provided", "configure"))

        if PARAM_INSTANCE_TYPE not in params:
            raise InputValidationError(error_message(component, "Instance type is not provided", "configure"))
        instance_type = parse_instance_type(params[PARAM_INSTANCE_TYPE], component)

        lifespan = DEFAULT_EXPECTED_LIFESPAN_YEARS
        if PARAM_EXPECTED_LIFESPAN in params:
            lifespan = parse_lifespan(params[PARAM_EXPECTED_LIFESPAN], component)

        interpolation = Interpolation.LINEAR
        if PARAM_INTERPOLATION in params:
            interpolation = parse_interpolation(params[PARAM_INTERPOLATION], component)

        return cls(
            vendor=vendor,
            instance_type=instance_type,
            expected_lifespan_years=lifespan,
            interpolation=interpolation,
        )

    def merged(self, overrides: Mapping[str, Any], component: str = "ModelConfiguration") -> "ModelConfiguration":
        """Return a copy with the fields present in overrides replaced; absent fields are kept."""
        changes: Dict[str, Any] = {}
        if PARAM_VENDOR in overrides:
            changes["vendor"] = parse_vendor(overrides[PARAM_VENDOR], component)
        if PARAM_INSTANCE_TYPE in overrides:
            changes["instance_type"] = parse_instance_type(overrides[PARAM_INSTANCE_TYPE], component)
        if PARAM_EXPECTED_LIFESPAN in overrides:
            changes["expected_lifespan_years"] = parse_lifespan(overrides[PARAM_EXPECTED_LIFESPAN], component)
        if PARAM_INTERPOLATION in overrides:
            changes["interpolation"] = parse_interpolation(overrides[PARAM_INTERPOLATION], component)
        if not changes:
            return self
        return replace(self, **changes)

    def to_params(self) -> dict:
        return {
            PARAM_VENDOR: self.vendor.value,
            PARAM_INSTANCE_TYPE: self.instance_type,
            PARAM_EXPECTED_LIFESPAN: self.expected_lifespan_years,
            PARAM_INTERPOLATION: self.interpolation.value,
        }


# --- Run configs ---

@dataclass
class RunConfig:
    """
    Complete run configuration.

    This is the top-level config that gets serialized to/from JSON. Records
    can be given inline ('inputs'), in a CSV/JSON file ('inputs_file',
    resolved relative to the config file), or both (inline first).
    """
    name: str
    description: str = ""
    variant: str = "ccf"
    model: Dict[str, Any] = field(default_factory=dict)
    inputs: List[Dict[str, Any]] = field(default_factory=list)
    inputs_file: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert config to JSON-serializable dict."""
        return {
            "name": self.name,
            "description": self.description,
            "variant": self.variant,
            "model": dict(self.model),
            "inputs": [dict(record) for record in self.inputs],
            "inputs_file": self.inputs_file,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RunConfig":
        """Create config from dict (e.g., from JSON)."""
        return cls(
            name=data.get("name", "unnamed"),
            description=data.get("description", ""),
            variant=data.get("variant", "ccf"),
            model=data.get("model", {}),
            inputs=data.get("inputs", []),
            inputs_file=data.get("inputs_file"),
        )

    def has_inputs(self) -> bool:
        return bool(self.inputs) or self.inputs_file is not None


def load_config(path: str | Path) -> RunConfig:
    """
    Load a run configuration from a JSON file.

    Supports JSON with comments (JSONC) if json5 is installed.

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If JSON is invalid (json.JSONDecodeError is a ValueError)
    """
    path = Path(path)
    with open(path, 'r') as f:
        if _HAS_JSON5:
            data = json5.load(f)
        else:
            data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Config {path} must contain a JSON object")
    return RunConfig.from_dict(data)


def save_config(config: RunConfig, path: str | Path) -> None:
    """Save a run configuration to a JSON file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(config.to_dict(), f, indent=2)


def validate_config(config: RunConfig) -> List[str]:
    """
    Validate a run configuration and return list of error messages.

    Only the shape of the config is checked here; whether the instance type
    exists is decided by the registry when the model is configured.
    Returns empty list if config is valid.
    """
    errors = []

    if not config.name or not str(config.name).strip():
        errors.append("Config must have a non-empty 'name'")

    if config.variant not in VARIANT_NAMES:
        errors.append(f"Unknown variant: {config.variant}. Valid: {list(VARIANT_NAMES)}")

    if not isinstance(config.model, dict):
        errors.append("'model' must be an object of model parameters")
    else:
        unknown = sorted(set(config.model) - set(MODEL_PARAMS))
        if unknown:
            errors.append(f"Unknown model parameters: {unknown}. Valid: {list(MODEL_PARAMS)}")
        if PARAM_INSTANCE_TYPE not in config.model:
            errors.append(f"'model' must set '{PARAM_INSTANCE_TYPE}'")
        if PARAM_VENDOR in config.model and config.model[PARAM_VENDOR] not in [v.value for v in Vendor]:
            errors.append(f"Unknown vendor: {config.model[PARAM_VENDOR]}")
        if PARAM_VENDOR not in config.model and config.variant == "ccf":
            errors.append(f"'model' must set '{PARAM_VENDOR}' for the ccf variant")
        lifespan = config.model.get(PARAM_EXPECTED_LIFESPAN)
        if lifespan is not None and (not is_number(lifespan) or lifespan <= 0):
            errors.append(f"'{PARAM_EXPECTED_LIFESPAN}' must be a positive number, got {lifespan!r}")
        interpolation = config.model.get(PARAM_INTERPOLATION)
        if interpolation is not None and interpolation not in [i.value for i in Interpolation]:
            errors.append(f"Unknown interpolation: {interpolation}")

    if not isinstance(config.inputs, list):
        errors.append("'inputs' must be a list of records")
    else:
        for index, record in enumerate(config.inputs):
            if not isinstance(record, dict):
                errors.append(f"inputs[{index}] must be an object")

    if not config.has_inputs():
        errors.append("Config must provide 'inputs' or 'inputs_file'")

    return errors
