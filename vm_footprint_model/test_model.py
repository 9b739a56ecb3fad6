"""
Unit tests for the instance footprint model.

Run with: pytest test_model.py -v
"""

from dataclasses import replace

import pytest

from .config import Interpolation, Vendor
from .embodied import EmbodiedPolicy, embodied_carbon_g
from .energy import LinearPowerCurve, PiecewiseLinearPowerCurve, SplinePowerCurve
from .errors import FootprintModelError, InputValidationError, UnsupportedValueError
from .model import (
    CLOUD_CARBON_FOOTPRINT, TEADS_AWS, InstanceFootprintModel, ModelState, get_variant,
)


def _record(cpu=50, duration=3600, **extra):
    record = {"timestamp": "2024-01-01T00:00:00Z", "duration": duration, "cpu-util": cpu}
    record.update(extra)
    return record


@pytest.fixture
def ccf():
    return InstanceFootprintModel()


@pytest.fixture
def teads():
    return InstanceFootprintModel(variant=TEADS_AWS)


class TestConfigure:
    """Tests for configuring the model."""

    def test_initial_state(self, ccf):
        assert ccf.state is ModelState.UNCONFIGURED
        assert ccf.config is None
        assert ccf.profile is None

    def test_configure(self, ccf):
        assert ccf.configure({"vendor": "aws", "instance-type": "m5n.large"}) is ccf
        assert ccf.state is ModelState.CONFIGURED
        assert ccf.config.vendor is Vendor.AWS
        assert ccf.config.expected_lifespan_years == 4.0
        assert ccf.config.interpolation is Interpolation.LINEAR
        assert isinstance(ccf.power_curve, LinearPowerCurve)

    def test_spline(self, ccf):
        ccf.configure({"vendor": "aws", "instance-type": "t2.micro", "interpolation": "spline"})
        assert isinstance(ccf.power_curve, SplinePowerCurve)

    def test_missing_params(self, ccf):
        with pytest.raises(InputValidationError, match="Input data is missing"):
            ccf.configure(None)

    def test_missing_vendor(self, ccf):
        with pytest.raises(InputValidationError, match="Vendor is not provided"):
            ccf.configure({"instance-type": "t2.micro"})

    def test_missing_instance_type(self, ccf):
        with pytest.raises(InputValidationError, match="Instance type is not provided"):
            ccf.configure({"vendor": "aws"})

    def test_unsupported_vendor(self, ccf):
        with pytest.raises(UnsupportedValueError, match="Vendor ibm not supported"):
            ccf.configure({"vendor": "ibm", "instance-type": "t2.micro"})

    def test_unsupported_instance_type(self, ccf):
        with pytest.raises(UnsupportedValueError, match=r"^CloudCarbonFootprint\(configure\): "
                                                        r"Instance type t9.huge is not supported"):
            ccf.configure({"vendor": "aws", "instance-type": "t9.huge"})

    def test_unsupported_interpolation(self, ccf):
        with pytest.raises(UnsupportedValueError, match="Interpolation cubic method not supported"):
            ccf.configure({"vendor": "aws", "instance-type": "t2.micro", "interpolation": "cubic"})

    def test_spline_without_calibration(self, ccf):
        with pytest.raises(UnsupportedValueError):
            ccf.configure({"vendor": "gcp", "instance-type": "n2-standard-2", "interpolation": "spline"})

    @pytest.mark.parametrize("lifespan", [0, -1, "4", None])
    def test_invalid_lifespan(self, ccf, lifespan):
        with pytest.raises(InputValidationError):
            ccf.configure({"vendor": "aws", "instance-type": "t2.micro", "expected-lifespan": lifespan})

    def test_missing_embodied_data(self, ccf):
        with pytest.raises(UnsupportedValueError, match="no embodied emissions data"):
            ccf.configure({"vendor": "aws", "instance-type": "m6i.large"})

    def test_failed_configure_keeps_previous(self, ccf):
        ccf.configure({"vendor": "aws", "instance-type": "m5n.large"})
        with pytest.raises(UnsupportedValueError):
            ccf.configure({"vendor": "aws", "instance-type": "t9.huge"})
        assert ccf.config.instance_type == "m5n.large"
        assert ccf.execute([_record()])[0]["energy"] == pytest.approx(0.00461)

    def test_reconfigure_replaces(self, ccf):
        ccf.configure({"vendor": "aws", "instance-type": "m5n.large"})
        ccf.configure({"vendor": "gcp", "instance-type": "n2-standard-2"})
        assert ccf.config.vendor is Vendor.GCP
        assert ccf.profile.name == "n2-standard-2"

    def test_teads_implies_aws(self, teads):
        teads.configure({"instance-type": "m5n.large"})
        assert teads.config.vendor is Vendor.AWS
        assert isinstance(teads.power_curve, PiecewiseLinearPowerCurve)

    def test_teads_rejects_other_vendors(self, teads):
        with pytest.raises(UnsupportedValueError, match=r"^TeadsAWS\(configure\): Vendor gcp not supported"):
            teads.configure({"vendor": "gcp", "instance-type": "n2-standard-2"})


class TestExecute:
    """Tests for executing the model on utilization records."""

    def test_not_configured(self, ccf):
        with pytest.raises(InputValidationError, match="Incomplete configuration"):
            ccf.execute([_record()])
        assert ccf.state is ModelState.UNCONFIGURED

    def test_linear_bounds(self, ccf):
        ccf.configure({"vendor": "aws", "instance-type": "m5n.large"})
        [record] = ccf.execute([_record(cpu=50, duration=3600)])
        # 1.28 W idle, 7.94 W max -> 4.61 W at 50%
        assert record["energy"] == pytest.approx(0.00461)
        assert record["embodied-carbon"] == pytest.approx(
            1947.6 * 1000 * (1 / (4 * 8760)) * (2 / 96)
        )

    def test_spline_at_knot(self, ccf):
        ccf.configure({"vendor": "aws", "instance-type": "m5n.large", "interpolation": "spline"})
        [record] = ccf.execute([_record(cpu=10, duration=3600)])
        assert record["energy"] == pytest.approx(0.0073)

    def test_gcp(self, ccf):
        ccf.configure({"vendor": "gcp", "instance-type": "n2d-standard-2", "expected-lifespan": 6})
        [record] = ccf.execute([_record(cpu=100, duration=1800)])
        # EPYC 2nd Gen max 1.69 W/vCPU x 2
        assert record["energy"] == pytest.approx(3.38 * 1800 / 3600 / 1000)
        assert record["embodied-carbon"] == pytest.approx(embodied_carbon_g(2213.8, 1800, 6, 2, 224))

    def test_azure_unknown_architecture_averaged(self, ccf):
        ccf.configure({"vendor": "azure", "instance-type": "A1 v2"})
        assert ccf.profile.architectures == ("Average",)

    def test_fields_preserved_and_augmented_in_place(self, ccf):
        ccf.configure({"vendor": "aws", "instance-type": "t2.micro"})
        record = _record(region="eu-west-1", tags={"team": "a"})
        outputs = ccf.execute([record])
        assert outputs[0] is record
        assert record["region"] == "eu-west-1"
        assert record["tags"] == {"team": "a"}
        assert record["cpu-util"] == 50
        assert set(record) == {"timestamp", "duration", "cpu-util", "region", "tags",
                               "energy", "embodied-carbon"}

    def test_order_and_length_preserved(self, ccf):
        ccf.configure({"vendor": "aws", "instance-type": "t2.micro"})
        records = [_record(cpu=c, timestamp=f"t{c}") for c in (0, 25, 50, 100)]
        outputs = ccf.execute(records)
        assert [r["timestamp"] for r in outputs] == ["t0", "t25", "t50", "t100"]
        energies = [r["energy"] for r in outputs]
        assert energies == sorted(energies)

    def test_records_independent(self, ccf):
        ccf.configure({"vendor": "aws", "instance-type": "t2.micro"})
        alone = ccf.execute([_record(cpu=30)])[0]["energy"]
        batch = ccf.execute([_record(cpu=90), _record(cpu=30), _record(cpu=5)])
        assert batch[1]["energy"] == alone

    def test_zero_duration(self, ccf):
        ccf.configure({"vendor": "aws", "instance-type": "t2.micro"})
        [record] = ccf.execute([_record(duration=0)])
        assert record["energy"] == 0
        assert record["embodied-carbon"] == 0

    def test_empty(self, ccf):
        ccf.configure({"vendor": "aws", "instance-type": "t2.micro"})
        assert ccf.execute([]) == []

    @pytest.mark.parametrize("records", [None, "records", {"cpu-util": 50}])
    def test_not_a_sequence(self, ccf, records):
        ccf.configure({"vendor": "aws", "instance-type": "t2.micro"})
        with pytest.raises(InputValidationError, match="array of records"):
            ccf.execute(records)

    def test_invalid_record(self, ccf):
        ccf.configure({"vendor": "aws", "instance-type": "t2.micro"})
        with pytest.raises(InputValidationError, match=r"input\[1\]"):
            ccf.execute([_record(), {"timestamp": "t", "duration": 60}])

    def test_lifespan_halves_embodied(self, ccf):
        ccf.configure({"vendor": "aws", "instance-type": "t2.micro"})
        four = ccf.execute([_record()])[0]["embodied-carbon"]
        ccf.configure({"vendor": "aws", "instance-type": "t2.micro", "expected-lifespan": 8})
        eight = ccf.execute([_record()])[0]["embodied-carbon"]
        assert eight == pytest.approx(four / 2)

    def test_ccf_ignores_record_overrides(self, ccf):
        ccf.configure({"vendor": "aws", "instance-type": "m5n.large"})
        [record] = ccf.execute([_record(**{"instance-type": "c5.large"})])
        assert record["energy"] == pytest.approx(0.00461)


class TestTeadsVariant:
    """Tests for the calibration-based AWS variant."""

    def test_linear_between_calibration_points(self, teads):
        teads.configure({"instance-type": "m5n.large"})
        [record] = teads.execute([_record(cpu=75, duration=3600)])
        # Halfway between 14.1 W (50%) and 19.2 W (100%)
        assert record["energy"] == pytest.approx(0.01665)

    def test_energy_non_decreasing_in_utilization(self, teads):
        teads.configure({"instance-type": "m5n.large"})
        outputs = teads.execute([_record(cpu=cpu) for cpu in range(0, 101)])
        energies = [r["energy"] for r in outputs]
        assert energies == sorted(energies)
        assert energies[0] == pytest.approx(0.0046)
        assert energies[-1] == pytest.approx(0.0192)

    def test_record_override_applies_to_that_record_only(self, teads):
        teads.configure({"instance-type": "m5n.large"})
        outputs = teads.execute([
            _record(cpu=100, **{"instance-type": "c5.large"}),
            _record(cpu=100),
        ])
        assert outputs[0]["energy"] == pytest.approx(0.0139)
        assert outputs[1]["energy"] == pytest.approx(0.0192)
        assert teads.config.instance_type == "m5n.large"

    def test_record_override_lifespan(self, teads):
        teads.configure({"instance-type": "m5n.large"})
        outputs = teads.execute([_record(), _record(**{"expected-lifespan": 2})])
        assert outputs[1]["embodied-carbon"] == pytest.approx(2 * outputs[0]["embodied-carbon"])

    def test_record_override_unknown_instance(self, teads):
        teads.configure({"instance-type": "m5n.large"})
        with pytest.raises(UnsupportedValueError, match="t9.huge"):
            teads.execute([_record(**{"instance-type": "t9.huge"})])

    def test_no_calibration_falls_back_to_bounds(self, teads):
        teads.configure({"instance-type": "t3.nano"})
        assert isinstance(teads.power_curve, LinearPowerCurve)


class TestVariants:
    """Tests for variant lookup and policies."""

    def test_get_variant(self):
        assert get_variant("ccf") is CLOUD_CARBON_FOOTPRINT
        assert get_variant("teads-aws") is TEADS_AWS

    def test_unknown_variant(self):
        with pytest.raises(UnsupportedValueError):
            get_variant("boavizta")

    def test_default_vendor(self):
        assert CLOUD_CARBON_FOOTPRINT.default_vendor is None
        assert TEADS_AWS.default_vendor is Vendor.AWS

    def test_zero_policy_allows_missing_embodied(self):
        variant = replace(CLOUD_CARBON_FOOTPRINT, missing_embodied=EmbodiedPolicy.ZERO)
        model = InstanceFootprintModel(variant=variant)
        model.configure({"vendor": "aws", "instance-type": "m6i.large"})
        [record] = model.execute([_record()])
        assert record["embodied-carbon"] == 0.0
        assert record["energy"] > 0


class TestOutcome:
    """Tests for the non-raising API."""

    def test_try_configure_ok(self, ccf):
        outcome = ccf.try_configure({"vendor": "aws", "instance-type": "t2.micro"})
        assert outcome.ok
        assert outcome.unwrap() is ccf

    def test_try_configure_error(self, ccf):
        outcome = ccf.try_configure({"vendor": "aws", "instance-type": "t9.huge"})
        assert not outcome.ok
        assert isinstance(outcome.error, UnsupportedValueError)
        with pytest.raises(UnsupportedValueError):
            outcome.unwrap()

    def test_try_execute(self, ccf):
        outcome = ccf.try_execute([_record()])
        assert isinstance(outcome.error, InputValidationError)
        ccf.configure({"vendor": "aws", "instance-type": "t2.micro"})
        outcome = ccf.try_execute([_record()])
        assert outcome.ok
        assert "energy" in outcome.value[0]

    def test_errors_are_value_errors(self):
        assert issubclass(FootprintModelError, ValueError)
