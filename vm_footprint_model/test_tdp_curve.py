"""
Unit tests for the TDP-based CPU energy curve.

Run with: pytest test_tdp_curve.py -v
"""

import pytest

from .errors import InputValidationError, UnsupportedValueError
from .config import Interpolation
from .tdp_curve import CURVE_CACHE_SIZE, TeadsCurve, teads_curve


def _record(cpu=50, duration=3600, **extra):
    record = {"timestamp": "2024-01-01T00:00:00Z", "duration": duration, "cpu-util": cpu}
    record.update(extra)
    return record


class TestTeadsCurveSpline:
    """Tests for the default (spline) curve."""

    def test_half_load(self):
        [record] = TeadsCurve({"thermal-design-power": 200}).execute([_record(cpu=50)])
        assert record["energy-cpu"] == pytest.approx(0.15)

    @pytest.mark.parametrize("cpu,expected", [(10, 0.096), (50, 0.225), (100, 0.306)])
    def test_calibration_points(self, cpu, expected):
        [record] = TeadsCurve({"thermal-design-power": 300}).execute([_record(cpu=cpu)])
        assert record["energy-cpu"] == pytest.approx(expected)

    def test_idle(self):
        [record] = TeadsCurve({"thermal-design-power": 100}).execute([_record(cpu=0)])
        assert record["energy-cpu"] == pytest.approx(0.012)

    def test_vcpu_share(self):
        model = TeadsCurve({"thermal-design-power": 200})
        [record] = model.execute([_record(cpu=50, **{"vcpus-allocated": 1, "vcpus-total": 64})])
        assert record["energy-cpu"] == pytest.approx(0.00234375)

    def test_vcpu_counts_as_strings(self):
        [record] = TeadsCurve().execute([
            _record(cpu=10, **{"thermal-design-power": 200, "vcpus-allocated": "1", "vcpus-total": "64"})
        ])
        assert record["energy-cpu"] == pytest.approx(0.001)

    def test_single_vcpu_count_ignored(self):
        [record] = TeadsCurve({"thermal-design-power": 200}).execute([_record(**{"vcpus-allocated": 1})])
        assert record["energy-cpu"] == pytest.approx(0.15)


class TestTeadsCurveLinear:
    """Tests for linear interpolation between the curve points."""

    @pytest.mark.parametrize("cpu,expected", [(15, 0.112125), (55, 0.2331), (75, 0.2655)])
    def test_between_points(self, cpu, expected):
        model = TeadsCurve({"thermal-design-power": 300, "interpolation": "linear"})
        [record] = model.execute([_record(cpu=cpu)])
        assert record["energy-cpu"] == pytest.approx(expected)

    def test_vcpu_share(self):
        model = TeadsCurve({"thermal-design-power": 300, "interpolation": "linear"})
        [record] = model.execute([_record(cpu=10, **{"vcpus-allocated": 1, "vcpus-total": 64})])
        assert record["energy-cpu"] == pytest.approx(0.0015)


class TestTeadsCurveValidation:
    """Tests for TeadsCurve input errors."""

    def test_tdp_required(self):
        with pytest.raises(InputValidationError, match='"thermal-design-power" parameter is required.'):
            TeadsCurve().execute([_record()])

    def test_record_tdp_overrides_config(self):
        [record] = TeadsCurve({"thermal-design-power": 100}).execute(
            [_record(**{"thermal-design-power": 200})]
        )
        assert record["energy-cpu"] == pytest.approx(0.15)

    @pytest.mark.parametrize("field", ["cpu-util", "duration", "timestamp"])
    def test_required_fields(self, field):
        record = _record()
        del record[field]
        with pytest.raises(InputValidationError, match=f'"{field}" parameter is required.'):
            TeadsCurve({"thermal-design-power": 200}).execute([record])

    def test_cpu_above_hundred(self):
        with pytest.raises(InputValidationError, match="less than or equal to 100"):
            TeadsCurve({"thermal-design-power": 200}).execute([_record(cpu=101)])

    def test_invalid_vcpus(self):
        with pytest.raises(InputValidationError, match=r"TeadsCurve: Invalid type for 'vcpus-allocated' in input\[0\]."):
            TeadsCurve({"thermal-design-power": 200}).execute(
                [_record(**{"vcpus-allocated": "one", "vcpus-total": 64})]
            )

    def test_invalid_tdp(self):
        with pytest.raises(InputValidationError):
            TeadsCurve({"thermal-design-power": -5})

    def test_unsupported_interpolation(self):
        with pytest.raises(UnsupportedValueError):
            TeadsCurve({"thermal-design-power": 200, "interpolation": "cubic"})

    def test_non_mapping_record(self):
        with pytest.raises(InputValidationError, match=r"TeadsCurve\(execute\): input\[1\] must be a mapping, got list"):
            TeadsCurve({"thermal-design-power": 200}).execute([_record(), [50, 3600]])


class TestCurveCache:
    """Tests for the per-TDP curve cache."""

    def test_curve_reused(self):
        assert teads_curve(210.0, Interpolation.LINEAR) is teads_curve(210.0, Interpolation.LINEAR)
        assert teads_curve(210.0, Interpolation.LINEAR) is not teads_curve(210.0, Interpolation.SPLINE)

    def test_cache_bounded(self):
        model = TeadsCurve({"interpolation": "linear"})
        model.execute([_record(**{"thermal-design-power": 100 + i}) for i in range(2 * CURVE_CACHE_SIZE)])
        info = teads_curve.cache_info()
        assert info.maxsize == CURVE_CACHE_SIZE
        assert info.currsize <= CURVE_CACHE_SIZE
