"""
Unit tests for input function frame integration, calibration and decay
correction.
"""

import numpy as np
import pytest

from patlakpet.kinetics.integration import (
    DegeneratePlasmaError,
    calibrate_frames,
    check_regression_frames,
    decay_correct_frames,
    frame_decay_factors,
    integrate_plasma_over_frames,
    linear_integral,
)
from patlakpet.kinetics.series import FrameTotals, PlasmaSeries, TimeFrameDefinitions


@pytest.fixture
def three_samples():
    return PlasmaSeries(
        times=np.array([0.0, 60.0, 120.0]),
        plasma=np.array([10.0, 8.0, 6.0]),
        blood=np.array([5.0, 4.0, 3.0]),
    )


class TestLinearIntegral:

    def test_trapezoid_of_three_samples(self):
        # (10+8)/2*60 + (8+6)/2*60
        assert linear_integral(np.array([10.0, 8.0, 6.0]), np.array([0.0, 60.0, 120.0])) == 960.0

    def test_empty_and_single_sample_integrate_to_zero(self):
        assert linear_integral(np.array([]), np.array([])) == 0.0
        assert linear_integral(np.array([7.0]), np.array([30.0])) == 0.0


class TestFrameIntegration:

    def test_frame_covering_all_samples(self, three_samples):
        definitions = TimeFrameDefinitions.from_starts_and_durations([0.0], [180.0])

        totals = integrate_plasma_over_frames(three_samples, definitions)

        assert totals.plasma_cumulative_total[0] == pytest.approx(960.0)
        assert totals.plasma_total[0] == pytest.approx(960.0 / 180.0)
        assert totals.blood_total[0] == pytest.approx(480.0 / 180.0)

    def test_frame_end_is_exclusive(self, three_samples):
        # The 120 s sample belongs to the next frame, not to [0, 120)
        definitions = TimeFrameDefinitions.from_starts_and_durations([0.0, 120.0], [120.0, 120.0])

        totals = integrate_plasma_over_frames(three_samples, definitions)

        assert totals.plasma_cumulative_total[0] == pytest.approx(540.0)
        assert totals.plasma_total[0] == pytest.approx(4.5)
        # Second frame only holds one sample
        assert totals.plasma_total[1] == 0.0
        assert totals.plasma_cumulative_total[1] == pytest.approx(540.0)

    def test_cumulative_is_running_sum_of_raw_integrals(self, plasma_series, frame_definitions):
        totals = integrate_plasma_over_frames(plasma_series, frame_definitions)

        durations = np.array([frame.duration for frame in frame_definitions.frames])
        raw = totals.plasma_total * durations

        assert np.all(np.diff(totals.plasma_cumulative_total) >= 0)
        np.testing.assert_allclose(totals.plasma_cumulative_total, np.cumsum(raw))
        assert totals.plasma_cumulative_total[-1] == pytest.approx(raw.sum())

    def test_frames_without_samples_are_zero(self, three_samples):
        definitions = TimeFrameDefinitions.from_starts_and_durations(
            [-100.0, 0.0, 500.0], [100.0, 180.0, 100.0]
        )

        totals = integrate_plasma_over_frames(three_samples, definitions)

        assert totals.plasma_total[0] == 0.0
        assert totals.plasma_total[2] == 0.0
        assert totals.plasma_cumulative_total[2] == pytest.approx(960.0)

    def test_time_shift_moves_samples_between_frames(self, three_samples):
        definitions = TimeFrameDefinitions.from_starts_and_durations([0.0, 70.0], [70.0, 70.0])

        unshifted = integrate_plasma_over_frames(three_samples, definitions)
        shifted = integrate_plasma_over_frames(three_samples.shift_time(13.0), definitions)

        # 0 s and 60 s in frame 1 before the shift; 13 s only after it
        assert unshifted.plasma_total[0] > 0
        assert shifted.plasma_total[0] == 0.0


class TestRegressionFrameCheck:

    def test_zero_plasma_in_regression_frame_fails_fast(self):
        totals = FrameTotals(
            plasma_total=np.array([0.0, 0.0, 2.0, 3.0]),
            blood_total=np.ones(4),
            plasma_cumulative_total=np.array([0.0, 0.0, 2.0, 5.0]),
        )

        with pytest.raises(DegeneratePlasmaError, match=r"\[2\]"):
            check_regression_frames(totals, starting_frame=2)

        # Excluding the zero frames is fine
        check_regression_frames(totals, starting_frame=3)


class TestCalibrationAndDecay:

    def test_calibration_scales_every_frame(self):
        frames = np.ones((3, 2, 2, 2))
        np.testing.assert_allclose(calibrate_frames(frames, 2.5), 2.5)

    def test_decay_factor_of_short_frame_is_point_correction(self):
        half_life = 6586.2
        definitions = TimeFrameDefinitions.from_starts_and_durations([3600.0], [1e-3])

        factor = frame_decay_factors(definitions, half_life)[0]

        assert factor == pytest.approx(np.exp(np.log(2.0) * 3600.0 / half_life), rel=1e-6)

    def test_decay_correction_grows_with_time(self, frame_definitions):
        frames = np.ones((frame_definitions.num_frames, 2, 2, 2))

        corrected, factors = decay_correct_frames(frames, frame_definitions, 6586.2)

        assert np.all(factors > 1.0)
        assert np.all(np.diff(factors) > 0)
        np.testing.assert_allclose(corrected[:, 0, 0, 0], factors)

    def test_frame_count_mismatch_is_rejected(self, frame_definitions):
        with pytest.raises(ValueError, match="frames"):
            decay_correct_frames(np.ones((3, 2, 2, 2)), frame_definitions, 6586.2)

    def test_plasma_decay_correction(self, three_samples):
        corrected = three_samples.decay_corrected(60.0)

        np.testing.assert_allclose(corrected.plasma, [10.0, 16.0, 24.0])
        np.testing.assert_allclose(corrected.blood, [5.0, 8.0, 12.0])
        np.testing.assert_allclose(three_samples.plasma, [10.0, 8.0, 6.0])
