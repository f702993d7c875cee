"""
Unit tests for plasma, frame timing, image and report I/O.
"""

import json
from pathlib import Path

import numpy as np
import pytest

from patlakpet.logic.contracts import RoiTac
from patlakpet.utilities.io import (
    VolumeGeometry,
    default_frame_definitions_path,
    patlak_output_paths,
    read_dynamic_image,
    read_frame_definitions,
    read_plasma_series,
    read_roi_tac,
    read_volume,
    split_image_name,
    write_roi_tac,
    write_volume,
)


class TestPlasmaFile:

    def test_reads_count_header_and_comments(self, tmp_path):
        path = tmp_path / "plasma.txt"
        path.write_text("# time plasma blood\n3\n0 10 5\n60 8 4\n\n120 6 3\n")

        series = read_plasma_series(path)

        np.testing.assert_allclose(series.times, [0.0, 60.0, 120.0])
        np.testing.assert_allclose(series.plasma, [10.0, 8.0, 6.0])
        np.testing.assert_allclose(series.blood, [5.0, 4.0, 3.0])

    def test_reads_without_count_header(self, tmp_path):
        path = tmp_path / "plasma.txt"
        path.write_text("0 10 5\n60 8 4\n")

        assert len(read_plasma_series(path)) == 2

    def test_count_mismatch_is_rejected(self, tmp_path):
        path = tmp_path / "plasma.txt"
        path.write_text("4\n0 10 5\n60 8 4\n")

        with pytest.raises(ValueError, match="declares 4"):
            read_plasma_series(path)

    def test_malformed_row_is_rejected(self, tmp_path):
        path = tmp_path / "plasma.txt"
        path.write_text("0 10 5\n60 8\n")

        with pytest.raises(ValueError, match="3 columns"):
            read_plasma_series(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_plasma_series(tmp_path / "missing.txt")


class TestFrameSidecar:

    def test_default_sidecar_path(self):
        assert default_frame_definitions_path(Path("/d/dyn.nii.gz")) == Path("/d/dyn.json")
        assert default_frame_definitions_path(Path("/d/dyn.mha")) == Path("/d/dyn.json")

    def test_reads_frames_and_metadata(self, tmp_path):
        path = tmp_path / "dyn.json"
        path.write_text(json.dumps({
            "FrameTimesStart": [0, 30, 90],
            "FrameDuration": [30, 60, 120],
            "ImageDecayCorrected": True,
            "CalibrationFactor": 1.5,
        }))

        definitions = read_frame_definitions(path)

        assert definitions.num_frames == 3
        assert definitions[3].end_time == 210.0
        assert definitions.is_decay_corrected is True
        assert definitions.calibration_factor == 1.5
        np.testing.assert_allclose(definitions.midpoints, [15.0, 60.0, 150.0])

    def test_missing_keys(self, tmp_path):
        path = tmp_path / "dyn.json"
        path.write_text(json.dumps({"FrameTimesStart": [0, 30]}))

        with pytest.raises(KeyError, match="FrameDuration"):
            read_frame_definitions(path)


class TestImages:

    def test_dynamic_image_round_trip(self, image_path, linear_frames):
        frames, geometry = read_dynamic_image(image_path)

        assert frames.shape == linear_frames.shape
        np.testing.assert_allclose(frames, linear_frames, rtol=1e-6)
        np.testing.assert_allclose(geometry.spacing, (2.0, 2.0, 3.0))
        assert len(geometry.direction) == 9

    def test_3d_image_is_not_dynamic(self, tmp_path):
        path = tmp_path / "vol.nii"
        assert write_volume(np.zeros((3, 4, 5)), VolumeGeometry(), path)

        with pytest.raises(ValueError, match="4D"):
            read_dynamic_image(path)

    def test_write_volume_keeps_geometry_and_layout(self, tmp_path):
        volume = np.arange(60, dtype=float).reshape(3, 4, 5)
        geometry = VolumeGeometry(origin=(1.0, 2.0, 3.0), spacing=(0.5, 0.5, 2.0))
        path = tmp_path / "vol.nii"

        assert write_volume(volume, geometry, path)
        loaded, loaded_geometry = read_volume(path)

        np.testing.assert_array_equal(loaded, volume)
        np.testing.assert_allclose(loaded_geometry.origin, geometry.origin)
        np.testing.assert_allclose(loaded_geometry.spacing, geometry.spacing)

    def test_write_failure_returns_false(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        assert write_volume(np.zeros((2, 2, 2)), VolumeGeometry(), blocker / "vol.nii") is False


class TestReport:

    def test_output_names(self):
        slope, intercept, tac = patlak_output_paths(Path("/data/dyn.nii.gz"))

        assert slope == Path("/data/slope_dyn.nii.gz")
        assert intercept == Path("/data/y_intersection_dyn.nii.gz")
        assert tac == Path("/data/dyn.tac")

    def test_output_dir_override(self, tmp_path):
        slope, _, tac = patlak_output_paths(Path("/data/dyn.mha"), tmp_path)

        assert slope == tmp_path / "slope_dyn.mha"
        assert tac == tmp_path / "dyn.tac"

    def test_split_image_name(self):
        assert split_image_name(Path("a/b.nii")) == ("b", ".nii")
        assert split_image_name(Path("a/b.NII.GZ")) == ("b", ".NII.GZ")

    def test_tac_columns(self, tmp_path):
        tac = RoiTac(
            frame_numbers=np.array([3, 4]),
            time_points=np.array([150.0, 210.0]),
            plasma=np.array([8.0, 7.0]),
            tissue=np.array([100.0, 110.0]),
            patlak_x=np.array([120.0, 150.0]),
            patlak_y=np.array([12.475, 15.7]),
            n_voxels=343,
        )
        path = tmp_path / "dyn.tac"

        write_roi_tac(tac, path)

        header = path.read_text().splitlines()[0].split("\t")
        assert header == ["Frame", "TimePoint", "Plasma", "Tissue", "RoI-X", "RoI-Y"]

        columns = read_roi_tac(path)
        np.testing.assert_array_equal(columns["Frame"], [3, 4])
        np.testing.assert_allclose(columns["RoI-Y"], [12.475, 15.7])
        np.testing.assert_allclose(columns["TimePoint"], [150.0, 210.0])
